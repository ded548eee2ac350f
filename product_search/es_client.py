"""Elasticsearch client factory.

The rest of the code works against the official synchronous client. Blocking
calls are wrapped via ``asyncio.to_thread`` by the caller where necessary.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Mapping

from elastic_transport import TransportError
from elasticsearch import Elasticsearch
from elasticsearch.exceptions import ApiError

from .config import settings

logger = logging.getLogger(__name__)

# Everything the client raises when the engine is unreachable or rejects a call.
ENGINE_ERRORS = (ApiError, TransportError)


@lru_cache(maxsize=1)
def get_client() -> Elasticsearch:
    logger.info("Connecting to Elasticsearch at %s", settings.es_host)
    return Elasticsearch(settings.es_host)


def response_body(response: Any) -> Mapping[str, Any]:
    """Return the raw JSON body of a client response (or a plain dict)."""
    return getattr(response, "body", response)
