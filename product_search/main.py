"""FastAPI application wiring the search service."""
from __future__ import annotations

import asyncio
import logging

from elasticsearch import Elasticsearch
from fastapi import Depends, FastAPI, HTTPException

from .cache import CacheBackend, get_cache
from .classification import table_from_settings
from .config import settings
from .errors import IndexRotationError, RotationInProgressError
from .es_client import get_client, response_body
from .indexing import current_indices, recreate_index
from .models import RotationResult, SearchRequest, SearchResponse
from .search import search_products

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL = logging.getLevelName(settings.log_level.upper())

# ``force=True`` replaces uvicorn's default handlers.
logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, force=True)
for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "elastic_transport"):
    logging.getLogger(name).setLevel(LOG_LEVEL)

logger = logging.getLogger(__name__)
logger.info("Logging configured at %s", settings.log_level.upper())

app = FastAPI(title="Product Search Service")


@app.on_event("startup")
async def startup_event() -> None:
    # Overlapping size/color vocabularies fail here rather than on the first search.
    table_from_settings(settings)
    if not settings.recreate_index_on_startup:
        return
    result = await recreate_index(get_client(), config=settings, cache=get_cache())
    logger.info("Recreated index %s on startup (%s documents)", result.index, result.indexed)


@app.get("/health")
async def health(es: Elasticsearch = Depends(get_client)) -> dict:
    status = response_body(await asyncio.to_thread(es.cluster.health))
    return {
        "elasticsearch": status.get("status"),
        "alias": settings.product_alias,
        "indices": await current_indices(es, settings.product_alias),
    }


@app.post("/v1/products", response_model=SearchResponse)
async def search(
    request: SearchRequest,
    es: Elasticsearch = Depends(get_client),
    cache: CacheBackend = Depends(get_cache),
) -> SearchResponse:
    return await search_products(es, request, config=settings, cache=cache)


@app.post("/v1/admin/recreate-index", response_model=RotationResult)
async def recreate(
    es: Elasticsearch = Depends(get_client),
    cache: CacheBackend = Depends(get_cache),
) -> RotationResult:
    try:
        return await recreate_index(es, config=settings, cache=cache)
    except RotationInProgressError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except IndexRotationError as exc:
        logger.exception("Index rotation failed")
        raise HTTPException(status_code=500, detail=str(exc)) from exc
