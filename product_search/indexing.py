"""Blue-green index rotation behind the public product alias.

A rotation builds a fresh timestamped index (``<alias>_yyyyMMddHHmmss``),
moves the alias onto it in a single ``update_aliases`` call, prunes old
timestamped indices down to ``max_indices`` and bulk-loads the seed catalog.

By default the alias is published before the documents are loaded, so searches
issued during the load see an empty index. Setting ``POPULATE_BEFORE_PUBLISH``
loads the new index first and only then repoints and prunes.

Rotations are single-flight within a process. Nothing coordinates rotations
running in different processes.
"""
from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from elasticsearch import Elasticsearch, helpers
from elasticsearch.exceptions import NotFoundError

from .cache import CacheBackend
from .config import Settings, settings
from .errors import AcknowledgementError, IndexRotationError, RotationInProgressError
from .es_client import ENGINE_ERRORS, response_body
from .models import RotationResult
from .resources import load_index_resources

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"

_rotation_lock = asyncio.Lock()


def new_index_name(alias: str, now: Optional[datetime] = None) -> str:
    moment = now or datetime.now(timezone.utc)
    return f"{alias}_{moment.strftime(TIMESTAMP_FORMAT)}"


def select_outdated(indices: Iterable[str], alias: str, keep: int) -> List[str]:
    """Pick timestamped indices beyond the newest ``keep`` (at least one is kept)."""
    pattern = re.compile(rf"^{re.escape(alias)}_\d{{14}}$")
    candidates = sorted((name for name in indices if pattern.match(name)), reverse=True)
    return candidates[max(keep, 1):]


def _require_ack(response: Any, action: str) -> None:
    if not response_body(response).get("acknowledged", False):
        raise AcknowledgementError(f"{action} not acknowledged")


async def create_index(
    es: Elasticsearch,
    index: str,
    index_settings: Dict[str, Any],
    mappings: Dict[str, Any],
    alias: Optional[str] = None,
) -> None:
    """Create ``index``; when ``alias`` is given it is bound at creation time."""
    params: Dict[str, Any] = {"index": index, "settings": index_settings, "mappings": mappings}
    if alias:
        params["aliases"] = {alias: {}}
    try:
        response = await asyncio.to_thread(es.indices.create, **params)
    except ENGINE_ERRORS as exc:
        raise IndexRotationError(f"An error occurred while creating index {index}") from exc
    _require_ack(response, f"Creating index {index}")
    logger.info("Index %s has been created", index)


async def current_indices(es: Elasticsearch, alias: str) -> List[str]:
    """Indices the alias currently resolves to; empty when the alias is unknown."""
    try:
        response = await asyncio.to_thread(es.indices.get_alias, name=alias)
    except NotFoundError:
        return []
    return sorted(response_body(response).keys())


async def repoint_alias(es: Elasticsearch, alias: str, index: str) -> List[str]:
    """Atomically move ``alias`` from every current holder to ``index``."""
    try:
        holders = await current_indices(es, alias)
        actions: List[Dict[str, Any]] = [
            {"remove": {"index": holder, "alias": alias}} for holder in holders
        ]
        actions.append({"add": {"index": index, "alias": alias}})
        response = await asyncio.to_thread(es.indices.update_aliases, actions=actions)
    except ENGINE_ERRORS as exc:
        raise IndexRotationError(f"Failed to update aliases for {index}") from exc
    _require_ack(response, f"Alias update for {alias}")
    logger.info("Alias %s now points to %s (previously %s)", alias, index, holders)
    return holders


async def delete_outdated_indices(es: Elasticsearch, alias: str, keep: int) -> List[str]:
    try:
        response = await asyncio.to_thread(es.indices.get, index=f"{alias}_*")
        outdated = select_outdated(response_body(response).keys(), alias, keep)
        if not outdated:
            return []
        delete_response = await asyncio.to_thread(es.indices.delete, index=outdated)
    except ENGINE_ERRORS as exc:
        raise IndexRotationError(f"Failed to delete outdated indices for {alias}") from exc
    _require_ack(delete_response, "Index delete")
    logger.info("Deleted outdated indices %s", outdated)
    return outdated


def _iter_actions(index: str, documents: Iterable[Dict[str, Any]]) -> Iterator[Dict[str, Any]]:
    for document in documents:
        yield {"_index": index, "_id": str(document["id"]), "_source": document}


async def load_documents(
    es: Elasticsearch, index: str, documents: List[Dict[str, Any]]
) -> Tuple[int, int]:
    """Index ``documents`` in one refreshed batch; returns ``(indexed, failed)``.

    Item-level failures are logged and counted, never raised.
    """
    with_id = [document for document in documents if document.get("id") is not None]
    skipped = len(documents) - len(with_id)
    if skipped:
        logger.warning("Skipping %s documents without an id", skipped)
    actions = list(_iter_actions(index, with_id))
    try:
        indexed, errors = await asyncio.to_thread(
            helpers.bulk,
            es,
            actions,
            chunk_size=max(len(actions), 1),
            refresh=True,
            raise_on_error=False,
        )
    except ENGINE_ERRORS as exc:
        raise IndexRotationError(f"Bulk load into {index} failed") from exc

    if indexed != len(documents):
        logger.warning(
            "Only %s out of %s requests have been processed in a bulk request",
            indexed,
            len(documents),
        )
    else:
        logger.info("%s requests have been processed in a bulk request", indexed)
    for error in errors:
        logger.warning("Bulk data processing failure: %s", error)
    return indexed, len(documents) - indexed


async def recreate_index(
    es: Elasticsearch,
    *,
    config: Settings = settings,
    cache: Optional[CacheBackend] = None,
    now: Optional[datetime] = None,
) -> RotationResult:
    """Run one rotation of ``config.product_alias``.

    Raises :class:`IndexRotationError` (or a subclass) when any step before the
    bulk load fails; the bulk load itself only fails on transport errors.
    """
    if _rotation_lock.locked():
        raise RotationInProgressError(f"A rotation of {config.product_alias} is already running")
    async with _rotation_lock:
        return await _rotate(es, config, cache, now)


async def _rotate(
    es: Elasticsearch,
    config: Settings,
    cache: Optional[CacheBackend],
    now: Optional[datetime],
) -> RotationResult:
    alias = config.product_alias
    resources = load_index_resources(config)
    try:
        index_settings = resources.settings_body()
        mappings = resources.mappings_body()
        documents = resources.document_list()
    except ValueError as exc:
        raise IndexRotationError("Index resources are not valid JSON") from exc
    if not isinstance(documents, list) or not all(isinstance(doc, dict) for doc in documents):
        raise IndexRotationError(f"Seed data in {config.bulk_data_path} must be a JSON array of objects")

    index = new_index_name(alias, now)
    logger.info(
        "Rotating alias %s to %s (%s documents, populate_before_publish=%s)",
        alias,
        index,
        len(documents),
        config.populate_before_publish,
    )

    if config.populate_before_publish:
        await create_index(es, index, index_settings, mappings)
        indexed, failed = await load_documents(es, index, documents)
        await repoint_alias(es, alias, index)
        deleted = await delete_outdated_indices(es, alias, config.max_indices)
    else:
        await create_index(es, index, index_settings, mappings, alias=alias)
        await repoint_alias(es, alias, index)
        deleted = await delete_outdated_indices(es, alias, config.max_indices)
        indexed, failed = await load_documents(es, index, documents)

    if cache is not None:
        cache.clear()
    logger.info("Rotation of %s finished: index=%s indexed=%s failed=%s", alias, index, indexed, failed)
    return RotationResult(alias=alias, index=index, indexed=indexed, failed=failed, deleted=deleted)
