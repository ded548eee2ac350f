"""Search orchestration: validate, translate, one engine round trip, map."""
from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import Any, Dict, Optional

from elasticsearch import Elasticsearch

from .cache import CacheBackend, cache_key
from .classification import ClassificationTable, table_from_settings
from .config import Settings, settings
from .es_client import ENGINE_ERRORS, response_body
from .facets import build_aggregations, map_facets
from .models import SearchRequest, SearchResponse
from .query import build_text_query

logger = logging.getLogger(__name__)

SORT = [{"_score": {"order": "desc"}}, {"id": {"order": "desc"}}]


def is_searchable(text: str | None, min_length: int) -> bool:
    return bool(text) and len(text) >= min_length


def resolve_paging(request: SearchRequest, config: Settings = settings) -> tuple[int, int]:
    """Replace missing or non-positive page/size values with the defaults."""
    page = request.page if request.page is not None and request.page > 0 else config.default_page
    size = request.size if request.size is not None and request.size > 0 else config.default_size
    return page, size


def build_search_params(
    text: str,
    page: int,
    size: int,
    table: ClassificationTable,
    aggregation_size: int,
) -> Dict[str, Any]:
    """Keyword arguments for a single ``Elasticsearch.search`` call."""
    params = {
        "query": build_text_query(text, table),
        "aggs": build_aggregations(aggregation_size),
        "from_": (page - 1) * size,
        "size": size,
        "sort": SORT,
        "track_total_hits": True,
    }
    logger.debug("ES search params=%s", params)
    return params


def _total_hits(hits: Dict[str, Any]) -> int:
    total = hits.get("total", 0)
    if isinstance(total, dict):
        return int(total.get("value", 0))
    return int(total or 0)


def build_response(payload: Dict[str, Any]) -> SearchResponse:
    hits = payload.get("hits", {})
    return SearchResponse(
        totalHits=_total_hits(hits),
        products=[hit.get("_source", {}) for hit in hits.get("hits", [])],
        facets=map_facets(payload.get("aggregations", {})),
    )


async def search_products(
    es: Elasticsearch,
    request: SearchRequest,
    *,
    config: Settings = settings,
    table: Optional[ClassificationTable] = None,
    cache: Optional[CacheBackend] = None,
) -> SearchResponse:
    text = request.textQuery
    if not is_searchable(text, config.min_query_length):
        logger.info("search skipped q=%r min_length=%s", text, config.min_query_length)
        return SearchResponse()

    page, size = resolve_paging(request, config)
    use_cache = cache is not None and config.cache_ttl_seconds > 0
    key = cache_key(text, page, size)
    if use_cache:
        cached = cache.get(key)
        if cached is not None:
            logger.info("timing: cache_hit=1 q=%r page=%s size=%s", text, page, size)
            return SearchResponse.model_validate(cached)

    t0 = perf_counter()
    params = build_search_params(
        text, page, size, table or table_from_settings(config), config.aggregation_size
    )
    t1 = perf_counter()
    try:
        raw = await asyncio.to_thread(es.search, index=config.product_alias, **params)
    except ENGINE_ERRORS:
        logger.exception("search failed q=%r alias=%s", text, config.product_alias)
        return SearchResponse()
    t2 = perf_counter()
    response = build_response(response_body(raw))
    t3 = perf_counter()

    logger.info(
        "timing: total=%.2fms build=%.2fms es=%.2fms post=%.2fms q=%r page=%s size=%s hits=%s",
        (t3 - t0) * 1000,
        (t1 - t0) * 1000,
        (t2 - t1) * 1000,
        (t3 - t2) * 1000,
        text,
        page,
        size,
        response.totalHits,
    )

    if use_cache:
        cache.set(key, response.model_dump(mode="json"), config.cache_ttl_seconds)
        logger.debug("cache_store q=%r ttl=%s", text, config.cache_ttl_seconds)
    return response
