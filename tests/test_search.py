"""Tests for request validation, the engine round trip and response mapping."""

import asyncio

import pytest
from elastic_transport import ConnectionError as TransportConnectionError

from product_search.cache import InMemoryCache
from product_search.config import Settings
from product_search.models import SearchRequest, SearchResponse
from product_search.search import resolve_paging, search_products


def _search(es, request, **kwargs):
    return asyncio.run(search_products(es, request, **kwargs))


@pytest.mark.parametrize("text", [None, "", "ab"])
def test_short_queries_short_circuit_without_engine_call(es, config, text):
    response = _search(es, SearchRequest(textQuery=text), config=config)

    assert response == SearchResponse()
    assert response.model_dump() == {"totalHits": 0}
    assert es.search_calls == []


def test_query_at_minimum_length_is_searched(es, config):
    _search(es, SearchRequest(textQuery="tee"), config=config)

    assert len(es.search_calls) == 1


@pytest.mark.parametrize(
    "page, size, expected",
    [
        (None, None, (1, 10)),
        (0, 0, (1, 10)),
        (-3, -1, (1, 10)),
        (2, 5, (2, 5)),
    ],
)
def test_paging_defaults_merge_missing_and_non_positive(config, page, size, expected):
    assert resolve_paging(SearchRequest(textQuery="jeans", page=page, size=size), config) == expected


def test_single_round_trip_with_query_aggregations_and_sort(es, config):
    _search(es, SearchRequest(textQuery="blue jeans", page=3, size=4), config=config)

    (params,) = es.search_calls
    assert params["index"] == "products"
    assert params["from_"] == 8
    assert params["size"] == 4
    assert params["track_total_hits"] is True
    assert params["sort"] == [{"_score": {"order": "desc"}}, {"id": {"order": "desc"}}]
    assert set(params["aggs"]) == {
        "price_ranges",
        "brand_terms",
        "nested_skus_size",
        "nested_skus_color",
    }
    assert "nested" in params["query"]["bool"]["must"][0]


def test_hits_and_facets_are_mapped(es, config, search_payload):
    es.search_response = search_payload

    response = _search(es, SearchRequest(textQuery="jeans"), config=config)

    assert response.totalHits == 8
    assert [product["id"] for product in response.products] == ["2", "1"]
    assert response.products[0]["name"] == "Women ankle skinny jeans, model 1282"
    assert [bucket.value for bucket in response.facets["color"]] == ["Blue", "Black", "Red", "White"]
    assert [bucket.value for bucket in response.facets["size"]][:2] == ["L", "M"]


def test_products_pass_through_untouched(es, config):
    document = {"id": "7", "name": "jeans", "extra": {"nested": [1, 2, {"deep": True}]}}
    es.search_response = {"hits": {"total": {"value": 1}, "hits": [{"_source": document}]}}

    response = _search(es, SearchRequest(textQuery="jeans"), config=config)

    assert response.products == [document]


def test_engine_failure_degrades_to_empty_response(es, config, caplog):
    es.search_error = TransportConnectionError("connection refused")
    cache = InMemoryCache()

    response = _search(es, SearchRequest(textQuery="jeans"), config=config, cache=cache)

    assert response == SearchResponse()
    assert "search failed" in caplog.text
    assert cache._store == {}


def test_successful_responses_are_cached(es, config, search_payload):
    es.search_response = search_payload
    cache = InMemoryCache()

    first = _search(es, SearchRequest(textQuery="jeans"), config=config, cache=cache)
    second = _search(es, SearchRequest(textQuery="jeans"), config=config, cache=cache)

    assert len(es.search_calls) == 1
    assert second == first


def test_cache_disabled_by_zero_ttl(es, search_payload):
    es.search_response = search_payload
    cache = InMemoryCache()
    config = Settings(cache_ttl_seconds=0)

    _search(es, SearchRequest(textQuery="jeans"), config=config, cache=cache)
    _search(es, SearchRequest(textQuery="jeans"), config=config, cache=cache)

    assert len(es.search_calls) == 2
