"""Shared fixtures: an in-memory stand-in for the Elasticsearch client."""
from __future__ import annotations

from fnmatch import fnmatch
from typing import Any, Dict, List, Optional, Set

import pytest
from elastic_transport import ApiResponseMeta, HttpHeaders, NodeConfig
from elasticsearch.exceptions import NotFoundError

from product_search import indexing
from product_search.config import Settings


def api_error(cls=NotFoundError, status: int = 404, message: str = "error"):
    meta = ApiResponseMeta(
        status=status,
        http_version="1.1",
        headers=HttpHeaders(),
        duration=0.0,
        node=NodeConfig("http", "localhost", 9200),
    )
    return cls(message=message, meta=meta, body={})


class FakeIndices:
    """Tracks which aliases each index holds and records every call."""

    def __init__(self, calls: List[tuple]) -> None:
        self.aliases: Dict[str, Set[str]] = {}
        self.calls = calls
        self.acknowledged = {"create": True, "update_aliases": True, "delete": True}
        self.errors: Dict[str, Exception] = {}

    def _record(self, call: str, **kwargs: Any) -> None:
        self.calls.append((call, kwargs))
        if call in self.errors:
            raise self.errors[call]

    def holders(self, alias: str) -> List[str]:
        return sorted(index for index, names in self.aliases.items() if alias in names)

    def create(self, index: str, settings=None, mappings=None, aliases=None) -> dict:
        self._record("create", index=index, settings=settings, mappings=mappings, aliases=aliases)
        self.aliases[index] = set(aliases or {})
        return {"acknowledged": self.acknowledged["create"], "index": index}

    def get_alias(self, name: str) -> dict:
        self._record("get_alias", name=name)
        holders = self.holders(name)
        if not holders:
            raise api_error(message=f"alias [{name}] missing")
        return {index: {"aliases": {name: {}}} for index in holders}

    def update_aliases(self, actions: List[dict]) -> dict:
        self._record("update_aliases", actions=actions)
        acknowledged = self.acknowledged["update_aliases"]
        if acknowledged:
            for action in actions:
                (kind, target), = action.items()
                names = self.aliases.setdefault(target["index"], set())
                if kind == "add":
                    names.add(target["alias"])
                else:
                    names.discard(target["alias"])
        return {"acknowledged": acknowledged}

    def get(self, index: str) -> dict:
        self._record("get", index=index)
        return {name: {} for name in self.aliases if fnmatch(name, index)}

    def delete(self, index) -> dict:
        names = [index] if isinstance(index, str) else list(index)
        self._record("delete", index=names)
        acknowledged = self.acknowledged["delete"]
        if acknowledged:
            for name in names:
                self.aliases.pop(name, None)
        return {"acknowledged": acknowledged}


class FakeCluster:
    def health(self) -> dict:
        return {"status": "green"}


class FakeElasticsearch:
    def __init__(self, search_response: Optional[dict] = None) -> None:
        self.calls: List[tuple] = []
        self.indices = FakeIndices(self.calls)
        self.cluster = FakeCluster()
        self.search_response = search_response or {"hits": {"total": {"value": 0}, "hits": []}}
        self.search_error: Optional[Exception] = None
        self.search_calls: List[dict] = []

    def search(self, **kwargs: Any) -> dict:
        self.search_calls.append(kwargs)
        if self.search_error is not None:
            raise self.search_error
        return self.search_response


class BulkRecorder:
    """Replacement for ``elasticsearch.helpers.bulk`` that writes nothing."""

    def __init__(self, es: FakeElasticsearch) -> None:
        self.es = es
        self.failures = 0
        self.error: Optional[Exception] = None
        self.actions: List[dict] = []
        self.kwargs: Dict[str, Any] = {}
        self.alias_holders: Dict[str, List[str]] = {}

    def __call__(self, client, actions, **kwargs):
        self.actions = list(actions)
        self.kwargs = kwargs
        self.es.calls.append(("bulk", {"count": len(self.actions)}))
        self.alias_holders = {
            alias: self.es.indices.holders(alias)
            for names in self.es.indices.aliases.values()
            for alias in names
        }
        if self.error is not None:
            raise self.error
        failed = self.actions[: self.failures]
        errors = [{"index": {"_id": action["_id"], "status": 400, "error": "mapper_parsing_exception"}} for action in failed]
        return len(self.actions) - len(failed), errors


@pytest.fixture
def es() -> FakeElasticsearch:
    return FakeElasticsearch()


@pytest.fixture
def bulk(es, monkeypatch) -> BulkRecorder:
    recorder = BulkRecorder(es)
    monkeypatch.setattr(indexing.helpers, "bulk", recorder)
    return recorder


@pytest.fixture
def config() -> Settings:
    return Settings(
        product_alias="products",
        max_indices=3,
        default_page=1,
        default_size=10,
        min_query_length=3,
        cache_ttl_seconds=300,
        populate_before_publish=False,
    )


def _sku_buckets(counts):
    # (key, sku doc_count, product count)
    return [
        {"key": key, "doc_count": sku_count, "reverse_to_product": {"doc_count": product_count}}
        for key, sku_count, product_count in counts
    ]


@pytest.fixture
def jeans_aggregations() -> dict:
    """Aggregation payload shaped like the engine's answer to ``"jeans"``."""
    return {
        "price_ranges": {
            "buckets": {
                "Cheap": {"from": 0.0, "to": 100.0, "doc_count": 2},
                "Average": {"from": 100.0, "to": 500.0, "doc_count": 6},
                "Expensive": {"from": 500.0, "doc_count": 0},
            }
        },
        "brand_terms": {
            "buckets": [
                {"key": "Calvin Klein", "doc_count": 4},
                {"key": "Levi's", "doc_count": 4},
            ]
        },
        "nested_skus_size": {
            "doc_count": 44,
            "size_terms": {
                "buckets": _sku_buckets(
                    [
                        ("l", 10, 8),
                        ("m", 10, 8),
                        ("s", 6, 6),
                        ("xl", 6, 5),
                        ("xxl", 4, 3),
                        ("xs", 2, 2),
                    ]
                )
            },
        },
        "nested_skus_color": {
            "doc_count": 44,
            "color_terms": {
                "buckets": _sku_buckets(
                    [
                        ("blue", 26, 8),
                        ("black", 16, 7),
                        ("red", 1, 1),
                        ("white", 1, 1),
                    ]
                )
            },
        },
    }


@pytest.fixture
def search_payload(jeans_aggregations) -> dict:
    return {
        "took": 3,
        "hits": {
            "total": {"value": 8, "relation": "eq"},
            "hits": [
                {"_id": "2", "_score": 1.4, "_source": {"id": "2", "brand": "Calvin Klein", "name": "Women ankle skinny jeans, model 1282"}},
                {"_id": "1", "_score": 1.2, "_source": {"id": "1", "brand": "Calvin Klein", "name": "Women slim fit jeans, model 1001"}},
            ],
        },
        "aggregations": jeans_aggregations,
    }
