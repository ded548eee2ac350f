"""Aggregation requests and the mapping of their buckets into facets.

Four facets accompany every search:

``price``
    Fixed range buckets. All three labels are always reported, in the order
    they are declared, even when a bucket is empty.
``brand``
    Terms over the non-analyzed brand value.
``size`` / ``color``
    Terms over the nested SKU attributes. Each bucket carries a
    ``reverse_nested`` sub-aggregation so the reported count is the number of
    distinct products with at least one such SKU, not the number of SKUs.

Brand, size and color buckets are ordered by count descending, then by raw
key ascending.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from .models import FacetBucket
from .query import SKU_COLOR, SKU_PATH, SKU_SIZE

PRICE_FIELD = "price"
BRAND_KEYWORD_FIELD = "brand.keyword"

PRICE_AGG = "price_ranges"
BRAND_AGG = "brand_terms"
SIZE_NESTED_AGG = "nested_skus_size"
SIZE_AGG = "size_terms"
COLOR_NESTED_AGG = "nested_skus_color"
COLOR_AGG = "color_terms"
REVERSE_AGG = "reverse_to_product"

PRICE_FACET = "price"
BRAND_FACET = "brand"
SIZE_FACET = "size"
COLOR_FACET = "color"

DEFAULT_AGGREGATION_SIZE = 1000


@dataclass(frozen=True)
class PriceRange:
    label: str
    lower: float
    upper: Optional[float] = None

    def as_range(self) -> Dict[str, Any]:
        bounds: Dict[str, Any] = {"key": self.label, "from": self.lower}
        if self.upper is not None:
            bounds["to"] = self.upper
        return bounds


# ``from`` is inclusive and ``to`` exclusive in Elasticsearch range aggregations.
PRICE_RANGES: Tuple[PriceRange, ...] = (
    PriceRange("Cheap", 0, 100),
    PriceRange("Average", 100, 500),
    PriceRange("Expensive", 500),
)


def _ordered_terms(field: str, size: int, count_path: str) -> Dict[str, Any]:
    return {
        "terms": {
            "field": field,
            "size": size,
            "order": [{count_path: "desc"}, {"_key": "asc"}],
        }
    }


def _nested_sku_terms(field: str, terms_name: str, size: int) -> Dict[str, Any]:
    terms = _ordered_terms(field, size, f"{REVERSE_AGG}>_count")
    terms["aggs"] = {REVERSE_AGG: {"reverse_nested": {}}}
    return {"nested": {"path": SKU_PATH}, "aggs": {terms_name: terms}}


def build_aggregations(size: int = DEFAULT_AGGREGATION_SIZE) -> Dict[str, Any]:
    return {
        PRICE_AGG: {
            "range": {
                "field": PRICE_FIELD,
                "keyed": True,
                "ranges": [price_range.as_range() for price_range in PRICE_RANGES],
            }
        },
        BRAND_AGG: _ordered_terms(BRAND_KEYWORD_FIELD, size, "_count"),
        SIZE_NESTED_AGG: _nested_sku_terms(SKU_SIZE, SIZE_AGG, size),
        COLOR_NESTED_AGG: _nested_sku_terms(SKU_COLOR, COLOR_AGG, size),
    }


def capitalize_key(key: str) -> str:
    """Upper-case the first character and leave the rest untouched."""
    return key[:1].upper() + key[1:]


def upper_key(key: str) -> str:
    return key.upper()


def _keep_key(key: str) -> str:
    return key


def _range_counts(buckets: Any) -> Dict[str, int]:
    # Keyed range aggregations return an object, unkeyed ones a list.
    if isinstance(buckets, Mapping):
        return {key: int(bucket.get("doc_count", 0)) for key, bucket in buckets.items()}
    return {bucket["key"]: int(bucket.get("doc_count", 0)) for bucket in buckets or []}


def map_price_facet(aggregation: Mapping[str, Any]) -> List[FacetBucket]:
    counts = _range_counts(aggregation.get("buckets"))
    return [
        FacetBucket(value=price_range.label, count=counts.get(price_range.label, 0))
        for price_range in PRICE_RANGES
    ]


def _sorted_buckets(
    pairs: Iterable[Tuple[str, int]], rename: Callable[[str], str]
) -> List[FacetBucket]:
    ordered = sorted(pairs, key=lambda pair: (-pair[1], pair[0]))
    return [FacetBucket(value=rename(key), count=count) for key, count in ordered]


def map_terms_facet(
    aggregation: Mapping[str, Any], rename: Callable[[str], str] = _keep_key
) -> List[FacetBucket]:
    pairs = (
        (str(bucket.get("key_as_string", bucket["key"])), int(bucket.get("doc_count", 0)))
        for bucket in aggregation.get("buckets", [])
    )
    return _sorted_buckets(pairs, rename)


def map_reverse_nested_facet(
    nested: Mapping[str, Any], terms_name: str, rename: Callable[[str], str]
) -> List[FacetBucket]:
    """Map SKU terms buckets using the per-product count, not the SKU count."""
    buckets = nested.get(terms_name, {}).get("buckets", [])
    pairs = (
        (str(bucket["key"]), int(bucket.get(REVERSE_AGG, {}).get("doc_count", 0)))
        for bucket in buckets
    )
    return _sorted_buckets(pairs, rename)


def map_facets(aggregations: Mapping[str, Any]) -> Dict[str, List[FacetBucket]]:
    return {
        PRICE_FACET: map_price_facet(aggregations.get(PRICE_AGG, {})),
        BRAND_FACET: map_terms_facet(aggregations.get(BRAND_AGG, {})),
        SIZE_FACET: map_reverse_nested_facet(
            aggregations.get(SIZE_NESTED_AGG, {}), SIZE_AGG, upper_key
        ),
        COLOR_FACET: map_reverse_nested_facet(
            aggregations.get(COLOR_NESTED_AGG, {}), COLOR_AGG, capitalize_key
        ),
    }
