"""Translate free text into an Elasticsearch bool query."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .classification import DEFAULT_TABLE, ClassificationTable, ClassifiedTokens, classify_tokens

logger = logging.getLogger(__name__)

NAME_FIELD = "name"
BRAND_FIELD = "brand"
NAME_SHINGLES = "name.shingles"
BRAND_SHINGLES = "brand.shingles"
SKU_PATH = "skus"
SKU_COLOR = "skus.color"
SKU_SIZE = "skus.size"
PHRASE_BOOST = 5


def build_sku_filter(tokens: ClassifiedTokens) -> Optional[Dict[str, Any]]:
    """Require every matched attribute to sit on the same SKU."""
    must: List[dict] = []
    if tokens.color is not None:
        must.append({"match": {SKU_COLOR: tokens.color}})
    if tokens.size is not None:
        must.append({"match": {SKU_SIZE: tokens.size}})
    if not must:
        return None
    return {
        "nested": {
            "path": SKU_PATH,
            "query": {"bool": {"must": must}},
            "score_mode": "avg",
        }
    }


def build_cross_fields_match(text: str) -> Dict[str, Any]:
    return {
        "multi_match": {
            "query": text,
            "fields": [NAME_FIELD, BRAND_FIELD],
            "type": "cross_fields",
            "operator": "and",
        }
    }


def build_shingle_boost(text: str) -> Dict[str, Any]:
    return {
        "multi_match": {
            "query": text,
            "fields": [NAME_SHINGLES, BRAND_SHINGLES],
            "type": "phrase",
            "boost": PHRASE_BOOST,
        }
    }


def build_text_query(text: str, table: ClassificationTable = DEFAULT_TABLE) -> Dict[str, Any]:
    tokens = classify_tokens(text, table)
    must: List[dict] = []
    should: List[dict] = []

    sku_filter = build_sku_filter(tokens)
    if sku_filter is not None:
        must.append(sku_filter)

    if tokens.general:
        general_text = tokens.general_text
        must.append(build_cross_fields_match(general_text))
        # Ranking only: a bool with ``must`` clauses never requires ``should``.
        should.append(build_shingle_boost(general_text))

    if not must:
        return {"match_none": {}}

    bool_clause: Dict[str, Any] = {"must": must}
    if should:
        bool_clause["should"] = should

    logger.debug(
        "classified q=%r size=%r color=%r general=%r",
        text,
        tokens.size,
        tokens.color,
        tokens.general,
    )
    return {"bool": bool_clause}
