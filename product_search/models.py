"""Pydantic models for request/response payloads."""
from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel, Field, model_serializer


class SearchRequest(BaseModel):
    textQuery: str | None = Field(None, description="Free-text search query")
    page: int | None = Field(None, description="1-based page number")
    size: int | None = Field(None, description="Page size")


class FacetBucket(BaseModel):
    value: str
    count: int


class SearchResponse(BaseModel):
    totalHits: int = 0
    products: List[Dict[str, Any]] = Field(default_factory=list)
    facets: Dict[str, List[FacetBucket]] = Field(default_factory=dict)

    @model_serializer(mode="wrap")
    def _omit_empty(self, handler):
        # Empty collections are left out of the payload instead of sent as [] or {}.
        data = handler(self)
        return {key: value for key, value in data.items() if value not in ([], {})}


class RotationResult(BaseModel):
    alias: str
    index: str
    indexed: int
    failed: int
    deleted: List[str] = Field(default_factory=list)
