"""Token vocabularies that split a free-text query into SKU attributes.

A query such as ``"calvin klein L blue jeans"`` carries two kinds of words:
attribute words that describe a single SKU (``L``, ``blue``) and general words
that describe the product itself. The table below decides which is which; the
query builder then turns SKU attributes into a nested filter and the rest into
a full-text match.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Iterable, List, Optional

from .config import Settings, settings
from .errors import ConfigurationError

DEFAULT_SIZES = ("xxs", "xs", "s", "m", "l", "xl", "xxl", "xxxl")
DEFAULT_COLORS = ("green", "black", "white", "blue", "yellow", "red", "brown", "orange", "grey")


class TokenCategory(str, Enum):
    SIZE = "size"
    COLOR = "color"
    GENERAL = "general"


@dataclass(frozen=True)
class ClassificationTable:
    sizes: frozenset[str]
    colors: frozenset[str]

    def __post_init__(self) -> None:
        overlap = self.sizes & self.colors
        if overlap:
            raise ConfigurationError(
                f"Size and color vocabularies must be disjoint, both contain: {sorted(overlap)}"
            )

    @classmethod
    def from_terms(cls, sizes: Iterable[str], colors: Iterable[str]) -> "ClassificationTable":
        return cls(
            sizes=frozenset(term.strip().lower() for term in sizes if term.strip()),
            colors=frozenset(term.strip().lower() for term in colors if term.strip()),
        )

    def categorize(self, token: str) -> TokenCategory:
        if token in self.sizes:
            return TokenCategory.SIZE
        if token in self.colors:
            return TokenCategory.COLOR
        return TokenCategory.GENERAL


@dataclass
class ClassifiedTokens:
    size: Optional[str] = None
    color: Optional[str] = None
    general: List[str] = field(default_factory=list)

    @property
    def has_sku_attributes(self) -> bool:
        return self.size is not None or self.color is not None

    @property
    def general_text(self) -> str:
        return " ".join(self.general)


DEFAULT_TABLE = ClassificationTable.from_terms(DEFAULT_SIZES, DEFAULT_COLORS)


@lru_cache(maxsize=8)
def table_from_settings(config: Settings = settings) -> ClassificationTable:
    """Build the table from ``SIZE_TERMS``/``COLOR_TERMS`` overrides."""
    return ClassificationTable.from_terms(config.size_terms, config.color_terms)


def tokenize(text: str) -> List[str]:
    return text.lower().split()


def classify_tokens(text: str, table: ClassificationTable = DEFAULT_TABLE) -> ClassifiedTokens:
    """Split ``text`` into size, color and general tokens.

    When several sizes (or colors) appear, the last one wins. General tokens
    keep their input order.
    """
    classified = ClassifiedTokens()
    for token in tokenize(text):
        category = table.categorize(token)
        if category is TokenCategory.SIZE:
            classified.size = token
        elif category is TokenCategory.COLOR:
            classified.color = token
        else:
            classified.general.append(token)
    return classified
