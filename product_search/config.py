"""Application configuration and constants."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DATA_DIR = Path(__file__).resolve().parent / "data" / "elastic" / "product"


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value is not None else default


def _get_flag(name: str, default: str) -> bool:
    return _get_env(name, default).lower() in {"1", "true", "yes"}


def _get_terms(name: str, default: str) -> tuple[str, ...]:
    return tuple(term.strip().lower() for term in _get_env(name, default).split(",") if term.strip())


@dataclass(frozen=True)
class Settings:
    """Simple settings container with environment variable overrides."""

    es_host: str = _get_env("ES_HOST", "http://localhost:9200")
    product_alias: str = _get_env("PRODUCT_ALIAS", "products")
    settings_path: str = _get_env("INDEX_SETTINGS_PATH", str(DATA_DIR / "settings.json"))
    mappings_path: str = _get_env("INDEX_MAPPINGS_PATH", str(DATA_DIR / "mappings.json"))
    bulk_data_path: str = _get_env("BULK_DATA_PATH", str(DATA_DIR / "products.json"))
    max_indices: int = int(_get_env("MAX_INDICES", "3"))
    recreate_index_on_startup: bool = _get_flag("RECREATE_INDEX_ON_STARTUP", "false")
    populate_before_publish: bool = _get_flag("POPULATE_BEFORE_PUBLISH", "false")
    default_page: int = int(_get_env("DEFAULT_PAGE", "1"))
    default_size: int = int(_get_env("DEFAULT_SIZE", "10"))
    min_query_length: int = int(_get_env("MIN_QUERY_LENGTH", "3"))
    aggregation_size: int = int(_get_env("AGGREGATION_SIZE", "1000"))
    size_terms: tuple[str, ...] = _get_terms("SIZE_TERMS", "xxs,xs,s,m,l,xl,xxl,xxxl")
    color_terms: tuple[str, ...] = _get_terms(
        "COLOR_TERMS", "green,black,white,blue,yellow,red,brown,orange,grey"
    )
    redis_host: str = _get_env("REDIS_HOST", "localhost")
    redis_port: int = int(_get_env("REDIS_PORT", "6379"))
    cache_ttl_seconds: int = int(_get_env("CACHE_TTL_SECONDS", "300"))
    log_level: str = _get_env("LOG_LEVEL", "INFO")


settings = Settings()
