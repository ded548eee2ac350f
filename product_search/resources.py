"""Loading of the index settings, mappings and seed data files."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List

from .config import Settings, settings
from .errors import ResourceNotFoundError

logger = logging.getLogger(__name__)


def read_resource(path: str | Path) -> bytes:
    """Return the raw content of a resource file; only its presence is checked."""
    file_path = Path(path)
    if not file_path.is_file():
        raise ResourceNotFoundError(f"File not found: {file_path}")
    try:
        return file_path.read_bytes()
    except OSError as exc:
        raise ResourceNotFoundError(f"Can not read resource file: {file_path}") from exc


@dataclass(frozen=True)
class IndexResources:
    settings: bytes
    mappings: bytes
    documents: bytes

    def settings_body(self) -> Dict[str, Any]:
        return json.loads(self.settings)

    def mappings_body(self) -> Dict[str, Any]:
        return json.loads(self.mappings)

    def document_list(self) -> List[Dict[str, Any]]:
        return json.loads(self.documents)


def load_index_resources(config: Settings = settings) -> IndexResources:
    resources = IndexResources(
        settings=read_resource(config.settings_path),
        mappings=read_resource(config.mappings_path),
        documents=read_resource(config.bulk_data_path),
    )
    logger.debug(
        "Loaded index resources settings=%s mappings=%s data=%s",
        config.settings_path,
        config.mappings_path,
        config.bulk_data_path,
    )
    return resources
