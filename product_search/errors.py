"""Exception hierarchy for the search and index rotation flows.

Search-path engine failures are never raised to callers (the orchestrator
degrades them to an empty response), so everything here except
:class:`ConfigurationError` belongs to index rotation.
"""
from __future__ import annotations


class ProductSearchError(Exception):
    """Base class for errors raised by this package."""


class ConfigurationError(ProductSearchError, ValueError):
    """Invalid static configuration, e.g. overlapping token vocabularies."""


class IndexRotationError(ProductSearchError):
    """A rotation step failed and the rotation was aborted."""


class ResourceNotFoundError(IndexRotationError):
    """A settings, mappings or seed data resource is missing."""


class AcknowledgementError(IndexRotationError):
    """Elasticsearch did not acknowledge an index management request."""


class RotationInProgressError(IndexRotationError):
    """Another rotation is already running in this process."""
