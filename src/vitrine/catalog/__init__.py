"""Catalog operation surface."""

from vitrine.catalog.service import (
    DEFAULT_ALLOWED_CONTENT_TYPES,
    DEFAULT_MAX_UPLOAD_BYTES,
    CatalogService,
    CommitResult,
)

__all__ = [
    "DEFAULT_ALLOWED_CONTENT_TYPES",
    "DEFAULT_MAX_UPLOAD_BYTES",
    "CatalogService",
    "CommitResult",
]
