"""Storage for uploaded resident documents."""

from brgy_api.lib.storage.local import DocumentStorage, LocalDocumentStorage
from brgy_api.lib.storage.validators import (
    ALLOWED_DOCUMENT_TYPES,
    extract_extension,
    validate_document_content_type,
    validate_document_extension,
)

__all__ = [
    "ALLOWED_DOCUMENT_TYPES",
    "DocumentStorage",
    "LocalDocumentStorage",
    "extract_extension",
    "validate_document_content_type",
    "validate_document_extension",
]
