"""Acceptance rules for uploaded clearance documents: PDF or common image formats."""

ALLOWED_DOCUMENT_TYPES: dict[str, tuple[str, ...]] = {
    "application/pdf": (".pdf",),
    "image/png": (".png",),
    "image/jpeg": (".jpg", ".jpeg"),
    "image/gif": (".gif",),
    "image/webp": (".webp",),
    "image/heic": (".heic",),
}

_ALLOWED_EXTENSIONS = frozenset(ext for exts in ALLOWED_DOCUMENT_TYPES.values() for ext in exts)


def validate_document_content_type(content_type: str) -> bool:
    """Check whether a MIME type is an accepted document type.

    Args:
        content_type: The MIME type string, possibly with parameters.

    Returns:
        True if the content type is allowed, False otherwise.
    """
    return content_type.split(";")[0].strip().lower() in ALLOWED_DOCUMENT_TYPES


def validate_document_extension(filename: str) -> bool:
    """Check whether a filename has an accepted document extension."""
    return extract_extension(filename) in _ALLOWED_EXTENSIONS


def extract_extension(filename: str) -> str:
    """Return the lowercase extension including the dot, or an empty string."""
    dot_idx = filename.rfind(".")
    if dot_idx == -1:
        return ""
    return filename[dot_idx:].lower()
