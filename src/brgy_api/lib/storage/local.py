"""Local filesystem storage for clearance documents.

Files are written under ``{base_dir}/clearances/{year}/{month}/{uuid}.{ext}``
with async I/O. Only the relative path is stored on the user record.
"""

import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

import aiofiles

from brgy_api.lib.storage.validators import extract_extension


class DocumentStorage(Protocol):
    """Async document storage interface."""

    async def save(self, content: bytes, filename: str) -> str:
        """Store ``content`` and return its relative path."""
        ...

    async def delete(self, stored_path: str) -> None:
        """Remove a stored document.

        Raises:
            FileNotFoundError: If the file does not exist.
        """
        ...


class LocalDocumentStorage:
    """Filesystem implementation of ``DocumentStorage``.

    Args:
        base_dir: Root directory for uploads.
    """

    def __init__(self, base_dir: str | Path) -> None:
        self._base_dir = Path(base_dir)

    async def save(self, content: bytes, filename: str) -> str:
        """Write a document under a fresh UUID name, keeping the original extension.

        Args:
            content: Raw file bytes.
            filename: Original filename (only the extension is used).

        Returns:
            Relative storage path (e.g., "clearances/2026/10/abc123.pdf").
        """
        now = datetime.now(tz=UTC)
        relative_dir = Path("clearances") / str(now.year) / f"{now.month:02d}"
        relative_path = relative_dir / f"{uuid.uuid4().hex}{extract_extension(filename)}"

        (self._base_dir / relative_dir).mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(self._base_dir / relative_path, "wb") as f:
            await f.write(content)

        return relative_path.as_posix()

    async def delete(self, stored_path: str) -> None:
        full_path = self._resolve(stored_path)
        if not full_path.exists():
            msg = f"File not found: {stored_path}"
            raise FileNotFoundError(msg)
        full_path.unlink()

    def _resolve(self, stored_path: str) -> Path:
        full_path = (self._base_dir / stored_path).resolve()
        if not full_path.is_relative_to(self._base_dir.resolve()):
            msg = f"Path escapes storage root: {stored_path}"
            raise ValueError(msg)
        return full_path
