"""Centralized file storage service: local disk for exported reports."""

from __future__ import annotations

from pathlib import Path

from backend.app.core.config import settings


class FileStorageService:
    """Store and retrieve files on the configured storage backend."""

    def __init__(self, root: str | Path | None = None) -> None:
        self._root = Path(root or settings.FILE_STORAGE_PATH)
        self._root.mkdir(parents=True, exist_ok=True)

    def _path(self, relative_path: str) -> Path:
        path = (self._root / relative_path).resolve()
        if self._root.resolve() not in path.parents:
            raise ValueError(f"Path escapes storage root: {relative_path}")
        return path

    def save(self, relative_path: str, data: bytes) -> str:
        """Persist *data* under *relative_path* and return the full path.

        Written to a temporary sibling first so readers never see a
        half-written report.
        """
        dest = self._path(relative_path)
        dest.parent.mkdir(parents=True, exist_ok=True)
        tmp = dest.with_name(dest.name + ".part")
        try:
            tmp.write_bytes(data)
            tmp.replace(dest)
        finally:
            tmp.unlink(missing_ok=True)
        return str(dest)

    def read(self, relative_path: str) -> bytes:
        """Return the raw bytes for the given *relative_path*."""
        return self._path(relative_path).read_bytes()

    def exists(self, relative_path: str) -> bool:
        return self._path(relative_path).exists()

    def delete(self, relative_path: str) -> None:
        self._path(relative_path).unlink(missing_ok=True)

    def local_path(self, relative_path: str) -> Path:
        """Absolute path of a stored file. Raises ValueError outside the root."""
        return self._path(relative_path)

    def url(self, relative_path: str) -> str:
        """Return the API route that serves the stored file."""
        return f"/api/v1/reports/files/{relative_path}"
