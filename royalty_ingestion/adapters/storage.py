"""
Object storage adapters.

The pipeline only ever reads one statement object per run.  Upload,
retention and signed URLs belong to the storage service, not here.
"""

from __future__ import annotations

from pathlib import Path
from typing import BinaryIO, Protocol, runtime_checkable
from uuid import UUID

from royalty_kernel.exceptions import SourceUnreadableError
from royalty_kernel.logging_config import get_logger

logger = get_logger("ingestion.storage")


@runtime_checkable
class ObjectStorage(Protocol):
    def open(self, artist_id: UUID, storage_path: str) -> BinaryIO:
        """Open the object for binary streaming.  Caller closes it."""
        ...


class LocalObjectStorage:
    """Objects are files below `root`; keys are relative paths."""

    def __init__(self, root: Path | str):
        self._root = Path(root).resolve()

    @property
    def root(self) -> Path:
        return self._root

    def resolve(self, storage_path: str) -> Path:
        """
        Raises:
            SourceUnreadableError: the key is absolute or escapes the root.
        """
        candidate = Path(storage_path)
        if candidate.is_absolute():
            raise SourceUnreadableError(storage_path, "absolute paths are not allowed")
        resolved = (self._root / candidate).resolve()
        if not resolved.is_relative_to(self._root):
            raise SourceUnreadableError(storage_path, "path escapes the storage root")
        return resolved

    def open(self, artist_id: UUID, storage_path: str) -> BinaryIO:
        path = self.resolve(storage_path)
        try:
            stream = path.open("rb")
        except OSError as e:
            logger.warning(
                "storage_open_failed",
                extra={"artist_id": str(artist_id), "storage_path": storage_path, "error": str(e)},
            )
            raise SourceUnreadableError(storage_path, e.strerror or str(e)) from e
        logger.debug(
            "storage_opened",
            extra={"artist_id": str(artist_id), "storage_path": storage_path},
        )
        return stream
