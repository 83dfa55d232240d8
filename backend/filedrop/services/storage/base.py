"""Storage backend interface.

A backend owns raw bytes only. Metadata lives in the files table; the
`storage_path` a backend hands back is the only link between the two.
"""
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from filedrop.models.file_record import StorageType

_EXT_RE = re.compile(r"[^a-z0-9]")
_MAX_EXT_LEN = 16


@dataclass(frozen=True)
class StoredObject:
    url: str
    storage_path: str


@dataclass(frozen=True)
class DownloadTarget:
    """Either a local file to stream or a URL to redirect to."""
    path: Path | None = None
    url: str | None = None


def safe_extension(original_name: str) -> str:
    """Extension derived from the user's filename, reduced to [a-z0-9]."""
    ext = _EXT_RE.sub("", PurePosixPath(original_name.replace("\\", "/")).suffix.lower())
    return ext[:_MAX_EXT_LEN] or "bin"


class StorageBackend(ABC):
    """Put, delete and resolve bytes for one storage type."""

    storage_type: StorageType
    # When True, a failed delete is logged and the record is removed anyway
    best_effort_delete: bool = False

    def make_storage_path(self, code: str, timestamp_ms: int, original_name: str) -> str:
        """Backend-chosen locator. The user's filename is never part of it.

        `code` is the first code drawn for the upload. If the insert later
        retries with a fresh code the path keeps this prefix. The path only
        has to be unique.
        """
        return f"{code}_{timestamp_ms}.{safe_extension(original_name)}"

    @abstractmethod
    async def put(
        self,
        storage_path: str,
        source: Path,
        size: int,
        content_type: str,
        max_bytes: int,
    ) -> StoredObject:
        """Store `size` bytes read from `source` under `storage_path`.

        Raises FileTooLarge if size exceeds max_bytes, StorageFailure on any
        I/O error or short write.
        """

    @abstractmethod
    async def delete(self, storage_path: str) -> None:
        """Remove the object. Missing objects are not an error."""

    @abstractmethod
    async def resolve_download(self, storage_path: str) -> DownloadTarget:
        ...
