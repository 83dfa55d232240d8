"""Content hashing for deduplication and integrity checks."""
import hashlib
from pathlib import Path

import aiofiles

HASH_CHUNK_SIZE = 1024 * 1024


class ContentHasher:
    """Incremental SHA-256 over a byte stream.

    The digest depends on the bytes only, never on the file name or upload
    time, so identical content always maps to the same hash.
    """

    def __init__(self):
        self._digest = hashlib.sha256()
        self.size = 0

    def update(self, chunk: bytes) -> None:
        self._digest.update(chunk)
        self.size += len(chunk)

    def hexdigest(self) -> str:
        return self._digest.hexdigest()

    @staticmethod
    def digest(data: bytes) -> str:
        return hashlib.sha256(data).hexdigest()


async def hash_file(path: str | Path) -> str:
    """Hash a file on disk without loading it into memory."""
    hasher = ContentHasher()
    async with aiofiles.open(path, "rb") as f:
        while chunk := await f.read(HASH_CHUNK_SIZE):
            hasher.update(chunk)
    return hasher.hexdigest()
