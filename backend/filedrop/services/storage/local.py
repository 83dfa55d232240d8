"""Local filesystem storage backend."""
import logging
from contextlib import suppress
from pathlib import Path

import aiofiles
import aiofiles.os

from filedrop.errors import FileTooLarge, NotFound, StorageFailure, StoragePathRejected
from filedrop.models.file_record import StorageType
from filedrop.services.storage.base import DownloadTarget, StorageBackend, StoredObject

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024


class LocalFileBackend(StorageBackend):
    """Stores files flat under `base_path`, served at `{public_prefix}/{storage_path}`."""

    storage_type = StorageType.LOCAL_FILE

    def __init__(self, base_path: str | Path, public_prefix: str = "/uploadfiles", chunk_size: int = BYTES_PER_MB):
        self.base_path = Path(base_path).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.public_prefix = public_prefix.rstrip("/")
        self.chunk_size = chunk_size

    def resolve_path(self, storage_path: str) -> Path:
        """Absolute path for a locator, refusing anything outside base_path."""
        if not storage_path or "\x00" in storage_path:
            raise StoragePathRejected()
        candidate = (self.base_path / storage_path).resolve()
        if candidate == self.base_path or not candidate.is_relative_to(self.base_path):
            logger.warning(f"Rejected storage path outside {self.base_path}: {storage_path!r}")
            raise StoragePathRejected()
        return candidate

    def public_url(self, storage_path: str) -> str:
        return f"{self.public_prefix}/{storage_path}"

    async def put(
        self,
        storage_path: str,
        source: Path,
        size: int,
        content_type: str,
        max_bytes: int,
    ) -> StoredObject:
        if size > max_bytes:
            raise FileTooLarge(max_bytes / BYTES_PER_MB)
        target = self.resolve_path(storage_path)

        try:
            # "xb": never overwrite another record's bytes
            dst = await aiofiles.open(target, "xb")
        except FileExistsError as exc:
            logger.error(f"Refusing to overwrite existing file {target}")
            raise StorageFailure() from exc
        except OSError as exc:
            logger.error(f"Cannot create {target}: {exc}")
            raise StorageFailure() from exc

        written = 0
        try:
            try:
                async with aiofiles.open(source, "rb") as src:
                    while chunk := await src.read(self.chunk_size):
                        written += len(chunk)
                        if written > max_bytes:
                            raise FileTooLarge(max_bytes / BYTES_PER_MB)
                        await dst.write(chunk)
            finally:
                await dst.close()
        except OSError as exc:
            await self._discard(target)
            logger.error(f"Write to {target} failed after {written} bytes: {exc}")
            raise StorageFailure() from exc
        except BaseException:
            await self._discard(target)
            raise

        if written != size:
            await self._discard(target)
            logger.error(f"Short write for {target}: expected {size} bytes, wrote {written}")
            raise StorageFailure()

        logger.debug(f"Stored {written} bytes at {target}")
        return StoredObject(url=self.public_url(storage_path), storage_path=storage_path)

    async def delete(self, storage_path: str) -> None:
        path = self.resolve_path(storage_path)
        try:
            await aiofiles.os.remove(path)
            logger.debug(f"Deleted physical file {storage_path}")
        except FileNotFoundError:
            logger.debug(f"Physical file already gone: {storage_path}")
        except OSError as exc:
            logger.error(f"Failed to delete {path}: {exc}")
            raise StorageFailure("Failed to delete file") from exc

    async def resolve_download(self, storage_path: str) -> DownloadTarget:
        path = self.resolve_path(storage_path)
        if not await aiofiles.os.path.isfile(path):
            logger.warning(f"Physical file missing: {storage_path}")
            raise NotFound("File content is missing")
        return DownloadTarget(path=path)

    async def _discard(self, path: Path) -> None:
        with suppress(FileNotFoundError):
            await aiofiles.os.remove(path)
