"""Upload orchestration: size/quota policy, dedup, storage, record creation.

Ordering matters for consistency between bytes and rows:

1. bytes are streamed into a private staging file while being hashed
   (nothing is visible to other requests yet),
2. identical live content short-circuits to the existing record
   (checked under a per-hash lock so concurrent identical uploads converge),
3. bytes are put into the storage backend,
4. the FileRecord row is inserted.

There is no transaction spanning storage and database. If anything fails
after step 3, the stored bytes are deleted again as a compensating action.
A failed cleanup only leaves an orphaned blob, which is logged; a row
pointing at missing bytes is never created.
"""
import asyncio
import inspect
import logging
import uuid
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterable, Awaitable, Callable

import aiofiles
import aiofiles.os

from filedrop.clock import MS_PER_DAY, Clock, now_ms
from filedrop.errors import (
    DuplicateCode,
    FileDropError,
    FileTooLarge,
    InternalError,
    QuotaExceeded,
    StorageFailure,
    UploadAborted,
    ValidationError,
)
from filedrop.models.file_record import FileRecord
from filedrop.schemas.setting import AppSettings
from filedrop.services.codes import generate_code
from filedrop.services.file_store import FileRecordStore
from filedrop.services.hashing import ContentHasher
from filedrop.services.storage.base import StorageBackend, StoredObject
from filedrop.services.storage.registry import StorageRegistry

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"
MAX_CODE_ATTEMPTS = 5

ProgressCallback = Callable[[str, int], Awaitable[None] | None]


@dataclass
class StagedUpload:
    path: Path
    size: int
    hash: str


@dataclass
class UploadResult:
    record: FileRecord
    created: bool


class UploadOrchestrator:
    def __init__(
        self,
        store: FileRecordStore,
        backends: StorageRegistry,
        staging_dir: str | Path,
        clock: Clock = now_ms,
        code_generator: Callable[[], str] = generate_code,
        max_code_attempts: int = MAX_CODE_ATTEMPTS,
    ):
        self.store = store
        self.backends = backends
        self.staging_dir = Path(staging_dir)
        self.staging_dir.mkdir(parents=True, exist_ok=True)
        self._clock = clock
        self._generate_code = code_generator
        self.max_code_attempts = max_code_attempts
        # Per content hash; entries are dropped once nobody holds or waits on them
        self._hash_locks: dict[str, asyncio.Lock] = {}
        self._hash_lock_users: dict[str, int] = {}

    async def upload(
        self,
        chunks: AsyncIterable[bytes],
        original_name: str | None,
        mime_type: str | None,
        settings: AppSettings,
        declared_size: int | None = None,
        progress: ProgressCallback | None = None,
    ) -> UploadResult:
        """Store an upload and return its record.

        Identical content that is still live returns the existing record
        (created=False) instead of a new code.
        """
        name = (original_name or "").strip()
        if not name:
            raise ValidationError("Missing file name")
        mime_type = mime_type or DEFAULT_MIME_TYPE
        max_bytes = settings.max_file_size_bytes

        # Policy and configuration checks before any I/O
        if declared_size is not None and declared_size > max_bytes:
            logger.warning(f"Upload rejected before transfer: {name} declares {declared_size} bytes > {max_bytes}")
            raise FileTooLarge(settings.max_file_size_mb)
        backend = self.backends.for_settings(settings)

        await self._report(progress, "receiving", 0)
        staged = await self._stage(chunks, max_bytes, settings.max_file_size_mb)
        try:
            await self._report(progress, "checking", 10)
            # Same content uploaded concurrently: the second waits and then deduplicates
            async with self._content_lock(staged.hash):
                now = self._clock()

                existing = await self.store.get_by_hash(staged.hash)
                if existing is not None and not existing.is_expired(now):
                    logger.info(f"Duplicate content for {name}, returning existing record {existing.id} ({existing.code})")
                    await self._report(progress, "done", 100)
                    return UploadResult(record=existing, created=False)

                used = await self.store.total_size(now)
                if used + staged.size > settings.storage_limit_bytes:
                    logger.warning(
                        f"Quota exceeded for {name}: {used} used + {staged.size} > {settings.storage_limit_bytes}"
                    )
                    raise QuotaExceeded(settings.storage_limit_mb)

                await self._report(progress, "storing", 15)
                record = await self._store_and_record(backend, staged, name, mime_type, settings, now, max_bytes)
            await self._report(progress, "done", 100)
            return UploadResult(record=record, created=True)
        finally:
            await self._discard(staged.path)

    @asynccontextmanager
    async def _content_lock(self, content_hash: str):
        lock = self._hash_locks.setdefault(content_hash, asyncio.Lock())
        self._hash_lock_users[content_hash] = self._hash_lock_users.get(content_hash, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._hash_lock_users[content_hash] -= 1
            if not self._hash_lock_users[content_hash]:
                del self._hash_lock_users[content_hash]
                del self._hash_locks[content_hash]

    async def _stage(self, chunks: AsyncIterable[bytes], max_bytes: int, max_mb: float) -> StagedUpload:
        """Copy the incoming stream to a staging file, hashing and size-checking as it arrives."""
        path = self.staging_dir / f"{uuid.uuid4().hex}.part"
        hasher = ContentHasher()
        iterator = chunks.__aiter__()
        try:
            async with aiofiles.open(path, "wb") as f:
                while True:
                    try:
                        chunk = await iterator.__anext__()
                    except StopAsyncIteration:
                        break
                    except FileDropError:
                        raise
                    except Exception as exc:
                        logger.warning(f"Upload stream ended early after {hasher.size} bytes: {exc!r}")
                        raise UploadAborted() from exc
                    if not chunk:
                        continue
                    hasher.update(chunk)
                    # Declared sizes are not trusted; enforce on what actually arrives
                    if hasher.size > max_bytes:
                        logger.warning(f"Upload exceeded {max_bytes} bytes mid-transfer, aborting")
                        raise FileTooLarge(max_mb)
                    await f.write(chunk)
        except OSError as exc:
            await self._discard(path)
            logger.error(f"Staging write failed: {exc}")
            raise StorageFailure() from exc
        except BaseException:
            await self._discard(path)
            raise

        if hasher.size == 0:
            await self._discard(path)
            raise ValidationError("No file data received")
        return StagedUpload(path=path, size=hasher.size, hash=hasher.hexdigest())

    async def _store_and_record(
        self,
        backend: StorageBackend,
        staged: StagedUpload,
        name: str,
        mime_type: str,
        settings: AppSettings,
        now: int,
        max_bytes: int,
    ) -> FileRecord:
        code = self._generate_code()
        # The path keeps this first code even if the insert retries with another one
        storage_path = backend.make_storage_path(code, now, name)

        try:
            stored = await backend.put(storage_path, staged.path, staged.size, mime_type, max_bytes)
        except FileDropError:
            raise
        except Exception as exc:
            logger.exception(f"Unexpected storage error for {storage_path}")
            await self._compensate(backend, storage_path)
            raise StorageFailure() from exc

        expire_date = None
        if settings.default_expire_days > 0:
            expire_date = now + settings.default_expire_days * MS_PER_DAY

        try:
            return await self._insert_with_retries(backend, staged, name, mime_type, now, code, stored, expire_date)
        except FileDropError:
            await self._compensate(backend, stored.storage_path)
            raise
        except Exception as exc:
            logger.exception(f"Failed to save file record for {stored.storage_path}")
            await self._compensate(backend, stored.storage_path)
            raise InternalError("Failed to save file record") from exc
        except BaseException:
            await self._compensate(backend, stored.storage_path)
            raise

    async def _insert_with_retries(
        self,
        backend: StorageBackend,
        staged: StagedUpload,
        name: str,
        mime_type: str,
        now: int,
        code: str,
        stored: StoredObject,
        expire_date: int | None,
    ) -> FileRecord:
        """Insert the row, drawing a fresh code whenever the unique constraint rejects one."""
        for attempt in range(1, self.max_code_attempts + 1):
            record = FileRecord(
                id=uuid.uuid4(),
                name=name,
                size=staged.size,
                type=mime_type,
                hash=staged.hash,
                upload_date=now,
                code=code,
                data=stored.url,
                storage_type=backend.storage_type.value,
                storage_path=stored.storage_path,
                download_count=0,
                expire_date=expire_date,
            )
            try:
                saved = await self.store.insert(record)
            except DuplicateCode:
                logger.warning(f"Retrieval code collision on {code} (attempt {attempt}/{self.max_code_attempts})")
                code = self._generate_code()
                continue
            logger.info(
                f"File stored: id={saved.id}, code={saved.code}, name={saved.name}, "
                f"size={saved.size}, storage={saved.storage_type}:{saved.storage_path}"
            )
            return saved
        raise InternalError("Could not allocate a retrieval code, please retry")

    async def _compensate(self, backend: StorageBackend, storage_path: str) -> None:
        """Best-effort removal of bytes whose record was never written."""
        try:
            await backend.delete(storage_path)
            logger.info(f"Removed orphaned upload {storage_path}")
        except Exception:
            logger.exception(f"Cleanup failed, orphaned object left at {storage_path}")

    async def _report(self, progress: ProgressCallback | None, stage: str, percent: int) -> None:
        # Progress is advisory; a failing listener must not affect the upload
        if progress is None:
            return
        try:
            result = progress(stage, percent)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.warning(f"Progress callback failed at {stage} ({percent}%)", exc_info=True)

    async def _discard(self, path: Path) -> None:
        with suppress(FileNotFoundError):
            await aiofiles.os.remove(path)
