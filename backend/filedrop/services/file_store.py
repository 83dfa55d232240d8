"""Durable index of FileRecord rows.

Each method opens its own short session. Lookups return None (or an empty
list) on a miss; only inserts raise, and a code collision is reported as
DuplicateCode so the caller can pick a new code.
"""
import logging
import uuid

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from filedrop.errors import DuplicateCode
from filedrop.models.file_record import FileRecord
from filedrop.services.codes import normalize_code

logger = logging.getLogger(__name__)

CODE_CONSTRAINT = "uq_files_code"


def _is_code_conflict(exc: IntegrityError) -> bool:
    """True when the violated constraint is the unique code.

    PostgreSQL reports the constraint name, SQLite the column ("files.code").
    """
    message = str(exc.orig)
    return CODE_CONSTRAINT in message or "files.code" in message


def _as_uuid(file_id: uuid.UUID | str) -> uuid.UUID | None:
    if isinstance(file_id, uuid.UUID):
        return file_id
    try:
        return uuid.UUID(str(file_id))
    except ValueError:
        return None


class FileRecordStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def insert(self, record: FileRecord) -> FileRecord:
        record.code = normalize_code(record.code)
        async with self._session_factory() as db:
            db.add(record)
            try:
                await db.commit()
            except IntegrityError as exc:
                await db.rollback()
                if _is_code_conflict(exc):
                    raise DuplicateCode(record.code) from exc
                raise
        return record

    async def get_by_id(self, file_id: uuid.UUID | str) -> FileRecord | None:
        key = _as_uuid(file_id)
        if key is None:
            return None
        async with self._session_factory() as db:
            return await db.get(FileRecord, key)

    async def get_by_code(self, code: str) -> FileRecord | None:
        async with self._session_factory() as db:
            result = await db.execute(
                select(FileRecord).where(FileRecord.code == normalize_code(code))
            )
            return result.scalar_one_or_none()

    async def get_by_hash(self, content_hash: str) -> FileRecord | None:
        """Newest record for this content (an expired twin may linger until reaped)."""
        async with self._session_factory() as db:
            result = await db.execute(
                select(FileRecord)
                .where(FileRecord.hash == content_hash.lower())
                .order_by(FileRecord.upload_date.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def get_by_storage_path(self, storage_path: str) -> FileRecord | None:
        async with self._session_factory() as db:
            result = await db.execute(
                select(FileRecord).where(FileRecord.storage_path == storage_path).limit(1)
            )
            return result.scalar_one_or_none()

    async def list_all(self) -> list[FileRecord]:
        async with self._session_factory() as db:
            result = await db.execute(select(FileRecord).order_by(FileRecord.upload_date.desc()))
            return list(result.scalars().all())

    async def list_expired(self, now_ms: int) -> list[FileRecord]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(FileRecord).where(
                    FileRecord.expire_date.is_not(None),
                    FileRecord.expire_date <= now_ms,
                )
            )
            return list(result.scalars().all())

    async def total_size(self, now_ms: int) -> int:
        """Bytes held by live (not yet expired) records."""
        async with self._session_factory() as db:
            result = await db.execute(
                select(func.coalesce(func.sum(FileRecord.size), 0)).where(
                    or_(FileRecord.expire_date.is_(None), FileRecord.expire_date > now_ms)
                )
            )
            return int(result.scalar_one())

    async def count(self) -> int:
        async with self._session_factory() as db:
            result = await db.execute(select(func.count()).select_from(FileRecord))
            return int(result.scalar_one())

    async def delete(self, file_id: uuid.UUID | str) -> bool:
        key = _as_uuid(file_id)
        if key is None:
            return False
        async with self._session_factory() as db:
            result = await db.execute(delete(FileRecord).where(FileRecord.id == key))
            await db.commit()
            return result.rowcount > 0

    async def increment_download_count(self, file_id: uuid.UUID | str) -> FileRecord | None:
        """Atomic `download_count = download_count + 1`; returns the updated row."""
        key = _as_uuid(file_id)
        if key is None:
            return None
        async with self._session_factory() as db:
            result = await db.execute(
                update(FileRecord)
                .where(FileRecord.id == key)
                .values(download_count=FileRecord.download_count + 1)
            )
            await db.commit()
            if result.rowcount == 0:
                return None
            return await db.get(FileRecord, key, populate_existing=True)
