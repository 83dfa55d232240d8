"""Receiver side: resolve a retrieval code and count downloads."""
import logging
import uuid

from filedrop.clock import Clock, now_ms
from filedrop.errors import Expired, NotFound
from filedrop.models.file_record import FileRecord
from filedrop.services.codes import is_valid_code, normalize_code
from filedrop.services.file_store import FileRecordStore

logger = logging.getLogger(__name__)


class DownloadAccountor:
    def __init__(self, store: FileRecordStore, clock: Clock = now_ms):
        self.store = store
        self._clock = clock

    def _check_live(self, record: FileRecord) -> FileRecord:
        # Expired rows may still exist until the reaper's next pass
        if record.is_expired(self._clock()):
            logger.info(f"Access to expired file refused: id={record.id}, code={record.code}")
            raise Expired()
        return record

    async def resolve(self, code: str) -> FileRecord:
        """Record for a retrieval code, case-insensitive. Raises NotFound or Expired."""
        normalized = normalize_code(code)
        if not is_valid_code(normalized):
            logger.debug(f"Malformed retrieval code: {code!r}")
            raise NotFound()
        record = await self.store.get_by_code(normalized)
        if record is None:
            logger.warning(f"File not found: code={normalized}")
            raise NotFound()
        return self._check_live(record)

    async def resolve_id(self, file_id: uuid.UUID | str) -> FileRecord:
        record = await self.store.get_by_id(file_id)
        if record is None:
            raise NotFound()
        return self._check_live(record)

    async def resolve_storage_path(self, storage_path: str) -> FileRecord:
        record = await self.store.get_by_storage_path(storage_path)
        if record is None:
            raise NotFound()
        return self._check_live(record)

    async def record_download(self, file_id: uuid.UUID | str) -> FileRecord:
        """Increment the download counter in a single UPDATE."""
        record = await self.store.increment_download_count(file_id)
        if record is None:
            logger.warning(f"File not found: id={file_id}")
            raise NotFound()
        logger.info(f"Download counted: id={record.id}, code={record.code}, downloads={record.download_count}")
        return record
