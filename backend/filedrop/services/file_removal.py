"""Deleting a record together with its bytes (admin delete and expiry)."""
import logging

from filedrop.errors import ConfigurationError, FileDropError
from filedrop.models.file_record import FileRecord
from filedrop.schemas.setting import AppSettings
from filedrop.services.file_store import FileRecordStore
from filedrop.services.storage.registry import StorageRegistry

logger = logging.getLogger(__name__)


class FileRemover:
    def __init__(self, store: FileRecordStore, backends: StorageRegistry):
        self.store = store
        self.backends = backends

    async def remove(self, record: FileRecord, settings: AppSettings) -> bool:
        """Delete bytes first, then the row. Returns False if the row was already gone.

        A missing physical file is fine. Any other failure on a backend with
        strict deletes propagates and the row is kept, so the next attempt
        can retry instead of orphaning the bytes.
        """
        await self._delete_bytes(record, settings)
        deleted = await self.store.delete(record.id)
        if deleted:
            logger.info(f"Deleted file record: id={record.id}, code={record.code}, name={record.name}")
        return deleted

    async def _delete_bytes(self, record: FileRecord, settings: AppSettings) -> None:
        try:
            backend = self.backends.for_record(record, settings)
        except ConfigurationError:
            logger.warning(
                f"Storage for {record.storage_type} is not configured, leaving bytes at {record.storage_path}"
            )
            return

        try:
            await backend.delete(record.storage_path)
        except FileDropError:
            if not backend.best_effort_delete:
                raise
            logger.warning(f"Best-effort delete failed for {record.storage_path}", exc_info=True)
