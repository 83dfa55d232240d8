"""Backend selection by storage type.

Business logic asks the registry for a backend instead of branching on
storageType itself. Records keep the backend they were written with, so
deletes and downloads use `for_record`, new uploads use `for_settings`.
"""
import logging
from typing import Any, Callable

from filedrop.models.file_record import FileRecord, StorageType
from filedrop.schemas.setting import AppSettings, OssConfig
from filedrop.services.storage.base import StorageBackend
from filedrop.services.storage.local import LocalFileBackend
from filedrop.services.storage.object_store import ObjectStoreBackend, build_s3_client

logger = logging.getLogger(__name__)


class StorageRegistry:
    def __init__(
        self,
        local: LocalFileBackend,
        key_prefix: str = "uploads",
        url_expires_seconds: int = 3600,
        s3_client_factory: Callable[[OssConfig], Any] = build_s3_client,
    ):
        self.local = local
        self.key_prefix = key_prefix
        self.url_expires_seconds = url_expires_seconds
        self._s3_client_factory = s3_client_factory
        self._object_store: ObjectStoreBackend | None = None
        self._object_store_config: OssConfig | None = None

    def for_type(self, storage_type: StorageType | str, settings: AppSettings) -> StorageBackend:
        storage_type = StorageType(storage_type)
        if storage_type == StorageType.LOCAL_FILE:
            return self.local
        return self._get_object_store(settings.oss_config)

    def for_settings(self, settings: AppSettings) -> StorageBackend:
        """Backend for new uploads."""
        return self.for_type(settings.storage_type, settings)

    def for_record(self, record: FileRecord, settings: AppSettings) -> StorageBackend:
        """Backend holding an existing record's bytes."""
        return self.for_type(record.storage_type, settings)

    def _get_object_store(self, config: OssConfig) -> ObjectStoreBackend:
        # Rebuild the client only when the credentials change
        if self._object_store is None or self._object_store_config != config:
            backend = ObjectStoreBackend(
                config,
                key_prefix=self.key_prefix,
                url_expires_seconds=self.url_expires_seconds,
                client=self._s3_client_factory(config) if config.is_complete() else None,
            )
            logger.info(f"Object storage client ready for bucket {config.bucket!r}")
            self._object_store = backend
            self._object_store_config = config.model_copy()
        return self._object_store
