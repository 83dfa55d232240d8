"""Wiring of the file lifecycle services.

Built once per application in the lifespan hook and stored on app.state;
routes reach it through filedrop.dependencies.
"""
from dataclasses import dataclass
from typing import Any, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from filedrop.clock import Clock, now_ms
from filedrop.config import Settings
from filedrop.schemas.setting import OssConfig
from filedrop.services.auth_service import MS_PER_HOUR, AdminAuth, SessionService
from filedrop.services.download_service import DownloadAccountor
from filedrop.services.expiry_reaper import ExpiryReaper
from filedrop.services.file_removal import FileRemover
from filedrop.services.file_store import FileRecordStore
from filedrop.services.settings_service import SettingsService
from filedrop.services.storage.local import LocalFileBackend
from filedrop.services.storage.object_store import build_s3_client
from filedrop.services.storage.registry import StorageRegistry
from filedrop.services.upload_service import UploadOrchestrator


@dataclass
class Services:
    config: Settings
    clock: Clock
    store: FileRecordStore
    settings: SettingsService
    backends: StorageRegistry
    uploads: UploadOrchestrator
    downloads: DownloadAccountor
    remover: FileRemover
    reaper: ExpiryReaper
    auth: AdminAuth

    def start(self) -> None:
        self.reaper.start()
        self.auth.sessions.start()

    async def stop(self) -> None:
        await self.reaper.stop()
        await self.auth.sessions.stop()


def build_services(
    config: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    clock: Clock = now_ms,
    s3_client_factory: Callable[[OssConfig], Any] = build_s3_client,
) -> Services:
    store = FileRecordStore(session_factory)
    settings_service = SettingsService(session_factory, clock=clock)
    backends = StorageRegistry(
        LocalFileBackend(config.FILE_STORAGE_PATH, config.PUBLIC_FILE_PREFIX, config.UPLOAD_CHUNK_SIZE),
        key_prefix=config.OBJECT_KEY_PREFIX,
        url_expires_seconds=config.OBJECT_URL_EXPIRES_SECONDS,
        s3_client_factory=s3_client_factory,
    )
    remover = FileRemover(store, backends)
    sessions = SessionService(ttl_ms=int(config.SESSION_TTL_HOURS * MS_PER_HOUR), clock=clock)

    return Services(
        config=config,
        clock=clock,
        store=store,
        settings=settings_service,
        backends=backends,
        uploads=UploadOrchestrator(store, backends, config.UPLOAD_STAGING_PATH, clock=clock),
        downloads=DownloadAccountor(store, clock=clock),
        remover=remover,
        reaper=ExpiryReaper(
            store,
            remover,
            settings_service,
            clock=clock,
            interval_seconds=config.REAPER_INTERVAL_SECONDS,
            initial_delay_seconds=config.REAPER_INITIAL_DELAY_SECONDS,
        ),
        auth=AdminAuth(config.ADMIN_PASSWORD, sessions),
    )
