"""Background sweep that deletes expired files.

Runs as an asyncio task within the FastAPI process: once shortly after
startup (the storage root and tables must exist first), then on a fixed
interval. Each pass only touches records whose expire_date has already
passed, so it never races with live uploads or downloads. A download that
resolved a record just before it expired can still finish, because the row
is deleted only after the bytes.
"""
import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable

from filedrop.clock import Clock, now_ms
from filedrop.services.file_removal import FileRemover
from filedrop.services.file_store import FileRecordStore
from filedrop.services.settings_service import SettingsService

logger = logging.getLogger(__name__)


class ReaperState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    DELETING = "deleting"


@dataclass
class ReapReport:
    deleted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class ExpiryReaper:
    def __init__(
        self,
        store: FileRecordStore,
        remover: FileRemover,
        settings_service: SettingsService,
        clock: Clock = now_ms,
        interval_seconds: float = 3600,
        initial_delay_seconds: float = 5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.remover = remover
        self.settings_service = settings_service
        self._clock = clock
        self.interval_seconds = interval_seconds
        self.initial_delay_seconds = initial_delay_seconds
        self._sleep = sleep
        self.state = ReaperState.IDLE
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name="expiry-reaper")
        logger.info(
            f"Expiry reaper started (first pass in {self.initial_delay_seconds:g}s, "
            f"then every {self.interval_seconds:g}s)"
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Expiry reaper stopped")

    async def _loop(self) -> None:
        await self._sleep(self.initial_delay_seconds)
        while True:
            try:
                await self.run_once()
            except Exception:
                logger.exception("Expiry sweep failed")
            await self._sleep(self.interval_seconds)

    async def run_once(self) -> ReapReport:
        """One sweep. Per-record failures are logged and do not stop the pass."""
        report = ReapReport()
        self.state = ReaperState.SCANNING
        try:
            now = self._clock()
            expired = await self.store.list_expired(now)
            if not expired:
                return report

            logger.info(f"Found {len(expired)} expired file(s), cleaning up")
            settings = await self.settings_service.get_settings()
            self.state = ReaperState.DELETING
            for record in expired:
                try:
                    await self.remover.remove(record, settings)
                    report.deleted.append(str(record.id))
                except Exception:
                    logger.exception(f"Failed to delete expired file {record.id} ({record.code})")
                    report.failed.append(str(record.id))

            logger.info(f"Expiry cleanup done: {len(report.deleted)} deleted, {len(report.failed)} failed")
            return report
        finally:
            self.state = ReaperState.IDLE
