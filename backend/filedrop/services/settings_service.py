"""Application settings persisted as one JSON document in the settings table.

Reads always merge the stored document over the defaults, so fields added in
later releases appear with their default value. Saves apply a partial patch
over the current document (unset fields keep their previous value).
"""
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from filedrop.clock import Clock, now_ms
from filedrop.models.setting import Setting
from filedrop.schemas.setting import AppSettings, SettingsPatch

logger = logging.getLogger(__name__)

SETTINGS_KEY = "app-settings"
MASK = "********"


def merge_settings(current: AppSettings, patch: SettingsPatch) -> AppSettings:
    """Apply the fields set on `patch` to `current`.

    install_date is not patchable. oss_config merges field by field so a
    client can update the bucket without resending the secret.
    """
    updates = patch.model_dump(exclude_unset=True, exclude={"oss_config"})
    # Explicit nulls on scalar fields mean "no change"
    updates = {k: v for k, v in updates.items() if v is not None}
    merged = current.model_copy(update=updates)

    if patch.oss_config is not None:
        oss_updates = patch.oss_config.model_dump(exclude_unset=True)
        oss_updates = {k: v for k, v in oss_updates.items() if v is not None}
        if oss_updates.get("access_key_secret") == MASK:
            oss_updates.pop("access_key_secret")
        merged.oss_config = current.oss_config.model_copy(update=oss_updates)

    return AppSettings.model_validate(merged.model_dump())


def masked(settings: AppSettings) -> AppSettings:
    """Copy safe to return to clients: the object storage secret is hidden."""
    if not settings.oss_config.access_key_secret:
        return settings
    oss = settings.oss_config.model_copy(update={"access_key_secret": MASK})
    return settings.model_copy(update={"oss_config": oss})


class SettingsService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], clock: Clock = now_ms):
        self._session_factory = session_factory
        self._clock = clock

    async def _load_row(self, db: AsyncSession) -> Setting | None:
        result = await db.execute(select(Setting).where(Setting.key == SETTINGS_KEY))
        return result.scalar_one_or_none()

    async def get_settings(self) -> AppSettings:
        async with self._session_factory() as db:
            row = await self._load_row(db)
        stored = row.value if row and isinstance(row.value, dict) else {}
        defaults = AppSettings().model_dump(by_alias=True)
        oss = {**defaults["ossConfig"], **(stored.get("ossConfig") or {})}
        return AppSettings.model_validate({**defaults, **stored, "ossConfig": oss})

    async def save_settings(self, patch: SettingsPatch) -> AppSettings:
        current = await self.get_settings()
        merged = merge_settings(current, patch)
        if merged.install_date is None:
            merged.install_date = self._clock()
        await self._write(merged)
        logger.info(
            f"Settings saved: storageType={merged.storage_type.value}, "
            f"maxFileSizeMB={merged.max_file_size_mb:g}, storageLimitMB={merged.storage_limit_mb:g}, "
            f"defaultExpireDays={merged.default_expire_days}"
        )
        return merged

    async def ensure_defaults(self) -> AppSettings:
        """Persist the default document on first start so install_date is stable."""
        async with self._session_factory() as db:
            row = await self._load_row(db)
        if row is not None:
            return await self.get_settings()
        settings = AppSettings(install_date=self._clock())
        await self._write(settings)
        logger.info("Initialized default application settings")
        return settings

    async def _write(self, settings: AppSettings) -> None:
        value = settings.model_dump(mode="json", by_alias=True)
        async with self._session_factory() as db:
            row = await self._load_row(db)
            if row is None:
                db.add(Setting(key=SETTINGS_KEY, value=value))
            else:
                row.value = value
            await db.commit()

