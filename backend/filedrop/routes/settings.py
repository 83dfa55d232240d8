"""Settings API routes."""
import logging

from fastapi import APIRouter, Depends

from filedrop.dependencies import get_services, require_admin
from filedrop.schemas.setting import AppSettings, SettingsPatch
from filedrop.services.container import Services
from filedrop.services.settings_service import masked

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("", response_model=AppSettings)
async def get_settings(services: Services = Depends(get_services)):
    """Current application settings (object storage secret masked)."""
    return masked(await services.settings.get_settings())


@router.post("", response_model=AppSettings, dependencies=[Depends(require_admin)])
async def save_settings(
    body: SettingsPatch,
    services: Services = Depends(get_services),
):
    """Merge the provided fields into the stored settings."""
    saved = await services.settings.save_settings(body)
    return masked(saved)
