"""Application settings schemas.

AppSettings is the full document stored in the settings table. The *Patch
models list exactly which fields a client may change; anything left unset
keeps its previous value (see merge_settings).
"""
from typing import Optional
from pydantic import Field
from filedrop.models.file_record import StorageType
from filedrop.schemas.base import CamelModel


class OssConfig(CamelModel):
    endpoint: str = ""
    bucket: str = ""
    region: str = ""
    access_key_id: str = ""
    access_key_secret: str = ""

    def is_complete(self) -> bool:
        return all((self.endpoint, self.bucket, self.access_key_id, self.access_key_secret))


class AppSettings(CamelModel):
    storage_limit_mb: float = Field(100, alias="storageLimitMB", ge=0)
    max_file_size_mb: float = Field(100, alias="maxFileSizeMB", gt=0)
    default_expire_days: int = Field(7, ge=0)
    storage_type: StorageType = StorageType.LOCAL_FILE
    allow_public_uploads: bool = True
    install_date: Optional[int] = None
    oss_config: OssConfig = Field(default_factory=OssConfig)

    @property
    def max_file_size_bytes(self) -> int:
        return mb_to_bytes(self.max_file_size_mb)

    @property
    def storage_limit_bytes(self) -> int:
        return mb_to_bytes(self.storage_limit_mb)


class OssConfigPatch(CamelModel):
    endpoint: Optional[str] = None
    bucket: Optional[str] = None
    region: Optional[str] = None
    access_key_id: Optional[str] = None
    access_key_secret: Optional[str] = None


class SettingsPatch(CamelModel):
    storage_limit_mb: Optional[float] = Field(None, alias="storageLimitMB", ge=0)
    max_file_size_mb: Optional[float] = Field(None, alias="maxFileSizeMB", gt=0)
    default_expire_days: Optional[int] = Field(None, ge=0)
    storage_type: Optional[StorageType] = None
    allow_public_uploads: Optional[bool] = None
    oss_config: Optional[OssConfigPatch] = None


def mb_to_bytes(mb: float) -> int:
    return int(mb * 1024 * 1024)
