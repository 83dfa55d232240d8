"""File record request/response schemas."""
import uuid
from typing import Optional
from filedrop.schemas.base import CamelORMModel


class FileRecordResponse(CamelORMModel):
    id: uuid.UUID
    name: str
    size: int
    type: str
    hash: str
    upload_date: int
    code: str
    data: str
    storage_type: str
    storage_path: str
    download_count: int
    expire_date: Optional[int] = None


class UploadResponse(CamelORMModel):
    """What the sender needs to hand the file over."""
    id: uuid.UUID
    code: str
    name: str
    url: str
    size: int
    hash: str
    expire_date: Optional[int] = None
    deduplicated: bool = False


class StorageUsageResponse(CamelORMModel):
    used_bytes: int
    limit_bytes: int
    file_count: int
