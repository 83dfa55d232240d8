"""FileRecord model - metadata for one stored upload (bytes live in a storage backend).

Timestamps are epoch milliseconds so expiry checks compare plain integers
against the injected clock.
"""
import uuid
from enum import Enum
from sqlalchemy import String, BigInteger, Integer, Uuid, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from filedrop.models.base import Base


class StorageType(str, Enum):
    LOCAL_FILE = "localFile"
    OBJECT_STORE = "oss"


class FileRecord(Base):
    __tablename__ = "files"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    type: Mapped[str] = mapped_column(String(255), nullable=False)
    hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    upload_date: Mapped[int] = mapped_column(BigInteger, nullable=False)
    code: Mapped[str] = mapped_column(String(6), nullable=False)
    data: Mapped[str] = mapped_column(String(2000), nullable=False)
    storage_type: Mapped[str] = mapped_column(String(20), nullable=False)
    storage_path: Mapped[str] = mapped_column(String(1000), nullable=False, index=True)
    download_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expire_date: Mapped[int | None] = mapped_column(BigInteger, nullable=True, index=True)

    __table_args__ = (
        UniqueConstraint("code", name="uq_files_code"),
    )

    def is_expired(self, now_ms: int) -> bool:
        return self.expire_date is not None and self.expire_date <= now_ms
