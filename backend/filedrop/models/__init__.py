"""Import all models so SQLAlchemy metadata knows about them."""
from filedrop.models.base import Base
from filedrop.models.file_record import FileRecord, StorageType
from filedrop.models.setting import Setting

__all__ = ["Base", "FileRecord", "StorageType", "Setting"]
