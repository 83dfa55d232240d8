"""Storage backends for raw file bytes."""
from filedrop.services.storage.base import DownloadTarget, StorageBackend, StoredObject
from filedrop.services.storage.local import LocalFileBackend
from filedrop.services.storage.object_store import ObjectStoreBackend
from filedrop.services.storage.registry import StorageRegistry

__all__ = [
    "DownloadTarget",
    "StorageBackend",
    "StoredObject",
    "LocalFileBackend",
    "ObjectStoreBackend",
    "StorageRegistry",
]
