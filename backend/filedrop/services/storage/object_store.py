"""S3-compatible object storage backend (AWS S3, Aliyun OSS, MinIO, R2 ...).

boto3 is synchronous, so every client call runs in a worker thread via
asyncio.to_thread to keep the event loop free during large transfers.
"""
import asyncio
import logging
import threading
from pathlib import Path
from urllib.parse import quote

import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from filedrop.errors import ConfigurationError, FileTooLarge, StorageFailure, StoragePathRejected
from filedrop.models.file_record import StorageType
from filedrop.schemas.setting import OssConfig
from filedrop.services.storage.base import DownloadTarget, StorageBackend, StoredObject

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024
_MISSING_KEY_CODES = {"404", "NoSuchKey", "NotFound"}


def normalize_endpoint(endpoint: str) -> str:
    endpoint = endpoint.strip().rstrip("/")
    if not endpoint.startswith(("http://", "https://")):
        endpoint = f"https://{endpoint}"
    return endpoint


def build_s3_client(config: OssConfig):
    """Create a boto3 S3 client from the object storage settings."""
    client_config = BotoConfig(
        signature_version="s3v4",
        s3={"addressing_style": "path"},
        connect_timeout=10,
        read_timeout=60,
    )
    return boto3.client(
        "s3",
        endpoint_url=normalize_endpoint(config.endpoint),
        aws_access_key_id=config.access_key_id,
        aws_secret_access_key=config.access_key_secret,
        region_name=config.region or None,
        config=client_config,
    )


class ObjectStoreBackend(StorageBackend):
    """Stores objects under `{key_prefix}/` in one bucket."""

    storage_type = StorageType.OBJECT_STORE
    best_effort_delete = True

    def __init__(
        self,
        config: OssConfig,
        key_prefix: str = "uploads",
        url_expires_seconds: int = 3600,
        client=None,
    ):
        if not config.is_complete():
            raise ConfigurationError(
                "Object storage is not fully configured: endpoint, bucket and credentials are required"
            )
        self.bucket = config.bucket
        self.endpoint_url = normalize_endpoint(config.endpoint)
        self.key_prefix = key_prefix.strip("/")
        self.url_expires_seconds = url_expires_seconds
        self.client = client if client is not None else build_s3_client(config)

    def make_storage_path(self, code: str, timestamp_ms: int, original_name: str) -> str:
        name = super().make_storage_path(code, timestamp_ms, original_name)
        return f"{self.key_prefix}/{name}" if self.key_prefix else name

    def check_key(self, key: str) -> str:
        """Reject keys that escape the managed prefix."""
        segments = key.split("/") if key else []
        if (
            not segments
            or "\x00" in key
            or "\\" in key
            or any(s in ("", ".", "..") for s in segments)
            or (self.key_prefix and not key.startswith(f"{self.key_prefix}/"))
        ):
            logger.warning(f"Rejected object key outside prefix {self.key_prefix!r}: {key!r}")
            raise StoragePathRejected()
        return key

    def public_url(self, key: str) -> str:
        return f"{self.endpoint_url}/{self.bucket}/{quote(key)}"

    async def put(
        self,
        storage_path: str,
        source: Path,
        size: int,
        content_type: str,
        max_bytes: int,
    ) -> StoredObject:
        if size > max_bytes:
            raise FileTooLarge(max_bytes / BYTES_PER_MB)
        key = self.check_key(storage_path)
        # Hand-off between the worker thread and a caller that was cancelled
        handoff = threading.Lock()
        state = {"abandoned": False, "finished": False}

        def _upload() -> int | None:
            with open(source, "rb") as f:
                self.client.upload_fileobj(
                    Fileobj=f,
                    Bucket=self.bucket,
                    Key=key,
                    ExtraArgs={"ContentType": content_type},
                )
            try:
                head = self.client.head_object(Bucket=self.bucket, Key=key)
            except BaseException:
                self._delete_quietly(key)
                raise
            with handoff:
                if state["abandoned"]:
                    self._delete_quietly(key)
                    return None
                state["finished"] = True
            return head.get("ContentLength")

        logger.info(f"[ObjectStore] Uploading {size} bytes to {self.bucket}/{key}")
        try:
            stored_length = await asyncio.to_thread(_upload)
        except asyncio.CancelledError:
            # The worker thread keeps running; whichever side finishes last removes the object
            with handoff:
                state["abandoned"] = True
                finished = state["finished"]
            if finished:
                asyncio.get_running_loop().run_in_executor(None, self._delete_quietly, key)
            logger.warning(f"[ObjectStore] Upload of {key} cancelled, object will be removed")
            raise
        except (ClientError, BotoCoreError, OSError) as exc:
            logger.error(f"[ObjectStore] Upload failed for {key}: {exc}")
            raise StorageFailure() from exc

        if stored_length is not None and stored_length != size:
            logger.error(f"[ObjectStore] Size mismatch for {key}: expected {size}, stored {stored_length}")
            await self.delete(key)
            raise StorageFailure()

        return StoredObject(url=self.public_url(key), storage_path=key)

    def _delete_quietly(self, key: str) -> None:
        """Synchronous cleanup for objects no record will point to."""
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
            logger.info(f"[ObjectStore] Removed unrecorded object {key}")
        except (ClientError, BotoCoreError):
            logger.exception(f"[ObjectStore] Cleanup failed, orphaned object left at {key}")

    async def delete(self, storage_path: str) -> None:
        key = self.check_key(storage_path)
        try:
            await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=key)
            logger.debug(f"[ObjectStore] Deleted {key}")
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in _MISSING_KEY_CODES:
                logger.debug(f"[ObjectStore] Object already gone: {key}")
                return
            logger.error(f"[ObjectStore] Delete failed for {key}: {exc}")
            raise StorageFailure("Failed to delete file") from exc
        except BotoCoreError as exc:
            logger.error(f"[ObjectStore] Delete failed for {key}: {exc}")
            raise StorageFailure("Failed to delete file") from exc

    async def resolve_download(self, storage_path: str) -> DownloadTarget:
        key = self.check_key(storage_path)
        try:
            url = await asyncio.to_thread(
                self.client.generate_presigned_url,
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=self.url_expires_seconds,
            )
        except (ClientError, BotoCoreError) as exc:
            logger.error(f"[ObjectStore] Could not sign download URL for {key}: {exc}")
            raise StorageFailure() from exc
        return DownloadTarget(url=url)
