"""
Object storage for showcase videos and thumbnails.

The remote backend keeps binaries in Cloudflare R2, talking to it through
boto3's S3 API. Objects live under generated paths such as
videos/1714557600000_clip.mp4 and thumbnails/1714557600000_clip.jpg; the
URL handed back is the public bucket URL when one is configured, else a
presigned download URL.

MockStorageClient keeps objects in a dict for R2_MOCK_MODE and tests.
"""

import asyncio
import logging
import mimetypes
from dataclasses import dataclass
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

# S3 presigned URLs can't outlive 7 days with SigV4
MAX_PRESIGNED_EXPIRY_SECONDS = 7 * 24 * 3600


class StorageError(Exception):
    """An object could not be written, removed or addressed."""
    pass


@dataclass
class StorageConfig:
    """
    Bucket coordinates and credentials.

    public_base_url is the bucket's public (r2.dev or custom domain) URL.
    Without it, uploads are addressed with presigned URLs.
    """
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    endpoint_url: str
    region: str = "auto"  # R2 ignores region but boto3 wants one
    public_base_url: Optional[str] = None
    presigned_expiry_seconds: int = MAX_PRESIGNED_EXPIRY_SECONDS


class StorageClient(Protocol):
    """What the remote video store needs from object storage."""

    async def upload_file(
        self,
        data: bytes,
        storage_path: str,
        content_type: Optional[str] = None,
    ) -> str:
        """Upload data and return a retrievable URL."""
        ...

    async def delete_object(self, storage_path: str) -> None:
        ...

    async def get_presigned_url(
        self,
        storage_path: str,
        expiry_seconds: int = 3600,
    ) -> str:
        ...


def guess_content_type(storage_path: str, content_type: Optional[str] = None) -> str:
    """Explicit content type wins, then the extension, then a binary default."""
    if content_type:
        return content_type
    guessed, _ = mimetypes.guess_type(storage_path)
    return guessed or "application/octet-stream"


class R2StorageClient:
    """
    R2 bucket accessed through boto3.

    boto3 blocks, so each call runs in a worker thread; a video upload
    can take a while and the event loop keeps serving in the meantime.
    """

    def __init__(self, config: StorageConfig) -> None:
        # imported lazily so mock mode works without boto3 configured
        try:
            import boto3
            from botocore.config import Config
        except ImportError:
            raise ImportError("The R2 storage client needs boto3 (pip install boto3)")

        self._config = config
        self._s3_client = boto3.client(
            's3',
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            region_name=config.region,
            # R2 only speaks SigV4 with path-style bucket addressing
            config=Config(signature_version='s3v4', s3={'addressing_style': 'path'}),
        )

        logger.info(
            "R2 storage ready",
            extra={"bucket": config.bucket_name, "endpoint": config.endpoint_url},
        )

    async def upload_file(
        self,
        data: bytes,
        storage_path: str,
        content_type: Optional[str] = None,
    ) -> str:
        """
        Write one object and return its URL.

        Single put, no retry: a failure surfaces as StorageError and the
        store cleans up whatever else it already uploaded.
        """
        try:
            await asyncio.to_thread(
                self._s3_client.put_object,
                Bucket=self._config.bucket_name,
                Key=storage_path,
                Body=data,
                ContentType=guess_content_type(storage_path, content_type),
            )
        except Exception as e:
            logger.error(
                "Object upload failed",
                extra={"storage_path": storage_path, "error": str(e)},
            )
            raise StorageError(f"Upload failed: {e}")

        logger.info(
            "Uploaded object",
            extra={"storage_path": storage_path, "size_bytes": len(data)},
        )
        return await self._build_url(storage_path)

    async def delete_object(self, storage_path: str) -> None:
        try:
            await asyncio.to_thread(
                self._s3_client.delete_object,
                Bucket=self._config.bucket_name,
                Key=storage_path,
            )
        except Exception as e:
            logger.error(
                "Object delete failed",
                extra={"storage_path": storage_path, "error": str(e)},
            )
            raise StorageError(f"Delete failed: {e}")

        logger.info("Deleted object", extra={"storage_path": storage_path})

    async def get_presigned_url(
        self,
        storage_path: str,
        expiry_seconds: int = 3600,
    ) -> str:
        """
        Signed GET URL so the player streams straight from the bucket.

        Signing is local computation, no request is made.
        """
        try:
            return self._s3_client.generate_presigned_url(
                'get_object',
                Params={'Bucket': self._config.bucket_name, 'Key': storage_path},
                ExpiresIn=min(expiry_seconds, MAX_PRESIGNED_EXPIRY_SECONDS),
            )
        except Exception as e:
            logger.error(
                "Presigning failed",
                extra={"storage_path": storage_path, "error": str(e)},
            )
            raise StorageError(f"Presigned URL generation failed: {e}")

    async def _build_url(self, storage_path: str) -> str:
        if self._config.public_base_url:
            return f"{self._config.public_base_url.rstrip('/')}/{storage_path}"
        return await self.get_presigned_url(
            storage_path,
            expiry_seconds=self._config.presigned_expiry_seconds,
        )


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockStorageClient:
    """
    Bucket held in a dict.

    URLs are mock://storage/<path>; they identify the object but nothing
    serves them. Deleting a missing object raises, like a strict backend
    would, so cleanup bugs show up in tests.
    """

    def __init__(self) -> None:
        # {storage_path: (bytes, content_type)}
        self._objects: dict[str, tuple[bytes, str]] = {}
        logger.info("Using in-memory object storage")

    async def upload_file(
        self,
        data: bytes,
        storage_path: str,
        content_type: Optional[str] = None,
    ) -> str:
        self._objects[storage_path] = (data, guess_content_type(storage_path, content_type))

        logger.debug(
            "Stored object in memory",
            extra={"storage_path": storage_path, "size_bytes": len(data)}
        )

        return f"mock://storage/{storage_path}"

    async def delete_object(self, storage_path: str) -> None:
        if storage_path not in self._objects:
            raise StorageError(f"Object not found: {storage_path}")
        del self._objects[storage_path]

    async def get_presigned_url(
        self,
        storage_path: str,
        expiry_seconds: int = 3600,
    ) -> str:
        if storage_path not in self._objects:
            raise StorageError(f"Object not found: {storage_path}")

        return f"mock://storage/{storage_path}"

    async def download_object(self, storage_path: str) -> bytes:
        """Object bytes; only the mock can hand them back."""
        if storage_path not in self._objects:
            raise StorageError(f"Object not found: {storage_path}")

        return self._objects[storage_path][0]

    @property
    def object_paths(self) -> list[str]:
        return sorted(self._objects)


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> StorageClient:
    """The in-memory mock in mock mode, otherwise R2 (config required)."""
    if mock_mode:
        return MockStorageClient()

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return R2StorageClient(config)
