"""
Client for the local file-upload endpoint.

During local development the showcase saves files through its own
`POST /api/upload` endpoint instead of object storage. The endpoint keeps
the original filename and serves the file from the public upload folder,
so the URL handed back is `<public_path>/<newFilename>`.
"""

import asyncio
import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)

UPLOAD_PATH = "/api/upload"
HEALTH_PATH = "/api/upload-test"
UPLOAD_FIELD = "file"


class UploadError(Exception):
    """Raised when the upload endpoint rejects or fails an upload."""
    pass


class UploadEndpointClient:
    """
    Uploads files to the showcase upload endpoint.

    Implements the same upload_file signature as the storage clients so
    the store doesn't care which one it got. Only the basename of
    storage_path is sent; the endpoint has a single flat folder.
    """

    def __init__(
        self,
        base_url: str,
        public_path: str = "/uploaded-video",
        timeout: float = 120.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._public_path = public_path.rstrip("/")
        self._timeout = timeout

    async def upload_file(
        self,
        data: bytes,
        storage_path: str,
        content_type: Optional[str] = None,
    ) -> str:
        return await asyncio.to_thread(self._upload, data, storage_path, content_type)

    async def check_health(self) -> bool:
        return await asyncio.to_thread(self._check_health)

    def _upload(
        self,
        data: bytes,
        storage_path: str,
        content_type: Optional[str],
    ) -> str:
        filename = storage_path.rsplit("/", 1)[-1]
        files = {
            UPLOAD_FIELD: (filename, data, content_type or "application/octet-stream"),
        }

        try:
            response = requests.post(
                f"{self._base_url}{UPLOAD_PATH}",
                files=files,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            logger.error(
                "Upload request failed",
                extra={"upload_filename": filename, "error": str(e)},
            )
            raise UploadError(f"Upload request failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if not response.ok or "error" in body:
            message = body.get("error") or f"status {response.status_code}"
            logger.error(
                "Upload rejected",
                extra={"upload_filename": filename, "status": response.status_code, "error": message},
            )
            raise UploadError(f"Upload failed: {message}")

        try:
            new_filename = body["files"][UPLOAD_FIELD][0]["newFilename"]
        except (KeyError, IndexError, TypeError) as e:
            raise UploadError(f"Unexpected upload response: {body!r}") from e

        logger.info(
            "Uploaded file to endpoint",
            extra={"upload_filename": filename, "size_bytes": len(data)},
        )
        return f"{self._public_path}/{new_filename}"

    def _check_health(self) -> bool:
        try:
            response = requests.get(f"{self._base_url}{HEALTH_PATH}", timeout=self._timeout)
            return response.ok and response.json().get("status") == "ok"
        except (requests.RequestException, ValueError) as e:
            logger.warning("Upload endpoint health check failed", extra={"error": str(e)})
            return False
