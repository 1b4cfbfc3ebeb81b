"""
Local file-upload endpoint.

A single-purpose file-save handler for local development: files posted
to `/api/upload` are written into the public upload folder under their
original filename and served back from `/uploaded-video/`. No retry, no
integrity checks, no deduplication (a second upload with the same name
overwrites the first).

Response shapes are kept simple for the frontend:
- success: {"message": "Upload successful", "files": {field: [file info, ...]}}
- failure: HTTP 500 with {"error": message}
"""

import logging
import os
from pathlib import Path

from fastapi import APIRouter, Request, UploadFile, status
from fastapi.responses import JSONResponse

from ..dependencies import SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()

CHUNK_SIZE = 1024 * 1024


class UploadTooLargeError(Exception):
    """Raised when a file exceeds the configured maximum size."""
    pass


def safe_filename(filename: str | None) -> str:
    """Keep only the basename; fall back to 'unnamed'."""
    name = (filename or "").replace("\\", "/").rsplit("/", 1)[-1].strip()
    if name in ("", ".", ".."):
        return "unnamed"
    return name


async def save_upload(upload: UploadFile, upload_dir: Path, max_size_bytes: int) -> dict:
    """
    Stream one uploaded file to disk and describe it.

    A file that goes over the limit is removed again before the error
    propagates, so nothing half-written stays in the public folder.
    """
    original_filename = upload.filename or None
    new_filename = safe_filename(original_filename)
    target = upload_dir / new_filename

    logger.info("Processing file", extra={"upload_filename": original_filename or "unnamed"})

    size = 0
    try:
        with open(target, "wb") as f:
            while chunk := await upload.read(CHUNK_SIZE):
                size += len(chunk)
                if size > max_size_bytes:
                    raise UploadTooLargeError(
                        f"File {new_filename} exceeds maximum size of {max_size_bytes} bytes"
                    )
                f.write(chunk)
    except Exception:
        if target.exists():
            os.unlink(target)
        raise

    return {
        "originalFilename": original_filename,
        "newFilename": new_filename,
        "mimetype": upload.content_type,
        "size": size,
    }


@router.get(
    "/upload-test",
    summary="Upload endpoint health check",
)
async def upload_health() -> dict:
    return {"status": "ok"}


@router.post(
    "/upload",
    status_code=status.HTTP_200_OK,
    summary="Upload files",
    description="Save multipart files into the public upload folder under their original names",
)
async def upload_files(request: Request, settings: SettingsDep):
    upload_dir = Path(settings.upload_dir).resolve()

    logger.info(
        "Upload request received",
        extra={"path": request.url.path, "upload_dir": str(upload_dir)},
    )

    try:
        upload_dir.mkdir(parents=True, exist_ok=True)

        form = await request.form()
        uploaded_files: dict[str, list[dict]] = {}
        field_names: list[str] = []

        try:
            for key, value in form.multi_items():
                if isinstance(value, str):
                    field_names.append(key)
                    continue
                info = await save_upload(value, upload_dir, settings.max_upload_size_bytes)
                uploaded_files.setdefault(key, []).append(info)
        finally:
            await form.close()

    except Exception as e:
        logger.error("Upload failed", extra={"error": str(e)})
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(e)},
        )

    logger.info(
        "Upload successful",
        extra={"fields": field_names, "files": list(uploaded_files)},
    )

    return {
        "message": "Upload successful",
        "files": uploaded_files,
    }
