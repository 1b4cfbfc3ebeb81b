"""
Video showcase API endpoints.

Thin HTTP surface over the video store. The store decides what each
operation means for the active backend; these handlers only translate
requests and map store errors to status codes:

- unknown id -> 404
- invalid input (missing url/file, bad fields, bad indices) -> 400
- reorder on a backend that owns the order -> 409
- upload or backend write failure -> 502

Reads are open; mutations require an API key.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, File, Form, HTTPException, Response, UploadFile, status
from pydantic import BaseModel, Field, field_validator

from ...core.videos.models import UploadedFile, VideoRecord
from ...core.videos.store import ReorderNotSupportedError
from ..dependencies import AuthenticatedUser, VideoStoreDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class VideoResponse(BaseModel):
    """A single video record, in the camelCase shape the frontend stores."""
    id: str
    name: str
    url: str
    thumbnail: Optional[str] = None
    createdAt: str
    order: int

    @classmethod
    def from_record(cls, record: VideoRecord) -> "VideoResponse":
        return cls(
            id=record.id,
            name=record.name,
            url=record.url,
            thumbnail=record.thumbnail,
            createdAt=record.created_at,
            order=record.order,
        )


class VideoListResponse(BaseModel):
    """Current collection plus load state."""
    videos: list[VideoResponse] = Field(description="Videos in display order")
    count: int = Field(description="Number of videos")
    loaded: bool = Field(description="Whether the initial load finished")
    error: Optional[str] = Field(None, description="Load error, if any")


class VideoCreateResponse(BaseModel):
    """
    Result of adding a video.

    Local backends return the record right away. The remote backend only
    confirms the write; the record arrives with the next collection snapshot.
    """
    created: bool
    video: Optional[VideoResponse] = None


class VideoUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=500)
    url: Optional[str] = Field(None, min_length=1)
    thumbnail: Optional[str] = None

    @field_validator("name", "url")
    @classmethod
    def reject_null(cls, value: Optional[str]) -> str:
        # omitted is fine, an explicit null would blank a required field
        if value is None:
            raise ValueError("cannot be null")
        return value


class ReorderRequest(BaseModel):
    from_index: int = Field(ge=0, description="Current position in display order")
    to_index: int = Field(ge=0, description="Target position in display order")


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------

async def to_uploaded_file(upload: Optional[UploadFile]) -> Optional[UploadedFile]:
    if upload is None or not upload.filename:
        return None
    return UploadedFile(
        filename=upload.filename,
        data=await upload.read(),
        content_type=upload.content_type,
    )


def list_response(store) -> VideoListResponse:
    snapshot = store.snapshot
    return VideoListResponse(
        videos=[VideoResponse.from_record(v) for v in snapshot.sorted_videos],
        count=snapshot.video_count,
        loaded=snapshot.loaded,
        error=snapshot.error,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=VideoListResponse,
    summary="List videos",
)
async def list_videos(store: VideoStoreDep) -> VideoListResponse:
    return list_response(store)


@router.get(
    "/{video_id}",
    response_model=VideoResponse,
    summary="Get a video",
)
async def get_video(video_id: str, store: VideoStoreDep) -> VideoResponse:
    record = store.get_by_id(video_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Video {video_id} not found",
        )
    return VideoResponse.from_record(record)


@router.post(
    "",
    response_model=VideoCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a video",
    description="Add a video by URL or by uploading the file. A thumbnail can be given either way too.",
)
async def add_video(
    name: Annotated[str, Form(min_length=1, max_length=500)],
    store: VideoStoreDep,
    api_key: AuthenticatedUser,
    url: Annotated[Optional[str], Form()] = None,
    thumbnail: Annotated[Optional[str], Form()] = None,
    file: Annotated[Optional[UploadFile], File(description="Video file")] = None,
    thumbnail_file: Annotated[Optional[UploadFile], File(description="Thumbnail image")] = None,
) -> VideoCreateResponse:
    video_file = await to_uploaded_file(file)
    thumb_file = await to_uploaded_file(thumbnail_file)

    try:
        result = await store.add(
            name=name,
            url=url or None,
            thumbnail=thumbnail or None,
            file=video_file,
            thumbnail_file=thumb_file,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error("Failed to add video", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to store video",
        )

    if isinstance(result, VideoRecord):
        return VideoCreateResponse(created=True, video=VideoResponse.from_record(result))
    return VideoCreateResponse(created=bool(result))


@router.patch(
    "/{video_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Update a video",
)
async def update_video(
    video_id: str,
    request: VideoUpdateRequest,
    store: VideoStoreDep,
    api_key: AuthenticatedUser,
) -> Response:
    changes = request.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Nothing to update",
        )

    try:
        result = await store.update(video_id, changes)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error("Failed to update video", extra={"video_id": video_id, "error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to update video",
        )

    if not result:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Video {video_id} not found",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/{video_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a video",
)
async def delete_video(
    video_id: str,
    store: VideoStoreDep,
    api_key: AuthenticatedUser,
) -> Response:
    try:
        deleted = await store.delete(video_id)
    except Exception as e:
        logger.error("Failed to delete video", extra={"video_id": video_id, "error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to delete video",
        )

    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Video {video_id} not found",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/reorder",
    response_model=VideoListResponse,
    summary="Move a video to another position",
)
async def reorder_videos(
    request: ReorderRequest,
    store: VideoStoreDep,
    api_key: AuthenticatedUser,
) -> VideoListResponse:
    try:
        await store.reorder(request.from_index, request.to_index)
    except ReorderNotSupportedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except IndexError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.error("Failed to reorder videos", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to reorder videos",
        )

    return list_response(store)
