"""
Video showcase domain: records, snapshots and the store variants.
"""

from .blobs import BlobRegistry, is_blob_url
from .models import (
    StoreSnapshot,
    UploadedFile,
    VideoRecord,
    generate_record_id,
    utc_now_iso,
)
from .store import (
    CollectionEvent,
    LocalVideoStore,
    RemoteVideoStore,
    ReorderNotSupportedError,
    VideoStore,
    build_storage_path,
)

__all__ = [
    "BlobRegistry",
    "is_blob_url",
    "StoreSnapshot",
    "UploadedFile",
    "VideoRecord",
    "generate_record_id",
    "utc_now_iso",
    "CollectionEvent",
    "LocalVideoStore",
    "RemoteVideoStore",
    "ReorderNotSupportedError",
    "VideoStore",
    "build_storage_path",
]
