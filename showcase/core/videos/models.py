"""
Domain models for the video showcase.

These models describe what a showcase entry is, independent of where it
is stored. The same record shape is written to local storage, read from
the static config file and kept as a document in the remote collection,
so the translation to and from the camelCase JSON form lives here.
"""

import threading
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Optional


# Attribute name -> document key. Only these fields can be changed by an update.
UPDATABLE_FIELDS: dict[str, str] = {
    "name": "name",
    "url": "url",
    "thumbnail": "thumbnail",
    "order": "order",
    "created_at": "createdAt",
}

# Fields a stored record can never be without
REQUIRED_FIELDS = ("name", "url")

_id_lock = threading.Lock()
_last_id_ms = 0


def generate_record_id() -> str:
    """
    Generate a timestamp-based record id (epoch milliseconds).

    Two calls inside the same millisecond would collide, so the value is
    bumped past the last one handed out by this process.
    """
    global _last_id_ms

    with _id_lock:
        now_ms = int(time.time() * 1000)
        if now_ms <= _last_id_ms:
            now_ms = _last_id_ms + 1
        _last_id_ms = now_ms
        return str(now_ms)


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision, e.g. 2024-05-01T10:00:00.000Z"""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def _parse_order(value: Any) -> int:
    if value is None or value == "":
        return 0
    try:
        return int(value)
    except TypeError:
        raise ValueError(f"Video order must be a number, got {type(value).__name__}")


@dataclass(frozen=True)
class VideoRecord:
    """
    One video in the showcase.

    Frozen so snapshots handed to subscribers can't be changed behind the
    store's back. Mutations produce a new record via `with_changes`.
    """
    id: str
    name: str
    url: str
    thumbnail: Optional[str] = None
    created_at: str = field(default_factory=utc_now_iso)
    order: int = 0
    # Object storage keys, only set for records whose files live in the bucket
    storage_path: Optional[str] = None
    thumbnail_storage_path: Optional[str] = None

    def with_changes(self, **changes: Any) -> "VideoRecord":
        return replace(self, **changes)

    def to_document(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON shape used by every backend."""
        document: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "thumbnail": self.thumbnail,
            "createdAt": self.created_at,
            "order": self.order,
        }
        if self.storage_path:
            document["storagePath"] = self.storage_path
        if self.thumbnail_storage_path:
            document["thumbnailStoragePath"] = self.thumbnail_storage_path
        return document

    @classmethod
    def from_document(
        cls,
        document: dict[str, Any],
        id: Optional[str] = None,
    ) -> "VideoRecord":
        """
        Build a record from its JSON form.

        `id` overrides the document's own id, which is how the remote
        collection hands back backend-assigned identifiers.

        Raises ValueError if required fields are missing.
        """
        if not isinstance(document, dict):
            raise ValueError(f"Video document must be an object, got {type(document).__name__}")

        record_id = id if id is not None else document.get("id")
        missing = [
            name for name, value in (
                ("id", record_id),
                ("name", document.get("name")),
                ("url", document.get("url")),
            )
            if value in (None, "")
        ]
        if missing:
            raise ValueError(f"Video document missing required fields: {', '.join(missing)}")

        return cls(
            id=str(record_id),
            name=str(document["name"]),
            url=str(document["url"]),
            thumbnail=document.get("thumbnail") or None,
            created_at=document.get("createdAt") or utc_now_iso(),
            order=_parse_order(document.get("order")),
            storage_path=document.get("storagePath") or None,
            thumbnail_storage_path=document.get("thumbnailStoragePath") or None,
        )


@dataclass(frozen=True)
class UploadedFile:
    """Binary input for an add operation: the file plus what we know about it."""
    filename: str
    data: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class StoreSnapshot:
    """
    Immutable view of the store pushed to subscribers.

    `loaded` flips to True once the first load attempt finished, even if
    it failed, so consumers never wait forever. `error` carries a
    human-readable message when loading failed.
    """
    videos: tuple[VideoRecord, ...] = ()
    loaded: bool = False
    error: Optional[str] = None
    ordered_by_position: bool = True

    @property
    def video_count(self) -> int:
        return len(self.videos)

    @property
    def sorted_videos(self) -> tuple[VideoRecord, ...]:
        """Records in display order. Remote snapshots already arrive newest first."""
        if not self.ordered_by_position:
            return self.videos
        return tuple(sorted(self.videos, key=lambda v: v.order))
