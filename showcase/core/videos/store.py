"""
Video record store.

The store is the single source of truth for the showcase. It owns the
in-memory collection, exposes the CRUD operations and pushes immutable
snapshots to whoever subscribed. Persistence is delegated to a backend:

- LocalVideoStore: local storage, optionally seeded from the static
  config file on load. Mutations hit storage first, then memory.
- RemoteVideoStore: a remote document collection plus object storage.
  Writes go to the backend only; memory is replaced by whatever the
  collection subscription delivers.

Nothing here knows about HTTP, Snowflake or boto3. The backends are
described by the protocols below and wired up in the API layer.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Protocol, Sequence

from .blobs import BlobRegistry, is_blob_url
from .models import (
    REQUIRED_FIELDS,
    UPDATABLE_FIELDS,
    StoreSnapshot,
    UploadedFile,
    VideoRecord,
    generate_record_id,
    utc_now_iso,
)

logger = logging.getLogger(__name__)

VIDEO_FOLDER = "videos"
THUMBNAIL_FOLDER = "thumbnails"

SnapshotListener = Callable[[StoreSnapshot], None]


class ReorderNotSupportedError(Exception):
    """Raised when reordering a store whose order is owned by the backend."""
    pass


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class FileUploader(Protocol):
    """
    Anything that can take a file and give back a URL for it.

    Implemented by the object storage clients and by the local
    upload-endpoint client.
    """

    async def upload_file(
        self,
        data: bytes,
        storage_path: str,
        content_type: Optional[str] = None,
    ) -> str:
        """Store the file and return a retrievable URL."""
        ...


class ObjectStore(FileUploader, Protocol):
    """Uploader that can also remove what it stored."""

    async def delete_object(self, storage_path: str) -> None:
        ...


class RecordPersistence(Protocol):
    """Whole-collection persistence (local storage)."""

    def load(self) -> list[VideoRecord]:
        ...

    def save(self, records: Sequence[VideoRecord]) -> None:
        ...


class SeedSource(Protocol):
    """Remote snapshot consulted before local storage (the static config file)."""

    async def fetch_videos(self) -> list[VideoRecord]:
        ...


@dataclass(frozen=True)
class CollectionEvent:
    """
    One delivery from a collection subscription.

    Either a full snapshot of the collection or a terminal error,
    never both.
    """
    records: Optional[tuple[VideoRecord, ...]] = None
    error: Optional[BaseException] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None


class Subscription(Protocol):
    @property
    def closed(self) -> bool:
        """True once the subscription stopped delivering, by close() or by an error."""
        ...

    async def close(self) -> None:
        ...


class DocumentCollection(Protocol):
    """Remote collection of video documents with change subscriptions."""

    async def add(self, record: VideoRecord) -> str:
        """Write a new document and return its backend-assigned id."""
        ...

    async def update(self, video_id: str, fields: Mapping[str, Any]) -> None:
        """Write only the given document fields."""
        ...

    async def delete(self, video_id: str) -> bool:
        ...

    async def watch(self, listener: Callable[[CollectionEvent], None]) -> Subscription:
        """Start delivering snapshots (newest first) to listener."""
        ...


def build_storage_path(
    folder: str,
    filename: str,
    timestamp_ms: Optional[int] = None,
) -> str:
    """
    Build an object path like videos/1714557600000_clip.mp4

    Only the basename of filename is kept so client-supplied names can't
    escape the folder.
    """
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    basename = filename.replace("\\", "/").rsplit("/", 1)[-1] or "unnamed"
    return f"{folder}/{timestamp_ms}_{basename}"


def _validate_changes(changes: Mapping[str, Any]) -> dict[str, Any]:
    unknown = [key for key in changes if key not in UPDATABLE_FIELDS]
    if unknown:
        raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
    cleared = [key for key in REQUIRED_FIELDS if key in changes and changes[key] in (None, "")]
    if cleared:
        raise ValueError(f"Fields can't be empty: {', '.join(cleared)}")
    if "order" in changes and (isinstance(changes["order"], bool) or not isinstance(changes["order"], int)):
        raise ValueError("order must be an integer")
    if "created_at" in changes and not isinstance(changes["created_at"], str):
        raise ValueError("created_at must be an ISO timestamp string")
    return dict(changes)


# ---------------------------------------------------------------------------
# Base Store
# ---------------------------------------------------------------------------

class VideoStore:
    """
    Observable collection shared by all store variants.

    Subscribers get the current snapshot immediately and a fresh one after
    every change. A listener that raises is logged and skipped; it doesn't
    stop the others or the mutation that triggered it.
    """

    ordered_by_position = True

    def __init__(self) -> None:
        self._snapshot = StoreSnapshot(ordered_by_position=self.ordered_by_position)
        self._listeners: list[SnapshotListener] = []

    # -----------------------------------------------------------------------
    # Read side
    # -----------------------------------------------------------------------

    @property
    def snapshot(self) -> StoreSnapshot:
        return self._snapshot

    @property
    def videos(self) -> tuple[VideoRecord, ...]:
        return self._snapshot.videos

    @property
    def video_count(self) -> int:
        return self._snapshot.video_count

    @property
    def sorted_videos(self) -> tuple[VideoRecord, ...]:
        return self._snapshot.sorted_videos

    @property
    def loaded(self) -> bool:
        return self._snapshot.loaded

    @property
    def error(self) -> Optional[str]:
        return self._snapshot.error

    def get_by_id(self, video_id: str) -> Optional[VideoRecord]:
        return next((v for v in self._snapshot.videos if v.id == video_id), None)

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)
        self._notify_one(listener, self._snapshot)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # -----------------------------------------------------------------------
    # Operations (implemented by variants)
    # -----------------------------------------------------------------------

    async def load(self) -> None:
        raise NotImplementedError

    async def add(
        self,
        name: str,
        url: Optional[str] = None,
        thumbnail: Optional[str] = None,
        file: Optional[UploadedFile] = None,
        thumbnail_file: Optional[UploadedFile] = None,
    ) -> Any:
        raise NotImplementedError

    async def update(self, video_id: str, changes: Mapping[str, Any]) -> Any:
        raise NotImplementedError

    async def delete(self, video_id: str) -> bool:
        raise NotImplementedError

    async def reorder(self, from_index: int, to_index: int) -> tuple[VideoRecord, ...]:
        raise NotImplementedError

    async def close(self) -> None:
        self._listeners.clear()

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _publish(
        self,
        videos: Optional[Sequence[VideoRecord]] = None,
        loaded: Optional[bool] = None,
        error: Optional[str] = None,
    ) -> None:
        self._snapshot = StoreSnapshot(
            videos=tuple(videos) if videos is not None else self._snapshot.videos,
            loaded=self._snapshot.loaded if loaded is None else loaded,
            error=error,
            ordered_by_position=self.ordered_by_position,
        )
        for listener in list(self._listeners):
            self._notify_one(listener, self._snapshot)

    def _notify_one(self, listener: SnapshotListener, snapshot: StoreSnapshot) -> None:
        try:
            listener(snapshot)
        except Exception as e:
            logger.error(
                "Store listener failed",
                extra={"listener": repr(listener), "error": str(e)},
            )

    @staticmethod
    def _renumber(records: Sequence[VideoRecord]) -> list[VideoRecord]:
        """Reassign order to match sequence position."""
        return [
            record if record.order == position else record.with_changes(order=position)
            for position, record in enumerate(records)
        ]


# ---------------------------------------------------------------------------
# Local Store
# ---------------------------------------------------------------------------

class LocalVideoStore(VideoStore):
    """
    Store backed by local storage.

    With a seed source the static snapshot wins on load: a non-empty
    result replaces local storage, anything else (error, empty array)
    falls back to what local storage already has.

    Binary files go to the uploader when one is configured, otherwise
    they become `blob:` references held by the registry.
    """

    def __init__(
        self,
        persistence: RecordPersistence,
        seed_source: Optional[SeedSource] = None,
        uploader: Optional[FileUploader] = None,
        blobs: Optional[BlobRegistry] = None,
    ) -> None:
        super().__init__()
        self._persistence = persistence
        self._seed_source = seed_source
        self._uploader = uploader
        self._blobs = blobs if blobs is not None else BlobRegistry()

    @property
    def blobs(self) -> BlobRegistry:
        return self._blobs

    async def load(self) -> None:
        records: Optional[list[VideoRecord]] = None

        if self._seed_source is not None:
            records = await self._load_seed()
            if records:
                try:
                    self._persistence.save(records)
                except Exception as e:
                    # the seed is still usable without the local copy
                    logger.warning(
                        "Failed to cache seeded videos locally",
                        extra={"error": str(e)},
                    )

        if not records:
            records = self._persistence.load()

        logger.info(
            "Loaded videos",
            extra={"count": len(records), "seeded": self._seed_source is not None},
        )
        self._publish(videos=records, loaded=True)

    async def add(
        self,
        name: str,
        url: Optional[str] = None,
        thumbnail: Optional[str] = None,
        file: Optional[UploadedFile] = None,
        thumbnail_file: Optional[UploadedFile] = None,
    ) -> VideoRecord:
        """
        Create a record at the end of the collection.

        Files are turned into URLs before anything is persisted. If one of
        them fails, blobs created for this call are released, files already
        uploaded are deleted when the uploader can delete, and the error
        propagates with no record written.
        """
        if not url and file is None:
            raise ValueError("A video needs either a url or a file")

        created_blobs: list[str] = []
        uploaded_paths: list[str] = []
        try:
            if file is not None:
                url = await self._store_file(file, VIDEO_FOLDER, created_blobs, uploaded_paths)
            if thumbnail_file is not None:
                thumbnail = await self._store_file(
                    thumbnail_file, THUMBNAIL_FOLDER, created_blobs, uploaded_paths,
                )
        except Exception as e:
            await self._discard_files(created_blobs, uploaded_paths)
            logger.error(
                "Failed to store video files",
                extra={"video_name": name, "error": str(e)},
            )
            raise

        record = VideoRecord(
            id=generate_record_id(),
            name=name,
            url=url,
            thumbnail=thumbnail or None,
            created_at=utc_now_iso(),
            order=len(self.videos),
        )

        try:
            self._commit([*self.videos, record])
        except Exception:
            await self._discard_files(created_blobs, uploaded_paths)
            raise

        logger.info("Added video", extra={"video_id": record.id, "order": record.order})
        return record

    async def update(self, video_id: str, changes: Mapping[str, Any]) -> Optional[VideoRecord]:
        changes = _validate_changes(changes)

        records = list(self.videos)
        index = next((i for i, v in enumerate(records) if v.id == video_id), None)
        if index is None:
            logger.debug("Update skipped, unknown video", extra={"video_id": video_id})
            return None

        records[index] = records[index].with_changes(**changes)
        self._commit(records)

        logger.info(
            "Updated video",
            extra={"video_id": video_id, "fields": sorted(changes)},
        )
        return records[index]

    async def delete(self, video_id: str) -> bool:
        record = self.get_by_id(video_id)
        if record is None:
            logger.debug("Delete skipped, unknown video", extra={"video_id": video_id})
            return False

        remaining = sorted(
            (v for v in self.videos if v.id != video_id),
            key=lambda v: v.order,
        )
        self._commit(self._renumber(remaining))

        for blob_url in (record.url, record.thumbnail):
            if is_blob_url(blob_url):
                self._blobs.revoke(blob_url)

        logger.info("Deleted video", extra={"video_id": video_id})
        return True

    async def reorder(self, from_index: int, to_index: int) -> tuple[VideoRecord, ...]:
        """
        Move the video at from_index (in display order) to to_index.

        Every record's order is rewritten to its new position.
        """
        records = list(self.sorted_videos)
        count = len(records)
        for label, index in (("from_index", from_index), ("to_index", to_index)):
            if not 0 <= index < count:
                raise IndexError(f"{label} {index} out of range for {count} videos")

        item = records.pop(from_index)
        records.insert(to_index, item)
        records = self._renumber(records)
        self._commit(records)

        logger.info(
            "Reordered videos",
            extra={"from_index": from_index, "to_index": to_index},
        )
        return tuple(records)

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    async def _load_seed(self) -> Optional[list[VideoRecord]]:
        try:
            records = await self._seed_source.fetch_videos()
        except Exception as e:
            logger.warning(
                "Static config unavailable, using local storage",
                extra={"error": str(e)},
            )
            return None

        if not records:
            logger.debug("Static config empty, using local storage")
            return None

        return records

    async def _store_file(
        self,
        file: UploadedFile,
        folder: str,
        created_blobs: list[str],
        uploaded_paths: list[str],
    ) -> str:
        if self._uploader is None:
            blob_url = self._blobs.create(file)
            created_blobs.append(blob_url)
            return blob_url

        storage_path = build_storage_path(folder, file.filename)
        url = await self._uploader.upload_file(file.data, storage_path, file.content_type)
        uploaded_paths.append(storage_path)
        return url

    async def _discard_files(self, created_blobs: list[str], uploaded_paths: list[str]) -> None:
        for blob_url in created_blobs:
            self._blobs.revoke(blob_url)

        # the upload endpoint has no delete; its files stay behind
        delete_object = getattr(self._uploader, "delete_object", None)
        if delete_object is None:
            return
        for storage_path in uploaded_paths:
            try:
                await delete_object(storage_path)
            except Exception as e:
                logger.warning(
                    "Failed to delete uploaded file",
                    extra={"storage_path": storage_path, "error": str(e)},
                )

    def _commit(self, records: list[VideoRecord]) -> None:
        """Persist first; memory only changes if the write succeeded."""
        try:
            self._persistence.save(records)
        except Exception as e:
            logger.error("Failed to persist videos", extra={"error": str(e)})
            raise

        self._publish(videos=records, error=self.error)


# ---------------------------------------------------------------------------
# Remote Store
# ---------------------------------------------------------------------------

class RemoteVideoStore(VideoStore):
    """
    Store synchronized with a remote document collection.

    The subscription is the only writer of the in-memory collection:
    mutations go to the backend and return, and the next snapshot from
    the collection brings the authoritative state. Order is whatever the
    collection delivers (newest first); reorder isn't supported.
    """

    ordered_by_position = False

    def __init__(
        self,
        collection: DocumentCollection,
        storage: ObjectStore,
    ) -> None:
        super().__init__()
        self._collection = collection
        self._storage = storage
        self._subscription: Optional[Subscription] = None

    async def load(self) -> None:
        """
        Subscribe to the collection. A live subscription is kept; one that
        ended on an error is dropped and replaced.
        """
        if self._subscription is not None:
            if not self._subscription.closed:
                return
            await self._subscription.close()
            self._subscription = None
            logger.info("Restarting ended video subscription")
        self._subscription = await self._collection.watch(self._on_collection_event)

    async def add(
        self,
        name: str,
        url: Optional[str] = None,
        thumbnail: Optional[str] = None,
        file: Optional[UploadedFile] = None,
        thumbnail_file: Optional[UploadedFile] = None,
    ) -> bool:
        """
        Upload files, then write the document.

        Returns True once the write was accepted. The new record shows up
        in the collection when the subscription delivers it.
        """
        if not url and file is None:
            raise ValueError("A video needs either a url or a file")

        uploaded_paths: list[str] = []
        storage_path: Optional[str] = None
        thumbnail_storage_path: Optional[str] = None

        try:
            if file is not None:
                storage_path = build_storage_path(VIDEO_FOLDER, file.filename)
                url = await self._storage.upload_file(file.data, storage_path, file.content_type)
                uploaded_paths.append(storage_path)

            if thumbnail_file is not None:
                thumbnail_storage_path = build_storage_path(THUMBNAIL_FOLDER, thumbnail_file.filename)
                thumbnail = await self._storage.upload_file(
                    thumbnail_file.data,
                    thumbnail_storage_path,
                    thumbnail_file.content_type,
                )
                uploaded_paths.append(thumbnail_storage_path)

            record = VideoRecord(
                id="pending",
                name=name,
                url=url,
                thumbnail=thumbnail or None,
                created_at=utc_now_iso(),
                order=len(self.videos),
                storage_path=storage_path,
                thumbnail_storage_path=thumbnail_storage_path,
            )
            video_id = await self._collection.add(record)

        except Exception as e:
            logger.error(
                "Failed to add video",
                extra={"video_name": name, "error": str(e)},
            )
            await self._discard_objects(uploaded_paths)
            raise

        logger.info("Added video document", extra={"video_id": video_id})
        return True

    async def update(self, video_id: str, changes: Mapping[str, Any]) -> bool:
        changes = _validate_changes(changes)
        if self.get_by_id(video_id) is None:
            logger.debug("Update skipped, unknown video", extra={"video_id": video_id})
            return False

        fields = {UPDATABLE_FIELDS[key]: value for key, value in changes.items()}
        try:
            await self._collection.update(video_id, fields)
        except Exception as e:
            logger.error(
                "Failed to update video document",
                extra={"video_id": video_id, "error": str(e)},
            )
            raise

        logger.info("Updated video document", extra={"video_id": video_id, "fields": sorted(fields)})
        return True

    async def delete(self, video_id: str) -> bool:
        """
        Delete the document, then its stored files.

        File cleanup is best effort: the record is already gone, so a
        failure there is only logged.
        """
        record = self.get_by_id(video_id)
        if record is None:
            logger.debug("Delete skipped, unknown video", extra={"video_id": video_id})
            return False

        try:
            await self._collection.delete(video_id)
        except Exception as e:
            logger.error(
                "Failed to delete video document",
                extra={"video_id": video_id, "error": str(e)},
            )
            raise

        paths = [p for p in (record.storage_path, record.thumbnail_storage_path) if p]
        await self._discard_objects(paths)

        logger.info("Deleted video document", extra={"video_id": video_id})
        return True

    async def reorder(self, from_index: int, to_index: int) -> tuple[VideoRecord, ...]:
        raise ReorderNotSupportedError(
            "Remote videos are ordered by creation time and can't be reordered"
        )

    async def close(self) -> None:
        if self._subscription is not None:
            await self._subscription.close()
            self._subscription = None
        await super().close()

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _on_collection_event(self, event: CollectionEvent) -> None:
        if event.is_error:
            message = f"Failed to load videos: {event.error}"
            logger.error("Video subscription failed", extra={"error": str(event.error)})
            self._publish(loaded=True, error=message)
            return

        self._publish(videos=event.records or (), loaded=True, error=None)
        logger.debug("Applied collection snapshot", extra={"count": self.video_count})

    async def _discard_objects(self, storage_paths: Sequence[str]) -> None:
        for storage_path in storage_paths:
            try:
                await self._storage.delete_object(storage_path)
            except Exception as e:
                logger.warning(
                    "Failed to delete stored object",
                    extra={"storage_path": storage_path, "error": str(e)},
                )
