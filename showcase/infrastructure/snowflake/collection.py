"""
Async document-collection adapter over VideoDocumentRepository.

The repository is synchronous (snowflake-connector-python blocks), so
every call runs in a worker thread. Successful writes poke the open
subscriptions so the store sees its own changes without waiting for
the next poll.
"""

import asyncio
import logging
from typing import Any, Callable, Mapping

from ...core.videos.models import VideoRecord
from ...core.videos.store import CollectionEvent
from .repositories.videos import VideoDocumentRepository
from .watcher import DEFAULT_POLL_INTERVAL_SECONDS, CollectionWatcher

logger = logging.getLogger(__name__)


class SnowflakeVideoCollection:

    def __init__(
        self,
        repository: VideoDocumentRepository,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ) -> None:
        self._repository = repository
        self._poll_interval = poll_interval
        self._watchers: list[CollectionWatcher] = []

    async def add(self, record: VideoRecord) -> str:
        document_id = await asyncio.to_thread(self._repository.add_document, record)
        self._poke()
        return document_id

    async def update(self, video_id: str, fields: Mapping[str, Any]) -> None:
        await asyncio.to_thread(self._repository.update_fields, video_id, fields)
        self._poke()

    async def delete(self, video_id: str) -> bool:
        deleted = await asyncio.to_thread(self._repository.delete_document, video_id)
        self._poke()
        return deleted

    async def watch(self, listener: Callable[[CollectionEvent], None]) -> CollectionWatcher:
        watcher = CollectionWatcher(
            fetch=self._repository.list_documents,
            listener=listener,
            poll_interval=self._poll_interval,
        )
        self._watchers.append(watcher)
        await watcher.start()

        logger.info(
            "Subscribed to video collection",
            extra={"poll_interval": self._poll_interval},
        )
        return watcher

    def _poke(self) -> None:
        self._watchers = [w for w in self._watchers if not w.closed]
        for watcher in self._watchers:
            watcher.poke()
