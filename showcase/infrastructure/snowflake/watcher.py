"""
Change subscription over the video collection.

Snowflake has no push notifications, so the subscription polls: it
re-reads the ordered collection on an interval and delivers a full
snapshot whenever the result differs from the last one delivered.
Writers in this process can poke the watcher to skip the wait, which
keeps the UI feeling live after its own changes.

A failed read ends the subscription with a single error event. There is
no retry; reloading the store starts a new subscription.
"""

import asyncio
import logging
from typing import Callable, Optional

from ...core.videos.models import VideoRecord
from ...core.videos.store import CollectionEvent

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 2.0


class CollectionWatcher:
    """
    Cancellable polling subscription.

    Snapshots and the terminal error travel through the same listener as
    CollectionEvent values.
    """

    def __init__(
        self,
        fetch: Callable[[], list[VideoRecord]],
        listener: Callable[[CollectionEvent], None],
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ) -> None:
        self._fetch = fetch
        self._listener = listener
        self._poll_interval = poll_interval
        self._last: Optional[tuple[VideoRecord, ...]] = None
        self._task: Optional[asyncio.Task] = None
        self._wake = asyncio.Event()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self) -> None:
        """Deliver the first snapshot, then keep polling in the background."""
        await self.poll_once()
        if not self._closed:
            self._task = asyncio.create_task(self._run())

    async def poll_once(self) -> bool:
        """
        Read the collection now. Returns True if a new snapshot was delivered.
        """
        if self._closed:
            return False

        try:
            records = await asyncio.to_thread(self._fetch)
        except Exception as e:
            logger.error("Collection poll failed, ending subscription", extra={"error": str(e)})
            self._closed = True
            self._emit(CollectionEvent(error=e))
            return False

        snapshot = tuple(records)
        if snapshot == self._last:
            return False

        self._last = snapshot
        self._emit(CollectionEvent(records=snapshot))
        return True

    def poke(self) -> None:
        """Ask for a poll as soon as possible instead of after the interval."""
        self._wake.set()

    async def close(self) -> None:
        self._closed = True
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.debug("Collection subscription closed")

    async def _run(self) -> None:
        while not self._closed:
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self._poll_interval)
            except asyncio.TimeoutError:
                pass
            self._wake.clear()
            await self.poll_once()

    def _emit(self, event: CollectionEvent) -> None:
        try:
            self._listener(event)
        except Exception as e:
            logger.error("Collection listener failed", extra={"error": str(e)})
