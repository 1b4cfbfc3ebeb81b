"""
Client for the static videos config file.

The showcase can ship a `/videos-config.json` next to the frontend. When
it's reachable and non-empty it seeds the store; otherwise the store
falls back to local storage. This client only fetches and validates; the
fallback decision belongs to the store.
"""

import asyncio
import logging

import requests

from ...core.videos.models import VideoRecord

logger = logging.getLogger(__name__)

CONFIG_PATH = "/videos-config.json"


class ConfigFetchError(Exception):
    """Raised when the static config can't be fetched or parsed."""
    pass


class StaticConfigClient:
    """
    Fetches the initial video list over HTTP.

    `requests` is synchronous, so the async entry point runs it in a
    worker thread to keep the event loop free.
    """

    def __init__(self, url: str, timeout: float = 10.0) -> None:
        self._url = url
        self._timeout = timeout

    @property
    def url(self) -> str:
        return self._url

    async def fetch_videos(self) -> list[VideoRecord]:
        return await asyncio.to_thread(self.fetch_videos_sync)

    def fetch_videos_sync(self) -> list[VideoRecord]:
        try:
            response = requests.get(self._url, timeout=self._timeout)
        except requests.RequestException as e:
            raise ConfigFetchError(f"Request failed: {e}") from e

        if not response.ok:
            raise ConfigFetchError(f"Unexpected status {response.status_code} from {self._url}")

        try:
            documents = response.json()
        except ValueError as e:
            raise ConfigFetchError(f"Invalid JSON: {e}") from e

        if not isinstance(documents, list):
            raise ConfigFetchError("Config must be a JSON array of videos")

        try:
            records = [VideoRecord.from_document(doc) for doc in documents]
        except ValueError as e:
            raise ConfigFetchError(f"Invalid video entry: {e}") from e

        logger.info(
            "Fetched static video config",
            extra={"url": self._url, "count": len(records)},
        )
        return records
