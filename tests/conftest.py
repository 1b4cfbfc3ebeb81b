"""
Shared fixtures and in-memory fakes.

Tests run against real local objects (JSON file storage in tmp_path, the
mock Snowflake connection, the mock storage client) wherever practical.
The fakes below only exist to force failures or to stand in for HTTP.
"""

import asyncio
from typing import Optional

import pytest

from showcase.core.videos.models import UploadedFile, VideoRecord
from showcase.infrastructure.local.storage import JsonFileStorage, LocalVideoPersistence
from showcase.infrastructure.storage.client import MockStorageClient, StorageError


def run(coro):
    """Drive a coroutine to completion from a sync test."""
    return asyncio.run(coro)


class StaticSeed:
    """Seed source returning a fixed list, or raising."""

    def __init__(self, records=None, error: Optional[Exception] = None) -> None:
        self.records = records or []
        self.error = error
        self.calls = 0

    async def fetch_videos(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.records)


class FailingPersistence(LocalVideoPersistence):
    """Local persistence whose writes fail once `fail` is set."""

    def __init__(self, storage: JsonFileStorage) -> None:
        super().__init__(storage)
        self.fail = False

    def save(self, records) -> None:
        if self.fail:
            raise OSError("disk full")
        super().save(records)


class FlakyStorageClient(MockStorageClient):
    """Mock storage that rejects uploads whose path starts with a prefix."""

    def __init__(self, fail_prefix: str) -> None:
        super().__init__()
        self.fail_prefix = fail_prefix

    async def upload_file(self, data, storage_path, content_type=None):
        if storage_path.startswith(self.fail_prefix):
            raise StorageError(f"Upload failed: {storage_path}")
        return await super().upload_file(data, storage_path, content_type)


@pytest.fixture
def storage_file(tmp_path):
    return tmp_path / "local-storage.json"


@pytest.fixture
def persistence(storage_file) -> LocalVideoPersistence:
    return LocalVideoPersistence(JsonFileStorage(storage_file))


@pytest.fixture
def sample_records() -> list[VideoRecord]:
    return [
        VideoRecord(
            id="1714557600000",
            name="Launch trailer",
            url="/videos/launch.mp4",
            thumbnail="/thumbnails/launch.jpg",
            created_at="2024-05-01T10:00:00.000Z",
            order=0,
        ),
        VideoRecord(
            id="1714557600001",
            name="Behind the scenes",
            url="/videos/bts.mp4",
            created_at="2024-05-01T10:05:00.000Z",
            order=1,
        ),
    ]


@pytest.fixture
def video_file() -> UploadedFile:
    return UploadedFile(filename="clip.mp4", data=b"\x00\x00\x00\x18ftypmp42", content_type="video/mp4")


@pytest.fixture
def thumbnail_file() -> UploadedFile:
    return UploadedFile(filename="clip.jpg", data=b"\xff\xd8\xff\xe0", content_type="image/jpeg")
