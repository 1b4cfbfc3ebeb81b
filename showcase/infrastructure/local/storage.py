"""
File-backed local storage.

Mirrors browser localStorage: a flat map of string keys to string values,
kept in a single JSON file. The video list lives under one key as a
JSON-serialized array, exactly like the frontend used to store it.

Malformed data is never fatal. A corrupted file or a key holding invalid
JSON is logged and treated as empty, since there's nothing better to
recover it from.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Sequence

from ...core.videos.models import VideoRecord

logger = logging.getLogger(__name__)

VIDEOS_STORAGE_KEY = "showcase-videos"


class JsonFileStorage:
    """
    Key/value string storage persisted to a JSON file.

    Every write rewrites the whole file through a temp file and an atomic
    rename, so a crash mid-write leaves the previous contents intact.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def get_item(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._read_all()
        items[key] = value
        self._write_all(items)

    def remove_item(self, key: str) -> None:
        items = self._read_all()
        if items.pop(key, None) is not None:
            self._write_all(items)

    def _read_all(self) -> dict[str, str]:
        if not self._path.exists():
            return {}

        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(
                "Local storage file unreadable, treating as empty",
                extra={"path": str(self._path), "error": str(e)},
            )
            return {}

        if not isinstance(data, dict):
            logger.warning(
                "Local storage file is not an object, treating as empty",
                extra={"path": str(self._path)},
            )
            return {}

        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, items: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(
            dir=self._path.parent,
            prefix=f".{self._path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(items, f)
            os.replace(tmp_path, self._path)
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


class LocalVideoPersistence:
    """Reads and writes the full video list under a single storage key."""

    def __init__(
        self,
        storage: JsonFileStorage,
        key: str = VIDEOS_STORAGE_KEY,
    ) -> None:
        self._storage = storage
        self._key = key

    def load(self) -> list[VideoRecord]:
        raw = self._storage.get_item(self._key)
        if not raw:
            return []

        try:
            documents = json.loads(raw)
            if not isinstance(documents, list):
                raise ValueError("stored videos are not a list")
            return [VideoRecord.from_document(doc) for doc in documents]
        except ValueError as e:
            # JSONDecodeError is a ValueError too
            logger.warning(
                "Discarding malformed stored videos",
                extra={"key": self._key, "error": str(e)},
            )
            return []

    def save(self, records: Sequence[VideoRecord]) -> None:
        payload = json.dumps([record.to_document() for record in records])
        self._storage.set_item(self._key, payload)

        logger.debug(
            "Saved videos to local storage",
            extra={"key": self._key, "count": len(records)},
        )
