"""
Local persistence: a JSON file standing in for browser local storage.
"""

from .storage import VIDEOS_STORAGE_KEY, JsonFileStorage, LocalVideoPersistence

__all__ = ["VIDEOS_STORAGE_KEY", "JsonFileStorage", "LocalVideoPersistence"]
