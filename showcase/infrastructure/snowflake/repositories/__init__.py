"""
Repository pattern implementations for Snowflake.

Repositories translate between domain records and database representations.
"""

from .videos import VideoDocumentRepository

__all__ = ["VideoDocumentRepository"]
