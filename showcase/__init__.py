"""
Video Showcase - a curated list of videos with swappable persistence.

This package contains the complete application:
- core: Framework-agnostic records and store logic
- infrastructure: Local storage, static config, upload, Snowflake and R2 clients
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
