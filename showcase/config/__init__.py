"""
Showcase settings (pydantic-settings, environment driven).
"""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
