"""
Static `/videos-config.json` source used to seed the local store.
"""

from .client import CONFIG_PATH, ConfigFetchError, StaticConfigClient

__all__ = ["CONFIG_PATH", "ConfigFetchError", "StaticConfigClient"]
