"""
Client for the local `/api/upload` file-save endpoint.
"""

from .client import UploadEndpointClient, UploadError

__all__ = ["UploadEndpointClient", "UploadError"]
