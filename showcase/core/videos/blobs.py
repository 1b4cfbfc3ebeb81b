"""
In-process registry for transient `blob:` references.

When no uploader is configured, files handed to the local store are kept
in memory and addressed by a `blob:<uuid>` URL, the same way a browser
hands out object URLs. Those references only live as long as the process
and must be released when the record that points at them goes away.
"""

import logging
from typing import Optional
from uuid import uuid4

from .models import UploadedFile

logger = logging.getLogger(__name__)

BLOB_SCHEME = "blob:"


def is_blob_url(url: Optional[str]) -> bool:
    return bool(url) and url.startswith(BLOB_SCHEME)


class BlobRegistry:
    """Maps `blob:` URLs to in-memory file contents."""

    def __init__(self) -> None:
        self._blobs: dict[str, UploadedFile] = {}

    def create(self, file: UploadedFile) -> str:
        url = f"{BLOB_SCHEME}{uuid4()}"
        self._blobs[url] = file

        logger.debug(
            "Created blob reference",
            extra={"url": url, "blob_filename": file.filename, "size_bytes": file.size},
        )

        return url

    def get(self, url: str) -> Optional[UploadedFile]:
        return self._blobs.get(url)

    def revoke(self, url: Optional[str]) -> bool:
        """Release a blob reference. Returns False if it wasn't registered."""
        if not is_blob_url(url) or url not in self._blobs:
            return False

        del self._blobs[url]
        logger.debug("Revoked blob reference", extra={"url": url})
        return True

    def __contains__(self, url: object) -> bool:
        return url in self._blobs

    def __len__(self) -> int:
        return len(self._blobs)
