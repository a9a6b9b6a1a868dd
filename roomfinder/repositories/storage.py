"""
Object storage access for listing images.
"""

import logging
from typing import Optional

from supabase import AsyncClient

from roomfinder.config import settings
from roomfinder.utils.exceptions import BackendError

logger = logging.getLogger(__name__)


class ImageStorage:
    """Uploads into the listing image bucket and resolves public URLs."""

    def __init__(self, client: AsyncClient, bucket: Optional[str] = None):
        self.client = client
        self.bucket = bucket or settings.storage_bucket

    def _bucket(self):
        return self.client.storage.from_(self.bucket)

    async def upload(self, name: str, content: bytes, content_type: str) -> None:
        """
        Write an object under `name`.

        No dedup and no retry: a second upload under the same name fails
        the way the backend decides.

        Raises:
            BackendError: If the upload fails
        """
        try:
            await self._bucket().upload(name, content, {"content-type": content_type})
        except Exception as e:
            logger.error(f"Failed to upload {name} to bucket {self.bucket}: {e}")
            raise BackendError(f"upload image {name}", str(e))
        logger.debug(f"Uploaded {name} ({len(content)} bytes) to bucket {self.bucket}")

    async def public_url(self, name: str) -> str:
        try:
            url = await self._bucket().get_public_url(name)
        except Exception as e:
            logger.error(f"Failed to resolve public URL for {name}: {e}")
            raise BackendError(f"resolve public URL for {name}", str(e))
        return url.rstrip("?")
