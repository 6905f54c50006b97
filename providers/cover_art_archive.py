"""Cover Art Archive Provider - resolves a release MBID to its front cover URL"""

from typing import Optional

from .base import MetadataProvider
from logging_config import get_logger

logger = get_logger(__name__)


class CoverArtArchiveProvider(MetadataProvider):
    HEADERS = dict(MetadataProvider.HEADERS, Accept="image/*")

    def __init__(self):
        super().__init__(provider_name="coverartarchive")

    def _resolve_front(self, release_mbid: str) -> Optional[str]:
        # The archive redirects to the real image; the final URL is the artwork link.
        # stream=True so the image body itself is never downloaded.
        response = self._get(
            f"{self.base_url}/release/{release_mbid}/front",
            stream=True,
            allow_redirects=True
        )
        try:
            return response.url or None
        finally:
            response.close()

    async def get_front_cover(self, release_mbid: Optional[str]) -> Optional[str]:
        if not self.enabled or not release_mbid:
            return None
        url = await self._call(self._resolve_front, release_mbid)
        if url:
            logger.debug(f"Cover Art Archive: {release_mbid} -> {url}")
        return url
