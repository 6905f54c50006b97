"""
Last.fm Provider - enrichment metadata and album art.

Requires LASTFM_API_KEY (environment only). Without it the provider is
disabled and every lookup returns None without touching the network.
"""

import re
from typing import Any, Dict, Optional

from .base import MetadataProvider
from config import get_provider_config
from logging_config import get_logger
from now_playing.errors import ProviderUnavailable

logger = get_logger(__name__)

# Last.fm serves this placeholder hash when an album has no real cover
_PLACEHOLDER_IMAGE = re.compile(r"2a96cbd8b46e442fc41c2b86b821562f")


class LastFmProvider(MetadataProvider):
    # Preferred image sizes, best first; anything else falls back to the last image listed
    SIZE_PREFERENCE = ("extralarge", "large")

    def __init__(self, api_key: Optional[str] = None):
        super().__init__(provider_name="lastfm")

        config = get_provider_config("lastfm")
        self.api_key = api_key if api_key is not None else config.get("api_key", "")

        if self.enabled and not self.api_key:
            # Missing key is optional, not an error: the pipeline falls back to the artwork archive
            self.enabled = False
            logger.info("Last.fm enrichment disabled (LASTFM_API_KEY not set)")

    @property
    def api_url(self) -> str:
        return f"{self.base_url}/2.0/"

    def _fetch_track_info(self, params: Dict[str, str]) -> Optional[Dict[str, Any]]:
        query = dict(params, api_key=self.api_key, format="json")
        data = self._get_json(self.api_url, params=query)

        if not isinstance(data, dict):
            raise ProviderUnavailable(self.name, reason="response is not an object")

        # Last.fm reports lookup failures with HTTP 200 and an error code in the body
        if "error" in data:
            logger.debug(f"Last.fm {params.get('method')} error {data.get('error')}: {data.get('message', 'Unknown error')}")
            return None

        if not data.get("track") and not data.get("album"):
            return None
        return data

    async def get_track_info_by_mbid(self, mbid: str) -> Optional[Dict[str, Any]]:
        if not self.enabled or not mbid:
            return None
        return await self._call(self._fetch_track_info, {"method": "track.getInfoByMbid", "mbid": mbid})

    async def get_track_info(self, artist: str, track: str) -> Optional[Dict[str, Any]]:
        """Look up by name pair, letting Last.fm correct misspelled artist/track names"""
        if not self.enabled or not artist or not track:
            return None
        return await self._call(self._fetch_track_info, {
            "method": "track.getInfo",
            "artist": artist,
            "track": track,
            "autocorrect": "1",
        })

    @classmethod
    def extract_cover_art(cls, data: Optional[Dict[str, Any]]) -> Optional[str]:
        """
        Pick the album image from a track.getInfo style response.

        Looks at a top-level 'album' first, then 'track.album'. Size preference
        is extralarge > large > last available; blank URLs are skipped.
        """
        if not isinstance(data, dict):
            return None

        album = data.get("album")
        if not isinstance(album, dict) or not album.get("image"):
            track = data.get("track") if isinstance(data.get("track"), dict) else {}
            album = track.get("album")
        if not isinstance(album, dict):
            return None

        images = [img for img in album.get("image") or [] if isinstance(img, dict)]
        if not images:
            return None

        candidates = [img for size in cls.SIZE_PREFERENCE for img in images if img.get("size") == size]
        candidates.append(images[-1])

        for img in candidates:
            url = (img.get("#text") or "").strip()
            if url and not _PLACEHOLDER_IMAGE.search(url):
                return url
        return None
