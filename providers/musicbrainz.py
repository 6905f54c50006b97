"""MusicBrainz Provider - release catalog search used to find a release MBID by name"""

from typing import Optional

from .base import MetadataProvider
from logging_config import get_logger
from now_playing.errors import ProviderUnavailable

logger = get_logger(__name__)


def _quote(term: str) -> str:
    """Quote a value for a Lucene field query"""
    escaped = term.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class MusicBrainzProvider(MetadataProvider):
    def __init__(self):
        super().__init__(provider_name="musicbrainz")

    @property
    def search_url(self) -> str:
        return f"{self.base_url}/ws/2/release/"

    def _search_release(self, artist: str, release: str) -> Optional[str]:
        params = {
            "query": f"artist:{_quote(artist)} AND release:{_quote(release)}",
            "fmt": "json",
            "limit": 1,
        }
        data = self._get_json(self.search_url, params=params)
        if not isinstance(data, dict):
            raise ProviderUnavailable(self.name, reason="response is not an object")

        releases = data.get("releases") or []
        if not releases or not isinstance(releases[0], dict):
            logger.debug(f"MusicBrainz: no release found for {artist} - {release}")
            return None
        return releases[0].get("id") or None

    async def search_release_id(self, artist: Optional[str], release: Optional[str]) -> Optional[str]:
        """Best-matching release MBID for (artist, release name), or None"""
        if not self.enabled or not artist or not release:
            return None
        return await self._call(self._search_release, artist, release)
