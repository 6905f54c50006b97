"""ListenBrainz Provider - the listening-history source of 'what is playing now'"""

from typing import Any, Dict, Optional

from .base import MetadataProvider
from config import get_provider_config
from logging_config import get_logger
from now_playing.errors import ProviderUnavailable
from now_playing.models import TrackIdentity

logger = get_logger(__name__)


class ListenBrainzProvider(MetadataProvider):
    def __init__(self, user: Optional[str] = None, token: Optional[str] = None):
        super().__init__(provider_name="listenbrainz")

        config = get_provider_config("listenbrainz")
        self.user = user or config.get("user")
        self.token = token if token is not None else config.get("token", "")

    @property
    def playing_now_url(self) -> str:
        return f"{self.base_url}/1/user/{self.user}/playing-now"

    def _fetch_playing_now(self) -> Dict[str, Any]:
        headers = {"Authorization": f"Token {self.token}"} if self.token else {}
        data = self._get_json(self.playing_now_url, headers=headers)

        if not isinstance(data, dict) or not isinstance(data.get("payload"), dict):
            raise ProviderUnavailable(self.name, reason="response has no payload object")
        return data

    async def get_playing_now(self) -> Dict[str, Any]:
        """Raw playing-now document, as served to /api/now-playing"""
        return await self._call(self._fetch_playing_now)

    async def get_current_track(self) -> Optional[TrackIdentity]:
        """
        Get the track the user is listening to right now.

        Returns:
            TrackIdentity of the first listen, or None when nothing is playing

        Raises:
            ProviderUnavailable: on any failure, including timeouts and malformed listens
        """
        data = await self.get_playing_now()
        payload = data["payload"]
        listens = payload.get("listens") or []

        if payload.get("count") == 0 or not listens:
            logger.debug(f"ListenBrainz: nothing playing for {self.user}")
            return None

        try:
            track = TrackIdentity.from_listen(listens[0])
        except ValueError as e:
            raise ProviderUnavailable(self.name, reason=f"malformed listen: {e}")

        logger.debug(f"ListenBrainz: {track.artist_name} - {track.track_name}")
        return track
