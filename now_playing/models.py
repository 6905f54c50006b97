"""
Data model for the now-playing pipeline.

TrackIdentity is what the listening-history provider reports. AggregationResult
is the immutable unit pushed to clients; every push is a new value.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

NO_TRACK_MESSAGE = "No track currently playing"


class Status(str, Enum):
    LOADING = "loading"
    PARTIAL = "partial"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class TrackIdentity:
    track_name: str
    artist_name: str
    release_name: Optional[str] = None
    mbid: Optional[str] = None
    recording_mbid: Optional[str] = None
    release_mbid: Optional[str] = None
    artist_mbids: Tuple[str, ...] = ()

    @classmethod
    def from_listen(cls, listen: Dict[str, Any]) -> "TrackIdentity":
        """
        Build an identity from one ListenBrainz listen.

        Raises:
            ValueError: if the listen has no usable track_metadata
        """
        metadata = listen.get("track_metadata") if isinstance(listen, dict) else None
        if not isinstance(metadata, dict):
            raise ValueError("listen has no track_metadata")

        track_name = metadata.get("track_name")
        artist_name = metadata.get("artist_name")
        if not track_name or not artist_name:
            raise ValueError("listen is missing track_name or artist_name")

        info = metadata.get("additional_info") or {}
        if not isinstance(info, dict):
            info = {}

        return cls(
            track_name=track_name,
            artist_name=artist_name,
            release_name=metadata.get("release_name") or None,
            mbid=metadata.get("mbid") or None,
            recording_mbid=info.get("recording_mbid") or None,
            release_mbid=info.get("release_mbid") or None,
            artist_mbids=tuple(info.get("artist_mbids") or ()),
        )

    @property
    def display_mbid(self) -> Optional[str]:
        """MBID shown to clients: the release if known, else the listen's own"""
        return self.release_mbid or self.mbid


@dataclass(frozen=True)
class AggregationResult:
    status: Status
    track_name: Optional[str] = None
    artist_name: Optional[str] = None
    release_name: Optional[str] = None
    mbid: Optional[str] = None
    cover_art: Optional[str] = None
    enrichment: Optional[Dict[str, Any]] = field(default=None, compare=False)
    message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (Status.COMPLETE, Status.ERROR)

    # --- Constructors used by the aggregator ---

    @classmethod
    def loading(cls, message: str) -> "AggregationResult":
        return cls(status=Status.LOADING, message=message)

    @classmethod
    def partial(cls, track: TrackIdentity, message: str) -> "AggregationResult":
        return cls(
            status=Status.PARTIAL,
            track_name=track.track_name,
            artist_name=track.artist_name,
            release_name=track.release_name,
            # Release MBID only; the listen's own mbid first appears in complete
            mbid=track.release_mbid,
            message=message,
        )

    @classmethod
    def complete(
        cls,
        track: TrackIdentity,
        cover_art: Optional[str] = None,
        enrichment: Optional[Dict[str, Any]] = None,
    ) -> "AggregationResult":
        return cls(
            status=Status.COMPLETE,
            track_name=track.track_name,
            artist_name=track.artist_name,
            release_name=track.release_name,
            mbid=track.display_mbid,
            cover_art=cover_art,
            enrichment=enrichment,
            message="Complete",
        )

    @classmethod
    def nothing_playing(cls) -> "AggregationResult":
        return cls(status=Status.COMPLETE, message=NO_TRACK_MESSAGE)

    @classmethod
    def error(cls, message: str) -> "AggregationResult":
        return cls(status=Status.ERROR, message=message)

    def to_payload(self) -> Dict[str, Any]:
        """Wire shape of a statusUpdate event. Unset fields are left out."""
        payload = {
            "status": self.status.value,
            "track_name": self.track_name,
            "artist_name": self.artist_name,
            "release_name": self.release_name,
            "mbid": self.mbid,
            "coverArt": self.cover_art,
            "enrichment": self.enrichment,
            "message": self.message,
        }
        return {key: value for key, value in payload.items() if value is not None}
