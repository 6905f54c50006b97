"""Pytest configuration and shared fixtures"""
import asyncio
import os
import sys
import tempfile
from pathlib import Path

# Keep test runs away from the real settings.json and logs/ (must happen before config is imported)
_TMP_DIR = Path(tempfile.mkdtemp(prefix="trackrelay-tests-"))
os.environ["TRACKRELAY_SETTINGS_FILE"] = str(_TMP_DIR / "settings.json")
os.environ["TRACKRELAY_LOGS_DIR"] = str(_TMP_DIR / "logs")

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from now_playing.cache import ResultCache
from now_playing.models import TrackIdentity


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeHistory:
    def __init__(self, track=None, error=None, delay=0.0):
        self.track = track
        self.error = error
        self.delay = delay
        self.calls = 0
        self.raw = {"payload": {"count": 0, "listens": []}}

    async def get_current_track(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.track

    async def get_playing_now(self):
        if self.error is not None:
            raise self.error
        return self.raw


class FakeEnrichment:
    def __init__(self, by_mbid=None, by_name=None, enabled=True, mbid_delay=0.0, name_delay=0.0):
        self.by_mbid = by_mbid
        self.by_name = by_name
        self.enabled = enabled
        self.mbid_delay = mbid_delay
        self.name_delay = name_delay
        self.calls = []

    async def _answer(self, value, delay=0.0):
        if delay:
            await asyncio.sleep(delay)
        if isinstance(value, Exception):
            raise value
        return value

    async def get_track_info_by_mbid(self, mbid):
        self.calls.append(("mbid", mbid))
        return await self._answer(self.by_mbid, self.mbid_delay)

    async def get_track_info(self, artist, track):
        self.calls.append(("name", artist, track))
        return await self._answer(self.by_name, self.name_delay)


class FakeArtwork:
    def __init__(self, covers=None, error=None):
        self.covers = covers or {}
        self.error = error
        self.calls = []

    async def get_front_cover(self, release_mbid):
        self.calls.append(release_mbid)
        if not release_mbid:
            return None
        if self.error is not None:
            raise self.error
        return self.covers.get(release_mbid)


class FakeCatalog:
    def __init__(self, release_id=None):
        self.release_id = release_id
        self.calls = []

    async def search_release_id(self, artist, release):
        self.calls.append((artist, release))
        return self.release_id


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ResultCache(ttl=20.0, clock=clock)


@pytest.fixture
def song_a():
    return TrackIdentity(
        track_name="Song A",
        artist_name="Artist B",
        release_name="Album C",
        recording_mbid="abc",
    )


@pytest.fixture
def listen_payload():
    """A ListenBrainz playing-now document with one listen"""
    return {
        "payload": {
            "count": 1,
            "playing_now": True,
            "user_id": "p0ntus",
            "listens": [{
                "playing_now": True,
                "track_metadata": {
                    "track_name": "Song A",
                    "artist_name": "Artist B",
                    "release_name": "Album C",
                    "additional_info": {
                        "recording_mbid": "abc",
                        "release_mbid": "rel-1",
                        "artist_mbids": ["art-1"],
                    },
                },
            }],
        }
    }
