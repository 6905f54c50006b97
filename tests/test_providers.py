"""
Provider tests with the HTTP session mocked out.
No network access: every test replaces provider.session.get.
"""
from unittest.mock import Mock

import pytest
import requests

from now_playing.errors import ProviderTimeout, ProviderUnavailable
from providers import (
    CoverArtArchiveProvider,
    LastFmProvider,
    ListenBrainzProvider,
    MusicBrainzProvider,
)


def make_response(json_data=None, status=200, url=None, json_error=False):
    response = Mock()
    response.ok = 200 <= status < 300
    response.status_code = status
    response.url = url
    if json_error:
        response.json.side_effect = ValueError("not json")
    else:
        response.json.return_value = json_data
    return response


# --- ListenBrainz ---

async def test_listenbrainz_current_track(listen_payload):
    provider = ListenBrainzProvider(user="p0ntus", token="secret")
    provider.session.get = Mock(return_value=make_response(listen_payload))

    track = await provider.get_current_track()

    assert track.track_name == "Song A"
    assert track.recording_mbid == "abc"
    url = provider.session.get.call_args[0][0]
    assert url == "https://api.listenbrainz.org/1/user/p0ntus/playing-now"
    assert provider.session.get.call_args[1]["headers"] == {"Authorization": "Token secret"}


async def test_listenbrainz_without_token_sends_no_auth_header(listen_payload):
    provider = ListenBrainzProvider(user="p0ntus", token="")
    provider.session.get = Mock(return_value=make_response(listen_payload))

    await provider.get_current_track()
    assert provider.session.get.call_args[1]["headers"] == {}


async def test_listenbrainz_nothing_playing():
    provider = ListenBrainzProvider(user="p0ntus")
    provider.session.get = Mock(return_value=make_response({"payload": {"count": 0, "listens": []}}))

    assert await provider.get_current_track() is None


async def test_listenbrainz_http_error_carries_status():
    provider = ListenBrainzProvider(user="p0ntus")
    provider.session.get = Mock(return_value=make_response(status=503))

    with pytest.raises(ProviderUnavailable) as exc_info:
        await provider.get_current_track()
    assert exc_info.value.status == 503


async def test_listenbrainz_malformed_body():
    provider = ListenBrainzProvider(user="p0ntus")
    provider.session.get = Mock(return_value=make_response(json_error=True))

    with pytest.raises(ProviderUnavailable):
        await provider.get_current_track()

    provider.session.get = Mock(return_value=make_response({"no": "payload"}))
    with pytest.raises(ProviderUnavailable):
        await provider.get_current_track()


async def test_listenbrainz_malformed_listen():
    provider = ListenBrainzProvider(user="p0ntus")
    provider.session.get = Mock(return_value=make_response(
        {"payload": {"count": 1, "listens": [{"track_metadata": {}}]}}
    ))

    with pytest.raises(ProviderUnavailable):
        await provider.get_current_track()


async def test_requests_timeout_becomes_provider_timeout():
    provider = ListenBrainzProvider(user="p0ntus")
    provider.session.get = Mock(side_effect=requests.exceptions.Timeout())

    with pytest.raises(ProviderTimeout):
        await provider.get_current_track()


async def test_connection_error_becomes_unavailable():
    provider = ListenBrainzProvider(user="p0ntus")
    provider.session.get = Mock(side_effect=requests.exceptions.ConnectionError("refused"))

    with pytest.raises(ProviderUnavailable) as exc_info:
        await provider.get_current_track()
    assert exc_info.value.status is None
    assert "refused" in exc_info.value.reason


async def test_slow_call_is_bounded_by_timeout():
    import threading
    release = threading.Event()

    def slow_get(*args, **kwargs):
        release.wait(2)
        return make_response({"payload": {"count": 0}})

    provider = ListenBrainzProvider(user="p0ntus")
    provider.timeout = 0.05
    provider.session.get = Mock(side_effect=slow_get)

    try:
        with pytest.raises(ProviderTimeout):
            await provider.get_current_track()
    finally:
        release.set()


# --- Last.fm ---

LASTFM_TRACK = {
    "track": {
        "name": "Song A",
        "album": {
            "title": "Album C",
            "image": [
                {"#text": "http://img/s.jpg", "size": "small"},
                {"#text": "http://img/2.jpg", "size": "large"},
                {"#text": "http://img/1.jpg", "size": "extralarge"},
            ],
        },
    }
}


async def test_lastfm_disabled_without_key():
    provider = LastFmProvider(api_key="")
    provider.session.get = Mock()

    assert not provider.enabled
    assert await provider.get_track_info("Artist B", "Song A") is None
    assert await provider.get_track_info_by_mbid("abc") is None
    provider.session.get.assert_not_called()


async def test_lastfm_get_track_info_by_mbid_params():
    provider = LastFmProvider(api_key="key")
    provider.session.get = Mock(return_value=make_response(LASTFM_TRACK))

    data = await provider.get_track_info_by_mbid("abc")

    assert data == LASTFM_TRACK
    url = provider.session.get.call_args[0][0]
    params = provider.session.get.call_args[1]["params"]
    assert url == "https://ws.audioscrobbler.com/2.0/"
    assert params == {"method": "track.getInfoByMbid", "mbid": "abc", "api_key": "key", "format": "json"}


async def test_lastfm_get_track_info_autocorrects():
    provider = LastFmProvider(api_key="key")
    provider.session.get = Mock(return_value=make_response(LASTFM_TRACK))

    await provider.get_track_info("Artist B", "Song A")

    params = provider.session.get.call_args[1]["params"]
    assert params["method"] == "track.getInfo"
    assert params["artist"] == "Artist B"
    assert params["track"] == "Song A"
    assert params["autocorrect"] == "1"


async def test_lastfm_error_body_is_no_data():
    provider = LastFmProvider(api_key="key")
    provider.session.get = Mock(return_value=make_response({"error": 6, "message": "Track not found"}))

    assert await provider.get_track_info("Artist B", "Song A") is None


def test_extract_cover_art_prefers_extralarge():
    assert LastFmProvider.extract_cover_art(LASTFM_TRACK) == "http://img/1.jpg"


def test_extract_cover_art_falls_back_to_large_then_last():
    data = {"album": {"image": [
        {"#text": "http://img/s.jpg", "size": "small"},
        {"#text": "http://img/2.jpg", "size": "large"},
        {"#text": "", "size": "extralarge"},
    ]}}
    assert LastFmProvider.extract_cover_art(data) == "http://img/2.jpg"

    data = {"album": {"image": [
        {"#text": "http://img/s.jpg", "size": "small"},
        {"#text": "http://img/m.jpg", "size": "medium"},
    ]}}
    assert LastFmProvider.extract_cover_art(data) == "http://img/m.jpg"


def test_extract_cover_art_ignores_blank_and_placeholder():
    data = {"track": {"album": {"image": [
        {"#text": "https://lastfm.freetls.fastly.net/i/u/300x300/2a96cbd8b46e442fc41c2b86b821562f.png",
         "size": "extralarge"},
        {"#text": "  ", "size": "large"},
    ]}}}
    assert LastFmProvider.extract_cover_art(data) is None
    assert LastFmProvider.extract_cover_art(None) is None
    assert LastFmProvider.extract_cover_art({"track": {"name": "no album"}}) is None


# --- Cover Art Archive ---

async def test_cover_art_archive_returns_final_url():
    provider = CoverArtArchiveProvider()
    response = make_response(url="https://archive.org/download/mbid-rel-1/front.jpg")
    provider.session.get = Mock(return_value=response)

    url = await provider.get_front_cover("rel-1")

    assert url == "https://archive.org/download/mbid-rel-1/front.jpg"
    assert provider.session.get.call_args[0][0] == "https://coverartarchive.org/release/rel-1/front"
    assert provider.session.get.call_args[1]["stream"] is True
    response.close.assert_called()


async def test_cover_art_archive_missing_release():
    provider = CoverArtArchiveProvider()
    provider.session.get = Mock(return_value=make_response(status=404))

    with pytest.raises(ProviderUnavailable):
        await provider.get_front_cover("rel-404")

    provider.session.get = Mock()
    assert await provider.get_front_cover(None) is None
    provider.session.get.assert_not_called()


# --- MusicBrainz ---

async def test_musicbrainz_search_release_id():
    provider = MusicBrainzProvider()
    provider.session.get = Mock(return_value=make_response({"releases": [{"id": "rel-9", "score": 100}]}))

    assert await provider.search_release_id("Artist B", "Album C") == "rel-9"
    params = provider.session.get.call_args[1]["params"]
    assert params["query"] == 'artist:"Artist B" AND release:"Album C"'
    assert params["fmt"] == "json"
    assert params["limit"] == 1


async def test_musicbrainz_no_match():
    provider = MusicBrainzProvider()
    provider.session.get = Mock(return_value=make_response({"releases": []}))

    assert await provider.search_release_id("Artist B", "Album C") is None
    assert await provider.search_release_id("Artist B", None) is None


def test_user_agent_is_descriptive():
    provider = MusicBrainzProvider()
    assert provider.session.headers["User-Agent"].startswith("TrackRelay/")
