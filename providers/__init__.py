"""
Metadata Providers Package
Thin, timeout-wrapped HTTP clients for the external services the now-playing pipeline consumes.
"""
from .base import MetadataProvider
from .listenbrainz import ListenBrainzProvider
from .lastfm import LastFmProvider
from .cover_art_archive import CoverArtArchiveProvider
from .musicbrainz import MusicBrainzProvider

__all__ = [
    'MetadataProvider',
    'ListenBrainzProvider',
    'LastFmProvider',
    'CoverArtArchiveProvider',
    'MusicBrainzProvider',
]
