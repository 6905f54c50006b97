"""
Now-playing aggregator.

Resolves the current track through a fixed pipeline:

    ListenBrainz (history) -> Last.fm (enrichment, raced) -> artwork fallback chain
                                                             (Last.fm image,
                                                              Cover Art Archive by release MBID,
                                                              MusicBrainz search + Cover Art Archive)

Results are cached for a short TTL and concurrent callers share one run.
"""
from typing import Any, AsyncIterator, Dict, Optional

from config import NOW_PLAYING
from logging_config import get_logger
from providers import (
    CoverArtArchiveProvider,
    LastFmProvider,
    ListenBrainzProvider,
    MusicBrainzProvider,
)
from .cache import InFlightRequest, ResultCache
from .combinators import first_available, first_success
from .errors import PipelineFailure, ProviderUnavailable
from .models import AggregationResult, TrackIdentity
from .tasks import create_tracked_task

logger = get_logger(__name__)

NOW_PLAYING_KEY = NOW_PLAYING["key"]


class NowPlayingAggregator:
    def __init__(
        self,
        history: ListenBrainzProvider,
        enrichment: LastFmProvider,
        artwork: CoverArtArchiveProvider,
        catalog: MusicBrainzProvider,
        cache: Optional[ResultCache] = None,
    ):
        self.history = history
        self.enrichment = enrichment
        self.artwork = artwork
        self.catalog = catalog
        self.cache = cache if cache is not None else ResultCache()
        self.pipeline_runs = 0

    @classmethod
    def from_config(cls) -> "NowPlayingAggregator":
        """Build an aggregator wired to the real providers from config.py"""
        return cls(
            history=ListenBrainzProvider(),
            enrichment=LastFmProvider(),
            artwork=CoverArtArchiveProvider(),
            catalog=MusicBrainzProvider(),
        )

    async def run(self, key: str = NOW_PLAYING_KEY) -> AsyncIterator[AggregationResult]:
        """
        Stream the states of one aggregation for `key`.

        Yields a single cached result, or the states of a run ending in exactly
        one 'complete' or 'error'. Callers that arrive while a run is in flight
        attach to it and see only the states published after they attach.
        """
        # Check cache -> check in-flight -> register must not be split by an await
        entry = self.cache.get(key)
        if entry is not None:
            logger.debug(f"Cache hit for '{key}'")
            yield entry.result
            return

        request = self.cache.get_in_flight(key)
        if request is None:
            request = InFlightRequest(key)
            queue = request.subscribe()
            self.cache.register_in_flight(key, request)
            create_tracked_task(self._execute(key, request), name=f"aggregate:{key}")
        else:
            logger.debug(f"Attaching to in-flight run for '{key}' ({request.subscriber_count} attached)")
            queue = request.subscribe()

        try:
            async for result in request.updates(queue):
                yield result
        finally:
            # Caller went away early; the run itself carries on
            request.unsubscribe(queue)

    async def resolve(self, key: str = NOW_PLAYING_KEY) -> AggregationResult:
        """Run an aggregation and return only its terminal result"""
        result = None
        async for result in self.run(key):
            pass
        return result

    async def _execute(self, key: str, request: InFlightRequest) -> None:
        """Owns one pipeline run: publishes its states, caches success, always frees the slot"""
        self.pipeline_runs += 1
        try:
            try:
                result = await self._pipeline(request)
            except PipelineFailure as e:
                logger.warning(f"Now-playing pipeline failed: {e}")
                result = AggregationResult.error(str(e))
            except Exception as e:
                logger.error(f"Unexpected error in now-playing pipeline: {e}", exc_info=True)
                result = AggregationResult.error(str(e) or "Unknown error occurred")

            self.cache.set(key, result)
            request.publish(result)
        finally:
            if not request.done:
                # Cancelled (shutdown): don't leave attached callers waiting forever
                request.publish(AggregationResult.error("Aggregation cancelled"))
            self.cache.clear_in_flight(key, request)

    async def _pipeline(self, request: InFlightRequest) -> AggregationResult:
        request.publish(AggregationResult.loading("Fetching from ListenBrainz..."))

        try:
            track = await self.history.get_current_track()
        except ProviderUnavailable as e:
            if e.status is not None:
                raise PipelineFailure(f"ListenBrainz error: {e.status}")
            raise PipelineFailure(f"ListenBrainz error: {e.reason}")

        if track is None:
            return AggregationResult.nothing_playing()

        # Show the track name before any enrichment call
        request.publish(AggregationResult.partial(track, "Fetching additional info..."))

        enrichment = await self._fetch_enrichment(track)
        cover_art = await self._resolve_artwork(track, enrichment)

        logger.info(
            f"Now playing: {track.artist_name} - {track.track_name} "
            f"(art: {'yes' if cover_art else 'no'}, enrichment: {'yes' if enrichment else 'no'})"
        )
        return AggregationResult.complete(track, cover_art=cover_art, enrichment=enrichment)

    async def _fetch_enrichment(self, track: TrackIdentity) -> Optional[Dict[str, Any]]:
        """Race Last.fm by recording MBID against Last.fm by name; first usable answer wins"""
        if not self.enrichment.enabled:
            return None

        queries = []
        if track.recording_mbid:
            queries.append(self.enrichment.get_track_info_by_mbid(track.recording_mbid))
        queries.append(self.enrichment.get_track_info(track.artist_name, track.track_name))

        data = await first_success(*queries)
        if data is None:
            logger.debug(f"No Last.fm data for {track.artist_name} - {track.track_name}")
        return data

    async def _resolve_artwork(self, track: TrackIdentity, enrichment: Optional[Dict[str, Any]]) -> Optional[str]:
        """Walk the artwork fallback chain; an empty chain leaves the artwork unset"""

        async def embedded_in_enrichment():
            return LastFmProvider.extract_cover_art(enrichment)

        async def archive_by_release_mbid():
            return await self.artwork.get_front_cover(track.release_mbid)

        async def archive_by_catalog_search():
            release_mbid = await self.catalog.search_release_id(track.artist_name, track.release_name)
            if not release_mbid:
                return None
            return await self.artwork.get_front_cover(release_mbid)

        return await first_available(
            embedded_in_enrichment,
            archive_by_release_mbid,
            archive_by_catalog_search,
        )
