"""
Now-playing aggregation and real-time delivery.

Must not import the aggregator here: providers import errors and models
from this package while they are being loaded.
"""
from .errors import (
    NowPlayingError,
    ProviderUnavailable,
    ProviderTimeout,
    PipelineFailure,
    RateLimited,
)
from .models import AggregationResult, Status, TrackIdentity

__all__ = [
    'NowPlayingError',
    'ProviderUnavailable',
    'ProviderTimeout',
    'PipelineFailure',
    'RateLimited',
    'AggregationResult',
    'Status',
    'TrackIdentity',
]
