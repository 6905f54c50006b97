"""
Error taxonomy for the now-playing pipeline.

Only PipelineFailure and RateLimited ever reach a client, and then only as an
'error' status update. Provider errors from the optional stages are swallowed
by the aggregator and show up as missing fields.
"""
from typing import Optional


class NowPlayingError(Exception):
    """Base class for all now-playing errors"""


class ProviderUnavailable(NowPlayingError):
    """Provider answered with a non-success status, failed at network level, or sent a malformed body"""

    def __init__(self, provider: str, status: Optional[int] = None, reason: Optional[str] = None):
        self.provider = provider
        self.status = status
        self.reason = reason
        detail = f"HTTP {status}" if status is not None else (reason or "unavailable")
        super().__init__(f"{provider}: {detail}")


class ProviderTimeout(ProviderUnavailable):
    """Provider call exceeded its deadline. Handled exactly like ProviderUnavailable."""

    def __init__(self, provider: str, timeout: float):
        self.timeout = timeout
        super().__init__(provider, reason=f"timed out after {timeout:g}s")


class PipelineFailure(NowPlayingError):
    """The mandatory history stage failed; message is shown to the user"""


class RateLimited(NowPlayingError):
    """Client exceeded its request quota"""

    def __init__(self, connection_id: str):
        self.connection_id = connection_id
        super().__init__("Rate limit exceeded. Please wait before requesting again.")
