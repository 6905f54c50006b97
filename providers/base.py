"""
Base Provider Class
All metadata providers inherit from this base class.

Providers do their HTTP work with a blocking requests.Session. The async
wrappers push that work onto the default executor and bound it with the fixed
per-call timeout, so a slow provider never blocks the event loop.
"""

import asyncio
import functools
from abc import ABC
from typing import Any, Callable

import requests

from config import NOW_PLAYING, VERSION, get_provider_config
from logging_config import get_logger
from now_playing.errors import ProviderTimeout, ProviderUnavailable

logger = get_logger(__name__)

USER_AGENT = f"TrackRelay/{VERSION} ( python-requests/{requests.__version__} )"


class MetadataProvider(ABC):
    """Base class for all metadata providers."""

    HEADERS = {
        "User-Agent": USER_AGENT,
        "Accept": "application/json",
    }

    def __init__(self, provider_name: str):
        """
        Initialize the provider using configuration from config.py

        Args:
            provider_name (str): Name of the provider (must match config key)
        """
        config = get_provider_config(provider_name.lower())

        self.name = provider_name
        self.enabled = config.get("enabled", True)
        self.base_url = str(config.get("base_url", "")).rstrip("/")
        self.timeout = NOW_PLAYING["fetch_timeout"]

        self.session = requests.Session()
        self.session.headers.update(self.HEADERS)

        if self.enabled:
            logger.info(f"Initialized {self.name} provider ({self.base_url})")
        else:
            logger.info(f"{self.name} provider is disabled")

    def _get(self, url: str, **kwargs) -> requests.Response:
        """
        Blocking GET. Anything but a 2xx answer is an error.

        Raises:
            ProviderTimeout: the request exceeded self.timeout
            ProviderUnavailable: network failure or non-success status
        """
        try:
            response = self.session.get(url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout:
            raise ProviderTimeout(self.name, self.timeout)
        except requests.exceptions.RequestException as e:
            raise ProviderUnavailable(self.name, reason=str(e))

        if not response.ok:
            response.close()
            raise ProviderUnavailable(self.name, status=response.status_code)
        return response

    def _get_json(self, url: str, **kwargs) -> Any:
        response = self._get(url, **kwargs)
        try:
            return response.json()
        except ValueError:
            raise ProviderUnavailable(self.name, reason="malformed JSON body")

    async def _call(self, func: Callable[..., Any], *args: Any) -> Any:
        """Run a blocking provider call in the executor, bounded by the per-call timeout"""
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, functools.partial(func, *args)),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            raise ProviderTimeout(self.name, self.timeout)

    def close(self) -> None:
        self.session.close()

    def __str__(self) -> str:
        status = "enabled" if self.enabled else "disabled"
        return f"{self.name} Provider ({status})"

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name='{self.name}' enabled={self.enabled}>"
