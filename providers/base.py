"""
Base Provider
Abstract base for external metric and content providers.

Providers follow a return-or-None contract: missing data and failed calls
both come back as ``None`` (logged), never as exceptions.
"""
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, TypeVar
import asyncio
import logging
import threading
import time

import aiohttp

from config import Settings, get_settings


logger = logging.getLogger(__name__)

R = TypeVar("R")


class BaseProvider(ABC):
    """Shared session handling and logging for providers."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name used in logs"""
        pass

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "User-Agent": self.settings.provider.user_agent,
        }

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self._get_headers(),
                timeout=aiohttp.ClientTimeout(total=self.settings.provider.request_timeout),
            )
        return self._session

    async def _get_json(self, url: str, params: Optional[Dict[str, str]] = None) -> Optional[dict]:
        """GET a JSON document; 404 means no data and returns None."""
        session = await self._get_session()
        async with session.get(url, params=params) as response:
            if response.status == 404:
                return None
            if response.status == 429:
                logger.warning("[%s] Rate limit exceeded for %s", self.name, url)
                return None
            response.raise_for_status()
            return await response.json(content_type=None)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        if self._session:
            await self._session.close()
            self._session = None

    async def _run_blocking(self, func: Callable[..., R], *args, **kwargs) -> R:
        """Run a blocking call in the default thread pool."""
        return await asyncio.to_thread(func, *args, **kwargs)

    def _log_error(self, message: str, error: Exception):
        logger.warning(f"[{self.name}] {message}: {error}")


class RateLimitedProvider(BaseProvider):
    """
    Provider with a process-wide request rate.

    The limit is shared by every instance of a subclass, so several
    enrichers running concurrently still respect the upstream quota.
    """

    _global_rate_lock = threading.Lock()
    _global_last_request_time = 0.0

    def __init__(self, settings: Optional[Settings] = None, requests_per_second: float = 1.0):
        super().__init__(settings)
        self._rate_limit = max(0.1, float(requests_per_second))

    async def _wait_for_rate_limit(self):
        min_interval = 1.0 / self._rate_limit
        while True:
            with self._global_rate_lock:
                now = time.monotonic()
                elapsed = now - self.__class__._global_last_request_time
                if elapsed >= min_interval:
                    self.__class__._global_last_request_time = now
                    return
                wait_sec = min_interval - elapsed
            await asyncio.sleep(wait_sec)
