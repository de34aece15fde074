"""
ORACLE SENTINEL — Base Price Source Adapter Interface
All price source adapters must implement this interface.
"""
from abc import ABC, abstractmethod
from typing import List, Optional

import aiohttp

from oracle_sentinel.config.settings import DataSourceSettings, get_settings
from oracle_sentinel.data.models import PriceObservation


class SourceFetchError(Exception):
    """A source answered with an error status or an unusable payload."""


class BaseSourceAdapter(ABC):
    """Abstract base class for all price source adapters."""

    def __init__(self, source: str, settings: Optional[DataSourceSettings] = None):
        self.source = source
        self.settings = settings or get_settings().data
        self._session: Optional[aiohttp.ClientSession] = None

    async def connect(self) -> None:
        """Initialize the HTTP session."""
        timeout = aiohttp.ClientTimeout(total=self.settings.poll_timeout_seconds)
        self._session = aiohttp.ClientSession(timeout=timeout)

    async def disconnect(self) -> None:
        """Clean up the HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def _get_json(self, url: str, params=None):
        if not self._session:
            await self.connect()
        async with self._session.get(url, params=params, headers={"Accept": "application/json"}) as resp:
            if resp.status != 200:
                raise SourceFetchError(f"{self.source} HTTP {resp.status}")
            return await resp.json()

    @abstractmethod
    async def fetch_prices(self, assets: List[str]) -> List[PriceObservation]:
        """Fetch the latest observation for each supported asset in `assets`."""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(source={self.source})"
