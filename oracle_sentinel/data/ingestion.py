"""
ORACLE SENTINEL — Price Ingestion
Polls all sources concurrently with a per-source timeout and stores what
arrives in the latest price cache. One failing source never fails the rest.
"""
import asyncio
import time
from typing import Dict, List, Optional, Sequence

from oracle_sentinel.data.adapters.base import BaseSourceAdapter
from oracle_sentinel.data.cache.price_cache import LatestPriceCache
from oracle_sentinel.data.models import PriceObservation, SourceStatus
from oracle_sentinel.utils.helpers import utc_now
from oracle_sentinel.utils.logger import get_logger

logger = get_logger("ingestion")


class PriceIngestor:
    """Fan-out fetch across adapters, joined before the cache is updated."""

    def __init__(
        self,
        adapters: Sequence[BaseSourceAdapter],
        cache: LatestPriceCache,
        timeout_seconds: float = 5.0,
    ):
        self.adapters: List[BaseSourceAdapter] = list(adapters)
        self.cache = cache
        self.timeout_seconds = timeout_seconds
        self._status: Dict[str, SourceStatus] = {
            a.source: SourceStatus(source=a.source) for a in self.adapters
        }

    async def connect(self) -> None:
        for adapter in self.adapters:
            try:
                await adapter.connect()
            except Exception as e:
                logger.warning("adapter_connect_failed", adapter=adapter.source, error=str(e))
        logger.info("ingestion_initialized", adapters=len(self.adapters))

    async def disconnect(self) -> None:
        for adapter in self.adapters:
            try:
                await adapter.disconnect()
            except Exception as e:
                logger.warning("adapter_disconnect_failed", adapter=adapter.source, error=str(e))

    async def ingest(self, assets: List[str]) -> int:
        """Run one ingestion round. Returns the number of observations stored."""
        if not assets or not self.adapters:
            return 0

        results = await asyncio.gather(
            *(self._fetch_one(adapter, assets) for adapter in self.adapters)
        )

        stored = 0
        for observations in results:
            for observation in observations:
                self.cache.put(observation)
                stored += 1

        if stored:
            ok = sum(1 for s in self._status.values() if s.healthy)
            logger.debug("prices_ingested", observations=stored, healthy_sources=ok)
        return stored

    async def _fetch_one(self, adapter: BaseSourceAdapter, assets: List[str]) -> List[PriceObservation]:
        status = self._status.setdefault(adapter.source, SourceStatus(source=adapter.source))
        started = time.monotonic()
        try:
            observations = await asyncio.wait_for(
                adapter.fetch_prices(assets), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            status.healthy = False
            status.last_error = "timeout"
            logger.warning("source_fetch_timeout", source=adapter.source, timeout=self.timeout_seconds)
            return []
        except Exception as e:
            status.healthy = False
            status.last_error = str(e) or type(e).__name__
            logger.warning("source_fetch_failed", source=adapter.source, error=status.last_error)
            return []

        status.healthy = True
        status.last_error = None
        status.last_success = utc_now()
        status.last_latency_ms = round((time.monotonic() - started) * 1000, 2)
        status.observations += len(observations)
        return observations

    def source_status(self) -> List[SourceStatus]:
        return [s.model_copy() for s in self._status.values()]

    def get_status(self, source: str) -> Optional[SourceStatus]:
        return self._status.get(source)
