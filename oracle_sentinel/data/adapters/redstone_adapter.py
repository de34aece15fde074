"""
ORACLE SENTINEL — RedStone Adapter
Bulk price query against the public RedStone prices API.
"""
from typing import List, Optional

from oracle_sentinel.config.settings import DataSourceSettings
from oracle_sentinel.data.adapters.base import BaseSourceAdapter, SourceFetchError
from oracle_sentinel.data.models import PriceObservation
from oracle_sentinel.utils.helpers import from_epoch, utc_now
from oracle_sentinel.utils.logger import get_logger

logger = get_logger("redstone_adapter")

SUPPORTED_ASSETS = {"ETH", "BTC", "SOL", "USDC", "USDT", "LINK", "UNI", "AAVE"}

# RedStone aggregates 200+ upstream sources
REDSTONE_CONFIDENCE = 0.95


class RedStoneAdapter(BaseSourceAdapter):
    """RedStone `/prices?symbols=...` adapter."""

    def __init__(self, settings: Optional[DataSourceSettings] = None):
        super().__init__(source="redstone", settings=settings)

    async def fetch_prices(self, assets: List[str]) -> List[PriceObservation]:
        symbols = [a for a in assets if a in SUPPORTED_ASSETS]
        if not symbols:
            return []

        url = f"{self.settings.redstone_base_url}/prices"
        params = {"symbols": ",".join(symbols), "provider": "redstone"}
        data = await self._get_json(url, params=params)
        if not isinstance(data, dict):
            raise SourceFetchError("redstone payload is not an object")

        observations = []
        for asset in symbols:
            entry = data.get(asset)
            if not entry or entry.get("value") is None:
                continue
            timestamp_ms = entry.get("timestamp")
            observed_at = from_epoch(timestamp_ms / 1000) if timestamp_ms else utc_now()
            observations.append(
                PriceObservation(
                    asset=asset,
                    source=self.source,
                    price=float(entry["value"]),
                    observed_at=observed_at,
                    confidence=REDSTONE_CONFIDENCE,
                )
            )
        return observations
