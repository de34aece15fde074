"""
ORACLE SENTINEL — Pyth Network Adapter
Latest price feeds from the public Hermes endpoint (no API key).
"""
from typing import Dict, List, Optional

from oracle_sentinel.config.settings import DataSourceSettings
from oracle_sentinel.data.adapters.base import BaseSourceAdapter, SourceFetchError
from oracle_sentinel.data.models import PriceObservation
from oracle_sentinel.utils.helpers import from_epoch
from oracle_sentinel.utils.logger import get_logger

logger = get_logger("pyth_adapter")

# Public Pyth price feed ids (USD quotes)
PYTH_PRICE_IDS: Dict[str, str] = {
    "ETH": "ff61491a931112ddf1bd8147cd1b641375f79f5825126d665480874634fd0ace",
    "BTC": "e62df6c8b4a85fe1a67db44dc12de5db330f7ac66b72dc658afedf0f4a415b43",
    "SOL": "ef0d8b6fda2ceba41da15d4095d1da392a0d2f8ed0c6c7bc0f4cfac8c280b56d",
    "USDC": "eaa020c61cc479712813461ce153894a96a6c00b21ed0cfc2798d1f9a9e9c94a",
}


def parse_pyth_feed(feed: dict, asset: str) -> PriceObservation:
    """Convert one Hermes price feed (mantissa + exponent) into an observation."""
    price_data = feed["price"]
    expo = int(price_data["expo"])
    price = int(price_data["price"]) * (10 ** expo)
    conf = int(price_data["conf"]) * (10 ** expo)

    # Confidence interval relative to price, clamped into [0, 1]
    confidence = 1 - conf / price if price > 0 and conf > 0 else 0.99
    confidence = max(0.0, min(1.0, confidence))

    return PriceObservation(
        asset=asset,
        source="pyth",
        price=price,
        observed_at=from_epoch(int(price_data["publish_time"])),
        confidence=confidence,
    )


class PythAdapter(BaseSourceAdapter):
    """Pyth Hermes `/api/latest_price_feeds` adapter."""

    def __init__(self, settings: Optional[DataSourceSettings] = None):
        super().__init__(source="pyth", settings=settings)

    async def fetch_prices(self, assets: List[str]) -> List[PriceObservation]:
        ids = {PYTH_PRICE_IDS[a]: a for a in assets if a in PYTH_PRICE_IDS}
        if not ids:
            return []

        url = f"{self.settings.pyth_base_url}/api/latest_price_feeds"
        params = [("ids[]", feed_id) for feed_id in ids]
        data = await self._get_json(url, params=params)
        if not isinstance(data, list):
            raise SourceFetchError("pyth payload is not a list")

        observations = []
        for feed in data:
            asset = ids.get(str(feed.get("id", "")).lower().removeprefix("0x"))
            if asset is None:
                continue
            try:
                observations.append(parse_pyth_feed(feed, asset))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("pyth_malformed_feed", asset=asset, error=str(e))
        return observations
