"""
ORACLE SENTINEL — CoinGecko Adapter
Aggregated market price, used as an off-chain cross-validation source.
"""
from typing import Dict, List, Optional

from oracle_sentinel.config.settings import DataSourceSettings
from oracle_sentinel.data.adapters.base import BaseSourceAdapter, SourceFetchError
from oracle_sentinel.data.models import PriceObservation
from oracle_sentinel.utils.helpers import from_epoch, utc_now
from oracle_sentinel.utils.logger import get_logger

logger = get_logger("coingecko_adapter")

# Mapping from asset tickers to CoinGecko IDs
COINGECKO_ID_MAP: Dict[str, str] = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "SOL": "solana",
    "USDC": "usd-coin",
    "USDT": "tether",
    "LINK": "chainlink",
    "UNI": "uniswap",
    "AAVE": "aave",
}


class CoinGeckoAdapter(BaseSourceAdapter):
    """CoinGecko `simple/price` adapter."""

    def __init__(self, settings: Optional[DataSourceSettings] = None):
        super().__init__(source="coingecko", settings=settings)

    async def fetch_prices(self, assets: List[str]) -> List[PriceObservation]:
        ids = {COINGECKO_ID_MAP[a]: a for a in assets if a in COINGECKO_ID_MAP}
        if not ids:
            return []

        url = f"{self.settings.coingecko_base_url}/simple/price"
        params = {
            "ids": ",".join(ids),
            "vs_currencies": "usd",
            "include_last_updated_at": "true",
        }
        data = await self._get_json(url, params=params)
        if not isinstance(data, dict):
            raise SourceFetchError("coingecko payload is not an object")

        observations = []
        for coin_id, asset in ids.items():
            coin_data = data.get(coin_id, {})
            price = coin_data.get("usd")
            if price is None:
                logger.debug("coingecko_missing_price", asset=asset)
                continue
            updated = coin_data.get("last_updated_at")
            observations.append(
                PriceObservation(
                    asset=asset,
                    source=self.source,
                    price=float(price),
                    observed_at=from_epoch(updated) if updated else utc_now(),
                    confidence=0.9,
                )
            )
        return observations
