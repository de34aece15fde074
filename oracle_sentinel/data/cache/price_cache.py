"""
ORACLE SENTINEL — Latest Price Cache
In-memory store of the most recent observation per (asset, source).
Stale readings are kept on purpose: the stale-oracle rule needs them.
"""
from typing import Optional, Dict, Any, List, Tuple

from oracle_sentinel.data.models import PriceObservation, AssetPriceView
from oracle_sentinel.utils.helpers import is_valid_price, safe_divide
from oracle_sentinel.utils.logger import get_logger

logger = get_logger("price_cache")

Snapshot = Dict[Tuple[str, str], PriceObservation]


class LatestPriceCache:
    """Latest observation per (asset, source), fed by the ingestion loop."""

    def __init__(self):
        self._latest: Snapshot = {}
        self._updates = 0

    def put(self, observation: PriceObservation) -> None:
        """Store an observation unless an equal-or-newer one is already held."""
        key = (observation.asset, observation.source)
        current = self._latest.get(key)
        if current is not None and current.observed_at > observation.observed_at:
            return
        self._latest[key] = observation
        self._updates += 1

    def get(self, asset: str, source: str) -> Optional[PriceObservation]:
        return self._latest.get((asset, source))

    def for_asset(self, asset: str) -> Dict[str, PriceObservation]:
        """All latest observations for an asset, keyed by source."""
        return {src: obs for (a, src), obs in self._latest.items() if a == asset}

    def snapshot(self) -> Snapshot:
        """Point-in-time copy consumed by one detection cycle."""
        return dict(self._latest)

    def latest_prices(self) -> List[AssetPriceView]:
        """Per-asset cross-source summary for dashboards."""
        by_asset: Dict[str, List[PriceObservation]] = {}
        for (asset, _), obs in self._latest.items():
            if is_valid_price(obs.price):
                by_asset.setdefault(asset, []).append(obs)

        views = []
        for asset, observations in sorted(by_asset.items()):
            prices = [o.price for o in observations]
            reference = sum(prices) / len(prices)
            max_dev_bps = max(
                abs(safe_divide(p - reference, reference)) * 10000 for p in prices
            )
            views.append(
                AssetPriceView(
                    asset=asset,
                    sources={o.source: o.price for o in observations},
                    reference_price=reference,
                    max_deviation_bps=max_dev_bps,
                    updated_at=max(o.observed_at for o in observations),
                )
            )
        return views

    def clear(self) -> None:
        self._latest.clear()
        logger.info("price_cache_cleared")

    @property
    def stats(self) -> Dict[str, Any]:
        return {
            "entries": len(self._latest),
            "assets": len({asset for asset, _ in self._latest}),
            "updates": self._updates,
        }
