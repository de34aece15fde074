"""
ORACLE SENTINEL — Detection Engine
Runs every rule for one asset against the current cycle's observations and
the per-source price history.
"""
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple

from oracle_sentinel.config.settings import DetectionSettings, get_settings
from oracle_sentinel.data.models import AssetConfig, DetectionOutcome, PriceObservation
from oracle_sentinel.data.window_store import PriceWindowStore
from oracle_sentinel.detection.rules import (
    detect_divergence, detect_flash_loan, detect_invalid_reading,
    detect_mispricing, detect_stale_oracle,
)
from oracle_sentinel.detection.statistics import compute_reference_statistics
from oracle_sentinel.utils.helpers import is_valid_price, utc_now
from oracle_sentinel.utils.logger import get_logger

logger = get_logger("detection_engine")


class DetectionEngine:
    """
    Per-asset detection pass.

    Order of checks:
    1. Invalid readings are split off and reported on their own.
    2. Fresh valid observations are appended to the window store.
    3. Stale and flash-loan checks run per source.
    4. Divergence and mispricing run only with enough reporting sources.
    """

    def __init__(
        self,
        window_store: PriceWindowStore,
        settings: Optional[DetectionSettings] = None,
    ):
        self.window_store = window_store
        self.settings = settings or get_settings().detection
        self.flash_window = timedelta(seconds=self.settings.flash_loan_window_seconds)

    def analyze(
        self,
        asset: str,
        observations: Sequence[PriceObservation],
        config: AssetConfig,
        now: Optional[datetime] = None,
        min_sources: Optional[int] = None,
    ) -> List[DetectionOutcome]:
        now = now or utc_now()
        min_sources = max(min_sources or 0, self.settings.min_sources)
        results: List[DetectionOutcome] = []

        valid, invalid = self._partition(observations)
        for observation in invalid:
            logger.warning(
                "invalid_price_rejected",
                asset=asset, source=observation.source, price=observation.price,
            )
            results.append(detect_invalid_reading(observation))

        for observation in valid:
            self._record_if_new(observation)

        for observation in valid:
            stale = detect_stale_oracle(observation, config, now, self.settings)
            if stale:
                results.append(stale)

        for observation in valid:
            recent = self.window_store.recent_within(asset, observation.source, self.flash_window)
            flash = detect_flash_loan(observation, recent, self.settings)
            if flash:
                results.append(flash)

        stats = compute_reference_statistics([o.price for o in valid], min_sources)
        if stats is None:
            logger.debug("insufficient_sources", asset=asset, sources=len(valid), required=min_sources)
            return results

        divergence = detect_divergence(asset, stats, self.settings)
        if divergence:
            results.append(divergence)

        for observation in valid:
            mispricing = detect_mispricing(observation, stats, config, self.settings)
            if mispricing:
                results.append(mispricing)

        return results

    @staticmethod
    def _partition(
        observations: Sequence[PriceObservation],
    ) -> Tuple[List[PriceObservation], List[PriceObservation]]:
        valid, invalid = [], []
        for observation in observations:
            (valid if is_valid_price(observation.price) else invalid).append(observation)
        return valid, invalid

    def _record_if_new(self, observation: PriceObservation) -> None:
        """The same snapshot is seen by several cycles; only record newer readings."""
        latest = self.window_store.latest(observation.asset, observation.source)
        if latest is None or observation.observed_at > latest.observed_at:
            self.window_store.record(observation)
