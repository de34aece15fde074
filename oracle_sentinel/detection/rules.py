"""
ORACLE SENTINEL — Detection Rules
Pure rule evaluators. Each returns a DetectionOutcome, or None when the rule
does not fire.
"""
from datetime import datetime
from typing import Iterable, Optional

from oracle_sentinel.config.settings import DetectionSettings
from oracle_sentinel.data.models import (
    AssetConfig, DetectionOutcome, IncidentType, PriceObservation,
    ReferenceStatistics, Severity,
)
from oracle_sentinel.utils.helpers import is_valid_price

_DEFAULTS = DetectionSettings()


def detect_invalid_reading(observation: PriceObservation) -> Optional[DetectionOutcome]:
    """Zero, negative or non-finite prices are a data-quality failure."""
    if is_valid_price(observation.price):
        return None
    return DetectionOutcome(
        type=IncidentType.INVALID_READING,
        severity=Severity.CRITICAL,
        asset=observation.asset,
        source=observation.source,
        details={
            "reportedPrice": observation.price,
            "observedAt": observation.observed_at.isoformat(),
        },
    )


def detect_stale_oracle(
    observation: PriceObservation,
    config: AssetConfig,
    now: datetime,
    settings: DetectionSettings = _DEFAULTS,
) -> Optional[DetectionOutcome]:
    """
    staleDuration = now - observedAt - expectedUpdateInterval.
    Fires above 2x the interval, critical above 5x.
    """
    interval = config.expected_update_interval
    elapsed = (now - observation.observed_at).total_seconds()
    stale_duration = elapsed - interval

    if stale_duration <= interval * settings.stale_warning_multiplier:
        return None

    if stale_duration > interval * settings.stale_critical_multiplier:
        severity = Severity.CRITICAL
    else:
        severity = Severity.WARNING

    return DetectionOutcome(
        type=IncidentType.STALE_ORACLE,
        severity=severity,
        asset=observation.asset,
        source=observation.source,
        details={
            "staleDuration": stale_duration,
            "lastUpdateTime": observation.observed_at.isoformat(),
            "expectedUpdateInterval": interval,
        },
    )


def detect_flash_loan(
    observation: PriceObservation,
    recent: Iterable[PriceObservation],
    settings: DetectionSettings = _DEFAULTS,
) -> Optional[DetectionOutcome]:
    """Max/min swing inside the trailing window of one (asset, source) history."""
    prices = [o.price for o in recent]
    if len(prices) < 2:
        return None

    min_price = min(prices)
    max_price = max(prices)
    price_change_bps = (max_price - min_price) / min_price * 10000

    if price_change_bps <= settings.flash_loan_threshold_bps:
        return None

    return DetectionOutcome(
        type=IncidentType.FLASH_LOAN,
        severity=Severity.EMERGENCY,
        asset=observation.asset,
        source=observation.source,
        details={
            "priceChangeBps": price_change_bps,
            "timeWindowSeconds": settings.flash_loan_window_seconds,
            "minPrice": min_price,
            "maxPrice": max_price,
            "samples": len(prices),
        },
    )


def detect_mispricing(
    observation: PriceObservation,
    stats: ReferenceStatistics,
    config: AssetConfig,
    settings: DetectionSettings = _DEFAULTS,
) -> Optional[DetectionOutcome]:
    """Outlier check against the cross-source median (percent thresholds + robust z-score)."""
    median = stats.median
    deviation_bps = (observation.price - median) / median * 10000
    z_score = abs(observation.price - median) / stats.mad if stats.mad > 0 else 0.0
    deviation_pct = abs(deviation_bps) / 100

    thresholds = config.thresholds
    if not (deviation_pct > thresholds.warning or z_score > settings.z_score_threshold):
        return None

    if deviation_pct > thresholds.emergency:
        severity = Severity.EMERGENCY
    elif deviation_pct > thresholds.critical:
        severity = Severity.CRITICAL
    else:
        severity = Severity.WARNING

    return DetectionOutcome(
        type=IncidentType.MISPRICING,
        severity=severity,
        asset=observation.asset,
        source=observation.source,
        details={
            "onchainPrice": observation.price,
            "referencePrice": median,
            "deviationBps": abs(deviation_bps),
            "zScore": z_score,
        },
    )


def detect_divergence(
    asset: str,
    stats: ReferenceStatistics,
    settings: DetectionSettings = _DEFAULTS,
) -> Optional[DetectionOutcome]:
    """Cross-source disagreement measured as std-dev over mean, in bps."""
    std_dev_bps = stats.std_dev_bps
    if std_dev_bps <= settings.divergence_warning_bps:
        return None

    if std_dev_bps > settings.divergence_emergency_bps:
        severity = Severity.EMERGENCY
    elif std_dev_bps > settings.divergence_critical_bps:
        severity = Severity.CRITICAL
    else:
        severity = Severity.WARNING

    return DetectionOutcome(
        type=IncidentType.DIVERGENCE,
        severity=severity,
        asset=asset,
        details={
            "standardDeviationBps": std_dev_bps,
            "sourceCount": stats.sample_count,
            "priceRange": [stats.min_price, stats.max_price],
        },
    )
