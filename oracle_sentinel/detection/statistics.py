"""
ORACLE SENTINEL — Statistical Analyzer
Cross-source reference statistics (median, MAD, mean, standard deviation)
for one asset in one detection cycle.
"""
import numpy as np
from typing import Optional, Sequence

from oracle_sentinel.data.models import ReferenceStatistics

MIN_SAMPLES = 3


def order_median(values: np.ndarray) -> float:
    """
    Element at index floor(n/2) of the ascending sort.
    For even counts this is the upper-middle value, not the average of the
    two middle values.
    """
    ordered = np.sort(values)
    return float(ordered[len(ordered) // 2])


def compute_reference_statistics(
    prices: Sequence[float], min_samples: int = MIN_SAMPLES
) -> Optional[ReferenceStatistics]:
    """
    Compute reference statistics over one price per reporting source.
    Returns None ("insufficient data") below `min_samples`.
    """
    min_samples = max(min_samples, MIN_SAMPLES)
    if len(prices) < min_samples:
        return None

    values = np.asarray(prices, dtype=float)
    median = order_median(values)
    mad = order_median(np.abs(values - median))

    return ReferenceStatistics(
        median=median,
        mean=float(values.mean()),
        standard_deviation=float(values.std(ddof=1)),
        mad=mad,
        sample_count=len(values),
        min_price=float(values.min()),
        max_price=float(values.max()),
    )
