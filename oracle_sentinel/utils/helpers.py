"""
ORACLE SENTINEL — Common Utility Functions
"""
from datetime import datetime, timezone
import math


def utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(timezone.utc)


def utc_timestamp() -> str:
    """Return current UTC timestamp as ISO string."""
    return utc_now().isoformat()


def from_epoch(seconds: float) -> datetime:
    """Convert a unix timestamp (seconds) into an aware UTC datetime."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Safe division avoiding ZeroDivisionError."""
    if denominator == 0:
        return default
    return numerator / denominator


def is_valid_price(price: float) -> bool:
    """A usable price is finite and strictly positive."""
    return price is not None and math.isfinite(price) and price > 0


def truncate(text: str, limit: int, suffix: str = "...") -> str:
    """Cut text down to `limit` characters, marking the cut with `suffix`."""
    if len(text) <= limit:
        return text
    return text[: limit - len(suffix)] + suffix
