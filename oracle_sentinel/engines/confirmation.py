"""
ORACLE SENTINEL — Confirmation Orchestrator
Turns repeated raw detections into a single confirmation per
(asset, detection type) within a bounded time window.
"""
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from cachetools import TTLCache

from oracle_sentinel.data.models import IncidentType, Severity
from oracle_sentinel.utils.logger import get_logger

logger = get_logger("confirmation")

CounterKey = Tuple[str, IncidentType]


@dataclass
class ConfirmationCounter:
    count: int
    created_at: float


class ConfirmationOrchestrator:
    """
    Per-key state machine: Idle -> Accumulating -> Confirmed -> Idle.

    Counters sit in a TTLCache and are mutated in place, never re-inserted,
    so each one expires `timeout_seconds` after creation no matter how many
    detections arrive in between.

    The timer reads epoch seconds. A caller driving its own clock passes
    `now` to `register` and expiry is judged at that instant.
    """

    def __init__(
        self,
        timeout_seconds: float = 30.0,
        max_keys: int = 10000,
        timer: Callable[[], float] = time.time,
    ):
        self.timeout_seconds = timeout_seconds
        self._timer = timer
        self._pinned: Optional[float] = None
        self._counters: TTLCache = TTLCache(maxsize=max_keys, ttl=timeout_seconds, timer=self._clock)
        self._confirmed = 0

    def register(
        self,
        asset: str,
        detection_type: IncidentType,
        severity: Severity,
        required: int = 3,
        bypass_emergency: bool = False,
        now: Optional[float] = None,
    ) -> bool:
        """
        Count one raw detection. Returns True when it completes a confirmation;
        the counter is then dropped so the next incident needs a new sequence.
        """
        self._pinned = now
        try:
            return self._register((asset, detection_type), severity, required, bypass_emergency)
        finally:
            self._pinned = None

    def _clock(self) -> float:
        return self._timer() if self._pinned is None else self._pinned

    def _register(
        self, key: CounterKey, severity: Severity, required: int, bypass_emergency: bool
    ) -> bool:
        asset, detection_type = key
        if bypass_emergency and severity >= Severity.EMERGENCY:
            self._counters.pop(key, None)
            self._confirmed += 1
            logger.info("confirmation_bypassed", asset=asset, type=detection_type.value)
            return True

        counter: Optional[ConfirmationCounter] = self._counters.get(key)
        if counter is None:
            counter = ConfirmationCounter(count=0, created_at=self._clock())
            self._counters[key] = counter
        counter.count += 1

        if counter.count >= required:
            del self._counters[key]
            self._confirmed += 1
            logger.info(
                "detection_confirmed",
                asset=asset, type=detection_type.value, confirmations=counter.count,
            )
            return True

        logger.debug(
            "detection_accumulating",
            asset=asset, type=detection_type.value, count=counter.count, required=required,
        )
        return False

    def pending(self, asset: str, detection_type: IncidentType) -> int:
        """Current count for a key; 0 when idle or expired."""
        counter = self._counters.get((asset, detection_type))
        return counter.count if counter else 0

    def reset(self) -> None:
        self._counters.clear()

    @property
    def stats(self) -> Dict[str, Any]:
        self._counters.expire()
        return {
            "pending_keys": len(self._counters),
            "confirmed": self._confirmed,
            "timeout_seconds": self.timeout_seconds,
        }
