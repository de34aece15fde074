"""
ORACLE SENTINEL — Price Window Store
Bounded per-(asset, source) history of recent observations.
"""
from collections import deque
from datetime import timedelta
from typing import Deque, Dict, Iterator, List, Optional, Tuple, Any

from oracle_sentinel.data.models import PriceObservation

WindowKey = Tuple[str, str]


class PriceWindowStore:
    """
    Fixed-capacity FIFO windows keyed by (asset, source).

    All methods are synchronous; the detection pass is the single writer and
    runs on one event loop, so appends for a key are never interleaved.
    """

    def __init__(self, capacity: int = 100):
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._windows: Dict[WindowKey, Deque[PriceObservation]] = {}

    def record(self, observation: PriceObservation) -> None:
        """Append an observation, evicting the oldest entry when full."""
        key = (observation.asset, observation.source)
        window = self._windows.get(key)
        if window is None:
            window = deque(maxlen=self.capacity)
            self._windows[key] = window
        window.append(observation)

    def recent_within(
        self, asset: str, source: str, duration: timedelta
    ) -> Iterator[PriceObservation]:
        """
        Yield observations less than `duration` older than the latest recorded
        instant for the key. Each call reflects the window as it is now.
        """
        window = self._windows.get((asset, source))
        if not window:
            return
        anchor = window[-1].observed_at
        for observation in list(window):
            if anchor - observation.observed_at < duration:
                yield observation

    def latest(self, asset: str, source: str) -> Optional[PriceObservation]:
        window = self._windows.get((asset, source))
        return window[-1] if window else None

    def window(self, asset: str, source: str) -> Tuple[PriceObservation, ...]:
        return tuple(self._windows.get((asset, source), ()))

    def size(self, asset: str, source: str) -> int:
        return len(self._windows.get((asset, source), ()))

    def keys(self) -> List[WindowKey]:
        return list(self._windows.keys())

    def clear(self) -> None:
        self._windows.clear()

    @property
    def stats(self) -> Dict[str, Any]:
        return {
            "windows": len(self._windows),
            "capacity": self.capacity,
            "total_observations": sum(len(w) for w in self._windows.values()),
        }
