"""
ORACLE SENTINEL — Base Alert Channel Interface
All notification channels must implement this interface.
"""
from abc import ABC, abstractmethod
from typing import Optional

from oracle_sentinel.data.models import DeliveryReceipt, Incident, IncidentType, SystemConfig


TYPE_EMOJI = {
    IncidentType.MISPRICING: "📉",
    IncidentType.STALE_ORACLE: "⏰",
    IncidentType.FLASH_LOAN: "⚡",
    IncidentType.DIVERGENCE: "🔀",
    IncidentType.INVALID_READING: "🚫",
}


class BaseAlertChannel(ABC):
    """Abstract base class for incident delivery channels."""

    name: str = "channel"

    async def connect(self) -> None:
        """Initialize clients / sessions. Optional."""

    async def disconnect(self) -> None:
        """Release clients / sessions. Optional."""

    @abstractmethod
    def is_enabled(self, system_config: SystemConfig) -> bool:
        """Whether the channel is switched on in the current system config."""
        pass

    def should_send(self, incident: Incident, system_config: SystemConfig) -> bool:
        """Severity/category gate evaluated before `send`. Default: everything."""
        return True

    @abstractmethod
    async def send(self, incident: Incident, system_config: Optional[SystemConfig] = None) -> DeliveryReceipt:
        """
        Deliver one incident. `system_config` is the snapshot the dispatch
        was gated on. May raise; the dispatcher isolates failures.
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name})"
