"""
ORACLE SENTINEL — Data Models
Canonical data structures shared by ingestion, detection, incidents and alerts.
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from dataclasses import dataclass, field
from enum import Enum, IntEnum


class Severity(IntEnum):
    """Ordinal escalation level attached to a detection or incident."""
    INFO = 0
    WARNING = 1
    CRITICAL = 2
    EMERGENCY = 3

    @property
    def label(self) -> str:
        return self.name


class IncidentType(str, Enum):
    MISPRICING = "mispricing"
    STALE_ORACLE = "stale_oracle"
    FLASH_LOAN = "flash_loan"
    DIVERGENCE = "divergence"
    INVALID_READING = "invalid_reading"


class VolatilityClass(str, Enum):
    STABLE = "stable"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "veryHigh"


# ─── Prices ─────────────────────────────────────────────────────

class PriceObservation(BaseModel):
    """Single price observation from one source. Immutable once recorded."""
    asset: str
    source: str
    price: float
    observed_at: datetime
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)

    class Config:
        frozen = True


class AssetPriceView(BaseModel):
    """Cross-source view of the latest prices for one asset."""
    asset: str
    sources: Dict[str, float]
    reference_price: float
    max_deviation_bps: float
    updated_at: datetime


class SourceStatus(BaseModel):
    """Health of a single price source adapter."""
    source: str
    healthy: bool = False
    last_success: Optional[datetime] = None
    last_error: Optional[str] = None
    last_latency_ms: Optional[float] = None
    observations: int = 0


# ─── Configuration ──────────────────────────────────────────────

class Thresholds(BaseModel):
    """Mispricing thresholds in percent."""
    warning: float = Field(gt=0)
    critical: float = Field(gt=0)
    emergency: float = Field(gt=0)


class AssetConfig(BaseModel):
    """Per-asset monitoring configuration."""
    asset: str
    symbol: str = ""
    enabled: bool = True
    enabled_sources: List[str] = Field(default_factory=list)
    expected_update_interval: float = Field(default=60.0, gt=0)  # seconds
    volatility_class: VolatilityClass = VolatilityClass.MEDIUM
    thresholds: Thresholds

    def accepts_source(self, source: str) -> bool:
        """An empty source list accepts every source."""
        return not self.enabled_sources or source in self.enabled_sources


class SystemConfig(BaseModel):
    """Engine-wide policy, re-read at the start of each detection cycle."""
    confirmations_required: int = Field(default=3, ge=1)
    min_sources_for_divergence: int = Field(default=3, ge=3)
    bypass_confirmation_for_emergency: bool = False

    telegram_enabled: bool = True
    twitter_enabled: bool = False
    twitter_emergency_only: bool = True
    webhook_enabled: bool = False
    webhook_url: Optional[str] = None


# ─── Detection ──────────────────────────────────────────────────

@dataclass(frozen=True)
class ReferenceStatistics:
    """Cross-source statistics for one asset in one cycle."""
    median: float
    mean: float
    standard_deviation: float
    mad: float
    sample_count: int
    min_price: float
    max_price: float

    @property
    def std_dev_bps(self) -> float:
        if self.mean == 0:
            return 0.0
        return self.standard_deviation / self.mean * 10000.0


@dataclass(frozen=True)
class DetectionOutcome:
    """A single raw detection produced by a rule."""
    type: IncidentType
    severity: Severity
    asset: str
    source: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def __repr__(self) -> str:
        where = f"{self.asset}/{self.source}" if self.source else self.asset
        return f"DetectionOutcome({self.type.value} {where} {self.severity.label})"


# ─── Incidents ──────────────────────────────────────────────────

@dataclass(frozen=True)
class DeliveryReceipt:
    """Channel answer to a single send."""
    delivered: bool
    reference: Optional[str] = None


class DeliveryRecord(BaseModel):
    """Delivery outcome for one channel, stored on the incident."""
    delivered: bool
    reference: Optional[str] = None
    error: Optional[str] = None
    attempted_at: datetime


class Incident(BaseModel):
    """Confirmed anomaly. Only `acknowledged` and `deliveries` change after creation."""
    id: str
    type: IncidentType
    severity: Severity
    asset: str
    source: str
    created_at: datetime
    acknowledged: bool = False
    confirmation_count: int = 1
    details: Dict[str, Any] = Field(default_factory=dict)
    deliveries: Dict[str, DeliveryRecord] = Field(default_factory=dict)

    def delivered_to(self, channel: str) -> bool:
        record = self.deliveries.get(channel)
        return bool(record and record.delivered)

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json")
        data["severity_label"] = self.severity.label
        return data
