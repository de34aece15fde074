"""
ORACLE SENTINEL — Test Configuration & Fixtures
Shared fixtures for all test modules.
"""
import asyncio
from datetime import datetime, timezone, timedelta
from typing import Dict, List, Optional

import pytest

from oracle_sentinel.alerts.base import BaseAlertChannel
from oracle_sentinel.alerts.dispatcher import AlertDispatcher
from oracle_sentinel.config.config_store import ConfigStore
from oracle_sentinel.config.settings import DetectionSettings, MonitoringSettings
from oracle_sentinel.data.adapters.base import BaseSourceAdapter
from oracle_sentinel.data.cache.price_cache import LatestPriceCache
from oracle_sentinel.data.ingestion import PriceIngestor
from oracle_sentinel.data.models import (
    AssetConfig, DeliveryReceipt, Incident, PriceObservation, SystemConfig, Thresholds,
)
from oracle_sentinel.data.window_store import PriceWindowStore
from oracle_sentinel.detection.engine import DetectionEngine
from oracle_sentinel.engines.confirmation import ConfirmationOrchestrator
from oracle_sentinel.engines.incidents import IncidentManager
from oracle_sentinel.engines.monitoring import MonitoringService
from oracle_sentinel.utils.helpers import utc_now

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


# ─── Fakes ──────────────────────────────────────────────────────

class FakeClock:
    """Epoch-seconds timer stand-in for TTL based state."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeAdapter(BaseSourceAdapter):
    """Returns fixed prices, optionally after a delay or by raising."""

    def __init__(self, source: str, prices: Optional[Dict[str, float]] = None,
                 delay: float = 0.0, error: Optional[Exception] = None):
        super().__init__(source=source)
        self.prices = prices or {}
        self.delay = delay
        self.error = error
        self.calls = 0

    async def connect(self) -> None:
        pass

    async def disconnect(self) -> None:
        pass

    async def fetch_prices(self, assets: List[str]) -> List[PriceObservation]:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return [
            PriceObservation(asset=a, source=self.source, price=p, observed_at=utc_now())
            for a, p in self.prices.items() if a in assets
        ]


class FakeChannel(BaseAlertChannel):
    """Records every incident it is asked to send."""

    def __init__(self, name: str = "fake", delay: float = 0.0,
                 error: Optional[Exception] = None, delivered: bool = True,
                 enabled: bool = True, emergency_only: bool = False):
        self.name = name
        self.delay = delay
        self.error = error
        self.delivered = delivered
        self.enabled = enabled
        self.emergency_only = emergency_only
        self.sent: List[Incident] = []
        self.connected = False

    async def connect(self) -> None:
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    def is_enabled(self, system_config: SystemConfig) -> bool:
        return self.enabled

    def should_send(self, incident: Incident, system_config: SystemConfig) -> bool:
        return not self.emergency_only or incident.severity.label == "EMERGENCY"

    async def send(self, incident: Incident, system_config: Optional[SystemConfig] = None) -> DeliveryReceipt:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        self.sent.append(incident)
        return DeliveryReceipt(delivered=self.delivered, reference=f"{self.name}-{len(self.sent)}")


# ─── Fixtures ───────────────────────────────────────────────────

@pytest.fixture
def base_time():
    return BASE_TIME


@pytest.fixture
def make_observation():
    """Factory: make_observation(price, source="pyth", asset="ETH", offset=seconds)."""
    def _make(price: float, source: str = "pyth", asset: str = "ETH",
              offset: float = 0.0, at: Optional[datetime] = None) -> PriceObservation:
        observed_at = (at or BASE_TIME) + timedelta(seconds=offset)
        return PriceObservation(asset=asset, source=source, price=price, observed_at=observed_at)
    return _make


@pytest.fixture
def eth_config():
    return AssetConfig(
        asset="ETH", symbol="ETH/USD", expected_update_interval=60,
        thresholds=Thresholds(warning=10, critical=15, emergency=25),
    )


@pytest.fixture
def btc_config():
    return AssetConfig(
        asset="BTC", symbol="BTC/USD", expected_update_interval=60,
        thresholds=Thresholds(warning=10, critical=15, emergency=25),
    )


@pytest.fixture
def detection_settings():
    return DetectionSettings()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_adapter():
    return FakeAdapter


@pytest.fixture
def fake_channel():
    return FakeChannel


@pytest.fixture
def build_service(detection_settings, eth_config):
    """
    Factory for a MonitoringService wired with in-memory state and fake
    channels/adapters. Returns the service; collaborators hang off it.
    """
    def _build(channels=None, adapters=None, assets=None, system=None,
               channel_timeout: float = 1.0, shutdown_grace: float = 1.0) -> MonitoringService:
        monitoring = MonitoringSettings(
            ingestion_interval_seconds=0.01,
            detection_interval_seconds=0.01,
            channel_timeout_seconds=channel_timeout,
            shutdown_grace_seconds=shutdown_grace,
        )
        cache = LatestPriceCache()
        incidents = IncidentManager()
        return MonitoringService(
            config_store=ConfigStore(assets=assets or [eth_config], system=system or SystemConfig()),
            price_cache=cache,
            ingestor=PriceIngestor(adapters or [], cache, timeout_seconds=0.5),
            engine=DetectionEngine(PriceWindowStore(), detection_settings),
            confirmations=ConfirmationOrchestrator(timeout_seconds=30),
            incidents=incidents,
            dispatcher=AlertDispatcher(channels or [], incidents=incidents,
                                       timeout_seconds=channel_timeout),
            settings=monitoring,
            detection_settings=detection_settings,
        )
    return _build
