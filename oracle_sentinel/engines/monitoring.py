"""
ORACLE SENTINEL — Monitoring Service
The periodic driver: ingests prices, runs detection for every enabled asset,
confirms detections, creates incidents and hands them to the dispatcher.
"""
import asyncio
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from oracle_sentinel.alerts.dispatcher import AlertDispatcher
from oracle_sentinel.config.config_store import ConfigStore
from oracle_sentinel.config.settings import AppSettings, DetectionSettings, MonitoringSettings, get_settings
from oracle_sentinel.data.cache.price_cache import LatestPriceCache, Snapshot
from oracle_sentinel.data.ingestion import PriceIngestor
from oracle_sentinel.data.models import (
    AssetConfig, AssetPriceView, Incident, IncidentType, PriceObservation,
    Severity, SourceStatus, SystemConfig,
)
from oracle_sentinel.data.window_store import PriceWindowStore
from oracle_sentinel.detection.engine import DetectionEngine
from oracle_sentinel.engines.confirmation import ConfirmationOrchestrator
from oracle_sentinel.engines.incidents import IncidentManager
from oracle_sentinel.utils.helpers import utc_now, utc_timestamp
from oracle_sentinel.utils.logger import get_logger

logger = get_logger("monitoring")


# Canned evidence for operator-triggered test alerts
SIMULATION_DETAILS: Dict[IncidentType, Dict[str, Any]] = {
    IncidentType.MISPRICING: {"onchainPrice": 2400.0, "referencePrice": 2250.0, "deviationBps": 666.7, "zScore": 4.1},
    IncidentType.STALE_ORACLE: {"staleDuration": 240.0, "expectedUpdateInterval": 60},
    IncidentType.FLASH_LOAN: {"priceChangeBps": 3200.0, "timeWindowSeconds": 10, "minPrice": 2100.0, "maxPrice": 2772.0},
    IncidentType.DIVERGENCE: {"standardDeviationBps": 2200.0, "sourceCount": 5, "priceRange": [2100.0, 2400.0]},
    IncidentType.INVALID_READING: {"reportedPrice": 0.0},
}


class MonitoringService:
    """Owns the ingestion and detection loops and everything they drive."""

    def __init__(
        self,
        config_store: ConfigStore,
        price_cache: LatestPriceCache,
        ingestor: PriceIngestor,
        engine: DetectionEngine,
        confirmations: ConfirmationOrchestrator,
        incidents: IncidentManager,
        dispatcher: AlertDispatcher,
        settings: Optional[MonitoringSettings] = None,
        detection_settings: Optional[DetectionSettings] = None,
    ):
        self.config_store = config_store
        self.price_cache = price_cache
        self.ingestor = ingestor
        self.engine = engine
        self.confirmations = confirmations
        self.incidents = incidents
        self.dispatcher = dispatcher
        self.settings = settings or get_settings().monitoring
        detection_settings = detection_settings or get_settings().detection
        self.cooldown = timedelta(seconds=detection_settings.incident_cooldown_seconds)

        self._running = False
        self._tasks: List[asyncio.Task] = []
        self._pending_dispatches: Set[asyncio.Task] = set()
        self._cycle = 0
        self._asset_errors = 0
        self._started_at: Optional[str] = None

    # ─── Lifecycle ──────────────────────────────────────────────

    async def start(self) -> None:
        if self._running:
            logger.info("monitoring_already_running")
            return

        await self.ingestor.connect()
        await self.dispatcher.connect()

        self._running = True
        self._started_at = utc_timestamp()
        self._tasks = [
            asyncio.create_task(
                self._run_periodic("ingestion", self.settings.ingestion_interval_seconds,
                                   self.run_ingestion_cycle)
            ),
            asyncio.create_task(
                self._run_periodic("detection", self.settings.detection_interval_seconds,
                                   self.run_detection_cycle)
            ),
        ]
        logger.info(
            "monitoring_started",
            ingestion_interval=self.settings.ingestion_interval_seconds,
            detection_interval=self.settings.detection_interval_seconds,
            assets=[c.asset for c in self.config_store.enabled_assets()],
        )

    async def stop(self) -> None:
        """Cancel loops, let in-flight dispatches drain, then release clients."""
        self._running = False
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        await self.drain_dispatches(self.settings.shutdown_grace_seconds)
        await self.ingestor.disconnect()
        await self.dispatcher.disconnect()
        logger.info("monitoring_stopped", cycles=self._cycle)

    async def _run_periodic(
        self, name: str, interval: float, step: Callable[[], Awaitable[Any]]
    ) -> None:
        loop = asyncio.get_running_loop()
        while self._running:
            started = loop.time()
            try:
                await step()
            except Exception:
                logger.exception(f"{name}_cycle_error")
            elapsed = loop.time() - started
            await asyncio.sleep(max(0.0, interval - elapsed))

    # ─── Cycles ─────────────────────────────────────────────────

    async def run_ingestion_cycle(self) -> int:
        assets = [c.asset for c in self.config_store.enabled_assets()]
        return await self.ingestor.ingest(assets)

    async def run_detection_cycle(self, now: Optional[datetime] = None) -> List[Incident]:
        """One detection pass over every enabled asset. Returns new incidents."""
        self._cycle += 1
        now = now or utc_now()
        system = self.config_store.get_system_config()
        by_asset = self._group_snapshot(self.price_cache.snapshot())

        created: List[Incident] = []
        for config in self.config_store.enabled_assets():
            observations = by_asset.get(config.asset)
            if not observations:
                continue
            try:
                created.extend(self._process_asset(config, observations, system, now))
            except Exception:
                self._asset_errors += 1
                logger.exception("asset_detection_failed", asset=config.asset, cycle=self._cycle)

        for incident in created:
            self._schedule_dispatch(incident, system)
        return created

    def _group_snapshot(self, snapshot: Snapshot) -> Dict[str, List[PriceObservation]]:
        grouped: Dict[str, List[PriceObservation]] = {}
        for (asset, source), observation in snapshot.items():
            config = self.config_store.get_asset_config(asset)
            if config is None or not config.enabled or not config.accepts_source(source):
                continue
            grouped.setdefault(asset, []).append(observation)
        return grouped

    def _process_asset(
        self,
        config: AssetConfig,
        observations: List[PriceObservation],
        system: SystemConfig,
        now: datetime,
    ) -> List[Incident]:
        outcomes = self.engine.analyze(
            config.asset, observations, config, now,
            min_sources=system.min_sources_for_divergence,
        )

        created = []
        for outcome in outcomes:
            confirmed = self.confirmations.register(
                outcome.asset,
                outcome.type,
                outcome.severity,
                required=system.confirmations_required,
                bypass_emergency=system.bypass_confirmation_for_emergency,
                now=now.timestamp(),
            )
            if not confirmed:
                continue

            existing = self.incidents.open_incident(outcome.asset, outcome.type, self.cooldown, now)
            if existing is not None:
                logger.info(
                    "incident_suppressed_open",
                    asset=outcome.asset, type=outcome.type.value, open_incident=existing.id,
                )
                continue

            created.append(
                self.incidents.create(outcome, system.confirmations_required, now)
            )
        return created

    # ─── Dispatch ───────────────────────────────────────────────

    def _schedule_dispatch(self, incident: Incident, system: SystemConfig) -> None:
        task = asyncio.create_task(self.dispatcher.dispatch(incident, system))
        self._pending_dispatches.add(task)
        task.add_done_callback(self._on_dispatch_done)

    def _on_dispatch_done(self, task: asyncio.Task) -> None:
        self._pending_dispatches.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("dispatch_task_failed", error=str(error))

    async def drain_dispatches(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight dispatches; cancel whatever is left after `timeout`."""
        pending = list(self._pending_dispatches)
        if not pending:
            return
        _, still_pending = await asyncio.wait(pending, timeout=timeout)
        for task in still_pending:
            task.cancel()
        if still_pending:
            logger.warning("dispatches_cancelled", count=len(still_pending))
            await asyncio.gather(*still_pending, return_exceptions=True)

    async def simulate_alert(self, incident_type: IncidentType, asset: str = "ETH") -> Incident:
        """Create and deliver a synthetic incident (channel smoke test)."""
        if incident_type in (IncidentType.FLASH_LOAN, IncidentType.DIVERGENCE):
            severity = Severity.EMERGENCY
        else:
            severity = Severity.CRITICAL

        system = self.config_store.get_system_config()
        incident = self.incidents.create_synthetic(
            incident_type, severity, asset, "simulation",
            dict(SIMULATION_DETAILS[incident_type], simulated=True),
            confirmation_count=system.confirmations_required,
        )
        logger.info("simulation_alert_created", incident_id=incident.id, type=incident_type.value)
        await self.dispatcher.dispatch(incident, system)
        return incident

    # ─── Read / command surfaces ────────────────────────────────

    def list_incidents(self, limit: int = 100) -> List[Incident]:
        return self.incidents.list(limit)

    def acknowledge(self, incident_id: str) -> Optional[Incident]:
        return self.incidents.acknowledge(incident_id)

    def latest_prices(self) -> List[AssetPriceView]:
        return self.price_cache.latest_prices()

    def source_status(self) -> List[SourceStatus]:
        return self.ingestor.source_status()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def status(self) -> Dict[str, Any]:
        return {
            "is_running": self._running,
            "started_at": self._started_at,
            "cycles": self._cycle,
            "asset_errors": self._asset_errors,
            "pending_dispatches": len(self._pending_dispatches),
            "incidents": self.incidents.stats,
            "confirmations": self.confirmations.stats,
            "windows": self.engine.window_store.stats,
            "price_cache": self.price_cache.stats,
            "dispatcher": self.dispatcher.stats,
            "sources": [s.model_dump(mode="json") for s in self.source_status()],
        }


def build_monitoring_service(settings: Optional[AppSettings] = None) -> MonitoringService:
    """Wire the production service: live adapters, live channels, in-memory state."""
    from oracle_sentinel.alerts.telegram import TelegramChannel
    from oracle_sentinel.alerts.twitter import TwitterChannel
    from oracle_sentinel.alerts.webhook import WebhookChannel
    from oracle_sentinel.data.adapters.coingecko_adapter import CoinGeckoAdapter
    from oracle_sentinel.data.adapters.pyth_adapter import PythAdapter
    from oracle_sentinel.data.adapters.redstone_adapter import RedStoneAdapter

    settings = settings or get_settings()
    monitoring = settings.monitoring
    detection = settings.detection

    price_cache = LatestPriceCache()
    incidents = IncidentManager(max_incidents=monitoring.max_incidents)
    ingestor = PriceIngestor(
        [PythAdapter(settings.data), RedStoneAdapter(settings.data), CoinGeckoAdapter(settings.data)],
        price_cache,
        timeout_seconds=settings.data.poll_timeout_seconds,
    )
    dispatcher = AlertDispatcher(
        [
            TelegramChannel(settings.telegram),
            TwitterChannel(settings.twitter, timeout_seconds=monitoring.channel_timeout_seconds),
            WebhookChannel(settings.webhook, timeout_seconds=monitoring.channel_timeout_seconds),
        ],
        incidents=incidents,
        timeout_seconds=monitoring.channel_timeout_seconds,
    )
    return MonitoringService(
        config_store=ConfigStore(),
        price_cache=price_cache,
        ingestor=ingestor,
        engine=DetectionEngine(PriceWindowStore(detection.window_capacity), detection),
        confirmations=ConfirmationOrchestrator(timeout_seconds=detection.confirmation_timeout_seconds),
        incidents=incidents,
        dispatcher=dispatcher,
        settings=monitoring,
        detection_settings=detection,
    )
