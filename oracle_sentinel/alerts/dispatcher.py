"""
ORACLE SENTINEL — Alert Dispatch Coordinator
Fans a confirmed incident out to every enabled channel concurrently.
A failing or slow channel never blocks the others or the monitoring loop.
"""
import asyncio
from typing import Any, Dict, List, Optional, Sequence

from oracle_sentinel.alerts.base import BaseAlertChannel
from oracle_sentinel.data.models import DeliveryReceipt, DeliveryRecord, Incident, SystemConfig
from oracle_sentinel.engines.incidents import IncidentManager
from oracle_sentinel.utils.helpers import utc_now
from oracle_sentinel.utils.logger import get_logger

logger = get_logger("alert_dispatcher")


class AlertDispatcher:
    """Concurrent per-channel delivery with a bounded timeout per channel."""

    def __init__(
        self,
        channels: Sequence[BaseAlertChannel],
        incidents: Optional[IncidentManager] = None,
        timeout_seconds: float = 10.0,
    ):
        self.channels: List[BaseAlertChannel] = list(channels)
        self.incidents = incidents
        self.timeout_seconds = timeout_seconds
        self._sent = 0
        self._failed = 0

    async def connect(self) -> None:
        for channel in self.channels:
            try:
                await channel.connect()
            except Exception as e:
                logger.warning("channel_connect_failed", channel=channel.name, error=str(e))

    async def disconnect(self) -> None:
        for channel in self.channels:
            try:
                await channel.disconnect()
            except Exception as e:
                logger.warning("channel_disconnect_failed", channel=channel.name, error=str(e))

    def _targets(self, incident: Incident, system_config: SystemConfig) -> List[BaseAlertChannel]:
        targets = []
        for channel in self.channels:
            if not channel.is_enabled(system_config):
                continue
            if not channel.should_send(incident, system_config):
                logger.debug("channel_gated", channel=channel.name, incident_id=incident.id,
                             severity=incident.severity.label)
                continue
            targets.append(channel)
        return targets

    async def dispatch(self, incident: Incident, system_config: SystemConfig) -> Dict[str, DeliveryRecord]:
        """Deliver to all eligible channels; returns the delivery record per channel."""
        targets = self._targets(incident, system_config)
        if not targets:
            return {}

        results = await asyncio.gather(
            *(self._send_one(channel, incident, system_config) for channel in targets)
        )

        records = dict(zip((c.name for c in targets), results))
        for name, record in records.items():
            if self.incidents is not None:
                self.incidents.record_delivery(incident.id, name, record)
            else:
                incident.deliveries[name] = record

        logger.info(
            "incident_dispatched",
            incident_id=incident.id,
            delivered=[n for n, r in records.items() if r.delivered],
            failed=[n for n, r in records.items() if not r.delivered],
        )
        return records

    async def _send_one(
        self, channel: BaseAlertChannel, incident: Incident, system_config: SystemConfig
    ) -> DeliveryRecord:
        attempted_at = utc_now()
        try:
            receipt: DeliveryReceipt = await asyncio.wait_for(
                channel.send(incident, system_config), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            self._failed += 1
            logger.warning("channel_timeout", channel=channel.name, incident_id=incident.id,
                           timeout=self.timeout_seconds)
            return DeliveryRecord(delivered=False, error="timeout", attempted_at=attempted_at)
        except Exception as e:
            self._failed += 1
            logger.error("channel_send_failed", channel=channel.name, incident_id=incident.id,
                         error=str(e))
            return DeliveryRecord(delivered=False, error=str(e) or type(e).__name__,
                                  attempted_at=attempted_at)

        if receipt.delivered:
            self._sent += 1
        else:
            self._failed += 1
        return DeliveryRecord(
            delivered=receipt.delivered, reference=receipt.reference, attempted_at=attempted_at,
        )

    @property
    def stats(self) -> Dict[str, Any]:
        return {
            "channels": [c.name for c in self.channels],
            "sent": self._sent,
            "failed": self._failed,
        }
