"""
ORACLE SENTINEL — Incident Lifecycle Manager
Owns incident records, acknowledgement state and per-channel delivery flags.
"""
import uuid
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from oracle_sentinel.data.models import (
    DeliveryRecord, DetectionOutcome, Incident, IncidentType, Severity,
)
from oracle_sentinel.utils.helpers import utc_now
from oracle_sentinel.utils.logger import get_logger

logger = get_logger("incidents")

AGGREGATE_SOURCE = "aggregate"


class IncidentManager:
    """In-memory incident registry with bounded retention (oldest evicted)."""

    def __init__(self, max_incidents: int = 1000):
        self.max_incidents = max_incidents
        self._incidents: "OrderedDict[str, Incident]" = OrderedDict()

    def create(
        self,
        outcome: DetectionOutcome,
        confirmation_count: int = 1,
        now: Optional[datetime] = None,
    ) -> Incident:
        """Create an incident from a confirmed detection."""
        incident = Incident(
            id=uuid.uuid4().hex,
            type=outcome.type,
            severity=outcome.severity,
            asset=outcome.asset,
            source=outcome.source or AGGREGATE_SOURCE,
            created_at=now or utc_now(),
            confirmation_count=confirmation_count,
            details=dict(outcome.details),
        )
        self._store(incident)
        logger.warning(
            "incident_created",
            incident_id=incident.id, type=incident.type.value, asset=incident.asset,
            source=incident.source, severity=incident.severity.label,
        )
        return incident

    def create_synthetic(
        self,
        incident_type: IncidentType,
        severity: Severity,
        asset: str,
        source: str,
        details: Dict[str, Any],
        confirmation_count: int = 1,
    ) -> Incident:
        """Create an incident that did not come from a live detection (simulations)."""
        outcome = DetectionOutcome(
            type=incident_type, severity=severity, asset=asset, source=source, details=details,
        )
        return self.create(outcome, confirmation_count)

    def _store(self, incident: Incident) -> None:
        self._incidents[incident.id] = incident
        while len(self._incidents) > self.max_incidents:
            self._incidents.popitem(last=False)

    def get(self, incident_id: str) -> Optional[Incident]:
        return self._incidents.get(incident_id)

    def acknowledge(self, incident_id: str) -> Optional[Incident]:
        """Idempotent; unknown ids are ignored."""
        incident = self._incidents.get(incident_id)
        if incident is None:
            logger.debug("acknowledge_unknown_incident", incident_id=incident_id)
            return None
        if not incident.acknowledged:
            incident.acknowledged = True
            logger.info("incident_acknowledged", incident_id=incident_id)
        return incident

    def list(self, limit: int = 100) -> List[Incident]:
        """Most recent first."""
        if limit <= 0:
            return []
        ordered = sorted(self._incidents.values(), key=lambda i: i.created_at, reverse=True)
        return ordered[:limit]

    def open_incident(
        self,
        asset: str,
        incident_type: IncidentType,
        within: timedelta,
        now: Optional[datetime] = None,
    ) -> Optional[Incident]:
        """Unacknowledged incident for (asset, type) created inside the cool-down."""
        now = now or utc_now()
        for incident in reversed(self._incidents.values()):
            if incident.asset != asset or incident.type != incident_type:
                continue
            if incident.acknowledged:
                continue
            if now - incident.created_at < within:
                return incident
        return None

    def record_delivery(self, incident_id: str, channel: str, record: DeliveryRecord) -> None:
        incident = self._incidents.get(incident_id)
        if incident is None:
            # Evicted while the dispatch was in flight
            return
        incident.deliveries[channel] = record

    def __len__(self) -> int:
        return len(self._incidents)

    @property
    def stats(self) -> Dict[str, Any]:
        incidents = list(self._incidents.values())
        return {
            "total": len(incidents),
            "unacknowledged": sum(1 for i in incidents if not i.acknowledged),
            "by_type": {
                t.value: sum(1 for i in incidents if i.type == t) for t in IncidentType
            },
        }
