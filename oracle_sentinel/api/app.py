"""
ORACLE SENTINEL — FastAPI Application
Health, metrics, incident feed and operator control endpoints.
"""
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from oracle_sentinel.config.config_store import ConfigError
from oracle_sentinel.config.settings import get_settings
from oracle_sentinel.data.models import IncidentType
from oracle_sentinel.engines.monitoring import MonitoringService, build_monitoring_service
from oracle_sentinel.utils.helpers import utc_timestamp
from oracle_sentinel.utils.logger import get_logger, setup_logging

logger = get_logger("api")

router = APIRouter()


def _service(request: Request) -> MonitoringService:
    return request.app.state.service


# ─── Health & Metrics ───────────────────────────────────────────

@router.get("/healthz", tags=["System"])
async def health_check(request: Request):
    """Fast health check endpoint for load balancers and monitoring."""
    service = _service(request)
    return JSONResponse(
        status_code=200,
        content={
            "status": "healthy",
            "instance": request.app.state.instance_id,
            "monitoring": service.is_running,
            "timestamp": utc_timestamp(),
        },
    )


@router.get("/metrics", tags=["System"])
async def metrics(request: Request):
    """Engine counters: cycles, incidents, confirmations, windows, deliveries."""
    settings = get_settings()
    return {
        "app": {
            "name": settings.app_name,
            "version": settings.version,
            "instance_id": request.app.state.instance_id,
        },
        "engine": _service(request).status,
        "timestamp": utc_timestamp(),
    }


# ─── Prices & Sources ───────────────────────────────────────────

@router.get("/api/prices", tags=["Prices"])
async def latest_prices(request: Request):
    """Latest cross-source price view per asset."""
    views = _service(request).latest_prices()
    return {
        "prices": [v.model_dump(mode="json") for v in views],
        "timestamp": utc_timestamp(),
    }


@router.get("/api/status/sources", tags=["Prices"])
async def source_status(request: Request):
    """Per-source health from the last ingestion rounds."""
    statuses = _service(request).source_status()
    return {"sources": [s.model_dump(mode="json") for s in statuses]}


# ─── Incidents ──────────────────────────────────────────────────

@router.get("/api/incidents", tags=["Incidents"])
async def list_incidents(request: Request, limit: int = Query(default=100, ge=0, le=1000)):
    """Most recent incidents first."""
    incidents = _service(request).list_incidents(limit)
    return {
        "incidents": [i.to_dict() for i in incidents],
        "count": len(incidents),
    }


@router.post("/api/incidents/{incident_id}/acknowledge", tags=["Incidents"])
async def acknowledge_incident(request: Request, incident_id: str):
    """Mark an incident acknowledged. Repeating the call, or an unknown id, is harmless."""
    incident = _service(request).acknowledge(incident_id)
    if incident is None:
        return {"id": incident_id, "acknowledged": False}
    return incident.to_dict()


# ─── Configuration ──────────────────────────────────────────────

@router.get("/api/config/system", tags=["Config"])
async def get_system_config(request: Request):
    return _service(request).config_store.get_system_config().model_dump(mode="json")


@router.post("/api/config/system", tags=["Config"])
async def update_system_config(request: Request, changes: Dict[str, Any] = Body(...)):
    """Partial update of the engine-wide policy."""
    try:
        updated = _service(request).config_store.update_system_config(changes)
    except ConfigError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return updated.model_dump(mode="json")


@router.get("/api/config/assets", tags=["Config"])
async def list_asset_configs(request: Request):
    configs = _service(request).config_store.get_asset_configs()
    return {"assets": [c.model_dump(mode="json") for c in configs]}


@router.post("/api/config/assets/{asset}", tags=["Config"])
async def update_asset_config(request: Request, asset: str, changes: Dict[str, Any] = Body(...)):
    """Partial update of one asset; nested thresholds are merged."""
    store = _service(request).config_store
    if store.get_asset_config(asset) is None:
        raise HTTPException(status_code=404, detail=f"Asset config not found: {asset}")
    try:
        updated = store.update_asset_config(asset, changes)
    except ConfigError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return updated.model_dump(mode="json")


# ─── Simulation ─────────────────────────────────────────────────

@router.post("/api/simulation/{incident_type}", tags=["Simulation"])
async def simulate_alert(request: Request, incident_type: str, asset: str = "ETH"):
    """Push a synthetic incident through every enabled channel."""
    try:
        parsed = IncidentType(incident_type.replace("-", "_"))
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown incident type: {incident_type}")

    incident = await _service(request).simulate_alert(parsed, asset=asset)
    return incident.to_dict()


# ─── Application ────────────────────────────────────────────────

def create_app(
    service: Optional[MonitoringService] = None,
    start_monitoring: bool = True,
) -> FastAPI:
    """Build the API around a monitoring service (production wiring by default)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging()
        settings = get_settings()
        if app.state.service is None:
            app.state.service = build_monitoring_service(settings)

        logger.info("oracle_sentinel_starting",
                    version=settings.version,
                    instance=app.state.instance_id)
        if start_monitoring:
            await app.state.service.start()
        logger.info("oracle_sentinel_ready")

        yield

        logger.info("oracle_sentinel_shutting_down")
        if start_monitoring:
            await app.state.service.stop()

    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        description="Oracle price anomaly detection and incident alerting",
        version=settings.version,
        lifespan=lifespan,
    )
    app.state.service = service
    app.state.instance_id = str(uuid.uuid4())[:8]
    app.include_router(router)
    return app


app = create_app()
