"""
ORACLE SENTINEL — Webhook Alert Channel
POSTs incidents as JSON to an operator endpoint.
"""
from typing import Optional

import aiohttp

from oracle_sentinel.alerts.base import BaseAlertChannel
from oracle_sentinel.config.settings import WebhookSettings, get_settings
from oracle_sentinel.data.models import DeliveryReceipt, Incident, SystemConfig
from oracle_sentinel.utils.helpers import utc_timestamp
from oracle_sentinel.utils.logger import get_logger

logger = get_logger("webhook_channel")


class WebhookChannel(BaseAlertChannel):
    """
    Generic webhook. The target URL comes from SystemConfig when set there,
    otherwise from WEBHOOK_URL.
    """

    name = "webhook"

    def __init__(self, settings: Optional[WebhookSettings] = None, timeout_seconds: float = 10.0):
        self.settings = settings or get_settings().webhook
        self.timeout_seconds = timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    async def connect(self) -> None:
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        self._session = aiohttp.ClientSession(timeout=timeout)

    async def disconnect(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    def target_url(self, system_config: Optional[SystemConfig] = None) -> str:
        if system_config is not None and system_config.webhook_url:
            return system_config.webhook_url
        return self.settings.url

    def is_enabled(self, system_config: SystemConfig) -> bool:
        return system_config.webhook_enabled and bool(self.target_url(system_config))

    async def send(self, incident: Incident, system_config: Optional[SystemConfig] = None) -> DeliveryReceipt:
        url = self.target_url(system_config)
        if not url:
            return DeliveryReceipt(delivered=False)
        if not self._session:
            await self.connect()

        headers = {"Content-Type": "application/json"}
        if self.settings.secret_header:
            headers["X-Sentinel-Secret"] = self.settings.secret_header

        body = {"type": "incident", "data": incident.to_dict(), "timestamp": utc_timestamp()}
        async with self._session.post(url, json=body, headers=headers) as resp:
            if resp.status >= 400:
                logger.warning("webhook_rejected", status=resp.status, incident_id=incident.id)
                return DeliveryReceipt(delivered=False)

        logger.info("webhook_sent", incident_id=incident.id)
        return DeliveryReceipt(delivered=True)
