"""
ORACLE SENTINEL — X/Twitter Alert Channel
Posts public warnings, by default for EMERGENCY incidents only.
"""
from typing import Optional

import aiohttp

from oracle_sentinel.alerts.base import BaseAlertChannel, TYPE_EMOJI
from oracle_sentinel.config.settings import TwitterSettings, get_settings
from oracle_sentinel.data.models import DeliveryReceipt, Incident, IncidentType, Severity, SystemConfig
from oracle_sentinel.utils.helpers import truncate
from oracle_sentinel.utils.logger import get_logger

logger = get_logger("twitter_channel")


def format_tweet(incident: Incident, max_length: int = 280) -> str:
    d = incident.details
    label = incident.type.value.replace("_", " ").upper()

    tweet = f"🚨 ORACLE ALERT {TYPE_EMOJI.get(incident.type, '')}\n\n"
    tweet += f"{incident.asset} {label} detected on {incident.source.upper()}\n\n"

    if incident.type == IncidentType.MISPRICING and "deviationBps" in d:
        tweet += f"Deviation: {d['deviationBps'] / 100:.2f}%\n"
    elif incident.type == IncidentType.FLASH_LOAN:
        tweet += "Potential flash loan attack detected\n"
    elif incident.type == IncidentType.STALE_ORACLE:
        tweet += f"Oracle not updating - stale for {int(d.get('staleDuration', 0) // 60)}m\n"
    elif incident.type == IncidentType.DIVERGENCE:
        tweet += "Multi-source price divergence detected\n"
    elif incident.type == IncidentType.INVALID_READING:
        tweet += "Invalid price reported by feed\n"

    tweet += "\nProtocols: exercise caution\n#DeFi #OracleSecurity"
    return truncate(tweet, max_length)


class TwitterChannel(BaseAlertChannel):
    """Posts through the X API v2 `POST /2/tweets` endpoint."""

    name = "twitter"

    def __init__(self, settings: Optional[TwitterSettings] = None, timeout_seconds: float = 10.0):
        self.settings = settings or get_settings().twitter
        self.timeout_seconds = timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    async def connect(self) -> None:
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        self._session = aiohttp.ClientSession(timeout=timeout)

    async def disconnect(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    def is_enabled(self, system_config: SystemConfig) -> bool:
        return system_config.twitter_enabled

    def should_send(self, incident: Incident, system_config: SystemConfig) -> bool:
        if system_config.twitter_emergency_only:
            return incident.severity == Severity.EMERGENCY
        return True

    async def send(self, incident: Incident, system_config: Optional[SystemConfig] = None) -> DeliveryReceipt:
        if not self.settings.access_token:
            logger.warning("twitter_no_credentials")
            return DeliveryReceipt(delivered=False)

        if not self._session:
            await self.connect()

        headers = {"Authorization": f"Bearer {self.settings.access_token}"}
        payload = {"text": format_tweet(incident, self.settings.max_length)}

        async with self._session.post(self.settings.api_url, json=payload, headers=headers) as resp:
            if resp.status not in (200, 201):
                body = await resp.text()
                logger.warning("twitter_post_error", status=resp.status, body=body[:200])
                return DeliveryReceipt(delivered=False)
            data = await resp.json()

        tweet_id = data.get("data", {}).get("id")
        logger.info("twitter_posted", incident_id=incident.id, tweet_id=tweet_id)
        return DeliveryReceipt(delivered=True, reference=tweet_id)
