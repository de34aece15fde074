"""
ORACLE SENTINEL — Telegram Alert Channel
Sends every incident to a Telegram chat as a permanent, searchable log.
Async delivery with rate limiting and bounded retries.
"""
import asyncio
import time
from typing import Any, Dict, Optional

from telegram import Bot

from oracle_sentinel.alerts.base import BaseAlertChannel, TYPE_EMOJI
from oracle_sentinel.config.settings import TelegramSettings, get_settings
from oracle_sentinel.data.models import DeliveryReceipt, Incident, IncidentType, Severity, SystemConfig
from oracle_sentinel.utils.logger import get_logger

logger = get_logger("telegram_channel")


SEVERITY_EMOJI = {
    Severity.INFO: "ℹ️",
    Severity.WARNING: "⚠️",
    Severity.CRITICAL: "🚨",
    Severity.EMERGENCY: "🔥",
}


def format_incident_message(incident: Incident) -> str:
    """Format an incident as a Telegram Markdown message."""
    d = incident.details
    severity_emoji = SEVERITY_EMOJI.get(incident.severity, "⚠️")
    type_emoji = TYPE_EMOJI.get(incident.type, "")

    message = (
        f"{severity_emoji} *ORACLE ALERT* {type_emoji}\n"
        f"{'━' * 28}\n"
        f"\n"
        f"*Type:* `{incident.type.value.upper()}`\n"
        f"*Asset:* `{incident.asset}`\n"
        f"*Source:* `{incident.source}`\n"
        f"*Severity:* *{incident.severity.label}*\n"
        f"*Time:* `{incident.created_at.isoformat()[:19]} UTC`\n"
        f"\n"
    )

    if incident.type == IncidentType.MISPRICING and "deviationBps" in d:
        message += (
            f"*Deviation:* `{d['deviationBps']:.0f} bps` ({d['deviationBps'] / 100:.2f}%)\n"
            f"*Reported Price:* `${d.get('onchainPrice', 0):.2f}`\n"
            f"*Reference Price:* `${d.get('referencePrice', 0):.2f}`\n"
        )
    elif incident.type == IncidentType.STALE_ORACLE and "staleDuration" in d:
        message += (
            f"*Stale Duration:* `{int(d['staleDuration'] // 60)} min`\n"
            f"*Expected Update:* every `{d.get('expectedUpdateInterval')}` s\n"
        )
    elif incident.type == IncidentType.FLASH_LOAN and "priceChangeBps" in d:
        message += (
            f"*Price Change:* `{d['priceChangeBps']:.0f} bps`\n"
            f"*Time Window:* `{d.get('timeWindowSeconds')}` s\n"
        )
    elif incident.type == IncidentType.DIVERGENCE and "standardDeviationBps" in d:
        low, high = d.get("priceRange", [0, 0])
        message += (
            f"*Std Deviation:* `{d['standardDeviationBps']:.0f} bps`\n"
            f"*Sources Checked:* `{d.get('sourceCount')}`\n"
            f"*Price Range:* `${low}` - `${high}`\n"
        )
    elif incident.type == IncidentType.INVALID_READING:
        message += f"*Reported Price:* `{d.get('reportedPrice')}`\n"

    message += (
        f"\n*Confirmations:* `{incident.confirmation_count}`\n"
        f"{'━' * 28}\n"
        f"_ID {incident.id[:12]}_"
    )
    return message


class TelegramChannel(BaseAlertChannel):
    """Telegram delivery for all incidents."""

    name = "telegram"

    def __init__(self, settings: Optional[TelegramSettings] = None, bot: Optional[Bot] = None):
        self.settings = settings or get_settings().telegram
        self._bot = bot
        self._last_send_time = 0.0
        self._message_count = 0

    async def connect(self) -> None:
        if self._bot is not None:
            return
        if not self.settings.bot_token:
            logger.warning("telegram_no_token", msg="Bot token not configured")
            return
        self._bot = Bot(token=self.settings.bot_token)
        logger.info("telegram_initialized")

    async def disconnect(self) -> None:
        if self._bot:
            try:
                await self._bot.shutdown()
            except Exception as e:
                logger.warning("telegram_shutdown_error", error=str(e))
        self._bot = None

    def is_enabled(self, system_config: SystemConfig) -> bool:
        return system_config.telegram_enabled

    async def _rate_limit(self) -> None:
        """Enforce rate limiting (max N msg/sec)."""
        now = time.monotonic()
        elapsed = now - self._last_send_time
        min_interval = 1.0 / self.settings.rate_limit_per_second
        if elapsed < min_interval:
            await asyncio.sleep(min_interval - elapsed)
        self._last_send_time = time.monotonic()

    async def send(self, incident: Incident, system_config: Optional[SystemConfig] = None) -> DeliveryReceipt:
        if not self.settings.chat_id:
            logger.warning("telegram_no_chat_id")
            return DeliveryReceipt(delivered=False)

        if self._bot is None:
            await self.connect()
        if self._bot is None:
            logger.warning("telegram_bot_not_available")
            return DeliveryReceipt(delivered=False)

        message = format_incident_message(incident)

        for attempt in range(self.settings.max_retries):
            try:
                await self._rate_limit()
                sent = await self._bot.send_message(
                    chat_id=self.settings.chat_id,
                    text=message,
                    parse_mode="Markdown",
                )
                self._message_count += 1
                logger.info("telegram_sent", incident_id=incident.id,
                            attempt=attempt + 1, total_sent=self._message_count)
                return DeliveryReceipt(delivered=True, reference=str(sent.message_id))

            except Exception as e:
                logger.warning("telegram_send_error", attempt=attempt + 1, error=str(e))
                if attempt < self.settings.max_retries - 1:
                    await asyncio.sleep(self.settings.retry_delay * (attempt + 1))

        logger.error("telegram_send_failed", incident_id=incident.id,
                     max_retries=self.settings.max_retries)
        return DeliveryReceipt(delivered=False)

    @property
    def stats(self) -> Dict[str, Any]:
        return {
            "initialized": self._bot is not None,
            "messages_sent": self._message_count,
        }
