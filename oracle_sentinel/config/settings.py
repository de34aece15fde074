"""
ORACLE SENTINEL — Central Configuration
All settings are loaded from environment variables with sensible defaults.
"""
from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional


class DataSourceSettings(BaseSettings):
    """Price source endpoints and polling behaviour."""
    pyth_base_url: str = "https://hermes.pyth.network"
    redstone_base_url: str = "https://api.redstone.finance"
    coingecko_base_url: str = "https://api.coingecko.com/api/v3"

    poll_timeout_seconds: float = 5.0

    class Config:
        env_prefix = "SOURCE_"
        env_file = ".env"
        extra = "ignore"


class DetectionSettings(BaseSettings):
    """Detection rule thresholds and window sizes."""
    window_capacity: int = Field(default=100, ge=2)
    min_sources: int = Field(default=3, ge=3)

    stale_warning_multiplier: float = 2.0
    stale_critical_multiplier: float = 5.0

    flash_loan_window_seconds: float = 15.0
    flash_loan_threshold_bps: float = 2000.0

    z_score_threshold: float = 2.5

    divergence_warning_bps: float = 1000.0
    divergence_critical_bps: float = 1500.0
    divergence_emergency_bps: float = 2000.0

    confirmation_timeout_seconds: float = 30.0
    incident_cooldown_seconds: float = 30.0

    class Config:
        env_prefix = "DETECTION_"
        env_file = ".env"
        extra = "ignore"


class MonitoringSettings(BaseSettings):
    """Orchestration loop timing and resource bounds."""
    ingestion_interval_seconds: float = 1.0
    detection_interval_seconds: float = 1.0
    channel_timeout_seconds: float = 10.0
    shutdown_grace_seconds: float = 5.0
    max_incidents: int = 1000

    class Config:
        env_prefix = "MONITOR_"
        env_file = ".env"
        extra = "ignore"


class TelegramSettings(BaseSettings):
    """Telegram bot configuration."""
    bot_token: str = ""
    chat_id: str = ""
    rate_limit_per_second: float = 1.0
    max_retries: int = 3
    retry_delay: float = 2.0

    class Config:
        env_prefix = "TELEGRAM_"
        env_file = ".env"
        extra = "ignore"


class TwitterSettings(BaseSettings):
    """X/Twitter posting configuration (OAuth 2.0 user-context token)."""
    access_token: str = ""
    api_url: str = "https://api.twitter.com/2/tweets"
    max_length: int = 280

    class Config:
        env_prefix = "TWITTER_"
        env_file = ".env"
        extra = "ignore"


class WebhookSettings(BaseSettings):
    """Generic operator webhook configuration."""
    url: str = ""
    secret_header: str = ""

    class Config:
        env_prefix = "WEBHOOK_"
        env_file = ".env"
        extra = "ignore"


class AppSettings(BaseSettings):
    """Top-level application settings."""
    app_name: str = "ORACLE SENTINEL"
    version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    data: DataSourceSettings = DataSourceSettings()
    detection: DetectionSettings = DetectionSettings()
    monitoring: MonitoringSettings = MonitoringSettings()
    telegram: TelegramSettings = TelegramSettings()
    twitter: TwitterSettings = TwitterSettings()
    webhook: WebhookSettings = WebhookSettings()

    class Config:
        env_file = ".env"
        extra = "ignore"


# Singleton
_settings: Optional[AppSettings] = None


def get_settings() -> AppSettings:
    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings
