"""
ORACLE SENTINEL — Runtime Configuration Store
Asset and system configuration that operators can change while the
monitoring loop runs. The loop re-reads it at the start of every cycle.
"""
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from oracle_sentinel.data.models import AssetConfig, SystemConfig, Thresholds, VolatilityClass
from oracle_sentinel.utils.logger import get_logger

logger = get_logger("config_store")


class ConfigError(Exception):
    """Raised for unknown assets or invalid configuration updates."""


def default_asset_configs() -> List[AssetConfig]:
    """Default monitored assets and their mispricing thresholds (percent)."""
    return [
        AssetConfig(
            asset="ETH", symbol="ETH/USD", volatility_class=VolatilityClass.HIGH,
            expected_update_interval=60,
            thresholds=Thresholds(warning=10, critical=15, emergency=25),
        ),
        AssetConfig(
            asset="BTC", symbol="BTC/USD", volatility_class=VolatilityClass.HIGH,
            expected_update_interval=60,
            thresholds=Thresholds(warning=10, critical=15, emergency=25),
        ),
        AssetConfig(
            asset="SOL", symbol="SOL/USD", volatility_class=VolatilityClass.VERY_HIGH,
            expected_update_interval=30,
            thresholds=Thresholds(warning=15, critical=25, emergency=40),
        ),
        AssetConfig(
            asset="USDC", symbol="USDC/USD", volatility_class=VolatilityClass.STABLE,
            expected_update_interval=300,
            thresholds=Thresholds(warning=2, critical=5, emergency=10),
        ),
    ]


class ConfigStore:
    """In-memory holder for AssetConfig and SystemConfig."""

    def __init__(
        self,
        assets: Optional[Iterable[AssetConfig]] = None,
        system: Optional[SystemConfig] = None,
    ):
        configs = default_asset_configs() if assets is None else list(assets)
        self._assets: Dict[str, AssetConfig] = {c.asset: c for c in configs}
        self._system = system or SystemConfig()

    def get_system_config(self) -> SystemConfig:
        return self._system.model_copy()

    def get_asset_configs(self) -> List[AssetConfig]:
        return list(self._assets.values())

    def get_asset_config(self, asset: str) -> Optional[AssetConfig]:
        return self._assets.get(asset)

    def enabled_assets(self) -> List[AssetConfig]:
        return [c for c in self._assets.values() if c.enabled]

    def update_system_config(self, changes: Dict[str, Any]) -> SystemConfig:
        """Apply a partial update; the whole config is re-validated."""
        merged = {**self._system.model_dump(), **changes}
        try:
            self._system = SystemConfig.model_validate(merged)
        except ValidationError as e:
            raise ConfigError(str(e)) from e
        logger.info("system_config_updated", fields=sorted(changes))
        return self.get_system_config()

    def update_asset_config(self, asset: str, changes: Dict[str, Any]) -> AssetConfig:
        existing = self._assets.get(asset)
        if existing is None:
            raise ConfigError(f"Asset config not found: {asset}")

        merged = existing.model_dump()
        thresholds = changes.get("thresholds")
        merged.update({k: v for k, v in changes.items() if k not in ("asset", "thresholds")})
        if thresholds:
            merged["thresholds"] = {**merged["thresholds"], **thresholds}

        try:
            updated = AssetConfig.model_validate(merged)
        except ValidationError as e:
            raise ConfigError(str(e)) from e
        self._assets[asset] = updated
        logger.info("asset_config_updated", asset=asset, fields=sorted(changes))
        return updated

    def put_asset_config(self, config: AssetConfig) -> None:
        self._assets[config.asset] = config
