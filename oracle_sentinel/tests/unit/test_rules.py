"""
ORACLE SENTINEL — Unit Tests for Detection Rules and the Detection Engine
"""
import pytest
from datetime import timedelta

from oracle_sentinel.data.models import IncidentType, ReferenceStatistics, Severity
from oracle_sentinel.data.window_store import PriceWindowStore
from oracle_sentinel.detection.engine import DetectionEngine
from oracle_sentinel.detection.rules import (
    detect_divergence, detect_flash_loan, detect_invalid_reading,
    detect_mispricing, detect_stale_oracle,
)
from oracle_sentinel.detection.statistics import compute_reference_statistics


# ─── Invalid Readings ───────────────────────────────────────────

class TestInvalidReading:
    @pytest.mark.parametrize("price", [0.0, -5.0, float("nan"), float("inf")])
    def test_unusable_prices(self, make_observation, price):
        outcome = detect_invalid_reading(make_observation(price))
        assert outcome.type == IncidentType.INVALID_READING
        assert outcome.severity == Severity.CRITICAL
        assert outcome.source == "pyth"

    def test_valid_price(self, make_observation):
        assert detect_invalid_reading(make_observation(100.0)) is None


# ─── Stale Oracle ───────────────────────────────────────────────

class TestStaleOracle:
    def test_not_stale_at_boundary(self, make_observation, eth_config, base_time):
        obs = make_observation(100.0)
        assert detect_stale_oracle(obs, eth_config, base_time + timedelta(seconds=180)) is None

    def test_warning_just_past_boundary(self, make_observation, eth_config, base_time):
        obs = make_observation(100.0)
        outcome = detect_stale_oracle(obs, eth_config, base_time + timedelta(seconds=181))
        assert outcome.type == IncidentType.STALE_ORACLE
        assert outcome.severity == Severity.WARNING
        assert outcome.details["staleDuration"] == pytest.approx(121.0)
        assert outcome.details["expectedUpdateInterval"] == 60

    def test_critical_beyond_five_intervals(self, make_observation, eth_config, base_time):
        obs = make_observation(100.0)
        outcome = detect_stale_oracle(obs, eth_config, base_time + timedelta(seconds=361))
        assert outcome.severity == Severity.CRITICAL

    def test_fresh_observation(self, make_observation, eth_config, base_time):
        assert detect_stale_oracle(make_observation(100.0), eth_config, base_time) is None


# ─── Flash Loan ─────────────────────────────────────────────────

class TestFlashLoan:
    def test_large_swing_is_emergency(self, make_observation):
        recent = [make_observation(100.0), make_observation(125.0, offset=10)]
        outcome = detect_flash_loan(recent[-1], recent)
        assert outcome.type == IncidentType.FLASH_LOAN
        assert outcome.severity == Severity.EMERGENCY
        assert outcome.details["priceChangeBps"] == pytest.approx(2500.0)
        assert outcome.details["minPrice"] == 100.0
        assert outcome.details["maxPrice"] == 125.0

    def test_moderate_swing_ignored(self, make_observation):
        recent = [make_observation(100.0), make_observation(115.0, offset=10)]
        assert detect_flash_loan(recent[-1], recent) is None

    def test_single_observation(self, make_observation):
        obs = make_observation(100.0)
        assert detect_flash_loan(obs, [obs]) is None


# ─── Mispricing ─────────────────────────────────────────────────

class TestMispricing:
    @pytest.fixture
    def stats(self):
        return compute_reference_statistics([100.0, 101.0, 99.0, 102.0, 150.0])

    def test_outlier_is_emergency(self, make_observation, stats, eth_config):
        outcome = detect_mispricing(make_observation(150.0), stats, eth_config)
        assert outcome.type == IncidentType.MISPRICING
        assert outcome.severity == Severity.EMERGENCY
        assert outcome.details["referencePrice"] == 101.0
        assert outcome.details["deviationBps"] == pytest.approx(49 / 101 * 10000)
        assert outcome.details["zScore"] == pytest.approx(49.0)

    @pytest.mark.parametrize("price", [99.0, 100.0, 102.0])
    def test_inliers_not_flagged(self, make_observation, stats, eth_config, price):
        assert detect_mispricing(make_observation(price), stats, eth_config) is None

    def test_z_score_alone_triggers_warning(self, make_observation, eth_config):
        stats = compute_reference_statistics([100.0, 100.1, 99.9, 100.0, 100.5])
        outcome = detect_mispricing(make_observation(100.5), stats, eth_config)
        assert outcome.severity == Severity.WARNING
        assert outcome.details["zScore"] > 2.5

    def test_zero_mad_uses_percentage_only(self, make_observation, eth_config):
        stats = compute_reference_statistics([100.0, 100.0, 100.0, 100.0, 120.0])
        assert stats.mad == 0.0
        outcome = detect_mispricing(make_observation(120.0), stats, eth_config)
        assert outcome.severity == Severity.CRITICAL
        assert outcome.details["zScore"] == 0.0
        assert detect_mispricing(make_observation(100.0), stats, eth_config) is None


# ─── Divergence ─────────────────────────────────────────────────

class TestDivergence:
    @pytest.mark.parametrize("prices,severity", [
        ([100.0, 112.0, 88.0], Severity.WARNING),
        ([100.0, 116.0, 84.0], Severity.CRITICAL),
        ([100.0, 130.0, 70.0], Severity.EMERGENCY),
    ])
    def test_tiers(self, prices, severity):
        stats = compute_reference_statistics(prices)
        outcome = detect_divergence("ETH", stats)
        assert outcome.type == IncidentType.DIVERGENCE
        assert outcome.severity == severity
        assert outcome.source is None
        assert outcome.details["sourceCount"] == 3
        assert outcome.details["priceRange"] == [min(prices), max(prices)]

    def test_agreement(self):
        stats = compute_reference_statistics([100.0, 100.5, 99.5])
        assert detect_divergence("ETH", stats) is None

    @pytest.mark.parametrize("std_dev,fires", [(1000.0, False), (1000.1, True)])
    def test_warning_threshold_is_exclusive(self, std_dev, fires):
        stats = ReferenceStatistics(median=10000.0, mean=10000.0, standard_deviation=std_dev,
                                    mad=0.0, sample_count=3, min_price=9000.0, max_price=11000.0)
        outcome = detect_divergence("ETH", stats)
        if fires:
            assert outcome.severity == Severity.WARNING
        else:
            assert stats.std_dev_bps == 1000.0
            assert outcome is None


# ─── Detection Engine ───────────────────────────────────────────

class TestDetectionEngine:
    @pytest.fixture
    def engine(self, detection_settings):
        return DetectionEngine(PriceWindowStore(), detection_settings)

    def test_five_source_cycle(self, engine, make_observation, eth_config, base_time):
        prices = [100.0, 101.0, 99.0, 102.0, 150.0]
        observations = [make_observation(p, source=f"s{i}") for i, p in enumerate(prices, 1)]
        outcomes = engine.analyze("ETH", observations, eth_config, base_time)

        mispricing = [o for o in outcomes if o.type == IncidentType.MISPRICING]
        assert len(mispricing) == 1
        assert mispricing[0].source == "s5"
        assert mispricing[0].severity == Severity.EMERGENCY
        assert not [o for o in outcomes if o.type == IncidentType.STALE_ORACLE]

    def test_invalid_reading_excluded_from_statistics(self, engine, make_observation,
                                                      eth_config, base_time):
        observations = [
            make_observation(0.0, source="pyth"),
            make_observation(100.0, source="redstone"),
            make_observation(101.0, source="coingecko"),
        ]
        outcomes = engine.analyze("ETH", observations, eth_config, base_time)
        assert [o.type for o in outcomes] == [IncidentType.INVALID_READING]
        assert engine.window_store.size("ETH", "pyth") == 0
        assert engine.window_store.size("ETH", "redstone") == 1

    def test_two_sources_skip_cross_source_rules(self, engine, make_observation,
                                                 eth_config, base_time):
        observations = [make_observation(100.0, source="a"), make_observation(200.0, source="b")]
        assert engine.analyze("ETH", observations, eth_config, base_time) == []

    def test_min_sources_override(self, engine, make_observation, eth_config, base_time):
        observations = [make_observation(p, source=s)
                        for p, s in ((100.0, "a"), (130.0, "b"), (70.0, "c"))]
        assert engine.analyze("ETH", observations, eth_config, base_time, min_sources=4) == []
        outcomes = engine.analyze("ETH", observations, eth_config, base_time, min_sources=3)
        assert IncidentType.DIVERGENCE in [o.type for o in outcomes]

    def test_flash_loan_across_cycles(self, engine, make_observation, eth_config, base_time):
        engine.analyze("ETH", [make_observation(100.0)], eth_config, base_time)
        outcomes = engine.analyze("ETH", [make_observation(125.0, offset=10)], eth_config,
                                  base_time + timedelta(seconds=10))
        assert [o.type for o in outcomes] == [IncidentType.FLASH_LOAN]

    def test_flash_loan_outside_window(self, engine, make_observation, eth_config, base_time):
        engine.analyze("ETH", [make_observation(100.0)], eth_config, base_time)
        outcomes = engine.analyze("ETH", [make_observation(125.0, offset=20)], eth_config,
                                  base_time + timedelta(seconds=20))
        assert outcomes == []

    def test_same_snapshot_recorded_once(self, engine, make_observation, eth_config, base_time):
        obs = make_observation(100.0)
        engine.analyze("ETH", [obs], eth_config, base_time)
        engine.analyze("ETH", [obs], eth_config, base_time + timedelta(seconds=1))
        assert engine.window_store.size("ETH", "pyth") == 1

    def test_stale_source_reported(self, engine, make_observation, eth_config, base_time):
        outcomes = engine.analyze("ETH", [make_observation(100.0, offset=-400)], eth_config, base_time)
        assert len(outcomes) == 1
        assert outcomes[0].type == IncidentType.STALE_ORACLE
        assert outcomes[0].severity == Severity.CRITICAL
