"""
ORACLE SENTINEL — Unit Tests for Price Windows, Latest Price Cache and Statistics
"""
import pytest
import numpy as np
from datetime import timedelta

from oracle_sentinel.data.cache.price_cache import LatestPriceCache
from oracle_sentinel.data.window_store import PriceWindowStore
from oracle_sentinel.detection.statistics import compute_reference_statistics, order_median


# ─── Price Window Store ─────────────────────────────────────────

class TestPriceWindowStore:
    def test_capacity_evicts_oldest(self, make_observation):
        store = PriceWindowStore(capacity=3)
        for i in range(5):
            store.record(make_observation(100.0 + i, offset=i))
        assert store.size("ETH", "pyth") == 3
        assert [o.price for o in store.window("ETH", "pyth")] == [102.0, 103.0, 104.0]

    def test_keys_are_independent(self, make_observation):
        store = PriceWindowStore(capacity=2)
        store.record(make_observation(100.0, source="pyth"))
        store.record(make_observation(200.0, source="redstone"))
        store.record(make_observation(300.0, source="redstone", offset=1))
        store.record(make_observation(400.0, source="redstone", offset=2))
        assert store.size("ETH", "pyth") == 1
        assert [o.price for o in store.window("ETH", "redstone")] == [300.0, 400.0]
        assert sorted(store.keys()) == [("ETH", "pyth"), ("ETH", "redstone")]

    def test_recent_within_is_strict(self, make_observation):
        store = PriceWindowStore()
        for offset in (0, 5, 14, 20):
            store.record(make_observation(100.0 + offset, offset=offset))
        recent = list(store.recent_within("ETH", "pyth", timedelta(seconds=15)))
        # anchored on the latest recorded instant (t+20): t+5 is exactly 15s old
        assert [o.price for o in recent] == [114.0, 120.0]

    def test_recent_within_reflects_later_records(self, make_observation):
        store = PriceWindowStore()
        store.record(make_observation(100.0))
        assert len(list(store.recent_within("ETH", "pyth", timedelta(seconds=15)))) == 1
        store.record(make_observation(101.0, offset=30))
        recent = list(store.recent_within("ETH", "pyth", timedelta(seconds=15)))
        assert [o.price for o in recent] == [101.0]

    def test_unknown_key(self):
        store = PriceWindowStore()
        assert store.latest("ETH", "pyth") is None
        assert list(store.recent_within("ETH", "pyth", timedelta(seconds=15))) == []
        assert store.window("ETH", "pyth") == ()

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            PriceWindowStore(capacity=0)

    def test_stats(self, make_observation):
        store = PriceWindowStore(capacity=10)
        store.record(make_observation(100.0))
        store.record(make_observation(100.0, source="redstone"))
        assert store.stats == {"windows": 2, "capacity": 10, "total_observations": 2}


# ─── Latest Price Cache ─────────────────────────────────────────

class TestLatestPriceCache:
    def test_put_keeps_newest(self, make_observation):
        cache = LatestPriceCache()
        cache.put(make_observation(101.0, offset=10))
        cache.put(make_observation(99.0, offset=5))
        assert cache.get("ETH", "pyth").price == 101.0

    def test_snapshot_is_a_copy(self, make_observation):
        cache = LatestPriceCache()
        cache.put(make_observation(100.0))
        snapshot = cache.snapshot()
        cache.put(make_observation(100.0, source="redstone"))
        assert list(snapshot) == [("ETH", "pyth")]

    def test_latest_prices_skips_invalid(self, make_observation):
        cache = LatestPriceCache()
        cache.put(make_observation(100.0, source="pyth"))
        cache.put(make_observation(102.0, source="redstone"))
        cache.put(make_observation(0.0, source="coingecko"))
        views = cache.latest_prices()
        assert len(views) == 1
        view = views[0]
        assert view.asset == "ETH"
        assert set(view.sources) == {"pyth", "redstone"}
        assert view.reference_price == pytest.approx(101.0)
        assert view.max_deviation_bps == pytest.approx(1 / 101 * 10000)


# ─── Statistics ─────────────────────────────────────────────────

class TestReferenceStatistics:
    def test_five_source_example(self):
        stats = compute_reference_statistics([100.0, 101.0, 99.0, 102.0, 150.0])
        assert stats.median == 101.0
        assert stats.mad == 1.0
        assert stats.mean == pytest.approx(110.4)
        assert stats.sample_count == 5
        assert stats.min_price == 99.0
        assert stats.max_price == 150.0

    def test_even_count_takes_upper_middle(self):
        assert order_median(np.array([4.0, 1.0, 3.0, 2.0])) == 3.0

    def test_sample_standard_deviation(self):
        stats = compute_reference_statistics([1.0, 2.0, 3.0])
        assert stats.standard_deviation == pytest.approx(1.0)

    def test_identical_prices(self):
        stats = compute_reference_statistics([100.0, 100.0, 100.0])
        assert stats.standard_deviation == 0.0
        assert stats.mad == 0.0
        assert stats.std_dev_bps == 0.0

    def test_insufficient_samples(self):
        assert compute_reference_statistics([]) is None
        assert compute_reference_statistics([100.0, 101.0]) is None
        # the floor of three samples cannot be lowered
        assert compute_reference_statistics([100.0, 101.0], min_samples=2) is None
        assert compute_reference_statistics([100.0, 101.0, 102.0], min_samples=4) is None
