"""Tests for the synthetic price history generator."""

import random

from tracker.market_data.synthetic import (
    SYNTHETIC_POINTS,
    estimate_volume,
    generate_synthetic_history,
)

DAY_MS = 86_400_000
NOW_MS = 1_700_000_000_000


class TestGenerateSyntheticHistory:
    def test_shape_and_anchor(self) -> None:
        history = generate_synthetic_history("bitcoin", 50_000.0, random.Random(3), now_ms=NOW_MS)

        assert len(history) == SYNTHETIC_POINTS
        assert history.is_synthetic
        assert history.asset_id == "bitcoin"
        assert history[-1].close == 50_000.0

    def test_daily_timestamps(self) -> None:
        history = generate_synthetic_history("bitcoin", 50_000.0, random.Random(3), now_ms=NOW_MS)
        stamps = [p.timestamp_ms for p in history]

        assert all(b - a == DAY_MS for a, b in zip(stamps, stamps[1:]))
        assert stamps[-1] % DAY_MS == 0
        assert stamps[-1] <= NOW_MS

    def test_candles_are_consistent(self) -> None:
        history = generate_synthetic_history("solana", 150.0, random.Random(11), now_ms=NOW_MS)
        for p in history:
            assert p.low <= min(p.open, p.close)
            assert p.high >= max(p.open, p.close)
            assert p.low > 0
            assert p.volume > 0

    def test_daily_moves_are_bounded(self) -> None:
        history = generate_synthetic_history("solana", 150.0, random.Random(5), now_ms=NOW_MS)
        closes = history.closes
        # Base walk is +/-5% per day, closes jitter 1% around the base
        for prev, cur in zip(closes, closes[1:]):
            assert abs(cur / prev - 1) < 0.08

    def test_seeded_output_is_reproducible(self) -> None:
        a = generate_synthetic_history("bitcoin", 100.0, random.Random(42), now_ms=NOW_MS)
        b = generate_synthetic_history("bitcoin", 100.0, random.Random(42), now_ms=NOW_MS)
        assert a == b

    def test_custom_length(self) -> None:
        history = generate_synthetic_history("bitcoin", 100.0, points=60, now_ms=NOW_MS)
        assert len(history) == 60


class TestEstimateVolume:
    def test_tiers(self) -> None:
        rng = random.Random(0)
        assert 500_000 <= estimate_volume(60_000.0, rng) <= 2_500_000
        assert 1_000_000 <= estimate_volume(3_000.0, rng) <= 6_000_000
        assert 2_000_000 <= estimate_volume(150.0, rng) <= 12_000_000
        assert 5_000_000 <= estimate_volume(5.0, rng) <= 25_000_000
        assert 10_000_000 <= estimate_volume(0.5, rng) <= 60_000_000
