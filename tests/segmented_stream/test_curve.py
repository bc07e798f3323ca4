"""
Tests for the streamed-amount engine.

============================================================
TEST SCENARIOS
============================================================
1. Boundaries: before start -> 0, at start -> progress 0, at/after end -> deposited
2. Single-segment closed form (linear, convex, concave, flat)
3. Multi-segment walk
4. Monotonic and bounded by the deposit
5. Fail-safe clamps on overshoot
6. Snapshot view for canceled / depleted streams
7. SegmentCursor gives the same answers as the plain walk

============================================================
"""

import logging
from unittest.mock import patch

import pytest

from segmented_stream.curve import (
    SegmentCursor,
    calculate_streamed_amount,
    locate_segment,
    streamed_amount_of,
)
from segmented_stream.fixed_point import SD59x18, UD2x18, UNIT
from segmented_stream.types import Amounts, Segment, StreamSnapshot


def seg(amount: int, timestamp: int, exponent: str = "1") -> Segment:
    return Segment(amount=amount, exponent=UD2x18.from_decimal(exponent), timestamp=timestamp)


def snapshot_of(segments, start_time=0, withdrawn=0, refunded=0, **kwargs) -> StreamSnapshot:
    segments = tuple(segments)
    return StreamSnapshot(
        start_time=start_time,
        end_time=segments[-1].timestamp,
        amounts=Amounts(
            deposited=sum(s.amount for s in segments),
            withdrawn=withdrawn,
            refunded=refunded,
        ),
        segments=segments,
        **kwargs,
    )


def streamed(segments, now, start_time=0, withdrawn=0) -> int:
    segments = tuple(segments)
    return calculate_streamed_amount(
        now=now,
        start_time=start_time,
        end_time=segments[-1].timestamp,
        deposited=sum(s.amount for s in segments),
        withdrawn=withdrawn,
        segments=segments,
    )


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def linear():
    """1000 over [0, 100], linear."""
    return (seg(1_000, 100),)


@pytest.fixture
def two_linear():
    """400 over [0, 50], then 600 over [50, 150]."""
    return (seg(400, 50), seg(600, 150))


@pytest.fixture
def mixed_curve():
    """Pause, cliff-like jump, then a convex tail."""
    return (
        seg(0, 1_100, "1"),
        seg(250_000, 1_101, "1"),
        seg(250_000, 2_000, "0.5"),
        seg(500_000, 5_000, "3.14"),
    )


# ============================================================
# TEST: BOUNDARIES
# ============================================================

class TestBoundaries:
    """Tests for the time bounds of the curve."""

    def test_before_start_is_zero(self, linear):
        assert streamed(linear, now=5, start_time=10) == 0

    def test_at_start_positive_exponent_is_zero(self, linear):
        """At the start instant progress is zero."""
        assert streamed(linear, now=0) == 0
        assert streamed([seg(1_000, 100, "2")], now=0) == 0

    def test_at_start_exponent_zero_unlocks_segment(self):
        """An exponent of 0 unlocks the segment the instant it starts."""
        assert streamed([seg(1_000, 100, "0")], now=0) == 1_000
        assert streamed([seg(1_000, 1_100, "0")], now=999, start_time=1_000) == 0
        assert streamed([seg(1_000, 1_100, "0")], now=1_000, start_time=1_000) == 1_000

    def test_at_start_exponent_zero_first_of_many(self):
        segments = (seg(400, 50, "0"), seg(600, 150))
        assert streamed(segments, now=0) == 400
        assert streamed(segments, now=100) == 700

    def test_at_end_is_deposited(self, linear, two_linear):
        assert streamed(linear, now=100) == 1_000
        assert streamed(two_linear, now=150) == 1_000

    def test_after_end_is_deposited(self, two_linear):
        assert streamed(two_linear, now=10**9) == 1_000


# ============================================================
# TEST: SINGLE SEGMENT
# ============================================================

class TestSingleSegment:
    """Tests for the single-segment closed form."""

    def test_linear_midpoint(self, linear):
        assert streamed(linear, now=50) == 500

    def test_linear_with_offset_start(self):
        assert streamed([seg(1_000, 1_100)], now=1_025, start_time=1_000) == 250

    def test_exponent_two_midpoint(self):
        assert streamed([seg(1_000, 100, "2")], now=50) == 250

    def test_exponent_half_at_quarter(self):
        # 0.25 ^ 0.5 = 0.5
        assert streamed([seg(1_000, 100, "0.5")], now=25) == 500

    def test_exponent_zero_unlocks_everything(self):
        assert streamed([seg(1_000, 100, "0")], now=1) == 1_000

    def test_truncates(self):
        # 1/3 of 1000 -> 333
        assert streamed([seg(1_000, 3)], now=1) == 333

    def test_independent_of_withdrawn(self, linear):
        assert streamed(linear, now=50, withdrawn=400) == 500


# ============================================================
# TEST: MULTI SEGMENT
# ============================================================

class TestMultiSegment:
    """Tests for the multi-segment walk."""

    def test_inside_second_segment(self, two_linear):
        assert streamed(two_linear, now=100) == 700

    def test_inside_first_segment(self, two_linear):
        assert streamed(two_linear, now=25) == 200

    def test_at_segment_boundary(self, two_linear):
        assert streamed(two_linear, now=50) == 400

    def test_zero_amount_segment_is_a_pause(self, mixed_curve):
        assert streamed(mixed_curve, now=500) == 0
        assert streamed(mixed_curve, now=1_100) == 0
        assert streamed(mixed_curve, now=1_101) == 250_000

    def test_locate_segment(self, two_linear):
        assert locate_segment(two_linear, 1) == (0, 0)
        assert locate_segment(two_linear, 50) == (0, 0)
        assert locate_segment(two_linear, 51) == (1, 400)

    def test_monotonic_and_bounded(self, mixed_curve):
        previous = 0
        for now in range(0, 5_200, 13):
            amount = streamed(mixed_curve, now=now)
            assert previous <= amount <= 1_000_000
            previous = amount
        assert previous == 1_000_000

    def test_single_segment_monotonic(self):
        for exponent in ("0.5", "1", "2", "3.14"):
            segments = [seg(1_000_000, 1_000, exponent)]
            previous = 0
            for now in range(0, 1_001, 7):
                amount = streamed(segments, now=now)
                assert previous <= amount <= 1_000_000
                previous = amount


# ============================================================
# TEST: FAIL-SAFE CLAMPS
# ============================================================

class TestClamps:
    """Overshoot is clamped and logged, never raised."""

    def test_single_segment_overshoot_returns_withdrawn(self, linear, caplog):
        with patch.object(SD59x18, "pow", return_value=SD59x18.from_raw(2 * UNIT)):
            with caplog.at_level(logging.WARNING, logger="segmented_stream.curve"):
                assert streamed(linear, now=50, withdrawn=123) == 123
        assert "freezing" in caplog.text

    def test_multi_segment_overshoot_returns_previous(self, two_linear):
        with patch.object(SD59x18, "pow", return_value=SD59x18.from_raw(2 * UNIT)):
            assert streamed(two_linear, now=100, withdrawn=100) == 400

    def test_multi_segment_overshoot_keeps_withdrawn(self, two_linear):
        with patch.object(SD59x18, "pow", return_value=SD59x18.from_raw(2 * UNIT)):
            assert streamed(two_linear, now=100, withdrawn=650) == 650

    def test_multi_segment_total_overshoot(self, two_linear):
        """A segment partial that pushes the total past the deposit is voided."""
        result = calculate_streamed_amount(
            now=100,
            start_time=0,
            end_time=150,
            deposited=900,
            withdrawn=0,
            segments=two_linear,
        )
        # 400 + 300 <= 900, not clamped
        assert result == 700
        result = calculate_streamed_amount(
            now=100,
            start_time=0,
            end_time=150,
            deposited=650,
            withdrawn=0,
            segments=two_linear,
        )
        assert result == 400


# ============================================================
# TEST: SNAPSHOT VIEW
# ============================================================

class TestStreamedAmountOf:
    """Tests for streamed_amount_of."""

    def test_follows_curve(self, two_linear):
        assert streamed_amount_of(snapshot_of(two_linear), 100) == 700

    def test_canceled_reports_not_refunded(self, two_linear):
        snapshot = snapshot_of(two_linear, withdrawn=100, refunded=300, was_canceled=True)
        assert streamed_amount_of(snapshot, 140) == 700

    def test_depleted_reports_withdrawn(self, two_linear):
        snapshot = snapshot_of(two_linear, withdrawn=700, refunded=300, was_canceled=True, is_depleted=True)
        assert streamed_amount_of(snapshot, 0) == 700


# ============================================================
# TEST: CURSOR
# ============================================================

class TestSegmentCursor:
    """SegmentCursor matches calculate_streamed_amount."""

    def test_matches_forward_walk(self, mixed_curve):
        snapshot = snapshot_of(mixed_curve)
        cursor = SegmentCursor(snapshot)
        for now in range(0, 5_200, 17):
            assert cursor.streamed_amount(now) == streamed_amount_of(snapshot, now)

    def test_restarts_when_time_goes_back(self, mixed_curve):
        snapshot = snapshot_of(mixed_curve)
        cursor = SegmentCursor(snapshot)
        assert cursor.streamed_amount(4_000) == streamed_amount_of(snapshot, 4_000)
        assert cursor.index == 3
        assert cursor.streamed_amount(1_500) == streamed_amount_of(snapshot, 1_500)
        assert cursor.index == 2

    def test_single_segment(self, linear):
        cursor = SegmentCursor(snapshot_of(linear))
        assert cursor.streamed_amount(50) == 500
        assert cursor.streamed_amount(100) == 1_000

    def test_exponent_zero_at_start(self):
        snapshot = snapshot_of((seg(400, 50, "0"), seg(600, 150)))
        cursor = SegmentCursor(snapshot)
        assert cursor.streamed_amount(0) == 400
        assert cursor.streamed_amount(100) == 700

    def test_reset(self, two_linear):
        cursor = SegmentCursor(snapshot_of(two_linear))
        cursor.streamed_amount(100)
        assert cursor.index == 1
        cursor.reset()
        assert cursor.index == 0
