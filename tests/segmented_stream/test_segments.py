"""
Tests for the segment canonicalizer and validator.

============================================================
TEST SCENARIOS
============================================================
1. Durations anchor at the start time and accumulate
2. Round-trip through to_durations
3. Each validation failure, in order
4. End time returned on success

============================================================
"""

import pytest

from segmented_stream.errors import (
    DepositAmountNotEqualToSegmentAmountsSum,
    EndTimeNotInTheFuture,
    SegmentCountTooHigh,
    SegmentCountZero,
    SegmentTimestampsNotOrdered,
    StartTimeNotBeforeFirstSegment,
    StartTimeZero,
    TimestampOverflow,
    ValueOutOfRange,
)
from segmented_stream.fixed_point import LINEAR_EXPONENT, UD2x18, UINT128_MAX, UINT40_MAX
from segmented_stream.segments import (
    canonicalize,
    to_durations,
    validate_segments,
    validate_start_time,
)
from segmented_stream.types import Segment, SegmentWithDuration


MAX_SEGMENT_COUNT = 300


def seg(amount: int, timestamp: int, exponent: str = "1") -> Segment:
    return Segment(amount=amount, exponent=UD2x18.from_decimal(exponent), timestamp=timestamp)


def dseg(amount: int, duration: int, exponent: str = "1") -> SegmentWithDuration:
    return SegmentWithDuration(amount=amount, exponent=UD2x18.from_decimal(exponent), duration=duration)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def two_segments():
    """400 over [0, 50], then 600 over [50, 150]."""
    return (seg(400, 50), seg(600, 150))


# ============================================================
# TEST: CANONICALIZE
# ============================================================

class TestCanonicalize:
    """Tests for duration -> timestamp conversion."""

    def test_empty_passes_through(self):
        assert canonicalize(1_000, []) == ()

    def test_first_segment_anchored_at_start(self):
        result = canonicalize(1_000, [dseg(10, 500)])
        assert result == (Segment(amount=10, exponent=LINEAR_EXPONENT, timestamp=1_500),)

    def test_timestamps_accumulate(self):
        result = canonicalize(1_000, [dseg(10, 500), dseg(20, 250, "2"), dseg(30, 1)])
        assert [s.timestamp for s in result] == [1_500, 1_750, 1_751]
        assert [s.amount for s in result] == [10, 20, 30]
        assert result[1].exponent == UD2x18.from_decimal("2")

    def test_zero_duration_kept_for_validator(self):
        """Zero durations canonicalize to duplicate timestamps, rejected later."""
        result = canonicalize(1_000, [dseg(10, 500), dseg(20, 0)])
        assert [s.timestamp for s in result] == [1_500, 1_500]

    def test_overflow_is_detected(self):
        with pytest.raises(TimestampOverflow) as exc_info:
            canonicalize(UINT40_MAX - 10, [dseg(10, 5), dseg(10, 6)])
        assert exc_info.value.index == 1

    def test_round_trip(self):
        durations = (dseg(10, 500), dseg(20, 250, "0.5"), dseg(30, 7, "3.25"))
        canonical = canonicalize(1_000, durations)
        assert to_durations(1_000, canonical) == durations
        assert canonicalize(1_000, to_durations(1_000, canonical)) == canonical

    def test_to_durations_rejects_unordered(self):
        with pytest.raises(ValueOutOfRange):
            to_durations(1_000, [seg(10, 900)])


# ============================================================
# TEST: VALIDATE
# ============================================================

class TestValidateSegments:
    """Tests for validate_segments."""

    def test_valid_returns_end_time(self, two_segments):
        assert validate_segments(two_segments, 1_000, 0, MAX_SEGMENT_COUNT) == 150

    def test_single_segment(self):
        assert validate_segments([seg(1_000, 100)], 1_000, 0, MAX_SEGMENT_COUNT) == 100

    def test_empty_fails(self):
        with pytest.raises(SegmentCountZero):
            validate_segments([], 1_000, 0, MAX_SEGMENT_COUNT)

    def test_too_many_fails(self):
        segments = [seg(1, t) for t in range(1, 5)]
        with pytest.raises(SegmentCountTooHigh) as exc_info:
            validate_segments(segments, 4, 0, 3)
        assert exc_info.value.count == 4
        assert exc_info.value.max_count == 3

    def test_count_at_maximum_passes(self):
        segments = [seg(1, t) for t in range(1, 4)]
        assert validate_segments(segments, 3, 0, 3) == 3

    def test_start_time_equal_to_first_timestamp_fails(self):
        with pytest.raises(StartTimeNotBeforeFirstSegment) as exc_info:
            validate_segments([seg(1_000, 100)], 1_000, 100, MAX_SEGMENT_COUNT)
        assert exc_info.value.start_time == 100
        assert exc_info.value.first_timestamp == 100

    def test_start_time_after_first_timestamp_fails(self):
        with pytest.raises(StartTimeNotBeforeFirstSegment):
            validate_segments([seg(1_000, 100)], 1_000, 101, MAX_SEGMENT_COUNT)

    def test_duplicate_timestamps_fail_at_index_1(self):
        """[100, 100] with start 50 fails ordering at index 1."""
        with pytest.raises(SegmentTimestampsNotOrdered) as exc_info:
            validate_segments([seg(500, 100), seg(500, 100)], 1_000, 50, MAX_SEGMENT_COUNT)
        assert exc_info.value.index == 1
        assert exc_info.value.previous == 100
        assert exc_info.value.current == 100

    def test_out_of_order_fails(self):
        segments = [seg(1, 100), seg(1, 200), seg(1, 150)]
        with pytest.raises(SegmentTimestampsNotOrdered) as exc_info:
            validate_segments(segments, 3, 0, MAX_SEGMENT_COUNT)
        assert exc_info.value.index == 2
        assert exc_info.value.previous == 200
        assert exc_info.value.current == 150

    def test_sum_mismatch_fails(self, two_segments):
        with pytest.raises(DepositAmountNotEqualToSegmentAmountsSum) as exc_info:
            validate_segments(two_segments, 999, 0, MAX_SEGMENT_COUNT)
        assert exc_info.value.expected == 999
        assert exc_info.value.actual == 1_000

    def test_sum_overflow_fails_as_mismatch(self):
        segments = [seg(UINT128_MAX, 10), seg(1, 20)]
        with pytest.raises(DepositAmountNotEqualToSegmentAmountsSum) as exc_info:
            validate_segments(segments, UINT128_MAX, 0, MAX_SEGMENT_COUNT)
        assert exc_info.value.actual == UINT128_MAX + 1

    def test_ordering_checked_before_sum(self):
        segments = [seg(1, 100), seg(1, 100)]
        with pytest.raises(SegmentTimestampsNotOrdered):
            validate_segments(segments, 999, 0, MAX_SEGMENT_COUNT)

    def test_end_time_in_the_past_fails_when_now_given(self, two_segments):
        with pytest.raises(EndTimeNotInTheFuture) as exc_info:
            validate_segments(two_segments, 1_000, 0, MAX_SEGMENT_COUNT, now=150)
        assert exc_info.value.end_time == 150

    def test_end_time_in_the_future_passes(self, two_segments):
        assert validate_segments(two_segments, 1_000, 0, MAX_SEGMENT_COUNT, now=149) == 150

    def test_zero_amount_segments_allowed(self):
        """Pauses in the curve are expressed as zero-amount segments."""
        segments = [seg(0, 50), seg(1_000, 100)]
        assert validate_segments(segments, 1_000, 0, MAX_SEGMENT_COUNT) == 100


class TestValidateStartTime:
    """Tests for validate_start_time."""

    def test_zero_fails(self):
        with pytest.raises(StartTimeZero):
            validate_start_time(0)

    def test_positive_passes(self):
        validate_start_time(1)

    def test_out_of_range_fails(self):
        with pytest.raises(ValueOutOfRange):
            validate_start_time(UINT40_MAX + 1)
