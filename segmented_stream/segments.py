"""
Segmented Stream - Segment Canonicalizer and Validator.

============================================================
PURPOSE
============================================================
Turn duration-relative segments into absolute timestamps, and
check a canonical segment list before a stream is created.

============================================================
VALIDATION ORDER
============================================================
1. SegmentCountZero
2. SegmentCountTooHigh
3. StartTimeNotBeforeFirstSegment
4. SegmentTimestampsNotOrdered (walk, also sums amounts)
5. EndTimeNotInTheFuture (only when `now` is given)
6. DepositAmountNotEqualToSegmentAmountsSum

The first failing check raises. There is no partial result.

============================================================
"""

import logging
from typing import List, Optional, Sequence, Tuple

from .errors import (
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
from .fixed_point import UINT128_MAX, UINT40_MAX
from .types import Segment, SegmentWithDuration, check_amount, check_timestamp


logger = logging.getLogger(__name__)


# ============================================================
# CANONICALIZER
# ============================================================

def canonicalize(
    start_time: int,
    segments: Sequence[SegmentWithDuration],
) -> Tuple[Segment, ...]:
    """
    Anchor duration-relative segments at start_time.

    Each timestamp is the previous one (or start_time) plus the
    segment's duration. Empty input gives empty output; the
    validator rejects it afterwards.

    Raises:
        TimestampOverflow: The running sum leaves the timestamp range
    """
    check_timestamp("start_time", start_time)

    canonical: List[Segment] = []
    timestamp = start_time
    for index, segment in enumerate(segments):
        timestamp += segment.duration
        if timestamp > UINT40_MAX:
            raise TimestampOverflow(index, timestamp)
        canonical.append(
            Segment(
                amount=segment.amount,
                exponent=segment.exponent,
                timestamp=timestamp,
            )
        )
    return tuple(canonical)


def to_durations(
    start_time: int,
    segments: Sequence[Segment],
) -> Tuple[SegmentWithDuration, ...]:
    """Inverse of canonicalize for an ordered segment list."""
    durations: List[SegmentWithDuration] = []
    previous = start_time
    for index, segment in enumerate(segments):
        duration = segment.timestamp - previous
        if duration < 0:
            raise ValueOutOfRange(f"segments[{index}].duration", duration, UINT40_MAX)
        durations.append(
            SegmentWithDuration(
                amount=segment.amount,
                exponent=segment.exponent,
                duration=duration,
            )
        )
        previous = segment.timestamp
    return tuple(durations)


# ============================================================
# VALIDATOR
# ============================================================

def validate_start_time(start_time: int) -> None:
    check_timestamp("start_time", start_time)
    if start_time == 0:
        raise StartTimeZero()


def validate_segments(
    segments: Sequence[Segment],
    deposit_amount: int,
    start_time: int,
    max_segment_count: int,
    now: Optional[int] = None,
) -> int:
    """
    Check a canonical segment list against a deposit and start time.

    Args:
        segments: Segments with absolute timestamps
        deposit_amount: Net deposit the segment amounts must sum to
        start_time: Stream start; must precede the first segment
        max_segment_count: Upper bound on the number of segments
        now: Current time; when given, the end time must be after it

    Returns:
        The stream's end time (last segment timestamp)
    """
    check_amount("deposit_amount", deposit_amount)
    check_timestamp("start_time", start_time)

    segment_count = len(segments)
    if segment_count == 0:
        raise SegmentCountZero()

    if segment_count > max_segment_count:
        raise SegmentCountTooHigh(segment_count, max_segment_count)

    if start_time >= segments[0].timestamp:
        raise StartTimeNotBeforeFirstSegment(start_time, segments[0].timestamp)

    segment_amounts_sum = 0
    previous_timestamp = 0
    for index, segment in enumerate(segments):
        segment_amounts_sum += segment.amount
        # A sum past the amount width can never match a deposit
        if segment_amounts_sum > UINT128_MAX:
            raise DepositAmountNotEqualToSegmentAmountsSum(deposit_amount, segment_amounts_sum)

        if segment.timestamp <= previous_timestamp:
            raise SegmentTimestampsNotOrdered(index, previous_timestamp, segment.timestamp)
        previous_timestamp = segment.timestamp

    end_time = previous_timestamp

    if now is not None and now >= end_time:
        raise EndTimeNotInTheFuture(now, end_time)

    if segment_amounts_sum != deposit_amount:
        raise DepositAmountNotEqualToSegmentAmountsSum(deposit_amount, segment_amounts_sum)

    logger.debug(
        f"Validated {segment_count} segments: start={start_time} "
        f"end={end_time} deposit={deposit_amount}"
    )
    return end_time
