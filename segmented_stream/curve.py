"""
Segmented Stream - Streamed-Amount Engine.

============================================================
PURPOSE
============================================================
Amount unlocked by a segmented curve as of a given time.

    now < start_time     -> 0
    now >= end_time      -> deposited
    one segment          -> deposited * progress^exponent
    several segments     -> sum(elapsed segments)
                            + amount_k * progress_k^exponent_k

============================================================
FAIL-SAFE CLAMPS
============================================================
Rounding can in theory push a computed amount past what the
curve allows. This is never raised as an error, because an
error here would leave funds unreachable:

- one segment: return the withdrawn amount, freezing the stream
- several segments: void the current segment, returning
  max(previous segments, withdrawn)

Both are logged at WARNING.

============================================================
ARITHMETIC ORDER
============================================================
progress = elapsed.div(duration)
unlocked = progress.pow(exponent).mul(amount)

The order of operations fixes the truncation. Do not fold the
two segment cases into one formula with a different order.

============================================================
"""

import logging
from typing import Optional, Sequence, Tuple

from .fixed_point import SD59x18
from .types import Segment, StreamSnapshot, as_segment_tuple


logger = logging.getLogger(__name__)


def calculate_streamed_amount(
    now: int,
    start_time: int,
    end_time: int,
    deposited: int,
    withdrawn: int,
    segments: Sequence[Segment],
) -> int:
    """
    Amount the curve has unlocked at `now`.

    Independent of how much has been withdrawn, except in the
    fail-safe clamps. Non-decreasing in `now`.
    """
    if now < start_time:
        return 0
    if now >= end_time:
        return deposited

    if len(segments) > 1:
        index, previous_amounts = locate_segment(segments, now)
        return _streamed_amount_in_segment(
            now=now,
            start_time=start_time,
            segments=segments,
            index=index,
            previous_amounts=previous_amounts,
            deposited=deposited,
            withdrawn=withdrawn,
        )

    return _streamed_amount_for_one_segment(
        now=now,
        start_time=start_time,
        end_time=end_time,
        deposited=deposited,
        withdrawn=withdrawn,
        exponent=segments[0].exponent.into_sd59x18(),
    )


def locate_segment(segments: Sequence[Segment], now: int) -> Tuple[int, int]:
    """
    Index of the first segment ending at or after `now`.

    Returns (index, sum of the amounts of all earlier segments).
    Requires now < last timestamp.
    """
    previous_amounts = 0
    index = 0
    while segments[index].timestamp < now:
        previous_amounts += segments[index].amount
        index += 1
    return index, previous_amounts


def _streamed_amount_for_one_segment(
    now: int,
    start_time: int,
    end_time: int,
    deposited: int,
    withdrawn: int,
    exponent: SD59x18,
) -> int:
    elapsed_time = SD59x18.from_raw(now - start_time)
    total_duration = SD59x18.from_raw(end_time - start_time)
    elapsed_time_percentage = elapsed_time.div(total_duration)

    deposited_amount = SD59x18.from_raw(deposited)
    multiplier = elapsed_time_percentage.pow(exponent)
    streamed_amount = multiplier.mul(deposited_amount)

    if streamed_amount > deposited_amount:
        logger.warning(
            f"Streamed amount {streamed_amount.raw} exceeds deposited {deposited} "
            f"at {now}; freezing at withdrawn amount {withdrawn}"
        )
        return withdrawn

    return streamed_amount.into_uint()


def _streamed_amount_in_segment(
    now: int,
    start_time: int,
    segments: Sequence[Segment],
    index: int,
    previous_amounts: int,
    deposited: int,
    withdrawn: int,
) -> int:
    current = segments[index]
    previous_timestamp = segments[index - 1].timestamp if index > 0 else start_time

    elapsed_time = SD59x18.from_raw(now - previous_timestamp)
    segment_duration = SD59x18.from_raw(current.timestamp - previous_timestamp)
    elapsed_time_percentage = elapsed_time.div(segment_duration)

    segment_amount = SD59x18.from_raw(current.amount)
    multiplier = elapsed_time_percentage.pow(current.exponent.into_sd59x18())
    segment_streamed_amount = multiplier.mul(segment_amount)

    if (
        segment_streamed_amount > segment_amount
        or previous_amounts + segment_streamed_amount.raw > deposited
    ):
        clamped = max(previous_amounts, withdrawn)
        logger.warning(
            f"Segment {index} streamed amount {segment_streamed_amount.raw} exceeds "
            f"segment amount {current.amount} at {now}; voiding segment, "
            f"returning {clamped}"
        )
        return clamped

    return previous_amounts + segment_streamed_amount.into_uint()


# ============================================================
# SNAPSHOT VIEW
# ============================================================

def streamed_amount_of(snapshot: StreamSnapshot, now: int) -> int:
    """
    Streamed amount of a stored stream.

    Depleted streams report what was withdrawn; canceled streams
    report what was not refunded. Otherwise the curve decides.
    """
    amounts = snapshot.amounts
    if snapshot.is_depleted:
        return amounts.withdrawn
    if snapshot.was_canceled:
        return amounts.deposited - amounts.refunded
    return calculate_streamed_amount(
        now=now,
        start_time=snapshot.start_time,
        end_time=snapshot.end_time,
        deposited=amounts.deposited,
        withdrawn=amounts.withdrawn,
        segments=snapshot.segments,
    )


class SegmentCursor:
    """
    Streamed-amount calculator that remembers the current segment.

    Repeated queries at non-decreasing times resume the segment
    walk where the last one stopped. A query earlier than the
    previous one restarts from the first segment. Results are
    identical to calculate_streamed_amount.

    Usage:
        cursor = SegmentCursor(snapshot)
        for now in range(start, end, step):
            amount = cursor.streamed_amount(now)
    """

    def __init__(self, snapshot: StreamSnapshot):
        self._snapshot = snapshot
        self._segments = as_segment_tuple(snapshot.segments)
        self._index = 0
        self._previous_amounts = 0
        self._last_now: Optional[int] = None

    @property
    def snapshot(self) -> StreamSnapshot:
        return self._snapshot

    @property
    def index(self) -> int:
        """Index of the segment the last walk stopped at."""
        return self._index

    def reset(self) -> None:
        self._index = 0
        self._previous_amounts = 0
        self._last_now = None

    def _locate(self, now: int) -> Tuple[int, int]:
        if self._last_now is None or now < self._last_now:
            self.reset()
        while self._segments[self._index].timestamp < now:
            self._previous_amounts += self._segments[self._index].amount
            self._index += 1
        self._last_now = now
        return self._index, self._previous_amounts

    def streamed_amount(self, now: int) -> int:
        snapshot = self._snapshot
        amounts = snapshot.amounts
        if now < snapshot.start_time:
            return 0
        if now >= snapshot.end_time:
            return amounts.deposited

        if len(self._segments) == 1:
            return calculate_streamed_amount(
                now=now,
                start_time=snapshot.start_time,
                end_time=snapshot.end_time,
                deposited=amounts.deposited,
                withdrawn=amounts.withdrawn,
                segments=self._segments,
            )

        index, previous_amounts = self._locate(now)
        return _streamed_amount_in_segment(
            now=now,
            start_time=snapshot.start_time,
            segments=self._segments,
            index=index,
            previous_amounts=previous_amounts,
            deposited=amounts.deposited,
            withdrawn=amounts.withdrawn,
        )
