"""
Segmented Stream - Status Deriver.

============================================================
PURPOSE
============================================================
Map snapshot flags and the streamed amount to a lifecycle
status, and answer the amount queries that depend on it.

============================================================
PRECEDENCE
============================================================
1. DEPLETED   all value has left the stream (terminal)
2. CANCELED   was_canceled is set
3. PENDING    now < start_time
4. SETTLED    streamed amount reached the deposit
5. STREAMING  otherwise

Settlement is a one-way exit from cancelability: a SETTLED
stream reports is_cancelable == False whatever its stored flag.

============================================================
"""

from typing import Optional

from .curve import calculate_streamed_amount, streamed_amount_of
from .types import StreamSnapshot, StreamStatus


def derive_status(
    snapshot: StreamSnapshot,
    now: int,
    streamed_amount: Optional[int] = None,
) -> StreamStatus:
    """
    Derive the status of a stream at `now`.

    Args:
        snapshot: Stored stream state
        now: Current time, supplied by the caller
        streamed_amount: Curve result at `now`, computed if omitted
    """
    amounts = snapshot.amounts
    if snapshot.is_depleted or amounts.withdrawn + amounts.refunded == amounts.deposited:
        return StreamStatus.DEPLETED
    if snapshot.was_canceled:
        return StreamStatus.CANCELED
    if now < snapshot.start_time:
        return StreamStatus.PENDING

    if streamed_amount is None:
        streamed_amount = _curve_amount(snapshot, now)

    if streamed_amount < amounts.deposited:
        return StreamStatus.STREAMING
    return StreamStatus.SETTLED


def is_cancelable(snapshot: StreamSnapshot, now: int) -> bool:
    """Stored cancelability, forced off once the stream has settled."""
    if derive_status(snapshot, now) == StreamStatus.SETTLED:
        return False
    return snapshot.is_cancelable


def is_cold(snapshot: StreamSnapshot, now: int) -> bool:
    return derive_status(snapshot, now).is_cold


def is_warm(snapshot: StreamSnapshot, now: int) -> bool:
    return derive_status(snapshot, now).is_warm


def withdrawable_amount_of(snapshot: StreamSnapshot, now: int) -> int:
    """Streamed but not yet withdrawn."""
    return streamed_amount_of(snapshot, now) - snapshot.amounts.withdrawn


def refundable_amount_of(snapshot: StreamSnapshot, now: int) -> int:
    """
    What the sender would get back by canceling now.

    Zero for streams that are not cancelable, already canceled,
    or depleted.
    """
    if not snapshot.is_cancelable or snapshot.was_canceled or snapshot.is_depleted:
        return 0
    return snapshot.amounts.deposited - _curve_amount(snapshot, now)


def _curve_amount(snapshot: StreamSnapshot, now: int) -> int:
    amounts = snapshot.amounts
    return calculate_streamed_amount(
        now=now,
        start_time=snapshot.start_time,
        end_time=snapshot.end_time,
        deposited=amounts.deposited,
        withdrawn=amounts.withdrawn,
        segments=snapshot.segments,
    )
