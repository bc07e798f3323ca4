"""
Segmented Stream - Type Definitions.

============================================================
PURPOSE
============================================================
Value types exchanged with the engine.

All types are immutable snapshots. The engine never owns a
stream: callers hand it a StreamSnapshot per query and get
derived values back.

============================================================
FIELD WIDTHS
============================================================
- amounts:     unsigned 128-bit
- timestamps:  unsigned 40-bit (seconds)
- durations:   unsigned 40-bit (seconds)
- exponents:   UD2x18 (unsigned 64-bit raw, 18 decimals)
- fee rates:   UD60x18

Widths are checked on construction so no value is silently
truncated by whatever storage layer persists it.

============================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple

from .errors import InconsistentStreamState, ValueOutOfRange
from .fixed_point import UD2x18, UD60x18, UINT128_MAX, UINT40_MAX


def check_uint(name: str, value: int, max_value: int) -> int:
    """Reject anything that is not an int in [0, max_value]."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueOutOfRange(name, value, max_value)
    if not 0 <= value <= max_value:
        raise ValueOutOfRange(name, value, max_value)
    return value


def check_amount(name: str, value: int) -> int:
    return check_uint(name, value, UINT128_MAX)


def check_timestamp(name: str, value: int) -> int:
    return check_uint(name, value, UINT40_MAX)


# ============================================================
# STATUS
# ============================================================

class StreamStatus(str, Enum):
    """
    Lifecycle state of a stream.

    Derived from snapshot state on every query, never stored.
    """

    PENDING = "PENDING"
    """Created, start time not reached yet."""

    STREAMING = "STREAMING"
    """Active, value is unlocking."""

    SETTLED = "SETTLED"
    """Curve fully elapsed, value not yet fully withdrawn."""

    CANCELED = "CANCELED"
    """Canceled, unstreamed value refunded to the sender."""

    DEPLETED = "DEPLETED"
    """All value has left the stream. Terminal."""

    @property
    def is_cold(self) -> bool:
        """No further unlocking can happen."""
        return self in (StreamStatus.SETTLED, StreamStatus.CANCELED, StreamStatus.DEPLETED)

    @property
    def is_warm(self) -> bool:
        return self in (StreamStatus.PENDING, StreamStatus.STREAMING)


# ============================================================
# SEGMENTS
# ============================================================

@dataclass(frozen=True)
class Segment:
    """
    One interval of the unlocking curve.

    amount:    portion of the deposit unlocked by the end of this segment
    exponent:  curve shape (1.0 linear, < 1.0 front-loaded, > 1.0 back-loaded)
    timestamp: absolute end time of the segment
    """

    amount: int
    exponent: UD2x18
    timestamp: int

    def __post_init__(self):
        check_amount("segment.amount", self.amount)
        check_timestamp("segment.timestamp", self.timestamp)
        if not isinstance(self.exponent, UD2x18):
            raise TypeError(f"segment.exponent must be UD2x18, got {type(self.exponent).__name__}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "amount": self.amount,
            "exponent": str(self.exponent),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class SegmentWithDuration:
    """Input-only segment carrying a relative duration."""

    amount: int
    exponent: UD2x18
    duration: int

    def __post_init__(self):
        check_amount("segment.amount", self.amount)
        check_uint("segment.duration", self.duration, UINT40_MAX)
        if not isinstance(self.exponent, UD2x18):
            raise TypeError(f"segment.exponent must be UD2x18, got {type(self.exponent).__name__}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "amount": self.amount,
            "exponent": str(self.exponent),
            "duration": self.duration,
        }


@dataclass(frozen=True)
class Range:
    """Time bounds of a stream. end is the last segment's timestamp."""

    start: int
    end: int

    def to_dict(self) -> Dict[str, Any]:
        return {"start": self.start, "end": self.end}


# ============================================================
# AMOUNTS
# ============================================================

@dataclass(frozen=True)
class Amounts:
    """
    Stored amounts of a stream.

    Invariant: withdrawn + refunded <= deposited.
    """

    deposited: int
    withdrawn: int = 0
    refunded: int = 0

    def __post_init__(self):
        check_amount("amounts.deposited", self.deposited)
        check_amount("amounts.withdrawn", self.withdrawn)
        check_amount("amounts.refunded", self.refunded)
        if self.withdrawn + self.refunded > self.deposited:
            raise InconsistentStreamState(self.deposited, self.withdrawn, self.refunded)

    @property
    def left(self) -> int:
        """Value still held by the stream."""
        return self.deposited - self.withdrawn - self.refunded

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deposited": self.deposited,
            "withdrawn": self.withdrawn,
            "refunded": self.refunded,
        }


@dataclass(frozen=True)
class CreateAmounts:
    """
    Fee split of a gross amount at creation time.

    deposit + protocol_fee + broker_fee == gross amount.
    """

    deposit: int
    protocol_fee: int
    broker_fee: int

    def __post_init__(self):
        check_amount("deposit", self.deposit)
        check_amount("protocol_fee", self.protocol_fee)
        check_amount("broker_fee", self.broker_fee)

    @property
    def total(self) -> int:
        return self.deposit + self.protocol_fee + self.broker_fee

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deposit": self.deposit,
            "protocol_fee": self.protocol_fee,
            "broker_fee": self.broker_fee,
        }


@dataclass(frozen=True)
class Broker:
    """
    Party taking a fee on stream creation.

    account is an opaque payee identifier. It may be None only
    when fee is zero (see fees.check_broker).
    """

    account: Optional[str] = None
    fee: UD60x18 = field(default_factory=lambda: UD60x18(0))

    def to_dict(self) -> Dict[str, Any]:
        return {"account": self.account, "fee": str(self.fee)}


# ============================================================
# STREAM SNAPSHOT
# ============================================================

@dataclass(frozen=True)
class StreamSnapshot:
    """
    Read-only view of a stored stream, supplied per query.

    The segment list is fixed at creation and never edited.
    """

    start_time: int
    end_time: int
    amounts: Amounts
    segments: Tuple[Segment, ...]

    is_cancelable: bool = True
    was_canceled: bool = False
    is_depleted: bool = False
    is_transferable: bool = True

    # Owned by the position layer, carried for logging only
    stream_id: Optional[str] = None
    sender: Optional[str] = None
    recipient: Optional[str] = None
    asset: Optional[str] = None

    def __post_init__(self):
        check_timestamp("start_time", self.start_time)
        check_timestamp("end_time", self.end_time)
        if not isinstance(self.segments, tuple):
            object.__setattr__(self, "segments", tuple(self.segments))

    @property
    def range(self) -> Range:
        return Range(start=self.start_time, end=self.end_time)

    @property
    def deposited(self) -> int:
        return self.amounts.deposited

    @property
    def withdrawn(self) -> int:
        return self.amounts.withdrawn

    @property
    def refunded(self) -> int:
        return self.amounts.refunded

    @classmethod
    def from_plan(
        cls,
        plan: "CreatePlan",
        is_cancelable: bool = True,
        is_transferable: bool = True,
        **kwargs: Any,
    ) -> "StreamSnapshot":
        """Snapshot of a freshly created stream (nothing withdrawn yet)."""
        return cls(
            start_time=plan.range.start,
            end_time=plan.range.end,
            amounts=Amounts(deposited=plan.amounts.deposit),
            segments=plan.segments,
            is_cancelable=is_cancelable,
            is_transferable=is_transferable,
            **kwargs,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stream_id": self.stream_id,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "amounts": self.amounts.to_dict(),
            "segment_count": len(self.segments),
            "is_cancelable": self.is_cancelable,
            "was_canceled": self.was_canceled,
            "is_depleted": self.is_depleted,
        }


# ============================================================
# CREATION OUTPUT
# ============================================================

@dataclass(frozen=True)
class CreatePlan:
    """
    Everything the storage layer persists for a new stream.

    Produced by SegmentedStreamEngine.plan_with_timestamps /
    plan_with_durations after all checks have passed.
    """

    amounts: CreateAmounts
    segments: Tuple[Segment, ...]
    range: Range
    broker: Broker

    def to_dict(self) -> Dict[str, Any]:
        return {
            "amounts": self.amounts.to_dict(),
            "segments": [s.to_dict() for s in self.segments],
            "range": self.range.to_dict(),
            "broker": self.broker.to_dict(),
        }


def as_segment_tuple(segments: Sequence[Segment]) -> Tuple[Segment, ...]:
    return segments if isinstance(segments, tuple) else tuple(segments)
