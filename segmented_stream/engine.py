"""
Segmented Stream - Main Engine.

============================================================
PURPOSE
============================================================
Single entry point tying the components together.

CREATION (plan_with_timestamps / plan_with_durations):
    broker check -> fee split -> zero deposit check
    -> canonicalize (durations only) -> start time check
    -> segment validation -> CreatePlan

QUERIES (streamed_amount / status / ...):
    StreamSnapshot + now -> derived value

============================================================
CRITICAL BEHAVIOR
============================================================
1. PURE
   - No clock reads: `now` is always an argument
   - No persistence, no value movement
   - Same input = same output

2. FAIL LOUD ON BAD INPUT
   - Every rejected input raises a named StreamValidationError
   - Internal consistency faults propagate, never swallowed

3. NEVER LOCK FUNDS
   - Rounding overshoot in the curve is clamped, not raised

============================================================
"""

import logging
from typing import Any, Dict, Optional, Sequence, Tuple

from .config import StreamEngineConfig
from .curve import streamed_amount_of
from .errors import DepositAmountZero, StreamValidationError
from .fees import check_broker, split_amounts
from .fixed_point import UD60x18
from .segments import canonicalize, validate_segments, validate_start_time
from .status import (
    derive_status,
    is_cancelable,
    refundable_amount_of,
    withdrawable_amount_of,
)
from .types import (
    Broker,
    CreateAmounts,
    CreatePlan,
    Range,
    Segment,
    SegmentWithDuration,
    StreamSnapshot,
    StreamStatus,
)


logger = logging.getLogger(__name__)


class SegmentedStreamEngine:
    """
    Computation and validation layer for segmented streams.

    Usage:
        engine = SegmentedStreamEngine(config)
        plan = engine.plan_with_durations(
            total_amount=10_000,
            protocol_fee=UD60x18.from_decimal("0.01"),
            broker=Broker(account="broker-1", fee=UD60x18.from_decimal("0.02")),
            segments=segments,
            now=now,
        )
        # ... storage layer persists the plan ...
        amount = engine.streamed_amount(snapshot, now)
    """

    def __init__(
        self,
        config: Optional[StreamEngineConfig] = None,
    ):
        """
        Initialize the engine.

        Args:
            config: Engine configuration (uses defaults if None)
        """
        self._config = (config or StreamEngineConfig()).validate()
        self._max_fee = self._config.max_fee_rate

        logger.info(
            f"SegmentedStreamEngine initialized: max_fee={self._config.max_fee} "
            f"max_segment_count={self._config.max_segment_count}"
        )

    @property
    def config(self) -> StreamEngineConfig:
        """Get current configuration."""
        return self._config

    @property
    def max_fee(self) -> UD60x18:
        return self._max_fee

    # --------------------------------------------------------
    # CREATION COMPONENTS
    # --------------------------------------------------------

    def split_amounts(
        self,
        total_amount: int,
        protocol_fee: UD60x18,
        broker_fee: UD60x18,
    ) -> CreateAmounts:
        return split_amounts(total_amount, protocol_fee, broker_fee, self._max_fee)

    def canonicalize(
        self,
        start_time: int,
        segments: Sequence[SegmentWithDuration],
    ) -> Tuple[Segment, ...]:
        return canonicalize(start_time, segments)

    def validate_segments(
        self,
        segments: Sequence[Segment],
        deposit_amount: int,
        start_time: int,
        now: Optional[int] = None,
    ) -> int:
        return validate_segments(
            segments=segments,
            deposit_amount=deposit_amount,
            start_time=start_time,
            max_segment_count=self._config.max_segment_count,
            now=now if self._config.require_future_end_time else None,
        )

    # --------------------------------------------------------
    # CREATION
    # --------------------------------------------------------

    def plan_with_timestamps(
        self,
        total_amount: int,
        protocol_fee: UD60x18,
        broker: Broker,
        start_time: int,
        segments: Sequence[Segment],
        now: Optional[int] = None,
    ) -> CreatePlan:
        """
        Check creation parameters given absolute segment timestamps.

        Args:
            total_amount: Gross amount, fees included
            protocol_fee: Protocol fee rate from the fee registry
            broker: Broker and its fee rate
            start_time: Stream start
            segments: Segments with absolute timestamps
            now: Current time, for the end-time check

        Returns:
            CreatePlan ready to be persisted

        Raises:
            StreamValidationError: Any rejected parameter
        """
        try:
            check_broker(broker)
            amounts = self.split_amounts(total_amount, protocol_fee, broker.fee)
            if amounts.deposit == 0:
                raise DepositAmountZero(total_amount)
            validate_start_time(start_time)
            segments = tuple(segments)
            end_time = self.validate_segments(
                segments=segments,
                deposit_amount=amounts.deposit,
                start_time=start_time,
                now=now,
            )
        except StreamValidationError as e:
            logger.info(f"Stream creation rejected: {e.to_log_format()}")
            raise

        plan = CreatePlan(
            amounts=amounts,
            segments=segments,
            range=Range(start=start_time, end=end_time),
            broker=broker,
        )

        logger.info(
            f"Stream planned: deposit={amounts.deposit} "
            f"protocol_fee={amounts.protocol_fee} broker_fee={amounts.broker_fee} "
            f"segments={len(segments)} range=[{start_time}, {end_time}]"
        )
        return plan

    def plan_with_durations(
        self,
        total_amount: int,
        protocol_fee: UD60x18,
        broker: Broker,
        segments: Sequence[SegmentWithDuration],
        now: int,
    ) -> CreatePlan:
        """
        Check creation parameters given segment durations.

        The stream starts at `now`; timestamps are anchored there.
        """
        try:
            canonical = self.canonicalize(now, segments)
        except StreamValidationError as e:
            logger.info(f"Stream creation rejected: {e.to_log_format()}")
            raise

        return self.plan_with_timestamps(
            total_amount=total_amount,
            protocol_fee=protocol_fee,
            broker=broker,
            start_time=now,
            segments=canonical,
            now=now,
        )

    # --------------------------------------------------------
    # QUERIES
    # --------------------------------------------------------

    def streamed_amount(self, snapshot: StreamSnapshot, now: int) -> int:
        amount = streamed_amount_of(snapshot, now)
        logger.debug(f"Stream {snapshot.stream_id}: streamed {amount} at {now}")
        return amount

    def status(
        self,
        snapshot: StreamSnapshot,
        now: int,
        streamed_amount: Optional[int] = None,
    ) -> StreamStatus:
        return derive_status(snapshot, now, streamed_amount)

    def withdrawable_amount(self, snapshot: StreamSnapshot, now: int) -> int:
        return withdrawable_amount_of(snapshot, now)

    def refundable_amount(self, snapshot: StreamSnapshot, now: int) -> int:
        return refundable_amount_of(snapshot, now)

    def is_cancelable(self, snapshot: StreamSnapshot, now: int) -> bool:
        return is_cancelable(snapshot, now)

    def describe(self, snapshot: StreamSnapshot, now: int) -> Dict[str, Any]:
        """All derived values of a stream at `now`, for logging and APIs."""
        status = derive_status(snapshot, now)
        return {
            "stream_id": snapshot.stream_id,
            "now": now,
            "status": status.value,
            "streamed_amount": streamed_amount_of(snapshot, now),
            "withdrawable_amount": withdrawable_amount_of(snapshot, now),
            "refundable_amount": refundable_amount_of(snapshot, now),
            "is_cancelable": is_cancelable(snapshot, now),
            "is_cold": status.is_cold,
        }

    def health_check(self) -> Dict[str, Any]:
        """Status of the engine and its configuration."""
        return {
            "status": "OK",
            "config": self._config.to_dict(),
        }


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================

def create_engine(
    config: Optional[StreamEngineConfig] = None,
) -> SegmentedStreamEngine:
    """
    Create a new engine instance.

    Args:
        config: Optional configuration

    Returns:
        Configured SegmentedStreamEngine
    """
    return SegmentedStreamEngine(config=config)


def plan_stream(
    engine: SegmentedStreamEngine,
    total_amount: int,
    protocol_fee: UD60x18,
    broker: Broker,
    segments: Sequence[SegmentWithDuration],
    now: int,
) -> CreatePlan:
    """Plan a stream starting now from duration-relative segments."""
    return engine.plan_with_durations(
        total_amount=total_amount,
        protocol_fee=protocol_fee,
        broker=broker,
        segments=segments,
        now=now,
    )


def streamed_amount_at(snapshot: StreamSnapshot, now: int) -> int:
    """Streamed amount of a stream without building an engine."""
    return streamed_amount_of(snapshot, now)
