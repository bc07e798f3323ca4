"""
Segmented Stream.

============================================================
THE STREAMING-CURVE CORE
============================================================

Pure computation and validation for token streams whose
unlocking curve is a sequence of time-bounded segments, each
with its own exponential shape.

- Fee split at creation (protocol fee, broker fee, deposit)
- Segment canonicalization (durations -> timestamps)
- Segment validation (count, ordering, amounts sum)
- Streamed amount at any time (single or multi-segment)
- Derived lifecycle status

The engine never decides who may call it, never moves value
and never persists anything.

============================================================
USAGE
============================================================

```python
from segmented_stream import SegmentedStreamEngine, StreamSnapshot
from segmented_stream import Broker, SegmentWithDuration, UD2x18, UD60x18

engine = SegmentedStreamEngine()

plan = engine.plan_with_durations(
    total_amount=10_000,
    protocol_fee=UD60x18.from_decimal("0.01"),
    broker=Broker(account="broker-1", fee=UD60x18.from_decimal("0.02")),
    segments=[
        SegmentWithDuration(amount=4_850, exponent=UD2x18.from_decimal("1"), duration=3_600),
        SegmentWithDuration(amount=4_850, exponent=UD2x18.from_decimal("2"), duration=7_200),
    ],
    now=now,
)

snapshot = StreamSnapshot.from_plan(plan)
amount = engine.streamed_amount(snapshot, now + 1_800)
status = engine.status(snapshot, now + 1_800)
```

============================================================
"""

# Fixed-point
from .fixed_point import (
    SD59x18,
    UD60x18,
    UD2x18,
    UNIT,
    LINEAR_EXPONENT,
)

# Types
from .types import (
    StreamStatus,
    Segment,
    SegmentWithDuration,
    Range,
    Amounts,
    CreateAmounts,
    Broker,
    StreamSnapshot,
    CreatePlan,
)

# Errors
from .errors import (
    Severity,
    ErrorClassification,
    ErrorCategory,
    StreamEngineError,
    StreamValidationError,
    FeeTooHigh,
    DepositAmountZero,
    BrokerAccountRequired,
    SegmentCountZero,
    SegmentCountTooHigh,
    StartTimeZero,
    StartTimeNotBeforeFirstSegment,
    SegmentTimestampsNotOrdered,
    TimestampOverflow,
    EndTimeNotInTheFuture,
    DepositAmountNotEqualToSegmentAmountsSum,
    ValueOutOfRange,
    FixedPointError,
    FixedPointOverflow,
    FixedPointDomainError,
    InternalConsistencyFault,
    FeeInvariantViolation,
    InconsistentStreamState,
    ConfigurationError,
)

# Configuration
from .config import (
    StreamEngineConfig,
    get_default_config,
    get_strict_config,
    get_testing_config,
    load_config_from_dict,
    load_config_from_yaml,
    load_config_from_env,
)

# Components
from .fees import split_amounts, check_broker
from .segments import canonicalize, to_durations, validate_segments, validate_start_time
from .curve import (
    calculate_streamed_amount,
    streamed_amount_of,
    locate_segment,
    SegmentCursor,
)
from .status import (
    derive_status,
    is_cancelable,
    is_cold,
    is_warm,
    withdrawable_amount_of,
    refundable_amount_of,
)

# Engine
from .engine import (
    SegmentedStreamEngine,
    create_engine,
    plan_stream,
    streamed_amount_at,
)


__all__ = [
    # Fixed-point
    "SD59x18",
    "UD60x18",
    "UD2x18",
    "UNIT",
    "LINEAR_EXPONENT",
    # Types
    "StreamStatus",
    "Segment",
    "SegmentWithDuration",
    "Range",
    "Amounts",
    "CreateAmounts",
    "Broker",
    "StreamSnapshot",
    "CreatePlan",
    # Errors
    "Severity",
    "ErrorClassification",
    "ErrorCategory",
    "StreamEngineError",
    "StreamValidationError",
    "FeeTooHigh",
    "DepositAmountZero",
    "BrokerAccountRequired",
    "SegmentCountZero",
    "SegmentCountTooHigh",
    "StartTimeZero",
    "StartTimeNotBeforeFirstSegment",
    "SegmentTimestampsNotOrdered",
    "TimestampOverflow",
    "EndTimeNotInTheFuture",
    "DepositAmountNotEqualToSegmentAmountsSum",
    "ValueOutOfRange",
    "FixedPointError",
    "FixedPointOverflow",
    "FixedPointDomainError",
    "InternalConsistencyFault",
    "FeeInvariantViolation",
    "InconsistentStreamState",
    "ConfigurationError",
    # Configuration
    "StreamEngineConfig",
    "get_default_config",
    "get_strict_config",
    "get_testing_config",
    "load_config_from_dict",
    "load_config_from_yaml",
    "load_config_from_env",
    # Components
    "split_amounts",
    "check_broker",
    "canonicalize",
    "to_durations",
    "validate_segments",
    "validate_start_time",
    "calculate_streamed_amount",
    "streamed_amount_of",
    "locate_segment",
    "SegmentCursor",
    "derive_status",
    "is_cancelable",
    "is_cold",
    "is_warm",
    "withdrawable_amount_of",
    "refundable_amount_of",
    # Engine
    "SegmentedStreamEngine",
    "create_engine",
    "plan_stream",
    "streamed_amount_at",
]


__version__ = "1.0.0"
