"""
Segmented Stream - Error Taxonomy.

============================================================
PURPOSE
============================================================
Every failure the engine can raise, with the offending values
attached so callers can re-prompt with corrected input.

============================================================
EXCEPTION HIERARCHY
============================================================
StreamEngineError (base)
├── StreamValidationError
│   ├── FeeTooHigh
│   ├── DepositAmountZero
│   ├── BrokerAccountRequired
│   ├── SegmentCountZero
│   ├── SegmentCountTooHigh
│   ├── StartTimeZero
│   ├── StartTimeNotBeforeFirstSegment
│   ├── SegmentTimestampsNotOrdered
│   ├── TimestampOverflow
│   ├── EndTimeNotInTheFuture
│   ├── DepositAmountNotEqualToSegmentAmountsSum
│   └── ValueOutOfRange
├── FixedPointError
│   ├── FixedPointOverflow
│   └── FixedPointDomainError
├── InternalConsistencyFault
│   ├── FeeInvariantViolation
│   └── InconsistentStreamState
└── ConfigurationError

Validation errors are user-input failures and are never
retried by the engine itself. Internal consistency faults are
defect signals: they are CRITICAL and must never be swallowed.

Rounding overshoot in the streamed-amount computation is NOT
an error. It is clamped (see curve.py).

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY / CLASSIFICATION
# ============================================================

class Severity(Enum):
    """Error severity levels for logging and alerting."""

    LOW = "low"
    """Minor issue, informational."""

    MEDIUM = "medium"
    """Rejected input, caller must correct it."""

    HIGH = "high"
    """Serious issue, configuration or numeric limits hit."""

    CRITICAL = "critical"
    """Defect signal, requires immediate investigation."""


class ErrorClassification(Enum):
    """Classification of error recoverability."""

    RECOVERABLE = "recoverable"
    """Caller can correct the input and try again."""

    NON_RECOVERABLE = "non_recoverable"
    """Permanent error, requires intervention."""


class ErrorCategory(str, Enum):
    """Which part of the engine rejected the request."""

    FEES = "FEES"
    SEGMENTS = "SEGMENTS"
    AMOUNTS = "AMOUNTS"
    FIXED_POINT = "FIXED_POINT"
    INTERNAL = "INTERNAL"
    CONFIGURATION = "CONFIGURATION"


# ============================================================
# BASE EXCEPTION
# ============================================================

class StreamEngineError(Exception):
    """
    Base exception for all segmented stream errors.

    All exceptions carry:
    - code: stable identifier for logs and API responses
    - severity: for alerting
    - context: offending values, for debugging
    - timestamp: when the error occurred (wall clock, logging only)
    """

    code: str = "STREAM_ENGINE_ERROR"
    category: ErrorCategory = ErrorCategory.INTERNAL
    default_severity: Severity = Severity.MEDIUM
    default_classification: ErrorClassification = ErrorClassification.RECOVERABLE

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        classification: Optional[ErrorClassification] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.classification = classification or self.default_classification
        self.timestamp = datetime.now(timezone.utc)

    @property
    def is_recoverable(self) -> bool:
        """Check if the caller can fix the input and retry."""
        return self.classification == ErrorClassification.RECOVERABLE

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging."""
        return {
            "type": type(self).__name__,
            "code": self.code,
            "category": self.category.value,
            "message": self.message,
            "severity": self.severity.value,
            "classification": self.classification.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def to_log_format(self) -> str:
        """Format exception for structured logging."""
        ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        line = f"[{self.severity.value.upper()}] {self.code}: {self.message}"
        if ctx_str:
            line += f" | {ctx_str}"
        return line


# ============================================================
# VALIDATION ERRORS
# ============================================================

class StreamValidationError(StreamEngineError):
    """Base class for rejected creation or query input."""

    code = "VALIDATION_ERROR"
    category = ErrorCategory.SEGMENTS


class FeeTooHigh(StreamValidationError):
    """A protocol or broker fee rate exceeds the maximum fee."""

    code = "FEE_TOO_HIGH"
    category = ErrorCategory.FEES

    def __init__(self, kind: str, fee: Any, max_fee: Any):
        self.kind = kind
        self.fee = fee
        self.max_fee = max_fee
        super().__init__(
            message=f"{kind} fee {fee} is greater than the maximum fee {max_fee}",
            context={"kind": kind, "fee": str(fee), "max_fee": str(max_fee)},
        )


class DepositAmountZero(StreamValidationError):
    """The net deposit after fees is zero."""

    code = "DEPOSIT_AMOUNT_ZERO"
    category = ErrorCategory.AMOUNTS

    def __init__(self, total_amount: Optional[int] = None):
        self.total_amount = total_amount
        context = {}
        if total_amount is not None:
            context["total_amount"] = total_amount
        super().__init__(message="deposit amount is zero", context=context)


class BrokerAccountRequired(StreamValidationError):
    """A non-zero broker fee was given without a broker account."""

    code = "BROKER_ACCOUNT_REQUIRED"
    category = ErrorCategory.FEES

    def __init__(self, fee: Any):
        self.fee = fee
        super().__init__(
            message=f"broker fee {fee} requires a broker account",
            context={"fee": str(fee)},
        )


class SegmentCountZero(StreamValidationError):
    """No segments were provided."""

    code = "SEGMENT_COUNT_ZERO"

    def __init__(self):
        super().__init__(message="segment count is zero")


class SegmentCountTooHigh(StreamValidationError):
    """More segments than the configured maximum."""

    code = "SEGMENT_COUNT_TOO_HIGH"

    def __init__(self, count: int, max_count: int):
        self.count = count
        self.max_count = max_count
        super().__init__(
            message=f"segment count {count} is greater than the maximum {max_count}",
            context={"count": count, "max_count": max_count},
        )


class StartTimeZero(StreamValidationError):
    """A stream cannot start at timestamp zero."""

    code = "START_TIME_ZERO"

    def __init__(self):
        super().__init__(message="start time is zero")


class StartTimeNotBeforeFirstSegment(StreamValidationError):
    """The start time is not strictly before the first segment timestamp."""

    code = "START_TIME_NOT_BEFORE_FIRST_SEGMENT"

    def __init__(self, start_time: int, first_timestamp: int):
        self.start_time = start_time
        self.first_timestamp = first_timestamp
        super().__init__(
            message=(
                f"start time {start_time} is not less than the first "
                f"segment timestamp {first_timestamp}"
            ),
            context={"start_time": start_time, "first_timestamp": first_timestamp},
        )


class SegmentTimestampsNotOrdered(StreamValidationError):
    """A segment timestamp is not strictly greater than its predecessor."""

    code = "SEGMENT_TIMESTAMPS_NOT_ORDERED"

    def __init__(self, index: int, previous: int, current: int):
        self.index = index
        self.previous = previous
        self.current = current
        super().__init__(
            message=(
                f"segment timestamps not ordered at index {index}: "
                f"{current} <= {previous}"
            ),
            context={"index": index, "previous": previous, "current": current},
        )


class TimestampOverflow(StreamValidationError):
    """Accumulated segment durations overflow the timestamp width."""

    code = "TIMESTAMP_OVERFLOW"

    def __init__(self, index: int, timestamp: int):
        self.index = index
        self.timestamp = timestamp
        super().__init__(
            message=f"segment {index} timestamp {timestamp} overflows the timestamp range",
            context={"index": index, "timestamp": timestamp},
        )


class EndTimeNotInTheFuture(StreamValidationError):
    """The last segment ends at or before the current time."""

    code = "END_TIME_NOT_IN_THE_FUTURE"

    def __init__(self, now: int, end_time: int):
        self.now = now
        self.end_time = end_time
        super().__init__(
            message=f"end time {end_time} is not in the future (now {now})",
            context={"now": now, "end_time": end_time},
        )


class DepositAmountNotEqualToSegmentAmountsSum(StreamValidationError):
    """The deposit does not match the sum of the segment amounts."""

    code = "DEPOSIT_AMOUNT_NOT_EQUAL_TO_SEGMENT_AMOUNTS_SUM"
    category = ErrorCategory.AMOUNTS

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            message=(
                f"deposit amount {expected} is not equal to the "
                f"segment amounts sum {actual}"
            ),
            context={"expected": expected, "actual": actual},
        )


class ValueOutOfRange(StreamValidationError):
    """An integer does not fit the width of its field."""

    code = "VALUE_OUT_OF_RANGE"
    category = ErrorCategory.AMOUNTS

    def __init__(self, name: str, value: Any, max_value: int):
        self.name = name
        self.value = value
        self.max_value = max_value
        super().__init__(
            message=f"{name}={value} is outside [0, {max_value}]",
            context={"field": name, "value": str(value)[:100], "max_value": max_value},
        )


# ============================================================
# FIXED-POINT ERRORS
# ============================================================

class FixedPointError(StreamEngineError):
    """Base class for fixed-point arithmetic failures."""

    code = "FIXED_POINT_ERROR"
    category = ErrorCategory.FIXED_POINT
    default_severity = Severity.HIGH


class FixedPointOverflow(FixedPointError):
    """Result or input does not fit the fixed-point type."""

    code = "FIXED_POINT_OVERFLOW"

    def __init__(self, operation: str, value: Any):
        self.operation = operation
        self.value = value
        super().__init__(
            message=f"{operation}: {value} overflows",
            context={"operation": operation, "value": str(value)[:100]},
        )


class FixedPointDomainError(FixedPointError):
    """Input is outside the domain of the operation."""

    code = "FIXED_POINT_DOMAIN_ERROR"

    def __init__(self, operation: str, value: Any):
        self.operation = operation
        self.value = value
        super().__init__(
            message=f"{operation}: {value} is outside the domain",
            context={"operation": operation, "value": str(value)[:100]},
        )


# ============================================================
# INTERNAL CONSISTENCY FAULTS
# ============================================================

class InternalConsistencyFault(StreamEngineError):
    """
    An invariant that holds by construction was violated.

    This is a defect, not bad input. It is never recoverable and
    must propagate to the caller.
    """

    code = "INTERNAL_CONSISTENCY_FAULT"
    category = ErrorCategory.INTERNAL
    default_severity = Severity.CRITICAL
    default_classification = ErrorClassification.NON_RECOVERABLE


class FeeInvariantViolation(InternalConsistencyFault):
    """Fees computed to equal or exceed the gross amount."""

    code = "FEE_INVARIANT_VIOLATION"

    def __init__(self, total_amount: int, protocol_fee: int, broker_fee: int):
        self.total_amount = total_amount
        self.protocol_fee = protocol_fee
        self.broker_fee = broker_fee
        super().__init__(
            message=(
                f"fees {protocol_fee} + {broker_fee} are not less than "
                f"the total amount {total_amount}"
            ),
            context={
                "total_amount": total_amount,
                "protocol_fee": protocol_fee,
                "broker_fee": broker_fee,
            },
        )


class InconsistentStreamState(InternalConsistencyFault):
    """A stream snapshot violates withdrawn + refunded <= deposited."""

    code = "INCONSISTENT_STREAM_STATE"

    def __init__(self, deposited: int, withdrawn: int, refunded: int):
        self.deposited = deposited
        self.withdrawn = withdrawn
        self.refunded = refunded
        super().__init__(
            message=(
                f"withdrawn {withdrawn} + refunded {refunded} exceeds "
                f"deposited {deposited}"
            ),
            context={
                "deposited": deposited,
                "withdrawn": withdrawn,
                "refunded": refunded,
            },
        )


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(StreamEngineError):
    """Engine configuration is invalid."""

    code = "CONFIGURATION_ERROR"
    category = ErrorCategory.CONFIGURATION
    default_severity = Severity.HIGH
    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(self, key: str, value: Any, reason: str):
        self.key = key
        self.value = value
        super().__init__(
            message=f"Invalid configuration for {key}: {reason}",
            context={"config_key": key, "actual_value": str(value)[:100], "reason": reason},
        )
