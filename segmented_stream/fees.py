"""
Segmented Stream - Fee Splitter.

============================================================
PURPOSE
============================================================
Derive (deposit, protocol fee, broker fee) from the gross
amount supplied at creation.

- Both rates are bounded by the maximum fee (inclusive)
- Fees round down, so rounding always favours the deposit
- fees >= gross is a defect, raised as FeeInvariantViolation

============================================================
"""

import logging

from .errors import (
    BrokerAccountRequired,
    DepositAmountZero,
    FeeInvariantViolation,
    FeeTooHigh,
)
from .fixed_point import UD60x18, UD_UNIT
from .types import Broker, CreateAmounts, check_amount


logger = logging.getLogger(__name__)


def split_amounts(
    total_amount: int,
    protocol_fee: UD60x18,
    broker_fee: UD60x18,
    max_fee: UD60x18,
) -> CreateAmounts:
    """
    Split a gross amount into deposit and fees.

    Args:
        total_amount: Gross amount in the asset's base units
        protocol_fee: Protocol fee rate
        broker_fee: Broker fee rate
        max_fee: Upper bound for either rate

    Returns:
        CreateAmounts summing to total_amount

    Raises:
        FeeTooHigh: A rate exceeds max_fee
        DepositAmountZero: Nothing is left after fees. Unreachable while
            fees stay below the gross amount; a zero gross amount returns
            zeros instead, and creation rejects that zero deposit itself
            (SegmentedStreamEngine.plan_with_timestamps).
        FeeInvariantViolation: Fees reached the gross amount
    """
    check_amount("total_amount", total_amount)

    if total_amount == 0:
        return CreateAmounts(deposit=0, protocol_fee=0, broker_fee=0)

    if protocol_fee > max_fee:
        raise FeeTooHigh("protocol", protocol_fee, max_fee)
    if broker_fee > max_fee:
        raise FeeTooHigh("broker", broker_fee, max_fee)

    # Raw-wrap the amount so the products come out in base units
    total = UD60x18.from_raw(total_amount)
    protocol_fee_amount = total.mul(protocol_fee).raw
    broker_fee_amount = total.mul(broker_fee).raw

    if protocol_fee_amount + broker_fee_amount >= total_amount:
        fault = FeeInvariantViolation(total_amount, protocol_fee_amount, broker_fee_amount)
        logger.critical(fault.to_log_format())
        raise fault

    deposit = total_amount - protocol_fee_amount - broker_fee_amount
    if deposit == 0:
        raise DepositAmountZero(total_amount)

    logger.debug(
        f"Split {total_amount}: deposit={deposit} "
        f"protocol_fee={protocol_fee_amount} broker_fee={broker_fee_amount}"
    )

    return CreateAmounts(
        deposit=deposit,
        protocol_fee=protocol_fee_amount,
        broker_fee=broker_fee_amount,
    )


def check_broker(broker: Broker) -> None:
    """
    A broker taking a fee must name an account to pay it to.

    Rates above 100% are rejected here as well, before the
    maximum-fee bound is applied.
    """
    if broker.fee > UD_UNIT:
        raise FeeTooHigh("broker", broker.fee, UD_UNIT)
    if broker.fee.raw > 0 and not broker.account:
        raise BrokerAccountRequired(broker.fee)
