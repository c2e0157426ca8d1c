"""
Repayment Allocation Module

Splits an incoming payment across penalty, fee, interest and principal
balances using a fixed priority waterfall chosen from a closed set of
strategies. Any part of the payment that exceeds every balance is left
unallocated; treating it as an overpayment is the caller's concern.
"""

from decimal import Decimal
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union
from enum import Enum

from .currency import ZERO, Currency, Numeric, to_decimal, format_amount
from .errors import ValidationResult
from .config import get_config
from .logging_config import get_logger, log_action

logger = get_logger("loan_engine.allocation")


class RepaymentStrategy(Enum):
    """Order in which a payment satisfies outstanding balances"""
    PENALTIES_FEES_INTEREST_PRINCIPAL = "penalties_fees_interest_principal"
    FEES_INTEREST_PRINCIPAL = "fees_interest_principal"
    INTEREST_PRINCIPAL = "interest_principal"
    PRINCIPAL_ONLY = "principal_only"
    CUSTOM = "custom"  # Caller applies its own logic; the engine allocates nothing


BUCKET_ORDER: Dict[RepaymentStrategy, Tuple[str, ...]] = {
    RepaymentStrategy.PENALTIES_FEES_INTEREST_PRINCIPAL: ("penalties", "fees", "interest", "principal"),
    RepaymentStrategy.FEES_INTEREST_PRINCIPAL: ("fees", "interest", "principal"),
    RepaymentStrategy.INTEREST_PRINCIPAL: ("interest", "principal"),
    RepaymentStrategy.PRINCIPAL_ONLY: ("principal",),
    RepaymentStrategy.CUSTOM: (),
}

# Allocation bucket -> LoanBalances field
BALANCE_FIELDS = {
    "principal": "outstanding_principal",
    "interest": "unpaid_interest",
    "fees": "unpaid_fees",
    "penalties": "unpaid_penalties",
}


@dataclass(frozen=True)
class LoanBalances:
    """Snapshot of what is owed immediately before a payment"""
    outstanding_principal: Decimal = ZERO
    unpaid_interest: Decimal = ZERO
    unpaid_fees: Decimal = ZERO
    unpaid_penalties: Decimal = ZERO

    def __post_init__(self):
        for name in BALANCE_FIELDS.values():
            object.__setattr__(self, name, to_decimal(getattr(self, name)))

    @property
    def total(self) -> Decimal:
        return sum((max(ZERO, getattr(self, name)) for name in BALANCE_FIELDS.values()), ZERO)


@dataclass(frozen=True)
class RepaymentAllocation:
    """How a payment was split across balance buckets"""
    principal: Decimal = ZERO
    interest: Decimal = ZERO
    fees: Decimal = ZERO
    penalties: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.principal + self.interest + self.fees + self.penalties

    def to_dict(self) -> Dict[str, str]:
        return {bucket: str(getattr(self, bucket)) for bucket in BALANCE_FIELDS}


StrategyInput = Union[RepaymentStrategy, str, None]


def resolve_strategy(strategy: StrategyInput) -> RepaymentStrategy:
    """Resolve a strategy or tag; unknown or missing tags fall back to the configured default"""
    if isinstance(strategy, RepaymentStrategy):
        return strategy
    default = RepaymentStrategy(get_config().default_repayment_strategy)
    if strategy is None:
        return default
    try:
        return RepaymentStrategy(strategy)
    except ValueError:
        log_action(
            logger, "warning", f"Unknown repayment strategy {strategy!r}, using {default.value}",
            action="resolve_strategy"
        )
        return default


def allocate(payment_amount: Numeric, balances: LoanBalances,
             strategy: StrategyInput = None) -> RepaymentAllocation:
    """
    Allocate a payment across outstanding balances

    Args:
        payment_amount: Amount received
        balances: Balances owed immediately before the payment
        strategy: Waterfall to apply (defaults to penalties, fees, interest, principal)

    Returns:
        RepaymentAllocation; each bucket is capped at its balance and the
        buckets never sum to more than the payment
    """
    strategy = resolve_strategy(strategy)
    remaining = to_decimal(payment_amount)
    allocated = {bucket: ZERO for bucket in BALANCE_FIELDS}

    for bucket in BUCKET_ORDER[strategy]:
        if remaining <= ZERO:
            break
        available = max(ZERO, getattr(balances, BALANCE_FIELDS[bucket]))
        amount = min(remaining, available)
        if amount > ZERO:
            allocated[bucket] = amount
            remaining -= amount

    allocation = RepaymentAllocation(**allocated)

    log_action(
        logger, "debug", "Payment allocated",
        action="allocate",
        extra={
            "strategy": strategy.value,
            "payment_amount": str(payment_amount),
            "allocation": allocation.to_dict(),
            "unallocated": str(max(ZERO, remaining))
        }
    )

    return allocation


def validate_allocation(allocation: RepaymentAllocation, balances: LoanBalances) -> ValidationResult:
    """Check that no bucket is negative or exceeds its balance"""
    errors = []
    labels = {
        "principal": "Principal allocation exceeds outstanding principal",
        "interest": "Interest allocation exceeds unpaid interest",
        "fees": "Fee allocation exceeds unpaid fees",
        "penalties": "Penalty allocation exceeds unpaid penalties",
    }

    for bucket, balance_field in BALANCE_FIELDS.items():
        if getattr(allocation, bucket) > max(ZERO, getattr(balances, balance_field)):
            errors.append(labels[bucket])

    for bucket in BALANCE_FIELDS:
        if getattr(allocation, bucket) < ZERO:
            errors.append(f"{bucket} allocation cannot be negative")

    return ValidationResult(errors)


def format_allocation_breakdown(allocation: RepaymentAllocation,
                                currency: Optional[Currency] = None) -> str:
    """e.g. 'Penalties: KES 10.00, Fees: KES 5.00, Interest: KES 10.00'"""
    parts: List[str] = []
    for bucket in ("penalties", "fees", "interest", "principal"):
        amount = getattr(allocation, bucket)
        if amount > ZERO:
            parts.append(f"{bucket.capitalize()}: {format_amount(amount, currency)}")
    return ", ".join(parts) if parts else "No allocation"
