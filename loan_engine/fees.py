"""
Fee Module

Resolves configured fee structures (fixed or percentage, with optional
minimum and maximum limits) into amounts, and injects disbursement-time and
per-installment fees into a generated schedule.
"""

from decimal import Decimal
from dataclasses import dataclass, field, replace
from typing import Iterable, List, Optional, Sequence, Tuple, Union
from enum import Enum

from .currency import ZERO, Numeric, to_decimal, round_money, format_amount
from .schedule import ScheduleEntry, coerce_enum
from .logging_config import get_logger, log_action

logger = get_logger("loan_engine.fees")


class FeeChargeTime(Enum):
    """When a fee is charged"""
    DISBURSEMENT = "disbursement"  # Once, with the first installment
    INSTALLMENT = "installment"    # With every installment


class FeeCalculationType(Enum):
    """How the fee amount is derived"""
    FIXED = "fixed"
    FLAT = "flat"              # Same as fixed
    PERCENTAGE = "percentage"  # Percent of a base amount (the principal)


@dataclass(frozen=True)
class FeeStructure:
    """A configured fee"""
    name: str
    amount: Decimal
    charge_time_type: FeeChargeTime
    calculation_type: FeeCalculationType = FeeCalculationType.FIXED
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None

    def __post_init__(self):
        object.__setattr__(self, 'amount', to_decimal(self.amount))
        object.__setattr__(self, 'charge_time_type', coerce_enum(FeeChargeTime, self.charge_time_type))
        object.__setattr__(self, 'calculation_type', coerce_enum(FeeCalculationType, self.calculation_type))
        for name in ('min_amount', 'max_amount'):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, to_decimal(value))

        if self.amount < ZERO:
            raise ValueError(f"Fee {self.name} amount cannot be negative")
        if (self.min_amount is not None and self.max_amount is not None and
                self.min_amount > self.max_amount):
            raise ValueError(f"Fee {self.name} minimum exceeds its maximum")


@dataclass(frozen=True)
class CalculatedFee:
    """A fee resolved to an amount"""
    name: str
    calculation_type: FeeCalculationType
    original_amount: Decimal
    calculated_amount: Decimal
    applied_limit: Optional[str] = None  # "minimum", "maximum" or None
    base_amount: Decimal = ZERO


@dataclass
class FeeTotals:
    """Resolved fees and their sum"""
    total: Decimal
    fees: List[CalculatedFee] = field(default_factory=list)

    @property
    def has_limits_applied(self) -> bool:
        return any(fee.applied_limit for fee in self.fees)


FeeInput = Union[FeeStructure, Decimal, int, float, str]


def calculate_fee_amount(fee: FeeStructure, base_amount: Numeric = ZERO) -> CalculatedFee:
    """
    Resolve a fee structure to an amount

    Args:
        fee: Fee structure
        base_amount: Amount percentage fees are computed on

    Returns:
        CalculatedFee, rounded to cents, recording any limit applied
    """
    base_amount = to_decimal(base_amount)

    if fee.calculation_type in (FeeCalculationType.FIXED, FeeCalculationType.FLAT):
        amount = fee.amount
    elif fee.calculation_type == FeeCalculationType.PERCENTAGE:
        amount = base_amount * fee.amount / Decimal('100')
    else:
        raise ValueError(f"Unsupported fee calculation type: {fee.calculation_type}")

    applied_limit = None
    if fee.min_amount and amount < fee.min_amount:
        amount = fee.min_amount
        applied_limit = "minimum"
    if fee.max_amount and amount > fee.max_amount:
        amount = fee.max_amount
        applied_limit = "maximum"

    return CalculatedFee(
        name=fee.name,
        calculation_type=fee.calculation_type,
        original_amount=fee.amount,
        calculated_amount=round_money(amount),
        applied_limit=applied_limit,
        base_amount=base_amount
    )


def calculate_total_fees(fees: Iterable[FeeStructure], base_amount: Numeric = ZERO) -> FeeTotals:
    """Resolve every fee against the same base amount and sum them"""
    calculated = [calculate_fee_amount(fee, base_amount) for fee in fees]
    return FeeTotals(
        total=sum((fee.calculated_amount for fee in calculated), ZERO),
        fees=calculated
    )


def split_fees_by_charge_time(fees: Iterable[FeeStructure],
                              base_amount: Numeric = ZERO) -> Tuple[List[Decimal], List[Decimal]]:
    """Resolve fees and split them into (disbursement, installment) amount lists"""
    disbursement, installment = [], []
    for fee in fees:
        amount = calculate_fee_amount(fee, base_amount).calculated_amount
        if fee.charge_time_type == FeeChargeTime.DISBURSEMENT:
            disbursement.append(amount)
        elif fee.charge_time_type == FeeChargeTime.INSTALLMENT:
            installment.append(amount)
        else:
            raise ValueError(f"Unsupported fee charge time: {fee.charge_time_type}")
    return disbursement, installment


def _fee_sum(fees: Iterable[FeeInput], base_amount: Decimal) -> Decimal:
    total = ZERO
    for fee in fees:
        if isinstance(fee, FeeStructure):
            total += calculate_fee_amount(fee, base_amount).calculated_amount
        else:
            amount = to_decimal(fee)
            if amount < ZERO:
                raise ValueError(f"Fee amount {amount} cannot be negative")
            total += amount
    return round_money(total)


def _add_fee(entry: ScheduleEntry, amount: Decimal) -> ScheduleEntry:
    return replace(
        entry,
        fee_amount=entry.fee_amount + amount,
        total_amount=entry.total_amount + amount,
        outstanding_amount=entry.outstanding_amount + amount
    )


def inject_fees(entries: Sequence[ScheduleEntry],
                disbursement_fees: Iterable[FeeInput] = (),
                installment_fees: Iterable[FeeInput] = (),
                base_amount: Optional[Numeric] = None) -> List[ScheduleEntry]:
    """
    Add fees to a schedule

    Disbursement fees are summed onto installment 1; installment fees are
    summed onto every installment. Entries are replaced, never renumbered or
    reordered.

    Args:
        entries: Schedule entries, in any order; the output keeps that order
        disbursement_fees: Amounts or FeeStructures charged once
        installment_fees: Amounts or FeeStructures charged every installment
        base_amount: Base for percentage fees; defaults to the schedule's principal

    Returns:
        New list of schedule entries
    """
    entries = list(entries)
    if not entries:
        return entries

    if base_amount is None:
        base_amount = sum((e.principal_amount for e in entries), ZERO)
    base_amount = to_decimal(base_amount)

    disbursement_total = _fee_sum(disbursement_fees, base_amount)
    installment_total = _fee_sum(installment_fees, base_amount)
    first_installment = min(e.installment_number for e in entries)

    adjusted = []
    for entry in entries:
        fee = installment_total
        if entry.installment_number == first_installment:
            fee += disbursement_total
        adjusted.append(_add_fee(entry, fee) if fee else entry)

    log_action(
        logger, "debug", "Fees injected",
        action="inject_fees",
        extra={
            "installments": len(adjusted),
            "disbursement_fees": str(disbursement_total),
            "installment_fees": str(installment_total)
        }
    )

    return adjusted


def fee_warning_message(calculated_fees: Iterable[CalculatedFee]) -> Optional[str]:
    """Describe fees whose minimum or maximum limit was applied"""
    calculated_fees = list(calculated_fees)
    minimum = [f.name for f in calculated_fees if f.applied_limit == "minimum"]
    maximum = [f.name for f in calculated_fees if f.applied_limit == "maximum"]

    parts = []
    if minimum:
        parts.append(f"Minimum charge limits applied to: {', '.join(minimum)}")
    if maximum:
        parts.append(f"Maximum charge limits applied to: {', '.join(maximum)}")
    return ". ".join(parts) if parts else None


def format_fee_display(calculated_fee: CalculatedFee) -> str:
    """Display a resolved fee, e.g. '2% = KES 200.00'"""
    amount = format_amount(calculated_fee.calculated_amount)
    is_percentage = calculated_fee.calculation_type == FeeCalculationType.PERCENTAGE
    display = f"{calculated_fee.original_amount}%" if is_percentage else amount

    if calculated_fee.applied_limit:
        limit = "Min" if calculated_fee.applied_limit == "minimum" else "Max"
        display += f" ({limit} applied: {amount})"
    elif is_percentage and calculated_fee.base_amount:
        display += f" = {amount}"
    return display
