"""
Schedule Repayment Module

Applies payments to a schedule as explicit operations that return a new
schedule snapshot, and derives the balance snapshot the allocator consumes
from schedule rows. Generated entries are never mutated.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass, replace
from typing import Iterable, List, Optional

from .currency import ZERO, CENT, Numeric, to_decimal
from .schedule import ScheduleEntry, PaymentStatus
from .allocation import LoanBalances
from .logging_config import get_logger, log_action

logger = get_logger("loan_engine.repayment")


@dataclass
class PaymentApplication:
    """Schedule snapshot after a payment, with any excess left unapplied"""
    entries: List[ScheduleEntry]
    applied_amount: Decimal
    unapplied_amount: Decimal


def installment_status(entry: ScheduleEntry, paid_amount: Decimal, outstanding_amount: Decimal,
                       as_of: Optional[date] = None) -> PaymentStatus:
    """Status of an installment; anything within a cent of settled counts as paid"""
    if outstanding_amount <= CENT:
        return PaymentStatus.PAID
    if as_of is not None and entry.due_date < as_of:
        return PaymentStatus.OVERDUE
    if paid_amount > ZERO:
        return PaymentStatus.PARTIAL
    return PaymentStatus.UNPAID


def apply_payment_to_schedule(entries: Iterable[ScheduleEntry], amount: Numeric,
                              as_of: Optional[date] = None,
                              loan_id: Optional[str] = None) -> PaymentApplication:
    """
    Apply a payment to the earliest installments that still have something outstanding

    Args:
        entries: Current schedule snapshot
        amount: Payment amount
        as_of: Date used to mark unpaid past-due installments overdue
        loan_id: Loan the schedule belongs to, for logging

    Returns:
        PaymentApplication holding the new snapshot
    """
    remaining = to_decimal(amount)
    if remaining < ZERO:
        raise ValueError("Payment amount cannot be negative")
    payment = remaining

    updated = []
    for entry in sorted(entries, key=lambda e: e.installment_number):
        portion = ZERO
        if remaining > ZERO and entry.outstanding_amount > ZERO:
            portion = min(remaining, entry.outstanding_amount)
            remaining -= portion

        paid = entry.paid_amount + portion
        outstanding = max(ZERO, entry.total_amount - paid)
        updated.append(replace(
            entry,
            paid_amount=paid,
            outstanding_amount=outstanding,
            payment_status=installment_status(entry, paid, outstanding, as_of)
        ))

    log_action(
        logger, "info", "Payment applied to schedule",
        loan_id=loan_id, action="apply_payment_to_schedule",
        extra={
            "amount": str(payment),
            "applied": str(payment - remaining),
            "unapplied": str(remaining)
        }
    )

    return PaymentApplication(
        entries=updated,
        applied_amount=payment - remaining,
        unapplied_amount=remaining
    )


def reallocate_payments(entries: Iterable[ScheduleEntry], total_paid: Numeric,
                        as_of: Optional[date] = None,
                        loan_id: Optional[str] = None) -> PaymentApplication:
    """Clear payment tracking and re-apply a loan's total paid amount from the first installment"""
    cleared = [
        replace(entry, paid_amount=ZERO, outstanding_amount=entry.total_amount,
                payment_status=PaymentStatus.UNPAID)
        for entry in entries
    ]
    return apply_payment_to_schedule(cleared, total_paid, as_of=as_of, loan_id=loan_id)


def balances_from_schedule(entries: Iterable[ScheduleEntry], unpaid_penalties: Numeric = ZERO,
                           as_of: Optional[date] = None) -> LoanBalances:
    """
    Build the allocator's balance snapshot from schedule rows

    Each entry's paid amount is taken to have covered its fee, then its
    interest, then its principal. Principal counts in full; interest and fees
    count only for entries due on or before as_of (all entries when as_of is
    None).
    """
    outstanding_principal = ZERO
    unpaid_interest = ZERO
    unpaid_fees = ZERO

    for entry in entries:
        remaining_paid = entry.paid_amount
        fee_paid = min(remaining_paid, entry.fee_amount)
        remaining_paid -= fee_paid
        interest_paid = min(remaining_paid, entry.interest_amount)
        remaining_paid -= interest_paid
        principal_paid = min(remaining_paid, entry.principal_amount)

        outstanding_principal += entry.principal_amount - principal_paid
        if as_of is None or entry.due_date <= as_of:
            unpaid_interest += entry.interest_amount - interest_paid
            unpaid_fees += entry.fee_amount - fee_paid

    return LoanBalances(
        outstanding_principal=outstanding_principal,
        unpaid_interest=unpaid_interest,
        unpaid_fees=unpaid_fees,
        unpaid_penalties=to_decimal(unpaid_penalties)
    )
