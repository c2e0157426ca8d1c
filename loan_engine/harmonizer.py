"""
Loan Harmonizer Module

Read-side reconciliation of a loan's stored outstanding balance against its
schedule and payment rows. Produces the outstanding balance, arrears age and
next/last payment dates for display and audit. A stored balance that
disagrees with the schedule is reported through schedule_consistent and a
warning log record; nothing is raised and nothing is corrected.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from .currency import ZERO, Numeric, to_decimal
from .schedule import ScheduleEntry
from .config import get_config
from .logging_config import get_logger, log_action

logger = get_logger("loan_engine.harmonizer")

MIN_RATE = Decimal('0')
MAX_RATE = Decimal('100')


@dataclass(frozen=True)
class LoanSnapshot:
    """Stored state of a loan as handed over by the persistence layer"""
    stored_outstanding_balance: Decimal
    interest_rate: Decimal  # Annual rate, percent
    schedule: Tuple[ScheduleEntry, ...] = ()
    loan_id: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'stored_outstanding_balance', to_decimal(self.stored_outstanding_balance))
        object.__setattr__(self, 'interest_rate', to_decimal(self.interest_rate))
        object.__setattr__(self, 'schedule', tuple(self.schedule))


@dataclass(frozen=True)
class HarmonizedLoanCalculation:
    """Recomputed view of a loan alongside the stored figure"""
    calculated_outstanding: Decimal
    corrected_interest_rate: Decimal
    days_in_arrears: int
    schedule_consistent: bool
    total_scheduled_amount: Decimal
    total_paid_amount: Decimal
    stored_outstanding: Decimal
    last_payment_date: Optional[date] = None
    next_payment_date: Optional[date] = None

    @property
    def discrepancy(self) -> Decimal:
        """Calculated minus stored outstanding"""
        return self.calculated_outstanding - self.stored_outstanding


def clamp_interest_rate(rate: Numeric) -> Decimal:
    """Clamp an annual percentage rate to [0, 100]"""
    return min(max(to_decimal(rate), MIN_RATE), MAX_RATE)


def days_in_arrears(schedule: Iterable[ScheduleEntry], today: date) -> int:
    """Days since the earliest past-due installment that still has an amount outstanding"""
    overdue = [
        entry.due_date for entry in schedule
        if entry.due_date < today and entry.outstanding_amount > ZERO
    ]
    if not overdue:
        return 0
    return (today - min(overdue)).days


def harmonize(snapshot: LoanSnapshot, today: Optional[date] = None,
              tolerance: Optional[Numeric] = None) -> HarmonizedLoanCalculation:
    """
    Recompute a consistent view of a loan

    Args:
        snapshot: Stored balance, rate and schedule rows
        today: Reference date for arrears (defaults to date.today())
        tolerance: Allowed difference between stored and calculated
            outstanding (defaults to the configured tolerance, 0.01)

    Returns:
        HarmonizedLoanCalculation
    """
    if today is None:
        today = date.today()
    if tolerance is None:
        tolerance = get_config().consistency_tolerance
    tolerance = to_decimal(tolerance)

    schedule = snapshot.schedule
    stored = snapshot.stored_outstanding_balance

    total_scheduled = sum((entry.total_amount for entry in schedule), ZERO)
    total_paid = sum((entry.paid_amount for entry in schedule), ZERO)

    if schedule:
        calculated = total_scheduled - total_paid
    else:
        calculated = stored

    paid_dates = [entry.due_date for entry in schedule if entry.paid_amount > ZERO]
    open_dates = [entry.due_date for entry in schedule if entry.outstanding_amount > ZERO]

    result = HarmonizedLoanCalculation(
        calculated_outstanding=calculated,
        corrected_interest_rate=clamp_interest_rate(snapshot.interest_rate),
        days_in_arrears=days_in_arrears(schedule, today),
        schedule_consistent=abs(calculated - stored) < tolerance,
        total_scheduled_amount=total_scheduled,
        total_paid_amount=total_paid,
        stored_outstanding=stored,
        last_payment_date=max(paid_dates) if paid_dates else None,
        next_payment_date=min(open_dates) if open_dates else None
    )

    if not result.schedule_consistent:
        log_action(
            logger, "warning", "Stored outstanding balance disagrees with schedule",
            loan_id=snapshot.loan_id, action="harmonize",
            extra={
                "stored_outstanding": str(stored),
                "calculated_outstanding": str(calculated),
                "discrepancy": str(result.discrepancy)
            }
        )

    return result
