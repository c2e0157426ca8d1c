"""
Loan Schedule Module

Validates loan terms and generates the installment schedule: day-count
interest, equal-installment and equal-principal amortization, flat-rate and
declining-balance interest, and grace-period handling. Also maps schedule
entries to and from the flat rows the persistence layer stores.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple, Type, TypeVar
from enum import Enum

from .currency import ZERO, CENT, Numeric, to_decimal, round_money
from .day_count import (
    RepaymentFrequency, DaysInYearType, DaysInMonthType,
    days_in_year, days_between, periodic_rate, next_due_date
)
from .errors import ValidationResult
from .logging_config import get_logger, log_action

logger = get_logger("loan_engine.schedule")

HUNDRED = Decimal('100')
MONTHS_PER_YEAR = Decimal('12')

E = TypeVar('E', bound=Enum)


class InterestType(Enum):
    """How interest is charged"""
    DECLINING_BALANCE = "declining_balance"  # On the outstanding balance
    FLAT_RATE = "flat_rate"                  # On the original principal


class AmortizationType(Enum):
    """How principal is spread across installments"""
    EQUAL_INSTALLMENTS = "equal_installments"  # Annuity - level total payment
    EQUAL_PRINCIPAL = "equal_principal"        # Level principal + interest


class GracePeriodType(Enum):
    """What is suspended during a grace period"""
    NONE = "none"
    PRINCIPAL_ONLY = "principal_only"
    INTEREST_ONLY = "interest_only"
    PRINCIPAL_AND_INTEREST = "principal_and_interest"


class PaymentStatus(Enum):
    """Payment state of a single installment"""
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"


def coerce_enum(enum_cls: Type[E], value) -> E:
    """Accept an enum member or its wire tag; unknown tags raise ValueError"""
    if isinstance(value, enum_cls):
        return value
    return enum_cls(value)


@dataclass(frozen=True)
class LoanTerms:
    """Immutable input to schedule generation. Rates are percentages (12 for 12%)."""
    principal: Decimal
    annual_interest_rate: Decimal
    term_in_periods: int
    repayment_frequency: RepaymentFrequency
    disbursement_date: date
    interest_type: InterestType = InterestType.DECLINING_BALANCE
    amortization_type: AmortizationType = AmortizationType.EQUAL_INSTALLMENTS
    days_in_year_type: DaysInYearType = DaysInYearType.DAYS_365
    days_in_month_type: DaysInMonthType = DaysInMonthType.ACTUAL
    first_payment_date: Optional[date] = None
    grace_period_days: int = 0
    grace_period_type: GracePeriodType = GracePeriodType.NONE

    def __post_init__(self):
        object.__setattr__(self, 'principal', to_decimal(self.principal))
        object.__setattr__(self, 'annual_interest_rate', to_decimal(self.annual_interest_rate))
        for name, enum_cls in (
            ('repayment_frequency', RepaymentFrequency),
            ('interest_type', InterestType),
            ('amortization_type', AmortizationType),
            ('days_in_year_type', DaysInYearType),
            ('days_in_month_type', DaysInMonthType),
            ('grace_period_type', GracePeriodType),
        ):
            object.__setattr__(self, name, coerce_enum(enum_cls, getattr(self, name)))


@dataclass(frozen=True)
class ScheduleEntry:
    """One installment of a schedule. Amounts are rounded to cents."""
    installment_number: int
    due_date: date
    principal_amount: Decimal
    interest_amount: Decimal
    fee_amount: Decimal
    total_amount: Decimal
    outstanding_balance: Decimal
    days_in_period: int
    is_grace_period: bool = False
    # Payment tracking, owned by the repayment operations
    paid_amount: Decimal = ZERO
    outstanding_amount: Optional[Decimal] = None
    payment_status: PaymentStatus = PaymentStatus.UNPAID

    def __post_init__(self):
        for name in ('principal_amount', 'interest_amount', 'fee_amount',
                     'total_amount', 'outstanding_balance', 'paid_amount'):
            value = to_decimal(getattr(self, name))
            if value < ZERO:
                raise ValueError(f"Installment {self.installment_number}: {name} cannot be negative")
            object.__setattr__(self, name, value)

        if self.outstanding_amount is None:
            object.__setattr__(self, 'outstanding_amount', self.total_amount)
        else:
            object.__setattr__(self, 'outstanding_amount', to_decimal(self.outstanding_amount))
        object.__setattr__(self, 'payment_status', coerce_enum(PaymentStatus, self.payment_status))

        # Total must equal principal + interest + fee
        calculated_total = self.principal_amount + self.interest_amount + self.fee_amount
        if abs(calculated_total - self.total_amount) > CENT:
            raise ValueError(f"Installment {self.installment_number}: total {self.total_amount} does not equal "
                             f"principal {self.principal_amount} + interest {self.interest_amount} + "
                             f"fee {self.fee_amount}")


@dataclass
class ScheduleResult:
    """Generated schedule plus aggregate totals"""
    entries: List[ScheduleEntry]
    total_interest: Decimal
    total_principal: Decimal
    total_fees: Decimal
    total_amount: Decimal
    periodic_payment: Decimal = ZERO

    def __len__(self) -> int:
        return len(self.entries)


def validate_loan_terms(terms: LoanTerms) -> ValidationResult:
    """
    Check loan terms before any schedule is generated

    Args:
        terms: Loan terms to check

    Returns:
        ValidationResult listing every violated rule
    """
    errors = []

    if terms.principal <= ZERO:
        errors.append("Principal amount must be greater than zero")

    if terms.annual_interest_rate < ZERO or terms.annual_interest_rate > HUNDRED:
        errors.append("Annual interest rate must be between 0 and 100 percent")

    if terms.term_in_periods <= 0:
        errors.append("Term in periods must be greater than zero")

    if terms.grace_period_days < 0:
        errors.append("Grace period days cannot be negative")
    elif terms.grace_period_days and terms.grace_period_days >= terms.term_in_periods:
        errors.append("Grace period cannot exceed or equal the loan term")

    if terms.first_payment_date and terms.first_payment_date < terms.disbursement_date:
        errors.append("First payment date cannot precede the disbursement date")

    return ValidationResult(errors)


def annuity_payment(principal: Numeric, rate: Numeric, periods: int) -> Decimal:
    """
    Level payment for an equal-installment loan

    payment = P * r * (1 + r)^n / ((1 + r)^n - 1), or P / n when r is zero
    """
    principal = to_decimal(principal)
    rate = to_decimal(rate)
    if periods <= 0:
        raise ValueError("Number of periods must be positive")
    if rate == ZERO:
        return principal / Decimal(periods)
    factor = (Decimal('1') + rate) ** periods
    return principal * (rate * factor) / (factor - Decimal('1'))


def flat_rate_total_interest(principal: Numeric, annual_rate_percent: Numeric, periods: int) -> Decimal:
    """Total flat interest: P * (rate / 100) * n / 12"""
    return to_decimal(principal) * (to_decimal(annual_rate_percent) / HUNDRED) * Decimal(periods) / MONTHS_PER_YEAR


def declining_balance_interest(balance: Decimal, rate: Decimal, period_days: int, year_days: int) -> Decimal:
    """Interest for one period: balance * periodic rate * (days in period / days in year)"""
    return balance * rate * (Decimal(period_days) / Decimal(year_days))


def is_grace_installment(installment_number: int, grace_period_days: int, elapsed_days: int) -> bool:
    """
    Whether an installment falls in the grace period.

    An installment is in grace while its number is at most
    ceil(grace_period_days / days elapsed since disbursement).
    """
    if grace_period_days <= 0:
        return False
    if elapsed_days <= 0:
        return True
    return installment_number <= -(-grace_period_days // elapsed_days)


def _apply_grace(grace_type: GracePeriodType, principal_amount: Decimal,
                 interest_amount: Decimal) -> Tuple[Decimal, Decimal]:
    if grace_type == GracePeriodType.NONE:
        return principal_amount, interest_amount
    elif grace_type == GracePeriodType.PRINCIPAL_ONLY:
        return ZERO, interest_amount
    elif grace_type == GracePeriodType.INTEREST_ONLY:
        return principal_amount, ZERO
    elif grace_type == GracePeriodType.PRINCIPAL_AND_INTEREST:
        return ZERO, ZERO
    else:
        raise ValueError(f"Unsupported grace period type: {grace_type}")


def generate_schedule(terms: LoanTerms) -> ScheduleResult:
    """
    Generate the installment schedule for a loan

    Args:
        terms: Loan terms

    Returns:
        ScheduleResult with one entry per installment

    Raises:
        InvalidLoanParameters: If the terms fail validation; nothing is generated
    """
    validation = validate_loan_terms(terms)
    if not validation.valid:
        log_action(
            logger, "warning", "Loan terms rejected",
            action="validate_loan_terms", extra={"errors": validation.errors}
        )
    validation.raise_if_invalid()

    principal = terms.principal
    periods = terms.term_in_periods
    year_days = days_in_year(terms.days_in_year_type, terms.disbursement_date)
    rate = periodic_rate(terms.annual_interest_rate, terms.repayment_frequency, year_days)

    level_payment = ZERO
    if (terms.amortization_type == AmortizationType.EQUAL_INSTALLMENTS and
            terms.interest_type == InterestType.DECLINING_BALANCE):
        level_payment = annuity_payment(principal, rate, periods)

    flat_interest = flat_rate_total_interest(principal, terms.annual_interest_rate, periods)
    flat_interest_per_period = flat_interest / Decimal(periods)

    due_date = terms.first_payment_date or next_due_date(terms.disbursement_date, terms.repayment_frequency)
    previous_date = terms.disbursement_date
    balance = principal
    entries = []

    for number in range(1, periods + 1):
        period_days = days_between(previous_date, due_date)
        is_grace = is_grace_installment(
            number, terms.grace_period_days, days_between(terms.disbursement_date, due_date)
        )

        if terms.interest_type == InterestType.DECLINING_BALANCE:
            interest_amount = declining_balance_interest(balance, rate, period_days, year_days)
        elif terms.interest_type == InterestType.FLAT_RATE:
            interest_amount = flat_interest_per_period
        else:
            raise ValueError(f"Unsupported interest type: {terms.interest_type}")

        if terms.amortization_type == AmortizationType.EQUAL_PRINCIPAL:
            principal_amount = principal / Decimal(periods)
        elif terms.amortization_type == AmortizationType.EQUAL_INSTALLMENTS:
            if terms.interest_type == InterestType.DECLINING_BALANCE:
                principal_amount = level_payment - interest_amount
            else:
                installment = (principal + interest_amount * Decimal(periods)) / Decimal(periods)
                principal_amount = installment - interest_amount
        else:
            raise ValueError(f"Unsupported amortization type: {terms.amortization_type}")

        if is_grace:
            principal_amount, interest_amount = _apply_grace(
                terms.grace_period_type, principal_amount, interest_amount
            )

        # Final installment takes whatever principal remains
        if number == periods or principal_amount > balance:
            principal_amount = balance
        principal_amount = max(ZERO, principal_amount)

        principal_amount = round_money(principal_amount)
        interest_amount = round_money(max(ZERO, interest_amount))
        balance = ZERO if number == periods else max(ZERO, balance - principal_amount)

        entries.append(ScheduleEntry(
            installment_number=number,
            due_date=due_date,
            principal_amount=principal_amount,
            interest_amount=interest_amount,
            fee_amount=ZERO,
            total_amount=principal_amount + interest_amount,
            outstanding_balance=round_money(balance),
            days_in_period=period_days,
            is_grace_period=is_grace
        ))

        previous_date = due_date
        due_date = next_due_date(due_date, terms.repayment_frequency)

    result = summarize_schedule(entries, total_principal=principal, periodic_payment=round_money(level_payment))

    log_action(
        logger, "debug", "Schedule generated",
        action="generate_schedule",
        extra={
            "installments": len(entries),
            "principal": str(principal),
            "annual_rate": str(terms.annual_interest_rate),
            "frequency": terms.repayment_frequency.value,
            "interest_type": terms.interest_type.value,
            "amortization_type": terms.amortization_type.value,
            "total_interest": str(result.total_interest),
            "periodic_payment": str(result.periodic_payment)
        }
    )

    return result


def summarize_schedule(entries: Iterable[ScheduleEntry], total_principal: Optional[Numeric] = None,
                       periodic_payment: Numeric = ZERO) -> ScheduleResult:
    """Recompute aggregate totals from (possibly fee-adjusted) entries"""
    entries = list(entries)
    total_interest = sum((e.interest_amount for e in entries), ZERO)
    total_fees = sum((e.fee_amount for e in entries), ZERO)
    if total_principal is None:
        total_principal = sum((e.principal_amount for e in entries), ZERO)
    total_principal = to_decimal(total_principal)

    return ScheduleResult(
        entries=entries,
        total_interest=total_interest,
        total_principal=total_principal,
        total_fees=total_fees,
        total_amount=total_principal + total_interest + total_fees,
        periodic_payment=to_decimal(periodic_payment)
    )


def schedule_to_rows(entries: Iterable[ScheduleEntry], loan_id: str) -> List[Dict]:
    """Convert schedule entries to storage rows keyed by (loan_id, installment_number)"""
    return [entry_to_row(entry, loan_id) for entry in entries]


def entry_to_row(entry: ScheduleEntry, loan_id: str) -> Dict:
    """Convert one schedule entry to a storage row"""
    return {
        'loan_id': loan_id,
        'installment_number': entry.installment_number,
        'due_date': entry.due_date.isoformat(),
        'principal_amount': str(entry.principal_amount),
        'interest_amount': str(entry.interest_amount),
        'fee_amount': str(entry.fee_amount),
        'total_amount': str(entry.total_amount),
        'outstanding_balance': str(entry.outstanding_balance),
        'days_in_period': entry.days_in_period,
        'is_grace_period': entry.is_grace_period,
        'paid_amount': str(entry.paid_amount),
        'outstanding_amount': str(entry.outstanding_amount),
        'payment_status': entry.payment_status.value
    }


def entry_from_row(row: Dict) -> ScheduleEntry:
    """Convert a storage row back to a schedule entry"""
    due_date = row['due_date']
    if isinstance(due_date, str):
        due_date = date.fromisoformat(due_date)

    return ScheduleEntry(
        installment_number=int(row['installment_number']),
        due_date=due_date,
        principal_amount=to_decimal(row['principal_amount']),
        interest_amount=to_decimal(row['interest_amount']),
        fee_amount=to_decimal(row.get('fee_amount', ZERO)),
        total_amount=to_decimal(row['total_amount']),
        outstanding_balance=to_decimal(row.get('outstanding_balance', ZERO)),
        days_in_period=int(row.get('days_in_period', 0)),
        is_grace_period=bool(row.get('is_grace_period', False)),
        paid_amount=to_decimal(row.get('paid_amount', ZERO)),
        outstanding_amount=row.get('outstanding_amount'),
        payment_status=row.get('payment_status', PaymentStatus.UNPAID.value)
    )
