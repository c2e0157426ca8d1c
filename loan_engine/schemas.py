"""
Pydantic schemas for engine inputs and stored rows
"""

from decimal import Decimal
from datetime import date
from typing import Annotated, List, Optional
from pydantic import AfterValidator, BaseModel, Field

from .config import get_config
from .currency import decimal_from_string
from .schedule import LoanTerms, ScheduleEntry
from .fees import FeeStructure
from .allocation import LoanBalances
from .harmonizer import LoanSnapshot


def _normalize_amount(value: str) -> str:
    """Parse a typed amount such as "KES 1,200.50"; malformed input fails validation"""
    return str(decimal_from_string(value))


# Decimal amount carried as a string
AmountStr = Annotated[str, AfterValidator(_normalize_amount)]


class LoanTermsModel(BaseModel):
    principal: AmountStr = Field(..., description="Decimal amount as string")
    annual_interest_rate: AmountStr = Field(..., description="Annual rate in percent, e.g. '12' for 12%")
    term_in_periods: int
    repayment_frequency: str = Field("monthly", description="daily, weekly or monthly")
    interest_type: str = Field("declining_balance", description="declining_balance or flat_rate")
    amortization_type: str = Field("equal_installments", description="equal_installments or equal_principal")
    days_in_year_type: Optional[str] = Field(None, description="360, 365 or actual")
    days_in_month_type: Optional[str] = Field(None, description="30 or actual")
    disbursement_date: date
    first_payment_date: Optional[date] = None
    grace_period_days: int = 0
    grace_period_type: str = Field("none", description="none, principal_only, interest_only, principal_and_interest")

    def to_terms(self) -> LoanTerms:
        settings = get_config()
        return LoanTerms(
            principal=Decimal(self.principal),
            annual_interest_rate=Decimal(self.annual_interest_rate),
            term_in_periods=self.term_in_periods,
            repayment_frequency=self.repayment_frequency,
            interest_type=self.interest_type,
            amortization_type=self.amortization_type,
            days_in_year_type=self.days_in_year_type or settings.default_days_in_year_type,
            days_in_month_type=self.days_in_month_type or settings.default_days_in_month_type,
            disbursement_date=self.disbursement_date,
            first_payment_date=self.first_payment_date,
            grace_period_days=self.grace_period_days,
            grace_period_type=self.grace_period_type
        )


class LoanBalancesModel(BaseModel):
    outstanding_principal: AmountStr = "0"
    unpaid_interest: AmountStr = "0"
    unpaid_fees: AmountStr = "0"
    unpaid_penalties: AmountStr = "0"

    def to_balances(self) -> LoanBalances:
        return LoanBalances(
            outstanding_principal=Decimal(self.outstanding_principal),
            unpaid_interest=Decimal(self.unpaid_interest),
            unpaid_fees=Decimal(self.unpaid_fees),
            unpaid_penalties=Decimal(self.unpaid_penalties)
        )


class FeeModel(BaseModel):
    name: str
    amount: AmountStr = Field(..., description="Fixed amount, or percent for percentage fees")
    charge_time_type: str = Field(..., description="disbursement or installment")
    calculation_type: str = Field("fixed", description="fixed, flat or percentage")
    min_amount: Optional[AmountStr] = None
    max_amount: Optional[AmountStr] = None

    def to_fee(self) -> FeeStructure:
        return FeeStructure(
            name=self.name,
            amount=Decimal(self.amount),
            charge_time_type=self.charge_time_type,
            calculation_type=self.calculation_type,
            min_amount=Decimal(self.min_amount) if self.min_amount else None,
            max_amount=Decimal(self.max_amount) if self.max_amount else None
        )


class ScheduleRowModel(BaseModel):
    loan_id: Optional[str] = None
    installment_number: int
    due_date: date
    principal_amount: AmountStr
    interest_amount: AmountStr
    fee_amount: AmountStr = "0"
    total_amount: AmountStr
    outstanding_balance: AmountStr = "0"
    days_in_period: int = 0
    is_grace_period: bool = False
    paid_amount: AmountStr = "0"
    outstanding_amount: Optional[AmountStr] = None
    payment_status: str = "unpaid"

    def to_entry(self) -> ScheduleEntry:
        return ScheduleEntry(
            installment_number=self.installment_number,
            due_date=self.due_date,
            principal_amount=Decimal(self.principal_amount),
            interest_amount=Decimal(self.interest_amount),
            fee_amount=Decimal(self.fee_amount),
            total_amount=Decimal(self.total_amount),
            outstanding_balance=Decimal(self.outstanding_balance),
            days_in_period=self.days_in_period,
            is_grace_period=self.is_grace_period,
            paid_amount=Decimal(self.paid_amount),
            outstanding_amount=Decimal(self.outstanding_amount) if self.outstanding_amount is not None else None,
            payment_status=self.payment_status
        )

    @classmethod
    def from_entry(cls, entry: ScheduleEntry, loan_id: Optional[str] = None) -> 'ScheduleRowModel':
        return cls(
            loan_id=loan_id,
            installment_number=entry.installment_number,
            due_date=entry.due_date,
            principal_amount=str(entry.principal_amount),
            interest_amount=str(entry.interest_amount),
            fee_amount=str(entry.fee_amount),
            total_amount=str(entry.total_amount),
            outstanding_balance=str(entry.outstanding_balance),
            days_in_period=entry.days_in_period,
            is_grace_period=entry.is_grace_period,
            paid_amount=str(entry.paid_amount),
            outstanding_amount=str(entry.outstanding_amount),
            payment_status=entry.payment_status.value
        )


class LoanSnapshotModel(BaseModel):
    loan_id: Optional[str] = None
    outstanding_balance: AmountStr = Field(..., description="Stored outstanding balance")
    interest_rate: AmountStr = Field(..., description="Stored annual rate in percent")
    schedule: List[ScheduleRowModel] = Field(default_factory=list)

    def to_snapshot(self) -> LoanSnapshot:
        return LoanSnapshot(
            stored_outstanding_balance=Decimal(self.outstanding_balance),
            interest_rate=Decimal(self.interest_rate),
            schedule=tuple(row.to_entry() for row in self.schedule),
            loan_id=self.loan_id
        )
