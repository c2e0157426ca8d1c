"""
Test suite for loan harmonizer module

Tests recomputation of outstanding balance, arrears age, payment dates,
rate clamping and reporting of stored balances that disagree with the
schedule.
"""

import pytest
from decimal import Decimal
from datetime import date

from loan_engine.day_count import RepaymentFrequency
from loan_engine.schedule import LoanTerms, generate_schedule
from loan_engine.repayment import apply_payment_to_schedule
from loan_engine.harmonizer import (
    LoanSnapshot, HarmonizedLoanCalculation, harmonize, days_in_arrears, clamp_interest_rate
)


@pytest.fixture
def paid_schedule():
    """1,200 at 0% over 4 monthly installments, 450 paid"""
    terms = LoanTerms(
        principal=Decimal('1200'),
        annual_interest_rate=Decimal('0'),
        term_in_periods=4,
        repayment_frequency=RepaymentFrequency.MONTHLY,
        disbursement_date=date(2024, 1, 1)
    )
    entries = generate_schedule(terms).entries
    return apply_payment_to_schedule(entries, Decimal('450')).entries


class TestHarmonize:
    """Test loan harmonization"""

    def test_consistent_snapshot(self, paid_schedule):
        """Test a stored balance matching the schedule is consistent"""
        snapshot = LoanSnapshot(Decimal('750'), Decimal('12'), paid_schedule, loan_id="LOAN001")
        result = harmonize(snapshot, today=date(2024, 2, 15))
        assert isinstance(result, HarmonizedLoanCalculation)
        assert result.calculated_outstanding == Decimal('750.00')
        assert result.total_scheduled_amount == Decimal('1200.00')
        assert result.total_paid_amount == Decimal('450.00')
        assert result.schedule_consistent
        assert result.discrepancy == Decimal('0')

    def test_inconsistent_snapshot_reported(self, paid_schedule, caplog):
        """Test a disagreeing stored balance is flagged and logged, not raised"""
        snapshot = LoanSnapshot(Decimal('900'), Decimal('12'), paid_schedule, loan_id="LOAN001")
        with caplog.at_level("WARNING", logger="loan_engine.harmonizer"):
            result = harmonize(snapshot, today=date(2024, 2, 15))
        assert not result.schedule_consistent
        assert result.calculated_outstanding == Decimal('750.00')
        assert result.stored_outstanding == Decimal('900')
        assert result.discrepancy == Decimal('-150.00')
        records = [r for r in caplog.records if "disagrees with schedule" in r.getMessage()]
        assert len(records) == 1
        assert records[0].loan_id == "LOAN001"

    def test_stored_below_schedule(self):
        """Test stored 500 against a computed 520 is inconsistent"""
        terms = LoanTerms(
            principal=Decimal('520'), annual_interest_rate=Decimal('0'), term_in_periods=2,
            repayment_frequency=RepaymentFrequency.MONTHLY, disbursement_date=date(2024, 1, 1)
        )
        snapshot = LoanSnapshot(Decimal('500'), Decimal('12'), generate_schedule(terms).entries)
        result = harmonize(snapshot, today=date(2024, 1, 15))
        assert result.calculated_outstanding == Decimal('520.00')
        assert not result.schedule_consistent
        assert result.discrepancy == Decimal('20.00')

    def test_tolerance(self, paid_schedule):
        """Test differences below the tolerance are consistent"""
        snapshot = LoanSnapshot(Decimal('750.005'), Decimal('12'), paid_schedule)
        assert harmonize(snapshot, today=date(2024, 2, 15)).schedule_consistent
        snapshot = LoanSnapshot(Decimal('750.01'), Decimal('12'), paid_schedule)
        assert not harmonize(snapshot, today=date(2024, 2, 15)).schedule_consistent
        assert harmonize(snapshot, today=date(2024, 2, 15), tolerance='0.05').schedule_consistent

    def test_no_schedule_uses_stored_balance(self):
        """Test loans without schedule rows keep their stored balance"""
        result = harmonize(LoanSnapshot(Decimal('500'), Decimal('10')), today=date(2024, 2, 15))
        assert result.calculated_outstanding == Decimal('500')
        assert result.schedule_consistent
        assert result.days_in_arrears == 0
        assert result.next_payment_date is None
        assert result.last_payment_date is None

    def test_payment_dates(self, paid_schedule):
        """Test last paid and next open due dates"""
        result = harmonize(LoanSnapshot(Decimal('750'), Decimal('12'), paid_schedule), today=date(2024, 2, 15))
        assert result.last_payment_date == date(2024, 3, 1)
        assert result.next_payment_date == date(2024, 3, 1)

    def test_rate_clamped(self, paid_schedule):
        """Test out-of-range stored rates are clamped"""
        result = harmonize(LoanSnapshot(Decimal('750'), Decimal('150'), paid_schedule), today=date(2024, 2, 15))
        assert result.corrected_interest_rate == Decimal('100')

    def test_arrears_in_result(self, paid_schedule):
        """Test arrears age is measured from the earliest open past-due installment"""
        result = harmonize(LoanSnapshot(Decimal('750'), Decimal('12'), paid_schedule), today=date(2024, 3, 11))
        assert result.days_in_arrears == 10


class TestDaysInArrears:
    """Test arrears age"""

    def test_current_loan(self, paid_schedule):
        """Test no arrears before the open installment falls due"""
        assert days_in_arrears(paid_schedule, date(2024, 3, 1)) == 0

    def test_paid_installments_ignored(self, paid_schedule):
        """Test fully paid installments do not count"""
        assert days_in_arrears(paid_schedule, date(2024, 4, 1)) == 31

    def test_empty_schedule(self):
        """Test an empty schedule has no arrears"""
        assert days_in_arrears([], date(2024, 1, 1)) == 0


class TestClampInterestRate:
    """Test rate clamping"""

    def test_bounds(self):
        """Test values are clamped to 0..100"""
        assert clamp_interest_rate(Decimal('-5')) == Decimal('0')
        assert clamp_interest_rate(Decimal('250')) == Decimal('100')
        assert clamp_interest_rate('18.5') == Decimal('18.5')
