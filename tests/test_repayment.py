"""
Test suite for schedule repayment module

Tests applying payments to a schedule snapshot, installment status,
re-allocation of a loan's total paid amount and balance derivation for the
allocator.
"""

import pytest
from decimal import Decimal
from datetime import date

from loan_engine.day_count import RepaymentFrequency
from loan_engine.schedule import LoanTerms, ScheduleEntry, PaymentStatus, generate_schedule
from loan_engine.allocation import allocate, RepaymentStrategy
from loan_engine.repayment import (
    apply_payment_to_schedule, reallocate_payments, balances_from_schedule, installment_status
)


@pytest.fixture
def schedule_entries():
    """1,200 at 0% over 4 monthly installments of 300, due Feb 1 to May 1 2024"""
    terms = LoanTerms(
        principal=Decimal('1200'),
        annual_interest_rate=Decimal('0'),
        term_in_periods=4,
        repayment_frequency=RepaymentFrequency.MONTHLY,
        disbursement_date=date(2024, 1, 1)
    )
    return generate_schedule(terms).entries


def make_entry(number, due_date, principal, interest, fee, paid='0'):
    total = Decimal(principal) + Decimal(interest) + Decimal(fee)
    return ScheduleEntry(
        installment_number=number, due_date=due_date,
        principal_amount=Decimal(principal), interest_amount=Decimal(interest),
        fee_amount=Decimal(fee), total_amount=total,
        outstanding_balance=Decimal('0'), days_in_period=30,
        paid_amount=Decimal(paid), outstanding_amount=max(Decimal('0'), total - Decimal(paid))
    )


class TestApplyPayment:
    """Test applying payments to a schedule"""

    def test_fills_earliest_installments(self, schedule_entries):
        """Test a payment settles installments in order"""
        result = apply_payment_to_schedule(schedule_entries, Decimal('450'))
        entries = result.entries
        assert entries[0].paid_amount == Decimal('300.00')
        assert entries[0].outstanding_amount == Decimal('0')
        assert entries[0].payment_status == PaymentStatus.PAID
        assert entries[1].paid_amount == Decimal('150.00')
        assert entries[1].outstanding_amount == Decimal('150.00')
        assert entries[1].payment_status == PaymentStatus.PARTIAL
        assert entries[2].payment_status == PaymentStatus.UNPAID
        assert result.applied_amount == Decimal('450')
        assert result.unapplied_amount == Decimal('0')

    def test_successive_payments(self, schedule_entries):
        """Test a second payment continues where the first stopped"""
        first = apply_payment_to_schedule(schedule_entries, Decimal('450'))
        second = apply_payment_to_schedule(first.entries, Decimal('200'))
        assert second.entries[1].payment_status == PaymentStatus.PAID
        assert second.entries[2].paid_amount == Decimal('50.00')

    def test_overpayment_left_unapplied(self, schedule_entries):
        """Test excess beyond the schedule is reported"""
        result = apply_payment_to_schedule(schedule_entries, Decimal('1500'))
        assert all(e.payment_status == PaymentStatus.PAID for e in result.entries)
        assert result.applied_amount == Decimal('1200.00')
        assert result.unapplied_amount == Decimal('300.00')

    def test_overdue_status(self, schedule_entries):
        """Test past-due installments with an amount outstanding are overdue"""
        result = apply_payment_to_schedule(schedule_entries, Decimal('100'), as_of=date(2024, 3, 15))
        assert result.entries[0].payment_status == PaymentStatus.OVERDUE
        assert result.entries[1].payment_status == PaymentStatus.OVERDUE
        assert result.entries[2].payment_status == PaymentStatus.UNPAID

    def test_input_not_mutated(self, schedule_entries):
        """Test the original snapshot keeps its tracking values"""
        apply_payment_to_schedule(schedule_entries, Decimal('450'))
        assert schedule_entries[0].paid_amount == Decimal('0')
        assert schedule_entries[0].payment_status == PaymentStatus.UNPAID

    def test_negative_payment_rejected(self, schedule_entries):
        """Test negative payments are rejected"""
        with pytest.raises(ValueError, match="cannot be negative"):
            apply_payment_to_schedule(schedule_entries, Decimal('-1'))

    def test_unordered_input(self, schedule_entries):
        """Test entries are processed in installment order"""
        result = apply_payment_to_schedule(list(reversed(schedule_entries)), Decimal('300'))
        assert result.entries[0].installment_number == 1
        assert result.entries[0].payment_status == PaymentStatus.PAID


class TestInstallmentStatus:
    """Test installment status rules"""

    def test_paid_wins_over_overdue(self, schedule_entries):
        """Test a settled installment is paid even when past due"""
        entry = schedule_entries[0]
        assert installment_status(entry, Decimal('300'), Decimal('0'), date(2025, 1, 1)) == PaymentStatus.PAID

    def test_cent_remaining_counts_as_paid(self, schedule_entries):
        """Test a one-cent remainder settles the installment"""
        entry = schedule_entries[0]
        assert installment_status(entry, Decimal('299.99'), Decimal('0.01')) == PaymentStatus.PAID
        assert installment_status(entry, Decimal('299.98'), Decimal('0.02')) == PaymentStatus.PARTIAL

    def test_due_today_not_overdue(self, schedule_entries):
        """Test an installment due on the reference date is not overdue"""
        entry = schedule_entries[0]
        assert installment_status(entry, Decimal('0'), Decimal('300'), entry.due_date) == PaymentStatus.UNPAID


class TestReallocatePayments:
    """Test re-applying a loan's total paid amount"""

    def test_reallocation_from_scratch(self, schedule_entries):
        """Test previous tracking is discarded before re-applying"""
        skewed = apply_payment_to_schedule(schedule_entries, Decimal('1000')).entries
        result = reallocate_payments(skewed, Decimal('600'))
        assert [e.paid_amount for e in result.entries] == [
            Decimal('300.00'), Decimal('300.00'), Decimal('0'), Decimal('0')
        ]
        assert [e.payment_status for e in result.entries] == [
            PaymentStatus.PAID, PaymentStatus.PAID, PaymentStatus.UNPAID, PaymentStatus.UNPAID
        ]

    def test_paid_sum_preserved(self, schedule_entries):
        """Test the applied total matches the paid total when it fits the schedule"""
        result = reallocate_payments(schedule_entries, Decimal('725.50'))
        assert sum(e.paid_amount for e in result.entries) == Decimal('725.50')


class TestBalancesFromSchedule:
    """Test balance derivation for the allocator"""

    def test_unpaid_schedule(self):
        """Test all components are owed when nothing is paid"""
        entries = [
            make_entry(1, date(2024, 2, 1), '100', '10', '5'),
            make_entry(2, date(2024, 3, 1), '100', '8', '5'),
        ]
        balances = balances_from_schedule(entries, unpaid_penalties=Decimal('3'))
        assert balances.outstanding_principal == Decimal('200')
        assert balances.unpaid_interest == Decimal('18')
        assert balances.unpaid_fees == Decimal('10')
        assert balances.unpaid_penalties == Decimal('3')

    def test_paid_amount_covers_fee_then_interest_then_principal(self):
        """Test partial payments reduce fees first"""
        entries = [make_entry(1, date(2024, 2, 1), '100', '10', '5', paid='12')]
        balances = balances_from_schedule(entries)
        assert balances.unpaid_fees == Decimal('0')
        assert balances.unpaid_interest == Decimal('3')
        assert balances.outstanding_principal == Decimal('100')

    def test_future_interest_not_yet_owed(self):
        """Test interest and fees count only once due"""
        entries = [
            make_entry(1, date(2024, 2, 1), '100', '10', '5'),
            make_entry(2, date(2024, 3, 1), '100', '8', '5'),
        ]
        balances = balances_from_schedule(entries, as_of=date(2024, 2, 15))
        assert balances.outstanding_principal == Decimal('200')
        assert balances.unpaid_interest == Decimal('10')
        assert balances.unpaid_fees == Decimal('5')

    def test_feeds_allocator(self):
        """Test derived balances drive the waterfall"""
        entries = [make_entry(1, date(2024, 2, 1), '100', '10', '5')]
        balances = balances_from_schedule(entries, unpaid_penalties=Decimal('2'))
        allocation = allocate(Decimal('20'), balances, RepaymentStrategy.PENALTIES_FEES_INTEREST_PRINCIPAL)
        assert allocation.penalties == Decimal('2')
        assert allocation.fees == Decimal('5')
        assert allocation.interest == Decimal('10')
        assert allocation.principal == Decimal('3')
