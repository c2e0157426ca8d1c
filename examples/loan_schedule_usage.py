#!/usr/bin/env python3
"""
Example: Generating a schedule, charging fees, taking payments and reconciling

This example walks one loan through the engine: terms in, schedule out,
fees injected, a payment allocated and applied, and the stored balance
checked against the schedule.
"""

import os
import sys
from decimal import Decimal
from datetime import date

# Add the loan engine package to the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from loan_engine.config import get_config
from loan_engine.logging_config import setup_logging
from loan_engine.currency import format_amount
from loan_engine.errors import InvalidLoanParameters
from loan_engine.schemas import LoanTermsModel, FeeModel
from loan_engine.schedule import generate_schedule, summarize_schedule, schedule_to_rows
from loan_engine.fees import split_fees_by_charge_time, inject_fees, calculate_total_fees, fee_warning_message
from loan_engine.allocation import allocate, format_allocation_breakdown
from loan_engine.repayment import apply_payment_to_schedule, balances_from_schedule
from loan_engine.harmonizer import LoanSnapshot, harmonize


def main():
    print("🏦 Loan Engine - Schedule Walkthrough")
    print("=" * 60)

    # 1. Configuration
    print("\n1. 🔧 Configuration Setup")
    config = get_config()
    setup_logging(level="WARNING")
    print(f"   Currency: {config.default_currency}")
    print(f"   Default strategy: {config.default_repayment_strategy}")

    # 2. Terms
    print("\n2. 📝 Loan Terms")
    payload = LoanTermsModel(
        principal="12000",
        annual_interest_rate="12",
        term_in_periods=12,
        repayment_frequency="monthly",
        disbursement_date=date(2024, 1, 1)
    )
    terms = payload.to_terms()
    print(f"   Principal: {format_amount(terms.principal)} at {terms.annual_interest_rate}%")

    # Terms construct fine; rules are checked at generation
    bad_terms = LoanTermsModel(
        principal="0", annual_interest_rate="120", term_in_periods=12,
        disbursement_date=date(2024, 1, 1)
    ).to_terms()
    try:
        generate_schedule(bad_terms)
    except InvalidLoanParameters as e:
        print(f"   ❌ Rejected terms: {'; '.join(e.errors)}")

    # 3. Schedule
    print("\n3. 📅 Schedule Generation")
    result = generate_schedule(terms)
    print(f"   Installments: {len(result)}")
    print(f"   Periodic payment: {format_amount(result.periodic_payment)}")
    print(f"   Total interest: {format_amount(result.total_interest)}")

    # 4. Fees
    print("\n4. 💳 Fees")
    fees = [
        FeeModel(name="Processing", amount="1", charge_time_type="disbursement",
                 calculation_type="percentage", min_amount="150").to_fee(),
        FeeModel(name="Service", amount="25", charge_time_type="installment").to_fee(),
    ]
    disbursement, installment = split_fees_by_charge_time(fees, terms.principal)
    entries = inject_fees(result.entries, disbursement, installment)
    totals = calculate_total_fees(fees, terms.principal)
    warning = fee_warning_message(totals.fees)
    if warning:
        print(f"   ⚠️  {warning}")
    summary = summarize_schedule(entries, periodic_payment=result.periodic_payment)
    print(f"   Total fees: {format_amount(summary.total_fees)}")
    print(f"   Total repayable: {format_amount(summary.total_amount)}")

    # 5. Payment
    print("\n5. 💰 Payment")
    payment = Decimal('1500')
    balances = balances_from_schedule(entries, as_of=date(2024, 2, 1))
    allocation = allocate(payment, balances)
    print(f"   Allocation: {format_allocation_breakdown(allocation)}")
    applied = apply_payment_to_schedule(entries, payment, as_of=date(2024, 2, 1), loan_id="LOAN001")
    for entry in applied.entries[:3]:
        print(f"   #{entry.installment_number} {entry.due_date} "
              f"{entry.payment_status.value:<8} outstanding {format_amount(entry.outstanding_amount)}")

    # 6. Reconciliation
    print("\n6. 🔍 Reconciliation")
    stored_balance = summary.total_amount - payment
    report = harmonize(LoanSnapshot(stored_balance, terms.annual_interest_rate, applied.entries, "LOAN001"),
                       today=date(2024, 3, 15))
    print(f"   Outstanding: {format_amount(report.calculated_outstanding)}")
    print(f"   Consistent: {report.schedule_consistent}")
    print(f"   Days in arrears: {report.days_in_arrears}")
    print(f"   Next payment: {report.next_payment_date}")

    rows = schedule_to_rows(applied.entries, "LOAN001")
    print(f"\n✅ {len(rows)} schedule rows ready for storage")


if __name__ == "__main__":
    main()
