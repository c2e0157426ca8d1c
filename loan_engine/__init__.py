"""
Loan Engine

Loan amortization schedules, fee injection, repayment allocation and
schedule reconciliation, with all money math done in Decimal.
"""

__version__ = "1.0.0"
