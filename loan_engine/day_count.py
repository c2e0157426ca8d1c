"""
Calendar / Day-Count Module

Converts a day-count convention plus two dates into period lengths and
periodic rate fractions. Everything here is a pure function of its inputs.

Rate convention: daily rates divide the annual rate by the days in the year,
weekly rates are seven daily rates, and monthly rates divide the annual rate
by twelve regardless of the days-in-year setting.
"""

from decimal import Decimal
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Union
import calendar
import math

from .currency import Numeric, to_decimal

SECONDS_PER_DAY = 24 * 60 * 60

DateLike = Union[date, datetime]


class RepaymentFrequency(Enum):
    """How often installments fall due"""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class DaysInYearType(Enum):
    """Days-in-year half of the day-count convention"""
    DAYS_360 = "360"
    DAYS_365 = "365"
    ACTUAL = "actual"    # 366 in leap years, else 365


class DaysInMonthType(Enum):
    """Days-in-month half of the day-count convention"""
    DAYS_30 = "30"
    ACTUAL = "actual"


def is_leap_year(year: int) -> bool:
    """Gregorian leap-year rule"""
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def days_in_year(days_in_year_type: DaysInYearType, reference_date: DateLike) -> int:
    """Days in the year of reference_date under the given convention"""
    if days_in_year_type == DaysInYearType.DAYS_360:
        return 360
    elif days_in_year_type == DaysInYearType.DAYS_365:
        return 365
    elif days_in_year_type == DaysInYearType.ACTUAL:
        return 366 if is_leap_year(reference_date.year) else 365
    else:
        raise ValueError(f"Unsupported days-in-year type: {days_in_year_type}")


def days_in_month(days_in_month_type: DaysInMonthType, reference_date: DateLike) -> int:
    """Days in the month of reference_date under the given convention"""
    if days_in_month_type == DaysInMonthType.DAYS_30:
        return 30
    elif days_in_month_type == DaysInMonthType.ACTUAL:
        return calendar.monthrange(reference_date.year, reference_date.month)[1]
    else:
        raise ValueError(f"Unsupported days-in-month type: {days_in_month_type}")


def days_between(start: DateLike, end: DateLike) -> int:
    """
    Calendar days from start to end, rounded up to a whole day

    Args:
        start: Earlier date (or datetime)
        end: Later date (or datetime)

    Returns:
        Non-negative day count

    Raises:
        ValueError: If end precedes start
    """
    if isinstance(start, datetime) or isinstance(end, datetime):
        start_dt = start if isinstance(start, datetime) else datetime(start.year, start.month, start.day)
        end_dt = end if isinstance(end, datetime) else datetime(end.year, end.month, end.day)
        seconds = (end_dt - start_dt).total_seconds()
        if seconds < 0:
            raise ValueError(f"End {end.isoformat()} precedes start {start.isoformat()}")
        return math.ceil(seconds / SECONDS_PER_DAY)

    days = (end - start).days
    if days < 0:
        raise ValueError(f"End {end.isoformat()} precedes start {start.isoformat()}")
    return days


def periodic_rate(annual_rate_percent: Numeric, frequency: RepaymentFrequency,
                  year_days: int) -> Decimal:
    """
    Convert an annual percentage rate into a per-period fraction

    Args:
        annual_rate_percent: Annual rate as a percentage (12 for 12%)
        frequency: Repayment frequency
        year_days: Days in year from days_in_year()

    Returns:
        Periodic rate as a fraction (0.01 for 1%)
    """
    annual_fraction = to_decimal(annual_rate_percent) / Decimal('100')

    if frequency == RepaymentFrequency.DAILY:
        return annual_fraction / Decimal(year_days)
    elif frequency == RepaymentFrequency.WEEKLY:
        return (annual_fraction / Decimal(year_days)) * Decimal('7')
    elif frequency == RepaymentFrequency.MONTHLY:
        return annual_fraction / Decimal('12')
    else:
        raise ValueError(f"Unsupported repayment frequency: {frequency}")


def add_months(start_date: date, months: int) -> date:
    """Add months to a date, handling month-end edge cases"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return start_date.replace(year=year, month=month, day=day)


def next_due_date(current: date, frequency: RepaymentFrequency) -> date:
    """Advance a due date by one repayment period"""
    if frequency == RepaymentFrequency.DAILY:
        return current + timedelta(days=1)
    elif frequency == RepaymentFrequency.WEEKLY:
        return current + timedelta(days=7)
    elif frequency == RepaymentFrequency.MONTHLY:
        return add_months(current, 1)
    else:
        raise ValueError(f"Unsupported repayment frequency: {frequency}")
