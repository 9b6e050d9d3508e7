"""
Billing period and due-date arithmetic. Pure functions over calendar dates.

Month and year steps go through relativedelta, which clamps a day that does not
exist in the target month to that month's last day (Jan 31 + 1 month = Feb 28/29,
Feb 29 + 1 year = Feb 28). Periods are inclusive on both ends.
"""

import calendar
import re
from datetime import date, timedelta
from typing import NamedTuple, Union

from dateutil.relativedelta import relativedelta

from dojo.core.enums import PaymentType

_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")

ONE_DAY = timedelta(days=1)


class BillingPeriod(NamedTuple):
    period_start: date
    period_end: date
    due_date: date


def parse_business_date(value: Union[date, str]) -> date:
    """Strict YYYY-MM-DD parse built from components, so no timezone can shift the day."""
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise TypeError(f"Expected a date or YYYY-MM-DD string, got {type(value).__name__}")
    match = _ISO_DATE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD): {value!r}")
    year, month, day = (int(part) for part in match.groups())
    return date(year, month, day)


def day_in_month(year: int, month: int, day: int) -> date:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def add_months(value: date, months: int) -> date:
    return value + relativedelta(months=months)


def add_years(value: date, years: int) -> date:
    return value + relativedelta(years=years)


def one_month_before(value: date) -> date:
    return value - relativedelta(months=1)


def _next_month(year: int, month: int):
    return (year + 1, 1) if month == 12 else (year, month + 1)


def monthly_due_date(enrollment_day: int, today: date) -> date:
    """Enrollment day of this month if it is still ahead, otherwise of next month."""
    if today.day < enrollment_day:
        return day_in_month(today.year, today.month, enrollment_day)
    year, month = _next_month(today.year, today.month)
    return day_in_month(year, month, enrollment_day)


def initial_monthly_period(enrollment_day: int, today: date) -> BillingPeriod:
    due = monthly_due_date(enrollment_day, today)
    return BillingPeriod(
        period_start=add_months(due, -1),
        period_end=due - ONE_DAY,
        due_date=due,
    )


def initial_yearly_period(enrollment_date: date, today: date) -> BillingPeriod:
    """
    First yearly period for a new student, collected on its first day.
    A back-dated enrollment is aligned to its next anniversary (today counts).
    """
    if enrollment_date >= today:
        start = enrollment_date
    else:
        anniversary = day_in_month(today.year, enrollment_date.month, enrollment_date.day)
        if anniversary < today:
            anniversary = day_in_month(today.year + 1, enrollment_date.month, enrollment_date.day)
        start = anniversary
    return BillingPeriod(
        period_start=start,
        period_end=add_years(start, 1),
        due_date=start,
    )


def next_monthly_period(previous_end: date, enrollment_day: int) -> BillingPeriod:
    start = previous_end + ONE_DAY
    year, month = _next_month(start.year, start.month)
    due = day_in_month(year, month, enrollment_day)
    return BillingPeriod(period_start=start, period_end=due - ONE_DAY, due_date=due)


def next_yearly_period(previous_end: date) -> BillingPeriod:
    """Yearly periods are due one month before they end, which opens an early-payment window."""
    start = previous_end + ONE_DAY
    end = add_years(start, 1)
    return BillingPeriod(period_start=start, period_end=end, due_date=one_month_before(end))


def next_period(payment_type: PaymentType, previous_end: date, enrollment_day: int) -> BillingPeriod:
    if payment_type == PaymentType.monthly:
        return next_monthly_period(previous_end, enrollment_day)
    return next_yearly_period(previous_end)


def switch_period(switch_date: date, payment_type: PaymentType) -> BillingPeriod:
    """First period after a plan switch: starts and is due on the switch date."""
    if payment_type == PaymentType.yearly:
        following = add_years(switch_date, 1)
    else:
        following = add_months(switch_date, 1)
    return BillingPeriod(period_start=switch_date, period_end=following - ONE_DAY, due_date=switch_date)


def renewal_window_opens(period_end: date) -> date:
    """First day the next yearly fee may be generated: one month before the period's end boundary."""
    return one_month_before(period_end + ONE_DAY)


def periods_overlap(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    return start_a <= end_b and end_a >= start_b
