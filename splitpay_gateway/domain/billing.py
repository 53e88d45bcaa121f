"""Billing calendar rules - renewal selection and subscription anchors"""

from datetime import date, datetime, time
from typing import Iterable, List

from splitpay_gateway.domain.models import Subscriber, SubscriberStatus
from splitpay_gateway.utils.date_utils import add_days, calendar_date_in, parse_month_day


def is_due_for_renewal(subscriber: Subscriber, today: date, tz_name: str) -> bool:
    """
    Date-only comparison: due when paid-until falls on or before today.

    Both sides are reduced to calendar dates in the same reference zone, so
    the time of day never matters.
    """
    if subscriber.status != SubscriberStatus.ACTIVE or subscriber.paid_until is None:
        return False
    return calendar_date_in(subscriber.paid_until, tz_name) <= today


def select_due_subscribers(subscribers: Iterable[Subscriber], today: date, tz_name: str) -> List[Subscriber]:
    return [s for s in subscribers if is_due_for_renewal(s, today, tz_name)]


def next_paid_until(previous_paid_until: datetime, period_days: int = 30) -> datetime:
    """Advance from the previous paid-until date, not from today, so one run buys one period"""
    return add_days(previous_paid_until, period_days)


def compute_billing_anchor(
    now: datetime,
    prepay_months: int,
    season_open: str = "04-07",
    first_billing: str = "05-07",
    period_days: int = 30,
) -> datetime:
    """
    First automatic billing date for a new subscription.

    Requirements:
    - Before the season opens: bill first on the first-billing date, pushed
      out by (prepay_months - 1) periods
    - On or after the season opens: now + prepay_months periods

    Args:
        now: Purchase time (timezone-aware)
        prepay_months: Periods paid up front (at least 1)
        season_open: "MM-DD" season opening date
        first_billing: "MM-DD" first billing date for pre-season purchases

    Example:
        now=2025-03-01, prepay=2 -> 2025-05-07 + 30 days = 2025-06-06
    """
    prepay_months = max(prepay_months, 1)
    open_at = datetime.combine(parse_month_day(season_open, now.year), time.min, tzinfo=now.tzinfo)

    if now < open_at:
        anchor = datetime.combine(parse_month_day(first_billing, now.year), time.min, tzinfo=now.tzinfo)
        return add_days(anchor, (prepay_months - 1) * period_days)

    return add_days(now, prepay_months * period_days)
