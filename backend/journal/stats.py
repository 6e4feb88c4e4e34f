"""
Activity Aggregator
===================

Date-bucketed statistics over one user's sits: days sat, minutes sat,
streaks and monthly/yearly rollups.

CALENDAR DAYS:
--------------
A sit belongs to the calendar day of its created_at in Django's current
time zone (settings.TIME_ZONE). Date ranges are inclusive on both ends and
translate to the half-open interval

    [start 00:00, (end + 1 day) 00:00)

so a sit at 23:59:59 on `end` is counted and one at 00:00 the next day
is not.

DISTINCT DAYS:
--------------
Several sits on one day count that day once. Days are bucketed in the
database:

    SELECT DATE(created_at AT TIME ZONE tz) AS day, SUM(duration)
    FROM journal_sit
    WHERE user_id = %s AND created_at >= %s AND created_at < %s
    GROUP BY day

CLOCK:
------
Functions relative to "now" take an optional `today` (a date) and default
to timezone.localdate(), so tests never depend on the wall clock.
"""

import calendar
from datetime import MAXYEAR, date, datetime, time, timedelta
from typing import Optional, TypedDict

from django.contrib.auth.models import User
from django.db.models import Count, QuerySet, Sum
from django.db.models.functions import Coalesce, TruncDate, TruncMonth
from django.utils import timezone

from .exceptions import ValidationError
from .models import Sit


class MonthlyStats(TypedDict):
    days_sat_this_month: int
    time_sat_this_month: str
    minutes_sat_this_month: int
    entries_this_month: int


class JournalRange(TypedDict):
    # (year, total) the first time a year is met, then (month, total)
    sitting_totals: list[tuple[int, int]]
    # "YYYY MM" for every month with at least one entry, newest first
    list_of_months: list[str]


def _day_bounds(start_date: date, end_date: date) -> tuple[datetime, datetime]:
    if start_date > end_date:
        raise ValidationError(
            f"Start date {start_date} is after end date {end_date}"
        )
    if end_date >= date.max:
        raise ValidationError(f"End date {end_date} is out of range")
    lower = timezone.make_aware(datetime.combine(start_date, time.min))
    upper = timezone.make_aware(datetime.combine(end_date + timedelta(days=1), time.min))
    return lower, upper


def _as_int(value, label: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {label}: {value!r}")


def _validate_year(year) -> int:
    year = _as_int(year, 'year')
    # the inclusive range end is converted to the next midnight
    if not 1 <= year < MAXYEAR:
        raise ValidationError(f"Invalid year: {year}")
    return year


def _validate_month(month, year) -> tuple[int, int]:
    month = _as_int(month, 'month')
    if not 1 <= month <= 12:
        raise ValidationError(f"Invalid month: {month}")
    return month, _validate_year(year)


def sits_in_date_range(user: User, start_date: date, end_date: date) -> QuerySet:
    lower, upper = _day_bounds(start_date, end_date)
    return Sit.objects.filter(
        user_id=user.id,
        created_at__gte=lower,
        created_at__lt=upper
    )


def _daily_totals(user: User, start_date: date, end_date: date) -> dict[date, int]:
    """Minutes sat per calendar day, for days with at least one sit."""
    rows = (
        sits_in_date_range(user, start_date, end_date)
        .annotate(day=TruncDate('created_at'))
        .values('day')
        .annotate(total=Coalesce(Sum('duration'), 0))
        .order_by('day')
    )
    return {row['day']: row['total'] for row in rows}


def days_sat_in_date_range(user: User, start_date: date, end_date: date) -> int:
    return len(_daily_totals(user, start_date, end_date))


def days_sat_for_min_x_minutes_in_date_range(
    user: User, minutes: int, start_date: date, end_date: date
) -> int:
    """Days in the range whose summed duration reaches `minutes`."""
    totals = _daily_totals(user, start_date, end_date)
    return sum(1 for total in totals.values() if total >= minutes)


def time_sat_on_date(user: User, day: date) -> int:
    result = sits_in_date_range(user, day, day).aggregate(
        total=Coalesce(Sum('duration'), 0)
    )
    return result['total']


def sat_on_date(user: User, day: date) -> bool:
    return sits_in_date_range(user, day, day).exists()


def sat_for_x_on_date(user: User, minutes: int, day: date) -> bool:
    if not sat_on_date(user, day):
        return False
    return time_sat_on_date(user, day) >= minutes


def total_hours_sat(user: User) -> int:
    minutes = Sit.objects.filter(user_id=user.id).aggregate(
        total=Coalesce(Sum('duration'), 0)
    )['total']
    return minutes // 60


def sits_by_year(user: User, year: int) -> QuerySet:
    year = _validate_year(year)
    return sits_in_date_range(user, date(year, 1, 1), date(year, 12, 31))


def sits_by_month(user: User, month: int, year: int) -> QuerySet:
    month, year = _validate_month(month, year)
    last_day = calendar.monthrange(year, month)[1]
    return sits_in_date_range(user, date(year, month, 1), date(year, month, last_day))


def format_minutes(minutes: int) -> str:
    hours, rest = divmod(minutes, 60)
    text = f"{hours} hours"
    if rest:
        text += f" {rest} minutes"
    return text


def time_sat_this_month(user: User, month: int, year: int) -> str:
    minutes = sits_by_month(user, month, year).aggregate(
        total=Coalesce(Sum('duration'), 0)
    )['total']
    return format_minutes(minutes)


def get_monthly_stats(user: User, month: int, year: int) -> MonthlyStats:
    month, year = _validate_month(month, year)
    first = date(year, month, 1)
    last = date(year, month, calendar.monthrange(year, month)[1])

    month_sits = sits_in_date_range(user, first, last)
    minutes = month_sits.aggregate(total=Coalesce(Sum('duration'), 0))['total']

    return {
        'days_sat_this_month': days_sat_in_date_range(user, first, last),
        'time_sat_this_month': format_minutes(minutes),
        'minutes_sat_this_month': minutes,
        'entries_this_month': month_sits.count(),
    }


def _sit_days_newest_first(user: User, until: date):
    """Distinct calendar days with a sit, newest first, up to `until`."""
    _, upper = _day_bounds(until, until)
    timestamps = (
        Sit.objects
        .filter(user_id=user.id, created_at__lt=upper)
        .order_by('-created_at')
        .values_list('created_at', flat=True)
    )
    last_day = None
    for created_at in timestamps.iterator():
        day = timezone.localtime(created_at).date()
        if day != last_day:
            yield day
            last_day = day


def streak(user: User, today: Optional[date] = None) -> int:
    """
    Consecutive days sat, ending today.

    1. Only computed when the user sat yesterday
    2. Walk the distinct sit days newest first, counting one-day gaps;
       a larger gap ends the walk
    3. A positive count gets today's sit added; without a sit today the
       streak collapses to 0 (a lone day is not a streak)
    """
    today = today or timezone.localdate()
    yesterday = today - timedelta(days=1)

    if not sat_on_date(user, yesterday):
        return 0

    streak_count = 0
    sat_today = False
    previous = None
    for day in _sit_days_newest_first(user, today):
        if previous is None:
            sat_today = day == today
            previous = day
            continue
        if (previous - day).days != 1:
            break
        streak_count += 1
        previous = day

    if streak_count > 0:
        if sat_today:
            streak_count += 1
        else:
            streak_count = 0

    return streak_count


def journal_range(user: User, today: Optional[date] = None) -> Optional[JournalRange]:
    """
    Months from the current one back to the month of the first sit, with
    entry counts. Returns None for a user with no sits.

    A year's total is emitted the first time the walk enters that year
    (if non-zero); months without entries are skipped.
    """
    first_sit_at = (
        Sit.objects
        .filter(user_id=user.id)
        .order_by('created_at')
        .values_list('created_at', flat=True)
        .first()
    )
    if first_sit_at is None:
        return None

    today = today or timezone.localdate()
    first = timezone.localtime(first_sit_at).date()

    month_counts: dict[tuple[int, int], int] = {}
    year_counts: dict[int, int] = {}
    rows = (
        Sit.objects
        .filter(user_id=user.id)
        .annotate(month=TruncMonth('created_at'))
        .values('month')
        .annotate(total=Count('id'))
        .order_by('month')
    )
    for row in rows:
        key = (row['month'].year, row['month'].month)
        month_counts[key] = month_counts.get(key, 0) + row['total']
        year_counts[key[0]] = year_counts.get(key[0], 0) + row['total']

    result: JournalRange = {'sitting_totals': [], 'list_of_months': []}
    year, month = today.year, today.month
    pointer = None

    while (year, month) >= (first.year, first.month):
        if pointer != year:
            year_total = year_counts.get(year, 0)
            if year_total:
                result['sitting_totals'].append((year, year_total))

        month_total = month_counts.get((year, month), 0)
        if month_total:
            result['sitting_totals'].append((month, month_total))
            result['list_of_months'].append(f"{year} {month:02d}")

        pointer = year
        if month == 1:
            year, month = year - 1, 12
        else:
            month -= 1

    return result
