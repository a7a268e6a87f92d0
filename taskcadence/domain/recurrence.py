"""Calendar arithmetic for recurring schedules.

Everything here is pure: no clock reads, no I/O. Callers pass ``now`` and the
baseline explicitly.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Optional

from .entities import AfterOccurrences, OnDate, RecurrenceRule, RecurringSchedule
from .enums import Frequency
from .errors import ComputationError


def next_occurrence(rule: RecurrenceRule, baseline: datetime) -> datetime:
    """Return the first occurrence of ``rule`` strictly after ``baseline``.

    The end condition is not consulted; see ``bounded_next_occurrence``.
    Raises ``ComputationError`` if the computed date does not advance.
    """
    frequency = Frequency(rule.frequency)
    interval = rule.interval

    if frequency == Frequency.DAILY:
        candidate = baseline + timedelta(days=interval)
    elif frequency == Frequency.WEEKLY:
        candidate = _next_weekly(baseline, rule.days_of_week, interval)
    elif frequency == Frequency.MONTHLY:
        candidate = _next_monthly(baseline, rule.days_of_month, interval)
    else:
        candidate = _next_yearly(baseline, rule.months_of_year, interval)

    if candidate <= baseline:
        raise ComputationError(
            f"{frequency.value} rule did not advance past {baseline.isoformat()} "
            f"(got {candidate.isoformat()})"
        )
    return candidate


def bounded_next_occurrence(rule: RecurrenceRule, baseline: datetime) -> Optional[datetime]:
    """Like ``next_occurrence`` but returns None past an ``OnDate`` bound."""
    candidate = next_occurrence(rule, baseline)
    end = rule.end_condition
    if isinstance(end, OnDate) and candidate > end.until:
        return None
    return candidate


def end_condition_reached(rule: RecurrenceRule, materialized_count: int, now: datetime) -> bool:
    end = rule.end_condition
    if isinstance(end, OnDate):
        return now > end.until
    if isinstance(end, AfterOccurrences):
        return materialized_count >= end.count
    return False


def has_ended(rule: RecurrenceRule, materialized_count: int, active: bool, now: datetime) -> bool:
    if not active:
        return True
    return end_condition_reached(rule, materialized_count, now)


def upcoming_occurrences(schedule: RecurringSchedule, until: datetime) -> list[datetime]:
    """Occurrences of an active schedule from its next run date up to ``until``."""
    if not schedule.active or schedule.next_run_date is None:
        return []

    remaining: int | None = None
    end = schedule.rule.end_condition
    if isinstance(end, AfterOccurrences):
        remaining = max(end.count - schedule.materialized_count, 0)

    occurrences: list[datetime] = []
    current: Optional[datetime] = schedule.next_run_date
    while current is not None and current <= until:
        if remaining is not None and len(occurrences) >= remaining:
            break
        occurrences.append(current)
        current = bounded_next_occurrence(schedule.rule, current)
    return occurrences


def sunday_weekday(value: date) -> int:
    """Weekday with Sunday as 0, matching ``RecurrenceRule.days_of_week``."""
    return (value.weekday() + 1) % 7


def _next_weekly(baseline: datetime, days_of_week: tuple[int, ...], interval: int) -> datetime:
    days = sorted(set(days_of_week))
    if not days:
        return baseline + timedelta(weeks=interval)

    current = sunday_weekday(baseline)
    for day in days:
        if day > current:
            return baseline + timedelta(days=day - current)

    # First listed day of the week that starts ``interval`` weeks from now.
    return baseline + timedelta(days=(7 - current) + days[0] + (interval - 1) * 7)


def _next_monthly(baseline: datetime, days_of_month: tuple[int, ...], interval: int) -> datetime:
    days = sorted(set(days_of_month))
    if not days:
        return _add_months(baseline, interval)

    last_day = _days_in_month(baseline.year, baseline.month)
    for day in days:
        target = min(day, last_day)
        if target > baseline.day:
            return baseline.replace(day=target)

    return _add_months(baseline, interval, day=days[0])


def _next_yearly(baseline: datetime, months_of_year: tuple[int, ...], interval: int) -> datetime:
    months = sorted(set(months_of_year))
    if not months:
        return _replace_clamped(baseline, baseline.year + interval, baseline.month)

    current = baseline.month - 1
    for month in months:
        if month > current:
            return _replace_clamped(baseline, baseline.year, month + 1)

    return _replace_clamped(baseline, baseline.year + interval, months[0] + 1)


def _add_months(base: datetime, months: int, day: int | None = None) -> datetime:
    year = base.year + (base.month - 1 + months) // 12
    month = (base.month - 1 + months) % 12 + 1
    return _replace_clamped(base, year, month, base.day if day is None else day)


def _replace_clamped(base: datetime, year: int, month: int, day: int | None = None) -> datetime:
    # Short months clamp to their last day instead of rolling over.
    wanted = base.day if day is None else day
    return base.replace(year=year, month=month, day=min(wanted, _days_in_month(year, month)))


def _days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - timedelta(days=1)).day
