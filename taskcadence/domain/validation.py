from __future__ import annotations

from datetime import datetime

from .entities import AfterOccurrences, Never, OnDate, RecurrenceRule, TaskTemplate
from .enums import Frequency, PriorityLevel
from .errors import ValidationError

MAX_INTERVAL = 365
MAX_TITLE_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 1000


def validate_rule(rule: RecurrenceRule) -> RecurrenceRule:
    """Reject rules the calculator cannot work with. Returns the rule unchanged."""
    if not isinstance(rule.frequency, Frequency):
        try:
            Frequency(rule.frequency)
        except ValueError as exc:
            raise ValidationError(f"Unknown frequency: {rule.frequency!r}", "frequency") from exc

    if not isinstance(rule.start_date, datetime):
        raise ValidationError("Start date must be a datetime", "start_date")

    if isinstance(rule.interval, bool) or not isinstance(rule.interval, int):
        raise ValidationError("Interval must be an integer", "interval")
    if rule.interval < 1:
        raise ValidationError("Interval must be at least 1", "interval")
    if rule.interval > MAX_INTERVAL:
        raise ValidationError(f"Interval must not exceed {MAX_INTERVAL}", "interval")

    _check_range(rule.days_of_week, 0, 6, "days_of_week",
                 "Days of week must be between 0 (Sunday) and 6 (Saturday)")
    _check_range(rule.days_of_month, 1, 31, "days_of_month",
                 "Days of month must be between 1 and 31")
    _check_range(rule.months_of_year, 0, 11, "months_of_year",
                 "Months of year must be between 0 (January) and 11 (December)")

    end = rule.end_condition
    if isinstance(end, OnDate):
        if not isinstance(end.until, datetime):
            raise ValidationError("End date must be a datetime", "end_condition")
        if end.until <= rule.start_date:
            raise ValidationError("End date must be after start date", "end_condition")
    elif isinstance(end, AfterOccurrences):
        if isinstance(end.count, bool) or not isinstance(end.count, int) or end.count < 1:
            raise ValidationError("Occurrences must be greater than 0", "end_condition")
    elif not isinstance(end, Never):
        raise ValidationError(f"Unknown end condition: {end!r}", "end_condition")

    return rule


def validate_template(template: TaskTemplate) -> TaskTemplate:
    title = (template.title or "").strip()
    if not title:
        raise ValidationError("Template title is required", "title")
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(f"Template title must not exceed {MAX_TITLE_LENGTH} characters", "title")
    if len(template.description or "") > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(
            f"Template description must not exceed {MAX_DESCRIPTION_LENGTH} characters",
            "description",
        )
    try:
        PriorityLevel(template.priority)
    except ValueError as exc:
        raise ValidationError(f"Unknown priority: {template.priority!r}", "priority") from exc
    if template.estimated_hours is not None and template.estimated_hours < 0:
        raise ValidationError("Estimated hours must not be negative", "estimated_hours")
    for item in template.checklist:
        item_title = (item.title or "").strip()
        if not item_title or len(item_title) > MAX_TITLE_LENGTH:
            raise ValidationError("Checklist titles must be 1-100 characters", "checklist")
    for attachment in template.attachments:
        if attachment.size < 0:
            raise ValidationError("Attachment size must not be negative", "attachments")
    return template


def _check_range(values: tuple[int, ...], low: int, high: int, field: str, message: str) -> None:
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= high:
            raise ValidationError(message, field)
