"""State transitions of a recurring schedule.

Each function takes a schedule and returns the new value; persisting it is
the caller's job.

    ACTIVE --materialize (more due)--> ACTIVE
    ACTIVE --materialize (end reached)--> TERMINATED
    ACTIVE --pause--> PAUSED --resume--> ACTIVE
    TERMINATED has no outgoing transition.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from .entities import RecurrenceRule, RecurringSchedule, TaskTemplate
from .enums import ScheduleState
from .errors import PreconditionFailed, ValidationError
from .recurrence import bounded_next_occurrence, end_condition_reached, has_ended


@dataclass(frozen=True)
class MaterializationPlan:
    occurred_at: datetime
    next_run_date: Optional[datetime]
    terminated: bool


def open_schedule(
    owner_id: str,
    rule: RecurrenceRule,
    template: TaskTemplate,
    now: datetime,
    project_id: str | None = None,
    workspace_id: str | None = None,
) -> RecurringSchedule:
    next_run = bounded_next_occurrence(rule, rule.start_date)
    if next_run is None:
        raise ValidationError("Recurrence produces no occurrence before its end date", "end_condition")
    return RecurringSchedule(
        id=None,
        owner_id=owner_id,
        rule=rule,
        template=template,
        project_id=project_id,
        workspace_id=workspace_id,
        active=True,
        next_run_date=next_run,
        created_at=now,
        updated_at=now,
    )


def check_can_materialize(schedule: RecurringSchedule, now: datetime) -> None:
    if not schedule.active:
        raise PreconditionFailed(f"Schedule {schedule.id} is not active")
    if has_ended(schedule.rule, schedule.materialized_count, schedule.active, now):
        raise PreconditionFailed(f"Schedule {schedule.id} has reached its end condition")


def plan_materialization(schedule: RecurringSchedule, now: datetime) -> MaterializationPlan:
    """Decide the schedule's next state before any task is created."""
    check_can_materialize(schedule, now)
    next_run = bounded_next_occurrence(schedule.rule, now)
    terminated = next_run is None or has_ended(
        schedule.rule, schedule.materialized_count + 1, True, now
    )
    return MaterializationPlan(
        occurred_at=now,
        next_run_date=None if terminated else next_run,
        terminated=terminated,
    )


def apply_materialization(
    schedule: RecurringSchedule, plan: MaterializationPlan, task_id: int
) -> RecurringSchedule:
    return replace(
        schedule,
        materialized_task_ids=schedule.materialized_task_ids + (task_id,),
        last_materialized_date=plan.occurred_at,
        active=not plan.terminated,
        next_run_date=plan.next_run_date,
        updated_at=plan.occurred_at,
    )


def terminate(schedule: RecurringSchedule, now: datetime) -> RecurringSchedule:
    return replace(schedule, active=False, next_run_date=None, updated_at=now)


def pause(schedule: RecurringSchedule, now: datetime) -> RecurringSchedule:
    _refuse_terminated(schedule, "paused")
    if not schedule.active:
        return schedule
    # next_run_date is kept so resume can reuse it.
    return replace(schedule, active=False, updated_at=now)


def resume(schedule: RecurringSchedule, now: datetime) -> RecurringSchedule:
    _refuse_terminated(schedule, "resumed")
    resumed = replace(schedule, active=True, updated_at=now)
    if resumed.next_run_date is not None and resumed.next_run_date > now:
        return resumed
    return recompute_next_run(resumed, now)


def recompute_next_run(schedule: RecurringSchedule, now: datetime) -> RecurringSchedule:
    """Recompute from the last materialization (or start date), never from ``now``."""
    _refuse_terminated(schedule, "rescheduled")
    next_run = bounded_next_occurrence(schedule.rule, schedule.baseline)
    if next_run is None or end_condition_reached(schedule.rule, schedule.materialized_count, now):
        return terminate(schedule, now)
    return replace(schedule, next_run_date=next_run, updated_at=now)


def replace_rule(schedule: RecurringSchedule, rule: RecurrenceRule, now: datetime) -> RecurringSchedule:
    _refuse_terminated(schedule, "edited")
    return recompute_next_run(replace(schedule, rule=rule), now)


def replace_template(schedule: RecurringSchedule, template: TaskTemplate, now: datetime) -> RecurringSchedule:
    return replace(schedule, template=template, updated_at=now)


def _refuse_terminated(schedule: RecurringSchedule, action: str) -> None:
    if schedule.state == ScheduleState.TERMINATED:
        raise PreconditionFailed(f"Schedule {schedule.id} is terminated and cannot be {action}")
