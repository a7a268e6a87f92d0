from __future__ import annotations

from dataclasses import replace
from datetime import datetime

import pytest

from taskcadence.domain.entities import AfterOccurrences, RecurrenceRule, TaskTemplate
from taskcadence.domain.enums import Frequency, ScheduleState, Weekday
from taskcadence.domain.errors import ComputationError, PreconditionFailed
from taskcadence.domain.transitions import (
    apply_materialization,
    open_schedule,
    pause,
    plan_materialization,
    resume,
    terminate,
)

START = datetime(2024, 1, 1)


def _open(rule: RecurrenceRule):
    return open_schedule("owner-1", rule, TaskTemplate(title="Retro"), START)


def test_open_schedule_first_run_is_strictly_after_start() -> None:
    rule = RecurrenceRule(frequency=Frequency.WEEKLY, start_date=START, days_of_week=(Weekday.MONDAY,))
    schedule = _open(rule)
    assert schedule.next_run_date == datetime(2024, 1, 8)
    assert schedule.state == ScheduleState.ACTIVE


def test_materialization_keeps_next_run_after_last_materialization() -> None:
    schedule = _open(RecurrenceRule(frequency=Frequency.MONTHLY, start_date=START, days_of_month=(1, 15)))
    now = datetime(2024, 1, 15, 10, 0)

    plan = plan_materialization(schedule, now)
    updated = apply_materialization(schedule, plan, task_id=7)

    assert updated.materialized_task_ids == (7,)
    assert updated.last_materialized_date == now
    assert updated.next_run_date == datetime(2024, 2, 1, 10, 0)
    assert updated.next_run_date > updated.last_materialized_date
    assert schedule.materialized_task_ids == ()


def test_plan_marks_last_occurrence_as_terminating() -> None:
    rule = RecurrenceRule(frequency=Frequency.DAILY, start_date=START, end_condition=AfterOccurrences(1))
    plan = plan_materialization(_open(rule), datetime(2024, 1, 2))
    assert plan.terminated is True
    assert plan.next_run_date is None


def test_plan_propagates_computation_errors() -> None:
    schedule = _open(RecurrenceRule(frequency=Frequency.DAILY, start_date=START))
    broken = replace(schedule, rule=RecurrenceRule(frequency=Frequency.DAILY, start_date=START, interval=0))
    with pytest.raises(ComputationError):
        plan_materialization(broken, datetime(2024, 1, 2))


def test_terminated_is_absorbing() -> None:
    schedule = terminate(_open(RecurrenceRule(frequency=Frequency.DAILY, start_date=START)), START)
    assert schedule.state == ScheduleState.TERMINATED

    with pytest.raises(PreconditionFailed):
        resume(schedule, START)
    with pytest.raises(PreconditionFailed):
        pause(schedule, START)
    with pytest.raises(PreconditionFailed):
        plan_materialization(schedule, START)
