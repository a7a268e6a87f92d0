from __future__ import annotations

import logging
from datetime import datetime, timedelta

from taskcadence.domain.entities import RecurrenceRule, RecurringSchedule, TaskEntity, TaskTemplate
from taskcadence.domain.filters import ScheduleFilters
from taskcadence.domain.recurrence import upcoming_occurrences
from taskcadence.domain.transitions import open_schedule, replace_rule, replace_template
from taskcadence.domain.validation import validate_rule, validate_template

from .materializer import TaskMaterializer
from .ports import Clock, ScheduleRepository, TaskGateway

logger = logging.getLogger(__name__)

DEFAULT_UPCOMING_DAYS = 7


class ScheduleService:
    def __init__(
        self,
        schedules: ScheduleRepository,
        tasks: TaskGateway,
        clock: Clock,
        materializer: TaskMaterializer,
        upcoming_days: int = DEFAULT_UPCOMING_DAYS,
    ) -> None:
        self._schedules = schedules
        self._tasks = tasks
        self._clock = clock
        self._materializer = materializer
        self._upcoming_days = upcoming_days

    def create_schedule(
        self,
        owner_id: str,
        rule: RecurrenceRule,
        template: TaskTemplate,
        project_id: str | None = None,
        workspace_id: str | None = None,
    ) -> RecurringSchedule:
        validate_rule(rule)
        validate_template(template)
        schedule = open_schedule(
            owner_id,
            rule,
            template,
            self._clock.now(),
            project_id=project_id,
            workspace_id=workspace_id,
        )
        created = self._schedules.add(schedule)
        logger.info(
            "Created %s schedule %s for owner %s, first run at %s",
            rule.frequency,
            created.id,
            owner_id,
            created.next_run_date,
        )
        return created

    def get_schedule(self, schedule_id: int) -> RecurringSchedule:
        return self._schedules.get(schedule_id)

    def list_schedules(self, filters: ScheduleFilters) -> list[RecurringSchedule]:
        return self._schedules.list_schedules(filters)

    def update_rule(self, schedule_id: int, rule: RecurrenceRule) -> RecurringSchedule:
        validate_rule(rule)
        schedule = self._schedules.get(schedule_id)
        now = self._clock.now()
        return self._schedules.save(replace_rule(schedule, rule, now), schedule.version, now)

    def update_template(self, schedule_id: int, template: TaskTemplate) -> RecurringSchedule:
        validate_template(template)
        schedule = self._schedules.get(schedule_id)
        now = self._clock.now()
        return self._schedules.save(replace_template(schedule, template, now), schedule.version, now)

    def delete_schedule(self, schedule_id: int) -> None:
        # Materialized tasks are independent once created and stay in place.
        self._schedules.delete(schedule_id)
        logger.info("Deleted schedule %s", schedule_id)

    def materialized_tasks(self, schedule_id: int) -> list[TaskEntity]:
        schedule = self._schedules.get(schedule_id)
        return self._tasks.list_tasks(list(schedule.materialized_task_ids))

    def create_task_now(self, schedule_id: int) -> int:
        return self._materializer.create_task(schedule_id, manual=True)

    def upcoming(self, owner_id: str, days: int | None = None) -> list[tuple[datetime, RecurringSchedule]]:
        horizon = self._clock.now() + timedelta(days=self._upcoming_days if days is None else days)
        schedules = self._schedules.list_schedules(
            ScheduleFilters(owner_id=owner_id, include_inactive=False)
        )
        entries = [
            (occurrence, schedule)
            for schedule in schedules
            for occurrence in upcoming_occurrences(schedule, horizon)
        ]
        entries.sort(key=lambda entry: (entry[0], entry[1].id or 0))
        return entries
