from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from taskcadence.domain import transitions
from taskcadence.domain.entities import RecurringSchedule

from .ports import Clock, ScheduleRepository

logger = logging.getLogger(__name__)


class LifecycleController:
    """Pause / resume / reschedule operations for the owning management layer."""

    def __init__(self, schedules: ScheduleRepository, clock: Clock) -> None:
        self._schedules = schedules
        self._clock = clock

    def pause(self, schedule_id: int) -> RecurringSchedule:
        return self._transition(schedule_id, transitions.pause)

    def resume(self, schedule_id: int) -> RecurringSchedule:
        return self._transition(schedule_id, transitions.resume)

    def update_next_run_date(self, schedule_id: int) -> RecurringSchedule:
        return self._transition(schedule_id, transitions.recompute_next_run)

    def _transition(
        self,
        schedule_id: int,
        step: Callable[[RecurringSchedule, datetime], RecurringSchedule],
    ) -> RecurringSchedule:
        schedule = self._schedules.get(schedule_id)
        now = self._clock.now()
        updated = step(schedule, now)
        if updated == schedule:
            return schedule

        saved = self._schedules.save(updated, schedule.version, now)
        if saved.state != schedule.state:
            logger.info(
                "Schedule %s moved %s -> %s", schedule_id, schedule.state.value, saved.state.value
            )
        return saved
