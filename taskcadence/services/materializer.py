from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from taskcadence.domain.entities import MaterializationRecord, RecurringSchedule
from taskcadence.domain.enums import TaskStatus
from taskcadence.domain.errors import ConcurrencyConflict
from taskcadence.domain.transitions import apply_materialization, plan_materialization

from .ports import ActivitySink, Clock, ScheduleRepository, TaskGateway

logger = logging.getLogger(__name__)

DEFAULT_CLAIM_LEASE = timedelta(minutes=5)


def build_task_attributes(schedule: RecurringSchedule) -> dict[str, Any]:
    template = schedule.template
    return {
        "title": template.title,
        "description": template.description,
        "status": TaskStatus.INBOX.value,
        "priority": int(template.priority),
        "estimated_hours": template.estimated_hours,
        "tags": list(template.tags),
        "checklist": [
            {"title": item.title, "completed": item.completed} for item in template.checklist
        ],
        "attachments": [
            {
                "filename": attachment.filename,
                "path": attachment.path,
                "mimetype": attachment.mimetype,
                "size": attachment.size,
            }
            for attachment in template.attachments
        ],
        "owner_id": schedule.owner_id,
        "project_id": schedule.project_id,
        "workspace_id": schedule.workspace_id,
        "recurring_schedule_id": schedule.id,
    }


class TaskMaterializer:
    """Turns one due occurrence of a schedule into a concrete task."""

    def __init__(
        self,
        schedules: ScheduleRepository,
        tasks: TaskGateway,
        clock: Clock,
        activity: ActivitySink | None = None,
        lease: timedelta = DEFAULT_CLAIM_LEASE,
    ) -> None:
        self._schedules = schedules
        self._tasks = tasks
        self._clock = clock
        self._activity = activity
        self._lease = lease

    def create_task(self, schedule_id: int, *, manual: bool = False) -> int:
        """Materialize the schedule's current occurrence and return the new task id.

        Raises PreconditionFailed for inactive or ended schedules and
        ConcurrencyConflict when another worker holds or already used the
        occurrence. Errors from the task gateway propagate; the lease is
        released and the schedule is left exactly as it was.
        ``manual`` skips the due-date check ("create task now").
        """
        schedule = self._schedules.get(schedule_id)
        now = self._clock.now()

        # Computed up front so a calculator failure never leaves an orphan task.
        plan = plan_materialization(schedule, now)

        lease = self._schedules.claim(
            schedule.id, schedule.version, now, self._lease, require_due=not manual
        )

        try:
            task_id = self._tasks.create_task(build_task_attributes(schedule))
        except Exception:
            self._schedules.release(lease)
            logger.warning("Task creation failed for schedule %s; lease released", schedule_id)
            raise

        updated = apply_materialization(schedule, plan, task_id)
        try:
            saved = self._schedules.save(updated, schedule.version, now, lease_token=lease.token)
        except ConcurrencyConflict:
            logger.error(
                "Lease on schedule %s expired before task %s was recorded; schedule not advanced",
                schedule_id,
                task_id,
            )
            raise

        if plan.terminated:
            logger.info(
                "Schedule %s terminated after %s occurrence(s)",
                schedule_id,
                saved.materialized_count,
            )
        else:
            logger.debug("Schedule %s next run at %s", schedule_id, saved.next_run_date)

        if self._activity is not None:
            self._activity.record(
                MaterializationRecord(
                    schedule_id=schedule_id,
                    task_id=task_id,
                    occurrence_timestamp=plan.occurred_at,
                    manual=manual,
                )
            )
        return task_id
