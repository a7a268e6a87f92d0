from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from taskcadence.domain import transitions
from taskcadence.domain.errors import (
    ComputationError,
    ConcurrencyConflict,
    PreconditionFailed,
    SchedulingError,
)

from .materializer import TaskMaterializer
from .ports import Clock, ScheduleRepository

logger = logging.getLogger(__name__)


@dataclass
class PassSummary:
    processed: int = 0
    created: int = 0
    conflicts: int = 0
    errors: int = 0
    task_ids: list[int] = field(default_factory=list)


class SchedulerPoller:
    """Read side used by an external job driver to find due schedules."""

    def __init__(
        self,
        schedules: ScheduleRepository,
        clock: Clock,
        batch_limit: Optional[int] = None,
    ) -> None:
        self._schedules = schedules
        self._clock = clock
        self._batch_limit = batch_limit

    def due_schedules(self, limit: Optional[int] = None) -> list[int]:
        """Ids of active schedules whose next run date has passed, oldest first."""
        if limit is None:
            limit = self._batch_limit
        if limit is not None and limit < 1:
            return []
        return self._schedules.list_due(self._clock.now(), limit)

    def run_pass(self, materializer: TaskMaterializer, limit: Optional[int] = None) -> PassSummary:
        """Materialize every currently due schedule once.

        One schedule failing never stops the rest of the pass. Conflicts mean
        another worker took the schedule and are not retried here. A schedule
        whose next occurrence cannot be computed is paused.
        """
        due = self.due_schedules(limit)
        summary = PassSummary()
        logger.info("Processing %s due recurring schedule(s)", len(due))

        for schedule_id in due:
            summary.processed += 1
            try:
                task_id = materializer.create_task(schedule_id)
            except ConcurrencyConflict:
                summary.conflicts += 1
                logger.info("Schedule %s was claimed elsewhere; skipping", schedule_id)
            except PreconditionFailed as exc:
                summary.conflicts += 1
                logger.info("Schedule %s is no longer eligible: %s", schedule_id, exc)
            except ComputationError:
                summary.errors += 1
                logger.exception("Next occurrence computation failed for schedule %s", schedule_id)
                self._suspend(schedule_id)
            except Exception:  # noqa: BLE001
                summary.errors += 1
                logger.exception("Error processing recurring schedule %s", schedule_id)
            else:
                summary.created += 1
                summary.task_ids.append(task_id)

        logger.info(
            "Processed %s schedule(s), created %s task(s), %s conflict(s), %s error(s)",
            summary.processed,
            summary.created,
            summary.conflicts,
            summary.errors,
        )
        return summary

    def _suspend(self, schedule_id: int) -> None:
        """Pause a schedule whose rule cannot be computed so later passes skip it."""
        try:
            schedule = self._schedules.get(schedule_id)
            now = self._clock.now()
            self._schedules.save(transitions.pause(schedule, now), schedule.version, now)
        except SchedulingError as exc:
            logger.warning("Could not pause schedule %s after computation error: %s", schedule_id, exc)
        else:
            logger.error("Paused schedule %s until its recurrence rule is fixed", schedule_id)
