"""Interfaces of the collaborators the scheduling services depend on."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Optional, Protocol

from taskcadence.domain.entities import (
    MaterializationRecord,
    RecurringSchedule,
    ScheduleLease,
    TaskEntity,
)
from taskcadence.domain.filters import ScheduleFilters


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class TaskGateway(Protocol):
    """Persists materialized tasks. Raises ValidationError / NotFoundError."""

    def create_task(self, data: dict[str, Any]) -> int:
        ...

    def list_tasks(self, task_ids: list[int]) -> list[TaskEntity]:
        ...


class ScheduleRepository(Protocol):
    def get(self, schedule_id: int) -> RecurringSchedule:
        """Load a schedule or raise NotFoundError."""
        ...

    def add(self, schedule: RecurringSchedule) -> RecurringSchedule:
        ...

    def save(
        self,
        schedule: RecurringSchedule,
        expected_version: int,
        now: datetime,
        lease_token: str | None = None,
    ) -> RecurringSchedule:
        """Compare-and-swap write that also clears any lease.

        Without ``lease_token`` the write is refused while another caller holds
        an unexpired lease; with it, only the lease holder may write.
        Raises ConcurrencyConflict in both cases.
        """
        ...

    def claim(
        self,
        schedule_id: int,
        expected_version: int,
        now: datetime,
        lease: timedelta,
        require_due: bool = True,
    ) -> ScheduleLease:
        """Lease an active, unleased schedule for materialization."""
        ...

    def release(self, lease: ScheduleLease) -> None:
        """Drop a lease without touching the schedule; no-op if it was lost."""
        ...

    def delete(self, schedule_id: int) -> None:
        ...

    def list_due(self, now: datetime, limit: Optional[int] = None) -> list[int]:
        ...

    def list_schedules(self, filters: ScheduleFilters) -> list[RecurringSchedule]:
        ...


class ActivitySink(Protocol):
    def record(self, record: MaterializationRecord) -> None:
        ...
