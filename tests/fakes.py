from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional

from taskcadence.domain.entities import (
    AttachmentMeta,
    ChecklistItem,
    MaterializationRecord,
    RecurringSchedule,
    ScheduleLease,
    TaskEntity,
)
from taskcadence.domain.enums import TaskStatus
from taskcadence.domain.errors import ConcurrencyConflict, NotFoundError
from taskcadence.domain.filters import ScheduleFilters


class FakeClock:
    def __init__(self, current: datetime) -> None:
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class InMemoryScheduleRepo:
    """Mirrors the compare-and-swap and lease semantics of SqlScheduleRepository."""

    def __init__(self) -> None:
        self.schedules: dict[int, RecurringSchedule] = {}
        self.leases: dict[int, ScheduleLease] = {}
        self._id = 1

    def get(self, schedule_id: int) -> RecurringSchedule:
        try:
            return self.schedules[schedule_id]
        except KeyError:
            raise NotFoundError(f"Recurring schedule {schedule_id} not found") from None

    def add(self, schedule: RecurringSchedule) -> RecurringSchedule:
        stored = replace(schedule, id=self._id, version=0)
        self.schedules[stored.id] = stored
        self._id += 1
        return stored

    def save(
        self,
        schedule: RecurringSchedule,
        expected_version: int,
        now: datetime,
        lease_token: str | None = None,
    ) -> RecurringSchedule:
        current = self.get(schedule.id)
        held = self.leases.get(schedule.id)
        if lease_token is None:
            blocked = self._leased(schedule.id, now)
        else:
            blocked = held is None or held.token != lease_token
        if current.version != expected_version or blocked:
            raise ConcurrencyConflict(f"Recurring schedule {schedule.id} was modified concurrently or is leased")
        stored = replace(schedule, version=expected_version + 1)
        self.schedules[stored.id] = stored
        self.leases.pop(stored.id, None)
        return stored

    def claim(
        self,
        schedule_id: int,
        expected_version: int,
        now: datetime,
        lease: timedelta,
        require_due: bool = True,
    ) -> ScheduleLease:
        current = self.get(schedule_id)
        due = current.next_run_date is not None and current.next_run_date <= now
        if (
            current.version != expected_version
            or not current.active
            or (require_due and not due)
            or self._leased(schedule_id, now)
        ):
            raise ConcurrencyConflict(f"Recurring schedule {schedule_id} could not be claimed")
        granted = ScheduleLease(schedule_id, uuid.uuid4().hex, now + lease)
        self.leases[schedule_id] = granted
        return granted

    def release(self, lease: ScheduleLease) -> None:
        if self.leases.get(lease.schedule_id) == lease:
            del self.leases[lease.schedule_id]

    def delete(self, schedule_id: int) -> None:
        self.get(schedule_id)
        del self.schedules[schedule_id]
        self.leases.pop(schedule_id, None)

    def list_due(self, now: datetime, limit: Optional[int] = None) -> list[int]:
        due = [
            s for s in self.schedules.values()
            if s.active
            and s.next_run_date is not None
            and s.next_run_date <= now
            and not self._leased(s.id, now)
        ]
        due.sort(key=lambda s: (s.next_run_date, s.id))
        ids = [s.id for s in due]
        return ids if limit is None else ids[:limit]

    def list_schedules(self, filters: ScheduleFilters) -> list[RecurringSchedule]:
        out = [
            s for s in self.schedules.values()
            if (filters.owner_id is None or s.owner_id == filters.owner_id)
            and (filters.project_id is None or s.project_id == filters.project_id)
            and (filters.workspace_id is None or s.workspace_id == filters.workspace_id)
            and (filters.include_inactive or s.active)
        ]
        out.sort(key=lambda s: (not s.active, s.next_run_date is None, s.next_run_date or datetime.min, s.id))
        return out

    def _leased(self, schedule_id: int, now: datetime) -> bool:
        held = self.leases.get(schedule_id)
        return held is not None and held.expires_at > now


class StaleReadRepo:
    """Serves a snapshot taken earlier, as a worker that polled before another one ran."""

    def __init__(self, inner: InMemoryScheduleRepo, snapshot: RecurringSchedule) -> None:
        self._inner = inner
        self._snapshot = snapshot

    def get(self, schedule_id: int) -> RecurringSchedule:
        return self._snapshot

    def __getattr__(self, name):
        return getattr(self._inner, name)


class FakeTaskGateway:
    def __init__(self, fail_for_titles: tuple[str, ...] = (), error: Exception | None = None) -> None:
        self.created: list[dict] = []
        self._fail_for_titles = fail_for_titles
        self._error = error
        self._id = 100

    def create_task(self, data: dict) -> int:
        if self._error is not None and (not self._fail_for_titles or data["title"] in self._fail_for_titles):
            raise self._error
        self._id += 1
        self.created.append({**data, "id": self._id})
        return self._id

    def list_tasks(self, task_ids: list[int]) -> list[TaskEntity]:
        by_id = {row["id"]: row for row in self.created}
        return [
            TaskEntity(
                id=row["id"],
                title=row["title"],
                description=row["description"],
                status=TaskStatus(row["status"]),
                priority=row["priority"],
                estimated_hours=row["estimated_hours"],
                tags=tuple(row["tags"]),
                checklist=tuple(ChecklistItem(**item) for item in row["checklist"]),
                attachments=tuple(AttachmentMeta(**item) for item in row["attachments"]),
                owner_id=row["owner_id"],
                project_id=row["project_id"],
                workspace_id=row["workspace_id"],
                recurring_schedule_id=row["recurring_schedule_id"],
                created_at=datetime(2024, 1, 1),
            )
            for task_id in task_ids
            if (row := by_id.get(task_id)) is not None
        ]


class RecordingActivitySink:
    def __init__(self) -> None:
        self.records: list[MaterializationRecord] = []

    def record(self, record: MaterializationRecord) -> None:
        self.records.append(record)
