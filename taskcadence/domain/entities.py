from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

from .enums import EndType, Frequency, PriorityLevel, ScheduleState, TaskStatus


@dataclass(frozen=True)
class Never:
    kind = EndType.NEVER


@dataclass(frozen=True)
class OnDate:
    until: datetime
    kind = EndType.ON_DATE


@dataclass(frozen=True)
class AfterOccurrences:
    count: int
    kind = EndType.AFTER_OCCURRENCES


EndCondition = Union[Never, OnDate, AfterOccurrences]


@dataclass(frozen=True)
class RecurrenceRule:
    frequency: Frequency
    start_date: datetime
    interval: int = 1
    days_of_week: tuple[int, ...] = ()
    days_of_month: tuple[int, ...] = ()
    months_of_year: tuple[int, ...] = ()
    end_condition: EndCondition = field(default_factory=Never)


@dataclass(frozen=True)
class ChecklistItem:
    title: str
    completed: bool = False


@dataclass(frozen=True)
class AttachmentMeta:
    filename: str
    path: str
    mimetype: str
    size: int


@dataclass(frozen=True)
class TaskTemplate:
    title: str
    description: str = ""
    priority: PriorityLevel = PriorityLevel.MEDIUM
    estimated_hours: Optional[float] = None
    tags: tuple[str, ...] = ()
    checklist: tuple[ChecklistItem, ...] = ()
    attachments: tuple[AttachmentMeta, ...] = ()


@dataclass(frozen=True)
class RecurringSchedule:
    id: int | None
    owner_id: str
    rule: RecurrenceRule
    template: TaskTemplate
    project_id: str | None = None
    workspace_id: str | None = None
    active: bool = True
    next_run_date: Optional[datetime] = None
    last_materialized_date: Optional[datetime] = None
    materialized_task_ids: tuple[int, ...] = ()
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def materialized_count(self) -> int:
        return len(self.materialized_task_ids)

    @property
    def baseline(self) -> datetime:
        """Date the next occurrence is computed from."""
        return self.last_materialized_date or self.rule.start_date

    @property
    def state(self) -> ScheduleState:
        if self.active:
            return ScheduleState.ACTIVE
        if self.next_run_date is None:
            return ScheduleState.TERMINATED
        return ScheduleState.PAUSED


@dataclass(frozen=True)
class TaskEntity:
    id: int | None
    title: str
    description: str
    status: TaskStatus
    priority: int
    estimated_hours: Optional[float]
    tags: tuple[str, ...]
    checklist: tuple[ChecklistItem, ...]
    attachments: tuple[AttachmentMeta, ...]
    owner_id: str
    project_id: str | None
    workspace_id: str | None
    recurring_schedule_id: int | None
    created_at: datetime


@dataclass(frozen=True)
class MaterializationRecord:
    """Fact handed to the activity log after a task is created from a schedule."""

    schedule_id: int
    task_id: int
    occurrence_timestamp: datetime
    manual: bool = False


@dataclass(frozen=True)
class ScheduleLease:
    """Exclusive right to materialize one occurrence, held until ``expires_at``."""

    schedule_id: int
    token: str
    expires_at: datetime
