from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.orm import sessionmaker

from taskcadence.domain.entities import (
    AfterOccurrences,
    AttachmentMeta,
    ChecklistItem,
    EndCondition,
    Never,
    OnDate,
    RecurrenceRule,
    RecurringSchedule,
    ScheduleLease,
    TaskEntity,
    TaskTemplate,
)
from taskcadence.domain.enums import EndType, Frequency, PriorityLevel, TaskStatus
from taskcadence.domain.errors import ConcurrencyConflict, NotFoundError, ValidationError
from taskcadence.domain.filters import ScheduleFilters

from .models import RecurringScheduleModel, TaskModel, utcnow

TASK_FIELDS = {
    "title",
    "description",
    "status",
    "priority",
    "estimated_hours",
    "tags",
    "checklist",
    "attachments",
    "owner_id",
    "project_id",
    "workspace_id",
    "recurring_schedule_id",
}


def _template_to_json(template: TaskTemplate) -> dict[str, Any]:
    return {
        "title": template.title,
        "description": template.description,
        "priority": int(template.priority),
        "estimated_hours": template.estimated_hours,
        "tags": list(template.tags),
        "checklist": [{"title": i.title, "completed": i.completed} for i in template.checklist],
        "attachments": [
            {"filename": a.filename, "path": a.path, "mimetype": a.mimetype, "size": a.size}
            for a in template.attachments
        ],
    }


def _template_from_json(data: dict[str, Any]) -> TaskTemplate:
    return TaskTemplate(
        title=data["title"],
        description=data.get("description") or "",
        priority=PriorityLevel(data.get("priority", PriorityLevel.MEDIUM)),
        estimated_hours=data.get("estimated_hours"),
        tags=tuple(data.get("tags") or ()),
        checklist=tuple(ChecklistItem(**item) for item in data.get("checklist") or ()),
        attachments=tuple(AttachmentMeta(**item) for item in data.get("attachments") or ()),
    )


def _end_condition_from_model(model: RecurringScheduleModel) -> EndCondition:
    if model.end_type == EndType.ON_DATE.value:
        return OnDate(until=model.end_date)
    if model.end_type == EndType.AFTER_OCCURRENCES.value:
        return AfterOccurrences(count=model.occurrences)
    return Never()


def _to_entity(model: RecurringScheduleModel) -> RecurringSchedule:
    rule = RecurrenceRule(
        frequency=Frequency(model.frequency),
        start_date=model.start_date,
        interval=model.interval,
        days_of_week=tuple(model.days_of_week or ()),
        days_of_month=tuple(model.days_of_month or ()),
        months_of_year=tuple(model.months_of_year or ()),
        end_condition=_end_condition_from_model(model),
    )
    return RecurringSchedule(
        id=model.id,
        owner_id=model.owner_id,
        rule=rule,
        template=_template_from_json(model.task_template),
        project_id=model.project_id,
        workspace_id=model.workspace_id,
        active=model.active,
        next_run_date=model.next_run_date,
        last_materialized_date=model.last_materialized_date,
        materialized_task_ids=tuple(model.materialized_task_ids or ()),
        version=model.version,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _to_values(schedule: RecurringSchedule) -> dict[str, Any]:
    rule = schedule.rule
    end = rule.end_condition
    return {
        "owner_id": schedule.owner_id,
        "project_id": schedule.project_id,
        "workspace_id": schedule.workspace_id,
        "frequency": Frequency(rule.frequency).value,
        "interval": rule.interval,
        "days_of_week": sorted(set(rule.days_of_week)),
        "days_of_month": sorted(set(rule.days_of_month)),
        "months_of_year": sorted(set(rule.months_of_year)),
        "start_date": rule.start_date,
        "end_type": end.kind.value,
        "end_date": end.until if isinstance(end, OnDate) else None,
        "occurrences": end.count if isinstance(end, AfterOccurrences) else None,
        "active": schedule.active,
        "next_run_date": schedule.next_run_date,
        "last_materialized_date": schedule.last_materialized_date,
        "materialized_task_ids": list(schedule.materialized_task_ids),
        "task_template": _template_to_json(schedule.template),
        "updated_at": schedule.updated_at or utcnow(),
    }


def _not_leased(now: datetime):
    # Expired leases belong to workers that died mid-materialization.
    return or_(
        RecurringScheduleModel.claim_token.is_(None),
        RecurringScheduleModel.claimed_until <= now,
    )


def _task_to_entity(model: TaskModel) -> TaskEntity:
    return TaskEntity(
        id=model.id,
        title=model.title,
        description=model.description,
        status=TaskStatus(model.status),
        priority=model.priority,
        estimated_hours=model.estimated_hours,
        tags=tuple(model.tags or ()),
        checklist=tuple(ChecklistItem(**item) for item in model.checklist or ()),
        attachments=tuple(AttachmentMeta(**item) for item in model.attachments or ()),
        owner_id=model.owner_id,
        project_id=model.project_id,
        workspace_id=model.workspace_id,
        recurring_schedule_id=model.recurring_schedule_id,
        created_at=model.created_at,
    )


class SqlScheduleRepository:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def get(self, schedule_id: int) -> RecurringSchedule:
        with self._session_factory() as session:
            model = session.get(RecurringScheduleModel, schedule_id)
            if model is None:
                raise NotFoundError(f"Recurring schedule {schedule_id} not found")
            return _to_entity(model)

    def add(self, schedule: RecurringSchedule) -> RecurringSchedule:
        values = _to_values(schedule)
        values["created_at"] = schedule.created_at or values["updated_at"]
        with self._session_factory() as session:
            model = RecurringScheduleModel(**values, version=0)
            session.add(model)
            session.commit()
            session.refresh(model)
            return _to_entity(model)

    def save(
        self,
        schedule: RecurringSchedule,
        expected_version: int,
        now: datetime,
        lease_token: str | None = None,
    ) -> RecurringSchedule:
        conditions = [
            RecurringScheduleModel.id == schedule.id,
            RecurringScheduleModel.version == expected_version,
        ]
        if lease_token is None:
            conditions.append(_not_leased(now))
        else:
            conditions.append(RecurringScheduleModel.claim_token == lease_token)

        with self._session_factory() as session:
            result = session.execute(
                update(RecurringScheduleModel)
                .where(*conditions)
                .values(
                    **_to_values(schedule),
                    version=expected_version + 1,
                    claim_token=None,
                    claimed_until=None,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                session.rollback()
                self._raise_missing_or_conflict(session, schedule.id, "was modified concurrently or is leased")
            session.commit()
        return replace(schedule, version=expected_version + 1)

    def claim(
        self,
        schedule_id: int,
        expected_version: int,
        now: datetime,
        lease: timedelta,
        require_due: bool = True,
    ) -> ScheduleLease:
        conditions = [
            RecurringScheduleModel.id == schedule_id,
            RecurringScheduleModel.version == expected_version,
            RecurringScheduleModel.active.is_(True),
            _not_leased(now),
        ]
        if require_due:
            conditions.extend([
                RecurringScheduleModel.next_run_date.is_not(None),
                RecurringScheduleModel.next_run_date <= now,
            ])

        granted = ScheduleLease(schedule_id=schedule_id, token=uuid.uuid4().hex, expires_at=now + lease)
        with self._session_factory() as session:
            result = session.execute(
                update(RecurringScheduleModel)
                .where(*conditions)
                .values(claim_token=granted.token, claimed_until=granted.expires_at)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                session.rollback()
                self._raise_missing_or_conflict(session, schedule_id, "could not be claimed")
            session.commit()
        return granted

    def release(self, lease: ScheduleLease) -> None:
        with self._session_factory() as session:
            session.execute(
                update(RecurringScheduleModel)
                .where(
                    RecurringScheduleModel.id == lease.schedule_id,
                    RecurringScheduleModel.claim_token == lease.token,
                )
                .values(claim_token=None, claimed_until=None)
                .execution_options(synchronize_session=False)
            )
            session.commit()

    def delete(self, schedule_id: int) -> None:
        with self._session_factory() as session:
            model = session.get(RecurringScheduleModel, schedule_id)
            if model is None:
                raise NotFoundError(f"Recurring schedule {schedule_id} not found")
            session.delete(model)
            session.commit()

    def list_due(self, now: datetime, limit: Optional[int] = None) -> list[int]:
        stmt = (
            select(RecurringScheduleModel.id)
            .where(
                RecurringScheduleModel.active.is_(True),
                RecurringScheduleModel.next_run_date.is_not(None),
                RecurringScheduleModel.next_run_date <= now,
                _not_leased(now),
            )
            .order_by(RecurringScheduleModel.next_run_date.asc(), RecurringScheduleModel.id.asc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._session_factory() as session:
            return list(session.scalars(stmt))

    def list_schedules(self, filters: ScheduleFilters) -> list[RecurringSchedule]:
        stmt = select(RecurringScheduleModel)
        if filters.owner_id is not None:
            stmt = stmt.where(RecurringScheduleModel.owner_id == filters.owner_id)
        if filters.project_id is not None:
            stmt = stmt.where(RecurringScheduleModel.project_id == filters.project_id)
        if filters.workspace_id is not None:
            stmt = stmt.where(RecurringScheduleModel.workspace_id == filters.workspace_id)
        if not filters.include_inactive:
            stmt = stmt.where(RecurringScheduleModel.active.is_(True))
        stmt = stmt.order_by(
            RecurringScheduleModel.active.desc(),
            RecurringScheduleModel.next_run_date.is_(None),
            RecurringScheduleModel.next_run_date.asc(),
            RecurringScheduleModel.id.asc(),
        )
        with self._session_factory() as session:
            return [_to_entity(model) for model in session.scalars(stmt)]

    @staticmethod
    def _raise_missing_or_conflict(session, schedule_id: int, reason: str) -> None:
        if session.get(RecurringScheduleModel, schedule_id) is None:
            raise NotFoundError(f"Recurring schedule {schedule_id} not found")
        raise ConcurrencyConflict(f"Recurring schedule {schedule_id} {reason}")


class SqlTaskRepository:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def create_task(self, data: dict) -> int:
        unknown = set(data) - TASK_FIELDS
        if unknown:
            raise ValidationError(f"Unknown task fields: {', '.join(sorted(unknown))}")
        if not (data.get("title") or "").strip():
            raise ValidationError("Task title is required", "title")
        if not data.get("owner_id"):
            raise ValidationError("Task owner is required", "owner_id")

        with self._session_factory() as session:
            task = TaskModel(**data)
            session.add(task)
            session.commit()
            session.refresh(task)
            return task.id

    def get_task(self, task_id: int) -> TaskEntity:
        with self._session_factory() as session:
            task = session.get(TaskModel, task_id)
            if task is None:
                raise NotFoundError(f"Task {task_id} not found")
            return _task_to_entity(task)

    def list_tasks(self, task_ids: list[int]) -> list[TaskEntity]:
        if not task_ids:
            return []
        with self._session_factory() as session:
            found = {
                task.id: _task_to_entity(task)
                for task in session.scalars(select(TaskModel).where(TaskModel.id.in_(task_ids)))
            }
        # Tasks deleted since materialization are skipped.
        return [found[task_id] for task_id in task_ids if task_id in found]
