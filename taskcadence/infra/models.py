from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Index, Integer, String, Text

from .db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TaskModel(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(String(20), nullable=False, default="inbox", index=True)
    priority = Column(Integer, nullable=False, default=2)
    estimated_hours = Column(Float, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    checklist = Column(JSON, nullable=False, default=list)
    attachments = Column(JSON, nullable=False, default=list)
    owner_id = Column(String(64), nullable=False, index=True)
    project_id = Column(String(64), nullable=True)
    workspace_id = Column(String(64), nullable=True)
    recurring_schedule_id = Column(Integer, nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class RecurringScheduleModel(Base):
    __tablename__ = "recurring_schedules"
    __table_args__ = (Index("ix_recurring_schedules_due", "active", "next_run_date"),)

    id = Column(Integer, primary_key=True)
    owner_id = Column(String(64), nullable=False, index=True)
    project_id = Column(String(64), nullable=True, index=True)
    workspace_id = Column(String(64), nullable=True, index=True)
    frequency = Column(String(20), nullable=False)
    interval = Column(Integer, nullable=False, default=1)
    days_of_week = Column(JSON, nullable=False, default=list)
    days_of_month = Column(JSON, nullable=False, default=list)
    months_of_year = Column(JSON, nullable=False, default=list)
    start_date = Column(DateTime, nullable=False)
    end_type = Column(String(20), nullable=False, default="never")
    end_date = Column(DateTime, nullable=True)
    occurrences = Column(Integer, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    next_run_date = Column(DateTime, nullable=True)
    last_materialized_date = Column(DateTime, nullable=True)
    materialized_task_ids = Column(JSON, nullable=False, default=list)
    task_template = Column(JSON, nullable=False)
    version = Column(Integer, nullable=False, default=0)
    claim_token = Column(String(32), nullable=True)
    claimed_until = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
