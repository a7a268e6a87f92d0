from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.engine import Engine

from taskcadence.config import Settings
from taskcadence.infra.activity import LoggingActivitySink
from taskcadence.infra.clock import SystemClock
from taskcadence.infra.db import init_db, make_engine, make_session_factory
from taskcadence.infra.repository import SqlScheduleRepository, SqlTaskRepository
from taskcadence.services.lifecycle import LifecycleController
from taskcadence.services.materializer import TaskMaterializer
from taskcadence.services.poller import SchedulerPoller
from taskcadence.services.ports import Clock
from taskcadence.services.schedule_service import ScheduleService


@dataclass(frozen=True)
class SchedulingCore:
    engine: Engine
    schedules: SqlScheduleRepository
    tasks: SqlTaskRepository
    materializer: TaskMaterializer
    lifecycle: LifecycleController
    poller: SchedulerPoller
    service: ScheduleService


def build_core(settings: Settings, clock: Clock | None = None, engine: Engine | None = None) -> SchedulingCore:
    """Wire repositories and services for one database."""
    clock = clock or SystemClock()
    engine = engine or make_engine(settings.database_url)
    init_db(engine)

    session_factory = make_session_factory(engine)
    schedules = SqlScheduleRepository(session_factory)
    tasks = SqlTaskRepository(session_factory)
    materializer = TaskMaterializer(
        schedules,
        tasks,
        clock,
        LoggingActivitySink(),
        lease=timedelta(seconds=settings.claim_lease_seconds),
    )

    return SchedulingCore(
        engine=engine,
        schedules=schedules,
        tasks=tasks,
        materializer=materializer,
        lifecycle=LifecycleController(schedules, clock),
        poller=SchedulerPoller(schedules, clock, batch_limit=settings.poll_batch_limit),
        service=ScheduleService(
            schedules,
            tasks,
            clock,
            materializer,
            upcoming_days=settings.upcoming_days,
        ),
    )
