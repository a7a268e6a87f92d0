from __future__ import annotations

from datetime import datetime

from taskcadence.domain.entities import RecurrenceRule, RecurringSchedule, TaskTemplate
from taskcadence.domain.enums import Frequency, ScheduleState
from taskcadence.domain.errors import ValidationError
from taskcadence.domain.transitions import open_schedule
from taskcadence.services.lifecycle import LifecycleController
from taskcadence.services.materializer import TaskMaterializer
from taskcadence.services.poller import SchedulerPoller

from fakes import FakeClock, FakeTaskGateway, InMemoryScheduleRepo

NOW = datetime(2024, 3, 1, 9, 0)


def _add(repo: InMemoryScheduleRepo, title: str, start: datetime, frequency=Frequency.DAILY) -> RecurringSchedule:
    rule = RecurrenceRule(frequency=frequency, start_date=start)
    return repo.add(open_schedule("owner-1", rule, TaskTemplate(title=title), start))


def test_due_schedules_ordered_by_next_run_date() -> None:
    repo = InMemoryScheduleRepo()
    late = _add(repo, "late", datetime(2024, 2, 28))
    early = _add(repo, "early", datetime(2024, 2, 20))
    _add(repo, "future", datetime(2024, 3, 5))
    poller = SchedulerPoller(repo, FakeClock(NOW))

    assert poller.due_schedules() == [early.id, late.id]
    assert poller.due_schedules(limit=1) == [early.id]


def test_due_schedules_is_idempotent() -> None:
    repo = InMemoryScheduleRepo()
    for day in (10, 12, 14):
        _add(repo, f"s{day}", datetime(2024, 2, day))
    poller = SchedulerPoller(repo, FakeClock(NOW))

    assert poller.due_schedules() == poller.due_schedules()
    assert len(repo.schedules) == 3


def test_due_schedules_excludes_paused_schedules() -> None:
    repo = InMemoryScheduleRepo()
    clock = FakeClock(NOW)
    paused = _add(repo, "paused", datetime(2024, 2, 1))
    kept = _add(repo, "kept", datetime(2024, 2, 2))
    LifecycleController(repo, clock).pause(paused.id)

    assert SchedulerPoller(repo, clock).due_schedules() == [kept.id]


def test_batch_limit_applies_when_no_limit_given() -> None:
    repo = InMemoryScheduleRepo()
    for day in range(1, 6):
        _add(repo, f"s{day}", datetime(2024, 2, day))
    poller = SchedulerPoller(repo, FakeClock(NOW), batch_limit=2)

    assert len(poller.due_schedules()) == 2
    assert len(poller.due_schedules(limit=4)) == 4
    assert poller.due_schedules(limit=0) == []


def test_run_pass_isolates_failing_schedules() -> None:
    repo = InMemoryScheduleRepo()
    clock = FakeClock(NOW)
    ok_first = _add(repo, "ok-1", datetime(2024, 2, 1))
    broken = _add(repo, "broken", datetime(2024, 2, 2))
    ok_second = _add(repo, "ok-2", datetime(2024, 2, 3))
    tasks = FakeTaskGateway(fail_for_titles=("broken",), error=ValidationError("rejected"))
    poller = SchedulerPoller(repo, clock)

    summary = poller.run_pass(TaskMaterializer(repo, tasks, clock))

    assert summary.processed == 3
    assert summary.created == 2
    assert summary.errors == 1
    assert [t["recurring_schedule_id"] for t in tasks.created] == [ok_first.id, ok_second.id]
    assert repo.get(broken.id).materialized_task_ids == ()
    assert poller.due_schedules() == [broken.id]


def test_run_pass_pauses_schedules_that_cannot_be_computed() -> None:
    repo = InMemoryScheduleRepo()
    clock = FakeClock(NOW)
    defective = repo.add(
        RecurringSchedule(
            id=None,
            owner_id="owner-1",
            rule=RecurrenceRule(frequency=Frequency.DAILY, start_date=datetime(2024, 1, 1), interval=0),
            template=TaskTemplate(title="defective"),
            next_run_date=datetime(2024, 1, 2),
        )
    )
    healthy = _add(repo, "healthy", datetime(2024, 2, 1))
    tasks = FakeTaskGateway()

    poller = SchedulerPoller(repo, clock)
    materializer = TaskMaterializer(repo, tasks, clock)

    summary = poller.run_pass(materializer)

    assert summary.errors == 1
    assert summary.created == 1
    assert tasks.created[0]["recurring_schedule_id"] == healthy.id

    paused = repo.get(defective.id)
    assert paused.state == ScheduleState.PAUSED
    assert paused.next_run_date == datetime(2024, 1, 2)
    assert paused.materialized_task_ids == ()

    clock.advance(days=1)
    assert poller.run_pass(materializer).errors == 0


def test_second_pass_finds_nothing_due() -> None:
    repo = InMemoryScheduleRepo()
    clock = FakeClock(NOW)
    _add(repo, "weekly", datetime(2024, 2, 1), frequency=Frequency.WEEKLY)
    poller = SchedulerPoller(repo, clock)
    materializer = TaskMaterializer(repo, FakeTaskGateway(), clock)

    first = poller.run_pass(materializer)
    second = poller.run_pass(materializer)

    assert first.created == 1
    assert second.processed == 0
