"""Executor: single attempts, retry driving and backoff."""

import asyncio

import pytest

from deskvoice.core import Scheduler
from deskvoice.device import SimElement, SimulatedBackend
from deskvoice.errors import BackendError
from deskvoice.execution import Executor
from deskvoice.models import (
    ActionKind,
    ActionSpec,
    ElementSelector,
    Intent,
    Task,
    TaskFailureReason,
    TaskStatus,
)
from deskvoice.utils.config import BackoffSettings

FAST = BackoffSettings(initial_ms=1, multiplier=2.0, max_ms=5)


def make_task(kind=ActionKind.CLICK, custom=None, parameters=None, **selector) -> Task:
    intent = Intent(
        action=ActionSpec(kind=kind, name=custom),
        target_selector=ElementSelector(**selector),
        parameters=parameters or {},
        locale="ru",
    )
    return Task(id=1, intent=intent)


def submit(scheduler: Scheduler, task: Task) -> Task:
    scheduler.submit(task.intent)
    return scheduler.next_runnable()


@pytest.mark.asyncio
async def test_run_success(desktop):
    outcome = await Executor(desktop, timeout_ms=200).run(make_task(name="настройки"))
    assert outcome.succeeded
    assert desktop.invocations() == [("click", "Настройки")]


@pytest.mark.asyncio
async def test_run_element_not_found():
    backend = SimulatedBackend()
    outcome = await Executor(backend, timeout_ms=200).run(make_task(name="Настройки"))
    assert outcome.reason == TaskFailureReason.ELEMENT_NOT_FOUND
    assert len(backend.queries) == 1
    assert backend.calls == []


@pytest.mark.asyncio
async def test_run_ambiguous_target(desktop):
    outcome = await Executor(desktop, timeout_ms=200).run(make_task(role="button"))
    assert outcome.reason == TaskFailureReason.AMBIGUOUS_TARGET
    assert desktop.calls == []


@pytest.mark.asyncio
async def test_read_state_of_one_element(desktop):
    outcome = await Executor(desktop, timeout_ms=200).run(make_task(ActionKind.READ_STATE, name="Уведомления"))
    assert outcome.succeeded
    assert outcome.data["name"] == "Уведомления"
    assert outcome.data["checked"] is False


@pytest.mark.asyncio
async def test_read_state_of_many_elements(desktop):
    outcome = await Executor(desktop, timeout_ms=200).run(make_task(ActionKind.READ_STATE, role="button"))
    assert [state["name"] for state in outcome.data] == ["Настройки", "Звук", "Сохранить"]


@pytest.mark.asyncio
async def test_set_text_passes_parameters(desktop):
    task = make_task(ActionKind.SET_TEXT, parameters={"text": "погода"}, automation_id="SearchBox")
    assert (await Executor(desktop, timeout_ms=200).run(task)).succeeded
    found = await desktop.find(ElementSelector(automation_id="SearchBox"))
    assert (await desktop.read(found[0])).value == "погода"


@pytest.mark.asyncio
async def test_run_timeout(desktop):
    desktop.inject_failure("Настройки", kind="timeout")
    outcome = await Executor(desktop, timeout_ms=20).run(make_task(name="Настройки"))
    assert outcome.reason == TaskFailureReason.TIMEOUT


@pytest.mark.asyncio
async def test_run_backend_error(desktop):
    desktop.inject_failure("Настройки", kind="error")
    outcome = await Executor(desktop, timeout_ms=200).run(make_task(name="Настройки"))
    assert outcome.reason == TaskFailureReason.BACKEND_ERROR
    assert "Injected failure" in outcome.detail


class BrokenFind(SimulatedBackend):
    async def find(self, selector):
        raise BackendError("UIA unavailable")


class ExplodingInvoke(SimulatedBackend):
    async def invoke(self, action, element, parameters):
        raise RuntimeError("boom")


@pytest.mark.asyncio
async def test_backend_error_during_find():
    outcome = await Executor(BrokenFind(), timeout_ms=200).run(make_task(name="x"))
    assert outcome.reason == TaskFailureReason.BACKEND_ERROR
    assert outcome.detail == "UIA unavailable"


@pytest.mark.asyncio
async def test_unexpected_exception_becomes_backend_error():
    backend = ExplodingInvoke([SimElement(name="OK", role="button")])
    outcome = await Executor(backend, timeout_ms=200).run(make_task(name="OK"))
    assert outcome.reason == TaskFailureReason.BACKEND_ERROR
    assert outcome.detail == "RuntimeError: boom"


class UnreachableFind(SimulatedBackend):
    async def find(self, selector):
        self.queries.append(str(selector))
        raise OSError("RPC server unavailable")


@pytest.mark.asyncio
async def test_unexpected_exception_during_find():
    outcome = await Executor(UnreachableFind(), timeout_ms=200).run(make_task(name="x"))
    assert outcome.reason == TaskFailureReason.BACKEND_ERROR
    assert outcome.detail == "OSError: RPC server unavailable"


@pytest.mark.asyncio
async def test_drive_retries_unexpected_find_errors():
    backend = UnreachableFind()
    scheduler = Scheduler(retry_ceiling=2)
    task = submit(scheduler, make_task(name="x"))

    status = await Executor(backend, timeout_ms=200, backoff=FAST).drive(task, scheduler)

    assert status == TaskStatus.FAILED
    assert scheduler.status(task.id).attempts == 2
    assert len(backend.queries) == 3


@pytest.mark.asyncio
async def test_drive_retries_transient_failures_then_succeeds(desktop):
    desktop.inject_failure("Настройки", kind="error", times=2)
    scheduler = Scheduler(retry_ceiling=2)
    task = submit(scheduler, make_task(name="Настройки"))

    status = await Executor(desktop, timeout_ms=200, backoff=FAST).drive(task, scheduler)

    assert status == TaskStatus.SUCCEEDED
    assert len(desktop.invocations("Настройки")) == 3
    assert scheduler.status(task.id).attempts == 2


@pytest.mark.asyncio
async def test_drive_gives_up_at_ceiling(desktop):
    desktop.inject_failure("Настройки", kind="timeout")
    scheduler = Scheduler(retry_ceiling=2)
    task = submit(scheduler, make_task(name="Настройки"))

    status = await Executor(desktop, timeout_ms=20, backoff=FAST).drive(task, scheduler)

    assert status == TaskStatus.FAILED
    report = scheduler.status(task.id)
    assert report.reason == TaskFailureReason.TIMEOUT
    assert report.attempts == 2
    assert len(desktop.invocations("Настройки")) == 3


@pytest.mark.asyncio
async def test_drive_does_not_retry_not_found():
    backend = SimulatedBackend()
    scheduler = Scheduler(retry_ceiling=5)
    task = submit(scheduler, make_task(name="Настройки"))

    status = await Executor(backend, timeout_ms=200, backoff=FAST).drive(task, scheduler)

    assert status == TaskStatus.FAILED
    assert len(backend.queries) == 1
    assert scheduler.status(task.id).attempts == 0


@pytest.mark.asyncio
async def test_cancel_during_backoff_stops_retries(desktop):
    desktop.inject_failure("Настройки", kind="error")
    scheduler = Scheduler(retry_ceiling=5)
    task = submit(scheduler, make_task(name="Настройки"))
    slow = BackoffSettings(initial_ms=200, multiplier=1.0, max_ms=200)

    driver = asyncio.create_task(Executor(desktop, timeout_ms=200, backoff=slow).drive(task, scheduler))
    await asyncio.sleep(0.05)
    assert scheduler.cancel(task.id) is True

    assert await asyncio.wait_for(driver, timeout=1) == TaskStatus.CANCELLED
    assert len(desktop.invocations("Настройки")) == 1


@pytest.mark.asyncio
async def test_cancelled_task_is_not_attempted(desktop):
    scheduler = Scheduler()
    task = submit(scheduler, make_task(name="Настройки"))
    scheduler.cancel(task.id)

    status = await Executor(desktop, timeout_ms=200).drive(task, scheduler)

    assert status == TaskStatus.CANCELLED
    assert desktop.calls == []


@pytest.mark.parametrize(
    "attempt,expected",
    [(1, 0.2), (2, 0.4), (3, 0.8), (10, 5.0)],
)
def test_backoff_delay(attempt, expected):
    assert BackoffSettings().delay_seconds(attempt) == pytest.approx(expected)
