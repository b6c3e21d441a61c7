import logging
from datetime import datetime

import pytest

from muniscore.domain.models import TaskStatus
from muniscore.exceptions import DataAccessError, NotFoundError
from muniscore.services import TaskLifecycleService

NOW = datetime(2024, 3, 15, 12, 0)


@pytest.fixture
def tasks(db, division):
    overdue = db.add_task("Vencida", division.id, datetime(2024, 3, 1), datetime(2024, 3, 10))
    due_now = db.add_task("Vence ahora", division.id, datetime(2024, 3, 1), NOW)
    open_task = db.add_task("Abierta", division.id, datetime(2024, 3, 1), datetime(2024, 3, 31))
    return overdue, due_now, open_task


def test_advance_finishes_only_due_tasks(store, tasks):
    overdue, due_now, open_task = tasks

    assert TaskLifecycleService(store).advance_due_tasks(now=NOW) == 2

    assert store.tasks.get(overdue.id).status == TaskStatus.FINISHED
    assert store.tasks.get(due_now.id).status == TaskStatus.FINISHED
    assert store.tasks.get(open_task.id).status == TaskStatus.IN_PROGRESS


def test_advance_is_idempotent(store, tasks):
    service = TaskLifecycleService(store)
    assert service.advance_due_tasks(now=NOW) == 2
    assert service.advance_due_tasks(now=NOW) == 0


def test_finished_tasks_never_reopen(store, db, division):
    task = db.add_task("Larga", division.id, datetime(2024, 3, 1), datetime(2024, 12, 31))
    service = TaskLifecycleService(store)
    service.finalize_task(task.id)

    service.advance_due_tasks(now=NOW)

    assert store.tasks.get(task.id).status == TaskStatus.FINISHED


def test_manual_and_bulk_paths_converge(store, tasks):
    overdue, _, _ = tasks
    service = TaskLifecycleService(store)

    assert service.finalize_task(overdue.id) is True
    # The bulk pass skips the already finished task
    assert service.advance_due_tasks(now=NOW) == 1
    assert service.finalize_task(overdue.id) is False


def test_finalize_already_finished_logs_warning(store, tasks, caplog):
    overdue, _, _ = tasks
    service = TaskLifecycleService(store)
    service.finalize_task(overdue.id)

    with caplog.at_level(logging.WARNING):
        assert service.finalize_task(overdue.id) is False
    assert "already finished" in caplog.text


def test_finalize_unknown_task(store):
    with pytest.raises(NotFoundError):
        TaskLifecycleService(store).finalize_task(77)


def test_store_failure_reports_zero(store, tasks, monkeypatch, caplog):
    def broken(now):
        raise DataAccessError("database is locked")

    monkeypatch.setattr(store.db, "finish_due_tasks", broken)

    with caplog.at_level(logging.ERROR):
        assert TaskLifecycleService(store).advance_due_tasks(now=NOW) == 0
    assert "Task status update failed" in caplog.text
