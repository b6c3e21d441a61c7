import sqlite3
from contextlib import contextmanager
from datetime import datetime

import pytest

from muniscore.domain.models import TaskStatus
from muniscore.exceptions import DataAccessError, InvalidInputError, NotFoundError

NOW = datetime(2024, 3, 15, 12, 0)


def test_add_task_defaults_to_in_progress(db, store, division):
    task = db.add_task("Jornada", division.id, datetime(2024, 3, 1), datetime(2024, 3, 31))
    stored = store.tasks.get(task.id)
    assert stored.status == TaskStatus.IN_PROGRESS
    assert stored.start_time == datetime(2024, 3, 1)
    assert stored.deadline_time == datetime(2024, 3, 31)


def test_retroactive_task_past_deadline_is_created_finished(db, store, division):
    task = db.add_task(
        "Informe atrasado", division.id, datetime(2024, 1, 1), datetime(2024, 2, 1), retroactive=True, now=NOW
    )
    assert task.status == TaskStatus.FINISHED
    assert store.tasks.get(task.id).is_finished


def test_retroactive_flag_ignored_when_deadline_is_ahead(db, division):
    task = db.add_task(
        "Plan anual", division.id, datetime(2024, 3, 1), datetime(2024, 12, 31), retroactive=True, now=NOW
    )
    assert task.status == TaskStatus.IN_PROGRESS


def test_task_with_deadline_before_start_is_rejected(db, division):
    with pytest.raises(InvalidInputError):
        db.add_task("Mal", division.id, datetime(2024, 3, 10), datetime(2024, 3, 1))


def test_task_for_unknown_division(db):
    with pytest.raises(NotFoundError):
        db.add_task("Huérfana", 42, datetime(2024, 3, 1), datetime(2024, 3, 2))


def test_delivery_for_unknown_task(db):
    unit = db.add_municipality("Tucupido")
    with pytest.raises(InvalidInputError):
        db.add_delivery(404, unit.id, datetime(2024, 3, 1))


def test_delivery_rating_out_of_range(db, division):
    unit = db.add_municipality("Tucupido")
    task = db.add_task("Jornada", division.id, datetime(2024, 3, 1), datetime(2024, 3, 31))
    with pytest.raises(InvalidInputError):
        db.add_delivery(task.id, unit.id, datetime(2024, 3, 2), quality_rating=150)


def test_deleting_task_cascades_to_deliveries(db, store, division):
    unit = db.add_municipality("Tucupido")
    task = db.add_task("Jornada", division.id, datetime(2024, 3, 1), datetime(2024, 3, 31))
    db.add_delivery(task.id, unit.id, datetime(2024, 3, 2))

    assert db.delete_task(task.id) == 1
    assert store.deliveries.for_task(task.id) == []


def test_municipalities_listed_by_name(db, store):
    for name in ("Zaraza", "Calabozo", "Ortiz"):
        db.add_municipality(name)
    assert [m.name for m in store.municipalities.list_all()] == ["Calabozo", "Ortiz", "Zaraza"]


def test_task_listing_by_division(db, store, division):
    other = db.add_division("División de Educación")
    db.add_task("A", division.id, datetime(2024, 3, 1), datetime(2024, 3, 5))
    db.add_task("B", other.id, datetime(2024, 3, 1), datetime(2024, 3, 5))

    assert [t.name for t in store.tasks.list_all(division_id=other.id)] == ["B"]
    assert store.tasks.count_all() == 2


def test_empty_store_reads(store):
    assert store.municipalities.list_all() == []
    assert store.tasks.list_all() == []
    assert store.deliveries.list_all() == []
    assert store.tasks.get(1) is None
    assert store.tasks.count_all() == 0


def _reject_rating_updates(db):
    conn = sqlite3.connect(db.db_path)
    with conn:
        conn.execute(
            """
            CREATE TRIGGER block_ratings BEFORE UPDATE OF quality_rating ON deliveries
            BEGIN SELECT RAISE(ABORT, 'ratings are locked'); END;
            """
        )
    conn.close()


def test_rating_write_failure_is_data_access_error(db, division):
    unit = db.add_municipality("Tucupido")
    task = db.add_task("Jornada", division.id, datetime(2024, 3, 1), datetime(2024, 3, 31))
    delivery = db.add_delivery(task.id, unit.id, datetime(2024, 3, 2))
    _reject_rating_updates(db)

    with pytest.raises(DataAccessError, match=f"delivery {delivery.id}"):
        db.set_delivery_rating(delivery.id, 90)


def test_write_paths_wrap_connection_failures(db, division, monkeypatch):
    @contextmanager
    def unavailable():
        raise sqlite3.OperationalError("unable to open database file")
        yield

    monkeypatch.setattr(db, "_connect", unavailable)

    writes = [
        lambda: db.add_division("División de Cultura"),
        lambda: db.add_municipality("Ortiz"),
        lambda: db.add_task("Jornada", division.id, datetime(2024, 3, 1), datetime(2024, 3, 31)),
        lambda: db.add_delivery(1, 1, datetime(2024, 3, 2)),
        lambda: db.set_delivery_rating(1, 50),
        lambda: db.delete_task(1),
        lambda: db.delete_delivery(1),
    ]
    for write in writes:
        with pytest.raises(DataAccessError):
            write()
