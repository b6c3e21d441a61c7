from datetime import datetime

import pytest

from muniscore.data.repositories import ReferenceStore
from muniscore.data.storage import Database


@pytest.fixture
def db(tmp_path):
    """
    Fresh, empty database per test.
    """
    return Database(tmp_path / "muniscore.db")


@pytest.fixture
def store(db):
    return ReferenceStore(db)


@pytest.fixture
def division(db):
    return db.add_division("División de Salud")


@pytest.fixture
def alpha_scenario(db, division):
    """
    Unit "Alpha", two tasks, one delivery against the first task only.
    """
    alpha = db.add_municipality("Alpha")
    task1 = db.add_task("Task 1", division.id, datetime(2024, 1, 1), datetime(2024, 1, 31))
    task2 = db.add_task("Task 2", division.id, datetime(2024, 1, 5), datetime(2024, 1, 20))
    delivery = db.add_delivery(task1.id, alpha.id, datetime(2024, 1, 16), quality_rating=80)
    return {"unit": alpha, "tasks": [task1, task2], "delivery": delivery}
