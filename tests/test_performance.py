from datetime import datetime

from muniscore.logic.palette import CHART_COLORS
from muniscore.services import PerformanceCalculator


def test_alpha_scenario(store, alpha_scenario):
    rows = PerformanceCalculator(store).compute_unit_performance()

    assert len(rows) == 1
    alpha = rows[0]
    assert alpha.unit_name == "Alpha"
    assert alpha.total_tasks == 2
    assert alpha.tasks_completed == 1
    assert alpha.completion_percentage == 50.0
    assert alpha.completed_task_names == ["Task 1"]
    assert alpha.color == CHART_COLORS[0]


def test_duplicates_do_not_inflate_completion(store, db, alpha_scenario):
    alpha = alpha_scenario["unit"]
    task1 = alpha_scenario["tasks"][0]
    db.add_delivery(task1.id, alpha.id, datetime(2024, 1, 20))
    db.add_delivery(task1.id, alpha.id, datetime(2024, 1, 21))

    row = PerformanceCalculator(store).compute_unit_performance()[0]

    assert row.tasks_completed == 1
    assert row.completed_task_names == ["Task 1"]


def test_no_units(store, db, division):
    db.add_task("Sola", division.id, datetime(2024, 1, 1), datetime(2024, 1, 2))
    assert PerformanceCalculator(store).compute_unit_performance() == []


def test_no_tasks(store, db):
    db.add_municipality("Ortiz")
    row = PerformanceCalculator(store).compute_unit_performance()[0]
    assert row.total_tasks == 0
    assert row.tasks_completed == 0
    assert row.completion_percentage == 0
    assert row.completed_task_names == []


def test_completion_never_exceeds_total(store, db, division):
    units = [db.add_municipality(f"Unidad {i:02d}") for i in range(4)]
    tasks = [db.add_task(f"T{i}", division.id, datetime(2024, 1, 1), datetime(2024, 1, 10)) for i in range(3)]
    for unit in units:
        for task in tasks:
            for day in (2, 3):
                db.add_delivery(task.id, unit.id, datetime(2024, 1, day))

    for row in PerformanceCalculator(store).compute_unit_performance():
        assert 0 <= row.tasks_completed <= row.total_tasks
        assert 0 <= row.completion_percentage <= 100


def test_colors_follow_name_order(store, db):
    for i in range(16):
        db.add_municipality(f"Unidad {i:02d}")

    rows = PerformanceCalculator(store).compute_unit_performance()

    assert [r.unit_name for r in rows] == sorted(r.unit_name for r in rows)
    assert len({r.color for r in rows[:15]}) == 15
    assert rows[15].color == rows[0].color
