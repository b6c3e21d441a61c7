from datetime import datetime

from muniscore.data.seed import DIVISIONS, MUNICIPALITIES, TASKS_PER_DIVISION, seed_database
from muniscore.services import DeliveryAggregator, MonthlyBreakdownCalculator, PerformanceCalculator

NOW = datetime(2024, 3, 15, 12, 0)


def test_seed_populates_reference_data(db, store):
    counts = seed_database(db, seed=7, now=NOW)

    assert counts["divisions"] == len(DIVISIONS)
    assert counts["municipalities"] == len(MUNICIPALITIES) == 15
    assert counts["tasks"] == len(DIVISIONS) * TASKS_PER_DIVISION
    assert counts["deliveries"] == len(store.deliveries.list_all())
    assert all(d.submitted_at <= NOW for d in store.deliveries.list_all())


def test_seeded_data_keeps_aggregation_invariants(db, store):
    seed_database(db, seed=3, now=NOW)

    rows = PerformanceCalculator(store).compute_unit_performance()
    assert len({r.color for r in rows}) == 15
    for row in rows:
        assert row.tasks_completed <= row.total_tasks

    aggregator = DeliveryAggregator(store)
    for task in store.tasks.list_all():
        distinct = aggregator.count_distinct_units_for_task(task.id)
        assert distinct.count <= len(MUNICIPALITIES)

    report = MonthlyBreakdownCalculator(store).compute_monthly_performance(2024, 2)
    for unit in report.per_unit:
        assert unit.total_assigned == sum(d.tasks_assigned for d in unit.division_data)
