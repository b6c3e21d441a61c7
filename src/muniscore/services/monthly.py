import logging
from collections import Counter, defaultdict
from typing import Dict, List, Optional, Set

from muniscore.data.dto import (
    DivisionPerformance,
    DivisionPeriodPerformance,
    MonthlyPerformance,
    UnitDivisionPerformance,
    UnitMonthlyPerformance,
)
from muniscore.data.repositories import ReferenceStore
from muniscore.exceptions import DataAccessError, NotFoundError
from muniscore.logic.scoring import percentage
from muniscore.logic.windows import month_window, parse_period, period_label

logger = logging.getLogger(__name__)


class MonthlyBreakdownCalculator:
    """
    Per-unit completion restricted to one calendar month, broken down by division.
    Tasks that only partially overlap the month still count toward it.
    """

    def __init__(self, store: ReferenceStore):
        self.store = store

    def compute_monthly_performance(self, year: int, month: int) -> MonthlyPerformance:
        window = month_window(year, month)
        label = period_label(year, month)
        try:
            tasks = self.store.tasks.list_all(window=window)
            units = self.store.municipalities.list_all()
            divisions = self.store.divisions.list_all()
            deliveries = self.store.deliveries.list_all()
        except DataAccessError as exc:
            raise DataAccessError(f"Monthly performance for {label} could not be computed: {exc}") from exc

        tasks_by_division: Dict[int, List[int]] = defaultdict(list)
        for task in tasks:
            tasks_by_division[task.division_id].append(task.id)

        in_window = {t.id for t in tasks}
        delivered_by_unit: Dict[int, Set[int]] = defaultdict(set)
        for delivery in deliveries:
            if delivery.task_id in in_window:
                delivered_by_unit[delivery.municipality_id].add(delivery.task_id)

        per_unit = []
        for unit in units:
            delivered = delivered_by_unit.get(unit.id, set())
            division_data = []
            for division in divisions:
                division_tasks = tasks_by_division.get(division.id, [])
                if not division_tasks:
                    continue
                completed = sum(1 for task_id in division_tasks if task_id in delivered)
                division_data.append(
                    DivisionPerformance(
                        division_id=division.id,
                        division_name=division.name,
                        tasks_assigned=len(division_tasks),
                        tasks_completed=completed,
                        percentage=percentage(completed, len(division_tasks)),
                    )
                )

            total_assigned = sum(d.tasks_assigned for d in division_data)
            total_completed = sum(d.tasks_completed for d in division_data)
            per_unit.append(
                UnitMonthlyPerformance(
                    unit_id=unit.id,
                    unit_name=unit.name,
                    division_data=division_data,
                    total_assigned=total_assigned,
                    total_completed=total_completed,
                    total_percentage=percentage(total_completed, total_assigned),
                )
            )

        logger.debug(f"Monthly performance {label}: {len(tasks)} tasks, {len(per_unit)} units")
        return MonthlyPerformance(period_label=label, per_unit=per_unit)

    def compute_monthly_performance_for_label(self, label: Optional[str]) -> MonthlyPerformance:
        year, month = parse_period(label)
        return self.compute_monthly_performance(year, month)

    def compute_division_performance(self, division_id: int, year: int, month: int) -> DivisionPeriodPerformance:
        """
        How every unit did on one division's tasks for the month, best first.
        """
        window = month_window(year, month)
        label = period_label(year, month)
        try:
            division = self.store.divisions.get(division_id)
            if division is None:
                raise NotFoundError("Division", division_id)
            tasks = self.store.tasks.list_all(division_id=division_id, window=window)
            units = self.store.municipalities.list_all()
            deliveries = self.store.deliveries.list_all()
        except DataAccessError as exc:
            raise DataAccessError(
                f"Division {division_id} performance for {label} could not be computed: {exc}"
            ) from exc

        task_ids = {t.id for t in tasks}
        delivery_counts: Counter = Counter()
        for delivery in deliveries:
            if delivery.task_id in task_ids:
                delivery_counts[(delivery.municipality_id, delivery.task_id)] += 1

        per_unit = []
        for unit in units:
            completed = sum(1 for task_id in task_ids if delivery_counts[(unit.id, task_id)] > 0)
            per_unit.append(
                UnitDivisionPerformance(
                    unit_id=unit.id,
                    unit_name=unit.name,
                    tasks_completed=completed,
                    total_tasks=len(task_ids),
                    total_deliveries=sum(delivery_counts[(unit.id, task_id)] for task_id in task_ids),
                    percentage=percentage(completed, len(task_ids)),
                )
            )
        per_unit.sort(key=lambda row: row.percentage, reverse=True)

        return DivisionPeriodPerformance(
            division_id=division.id,
            division_name=division.name,
            period_label=label,
            total_tasks=len(task_ids),
            per_unit=per_unit,
        )
