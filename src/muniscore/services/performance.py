import logging
from collections import defaultdict
from typing import Dict, List

from muniscore.data.dto import UnitPerformance
from muniscore.data.repositories import ReferenceStore
from muniscore.exceptions import DataAccessError
from muniscore.logic.palette import color_for_index
from muniscore.logic.scoring import percentage

logger = logging.getLogger(__name__)


class PerformanceCalculator:
    """
    Overall coverage per unit against every task in the system.
    Feeds the performance chart: one bar per unit, colored by name position.
    """

    def __init__(self, store: ReferenceStore):
        self.store = store

    def compute_unit_performance(self) -> List[UnitPerformance]:
        try:
            units = self.store.municipalities.list_all()
            tasks = self.store.tasks.list_all()
            deliveries = self.store.deliveries.list_all()
        except DataAccessError as exc:
            raise DataAccessError(f"Unit performance could not be computed: {exc}") from exc

        total_tasks = len(tasks)
        task_names = {t.id: t.name for t in tasks}

        # unit id -> completed task ids in first-seen order (dict keeps insertion order)
        completed: Dict[int, Dict[int, str]] = defaultdict(dict)
        for delivery in deliveries:
            name = task_names.get(delivery.task_id)
            if name is None:
                continue
            completed[delivery.municipality_id].setdefault(delivery.task_id, name)

        results = []
        for position, unit in enumerate(units):
            unit_tasks = completed.get(unit.id, {})
            tasks_completed = len(unit_tasks)
            results.append(
                UnitPerformance(
                    unit_id=unit.id,
                    unit_name=unit.name,
                    total_tasks=total_tasks,
                    tasks_completed=tasks_completed,
                    completion_percentage=percentage(tasks_completed, total_tasks),
                    completed_task_names=list(unit_tasks.values()),
                    color=color_for_index(position),
                )
            )

        logger.debug(f"Computed performance for {len(results)} units over {total_tasks} tasks")
        return results
