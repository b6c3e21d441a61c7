from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, field_validator, model_validator

from muniscore.data.dto import ComprehensiveEvaluation, RankingEntry, TaskEvaluation
from muniscore.data.repositories import ReferenceStore
from muniscore.domain.models import Delivery, Municipality, Task
from muniscore.exceptions import DataAccessError, NotFoundError
from muniscore.logic.scoring import ScoringEngine, mean, percentage, round2
from muniscore.logic.windows import TimeWindow, month_window, to_reference_time

logger = logging.getLogger(__name__)


class RankingMetric(str, Enum):
    COVERAGE = "coverage"
    PUNCTUALITY = "punctuality"
    QUALITY = "quality"
    QUANTITY = "quantity"
    FINAL = "final"

    @property
    def field_name(self) -> str:
        return {
            "coverage": "coverage_pct",
            "punctuality": "avg_punctuality_score",
            "quality": "avg_quality",
            "quantity": "avg_quantity",
            "final": "composite_score",
        }[self.value]


class EvaluationFilter(BaseModel):
    """
    Optional scope for an evaluation. The date range applies only when both
    bounds are set; tasks overlapping it (same rule as monthly reports) are kept.
    """
    division_id: Optional[int] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @field_validator("start", "end")
    @classmethod
    def normalize_time(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_reference_time(v) if v is not None else None

    @model_validator(mode="after")
    def check_range(self) -> "EvaluationFilter":
        if self.start and self.end and self.end < self.start:
            raise ValueError("end must be greater than or equal to start")
        return self

    @classmethod
    def for_month(cls, year: int, month: int, division_id: Optional[int] = None) -> "EvaluationFilter":
        window = month_window(year, month)
        return cls(division_id=division_id, start=window.start, end=window.end)

    def window(self) -> Optional[TimeWindow]:
        if self.start is None or self.end is None:
            return None
        return TimeWindow(start=self.start, end=self.end)


class EvaluationEngine:
    """
    Coverage, punctuality, quantity and quality per unit, blended into a
    weighted composite score used for rankings.
    """

    def __init__(self, store: ReferenceStore, scoring_engine: Optional[ScoringEngine] = None):
        self.store = store
        self.scoring = scoring_engine or ScoringEngine()

    def evaluate_unit(self, unit_id: int, filters: Optional[EvaluationFilter] = None) -> ComprehensiveEvaluation:
        try:
            unit = self.store.municipalities.get(unit_id)
            if unit is None:
                raise NotFoundError("Municipality", unit_id)
            tasks = self._tasks_in_scope(filters)
            deliveries = self.store.deliveries.for_unit(unit_id)
        except DataAccessError as exc:
            raise DataAccessError(f"Evaluation of municipality {unit_id} failed: {exc}") from exc

        return self._evaluate(unit, tasks, self._group_by_task(deliveries))

    def evaluate_all_units(self, filters: Optional[EvaluationFilter] = None) -> List[ComprehensiveEvaluation]:
        try:
            units = self.store.municipalities.list_all()
            tasks = self._tasks_in_scope(filters)
            deliveries = self.store.deliveries.list_all()
        except DataAccessError as exc:
            raise DataAccessError(f"Evaluation of all municipalities failed: {exc}") from exc

        by_unit: Dict[int, List[Delivery]] = defaultdict(list)
        for delivery in deliveries:
            by_unit[delivery.municipality_id].append(delivery)

        evaluations = [
            self._evaluate(unit, tasks, self._group_by_task(by_unit.get(unit.id, [])))
            for unit in units
        ]
        # Stable: equal scores keep name order
        evaluations.sort(key=lambda e: e.composite_score, reverse=True)
        logger.debug(f"Evaluated {len(evaluations)} municipalities over {len(tasks)} tasks")
        return evaluations

    def rank_by(self, metric: RankingMetric | str, filters: Optional[EvaluationFilter] = None) -> List[RankingEntry]:
        metric = RankingMetric(metric)
        evaluations = self.evaluate_all_units(filters)

        scored = [(e.unit_name, round2(getattr(e, metric.field_name))) for e in evaluations]
        scored.sort(key=lambda item: item[1], reverse=True)
        return [
            RankingEntry(unit_name=name, value=value, rank=position)
            for position, (name, value) in enumerate(scored, start=1)
        ]

    def _tasks_in_scope(self, filters: Optional[EvaluationFilter]) -> List[Task]:
        division_id = filters.division_id if filters else None
        window = filters.window() if filters else None
        tasks = self.store.tasks.list_all(division_id=division_id, window=window)
        # Most recent first for the drill-down table
        return sorted(tasks, key=lambda t: t.start_time, reverse=True)

    @staticmethod
    def _group_by_task(deliveries: List[Delivery]) -> Dict[int, List[Delivery]]:
        grouped: Dict[int, List[Delivery]] = defaultdict(list)
        for delivery in deliveries:
            grouped[delivery.task_id].append(delivery)
        return grouped

    def _evaluate(
        self,
        unit: Municipality,
        tasks: List[Task],
        deliveries_by_task: Dict[int, List[Delivery]],
    ) -> ComprehensiveEvaluation:
        tasks_completed = 0
        on_time = 0
        late = 0
        punctuality_scores: List[float] = []
        ratings: List[int] = []
        details: List[TaskEvaluation] = []

        for task in tasks:
            task_deliveries = deliveries_by_task.get(task.id, [])
            if task_deliveries:
                tasks_completed += 1

            task_scores = []
            task_ratings = []
            for delivery in task_deliveries:
                score = self.scoring.punctuality_score(delivery.submitted_at, task.start_time, task.deadline_time)
                task_scores.append(score)
                if self.scoring.is_on_time(delivery.submitted_at, task.deadline_time):
                    on_time += 1
                else:
                    late += 1
                if delivery.quality_rating is not None:
                    task_ratings.append(delivery.quality_rating)

            punctuality_scores.extend(task_scores)
            ratings.extend(task_ratings)
            details.append(
                TaskEvaluation(
                    task_id=task.id,
                    task_name=task.name,
                    delivered=bool(task_deliveries),
                    delivery_count=len(task_deliveries),
                    punctuality=round2(mean(task_scores)),
                    quality=round2(mean(task_ratings)),
                    deadline=task.deadline_time,
                    first_delivery_at=min((d.submitted_at for d in task_deliveries), default=None),
                )
            )

        total_deliveries = len(punctuality_scores)
        coverage = tasks_completed / len(tasks) * 100 if tasks else 0.0
        avg_punctuality = mean(punctuality_scores)
        avg_quantity = total_deliveries / tasks_completed if tasks_completed else 0.0
        avg_quality = mean(ratings)

        return ComprehensiveEvaluation(
            unit_id=unit.id,
            unit_name=unit.name,
            total_tasks=len(tasks),
            tasks_completed=tasks_completed,
            coverage_pct=round2(coverage),
            on_time_count=on_time,
            late_count=late,
            punctuality_pct=percentage(on_time, total_deliveries),
            avg_punctuality_score=round2(avg_punctuality),
            total_deliveries=total_deliveries,
            avg_quantity=round2(avg_quantity),
            rated_deliveries=len(ratings),
            avg_quality=round2(avg_quality),
            composite_score=self.scoring.composite_score(coverage, avg_punctuality, avg_quality, avg_quantity),
            task_details=details,
        )
