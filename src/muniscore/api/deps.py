from __future__ import annotations

from datetime import datetime
from typing import Generator, Optional

from fastapi import Depends, Query
from pydantic import ValidationError

from muniscore.config import settings
from muniscore.data.repositories import ReferenceStore
from muniscore.data.storage import Database
from muniscore.exceptions import InvalidInputError
from muniscore.logic.windows import parse_period
from muniscore.services import (
    DeliveryAggregator,
    DeliveryRatingService,
    EvaluationEngine,
    EvaluationFilter,
    MonthlyBreakdownCalculator,
    PerformanceCalculator,
    TaskLifecycleService,
)

# Global/Cached instances
_db_instance: Optional[Database] = None


def get_db() -> Database:
    global _db_instance
    if _db_instance is None:
        _db_instance = Database(settings.paths.db_path)
    return _db_instance


def get_store() -> ReferenceStore:
    return ReferenceStore(db=get_db())


def get_lifecycle_service() -> Generator[TaskLifecycleService, None, None]:
    yield TaskLifecycleService(store=get_store())


def advance_tasks_on_read(lifecycle: TaskLifecycleService = Depends(get_lifecycle_service)) -> None:
    """Read-time side effect: finish overdue tasks before any report is built."""
    if settings.api.advance_on_read:
        lifecycle.advance_due_tasks()


def get_performance_calculator() -> Generator[PerformanceCalculator, None, None]:
    yield PerformanceCalculator(store=get_store())


def get_monthly_calculator() -> Generator[MonthlyBreakdownCalculator, None, None]:
    yield MonthlyBreakdownCalculator(store=get_store())


def get_evaluation_engine() -> Generator[EvaluationEngine, None, None]:
    yield EvaluationEngine(store=get_store())


def get_delivery_aggregator() -> Generator[DeliveryAggregator, None, None]:
    yield DeliveryAggregator(store=get_store())


def get_rating_service() -> Generator[DeliveryRatingService, None, None]:
    yield DeliveryRatingService(store=get_store())


def get_evaluation_filter(
    month: Optional[str] = Query(None, description="YYYY-MM; overrides start/end"),
    division_id: Optional[int] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
) -> Optional[EvaluationFilter]:
    if month:
        year, month_num = parse_period(month)
        return EvaluationFilter.for_month(year, month_num, division_id=division_id)
    if division_id is None and start is None and end is None:
        return None
    try:
        return EvaluationFilter(division_id=division_id, start=start, end=end)
    except ValidationError as exc:
        raise InvalidInputError(f"Invalid evaluation filter: {exc.errors()[0]['msg']}") from exc
