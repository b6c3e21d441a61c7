from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class DistinctUnitCount:
    """Distinct units that delivered at least once against a task."""
    count: int
    unit_ids: List[int]

@dataclass
class DeliveryWithUnit:
    """Delivery row joined with the submitting unit's name, for drill-down views."""
    delivery_id: int
    task_id: int
    unit_id: int
    unit_name: str
    submitted_at: datetime
    attachment_ref: Optional[str] = None
    quality_rating: Optional[int] = None

@dataclass
class UnitPerformance:
    unit_id: int
    unit_name: str
    total_tasks: int
    tasks_completed: int
    completion_percentage: float  # 0-100
    completed_task_names: List[str]
    color: str  # hex, from the fixed chart palette

@dataclass
class DivisionPerformance:
    division_id: int
    division_name: str
    tasks_assigned: int
    tasks_completed: int
    percentage: float

@dataclass
class UnitMonthlyPerformance:
    unit_id: int
    unit_name: str
    division_data: List[DivisionPerformance]
    total_assigned: int
    total_completed: int
    total_percentage: float

@dataclass
class MonthlyPerformance:
    period_label: str  # YYYY-MM
    per_unit: List[UnitMonthlyPerformance] = field(default_factory=list)

@dataclass
class UnitDivisionPerformance:
    unit_id: int
    unit_name: str
    tasks_completed: int
    total_tasks: int
    total_deliveries: int
    percentage: float

@dataclass
class DivisionPeriodPerformance:
    """Per-unit performance on one division's tasks within one month."""
    division_id: int
    division_name: str
    period_label: str
    total_tasks: int
    per_unit: List[UnitDivisionPerformance] = field(default_factory=list)

@dataclass
class TaskEvaluation:
    task_id: int
    task_name: str
    delivered: bool
    delivery_count: int
    punctuality: float  # mean per-delivery punctuality for this task
    quality: float  # mean rating for this task, 0 if unrated
    deadline: datetime
    first_delivery_at: Optional[datetime] = None

@dataclass
class ComprehensiveEvaluation:
    unit_id: int
    unit_name: str

    # Coverage
    total_tasks: int
    tasks_completed: int
    coverage_pct: float

    # Punctuality
    on_time_count: int
    late_count: int
    punctuality_pct: float  # % of deliveries on time
    avg_punctuality_score: float  # 0-100, how early on average

    # Quantity
    total_deliveries: int
    avg_quantity: float  # deliveries per completed task

    # Quality
    rated_deliveries: int
    avg_quality: float

    composite_score: float
    task_details: List[TaskEvaluation] = field(default_factory=list)

@dataclass
class RankingEntry:
    unit_name: str
    value: float
    rank: int  # 1 = highest value


def serialize(record: Any) -> Dict[str, Any]:
    """Plain-dict view of a result record; datetimes become ISO strings."""
    return _jsonable(asdict(record))


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    if isinstance(value, datetime):
        return value.isoformat()
    return value
