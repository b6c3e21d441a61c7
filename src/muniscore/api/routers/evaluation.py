from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from muniscore.api.deps import (
    advance_tasks_on_read,
    get_evaluation_engine,
    get_evaluation_filter,
    get_monthly_calculator,
    get_performance_calculator,
)
from muniscore.data.dto import serialize
from muniscore.logic.windows import current_period, parse_period
from muniscore.services import (
    EvaluationEngine,
    EvaluationFilter,
    MonthlyBreakdownCalculator,
    PerformanceCalculator,
    RankingMetric,
)

router = APIRouter(prefix="/evaluation", tags=["evaluation"], dependencies=[Depends(advance_tasks_on_read)])


def _resolve_month(month: Optional[str]) -> tuple[int, int]:
    if month:
        return parse_period(month)
    return current_period()


@router.get("/coverage")
def coverage(svc: PerformanceCalculator = Depends(get_performance_calculator)):
    rows = svc.compute_unit_performance()
    return {"rows": [serialize(r) for r in rows]}


@router.get("/monthly")
def monthly(
    month: Optional[str] = Query(None, description="YYYY-MM, defaults to the current month"),
    svc: MonthlyBreakdownCalculator = Depends(get_monthly_calculator),
):
    year, month_num = _resolve_month(month)
    return serialize(svc.compute_monthly_performance(year, month_num))


@router.get("/divisions/{division_id}")
def division_performance(
    division_id: int,
    month: Optional[str] = Query(None, description="YYYY-MM, defaults to the current month"),
    svc: MonthlyBreakdownCalculator = Depends(get_monthly_calculator),
):
    year, month_num = _resolve_month(month)
    return serialize(svc.compute_division_performance(division_id, year, month_num))


@router.get("/advanced")
def advanced(
    filters: Optional[EvaluationFilter] = Depends(get_evaluation_filter),
    svc: EvaluationEngine = Depends(get_evaluation_engine),
):
    rows = svc.evaluate_all_units(filters)
    return {"rows": [serialize(r) for r in rows]}


@router.get("/units/{unit_id}")
def unit_detail(
    unit_id: int,
    filters: Optional[EvaluationFilter] = Depends(get_evaluation_filter),
    svc: EvaluationEngine = Depends(get_evaluation_engine),
):
    return serialize(svc.evaluate_unit(unit_id, filters))


@router.get("/ranking")
def ranking(
    metric: RankingMetric = Query(RankingMetric.FINAL),
    filters: Optional[EvaluationFilter] = Depends(get_evaluation_filter),
    svc: EvaluationEngine = Depends(get_evaluation_engine),
):
    rows = svc.rank_by(metric, filters)
    return {"metric": metric.value, "rows": [serialize(r) for r in rows]}
