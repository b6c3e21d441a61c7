from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from muniscore.api.deps import (
    advance_tasks_on_read,
    get_delivery_aggregator,
    get_lifecycle_service,
    get_rating_service,
)
from muniscore.data.dto import serialize
from muniscore.services import DeliveryAggregator, DeliveryRatingService, TaskLifecycleService

router = APIRouter(tags=["tasks"])


class RatingRequest(BaseModel):
    rating: int


@router.get("/tasks/{task_id}/deliveries", dependencies=[Depends(advance_tasks_on_read)])
def task_deliveries(task_id: int, svc: DeliveryAggregator = Depends(get_delivery_aggregator)):
    rows = svc.deliveries_for_task(task_id)
    return {"task_id": task_id, "rows": [serialize(r) for r in rows]}


@router.get("/tasks/{task_id}/units", dependencies=[Depends(advance_tasks_on_read)])
def task_units(task_id: int, svc: DeliveryAggregator = Depends(get_delivery_aggregator)):
    result = svc.count_distinct_units_for_task(task_id)
    return {"task_id": task_id, **serialize(result)}


@router.post("/tasks/advance")
def advance_tasks(svc: TaskLifecycleService = Depends(get_lifecycle_service)):
    return {"finished": svc.advance_due_tasks()}


@router.post("/tasks/{task_id}/finalize")
def finalize_task(task_id: int, svc: TaskLifecycleService = Depends(get_lifecycle_service)):
    transitioned = svc.finalize_task(task_id)
    return {"task_id": task_id, "finalized": transitioned, "status": "finished"}


@router.post("/deliveries/{delivery_id}/rating")
def rate_delivery(
    delivery_id: int,
    body: RatingRequest,
    svc: DeliveryRatingService = Depends(get_rating_service),
):
    svc.rate_delivery(delivery_id, body.rating)
    return {"delivery_id": delivery_id, "rating": body.rating}
