import logging
from typing import List

from muniscore.data.dto import DeliveryWithUnit, DistinctUnitCount
from muniscore.data.repositories import ReferenceStore
from muniscore.domain.models import Delivery
from muniscore.exceptions import DataAccessError, InvalidInputError, NotFoundError

logger = logging.getLogger(__name__)


class DeliveryAggregator:
    """
    Per-task views over deliveries: which units delivered, and in what order.
    """

    def __init__(self, store: ReferenceStore):
        self.store = store

    def count_distinct_units_for_task(self, task_id: int) -> DistinctUnitCount:
        """
        Counts each unit once no matter how many deliveries it submitted for the task.
        """
        try:
            raw_ids = self.store.deliveries.unit_ids_for_task(task_id)
        except DataAccessError as exc:
            logger.error(f"Distinct unit count failed for task {task_id}: {exc}")
            raise DataAccessError(f"Failed to count distinct units for task {task_id}") from exc

        unit_ids = list(dict.fromkeys(raw_ids))
        return DistinctUnitCount(count=len(unit_ids), unit_ids=unit_ids)

    def sorted_deliveries_for_task(self, task_id: int) -> List[Delivery]:
        """
        All deliveries for the task, earliest submission first.
        """
        try:
            deliveries = self.store.deliveries.for_task(task_id)
        except DataAccessError as exc:
            logger.error(f"Sorted delivery fetch failed for task {task_id}: {exc}")
            raise DataAccessError(f"Failed to fetch sorted deliveries for task {task_id}") from exc
        # sorted() is stable, so equal timestamps keep the store's id order
        return sorted(deliveries, key=lambda d: d.submitted_at)

    def deliveries_for_task(self, task_id: int) -> List[DeliveryWithUnit]:
        try:
            return self.store.deliveries.for_task_with_unit(task_id)
        except DataAccessError as exc:
            logger.error(f"Delivery fetch failed for task {task_id}: {exc}")
            raise DataAccessError(f"Failed to fetch deliveries for task {task_id}") from exc


class DeliveryRatingService:
    """
    Sets the quality rating of a delivery after submission.
    """

    def __init__(self, store: ReferenceStore):
        self.store = store

    def rate_delivery(self, delivery_id: int, rating: int) -> None:
        if isinstance(rating, bool) or not isinstance(rating, int) or not 0 <= rating <= 100:
            raise InvalidInputError(f"Quality rating must be an integer between 0 and 100, got {rating!r}")
        if self.store.deliveries.get(delivery_id) is None:
            raise NotFoundError("Delivery", delivery_id)
        self.store.db.set_delivery_rating(delivery_id, rating)
        logger.info(f"Delivery {delivery_id} rated {rating}")
