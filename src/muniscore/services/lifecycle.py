import logging
from datetime import datetime
from typing import Optional

from muniscore.data.repositories import ReferenceStore
from muniscore.exceptions import DataAccessError, NotFoundError
from muniscore.logic.windows import reference_now, to_reference_time

logger = logging.getLogger(__name__)


class TaskLifecycleService:
    """
    Moves tasks from in_progress to finished, either when their deadline has
    elapsed (run at the start of read paths) or on explicit request.
    Both paths are conditional updates, so repeated or racing calls converge.
    """

    def __init__(self, store: ReferenceStore):
        self.store = store

    def advance_due_tasks(self, now: Optional[datetime] = None) -> int:
        """
        Finishes every in-progress task whose deadline is at or before `now`.
        Store failures are logged and reported as zero transitions: a stale
        status must not block the report that triggered the update.
        """
        moment = to_reference_time(now) if now else reference_now()
        try:
            updated = self.store.db.finish_due_tasks(moment)
        except DataAccessError as exc:
            logger.error(f"Task status update failed at {moment.isoformat()}: {exc}")
            return 0

        if updated > 0:
            logger.info(f"{updated} task(s) moved to finished", extra={"now": moment.isoformat()})
        return updated

    def finalize_task(self, task_id: int) -> bool:
        """
        Manual finalize. Returns True when this call performed the transition,
        False when the task was already finished.
        """
        task = self.store.tasks.get(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)

        transitioned = self.store.db.finish_task(task_id) > 0
        if transitioned:
            logger.info(f"Task {task_id} finalized manually", extra={"task_name": task.name})
        else:
            logger.warning(f"Task {task_id} was already finished")
        return transitioned

