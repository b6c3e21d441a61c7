import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, Optional, Tuple

from pydantic import ValidationError

from muniscore.domain.models import Delivery, Division, Municipality, Task, TaskStatus
from muniscore.exceptions import DataAccessError, InvalidInputError, NotFoundError
from muniscore.logic.windows import reference_now, to_reference_time


class Database:
    """
    Thin wrapper over sqlite3 for Muniscore persistence.
    Keeps schema creation and the write paths in one place; reads live in repositories.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _ensure_schema(self):
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS divisions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL
                );
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS municipalities (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    code TEXT
                );
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    division_id INTEGER NOT NULL,
                    start_time TEXT NOT NULL,
                    deadline_time TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'in_progress'
                        CHECK (status IN ('in_progress', 'finished')),
                    FOREIGN KEY (division_id) REFERENCES divisions(id) ON DELETE RESTRICT
                );
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS deliveries (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    task_id INTEGER NOT NULL,
                    municipality_id INTEGER NOT NULL,
                    submitted_at TEXT NOT NULL,
                    attachment_ref TEXT,
                    quality_rating INTEGER CHECK (quality_rating BETWEEN 0 AND 100),
                    FOREIGN KEY (task_id) REFERENCES tasks(id) ON DELETE CASCADE,
                    FOREIGN KEY (municipality_id) REFERENCES municipalities(id) ON DELETE CASCADE
                );
                """
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_deliveries_task ON deliveries (task_id);")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_deliveries_unit ON deliveries (municipality_id);")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_status_deadline ON tasks (status, deadline_time);")

    # ----- reference data -----
    def add_division(self, name: str) -> Division:
        division_id, _ = self._write("INSERT INTO divisions (name) VALUES (?)", (name,), f"division {name!r}")
        return Division(id=division_id, name=name)

    def add_municipality(self, name: str, code: Optional[str] = None) -> Municipality:
        municipality_id, _ = self._write(
            "INSERT INTO municipalities (name, code) VALUES (?, ?)", (name, code), f"municipality {name!r}"
        )
        return Municipality(id=municipality_id, name=name, code=code)

    # ----- tasks -----
    def add_task(
        self,
        name: str,
        division_id: int,
        start_time: datetime,
        deadline_time: datetime,
        retroactive: bool = False,
        now: Optional[datetime] = None,
    ) -> Task:
        """
        Creates a task in_progress. A retroactive task whose deadline already
        passed is created finished so deliveries can be back-filled.
        """
        start = to_reference_time(start_time)
        deadline = to_reference_time(deadline_time)
        current = to_reference_time(now) if now else reference_now()
        status = TaskStatus.FINISHED if retroactive and deadline < current else TaskStatus.IN_PROGRESS
        try:
            task = Task(id=0, name=name, division_id=division_id, start_time=start, deadline_time=deadline, status=status)
        except ValidationError as exc:
            raise InvalidInputError(f"Invalid task {name!r}: {exc.errors()[0]['msg']}") from exc

        try:
            with self._connect() as conn:
                cur = conn.execute(
                    """
                    INSERT INTO tasks (name, division_id, start_time, deadline_time, status)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (name, division_id, self._ts(start), self._ts(deadline), status.value),
                )
                task_id = cur.lastrowid
        except sqlite3.IntegrityError as exc:
            raise NotFoundError("Division", division_id) from exc
        except sqlite3.Error as exc:
            raise DataAccessError(f"Failed to write task {name!r}: {exc}") from exc
        return task.model_copy(update={"id": task_id})

    def delete_task(self, task_id: int) -> int:
        """Deletes a task and, by cascade, its deliveries."""
        _, count = self._write("DELETE FROM tasks WHERE id = ?", (task_id,), f"delete of task {task_id}")
        return count

    def finish_due_tasks(self, now: datetime) -> int:
        """Conditional bulk transition; returns affected row count."""
        try:
            with self._connect() as conn:
                cur = conn.execute(
                    "UPDATE tasks SET status = ? WHERE status = ? AND deadline_time <= ?",
                    (TaskStatus.FINISHED.value, TaskStatus.IN_PROGRESS.value, self._ts(now)),
                )
                return cur.rowcount
        except sqlite3.Error as exc:
            raise DataAccessError(f"Failed to finish tasks due by {now.isoformat()}") from exc

    def finish_task(self, task_id: int) -> int:
        """Conditional single-row transition; 0 when already finished or missing."""
        try:
            with self._connect() as conn:
                cur = conn.execute(
                    "UPDATE tasks SET status = ? WHERE id = ? AND status = ?",
                    (TaskStatus.FINISHED.value, task_id, TaskStatus.IN_PROGRESS.value),
                )
                return cur.rowcount
        except sqlite3.Error as exc:
            raise DataAccessError(f"Failed to finish task {task_id}") from exc

    # ----- deliveries -----
    def add_delivery(
        self,
        task_id: int,
        municipality_id: int,
        submitted_at: datetime,
        attachment_ref: Optional[str] = None,
        quality_rating: Optional[int] = None,
    ) -> Delivery:
        submitted = to_reference_time(submitted_at)
        try:
            delivery = Delivery(
                id=0,
                task_id=task_id,
                municipality_id=municipality_id,
                submitted_at=submitted,
                attachment_ref=attachment_ref,
                quality_rating=quality_rating,
            )
        except ValidationError as exc:
            raise InvalidInputError(f"Invalid delivery: {exc.errors()[0]['msg']}") from exc

        try:
            with self._connect() as conn:
                cur = conn.execute(
                    """
                    INSERT INTO deliveries (task_id, municipality_id, submitted_at, attachment_ref, quality_rating)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (task_id, municipality_id, self._ts(submitted), attachment_ref, quality_rating),
                )
                delivery_id = cur.lastrowid
        except sqlite3.IntegrityError as exc:
            raise InvalidInputError(
                f"Delivery references unknown task {task_id} or municipality {municipality_id}"
            ) from exc
        except sqlite3.Error as exc:
            raise DataAccessError(f"Failed to write delivery for task {task_id}: {exc}") from exc
        return delivery.model_copy(update={"id": delivery_id})

    def set_delivery_rating(self, delivery_id: int, rating: int) -> int:
        _, count = self._write(
            "UPDATE deliveries SET quality_rating = ? WHERE id = ?",
            (rating, delivery_id),
            f"rating of delivery {delivery_id}",
        )
        return count

    def delete_delivery(self, delivery_id: int) -> int:
        _, count = self._write("DELETE FROM deliveries WHERE id = ?", (delivery_id,), f"delete of delivery {delivery_id}")
        return count

    def _write(self, query: str, params: Tuple[Any, ...], what: str) -> Tuple[Optional[int], int]:
        """Runs one write statement; returns (lastrowid, rowcount)."""
        try:
            with self._connect() as conn:
                cur = conn.execute(query, params)
                return cur.lastrowid, cur.rowcount
        except sqlite3.Error as exc:
            raise DataAccessError(f"Failed to write {what}: {exc}") from exc

    @staticmethod
    def _ts(moment: datetime) -> str:
        # Fixed-width ISO text keeps lexicographic order equal to time order in SQL comparisons
        return to_reference_time(moment).isoformat(timespec="microseconds")
