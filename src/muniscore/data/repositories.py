import sqlite3
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from muniscore.data.dto import DeliveryWithUnit
from muniscore.data.storage import Database
from muniscore.domain.models import Delivery, Division, Municipality, Task
from muniscore.exceptions import DataAccessError
from muniscore.logic.windows import TimeWindow, overlaps_window


class BaseRepository:
    def __init__(self, db: Database):
        self.db = db

    def _read(self, query: str, params: Sequence[Any] = (), what: str = "records") -> pd.DataFrame:
        """
        Runs a read query. Store failures surface as DataAccessError naming what was being read.
        """
        try:
            with self.db._connect() as conn:
                return pd.read_sql_query(query, conn, params=list(params))
        except (sqlite3.Error, pd.errors.DatabaseError) as exc:
            raise DataAccessError(f"Failed to load {what}: {exc}") from exc

    @staticmethod
    def _records(df: pd.DataFrame) -> List[Dict[str, Any]]:
        if df.empty:
            return []
        # NULLs come back as NaN in numeric columns
        return df.astype(object).where(pd.notna(df), None).to_dict("records")


class MunicipalityRepository(BaseRepository):
    """
    Table: 'municipalities'. Always listed by name, which fixes each unit's chart position.
    """
    def list_all(self) -> List[Municipality]:
        df = self._read("SELECT id, name, code FROM municipalities ORDER BY name ASC, id ASC", what="municipalities")
        return [Municipality.model_validate(r) for r in self._records(df)]

    def get(self, municipality_id: int) -> Optional[Municipality]:
        df = self._read(
            "SELECT id, name, code FROM municipalities WHERE id = ?",
            (municipality_id,),
            what=f"municipality {municipality_id}",
        )
        rows = self._records(df)
        return Municipality.model_validate(rows[0]) if rows else None


class DivisionRepository(BaseRepository):
    """
    Table: 'divisions'.
    """
    def list_all(self) -> List[Division]:
        df = self._read("SELECT id, name FROM divisions ORDER BY name ASC, id ASC", what="divisions")
        return [Division.model_validate(r) for r in self._records(df)]

    def get(self, division_id: int) -> Optional[Division]:
        df = self._read("SELECT id, name FROM divisions WHERE id = ?", (division_id,), what=f"division {division_id}")
        rows = self._records(df)
        return Division.model_validate(rows[0]) if rows else None


class TaskRepository(BaseRepository):
    """
    Table: 'tasks'.
    Division filtering happens in SQL; window filtering uses the shared overlap
    predicate so every caller gets identical month/range semantics.
    """
    _COLUMNS = "id, name, division_id, start_time, deadline_time, status"

    def list_all(self, division_id: Optional[int] = None, window: Optional[TimeWindow] = None) -> List[Task]:
        query = f"SELECT {self._COLUMNS} FROM tasks WHERE 1=1"
        params: List[Any] = []
        if division_id is not None:
            query += " AND division_id = ?"
            params.append(division_id)
        query += " ORDER BY id ASC"

        df = self._read(query, params, what="tasks")
        tasks = [Task.model_validate(r) for r in self._records(df)]
        if window is None:
            return tasks
        return [t for t in tasks if overlaps_window(t.start_time, t.deadline_time, window)]

    def get(self, task_id: int) -> Optional[Task]:
        df = self._read(f"SELECT {self._COLUMNS} FROM tasks WHERE id = ?", (task_id,), what=f"task {task_id}")
        rows = self._records(df)
        return Task.model_validate(rows[0]) if rows else None

    def count_all(self) -> int:
        df = self._read("SELECT COUNT(*) AS total FROM tasks", what="task count")
        return int(df["total"].iloc[0]) if not df.empty else 0


class DeliveryRepository(BaseRepository):
    """
    Table: 'deliveries'. Rows are returned in submission order (ties by id).
    """
    _COLUMNS = "id, task_id, municipality_id, submitted_at, attachment_ref, quality_rating"

    def list_all(self) -> List[Delivery]:
        df = self._read(
            f"SELECT {self._COLUMNS} FROM deliveries ORDER BY submitted_at ASC, id ASC",
            what="deliveries",
        )
        return [Delivery.model_validate(r) for r in self._records(df)]

    def for_task(self, task_id: int) -> List[Delivery]:
        df = self._read(
            f"SELECT {self._COLUMNS} FROM deliveries WHERE task_id = ? ORDER BY submitted_at ASC, id ASC",
            (task_id,),
            what=f"deliveries for task {task_id}",
        )
        return [Delivery.model_validate(r) for r in self._records(df)]

    def for_unit(self, municipality_id: int) -> List[Delivery]:
        df = self._read(
            f"SELECT {self._COLUMNS} FROM deliveries WHERE municipality_id = ? ORDER BY submitted_at ASC, id ASC",
            (municipality_id,),
            what=f"deliveries for municipality {municipality_id}",
        )
        return [Delivery.model_validate(r) for r in self._records(df)]

    def unit_ids_for_task(self, task_id: int) -> List[int]:
        """Raw (ungrouped) unit id per delivery row."""
        df = self._read(
            "SELECT municipality_id FROM deliveries WHERE task_id = ?",
            (task_id,),
            what=f"delivering units for task {task_id}",
        )
        return [int(v) for v in df["municipality_id"].tolist()] if not df.empty else []

    def for_task_with_unit(self, task_id: int) -> List[DeliveryWithUnit]:
        df = self._read(
            """
            SELECT d.id AS delivery_id, d.task_id, d.municipality_id AS unit_id, m.name AS unit_name,
                   d.submitted_at, d.attachment_ref, d.quality_rating
            FROM deliveries d
            JOIN municipalities m ON m.id = d.municipality_id
            WHERE d.task_id = ?
            ORDER BY d.submitted_at ASC, d.id ASC
            """,
            (task_id,),
            what=f"deliveries with units for task {task_id}",
        )
        rows = []
        for r in self._records(df):
            rating = r["quality_rating"]
            rows.append(
                DeliveryWithUnit(
                    delivery_id=int(r["delivery_id"]),
                    task_id=int(r["task_id"]),
                    unit_id=int(r["unit_id"]),
                    unit_name=r["unit_name"],
                    submitted_at=pd.Timestamp(r["submitted_at"]).to_pydatetime(),
                    attachment_ref=r["attachment_ref"],
                    quality_rating=int(rating) if rating is not None else None,
                )
            )
        return rows

    def get(self, delivery_id: int) -> Optional[Delivery]:
        df = self._read(
            f"SELECT {self._COLUMNS} FROM deliveries WHERE id = ?",
            (delivery_id,),
            what=f"delivery {delivery_id}",
        )
        rows = self._records(df)
        return Delivery.model_validate(rows[0]) if rows else None


class ReferenceStore:
    """
    Bundle of the read repositories over one Database, handed to the calculators.
    """
    def __init__(self, db: Database):
        self.db = db
        self.municipalities = MunicipalityRepository(db)
        self.divisions = DivisionRepository(db)
        self.tasks = TaskRepository(db)
        self.deliveries = DeliveryRepository(db)
