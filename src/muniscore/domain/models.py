from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class TaskStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"

    @property
    def label(self) -> str:
        """Spanish label for display."""
        return {
            "in_progress": "En proceso",
            "finished": "Finalizada",
        }[self.value]


class Division(BaseModel):
    """
    Organizational unit that owns tasks.
    """
    id: int
    name: str = Field(..., min_length=1)


class Municipality(BaseModel):
    """
    A municipal unit being evaluated.
    """
    id: int
    name: str = Field(..., min_length=1)
    code: Optional[str] = None

    @field_validator("name", "code")
    @classmethod
    def strip_whitespace(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip()


class Task(BaseModel):
    """
    A time-boxed assignment owned by a division and distributed to every unit.
    """
    id: int
    name: str = Field(..., min_length=1)
    division_id: int
    start_time: datetime
    deadline_time: datetime
    status: TaskStatus = TaskStatus.IN_PROGRESS

    @model_validator(mode="after")
    def check_deadline_after_start(self) -> "Task":
        if self.deadline_time < self.start_time:
            raise ValueError("deadline_time must be greater than or equal to start_time")
        return self

    @property
    def is_finished(self) -> bool:
        return self.status == TaskStatus.FINISHED


class Delivery(BaseModel):
    """
    A timestamped submission by one unit against one task.
    """
    id: int
    task_id: int
    municipality_id: int
    submitted_at: datetime
    attachment_ref: Optional[str] = None
    quality_rating: Optional[int] = Field(None, ge=0, le=100)

    @field_validator("quality_rating", mode="before")
    @classmethod
    def coerce_rating(cls, v):
        # pandas hands back nullable integer columns as floats
        if v is None:
            return None
        if isinstance(v, float):
            if v != v:
                return None
            return int(v)
        return v
