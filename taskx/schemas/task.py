from pydantic import BaseModel, Field, field_validator
from datetime import datetime, timezone
from typing import Literal, Optional

Recurrence = Literal["daily", "weekly", "monthly"]

def require_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError("text must not be empty")
    return value

def normalize_deadline(value: Optional[datetime]) -> Optional[datetime]:
    """Deadlines are stored as naive UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)

class TaskBase(BaseModel):
    """Base task schema with common fields."""
    text: str
    completed: bool = False
    priority: int = Field(default=4, ge=1, le=4)
    project: Optional[str] = None
    deadline: Optional[datetime] = None
    recurrence: Optional[Recurrence] = None

    @field_validator("text")
    @classmethod
    def _check_text(cls, value):
        return require_text(value)

    @field_validator("deadline")
    @classmethod
    def _check_deadline(cls, value):
        return normalize_deadline(value)

class TaskCreate(TaskBase):
    """Schema for creating new tasks."""
    pass

class TaskUpdate(BaseModel):
    """Schema for updating existing tasks."""
    text: Optional[str] = None
    completed: Optional[bool] = None
    priority: Optional[int] = Field(default=None, ge=1, le=4)
    project: Optional[str] = None
    deadline: Optional[datetime] = None
    recurrence: Optional[Recurrence] = None
    calendar_event_id: Optional[str] = None

    @field_validator("text")
    @classmethod
    def _check_text(cls, value):
        return require_text(value)

    @field_validator("deadline")
    @classmethod
    def _check_deadline(cls, value):
        return normalize_deadline(value)

class TaskComplete(BaseModel):
    """Schema for completing a task."""
    completed: bool = True

class Task(TaskBase):
    """Complete task schema with all fields."""
    id: str
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    calendar_event_id: Optional[str] = None
    reminder_sent: bool = False
    user_id: str

    class Config:
        from_attributes = True
