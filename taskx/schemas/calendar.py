from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime
from typing import Optional

from .task import normalize_deadline, require_text

class SyncCalendarRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    todo_id: str = Field(alias="todoId", min_length=1)
    text: str
    deadline: datetime
    calendar_event_id: Optional[str] = Field(default=None, alias="calendarEventId")

    @field_validator("text")
    @classmethod
    def _check_text(cls, value):
        return require_text(value)

    @field_validator("deadline")
    @classmethod
    def _check_deadline(cls, value):
        return normalize_deadline(value)

class SyncCalendarResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    event_id: str = Field(alias="eventId")

class DeleteEventRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    event_id: str = Field(alias="eventId", min_length=1)

class AuthorizationUrl(BaseModel):
    url: str
