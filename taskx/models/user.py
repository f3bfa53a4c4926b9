from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field, Relationship
from datetime import datetime
from typing import Optional, List
from uuid import uuid4
import enum

class NotificationType(str, enum.Enum):
    EMAIL = "email"
    MOBILE = "mobile"
    BOTH = "both"

    @property
    def wants_email(self) -> bool:
        return self in (NotificationType.EMAIL, NotificationType.BOTH)

    @property
    def wants_sms(self) -> bool:
        return self in (NotificationType.MOBILE, NotificationType.BOTH)

class User(SQLModel, table=True):
    """User profile: credentials, reminder preferences and calendar link."""
    __tablename__ = "users"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    email: str = Field(unique=True, index=True)
    hashed_password: str
    username: Optional[str] = None
    display_name: Optional[str] = None
    phone_number: Optional[str] = None
    notification_type: NotificationType = Field(default=NotificationType.EMAIL)
    # Google OAuth bundle: access_token, refresh_token, scope, token_type, expiry_date (ms)
    google_tokens: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    google_calendar_id: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationship to tasks
    tasks: List["Task"] = Relationship(back_populates="user")

    @property
    def calendar_connected(self) -> bool:
        return bool(self.google_tokens) and bool(self.google_calendar_id)
