from pydantic import BaseModel, Field, computed_field
from typing import Optional
from datetime import datetime

from ..models.user import NotificationType

class UserBase(BaseModel):
    email: str

class UserCreate(UserBase):
    password: str

class User(UserBase):
    id: str
    username: Optional[str] = None
    display_name: Optional[str] = None
    phone_number: Optional[str] = None
    notification_type: NotificationType = NotificationType.EMAIL
    created_at: datetime
    updated_at: datetime
    # Read to derive calendar_connected, never sent to the client.
    google_tokens: Optional[dict] = Field(default=None, exclude=True)
    google_calendar_id: Optional[str] = Field(default=None, exclude=True)

    @computed_field
    @property
    def calendar_connected(self) -> bool:
        return bool(self.google_tokens) and bool(self.google_calendar_id)

    class Config:
        from_attributes = True

class UserUpdate(BaseModel):
    """Notification settings and display names; other profile fields are not editable here."""
    username: Optional[str] = None
    display_name: Optional[str] = None
    phone_number: Optional[str] = Field(default=None, pattern=r"^\+[1-9]\d{6,14}$")
    notification_type: Optional[NotificationType] = None

class TokenData(BaseModel):
    user_id: Optional[str] = None

class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: User
