from sqlmodel import SQLModel, Field, Relationship
from datetime import datetime
from typing import Optional
from uuid import uuid4

class Task(SQLModel, table=True):
    """Task model for todo items.

    ``deadline`` is stored as naive UTC. ``reminder_sent`` belongs to the
    current deadline instance and is reset whenever the deadline moves.
    """
    __tablename__ = "tasks"

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    text: str
    completed: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
    priority: int = Field(default=4)
    project: Optional[str] = None
    deadline: Optional[datetime] = Field(default=None, index=True)
    recurrence: Optional[str] = None
    calendar_event_id: Optional[str] = None
    reminder_sent: bool = Field(default=False)
    user_id: str = Field(foreign_key="users.id", index=True)

    # Relationship back to user
    user: Optional["User"] = Relationship(back_populates="tasks")
