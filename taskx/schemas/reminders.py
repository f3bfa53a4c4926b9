from pydantic import BaseModel, ConfigDict, Field
from typing import List

class ReminderFailure(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    task_id: str = Field(alias="taskId")
    reason: str

class ReminderDetails(BaseModel):
    successful: List[str] = Field(default_factory=list)
    failed: List[ReminderFailure] = Field(default_factory=list)

class ReminderSummary(BaseModel):
    """Outcome of one reminder dispatcher run."""
    success: bool = True
    message: str = ""
    details: ReminderDetails = Field(default_factory=ReminderDetails)
