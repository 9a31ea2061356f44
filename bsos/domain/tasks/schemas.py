"""Task domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from ...models import TASK_STATUSES


class TaskStatusUpdate(BaseModel):
    """Body of PATCH /api/tasks/{id}/status"""

    status: str
    cleaner_id: Optional[str] = None
    cleaner_name: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v not in TASK_STATUSES:
            raise ValueError(f"Invalid status. Must be one of: {', '.join(TASK_STATUSES)}")
        return v


class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    property_id: str
    reservation_id: Optional[str] = None
    type: str
    title: str
    description: Optional[str] = None
    scheduled_date: date
    scheduled_time: Optional[str] = None
    estimated_duration: int
    actual_duration: Optional[int] = None
    assigned_cleaner_id: Optional[str] = None
    assigned_cleaner_name: Optional[str] = None
    external_id: Optional[str] = None
    status: str
    priority: str
    checklist: list[dict[str, Any]] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
