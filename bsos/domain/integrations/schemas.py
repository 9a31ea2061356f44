"""Integration domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ...schemas import ApiCredentials


class IntegrationSettings(BaseModel):
    import_reservations: bool = True
    create_tasks: bool = True
    send_notifications: bool = True


class IntegrationRequest(BaseModel):
    """Body of POST /api/integrations"""

    action: str
    platform: Optional[str] = None
    credentials: ApiCredentials = Field(default_factory=ApiCredentials)
    name: Optional[str] = None
    sync_interval: Optional[int] = Field(default=None, ge=1)
    auto_sync: Optional[bool] = None
    settings: Optional[IntegrationSettings] = None


class IntegrationResponse(BaseModel):
    """Stored integration; credentials are never returned"""

    model_config = ConfigDict(from_attributes=True)

    id: int
    platform: str
    name: str
    status: str
    webhook_url: Optional[str] = None
    sync_interval: int
    auto_sync: bool
    settings: Optional[IntegrationSettings] = None
    last_sync: Optional[datetime] = None
    last_error: Optional[str] = None
