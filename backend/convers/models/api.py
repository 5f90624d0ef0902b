# /convers/models/api.py

from pydantic import BaseModel, Field
from typing import Dict, Optional
from datetime import datetime, timezone

# Request and response bodies for the control-plane endpoints.


class ConnectRequest(BaseModel):
    tenant_id: str = Field(default="default", max_length=128)
    callback_base_url: Optional[str] = None
    flows_endpoint: Optional[str] = None
    phone_number_id: Optional[str] = Field(default=None, pattern=r"^\d+$")
    token_env_key: Optional[str] = None


class ConnectResponse(BaseModel):
    status: str
    tenant_id: str


class StatusResponse(BaseModel):
    status: str
    tenant_id: str
    last_load_at: Optional[datetime] = None


class APIResponse(BaseModel):
    success: bool
    message: str
    data: Optional[Dict] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    version: str
