# /convers/models/config.py

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class TenantConfig(BaseModel):
    """
    Per-tenant configuration as registered by the control plane.
    Read-only from the flow engine's point of view.
    """
    tenant_id: str = Field(..., description="Sanitized tenant identifier")
    callback_base_url: Optional[str] = Field(default=None, description="Base URL for lifecycle callbacks")
    flows_endpoint: Optional[str] = Field(default=None, description="Remote endpoint serving the flow list")
    phone_number_id: Optional[str] = Field(default=None, description="WhatsApp Cloud API sender id")
    token_env_key: Optional[str] = Field(default=None, description="Env var holding the access token")
    last_load_at: Optional[datetime] = Field(default=None, description="Last successful flow load")
