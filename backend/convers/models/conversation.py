# /convers/models/conversation.py

from datetime import datetime, timezone
from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Conversation(BaseModel):
    """
    Ephemeral position of one party inside a tenant's active flow.
    Lives only in process memory; a restart sends every party back to the entry block.
    """
    tenant_id: str = Field(..., description="Tenant identifier")
    party_id: str = Field(..., description="Remote party address (phone number)")
    current_block_id: str = Field(..., description="Block the party is positioned at")
    created_at: datetime = Field(default_factory=utcnow, description="When the conversation started")
    updated_at: datetime = Field(default_factory=utcnow, description="Last transition timestamp")
