# /convers/config/settings.py

import sys
import os
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TenantSeed(BaseModel):
    """
    Static tenant entry loaded from the environment at startup.
    Holds endpoint URLs and a reference to the env var with the access token.
    """
    callback_base_url: Optional[str] = None
    flows_endpoint: Optional[str] = None
    phone_number_id: Optional[str] = None
    token_env_key: Optional[str] = None  # Name of the env var holding the token (NOT the token itself)

    model_config = {"frozen": True}


class Settings(BaseSettings):
    # WhatsApp Cloud API
    whatsapp_api_base_url: str = "https://graph.facebook.com/v18.0"
    whatsapp_access_token: Optional[str] = None
    whatsapp_phone_id: Optional[str] = None
    whatsapp_verify_token: str = ""
    whatsapp_app_secret: Optional[str] = None

    # Multi-tenant registry seeded at startup (JSON in the environment)
    TENANT_REGISTRY: Dict[str, TenantSeed] = {}
    default_tenant_id: str = "default"
    default_callback_base_url: Optional[str] = None
    default_flows_endpoint: Optional[str] = None

    # Flow execution
    reset_keyword: str = "#reset"
    max_auto_forward_hops: int = Field(default=25, ge=1)
    conversation_started_path: str = "/wp-json/convers-ia/v1/start-conversation"

    # Remote calls
    remote_fetch_timeout_seconds: float = 8.0
    callback_timeout_seconds: float = 5.0
    send_timeout_seconds: float = 15.0

    # Scheduling
    flow_refresh_interval_seconds: int = Field(default=60, ge=5)
    scheduler_timezone: str = "UTC"

    # Inbound dedupe
    recent_message_cache_size: int = 5000

    # Security
    api_key: Optional[str] = None

    # Deployment
    environment: str = "production"
    api_version: str = "v1"
    rate_limit_per_minute: int = 100
    cors_allowed_origins: List[str] = ["*"]

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # ---------------- Validators ---------------- #

    @field_validator("cors_allowed_origins", mode="before")
    @classmethod
    def parse_cors_allowed_origins(cls, v):
        """Accept a comma-separated string as well as a list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("reset_keyword")
    @classmethod
    def normalize_reset_keyword(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("RESET_KEYWORD cannot be empty")
        return v

    @field_validator("conversation_started_path")
    @classmethod
    def path_must_start_with_slash(cls, v: str) -> str:
        return v if v.startswith("/") else "/" + v

    @model_validator(mode="after")
    def initialize_tenant_registry(self):
        if not self.TENANT_REGISTRY and self.whatsapp_phone_id:
            self.TENANT_REGISTRY[self.default_tenant_id] = TenantSeed(
                callback_base_url=self.default_callback_base_url,
                flows_endpoint=self.default_flows_endpoint,
                phone_number_id=self.whatsapp_phone_id,
                token_env_key="WHATSAPP_ACCESS_TOKEN",
            )
        return self

    def get_tenant_token(self, token_env_key: Optional[str]) -> Optional[str]:
        """Resolve a tenant's access token, falling back to the shared one."""
        if token_env_key:
            token = os.getenv(token_env_key)
            if token:
                return token
        return self.whatsapp_access_token


def validate_environment(settings_obj: Settings):
    try:
        if settings_obj.environment == "production":
            for var in ["whatsapp_verify_token", "whatsapp_app_secret"]:
                if not getattr(settings_obj, var):
                    raise ValueError(f"{var.upper()} is required in production")

        return settings_obj

    except Exception as e:
        print(f"--- [ERROR] Environment validation failed: {e}")
        sys.exit(1)


settings = Settings()
validate_environment(settings)
