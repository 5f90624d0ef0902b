# /convers/services/tenant_service.py

import re
import logging
import unicodedata
from typing import Dict, List, Optional
from urllib.parse import urlparse

from convers.config.settings import settings
from convers.models.config import TenantConfig
from convers.models.conversation import utcnow

# Registry of tenant configurations. The control plane writes here; the flow
# engine, flow store and lifecycle hook only read.

logger = logging.getLogger(__name__)

_UNSAFE_ID_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def sanitize_tenant_id(raw_id: Optional[str]) -> str:
    """Strip accents and replace anything outside [a-zA-Z0-9_-] with '_'."""
    if not raw_id:
        raw_id = "default"
    decomposed = unicodedata.normalize("NFD", str(raw_id))
    without_marks = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return _UNSAFE_ID_CHARS.sub("_", without_marks)


def is_valid_http_url(value: Optional[str]) -> bool:
    if not value:
        return False
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class TenantRegistry:
    def __init__(self):
        self._tenants: Dict[str, TenantConfig] = {}

    def register(
        self,
        tenant_id: str,
        callback_base_url: Optional[str] = None,
        flows_endpoint: Optional[str] = None,
        phone_number_id: Optional[str] = None,
        token_env_key: Optional[str] = None,
    ) -> TenantConfig:
        """
        Create or update a tenant. Omitted values keep what was registered before,
        so a partial reconnect never drops a working endpoint.
        """
        tenant_id = sanitize_tenant_id(tenant_id)
        previous = self._tenants.get(tenant_id)

        config = TenantConfig(
            tenant_id=tenant_id,
            callback_base_url=callback_base_url or (previous.callback_base_url if previous else None),
            flows_endpoint=flows_endpoint or (previous.flows_endpoint if previous else None),
            phone_number_id=phone_number_id or (previous.phone_number_id if previous else None),
            token_env_key=token_env_key or (previous.token_env_key if previous else None),
            last_load_at=None,
        )
        self._tenants[tenant_id] = config
        logger.info(f"Tenant registered: {tenant_id}")
        return config

    def get(self, tenant_id: str) -> Optional[TenantConfig]:
        return self._tenants.get(tenant_id)

    def all(self) -> List[TenantConfig]:
        return list(self._tenants.values())

    def with_flows_endpoint(self) -> List[TenantConfig]:
        return [config for config in self._tenants.values() if config.flows_endpoint]

    def find_by_phone_number_id(self, phone_number_id: Optional[str]) -> Optional[TenantConfig]:
        if not phone_number_id:
            return None
        for config in self._tenants.values():
            if config.phone_number_id == phone_number_id:
                return config
        return None

    def mark_loaded(self, tenant_id: str):
        config = self._tenants.get(tenant_id)
        if config is not None:
            self._tenants[tenant_id] = config.model_copy(update={"last_load_at": utcnow()})

    def load_from_settings(self):
        """Seed the registry from TENANT_REGISTRY in the environment."""
        for tenant_id, seed in settings.TENANT_REGISTRY.items():
            self.register(
                tenant_id,
                callback_base_url=seed.callback_base_url,
                flows_endpoint=seed.flows_endpoint,
                phone_number_id=seed.phone_number_id,
                token_env_key=seed.token_env_key,
            )
        logger.info(f"Seeded {len(settings.TENANT_REGISTRY)} tenants from settings.")

    def clear(self):
        self._tenants.clear()


# Globally accessible instance
tenant_registry = TenantRegistry()
