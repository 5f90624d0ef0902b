# /convers/services/lifecycle_hook.py

import httpx
import logging
from typing import Optional

from convers.config.settings import settings
from convers.models.conversation import utcnow
from convers.services.tenant_service import TenantRegistry, is_valid_http_url, tenant_registry

# Notifies the tenant's site that a new conversation started. Best effort:
# one attempt, errors are logged and never reach the reply path.

logger = logging.getLogger(__name__)


class LifecycleNotifier:
    def __init__(self, registry: TenantRegistry, http_client: Optional[httpx.AsyncClient] = None):
        self.registry = registry
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=settings.callback_timeout_seconds)
        return self._http_client

    def callback_url(self, tenant_id: str) -> Optional[str]:
        config = self.registry.get(tenant_id)
        if config is None or not config.callback_base_url:
            return None
        return config.callback_base_url.rstrip("/") + settings.conversation_started_path

    async def notify_conversation_started(self, tenant_id: str, party_id: str) -> bool:
        url = self.callback_url(tenant_id)
        if url is None:
            return False
        if not is_valid_http_url(url):
            logger.error(f"Invalid callback URL for tenant {tenant_id}: {url!r}")
            return False

        payload = {"party_id": party_id, "timestamp": utcnow().isoformat()}
        try:
            response = await self.http_client.post(url, json=payload, timeout=settings.callback_timeout_seconds)
        except httpx.InvalidURL as e:
            logger.error(f"Callback URL for tenant {tenant_id} rejected by the HTTP client: {e}")
            return False
        except httpx.HTTPError as e:
            logger.warning(f"Failed to register conversation start ({tenant_id} - {party_id}): {e!r}")
            return False

        if response.is_success:
            logger.info(f"Conversation start registered ({tenant_id} - {party_id})")
            return True
        logger.warning(f"Conversation start callback for {tenant_id} returned HTTP {response.status_code}")
        return False

    async def close(self):
        if self._http_client is not None:
            await self._http_client.aclose()


# Globally accessible instance
lifecycle_notifier = LifecycleNotifier(tenant_registry)
