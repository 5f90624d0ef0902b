# /convers/services/session_service.py

import logging
from typing import Dict, Optional

from convers.config.settings import settings
from convers.services.flow_store import FlowStore, flow_store
from convers.services.tenant_service import TenantRegistry, tenant_registry
from convers.services.whatsapp_service import WhatsAppService
from convers.utils.tasks import spawn_background

# Channel sessions, one per tenant. A session is "ready" once the tenant has a
# sender phone id and an access token; becoming ready triggers a flow load.
# The conversation engine talks to the channel only through this manager.

logger = logging.getLogger(__name__)

STATUS_CONNECTED = "connected"
STATUS_DISCONNECTED = "disconnected"


class SessionManager:
    def __init__(self, registry: TenantRegistry, flows: FlowStore):
        self.registry = registry
        self.flows = flows
        self._sessions: Dict[str, WhatsAppService] = {}

    def start_session(self, tenant_id: str) -> bool:
        """Create the tenant's channel client if it is not running yet."""
        if tenant_id in self._sessions:
            logger.info(f"Session for tenant {tenant_id} is already running.")
            return True

        config = self.registry.get(tenant_id)
        if config is None:
            logger.error(f"Cannot start session for unknown tenant {tenant_id}")
            return False
        if not config.phone_number_id:
            logger.error(f"Cannot start session for tenant {tenant_id}: phone_number_id is not configured")
            return False
        token = settings.get_tenant_token(config.token_env_key)
        if not token:
            logger.error(f"Cannot start session for tenant {tenant_id}: missing WhatsApp access token")
            return False

        self._sessions[tenant_id] = WhatsAppService(token, config.phone_number_id)
        logger.info(f"Session ready for tenant {tenant_id}")
        self._on_ready(tenant_id)
        return True

    def _on_ready(self, tenant_id: str):
        config = self.registry.get(tenant_id)
        if config is not None and config.flows_endpoint:
            spawn_background(self.flows.load_flows(tenant_id), name=f"load-flows-{tenant_id}")

    def status(self, tenant_id: str) -> str:
        return STATUS_CONNECTED if tenant_id in self._sessions else STATUS_DISCONNECTED

    def is_available(self, tenant_id: str) -> bool:
        session = self._sessions.get(tenant_id)
        return session is not None and session.is_available

    async def send_message(self, tenant_id: str, party_id: str, text: str) -> Optional[str]:
        session = self._sessions.get(tenant_id)
        if session is None:
            logger.warning(f"No channel session for tenant {tenant_id}; message to {party_id} not sent.")
            return None
        return await session.send_message(party_id, text)

    async def stop_session(self, tenant_id: str):
        session = self._sessions.pop(tenant_id, None)
        if session is not None:
            await session.close()
            logger.info(f"Session stopped for tenant {tenant_id}")

    async def stop_all(self):
        for tenant_id in list(self._sessions):
            await self.stop_session(tenant_id)


# Globally accessible instance
session_manager = SessionManager(tenant_registry, flow_store)
