# /convers/services/flow_store.py

import json
import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from convers.config.settings import settings
from convers.models.flow import Flow, is_truthy_flag
from convers.services.tenant_service import TenantRegistry, is_valid_http_url, tenant_registry
from convers.utils.metrics import flow_loads_counter

# This service keeps each tenant's active flow definitions in memory and
# refreshes them from the tenant's remote flow source. Refreshing is best
# effort: a failed or malformed load never replaces a working flow set.

logger = logging.getLogger(__name__)


class FlowStore:
    def __init__(self, registry: TenantRegistry, http_client: Optional[httpx.AsyncClient] = None):
        self.registry = registry
        self._http_client = http_client
        self._flows: Dict[str, List[Flow]] = {}

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=settings.remote_fetch_timeout_seconds)
        return self._http_client

    async def _fetch_json(self, url: str) -> Any:
        """GET a URL and decode it as JSON, returning the raw text when it is not JSON."""
        response = await self.http_client.get(url, timeout=settings.remote_fetch_timeout_seconds)
        response.raise_for_status()
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return response.text

    async def load_flows(self, tenant_id: str) -> bool:
        """
        Fetch the tenant's flow list and swap in the active ones.
        Returns True only when a new flow set was applied.
        """
        config = self.registry.get(tenant_id)
        if config is None or not config.flows_endpoint:
            logger.info(f"No flows endpoint configured for tenant {tenant_id}, skipping load.")
            flow_loads_counter.labels(status="skipped").inc()
            return False

        endpoint = config.flows_endpoint
        if not is_valid_http_url(endpoint):
            logger.error(f"Invalid flows endpoint for tenant {tenant_id}: {endpoint!r}")
            flow_loads_counter.labels(status="config_error").inc()
            return False

        try:
            payload = await self._fetch_json(endpoint)
        except httpx.InvalidURL as e:
            logger.error(f"Flows endpoint for tenant {tenant_id} rejected by the HTTP client: {e}")
            flow_loads_counter.labels(status="config_error").inc()
            return False
        except httpx.HTTPError as e:
            logger.warning(f"Failed to fetch flows for tenant {tenant_id}: {e!r}")
            flow_loads_counter.labels(status="fetch_error").inc()
            return False

        if not isinstance(payload, list):
            logger.error(f"Invalid flows response for tenant {tenant_id}: expected a list, got {type(payload).__name__}")
            flow_loads_counter.labels(status="invalid").inc()
            return False

        flows = self._parse_active_flows(tenant_id, payload)
        self.set_flows(tenant_id, flows)
        self.registry.mark_loaded(tenant_id)
        flow_loads_counter.labels(status="success").inc()
        logger.info(f"Loaded {len(flows)} active flows for tenant {tenant_id}.")
        return True

    def _parse_active_flows(self, tenant_id: str, payload: List[Any]) -> List[Flow]:
        flows = []
        for raw in payload:
            if not isinstance(raw, dict):
                continue
            if not is_truthy_flag(raw.get("is_active")) or not raw.get("flow_data"):
                continue
            try:
                flows.append(Flow.model_validate(raw))
            except ValidationError as e:
                logger.warning(f"Skipping invalid flow {raw.get('id')!r} for tenant {tenant_id}: {e.error_count()} errors")
        return flows

    def set_flows(self, tenant_id: str, flows: List[Flow]):
        # Single assignment; readers see either the old list or the new one.
        self._flows[tenant_id] = list(flows)

    def get_flows(self, tenant_id: str) -> List[Flow]:
        return self._flows.get(tenant_id, [])

    def get_active_flow(self, tenant_id: str) -> Optional[Flow]:
        """First active flow with at least one block; other active flows are ignored."""
        for flow in self._flows.get(tenant_id, []):
            if flow.is_active and flow.blocks:
                return flow
        return None

    def clear(self):
        self._flows.clear()

    async def close(self):
        if self._http_client is not None:
            await self._http_client.aclose()


# Globally accessible instance
flow_store = FlowStore(tenant_registry)
