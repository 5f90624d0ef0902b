# /convers/routes/tenants.py

import structlog
from fastapi import APIRouter, Depends, HTTPException

from convers.config.settings import settings
from convers.models.api import APIResponse, ConnectRequest, ConnectResponse, StatusResponse
from convers.services.flow_store import flow_store
from convers.services.session_service import session_manager
from convers.services.tenant_service import sanitize_tenant_id, tenant_registry
from convers.utils.dependencies import verify_api_key

# Control plane: register tenants, start their channel session, report status
# and force a flow reload.

router = APIRouter(
    prefix="/tenants",
    tags=["Tenants"],
    dependencies=[Depends(verify_api_key)]
)

log = structlog.get_logger(__name__)


@router.post("/connect", response_model=ConnectResponse)
async def connect_tenant(request: ConnectRequest):
    """Register or update a tenant's endpoints and start its channel session."""
    config = tenant_registry.register(
        request.tenant_id,
        callback_base_url=request.callback_base_url,
        flows_endpoint=request.flows_endpoint,
        phone_number_id=request.phone_number_id,
        token_env_key=request.token_env_key,
    )
    log.info("Tenant linked.", tenant_id=config.tenant_id)
    session_manager.start_session(config.tenant_id)
    return ConnectResponse(status="starting", tenant_id=config.tenant_id)


@router.get("/{tenant_id}/status", response_model=StatusResponse)
async def tenant_status(tenant_id: str):
    tenant_id = sanitize_tenant_id(tenant_id)
    config = tenant_registry.get(tenant_id)
    return StatusResponse(
        status=session_manager.status(tenant_id),
        tenant_id=tenant_id,
        last_load_at=config.last_load_at if config else None,
    )


@router.post("/{tenant_id}/flows/refresh", response_model=APIResponse)
async def refresh_tenant_flows(tenant_id: str):
    """Reload the tenant's flows now instead of waiting for the periodic sweep."""
    tenant_id = sanitize_tenant_id(tenant_id)
    if tenant_registry.get(tenant_id) is None:
        raise HTTPException(status_code=404, detail=f"Unknown tenant: {tenant_id}")

    loaded = await flow_store.load_flows(tenant_id)
    active = flow_store.get_active_flow(tenant_id)
    return APIResponse(
        success=loaded,
        message="Flows reloaded." if loaded else "Flow reload failed; previous flows kept.",
        data={
            "flow_count": len(flow_store.get_flows(tenant_id)),
            "active_flow_id": active.id if active else None,
        },
        version=settings.api_version,
    )
