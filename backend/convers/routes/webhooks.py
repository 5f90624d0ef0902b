# /convers/routes/webhooks.py

import json
import structlog
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, HTTPException, Request, Query
from fastapi.responses import JSONResponse, PlainTextResponse

from convers.config.settings import settings
from convers.services.tenant_service import tenant_registry
from convers.utils.dependencies import verify_webhook_signature
from convers.utils.metrics import response_time_histogram
from convers.utils.queue import message_queue
from convers.utils.rate_limiter import limiter

# Inbound WhatsApp Cloud API events. Each user message is routed to its tenant
# by the receiving phone number id and queued for per-party processing.

router = APIRouter(
    tags=["Webhooks"]
)

log = structlog.get_logger(__name__)


def extract_message_text(message: Dict[str, Any]) -> Optional[str]:
    """Text of a user message; button and list replies use their visible title."""
    message_type = message.get("type")
    if message_type == "text":
        return (message.get("text") or {}).get("body")
    if message_type == "button":
        return (message.get("button") or {}).get("text")
    if message_type == "interactive":
        interactive = message.get("interactive") or {}
        reply = interactive.get("button_reply") or interactive.get("list_reply") or {}
        return reply.get("title")
    return None


@router.get("/whatsapp")
async def verify_whatsapp_webhook(
    hub_mode: str = Query(None, alias="hub.mode"),
    hub_verify_token: str = Query(None, alias="hub.verify_token"),
    hub_challenge: str = Query(None, alias="hub.challenge")
):
    """WhatsApp webhook verification (GET request)."""
    if hub_mode == "subscribe" and settings.whatsapp_verify_token and hub_verify_token == settings.whatsapp_verify_token:
        log.info("WhatsApp webhook verification successful.")
        return PlainTextResponse(hub_challenge)
    log.error("WhatsApp webhook verification failed.")
    raise HTTPException(status_code=403, detail="Forbidden")


@router.post("/whatsapp")
@limiter.limit(f"{settings.rate_limit_per_minute}/minute")
async def handle_whatsapp_webhook(
    request: Request,
    verified_body: bytes = Depends(verify_webhook_signature)
):
    """Queue every inbound user message; status callbacks are acknowledged and ignored."""
    with response_time_histogram.labels(endpoint="whatsapp_webhook").time():
        try:
            data = json.loads(verified_body.decode())
        except (UnicodeDecodeError, json.JSONDecodeError):
            raise HTTPException(status_code=400, detail="Invalid JSON body")

        queued = 0
        for entry in data.get("entry", []):
            for change in entry.get("changes", []):
                if change.get("field") != "messages":
                    continue
                value = change.get("value", {})

                phone_number_id = (value.get("metadata") or {}).get("phone_number_id")
                tenant = tenant_registry.find_by_phone_number_id(phone_number_id)
                if tenant is None:
                    log.info("Ignored event for unknown phone number id.", phone_number_id=phone_number_id)
                    continue

                for message in value.get("messages", []):
                    party_id = message.get("from")
                    message_text = extract_message_text(message)
                    if not party_id or message_text is None:
                        log.debug("Ignoring non-text message", message_type=message.get("type"))
                        continue
                    if message_queue.is_duplicate_message(tenant.tenant_id, message.get("id")):
                        log.info("Duplicate message ignored.", wamid=message.get("id"))
                        continue
                    log.info("Incoming message", tenant_id=tenant.tenant_id, party_id=party_id)
                    await message_queue.add_message(tenant.tenant_id, party_id, message_text)
                    queued += 1

        return JSONResponse({"status": "success", "queued": queued})
