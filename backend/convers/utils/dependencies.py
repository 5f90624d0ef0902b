# /convers/utils/dependencies.py

import hmac
import hashlib
import secrets
import structlog
from fastapi import Request, HTTPException

from convers.config.settings import settings
from convers.utils.metrics import webhook_signature_counter

log = structlog.get_logger(__name__)


def is_valid_signature(body: bytes, signature: str, app_secret: str) -> bool:
    """Check a Meta `X-Hub-Signature-256` header (sha256=<hex hmac of the raw body>)."""
    if not signature or not signature.startswith("sha256="):
        return False
    expected = hmac.new(app_secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature[len("sha256="):])


async def verify_webhook_signature(request: Request) -> bytes:
    body = await request.body()
    if not settings.whatsapp_app_secret:
        log.warning("WHATSAPP_APP_SECRET not set; webhook signature not verified.")
        return body
    signature = request.headers.get("x-hub-signature-256", "")
    if not is_valid_signature(body, signature, settings.whatsapp_app_secret):
        webhook_signature_counter.labels(status="invalid").inc()
        log.error("Invalid webhook signature.", signature=signature[:50])
        raise HTTPException(status_code=403, detail="Invalid signature")
    webhook_signature_counter.labels(status="valid").inc()
    return body


async def verify_api_key(request: Request):
    """Guards control-plane and metrics endpoints when an API key is configured."""
    if settings.api_key:
        provided_key = request.headers.get("X-API-KEY")
        if not (provided_key and secrets.compare_digest(provided_key, settings.api_key)):
            raise HTTPException(status_code=403, detail="Invalid or missing API key")
