# /convers/utils/rate_limiter.py

from fastapi import Request
from slowapi import Limiter

from convers.config.settings import settings

# Shared limiter instance; both main.py and the webhook routes import it from here.


def client_address(request: Request) -> str:
    """Rate-limit key: first hop of X-Forwarded-For when behind a proxy, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "127.0.0.1"


limiter = Limiter(
    key_func=client_address,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"]
)
