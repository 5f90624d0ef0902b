# /convers/main.py

import os
import time
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from convers.config.settings import settings
from convers.utils.lifecycle import lifespan
from convers.utils.metrics import response_time_histogram
from convers.utils.rate_limiter import limiter
from convers.routes import public, tenants, webhooks

app = FastAPI(
    title="Convers Flow WhatsApp Bot",
    version="1.0.0",
    description="Multi-tenant WhatsApp bot driven by remote flow definitions",
    lifespan=lifespan,
    openapi_url=f"/api/{settings.api_version}/openapi.json" if settings.environment != "production" else None,
    docs_url=f"/api/{settings.api_version}/docs" if settings.environment != "production" else None,
    redoc_url=None,
)

# --- Rate Limiting ---
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# --- Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_credentials="*" not in settings.cors_allowed_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-API-KEY"],
)
app.add_middleware(SlowAPIMiddleware)


@app.middleware("http")
async def performance_middleware(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    route = request.scope.get("route")
    response_time_histogram.labels(endpoint=getattr(route, "path", "unmatched")).observe(process_time)
    response.headers["X-Process-Time"] = str(process_time)
    return response

# --- API Routers ---
app.include_router(public.router)
app.include_router(tenants.router, prefix=f"/api/{settings.api_version}")
app.include_router(webhooks.router, prefix=f"/api/{settings.api_version}/webhooks")

# --- Main Entry Point for Uvicorn (for local development) ---
if __name__ == "__main__":
    port = int(os.getenv("PORT", "10000"))
    host = os.getenv("HOST", "127.0.0.1")

    # Conversation state lives in this process, so there is exactly one worker.
    uvicorn.run(
        "convers.main:app",
        host=host,
        port=port,
        reload=settings.environment == "development",
        workers=1,
    )
