# /convers/utils/lifecycle.py

import logging
from contextlib import asynccontextmanager
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI

from convers.config.settings import settings
from convers.services.conversation_service import conversation_service
from convers.services.flow_store import flow_store
from convers.services.lifecycle_hook import lifecycle_notifier
from convers.services.session_service import session_manager
from convers.services.tenant_service import tenant_registry
from convers.utils.logging import setup_logging
from convers.utils.queue import message_queue
from convers.utils.tasks import drain_background_tasks, refresh_all_flows

# Application lifespan: wires the message queue to the conversation engine,
# starts tenant sessions and the periodic flow refresh, and tears it all down.

logger = logging.getLogger(__name__)


def create_scheduler() -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler(timezone=settings.scheduler_timezone)
    scheduler.add_job(
        refresh_all_flows,
        'interval',
        seconds=settings.flow_refresh_interval_seconds,
        id="refresh_all_flows_job",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    return scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    setup_logging()
    logger.info("Application starting up...")

    message_queue.set_handler(conversation_service.handle_message)
    message_queue.start()

    tenant_registry.load_from_settings()
    for config in tenant_registry.all():
        session_manager.start_session(config.tenant_id)

    scheduler = create_scheduler()
    scheduler.start()
    logger.info(f"Scheduled job: refresh_all_flows (every {settings.flow_refresh_interval_seconds}s).")

    logger.info("Application startup complete. Ready to accept requests.")

    yield  # Application is now running

    logger.info("Application shutting down...")

    scheduler.shutdown(wait=False)
    await message_queue.stop_workers()
    await drain_background_tasks(timeout=5.0)
    await session_manager.stop_all()
    await flow_store.close()
    await lifecycle_notifier.close()
