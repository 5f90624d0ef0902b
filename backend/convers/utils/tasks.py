# /convers/utils/tasks.py

import asyncio
import logging
from typing import Awaitable, Set

logger = logging.getLogger(__name__)

# Detached tasks are kept referenced here until they finish, so the event
# loop cannot garbage-collect them mid-flight.
_background_tasks: Set[asyncio.Task] = set()


async def _run_guarded(coro: Awaitable, name: str):
    try:
        await coro
    except asyncio.CancelledError:
        raise
    except Exception:
        logger.error(f"Background task '{name}' failed.", exc_info=True)


def spawn_background(coro: Awaitable, name: str) -> asyncio.Task:
    """
    Run a coroutine as a fire-and-forget task with its own error boundary.
    Failures are logged and never propagate to the caller.
    """
    task = asyncio.create_task(_run_guarded(coro, name), name=name)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


async def drain_background_tasks(timeout: float | None = None):
    """Wait for the detached tasks that are currently in flight."""
    pending = list(_background_tasks)
    if not pending:
        return
    _, still_pending = await asyncio.wait(pending, timeout=timeout)
    for task in still_pending:
        task.cancel()


async def refresh_all_flows():
    """
    Periodic sweep: reload flows for every tenant with a configured endpoint.
    A failure for one tenant is logged and does not stop the others.
    """
    from convers.services.flow_store import flow_store
    from convers.services.tenant_service import tenant_registry

    tenants = tenant_registry.with_flows_endpoint()
    if not tenants:
        logger.debug("No tenants with a flows endpoint, skipping refresh.")
        return

    logger.info(f"--- Starting flow refresh for {len(tenants)} tenants ---")
    loaded = 0
    for config in tenants:
        try:
            if await flow_store.load_flows(config.tenant_id):
                loaded += 1
        except Exception:
            logger.error(f"Flow refresh failed for tenant {config.tenant_id}.", exc_info=True)
    logger.info(f"--- Flow refresh finished: {loaded}/{len(tenants)} tenants updated ---")
