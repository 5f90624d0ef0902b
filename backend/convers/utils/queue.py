# /convers/utils/queue.py

import asyncio
import logging
from collections import OrderedDict
from typing import Awaitable, Callable, Dict, Optional, Tuple

from convers.config.settings import settings

# Per-party message dispatch. Every (tenant, party) key gets its own FIFO and
# at most one worker task, so a party's messages are handled one at a time in
# arrival order while other parties proceed concurrently.

logger = logging.getLogger(__name__)

PartyKey = Tuple[str, str]
MessageHandler = Callable[[str, str, str], Awaitable[None]]


class PartyMessageQueue:
    def __init__(self, handler: Optional[MessageHandler] = None, recent_cache_size: int = 5000):
        self.handler = handler
        self.recent_cache_size = recent_cache_size
        self._queues: Dict[PartyKey, asyncio.Queue] = {}
        self._workers: Dict[PartyKey, asyncio.Task] = {}
        self._recent_ids: "OrderedDict[str, None]" = OrderedDict()
        self.running = True

    def set_handler(self, handler: MessageHandler):
        self.handler = handler

    def is_duplicate_message(self, tenant_id: str, message_id: Optional[str]) -> bool:
        """Remembers recent message ids so webhook retries are processed once."""
        if not message_id:
            return False
        key = f"{tenant_id}:{message_id}"
        if key in self._recent_ids:
            return True
        self._recent_ids[key] = None
        if len(self._recent_ids) > self.recent_cache_size:
            self._recent_ids.popitem(last=False)
        return False

    async def add_message(self, tenant_id: str, party_id: str, body: str):
        """Enqueue a message and make sure a worker is draining that party's queue."""
        if not self.running:
            logger.warning(f"Queue stopped, dropping message from {party_id} (tenant={tenant_id})")
            return
        key = (tenant_id, party_id)
        queue = self._queues.get(key)
        if queue is None:
            queue = self._queues[key] = asyncio.Queue()
        queue.put_nowait(body)
        if key not in self._workers:
            self._workers[key] = asyncio.create_task(self._worker(key), name=f"party-{tenant_id}-{party_id}")

    async def _worker(self, key: PartyKey):
        tenant_id, party_id = key
        queue = self._queues[key]
        try:
            while not queue.empty():
                body = queue.get_nowait()
                try:
                    await self.handler(tenant_id, party_id, body)
                except Exception as e:
                    logger.error(f"Error handling message from {party_id} (tenant={tenant_id}): {e}", exc_info=True)
                finally:
                    queue.task_done()
        finally:
            # No await between the last empty() check and here, so no message can slip in unseen.
            self._workers.pop(key, None)
            if queue.empty():
                self._queues.pop(key, None)

    async def wait_idle(self):
        """Wait until every party queue has drained."""
        while self._workers:
            await asyncio.gather(*list(self._workers.values()), return_exceptions=True)

    def start(self):
        self.running = True

    async def stop_workers(self):
        self.running = False
        workers = list(self._workers.values())
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        self._workers.clear()
        self._queues.clear()

    @property
    def active_parties(self) -> int:
        return len(self._workers)


# Globally accessible instance; the handler is wired in at startup.
message_queue = PartyMessageQueue(recent_cache_size=settings.recent_message_cache_size)
