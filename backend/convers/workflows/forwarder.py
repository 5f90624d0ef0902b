# /convers/workflows/forwarder.py

import logging
from typing import Optional, Protocol, Sequence

from convers.models.flow import BaseBlock, MessageBlock
from convers.services.conversation_store import ConversationStore
from convers.utils.metrics import auto_forward_hops_histogram
from convers.workflows.resolver import resolve_block

logger = logging.getLogger(__name__)


class ChannelGateway(Protocol):
    """Outbound side of the messaging channel as seen by the flow engine."""

    def is_available(self, tenant_id: str) -> bool: ...

    async def send_message(self, tenant_id: str, party_id: str, text: str) -> Optional[str]: ...


class AutoForwardRunner:
    """
    Plays chains of `message` blocks without waiting for input.

    Starting from a block that was just reached (and already sent), each
    `message` block whose `next` resolves moves the conversation one block
    forward and sends that block's content. The walk ends on the first
    interactive block, a dead end, an unavailable channel, a block already
    visited in this run, or after `max_hops` blocks.
    """

    def __init__(self, conversations: ConversationStore, channel: ChannelGateway, max_hops: int = 25):
        self.conversations = conversations
        self.channel = channel
        self.max_hops = max_hops

    async def run(self, tenant_id: str, party_id: str, start: BaseBlock, blocks: Sequence[BaseBlock]) -> int:
        """Returns the number of blocks forwarded to."""
        current = start
        visited = {start.id}
        hops = 0

        while isinstance(current, MessageBlock) and current.next:
            following = resolve_block(blocks, current.next)
            if following is None:
                break
            if following.id in visited:
                logger.warning(f"Auto-forward cycle at block {following.id} (tenant={tenant_id}); stopping.")
                break
            if hops >= self.max_hops:
                logger.warning(f"Auto-forward hop limit {self.max_hops} reached (tenant={tenant_id}); stopping.")
                break
            if not self.channel.is_available(tenant_id):
                logger.info(f"Channel unavailable for tenant {tenant_id}; auto-forward aborted.")
                break

            self.conversations.move_to(tenant_id, party_id, following.id)
            if following.reply_text:
                await self.channel.send_message(tenant_id, party_id, following.reply_text)
            visited.add(following.id)
            current = following
            hops += 1

        auto_forward_hops_histogram.observe(hops)
        return hops
