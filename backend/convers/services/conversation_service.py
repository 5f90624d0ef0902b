# /convers/services/conversation_service.py

import logging
from typing import Optional

from convers.config import strings
from convers.config.settings import settings
from convers.models.flow import BaseBlock
from convers.services.conversation_store import ConversationStore, conversation_store
from convers.services.flow_store import FlowStore, flow_store
from convers.services.lifecycle_hook import LifecycleNotifier, lifecycle_notifier
from convers.services.session_service import session_manager
from convers.utils.metrics import inbound_messages_counter
from convers.utils.tasks import spawn_background
from convers.workflows.engine import is_reset_command, match_transition
from convers.workflows.forwarder import AutoForwardRunner, ChannelGateway
from convers.workflows.resolver import resolve_block, resolve_entry_block

# The conversation state machine. One call handles one inbound message for one
# party; callers must serialize calls per (tenant, party), which the message
# queue does.

logger = logging.getLogger(__name__)


class ConversationService:
    def __init__(
        self,
        flows: FlowStore,
        conversations: ConversationStore,
        channel: ChannelGateway,
        notifier: LifecycleNotifier,
        reset_keyword: str = settings.reset_keyword,
        max_auto_forward_hops: int = settings.max_auto_forward_hops,
    ):
        self.flows = flows
        self.conversations = conversations
        self.channel = channel
        self.notifier = notifier
        self.reset_keyword = reset_keyword
        self.forwarder = AutoForwardRunner(conversations, channel, max_hops=max_auto_forward_hops)

    async def handle_message(self, tenant_id: str, party_id: str, body: Optional[str]) -> str:
        """
        Advance the party's conversation by one inbound message.

        Rules, in order:
        1. reset keyword: drop state, acknowledge, stop
        2. tenant has no active flow: stay silent
        3. no state yet: start at the entry block and auto-forward
        4. position no longer in the flow: drop state silently
        5-8. follow the matching edge, or ask for clarification

        Returns a short outcome label (used for metrics and tests).
        """
        outcome = await self._handle(tenant_id, party_id, body)
        inbound_messages_counter.labels(outcome=outcome).inc()
        return outcome

    async def _handle(self, tenant_id: str, party_id: str, body: Optional[str]) -> str:
        if is_reset_command(body, self.reset_keyword):
            self.conversations.delete(tenant_id, party_id)
            logger.info(f"Conversation reset by {party_id} (tenant={tenant_id})")
            await self._send(tenant_id, party_id, strings.RESET_ACKNOWLEDGED)
            return "reset"

        flow = self.flows.get_active_flow(tenant_id)
        if flow is None:
            logger.debug(f"No active flow for tenant {tenant_id}; ignoring message from {party_id}")
            return "no_flow"
        blocks = flow.blocks

        conversation = self.conversations.get(tenant_id, party_id)
        if conversation is None:
            entry = resolve_entry_block(blocks)
            self.conversations.create(tenant_id, party_id, entry.id)
            await self._send(tenant_id, party_id, entry.opening_text)
            spawn_background(
                self.notifier.notify_conversation_started(tenant_id, party_id),
                name=f"conversation-started-{tenant_id}",
            )
            await self.forwarder.run(tenant_id, party_id, entry, blocks)
            return "started"

        current = resolve_block(blocks, conversation.current_block_id)
        if current is None:
            logger.info(
                f"Stale position {conversation.current_block_id!r} for {party_id} (tenant={tenant_id}); state cleared."
            )
            self.conversations.delete(tenant_id, party_id)
            return "stale"

        result = match_transition(current, body)
        if result["clarification"]:
            await self._send(tenant_id, party_id, result["clarification"])
            return "clarification"

        target = resolve_block(blocks, result["target_id"])
        if target is None:
            return "dead_end"

        await self._transition(tenant_id, party_id, target, blocks)
        return "advanced"

    async def _transition(self, tenant_id: str, party_id: str, target: BaseBlock, blocks):
        self.conversations.move_to(tenant_id, party_id, target.id)
        await self._send(tenant_id, party_id, target.reply_text)
        await self.forwarder.run(tenant_id, party_id, target, blocks)

    async def _send(self, tenant_id: str, party_id: str, text: str):
        if not text:
            return
        message_id = await self.channel.send_message(tenant_id, party_id, text)
        if message_id is None:
            logger.warning(f"Reply to {party_id} (tenant={tenant_id}) was not delivered.")


# Globally accessible instance
conversation_service = ConversationService(flow_store, conversation_store, session_manager, lifecycle_notifier)
