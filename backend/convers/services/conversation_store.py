# /convers/services/conversation_store.py

import logging
from typing import Dict, Optional

from convers.models.conversation import Conversation, utcnow

# In-memory conversation positions, keyed by tenant first and party second.
# Callers serialize access per (tenant, party) through the message queue.

logger = logging.getLogger(__name__)


class ConversationStore:
    def __init__(self):
        self._conversations: Dict[str, Dict[str, Conversation]] = {}

    def get(self, tenant_id: str, party_id: str) -> Optional[Conversation]:
        return self._conversations.get(tenant_id, {}).get(party_id)

    def create(self, tenant_id: str, party_id: str, block_id: str) -> Conversation:
        conversation = Conversation(tenant_id=tenant_id, party_id=party_id, current_block_id=block_id)
        self._conversations.setdefault(tenant_id, {})[party_id] = conversation
        logger.info(f"Conversation created for {party_id} (tenant={tenant_id}) at block {block_id}")
        return conversation

    def move_to(self, tenant_id: str, party_id: str, block_id: str) -> Optional[Conversation]:
        """Point an existing conversation at a new block. Returns None if there is none."""
        conversation = self.get(tenant_id, party_id)
        if conversation is None:
            return None
        conversation.current_block_id = block_id
        conversation.updated_at = utcnow()
        return conversation

    def delete(self, tenant_id: str, party_id: str) -> bool:
        tenant_conversations = self._conversations.get(tenant_id)
        if not tenant_conversations or party_id not in tenant_conversations:
            return False
        del tenant_conversations[party_id]
        if not tenant_conversations:
            del self._conversations[tenant_id]
        return True

    def count(self, tenant_id: Optional[str] = None) -> int:
        if tenant_id is not None:
            return len(self._conversations.get(tenant_id, {}))
        return sum(len(parties) for parties in self._conversations.values())

    def clear(self):
        self._conversations.clear()


# Globally accessible instance
conversation_store = ConversationStore()
