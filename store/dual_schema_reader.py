from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from models.conversation import Message
from shared.config import DEFAULT_PAGE_SIZE
from store.conversation_store import ConversationStore
from store.message_repository import LegacyPairRepository, MessageRepository

logger = logging.getLogger(__name__)


class DualSchemaReader:
    """
    Reads conversations regardless of which message layout holds them.
    The subcollection layout is tried first; the legacy per-pair layout only on a miss.
    Callers get canonical Message objects and can't tell which layout produced them.
    """

    def __init__(self, store: ConversationStore, legacy: Optional[MessageRepository] = None):
        self.store = store
        self.current = store.messages
        self.legacy = legacy or LegacyPairRepository(store.db)

    @property
    def repositories(self) -> List[MessageRepository]:
        return [self.current, self.legacy]

    async def resolve_messages(
        self, conversation_id: str, limit: int = DEFAULT_PAGE_SIZE, before: Optional[datetime] = None
    ) -> List[Message]:
        for repo in self.repositories:
            messages = [m async for m in repo.list_messages(conversation_id, limit, before)]
            if messages:
                if repo.schema != self.current.schema:
                    logger.info("[LEGACY] Served %d messages for %s from legacy layout", len(messages), conversation_id)
                return messages
        # neither layout has data: same as "no messages yet"
        logger.debug("[CONV] No messages in any layout for %s", conversation_id)
        return []

    async def conversation_exists(self, conversation_id: str) -> Optional[str]:
        """'new' if the conversation document exists, 'legacy' if only old messages exist, else None."""
        if await self.store.get_conversation(conversation_id) is not None:
            return self.current.schema
        if await self.legacy.has_messages(conversation_id):
            return self.legacy.schema
        return None

    def repository_for(self, schema: str) -> MessageRepository:
        for repo in self.repositories:
            if repo.schema == schema:
                return repo
        raise KeyError(schema)

    async def resolve_participant_membership(self, conversation_id: str, user_id: str) -> bool:
        conversation = await self.store.get_conversation(conversation_id)
        if conversation is not None and user_id in conversation.participants:
            return True
        # conversations created before the participants array existed
        index = await self.store.get_user_index(user_id)
        return conversation_id in index
