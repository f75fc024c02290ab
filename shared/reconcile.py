import logging
from typing import Dict

from store.dual_schema_reader import DualSchemaReader

logger = logging.getLogger(__name__)


class UnreadReconciler:
    """
    naoLidas is a cache of "messages addressed to me that are still unread".
    This rebuilds it from the messages themselves, in whichever layout holds them.
    """

    def __init__(self, reader: DualSchemaReader):
        self.reader = reader
        self.store = reader.store

    async def count_unread(self, conversation_id: str, user_id: str) -> int:
        schema = await self.reader.conversation_exists(conversation_id)
        if schema is None:
            return 0
        repo = self.reader.repository_for(schema)
        return len(await repo.unread_for(conversation_id, user_id))

    async def reconcile_user(self, user_id: str) -> Dict[str, int]:
        index = await self.store.get_user_index(user_id)
        counts: Dict[str, int] = {}
        fixed = 0
        for conversation_id, entry in index.items():
            count = await self.count_unread(conversation_id, user_id)
            cached = entry.get("naoLidas") if isinstance(entry, dict) else None
            if cached != count:
                logger.info(
                    "[RECONCILE] %s/%s naoLidas %s -> %d", user_id, conversation_id, cached, count
                )
                await self.store.set_unread(user_id, conversation_id, count)
                fixed += 1
            counts[conversation_id] = count
        logger.info("[RECONCILE] user %s: %d conversations checked, %d fixed", user_id, len(counts), fixed)
        return counts
