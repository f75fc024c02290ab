from __future__ import annotations

import logging

from models.conversation import ReadReceipt
from shared.addressing import split_conversation_id
from shared.errors import InvalidParticipants
from shared.time import utcnow
from store.dual_schema_reader import DualSchemaReader

logger = logging.getLogger(__name__)

# Firestore caps a batch at 500 writes; keep room for the counter reset
MAX_BATCH_WRITES = 450


class ReadReceiptEngine:
    """
    Moves messages addressed to a user from unread to read and zeroes that user's
    unread counter. There is no read -> unread transition; calling twice is safe.
    """

    def __init__(self, reader: DualSchemaReader):
        self.reader = reader
        self.store = reader.store

    async def mark_conversation_read(self, conversation_id: str, user_id: str) -> ReadReceipt:
        now = utcnow()
        if not conversation_id or not user_id:
            logger.info("[READ] Invalid parameters: conversation=%r user=%r", conversation_id, user_id)
            return ReadReceipt(count=0, updatedAt=now)

        schema = await self.reader.conversation_exists(conversation_id)
        if schema is None:
            await self._create_placeholder(conversation_id)
            return ReadReceipt(count=0, updatedAt=now)

        repo = self.reader.repository_for(schema)
        unread = await repo.unread_for(conversation_id, user_id)

        batch = self.store.db.batch()
        fields = repo.read_fields(now)
        pending = 0
        for snap in unread:
            batch.update(snap.reference, fields)
            pending += 1
            if pending == MAX_BATCH_WRITES:
                await batch.commit()
                batch = self.store.db.batch()
                pending = 0

        try:
            await self.store.reset_unread(user_id, conversation_id, now, batch=batch)
        except Exception:
            # a broken counter must not block the receipts themselves
            logger.exception("[READ] Could not reset counter for user %s in %s", user_id, conversation_id)

        await batch.commit()
        logger.info(
            "[READ] Marked %d %s-layout messages read for user %s in %s",
            len(unread), schema, user_id, conversation_id,
        )
        return ReadReceipt(count=len(unread), updatedAt=now)

    async def _create_placeholder(self, conversation_id: str) -> None:
        """Give a never-used pair a home so the next send lands in the new layout."""
        try:
            id_a, id_b = split_conversation_id(conversation_id)
        except InvalidParticipants:
            logger.info("[READ] %s is in no layout and can't be split; nothing to create", conversation_id)
            return
        try:
            await self.store.create_empty_conversation(conversation_id, id_a, id_b)
            logger.info("[READ] Created empty conversation %s", conversation_id)
        except Exception:
            logger.exception("[READ] Failed to create empty conversation %s", conversation_id)
