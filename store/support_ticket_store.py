from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from google.cloud import firestore
from google.cloud.firestore_v1 import FieldFilter

from models.support_ticket import SupportTicket, TicketStatus
from shared.errors import PersistenceError
from shared.time import utcnow

logger = logging.getLogger(__name__)

TICKETS_COLLECTION = "supportTickets"


class SupportTicketStore:
    def __init__(self, db):
        self.db = db
        self.collection = db.collection(TICKETS_COLLECTION)

    async def create(self, data: Dict[str, Any]) -> SupportTicket:
        doc_ref = self.collection.document()  # auto-generated ID
        now = utcnow()
        doc = {**data, "createdAt": now, "updatedAt": now}
        try:
            await doc_ref.set(doc)
        except Exception as e:
            logger.exception("[SUPPORT] create ticket failed for user %s", data.get("userId"))
            raise PersistenceError("could not create support ticket") from e
        logger.info("[SUPPORT] Created ticket %s for user %s", doc_ref.id, data.get("userId"))
        return SupportTicket(id=doc_ref.id, **doc)

    async def get(self, ticket_id: str) -> Optional[SupportTicket]:
        snap = await self.collection.document(ticket_id).get()
        if not snap.exists:
            return None
        return SupportTicket(id=snap.id, **(snap.to_dict() or {}))

    async def find_by_conversation(
        self, conversation_id: str, status: Optional[TicketStatus] = None
    ) -> List[SupportTicket]:
        q = self.collection.where(filter=FieldFilter("conversationId", "==", conversation_id))
        if status is not None:
            q = q.where(filter=FieldFilter("status", "==", TicketStatus(status).value))
        q = q.order_by("createdAt", direction=firestore.Query.DESCENDING)
        return [SupportTicket(id=doc.id, **(doc.to_dict() or {})) async for doc in q.stream()]

    async def find_by_user(
        self, user_id: str, status: Optional[TicketStatus] = None, limit: int = 20
    ) -> List[SupportTicket]:
        q = self.collection.where(filter=FieldFilter("userId", "==", user_id))
        if status is not None:
            q = q.where(filter=FieldFilter("status", "==", TicketStatus(status).value))
        q = q.order_by("createdAt", direction=firestore.Query.DESCENDING).limit(limit)
        return [SupportTicket(id=doc.id, **(doc.to_dict() or {})) async for doc in q.stream()]
