from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional

from google.cloud import firestore
from google.cloud.firestore_v1 import FieldFilter

from models.conversation import Message, MessageStatus
from shared.time import coerce_datetime

logger = logging.getLogger(__name__)

CONVERSATIONS = "conversations"
MESSAGES = "messages"
LEGACY_ROOT = "mensagens"
LEGACY_MESSAGES = "msgs"


class MessageRepository(ABC):
    """One storage layout for conversation messages."""

    schema: str

    def __init__(self, db):
        self.db = db

    @abstractmethod
    async def has_messages(self, conversation_id: str) -> bool:
        ...

    @abstractmethod
    async def list_messages(
        self, conversation_id: str, limit: int, before: Optional[datetime] = None
    ) -> AsyncIterator[Message]:
        """Reverse-chronological page, optionally strictly older than `before`."""
        ...

    @abstractmethod
    async def unread_for(self, conversation_id: str, user_id: str) -> List[Any]:
        """Snapshots of messages addressed to user_id that are still unread."""
        ...

    @abstractmethod
    def read_fields(self, now: datetime) -> Dict[str, Any]:
        """Field updates that move one message from unread to read."""
        ...


class ConversationSubcollectionRepository(MessageRepository):
    """conversations/{id}/messages/{msgId}"""

    schema = "new"

    def messages(self, conversation_id: str):
        return self.db.collection(CONVERSATIONS).document(conversation_id).collection(MESSAGES)

    async def has_messages(self, conversation_id: str) -> bool:
        docs = [d async for d in self.messages(conversation_id).limit(1).stream()]
        return bool(docs)

    async def list_messages(self, conversation_id, limit, before=None):
        q = self.messages(conversation_id)
        if before is not None:
            q = q.where(filter=FieldFilter("timestamp", "<", before))
        q = q.order_by("timestamp", direction=firestore.Query.DESCENDING).limit(limit)
        async for doc in q.stream():
            yield to_canonical(doc.id, doc.to_dict() or {}, conversation_id)

    async def unread_for(self, conversation_id, user_id):
        q = (
            self.messages(conversation_id)
            .where(filter=FieldFilter("sender", "!=", user_id))
            .where(filter=FieldFilter("status.read", "==", False))
        )
        return [doc async for doc in q.stream()]

    def read_fields(self, now):
        return {
            "status.read": True,
            "status.delivered": True,
            "status.readAt": now,
        }


class LegacyPairRepository(MessageRepository):
    """mensagens/{sortedPair}/msgs/{msgId}, written by the first version of the app."""

    schema = "legacy"

    def messages(self, conversation_id: str):
        return self.db.collection(LEGACY_ROOT).document(conversation_id).collection(LEGACY_MESSAGES)

    async def has_messages(self, conversation_id: str) -> bool:
        try:
            docs = [d async for d in self.messages(conversation_id).limit(1).stream()]
        except Exception:
            logger.exception("[LEGACY] existence check failed for %s", conversation_id)
            raise
        return bool(docs)

    async def list_messages(self, conversation_id, limit, before=None):
        q = self.messages(conversation_id)
        if before is not None:
            q = q.where(filter=FieldFilter("timestamp", "<", before))
        q = q.order_by("timestamp", direction=firestore.Query.DESCENDING).limit(limit)
        async for doc in q.stream():
            yield legacy_to_canonical(doc.id, doc.to_dict() or {}, conversation_id)

    async def unread_for(self, conversation_id, user_id):
        q = (
            self.messages(conversation_id)
            .where(filter=FieldFilter("uidDestinatario", "==", user_id))
            .where(filter=FieldFilter("lido", "==", False))
        )
        return [doc async for doc in q.stream()]

    def read_fields(self, now):
        return {
            "lido": True,
            "entregue": True,
            "visto": True,
            "dataLeitura": now,
        }


# --- Shape mapping ----------------------------------------------------------------

def to_canonical(message_id: str, data: Dict[str, Any], conversation_id: Optional[str] = None) -> Message:
    raw_status = data.get("status") or {}
    status = MessageStatus(
        sent=bool(raw_status.get("sent", True)),
        delivered=bool(raw_status.get("delivered", False)),
        read=bool(raw_status.get("read", False)),
        readAt=coerce_datetime(raw_status.get("readAt")),
    )
    return Message(
        id=message_id,
        conversationId=conversation_id,
        content=data.get("content") or "",
        sender=data.get("sender") or "",
        timestamp=coerce_datetime(data.get("timestamp")),
        status=status,
        deleted=bool(data.get("deleted", False)),
        deletedAt=coerce_datetime(data.get("deletedAt")),
    )


def legacy_to_canonical(message_id: str, data: Dict[str, Any], conversation_id: Optional[str] = None) -> Message:
    # texto is the documented field; some writers used conteudo
    content = data.get("texto")
    if content is None:
        content = data.get("conteudo")
    read = bool(data.get("lido", False))
    timestamp = coerce_datetime(data.get("timestamp"))
    read_at = coerce_datetime(data.get("dataLeitura"))
    if read and read_at is None:
        # old clients flipped lido without stamping dataLeitura
        read_at = timestamp
    status = MessageStatus(
        sent=True,
        delivered=bool(data.get("entregue", False)),
        read=read,
        readAt=read_at,
    )
    return Message(
        id=message_id,
        conversationId=conversation_id,
        content=content or "",
        sender=data.get("uidRemetente") or "",
        timestamp=timestamp,
        status=status,
    )
