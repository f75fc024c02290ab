from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional

from google.api_core.exceptions import AlreadyExists
from google.cloud import firestore

from models.conversation import (
    ConversationRecord,
    LastMessagePreview,
    Message,
    MessageStats,
    MessageStatus,
    UserConversationEntry,
)
from shared.addressing import derive_conversation_id, other_participant
from shared.config import DEFAULT_PAGE_SIZE, PREVIEW_MAX_CHARS
from shared.errors import (
    ConversationLookupFailure,
    MessageNotFound,
    PermissionDenied,
    PersistenceError,
)
from shared.time import EPOCH, coerce_datetime, utcnow
from store.message_repository import CONVERSATIONS, ConversationSubcollectionRepository, to_canonical

logger = logging.getLogger(__name__)

USERS = "usuario"
INDEX_FIELD = "conversas"
DELETED_PLACEHOLDER = "Esta mensagem foi apagada"


def _preview(content: str, timestamp: datetime, sender: str) -> Dict[str, Any]:
    return {"text": content[:PREVIEW_MAX_CHARS], "timestamp": timestamp, "sender": sender}


class ConversationStore:
    """
    Firestore-backed store for private conversations:
      conversations/{id}                 metadata + lastMessage preview
      conversations/{id}/messages/{mid}  message documents
      usuario/{uid}.conversas.{id}       per-user index (unread counter, preview)
    """

    def __init__(self, db):
        self.db = db
        self.collection = db.collection(CONVERSATIONS)
        self.users = db.collection(USERS)
        self.messages = ConversationSubcollectionRepository(db)

    # --- Conversations --------------------------------------------------------

    async def get_or_create_conversation(self, id_a: str, id_b: str) -> str:
        conversation_id = derive_conversation_id(id_a, id_b)
        doc_ref = self.collection.document(conversation_id)
        snap = await doc_ref.get()
        if snap.exists:
            return conversation_id

        now = utcnow()
        try:
            # create() fails if a concurrent caller won the race; either way the doc exists
            await doc_ref.create(
                {
                    "participants": sorted((id_a, id_b)),
                    "createdAt": now,
                    "updatedAt": now,
                    "lastMessage": None,
                    "type": "private",
                }
            )
            logger.info("[CONV] Created conversation %s", conversation_id)
        except AlreadyExists:
            logger.info("[CONV] Conversation %s created concurrently", conversation_id)
        return conversation_id

    async def create_empty_conversation(self, conversation_id: str, id_a: str, id_b: str) -> None:
        now = utcnow()
        await self.collection.document(conversation_id).set(
            {
                "participants": sorted((id_a, id_b)),
                "createdAt": now,
                "updatedAt": now,
                "type": "private",
            },
            merge=True,
        )

    async def get_conversation(self, conversation_id: str) -> Optional[ConversationRecord]:
        try:
            snap = await self.collection.document(conversation_id).get()
        except Exception as e:
            logger.exception("[CONV] get_conversation failed for %s", conversation_id)
            raise ConversationLookupFailure(str(e)) from e
        if not snap.exists:
            return None
        data = snap.to_dict() or {}
        last = data.get("lastMessage")
        return ConversationRecord(
            id=conversation_id,
            participants=data.get("participants") or data.get("participantes") or [],
            type=data.get("type") or "private",
            lastMessage=_to_preview(last),
            createdAt=coerce_datetime(data.get("createdAt")),
            updatedAt=coerce_datetime(data.get("updatedAt")),
        )

    # --- Messages -------------------------------------------------------------

    async def send_message(self, sender_id: str, recipient_id: str, content: str) -> Message:
        """Resolve (or lazily create) the pair's conversation and append to it."""
        conversation_id = await self.get_or_create_conversation(sender_id, recipient_id)
        return await self.append_message(conversation_id, sender_id, content)

    async def append_message(
        self, conversation_id: str, sender_id: str, content: str, message_type: str = "text"
    ) -> Message:
        """
        Write the message, then the denormalised previews/counters in one batch.
        Message write failure raises PersistenceError; index failure is only logged.
        """
        if not content or not content.strip():
            raise ValueError("message content is required")
        recipient_id = other_participant(conversation_id, sender_id)

        timestamp = utcnow()
        doc = {
            "content": content,
            "sender": sender_id,
            "type": message_type,
            "timestamp": timestamp,
            "status": {"sent": True, "delivered": False, "read": False, "readAt": None},
        }
        msg_ref = self.messages.messages(conversation_id).document()
        try:
            await msg_ref.set(doc)
        except Exception as e:
            logger.exception("[CONV] append_message failed for %s", conversation_id)
            raise PersistenceError(f"could not store message in {conversation_id}") from e

        logger.info("[CONV] Stored message %s in %s from %s", msg_ref.id, conversation_id, sender_id)

        try:
            await self._update_indexes(conversation_id, sender_id, recipient_id, content, timestamp)
        except Exception:
            # message is durable; counters can be rebuilt by the reconciler
            logger.exception("[CONV] index update failed for %s (message %s kept)", conversation_id, msg_ref.id)

        return Message(
            id=msg_ref.id,
            conversationId=conversation_id,
            content=content,
            sender=sender_id,
            type=message_type,
            timestamp=timestamp,
            status=MessageStatus(),
        )

    async def _update_indexes(
        self,
        conversation_id: str,
        sender_id: str,
        recipient_id: str,
        content: str,
        timestamp: datetime,
    ) -> None:
        sender_snap, recipient_snap = await asyncio.gather(
            self.users.document(sender_id).get(),
            self.users.document(recipient_id).get(),
        )
        sender_data = (sender_snap.to_dict() or {}) if sender_snap.exists else {}
        recipient_data = (recipient_snap.to_dict() or {}) if recipient_snap.exists else {}
        preview = _preview(content, timestamp, sender_id)

        batch = self.db.batch()
        batch.set(
            self.users.document(sender_id),
            {
                INDEX_FIELD: {
                    conversation_id: {
                        "com": recipient_id,
                        "nome": _display_name(recipient_data),
                        "foto": recipient_data.get("fotoDoPerfil") or "",
                        "naoLidas": 0,  # sender has seen their own message
                        "ultimoAcesso": timestamp,
                        "lastMessage": preview,
                    }
                }
            },
            merge=True,
        )
        batch.set(
            self.users.document(recipient_id),
            {
                INDEX_FIELD: {
                    conversation_id: {
                        "com": sender_id,
                        "nome": _display_name(sender_data),
                        "foto": sender_data.get("fotoDoPerfil") or "",
                        "naoLidas": firestore.Increment(1),
                        "lastMessage": preview,
                    }
                }
            },
            merge=True,
        )
        batch.set(
            self.collection.document(conversation_id),
            {"updatedAt": timestamp, "lastMessage": preview},
            merge=True,
        )
        await batch.commit()

    def list_messages(
        self, conversation_id: str, limit: int = DEFAULT_PAGE_SIZE, before: Optional[datetime] = None
    ) -> AsyncIterator[Message]:
        """Newest first; with `before`, only messages strictly older than it."""
        return self.messages.list_messages(conversation_id, limit, before)

    async def update_message_status(
        self, conversation_id: str, message_id: str, status_update: Dict[str, Any]
    ) -> MessageStatus:
        msg_ref = self.messages.messages(conversation_id).document(message_id)
        snap = await msg_ref.get()
        if not snap.exists:
            raise MessageNotFound(f"message {message_id} not found in {conversation_id}")

        current = MessageStatus(**((snap.to_dict() or {}).get("status") or {}))
        merged = current.model_copy()
        if status_update.get("delivered"):
            merged.delivered = True
        if status_update.get("read") and not current.read:
            merged.read = True
            merged.delivered = True
            merged.readAt = utcnow()
        # read -> unread is not a transition

        await msg_ref.update({"status": merged.model_dump()})
        return merged

    async def delete_message(self, conversation_id: str, message_id: str, user_id: str) -> Message:
        """Soft delete: the author's message keeps its slot, content is replaced by a placeholder."""
        msg_ref = self.messages.messages(conversation_id).document(message_id)
        snap = await msg_ref.get()
        if not snap.exists:
            raise MessageNotFound(f"message {message_id} not found in {conversation_id}")
        data = snap.to_dict() or {}
        if data.get("sender") != user_id:
            logger.warning("[CONV] delete_message: %s is not the author of %s", user_id, message_id)
            raise PermissionDenied("only the author can delete a message")
        if data.get("deleted"):
            return to_canonical(message_id, data, conversation_id)

        now = utcnow()
        updates = {
            "content": DELETED_PLACEHOLDER,
            "deleted": True,
            "deletedAt": now,
            "originalContent": data.get("content"),
        }
        await msg_ref.update(updates)
        logger.info("[CONV] Soft-deleted message %s in %s", message_id, conversation_id)
        return to_canonical(message_id, {**data, **updates}, conversation_id)

    # --- Per-user index -------------------------------------------------------

    async def get_user_index(self, user_id: str) -> Dict[str, Dict[str, Any]]:
        snap = await self.users.document(user_id).get()
        if not snap.exists:
            return {}
        return (snap.to_dict() or {}).get(INDEX_FIELD) or {}

    async def list_conversations_for_user(self, user_id: str) -> List[UserConversationEntry]:
        """Most recent first; entries without a resolvable timestamp sort as oldest."""
        index = await self.get_user_index(user_id)
        entries: List[UserConversationEntry] = []
        for conversation_id, data in index.items():
            if not isinstance(data, dict):
                continue
            entries.append(
                UserConversationEntry(
                    id=conversation_id,
                    com=data.get("com") or "",
                    nome=data.get("nome") or "",
                    foto=data.get("foto") or "",
                    naoLidas=max(int(data.get("naoLidas") or 0), 0),
                    ultimoAcesso=coerce_datetime(data.get("ultimoAcesso")),
                    lastMessage=_to_preview(data.get("lastMessage")),
                )
            )

        def _key(entry: UserConversationEntry) -> datetime:
            ts = entry.lastMessage.timestamp if entry.lastMessage else None
            return ts or EPOCH

        return sorted(entries, key=_key, reverse=True)

    async def reset_unread(self, user_id: str, conversation_id: str, now: datetime, batch=None) -> bool:
        """Zero naoLidas for one conversation. Returns False if the user document doesn't exist."""
        user_ref = self.users.document(user_id)
        snap = await user_ref.get()
        if not snap.exists:
            return False
        payload = {INDEX_FIELD: {conversation_id: {"naoLidas": 0, "ultimoAcesso": now}}}
        if batch is not None:
            batch.set(user_ref, payload, merge=True)
        else:
            await user_ref.set(payload, merge=True)
        return True

    async def set_unread(self, user_id: str, conversation_id: str, count: int) -> None:
        await self.users.document(user_id).set(
            {INDEX_FIELD: {conversation_id: {"naoLidas": max(count, 0)}}}, merge=True
        )

    async def get_user_message_stats(self, user_id: str) -> MessageStats:
        snap = await self.users.document(user_id).get()
        if not snap.exists:
            logger.info("[CONV] get_user_message_stats: user %s not found", user_id)
            return MessageStats()
        data = snap.to_dict() or {}
        index = data.get(INDEX_FIELD) or {}

        total_unread = 0
        last_access = []
        for entry in index.values():
            if not isinstance(entry, dict):
                continue
            total_unread += max(int(entry.get("naoLidas") or 0), 0)
            ts = coerce_datetime(entry.get("ultimoAcesso"))
            if ts:
                last_access.append(ts)

        last_active = coerce_datetime(data.get("lastActive")) or (max(last_access) if last_access else None)
        return MessageStats(
            totalConversations=len(index),
            totalUnread=total_unread,
            lastActive=last_active,
        )


def _display_name(user_data: Dict[str, Any]) -> str:
    return user_data.get("nome") or user_data.get("displayName") or ""


def _to_preview(raw: Any) -> Optional[LastMessagePreview]:
    if not isinstance(raw, dict):
        return None
    return LastMessagePreview(
        text=raw.get("text") or raw.get("texto") or "",
        timestamp=coerce_datetime(raw.get("timestamp")),
        sender=raw.get("sender") or raw.get("remetente"),
    )
