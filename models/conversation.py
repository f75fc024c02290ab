from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator


class LastMessagePreview(BaseModel):
    text: str = ""                       # first 100 chars of the message
    timestamp: Optional[datetime] = None
    sender: Optional[str] = None


class MessageStatus(BaseModel):
    sent: bool = True
    delivered: bool = False
    read: bool = False
    readAt: Optional[datetime] = None

    @model_validator(mode="after")
    def _read_implies_delivered(self) -> "MessageStatus":
        # read => delivered, readAt iff read
        if self.read:
            self.delivered = True
        else:
            self.readAt = None
        return self


class Message(BaseModel):
    id: str
    conversationId: Optional[str] = None
    content: str
    sender: str
    type: str = "text"
    timestamp: Optional[datetime] = None
    status: MessageStatus = Field(default_factory=MessageStatus)

    deleted: bool = False
    deletedAt: Optional[datetime] = None


class ConversationRecord(BaseModel):
    id: str
    participants: List[str] = []
    type: Literal["private", "group"] = "private"
    lastMessage: Optional[LastMessagePreview] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class UserConversationEntry(BaseModel):
    """Denormalised pointer stored under usuario/{uid}.conversas.{conversationId}."""
    id: str
    com: str
    nome: str = ""
    foto: str = ""
    naoLidas: int = Field(default=0, ge=0)
    ultimoAcesso: Optional[datetime] = None
    lastMessage: Optional[LastMessagePreview] = None


class ReadReceipt(BaseModel):
    count: int = 0
    updatedAt: datetime


class MessageStats(BaseModel):
    totalConversations: int = 0
    totalUnread: int = 0
    lastActive: Optional[datetime] = None


# --- Participants: humans and the synthetic assistant share the message flow ---

class HumanUser(BaseModel):
    kind: Literal["human"] = "human"
    id: str


class AgentUser(BaseModel):
    kind: Literal["agent"] = "agent"
    id: str


Participant = Union[HumanUser, AgentUser]


def participant_for(user_id: str, agent_user_id: str) -> Participant:
    if user_id == agent_user_id:
        return AgentUser(id=user_id)
    return HumanUser(id=user_id)
