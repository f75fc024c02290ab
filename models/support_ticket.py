from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class TicketStatus(str, Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class TicketPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TicketCategory(str, Enum):
    FINANCIAL = "financial"
    CAIXINHA = "caixinha"
    LOAN = "loan"
    ACCOUNT = "account"
    TECHNICAL = "technical"
    SECURITY = "security"
    GENERAL = "general"


# Statuses that block a second escalation for the same conversation
OPEN_ESCALATION_STATUSES = (TicketStatus.PENDING, TicketStatus.ASSIGNED)


class HistoryEntry(BaseModel):
    content: str
    sender: str
    timestamp: Optional[datetime] = None


class TicketRequest(BaseModel):
    userId: str
    category: TicketCategory = TicketCategory.GENERAL
    module: str = "app"
    issueType: str = "other"
    title: Optional[str] = None
    description: str = "Solicitação de suporte"
    context: Dict[str, Any] = Field(default_factory=dict)
    conversationId: Optional[str] = None
    conversationHistory: List[HistoryEntry] = Field(default_factory=list)
    # Defaults to the start of the description
    lastMessageSnippet: Optional[str] = None


class SupportTicket(BaseModel):
    id: str
    userId: str
    userName: str = ""
    userEmail: str = ""
    category: TicketCategory = TicketCategory.GENERAL
    module: str = "app"
    issueType: str = "other"
    title: str = "Solicitação de Suporte"
    description: str = ""
    context: Dict[str, Any] = Field(default_factory=dict)
    priority: TicketPriority = TicketPriority.MEDIUM
    status: TicketStatus = TicketStatus.PENDING

    # Only set when the ticket came out of a chat
    conversationId: Optional[str] = None
    conversationHistory: List[HistoryEntry] = Field(default_factory=list)
    lastMessageSnippet: str = ""

    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class TicketResult(BaseModel):
    ticketId: str
    status: TicketStatus
    priority: TicketPriority
    created: bool = True
