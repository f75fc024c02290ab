# Composition root: builds the services on top of one Firestore client.
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from agent.completion import CompletionProvider
from agent.relay import AIAgentRelay
from agent.support_service import SupportService
from db.base import get_db
from shared.reconcile import UnreadReconciler
from store.conversation_store import ConversationStore
from store.dual_schema_reader import DualSchemaReader
from store.read_receipts import ReadReceiptEngine
from store.support_ticket_store import SupportTicketStore
from store.user_context_store import UserContextStore


@dataclass
class Services:
    store: ConversationStore
    reader: DualSchemaReader
    read_receipts: ReadReceiptEngine
    support: SupportService
    relay: AIAgentRelay
    reconciler: UnreadReconciler


def build_services(db=None, provider: Optional[CompletionProvider] = None) -> Services:
    db = db if db is not None else get_db()
    store = ConversationStore(db)
    reader = DualSchemaReader(store)
    users = UserContextStore(db)
    support = SupportService(SupportTicketStore(db), users, reader)
    relay = AIAgentRelay(store, provider or CompletionProvider(), support, users)
    return Services(
        store=store,
        reader=reader,
        read_receipts=ReadReceiptEngine(reader),
        support=support,
        relay=relay,
        reconciler=UnreadReconciler(reader),
    )
