"""
Shared fixtures: an in-memory Firestore, the stores/services built on it,
and a controllable clock.
"""
import os

# must be set before observability.langfuse_client creates the global client
os.environ.setdefault("LANGFUSE_TRACING_ENABLED", "false")
os.environ["AI_AGENT_USER_ID"] = "ai-assistant"

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from agent.completion import CompletionProvider
from agent.relay import AIAgentRelay
from agent.support_service import SupportService
from shared.time import clear_fake_utcnow, set_fake_utcnow
from store.conversation_store import ConversationStore
from store.dual_schema_reader import DualSchemaReader
from store.read_receipts import ReadReceiptEngine
from store.support_ticket_store import SupportTicketStore
from store.user_context_store import UserContextStore
from fakes import FakeFirestore

AGENT_ID = "ai-assistant"


class Clock:
    def __init__(self, start: datetime):
        self.now = start
        set_fake_utcnow(start)

    def tick(self, seconds: float = 1) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        set_fake_utcnow(self.now)
        return self.now


@pytest.fixture
def clock():
    c = Clock(datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc))
    yield c
    clear_fake_utcnow()


@pytest.fixture
def db():
    return FakeFirestore()


@pytest.fixture
def store(db):
    return ConversationStore(db)


@pytest.fixture
def reader(store):
    return DualSchemaReader(store)


@pytest.fixture
def engine(reader):
    return ReadReceiptEngine(reader)


@pytest.fixture
def users(db):
    return UserContextStore(db)


@pytest.fixture
def tickets(db):
    return SupportTicketStore(db)


@pytest.fixture
def support(tickets, users, reader):
    return SupportService(tickets, users, reader)


@pytest.fixture
def provider():
    mock = AsyncMock(spec=CompletionProvider)
    mock.complete.return_value = "Olá! Sou o assistente da ElosCloud."
    return mock


@pytest.fixture
def relay(store, provider, support, users):
    return AIAgentRelay(store, provider, support, users, agent_user_id=AGENT_ID)


@pytest.fixture
def seed_user(db):
    def _seed(user_id: str, **fields):
        db.seed(f"usuario/{user_id}", fields)
    return _seed
