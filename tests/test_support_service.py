from datetime import datetime, timezone

import pytest

from agent.support_service import (
    DEFAULT_TITLE,
    ESCALATION_TITLE,
    calculate_priority,
    generate_title,
)
from models.support_ticket import TicketCategory, TicketPriority, TicketRequest, TicketStatus


@pytest.mark.parametrize(
    "category,issue_type,roles,description,expected",
    [
        (TicketCategory.GENERAL, "other", [], "meu dinheiro sumiu", TicketPriority.URGENT),
        (TicketCategory.SECURITY, "suspicious_activity", [], "", TicketPriority.URGENT),
        (TicketCategory.FINANCIAL, "payment_failed", [], "", TicketPriority.HIGH),
        (TicketCategory.ACCOUNT, "account_locked", [], "", TicketPriority.HIGH),
        (TicketCategory.GENERAL, "other", [], "tenho um problema", TicketPriority.HIGH),
        (TicketCategory.GENERAL, "other", ["vip"], "", TicketPriority.HIGH),
        (TicketCategory.CAIXINHA, "other", ["member"], "dúvida", TicketPriority.MEDIUM),
    ],
)
def test_calculate_priority(category, issue_type, roles, description, expected):
    assert calculate_priority(category, issue_type, roles, description) == expected


def test_generate_title():
    assert generate_title(TicketCategory.ACCOUNT, "login_failed") == "Problema de Login"
    assert generate_title(TicketCategory.GENERAL, "whatever") == DEFAULT_TITLE


@pytest.mark.asyncio
async def test_create_ticket(support, seed_user, db):
    seed_user("u1", nome="Ana Souza", email="ana@example.com")

    result = await support.create_ticket(
        TicketRequest(userId="u1", category=TicketCategory.FINANCIAL, issueType="refund_needed",
                      description="preciso de reembolso")
    )

    assert result.created is True
    assert result.status == TicketStatus.PENDING
    assert result.priority == TicketPriority.HIGH
    doc = db.get(f"supportTickets/{result.ticketId}")
    assert doc["userName"] == "Ana Souza"
    assert doc["userEmail"] == "ana@example.com"
    assert doc["title"] == "Solicitação de Reembolso"
    assert doc["status"] == "pending"
    assert doc["conversationId"] is None


@pytest.mark.asyncio
async def test_create_ticket_for_unknown_user(support):
    with pytest.raises(ValueError):
        await support.create_ticket(TicketRequest(userId="ghost"))


@pytest.mark.asyncio
async def test_escalation_ticket_carries_the_conversation(support, store, db, clock):
    for i in range(12):
        clock.tick()
        await store.send_message("u1", "u2", f"mensagem {i}")
    clock.tick()
    await store.send_message("u1", "u2", "meu dinheiro sumiu")

    result = await support.request_escalation("u1_u2", "u1")

    assert result.created is True
    assert result.priority == TicketPriority.URGENT
    doc = db.get(f"supportTickets/{result.ticketId}")
    assert doc["module"] == "chat"
    assert doc["issueType"] == "escalation_requested"
    assert doc["title"] == ESCALATION_TITLE
    assert doc["conversationId"] == "u1_u2"
    assert doc["context"]["escalationType"] == "from_ai_chat"
    assert doc["context"]["reason"] == "ai_cannot_help"
    assert len(doc["conversationHistory"]) == 10
    assert doc["conversationHistory"][0]["content"] == "meu dinheiro sumiu"
    assert doc["lastMessageSnippet"] == "meu dinheiro sumiu"


@pytest.mark.asyncio
async def test_escalation_ticket_is_written_once(support, store, db):
    await store.send_message("u1", "u2", "Quero falar com um atendente")

    result = await support.request_escalation("u1_u2", "u1")

    assert result.created is True
    assert db.writes_to(f"supportTickets/{result.ticketId}") == 1
    assert db.get(f"supportTickets/{result.ticketId}")["lastMessageSnippet"] == "Quero falar com um atendente"


@pytest.mark.asyncio
async def test_second_escalation_returns_the_open_ticket(support, store, db):
    await store.send_message("u1", "u2", "Quero falar com um atendente")

    first = await support.request_escalation("u1_u2", "u1")
    second = await support.request_escalation("u1_u2", "u1")

    assert second.ticketId == first.ticketId
    assert second.created is False
    assert len(db.children("supportTickets")) == 1


@pytest.mark.asyncio
async def test_resolved_ticket_does_not_block_a_new_escalation(support, store, db):
    await store.send_message("u1", "u2", "Oi")
    db.seed("supportTickets/old", {
        "userId": "u1",
        "conversationId": "u1_u2",
        "status": "resolved",
        "createdAt": datetime(2024, 1, 1, tzinfo=timezone.utc),
    })

    result = await support.request_escalation("u1_u2", "u1")

    assert result.created is True
    assert result.ticketId != "old"


@pytest.mark.asyncio
async def test_escalation_requires_ids(support):
    with pytest.raises(ValueError):
        await support.request_escalation("", "u1")


@pytest.mark.asyncio
async def test_history_for_ticket_prefers_stored_history(support, store):
    await store.send_message("u1", "u2", "primeira")
    result = await support.request_escalation("u1_u2", "u1")
    await store.send_message("u1", "u2", "depois do ticket")

    history = await support.get_conversation_history_for_ticket(result.ticketId)

    assert [h.content for h in history] == ["primeira"]


@pytest.mark.asyncio
async def test_user_tickets(support, seed_user):
    seed_user("u1", nome="Ana")
    await support.create_ticket(TicketRequest(userId="u1"))
    await support.create_ticket(TicketRequest(userId="u1", category=TicketCategory.SECURITY))

    tickets = await support.get_user_tickets("u1")

    assert len(tickets) == 2
    assert {t.priority for t in tickets} == {TicketPriority.MEDIUM, TicketPriority.URGENT}
