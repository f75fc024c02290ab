from unittest.mock import AsyncMock

import pytest

from agent.completion import CompletionProvider
from agent.fallback import fallback_reply
from agent.relay import (
    AUTH_FAILURE_REPLY,
    ESCALATION_FAILED_REPLY,
    ESCALATION_REPLY,
    AIAgentRelay,
)
from shared.errors import PersistenceError, ProviderUnavailable

AGENT = "ai-assistant"
CONV = "ai-assistant_u1"


def _messages(db, conversation_id=CONV):
    return list(db.children(f"conversations/{conversation_id}/messages").values())


@pytest.mark.asyncio
async def test_message_to_a_human_is_a_plain_send(relay, provider, db):
    result = await relay.handle_incoming_message("u1", "u2", "Oi")

    assert result.reply is None
    assert result.conversationId == "u1_u2"
    provider.complete.assert_not_awaited()
    assert len(_messages(db, "u1_u2")) == 1


@pytest.mark.asyncio
async def test_agent_answers_in_the_same_conversation(relay, provider, db):
    result = await relay.handle_incoming_message("u1", AGENT, "Oi")

    assert result.conversationId == CONV
    assert result.reply.sender == AGENT
    assert result.reply.content == "Olá! Sou o assistente da ElosCloud."
    assert result.escalated is False
    assert result.usedFallback is False

    system_prompt, history = provider.complete.await_args.args
    assert "ElosCloud" in system_prompt
    assert history == [{"role": "user", "content": "Oi"}]

    senders = sorted(m["sender"] for m in _messages(db))
    assert senders == [AGENT, "u1"]
    # the agent's reply counts as unread for the human
    assert db.get("usuario/u1")["conversas"][CONV]["naoLidas"] == 1


@pytest.mark.asyncio
async def test_history_alternates_roles_oldest_first(relay, provider, clock):
    def _answer(*_):
        clock.tick()
        return "resposta"

    provider.complete.side_effect = _answer
    clock.tick()
    await relay.handle_incoming_message("u1", AGENT, "Oi")
    clock.tick()
    await relay.handle_incoming_message("u1", AGENT, "Como funciona a caixinha?")

    _, history = provider.complete.await_args.args
    assert [h["role"] for h in history] == ["user", "assistant", "user"]
    assert history[-1]["content"] == "Como funciona a caixinha?"


@pytest.mark.asyncio
async def test_provider_failure_falls_back_to_one_canned_reply(relay, provider, db):
    provider.complete.side_effect = ProviderUnavailable("timed out", reason="timeout")

    result = await relay.handle_incoming_message("u1", AGENT, "Oi")

    assert result.usedFallback is True
    assert result.reply.content == fallback_reply("Oi")
    assert result.reply.content.startswith("Olá!")
    agent_messages = [m for m in _messages(db) if m["sender"] == AGENT]
    assert len(agent_messages) == 1
    assert agent_messages[0]["content"]


@pytest.mark.asyncio
async def test_unexpected_provider_error_still_gets_one_canned_reply(relay, provider, db):
    provider.complete.side_effect = RuntimeError("boom")

    result = await relay.handle_incoming_message("u1", AGENT, "Oi")

    assert result.usedFallback is True
    assert result.reply.content == fallback_reply("Oi")
    agent_messages = [m for m in _messages(db) if m["sender"] == AGENT]
    assert len(agent_messages) == 1
    assert agent_messages[0]["content"]


@pytest.mark.asyncio
async def test_auth_failure_points_to_human_support(relay, provider):
    provider.complete.side_effect = ProviderUnavailable("bad key", reason="auth")

    result = await relay.handle_incoming_message("u1", AGENT, "Oi")

    assert result.reply.content == AUTH_FAILURE_REPLY


@pytest.mark.asyncio
async def test_disabled_provider_uses_canned_reply(store, support, users, db):
    relay = AIAgentRelay(store, CompletionProvider(enabled=False), support, users, agent_user_id=AGENT)

    result = await relay.handle_incoming_message("u1", AGENT, "Como funciona a caixinha?")

    assert result.usedFallback is True
    assert result.reply.content == fallback_reply("Como funciona a caixinha?")


@pytest.mark.asyncio
async def test_escalation_skips_the_provider(relay, provider, db):
    result = await relay.handle_incoming_message("u1", AGENT, "meu dinheiro sumiu da caixinha")

    provider.complete.assert_not_awaited()
    assert result.escalated is True
    assert result.reply.content == ESCALATION_REPLY
    tickets = db.children("supportTickets")
    assert list(tickets) == [result.ticketId]
    assert tickets[result.ticketId]["conversationId"] == CONV


@pytest.mark.asyncio
async def test_repeated_escalation_reuses_the_ticket(relay, db):
    first = await relay.handle_incoming_message("u1", AGENT, "quero falar com um atendente")
    second = await relay.handle_incoming_message("u1", AGENT, "cadê o atendente? isso é frustrante")

    assert second.ticketId == first.ticketId
    assert len(db.children("supportTickets")) == 1


@pytest.mark.asyncio
async def test_escalation_failure_still_replies(relay, support):
    support.request_escalation = AsyncMock(side_effect=RuntimeError("firestore down"))

    result = await relay.handle_incoming_message("u1", AGENT, "isso é uma fraude")

    assert result.escalated is True
    assert result.ticketId is None
    assert result.reply.content == ESCALATION_FAILED_REPLY


@pytest.mark.asyncio
async def test_persistence_failure_propagates(relay, provider, db):
    db.fail_writes_under.append(f"conversations/{CONV}/messages")

    with pytest.raises(PersistenceError):
        await relay.handle_incoming_message("u1", AGENT, "Oi")
    provider.complete.assert_not_awaited()


@pytest.mark.asyncio
async def test_user_context_reaches_the_prompt(relay, provider, seed_user, db):
    seed_user("u1", nome="Ana Souza", caixinhas=["c1"])
    db.seed("caixinhas/c1", {"nome": "Viagem", "saldoTotal": 120})

    await relay.handle_incoming_message("u1", AGENT, "Oi")

    system_prompt, _ = provider.complete.await_args.args
    assert "- Nome: Ana" in system_prompt
    assert "R$ 120.00" in system_prompt
