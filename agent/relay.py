from __future__ import annotations

import logging
from typing import List, Optional

from pydantic import BaseModel

from agent.completion import ChatMessage, CompletionProvider
from agent.escalation import should_escalate
from agent.fallback import fallback_reply
from agent.prompts import build_system_prompt
from agent.support_service import SupportService
from models.conversation import AgentUser, Message, participant_for
from models.user import UserContext
from observability.obs import safe_update_current_span_io, span_step
from observability.telemetry import conversation_trace_attrs
from shared.addressing import derive_conversation_id
from shared.config import AI_AGENT_USER_ID, AI_HISTORY_SIZE
from shared.errors import ProviderUnavailable
from store.conversation_store import ConversationStore
from store.user_context_store import UserContextStore

logger = logging.getLogger(__name__)

ESCALATION_REPLY = (
    "Entendo que você precisa de uma ajuda mais específica. Acabei de transferir sua conversa "
    "para nossa equipe de suporte especializada.\n\n"
    "Um de nossos atendentes entrará em contato em breve para resolver sua questão com acesso "
    "completo aos dados da sua conta.\n\n"
    "Enquanto isso, se tiver outras dúvidas, estou aqui para ajudar!"
)

ESCALATION_FAILED_REPLY = (
    "Vou transferir você para nossa equipe de suporte especializada que pode acessar dados "
    "específicos da sua conta e resolver questões complexas.\n\n"
    "Por favor, aguarde que em breve um atendente entrará em contato."
)

AUTH_FAILURE_REPLY = (
    "Estou com dificuldades técnicas no momento. Nossa equipe de suporte pode ajudá-lo melhor. "
    "Digite 'falar com suporte' para ser conectado a um atendente humano."
)


class RelayResult(BaseModel):
    conversationId: str
    message: Message
    reply: Optional[Message] = None
    escalated: bool = False
    ticketId: Optional[str] = None
    usedFallback: bool = False


class AIAgentRelay:
    """
    Lets the assistant take part in the normal message flow as one more participant.
    Messages to the agent id get an answer persisted in the same conversation;
    everything else is a plain send. Only message persistence failures propagate.
    """

    def __init__(
        self,
        store: ConversationStore,
        provider: CompletionProvider,
        support: SupportService,
        users: UserContextStore,
        *,
        agent_user_id: str = AI_AGENT_USER_ID,
        history_size: int = AI_HISTORY_SIZE,
    ):
        self.store = store
        self.provider = provider
        self.support = support
        self.users = users
        self.agent_user_id = agent_user_id
        self.history_size = history_size

    async def handle_incoming_message(self, sender_id: str, recipient_id: str, content: str) -> RelayResult:
        recipient = participant_for(recipient_id, self.agent_user_id)
        if not isinstance(recipient, AgentUser):
            message = await self.store.send_message(sender_id, recipient_id, content)
            return RelayResult(conversationId=message.conversationId, message=message)

        conversation_id = derive_conversation_id(sender_id, recipient.id)
        with conversation_trace_attrs(sender_id, conversation_id, extra_metadata={"agent.root": "relay"}):
            with span_step("relay.handle_incoming_message", kind="RelayError", operation="relay"):
                message = await self.store.send_message(sender_id, recipient.id, content)
                logger.info("[RELAY] Message %s from %s addressed to the assistant", message.id, sender_id)

                history = await self._history(conversation_id, sender_id, message)
                user_context = await self.users.load(sender_id)

                reply_text, escalated, ticket_id, used_fallback = await self._answer(
                    conversation_id, sender_id, content, history, user_context
                )

                reply = await self.store.append_message(conversation_id, recipient.id, reply_text)
                logger.info(
                    "[RELAY] Replied in %s (escalated=%s fallback=%s)", conversation_id, escalated, used_fallback
                )
                safe_update_current_span_io(
                    output={"escalated": escalated, "fallback": used_fallback, "ticket_id": ticket_id}
                )
                return RelayResult(
                    conversationId=conversation_id,
                    message=message,
                    reply=reply,
                    escalated=escalated,
                    ticketId=ticket_id,
                    usedFallback=used_fallback,
                )

    async def _answer(
        self,
        conversation_id: str,
        sender_id: str,
        content: str,
        history: List[ChatMessage],
        user_context: UserContext,
    ):
        """Returns (text, escalated, ticket_id, used_fallback)."""
        if should_escalate(content, user_context):
            logger.info("[RELAY] Escalating %s to human support", conversation_id)
            with span_step("relay.escalate", kind="EscalationError", operation="escalate"):
                try:
                    result = await self.support.request_escalation(conversation_id, sender_id)
                except Exception:
                    logger.warning("[RELAY] Failed to create escalation ticket for %s", conversation_id, exc_info=True)
                    return ESCALATION_FAILED_REPLY, True, None, False
            return ESCALATION_REPLY, True, result.ticketId, False

        try:
            text = await self.provider.complete(build_system_prompt(user_context), history)
            return text, False, None, False
        except ProviderUnavailable as e:
            logger.info("[RELAY] Provider unavailable for %s (%s), using canned reply", conversation_id, e.reason)
            if e.reason == "auth":
                return AUTH_FAILURE_REPLY, False, None, True
            return fallback_reply(content, user_context), False, None, True
        except Exception:
            logger.exception("[RELAY] Completion failed for %s, using canned reply", conversation_id)
            return fallback_reply(content, user_context), False, None, True

    async def _history(self, conversation_id: str, sender_id: str, current: Message) -> List[ChatMessage]:
        """Last messages of the conversation, oldest first, ending with the one just sent."""
        try:
            recent = [m async for m in self.store.list_messages(conversation_id, self.history_size)]
        except Exception:
            logger.warning("[RELAY] Could not load history for %s", conversation_id, exc_info=True)
            recent = []

        if not any(m.id == current.id for m in recent):
            recent = [current, *recent][: self.history_size]

        return [
            {"role": "user" if m.sender == sender_id else "assistant", "content": m.content}
            for m in reversed(recent)
        ]
