from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from models.support_ticket import (
    OPEN_ESCALATION_STATUSES,
    HistoryEntry,
    SupportTicket,
    TicketCategory,
    TicketPriority,
    TicketRequest,
    TicketResult,
    TicketStatus,
)
from shared.config import ESCALATION_HISTORY_SIZE, PREVIEW_MAX_CHARS
from shared.errors import DuplicateEscalation
from store.dual_schema_reader import DualSchemaReader
from store.support_ticket_store import SupportTicketStore
from store.user_context_store import UserContextStore

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Solicitação de Suporte"
ESCALATION_TITLE = "Escalação do Chat com IA"
DEFAULT_SNIPPET = "Escalação solicitada via chat"

URGENT_KEYWORDS = (
    "urgent", "crítico", "emergência", "bloqueado", "não funciona",
    "erro grave", "roubaram", "golpe", "fraude", "hackeado", "vazamento",
    "dinheiro sumiu", "conta bloqueada", "não consigo logar",
)

HIGH_KEYWORDS = (
    "importante", "problema", "bug", "falha", "não consigo",
    "pagamento falhou", "saldo incorreto", "transferência não chegou",
    "cobrança indevida", "estorno", "reembolso",
)

# category -> issue types that are high priority on their own
HIGH_ISSUE_TYPES = {
    TicketCategory.FINANCIAL: {"payment_failed", "balance_incorrect", "withdrawal_failed"},
    TicketCategory.ACCOUNT: {"login_failed", "account_locked"},
    TicketCategory.LOAN: {"payment_issue", "approval_delayed"},
}

PRIORITY_ROLES = ("admin", "vip")

TITLES: Dict[TicketCategory, Dict[str, str]] = {
    TicketCategory.FINANCIAL: {
        "payment_failed": "Problema com Pagamento",
        "balance_incorrect": "Saldo Incorreto",
        "refund_needed": "Solicitação de Reembolso",
        "withdrawal_failed": "Falha no Saque",
        "charge_dispute": "Contestação de Cobrança",
    },
    TicketCategory.CAIXINHA: {
        "cant_contribute": "Problema para Contribuir",
        "member_issue": "Problema com Membro",
        "payout_problem": "Problema no Pagamento da Caixinha",
        "group_access": "Problema de Acesso ao Grupo",
        "invite_problem": "Problema com Convite",
    },
    TicketCategory.LOAN: {
        "approval_delayed": "Atraso na Aprovação do Empréstimo",
        "payment_issue": "Problema no Pagamento do Empréstimo",
        "terms_dispute": "Contestação dos Termos",
        "interest_calculation": "Problema no Cálculo de Juros",
    },
    TicketCategory.ACCOUNT: {
        "login_failed": "Problema de Login",
        "account_locked": "Conta Bloqueada",
        "data_update_failed": "Falha na Atualização dos Dados",
        "verification_issue": "Problema de Verificação",
        "password_reset": "Redefinição de Senha",
    },
    TicketCategory.TECHNICAL: {
        "app_crash": "Aplicativo Travando",
        "sync_error": "Erro de Sincronização",
        "performance_issue": "Problema de Performance",
        "api_error": "Erro de Sistema",
        "feature_not_working": "Funcionalidade não Funciona",
    },
    TicketCategory.SECURITY: {
        "account_compromised": "Conta Comprometida",
        "suspicious_activity": "Atividade Suspeita",
        "fraud_report": "Relatório de Fraude",
        "unauthorized_access": "Acesso não Autorizado",
    },
}


def calculate_priority(
    category: TicketCategory, issue_type: str, roles: List[str], description: str = ""
) -> TicketPriority:
    content = (description or "").lower()

    if any(k in content for k in URGENT_KEYWORDS):
        return TicketPriority.URGENT
    if category == TicketCategory.SECURITY:
        return TicketPriority.URGENT
    if issue_type in HIGH_ISSUE_TYPES.get(category, ()):
        return TicketPriority.HIGH
    if any(k in content for k in HIGH_KEYWORDS):
        return TicketPriority.HIGH
    if any(r in roles for r in PRIORITY_ROLES):
        return TicketPriority.HIGH
    return TicketPriority.MEDIUM


def generate_title(category: TicketCategory, issue_type: str) -> str:
    return TITLES.get(category, {}).get(issue_type, DEFAULT_TITLE)


class SupportService:
    """Support tickets, including the ones opened on behalf of a chat with the assistant."""

    def __init__(
        self,
        tickets: SupportTicketStore,
        users: UserContextStore,
        reader: Optional[DualSchemaReader] = None,
    ):
        self.tickets = tickets
        self.users = users
        self.reader = reader

    async def create_ticket(self, request: TicketRequest) -> TicketResult:
        if not request.userId:
            raise ValueError("User ID is required to create a support ticket.")

        logger.info(
            "[SUPPORT] Creating ticket for user %s (category=%s module=%s issue=%s)",
            request.userId, request.category.value, request.module, request.issueType,
        )

        profile = await self.users.load_profile(request.userId)
        if profile is None:
            logger.error("[SUPPORT] User %s not found for ticket creation", request.userId)
            raise ValueError(f"User {request.userId} not found.")
        user_context = await self.users.load(request.userId)

        priority = calculate_priority(
            request.category, request.issueType, user_context.roles, request.description
        )
        context: Dict[str, Any] = {
            **request.context,
            "user": {
                "roles": user_context.roles,
                "caixinhas": len(user_context.caixinhas),
            },
        }
        data = {
            "userId": request.userId,
            "userName": profile.get("nome") or profile.get("displayName") or "Usuário Desconhecido",
            "userEmail": profile.get("email") or "",
            "category": request.category.value,
            "module": request.module,
            "issueType": request.issueType,
            "title": request.title or generate_title(request.category, request.issueType),
            "description": request.description,
            "context": context,
            "priority": priority.value,
            "status": TicketStatus.PENDING.value,
            "conversationId": request.conversationId,
            "conversationHistory": [h.model_dump() for h in request.conversationHistory],
            "lastMessageSnippet": request.lastMessageSnippet or (request.description or "")[:PREVIEW_MAX_CHARS],
        }
        ticket = await self.tickets.create(data)
        logger.info("[SUPPORT] Ticket %s created with priority %s", ticket.id, priority.value)
        return TicketResult(ticketId=ticket.id, status=ticket.status, priority=ticket.priority)

    async def find_tickets_by_conversation(
        self, conversation_id: str, status: Optional[TicketStatus] = None
    ) -> List[SupportTicket]:
        return await self.tickets.find_by_conversation(conversation_id, status)

    async def get_user_tickets(
        self, user_id: str, status: Optional[TicketStatus] = None, limit: int = 20
    ) -> List[SupportTicket]:
        return await self.tickets.find_by_user(user_id, status, limit)

    async def _ensure_no_open_escalation(self, conversation_id: str) -> None:
        for ticket in await self.find_tickets_by_conversation(conversation_id):
            if ticket.status in OPEN_ESCALATION_STATUSES:
                raise DuplicateEscalation(conversation_id, ticket.id, ticket.status.value)

    async def request_escalation(
        self, conversation_id: str, user_id: str, reason: str = "ai_cannot_help"
    ) -> TicketResult:
        """
        Open a ticket for a chat that needs a human.
        At most one pending/assigned escalation per conversation: a second request
        returns the open ticket with created=False.
        """
        if not conversation_id or not user_id:
            raise ValueError("Conversation ID and User ID are required for escalation.")

        logger.info("[SUPPORT] Escalation requested for %s by %s (%s)", conversation_id, user_id, reason)
        try:
            await self._ensure_no_open_escalation(conversation_id)
        except DuplicateEscalation as dup:
            logger.warning("[SUPPORT] %s", dup)
            existing = await self.tickets.get(dup.ticket_id)
            return TicketResult(
                ticketId=dup.ticket_id,
                status=TicketStatus(dup.status),
                priority=existing.priority if existing else TicketPriority.MEDIUM,
                created=False,
            )

        history, snippet = await self._conversation_history(conversation_id)
        request = TicketRequest(
            userId=user_id,
            category=TicketCategory.GENERAL,
            module="chat",
            issueType="escalation_requested",
            title=ESCALATION_TITLE,
            description=(
                f"Usuário solicitou escalação durante conversa. Razão: {reason}. "
                f"Último trecho: {snippet}"
            ),
            context={
                "conversationId": conversation_id,
                "reason": reason,
                "conversationHistory": [h.model_dump() for h in history],
                "escalationType": "from_ai_chat",
            },
            conversationId=conversation_id,
            conversationHistory=history,
            lastMessageSnippet=snippet,
        )
        return await self.create_ticket(request)

    async def _conversation_history(self, conversation_id: str):
        if self.reader is None:
            return [], DEFAULT_SNIPPET
        try:
            messages = await self.reader.resolve_messages(conversation_id, ESCALATION_HISTORY_SIZE)
        except Exception:
            logger.warning("[SUPPORT] Could not fetch conversation messages for %s", conversation_id, exc_info=True)
            return [], DEFAULT_SNIPPET
        if not messages:
            return [], DEFAULT_SNIPPET

        history = [HistoryEntry(content=m.content, sender=m.sender, timestamp=m.timestamp) for m in messages]
        # newest first
        snippet = messages[0].content[:PREVIEW_MAX_CHARS] if messages[0].content else "Conteúdo indisponível"
        return history, snippet

    async def get_conversation_history_for_ticket(self, ticket_id: str, limit: int = 50) -> List[HistoryEntry]:
        ticket = await self.tickets.get(ticket_id)
        if ticket is None:
            logger.warning("[SUPPORT] Ticket %s not found for fetching history", ticket_id)
            raise ValueError(f"Ticket {ticket_id} not found.")
        if ticket.conversationHistory:
            return ticket.conversationHistory[:limit]
        if ticket.conversationId and self.reader is not None:
            messages = await self.reader.resolve_messages(ticket.conversationId, limit)
            return [HistoryEntry(content=m.content, sender=m.sender, timestamp=m.timestamp) for m in messages]
        return []
