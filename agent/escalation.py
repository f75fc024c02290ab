from __future__ import annotations

from typing import Optional

from models.user import UserContext

# Asking for a person, or frustration with the assistant
DIRECT_REQUEST_KEYWORDS = (
    "falar com", "quero falar", "atendente", "humano", "pessoa",
    "suporte técnico", "reclamação", "contestar", "disputa",
    "não resolve", "não ajuda", "não funciona", "frustrante",
    "cancelar conta", "excluir dados", "problema sério",
)

FINANCIAL_INCIDENT_KEYWORDS = (
    "dinheiro sumiu", "saldo incorreto", "cobrança indevida",
    "estorno", "reembolso", "transferência falhou", "pix não chegou",
)

SECURITY_INCIDENT_KEYWORDS = (
    "conta hackeada", "acesso não autorizado", "fraude",
    "golpe", "suspeita", "vazamento",
)

COMPLEX_TECHNICAL_KEYWORDS = (
    "não consigo logar há", "conta bloqueada", "erro no sistema",
    "aplicativo travando", "não carrega",
)

KEYWORD_SETS = (
    DIRECT_REQUEST_KEYWORDS,
    FINANCIAL_INCIDENT_KEYWORDS,
    SECURITY_INCIDENT_KEYWORDS,
    COMPLEX_TECHNICAL_KEYWORDS,
)

MANY_CAIXINHAS = 3


def _contains_any(text: str, keywords) -> bool:
    return any(k in text for k in keywords)


def should_escalate(content: str, user_context: Optional[UserContext] = None) -> bool:
    """True when the message needs a human: explicit requests, money/security incidents, hard tech issues."""
    text = (content or "").lower()
    if not text:
        return False

    if any(_contains_any(text, keywords) for keywords in KEYWORD_SETS):
        return True

    if user_context is not None:
        if len(user_context.caixinhas) > MANY_CAIXINHAS and "saldo" in text:
            return True
        if user_context.has_role("seller") and _contains_any(text, ("venda", "pagamento")):
            return True

    return False
