from typing import Tuple

from shared.errors import InvalidParticipants

SEPARATOR = "_"


def derive_conversation_id(id_a: str, id_b: str) -> str:
    """
    Stable, symmetric conversation id: both ids sorted by code point, joined with '_'.
    derive_conversation_id(a, b) == derive_conversation_id(b, a).
    """
    a = (id_a or "").strip()
    b = (id_b or "").strip()
    if not a or not b:
        raise InvalidParticipants("both participant ids are required")
    if a == b:
        raise InvalidParticipants(f"a conversation needs two distinct participants, got {a!r} twice")
    if SEPARATOR in a or SEPARATOR in b:
        raise InvalidParticipants(f"participant ids can't contain {SEPARATOR!r}: {a!r}, {b!r}")
    first, second = sorted((a, b))
    return f"{first}{SEPARATOR}{second}"


def split_conversation_id(conversation_id: str) -> Tuple[str, str]:
    parts = (conversation_id or "").split(SEPARATOR)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise InvalidParticipants(f"conversation id {conversation_id!r} does not name two participants")
    return parts[0], parts[1]


def other_participant(conversation_id: str, user_id: str) -> str:
    a, b = split_conversation_id(conversation_id)
    if user_id == a:
        return b
    if user_id == b:
        return a
    raise InvalidParticipants(f"{user_id!r} is not a participant of {conversation_id!r}")
