class ConversationError(Exception):
    """Base class for all conversation subsystem errors."""


class InvalidParticipants(ConversationError, ValueError):
    """Raised when participant ids are empty, identical, or a conversation id can't be split into two."""


class ConversationLookupFailure(ConversationError):
    """Raised when a conversation document can't be read."""


class PersistenceError(ConversationError):
    """Raised when a store read/write fails on a path that must not lose data."""


class ProviderUnavailable(ConversationError):
    """Raised by the completion provider on timeout, auth, quota or empty replies."""

    def __init__(self, message: str, reason: str = "error"):
        super().__init__(message)
        self.reason = reason


class DuplicateEscalation(ConversationError):
    """An escalation ticket is already pending/assigned for the conversation. Treated as success."""

    def __init__(self, conversation_id: str, ticket_id: str, status: str):
        super().__init__(f"Escalation already in progress for {conversation_id}: {ticket_id} ({status})")
        self.conversation_id = conversation_id
        self.ticket_id = ticket_id
        self.status = status


class SchemaReconciliationMiss(ConversationError):
    """Neither message layout has data for a conversation. Readers return an empty result instead."""


class MessageNotFound(ConversationError):
    """Raised when a message id does not exist in its conversation."""


class PermissionDenied(ConversationError):
    """Raised when a user acts on a message or conversation they don't own."""
