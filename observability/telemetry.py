# telemetry.py
from __future__ import annotations

from typing import Any, Dict, Optional

from langfuse import propagate_attributes

from observability.langfuse_client import langfuse

Json = Dict[str, Any]


def conversation_trace_attrs(user_id: str, conversation_id: str, *, extra_metadata: Optional[Json] = None):
    """
    Groups every span of one relay turn under the sender and the conversation.
    Never serializes message content.
    """
    if not user_id or not conversation_id:
        raise ValueError("user_id and conversation_id are required")

    meta: Json = {"conversation.id": conversation_id}
    if extra_metadata:
        meta.update(extra_metadata)

    return propagate_attributes(
        user_id=user_id,
        session_id=conversation_id,
        tags=["conversation"],
        metadata=meta,
    )


def mark_error(exc: Exception, *, kind: str = "UnhandledError", span=None, extra: Optional[Json] = None) -> None:
    """
    Minimal error marking; no payload dumping. Add explicit `extra` if needed.
    """
    meta = {"status": "error", "error.kind": kind, "error.type": type(exc).__name__}
    if extra:
        meta["error.extra"] = extra

    if span is not None:
        try:
            span.update(metadata=meta)
        except Exception:
            pass

    try:
        langfuse.update_current_span(
            metadata=meta,
            status_message=str(exc),
            level="ERROR",
        )
    except Exception:
        # tracing must never take the message flow down
        pass
