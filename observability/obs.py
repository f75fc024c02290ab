# obs.py (Langfuse v3-compatible)
from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Mapping, Optional

from observability.langfuse_client import langfuse
from observability.telemetry import mark_error

# message bodies never leave the process unredacted
SENSITIVE_FIELDS = {"text", "message", "content", "body", "history", "description"}


def _dump(obj: Any) -> Any:
    try:
        md = getattr(obj, "model_dump", None)
        if callable(md):
            return md()
        return obj
    except Exception:
        return obj


def _redact(val: Any) -> Any:
    if not isinstance(val, Mapping):
        return val
    try:
        return {k: ("***" if k in SENSITIVE_FIELDS else v) for k, v in val.items()}
    except Exception:
        return val


def _safe_span_update(span, *, metadata: dict[str, Any]) -> None:
    try:
        span.update(metadata=metadata)
    except Exception:
        pass


def safe_update_current_span_io(*, input: Optional[Any] = None,
                                output: Optional[Any] = None,
                                redact: bool = False) -> None:
    try:
        payload = {}
        if input is not None:
            v = _dump(input)
            payload["input"] = _redact(v) if redact else v
        if output is not None:
            v = _dump(output)
            payload["output"] = _redact(v) if redact else v
        if payload:
            langfuse.update_current_span(**payload)
    except Exception:
        pass


@contextmanager
def span_attrs(name: str, as_type: str = "span", **attrs: Any):
    """
    Lightweight nested observation with fixed metadata.
    For LLM calls, pass as_type="generation" and model="gpt-3.5-turbo".
    """
    t0 = time.perf_counter()

    # model becomes a first-class field on generations
    model = attrs.pop("model", None)

    with langfuse.start_as_current_observation(
        name=name,
        as_type=as_type,
        model=model,
    ) as s:
        if attrs:
            _safe_span_update(s, metadata=dict(attrs))

        try:
            yield s
            dur_ms = int((time.perf_counter() - t0) * 1000)
            _safe_span_update(s, metadata={"status": "ok", "duration.ms": dur_ms})
        except Exception as e:
            dur_ms = int((time.perf_counter() - t0) * 1000)
            try:
                s.update(
                    metadata={
                        "status": "error",
                        "error.kind": type(e).__name__,
                        "duration.ms": dur_ms,
                    },
                    status_message=str(e),
                    level="ERROR",
                )
            except Exception:
                pass
            raise


@contextmanager
def span_step(name: str, *, kind: str, **attrs: Any):
    with span_attrs(name, **attrs) as s:
        try:
            yield s
        except Exception as e:
            # single place to mark + rethrow
            mark_error(e, kind=kind, span=s)
            raise
