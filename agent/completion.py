from __future__ import annotations

import logging
import os
from typing import Dict, List, Optional

import httpx
from openai import APITimeoutError, AsyncOpenAI, AuthenticationError, RateLimitError

from observability.obs import safe_update_current_span_io, span_attrs
from observability.telemetry import mark_error
from shared.config import (
    AI_ENABLED,
    AI_MAX_TOKENS,
    AI_MODEL_NAME,
    AI_TEMPERATURE,
    AI_TIMEOUT_SECONDS,
)
from shared.errors import ProviderUnavailable

logger = logging.getLogger(__name__)

ChatMessage = Dict[str, str]


class CompletionProvider:
    """
    OpenAI chat completions behind one call. Every failure mode surfaces as
    ProviderUnavailable(reason) so callers only have one thing to catch.
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        *,
        model: str = AI_MODEL_NAME,
        enabled: bool = AI_ENABLED,
        timeout_seconds: float = AI_TIMEOUT_SECONDS,
        max_tokens: int = AI_MAX_TOKENS,
        temperature: float = AI_TEMPERATURE,
    ):
        self.model = model
        self.enabled = enabled
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client = client
        self._timeout = timeout_seconds

    @property
    def client(self) -> Optional[AsyncOpenAI]:
        if not self.enabled:
            return None
        if self._client is None and os.getenv("OPENAI_API_KEY"):
            self._client = AsyncOpenAI(timeout=httpx.Timeout(self._timeout), max_retries=1)
            logger.info("[AI] OpenAI client initialized (model=%s)", self.model)
        return self._client

    async def complete(self, system_prompt: str, history: List[ChatMessage]) -> str:
        client = self.client
        if client is None:
            reason = "disabled" if not self.enabled else "missing_api_key"
            logger.info("[AI] Provider unavailable (%s), using fallback", reason)
            raise ProviderUnavailable("completion provider not configured", reason=reason)

        messages = [{"role": "system", "content": system_prompt}, *history]
        with span_attrs("llm.complete", as_type="generation", model=self.model) as gen:
            safe_update_current_span_io(input={"messages": len(messages)})
            try:
                resp = await client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                )
            except AuthenticationError as e:
                logger.error("[AI] OpenAI authentication failed")
                mark_error(e, kind="LLMError.auth", span=gen)
                raise ProviderUnavailable("authentication failed", reason="auth") from e
            except RateLimitError as e:
                logger.warning("[AI] OpenAI quota exceeded")
                mark_error(e, kind="LLMError.rate_limit", span=gen)
                raise ProviderUnavailable("rate limited", reason="rate_limit") from e
            except APITimeoutError as e:
                logger.warning("[AI] OpenAI call timed out after %ss", self._timeout)
                mark_error(e, kind="LLMError.timeout", span=gen)
                raise ProviderUnavailable("timed out", reason="timeout") from e
            except Exception as e:
                logger.exception("[AI] OpenAI call failed: %s", e)
                mark_error(e, kind="LLMError", span=gen)
                raise ProviderUnavailable(str(e)) from e

            choices = getattr(resp, "choices", None) or []
            text = ((choices[0].message.content if choices else None) or "").strip()
            if not text:
                logger.warning("[AI] Empty completion from %s", self.model)
                raise ProviderUnavailable("empty completion", reason="empty")

            safe_update_current_span_io(output={"chars": len(text)})
            return text
