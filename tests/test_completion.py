from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from agent.completion import CompletionProvider
from shared.errors import ProviderUnavailable


def _client(content=None, error=None):
    client = MagicMock()
    if error is not None:
        client.chat.completions.create = AsyncMock(side_effect=error)
    else:
        resp = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])
        client.chat.completions.create = AsyncMock(return_value=resp)
    return client


@pytest.mark.asyncio
async def test_complete_returns_stripped_text():
    client = _client("  Olá!  ")
    provider = CompletionProvider(client, enabled=True, model="gpt-3.5-turbo", max_tokens=500, temperature=0.7)

    text = await provider.complete("system", [{"role": "user", "content": "Oi"}])

    assert text == "Olá!"
    kwargs = client.chat.completions.create.await_args.kwargs
    assert kwargs["model"] == "gpt-3.5-turbo"
    assert kwargs["max_tokens"] == 500
    assert kwargs["temperature"] == 0.7
    assert kwargs["messages"][0] == {"role": "system", "content": "system"}
    assert kwargs["messages"][1] == {"role": "user", "content": "Oi"}


@pytest.mark.asyncio
async def test_disabled_provider_is_unavailable():
    client = _client("nunca")
    provider = CompletionProvider(client, enabled=False)

    with pytest.raises(ProviderUnavailable) as exc:
        await provider.complete("system", [])

    assert exc.value.reason == "disabled"
    client.chat.completions.create.assert_not_awaited()


@pytest.mark.asyncio
async def test_missing_api_key_is_unavailable(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    provider = CompletionProvider(enabled=True)

    with pytest.raises(ProviderUnavailable) as exc:
        await provider.complete("system", [])

    assert exc.value.reason == "missing_api_key"


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["", "   ", None])
async def test_empty_completion_is_unavailable(content):
    provider = CompletionProvider(_client(content), enabled=True)

    with pytest.raises(ProviderUnavailable) as exc:
        await provider.complete("system", [])

    assert exc.value.reason == "empty"


@pytest.mark.asyncio
async def test_unexpected_error_is_unavailable():
    provider = CompletionProvider(_client(error=RuntimeError("connection reset")), enabled=True)

    with pytest.raises(ProviderUnavailable) as exc:
        await provider.complete("system", [])

    assert exc.value.reason == "error"
