import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from langchain_core.messages import HumanMessage

from src.game.config import EndpointModel, LLMConfigModel, RetryModel
from src.tools.llm import (
    Endpoint,
    RetryPolicy,
    TextGenerationError,
    TextGenerationService,
    build_text_service,
    create_llm,
    require_llm_provider_api_key,
)


def _client(*results):
    client = MagicMock()
    client.ainvoke = AsyncMock(side_effect=list(results))
    return client


def test_retry_policy_backoff_is_capped():
    policy = RetryPolicy(max_attempts=6, base_delay=1.0, max_delay=5.0)
    assert [policy.delay_for(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]


def test_generate_retries_then_succeeds():
    client = _client(RuntimeError("rate limited"), SimpleNamespace(content="  Hello table  "))
    sleep = AsyncMock()
    service = TextGenerationService(Endpoint("primary", client), sleep=sleep)

    assert asyncio.run(service.generate("prompt")) == "Hello table"
    assert client.ainvoke.await_count == 2
    sleep.assert_awaited_once_with(1.0)

    messages = client.ainvoke.await_args.args[0]
    assert isinstance(messages[0], HumanMessage)
    assert messages[0].content == "prompt"


def test_generate_moves_to_fallback_after_retries():
    primary = _client(*[TimeoutError("slow")] * 3)
    fallback = _client(SimpleNamespace(content="from fallback"))
    sleep = AsyncMock()
    service = TextGenerationService(
        Endpoint("primary", primary),
        [Endpoint("fallback", fallback)],
        retry_policy=RetryPolicy(max_attempts=3, base_delay=0.5, max_delay=30.0),
        sleep=sleep,
    )

    assert asyncio.run(service.generate("prompt")) == "from fallback"
    assert primary.ainvoke.await_count == 3
    assert [c.args[0] for c in sleep.await_args_list] == [0.5, 1.0]


def test_generate_raises_when_every_endpoint_fails():
    service = TextGenerationService(
        Endpoint("a", _client(ValueError("bad"))),
        [Endpoint("b", _client(ValueError("worse")))],
        retry_policy=RetryPolicy(max_attempts=1),
        sleep=AsyncMock(),
    )

    with pytest.raises(TextGenerationError) as excinfo:
        asyncio.run(service.generate("prompt"))
    assert "a: bad" in str(excinfo.value)
    assert "b: worse" in str(excinfo.value)


def test_list_content_is_joined():
    reply = SimpleNamespace(content=[{"type": "text", "text": "one "}, {"type": "text", "text": "two"}])
    service = TextGenerationService(Endpoint("a", _client(reply)), sleep=AsyncMock())
    assert asyncio.run(service.generate("prompt")) == "one two"


def test_concurrent_calls_keep_separate_attempt_counts():
    client = MagicMock()
    calls = {"n": 0}

    async def flaky(messages):
        calls["n"] += 1
        if messages[0].content == "fail-once" and calls["n"] == 1:
            raise RuntimeError("transient")
        return SimpleNamespace(content=messages[0].content)

    client.ainvoke = flaky
    service = TextGenerationService(
        Endpoint("a", client), retry_policy=RetryPolicy(max_attempts=2), sleep=AsyncMock()
    )

    async def run():
        return await asyncio.gather(service.generate("fail-once"), service.generate("fine"))

    assert asyncio.run(run()) == ["fail-once", "fine"]


def test_create_llm_uses_provider_defaults(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.delenv("OPENAI_MODEL", raising=False)
    monkeypatch.delenv("OPENAI_TEMPERATURE", raising=False)
    monkeypatch.delenv("OPENAI_BASE_URL", raising=False)
    with patch("src.tools.llm.ChatOpenAI") as chat:
        create_llm(provider="openai", timeout=10)

    kwargs = chat.call_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["api_key"] == "sk-test"
    assert kwargs["timeout"] == 10
    assert kwargs["temperature"] == 0.7


def test_create_llm_rejects_unknown_provider():
    with pytest.raises(ValueError):
        create_llm(provider="carrier-pigeon")


def test_require_api_key(monkeypatch):
    monkeypatch.delenv("DEEPSEEK_API_KEY", raising=False)
    with pytest.raises(RuntimeError):
        require_llm_provider_api_key("deepseek")
    monkeypatch.setenv("DEEPSEEK_API_KEY", "key")
    require_llm_provider_api_key("deepseek")


def test_build_text_service_from_settings():
    settings = LLMConfigModel(
        enabled=True,
        provider="openai",
        model="gpt-4o-mini",
        timeout=12,
        max_tokens=100,
        retry=RetryModel(max_attempts=4, base_delay=0.25, max_delay=2.0),
        fallbacks=[EndpointModel(provider="deepseek", model="deepseek-chat")],
    )
    with patch("src.tools.llm.create_llm") as factory:
        service = build_text_service(settings)

    assert [e.name for e in service.endpoints] == ["openai:gpt-4o-mini", "deepseek:deepseek-chat"]
    assert service.retry_policy == RetryPolicy(max_attempts=4, base_delay=0.25, max_delay=2.0)
    assert factory.call_count == 2
    assert factory.call_args_list[0].kwargs["timeout"] == 12
    assert factory.call_args_list[1].kwargs["provider"] == "deepseek"


def test_create_llm_reads_limits_from_provider_table(monkeypatch):
    monkeypatch.setenv("DEEPSEEK_API_KEY", "key")
    monkeypatch.delenv("DEEPSEEK_TIMEOUT", raising=False)
    monkeypatch.setenv("DEEPSEEK_MAX_TOKENS", "not-a-number")
    with patch("src.tools.llm.ChatOpenAI") as chat:
        create_llm(provider="deepseek")
    kwargs = chat.call_args.kwargs
    assert kwargs["timeout"] == 45.0
    assert kwargs["max_tokens"] == 300
    assert kwargs["base_url"] == "https://api.deepseek.com/v1"

    monkeypatch.setenv("DEEPSEEK_TIMEOUT", "5")
    monkeypatch.setenv("DEEPSEEK_MAX_TOKENS", "64")
    with patch("src.tools.llm.ChatOpenAI") as chat:
        create_llm(provider="deepseek", max_tokens=128)
    assert chat.call_args.kwargs["timeout"] == 5.0
    assert chat.call_args.kwargs["max_tokens"] == 128


def test_check_endpoints_reports_each_endpoint_once():
    healthy = _client(SimpleNamespace(content="hi"))
    broken = _client(RuntimeError("connection refused"))
    sleep = AsyncMock()
    service = TextGenerationService(
        Endpoint("primary", broken),
        [Endpoint("backup", healthy)],
        retry_policy=RetryPolicy(max_attempts=3),
        sleep=sleep,
    )

    assert asyncio.run(service.check_endpoints()) == {"primary": False, "backup": True}
    assert broken.ainvoke.await_count == 1
    sleep.assert_not_awaited()
