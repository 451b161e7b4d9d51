"""Text-generation service used by agents for speeches and night decisions.

Two layers:
1. ``create_llm`` builds a ``ChatOpenAI`` client for one endpoint. Settings
   resolve from explicit arguments, then provider-specific variables loaded
   from ``.env``, then built-in provider defaults.
2. ``TextGenerationService`` wraps a primary client plus optional fallbacks.
   Each call retries the primary with capped exponential backoff, then walks
   the fallbacks in order with the same retry loop. The first success wins;
   if every endpoint fails the call raises ``TextGenerationError``.

Retry state lives on the stack of a single ``generate`` call, so concurrent
calls never share attempt counters.
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Protocol, Sequence

from dotenv import load_dotenv
from langchain_core.messages import HumanMessage
from langchain_openai import ChatOpenAI

from src.game.logger import get_logger

load_dotenv()

logger = get_logger(__name__)

# Every provider speaks the OpenAI chat-completions protocol. ``env`` names the
# variables that may override a setting; ``defaults`` fill whatever is left.
_PROVIDER_SETTINGS: dict[str, dict[str, Any]] = {
    "openai": {
        "is_default": True,
        "env": {
            "api_key": "OPENAI_API_KEY",
            "base_url": "OPENAI_BASE_URL",
            "model": "OPENAI_MODEL",
            "temperature": "OPENAI_TEMPERATURE",
            "timeout": "OPENAI_TIMEOUT",
            "max_tokens": "OPENAI_MAX_TOKENS",
        },
        "defaults": {
            "base_url": None,
            "model": "gpt-4o-mini",
            "temperature": 0.7,
            "timeout": 30.0,
            "max_tokens": 256,
        },
    },
    "openrouter": {
        "env": {
            "api_key": "OPENROUTER_API_KEY",
            "base_url": "OPENROUTER_BASE_URL",
            "model": "OPENROUTER_MODEL",
            "temperature": "OPENROUTER_TEMPERATURE",
            "timeout": "OPENROUTER_TIMEOUT",
            "max_tokens": "OPENROUTER_MAX_TOKENS",
        },
        "defaults": {
            "base_url": "https://openrouter.ai/api/v1",
            "model": "meta-llama/llama-3.1-8b-instruct",
            "temperature": 0.8,
            "timeout": 60.0,
            "max_tokens": 256,
        },
    },
    "deepseek": {
        "env": {
            "api_key": "DEEPSEEK_API_KEY",
            "base_url": "DEEPSEEK_BASE_URL",
            "model": "DEEPSEEK_MODEL",
            "temperature": "DEEPSEEK_TEMPERATURE",
            "timeout": "DEEPSEEK_TIMEOUT",
            "max_tokens": "DEEPSEEK_MAX_TOKENS",
        },
        "defaults": {
            "base_url": "https://api.deepseek.com/v1",
            "model": "deepseek-chat",
            "temperature": 0.7,
            "timeout": 45.0,
            "max_tokens": 300,
        },
    },
}


class TextGenerationError(RuntimeError):
    """Raised when every configured endpoint failed to produce a reply."""


def _coerce_float(value: str | None) -> float | None:
    """Parse an environment string as a float; ``None`` when it is not one."""
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _coerce_int(value: str | None) -> int | None:
    """Parse an environment string as a positive int; ``None`` otherwise."""
    if value is None:
        return None
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return None
    return parsed if parsed > 0 else None


def _resolve_value(
    explicit: Any,
    env_var: str | None,
    default: Any,
    *,
    transform: Callable[[str], Any] | None = None,
) -> Any:
    """Pick the first available value for one endpoint setting.

    Args:
        explicit: Value passed by the caller; wins whenever it is not ``None``.
        env_var: Name of the environment variable consulted next.
        default: Provider default used when neither source supplies a value.
        transform: Parser applied to the raw environment string. An
            environment value the parser rejects is treated as unset.

    Returns:
        The resolved setting.
    """
    if explicit is not None:
        return explicit

    raw = os.getenv(env_var) if env_var else None
    if raw is not None:
        value = transform(raw) if transform else raw
        if value is not None:
            return value
    return default


def _resolve_provider_settings(provider: str | None) -> tuple[str, dict[str, Any]]:
    """Return ``(name, settings)`` for ``provider``, ``LLM_PROVIDER`` or the default.

    Raises:
        ValueError: If the provider is not in the table.
    """
    default = next(
        (name for name, s in _PROVIDER_SETTINGS.items() if s.get("is_default")),
        next(iter(_PROVIDER_SETTINGS)),
    )
    provider_name = (provider or os.getenv("LLM_PROVIDER") or default).lower()
    settings = _PROVIDER_SETTINGS.get(provider_name)
    if settings is None:
        raise ValueError(
            f"Unsupported LLM provider '{provider_name}'. "
            f"Configure LLM_PROVIDER to one of: {', '.join(sorted(_PROVIDER_SETTINGS))}."
        )
    return provider_name, settings


def require_llm_provider_api_key(provider: str | None = None) -> None:
    """Fail fast when the selected provider has no credentials.

    Args:
        provider: Provider name; ``LLM_PROVIDER`` or the default when omitted.

    Raises:
        ValueError: If the provider is unsupported.
        RuntimeError: If neither the environment nor the defaults hold a key.
    """
    provider_name, settings = _resolve_provider_settings(provider)
    if settings["defaults"].get("api_key"):
        return
    api_key_env = settings["env"].get("api_key")
    if api_key_env and os.getenv(api_key_env):
        return
    raise RuntimeError(
        f"{api_key_env or 'API key'} must be set for provider '{provider_name}'. "
        "Set the environment variable or pass `api_key` to `create_llm`."
    )


def create_llm(
    *,
    provider: str | None = None,
    model: str | None = None,
    temperature: float | None = None,
    timeout: float | None = None,
    max_tokens: int | None = None,
    api_key: str | None = None,
    base_url: str | None = None,
    **overrides: Any,
) -> ChatOpenAI:
    """Return a ChatOpenAI client for one text-generation endpoint.

    Every setting resolves from the explicit argument, then the provider's
    environment variable, then the provider default.

    Args:
        provider: Provider name (openai, openrouter, deepseek).
        model: Chat model to call.
        temperature: Sampling temperature.
        timeout: Per-request timeout in seconds.
        max_tokens: Upper bound on reply length.
        api_key: Provider API key.
        base_url: Endpoint base URL for non-OpenAI providers.
        **overrides: Extra ChatOpenAI keyword arguments, applied last.

    Returns:
        A configured ChatOpenAI instance.

    Raises:
        ValueError: If the provider is unsupported or has no model configured.
    """
    provider_name, settings = _resolve_provider_settings(provider)
    env_names = settings["env"]
    defaults = settings["defaults"]

    resolved_model = _resolve_value(model, env_names.get("model"), defaults.get("model"))
    if resolved_model is None:
        raise ValueError(
            f"No default model configured for provider '{provider_name}'. "
            "Specify a model explicitly when calling create_llm."
        )

    config: dict[str, Any] = {
        "model": resolved_model,
        "temperature": _resolve_value(
            temperature,
            env_names.get("temperature"),
            defaults.get("temperature", 0.7),
            transform=_coerce_float,
        ),
        "timeout": _resolve_value(
            timeout, env_names.get("timeout"), defaults.get("timeout"), transform=_coerce_float
        ),
        "max_tokens": _resolve_value(
            max_tokens, env_names.get("max_tokens"), defaults.get("max_tokens"), transform=_coerce_int
        ),
    }
    resolved_api_key = _resolve_value(api_key, env_names.get("api_key"), defaults.get("api_key"))
    resolved_base_url = _resolve_value(base_url, env_names.get("base_url"), defaults.get("base_url"))
    if resolved_api_key:
        config["api_key"] = resolved_api_key
    if resolved_base_url:
        config["base_url"] = resolved_base_url

    config.update(overrides)
    return ChatOpenAI(**config)


class ChatClient(Protocol):
    """Anything exposing LangChain's async ``ainvoke`` over a message list."""

    def ainvoke(self, input: Any, *args: Any, **kwargs: Any) -> Awaitable[Any]: ...


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Capped exponential backoff: ``min(base * 2**(attempt-1), max)`` seconds."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)


@dataclass(frozen=True, slots=True)
class Endpoint:
    name: str
    client: ChatClient


def _content_of(response: Any) -> str:
    content = getattr(response, "content", response)
    if isinstance(content, list):
        content = "".join(
            part.get("text", "") if isinstance(part, Mapping) else str(part) for part in content
        )
    return str(content).strip()


class TextGenerationService:
    """Prompt in, text out, with retry and fallback endpoints."""

    def __init__(
        self,
        primary: Endpoint,
        fallbacks: Sequence[Endpoint] = (),
        *,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.primary = primary
        self.fallbacks = list(fallbacks)
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep

    @property
    def endpoints(self) -> list[Endpoint]:
        return [self.primary, *self.fallbacks]

    async def check_endpoints(self, prompt: str = "Hello") -> dict[str, bool]:
        """Send one request to every endpoint, without retries.

        Returns ``{endpoint name: reachable}`` in endpoint order.
        """

        async def _ping(endpoint: Endpoint) -> bool:
            try:
                await endpoint.client.ainvoke([HumanMessage(content=prompt)])
            except Exception as exc:  # noqa: BLE001 - any client failure marks the endpoint down
                logger.warning("Endpoint %s failed its health check: %s", endpoint.name, exc)
                return False
            logger.info("Endpoint %s is reachable", endpoint.name)
            return True

        results = await asyncio.gather(*(_ping(endpoint) for endpoint in self.endpoints))
        return {endpoint.name: ok for endpoint, ok in zip(self.endpoints, results)}

    async def generate(self, prompt: str) -> str:
        """Return the first successful reply across all endpoints."""
        errors: list[str] = []
        for endpoint in self.endpoints:
            try:
                return await self._generate_with_retry(endpoint, prompt)
            except Exception as exc:  # noqa: BLE001 - any client failure moves on to the next endpoint
                errors.append(f"{endpoint.name}: {exc}")
                logger.warning("Endpoint %s exhausted its retries: %s", endpoint.name, exc)

        raise TextGenerationError(
            "All text-generation endpoints failed: " + "; ".join(errors)
        )

    async def _generate_with_retry(self, endpoint: Endpoint, prompt: str) -> str:
        policy = self.retry_policy
        attempt = 1
        while True:
            try:
                response = await endpoint.client.ainvoke([HumanMessage(content=prompt)])
                return _content_of(response)
            except Exception as exc:  # noqa: BLE001 - retried, re-raised after the last attempt
                if attempt >= policy.max_attempts:
                    raise
                delay = policy.delay_for(attempt)
                logger.debug(
                    "Endpoint %s attempt %d/%d failed (%s); retrying in %.1fs",
                    endpoint.name,
                    attempt,
                    policy.max_attempts,
                    exc,
                    delay,
                )
                await self._sleep(delay)
                attempt += 1


def build_text_service(settings: Any) -> TextGenerationService:
    """Create a service from an ``LLMConfigModel``-shaped settings object."""
    retry = RetryPolicy(
        max_attempts=settings.retry.max_attempts,
        base_delay=settings.retry.base_delay,
        max_delay=settings.retry.max_delay,
    )

    def _endpoint(target: Any) -> Endpoint:
        provider, model = target.provider, target.model
        client = create_llm(
            provider=provider,
            model=model,
            temperature=getattr(target, "temperature", None),
            timeout=settings.timeout,
            max_tokens=settings.max_tokens,
        )
        return Endpoint(name=f"{provider or 'default'}:{model or 'default'}", client=client)

    return TextGenerationService(
        _endpoint(settings),
        [_endpoint(fallback) for fallback in settings.fallbacks],
        retry_policy=retry,
    )
