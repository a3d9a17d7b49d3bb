"""Provider factory: builds ordered candidate lists from configuration."""

import os

import structlog

from .base import EmbeddingProvider, LLMError, LLMProvider
from .fallback import FALLBACK_DIMENSION
from .gateway import ProviderGateway
from .health import DEFAULT_BASE_COOLDOWN, DEFAULT_MAX_COOLDOWN, HealthTable

logger = structlog.get_logger()

_PROVIDER_ENV_KEYS = {
    "claude": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "gemini": "GOOGLE_API_KEY",
}

_EMBEDDING_CAPABLE = {"openai", "gemini"}


def _resolve_key(provider: str, api_key: str | None) -> str | None:
    if api_key:
        return api_key
    env_var = _PROVIDER_ENV_KEYS.get(provider)
    return os.getenv(env_var) if env_var else None


def create_llm_provider(
    provider: str,
    api_key: str | None = None,
    model: str | None = None,
    client=None,
    timeout: float = 30.0,
) -> LLMProvider:
    """Create a completion provider instance.

    Args:
        provider: "claude", "openai" or "gemini"
        api_key: Explicit API key (overrides env var)
        model: Model name (None = provider default)
        client: Pre-built SDK client for testing/DI
        timeout: Per-call timeout in seconds
    """
    if not client:
        api_key = _resolve_key(provider, api_key)

    if provider == "claude":
        from .providers.claude import ClaudeProvider

        return ClaudeProvider(api_key=api_key, model=model, client=client, timeout=timeout)
    elif provider == "openai":
        from .providers.openai import OpenAIProvider

        return OpenAIProvider(api_key=api_key, model=model, client=client, timeout=timeout)
    elif provider == "gemini":
        from .providers.gemini import GeminiProvider

        return GeminiProvider(api_key=api_key, model=model, client=client, timeout=timeout)
    else:
        raise LLMError(f"Unknown provider: {provider}. Use: claude, openai, gemini")


def create_embedding_provider(
    provider: str,
    api_key: str | None = None,
    model: str | None = None,
    client=None,
    timeout: float = 10.0,
) -> EmbeddingProvider:
    """Create an embedding provider instance ("openai" or "gemini")."""
    if not client:
        api_key = _resolve_key(provider, api_key)

    if provider == "openai":
        from .providers.openai import OpenAIEmbeddingProvider

        return OpenAIEmbeddingProvider(api_key=api_key, model=model, client=client, timeout=timeout)
    elif provider == "gemini":
        from .providers.gemini import GeminiEmbeddingProvider

        return GeminiEmbeddingProvider(api_key=api_key, model=model, client=client, timeout=timeout)
    else:
        raise LLMError(
            f"Unknown embedding provider: {provider}. Use: {', '.join(sorted(_EMBEDDING_CAPABLE))}"
        )


def _build_candidates(entries: list[dict], factory) -> list:
    """Instantiate configured entries in priority order, skipping unusable ones."""
    candidates = []
    for entry in entries:
        name = entry["name"]
        if not _resolve_key(name, entry.get("api_key")):
            logger.warning("provider.skipped_no_credentials", provider=name)
            continue
        try:
            candidates.append(
                factory(
                    name,
                    api_key=entry.get("api_key"),
                    model=entry.get("model"),
                    timeout=entry.get("timeout", 30.0),
                )
            )
        except LLMError as e:
            logger.warning("provider.unavailable", provider=name, error=str(e))
    return candidates


def build_gateway(providers_config: dict, health: HealthTable | None = None) -> ProviderGateway:
    """Build a ProviderGateway from the `providers` config section."""
    completion = _build_candidates(providers_config.get("completion", []), create_llm_provider)
    embedding = _build_candidates(providers_config.get("embedding", []), create_embedding_provider)

    if not completion:
        logger.warning("gateway.no_completion_providers")

    if health is None:
        health = HealthTable(
            base_cooldown=providers_config.get("base_cooldown_seconds", DEFAULT_BASE_COOLDOWN),
            max_cooldown=providers_config.get("max_cooldown_seconds", DEFAULT_MAX_COOLDOWN),
        )
    return ProviderGateway(
        completion_providers=completion,
        embedding_providers=embedding,
        health=health,
        fallback_dimension=providers_config.get("fallback_embedding_dimension", FALLBACK_DIMENSION),
    )
