"""Provider gateway: ordered fallback across completion and embedding vendors."""

import asyncio
from functools import partial

import structlog

from observability import metrics
from shared_types import Capability

from .base import (
    CompletionRequest,
    EmbeddingProvider,
    GatewayResult,
    LLMError,
    LLMProvider,
    LLMRateLimitError,
    ProviderExhausted,
    ProviderRateLimited,
    ProviderTimeout,
)
from .fallback import FALLBACK_DIMENSION, FALLBACK_PROVIDER, hash_embedding
from .health import HealthTable

logger = structlog.get_logger(source="gateway")


class ProviderGateway:
    """Uniform interface over N completion and embedding providers.

    Candidates are tried strictly one at a time in configured priority order.
    A failed candidate gets its circuit opened and is skipped by later calls
    until the cool-down elapses.
    """

    def __init__(
        self,
        completion_providers: list[LLMProvider] | None = None,
        embedding_providers: list[EmbeddingProvider] | None = None,
        health: HealthTable | None = None,
        fallback_dimension: int = FALLBACK_DIMENSION,
    ):
        self.completion_providers = list(completion_providers or [])
        self.embedding_providers = list(embedding_providers or [])
        self.health = health if health is not None else HealthTable()
        self.fallback_dimension = fallback_dimension

    @staticmethod
    def health_key(capability: Capability, provider_name: str) -> str:
        return f"{capability}:{provider_name}"

    def candidates(self, capability: Capability) -> list:
        if capability == Capability.COMPLETION:
            return self.completion_providers
        return self.embedding_providers

    async def invoke(self, capability: Capability, payload) -> GatewayResult:
        """Run payload against the first healthy candidate, falling back in order.

        Args:
            capability: Capability.COMPLETION (payload: CompletionRequest) or
                Capability.EMBEDDING (payload: str)

        Returns:
            GatewayResult. For embeddings a deterministic hashed vector is
            returned with fallback=True when every candidate fails.

        Raises:
            ProviderExhausted: every completion candidate failed or was skipped
        """
        attempted: list[str] = []
        errors: dict[str, str] = {}

        for provider in self.candidates(capability):
            key = self.health_key(capability, provider.provider_name)
            if not self.health.is_available(key):
                logger.debug("gateway.provider_skipped", provider=key)
                continue

            attempted.append(provider.provider_name)
            metrics.counter(f"gateway.{capability}.attempts")
            try:
                output = await self._attempt(capability, provider, payload)
            except LLMError as e:
                errors[provider.provider_name] = str(e)
                metrics.counter(f"gateway.{capability}.failures")
                self.health.record_failure(key, f"{type(e).__name__}: {e}")
                logger.warning(
                    "gateway.provider_failed",
                    capability=str(capability),
                    provider=provider.provider_name,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                continue

            self.health.record_success(key)
            return GatewayResult(output=output, provider=provider.provider_name, attempted=attempted)

        if capability == Capability.EMBEDDING:
            metrics.counter("gateway.embedding.fallback")
            logger.warning("gateway.embedding_fallback", attempted=attempted)
            text = payload if isinstance(payload, str) else str(payload)
            return GatewayResult(
                output=hash_embedding(text, self.fallback_dimension),
                provider=FALLBACK_PROVIDER,
                attempted=attempted,
                fallback=True,
            )

        metrics.counter("gateway.completion.exhausted")
        logger.error("gateway.exhausted", capability=str(capability), attempted=attempted)
        raise ProviderExhausted(capability, attempted, errors)

    async def _attempt(self, capability: Capability, provider, payload):
        if capability == Capability.COMPLETION:
            call = partial(
                provider.generate,
                messages=payload.messages,
                system=payload.system,
                max_tokens=payload.max_tokens,
            )
        else:
            call = partial(provider.embed, payload)

        try:
            output = await asyncio.wait_for(asyncio.to_thread(call), timeout=provider.timeout)
        except TimeoutError as e:
            raise ProviderTimeout(
                f"{provider.provider_name} timed out after {provider.timeout}s"
            ) from e
        except LLMRateLimitError as e:
            raise ProviderRateLimited(str(e)) from e
        except LLMError:
            raise
        except Exception as e:
            raise LLMError(f"{provider.provider_name}: {type(e).__name__}: {e}") from e

        if capability == Capability.EMBEDDING:
            dimension = getattr(provider, "dimension", 0)
            if not output or (dimension and len(output) != dimension):
                raise LLMError(
                    f"{provider.provider_name} returned {len(output or [])}-dim vector, "
                    f"declared {dimension}"
                )
        elif not output:
            raise LLMError(f"{provider.provider_name} returned empty completion")
        return output

    async def complete(
        self, messages: list[dict], system: str | None = None, max_tokens: int = 2000
    ) -> GatewayResult:
        return await self.invoke(
            Capability.COMPLETION,
            CompletionRequest(messages=messages, system=system, max_tokens=max_tokens),
        )

    async def embed(self, text: str) -> GatewayResult:
        return await self.invoke(Capability.EMBEDDING, text)

    def status(self) -> list[dict]:
        """Configured order plus a health snapshot, for the CLI and diagnostics."""
        snapshot = self.health.snapshot()
        now = self.health.clock()
        rows = []
        for capability in (Capability.COMPLETION, Capability.EMBEDDING):
            for priority, provider in enumerate(self.candidates(capability), start=1):
                entry = snapshot.get(self.health_key(capability, provider.provider_name))
                rows.append(
                    {
                        "capability": str(capability),
                        "priority": priority,
                        "provider": provider.provider_name,
                        "consecutive_failures": entry.consecutive_failures if entry else 0,
                        "circuit_open": bool(entry and entry.is_open(now)),
                        "last_error": entry.last_error if entry else None,
                    }
                )
        return rows
