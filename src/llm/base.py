"""Base provider abstractions and the provider error taxonomy."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from shared_types import Capability, ErrorKind


class LLMError(Exception):
    """Base provider error."""

    kind: ErrorKind | None = None


class LLMRateLimitError(LLMError):
    """Rate limit hit."""

    kind = ErrorKind.PROVIDER_RATE_LIMITED


class LLMAuthError(LLMError):
    """Authentication failure."""


class ProviderTimeout(LLMError):
    """A provider did not answer within its declared timeout."""

    kind = ErrorKind.PROVIDER_TIMEOUT


class ProviderRateLimited(LLMRateLimitError):
    """Gateway-level view of a rate-limited attempt."""


class ProviderExhausted(LLMError):
    """Every candidate for a capability failed or was circuit-open."""

    kind = ErrorKind.PROVIDER_EXHAUSTED

    def __init__(self, capability: Capability, attempted: list[str], errors: dict[str, str]):
        self.capability = capability
        self.attempted = attempted
        self.errors = errors
        super().__init__(
            f"All {capability} providers exhausted (attempted: {', '.join(attempted) or 'none'})"
        )


@dataclass
class CompletionRequest:
    """Payload for a completion call."""

    messages: list[dict]
    system: str | None = None
    max_tokens: int = 2000


@dataclass
class GatewayResult:
    """Output of a gateway invocation."""

    output: object
    provider: str
    attempted: list[str] = field(default_factory=list)
    fallback: bool = False


class LLMProvider(ABC):
    """Abstract completion provider interface."""

    provider_name: str = "base"
    timeout: float = 30.0

    @abstractmethod
    def generate(
        self, messages: list[dict], system: str | None = None, max_tokens: int = 2000
    ) -> str:
        """Generate a response from messages.

        Args:
            messages: List of {"role": ..., "content": ...} dicts
            system: Optional system prompt
            max_tokens: Max response tokens

        Returns:
            Generated text
        """
        ...


class EmbeddingProvider(ABC):
    """Abstract embedding provider interface.

    Implementations declare the dimensionality of the vectors they return so
    the memory store can refuse cross-dimension comparisons.
    """

    provider_name: str = "base"
    timeout: float = 10.0
    dimension: int = 0

    @abstractmethod
    def embed(self, text: str) -> list[float]:
        """Return the embedding vector for text."""
        ...
