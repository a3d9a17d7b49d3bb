"""Provider gateway over multiple completion and embedding vendors."""

from .base import (
    CompletionRequest,
    EmbeddingProvider,
    GatewayResult,
    LLMAuthError,
    LLMError,
    LLMProvider,
    LLMRateLimitError,
    ProviderExhausted,
    ProviderRateLimited,
    ProviderTimeout,
)
from .factory import build_gateway, create_embedding_provider, create_llm_provider
from .fallback import FALLBACK_DIMENSION, FALLBACK_PROVIDER, hash_embedding
from .gateway import ProviderGateway
from .health import HealthTable, ProviderHealth

__all__ = [
    "LLMProvider",
    "EmbeddingProvider",
    "ProviderGateway",
    "HealthTable",
    "ProviderHealth",
    "CompletionRequest",
    "GatewayResult",
    "build_gateway",
    "create_llm_provider",
    "create_embedding_provider",
    "hash_embedding",
    "FALLBACK_DIMENSION",
    "FALLBACK_PROVIDER",
    "LLMError",
    "LLMRateLimitError",
    "LLMAuthError",
    "ProviderTimeout",
    "ProviderRateLimited",
    "ProviderExhausted",
]
