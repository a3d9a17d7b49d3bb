"""Shared enums and types for mentorflow."""

from enum import StrEnum


class Intent(StrEnum):
    PERSONAL = "personal"
    TEACHING = "teaching"
    GENERAL = "general"
    TIME_SENSITIVE = "time_sensitive"


class ContextLevel(StrEnum):
    LIGHT = "light"
    RECENT = "recent"
    SELECTIVE = "selective"
    FULL = "full"


class SearchMode(StrEnum):
    VECTOR = "vector"
    LEXICAL = "lexical"
    HYBRID = "hybrid"


class Capability(StrEnum):
    EMBEDDING = "embedding"
    COMPLETION = "completion"


class FragmentSource(StrEnum):
    MEMORY = "memory"
    CONVERSATION = "conversation"
    KNOWLEDGE = "knowledge"
    WEB = "web"


class PipelineState(StrEnum):
    RECEIVED = "received"
    CLASSIFIED = "classified"
    MEMORY_RESOLVED = "memory_resolved"
    CONTEXT_BUILT = "context_built"
    GENERATED = "generated"
    VALIDATED = "validated"
    DELIVERED = "delivered"
    FAILED = "failed"


class ErrorKind(StrEnum):
    PROVIDER_TIMEOUT = "provider_timeout"
    PROVIDER_RATE_LIMITED = "provider_rate_limited"
    PROVIDER_EXHAUSTED = "provider_exhausted"
    INPUT_REJECTED = "input_rejected"
    MEMORY_UNAVAILABLE = "memory_unavailable"
    VALIDATION_INCONCLUSIVE = "validation_inconclusive"
