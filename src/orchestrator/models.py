"""Request and result envelopes for the orchestration engine."""

import uuid
from dataclasses import dataclass, field

from shared_types import ContextLevel, ErrorKind, PipelineState


@dataclass
class InboundRequest:
    owner_id: str
    text: str
    conversation_id: str | None = None
    include_memory: bool = True
    include_suggestions: bool = False
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])


@dataclass
class PipelineError:
    kind: ErrorKind
    message: str
    retryable: bool

    def to_dict(self) -> dict:
        return {"kind": str(self.kind), "message": self.message, "retryable": self.retryable}


@dataclass
class PipelineResult:
    """Outbound envelope. Either content or error is set, never both."""

    request_id: str
    content: str | None = None
    classification: dict | None = None
    providers_used: list[str] = field(default_factory=list)
    memory_hits_found: int = 0
    validation: dict | None = None
    degraded_reasons: list[str] = field(default_factory=list)
    context_level: ContextLevel | None = None
    web_search: dict | None = None
    suggestions: list[str] = field(default_factory=list)
    states: list[PipelineState] = field(default_factory=list)
    regenerated: bool = False
    error: PipelineError | None = None

    @property
    def state(self) -> PipelineState | None:
        return self.states[-1] if self.states else None

    @property
    def degraded(self) -> bool:
        return bool(self.degraded_reasons)

    @property
    def ok(self) -> bool:
        return self.error is None and self.state == PipelineState.DELIVERED

    def advance(self, state: PipelineState):
        self.states.append(state)

    def degrade(self, reason: str):
        if reason not in self.degraded_reasons:
            self.degraded_reasons.append(reason)

    def to_dict(self) -> dict:
        return {
            "content": self.content,
            "metadata": {
                "request_id": self.request_id,
                "classification": self.classification,
                "providers_used": list(self.providers_used),
                "memory_hits_found": self.memory_hits_found,
                "validation": self.validation,
                "degraded": self.degraded,
                "degraded_reasons": list(self.degraded_reasons),
                "context_level": str(self.context_level) if self.context_level else None,
                "web_search": self.web_search,
                "suggestions": list(self.suggestions),
                "states": [str(s) for s in self.states],
                "regenerated": self.regenerated,
            },
            "error": self.error.to_dict() if self.error else None,
        }
