"""Orchestration engine — the request pipeline and its background maintenance."""

from .collaborators import (
    ConversationHistory,
    InMemoryConversationHistory,
    InMemoryKnowledgeBase,
    KnowledgeBase,
)
from .engine import (
    UNAVAILABLE_MESSAGE,
    EngineSettings,
    OrchestrationEngine,
    infer_importance,
    select_level,
)
from .models import InboundRequest, PipelineError, PipelineResult
from .prompts import PromptTemplates
from .sweeper import MaintenanceSweeper

__all__ = [
    "OrchestrationEngine",
    "EngineSettings",
    "InboundRequest",
    "PipelineResult",
    "PipelineError",
    "PromptTemplates",
    "MaintenanceSweeper",
    "ConversationHistory",
    "InMemoryConversationHistory",
    "KnowledgeBase",
    "InMemoryKnowledgeBase",
    "select_level",
    "infer_importance",
    "UNAVAILABLE_MESSAGE",
]
