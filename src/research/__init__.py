"""Web-search decisions and the async search client."""

from .decision import (
    DEFAULT_DECISION_TTL,
    DecisionCache,
    Reason,
    WebSearchDecision,
    WebSearchDecisionEngine,
)
from .web_search import AsyncWebSearchClient, SearchResult, WebSearchUnavailable

__all__ = [
    "DecisionCache",
    "DEFAULT_DECISION_TTL",
    "Reason",
    "WebSearchDecision",
    "WebSearchDecisionEngine",
    "AsyncWebSearchClient",
    "SearchResult",
    "WebSearchUnavailable",
]
