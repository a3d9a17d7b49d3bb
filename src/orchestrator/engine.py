"""Orchestration engine: drives one request from raw text to a delivered reply.

Stages run as a state machine (received, classified, memory_resolved,
context_built, generated, validated, delivered) with `failed` reachable from
any stage. Only input rejection and total completion exhaustion fail a
request; every other collaborator failure degrades it and the reply is still
delivered.
"""

import asyncio
import re
from dataclasses import dataclass
from functools import partial

import structlog

from cli.retry import write_retry
from context import (
    Candidate,
    ContextBundle,
    ContextOptimizer,
    candidates_from_memory,
    candidates_from_turns,
)
from llm import ProviderExhausted
from memory import MemoryUnavailable, ScoredRecord
from observability import metrics
from query import ClassificationResult, InputRejected, classify, sanitize_input, suggest_follow_ups
from research import (
    AsyncWebSearchClient,
    Reason,
    SearchResult,
    WebSearchDecision,
    WebSearchDecisionEngine,
    WebSearchUnavailable,
)
from shared_types import ContextLevel, ErrorKind, FragmentSource, Intent, PipelineState, SearchMode
from validation import ResponseValidator, ValidationInconclusive, ValidationResult

from .collaborators import ConversationHistory, KnowledgeBase
from .models import InboundRequest, PipelineError, PipelineResult
from .prompts import PromptTemplates

logger = structlog.get_logger(source="orchestrator")

UNAVAILABLE_MESSAGE = "The assistant is temporarily unavailable. Please try again shortly."

_PERSONAL_STATEMENT_RE = re.compile(
    r"\b(?:my\s+\w+(?:\s+\w+)?\s+(?:is|are|was|were)|i\s+am|i'm|call\s+me"
    r"|i\s+(?:like|love|hate|prefer|study|work|live|want|need))\b",
    re.IGNORECASE,
)


@dataclass
class EngineSettings:
    max_input_length: int = 4000
    memory_timeout: float = 3.0
    web_timeout: float = 8.0
    default_limit: int = 5
    default_min_similarity: float = 0.3
    personal_limit: int = 10
    personal_min_similarity: float = 0.1
    knowledge_limit: int = 5
    max_response_tokens: int = 1500
    web_search_enabled: bool = True
    validation_enabled: bool = True
    min_confidence: float = 0.5
    max_regenerations: int = 1
    write_back: bool = True
    retry_attempts: int = 3
    retry_min_wait: float = 0.5
    retry_max_wait: float = 5.0

    def __post_init__(self):
        if not 0 <= self.max_regenerations <= 1:
            raise ValueError("max_regenerations must be 0 or 1")


def select_level(classification: ClassificationResult, has_history: bool) -> ContextLevel:
    """Context fidelity for an intent."""
    if classification.intent == Intent.PERSONAL:
        return ContextLevel.FULL
    if classification.intent in (Intent.TEACHING, Intent.TIME_SENSITIVE):
        return ContextLevel.SELECTIVE
    return ContextLevel.RECENT if has_history else ContextLevel.LIGHT


def infer_importance(text: str, classification: ClassificationResult) -> float:
    """0.9 for personal statements, 0.7 for other personal messages, else 0.4."""
    if classification.intent == Intent.PERSONAL:
        is_question = text.rstrip().endswith("?")
        if not is_question and _PERSONAL_STATEMENT_RE.search(text):
            return 0.9
        return 0.7
    return 0.4


def _worse(candidate: ValidationResult, baseline: ValidationResult) -> bool:
    """Fewer contradictions wins; confidence breaks ties."""
    if len(candidate.contradictions) != len(baseline.contradictions):
        return len(candidate.contradictions) > len(baseline.contradictions)
    return candidate.confidence < baseline.confidence


class OrchestrationEngine:
    """Coordinates the gateway, memory, context, web decision and validation stages."""

    def __init__(
        self,
        gateway,
        memory=None,
        optimizer: ContextOptimizer | None = None,
        web_decider: WebSearchDecisionEngine | None = None,
        validator: ResponseValidator | None = None,
        history: ConversationHistory | None = None,
        knowledge: KnowledgeBase | None = None,
        web_client: AsyncWebSearchClient | None = None,
        settings: EngineSettings | None = None,
    ):
        self.gateway = gateway
        self.memory = memory
        self.optimizer = optimizer if optimizer is not None else ContextOptimizer()
        self.web_decider = web_decider if web_decider is not None else WebSearchDecisionEngine()
        self.validator = validator if validator is not None else ResponseValidator()
        self.history = history
        self.knowledge = knowledge
        self.web_client = web_client
        self.settings = settings if settings is not None else EngineSettings()
        self._pending: set[asyncio.Task] = set()

    async def handle(self, request: InboundRequest) -> PipelineResult:
        """Run one request through the pipeline.

        Never raises for collaborator failures: the returned result carries
        either content (possibly degraded) or an error payload.
        """
        result = PipelineResult(request_id=request.request_id)
        result.advance(PipelineState.RECEIVED)
        metrics.counter("pipeline.requests")

        with structlog.contextvars.bound_contextvars(
            request_id=request.request_id, owner_id=request.owner_id
        ), metrics.timer("pipeline.total"):
            result = await self._run(request, result)

        if result.degraded:
            metrics.counter("pipeline.degraded")
        logger.info(
            "pipeline.complete",
            state=str(result.state),
            degraded_reasons=result.degraded_reasons,
            providers=result.providers_used,
        )
        return result

    async def _run(self, request: InboundRequest, result: PipelineResult) -> PipelineResult:
        try:
            text = sanitize_input(request.text, self.settings.max_input_length)
        except InputRejected as e:
            logger.info("pipeline.input_rejected", reason=e.reason)
            return self._fail(result, ErrorKind.INPUT_REJECTED, str(e), retryable=False)

        classification = classify(text)
        result.classification = classification.to_dict()
        result.advance(PipelineState.CLASSIFIED)

        turns = self._recent_turns(request, result)
        owner_history = [t.get("content", "") for t in turns if t.get("role") == "user"]

        with metrics.timer("pipeline.memory_and_decision"):
            hits, decision = await asyncio.gather(
                self._lookup_memory(request, classification, result),
                self._decide_web(classification, request.owner_id, owner_history, result),
            )
        result.memory_hits_found = len(hits)
        result.advance(PipelineState.MEMORY_RESOLVED)

        web_results = await self._search_web(text, decision, result)
        result.web_search = {**decision.to_dict(), "results": len(web_results)}
        knowledge_facts = self._lookup_knowledge(text, result)

        level = select_level(classification, has_history=bool(turns))
        bundle = self.optimizer.build(
            level, self._candidates(hits, turns, knowledge_facts, web_results)
        )
        result.context_level = level
        result.advance(PipelineState.CONTEXT_BUILT)

        context = self.optimizer.render(bundle)
        messages = [{"role": "user", "content": text}]
        try:
            with metrics.timer("pipeline.generate"):
                generated = await self.gateway.complete(
                    messages,
                    system=PromptTemplates.system_prompt(classification.intent, context),
                    max_tokens=self.settings.max_response_tokens,
                )
        except ProviderExhausted as e:
            logger.error("pipeline.generation_exhausted", attempted=e.attempted)
            return self._fail(result, ErrorKind.PROVIDER_EXHAUSTED, UNAVAILABLE_MESSAGE, retryable=True)

        content = generated.output
        result.providers_used.append(generated.provider)
        result.advance(PipelineState.GENERATED)

        validation = self._validate(content, bundle, knowledge_facts, result)
        if (
            validation is not None
            and self.settings.max_regenerations > 0
            and validation.needs_regeneration(self.settings.min_confidence)
        ):
            content, validation = await self._regenerate(
                messages, classification, context, content, validation, bundle, knowledge_facts, result
            )
        result.validation = validation.to_dict() if validation else None
        result.advance(PipelineState.VALIDATED)

        result.content = content
        if request.include_suggestions:
            result.suggestions = suggest_follow_ups(classification)
        result.advance(PipelineState.DELIVERED)

        self._record_turns(request, text, content)
        self._schedule_write_back(request, text, classification)
        return result

    def _fail(
        self, result: PipelineResult, kind: ErrorKind, message: str, retryable: bool
    ) -> PipelineResult:
        result.error = PipelineError(kind=kind, message=message, retryable=retryable)
        result.content = None
        result.advance(PipelineState.FAILED)
        metrics.counter(f"pipeline.failed.{kind}")
        return result

    def _recent_turns(self, request: InboundRequest, result: PipelineResult) -> list[dict]:
        if self.history is None:
            return []
        try:
            return self.history.recent_turns(
                request.owner_id, request.conversation_id, self.optimizer.recent_turns
            )
        except Exception as e:
            logger.warning("pipeline.history_unavailable", error=str(e))
            result.degrade("history_unavailable")
            return []

    async def _lookup_memory(
        self, request: InboundRequest, classification: ClassificationResult, result: PipelineResult
    ) -> list[ScoredRecord]:
        if not request.include_memory or self.memory is None:
            return []

        if classification.needs_memory:
            limit, min_similarity = self.settings.personal_limit, self.settings.personal_min_similarity
        else:
            limit, min_similarity = self.settings.default_limit, self.settings.default_min_similarity

        try:
            return await asyncio.wait_for(
                self.memory.search(
                    request.owner_id,
                    classification.query,
                    limit=limit,
                    min_similarity=min_similarity,
                    mode=SearchMode.HYBRID,
                ),
                timeout=self.settings.memory_timeout,
            )
        except TimeoutError:
            logger.warning("pipeline.memory_timeout", timeout=self.settings.memory_timeout)
            result.degrade("memory_timeout")
        except MemoryUnavailable as e:
            logger.warning("pipeline.memory_unavailable", error=str(e))
            result.degrade("memory_unavailable")
        except Exception as e:
            logger.warning("pipeline.memory_error", error=str(e), error_type=type(e).__name__)
            result.degrade("memory_unavailable")
        return []

    async def _decide_web(
        self,
        classification: ClassificationResult,
        owner_id: str,
        owner_history: list[str],
        result: PipelineResult,
    ) -> WebSearchDecision:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(
                    partial(self.web_decider.decide, classification, owner_id, owner_history)
                ),
                timeout=self.settings.web_timeout,
            )
        except TimeoutError:
            logger.warning("pipeline.web_decision_timeout")
            result.degrade("web_decision_unavailable")
            return WebSearchDecision(False, Reason.NOT_NEEDED)
        except Exception as e:
            logger.warning("pipeline.web_decision_error", error=str(e))
            result.degrade("web_decision_unavailable")
            return WebSearchDecision(False, Reason.NOT_NEEDED)

    async def _search_web(
        self, text: str, decision: WebSearchDecision, result: PipelineResult
    ) -> list[SearchResult]:
        if not decision.should_search or not self.settings.web_search_enabled:
            return []
        if self.web_client is None:
            return []
        try:
            with metrics.timer("pipeline.web_search"):
                return await asyncio.wait_for(
                    self.web_client.search(text), timeout=self.settings.web_timeout
                )
        except (TimeoutError, WebSearchUnavailable) as e:
            logger.warning("pipeline.web_search_unavailable", error=str(e) or type(e).__name__)
            result.degrade("web_search_unavailable")
            return []

    def _lookup_knowledge(self, text: str, result: PipelineResult) -> list[str]:
        if self.knowledge is None:
            return []
        try:
            return self.knowledge.lookup(text, self.settings.knowledge_limit)
        except Exception as e:
            logger.warning("pipeline.knowledge_unavailable", error=str(e))
            result.degrade("knowledge_unavailable")
            return []

    @staticmethod
    def _candidates(
        hits: list[ScoredRecord],
        turns: list[dict],
        knowledge_facts: list[str],
        web_results: list[SearchResult],
    ) -> list[Candidate]:
        candidates = candidates_from_memory(hits) + candidates_from_turns(turns)
        for i, fact in enumerate(knowledge_facts):
            candidates.append(
                Candidate(
                    text=fact,
                    weight=round(max(0.1, 0.6 - 0.05 * i), 6),
                    source=FragmentSource.KNOWLEDGE,
                    ref_id=f"knowledge:{i}",
                )
            )
        for i, item in enumerate(web_results):
            candidates.append(
                Candidate(
                    text=f"{item.title}: {item.content}",
                    weight=round(min(0.8, 0.5 + 0.3 * float(item.score or 0.0)), 6),
                    source=FragmentSource.WEB,
                    ref_id=item.url or f"web:{i}",
                )
            )
        return candidates

    def _validate(
        self,
        content: str,
        bundle: ContextBundle,
        knowledge_facts: list[str],
        result: PipelineResult,
    ) -> ValidationResult | None:
        if self.validator is None or not self.settings.validation_enabled:
            return None
        try:
            return self.validator.validate(content, bundle, knowledge_facts)
        except ValidationInconclusive as e:
            logger.info("pipeline.validation_inconclusive", error=str(e))
            result.degrade("validation_inconclusive")
        except Exception as e:
            # advisory: deliver unvalidated
            logger.warning("pipeline.validation_unavailable", error=str(e))
            result.degrade("validation_unavailable")
        return None

    async def _regenerate(
        self,
        messages: list[dict],
        classification: ClassificationResult,
        context: str,
        content: str,
        validation: ValidationResult,
        bundle: ContextBundle,
        knowledge_facts: list[str],
        result: PipelineResult,
    ) -> tuple[str, ValidationResult | None]:
        """One conservative retry. A failed retry keeps the first response."""
        logger.info(
            "pipeline.regenerating",
            confidence=validation.confidence,
            contradictions=len(validation.contradictions),
        )
        try:
            regenerated = await self.gateway.complete(
                messages,
                system=PromptTemplates.system_prompt(
                    classification.intent, context, conservative=True
                ),
                max_tokens=self.settings.max_response_tokens,
            )
        except ProviderExhausted as e:
            logger.warning("pipeline.regeneration_failed", attempted=e.attempted)
            result.degrade("regeneration_failed")
            return content, validation

        metrics.counter("pipeline.regenerated")
        result.regenerated = True
        result.providers_used.append(regenerated.provider)
        revalidation = self._validate(regenerated.output, bundle, knowledge_facts, result)
        if revalidation is not None and _worse(revalidation, validation):
            logger.info(
                "pipeline.regeneration_discarded",
                first=validation.confidence,
                regenerated=revalidation.confidence,
            )
            result.degrade("validation_failed")
            return content, validation
        if revalidation is not None and revalidation.needs_regeneration(self.settings.min_confidence):
            result.degrade("validation_failed")
        return regenerated.output, revalidation

    def _record_turns(self, request: InboundRequest, text: str, content: str):
        if self.history is None:
            return
        try:
            self.history.append(request.owner_id, request.conversation_id, "user", text)
            self.history.append(request.owner_id, request.conversation_id, "assistant", content)
        except Exception as e:
            logger.warning("pipeline.history_append_failed", error=str(e))

    def _schedule_write_back(
        self, request: InboundRequest, text: str, classification: ClassificationResult
    ):
        if self.memory is None or not self.settings.write_back or not request.include_memory:
            return
        task = asyncio.get_running_loop().create_task(
            self._write_back(
                owner_id=request.owner_id,
                text=text,
                tags=("conversation", str(classification.intent)),
                importance=infer_importance(text, classification),
                conversation_id=request.conversation_id,
            )
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write_back(self, owner_id, text, tags, importance, conversation_id):
        try:
            async for attempt in write_retry(
                max_attempts=self.settings.retry_attempts,
                min_wait=self.settings.retry_min_wait,
                max_wait=self.settings.retry_max_wait,
            ):
                with attempt:
                    record_id = await self.memory.store(
                        owner_id,
                        text,
                        tags=tags,
                        importance=importance,
                        conversation_id=conversation_id,
                    )
        except MemoryUnavailable as e:
            metrics.counter("memory.write_back_failed")
            logger.error("pipeline.write_back_failed", owner_id=owner_id, error=str(e))
            return None
        metrics.counter("memory.write_back")
        return record_id

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    async def drain(self):
        """Wait for background memory writes to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
