"""Shared CLI utilities."""

import asyncio
from datetime import timedelta
from pathlib import Path

import structlog
from rich.console import Console

console = Console()
logger = structlog.get_logger()


def build_settings(config_model):
    """EngineSettings from a PipelineConfig."""
    from orchestrator import EngineSettings

    mem = config_model.memory
    return EngineSettings(
        max_input_length=config_model.input.max_length,
        memory_timeout=mem.lookup_timeout_seconds,
        web_timeout=config_model.web_search.timeout_seconds,
        default_limit=mem.default_limit,
        default_min_similarity=mem.default_min_similarity,
        personal_limit=mem.personal_limit,
        personal_min_similarity=mem.personal_min_similarity,
        knowledge_limit=config_model.context.selective_facts,
        max_response_tokens=config_model.context.max_response_tokens,
        web_search_enabled=config_model.web_search.enabled,
        validation_enabled=config_model.validation.enabled,
        min_confidence=config_model.validation.min_confidence,
        max_regenerations=config_model.validation.max_regenerations,
        retry_attempts=config_model.retry.max_attempts,
        retry_min_wait=config_model.retry.min_wait,
        retry_max_wait=config_model.retry.max_wait,
    )


def get_components(config_path: Path | None = None, with_engine: bool = True) -> dict:
    """Initialize all components from config.

    Args:
        config_path: Explicit config file (None = standard locations)
        with_engine: If False, skip engine/web client init (memory-only commands)
    """
    from cli.config import load_config_model
    from context import ContextOptimizer
    from llm import build_gateway
    from memory import InMemoryBackend, MemoryStore, SQLiteBackend
    from orchestrator import InMemoryConversationHistory, MaintenanceSweeper, OrchestrationEngine
    from research import AsyncWebSearchClient, DecisionCache, WebSearchDecisionEngine

    config_model = load_config_model(config_path)
    config = config_model.to_dict()

    gateway = build_gateway(config["providers"])

    mem_cfg = config_model.memory
    if mem_cfg.backend == "memory":
        backend = InMemoryBackend()
    else:
        backend = SQLiteBackend(mem_cfg.db_path, mem_cfg.chroma_dir)
    memory = MemoryStore(
        backend,
        gateway=gateway,
        default_limit=mem_cfg.default_limit,
        default_min_similarity=mem_cfg.default_min_similarity,
    )

    decision_cache = DecisionCache(ttl=config_model.web_search.decision_ttl_seconds)
    sweeper = MaintenanceSweeper(
        memory=memory,
        health=gateway.health,
        decision_cache=decision_cache,
        grace_period=timedelta(hours=mem_cfg.grace_period_hours),
        interval_minutes=mem_cfg.sweep_interval_minutes,
    )

    engine = None
    if with_engine:
        ws_cfg = config_model.web_search
        web_client = None
        if ws_cfg.enabled:
            web_client = AsyncWebSearchClient(
                api_key=ws_cfg.tavily_api_key,
                max_results=ws_cfg.max_results,
                timeout=ws_cfg.timeout_seconds,
            )
        ctx_cfg = config_model.context
        engine = OrchestrationEngine(
            gateway=gateway,
            memory=memory,
            optimizer=ContextOptimizer(
                budgets=ctx_cfg.budgets,
                light_memory_hits=ctx_cfg.light_memory_hits,
                recent_turns=ctx_cfg.recent_turns,
                selective_facts=ctx_cfg.selective_facts,
            ),
            web_decider=WebSearchDecisionEngine(decision_cache),
            history=InMemoryConversationHistory(),
            web_client=web_client,
            settings=build_settings(config_model),
        )

    return {
        "config": config,
        "config_model": config_model,
        "gateway": gateway,
        "memory": memory,
        "decision_cache": decision_cache,
        "sweeper": sweeper,
        "engine": engine,
    }


def run_async(coro):
    """Run a coroutine from a sync click command."""
    return asyncio.run(coro)
