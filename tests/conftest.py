"""Shared test fixtures for mentorflow."""

import sys
import time
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from llm import EmbeddingProvider, HealthTable, LLMError, LLMProvider, ProviderGateway  # noqa: E402
from llm.fallback import hash_embedding  # noqa: E402
from memory import InMemoryBackend, MemoryStore  # noqa: E402
from observability import metrics  # noqa: E402


class FakeLLM(LLMProvider):
    """Completion provider returning canned replies or raising a configured error."""

    def __init__(self, name="fake", reply="This is a mocked AI response.", error=None, delay=0.0, timeout=5.0):
        self.provider_name = name
        self.reply = reply
        self.error = error
        self.delay = delay
        self.timeout = timeout
        self.calls = []

    def generate(self, messages, system=None, max_tokens=2000):
        self.calls.append({"messages": messages, "system": system, "max_tokens": max_tokens})
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if callable(self.reply):
            return self.reply(messages, system)
        if isinstance(self.reply, list):
            return self.reply.pop(0)
        return self.reply


class FakeEmbedder(EmbeddingProvider):
    """Embedding provider backed by the hashed bag-of-words vector."""

    def __init__(self, name="fake-embed", dimension=32, error=None, fail_on=None, timeout=5.0):
        self.provider_name = name
        self.dimension = dimension
        self.error = error
        self.fail_on = fail_on
        self.timeout = timeout
        self.calls = []

    def embed(self, text):
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        if self.fail_on is not None and self.fail_on(text):
            raise LLMError("embedding refused")
        return hash_embedding(text, self.dimension)


class ManualClock:
    """Callable clock advanced by hand."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class ManualDateTimeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 15, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def dt_clock():
    return ManualDateTimeClock()


@pytest.fixture
def health(clock):
    return HealthTable(clock=clock)


@pytest.fixture
def gateway(health):
    """Gateway with one healthy completion and one healthy embedding provider."""
    return ProviderGateway(
        completion_providers=[FakeLLM(name="primary")],
        embedding_providers=[FakeEmbedder()],
        health=health,
    )


@pytest.fixture
def backend():
    return InMemoryBackend()


@pytest.fixture
def memory_store(backend, gateway, dt_clock):
    return MemoryStore(backend, gateway=gateway, clock=dt_clock)


@pytest.fixture
def lexical_store(backend, dt_clock):
    """Store without a gateway: records carry no embeddings."""
    return MemoryStore(backend, gateway=None, clock=dt_clock)
