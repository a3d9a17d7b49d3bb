"""Tests for provider factory and gateway construction from config."""

from unittest.mock import MagicMock, patch

import pytest

from llm import LLMError, build_gateway, create_embedding_provider, create_llm_provider


@pytest.fixture
def no_keys(monkeypatch):
    for var in ("ANTHROPIC_API_KEY", "OPENAI_API_KEY", "GOOGLE_API_KEY"):
        monkeypatch.delenv(var, raising=False)


class TestCreateProvider:
    def test_explicit_claude_with_client(self):
        mock_client = MagicMock()
        provider = create_llm_provider(provider="claude", client=mock_client)
        assert provider.provider_name == "claude"
        assert provider.client is mock_client

    def test_explicit_openai_with_client(self):
        mock_client = MagicMock()
        provider = create_llm_provider(provider="openai", client=mock_client, timeout=12.0)
        assert provider.provider_name == "openai"
        assert provider.timeout == 12.0

    def test_explicit_gemini_with_client(self):
        mock_client = MagicMock()
        provider = create_llm_provider(provider="gemini", client=mock_client)
        assert provider.provider_name == "gemini"
        assert provider.client is mock_client

    def test_unknown_provider_raises(self):
        with pytest.raises(LLMError, match="Unknown provider"):
            create_llm_provider(provider="llama", client=MagicMock())

    def test_custom_model(self):
        provider = create_llm_provider(
            provider="claude", client=MagicMock(), model="claude-opus-4-20250514"
        )
        assert provider.model == "claude-opus-4-20250514"


class TestCreateEmbeddingProvider:
    def test_openai_dimension(self):
        provider = create_embedding_provider("openai", client=MagicMock())
        assert provider.dimension == 1536

    def test_openai_large_model_dimension(self):
        provider = create_embedding_provider(
            "openai", client=MagicMock(), model="text-embedding-3-large"
        )
        assert provider.dimension == 3072

    def test_gemini_dimension(self):
        provider = create_embedding_provider("gemini", client=MagicMock())
        assert provider.dimension == 768

    def test_claude_has_no_embeddings(self):
        with pytest.raises(LLMError, match="Unknown embedding provider"):
            create_embedding_provider("claude", client=MagicMock())


class TestBuildGateway:
    def test_skips_providers_without_credentials(self, no_keys, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        with patch("openai.OpenAI"):
            gw = build_gateway(
                {
                    "completion": [{"name": "claude"}, {"name": "openai", "timeout": 20.0}],
                    "embedding": [{"name": "gemini"}, {"name": "openai"}],
                }
            )
        assert [p.provider_name for p in gw.completion_providers] == ["openai"]
        assert gw.completion_providers[0].timeout == 20.0
        assert [p.provider_name for p in gw.embedding_providers] == ["openai"]

    def test_explicit_key_overrides_env(self, no_keys):
        with patch("anthropic.Anthropic"):
            gw = build_gateway({"completion": [{"name": "claude", "api_key": "sk-ant-explicit"}]})
        assert [p.provider_name for p in gw.completion_providers] == ["claude"]

    def test_cooldown_settings(self, no_keys):
        gw = build_gateway(
            {
                "completion": [],
                "base_cooldown_seconds": 5,
                "max_cooldown_seconds": 50,
                "fallback_embedding_dimension": 64,
            }
        )
        assert gw.health.base_cooldown == 5
        assert gw.health.max_cooldown == 50
        assert gw.fallback_dimension == 64
        assert gw.completion_providers == []
