"""Tests for AsyncWebSearchClient."""

import json

import httpx
import pytest

from research.web_search import TAVILY_URL, AsyncWebSearchClient, SearchResult, WebSearchUnavailable


@pytest.fixture
def mock_tavily_response():
    """Mock Tavily API response."""
    return {
        "results": [
            {
                "title": "Machine Learning in Healthcare",
                "url": "https://example.com/ml-healthcare",
                "content": "A comprehensive guide to applying ML in healthcare settings.",
                "score": 0.95,
            },
            {
                "title": "Empty",
                "url": "https://example.com/empty",
                "content": "",
                "score": 0.5,
            },
            {
                "title": "AI Applications in Medicine",
                "url": "https://example.com/ai-medicine",
                "content": "How artificial intelligence is transforming medical diagnosis.",
                "score": 0.88,
            },
        ]
    }


def _client(handler, **kwargs):
    transport = httpx.MockTransport(handler)
    return AsyncWebSearchClient(
        api_key=kwargs.pop("api_key", "tvly-test"),
        client=httpx.AsyncClient(transport=transport),
        **kwargs,
    )


class TestAsyncWebSearchClient:
    def test_init_without_key(self, monkeypatch):
        monkeypatch.delenv("TAVILY_API_KEY", raising=False)
        client = AsyncWebSearchClient(api_key=None)
        assert client.api_key is None
        assert client.configured is False

    def test_key_from_env(self, monkeypatch):
        monkeypatch.setenv("TAVILY_API_KEY", "tvly-env")
        assert AsyncWebSearchClient().api_key == "tvly-env"

    @pytest.mark.asyncio
    async def test_search_without_key_returns_empty(self, monkeypatch):
        monkeypatch.delenv("TAVILY_API_KEY", raising=False)

        def handler(request):
            raise AssertionError("no request expected")

        client = AsyncWebSearchClient(
            api_key=None, client=httpx.AsyncClient(transport=httpx.MockTransport(handler))
        )
        assert await client.search("anything") == []

    @pytest.mark.asyncio
    async def test_search_parses_results(self, mock_tavily_response):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=mock_tavily_response)

        async with _client(handler, max_results=3) as client:
            results = await client.search("machine learning healthcare")

        assert seen["url"] == TAVILY_URL
        assert seen["body"]["query"] == "machine learning healthcare"
        assert seen["body"]["max_results"] == 3
        assert len(results) == 2
        assert isinstance(results[0], SearchResult)
        assert results[0].title == "Machine Learning in Healthcare"
        assert results[0].score == 0.95

    @pytest.mark.asyncio
    async def test_content_truncated(self):
        def handler(request):
            return httpx.Response(
                200, json={"results": [{"title": "t", "url": "u", "content": "x" * 50}]}
            )

        async with _client(handler, max_content_chars=10) as client:
            results = await client.search("q")
        assert results[0].content == "x" * 10

    @pytest.mark.asyncio
    async def test_http_error_raises_unavailable(self):
        def handler(request):
            return httpx.Response(503, json={"error": "down"})

        async with _client(handler) as client:
            with pytest.raises(WebSearchUnavailable, match="503"):
                await client.search("q")

    @pytest.mark.asyncio
    async def test_transport_error_raises_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(WebSearchUnavailable):
                await client.search("q")

    @pytest.mark.asyncio
    async def test_unknown_provider_returns_empty(self):
        def handler(request):
            raise AssertionError("no request expected")

        async with _client(handler, provider="bing") as client:
            assert client.configured is False
            assert await client.search("q") == []
