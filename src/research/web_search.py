"""Async web search client (Tavily)."""

import os
from dataclasses import dataclass
from typing import Optional

import httpx
import structlog

logger = structlog.get_logger(source="web_search")

TAVILY_URL = "https://api.tavily.com/search"


class WebSearchUnavailable(Exception):
    """The search API could not be reached or returned an error."""


@dataclass
class SearchResult:
    """Single search result."""
    title: str
    url: str
    content: str
    score: float = 0.0


class AsyncWebSearchClient:
    """Tavily search over a shared httpx.AsyncClient."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        provider: str = "tavily",
        max_results: int = 5,
        max_content_chars: int = 1200,
        timeout: float = 8.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key or os.getenv("TAVILY_API_KEY")
        self.provider = provider
        self.max_results = max_results
        self.max_content_chars = max_content_chars
        self.client = client if client is not None else httpx.AsyncClient(timeout=timeout)

    @property
    def configured(self) -> bool:
        return bool(self.api_key) and self.provider == "tavily"

    async def search(self, query: str, search_depth: str = "basic") -> list[SearchResult]:
        """Search the web for query.

        Returns:
            List of SearchResult; empty when no API key is configured

        Raises:
            WebSearchUnavailable: HTTP or transport failure
        """
        if not self.api_key:
            logger.warning("web_search.no_api_key")
            return []
        if self.provider != "tavily":
            logger.error("web_search.unknown_provider", provider=self.provider)
            return []
        return await self._tavily_search(query, search_depth)

    async def _tavily_search(self, query: str, search_depth: str) -> list[SearchResult]:
        try:
            response = await self.client.post(
                TAVILY_URL,
                json={
                    "api_key": self.api_key,
                    "query": query,
                    "search_depth": search_depth,
                    "include_answer": False,
                    "include_raw_content": False,
                    "max_results": self.max_results,
                },
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("web_search.api_error", status=e.response.status_code)
            raise WebSearchUnavailable(f"Tavily returned {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.error("web_search.request_failed", error=str(e))
            raise WebSearchUnavailable(str(e)) from e

        results = []
        for item in data.get("results", []):
            content = item.get("content", "")[: self.max_content_chars]
            if not content:
                continue
            results.append(SearchResult(
                title=item.get("title", "Untitled"),
                url=item.get("url", ""),
                content=content,
                score=item.get("score", 0.0),
            ))

        logger.info("web_search.complete", results=len(results))
        return results

    async def close(self):
        """Close async client."""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
