"""Google Gemini completion and embedding providers using google-genai SDK."""

from ..base import EmbeddingProvider, LLMAuthError, LLMError, LLMProvider, LLMRateLimitError


def _handle_gemini_error(e: Exception):
    err_str = str(e).lower()
    if "api key" in err_str or "authentication" in err_str or "permission" in err_str:
        raise LLMAuthError(f"Gemini auth failed: {e}") from e
    rate_limited = "resource" in err_str and "exhausted" in err_str
    if rate_limited or "rate limit" in err_str or "429" in err_str:
        raise LLMRateLimitError(f"Gemini rate limit: {e}") from e
    raise LLMError(f"Gemini API error: {e}") from e


def _build_client(api_key: str | None):
    try:
        from google import genai
    except ImportError:
        raise LLMError("google-genai package not installed. Run: pip install google-genai")
    return genai.Client(api_key=api_key)


class GeminiProvider(LLMProvider):
    """Google Gemini provider (google-genai SDK)."""

    provider_name = "gemini"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        client=None,
        timeout: float = 30.0,
    ):
        self.model_name = model or "gemini-2.5-flash"
        self.timeout = timeout
        self.client = client or _build_client(api_key)

    def generate(
        self, messages: list[dict], system: str | None = None, max_tokens: int = 2000
    ) -> str:
        parts = []
        if system:
            parts.append(f"System: {system}\n")
        for msg in messages:
            parts.append(msg["content"])
        prompt = "\n".join(parts)

        try:
            from google.genai import types

            response = self.client.models.generate_content(
                model=self.model_name,
                contents=prompt,
                config=types.GenerateContentConfig(max_output_tokens=max_tokens),
            )
            return response.text
        except Exception as e:
            _handle_gemini_error(e)


class GeminiEmbeddingProvider(EmbeddingProvider):
    """Gemini text embeddings."""

    provider_name = "gemini"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        client=None,
        timeout: float = 10.0,
    ):
        self.model_name = model or "text-embedding-004"
        self.dimension = 768
        self.timeout = timeout
        self.client = client or _build_client(api_key)

    def embed(self, text: str) -> list[float]:
        try:
            result = self.client.models.embed_content(model=self.model_name, contents=text)
            return list(result.embeddings[0].values)
        except Exception as e:
            _handle_gemini_error(e)
