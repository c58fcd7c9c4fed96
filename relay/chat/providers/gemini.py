"""
Gemini Inference Provider

Calls the Google generative-language REST API directly over httpx.
JSON output is requested with responseMimeType + responseSchema so the
initial chatter batch comes back as a parseable object.
"""

import time
import logging
from typing import Optional
import httpx

from .base import InferenceProvider, CompletionResult, ProviderError

logger = logging.getLogger(__name__)


class GeminiProvider(InferenceProvider):
    """
    Google Gemini API provider.
    
    Uses the `generateContent` endpoint with a single user turn.
    """
    
    BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
    
    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Gemini provider.
        
        Args:
            api_key: Google AI API key
            model: Model identifier (e.g., "gemini-2.5-flash")
            base_url: Override the API root (for proxies and tests)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self._api_key = api_key
        self._model = model
        self._base_url = base_url or self.BASE_URL
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
    
    @property
    def name(self) -> str:
        return f"gemini/{self._model}"
    
    @property
    def model(self) -> str:
        return self._model
    
    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers={
                    "x-goog-api-key": self._api_key,
                    "Content-Type": "application/json",
                },
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client
    
    def _build_payload(
        self,
        prompt: str,
        max_tokens: int,
        temperature: float,
        response_schema: Optional[dict],
    ) -> dict:
        generation_config = {
            "temperature": temperature,
            "maxOutputTokens": max_tokens,
        }
        if response_schema is not None:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseSchema"] = response_schema
        
        return {
            "contents": [
                {"role": "user", "parts": [{"text": prompt}]},
            ],
            "generationConfig": generation_config,
        }
    
    @staticmethod
    def _extract_text(data: dict) -> str:
        """Join the text parts of the first candidate."""
        candidates = data.get("candidates") or []
        if not candidates:
            feedback = data.get("promptFeedback", {})
            raise ProviderError(f"Gemini returned no candidates: {feedback}")
        
        content = candidates[0].get("content") or {}
        parts = content.get("parts") or []
        text = "".join(part.get("text", "") for part in parts)
        if not text.strip():
            reason = candidates[0].get("finishReason", "unknown")
            raise ProviderError(f"Gemini returned empty text (finishReason={reason})")
        return text
    
    async def complete(
        self,
        prompt: str,
        max_tokens: int = 1024,
        temperature: float = 1.0,
        response_schema: Optional[dict] = None,
    ) -> CompletionResult:
        """Generate completion."""
        client = await self._get_client()
        start_time = time.perf_counter()
        
        payload = self._build_payload(prompt, max_tokens, temperature, response_schema)
        response = await client.post(f"/models/{self._model}:generateContent", json=payload)
        response.raise_for_status()
        data = response.json()
        
        text = self._extract_text(data)
        usage = data.get("usageMetadata", {})
        latency_ms = (time.perf_counter() - start_time) * 1000
        
        logger.debug(f"Gemini completion: {len(text)} chars in {latency_ms:.0f}ms")
        
        return CompletionResult(
            text=text,
            tokens_used=usage.get("totalTokenCount", 0),
            tokens_prompt=usage.get("promptTokenCount", 0),
            model=self._model,
            latency_ms=latency_ms,
        )
    
    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
