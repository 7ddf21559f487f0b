"""
Ollama Provider
===============

Local LLM provider using Ollama, for air-gapped deployments where
submission data must not leave the network.

Version: 0.1.0
"""

import time
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from shared.config import settings
from shared.llm.provider import LLMMessage, LLMProvider, LLMResponse, LLMUsage
from shared.logging import get_logger


logger = get_logger(__name__)


class OllamaProvider(LLMProvider):
    """Ollama local LLM provider using the chat API."""

    def __init__(
        self,
        host: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize Ollama provider.

        Args:
            host: Ollama server URL (default from settings)
            model: Model to use (default from settings)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self._host = host or settings.llm.ollama.host
        self._model = model or settings.llm.ollama.model
        self._timeout = timeout or settings.llm.timeout_seconds

        self._client = httpx.AsyncClient(
            base_url=self._host,
            timeout=httpx.Timeout(self._timeout),
            transport=transport,
        )

        logger.debug(
            "ollama_provider_initialized",
            host=self._host,
            model=self._model,
        )

    @property
    def name(self) -> str:
        return "ollama"

    @property
    def model(self) -> str:
        return self._model

    @retry(
        retry=retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException)),
        stop=stop_after_attempt(settings.llm.max_retries),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        reraise=True,
        before_sleep=lambda retry_state: logger.warning(
            "ollama_retry",
            attempt=retry_state.attempt_number,
        ),
    )
    async def complete(
        self,
        messages: list[LLMMessage],
        temperature: float | None = None,
        max_tokens: int | None = None,
        stop_sequences: list[str] | None = None,
    ) -> LLMResponse:
        """Generate a completion using Ollama's ``/api/chat`` endpoint."""
        start_time = time.perf_counter()

        options: dict[str, Any] = {
            "temperature": temperature if temperature is not None else settings.llm.temperature,
        }
        if max_tokens is not None:
            options["num_predict"] = max_tokens
        if stop_sequences:
            options["stop"] = stop_sequences

        try:
            response = await self._client.post(
                "/api/chat",
                json={
                    "model": self._model,
                    "messages": [msg.to_dict() for msg in messages],
                    "stream": False,
                    # Constrain decoding to JSON; the analysis prompt always asks for it
                    "format": "json",
                    "options": options,
                },
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "ollama_http_error",
                status_code=e.response.status_code,
                error=str(e),
            )
            raise

        data = response.json()
        latency_ms = (time.perf_counter() - start_time) * 1000

        prompt_tokens = data.get("prompt_eval_count", 0)
        completion_tokens = data.get("eval_count", 0)

        logger.debug(
            "ollama_completion",
            model=self._model,
            tokens=prompt_tokens + completion_tokens,
            latency_ms=round(latency_ms, 2),
        )

        return LLMResponse(
            content=data.get("message", {}).get("content", ""),
            model=data.get("model", self._model),
            provider=self.name,
            usage=LLMUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
            finish_reason=data.get("done_reason"),
            latency_ms=latency_ms,
            raw_response=data,
        )

    async def health_check(self) -> dict[str, Any]:
        """Check Ollama server health and model availability."""
        try:
            start = time.perf_counter()
            response = await self._client.get("/api/tags")
            response.raise_for_status()
            data = response.json()
            latency_ms = (time.perf_counter() - start) * 1000

            models = [m["name"] for m in data.get("models", [])]
            model_available = any(self._model in m for m in models)

            return {
                "status": "healthy" if model_available else "degraded",
                "provider": self.name,
                "model": self._model,
                "model_available": model_available,
                "latency_ms": round(latency_ms, 2),
            }

        except httpx.ConnectError:
            logger.warning("ollama_not_running")
            return {
                "status": "unhealthy",
                "provider": self.name,
                "model": self._model,
                "error": "Ollama server not running",
            }
        except httpx.HTTPError as e:
            logger.error("ollama_health_check_failed", error=str(e))
            return {
                "status": "unhealthy",
                "provider": self.name,
                "model": self._model,
                "error": str(e),
            }

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
