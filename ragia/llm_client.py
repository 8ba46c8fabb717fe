"""OpenAI-compatible model client with error handling.

Exposes the two capabilities the pipeline depends on:
- ``embed(text)`` against an embeddings endpoint
- ``generate(messages)`` against a chat completions endpoint

Every call is bounded by ``asyncio.timeout`` and surfaces a typed timeout
error instead of hanging.
"""
import asyncio
from typing import Any, Dict, List, Optional, Protocol

import httpx
import structlog

from ragia.config import Settings
from ragia.errors import (
    EmbeddingServiceError,
    EmbeddingTimeoutError,
    GenerationError,
    GenerationTimeoutError,
)

logger = structlog.get_logger()


class ModelCapability(Protocol):
    """What the pipeline needs from the model services."""

    async def embed(self, text: str) -> List[Any]:
        ...

    async def generate(
        self,
        messages: List[Dict[str, str]],
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> str:
        ...


def _error_detail(response: httpx.Response) -> str:
    return response.text[:200]


class ModelClient:
    """Async client for OpenAI-compatible embedding and chat endpoints."""

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize model client.

        Args:
            settings: Process settings (URLs, models, timeouts)
            transport: Optional httpx transport (tests use MockTransport)
        """
        self.settings = settings
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    async def embed(self, text: str) -> List[Any]:
        """Request an embedding for ``text``.

        Returns:
            The raw ``data[0].embedding`` list (dimension not checked here)

        Raises:
            EmbeddingTimeoutError: If the call exceeds the configured bound
            EmbeddingServiceError: On transport, status or body errors
        """
        url = self.settings.embeddings_url
        timeout = self.settings.embeddings_timeout
        payload = {
            "model": self.settings.embeddings_model,
            "input": text,
        }

        logger.debug(
            "embedding_request",
            model=self.settings.embeddings_model,
            input_length=len(text),
        )

        try:
            async with asyncio.timeout(timeout):
                async with self._client(timeout) as client:
                    response = await client.post(url, json=payload)

        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.error("embedding_timeout", url=url, timeout=timeout)
            raise EmbeddingTimeoutError(
                f"Embedding service timed out after {timeout}s"
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error("embedding_connection_error", url=url, error=str(e))
            raise EmbeddingServiceError(
                f"Embedding service unreachable at {url}: {e}"
            ) from e

        if response.is_error:
            logger.error(
                "embedding_http_error",
                status_code=response.status_code,
                detail=_error_detail(response),
            )
            raise EmbeddingServiceError(
                f"Embedding service responded {response.status_code}: "
                f"{_error_detail(response)}"
            )

        try:
            data = response.json()
            vector = data["data"][0]["embedding"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error("embedding_response_malformed", error=str(e))
            raise EmbeddingServiceError(
                "Embedding response missing data[0].embedding"
            ) from e

        if not isinstance(vector, list):
            raise EmbeddingServiceError("Embedding response missing data[0].embedding")

        logger.debug("embedding_response", dimension=len(vector))
        return vector

    async def generate(
        self,
        messages: List[Dict[str, str]],
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """Send a chat completion request.

        Args:
            messages: List of message dicts with 'role' and 'content'
            max_tokens: Completion token limit (default from settings)
            temperature: Sampling temperature (default from settings)

        Returns:
            Stripped ``choices[0].message.content``

        Raises:
            GenerationTimeoutError: If the call exceeds the configured bound
            GenerationError: On configuration, transport, status or body errors
        """
        url = self.settings.llm_url
        model = self.settings.llm_model
        timeout = self.settings.llm_timeout

        if not url or not model:
            raise GenerationError("Generation endpoint or model not configured")

        payload = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens if max_tokens is not None else self.settings.llm_max_tokens,
            "temperature": temperature if temperature is not None else self.settings.llm_temperature,
        }

        headers = {"Content-Type": "application/json"}
        if self.settings.llm_api_key:
            headers["Authorization"] = f"Bearer {self.settings.llm_api_key}"

        logger.info(
            "generation_request",
            model=model,
            message_count=len(messages),
        )

        try:
            async with asyncio.timeout(timeout):
                async with self._client(timeout) as client:
                    response = await client.post(url, json=payload, headers=headers)

        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.error("generation_timeout", url=url, timeout=timeout)
            raise GenerationTimeoutError(
                f"Generation service timed out after {timeout}s"
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error("generation_connection_error", url=url, error=str(e))
            raise GenerationError(f"Generation service unreachable at {url}: {e}") from e

        if response.is_error:
            logger.error(
                "generation_http_error",
                status_code=response.status_code,
                detail=_error_detail(response),
            )
            raise GenerationError(
                f"Generation service responded {response.status_code}: "
                f"{_error_detail(response)}"
            )

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise GenerationError("Generation response missing choices[0].message.content") from e

        if not isinstance(content, str) or not content.strip():
            raise GenerationError("Generation response missing choices[0].message.content")

        logger.info("generation_response", model=model, response_length=len(content))
        return content.strip()
