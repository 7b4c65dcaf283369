"""Gateways to the remote embedding and generation models.

Each gateway wraps one remote call and maps its failures onto the service
error taxonomy:
- calls running past the timeout become UpstreamTimeout (tagged with the stage)
- transport, HTTP and malformed payload errors become the stage's upstream error

No retries happen here; retrying is left to whoever calls the service.
"""
import asyncio
import math
from numbers import Real
from typing import List, Optional, Protocol, Sequence
import httpx
import structlog

from docqa import config
from docqa.errors import (
    InvalidConfiguration,
    UpstreamEmbeddingError,
    UpstreamGenerationError,
    UpstreamTimeout,
)
from docqa.llm_client import OllamaClient, ollama_client

logger = structlog.get_logger()


class EmbeddingGateway(Protocol):
    """Turns text into a fixed-length vector."""

    async def embed(self, text: str) -> List[float]:
        ...

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        ...


class GenerationGateway(Protocol):
    """Turns a prompt into generated text."""

    async def generate(self, prompt: str) -> str:
        ...


def _check_timeout(timeout: float) -> float:
    if timeout <= 0:
        raise InvalidConfiguration(f"Timeout must be positive, got {timeout}")
    return timeout


def _parse_embedding(response) -> List[float]:
    """Pull a non-empty list of finite numbers out of an embeddings reply."""
    embedding = response.get("embedding") if isinstance(response, dict) else None

    if not isinstance(embedding, list) or not embedding:
        raise UpstreamEmbeddingError("Embedding model returned no vector")

    # bool is a Real subclass but never a valid component
    if not all(
        isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)
        for value in embedding
    ):
        raise UpstreamEmbeddingError("Embedding model returned non-numeric values")

    return [float(value) for value in embedding]


def _parse_content(response) -> str:
    """Pull the assistant text out of a chat reply."""
    message = response.get("message") if isinstance(response, dict) else None
    content = message.get("content") if isinstance(message, dict) else None

    if not isinstance(content, str) or not content.strip():
        raise UpstreamGenerationError("Empty response from generation model")

    return content


class OllamaEmbeddingGateway:
    """Embedding gateway backed by the Ollama embeddings endpoint."""

    def __init__(
        self,
        client: Optional[OllamaClient] = None,
        model: str = None,
        timeout: float = None,
        batch_size: int = None,
    ):
        """Initialize the embedding gateway.

        Args:
            client: Ollama client (defaults to the global client)
            model: Embedding model name (default from config)
            timeout: Total time allowed per call in seconds (default from config)
            batch_size: Number of embedding calls run concurrently (default from config)

        Raises:
            InvalidConfiguration: If timeout or batch size is not positive
        """
        self.client = client or ollama_client
        self.model = model or config.EMBEDDING_MODEL
        self.timeout = _check_timeout(config.EMBED_TIMEOUT if timeout is None else timeout)
        self.batch_size = config.EMBED_BATCH_SIZE if batch_size is None else batch_size

        if self.batch_size < 1:
            raise InvalidConfiguration(
                f"Embedding batch size must be at least 1, got {self.batch_size}"
            )

    async def embed(self, text: str) -> List[float]:
        """Embed a single text.

        Raises:
            UpstreamTimeout: If the call takes longer than the timeout
            UpstreamEmbeddingError: If the call fails or returns no usable vector
        """
        try:
            async with asyncio.timeout(self.timeout):
                response = await self.client.embeddings(
                    prompt=text, model=self.model, timeout=self.timeout
                )
        except (TimeoutError, httpx.TimeoutException) as e:
            logger.error("embedding_timeout", timeout=self.timeout, model=self.model)
            raise UpstreamTimeout(
                f"Embedding request timed out after {self.timeout}s", stage="embedding"
            ) from e
        except (httpx.HTTPError, ValueError, TypeError, AttributeError) as e:
            raise UpstreamEmbeddingError(f"Embedding request failed: {e}") from e

        return _parse_embedding(response)

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """Embed many texts, preserving order and length.

        Calls run concurrently in groups of ``batch_size``.
        """
        embeddings: List[List[float]] = []

        for i in range(0, len(texts), self.batch_size):
            batch = texts[i : i + self.batch_size]
            embeddings.extend(await asyncio.gather(*(self.embed(text) for text in batch)))

            logger.debug(
                "embeddings_batch_generated",
                batch_size=len(batch),
                total_so_far=len(embeddings),
            )

        return embeddings


class OllamaGenerationGateway:
    """Generation gateway backed by the Ollama chat endpoint."""

    def __init__(
        self,
        client: Optional[OllamaClient] = None,
        model: str = None,
        temperature: float = None,
        timeout: float = None,
    ):
        """Initialize the generation gateway.

        Args:
            client: Ollama client (defaults to the global client)
            model: Chat model name (default from config)
            temperature: Sampling temperature (default from config)
            timeout: Total time allowed per call in seconds (default from config)

        Raises:
            InvalidConfiguration: If the timeout is not positive
        """
        self.client = client or ollama_client
        self.model = model or config.CHAT_MODEL
        self.temperature = (
            config.GENERATION_TEMPERATURE if temperature is None else temperature
        )
        self.timeout = _check_timeout(config.GENERATE_TIMEOUT if timeout is None else timeout)

    async def generate(self, prompt: str) -> str:
        """Generate a completion for ``prompt``.

        Raises:
            UpstreamTimeout: If the call takes longer than the timeout
            UpstreamGenerationError: If the call fails or returns no text
        """
        try:
            async with asyncio.timeout(self.timeout):
                response = await self.client.chat(
                    [{"role": "user", "content": prompt}],
                    model=self.model,
                    temperature=self.temperature,
                    timeout=self.timeout,
                )
        except (TimeoutError, httpx.TimeoutException) as e:
            logger.error("generation_timeout", timeout=self.timeout, model=self.model)
            raise UpstreamTimeout(
                f"Generation request timed out after {self.timeout}s", stage="generation"
            ) from e
        except (httpx.HTTPError, ValueError, TypeError, AttributeError) as e:
            raise UpstreamGenerationError(f"Generation request failed: {e}") from e

        return _parse_content(response)
