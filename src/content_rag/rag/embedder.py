"""Embedding service using an OpenAI-compatible endpoint.

Generates vector embeddings for chunk texts and queries.
"""

import logging

import httpx
import openai
from openai import AsyncOpenAI
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)
from tenacity.wait import wait_base

from content_rag.core.config import Settings
from content_rag.core.exceptions import ConfigurationError, EmbeddingServiceError

logger = logging.getLogger(__name__)

# Upstream failures worth another attempt
TRANSIENT_ERRORS = (
    openai.APIConnectionError,  # includes APITimeoutError
    openai.RateLimitError,
    openai.InternalServerError,
)


class Embedder:
    """Batch text-to-vector service.

    Vectors are returned in input order and always have ``dimensions``
    entries; anything else is an EmbeddingServiceError.
    """

    DEFAULT_MODEL = "text-embedding-3-small"
    BATCH_SIZE = 100

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = DEFAULT_MODEL,
        dimensions: int = 1536,
        batch_size: int = BATCH_SIZE,
        max_attempts: int = 3,
        retry_wait: wait_base | None = None,
    ):
        self.client = client
        self.model = model
        self.dimensions = dimensions
        self.batch_size = batch_size
        self.max_attempts = max_attempts
        self.retry_wait = retry_wait or wait_exponential_jitter(initial=1, max=20)

    async def embed_text(self, text: str) -> list[float]:
        """Generate embedding for a single text.

        Args:
            text: Text to embed

        Returns:
            Embedding vector
        """
        vectors = await self.embed_texts([text])
        return vectors[0]

    async def embed_query(self, query: str) -> list[float]:
        """Embed a search query.

        Alias for embed_text, but can be extended for query-specific processing.
        """
        return await self.embed_text(query)

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts in batches.

        Args:
            texts: List of texts to embed

        Returns:
            One embedding vector per input text, in input order

        Raises:
            ValueError: If any text is empty
            EmbeddingServiceError: If the upstream call fails or returns malformed output
        """
        if not texts:
            return []

        cleaned = [t.strip() for t in texts]
        if not all(cleaned):
            raise ValueError("Cannot embed empty text")

        all_embeddings: list[list[float]] = []

        for batch_start in range(0, len(cleaned), self.batch_size):
            batch = cleaned[batch_start : batch_start + self.batch_size]
            all_embeddings.extend(await self._embed_batch(batch))

        return all_embeddings

    async def _embed_batch(self, batch: list[str]) -> list[list[float]]:
        try:
            response = await self._create_with_retry(batch)
        except openai.OpenAIError as e:
            raise EmbeddingServiceError(f"Embedding request failed: {e}") from e

        try:
            data = sorted(response.data, key=lambda item: item.index)
            vectors = [list(item.embedding) for item in data]
        except (AttributeError, TypeError) as e:
            raise EmbeddingServiceError(f"Malformed embedding response: {e}") from e

        if len(vectors) != len(batch):
            raise EmbeddingServiceError(
                f"Expected {len(batch)} embeddings, got {len(vectors)}"
            )

        for vector in vectors:
            if len(vector) != self.dimensions:
                raise EmbeddingServiceError(
                    f"Embedding dimension {len(vector)} does not match configured {self.dimensions}"
                )

        return vectors

    async def _create_with_retry(self, batch: list[str]):
        kwargs = {"input": batch, "model": self.model}
        # Only the v3 models accept a dimensions override
        if self.model.startswith("text-embedding-3"):
            kwargs["dimensions"] = self.dimensions

        response = None
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.retry_wait,
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            before_sleep=self._log_retry,
            reraise=True,
        ):
            with attempt:
                response = await self.client.embeddings.create(**kwargs)
        return response

    def _log_retry(self, retry_state: RetryCallState) -> None:
        logger.warning(
            f"[Embedder] Retry {retry_state.attempt_number}/{self.max_attempts} "
            f"after error: {retry_state.outcome.exception()}"
        )


def create_embedder(settings: Settings) -> Embedder:
    """Build an Embedder from settings."""
    if not settings.embedding_api_key:
        raise ConfigurationError("EMBEDDING_API_KEY is required")

    logger.info(
        f"Initializing embedder with model '{settings.embedding_model}' "
        f"({settings.embedding_dimensions} dims)"
    )

    # Retries are handled by tenacity, not the client
    client = AsyncOpenAI(
        api_key=settings.embedding_api_key,
        base_url=settings.embedding_base_url,
        timeout=httpx.Timeout(settings.embedding_timeout, connect=30.0),
        max_retries=0,
    )

    return Embedder(
        client=client,
        model=settings.embedding_model,
        dimensions=settings.embedding_dimensions,
        batch_size=settings.embedding_batch_size,
        max_attempts=settings.retry_max_attempts,
    )
