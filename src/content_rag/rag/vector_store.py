"""Qdrant vector store client.

Manages the single content collection shared by every tenant. Tenant
isolation is enforced with a mandatory ``tenant_id`` payload filter.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar
from uuid import NAMESPACE_DNS, uuid5

import httpx
from pydantic import ValidationError
from qdrant_client import AsyncQdrantClient
from qdrant_client.http import models as qdrant_models
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse
from qdrant_client.http.models import Distance, PayloadSchemaType, VectorParams
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)
from tenacity.wait import wait_base

from content_rag.core.config import Settings
from content_rag.core.exceptions import ConfigurationError, VectorStoreError
from content_rag.rag.models import ChunkMetadata, ContentChunk, RetrievalFilters, RetrievalResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS = (ResponseHandlingException, httpx.TransportError)


def point_id_for(tenant_id: str, chunk_id: str) -> str:
    """Deterministic Qdrant point id for a tenant's chunk.

    Qdrant only accepts UUIDs or integers as point ids; the readable chunk
    id is kept in the payload.
    """
    return str(uuid5(NAMESPACE_DNS, f"{tenant_id}:{chunk_id}"))


class VectorStore:
    """Qdrant vector store for content chunks.

    One collection holds every tenant and content type:
    - Vector embeddings (cosine, dimensions from config)
    - Payload: chunk_id, content and the flattened ChunkMetadata fields
    """

    UPSERT_BATCH_SIZE = 100

    def __init__(
        self,
        client: AsyncQdrantClient,
        collection_name: str,
        embedding_dim: int,
        top_k: int = 5,
        similarity_threshold: float = 0.5,
        max_attempts: int = 3,
        retry_wait: wait_base | None = None,
    ):
        self.client = client
        self.collection_name = collection_name
        self.embedding_dim = embedding_dim
        self.top_k = top_k
        self.similarity_threshold = similarity_threshold
        self.max_attempts = max_attempts
        self.retry_wait = retry_wait or wait_exponential_jitter(initial=1, max=20)
        self._collection_ready = False
        self._collection_lock = asyncio.Lock()

    async def ensure_collection(self) -> bool:
        """Create the collection if it does not exist yet.

        Safe to call repeatedly and from concurrent tasks.

        Returns:
            True if this call created the collection
        """
        if self._collection_ready:
            return False

        async with self._collection_lock:
            if self._collection_ready:
                return False
            try:
                created = await self._create_collection_if_missing()
                await self._create_payload_indexes()
            except Exception as e:
                raise VectorStoreError(
                    f"Failed to ensure collection '{self.collection_name}': {e}"
                ) from e
            self._collection_ready = True
            return created

    async def _create_collection_if_missing(self) -> bool:
        if await self.client.collection_exists(self.collection_name):
            return False

        try:
            # See: https://qdrant.tech/documentation/guides/multitenancy/
            await self.client.create_collection(
                collection_name=self.collection_name,
                vectors_config=VectorParams(
                    size=self.embedding_dim,
                    distance=Distance.COSINE,
                ),
                on_disk_payload=True,
                hnsw_config=qdrant_models.HnswConfigDiff(
                    payload_m=16,  # Build index per partition (tenant)
                    m=16,
                ),
            )
        except UnexpectedResponse as e:
            # Another process created it between the check and the create
            if e.status_code == 409:
                logger.info(f"[VectorStore] Collection '{self.collection_name}' created concurrently")
                return False
            raise

        logger.info(
            f"[VectorStore] Created collection '{self.collection_name}' "
            f"({self.embedding_dim} dims, cosine)"
        )
        return True

    async def _create_payload_indexes(self) -> None:
        # Called on every unready ensure, not just after a create; creating
        # an existing index is a no-op.
        # Tenant index with is_tenant=True co-locates a tenant's vectors on disk
        await self.client.create_payload_index(
            collection_name=self.collection_name,
            field_name="tenant_id",
            field_schema=qdrant_models.KeywordIndexParams(
                type=qdrant_models.KeywordIndexType.KEYWORD,
                is_tenant=True,
            ),
        )
        for field_name in ("content_type", "source_id", "tags"):
            await self.client.create_payload_index(
                collection_name=self.collection_name,
                field_name=field_name,
                field_schema=PayloadSchemaType.KEYWORD,
            )

    async def upsert(self, chunks: list[ContentChunk]) -> int:
        """Insert or overwrite chunks by id.

        Not atomic: a failure part-way leaves earlier batches written, and
        the caller should retry the whole set.

        Returns:
            Number of chunks upserted

        Raises:
            VectorStoreError: On a missing or mis-sized embedding, or a client failure
        """
        if not chunks:
            return 0

        points = [self._to_point(chunk) for chunk in chunks]

        await self.ensure_collection()

        logger.debug(
            f"[VectorStore] Upserting {len(points)} chunks to collection '{self.collection_name}'"
        )

        total_upserted = 0
        for i in range(0, len(points), self.UPSERT_BATCH_SIZE):
            batch = points[i : i + self.UPSERT_BATCH_SIZE]
            await self._call(
                "upsert",
                lambda: self.client.upsert(
                    collection_name=self.collection_name,
                    points=batch,
                    wait=True,
                ),
            )
            total_upserted += len(batch)

        return total_upserted

    def _to_point(self, chunk: ContentChunk) -> qdrant_models.PointStruct:
        if chunk.embedding is None:
            raise VectorStoreError(f"Chunk {chunk.id} has no embedding")
        if len(chunk.embedding) != self.embedding_dim:
            raise VectorStoreError(
                f"Chunk {chunk.id} embedding has {len(chunk.embedding)} dims, "
                f"collection expects {self.embedding_dim}"
            )

        return qdrant_models.PointStruct(
            id=point_id_for(chunk.metadata.tenant_id, chunk.id),
            vector=chunk.embedding,
            payload={
                "chunk_id": chunk.id,
                "content": chunk.content,
                **chunk.metadata.model_dump(mode="json", exclude_none=True),
            },
        )

    async def search(
        self,
        query_vector: list[float],
        tenant_id: str,
        filters: RetrievalFilters | None = None,
        limit: int | None = None,
        score_threshold: float | None = None,
    ) -> list[RetrievalResult]:
        """Search for similar chunks within one tenant.

        Args:
            query_vector: Query embedding
            tenant_id: Tenant to search; always applied
            filters: Optional content type / tag / source / author filters
            limit: Maximum results (defaults to top_k)
            score_threshold: Minimum cosine similarity (defaults to config)

        Returns:
            Matching chunks, best score first
        """
        if not tenant_id:
            raise ValueError("tenant_id is required for search")

        limit = self.top_k if limit is None else limit
        if limit <= 0:
            return []

        await self.ensure_collection()

        response = await self._call(
            "search",
            lambda: self.client.query_points(
                collection_name=self.collection_name,
                query=query_vector,
                query_filter=self._build_filter(tenant_id, filters),
                limit=limit,
                score_threshold=(
                    self.similarity_threshold if score_threshold is None else score_threshold
                ),
                with_payload=True,
            ),
        )

        results = []
        for point in response.points:
            payload = point.payload or {}
            try:
                metadata = ChunkMetadata.model_validate(payload)
            except ValidationError as e:
                logger.warning(f"[VectorStore] Skipping point {point.id} with invalid payload: {e}")
                continue

            results.append(
                RetrievalResult(
                    id=payload.get("chunk_id", str(point.id)),
                    content=payload.get("content", ""),
                    metadata=metadata,
                    score=point.score,
                )
            )

        return results

    @staticmethod
    def _build_filter(
        tenant_id: str,
        filters: RetrievalFilters | None = None,
    ) -> qdrant_models.Filter:
        must: list[qdrant_models.Condition] = [
            qdrant_models.FieldCondition(
                key="tenant_id",
                match=qdrant_models.MatchValue(value=tenant_id),
            )
        ]

        if filters is None:
            return qdrant_models.Filter(must=must)

        if filters.content_types:
            must.append(
                qdrant_models.FieldCondition(
                    key="content_type",
                    match=qdrant_models.MatchAny(any=sorted(ct.value for ct in filters.content_types)),
                )
            )
        if filters.tags:
            must.append(
                qdrant_models.FieldCondition(
                    key="tags",
                    match=qdrant_models.MatchAny(any=sorted(filters.tags)),
                )
            )
        if filters.source_id:
            must.append(
                qdrant_models.FieldCondition(
                    key="source_id",
                    match=qdrant_models.MatchValue(value=filters.source_id),
                )
            )
        if filters.author:
            must.append(
                qdrant_models.FieldCondition(
                    key="author",
                    match=qdrant_models.MatchValue(value=filters.author),
                )
            )

        return qdrant_models.Filter(must=must)

    @staticmethod
    def _source_filter(tenant_id: str, source_id: str | None = None) -> qdrant_models.Filter:
        must = [
            qdrant_models.FieldCondition(
                key="tenant_id",
                match=qdrant_models.MatchValue(value=tenant_id),
            )
        ]
        if source_id is not None:
            must.append(
                qdrant_models.FieldCondition(
                    key="source_id",
                    match=qdrant_models.MatchValue(value=source_id),
                )
            )
        return qdrant_models.Filter(must=must)

    async def delete_by_source(self, source_id: str, tenant_id: str) -> int:
        """Delete all chunks for one source item of one tenant.

        A no-op when nothing is stored for the pair.

        Returns:
            Number of chunks deleted
        """
        source_filter = self._source_filter(tenant_id, source_id)

        await self.ensure_collection()

        count_before = await self._call(
            "count",
            lambda: self.client.count(
                collection_name=self.collection_name,
                count_filter=source_filter,
                exact=True,
            ),
        )

        await self._call(
            "delete",
            lambda: self.client.delete(
                collection_name=self.collection_name,
                points_selector=qdrant_models.FilterSelector(filter=source_filter),
                wait=True,
            ),
        )

        if count_before.count:
            logger.debug(
                f"[VectorStore] Deleted {count_before.count} chunks for {source_id} (tenant {tenant_id})"
            )
        return count_before.count

    async def count(self, tenant_id: str, source_id: str | None = None) -> int:
        """Count stored chunks for a tenant, optionally for one source item."""
        await self.ensure_collection()
        result = await self._call(
            "count",
            lambda: self.client.count(
                collection_name=self.collection_name,
                count_filter=self._source_filter(tenant_id, source_id),
                exact=True,
            ),
        )
        return result.count

    async def close(self) -> None:
        await self.client.close()

    async def _call(self, operation: str, request: Callable[[], Awaitable[T]]) -> T:
        """Run a client call with bounded retries on transport errors."""
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=self.retry_wait,
                retry=retry_if_exception_type(TRANSIENT_ERRORS),
                before_sleep=self._log_retry,
                reraise=True,
            ):
                with attempt:
                    result = await request()
        except Exception as e:
            raise VectorStoreError(f"Qdrant {operation} failed: {e}") from e
        return result

    def _log_retry(self, retry_state: RetryCallState) -> None:
        logger.warning(
            f"[VectorStore] Retry {retry_state.attempt_number}/{self.max_attempts} "
            f"after error: {retry_state.outcome.exception()}"
        )


def create_vector_store(settings: Settings) -> VectorStore:
    """Build a VectorStore from settings."""
    if not settings.qdrant_url:
        raise ConfigurationError("QDRANT_URL is required")

    # Default 5s timeout is too short for batched upserts
    client = AsyncQdrantClient(
        url=settings.qdrant_url,
        api_key=settings.qdrant_api_key,
        timeout=settings.qdrant_timeout,
    )
    return VectorStore(
        client=client,
        collection_name=settings.qdrant_collection,
        embedding_dim=settings.embedding_dimensions,
        top_k=settings.retrieval_top_k,
        similarity_threshold=settings.retrieval_similarity_threshold,
        max_attempts=settings.retry_max_attempts,
    )
