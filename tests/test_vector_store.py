"""
Tests for the Qdrant vector store adapter against an in-memory Qdrant.
"""

from unittest.mock import AsyncMock

import pytest
from qdrant_client.http.exceptions import ResponseHandlingException

from content_rag.core.exceptions import VectorStoreError
from content_rag.rag.models import (
    ChunkMetadata,
    ContentChunk,
    ContentType,
    RetrievalFilters,
)
from content_rag.rag.vector_store import point_id_for
from conftest import TEST_DIM, FakeEmbedder


def make_chunk(
    chunk_id: str,
    source_id: str,
    tenant_id: str = "tenant-a",
    content_type: ContentType = ContentType.DOCUMENTATION,
    tags: list[str] | None = None,
    author: str | None = None,
    embedding: list[float] | None = None,
) -> ContentChunk:
    content = f"Content of {chunk_id}"
    return ContentChunk(
        id=chunk_id,
        content=content,
        metadata=ChunkMetadata(
            content_type=content_type,
            tenant_id=tenant_id,
            source_id=source_id,
            title=f"Title {source_id}",
            url=f"/docs/{source_id}",
            tags=tags or [],
            author=author,
        ),
        embedding=embedding if embedding is not None else FakeEmbedder().vector_for(content),
    )


class TestPointIds:
    def test_deterministic_and_tenant_scoped(self):
        """Should derive the same id for the same pair and differ across tenants."""
        assert point_id_for("t1", "doc_1_chunk_0") == point_id_for("t1", "doc_1_chunk_0")
        assert point_id_for("t1", "doc_1_chunk_0") != point_id_for("t2", "doc_1_chunk_0")


class TestUpsertAndSearch:
    @pytest.mark.asyncio
    async def test_search_returns_stored_chunk(self, vector_store):
        """Should return the chunk id, content and metadata from the payload."""
        chunk = make_chunk("doc_1_chunk_0", "doc_1", tags=["setup"])
        await vector_store.upsert([chunk])

        results = await vector_store.search(chunk.embedding, "tenant-a")

        assert len(results) == 1
        assert results[0].id == "doc_1_chunk_0"
        assert results[0].content == chunk.content
        assert results[0].metadata.source_id == "doc_1"
        assert results[0].metadata.tags == ["setup"]
        assert results[0].score == pytest.approx(1.0, abs=1e-4)

    @pytest.mark.asyncio
    async def test_upsert_overwrites_by_id(self, vector_store):
        """Should keep one point when the same chunk id is written twice."""
        await vector_store.upsert([make_chunk("doc_1_chunk_0", "doc_1")])
        await vector_store.upsert([make_chunk("doc_1_chunk_0", "doc_1")])

        assert await vector_store.count("tenant-a") == 1

    @pytest.mark.asyncio
    async def test_results_ranked_by_score(self, vector_store):
        """Should order results best match first."""
        chunks = [make_chunk(f"doc_{i}_chunk_0", f"doc_{i}") for i in range(4)]
        await vector_store.upsert(chunks)

        results = await vector_store.search(chunks[2].embedding, "tenant-a")

        assert results[0].id == "doc_2_chunk_0"
        scores = [r.score for r in results]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.asyncio
    async def test_rejects_missing_embedding(self, vector_store):
        """Should refuse chunks without an embedding."""
        chunk = make_chunk("doc_1_chunk_0", "doc_1").model_copy(update={"embedding": None})

        with pytest.raises(VectorStoreError, match="no embedding"):
            await vector_store.upsert([chunk])

    @pytest.mark.asyncio
    async def test_rejects_wrong_dimension(self, vector_store):
        """Should refuse embeddings that don't match the collection size."""
        chunk = make_chunk("doc_1_chunk_0", "doc_1", embedding=[0.1] * (TEST_DIM + 1))

        with pytest.raises(VectorStoreError, match="dims"):
            await vector_store.upsert([chunk])
        assert await vector_store.count("tenant-a") == 0

    @pytest.mark.asyncio
    async def test_search_requires_tenant(self, vector_store):
        """Should refuse an unscoped search."""
        with pytest.raises(ValueError):
            await vector_store.search([0.1] * TEST_DIM, "")

    @pytest.mark.asyncio
    async def test_search_limit_zero_and_default(self, vector_store):
        """Should return nothing for limit=0 and fall back to top_k only when unset."""
        await vector_store.upsert(
            [make_chunk(f"doc_{i}_chunk_0", f"doc_{i}") for i in range(7)]
        )
        vector = [0.5] * TEST_DIM

        assert await vector_store.search(vector, "tenant-a", limit=0) == []
        assert len(await vector_store.search(vector, "tenant-a")) == vector_store.top_k
        assert len(await vector_store.search(vector, "tenant-a", limit=7)) == 7


class TestTenantIsolation:
    @pytest.mark.asyncio
    async def test_search_never_crosses_tenants(self, vector_store):
        """Should only return the searching tenant's chunks."""
        await vector_store.upsert(
            [
                make_chunk("doc_1_chunk_0", "doc_1", tenant_id="tenant-a"),
                make_chunk("doc_1_chunk_0", "doc_1", tenant_id="tenant-b"),
            ]
        )

        vector = make_chunk("doc_1_chunk_0", "doc_1").embedding
        results_a = await vector_store.search(vector, "tenant-a", limit=10)
        results_b = await vector_store.search(vector, "tenant-b", limit=10)

        assert [r.metadata.tenant_id for r in results_a] == ["tenant-a"]
        assert [r.metadata.tenant_id for r in results_b] == ["tenant-b"]

    @pytest.mark.asyncio
    async def test_delete_is_tenant_scoped(self, vector_store):
        """Should only delete the given tenant's chunks for a source id."""
        await vector_store.upsert(
            [
                make_chunk("doc_1_chunk_0", "doc_1", tenant_id="tenant-a"),
                make_chunk("doc_1_chunk_0", "doc_1", tenant_id="tenant-b"),
            ]
        )

        deleted = await vector_store.delete_by_source("doc_1", "tenant-a")

        assert deleted == 1
        assert await vector_store.count("tenant-a") == 0
        assert await vector_store.count("tenant-b") == 1


class TestFilters:
    @pytest.fixture
    async def populated(self, vector_store):
        await vector_store.upsert(
            [
                make_chunk("doc_1_chunk_0", "doc_1", tags=["setup"]),
                make_chunk(
                    "forum_1_post", "forum_1", content_type=ContentType.FORUM_POST, author="u1"
                ),
                make_chunk("product_1_chunk_0", "product_1", content_type=ContentType.PRODUCT),
            ]
        )
        return vector_store

    @pytest.mark.asyncio
    async def test_content_type_filter(self, populated):
        """Should match any of the requested content types."""
        filters = RetrievalFilters(
            content_types={ContentType.FORUM_POST, ContentType.PRODUCT}
        )

        results = await populated.search([0.5] * TEST_DIM, "tenant-a", filters=filters, limit=10)

        assert {r.metadata.source_id for r in results} == {"forum_1", "product_1"}

    @pytest.mark.asyncio
    async def test_tag_filter(self, populated):
        """Should match chunks carrying any requested tag."""
        filters = RetrievalFilters(tags={"setup", "missing"})

        results = await populated.search([0.5] * TEST_DIM, "tenant-a", filters=filters, limit=10)

        assert [r.metadata.source_id for r in results] == ["doc_1"]

    @pytest.mark.asyncio
    async def test_source_and_author_filters(self, populated):
        """Should combine source and author filters with AND."""
        matching = RetrievalFilters(source_id="forum_1", author="u1")
        not_matching = RetrievalFilters(source_id="doc_1", author="u1")

        assert len(await populated.search([0.5] * TEST_DIM, "tenant-a", filters=matching)) == 1
        assert await populated.search([0.5] * TEST_DIM, "tenant-a", filters=not_matching) == []


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_nonexistent_is_noop(self, vector_store):
        """Should succeed and report zero when nothing is stored."""
        assert await vector_store.delete_by_source("nothing_here", "tenant-a") == 0

    @pytest.mark.asyncio
    async def test_delete_removes_all_source_chunks(self, vector_store):
        """Should remove every chunk of the source and nothing else."""
        await vector_store.upsert(
            [
                make_chunk("doc_1_chunk_0", "doc_1"),
                make_chunk("doc_1_chunk_1", "doc_1"),
                make_chunk("doc_2_chunk_0", "doc_2"),
            ]
        )

        assert await vector_store.delete_by_source("doc_1", "tenant-a") == 2
        assert await vector_store.count("tenant-a", "doc_1") == 0
        assert await vector_store.count("tenant-a", "doc_2") == 1


class TestErrors:
    @pytest.mark.asyncio
    async def test_transport_errors_retried_then_wrapped(self, vector_store):
        """Should retry transient failures and raise VectorStoreError when exhausted."""
        await vector_store.ensure_collection()
        vector_store.client.query_points = AsyncMock(
            side_effect=ResponseHandlingException(ConnectionError("refused"))
        )

        with pytest.raises(VectorStoreError, match="search"):
            await vector_store.search([0.5] * TEST_DIM, "tenant-a")
        assert vector_store.client.query_points.await_count == vector_store.max_attempts

    @pytest.mark.asyncio
    async def test_ensure_collection_idempotent(self, vector_store):
        """Should create the collection once and report later calls as no-ops."""
        assert await vector_store.ensure_collection() is True
        assert await vector_store.ensure_collection() is False

    @pytest.mark.asyncio
    async def test_payload_indexes_created_after_failed_attempt(self, vector_store):
        """Should create payload indexes on retry when the collection already exists."""
        vector_store.client.create_payload_index = AsyncMock(
            side_effect=ResponseHandlingException(ConnectionError("reset"))
        )
        with pytest.raises(VectorStoreError, match="ensure collection"):
            await vector_store.ensure_collection()
        assert await vector_store.client.collection_exists(vector_store.collection_name)

        vector_store.client.create_payload_index = AsyncMock()
        assert await vector_store.ensure_collection() is False

        field_names = [
            call.kwargs["field_name"]
            for call in vector_store.client.create_payload_index.await_args_list
        ]
        assert field_names == ["tenant_id", "content_type", "source_id", "tags"]
