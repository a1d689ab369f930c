"""
Shared test fixtures for the indexing and retrieval suite.

Provides: in-memory Qdrant vector store, deterministic fake embedder,
in-memory SQLite content store, record factory
"""

import hashlib

import pytest
from qdrant_client import AsyncQdrantClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from tenacity import wait_none

from content_rag.core.exceptions import EmbeddingServiceError
from content_rag.db.models import Base
from content_rag.rag.models import ContentType, IngestionRecord
from content_rag.rag.vector_store import VectorStore

TEST_DIM = 8


class FakeEmbedder:
    """Deterministic embedder: identical texts map to identical vectors.

    Every component is positive, so cosine similarity is always > 0.
    """

    def __init__(self, dimensions: int = TEST_DIM):
        self.dimensions = dimensions
        self.fail = False
        self.calls: list[list[str]] = []

    def vector_for(self, text: str) -> list[float]:
        digest = hashlib.sha256(text.strip().encode()).digest()
        return [(b + 1) / 256 for b in digest[: self.dimensions]]

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.fail:
            raise EmbeddingServiceError("embedding endpoint unavailable")
        return [self.vector_for(t) for t in texts]

    async def embed_text(self, text: str) -> list[float]:
        return (await self.embed_texts([text]))[0]

    async def embed_query(self, query: str) -> list[float]:
        return await self.embed_text(query)


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    """Provide a deterministic embedder."""
    return FakeEmbedder()


@pytest.fixture
async def vector_store():
    """
    Create a VectorStore backed by an in-memory Qdrant.

    Yields:
        VectorStore: Store with no similarity cut-off and no retry delay
    """
    client = AsyncQdrantClient(location=":memory:")
    store = VectorStore(
        client=client,
        collection_name="test_content_chunks",
        embedding_dim=TEST_DIM,
        top_k=5,
        similarity_threshold=0.0,
        max_attempts=2,
        retry_wait=wait_none(),
    )
    yield store
    await store.close()


@pytest.fixture
async def session_maker():
    """
    Create in-memory SQLite content store.

    Yields:
        async_sessionmaker: Session factory over freshly created tables
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def make_record():
    """Factory for ingestion records with sensible defaults."""

    def _make(
        source_id: str = "doc_1",
        content: str = "Plain body text for the record.",
        tenant_id: str = "tenant-a",
        content_type: ContentType = ContentType.CMS_CONTENT,
        **overrides,
    ) -> IngestionRecord:
        fields = {
            "title": f"Title of {source_id}",
            "url": f"/content/{source_id}",
        }
        fields.update(overrides)
        return IngestionRecord(
            source_id=source_id,
            content_type=content_type,
            tenant_id=tenant_id,
            content=content,
            **fields,
        )

    return _make
