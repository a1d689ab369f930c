"""
Tests for the content retriever.

Covers ranking, page self-exclusion, graceful degradation and context
formatting.
"""

from unittest.mock import AsyncMock

import pytest

from content_rag.core.exceptions import VectorStoreError
from content_rag.rag.indexer import ContentIndexer
from content_rag.rag.models import ChunkMetadata, ContentType, RetrievalFilters, RetrievalResult
from content_rag.rag.retriever import ContentRetriever


@pytest.fixture
def retriever(vector_store, fake_embedder) -> ContentRetriever:
    return ContentRetriever(vector_store, fake_embedder)


@pytest.fixture
async def indexed(vector_store, fake_embedder, make_record):
    """Index a handful of pages for tenant-a and one for tenant-b."""
    indexer = ContentIndexer(vector_store, fake_embedder)
    for i in range(4):
        await indexer.index_single_item(
            make_record(f"cms_{i}", content=f"Page {i} body.", url=f"/content/page-{i}")
        )
    await indexer.index_single_item(
        make_record("cms_other", tenant_id="tenant-b", url="/content/other")
    )


def result(title: str, content: str, url: str, score: float = 0.9) -> RetrievalResult:
    return RetrievalResult(
        id=f"{title}_chunk_0",
        content=content,
        metadata=ChunkMetadata(
            content_type=ContentType.DOCUMENTATION,
            tenant_id="tenant-a",
            source_id=title,
            title=title,
            url=url,
        ),
        score=score,
    )


class TestRetrieveRelevantContent:
    @pytest.mark.asyncio
    async def test_returns_ranked_tenant_results(self, retriever, fake_embedder, indexed):
        """Should return only the tenant's chunks, best match first."""
        # Same text as the indexed chunk, so it embeds identically
        results = await retriever.retrieve_relevant_content(
            "Title of cms_2\n\nPage 2 body.", "tenant-a"
        )

        assert results[0].metadata.source_id == "cms_2"
        assert all(r.metadata.tenant_id == "tenant-a" for r in results)
        assert [r.score for r in results] == sorted((r.score for r in results), reverse=True)

    @pytest.mark.asyncio
    async def test_respects_limit_and_filters(self, retriever, indexed):
        """Should pass limit and filters through to the search."""
        results = await retriever.retrieve_relevant_content(
            "anything", "tenant-a", filters=RetrievalFilters(source_id="cms_1"), limit=2
        )

        assert [r.metadata.source_id for r in results] == ["cms_1"]

    @pytest.mark.asyncio
    async def test_blank_query(self, retriever, fake_embedder):
        """Should return [] without embedding a blank query."""
        assert await retriever.retrieve_relevant_content("   ", "tenant-a") == []
        assert fake_embedder.calls == []

    @pytest.mark.asyncio
    async def test_search_failure_degrades(self, retriever, vector_store):
        """Should return [] instead of raising when the search fails."""
        vector_store.search = AsyncMock(side_effect=VectorStoreError("qdrant down"))

        assert await retriever.retrieve_relevant_content("pricing", "tenant-a") == []

    @pytest.mark.asyncio
    async def test_embedding_failure_degrades(self, retriever, fake_embedder):
        """Should return [] instead of raising when embedding fails."""
        fake_embedder.fail = True

        assert await retriever.retrieve_relevant_content("pricing", "tenant-a") == []


class TestRetrieveContextForPage:
    @pytest.mark.asyncio
    async def test_excludes_current_page_without_query(self, retriever, indexed):
        """Should never return the page being viewed."""
        results = await retriever.retrieve_context_for_page("/content/page-1", "tenant-a")

        assert results
        assert all(r.metadata.url != "/content/page-1" for r in results)
        assert len(results) <= 5

    @pytest.mark.asyncio
    async def test_excludes_current_page_with_query(self, retriever, indexed):
        """Should drop the current page even when it is the best match."""
        results = await retriever.retrieve_context_for_page(
            "/content/page-2", "tenant-a", query="Title of cms_2\n\nPage 2 body."
        )

        assert all(r.metadata.url != "/content/page-2" for r in results)
        assert len(results) <= 3

    @pytest.mark.asyncio
    async def test_query_and_limits(self, retriever):
        """Should use the query with limit 3, or a related-content query with limit 5."""
        retriever.retrieve_relevant_content = AsyncMock(return_value=[])

        await retriever.retrieve_context_for_page("/docs/a", "tenant-a", query="install")
        await retriever.retrieve_context_for_page("/docs/a", "tenant-a")

        first, second = retriever.retrieve_relevant_content.await_args_list
        assert first.args == ("install", "tenant-a")
        assert first.kwargs == {"limit": 3}
        assert second.args == ("Related content for /docs/a", "tenant-a")
        assert second.kwargs == {"limit": 5}


class TestFormatContext:
    def test_block_format(self, retriever):
        """Should render title, content type, content and source per block."""
        context = retriever.format_context([result("Install", "Run it.", "/docs/install")])

        assert context == "**Install** (documentation)\nRun it.\nSource: /docs/install\n---"

    def test_stops_before_max_chars(self, retriever):
        """Should add whole blocks only while they fit."""
        results = [result(f"T{i}", "x" * 100, f"/docs/{i}") for i in range(5)]

        context = retriever.format_context(results, max_chars=300)

        assert context.count("**T") == 2
        assert len(context) <= 300

    def test_empty(self, retriever):
        """Should return an empty string for no results."""
        assert retriever.format_context([]) == ""


class TestBuildRagPrompt:
    def test_no_context(self, retriever):
        """Should return the message unchanged without context."""
        assert retriever.build_rag_prompt("Hello?", "") == "Hello?"

    def test_wraps_context(self, retriever):
        """Should include both the context and the question."""
        prompt = retriever.build_rag_prompt("How do I install?", "**Install** ...")

        assert "**Install** ..." in prompt
        assert prompt.endswith("Question: How do I install?")
