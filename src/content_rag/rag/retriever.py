"""RAG Retriever - tenant-scoped semantic search.

Combines query embedding and vector search, and formats the results
as context for an LLM prompt.
"""

import logging

from content_rag.observability.metrics import (
    RETRIEVAL_DURATION,
    RETRIEVAL_FAILURES_TOTAL,
    track_duration,
)
from content_rag.rag.embedder import Embedder
from content_rag.rag.models import RetrievalFilters, RetrievalResult
from content_rag.rag.vector_store import VectorStore

logger = logging.getLogger(__name__)

PAGE_QUERY_LIMIT = 3
PAGE_RELATED_LIMIT = 5


class ContentRetriever:
    """Semantic retrieval within one tenant's content.

    Retrieval never raises: failures are logged and degrade to an
    empty result so callers can answer without context.
    """

    def __init__(self, vector_store: VectorStore, embedder: Embedder):
        self.vector_store = vector_store
        self.embedder = embedder

    async def retrieve_relevant_content(
        self,
        query: str,
        tenant_id: str,
        filters: RetrievalFilters | None = None,
        limit: int = 5,
    ) -> list[RetrievalResult]:
        """Retrieve the chunks most relevant to a query.

        Args:
            query: User's search query
            tenant_id: Tenant whose content is searched
            filters: Optional content type / tag / source / author filters
            limit: Maximum number of results

        Returns:
            Results ranked by similarity, or [] on any failure
        """
        if not query.strip():
            return []

        try:
            with track_duration(RETRIEVAL_DURATION, operation="relevant_content"):
                query_vector = await self.embedder.embed_query(query)
                return await self.vector_store.search(
                    query_vector,
                    tenant_id,
                    filters=filters,
                    limit=limit,
                )
        except Exception as e:
            RETRIEVAL_FAILURES_TOTAL.labels(operation="relevant_content").inc()
            logger.error(f"[Retriever] Error retrieving content for tenant {tenant_id}: {e}")
            return []

    async def retrieve_context_for_page(
        self,
        page_url: str,
        tenant_id: str,
        query: str | None = None,
    ) -> list[RetrievalResult]:
        """Retrieve content related to the page a user is viewing.

        The page itself is never part of the result.
        """
        if query and query.strip():
            results = await self.retrieve_relevant_content(
                query, tenant_id, limit=PAGE_QUERY_LIMIT
            )
        else:
            results = await self.retrieve_relevant_content(
                f"Related content for {page_url}", tenant_id, limit=PAGE_RELATED_LIMIT
            )

        return [r for r in results if r.metadata.url != page_url]

    def format_context(self, results: list[RetrievalResult], max_chars: int = 8000) -> str:
        """Format retrieved chunks as context for the LLM.

        Args:
            results: Retrieved chunks, best first
            max_chars: Maximum context length

        Returns:
            Formatted context string, one block per chunk
        """
        if not results:
            return ""

        blocks = []
        total_chars = 0

        for result in results:
            metadata = result.metadata
            block = (
                f"**{metadata.title}** ({metadata.content_type.value})\n"
                f"{result.content}\n"
                f"Source: {metadata.url}\n"
                "---\n"
            )
            if total_chars + len(block) > max_chars:
                break

            blocks.append(block)
            total_chars += len(block)

        return "".join(blocks).rstrip("\n")

    def build_rag_prompt(self, user_message: str, context: str) -> str:
        """Build a RAG-enhanced prompt.

        Args:
            user_message: User's original message
            context: Formatted context from format_context

        Returns:
            Enhanced prompt with context
        """
        if not context:
            return user_message

        return f"""Use the following content from this site to help answer the question.
Cite the source URL when you use a piece of content.
If the content doesn't contain relevant information, say so and answer based on your general knowledge.

Context:
{context}

Question: {user_message}"""
