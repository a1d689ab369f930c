"""Content indexer for RAG ingestion.

Handles chunking, embedding and storage of source items, and full
per-tenant re-indexing across every source connector.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

from content_rag.core.exceptions import RAGError
from content_rag.observability.metrics import (
    CHUNKS_INDEXED_TOTAL,
    INDEXING_DURATION,
    INDEXING_FAILURES_TOTAL,
)
from content_rag.rag.chunking import ChunkingStrategy, get_chunker
from content_rag.rag.connectors.base import SourceConnector
from content_rag.rag.embedder import Embedder
from content_rag.rag.models import ContentType, IngestionRecord
from content_rag.rag.vector_store import VectorStore

logger = logging.getLogger(__name__)


@dataclass
class IndexingResult:
    """Result of indexing one source item."""

    success: bool
    source_id: str
    chunk_count: int
    error: str | None = None
    processing_time_ms: int = 0


@dataclass
class PipelineReport:
    """Outcome of one content type's pipeline."""

    content_type: ContentType
    indexed: int = 0
    failed: int = 0
    chunk_count: int = 0
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None and self.failed == 0


@dataclass
class TenantIndexingReport:
    """Outcome of a full tenant re-index."""

    tenant_id: str
    pipelines: list[PipelineReport] = field(default_factory=list)
    processing_time_ms: int = 0

    @property
    def success(self) -> bool:
        return all(p.success for p in self.pipelines)

    @property
    def indexed(self) -> int:
        return sum(p.indexed for p in self.pipelines)

    @property
    def failed(self) -> int:
        return sum(p.failed for p in self.pipelines)

    @property
    def chunk_count(self) -> int:
        return sum(p.chunk_count for p in self.pipelines)


class ContentIndexer:
    """Indexes source items into the vector store.

    Pipeline per item:
    1. Delete existing chunks for the source id
    2. Split into chunks (strategy chosen by content type)
    3. Generate embeddings for title + chunk text
    4. Upsert into the vector store
    """

    def __init__(
        self,
        vector_store: VectorStore,
        embedder: Embedder,
        connectors: list[SourceConnector] | None = None,
        max_chunk_size: int = 1000,
        overlap: int = 200,
        min_chunk_size: int = 100,
    ):
        self.vector_store = vector_store
        self.embedder = embedder
        self.connectors = connectors or []
        self.chunkers: dict[ContentType, ChunkingStrategy] = {
            content_type: get_chunker(
                content_type,
                max_chunk_size=max_chunk_size,
                overlap=overlap,
                min_chunk_size=min_chunk_size,
            )
            for content_type in ContentType
        }

    async def index_single_item(self, record: IngestionRecord) -> IndexingResult:
        """Re-index one source item.

        Never raises for item-level failures; they are logged and
        reported in the result. A failed delete stops the item before
        anything new is written.

        Args:
            record: Normalized source item

        Returns:
            IndexingResult with status and chunk count
        """
        start = time.perf_counter()
        source_id = record.source_id
        content_type = record.content_type.value
        stage = "delete"

        try:
            await self.vector_store.delete_by_source(source_id, record.tenant_id)

            stage = "chunk"
            chunks = self.chunkers[record.content_type].chunk(
                record.content, record.base_metadata()
            )

            if not chunks:
                logger.info(f"[Indexer] No content to index for {source_id}")
                return IndexingResult(
                    success=True,
                    source_id=source_id,
                    chunk_count=0,
                    processing_time_ms=_elapsed_ms(start),
                )

            # Title is embedded with every chunk to improve relevance
            stage = "embed"
            texts = [f"{chunk.metadata.title}\n\n{chunk.content}" for chunk in chunks]
            embeddings = await self.embedder.embed_texts(texts)

            stage = "upsert"
            chunks = [
                chunk.model_copy(update={"embedding": embedding})
                for chunk, embedding in zip(chunks, embeddings, strict=True)
            ]
            await self.vector_store.upsert(chunks)

        except Exception as e:
            INDEXING_FAILURES_TOTAL.labels(content_type=content_type, stage=stage).inc()
            logger.error(
                f"[Indexer] Failed to index {source_id} at {stage}: {e}",
                exc_info=not isinstance(e, RAGError),
            )
            return IndexingResult(
                success=False,
                source_id=source_id,
                chunk_count=0,
                error=str(e),
                processing_time_ms=_elapsed_ms(start),
            )

        elapsed_ms = _elapsed_ms(start)
        CHUNKS_INDEXED_TOTAL.labels(tenant_id=record.tenant_id, content_type=content_type).inc(
            len(chunks)
        )
        INDEXING_DURATION.labels(content_type=content_type).observe(elapsed_ms / 1000)
        logger.info(f"[Indexer] Indexed {len(chunks)} chunks for {source_id} in {elapsed_ms}ms")

        return IndexingResult(
            success=True,
            source_id=source_id,
            chunk_count=len(chunks),
            processing_time_ms=elapsed_ms,
        )

    async def index_all_content(self, tenant_id: str) -> TenantIndexingReport:
        """Re-index everything every connector yields for a tenant.

        Connectors run concurrently; items within one connector run one
        at a time. A failing connector does not affect the others.
        """
        start = time.perf_counter()
        logger.info(f"[Indexer] Starting full content indexing for tenant: {tenant_id}")

        pipelines = await asyncio.gather(
            *(self._run_pipeline(connector, tenant_id) for connector in self.connectors)
        )

        report = TenantIndexingReport(
            tenant_id=tenant_id,
            pipelines=list(pipelines),
            processing_time_ms=_elapsed_ms(start),
        )
        logger.info(
            f"[Indexer] Completed full content indexing for tenant: {tenant_id} "
            f"({report.indexed} items, {report.chunk_count} chunks, {report.failed} failed)"
        )
        return report

    async def _run_pipeline(self, connector: SourceConnector, tenant_id: str) -> PipelineReport:
        report = PipelineReport(content_type=connector.content_type)

        try:
            async for record in connector.iter_records(tenant_id):
                result = await self.index_single_item(record)
                if result.success:
                    report.indexed += 1
                    report.chunk_count += result.chunk_count
                else:
                    report.failed += 1
        except Exception as e:
            report.error = str(e)
            INDEXING_FAILURES_TOTAL.labels(
                content_type=connector.content_type.value, stage="pipeline"
            ).inc()
            logger.error(
                f"[Indexer] {connector.name} pipeline failed: {e}",
                exc_info=not isinstance(e, RAGError),
            )

        logger.info(
            f"[Indexer] {connector.name}: indexed {report.indexed} items "
            f"({report.chunk_count} chunks), {report.failed} failed"
        )
        return report

    async def delete_content(self, source_id: str, tenant_id: str) -> int:
        """Remove a source item that was unpublished or deleted upstream.

        Returns:
            Number of chunks deleted
        """
        return await self.vector_store.delete_by_source(source_id, tenant_id)


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)
