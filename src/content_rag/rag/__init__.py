"""RAG (Retrieval-Augmented Generation) package.

Components:
- Chunker: Content-type aware chunking strategies
- Embedder: OpenAI-compatible embedding service
- VectorStore: Qdrant adapter with mandatory tenant scoping
- Connectors: Relational content and Google Drive sources
- ContentIndexer: Per-item and per-tenant ingestion pipeline
- ContentRetriever: Semantic search and context formatting
"""

from content_rag.rag.chunking import TextChunker, get_chunker
from content_rag.rag.embedder import Embedder, create_embedder
from content_rag.rag.extractors import DocumentExtractor, ExtractionError
from content_rag.rag.indexer import ContentIndexer, IndexingResult, TenantIndexingReport
from content_rag.rag.models import (
    ChunkMetadata,
    ContentChunk,
    ContentType,
    IngestionRecord,
    RetrievalFilters,
    RetrievalResult,
)
from content_rag.rag.retriever import ContentRetriever
from content_rag.rag.services import RAGServices, build_rag_services
from content_rag.rag.vector_store import VectorStore, create_vector_store

__all__ = [
    "ChunkMetadata",
    "ContentChunk",
    "ContentIndexer",
    "ContentRetriever",
    "ContentType",
    "DocumentExtractor",
    "Embedder",
    "ExtractionError",
    "IndexingResult",
    "IngestionRecord",
    "RAGServices",
    "RetrievalFilters",
    "RetrievalResult",
    "TenantIndexingReport",
    "TextChunker",
    "VectorStore",
    "build_rag_services",
    "create_embedder",
    "create_vector_store",
]
