"""Construction of the long-lived RAG adapters.

Everything is built once from settings and injected; nothing here is
cached at module level.
"""

import logging
from dataclasses import dataclass

import httpx
from sqlalchemy.ext.asyncio import AsyncEngine

from content_rag.core.config import Settings
from content_rag.db.database import close_db, create_engine, create_session_maker
from content_rag.rag.connectors import (
    CMSContentConnector,
    DocumentationConnector,
    ForumPostConnector,
    GoogleDriveClient,
    GoogleDriveConnector,
    ProductConnector,
    ServiceAccountTokenProvider,
    SourceConnector,
)
from content_rag.rag.embedder import Embedder, create_embedder
from content_rag.rag.indexer import ContentIndexer
from content_rag.rag.retriever import ContentRetriever
from content_rag.rag.vector_store import VectorStore, create_vector_store

logger = logging.getLogger(__name__)


@dataclass
class RAGServices:
    """Wired indexer and retriever plus the resources they hold."""

    vector_store: VectorStore
    embedder: Embedder
    indexer: ContentIndexer
    retriever: ContentRetriever
    engine: AsyncEngine
    drive_http: httpx.AsyncClient | None = None

    async def close(self) -> None:
        """Release every client and connection pool."""
        await self.vector_store.close()
        await self.embedder.client.close()
        if self.drive_http is not None:
            await self.drive_http.aclose()
        await close_db(self.engine)


def build_rag_services(settings: Settings) -> RAGServices:
    """Build all adapters, connectors, the indexer and the retriever.

    Raises:
        ConfigurationError: If a required credential or endpoint is missing
    """
    settings.validate_for_indexing()

    vector_store = create_vector_store(settings)
    embedder = create_embedder(settings)

    engine = create_engine(settings)
    session_maker = create_session_maker(engine)
    connectors: list[SourceConnector] = [
        DocumentationConnector(session_maker),
        CMSContentConnector(session_maker),
        ForumPostConnector(session_maker),
        ProductConnector(session_maker),
    ]

    drive_http = None
    if settings.google_drive_enabled:
        drive_http = httpx.AsyncClient(timeout=settings.google_drive_timeout)
        token_provider = ServiceAccountTokenProvider(
            settings.get_service_account_info(), drive_http
        )
        connectors.append(
            GoogleDriveConnector(
                GoogleDriveClient(drive_http, token_provider),
                settings.google_drive_folder_id,
            )
        )
    else:
        logger.info("[Services] Google Drive sync disabled (no folder configured)")

    indexer = ContentIndexer(
        vector_store,
        embedder,
        connectors,
        max_chunk_size=settings.chunk_max_size,
        overlap=settings.chunk_overlap,
        min_chunk_size=settings.chunk_min_size,
    )
    retriever = ContentRetriever(vector_store, embedder)

    logger.info(f"[Services] RAG services ready with {len(connectors)} connectors")
    return RAGServices(
        vector_store=vector_store,
        embedder=embedder,
        indexer=indexer,
        retriever=retriever,
        engine=engine,
        drive_http=drive_http,
    )
