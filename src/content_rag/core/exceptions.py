"""Error taxonomy for the indexing and retrieval pipeline."""


class RAGError(Exception):
    """Base class for pipeline errors."""


class ConfigurationError(RAGError):
    """A required credential or endpoint is missing. Fatal at startup."""


class SourceReadError(RAGError):
    """A connector failed to read from its origin."""


class EmbeddingServiceError(RAGError):
    """The embedding call failed or returned malformed output."""


class VectorStoreError(RAGError):
    """An upsert, search or delete against the vector store failed."""
