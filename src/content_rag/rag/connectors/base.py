"""Base class for source connectors."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from content_rag.rag.models import ContentType, IngestionRecord


class SourceConnector(ABC):
    """Reads one origin and yields normalized ingestion records.

    Implementations raise SourceReadError when the origin as a whole
    cannot be read, and log and skip individual items that fail.
    """

    content_type: ContentType

    @property
    def name(self) -> str:
        return self.content_type.value

    @abstractmethod
    def iter_records(self, tenant_id: str) -> AsyncIterator[IngestionRecord]:
        """Yield every indexable item for a tenant."""
