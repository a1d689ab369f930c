"""Source connectors: read origin content as ingestion records."""

from content_rag.rag.connectors.base import SourceConnector
from content_rag.rag.connectors.google_drive import (
    DriveFile,
    GoogleDriveClient,
    GoogleDriveConnector,
    ServiceAccountTokenProvider,
)
from content_rag.rag.connectors.relational import (
    CMSContentConnector,
    DocumentationConnector,
    ForumPostConnector,
    ProductConnector,
    RelationalConnector,
)

__all__ = [
    "CMSContentConnector",
    "DocumentationConnector",
    "DriveFile",
    "ForumPostConnector",
    "GoogleDriveClient",
    "GoogleDriveConnector",
    "ProductConnector",
    "RelationalConnector",
    "ServiceAccountTokenProvider",
    "SourceConnector",
]
