"""Data model shared by the indexing and retrieval pipeline."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum as PyEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ContentType(str, PyEnum):
    """Kinds of source content that can be indexed."""

    DOCUMENTATION = "documentation"
    CMS_CONTENT = "cms_content"
    FORUM_POST = "forum_post"
    PRODUCT = "product"
    USER_PROFILE = "user_profile"
    GOOGLE_DRIVE = "google_drive"


def _to_iso(value: object) -> object:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class ChunkMetadata(BaseModel):
    """Metadata stored alongside every chunk.

    Extra keys are ignored so a raw vector store payload validates directly.
    """

    model_config = ConfigDict(extra="ignore")

    content_type: ContentType
    tenant_id: str
    source_id: str
    title: str = ""
    url: str = ""
    author: str | None = None
    tags: list[str] = Field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None
    section: str | None = None
    drive_file_id: str | None = None

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def coerce_timestamp(cls, v: object) -> object:
        return _to_iso(v)

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_tags(cls, v: object) -> object:
        return v or []


class ContentChunk(BaseModel):
    """The atomic indexed unit."""

    id: str
    content: str
    metadata: ChunkMetadata
    embedding: list[float] | None = None


class IngestionRecord(BaseModel):
    """A source item normalized by a connector, ready for indexing."""

    source_id: str
    content_type: ContentType
    tenant_id: str
    title: str = ""
    content: str = ""
    url: str = ""
    tags: list[str] = Field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None
    author: str | None = None
    drive_file_id: str | None = None

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def coerce_timestamp(cls, v: object) -> object:
        return _to_iso(v)

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_tags(cls, v: object) -> object:
        return v or []

    @field_validator("author", mode="before")
    @classmethod
    def coerce_author(cls, v: object) -> object:
        return str(v) if v is not None else None

    def base_metadata(self) -> ChunkMetadata:
        """Chunk metadata shared by every chunk of this record."""
        return ChunkMetadata(
            content_type=self.content_type,
            tenant_id=self.tenant_id,
            source_id=self.source_id,
            title=self.title,
            url=self.url,
            author=self.author,
            tags=list(self.tags),
            created_at=self.created_at,
            updated_at=self.updated_at,
            drive_file_id=self.drive_file_id,
        )


class RetrievalFilters(BaseModel):
    """Optional search filters.

    Fields are combined with AND; values within one set are combined with OR.
    """

    content_types: set[ContentType] | None = None
    tags: set[str] | None = None
    source_id: str | None = None
    author: str | None = None


@dataclass
class RetrievalResult:
    """A chunk returned from similarity search."""

    id: str
    content: str
    metadata: ChunkMetadata
    score: float
