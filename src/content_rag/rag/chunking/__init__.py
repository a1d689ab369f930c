"""Content chunking strategies.

Splits normalized content into bounded, overlapping chunks suitable
for embedding and retrieval, with strategies tuned per content type.
"""

import re
from abc import ABC, abstractmethod

from content_rag.rag.models import ChunkMetadata, ContentChunk, ContentType

_HTML_TAG = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")
_HEADING = re.compile(r"(?=^#{1,6}\s)", re.MULTILINE)

# Forum posts up to this multiple of max_chunk_size stay whole
FORUM_POST_PASSTHROUGH_FACTOR = 1.5


def normalize_text(text: str) -> str:
    """Strip HTML tags, collapse whitespace runs and trim."""
    text = _HTML_TAG.sub(" ", text)
    text = _WHITESPACE.sub(" ", text)
    return text.strip()


class ChunkingStrategy(ABC):
    """Base class for chunking strategies."""

    @abstractmethod
    def chunk(self, text: str, metadata: ChunkMetadata) -> list[ContentChunk]:
        """Split text into chunks without embeddings."""


class TextChunker(ChunkingStrategy):
    """Sliding-window chunking with overlap.

    Window ends snap back to the last sentence terminator or newline
    when one falls far enough into the window, so chunks rarely cut
    mid-sentence. Slivers shorter than ``min_chunk_size`` are dropped.

    Assumes ``min_chunk_size < max_chunk_size - overlap``.
    """

    def __init__(
        self,
        max_chunk_size: int = 1000,
        overlap: int = 200,
        min_chunk_size: int = 100,
    ):
        self.max_chunk_size = max_chunk_size
        self.overlap = overlap
        self.min_chunk_size = min_chunk_size

    def chunk(
        self,
        text: str,
        metadata: ChunkMetadata,
        id_prefix: str | None = None,
    ) -> list[ContentChunk]:
        """Split text into overlapping chunks.

        Args:
            text: Raw text, may contain HTML
            metadata: Base metadata copied onto every chunk
            id_prefix: Chunk id prefix (defaults to the source id)

        Returns:
            Chunks in document order
        """
        clean_text = normalize_text(text)
        if not clean_text:
            return []

        prefix = id_prefix or metadata.source_id

        if len(clean_text) <= self.max_chunk_size:
            return [
                ContentChunk(
                    id=f"{prefix}_chunk_0",
                    content=clean_text,
                    metadata=metadata.model_copy(),
                )
            ]

        chunks = []
        start = 0
        index = 0
        prev_end = 0
        length = len(clean_text)

        while start < length:
            end = min(start + self.max_chunk_size, length)

            # Prefer a sentence or line break over a hard cut, but only one
            # past the previous chunk so a window never ends inside it
            if end < length:
                search_from = max(start, prev_end)
                break_point = max(
                    clean_text.rfind(".", search_from, end),
                    clean_text.rfind("\n", search_from, end),
                )
                if break_point > start + self.min_chunk_size:
                    end = break_point + 1

            chunk_text = clean_text[start:end].strip()

            if len(chunk_text) >= self.min_chunk_size:
                chunks.append(
                    ContentChunk(
                        id=f"{prefix}_chunk_{index}",
                        content=chunk_text,
                        metadata=metadata.model_copy(
                            update={"section": metadata.section or f"chunk_{index}"}
                        ),
                    )
                )
                index += 1

            if end >= length:
                break

            prev_end = end
            # Move start back by the overlap, but always forward overall
            next_start = end - self.overlap
            start = next_start if next_start > start else end

        return chunks


class DocumentationChunker(ChunkingStrategy):
    """Heading-aware chunking for markdown documentation.

    Each heading section is chunked on its own and tagged ``section_{i}``.
    Documents without headings fall back to plain text chunking.
    """

    def __init__(self, text_chunker: TextChunker):
        self.text_chunker = text_chunker

    def chunk(self, text: str, metadata: ChunkMetadata) -> list[ContentChunk]:
        sections = _HEADING.split(text)

        if len(sections) <= 1:
            return self.text_chunker.chunk(text, metadata)

        chunks = []
        for i, section in enumerate(sections):
            if not section.strip():
                continue
            chunks.extend(
                self.text_chunker.chunk(
                    section,
                    metadata.model_copy(update={"section": f"section_{i}"}),
                    id_prefix=f"{metadata.source_id}_section_{i}",
                )
            )
        return chunks


class ForumPostChunker(ChunkingStrategy):
    """Keeps forum posts whole unless they are very long."""

    def __init__(self, text_chunker: TextChunker):
        self.text_chunker = text_chunker

    def chunk(self, text: str, metadata: ChunkMetadata) -> list[ContentChunk]:
        content = text.strip()
        if not content:
            return []

        limit = self.text_chunker.max_chunk_size * FORUM_POST_PASSTHROUGH_FACTOR
        if len(content) <= limit:
            return [
                ContentChunk(
                    id=f"{metadata.source_id}_post",
                    content=content,
                    metadata=metadata.model_copy(),
                )
            ]

        return self.text_chunker.chunk(text, metadata)


def get_chunker(content_type: ContentType | str, **kwargs) -> ChunkingStrategy:
    """Get the chunking strategy for a content type.

    Args:
        content_type: Content type of the item being indexed
        **kwargs: TextChunker parameters (max_chunk_size, overlap, min_chunk_size)

    Returns:
        Configured chunking strategy
    """
    text_chunker = TextChunker(**kwargs)
    content_type = ContentType(content_type)

    if content_type == ContentType.DOCUMENTATION:
        return DocumentationChunker(text_chunker)
    if content_type == ContentType.FORUM_POST:
        return ForumPostChunker(text_chunker)
    return text_chunker


__all__ = [
    "ChunkingStrategy",
    "DocumentationChunker",
    "ForumPostChunker",
    "TextChunker",
    "get_chunker",
    "normalize_text",
]
