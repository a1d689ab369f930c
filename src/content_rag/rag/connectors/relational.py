"""Connectors for content stored in the relational database.

Only published (or, for products, active) rows are ever read.
"""

import json
import logging
from abc import abstractmethod
from collections.abc import AsyncIterator

from pydantic import ValidationError
from sqlalchemy import Row, Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from content_rag.core.exceptions import SourceReadError
from content_rag.db.models import (
    Category,
    ContentItem,
    DocumentationArticle,
    ForumPost,
    ProductStatus,
    PublishStatus,
    ShopProduct,
)
from content_rag.rag.connectors.base import SourceConnector
from content_rag.rag.models import ContentType, IngestionRecord

logger = logging.getLogger(__name__)


class RelationalConnector(SourceConnector):
    """Runs one query and maps each row to an ingestion record."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    @abstractmethod
    def build_query(self) -> Select:
        """Query selecting the indexable rows."""

    @abstractmethod
    def to_record(self, row: Row, tenant_id: str) -> IngestionRecord:
        """Map a result row to an ingestion record."""

    async def iter_records(self, tenant_id: str) -> AsyncIterator[IngestionRecord]:
        try:
            async with self.session_maker() as session:
                result = await session.execute(self.build_query())
                rows = result.all()
        except SQLAlchemyError as e:
            raise SourceReadError(f"Failed to read {self.name} rows: {e}") from e

        logger.info(f"[Connector] Found {len(rows)} {self.name} rows to index")

        for row in rows:
            try:
                record = self.to_record(row, tenant_id)
            except (ValidationError, ValueError, TypeError) as e:
                logger.warning(f"[Connector] Skipping malformed {self.name} row: {e}")
                continue
            yield record


class DocumentationConnector(RelationalConnector):
    """Published documentation articles."""

    content_type = ContentType.DOCUMENTATION

    def build_query(self) -> Select:
        return (
            select(DocumentationArticle, Category.slug.label("category_slug"))
            .outerjoin(Category, DocumentationArticle.category_id == Category.id)
            .where(DocumentationArticle.status == PublishStatus.PUBLISHED.value)
            .order_by(DocumentationArticle.id)
        )

    def to_record(self, row: Row, tenant_id: str) -> IngestionRecord:
        article: DocumentationArticle = row[0]
        category_slug = row.category_slug
        url = f"/docs/{category_slug}/{article.slug}" if category_slug else f"/docs/{article.slug}"

        return IngestionRecord(
            source_id=f"doc_{article.id}",
            content_type=self.content_type,
            tenant_id=tenant_id,
            title=article.title,
            content=article.content or "",
            url=url,
            tags=article.tags or [],
            created_at=article.created_at,
            updated_at=article.updated_at,
        )


class CMSContentConnector(RelationalConnector):
    """Published CMS entries."""

    content_type = ContentType.CMS_CONTENT

    def build_query(self) -> Select:
        return (
            select(ContentItem)
            .where(ContentItem.status == PublishStatus.PUBLISHED.value)
            .order_by(ContentItem.id)
        )

    def to_record(self, row: Row, tenant_id: str) -> IngestionRecord:
        item: ContentItem = row[0]
        content = item.content
        if content is None:
            content = ""
        elif not isinstance(content, str):
            # Structured bodies are indexed as their JSON text
            content = json.dumps(content)

        return IngestionRecord(
            source_id=f"cms_{item.id}",
            content_type=self.content_type,
            tenant_id=tenant_id,
            title=item.title,
            content=content,
            url=f"/content/{item.slug}",
            tags=item.seo_keywords or [],
            created_at=item.created_at,
            updated_at=item.updated_at,
        )


class ForumPostConnector(RelationalConnector):
    """Published forum posts."""

    content_type = ContentType.FORUM_POST

    def build_query(self) -> Select:
        return (
            select(ForumPost)
            .where(ForumPost.status == PublishStatus.PUBLISHED.value)
            .order_by(ForumPost.id)
        )

    def to_record(self, row: Row, tenant_id: str) -> IngestionRecord:
        post: ForumPost = row[0]
        return IngestionRecord(
            source_id=f"forum_{post.id}",
            content_type=self.content_type,
            tenant_id=tenant_id,
            title=post.title,
            content=post.content or "",
            url=f"/community/posts/{post.id}",
            tags=[],
            created_at=post.created_at,
            updated_at=post.updated_at,
            author=post.author_id,
        )


class ProductConnector(RelationalConnector):
    """Active shop products."""

    content_type = ContentType.PRODUCT

    def build_query(self) -> Select:
        return (
            select(ShopProduct)
            .where(ShopProduct.status == ProductStatus.ACTIVE.value)
            .order_by(ShopProduct.id)
        )

    def to_record(self, row: Row, tenant_id: str) -> IngestionRecord:
        product: ShopProduct = row[0]
        return IngestionRecord(
            source_id=f"product_{product.id}",
            content_type=self.content_type,
            tenant_id=tenant_id,
            title=product.name,
            content=product.description or "",
            url=f"/shop/{product.shop_id}/products/{product.id}",
            tags=[],
            created_at=product.created_at,
            updated_at=product.updated_at,
        )
