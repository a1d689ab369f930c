#!/usr/bin/env python3
"""Seed development content for indexing.

Creates the content tables and one sample row of each indexable kind.

Run with: uv run python scripts/seed_dev_content.py
"""

import asyncio
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from content_rag.core.config import get_settings
from content_rag.db.database import close_db, create_engine, create_session_maker, init_db
from content_rag.db.models import (
    Category,
    ContentItem,
    DocumentationArticle,
    ForumPost,
    ProductStatus,
    PublishStatus,
    ShopProduct,
)

DEV_ROWS = [
    Category(
        id="00000000-0000-0000-0000-000000000100",
        name="Getting Started",
        slug="getting-started",
    ),
    DocumentationArticle(
        id="00000000-0000-0000-0000-000000000101",
        title="Installing the widget",
        slug="installing",
        content=(
            "# Installing the widget\n\n"
            "Add the script tag to every page where the assistant should appear. "
            "The widget loads asynchronously and does not block rendering.\n\n"
            "## Configuration\n\n"
            "Pass your site key as a data attribute. Keys are created in the admin "
            "console under Settings, and each key is bound to one site."
        ),
        tags=["setup", "widget"],
        status=PublishStatus.PUBLISHED.value,
        category_id="00000000-0000-0000-0000-000000000100",
    ),
    ContentItem(
        id="00000000-0000-0000-0000-000000000201",
        title="About us",
        slug="about",
        content="<p>We build tools that help small teams publish documentation "
        "and answer customer questions without a support desk.</p>",
        seo_keywords=["company", "about"],
        status=PublishStatus.PUBLISHED.value,
    ),
    ForumPost(
        id="00000000-0000-0000-0000-000000000301",
        title="Widget not showing on mobile",
        content="The assistant button disappears below 480px. Is there a setting "
        "for the mobile breakpoint, or do I need custom CSS?",
        status=PublishStatus.PUBLISHED.value,
        author_id="00000000-0000-0000-0000-000000000001",
    ),
    ShopProduct(
        id="00000000-0000-0000-0000-000000000401",
        name="Pro plan",
        description="Unlimited indexed pages, Google Drive sync and priority support.",
        status=ProductStatus.ACTIVE.value,
        shop_id="00000000-0000-0000-0000-000000000400",
    ),
]


async def seed_dev_content():
    """Create content tables and insert sample rows."""
    engine = create_engine(get_settings())
    session_maker = create_session_maker(engine)

    try:
        await init_db(engine)

        async with session_maker() as db:
            for row in DEV_ROWS:
                if await db.get(type(row), row.id):
                    print(f"✓ {type(row).__name__} {row.id} already exists")
                    continue
                db.add(row)
                print(f"✓ Created {type(row).__name__} {row.id}")

            await db.commit()
    finally:
        await close_db(engine)

    print("\n✓ Dev content seeded successfully!")


if __name__ == "__main__":
    asyncio.run(seed_dev_content())
