#!/usr/bin/env python3
"""Re-index, delete or query one tenant's content.

Run with:
    uv run python scripts/reindex_tenant.py --tenant TENANT_ID
    uv run python scripts/reindex_tenant.py --tenant TENANT_ID --delete doc_123
    uv run python scripts/reindex_tenant.py --tenant TENANT_ID --query "how do I install?"
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from content_rag.core.config import get_settings
from content_rag.core.exceptions import ConfigurationError
from content_rag.core.logging import configure_logging
from content_rag.rag.services import RAGServices, build_rag_services

logger = logging.getLogger("reindex_tenant")


async def reindex(services: RAGServices, tenant_id: str) -> int:
    report = await services.indexer.index_all_content(tenant_id)

    print(f"\nTenant {tenant_id}: {report.processing_time_ms}ms")
    for pipeline in report.pipelines:
        status = "✓" if pipeline.success else "✗"
        line = (
            f"  {status} {pipeline.content_type.value}: {pipeline.indexed} indexed, "
            f"{pipeline.failed} failed, {pipeline.chunk_count} chunks"
        )
        if pipeline.error:
            line += f" ({pipeline.error})"
        print(line)

    return 0 if report.success else 1


async def delete(services: RAGServices, tenant_id: str, source_id: str) -> int:
    deleted = await services.indexer.delete_content(source_id, tenant_id)
    print(f"✓ Deleted {deleted} chunks for {source_id}")
    return 0


async def query(services: RAGServices, tenant_id: str, text: str) -> int:
    results = await services.retriever.retrieve_relevant_content(text, tenant_id)
    if not results:
        print("No results")
        return 0

    for result in results:
        print(f"{result.score:.3f}  {result.id}  {result.metadata.title}  {result.metadata.url}")
    print()
    print(services.retriever.format_context(results))
    return 0


async def main(args: argparse.Namespace) -> int:
    settings = get_settings()
    configure_logging(settings)

    try:
        services = build_rag_services(settings)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    try:
        if args.delete:
            return await delete(services, args.tenant, args.delete)
        if args.query:
            return await query(services, args.tenant, args.query)
        return await reindex(services, args.tenant)
    finally:
        await services.close()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--tenant", required=True, help="Tenant ID to operate on")
    action = parser.add_mutually_exclusive_group()
    action.add_argument("--delete", metavar="SOURCE_ID", help="Remove one source item's chunks")
    action.add_argument("--query", metavar="TEXT", help="Run a test retrieval")
    return parser.parse_args()


if __name__ == "__main__":
    sys.exit(asyncio.run(main(parse_args())))
