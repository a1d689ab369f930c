"""Prometheus metrics for indexing and retrieval.

Tracks throughput, failures and latency for:
- Per-tenant indexing volume
- Failure rates by pipeline stage
- Retrieval latency
"""

import time
from collections.abc import Iterator
from contextlib import contextmanager

from prometheus_client import Counter, Histogram

CHUNKS_INDEXED_TOTAL = Counter(
    "rag_chunks_indexed_total",
    "Total chunks written to the vector store",
    ["tenant_id", "content_type"],
)

INDEXING_FAILURES_TOTAL = Counter(
    "rag_indexing_failures_total",
    "Total source items that failed to index",
    ["content_type", "stage"],  # stage: delete, chunk, embed, upsert, pipeline
)

INDEXING_DURATION = Histogram(
    "rag_indexing_duration_seconds",
    "Time to index one source item",
    ["content_type"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
)

RETRIEVAL_DURATION = Histogram(
    "rag_retrieval_duration_seconds",
    "Retrieval latency in seconds",
    ["operation"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
)

RETRIEVAL_FAILURES_TOTAL = Counter(
    "rag_retrieval_failures_total",
    "Retrievals that degraded to an empty result",
    ["operation"],
)


@contextmanager
def track_duration(histogram: Histogram, **labels: str) -> Iterator[None]:
    """Observe the wall time of the enclosed block."""
    start = time.perf_counter()
    try:
        yield
    finally:
        histogram.labels(**labels).observe(time.perf_counter() - start)
