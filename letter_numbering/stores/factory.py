"""
stores/factory.py
-----------------
Builds the configured record store, blob store and directory provider.

One Graph transport (httpx client + token cache) is shared by every Graph
backend in use. Backends() owns whatever needs closing on shutdown.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional

import httpx

from letter_numbering.core.config import Settings
from letter_numbering.core.logging import get_logger
from letter_numbering.stores.base import BlobStore, DirectoryProvider, RecordStore
from letter_numbering.stores.memory import MemoryBlobStore, MemoryDirectory, MemoryRecordStore

logger = get_logger(__name__)


@dataclass
class Backends:
    record_store: RecordStore
    blob_store: BlobStore
    directory: DirectoryProvider
    closers: List[Callable[[], Awaitable[Any]]] = field(default_factory=list)

    async def aclose(self) -> None:
        for close in self.closers:
            await close()


def _graph_client(settings: Settings, closers: list):
    from letter_numbering.stores.graph import GraphClient, GraphTokenProvider

    http = httpx.AsyncClient(timeout=settings.GRAPH_TIMEOUT_SECONDS)
    closers.append(http.aclose)
    tokens = GraphTokenProvider(
        http,
        authority=settings.GRAPH_AUTHORITY,
        tenant_id=settings.GRAPH_TENANT_ID,
        client_id=settings.GRAPH_CLIENT_ID,
        client_secret=settings.GRAPH_CLIENT_SECRET,
    )
    return GraphClient(http, tokens, base_url=settings.GRAPH_BASE_URL, site_url=settings.SHAREPOINT_SITE_URL)


def build_backends(settings: Settings) -> Backends:
    closers: list = []
    graph = None

    def graph_client():
        nonlocal graph
        if graph is None:
            graph = _graph_client(settings, closers)
        return graph

    # ── Records ──────────────────────────────────────────────────────────
    if settings.RECORD_STORE_BACKEND == "graph":
        from letter_numbering.stores.graph import GraphRecordStore

        record_store: RecordStore = GraphRecordStore(graph_client(), page_size=settings.LIST_PAGE_SIZE)
    elif settings.RECORD_STORE_BACKEND == "database":
        from letter_numbering.db.session import AsyncSessionLocal, engine
        from letter_numbering.stores.database import DatabaseRecordStore

        record_store = DatabaseRecordStore(engine, AsyncSessionLocal)
        closers.append(engine.dispose)
    else:
        record_store = MemoryRecordStore()

    # ── Blobs ────────────────────────────────────────────────────────────
    if settings.BLOB_STORE_BACKEND == "graph":
        from letter_numbering.stores.graph import GraphBlobStore

        blob_store: BlobStore = GraphBlobStore(graph_client(), settings.LETTER_LIBRARY_NAME)
    elif settings.BLOB_STORE_BACKEND == "s3":
        from letter_numbering.stores.s3 import S3BlobStore

        blob_store = S3BlobStore(
            bucket=settings.S3_BUCKET,
            region=settings.AWS_REGION,
            presign_expiry_seconds=settings.S3_PRESIGN_EXPIRY_SECONDS,
        )
    else:
        blob_store = MemoryBlobStore()

    # ── Directory ────────────────────────────────────────────────────────
    directory: Optional[DirectoryProvider] = None
    if settings.GRAPH_TENANT_ID and settings.GRAPH_CLIENT_ID:
        from letter_numbering.stores.graph import GraphDirectory

        directory = GraphDirectory(graph_client())
    else:
        directory = MemoryDirectory()

    logger.info(
        "Backends configured",
        record_store=settings.RECORD_STORE_BACKEND,
        blob_store=settings.BLOB_STORE_BACKEND,
        directory=type(directory).__name__,
    )
    return Backends(record_store=record_store, blob_store=blob_store, directory=directory, closers=closers)
