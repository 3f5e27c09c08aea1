"""
db/session.py
-------------
Async SQLAlchemy engine and session factory for the database record store.

Design decisions:
  - Only imported when RECORD_STORE_BACKEND=database, so the memory and
    Graph backends never open a connection pool.
  - Pool sizing applies to server databases (PostgreSQL via asyncpg);
    SQLite URLs use SQLAlchemy's default pool for that dialect.
  - pool_pre_ping=True: validates connections before checkout to handle
    stale connections after DB restarts or idle timeouts.
  - expire_on_commit=False: avoids lazy-load errors after commit in async
    context (attributes are already loaded, no implicit SELECT needed).
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from letter_numbering.core.config import settings


def create_engine_for(url: str, echo: bool = False) -> AsyncEngine:
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)
    return create_async_engine(
        url,
        echo=echo,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
        pool_recycle=3600,             # Recycle connections every hour
    )


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# ── Engine ────────────────────────────────────────────────────────────────────
engine = create_engine_for(settings.DATABASE_URL, echo=settings.DEBUG)

# ── Session Factory ───────────────────────────────────────────────────────────
AsyncSessionLocal = create_session_factory(engine)
