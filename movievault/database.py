# movievault/database.py
from collections.abc import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from movievault.core.settings import settings


def _to_async_driver(url: str) -> str:
    """
    Ensure the SQLAlchemy URL uses an async driver.
    - postgres://            -> postgresql+asyncpg://
    - postgresql://          -> postgresql+asyncpg://
    - postgresql+psycopg://  -> postgresql+asyncpg://
    - sqlite:///             -> sqlite+aiosqlite:///
    """
    u = (url or "").strip().strip('"').strip("'")
    if u.startswith("postgres://"):
        u = "postgresql://" + u[len("postgres://"):]
    if u.startswith("postgresql+psycopg://"):
        return "postgresql+asyncpg://" + u[len("postgresql+psycopg://"):]
    if u.startswith("postgresql://"):
        return "postgresql+asyncpg://" + u[len("postgresql://"):]
    if u.startswith("sqlite:///"):
        return "sqlite+aiosqlite:///" + u[len("sqlite:///"):]
    return u


def make_engine(url: str):
    engine = create_async_engine(_to_async_driver(url), future=True, pool_pre_ping=True)
    if engine.dialect.name == "sqlite":
        # SQLite ignores ON DELETE CASCADE unless asked per connection.
        @event.listens_for(engine.sync_engine, "connect")
        def _fk_on(dbapi_conn, _record):
            cur = dbapi_conn.cursor()
            cur.execute("PRAGMA foreign_keys=ON")
            cur.close()

    return engine


async_engine = make_engine(settings.database_url)
AsyncSessionLocal: async_sessionmaker[AsyncSession] = async_sessionmaker(
    bind=async_engine, expire_on_commit=False, autoflush=False
)


# FastAPI dependency
async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session
