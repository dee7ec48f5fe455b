# movievault/tests/conftest.py
import os

# Must be in place before movievault.core.settings is imported anywhere.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("AUTH_SECRET", "test-secret")

import itertools
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from movievault.core.settings import settings
from movievault.database import get_async_db, make_engine
from movievault.db_models import Base, Tag
from movievault.models_auth import AuthUser, ROLE_ADMIN, ROLE_USER
from movievault.routes.auth import create_access_token
from movievault.services.files import ReceivedFile

_counter = itertools.count(1)


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch) -> Path:
    """Every test gets its own upload root."""
    root = tmp_path / "uploads"
    (root / "movies").mkdir(parents=True)
    monkeypatch.setattr(settings, "upload_dir", str(root))
    return root


@pytest.fixture
async def engine(tmp_path):
    eng = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield eng
    finally:
        await eng.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False, class_=AsyncSession)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_received(upload_dir):
    """Write a fake image under the upload root, as the upload boundary would."""
    def _make(ext: str = ".jpg", mimetype: str = "image/jpeg", content: bytes = b"\xff\xd8\xff fake") -> ReceivedFile:
        path = upload_dir / "movies" / f"test-{next(_counter)}{ext}"
        path.write_bytes(content)
        return ReceivedFile(path=str(path), mimetype=mimetype, size=len(content))
    return _make


@pytest.fixture
async def tags(db):
    """Three tags: Sci-Fi, Drama, Comedy (ids 1..3)."""
    rows = [Tag(name="Sci-Fi"), Tag(name="Drama"), Tag(name="Comedy")]
    db.add_all(rows)
    await db.commit()
    return rows


# ----------------------------
# HTTP
# ----------------------------
@pytest.fixture
async def client(session_factory):
    from movievault.main import app

    async def _override_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_db] = _override_db
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


async def _user(db, username: str, role: str) -> AuthUser:
    u = AuthUser(username=username, password_hash="not-a-real-hash", role=role)
    db.add(u)
    await db.commit()
    await db.refresh(u)
    return u


def _bearer(u: AuthUser) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id=u.id, username=u.username, role=u.role)}"}


@pytest.fixture
async def admin_headers(db) -> dict:
    return _bearer(await _user(db, "admin", ROLE_ADMIN))


@pytest.fixture
async def user_headers(db) -> dict:
    return _bearer(await _user(db, "viewer", ROLE_USER))


@pytest.fixture
def api() -> str:
    return settings.api_prefix
