"""Shared fixtures: in-memory SQLite database, users, tokens and an API client."""

import uuid
from collections.abc import AsyncGenerator

import httpx
import pytest
from httpx import ASGITransport
from sqlalchemy.pool import StaticPool

from adorable.api.deps import get_git_service, get_github_sync, get_project_fs
from adorable.api.main import app
from adorable.core.security import create_access_token, hash_password
from adorable.models.database import close_db, create_all, get_session_factory, init_db
from adorable.models.user import User
from adorable.services.git_service import GitService
from adorable.services.github_sync import GitHubSyncService
from adorable.services.project_fs import ProjectFsService


@pytest.fixture
async def database() -> AsyncGenerator[None, None]:
    init_db(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_all()
    yield
    await close_db()


@pytest.fixture
async def db(database):
    async with get_session_factory()() as session:
        yield session


@pytest.fixture
def make_user(db):
    async def _make_user(email: str | None = None, name: str | None = None, **fields) -> User:
        user = User(
            id=str(uuid.uuid4()),
            email=(email or f"{uuid.uuid4().hex[:8]}@example.com").lower(),
            password_hash=hash_password("correct horse battery"),
            name=name,
            **fields,
        )
        db.add(user)
        await db.commit()
        return user

    return _make_user


@pytest.fixture
async def alice(make_user) -> User:
    return await make_user("alice@example.com", "Alice")


@pytest.fixture
async def bob(make_user) -> User:
    return await make_user("bob@example.com", "Bob")


@pytest.fixture
async def carol(make_user) -> User:
    return await make_user("carol@example.com", "Carol")


@pytest.fixture
def auth():
    """Bearer headers for a user: ``client.get(url, headers=auth(alice))``."""

    def _auth(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _auth


@pytest.fixture
def projects_dir(tmp_path):
    path = tmp_path / "projects"
    path.mkdir()
    return path


@pytest.fixture
def fs(projects_dir) -> ProjectFsService:
    return ProjectFsService(projects_dir)


@pytest.fixture
def git() -> GitService:
    return GitService(author_name="Test Bot", author_email="bot@example.com", timeout=30)


@pytest.fixture
def github_transport():
    """Replace per test with ``github_transport.handler = ...``."""

    class Transport:
        handler = None

        def __call__(self, request: httpx.Request) -> httpx.Response:
            if self.handler is None:
                return httpx.Response(404, json={"message": "Not Found"})
            return self.handler(request)

    return Transport()


@pytest.fixture
async def client(database, fs, git, github_transport) -> AsyncGenerator[httpx.AsyncClient, None]:
    app.dependency_overrides[get_project_fs] = lambda: fs
    app.dependency_overrides[get_git_service] = lambda: git
    app.dependency_overrides[get_github_sync] = lambda: GitHubSyncService(
        api_base="https://api.github.test",
        transport=httpx.MockTransport(github_transport),
    )
    transport = ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
