"""Shared fixtures: SQLite database per test, temp blob root, in-memory token store."""
import base64
import io
from typing import Optional

import httpx
import pytest
from PIL import Image

from files_manager.config import Settings
from files_manager.container import build_container
from files_manager.database import build_engine, build_session_factory
from files_manager.main import create_app
from files_manager.models import Base, UserRecord

ALICE_TOKEN = "token-alice"
BOB_TOKEN = "token-bob"


class FakeTokenStore:
    def __init__(self) -> None:
        self.values: dict[str, str] = {}

    def issue(self, token: str, user_id: str) -> None:
        self.values[f"auth_{token}"] = user_id

    def expire(self, token: str) -> None:
        self.values.pop(f"auth_{token}", None)

    async def get(self, key: str) -> Optional[str]:
        return self.values.get(key)

    async def is_alive(self) -> bool:
        return True


def make_png(width: int = 800, height: int = 600, color=(200, 30, 30)) -> bytes:
    out = io.BytesIO()
    Image.new("RGB", (width, height), color).save(out, format="PNG")
    return out.getvalue()


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode()


async def read_all(chunks) -> bytes:
    return b"".join([chunk async for chunk in chunks])


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'files.db'}",
        FOLDER_PATH=str(tmp_path / "blobs"),
        JOB_POLL_INTERVAL=0.01,
    )


@pytest.fixture
async def session_factory(settings):
    engine = build_engine(settings.DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def token_store() -> FakeTokenStore:
    store = FakeTokenStore()
    store.issue(ALICE_TOKEN, "alice")
    store.issue(BOB_TOKEN, "bob")
    return store


@pytest.fixture
def container(settings, session_factory, token_store):
    return build_container(settings, session_factory, token_store)


@pytest.fixture
def file_service(container):
    return container.file_service


@pytest.fixture
def thumbnail_worker(container):
    return container.workers[0]


@pytest.fixture
def welcome_worker(container):
    return container.workers[1]


@pytest.fixture
async def registered_user(session_factory) -> UserRecord:
    async with session_factory() as db:
        user = UserRecord(email="alice@example.com", password="x")
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user


@pytest.fixture
async def client(container):
    app = create_app(container)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
