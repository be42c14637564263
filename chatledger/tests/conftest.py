import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio

# Ensure the project root is on sys.path for absolute imports like 'chatledger.*'
project_root = Path(__file__).resolve().parents[2]
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from chatledger.domain.models import Message, MessageRole  # noqa: E402
from chatledger.modules.persistence import (  # noqa: E402
    ChatRepository,
    ConnectionManager,
    DocumentRepository,
    MessageRepository,
    QuotaCounter,
    StreamLedger,
    VoteRepository,
)

# A path SQLite can never open: its parent directory does not exist
UNREACHABLE_DB_URL = "sqlite+aiosqlite:////nonexistent-chatledger-dir/unreachable.db"

BASE_TIME = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def at(minutes: int) -> datetime:
    """A fixed UTC timestamp ``minutes`` after BASE_TIME."""
    return BASE_TIME + timedelta(minutes=minutes)


class FakeClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def make_message(message_id, chat_id, role=MessageRole.USER, text="hi", created_at=None):
    return Message(
        id=message_id,
        chat_id=chat_id,
        role=role,
        parts=[{"type": "text", "text": text}],
        created_at=created_at,
    )


@pytest.fixture
def db_url(tmp_path):
    """Provide a temporary SQLite file URL."""
    return f"sqlite+aiosqlite:///{tmp_path / 'chatledger_test.db'}"


@pytest_asyncio.fixture
async def connections(db_url):
    manager = ConnectionManager(db_url, auto_create_schema=True)
    yield manager
    await manager.close()


@pytest_asyncio.fixture
async def offline_connections():
    manager = ConnectionManager(UNREACHABLE_DB_URL, connect_timeout=1.0)
    yield manager
    await manager.close()


@pytest_asyncio.fixture
async def schemaless_connections(db_url):
    """Reachable store whose tables were never created: every query fails."""
    manager = ConnectionManager(db_url, auto_create_schema=False)
    yield manager
    await manager.close()


@pytest.fixture
def chats(connections):
    return ChatRepository(connections)


@pytest.fixture
def messages(connections):
    return MessageRepository(connections)


@pytest.fixture
def votes(connections):
    return VoteRepository(connections)


@pytest.fixture
def quota(connections):
    return QuotaCounter(connections)


@pytest.fixture
def ledger(connections):
    return StreamLedger(connections)


@pytest.fixture
def documents(connections):
    return DocumentRepository(connections)


class Seeder:
    """Writes fixtures through a short-lived connection manager on its own loop.

    Used by synchronous route tests, where the app under test owns a
    different event loop.
    """

    def __init__(self, db_url: str):
        self.db_url = db_url

    def run(self, operation):
        async def _run():
            manager = ConnectionManager(self.db_url, auto_create_schema=True)
            try:
                return await operation(manager)
            finally:
                await manager.close()

        return asyncio.run(_run())

    def chat(self, chat_id, owner_id, visibility="private", created_at=None, title="Seeded chat"):
        return self.run(
            lambda m: ChatRepository(m).create_chat(
                chat_id=chat_id,
                owner_id=owner_id,
                title=title,
                visibility=visibility,
                created_at=created_at,
            )
        )

    def messages(self, batch):
        return self.run(lambda m: MessageRepository(m).append_messages(batch))

    def vote(self, chat_id, message_id, vote_type="up"):
        return self.run(
            lambda m: VoteRepository(m).upsert_vote(
                chat_id=chat_id, message_id=message_id, vote_type=vote_type
            )
        )

    def votes(self, chat_id):
        return self.run(lambda m: VoteRepository(m).list_votes_by_chat(chat_id=chat_id))

    def stream_ids(self, chat_id):
        return self.run(lambda m: StreamLedger(m).list_stream_ids(chat_id=chat_id))


@pytest.fixture
def seed(db_url):
    return Seeder(db_url)


def _build_client(settings):
    from starlette.testclient import TestClient

    from chatledger.infrastructure.app_factory import AppFactory
    from chatledger.main import create_app
    from chatledger.modules.config import ConfigManager

    factory = AppFactory(config_manager=ConfigManager(app_settings=settings))
    return TestClient(create_app(factory))


@pytest.fixture
def app_settings(db_url, tmp_path):
    from chatledger.modules.config import AppSettings

    return AppSettings(
        database_url=db_url,
        debug_mode=False,
        app_config_dir=str(tmp_path / "config"),
    )


@pytest.fixture
def client(app_settings):
    """TestClient over a file-backed SQLite store; lifespan runs for the whole test."""
    with _build_client(app_settings) as test_client:
        yield test_client


@pytest.fixture
def offline_client(app_settings):
    settings = app_settings.model_copy(update={"database_url": UNREACHABLE_DB_URL})
    with _build_client(settings) as test_client:
        yield test_client


def as_user(user_id, user_type=None):
    headers = {"X-User-Id": user_id}
    if user_type:
        headers["X-User-Type"] = user_type
    return headers
