import os
import sys
import tempfile
from pathlib import Path
from types import SimpleNamespace

# Ensure repository root is on sys.path so 'import backend' works
ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Point the app at a throwaway database before anything imports backend.app.db
_TEST_DB = Path(tempfile.gettempdir()) / f"moderation-tests-{os.getpid()}.db"
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DB}"
os.environ["OPENAI_API_KEY"] = ""

# Force pytest-anyio to use asyncio backend (avoid requiring 'trio')
import pytest


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture()
def db():
    """Fresh tables for every test."""
    from backend.app.db.base import SessionLocal, drop_db, init_db

    init_db()
    try:
        yield SessionLocal
    finally:
        SessionLocal.remove()
        drop_db()


class FakeCompletions:
    """Stands in for ``AsyncOpenAI().chat.completions``."""

    def __init__(self, content=None, exc=None, delay=None):
        self.content = content
        self.exc = exc
        self.delay = delay
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.delay:
            import asyncio

            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeLLM:
    def __init__(self, content='{"allowed": true}', exc=None, delay=None):
        self.completions = FakeCompletions(content=content, exc=exc, delay=delay)
        self.chat = SimpleNamespace(completions=self.completions)

    @property
    def calls(self):
        return self.completions.calls


@pytest.fixture
def fake_llm():
    """Factory for fake classifier clients: ``fake_llm('{"allowed": false, ...}')``."""
    return FakeLLM


class BrokenSession:
    """A session whose database has gone away."""

    def _fail(self, *args, **kwargs):
        from sqlalchemy.exc import OperationalError

        raise OperationalError("SELECT 1", {}, Exception("database is unavailable"))

    query = _fail
    add = _fail

    def commit(self):
        pass

    def rollback(self):
        pass

    def close(self):
        pass


@pytest.fixture
def broken_session():
    """Session factory for a store that is down."""
    return BrokenSession
