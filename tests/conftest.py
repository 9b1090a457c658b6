import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine

from todo_cli.db import SQLRepository, init_schema
from todo_cli.repositories import InMemoryRepository

ENV_VARS = [
    "POSTGRES_HOST",
    "POSTGRES_PORT",
    "POSTGRES_USER",
    "POSTGRES_PASSWORD",
    "POSTGRES_DB",
    "POSTGRES_SSL_MODE",
    "PERSISTENCE_BACKEND",
    "SQLITE_DB_PATH",
    "LOG_LEVEL",
]

BASE_TIME = datetime(2025, 1, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that advances by a fixed step on every read."""

    def __init__(self, start: datetime = BASE_TIME, step: timedelta = timedelta(seconds=1)):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        now = self.current
        self.current = now + self.step
        return now


def make_todo(title="Test Task", description="", completed=False, created_at=None):
    ts = created_at or BASE_TIME
    return {
        "id": uuid.uuid4(),
        "title": title,
        "description": description,
        "completed": completed,
        "created_at": ts,
        "updated_at": ts,
    }


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    # Set then delete so monkeypatch restores the original state afterwards,
    # including values python-dotenv writes during a test.
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sqlite_engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'todos.db'}")
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture(params=["memory", "sqlite"])
def repository(request):
    if request.param == "memory":
        return InMemoryRepository()
    return SQLRepository(request.getfixturevalue("sqlite_engine"))
