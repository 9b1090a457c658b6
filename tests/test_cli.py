import re
from unittest.mock import Mock

import pytest
from sqlalchemy.engine import Engine
from typer.testing import CliRunner

from todo_cli.cli import AppState, app
from todo_cli.db import SQLRepository
from todo_cli.errors import ConnectivityError
from todo_cli.repositories import InMemoryRepository, Repository
from todo_cli.service import DefaultTodoService

runner = CliRunner()

ID_PATTERN = re.compile(r"ID:\s+([0-9a-f-]{36})")


def make_state(repo=None, engine=None):
    repo = repo or InMemoryRepository()
    return AppState(service=DefaultTodoService(repo), repository=repo, engine=engine)


def invoke(state, *args):
    return runner.invoke(app, list(args), obj=state)


def create(state, title, *extra):
    res = invoke(state, "create", title, *extra)
    assert res.exit_code == 0, res.output
    match = ID_PATTERN.search(res.output)
    assert match, res.output
    return match.group(1)


@pytest.fixture
def state():
    return make_state()


class TestScenario:
    def test_create_find_toggle_delete(self, state):
        res = invoke(state, "create", "Buy milk")
        assert res.exit_code == 0
        assert "TODO created successfully!" in res.output
        assert "Title:       Buy milk" in res.output
        assert "❌ Pending" in res.output
        # Empty description is not shown in the detail view
        assert "Description:" not in res.output
        tid = ID_PATTERN.search(res.output).group(1)

        res = invoke(state, "find", tid)
        assert res.exit_code == 0
        assert "Todo Details:" in res.output
        assert "Buy milk" in res.output

        res = invoke(state, "toggle", tid)
        assert res.exit_code == 0
        assert "Todo marked as completed!" in res.output
        assert "✅ Completed" in res.output

        res = invoke(state, "toggle", tid)
        assert "Todo marked as pending!" in res.output

        res = invoke(state, "delete", tid)
        assert res.exit_code == 0
        assert "Todo deleted successfully!" in res.output

        res = invoke(state, "find", tid)
        assert res.exit_code == 0
        assert f"Error getting TODO: todo {tid} not found" in res.output


class TestList:
    def test_empty_list(self, state):
        res = invoke(state, "list")
        assert res.exit_code == 0
        assert "No TODOs found" in res.output

    def test_completed_and_pending_partition(self, state):
        done_id = create(state, "Done task")
        create(state, "Open task")
        create(state, "Another open")
        invoke(state, "toggle", done_id)

        everything = invoke(state, "list").output
        for title in ("Done task", "Open task", "Another open"):
            assert title in everything
        # Filter first, render once
        assert everything.count("TITLE") == 1

        completed = invoke(state, "list", "--completed").output
        assert "Done task" in completed
        assert "Open task" not in completed
        assert "Another open" not in completed

        pending = invoke(state, "list", "--pending").output
        assert "Done task" not in pending
        assert "Open task" in pending
        assert "Another open" in pending

    def test_both_filters_keep_nothing(self, state):
        done_id = create(state, "Done task")
        create(state, "Open task")
        invoke(state, "toggle", done_id)

        res = invoke(state, "list", "--completed", "--pending")
        assert "No TODOs found" in res.output

    def test_table_shows_short_id_and_truncated_title(self, state):
        tid = create(state, "A very long title that will not fit")

        res = invoke(state, "list")
        assert tid[:8] in res.output
        assert "A very long title..." in res.output
        assert "A very long title that" not in res.output


class TestCreateAndUpdate:
    def test_create_with_description(self, state):
        res = invoke(state, "create", "Pay bills", "--description", "Electricity")
        assert res.exit_code == 0
        assert "Description: Electricity" in res.output

    def test_create_blank_title_is_reported(self, state):
        res = invoke(state, "create", "   ")
        assert res.exit_code == 0
        assert "Error creating TODO" in res.output
        assert "No TODOs found" in invoke(state, "list").output

    def test_update_overwrites_both_fields(self, state):
        tid = create(state, "Initial", "-d", "Keep?")

        res = invoke(state, "update", tid, "--title", "Renamed")
        assert res.exit_code == 0
        assert "TODO updated successfully!" in res.output
        assert "Title:       Renamed" in res.output
        # Omitted description is stored as empty
        assert "Description:" not in res.output

        res = invoke(state, "update", tid, "-t", "Renamed", "-d", "Restored")
        assert "Description: Restored" in res.output

    def test_update_trims_title(self, state):
        tid = create(state, "Initial")

        res = invoke(state, "update", tid, "-t", "  padded  ")
        assert res.exit_code == 0
        assert "Title:       padded\n" in res.output
        assert "Title:       padded" in invoke(state, "find", tid).output

    def test_update_missing_is_reported(self, state):
        res = invoke(state, "update", "0b6f7c7e-2f55-4d1c-9a53-8f0a2b8c1d11", "-t", "x")
        assert res.exit_code == 0
        assert "Error updating TODO" in res.output


class TestErrors:
    @pytest.mark.parametrize("command", ["find", "delete", "toggle", "update"])
    def test_malformed_id(self, state, command):
        res = invoke(state, command, "not-a-uuid")
        assert res.exit_code == 0
        assert "Error parsing id: invalid UUID 'not-a-uuid'" in res.output

    def test_delete_missing(self, state):
        res = invoke(state, "delete", "0b6f7c7e-2f55-4d1c-9a53-8f0a2b8c1d11")
        assert res.exit_code == 0
        assert "Error deleting TODO" in res.output

    def test_failed_health_check_exits_non_zero(self):
        repo = Mock(spec=Repository)
        repo.ping.side_effect = ConnectivityError("server closed the connection")

        res = invoke(make_state(repo), "list")
        assert res.exit_code == 1
        assert "Database connection lost: server closed the connection" in res.output
        repo.find_all.assert_not_called()

    def test_connection_lost_mid_command_exits_non_zero(self):
        repo = Mock(spec=Repository)
        repo.find_all.side_effect = ConnectivityError("terminating connection")

        res = invoke(make_state(repo), "list")
        assert res.exit_code == 1
        assert "Database connection lost" in res.output


class TestInitDb:
    def test_requires_sql_backend(self, state):
        res = invoke(state, "init-db")
        assert "Schema initialization requires a SQL backend" in res.output

    def test_creates_schema(self, sqlite_engine):
        state = make_state(SQLRepository(sqlite_engine), engine=sqlite_engine)
        res = invoke(state, "init-db")
        assert res.exit_code == 0
        assert "Schema initialized successfully!" in res.output


class TestSettingsDrivenInvocation:
    def test_sqlite_backend_persists_between_invocations(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PERSISTENCE_BACKEND", "sqlite")
        monkeypatch.setenv("SQLITE_DB_PATH", str(tmp_path / "todos.db"))

        res = runner.invoke(app, ["create", "Water plants"])
        assert res.exit_code == 0, res.output
        tid = ID_PATTERN.search(res.output).group(1)

        res = runner.invoke(app, ["list"])
        assert "Water plants" in res.output

        res = runner.invoke(app, ["toggle", tid])
        assert "Todo marked as completed!" in res.output
        res = runner.invoke(app, ["list", "--completed"])
        assert "Water plants" in res.output

    def test_unreachable_postgres_exits_non_zero(self, monkeypatch):
        monkeypatch.setenv("POSTGRES_HOST", "127.0.0.1")
        monkeypatch.setenv("POSTGRES_PORT", "1")

        res = runner.invoke(app, ["list"])
        assert res.exit_code == 1
        assert "Unable to connect to database" in res.output

    def test_sqlite_file_that_is_not_a_database_exits_non_zero(self, monkeypatch, tmp_path):
        garbage = tmp_path / "garbage.db"
        garbage.write_text("garbage" * 200)
        monkeypatch.setenv("PERSISTENCE_BACKEND", "sqlite")
        monkeypatch.setenv("SQLITE_DB_PATH", str(garbage))

        res = runner.invoke(app, ["list"])
        assert res.exit_code == 1
        assert res.exception is None or isinstance(res.exception, SystemExit)
        assert "Unable to connect to database" in res.output


@pytest.fixture
def dispose_calls(monkeypatch):
    calls = []
    original = Engine.dispose

    def spy(self, *args, **kwargs):
        calls.append(self.url.database)
        return original(self, *args, **kwargs)

    monkeypatch.setattr(Engine, "dispose", spy)
    return calls


class TestPoolRelease:
    def test_pool_released_after_not_found(self, monkeypatch, tmp_path, dispose_calls):
        db_path = tmp_path / "todos.db"
        monkeypatch.setenv("PERSISTENCE_BACKEND", "sqlite")
        monkeypatch.setenv("SQLITE_DB_PATH", str(db_path))

        res = runner.invoke(app, ["find", "0b6f7c7e-2f55-4d1c-9a53-8f0a2b8c1d11"])
        assert res.exit_code == 0
        assert "Error getting TODO" in res.output
        assert dispose_calls == [str(db_path)]

    def test_pool_released_after_fatal_startup_error(self, monkeypatch, tmp_path, dispose_calls):
        garbage = tmp_path / "garbage.db"
        garbage.write_text("garbage" * 200)
        monkeypatch.setenv("PERSISTENCE_BACKEND", "sqlite")
        monkeypatch.setenv("SQLITE_DB_PATH", str(garbage))

        res = runner.invoke(app, ["list"])
        assert res.exit_code == 1
        assert "Unable to connect to database" in res.output
        assert dispose_calls == [str(garbage)]
