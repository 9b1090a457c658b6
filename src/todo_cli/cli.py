"""
Command surface for the todo manager.

Each command is one request/response cycle: resources are built from settings
on first use, a health check runs, the service is called once and the result
is rendered. The engine's pool is disposed when the root Click context closes,
whatever the exit path.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, List, NoReturn, Optional

import typer
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from sqlalchemy.engine import Engine

from .db import create_db_engine, init_schema
from .errors import ConnectivityError, TodoError
from .models import TodoEntity
from .repositories import Repository, get_repository
from .schemas import TodoCreate, TodoUpdate
from .service import DefaultTodoService, TodoService
from .settings import Settings, get_settings
from .utils import filter_todos, parse_todo_id, status_label, truncate

logger = logging.getLogger(__name__)

SETTINGS_KEY = "todo_cli.settings"

console = Console(markup=False, emoji=False, highlight=False)
err_console = Console(stderr=True)

app = typer.Typer(
    name="todo",
    help="A command-line interface for managing your todos with persistence.",
    no_args_is_help=True,
    add_completion=False,
)


@dataclass
class AppState:
    """Resources shared by the commands of one invocation."""

    service: TodoService
    repository: Repository
    engine: Optional[Engine] = None


def _configure_logging(level: str) -> None:
    if not isinstance(logging.getLevelName(level), int):
        level = "WARNING"
    logging.basicConfig(
        level=logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )
    logging.getLogger(__package__).setLevel(level)


def _fatal(message: str, exc: Exception) -> NoReturn:
    console.print(f"❌ {message}: {exc}")
    raise typer.Exit(code=1)


def _describe(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        return "; ".join(err["msg"] for err in exc.errors())
    return str(exc)


@contextmanager
def _handled(action: str) -> Iterator[None]:
    """Print expected errors and end the command; connectivity loss is fatal."""
    try:
        yield
    except ConnectivityError as e:
        _fatal("Database connection lost", e)
    except (TodoError, ValidationError) as e:
        logger.debug("Error %s", action, exc_info=True)
        console.print(f"Error {action}: {_describe(e)}")
        raise typer.Exit(code=0)


def _build_state(ctx: typer.Context, settings: Settings) -> AppState:
    root = ctx.find_root()
    engine = None
    try:
        if settings.persistence_backend != "memory":
            engine = create_db_engine(settings)
            root.call_on_close(engine.dispose)
        repository = get_repository(settings, engine)
        repository.ping()
    except (TodoError, OSError) as e:
        _fatal("Unable to connect to database", e)
    if engine is not None:
        logger.info("Connected to %s database", engine.dialect.name)
    return AppState(service=DefaultTodoService(repository), repository=repository, engine=engine)


def _connect(ctx: typer.Context) -> AppState:
    root = ctx.find_root()
    state = root.obj
    if not isinstance(state, AppState):
        settings = ctx.meta.get(SETTINGS_KEY) or get_settings()
        root.obj = _build_state(ctx, settings)
        return root.obj

    try:
        state.repository.ping()
    except ConnectivityError as e:
        _fatal("Database connection lost", e)
    return state


def print_todo_table(todos: List[TodoEntity]) -> None:
    table = Table(box=box.SIMPLE)
    table.add_column("ID", no_wrap=True)
    table.add_column("TITLE", no_wrap=True)
    table.add_column("STATUS", no_wrap=True)
    table.add_column("CREATION DATE", no_wrap=True)

    for todo in todos:
        table.add_row(
            str(todo["id"])[:8],
            truncate(todo["title"], 20),
            status_label(todo["completed"]),
            todo["created_at"].astimezone().strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


def print_todo(todo: TodoEntity) -> None:
    console.print()
    console.print("Todo Details:")
    console.print(f"  ID:          {todo['id']}")
    console.print(f"  Title:       {todo['title']}")
    if todo["description"]:
        console.print(f"  Description: {todo['description']}")
    console.print(f"  Status:      {status_label(todo['completed'])}")
    console.print(f"  Created:     {todo['created_at'].astimezone().strftime('%Y-%m-%d %H:%M:%S')}")
    console.print(f"  Updated:     {todo['updated_at'].astimezone().strftime('%Y-%m-%d %H:%M:%S')}")
    console.print()


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """A simple CLI todo application."""
    settings = get_settings()
    ctx.meta[SETTINGS_KEY] = settings
    _configure_logging("DEBUG" if verbose else settings.log_level)


@app.command("list")
def list_todos(
    ctx: typer.Context,
    completed: bool = typer.Option(False, "--completed", help="Show only completed todos."),
    pending: bool = typer.Option(False, "--pending", help="Show only pending todos."),
) -> None:
    """List all todos."""
    state = _connect(ctx)
    with _handled("getting TODOs"):
        todos = state.service.find_all_todos()

    todos = filter_todos(todos, completed=completed, pending=pending)
    if not todos:
        console.print("No TODOs found")
        return
    print_todo_table(todos)


@app.command("find")
def find_todo(
    ctx: typer.Context,
    todo_id: str = typer.Argument(..., metavar="ID", help="UUID of the todo."),
) -> None:
    """Find a specific todo by ID."""
    state = _connect(ctx)
    with _handled("parsing id"):
        tid = parse_todo_id(todo_id)
    with _handled("getting TODO"):
        todo = state.service.find_todo_by_id(tid)
    print_todo(todo)


@app.command("create")
def create_todo(
    ctx: typer.Context,
    title: str = typer.Argument(..., help="Title of the new todo."),
    description: str = typer.Option("", "--description", "-d", help="Description for the todo."),
) -> None:
    """Create a new TODO item."""
    state = _connect(ctx)
    with _handled("creating TODO"):
        todo = state.service.create_todo(TodoCreate(title=title, description=description))
    console.print("TODO created successfully!")
    print_todo(todo)


@app.command("update")
def update_todo(
    ctx: typer.Context,
    todo_id: str = typer.Argument(..., metavar="ID", help="UUID of the todo."),
    title: str = typer.Option("", "--title", "-t", help="New title for the todo."),
    description: str = typer.Option("", "--description", "-d", help="New description for the todo."),
) -> None:
    """
    Update a TODO item.

    Title and description are both overwritten; an omitted option is stored
    as an empty string.
    """
    state = _connect(ctx)
    with _handled("parsing id"):
        tid = parse_todo_id(todo_id)
    with _handled("updating TODO"):
        todo = state.service.update_todo(TodoUpdate(id=tid, title=title, description=description))
    console.print("TODO updated successfully!")
    print_todo(todo)


@app.command("delete")
def delete_todo(
    ctx: typer.Context,
    todo_id: str = typer.Argument(..., metavar="ID", help="UUID of the todo."),
) -> None:
    """Delete a TODO item by ID."""
    state = _connect(ctx)
    with _handled("parsing id"):
        tid = parse_todo_id(todo_id)
    with _handled("deleting TODO"):
        state.service.delete_todo(tid)
    console.print("Todo deleted successfully!")


@app.command("toggle")
def toggle_todo(
    ctx: typer.Context,
    todo_id: str = typer.Argument(..., metavar="ID", help="UUID of the todo."),
) -> None:
    """Toggle todo completion status."""
    state = _connect(ctx)
    with _handled("parsing id"):
        tid = parse_todo_id(todo_id)
    with _handled("toggling TODO"):
        todo = state.service.toggle_todo(tid)
    status = "completed" if todo["completed"] else "pending"
    console.print(f"Todo marked as {status}!")
    print_todo(todo)


@app.command("init-db")
def init_db(ctx: typer.Context) -> None:
    """Create the todos table and its indexes if they are missing."""
    state = _connect(ctx)
    if state.engine is None:
        console.print("Schema initialization requires a SQL backend")
        return
    with _handled("initializing schema"):
        init_schema(state.engine)
    console.print("Schema initialized successfully!")


# PUBLIC_INTERFACE
def main() -> None:
    """Console script entry point."""
    app()
