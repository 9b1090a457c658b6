from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

BACKENDS = {"postgres", "sqlite", "memory"}


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - POSTGRES_HOST: database host. Default 'localhost'
    - POSTGRES_PORT: database port. Default 5432
    - POSTGRES_USER: database user. Default 'todo_user'
    - POSTGRES_PASSWORD: database password. Default 'todo_password'
    - POSTGRES_DB: database name. Default 'todo_db'
    - POSTGRES_SSL_MODE: libpq sslmode. Default 'disable'
    - PERSISTENCE_BACKEND: 'postgres' (default), 'sqlite' or 'memory'
    - SQLITE_DB_PATH: path to sqlite db file. Default './data/todos.db'
    - LOG_LEVEL: root log level for the CLI process. Default 'WARNING'
    """

    postgres_host: str
    postgres_port: int
    postgres_user: str
    postgres_password: str
    postgres_db: str
    postgres_ssl_mode: str
    persistence_backend: str
    sqlite_db_path: str
    log_level: str


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_int(value: str, default: int) -> int:
    try:
        return int(value.strip())
    except ValueError:
        return default


# PUBLIC_INTERFACE
def get_settings(env_file: Optional[str] = ".env") -> Settings:
    """
    Return application settings loaded from environment variables.

    If env_file exists it is loaded first; variables already present in the
    environment take precedence over the file.
    """
    if env_file and os.path.isfile(env_file):
        load_dotenv(env_file, override=False)

    backend = _get_env("PERSISTENCE_BACKEND", "postgres").strip().lower()
    if backend not in BACKENDS:
        backend = "postgres"

    return Settings(
        postgres_host=_get_env("POSTGRES_HOST", "localhost"),
        postgres_port=_parse_int(_get_env("POSTGRES_PORT", "5432"), 5432),
        postgres_user=_get_env("POSTGRES_USER", "todo_user"),
        postgres_password=_get_env("POSTGRES_PASSWORD", "todo_password"),
        postgres_db=_get_env("POSTGRES_DB", "todo_db"),
        postgres_ssl_mode=_get_env("POSTGRES_SSL_MODE", "disable"),
        persistence_backend=backend,
        sqlite_db_path=_get_env("SQLITE_DB_PATH", "./data/todos.db").strip(),
        log_level=_get_env("LOG_LEVEL", "WARNING").strip().upper(),
    )
