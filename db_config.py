"""
Environment-driven settings for the dashboard and the API.

    FACTORDASH_DB_URL     any SQLAlchemy URL; wins over everything else
    FACTORDASH_DB_PATH    SQLite file, absolute or relative to this directory
    FACTORDASH_LOG_LEVEL  DEBUG / INFO / WARNING / ERROR / CRITICAL
    FACTORDASH_PAGE_SIZE  default /stocks page size
"""
import os
from pathlib import Path
from typing import Optional

DB_FILENAME = "factordash.db"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_PAGE_SIZE = 50

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _env(name: str) -> Optional[str]:
    """Stripped value of an environment variable; None when unset or blank."""
    value = (os.environ.get(name) or "").strip()
    return value or None


def _project_dir() -> Path:
    return Path(__file__).resolve().parent


def _data_dir() -> Path:
    # App Service only persists $HOME across restarts; the code directory is replaced on deploy.
    if _env("WEBSITE_SITE_NAME") or _env("WEBSITE_INSTANCE_ID"):
        return Path(_env("HOME") or "/home")
    return _project_dir()


def get_sqlite_path() -> Path:
    override = _env("FACTORDASH_DB_PATH")
    if override is None:
        return _data_dir() / DB_FILENAME
    path = Path(override)
    return path if path.is_absolute() else _project_dir() / path


def get_db_url() -> str:
    return _env("FACTORDASH_DB_URL") or f"sqlite:///{get_sqlite_path().resolve().as_posix()}"


def is_sqlite_url(url: str) -> bool:
    return url.lower().startswith("sqlite:")


def get_log_level() -> str:
    level = (_env("FACTORDASH_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper()
    return level if level in _LOG_LEVELS else DEFAULT_LOG_LEVEL


def get_default_page_size() -> int:
    try:
        size = int(_env("FACTORDASH_PAGE_SIZE") or DEFAULT_PAGE_SIZE)
    except ValueError:
        return DEFAULT_PAGE_SIZE
    return size if size > 0 else DEFAULT_PAGE_SIZE
