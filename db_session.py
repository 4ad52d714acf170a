"""
Engine and session plumbing shared by the services, the API and the dashboard.

Services never open their own sessions: callers pass one in, usually from
``session_scope()`` (dashboard, lifespan) or the API's ``get_db`` dependency.
"""
import logging
import re
from contextlib import contextmanager
from functools import lru_cache
from itertools import count
from typing import Any, Dict, Iterator, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from db_config import get_db_url, is_sqlite_url

logger = logging.getLogger(__name__)

Params = Optional[Union[Sequence[Any], Mapping[str, Any]]]

_QMARK = re.compile(r"\?")


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    url = get_db_url()
    # Streamlit reruns and uvicorn workers hand the same SQLite file across threads.
    connect_args = {"check_same_thread": False} if is_sqlite_url(url) else {}
    engine = create_engine(url, future=True, pool_pre_ping=True, connect_args=connect_args)
    logger.info("Database engine created (%s)", engine.url.render_as_string(hide_password=True))
    return engine


SessionLocal = sessionmaker(bind=get_engine(), autoflush=False, autocommit=False, expire_on_commit=False, future=True)


@contextmanager
def session_scope() -> Iterator[Session]:
    """Commit on clean exit, roll back and re-raise otherwise."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        logger.debug("Rolling back session after error", exc_info=True)
        session.rollback()
        raise
    finally:
        session.close()


def _to_named_params(sql: str, params: Params) -> Tuple[str, Mapping[str, Any]]:
    """Rewrite positional ``?`` placeholders as ``:p0, :p1, ...`` for ``text()``."""
    if not params:
        return sql, {}
    if isinstance(params, Mapping):
        return sql, params

    values = list(params)
    idx = count()
    named: Dict[str, Any] = {}

    def _bind(_m: "re.Match[str]") -> str:
        i = next(idx)
        named[f"p{i}"] = values[i]
        return f":p{i}"

    placeholders = len(_QMARK.findall(sql))
    if placeholders != len(values):
        raise ValueError(f"SQL has {placeholders} placeholders but {len(values)} values were given")
    return _QMARK.sub(_bind, sql), named


def execute(session: Session, sql: str, params: Params = None):
    named_sql, named_params = _to_named_params(sql, params)
    return session.execute(text(named_sql), named_params)


def read_sql_df(session: Session, sql: str, params: Params = None) -> pd.DataFrame:
    named_sql, named_params = _to_named_params(sql, params)
    # Read through the session's connection so uncommitted rows are visible.
    return pd.read_sql_query(text(named_sql), session.connection(), params=named_params)
