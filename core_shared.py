import threading
from contextlib import contextmanager
from typing import Iterator

import streamlit as st
from sqlalchemy.orm import Session

from core_backend import init_db
from db_session import session_scope

# ---------------------------
# Shared DB helpers (Streamlit cached)
# ---------------------------

_DB_INIT_LOCK = threading.Lock()


@st.cache_resource
def _init_database() -> bool:
    """Create tables and seed factors once per app process."""
    with _DB_INIT_LOCK:
        with session_scope() as session:
            init_db(session)
    return True


@contextmanager
def dashboard_session() -> Iterator[Session]:
    """A short-lived session for one tab render."""
    _init_database()
    with session_scope() as session:
        yield session


def year_selector(available_years, key: str) -> int:
    """Year dropdown defaulting to the latest year; the choice is shared across tabs."""
    years_desc = sorted(available_years, reverse=True)
    current = st.session_state.get("selected_year")
    index = years_desc.index(current) if current in years_desc else 0
    chosen = st.selectbox("Year", years_desc, index=index, key=key)
    st.session_state["selected_year"] = chosen
    return int(chosen)
