"""Shared fixtures for the factor score dashboard tests."""

import io
import sys
from pathlib import Path

import pandas as pd
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure project root is importable
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from core_backend import get_factor_id_map, init_db, upsert_company, upsert_factor_score, upsert_final_score, upsert_year
from db_orm import Years


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    """A session on a fresh in-memory database with factors and parameters seeded."""
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)
    s = SessionLocal()
    init_db(s)
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def add_scores(session):
    """Write a company plus its final/factor scores for one year straight into the store."""
    factor_ids = get_factor_id_map(session)

    def _add(ticker, year, final=None, factors=None, name=None, sector="Technology",
             industry="Software", market_cap=1e11, bucket="Large Cap"):
        upsert_year(session, year)
        session.flush()
        year_id = session.query(Years.id).filter(Years.year == year).scalar()
        company_id = upsert_company(
            session,
            ticker=ticker,
            name=name or f"{ticker} Ltd",
            sector=sector,
            industry=industry,
            market_cap=market_cap,
            market_cap_bucket=bucket,
        )
        if final is not None:
            upsert_final_score(session, company_id, year_id, final)
        for factor_name, score in (factors or {}).items():
            upsert_factor_score(session, company_id, factor_ids[factor_name.lower()], year_id, score)
        session.commit()
        return company_id

    return _add


@pytest.fixture
def xlsx_bytes():
    """Serialise a list of row dicts into a one-sheet workbook."""

    def _make(rows, columns=None):
        buf = io.BytesIO()
        pd.DataFrame(rows, columns=columns).to_excel(buf, index=False, sheet_name="FactorScores")
        return buf.getvalue()

    return _make


@pytest.fixture
def tcs_row():
    return {
        "Ticker": "TCS", "Year": 2025, "Quality": 82, "Value": 64, "Growth": 71,
        "Momentum": 78, "Profitability": 85, "FinalScore": 76,
    }
