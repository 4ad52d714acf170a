from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

import db_models
from db_orm import (
    Companies,
    Factors,
    FactorScores,
    FinalScores,
    Parameters,
    Years,
)
from db_session import execute


# ---------------------------
# Schema + seed data
# ---------------------------

# (name, weight, display_order, description, [(parameter, normalization_method, description)])
_FACTOR_SEEDS = [
    (
        "Quality", 0.25, 1, "Balance-sheet strength and earnings stability.",
        [
            ("Return on Equity", "percentile", "Net income over average shareholders' equity."),
            ("Debt to Equity", "inverse percentile", "Total debt over shareholders' equity; lower is better."),
            ("Earnings Stability", "z-score", "Inverse volatility of annual earnings growth."),
        ],
    ),
    (
        "Value", 0.20, 2, "Price paid relative to fundamentals.",
        [
            ("Earnings Yield", "percentile", "Trailing earnings over market capitalisation."),
            ("Price to Book", "inverse percentile", "Market capitalisation over book value."),
            ("EV to EBITDA", "inverse percentile", "Enterprise value over EBITDA."),
        ],
    ),
    (
        "Growth", 0.20, 3, "Multi-year expansion of revenue and earnings.",
        [
            ("Revenue CAGR (3Y)", "percentile", "Three-year compound revenue growth."),
            ("EPS CAGR (3Y)", "percentile", "Three-year compound earnings-per-share growth."),
        ],
    ),
    (
        "Momentum", 0.15, 4, "Relative price strength.",
        [
            ("12-1 Month Return", "z-score", "Trailing twelve-month return excluding the last month."),
            ("6 Month Return", "z-score", "Trailing six-month price return."),
        ],
    ),
    (
        "Profitability", 0.20, 5, "Operating efficiency and margins.",
        [
            ("Operating Margin", "percentile", "Operating income over revenue."),
            ("Return on Capital Employed", "percentile", "EBIT over capital employed."),
        ],
    ),
]


def _seed_factors(session: Session) -> None:
    cnt = session.query(func.count(Factors.id)).scalar() or 0
    if cnt > 0:
        return

    for name, weight, order, description, params in _FACTOR_SEEDS:
        factor = Factors(name=name, weight=weight, display_order=order, description=description)
        session.add(factor)
        session.flush()
        session.add_all(
            [
                Parameters(
                    factor_id=factor.id,
                    name=p_name,
                    normalization_method=method,
                    description=p_desc,
                    display_order=i,
                )
                for i, (p_name, method, p_desc) in enumerate(params, start=1)
            ]
        )


def init_db(session: Session) -> None:
    db_models.metadata.create_all(session.connection())

    # Factors and parameters are reference data; seed them only into an empty table.
    _seed_factors(session)
    session.commit()


# ---------------------------
# Lookups
# ---------------------------

def get_company_by_ticker(session: Session, ticker: str) -> Optional[Companies]:
    """Case-insensitive ticker lookup."""
    t = (ticker or "").strip().upper()
    if not t:
        return None
    return session.query(Companies).filter(func.upper(Companies.ticker) == t).one_or_none()


def list_year_rows(session: Session) -> List[Years]:
    """All years on file, ascending."""
    return session.query(Years).order_by(Years.year.asc()).all()


def get_year_row(session: Session, year: int) -> Optional[Years]:
    return session.query(Years).filter(Years.year == int(year)).one_or_none()


def latest_year_row(session: Session) -> Optional[Years]:
    return session.query(Years).order_by(Years.year.desc()).first()


def list_factor_rows(session: Session) -> List[Factors]:
    return session.query(Factors).order_by(Factors.display_order, Factors.id).all()


def list_parameter_rows(session: Session) -> List[Parameters]:
    return session.query(Parameters).order_by(Parameters.factor_id, Parameters.display_order, Parameters.id).all()


def get_year_id_map(session: Session) -> Dict[int, int]:
    return {int(y.year): int(y.id) for y in session.query(Years).all()}


def get_factor_id_map(session: Session) -> Dict[str, int]:
    """Factor ids keyed by lower-cased factor name."""
    return {str(f.name).lower(): int(f.id) for f in session.query(Factors).all()}


# ---------------------------
# Upserts
# ---------------------------

def upsert_year(session: Session, year: int) -> None:
    execute(
        session,
        "INSERT INTO years(year) VALUES(?) ON CONFLICT(year) DO NOTHING",
        (int(year),),
    )


def upsert_company(
    session: Session,
    ticker: str,
    name: str,
    sector: str,
    industry: str,
    market_cap: float,
    market_cap_bucket: str,
) -> int:
    """Insert the company or overwrite every attribute of the existing row. Returns its id."""
    existing = get_company_by_ticker(session, ticker)
    if existing is None:
        existing = Companies(ticker=ticker.strip().upper())
        session.add(existing)
    existing.name = name
    existing.sector = sector
    existing.industry = industry
    existing.market_cap = float(market_cap)
    existing.market_cap_bucket = market_cap_bucket
    session.flush()
    return int(existing.id)


def upsert_final_score(session: Session, company_id: int, year_id: int, final_score: float) -> None:
    existing = session.query(FinalScores).filter(
        FinalScores.company_id == company_id,
        FinalScores.year_id == year_id,
    ).one_or_none()
    if existing is None:
        session.add(FinalScores(company_id=company_id, year_id=year_id, final_score=float(final_score)))
    else:
        existing.final_score = float(final_score)
    session.flush()


def upsert_factor_score(session: Session, company_id: int, factor_id: int, year_id: int, score: float) -> None:
    existing = session.query(FactorScores).filter(
        FactorScores.company_id == company_id,
        FactorScores.factor_id == factor_id,
        FactorScores.year_id == year_id,
    ).one_or_none()
    if existing is None:
        session.add(FactorScores(company_id=company_id, factor_id=factor_id, year_id=year_id, score=float(score)))
    else:
        existing.score = float(score)
    session.flush()


# ---------------------------
# Row -> dict shaping shared by the services
# ---------------------------

def company_to_dict(c: Companies) -> Dict[str, object]:
    return {
        "id": int(c.id),
        "ticker": c.ticker,
        "name": c.name,
        "sector": c.sector,
        "industry": c.industry,
        "market_cap": float(c.market_cap or 0),
        "market_cap_bucket": c.market_cap_bucket,
    }


def factor_to_dict(f: Factors) -> Dict[str, object]:
    return {
        "id": int(f.id),
        "name": f.name,
        "description": f.description,
        "weight": float(f.weight),
        "display_order": int(f.display_order),
    }


def parameter_to_dict(p: Parameters) -> Dict[str, object]:
    return {
        "id": int(p.id),
        "factor_id": int(p.factor_id),
        "name": p.name,
        "description": p.description,
        "normalization_method": p.normalization_method,
        "display_order": int(p.display_order),
    }
