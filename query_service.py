import logging
from typing import Dict, List, Optional

import numpy as np
from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session, aliased

from core_backend import (
    company_to_dict,
    factor_to_dict,
    get_company_by_ticker,
    get_year_row,
    latest_year_row,
    list_factor_rows,
    list_parameter_rows,
    list_year_rows,
    parameter_to_dict,
)
from db_orm import Companies, Factors, FactorScores, FinalScores, ParameterScores, Years
from db_session import read_sql_df
from errors import NotFoundError

logger = logging.getLogger(__name__)

FINAL_SCORE_KEY = "final_score"


def resolve_year(session: Session, year: Optional[int]) -> Years:
    """Explicit year must exist; no year means the latest on file."""
    if year is not None:
        row = get_year_row(session, year)
    else:
        row = latest_year_row(session)
    if row is None:
        raise NotFoundError("Year not found")
    return row


def _escape_like(term: str) -> str:
    """Make a search term match literally inside a LIKE pattern."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _scored_in_year(year_id: int):
    """Company has a final or factor score row for the year."""
    has_final = (
        select(FinalScores.id)
        .where(FinalScores.company_id == Companies.id, FinalScores.year_id == year_id)
        .correlate(Companies)
        .exists()
    )
    has_factor = (
        select(FactorScores.id)
        .where(FactorScores.company_id == Companies.id, FactorScores.year_id == year_id)
        .correlate(Companies)
        .exists()
    )
    return or_(has_final, has_factor)


def _factor_score_maps(session: Session, company_ids: List[int], year_id: int, factor_names: List[str]) -> Dict[int, Dict[str, float]]:
    """company_id -> {factor name: score}, every factor present (0 when unscored)."""
    out = {cid: {name: 0.0 for name in factor_names} for cid in company_ids}
    if not company_ids:
        return out
    rows = (
        session.query(FactorScores.company_id, Factors.name, FactorScores.score)
        .join(Factors, Factors.id == FactorScores.factor_id)
        .filter(FactorScores.company_id.in_(company_ids), FactorScores.year_id == year_id)
        .all()
    )
    for company_id, factor_name, score in rows:
        out[int(company_id)][factor_name] = float(score if score is not None else 0)
    return out


def list_stocks(
    session: Session,
    year: Optional[int] = None,
    search: str = "",
    sector: str = "",
    market_cap_bucket: str = "",
    sort_by: str = FINAL_SCORE_KEY,
    sort_order: str = "desc",
    page: int = 1,
    page_size: int = 50,
) -> Dict[str, object]:
    """Filtered, sorted, paginated rows of {company, factorScores, finalScore} for one year."""
    year_row = resolve_year(session, year)
    year_id = int(year_row.id)
    page = max(int(page), 1)
    page_size = max(int(page_size), 1)

    filters = [_scored_in_year(year_id)]
    search = (search or "").strip()
    if search:
        pattern = f"%{_escape_like(search.lower())}%"
        filters.append(
            or_(
                func.lower(Companies.ticker).like(pattern, escape="\\"),
                func.lower(Companies.name).like(pattern, escape="\\"),
            )
        )
    if sector:
        filters.append(Companies.sector == sector)
    if market_cap_bucket:
        filters.append(Companies.market_cap_bucket == market_cap_bucket)

    total = int(session.query(func.count(Companies.id)).filter(*filters).scalar() or 0)

    # Past the last page: empty, and the offset never reaches the database.
    offset = (page - 1) * page_size
    if offset >= total:
        return {"stocks": [], "total": total, "year": int(year_row.year)}

    query = session.query(Companies, FinalScores.final_score).outerjoin(
        FinalScores,
        and_(FinalScores.company_id == Companies.id, FinalScores.year_id == year_id),
    )

    if sort_by == FINAL_SCORE_KEY:
        sort_key = func.coalesce(FinalScores.final_score, 0)
    else:
        factor = session.query(Factors).filter(func.lower(Factors.name) == (sort_by or "").lower()).one_or_none()
        if factor is None:
            # Every row scores 0 for an unknown key, so only the ticker order applies.
            sort_key = None
        else:
            sort_fs = aliased(FactorScores)
            query = query.outerjoin(
                sort_fs,
                and_(
                    sort_fs.company_id == Companies.id,
                    sort_fs.factor_id == factor.id,
                    sort_fs.year_id == year_id,
                ),
            )
            sort_key = func.coalesce(sort_fs.score, 0)

    ordering = [Companies.ticker.asc()]
    if sort_key is not None:
        ordering.insert(0, sort_key.asc() if (sort_order or "").lower() == "asc" else sort_key.desc())
    rows = (
        query.filter(*filters)
        .order_by(*ordering)
        .offset(offset)
        .limit(min(page_size, total - offset))
        .all()
    )

    factor_names = [f.name for f in list_factor_rows(session)]
    company_ids = [int(c.id) for c, _ in rows]
    score_maps = _factor_score_maps(session, company_ids, year_id, factor_names)

    stocks = [
        {
            "company": company_to_dict(c),
            "factorScores": score_maps[int(c.id)],
            "finalScore": float(final if final is not None else 0),
        }
        for c, final in rows
    ]
    return {"stocks": stocks, "total": int(total), "year": int(year_row.year)}


def get_stock_detail(session: Session, ticker: str, year: Optional[int] = None) -> Dict[str, object]:
    """Company record, nested factor/parameter scores for one year and the full score history.

    An explicit year that is not on file falls back to the latest year.
    """
    company = get_company_by_ticker(session, ticker)
    if company is None:
        raise NotFoundError("Company not found")

    all_years = list_year_rows(session)
    if not all_years:
        raise NotFoundError("No years found")

    target = all_years[-1]
    if year is not None:
        found = next((y for y in all_years if int(y.year) == int(year)), None)
        if found is not None:
            target = found
        else:
            logger.debug("Year %s not on file for %s, using %s", year, company.ticker, target.year)

    factors = list_factor_rows(session)
    params_by_factor: Dict[int, List] = {}
    for p in list_parameter_rows(session):
        params_by_factor.setdefault(int(p.factor_id), []).append(p)

    factor_scores = {
        int(fid): float(score)
        for fid, score in session.query(FactorScores.factor_id, FactorScores.score)
        .filter(FactorScores.company_id == company.id, FactorScores.year_id == target.id)
        .all()
    }
    param_scores = {
        int(pid): (raw, norm)
        for pid, raw, norm in session.query(
            ParameterScores.parameter_id, ParameterScores.raw_value, ParameterScores.normalized_value
        )
        .filter(ParameterScores.company_id == company.id, ParameterScores.year_id == target.id)
        .all()
    }

    factors_out = []
    for f in factors:
        params_out = []
        for p in params_by_factor.get(int(f.id), []):
            raw, norm = param_scores.get(int(p.id), (None, None))
            params_out.append(
                {
                    "parameter": parameter_to_dict(p),
                    "rawValue": float(raw) if raw is not None else 0.0,
                    "normalizedValue": float(norm) if norm is not None else 0.0,
                }
            )
        factors_out.append(
            {
                "factor": factor_to_dict(f),
                "score": factor_scores.get(int(f.id), 0.0),
                "parameters": params_out,
            }
        )

    # History: one pass over each score table for every year on file.
    finals_by_year = {
        int(yid): float(score)
        for yid, score in session.query(FinalScores.year_id, FinalScores.final_score)
        .filter(FinalScores.company_id == company.id)
        .all()
    }
    history_factors: Dict[int, Dict[str, float]] = {
        int(y.id): {f.name: 0.0 for f in factors} for y in all_years
    }
    for yid, name, score in (
        session.query(FactorScores.year_id, Factors.name, FactorScores.score)
        .join(Factors, Factors.id == FactorScores.factor_id)
        .filter(FactorScores.company_id == company.id)
        .all()
    ):
        history_factors.setdefault(int(yid), {})[name] = float(score)

    historical = [
        {
            "year": int(y.year),
            "finalScore": finals_by_year.get(int(y.id), 0.0),
            "factorScores": history_factors[int(y.id)],
        }
        for y in all_years
    ]

    return {
        "company": company_to_dict(company),
        "factors": factors_out,
        "finalScore": finals_by_year.get(int(target.id), 0.0),
        "historicalScores": historical,
        "availableYears": [int(y.year) for y in all_years],
        "currentYear": int(target.year),
    }


def list_years(session: Session) -> List[int]:
    return [int(y.year) for y in list_year_rows(session)]


def list_factors(session: Session) -> List[Dict[str, object]]:
    """Factors in display order, each with its parameters in display order."""
    params_by_factor: Dict[int, List[Dict[str, object]]] = {}
    for p in list_parameter_rows(session):
        params_by_factor.setdefault(int(p.factor_id), []).append(parameter_to_dict(p))

    out = []
    for f in list_factor_rows(session):
        d = factor_to_dict(f)
        d["parameters"] = params_by_factor.get(int(f.id), [])
        out.append(d)
    return out


def market_summary(session: Session, year: Optional[int] = None, strong_threshold: float = 70.0) -> Dict[str, object]:
    """Headline numbers for the overview page: count, average final score, top sector, strong count."""
    year_row = resolve_year(session, year)
    df = read_sql_df(
        session,
        """
        SELECT c.id, c.sector, COALESCE(fs.final_score, 0) AS final_score
        FROM companies c
        LEFT JOIN final_scores fs ON fs.company_id = c.id AND fs.year_id = ?
        WHERE EXISTS (SELECT 1 FROM final_scores f2 WHERE f2.company_id = c.id AND f2.year_id = ?)
           OR EXISTS (SELECT 1 FROM factor_scores s2 WHERE s2.company_id = c.id AND s2.year_id = ?)
        """,
        (int(year_row.id), int(year_row.id), int(year_row.id)),
    )

    if df.empty:
        return {"year": int(year_row.year), "total": 0, "avgScore": 0.0, "topSector": "", "highScoreCount": 0}

    scores = df["final_score"].astype(float).to_numpy()
    sector_counts = df["sector"].value_counts()
    # value_counts keeps first-seen order among ties; sort the labels for a stable answer.
    top_count = int(sector_counts.max())
    top_sector = sorted(s for s, n in sector_counts.items() if int(n) == top_count)[0]
    return {
        "year": int(year_row.year),
        "total": int(len(df)),
        "avgScore": round(float(np.mean(scores)), 2),
        "topSector": top_sector,
        "highScoreCount": int(np.count_nonzero(scores >= strong_threshold)),
    }


def list_filter_options(session: Session) -> Dict[str, List[str]]:
    sectors = [s for (s,) in session.query(Companies.sector).distinct().order_by(Companies.sector).all() if s]
    buckets = [
        b for (b,) in session.query(Companies.market_cap_bucket).distinct().order_by(Companies.market_cap_bucket).all() if b
    ]
    return {"sectors": sectors, "marketCapBuckets": buckets}
