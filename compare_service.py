import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from core_backend import company_to_dict, get_company_by_ticker, list_factor_rows
from db_orm import FactorScores, FinalScores
from errors import ClientInputError
from query_service import resolve_year

logger = logging.getLogger(__name__)

MIN_TICKERS = 2
MAX_TICKERS = 5


def _clean_tickers(tickers: Optional[List[str]]) -> List[str]:
    seen = set()
    out = []
    for t in tickers or []:
        t = str(t or "").strip().upper()
        if t and t not in seen:
            seen.add(t)
            out.append(t)
    return out


def compare_companies(session: Session, tickers: Optional[List[str]], year: Optional[int] = None) -> Dict[str, object]:
    """Side-by-side factor and final scores for 2-5 companies in one year.

    Tickers that do not resolve to a company are dropped from the result, so
    callers can get back fewer companies than they asked for.
    """
    symbols = _clean_tickers(tickers)
    if len(symbols) < MIN_TICKERS or len(symbols) > MAX_TICKERS:
        raise ClientInputError(f"Provide {MIN_TICKERS}–{MAX_TICKERS} tickers")

    year_row = resolve_year(session, year)
    factors = list_factor_rows(session)

    results = []
    for symbol in symbols:
        company = get_company_by_ticker(session, symbol)
        if company is None:
            logger.info("Compare: ticker %s not found, skipping", symbol)
            continue

        fs_map = {
            int(fid): float(score)
            for fid, score in session.query(FactorScores.factor_id, FactorScores.score)
            .filter(FactorScores.company_id == company.id, FactorScores.year_id == year_row.id)
            .all()
        }
        final = (
            session.query(FinalScores.final_score)
            .filter(FinalScores.company_id == company.id, FinalScores.year_id == year_row.id)
            .scalar()
        )

        results.append(
            {
                "company": company_to_dict(company),
                "factorScores": [
                    {"factorId": int(f.id), "factorName": f.name, "score": fs_map.get(int(f.id), 0.0)}
                    for f in factors
                ],
                "finalScore": float(final) if final is not None else 0.0,
            }
        )

    return {
        "year": int(year_row.year),
        "companies": results,
        "factors": [
            {"id": int(f.id), "name": f.name, "weight": float(f.weight), "display_order": int(f.display_order)}
            for f in factors
        ],
    }
