import io
import logging
import math
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import pandas as pd
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core_backend import (
    get_factor_id_map,
    get_year_id_map,
    upsert_company,
    upsert_factor_score,
    upsert_final_score,
    upsert_year,
)
from errors import ClientInputError
from schemas import FACTOR_COLUMNS, IngestionResult, ScoreRow

logger = logging.getLogger(__name__)

# Expected headers, each accepted in its capitalised or lower-cased/underscored spelling.
TEMPLATE_COLUMNS = [
    "Ticker", "Name", "Sector", "Industry", "MarketCap", "MarketCapBucket", "Year",
    *FACTOR_COLUMNS,
    "FinalScore",
]

_ALIASES: Dict[str, tuple] = {
    "ticker": ("Ticker", "ticker"),
    "name": ("Name", "name"),
    "sector": ("Sector", "sector"),
    "industry": ("Industry", "industry"),
    "market_cap": ("MarketCap", "market_cap"),
    "market_cap_bucket": ("MarketCapBucket", "market_cap_bucket"),
    "year": ("Year", "year"),
    "final_score": ("FinalScore", "final_score"),
}
for _col in FACTOR_COLUMNS:
    _ALIASES[_col.lower()] = (_col, _col.lower())


def upload_template_df() -> pd.DataFrame:
    return pd.DataFrame(columns=TEMPLATE_COLUMNS)


def read_upload(file_bytes: bytes, filename: Optional[str] = None) -> pd.DataFrame:
    """First sheet of the workbook (or the CSV) as a row-per-company frame."""
    suffix = Path(filename or "").suffix.lower()
    if suffix == ".csv":
        try:
            return pd.read_csv(io.BytesIO(file_bytes))
        except pd.errors.EmptyDataError:
            # Zero bytes or blank lines only; reported downstream as an empty sheet.
            return pd.DataFrame()
    return pd.read_excel(io.BytesIO(file_bytes), sheet_name=0)


def _is_blank(v: Any) -> bool:
    if v is None:
        return True
    if isinstance(v, float) and math.isnan(v):
        return True
    return isinstance(v, str) and not v.strip()


def _pick(row: Mapping[str, Any], field: str) -> Any:
    for name in _ALIASES[field]:
        v = row.get(name)
        if not _is_blank(v):
            return v
    return None


def _to_float(v: Any) -> float:
    if _is_blank(v):
        return 0.0
    try:
        f = float(str(v).replace(",", "").strip()) if isinstance(v, str) else float(v)
    except (TypeError, ValueError):
        return 0.0
    return f if math.isfinite(f) else 0.0


def _to_year(v: Any) -> Optional[int]:
    if _is_blank(v):
        return None
    try:
        f = float(str(v).strip()) if isinstance(v, str) else float(v)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(f) or f <= 0 or not f.is_integer():
        return None
    return int(f)


def _to_text(v: Any) -> str:
    # Excel hands back whole-number tickers such as 500325 as floats.
    if isinstance(v, float) and v.is_integer():
        v = int(v)
    return str(v).strip()


def normalize_row(row: Mapping[str, Any]) -> Optional[ScoreRow]:
    """Resolve columns and apply defaults. Rows without a ticker or a usable year return None."""
    ticker_raw = _pick(row, "ticker")
    if ticker_raw is None:
        return None
    ticker = _to_text(ticker_raw).upper()
    year = _to_year(_pick(row, "year"))
    if not ticker or year is None:
        return None

    name = _pick(row, "name")
    sector = _pick(row, "sector")
    industry = _pick(row, "industry")
    bucket = _pick(row, "market_cap_bucket")
    try:
        return ScoreRow(
            ticker=ticker,
            name=_to_text(name) if name is not None else ticker,
            sector=_to_text(sector) if sector is not None else "Unknown",
            industry=_to_text(industry) if industry is not None else "Unknown",
            market_cap=_to_float(_pick(row, "market_cap")),
            market_cap_bucket=_to_text(bucket) if bucket is not None else "Unknown",
            year=year,
            final_score=_to_float(_pick(row, "final_score")),
            factor_scores={col: _to_float(_pick(row, col.lower())) for col in FACTOR_COLUMNS},
        )
    except ValidationError:
        return None


def ingest_scores_df(session: Session, df: pd.DataFrame) -> IngestionResult:
    """Upsert years, companies, final scores and factor scores from an upload frame.

    Rows are committed one at a time; a failure part-way leaves earlier rows in place.
    """
    if df is None or df.empty:
        raise ClientInputError("Empty sheet")

    df = df.rename(columns=lambda c: str(c).strip())
    records = df.to_dict(orient="records")
    rows = [normalize_row(r) for r in records]
    valid = [r for r in rows if r is not None]
    skipped = len(rows) - len(valid)

    # Every year key must exist before any score row references it.
    for year in sorted({r.year for r in valid}):
        upsert_year(session, year)
    session.commit()

    year_map = get_year_id_map(session)
    factor_map = get_factor_id_map(session)

    inserted = 0
    errors = 0
    for r in valid:
        try:
            company_id = upsert_company(
                session,
                ticker=r.ticker,
                name=r.name,
                sector=r.sector,
                industry=r.industry,
                market_cap=r.market_cap,
                market_cap_bucket=r.market_cap_bucket,
            )
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            logger.warning("Company upsert failed for %s", r.ticker, exc_info=True)
            errors += 1
            continue

        year_id = year_map.get(r.year)
        if year_id is None:
            logger.warning("Year %s missing after year upsert; skipping scores for %s", r.year, r.ticker)
            errors += 1
            continue

        try:
            upsert_final_score(session, company_id, year_id, r.final_score)
            for col in FACTOR_COLUMNS:
                factor_id = factor_map.get(col.lower())
                if factor_id is not None:
                    upsert_factor_score(session, company_id, factor_id, year_id, r.factor_scores.get(col, 0.0))
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            logger.warning("Score upsert failed for %s (%s)", r.ticker, r.year, exc_info=True)
            errors += 1
            continue

        inserted += 1

    logger.info("Upload processed: %d inserted, %d errors, %d skipped", inserted, errors, skipped)
    return IngestionResult(
        message=f"Processed {inserted} rows, {errors} errors",
        inserted=inserted,
        errors=errors,
        skipped=skipped,
    )


def ingest_scores_bytes(session: Session, file_bytes: bytes, filename: Optional[str] = None) -> IngestionResult:
    df = read_upload(file_bytes, filename)
    return ingest_scores_df(session, df)
