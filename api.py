"""
FastAPI binding for the factor score services.

Run (needs the `server` extra): uvicorn api:app --host 0.0.0.0 --port 8000
"""
import logging
from contextlib import asynccontextmanager
from typing import Iterator, Optional

from fastapi import Depends, FastAPI, File, Query, Request, UploadFile
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from compare_service import compare_companies
from core_backend import init_db
from db_config import get_default_page_size
from db_session import session_scope
from errors import ClientInputError, DashboardError
from ingestion import ingest_scores_bytes
from log_config import configure_logging
from query_service import (
    FINAL_SCORE_KEY,
    get_stock_detail,
    list_factors,
    list_filter_options,
    list_stocks,
    list_years,
    market_summary,
)
from schemas import CompareRequest

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    configure_logging()
    with session_scope() as session:
        init_db(session)
    logger.info("Database ready")
    yield


app = FastAPI(title="Factor Score Dashboard API", lifespan=lifespan)


def get_db() -> Iterator[Session]:
    with session_scope() as session:
        yield session


@app.exception_handler(DashboardError)
async def _dashboard_error_handler(_request: Request, exc: DashboardError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.get("/stocks")
def stocks(
    year: Optional[int] = None,
    search: str = "",
    sector: str = "",
    market_cap_bucket: str = "",
    sort_by: str = FINAL_SCORE_KEY,
    sort_order: str = "desc",
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1),
    session: Session = Depends(get_db),
):
    return list_stocks(
        session,
        year=year,
        search=search,
        sector=sector,
        market_cap_bucket=market_cap_bucket,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        page_size=page_size or get_default_page_size(),
    )


@app.get("/stocks/{ticker}")
def stock_detail(ticker: str, year: Optional[int] = None, session: Session = Depends(get_db)):
    return get_stock_detail(session, ticker, year=year)


@app.post("/compare")
def compare(body: CompareRequest, session: Session = Depends(get_db)):
    return compare_companies(session, body.tickers, year=body.year)


@app.get("/factors")
def factors(session: Session = Depends(get_db)):
    return {"factors": list_factors(session)}


@app.get("/years")
def years(session: Session = Depends(get_db)):
    return {"years": list_years(session)}


@app.get("/summary")
def summary(year: Optional[int] = None, session: Session = Depends(get_db)):
    return market_summary(session, year=year)


@app.get("/filters")
def filters(session: Session = Depends(get_db)):
    return list_filter_options(session)


@app.post("/upload")
async def upload(file: Optional[UploadFile] = File(None), session: Session = Depends(get_db)):
    if file is None:
        raise ClientInputError("No file provided")

    data = await file.read()
    try:
        result = ingest_scores_bytes(session, data, file.filename)
    except ClientInputError:
        raise
    except Exception:
        logger.exception("Upload error (%s)", file.filename)
        session.rollback()
        return JSONResponse(status_code=500, content={"error": "Failed to process file"})

    return {"message": result.message, "inserted": result.inserted, "errors": result.errors}
