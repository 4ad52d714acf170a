import io
import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(__file__)))

import pandas as pd
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core_backend import init_db
from ingestion import ingest_scores_bytes
from query_service import get_stock_detail, list_stocks


def main():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)
    session = SessionLocal()
    try:
        init_db(session)

        sheet = pd.DataFrame([
            {"Ticker": "TCS", "Year": 2025, "Quality": 82, "Value": 64, "Growth": 71,
             "Momentum": 78, "Profitability": 85, "FinalScore": 76},
        ])
        buf = io.BytesIO()
        sheet.to_excel(buf, index=False)

        result = ingest_scores_bytes(session, buf.getvalue(), "smoke.xlsx")
        print("upload", result.model_dump())

        detail = get_stock_detail(session, "TCS", year=2025)
        quality = next(f["score"] for f in detail["factors"] if f["factor"]["name"] == "Quality")
        print("detail_final_score", detail["finalScore"], "quality", quality)

        listing = list_stocks(session)
        print("listing_total", listing["total"])
    finally:
        session.close()


if __name__ == "__main__":
    main()
