"""
Typed schemas for the factor score dashboard.

Pydantic models at the two input boundaries (spreadsheet rows and the
compare request body) plus the upload summary returned to callers.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

FACTOR_COLUMNS = ["Quality", "Value", "Growth", "Momentum", "Profitability"]


class ScoreRow(BaseModel):
    """One company-year row of an uploaded score sheet, defaults applied."""
    ticker: str
    name: str
    sector: str = "Unknown"
    industry: str = "Unknown"
    market_cap: float = 0.0
    market_cap_bucket: str = "Unknown"
    year: int
    final_score: float = 0.0
    factor_scores: Dict[str, float] = Field(default_factory=dict)

    @field_validator("ticker")
    @classmethod
    def ticker_upper(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("ticker must be non-empty")
        return v


class CompareRequest(BaseModel):
    tickers: List[str] = Field(default_factory=list)
    year: Optional[int] = None


class IngestionResult(BaseModel):
    message: str
    inserted: int = 0
    errors: int = 0
    skipped: int = 0
