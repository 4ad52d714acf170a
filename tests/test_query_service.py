"""Tests for stock listing, stock detail, year/factor metadata and the market summary."""

import pytest

from core_backend import upsert_company
from db_orm import Parameters, ParameterScores, Years
from errors import NotFoundError
from query_service import (
    get_stock_detail,
    list_factors,
    list_filter_options,
    list_stocks,
    list_years,
    market_summary,
)

FACTOR_NAMES = ["Quality", "Value", "Growth", "Momentum", "Profitability"]


# =====================================================================
# METADATA
# =====================================================================

class TestMetadata:
    def test_years_ascending(self, session, add_scores):
        add_scores("INFY", 2024, final=60)
        add_scores("INFY", 2022, final=55)
        add_scores("INFY", 2023, final=58)
        assert list_years(session) == [2022, 2023, 2024]

    def test_years_empty(self, session):
        assert list_years(session) == []

    def test_factors_in_display_order_with_parameters(self, session):
        factors = list_factors(session)
        assert [f["name"] for f in factors] == FACTOR_NAMES
        assert abs(sum(f["weight"] for f in factors) - 1.0) < 1e-9
        for f in factors:
            assert f["parameters"], f["name"]
            orders = [p["display_order"] for p in f["parameters"]]
            assert orders == sorted(orders)
            assert all(p["factor_id"] == f["id"] for p in f["parameters"])

    def test_filter_options_distinct_sorted(self, session, add_scores):
        add_scores("A1", 2024, final=50, sector="Energy", bucket="Mid Cap")
        add_scores("A2", 2024, final=50, sector="Energy", bucket="Large Cap")
        add_scores("A3", 2024, final=50, sector="Banking", bucket="Large Cap")
        opts = list_filter_options(session)
        assert opts["sectors"] == ["Banking", "Energy"]
        assert opts["marketCapBuckets"] == ["Large Cap", "Mid Cap"]


# =====================================================================
# LIST STOCKS
# =====================================================================

class TestListStocksYear:
    def test_defaults_to_latest_year(self, session, add_scores):
        add_scores("INFY", 2023, final=40)
        add_scores("INFY", 2024, final=90)
        out = list_stocks(session)
        assert out["year"] == 2024
        assert out["stocks"][0]["finalScore"] == 90

    def test_unknown_year_is_not_found(self, session, add_scores):
        add_scores("INFY", 2024, final=90)
        with pytest.raises(NotFoundError):
            list_stocks(session, year=1999)

    def test_no_years_is_not_found(self, session):
        with pytest.raises(NotFoundError):
            list_stocks(session)

    def test_only_companies_scored_in_year(self, session, add_scores):
        add_scores("OLD", 2023, final=70)
        add_scores("NEW", 2024, final=80)
        add_scores("BOTH", 2023, final=10)
        add_scores("BOTH", 2024, final=20)

        out = list_stocks(session, year=2023)
        assert out["total"] == 2
        by_ticker = {r["company"]["ticker"]: r["finalScore"] for r in out["stocks"]}
        assert by_ticker == {"OLD": 70, "BOTH": 10}

    def test_factor_only_company_is_listed(self, session, add_scores):
        add_scores("FACT", 2024, factors={"Quality": 55})
        out = list_stocks(session, year=2024)
        assert out["total"] == 1
        assert out["stocks"][0]["finalScore"] == 0


class TestListStocksFilters:
    @pytest.fixture(autouse=True)
    def _universe(self, add_scores):
        add_scores("TCS", 2024, final=76, name="Tata Consultancy Services", sector="Technology", bucket="Large Cap")
        add_scores("INFY", 2024, final=71, name="Infosys", sector="Technology", bucket="Large Cap")
        add_scores("HDFCBANK", 2024, final=68, name="HDFC Bank", sector="Financials", bucket="Large Cap")
        add_scores("KPITTECH", 2024, final=64, name="KPIT Technologies", sector="Technology", bucket="Mid Cap")

    def test_search_matches_ticker_case_insensitive(self, session):
        out = list_stocks(session, search="infy")
        assert [r["company"]["ticker"] for r in out["stocks"]] == ["INFY"]

    def test_search_matches_name_substring(self, session):
        out = list_stocks(session, search="TECHNO")
        assert [r["company"]["ticker"] for r in out["stocks"]] == ["KPITTECH"]

    def test_filters_combine_with_and(self, session):
        out = list_stocks(session, sector="Technology", market_cap_bucket="Large Cap")
        assert {r["company"]["ticker"] for r in out["stocks"]} == {"TCS", "INFY"}
        assert out["total"] == 2

    @pytest.mark.parametrize("term", ["_", "%", "T_S", "\\"])
    def test_search_treats_like_wildcards_literally(self, session, term):
        assert list_stocks(session, search=term)["total"] == 0

    def test_search_with_literal_underscore(self, session, add_scores):
        add_scores("M_M", 2024, final=60, name="Mahindra & Mahindra")
        out = list_stocks(session, search="m_m")
        assert [r["company"]["ticker"] for r in out["stocks"]] == ["M_M"]

    def test_sector_is_exact_match(self, session):
        assert list_stocks(session, sector="Tech")["total"] == 0

    def test_no_match_returns_empty(self, session):
        out = list_stocks(session, search="zzz")
        assert out == {"stocks": [], "total": 0, "year": 2024}


class TestListStocksSortAndPage:
    def test_default_sort_is_final_score_desc(self, session, add_scores):
        for t, s in [("A", 50), ("B", 90), ("C", 70)]:
            add_scores(t, 2024, final=s)
        out = list_stocks(session)
        assert [r["finalScore"] for r in out["stocks"]] == [90, 70, 50]

    def test_sort_by_factor_asc_non_decreasing(self, session, add_scores):
        add_scores("A", 2024, final=50, factors={"Value": 30})
        add_scores("B", 2024, final=60, factors={"Value": 80})
        add_scores("C", 2024, final=70, factors={"Quality": 40})
        add_scores("D", 2024, final=80, factors={"Value": 55})

        out = list_stocks(session, sort_by="Value", sort_order="asc")
        values = [r["factorScores"]["Value"] for r in out["stocks"]]
        assert values == sorted(values)
        # C has no Value score, so it sorts as 0.
        assert out["stocks"][0]["company"]["ticker"] == "C"

    def test_missing_factor_scores_render_zero(self, session, add_scores):
        add_scores("A", 2024, final=50, factors={"Growth": 66})
        row = list_stocks(session)["stocks"][0]
        assert set(row["factorScores"]) == set(FACTOR_NAMES)
        assert row["factorScores"]["Growth"] == 66
        assert row["factorScores"]["Quality"] == 0

    def test_unknown_sort_key_keeps_all_rows(self, session, add_scores):
        for t in ["B", "A", "C"]:
            add_scores(t, 2024, final=10)
        out = list_stocks(session, sort_by="Nonexistent")
        assert [r["company"]["ticker"] for r in out["stocks"]] == ["A", "B", "C"]

    def test_page_two_of_sixty(self, session, add_scores):
        for i in range(60):
            add_scores(f"T{i:03d}", 2024, final=float(i))

        out = list_stocks(session, sort_order="asc", page=2, page_size=25)
        assert out["total"] == 60
        assert len(out["stocks"]) == 25
        assert [r["finalScore"] for r in out["stocks"]] == [float(i) for i in range(25, 50)]

    def test_out_of_range_page_is_empty(self, session, add_scores):
        add_scores("A", 2024, final=10)
        out = list_stocks(session, page=5, page_size=25)
        assert out["stocks"] == []
        assert out["total"] == 1

    def test_offset_beyond_integer_range_is_empty(self, session, add_scores):
        add_scores("A", 2024, final=10)
        out = list_stocks(session, page=10**17, page_size=1000)
        assert out == {"stocks": [], "total": 1, "year": 2024}

    def test_last_partial_page(self, session, add_scores):
        for i in range(5):
            add_scores(f"T{i}", 2024, final=float(i))
        out = list_stocks(session, sort_order="asc", page=2, page_size=3)
        assert [r["company"]["ticker"] for r in out["stocks"]] == ["T3", "T4"]


# =====================================================================
# STOCK DETAIL
# =====================================================================

class TestStockDetail:
    def test_unknown_company(self, session, add_scores):
        add_scores("TCS", 2024, final=76)
        with pytest.raises(NotFoundError, match="Company"):
            get_stock_detail(session, "NOPE")

    def test_no_years_on_file(self, session, add_scores):
        upsert_company(session, "LONE", "Lone Co", "Energy", "Oil", 0, "Small Cap")
        session.commit()
        with pytest.raises(NotFoundError, match="years"):
            get_stock_detail(session, "LONE")

    def test_ticker_lookup_case_insensitive(self, session, add_scores):
        add_scores("TCS", 2024, final=76)
        assert get_stock_detail(session, "tcs")["company"]["ticker"] == "TCS"

    def test_nested_factor_and_parameter_scores(self, session, add_scores):
        company_id = add_scores("TCS", 2024, final=76, factors={"Quality": 82})
        year_id = session.query(Years.id).filter(Years.year == 2024).scalar()
        roe = session.query(Parameters).filter(Parameters.name == "Return on Equity").one()
        session.add(ParameterScores(company_id=company_id, parameter_id=roe.id, year_id=year_id,
                                    raw_value=0.31, normalized_value=88.0))
        session.commit()

        detail = get_stock_detail(session, "TCS")
        assert detail["finalScore"] == 76
        assert detail["currentYear"] == 2024
        quality = next(f for f in detail["factors"] if f["factor"]["name"] == "Quality")
        assert quality["score"] == 82
        params = {p["parameter"]["name"]: p for p in quality["parameters"]}
        assert params["Return on Equity"]["rawValue"] == pytest.approx(0.31)
        assert params["Return on Equity"]["normalizedValue"] == 88
        # Unscored parameters and factors default to 0.
        assert params["Debt to Equity"]["rawValue"] == 0
        value = next(f for f in detail["factors"] if f["factor"]["name"] == "Value")
        assert value["score"] == 0
        assert all(p["normalizedValue"] == 0 for p in value["parameters"])

    def test_unknown_year_falls_back_to_latest(self, session, add_scores):
        add_scores("TCS", 2023, final=60)
        add_scores("TCS", 2024, final=76)
        detail = get_stock_detail(session, "TCS", year=1990)
        assert detail["currentYear"] == 2024
        assert detail["finalScore"] == 76

    def test_explicit_year(self, session, add_scores):
        add_scores("TCS", 2023, final=60)
        add_scores("TCS", 2024, final=76)
        detail = get_stock_detail(session, "TCS", year=2023)
        assert detail["currentYear"] == 2023
        assert detail["finalScore"] == 60

    def test_history_covers_every_year(self, session, add_scores):
        add_scores("TCS", 2022, final=50, factors={"Momentum": 40})
        add_scores("INFY", 2023, final=70)
        add_scores("TCS", 2024, final=76, factors={"Momentum": 78})

        detail = get_stock_detail(session, "TCS")
        assert detail["availableYears"] == [2022, 2023, 2024]
        hist = {h["year"]: h for h in detail["historicalScores"]}
        assert [h["year"] for h in detail["historicalScores"]] == [2022, 2023, 2024]
        assert hist[2023]["finalScore"] == 0
        assert hist[2023]["factorScores"] == {name: 0 for name in FACTOR_NAMES}
        assert hist[2022]["factorScores"]["Momentum"] == 40
        assert hist[2024]["factorScores"]["Momentum"] == 78


# =====================================================================
# MARKET SUMMARY
# =====================================================================

class TestMarketSummary:
    def test_summary_numbers(self, session, add_scores):
        add_scores("A", 2024, final=80, sector="Technology")
        add_scores("B", 2024, final=70, sector="Technology")
        add_scores("C", 2024, final=30, sector="Energy")
        add_scores("D", 2023, final=99, sector="Energy")

        s = market_summary(session)
        assert s["year"] == 2024
        assert s["total"] == 3
        assert s["avgScore"] == pytest.approx(60.0)
        assert s["topSector"] == "Technology"
        assert s["highScoreCount"] == 2

    def test_unknown_year(self, session, add_scores):
        add_scores("A", 2024, final=80)
        with pytest.raises(NotFoundError):
            market_summary(session, year=2001)
