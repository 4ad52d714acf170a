import math
from typing import MutableMapping

import pandas as pd
import streamlit as st

from core_shared import dashboard_session, year_selector
from errors import NotFoundError
from query_service import FINAL_SCORE_KEY, list_factors, list_filter_options, list_stocks, list_years, market_summary
from score_utils import format_market_cap, score_label

_PAGE_SIZE = 25


def _stocks_to_df(stocks, factor_names) -> pd.DataFrame:
    records = []
    for row in stocks:
        c = row["company"]
        rec = {
            "Ticker": c["ticker"],
            "Name": c["name"],
            "Sector": c["sector"],
            "Market Cap": format_market_cap(c["market_cap"]),
            "Bucket": c["market_cap_bucket"],
        }
        for name in factor_names:
            rec[name] = round(float(row["factorScores"].get(name, 0)), 1)
        rec["Final Score"] = round(float(row["finalScore"]), 1)
        rec["Rating"] = score_label(row["finalScore"])
        records.append(rec)
    return pd.DataFrame(records)


def _current_page(state: MutableMapping, view: tuple) -> int:
    """Page to show; any change to the year, search, filters or sort starts again at page 1."""
    if state.get("overview_view") != view:
        state["overview_view"] = view
        state["overview_page"] = 1
    return int(state.get("overview_page", 1))


def render_market_overview_tab() -> None:
    st.title("Market Overview")

    with dashboard_session() as session:
        available_years = list_years(session)
        if not available_years:
            st.info("No scores in the database yet. Upload a spreadsheet in the Data Upload tab.")
            return

        year = year_selector(available_years, key="overview_year")

        try:
            summary = market_summary(session, year=year)
        except NotFoundError as e:
            st.error(str(e))
            return

        c1, c2, c3, c4 = st.columns(4)
        c1.metric("Total Stocks", summary["total"])
        c2.metric("Avg Score", f"{summary['avgScore']:.1f}", help="out of 100")
        c3.metric("Strong (≥70)", summary["highScoreCount"])
        c4.metric("Top Sector", summary["topSector"] or "—")

        options = list_filter_options(session)
        factor_names = [f["name"] for f in list_factors(session)]

        with st.expander("Filters & sorting", expanded=True):
            f1, f2, f3 = st.columns([2, 1, 1])
            with f1:
                search = st.text_input("Search ticker or name", key="overview_search")
            with f2:
                sector = st.selectbox("Sector", [""] + options["sectors"], format_func=lambda s: s or "All sectors", key="overview_sector")
            with f3:
                bucket = st.selectbox(
                    "Market cap",
                    [""] + options["marketCapBuckets"],
                    format_func=lambda s: s or "All buckets",
                    key="overview_bucket",
                )

            s1, s2 = st.columns(2)
            with s1:
                sort_by = st.selectbox(
                    "Sort by",
                    [FINAL_SCORE_KEY] + factor_names,
                    format_func=lambda k: "Final Score" if k == FINAL_SCORE_KEY else k,
                    key="overview_sort_by",
                )
            with s2:
                sort_order = st.radio("Order", ["desc", "asc"], horizontal=True, key="overview_sort_order")

        page = _current_page(st.session_state, (year, search, sector, bucket, sort_by, sort_order))
        result = list_stocks(
            session,
            year=year,
            search=search,
            sector=sector,
            market_cap_bucket=bucket,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            page_size=_PAGE_SIZE,
        )

    total = int(result["total"])
    pages = max(1, math.ceil(total / _PAGE_SIZE))
    if page > pages:
        st.session_state["overview_page"] = 1
        st.rerun()

    if not result["stocks"]:
        st.info("No companies match the current filters.")
        return

    st.dataframe(_stocks_to_df(result["stocks"], factor_names), use_container_width=True, hide_index=True)

    p1, p2, p3 = st.columns([1, 2, 1])
    with p1:
        if st.button("‹ Previous", disabled=page <= 1, key="overview_prev"):
            st.session_state["overview_page"] = page - 1
            st.rerun()
    with p2:
        st.caption(f"Page {page} of {pages} · {total} companies")
    with p3:
        if st.button("Next ›", disabled=page >= pages, key="overview_next"):
            st.session_state["overview_page"] = page + 1
            st.rerun()
