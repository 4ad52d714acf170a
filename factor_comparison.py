import pandas as pd
import streamlit as st

from compare_service import MAX_TICKERS, MIN_TICKERS, compare_companies
from core_shared import dashboard_session
from db_orm import Companies
from errors import DashboardError
from score_utils import factor_radar_figure


def render_factor_comparison_tab() -> None:
    st.title("Compare Companies")

    with dashboard_session() as session:
        tickers = [t for (t,) in session.query(Companies.ticker).order_by(Companies.ticker).all()]
        if len(tickers) < MIN_TICKERS:
            st.info(f"At least {MIN_TICKERS} companies are needed for a comparison.")
            return

        selected = st.multiselect(
            f"Pick {MIN_TICKERS}–{MAX_TICKERS} tickers",
            options=tickers,
            max_selections=MAX_TICKERS,
            key="compare_tickers",
        )
        if len(selected) < MIN_TICKERS:
            st.caption(f"Select at least {MIN_TICKERS} tickers to compare.")
            return

        try:
            result = compare_companies(session, selected, year=st.session_state.get("selected_year"))
        except DashboardError as e:
            st.error(str(e))
            return

    st.caption(f"Scores for {result['year']}")

    table = {}
    for entry in result["companies"]:
        col = {fs["factorName"]: fs["score"] for fs in entry["factorScores"]}
        col["Final Score"] = entry["finalScore"]
        table[entry["company"]["ticker"]] = col
    df = pd.DataFrame(table)

    st.dataframe(df.round(1), use_container_width=True)

    factor_names = [f["name"] for f in result["factors"]]
    profiles = {ticker: {name: col.get(name, 0.0) for name in factor_names} for ticker, col in table.items()}
    left, right = st.columns(2)
    with left:
        st.plotly_chart(factor_radar_figure(profiles, factor_names), use_container_width=True, key="compare_radar")
    with right:
        st.bar_chart(df.drop(index="Final Score", errors="ignore"), use_container_width=True)
