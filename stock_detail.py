import pandas as pd
import streamlit as st

from core_backend import company_to_dict
from core_shared import dashboard_session
from db_orm import Companies
from errors import NotFoundError
from query_service import get_stock_detail
from score_utils import factor_radar_figure, format_market_cap, score_color, score_label


def _company_options(session):
    rows = session.query(Companies).order_by(Companies.ticker).all()
    return [company_to_dict(c) for c in rows]


def render_stock_detail_tab() -> None:
    st.title("Stock Detail")

    with dashboard_session() as session:
        companies = _company_options(session)
        if not companies:
            st.info("No companies in the database yet. Upload a spreadsheet in the Data Upload tab.")
            return

        labels = [f"{c['name']} ({c['ticker']})" for c in companies]
        idx = st.selectbox("Company", range(len(companies)), format_func=lambda i: labels[i], key="detail_company")
        ticker = companies[idx]["ticker"]

        try:
            detail = get_stock_detail(session, ticker, year=st.session_state.get("selected_year"))
        except NotFoundError as e:
            st.error(str(e))
            return

    company = detail["company"]
    final = float(detail["finalScore"])

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Final Score", f"{final:.1f}", help=f"Year {detail['currentYear']}")
    c2.markdown(
        f"<div style='padding-top:1.6rem;color:{score_color(final)};font-weight:700'>{score_label(final)}</div>",
        unsafe_allow_html=True,
    )
    c3.metric("Market Cap", format_market_cap(company["market_cap"]))
    c4.metric("Sector", company["sector"])
    st.caption(f"{company['industry']} · {company['market_cap_bucket']} · scores for {detail['currentYear']}")

    factor_df = pd.DataFrame(
        {"Factor": [f["factor"]["name"] for f in detail["factors"]], "Score": [f["score"] for f in detail["factors"]]}
    ).set_index("Factor")
    st.markdown("**Factor scores**")
    left, right = st.columns(2)
    with left:
        profile = {company["ticker"]: factor_df["Score"].to_dict()}
        st.plotly_chart(factor_radar_figure(profile, list(factor_df.index)), use_container_width=True, key="detail_radar")
    with right:
        st.bar_chart(factor_df, use_container_width=True)

    st.markdown("**Parameter breakdown**")
    for f in detail["factors"]:
        weight_pct = float(f["factor"]["weight"]) * 100
        with st.expander(f"{f['factor']['name']} — {f['score']:.1f} (weight {weight_pct:.0f}%)"):
            if f["factor"]["description"]:
                st.caption(f["factor"]["description"])
            if not f["parameters"]:
                st.write("No parameters defined for this factor.")
                continue
            st.dataframe(
                pd.DataFrame(
                    [
                        {
                            "Parameter": p["parameter"]["name"],
                            "Normalization": p["parameter"]["normalization_method"],
                            "Raw Value": p["rawValue"],
                            "Normalized": p["normalizedValue"],
                        }
                        for p in f["parameters"]
                    ]
                ),
                use_container_width=True,
                hide_index=True,
            )

    st.markdown("**Score history**")
    hist_df = pd.DataFrame(
        [{"Year": str(h["year"]), "Final Score": h["finalScore"], **h["factorScores"]} for h in detail["historicalScores"]]
    ).set_index("Year")
    st.line_chart(hist_df, use_container_width=True)
