import streamlit as st

from data_upload import render_data_upload_tab
from factor_comparison import render_factor_comparison_tab
from log_config import configure_logging
from market_overview import render_market_overview_tab
from stock_detail import render_stock_detail_tab

# Streamlit requires set_page_config to be the first Streamlit command in the app.
st.set_page_config(
    page_title="Factor Score Dashboard",
    layout="wide",
    initial_sidebar_state="collapsed",
)

configure_logging()


def _inject_shell_css() -> None:
    """Light styling for the KPI cards and tables; layout is left to Streamlit."""
    st.markdown(
        """
        <style>
          .block-container { padding-top: 1.2rem; padding-bottom: 2.5rem; max-width: 1400px; }
          [data-testid="stMetric"] {
            background: #f8fafc; border: 1px solid #e2e8f0; border-radius: 8px; padding: 0.6rem 0.8rem;
          }
          [data-testid="stMetricValue"] { font-size: 1.6rem; }
          [data-baseweb="tab"] { font-weight: 600; }
        </style>
        """,
        unsafe_allow_html=True,
    )


def _render_header() -> None:
    _inject_shell_css()
    st.markdown("## Factor Score Dashboard")
    st.caption("Quality, Value, Growth, Momentum and Profitability scores for listed equities · NSE & BSE")


def _render_body() -> None:
    tab_overview, tab_detail, tab_compare, tab_upload = st.tabs(
        [
            "Market Overview",
            "Stock Detail",
            "Compare",
            "Data Upload",
        ]
    )

    with tab_overview:
        render_market_overview_tab()

    with tab_detail:
        render_stock_detail_tab()

    with tab_compare:
        render_factor_comparison_tab()

    with tab_upload:
        render_data_upload_tab()


_render_header()
_render_body()
