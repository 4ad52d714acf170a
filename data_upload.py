import io
import logging

import pandas as pd
import streamlit as st

from core_shared import dashboard_session
from errors import ClientInputError
from ingestion import TEMPLATE_COLUMNS, ingest_scores_bytes, upload_template_df

logger = logging.getLogger(__name__)


def _template_bytes() -> bytes:
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        upload_template_df().to_excel(writer, index=False, sheet_name="FactorScores")
    return buf.getvalue()


def render_data_upload_tab():
    st.title("Upload Factor Scores")

    with st.expander("Expected format", expanded=False):
        st.write("First sheet, one row per company and year. Lower-case/underscored headers are accepted too.")
        st.code(", ".join(TEMPLATE_COLUMNS))
        st.download_button(
            "Download template (.xlsx)",
            data=_template_bytes(),
            file_name="factor_scores_template.xlsx",
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )

    file = st.file_uploader("Upload Excel (.xlsx) or CSV", type=["xlsx", "csv"], accept_multiple_files=False)

    if st.button("Ingest into DB", type="primary", disabled=file is None):
        try:
            with dashboard_session() as session:
                result = ingest_scores_bytes(session, file.getvalue(), file.name)
        except ClientInputError as e:
            st.error(str(e))
            return
        except Exception:
            logger.exception("Upload error (%s)", file.name)
            st.error("Failed to process file")
            return

        if result.errors:
            st.warning(result.message)
        else:
            st.success(result.message)
        c1, c2, c3 = st.columns(3)
        c1.metric("Inserted", result.inserted)
        c2.metric("Errors", result.errors)
        c3.metric("Skipped (no ticker/year)", result.skipped)
