"""
app.py
-------
Streamlit application entry point for the Recurring Transaction Detector.

Run from the project root:
    streamlit run ui/app.py

Architecture:
    - The ledger store is cached per server (st.cache_resource); the per-user
      pipeline lives in st.session_state so confirm / dismiss survive reruns.
    - Sidebar handles user selection, as-of date and the re-scan button.
"""

import sys
import os
from datetime import date

import pandas as pd
import streamlit as st

# Ensure project root is on path regardless of where streamlit is invoked
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from config.config_loader import get_storage_config
from pipeline import RecurringDetectionPipeline
from storage.ledger_store import SqliteLedgerStore
from ui.review_view import render_review_view


# =============================================================================
# PAGE CONFIG
# =============================================================================

st.set_page_config(
    page_title="Recurring Transactions",
    page_icon="🔁",
    layout="wide",
    initial_sidebar_state="expanded",
)


# =============================================================================
# CUSTOM CSS
# =============================================================================

st.markdown("""
<style>
    .stApp {
        font-family: 'Segoe UI', system-ui, sans-serif;
        background-color: #f4f6f9;
    }
    .main-header {
        background: linear-gradient(135deg, #1a2332 0%, #2c3e50 100%);
        color: white;
        padding: 20px 30px;
        border-radius: 12px;
        margin-bottom: 20px;
    }
    .main-header h1 { margin: 0; font-size: 24px; font-weight: 600; }
    .main-header p  { margin: 4px 0 0 0; opacity: 0.7; font-size: 13px; }

    .kpi-card {
        background: white;
        border-radius: 10px;
        padding: 18px 20px;
        box-shadow: 0 2px 8px rgba(0,0,0,0.06);
        border-left: 4px solid #3498db;
    }
    .kpi-card.green { border-left-color: #27ae60; }
    .kpi-card.red   { border-left-color: #e74c3c; }
    .kpi-value { font-size: 28px; font-weight: 700; color: #1a2332; }
    .kpi-label { font-size: 12px; color: #7f8c8d; text-transform: uppercase; margin-top: 4px; }

    .badge {
        display: inline-block;
        padding: 3px 10px;
        border-radius: 12px;
        font-size: 12px;
        font-weight: 600;
    }
    .badge-high   { background: #d4edda; color: #155724; }
    .badge-medium { background: #fff3cd; color: #856404; }

    .product-card {
        background: white;
        border-radius: 10px;
        padding: 16px 18px;
        box-shadow: 0 2px 8px rgba(0,0,0,0.06);
        margin-bottom: 12px;
        border: 1px solid #edf1f4;
    }
    .product-card-header {
        display: flex;
        justify-content: space-between;
        align-items: center;
        margin-bottom: 8px;
    }
    .product-card-header h4 { margin: 0; color: #1a2332; font-size: 15px; }

    .section-title {
        font-size: 14px;
        font-weight: 600;
        color: #1a2332;
        text-transform: uppercase;
        letter-spacing: 0.8px;
        padding-bottom: 8px;
        border-bottom: 2px solid #edf1f4;
        margin-bottom: 12px;
    }
</style>
""", unsafe_allow_html=True)


# =============================================================================
# STATE
# =============================================================================

@st.cache_resource
def get_store(database_path: str) -> SqliteLedgerStore:
    """One store per database file for the lifetime of the server."""
    return SqliteLedgerStore(database_path)


def get_pipeline(user_id: str) -> RecurringDetectionPipeline:
    """Returns the session's pipeline, rebuilding it when the user changes."""
    pipeline = st.session_state.get("pipeline")
    if pipeline is None or pipeline.user_id != user_id:
        db_path = os.path.join(PROJECT_ROOT, get_storage_config()["database_path"])
        pipeline = RecurringDetectionPipeline(get_store(db_path), user_id=user_id)
        st.session_state["pipeline"] = pipeline
        st.session_state.pop("_scanned_as_of", None)
    return pipeline


# =============================================================================
# SIDEBAR
# =============================================================================

def render_sidebar() -> tuple[str, date, bool]:
    """Renders user / as-of controls. Returns (user_id, as_of, rescan_clicked)."""
    st.sidebar.markdown("### 🔁 Recurring Detector")

    user_id = st.sidebar.text_input("User ID", value=st.session_state.get("user_id", ""))
    as_of = st.sidebar.date_input("As of", value=date.today())

    uploaded = st.sidebar.file_uploader("Import transactions CSV", type=["csv"])
    if uploaded is not None and user_id and st.sidebar.button("Load file", use_container_width=True):
        pipeline = get_pipeline(user_id)
        count = pipeline.store.load_transactions(pd.read_csv(uploaded, dtype={"id": str}), user_id=user_id)
        st.sidebar.success(f"Loaded {count:,} transactions.")
        st.session_state.pop("_scanned_as_of", None)

    rescan = st.sidebar.button("Re-scan Transactions", use_container_width=True)
    return user_id.strip(), as_of, rescan


# =============================================================================
# MAIN APP
# =============================================================================

def main():
    user_id, as_of, rescan = render_sidebar()

    if not user_id:
        st.info("👈 Enter a User ID in the sidebar to scan their transactions.")
        return

    st.session_state["user_id"] = user_id
    pipeline = get_pipeline(user_id)

    if rescan or st.session_state.get("_scanned_as_of") != as_of:
        with st.spinner("Detecting recurring patterns..."):
            pipeline.scan(as_of)
        st.session_state["_scanned_as_of"] = as_of

    render_review_view(pipeline)


if __name__ == "__main__":
    main()
