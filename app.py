# app.py
import hashlib
import logging

import streamlit as st

import pricing_logic as pl
from pricing_config import METHODS, PREVIEW_LIMIT, get_settings
from pricing_session import PricingSession, SessionState

# ──────────────────────────────────────────────────────────────────────────────
# Streamlit config MUST be first
# ──────────────────────────────────────────────────────────────────────────────
st.set_page_config(page_title="Bulk Price Update Calculator", layout="wide")

settings = get_settings()
logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

if "pricing" not in st.session_state:
    st.session_state["pricing"] = PricingSession()
if "upload_digest" not in st.session_state:
    st.session_state["upload_digest"] = None
if "upload_error" not in st.session_state:
    st.session_state["upload_error"] = None
if "upload_nonce" not in st.session_state:
    st.session_state["upload_nonce"] = 0

session: PricingSession = st.session_state["pricing"]

st.title("Bulk Price Update Calculator")
st.caption("Upload your Shopify/retail CSV, set a target margin, download ready-to-import prices.")

# ──────────────────────────────────────────────────────────────────────────────
# Upload (only while no catalog is loaded)
# ──────────────────────────────────────────────────────────────────────────────
if session.state is SessionState.EMPTY:
    st.markdown("**Required columns (must match exactly):** Variant SKU, Variant Price, Cost per item, Title")
    upload = st.file_uploader("Shopify CSV export", type=["csv"], key=f"catalog_{st.session_state['upload_nonce']}")
    if upload is not None:
        data = upload.getvalue()
        digest = hashlib.md5(data).hexdigest()
        # reruns keep the same upload around; only parse new content
        if st.session_state["upload_digest"] != digest:
            st.session_state["upload_digest"] = digest
            try:
                session.load_csv(data, upload.name)
                st.session_state["upload_error"] = None
            except pl.PricingInputError as e:
                st.session_state["upload_error"] = e.message
            st.rerun()

if st.session_state["upload_error"]:
    st.error(f"Error reading CSV: {st.session_state['upload_error']}")

if session.state is SessionState.EMPTY:
    st.stop()

# ──────────────────────────────────────────────────────────────────────────────
# Parameters
# ──────────────────────────────────────────────────────────────────────────────
with st.form("params"):
    c1, c2, c3 = st.columns(3)
    method = c1.radio(
        "Calculation method", METHODS, index=METHODS.index(session.method), horizontal=True,
        format_func=lambda m: "Margin %" if m == "margin" else "Markup %",
    )
    target = c2.number_input(
        "Target (%)", value=float(session.target_percent), step=1.0, format="%.2f",
        help="Gross margin: (price - cost) / price. Markup: (price - cost) / cost.",
    )
    submitted = c3.form_submit_button("Calculate New Prices", type="primary", use_container_width=True)

if submitted:
    try:
        session.calculate(method, target)
    except pl.InvalidTargetError as e:
        st.error(e.message)

# ──────────────────────────────────────────────────────────────────────────────
# Results
# ──────────────────────────────────────────────────────────────────────────────
if session.state is SessionState.CALCULATED:
    stats = session.summary()
    a1, a2, a3, a4, a5 = st.columns(5)
    a1.metric("Total SKUs", f"{stats.total:,}")
    a2.metric("Avg Margin", f"{stats.avg_margin_display}%")
    a3.metric("Price Increases", f"{stats.price_increases:,}")
    a4.metric("Price Decreases", f"{stats.price_decreases:,}")
    a5.metric("No Cost Set", f"{stats.zero_cost_count:,}")

    report_name, import_name = session.filenames()
    d1, d2 = st.columns(2)
    d1.download_button("Download Full Report", pl.to_csv_bytes(session.full_report()),
                       file_name=report_name, mime="text/csv", use_container_width=True)
    d2.download_button("Download Shopify Format", pl.to_csv_bytes(session.import_format()),
                       file_name=import_name, mime="text/csv", use_container_width=True)

st.caption(f"Preview: first {min(len(session.rows), PREVIEW_LIMIT)} of {len(session.rows)} products")
st.dataframe(
    session.preview(),
    use_container_width=True,
    hide_index=True,
    column_config={
        "Cost": st.column_config.NumberColumn("Cost", format="$%.2f"),
        "Current Price": st.column_config.NumberColumn("Current Price", format="$%.2f"),
        "New Price": st.column_config.NumberColumn("New Price", format="$%.2f"),
        "Margin %": st.column_config.NumberColumn("Margin %", format="%.1f%%"),
        "Change": st.column_config.NumberColumn("$ Change", format="$%.2f"),
    },
)

if st.button("Upload New File"):
    session.reset()
    st.session_state["upload_digest"] = None
    st.session_state["upload_error"] = None
    # fresh uploader widget, otherwise the old file reloads straight away
    st.session_state["upload_nonce"] += 1
    st.rerun()
