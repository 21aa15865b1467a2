# app.py
"""
FinCompete: Streamlit Frontend

Run with:
    streamlit run app.py
"""

from __future__ import annotations

import logging
import sys
from html import escape

import streamlit as st

# ── Page config (must be first Streamlit call) ────────────────────────────────
st.set_page_config(
    page_title="FinCompete",
    page_icon="📊",
    layout="wide",
    initial_sidebar_state="collapsed",
)

# ── Logging ───────────────────────────────────────────────────────────────────
logging.basicConfig(
    stream=sys.stdout,
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from fin_compete.config import check_settings
from fin_compete.errors import PDFUnavailableError
from fin_compete.export import CSV_FILENAME, CSV_MIME, PDF_FILENAME, PDF_MIME, to_csv
from fin_compete.models import LoadingState
from fin_compete.query_engine import QueryEngine, build_competitor_prompt, build_single_company_prompt
from fin_compete.result_store import AddStatus, ResultStore
from fin_compete.ui import build_display_dataframe, cached_pdf, inject_global_style, render_sources

inject_global_style()


@st.cache_resource
def _get_engine() -> QueryEngine:
    # Missing key is only logged; the first query will fail with a generic message
    check_settings()
    return QueryEngine()


engine = _get_engine()

# ── Session state ─────────────────────────────────────────────────────────────
if "store" not in st.session_state:
    st.session_state["store"] = ResultStore()
if "add_notice" not in st.session_state:
    st.session_state["add_notice"] = None

store: ResultStore = st.session_state["store"]


def _request_search() -> None:
    if store.request_search(st.session_state.get("query_input", "")):
        st.session_state["add_notice"] = None


def _request_add() -> None:
    store.request_add(st.session_state.get("add_query_input", ""))


# ── Header ────────────────────────────────────────────────────────────────────
st.markdown("""
<div class="main-header">
    <h1>📊 FinCompete<span class="accent">.ai</span></h1>
    <p>Compare Market Cap, ROE, WACC and more for any public company and its top 5 competitors.
    Data sourced from Yahoo Finance, TIKR and others via web search.</p>
</div>
""", unsafe_allow_html=True)

# ── Search ────────────────────────────────────────────────────────────────────
col_q, col_b = st.columns([6, 1])
with col_q:
    query = st.text_input(
        "Company or ticker",
        label_visibility="collapsed",
        placeholder="Enter company name or ticker (e.g., Apple, TSLA, KO)...",
        key="query_input",
    )
with col_b:
    st.button(
        "🔍 Analyze",
        type="primary",
        disabled=not query.strip() or store.searching,
        on_click=_request_search,
        use_container_width=True,
    )

if store.searching:
    with st.spinner("Scanning financial markets & generating report... This may take up to 20 seconds."):
        store.run_pending_search(engine)
    st.rerun()

if store.state is LoadingState.IDLE:
    st.markdown("""
    <div class="info-box">
        👆 Enter a <b>company name</b> or <b>ticker</b> and click <b>Analyze</b>.<br><br>
        The model searches the web for the company and its five most relevant public competitors
        and returns price, market cap, ROE, ROIC, EV/EBIT, P/E, FCF per share, beta, Ke, Kd and WACC.
    </div>
    """, unsafe_allow_html=True)

elif store.state is LoadingState.ERROR:
    st.error(f"❌ **Analysis Failed:** {store.error_message or 'Please check the ticker symbol or try again later.'}")

# ══════════════════════════════════════════════════════════════════════════════
# Results
# ══════════════════════════════════════════════════════════════════════════════
result = store.result

if store.state is LoadingState.SUCCESS and result is not None:
    target = result.target

    _t1, _t2, _t3 = st.columns([4, 1, 1])
    with _t1:
        st.markdown(f'<div class="section-header">🏢 Competitive Landscape: {escape(target.name)}</div>', unsafe_allow_html=True)
        st.caption("Currency: Reported")
    with _t2:
        st.download_button(
            "📥 Export CSV",
            data=to_csv(result.companies).encode("utf-8"),
            file_name=CSV_FILENAME,
            mime=CSV_MIME,
            use_container_width=True,
        )
    with _t3:
        try:
            pdf_bytes = cached_pdf(result, f"Competitor Analysis: {target.name}", st.session_state)
        except PDFUnavailableError as exc:
            if st.button("📄 Export PDF", use_container_width=True):
                st.warning(exc.user_message)
        else:
            st.download_button(
                "📄 Export PDF",
                data=pdf_bytes,
                file_name=PDF_FILENAME,
                mime=PDF_MIME,
                use_container_width=True,
            )

    st.dataframe(build_display_dataframe(result.companies), use_container_width=True, hide_index=True)

    notice = st.session_state.get("add_notice")
    if notice:
        status, message = notice
        if status == AddStatus.ADDED.value:
            st.success(f"✅ {message}")
        elif status == AddStatus.DUPLICATE.value:
            st.warning(f"⚠️ {message}")
        else:
            st.error(f"❌ {message}")

    _c1, _c2 = st.columns(2)
    with _c1:
        st.markdown('<div class="section-header">➕ Add Another Competitor</div>', unsafe_allow_html=True)
        with st.form("add_company_form", clear_on_submit=True):
            st.text_input(
                "Ticker",
                label_visibility="collapsed",
                placeholder="Enter ticker (e.g. MSFT)...",
                key="add_query_input",
            )
            st.form_submit_button("Add", disabled=store.adding, on_click=_request_add)
        if store.adding:
            with st.spinner(f"Fetching {store.pending_add}…"):
                outcome = store.run_pending_add(engine)
            st.session_state["add_notice"] = (outcome.status.value, outcome.message)
            st.rerun()
    with _c2:
        render_sources(result.sources)

    u = result.llm_usage
    if u.call_count > 0:
        st.markdown(
            f'<div class="usage-badge"><b>Model:</b> {result.model_used}&nbsp;&nbsp;'
            f'<b>API Calls:</b> {u.call_count}&nbsp;&nbsp;'
            f'<b>Total tokens:</b> {u.total_tokens:,}&nbsp;&nbsp;'
            f'<b>Est. cost:</b> ${u.estimated_cost_usd:.5f}</div>',
            unsafe_allow_html=True,
        )

    st.markdown(
        '<div class="disclaimer"><strong>Disclaimer:</strong> Financial figures (especially WACC, Ke, Kd) '
        'are estimates derived from public sources and models. Always verify with official filings '
        'before making investment decisions.</div>',
        unsafe_allow_html=True,
    )

# ══════════════════════════════════════════════════════════════════════════════
# How It Works
# ══════════════════════════════════════════════════════════════════════════════
with st.expander("🤖 How this page works", expanded=False):
    st.markdown("""
**Analyze** sends one prompt to the model with web search enabled. The model picks the five most
relevant public competitors and looks up thirteen metrics for each, preferring Yahoo Finance, TIKR
and Fiscal.ai. The JSON table in its reply is parsed and the web pages it consulted are listed as sources.

**Add Another Competitor** looks up a single company the same way and appends it to the table,
unless its ticker is already present.

Transient server errors are retried up to three times with exponential backoff.
""")
    st.markdown("**1. Competitor analysis prompt**")
    st.code(build_competitor_prompt("<company>"), language="text")
    st.markdown("**2. Single company prompt**")
    st.code(build_single_company_prompt("<company>"), language="text")
