"""
fin_compete/ui.py
Shared Streamlit UI components.
"""
from __future__ import annotations

from html import escape
from typing import MutableMapping, Sequence

import pandas as pd
import streamlit as st

from fin_compete import export
from fin_compete.formatting import clean_percentage, format_currency
from fin_compete.models import AnalysisResult, MetricRecord, SourceCitation

# (column label, attribute, display formatter or None)
TABLE_COLUMNS = [
    ("Company", "name", None),
    ("Ticker", "ticker", None),
    ("Price", "price", format_currency),
    ("Market Cap", "market_cap", None),
    ("ROE", "roe", clean_percentage),
    ("ROIC", "roic", clean_percentage),
    ("EV/EBIT", "ev_ebit", None),
    ("P/E", "per", None),
    ("FCF/Share", "fcf_per_share", format_currency),
    ("Beta", "beta", None),
    ("Ke (Equity)", "ke", clean_percentage),
    ("Kd (Debt)", "kd", clean_percentage),
    ("WACC", "wacc", clean_percentage),
]

SOURCE_TITLE_MAX = 30


def build_display_dataframe(records: Sequence[MetricRecord]) -> pd.DataFrame:
    """Table view of the comparison set; the first row is tagged as the target."""
    rows = []
    for i, r in enumerate(records):
        row = {}
        for label, attr, fmt in TABLE_COLUMNS:
            raw = getattr(r, attr)
            row[label] = fmt(raw) if fmt else (raw or "-")
        if i == 0:
            row["Company"] = f"{row['Company']} 🎯 Target"
        rows.append(row)
    return pd.DataFrame(rows, columns=[c[0] for c in TABLE_COLUMNS])


PDF_CACHE_KEY = "pdf_export"


def cached_pdf(result: AnalysisResult, title: str, cache: MutableMapping) -> bytes:
    """
    PDF bytes for ``result``, rebuilt only when the comparison set changes.

    Companies are only ever appended, so (timestamp, row count) identifies a set.
    PDFUnavailableError propagates and nothing is cached.
    """
    key = (result.timestamp, len(result.companies), title)
    hit = cache.get(PDF_CACHE_KEY)
    if hit is not None and hit[0] == key:
        return hit[1]
    pdf = export.to_pdf(result.companies, title=title)
    cache[PDF_CACHE_KEY] = (key, pdf)
    return pdf


def short_title(title: str, limit: int = SOURCE_TITLE_MAX) -> str:
    return title[:limit] + "..." if len(title) > limit else title


def render_sources(sources: Sequence[SourceCitation]) -> None:
    """Source chips linking to each grounding citation."""
    st.markdown('<div class="section-header">🔗 Data Sources</div>', unsafe_allow_html=True)
    if not sources:
        st.markdown(
            '<div class="sources"><em>Aggregated from market data providers via web search.</em></div>',
            unsafe_allow_html=True,
        )
        return
    chips = "".join(
        f'<a class="source-chip" href="{escape(s.uri, quote=True)}" target="_blank" '
        f'rel="noopener noreferrer">{escape(short_title(s.title))} ↗</a>'
        for s in sources
    )
    st.markdown(f'<div class="sources">{chips}</div>', unsafe_allow_html=True)


def inject_global_style() -> None:
    """Injects the page CSS."""
    st.markdown("""
    <style>
    @import url('https://fonts.googleapis.com/css2?family=Inter:wght@300;400;500;600;700&display=swap');

    html, body, [class*="css"] {
        font-family: 'Inter', sans-serif !important;
    }

    .main-header { padding: 1.5rem 0 1rem; margin-bottom: 1.5rem; border-bottom: 1px solid #e2e8f0; }
    .main-header h1 { color: #0f172a; font-size: 2rem; font-weight: 700; margin: 0 0 0.3rem 0; letter-spacing: -0.5px; }
    .main-header p  { color: #475569; font-size: 1rem; margin: 0; }
    .accent { color: #4f46e5; }

    .section-header { color: #1e293b; font-size: 1.05rem; font-weight: 600;
        border-bottom: 1px solid #e2e8f0; padding-bottom: 0.4rem; margin: 1.5rem 0 1rem 0; }

    .sources { display: flex; flex-wrap: wrap; gap: 0.4rem; font-size: 0.8rem; color: #64748b; }
    .source-chip { display: inline-block; padding: 0.2rem 0.7rem; border-radius: 999px;
        background: #f1f5f9; color: #334155 !important; text-decoration: none; }
    .source-chip:hover { background: #eef2ff; color: #4338ca !important; }

    .usage-badge { background: #eef2ff; border: 1px solid #c7d2fe; border-radius: 8px;
        padding: 0.6rem 0.8rem; font-size: 0.78rem; color: #3730a3; margin-top: 0.5rem; }

    .info-box { background: #f8fafc; border-left: 4px solid #4f46e5; border-radius: 0 8px 8px 0;
        padding: 0.8rem 1rem; color: #475569; font-size: 0.9rem; }

    .disclaimer { background: #eef2ff; border: 1px solid #e0e7ff; border-radius: 8px;
        padding: 0.8rem 1rem; color: #3730a3; font-size: 0.75rem; margin-top: 1.5rem; }
    </style>
    """, unsafe_allow_html=True)
