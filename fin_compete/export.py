# fin_compete/export.py
"""
CSV and PDF exports of the comparison table.

Both exports use the same fixed 13-column layout as the on-screen table.
"""

from __future__ import annotations

import csv
import io
import logging
from datetime import date
from typing import Optional, Sequence
from xml.sax.saxutils import escape

import pandas as pd

from fin_compete.errors import PDFUnavailableError
from fin_compete.models import MISSING, MetricRecord

logger = logging.getLogger(__name__)

CSV_FILENAME = "financial_analysis.csv"
CSV_MIME = "text/csv"
PDF_FILENAME = "financial_analysis.pdf"
PDF_MIME = "application/pdf"
DEFAULT_PDF_TITLE = "Financial Competitor Analysis"

# (column header, MetricRecord attribute)
EXPORT_COLUMNS: list[tuple[str, str]] = [
    ("Company", "name"),
    ("Ticker", "ticker"),
    ("Price", "price"),
    ("Market Cap", "market_cap"),
    ("ROE", "roe"),
    ("ROIC", "roic"),
    ("EV/EBIT", "ev_ebit"),
    ("P/E", "per"),
    ("FCF/Share", "fcf_per_share"),
    ("Beta", "beta"),
    ("Ke", "ke"),
    ("Kd", "kd"),
    ("WACC", "wacc"),
]

# Indigo-600
HEADER_FILL_RGB = (79, 70, 229)


def _cell(record: MetricRecord, attr: str) -> str:
    return getattr(record, attr, "") or MISSING


def build_export_dataframe(records: Sequence[MetricRecord]) -> pd.DataFrame:
    """One row per record, export headers as columns, '-' for empty values."""
    rows = [
        {header: _cell(r, attr) for header, attr in EXPORT_COLUMNS}
        for r in records
    ]
    return pd.DataFrame(rows, columns=[h for h, _ in EXPORT_COLUMNS])


def to_csv(records: Sequence[MetricRecord]) -> str:
    """
    Every cell quoted, embedded quotes doubled, rows joined by '\\n'.
    Any standard CSV reader recovers the original values.
    """
    df = build_export_dataframe(records)
    text = df.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")
    return text[:-1] if text.endswith("\n") else text


def to_pdf(
    records: Sequence[MetricRecord],
    title: str = DEFAULT_PDF_TITLE,
    generated_on: Optional[date] = None,
) -> bytes:
    """
    Landscape A4 report: title, generation date, one grid table.

    Raises PDFUnavailableError when reportlab cannot be loaded.
    """
    try:
        from reportlab.lib import colors
        from reportlab.lib.pagesizes import A4, landscape
        from reportlab.lib.styles import getSampleStyleSheet
        from reportlab.lib.units import mm
        from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
    except ImportError as exc:
        logger.error("PDF export unavailable: %s", exc)
        raise PDFUnavailableError(str(exc)) from exc

    generated_on = generated_on or date.today()
    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=landscape(A4),
        leftMargin=14 * mm,
        rightMargin=14 * mm,
        topMargin=14 * mm,
        bottomMargin=14 * mm,
        title=title,
    )

    styles = getSampleStyleSheet()
    subtitle = styles["Normal"].clone("Subtitle", fontSize=11, textColor=colors.Color(100 / 255, 100 / 255, 100 / 255))

    header = [h for h, _ in EXPORT_COLUMNS]
    body = [[_cell(r, attr) for _, attr in EXPORT_COLUMNS] for r in records]
    table = Table([header, *body], repeatRows=1)
    r, g, b = HEADER_FILL_RGB
    table.setStyle(TableStyle([
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("TOPPADDING", (0, 0), (-1, -1), 3),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ("BACKGROUND", (0, 0), (-1, 0), colors.Color(r / 255, g / 255, b / 255)),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
    ]))

    story = [
        Paragraph(escape(title), styles["Title"]),
        Paragraph(f"Generated on {generated_on.strftime('%m/%d/%Y')}", subtitle),
        Spacer(1, 6 * mm),
        table,
    ]
    doc.build(story)
    return buf.getvalue()
