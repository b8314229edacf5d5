"""
HISAB - Data Export
===================

Download files offered by the Reports and Transactions pages:

- CSV: header row first, every field double-quoted, one row per record
- Excel (.xlsx): same rows with a styled header (openpyxl)
- PDF: one-page portfolio summary (reportlab canvas)

All builders return bytes/str ready for `st.download_button`.
"""

import csv
import io
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from aggregation_core import PortfolioTotals, ProjectSummary
from entities_core import Project, Transaction, UNKNOWN_PROJECT
from utils_format import format_currency, format_percentage, type_label

# (header, field) pairs
Columns = Sequence[Tuple[str, str]]

TRANSACTION_COLUMNS: Columns = (
    ("Date", "date"),
    ("Project", "project"),
    ("Type", "type"),
    ("Amount", "amount"),
    ("Mode", "mode"),
    ("Notes", "notes"),
)

PROJECT_COLUMNS: Columns = (
    ("Project", "name"),
    ("Client", "client_name"),
    ("Total Value", "total_value"),
    ("Received", "received"),
    ("Balance", "balance"),
    ("Status", "status"),
)


# ============================================================================
# EXPORT ROWS
# ============================================================================

def _plain(value):
    """Export form of a cell: ISO dates, integral floats without '.0'"""
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def transaction_export_rows(
    transactions: Iterable[Transaction],
    projects: Iterable[Project]
) -> List[Dict]:
    """Transaction rows with the project name resolved"""
    names = {p.id: p.name for p in projects}
    return [
        {
            'date': tx.date,
            'project': names.get(tx.project_id, UNKNOWN_PROJECT),
            'type': tx.type,
            'amount': tx.amount,
            'mode': tx.mode,
            'notes': tx.notes,
        }
        for tx in transactions
    ]


def project_export_rows(summaries: Iterable[ProjectSummary]) -> List[Dict]:
    return [
        {
            'name': s.name,
            'client_name': s.client_name,
            'total_value': s.total_value,
            'received': s.received,
            'balance': s.balance,
            'status': s.status,
        }
        for s in summaries
    ]


def to_frame(records: Iterable[Dict], columns: Columns) -> pd.DataFrame:
    """Records as a DataFrame with the export headers, in column order"""
    data = [
        [_plain(record.get(field)) for _, field in columns]
        for record in records
    ]
    return pd.DataFrame(data, columns=[header for header, _ in columns], dtype=object)


# ============================================================================
# CSV
# ============================================================================

def to_csv(records: Iterable[Dict], columns: Columns) -> str:
    """
    CSV text: quoted header row, then one fully quoted row per record.

    Embedded quotes are doubled; None becomes an empty quoted field.

    Examples:
        >>> to_csv([{'name': '4C', 'total_value': 150000.0}],
        ...        [('Project', 'name'), ('Total Value', 'total_value')])
        '"Project","Total Value"\\n"4C","150000"\\n'
    """
    frame = to_frame(records, columns)
    return frame.to_csv(
        index=False,
        quoting=csv.QUOTE_ALL,
        lineterminator="\n",
        na_rep="",
    )


def export_filename(prefix: str, ext: str, today: Optional[date] = None) -> str:
    """
    Examples:
        >>> export_filename("transactions", "csv", date(2024, 12, 1))
        'hisab-transactions-2024-12-01.csv'
    """
    today = today or date.today()
    return f"hisab-{prefix}-{today.isoformat()}.{ext.lstrip('.')}"


# ============================================================================
# EXCEL
# ============================================================================

def to_excel(records: Iterable[Dict], columns: Columns, sheet_title: str = "Export") -> bytes:
    """Single-sheet workbook with a bold, filled header row and sized columns"""
    import openpyxl
    from openpyxl.styles import Alignment, Font, PatternFill
    from openpyxl.utils import get_column_letter

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = sheet_title[:31]

    header_fill = PatternFill(start_color="047857", end_color="047857", fill_type="solid")
    header_font = Font(bold=True, color="FFFFFF", size=11)

    headers = [header for header, _ in columns]
    ws.append(headers)
    for cell in ws[1]:
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center")

    widths = [len(h) for h in headers]
    for record in records:
        row = [_plain(record.get(field)) for _, field in columns]
        ws.append(row)
        for i, value in enumerate(row):
            widths[i] = max(widths[i], len(str(value)) if value is not None else 0)

    for i, width in enumerate(widths, 1):
        ws.column_dimensions[get_column_letter(i)].width = min(width + 2, 60)
    ws.freeze_panes = "A2"

    buffer = io.BytesIO()
    wb.save(buffer)
    buffer.seek(0)
    return buffer.getvalue()


# ============================================================================
# PDF
# ============================================================================

def build_summary_pdf(
    portfolio: PortfolioTotals,
    summaries: Iterable[ProjectSummary],
    generated_at: Optional[datetime] = None
) -> bytes:
    """Portfolio summary plus one block per project, paged when it overflows"""
    from reportlab.lib.pagesizes import A4
    from reportlab.pdfgen import canvas
    from reportlab.lib.units import inch

    generated_at = generated_at or datetime.now()

    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4

    # Title
    y = height - inch
    c.setFont("Helvetica-Bold", 20)
    c.drawString(inch, y, "HISAB - Financial Summary")

    y -= 0.3 * inch
    c.setFont("Helvetica", 10)
    c.drawString(inch, y, f"Generated: {generated_at.strftime('%d %b %Y %H:%M')}")

    # Portfolio
    y -= 0.5 * inch
    c.setFont("Helvetica-Bold", 14)
    c.drawString(inch, y, "Portfolio")

    y -= 0.3 * inch
    c.setFont("Helvetica", 10)

    # Rupee sign is missing from the built-in fonts
    items = [
        f"Projects: {portfolio.project_count}",
        f"Total Billed: {format_currency(portfolio.total_billed, show_symbol=False)} INR",
        f"Total Received: {format_currency(portfolio.total_received, show_symbol=False)} INR",
        f"Pending Receivable: {format_currency(portfolio.pending_receivable, show_symbol=False)} INR",
        f"Collection Rate: {format_percentage(portfolio.collection_rate)}",
    ]
    for item in items:
        c.drawString(inch + 20, y, f"- {item}")
        y -= 20

    # Projects
    y -= 0.3 * inch
    c.setFont("Helvetica-Bold", 14)
    c.drawString(inch, y, "Projects")

    y -= 0.3 * inch
    c.setFont("Helvetica", 9)

    for i, summary in enumerate(summaries, 1):
        if y < 1.5 * inch:
            c.showPage()
            c.setFont("Helvetica", 9)
            y = height - inch

        c.drawString(inch + 20, y, f"{i}. {summary.name} ({summary.client_name or 'N/A'})")
        y -= 15
        c.drawString(inch + 40, y, f"Status: {type_label(summary.status)}")
        y -= 15
        c.drawString(
            inch + 40, y,
            f"Value: {format_currency(summary.total_value, show_symbol=False)}  "
            f"Received: {format_currency(summary.received, show_symbol=False)}  "
            f"Balance: {format_currency(summary.balance, show_symbol=False)}",
        )
        y -= 25

    c.save()
    buffer.seek(0)
    return buffer.getvalue()
