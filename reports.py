"""
HISAB - Reports
===============

PURPOSE:
--------
- Monthly billed vs received trend (last N months)
- Balance per project and receivables aging charts
- Summary statistics for the filtered period
- Downloads: transactions / projects CSV, Excel workbook, PDF summary

Filters (date range, project) apply to the transactions behind every
chart; project balances always use the full ledger.

Exports main(), called from main.py.
"""

from datetime import date

import plotly.graph_objects as go
import streamlit as st

import aggregation_core as agg
from exports_core import (
    PROJECT_COLUMNS,
    TRANSACTION_COLUMNS,
    build_summary_pdf,
    export_filename,
    project_export_rows,
    to_csv,
    to_excel,
    transaction_export_rows,
)
from filters_core import ViewCriteria, apply_view, filter_equals
from ui_common import apply_styles, get_settings, load_snapshot, metric_card, project_options
from utils_format import (
    format_currency,
    format_currency_compact,
    format_percentage,
)


# ============================================================================
# CHARTS
# ============================================================================

def chart_monthly_trend(transactions, months: int) -> go.Figure:
    df = agg.monthly_trend_frame(transactions, limit=months)

    fig = go.Figure()
    fig.add_trace(go.Bar(
        name="Billed",
        x=df['label'],
        y=df['billed'],
        marker_color='#eab308',
        text=[format_currency_compact(v) for v in df['billed']],
        textposition='auto',
    ))
    fig.add_trace(go.Bar(
        name="Received",
        x=df['label'],
        y=df['received'],
        marker_color='#10b981',
        text=[format_currency_compact(v) for v in df['received']],
        textposition='auto',
    ))
    fig.update_layout(
        title=f"Billed vs Received (last {months} months)",
        barmode='group',
        height=420,
        yaxis_title="Amount (₹)",
        template="plotly_white",
        xaxis={'type': 'category'},
    )
    return fig


def chart_project_balances(summaries) -> go.Figure:
    ordered = sorted(summaries, key=lambda s: s.total_value, reverse=True)
    names = [s.name for s in ordered]

    fig = go.Figure()
    fig.add_trace(go.Bar(
        name="Received",
        y=names,
        x=[s.received for s in ordered],
        orientation='h',
        marker_color='#10b981',
    ))
    fig.add_trace(go.Bar(
        name="Balance",
        y=names,
        x=[max(s.balance, 0) for s in ordered],
        orientation='h',
        marker_color='#f59e0b',
        text=[format_currency(s.balance) for s in ordered],
        textposition='auto',
    ))
    fig.update_layout(
        title="Received and balance per project",
        barmode='stack',
        height=max(300, 60 * len(ordered)),
        xaxis_title="Amount (₹)",
        template="plotly_white",
        yaxis={'autorange': 'reversed'},
    )
    return fig


def chart_aging(report: agg.AgingReport) -> go.Figure:
    rows = report.as_rows()
    labels = ["No invoice" if r['range'] == agg.NO_INVOICE_BUCKET else f"{r['range']} days" for r in rows]

    fig = go.Figure(data=[go.Pie(
        labels=labels,
        values=[r['amount'] for r in rows],
        hole=.4,
        marker={'colors': ['#10b981', '#eab308', '#f97316', '#ef4444', '#94a3b8']},
        textinfo='label+percent',
        sort=False,
    )])
    fig.update_layout(title="Receivables aging", height=420)
    return fig


# ============================================================================
# DOWNLOADS
# ============================================================================

def render_downloads(snapshot, transactions, summaries, portfolio):
    today = date.today()
    tx_rows = transaction_export_rows(transactions, snapshot.projects)
    project_rows = project_export_rows(summaries)

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.download_button(
            "📥 Transactions CSV",
            data=to_csv(tx_rows, TRANSACTION_COLUMNS),
            file_name=export_filename("transactions", "csv", today),
            mime="text/csv",
            use_container_width=True,
        )
    with col2:
        st.download_button(
            "📥 Projects CSV",
            data=to_csv(project_rows, PROJECT_COLUMNS),
            file_name=export_filename("projects", "csv", today),
            mime="text/csv",
            use_container_width=True,
        )
    with col3:
        st.download_button(
            "📊 Projects Excel",
            data=to_excel(project_rows, PROJECT_COLUMNS, sheet_title="Projects"),
            file_name=export_filename("projects", "xlsx", today),
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            use_container_width=True,
        )
    with col4:
        st.download_button(
            "📄 Summary PDF",
            data=build_summary_pdf(portfolio, summaries),
            file_name=export_filename("summary", "pdf", today),
            mime="application/pdf",
            use_container_width=True,
        )


# ============================================================================
# MAIN
# ============================================================================

def main():
    apply_styles()
    st.title("📈 Reports")

    snapshot = load_snapshot()
    if snapshot.is_empty:
        st.info("No data to report yet")
        return

    options = project_options(snapshot.projects, include_all=True)
    col1, col2, col3 = st.columns(3)
    with col1:
        date_from = st.date_input("Date from", value=None)
    with col2:
        date_to = st.date_input("Date to", value=None)
    with col3:
        project_id = st.selectbox("Project", list(options), format_func=options.get)

    transactions = apply_view(snapshot.transactions, ViewCriteria(
        equals={'project_id': project_id},
        date_field='date',
        date_from=date_from,
        date_to=date_to,
    ))
    projects = snapshot.projects if project_id == "all" else [
        p for p in snapshot.projects if p.id == project_id
    ]

    project_txns = filter_equals(snapshot.transactions, project_id=project_id)
    summaries = agg.summarize_projects(projects, project_txns)
    portfolio = agg.portfolio_totals(projects, project_txns)

    billed = sum(tx.amount for tx in transactions if tx.type in agg.BILLED_TYPES)
    received = sum(tx.amount for tx in transactions if tx.type in agg.RECEIVED_TYPES)
    credited = sum(tx.amount for tx in transactions if tx.type in agg.CREDITED_TYPES)

    c1, c2, c3, c4 = st.columns(4)
    with c1:
        metric_card("Billed in period", format_currency(billed), f"{len(transactions)} transactions", "#eab308")
    with c2:
        metric_card("Received in period", format_currency(received), color="#10b981")
    with c3:
        metric_card("Credits in period", format_currency(credited), color="#8b5cf6")
    with c4:
        metric_card("Collection rate", format_percentage(portfolio.collection_rate),
                    f"{format_currency(portfolio.total_received)} of {format_currency(portfolio.total_billed)}",
                    "#3b82f6")

    st.plotly_chart(chart_monthly_trend(transactions, get_settings().trend_months), use_container_width=True)

    col_left, col_right = st.columns(2)
    with col_left:
        st.plotly_chart(chart_project_balances(summaries), use_container_width=True)
    with col_right:
        report = agg.receivables_aging(projects, project_txns)
        if report.items:
            st.plotly_chart(chart_aging(report), use_container_width=True)
        else:
            st.success("✅ No pending receivables")

    st.divider()
    st.subheader("📥 Export")
    render_downloads(snapshot, transactions, summaries, portfolio)
