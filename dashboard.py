"""
HISAB - Dashboard
=================

Portfolio overview: billed / received / pending cards, the latest
transactions, open action items and the quotation pipeline.

Exports main(), called from main.py.
"""

from datetime import date

import pandas as pd
import streamlit as st

import aggregation_core as agg
from ui_common import apply_styles, get_service, load_snapshot, metric_card, show_error
from utils_format import (
    QUOTATION_STATUS_STYLES,
    TRANSACTION_TYPE_STYLES,
    format_currency,
    format_currency_compact,
    format_date,
    format_percentage,
    get_status_info,
    traffic_light_color,
    type_label,
)


def render_metric_cards(portfolio: agg.PortfolioTotals, pending_count: int):
    col1, col2, col3, col4 = st.columns(4)

    with col1:
        metric_card(
            "💼 Total Billed",
            format_currency_compact(portfolio.total_billed),
            f"{portfolio.project_count} projects",
            "#3b82f6",
        )
    with col2:
        metric_card(
            "💰 Total Received",
            format_currency_compact(portfolio.total_received),
            format_currency(portfolio.total_received),
            "#10b981",
        )
    with col3:
        metric_card(
            "⏳ Pending",
            format_currency_compact(portfolio.pending_receivable),
            f"{pending_count} projects with money owed",
            "#f59e0b",
        )
    with col4:
        metric_card(
            "📈 Collection Rate",
            format_percentage(portfolio.collection_rate),
            "received / contracted",
            traffic_light_color(portfolio.collection_rate),
        )


def render_recent_transactions(snapshot):
    st.subheader("🕒 Recent Transactions")
    recent = agg.recent_transactions(snapshot.transactions, limit=5)
    if not recent:
        st.info("No transactions recorded yet")
        return

    rows = []
    for tx in recent:
        style = get_status_info(TRANSACTION_TYPE_STYLES, tx.type)
        rows.append({
            'Date': format_date(tx.date),
            'Project': agg.project_name_for(tx.project_id, snapshot.projects),
            'Type': f"{style['emoji']} {type_label(tx.type)}",
            'Amount': format_currency(tx.amount),
        })
    st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)


def render_action_items(snapshot, today: date):
    st.subheader("📌 Action Items")
    open_items = agg.open_action_items(snapshot.action_items, today)
    if not open_items:
        st.success("✅ Nothing pending")
        return

    service = get_service()
    for entry in open_items:
        item = entry.item
        project = agg.project_name_for(item.project_id, snapshot.projects) if item.project_id else None
        due = format_date(item.due_date, "relative", today) if item.due_date else "No due date"

        col_text, col_btn = st.columns([5, 1])
        with col_text:
            icon = "🔴" if entry.overdue else "🟡"
            st.markdown(f"{icon} **{item.description}**")
            st.caption(" · ".join(x for x in (project, due) if x))
        with col_btn:
            if st.button("✔️ Done", key=f"dash_done_{item.id}", use_container_width=True):
                try:
                    service.toggle_action_item(item)
                    st.rerun()
                except Exception as e:
                    show_error("update the action item", e)


def render_quotation_pipeline(snapshot):
    st.subheader("📝 Quotations")
    summary = agg.quotation_summary(snapshot.quotations)
    if not snapshot.quotations:
        st.info("No quotations yet")
        return

    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Quoted", format_currency_compact(summary.total_quoted))
    with col2:
        st.metric("Accepted", format_currency_compact(summary.total_accepted))
    with col3:
        st.metric("Awaiting answer", format_currency_compact(summary.total_awaiting))

    counts = [
        f"{get_status_info(QUOTATION_STATUS_STYLES, status)['emoji']} {status}: {count}"
        for status, count in summary.count_by_status.items() if count
    ]
    st.caption(" | ".join(counts))


def main():
    apply_styles()
    st.title("📊 Dashboard")

    snapshot = load_snapshot()
    today = date.today()

    if snapshot.is_empty:
        st.info("No projects yet. Create one in **Projects** or load the sample data from **Setup**.")
        return

    portfolio = agg.portfolio_totals(snapshot.projects, snapshot.transactions)
    pending = agg.pending_payments(snapshot.projects, snapshot.transactions, today=today)

    render_metric_cards(portfolio, len(pending))
    st.divider()

    col_left, col_right = st.columns([3, 2])
    with col_left:
        render_recent_transactions(snapshot)
        st.divider()
        render_quotation_pipeline(snapshot)
    with col_right:
        render_action_items(snapshot, today)
