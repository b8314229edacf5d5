"""
HISAB - Pending Payments
========================

Projects with money still owed: aging summary, urgency per project (days
since the last invoice) and the invoice / payment breakdown behind each
pending amount.

Exports main(), called from main.py.
"""

from datetime import date

import streamlit as st

import aggregation_core as agg
from ui_common import apply_styles, load_snapshot, metric_card
from utils_format import (
    URGENCY_STYLES,
    format_currency,
    format_date,
    format_percentage,
    get_status_info,
    traffic_light_color,
    type_label,
)

BUCKET_COLORS = {
    '0-30': '#10b981',
    '31-60': '#eab308',
    '61-90': '#f97316',
    '90+': '#ef4444',
    agg.NO_INVOICE_BUCKET: '#94a3b8',
}


def render_aging_summary(report: agg.AgingReport):
    cols = st.columns(len(agg.AGING_BUCKETS) + 1)
    for col, row in zip(cols, report.as_rows()):
        title = "No invoice" if row['range'] == agg.NO_INVOICE_BUCKET else f"{row['range']} days"
        with col:
            metric_card(
                title,
                format_currency(row['amount']),
                f"{row['count']} project{'s' if row['count'] != 1 else ''}",
                BUCKET_COLORS[row['range']],
            )


def render_breakdown(item: agg.PendingItem):
    col_inv, col_pay = st.columns(2)
    with col_inv:
        st.markdown("**🧾 Invoices / bills**")
        if not item.invoices:
            st.caption("None sent")
        for tx in item.invoices:
            st.markdown(f"- {format_date(tx.date)} · {format_currency(tx.amount)} {tx.notes or ''}")
    with col_pay:
        st.markdown("**💰 Payments**")
        if not item.payments:
            st.caption("Nothing received")
        for tx in item.payments:
            st.markdown(
                f"- {format_date(tx.date)} · {format_currency(tx.amount)} "
                f"({type_label(tx.type)})"
            )
        if item.credits:
            st.markdown("**📝 Credits**")
            for tx in item.credits:
                st.markdown(f"- {format_date(tx.date)} · {format_currency(tx.amount)} ({type_label(tx.type)})")


def render_item(item: agg.PendingItem, today: date):
    style = get_status_info(URGENCY_STYLES, item.urgency)

    with st.container(border=True):
        col_name, col_amount, col_age = st.columns([3, 2, 2])
        with col_name:
            st.markdown(f"### {item.name}")
            st.caption(item.project.client_name or "")
        with col_amount:
            st.metric("Pending", format_currency(item.pending))
        with col_age:
            if item.last_invoice_date is None:
                st.markdown(f"{style['emoji']} **{style['label']}**")
            else:
                st.markdown(
                    f"{style['emoji']} **{style['label']}**  \n"
                    f"Last invoice {format_date(item.last_invoice_date, 'relative', today)} "
                    f"({item.days_since_invoice} days)"
                )

        paid = item.paid_percentage
        st.progress(
            paid / 100,
            text=f"{format_percentage(paid)} of {format_currency(item.totals.total_billed)} billed is paid",
        )
        st.markdown(
            f"<span style='color: {traffic_light_color(paid)};'>"
            f"Received {format_currency(item.totals.total_received)} · "
            f"Credits {format_currency(item.totals.total_credits)}</span>",
            unsafe_allow_html=True,
        )

        with st.expander("Breakdown"):
            render_breakdown(item)


def main():
    apply_styles()
    st.title("⏳ Pending Payments")

    snapshot = load_snapshot()
    today = date.today()

    report = agg.receivables_aging(snapshot.projects, snapshot.transactions, today=today)
    if not report.items:
        st.success("✅ No pending payments. Every project is settled.")
        return

    st.markdown(f"**Total pending:** {format_currency(report.total_pending)} "
                f"across {len(report.items)} projects")
    render_aging_summary(report)
    st.divider()

    sort_by = st.radio(
        "Sort by", ("amount", "days"), horizontal=True,
        format_func=lambda s: "💰 Amount" if s == "amount" else "📅 Days since invoice",
    )
    items = agg.pending_payments(snapshot.projects, snapshot.transactions, today=today, sort_by=sort_by)

    for item in items:
        render_item(item, today)
