"""
HISAB - Quotations
==================

Quotes sent to clients: create form, status filter, status changes and
the quoted / accepted / awaiting totals.

Exports main(), called from main.py.
"""

from datetime import date

import pandas as pd
import streamlit as st

import aggregation_core as agg
from entities_core import QUOTATIONS, QUOTATION_STATUSES, Quotation
from filters_core import ViewCriteria, apply_view
from ui_common import (
    apply_styles,
    confirm_action,
    flash,
    get_service,
    load_snapshot,
    metric_card,
    project_options,
    request_confirmation,
    show_error,
)
from utils_format import (
    QUOTATION_STATUS_STYLES,
    format_currency,
    format_currency_compact,
    format_date,
    format_percentage,
    get_status_info,
)


def _status_label(status: str) -> str:
    style = get_status_info(QUOTATION_STATUS_STYLES, status)
    return f"{style['emoji']} {style['label']}"


def render_summary(quotations):
    summary = agg.quotation_summary(quotations)
    col1, col2, col3, col4 = st.columns(4)
    with col1:
        metric_card("Total quoted", format_currency_compact(summary.total_quoted),
                    f"{len(quotations)} quotations", "#3b82f6")
    with col2:
        metric_card("Accepted", format_currency_compact(summary.total_accepted),
                    f"{summary.count_by_status.get('accepted', 0)} quotations", "#10b981")
    with col3:
        metric_card("Awaiting answer", format_currency_compact(summary.total_awaiting),
                    f"{summary.count_by_status.get('sent', 0)} sent", "#f59e0b")
    with col4:
        metric_card("Acceptance rate", format_percentage(summary.acceptance_rate),
                    "accepted / decided", "#8b5cf6")


def render_form(snapshot):
    options = {"": "No project", **project_options(snapshot.projects)}

    with st.form("quotation_form", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            description = st.text_input("Description *")
            amount = st.number_input("Amount (₹)", min_value=0.0, step=1000.0)
            quote_date = st.date_input("Quote date *", value=date.today())
        with col2:
            project_id = st.selectbox("Project", list(options), format_func=options.get)
            status = st.selectbox("Status", QUOTATION_STATUSES,
                                  index=QUOTATION_STATUSES.index("sent"), format_func=_status_label)
            document_url = st.text_input("Document link")
        notes = st.text_area("Notes", height=80)
        submitted = st.form_submit_button("➕ Add quotation", type="primary")

    if submitted:
        quotation = Quotation(
            id=None,
            quote_date=quote_date,
            amount=amount,
            description=description,
            status=status,
            project_id=project_id or None,
            notes=notes,
            document_url=document_url,
        )
        try:
            get_service().create_quotation(quotation)
            flash(f"✅ Quotation '{description}' added")
            st.rerun()
        except Exception as e:
            show_error("add the quotation", e)


def render_list(snapshot):
    col_status, col_search = st.columns([1, 2])
    with col_status:
        status = st.selectbox("Status", ("all",) + QUOTATION_STATUSES,
                              format_func=lambda s: "All" if s == "all" else _status_label(s))
    with col_search:
        term = st.text_input("🔍 Search", placeholder="Description or notes")

    view = apply_view(snapshot.quotations, ViewCriteria(
        search_term=term,
        search_fields=('description', 'notes'),
        equals={'status': status},
        sort_key='quote_date',
        descending=True,
    ))
    if not view:
        st.info("No quotations match the current filters")
        return

    table = pd.DataFrame([
        {
            'Date': format_date(q.quote_date),
            'Description': q.description,
            'Project': agg.project_name_for(q.project_id, snapshot.projects) if q.project_id else '',
            'Amount': format_currency(q.amount),
            'Status': _status_label(q.status),
        }
        for q in view
    ])
    st.dataframe(table, use_container_width=True, hide_index=True)

    st.markdown("#### ✏️ Update a quotation")
    labels = {q.id: f"{format_date(q.quote_date)} · {q.description}" for q in view}
    col_pick, col_new, col_actions = st.columns([3, 2, 2])
    with col_pick:
        quote_id = st.selectbox("Quotation", list(labels), format_func=labels.get)
    current = next(q for q in view if q.id == quote_id)
    with col_new:
        new_status = st.selectbox("New status", QUOTATION_STATUSES,
                                  index=QUOTATION_STATUSES.index(current.status)
                                  if current.status in QUOTATION_STATUSES else 0,
                                  format_func=_status_label, key=f"quote_status_{quote_id}")
    with col_actions:
        st.write("")
        if st.button("💾 Update status", use_container_width=True, disabled=new_status == current.status):
            try:
                get_service().set_quotation_status(quote_id, new_status)
                flash(f"Quotation marked {_status_label(new_status)}")
                st.rerun()
            except Exception as e:
                show_error("update the quotation", e)
        if st.button("🗑️ Delete", use_container_width=True):
            request_confirmation(f"quote_{quote_id}")
            st.rerun()

    if current.document_url:
        st.markdown(f"📎 [Quotation document]({current.document_url})")

    if confirm_action(f"quote_{quote_id}", f"Delete quotation '{current.description}'?"):
        try:
            get_service().delete_record(QUOTATIONS, quote_id)
            flash("🗑️ Quotation deleted")
            st.rerun()
        except Exception as e:
            show_error("delete the quotation", e)


def main():
    apply_styles()
    st.title("📝 Quotations")
    flash()

    snapshot = load_snapshot()

    render_summary(snapshot.quotations)
    st.divider()

    with st.expander("➕ New quotation", expanded=not snapshot.quotations):
        render_form(snapshot)

    if snapshot.quotations:
        render_list(snapshot)
