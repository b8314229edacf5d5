"""
HISAB - Transactions
====================

PURPOSE:
--------
- Add transaction form (bill, invoice, payment, advance, by hand,
  credit note, refund) with an optional document upload or link
- History: project / type / date / text filters, running total per row
- Documents attached to each transaction
- Bulk delete of the selected rows and CSV download of the current view

Exports main(), called from main.py.
"""

from datetime import date

import pandas as pd
import streamlit as st

import aggregation_core as agg
from entities_core import PAYMENT_MODES, TRANSACTION_TYPES, TRANSACTIONS, Transaction
from exports_core import TRANSACTION_COLUMNS, export_filename, to_csv, transaction_export_rows
from filters_core import ViewCriteria, apply_view
from ui_common import (
    apply_styles,
    confirm_action,
    flash,
    get_service,
    load_snapshot,
    project_options,
    request_confirmation,
    selection_checkboxes,
    show_error,
)
from utils_format import (
    TRANSACTION_TYPE_STYLES,
    format_currency,
    format_date,
    get_status_info,
    type_label,
)

UPLOAD_TYPES = ["pdf", "png", "jpg", "jpeg", "xlsx", "xls", "csv", "doc", "docx"]


# ============================================================================
# ADD FORM
# ============================================================================

def render_add_form(snapshot):
    options = project_options(snapshot.projects)
    if not options:
        st.info("Create a project first")
        return

    with st.form("transaction_form", clear_on_submit=True):
        col1, col2, col3 = st.columns(3)
        with col1:
            project_id = st.selectbox("Project *", list(options), format_func=options.get)
            tx_date = st.date_input("Date *", value=date.today())
        with col2:
            tx_type = st.selectbox(
                "Type *", TRANSACTION_TYPES,
                format_func=lambda t: f"{TRANSACTION_TYPE_STYLES[t]['emoji']} {TRANSACTION_TYPE_STYLES[t]['label']}",
            )
            amount = st.number_input("Amount (₹) *", min_value=0.0, step=1000.0)
        with col3:
            mode = st.selectbox("Mode", ("",) + PAYMENT_MODES, format_func=lambda m: type_label(m) if m else "-")
            notes = st.text_input("Notes")

        st.markdown("**📎 Document (optional)**")
        col_file, col_link = st.columns(2)
        with col_file:
            upload = st.file_uploader("Upload file", type=UPLOAD_TYPES)
        with col_link:
            link_name = st.text_input("Link name")
            link_url = st.text_input("Link URL", placeholder="https://...")

        submitted = st.form_submit_button("➕ Add transaction", type="primary")

    if not submitted:
        return

    service = get_service()
    transaction = Transaction(
        id=None,
        project_id=project_id,
        date=tx_date,
        type=tx_type,
        amount=amount,
        mode=mode or None,
        notes=notes,
    )
    try:
        created = service.create_transaction(transaction)
    except Exception as e:
        show_error("add the transaction", e)
        return

    message = f"✅ {type_label(tx_type)} of {format_currency(amount)} added"
    try:
        if upload is not None:
            service.attach_document(created.id, upload.name, upload.getvalue(), upload.type)
            message += f" with '{upload.name}'"
        if link_url.strip():
            service.attach_link(created.id, link_name, link_url)
    except Exception as e:
        # the transaction itself is saved at this point
        show_error("attach the document", e)
        return

    flash(message)
    st.rerun()


# ============================================================================
# HISTORY
# ============================================================================

def render_filters(snapshot) -> ViewCriteria:
    options = project_options(snapshot.projects, include_all=True)

    col1, col2, col3, col4, col5 = st.columns([2, 2, 2, 2, 3])
    with col1:
        project_id = st.selectbox("Project", list(options), format_func=options.get, key="tx_filter_project")
    with col2:
        tx_type = st.selectbox(
            "Type", ("all",) + TRANSACTION_TYPES,
            format_func=lambda t: "All" if t == "all" else TRANSACTION_TYPE_STYLES[t]['label'],
            key="tx_filter_type",
        )
    with col3:
        date_from = st.date_input("From", value=None, key="tx_filter_from")
    with col4:
        date_to = st.date_input("To", value=None, key="tx_filter_to")
    with col5:
        term = st.text_input("🔍 Search notes", key="tx_filter_term")

    return ViewCriteria(
        search_term=term,
        search_fields=('notes', 'mode'),
        equals={'project_id': project_id, 'type': tx_type},
        date_field='date',
        date_from=date_from,
        date_to=date_to,
    )


def render_documents(view):
    with_docs = [tx for tx in view if tx.documents or tx.attachment_url]
    if not with_docs:
        return

    with st.expander(f"📎 Documents ({len(with_docs)} transactions)"):
        for tx in with_docs:
            st.markdown(f"**{format_date(tx.date)} · {type_label(tx.type)} · {format_currency(tx.amount)}**")
            if tx.attachment_url:
                st.markdown(f"- [Attachment]({tx.attachment_url})")
            for doc in tx.documents:
                icon = "🔗" if doc.kind == "link" else "📄"
                st.markdown(f"- {icon} [{doc.name}]({doc.url})")


def render_attach_to_existing(view):
    if not view:
        return
    with st.expander("📎 Attach a document to a transaction"):
        labels = {
            tx.id: f"{format_date(tx.date)} · {type_label(tx.type)} · {format_currency(tx.amount)}"
            for tx in view
        }
        with st.form("attach_form", clear_on_submit=True):
            tx_id = st.selectbox("Transaction", list(labels), format_func=labels.get)
            upload = st.file_uploader("File", type=UPLOAD_TYPES)
            link_name = st.text_input("or link name")
            link_url = st.text_input("Link URL")
            submitted = st.form_submit_button("Attach")

        if submitted:
            service = get_service()
            try:
                if upload is not None:
                    service.attach_document(tx_id, upload.name, upload.getvalue(), upload.type)
                elif link_url.strip():
                    service.attach_link(tx_id, link_name, link_url)
                else:
                    st.warning("Choose a file or enter a link")
                    return
                flash("📎 Document attached")
                st.rerun()
            except Exception as e:
                show_error("attach the document", e)


def render_history(snapshot):
    criteria = render_filters(snapshot)
    view = apply_view(snapshot.transactions, criteria)

    if not view:
        st.info("No transactions match the current filters")
        return

    rows = agg.running_totals(view)
    table = pd.DataFrame([
        {
            'Date': format_date(r.transaction.date),
            'Project': agg.project_name_for(r.transaction.project_id, snapshot.projects),
            'Type': f"{get_status_info(TRANSACTION_TYPE_STYLES, r.transaction.type)['emoji']} "
                    f"{type_label(r.transaction.type)}",
            'Amount': format_currency(r.transaction.amount),
            'Mode': type_label(r.transaction.mode) if r.transaction.mode else '',
            'Running Total': format_currency(r.running_total),
            'Docs': len(r.transaction.documents) + (1 if r.transaction.attachment_url else 0),
            'Notes': r.transaction.notes or '',
        }
        for r in rows
    ])
    st.dataframe(table, use_container_width=True, hide_index=True)

    billed = sum(tx.amount for tx in view if tx.type in agg.BILLED_TYPES)
    received = sum(tx.amount for tx in view if tx.type in agg.RECEIVED_TYPES)
    st.caption(
        f"{len(view)} transactions · billed {format_currency(billed)} · "
        f"received {format_currency(received)}"
    )

    col_csv, col_delete = st.columns(2)
    with col_csv:
        st.download_button(
            label="📥 Export CSV",
            data=to_csv(transaction_export_rows(view, snapshot.projects), TRANSACTION_COLUMNS),
            file_name=export_filename("transactions", "csv"),
            mime="text/csv",
            use_container_width=True,
        )

    with col_delete:
        with st.expander("🗑️ Select transactions to delete"):
            selected = selection_checkboxes(
                "transaction_selection",
                [
                    {
                        'id': tx.id,
                        'label': f"{format_date(tx.date)} · "
                                 f"{agg.project_name_for(tx.project_id, snapshot.projects)} · "
                                 f"{type_label(tx.type)} · {format_currency(tx.amount)}",
                    }
                    for tx in view
                ],
                'label',
            )
        if st.button(f"Delete selected ({len(selected)})", disabled=len(selected) == 0,
                     use_container_width=True):
            request_confirmation("bulk_transactions")
            st.rerun()

    if confirm_action("bulk_transactions", f"Delete {len(selected)} transactions?"):
        try:
            deleted = get_service().bulk_delete(TRANSACTIONS, selected.ids)
            selected.clear()
            flash(f"🗑️ Deleted {len(deleted)} transactions")
            st.rerun()
        except Exception as e:
            show_error("delete the selected transactions", e)

    render_documents(view)
    render_attach_to_existing(view)


def main():
    apply_styles()
    st.title("💸 Transactions")
    flash()

    snapshot = load_snapshot()

    with st.expander("➕ Add transaction", expanded=False):
        render_add_form(snapshot)

    st.subheader("📜 History")
    render_history(snapshot)
