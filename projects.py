"""
HISAB - Projects
================

PURPOSE:
--------
- Project list with search, status filter, sort and balance per project
- Create / edit form
- Bulk delete of the selected projects (with their records)
- Project detail: totals, milestones, action items, transaction ledger

Exports main(), called from main.py.
"""

from datetime import date

import pandas as pd
import streamlit as st

import aggregation_core as agg
from entities_core import (
    ActionItem,
    Milestone,
    Project,
    PROJECTS,
    MILESTONE_STATUSES,
    PROJECT_STATUSES,
)
from filters_core import ViewCriteria, apply_view
from ui_common import (
    apply_styles,
    badge,
    confirm_action,
    flash,
    get_service,
    load_snapshot,
    metric_card,
    request_confirmation,
    selection_checkboxes,
    show_error,
)
from utils_format import (
    MILESTONE_STATUS_STYLES,
    PROJECT_STATUS_STYLES,
    format_currency,
    format_date,
    format_percentage,
    get_status_info,
    traffic_light_color,
    type_label,
)

SORT_OPTIONS = {
    'name': 'Name',
    'value': 'Total value',
    'balance': 'Balance',
    'status': 'Status',
}


def init_session_state():
    if 'selected_project' not in st.session_state:
        st.session_state.selected_project = None


# ============================================================================
# FORMS
# ============================================================================

def render_project_form(project: Project = None):
    """Create form, or edit form when a project is given"""
    editing = project is not None
    project = project or Project(id=None, name="")

    with st.form(f"project_form_{project.id or 'new'}", clear_on_submit=not editing):
        col1, col2 = st.columns(2)
        with col1:
            name = st.text_input("Project name *", value=project.name)
            client_name = st.text_input("Client", value=project.client_name or "")
            total_value = st.number_input(
                "Total value (₹)", min_value=0.0, step=1000.0,
                value=float(project.total_value or 0.0),
            )
        with col2:
            status = st.selectbox(
                "Status", PROJECT_STATUSES,
                index=PROJECT_STATUSES.index(project.status) if project.status in PROJECT_STATUSES else 0,
                format_func=lambda s: PROJECT_STATUS_STYLES[s]['label'],
            )
            quotation_url = st.text_input("Quotation link", value=project.quotation_url or "")
            notes = st.text_area("Notes", value=project.notes or "", height=100)

        submitted = st.form_submit_button(
            "💾 Save changes" if editing else "➕ Create project", type="primary"
        )

    if not submitted:
        return

    updated = Project(
        id=project.id,
        name=name,
        total_value=total_value,
        status=status,
        client_name=client_name,
        notes=notes,
        quotation_url=quotation_url,
    )
    service = get_service()
    try:
        if editing:
            service.update_project(updated)
            flash(f"✅ Project '{updated.name}' updated")
        else:
            created = service.create_project(updated)
            flash(f"✅ Project '{created.name}' created")
        st.rerun()
    except Exception as e:
        show_error("save the project", e)


# ============================================================================
# LIST VIEW
# ============================================================================

def render_project_list(snapshot):
    summaries = agg.summarize_projects(snapshot.projects, snapshot.transactions)

    col_search, col_status, col_sort, col_dir = st.columns([3, 2, 2, 1])
    with col_search:
        term = st.text_input("🔍 Search", placeholder="Name, client or notes")
    with col_status:
        status = st.selectbox(
            "Status", ("all",) + PROJECT_STATUSES,
            format_func=lambda s: "All" if s == "all" else PROJECT_STATUS_STYLES[s]['label'],
        )
    with col_sort:
        sort_key = st.selectbox("Sort by", list(SORT_OPTIONS), format_func=SORT_OPTIONS.get)
    with col_dir:
        descending = st.toggle("Desc", value=sort_key in ('value', 'balance'))

    view = apply_view(summaries, ViewCriteria(
        search_term=term,
        search_fields=('name', 'client_name', 'notes'),
        equals={'status': status},
        sort_key=sort_key,
        descending=descending,
    ))

    if not view:
        st.info("No projects match the current filters")
        return

    table = pd.DataFrame([
        {
            'Project': s.name,
            'Client': s.client_name or '',
            'Status': get_status_info(PROJECT_STATUS_STYLES, s.status)['label'],
            'Total Value': format_currency(s.total_value),
            'Received': format_currency(s.received),
            'Balance': format_currency(s.balance),
            'Collected': format_percentage(s.collection_rate),
        }
        for s in view
    ])
    st.dataframe(table, use_container_width=True, hide_index=True)

    col_open, col_select = st.columns([1, 1])
    with col_open:
        st.markdown("#### 📂 Open project")
        labels = {s.id: s.name for s in view}
        chosen = st.selectbox("Project", list(labels), format_func=labels.get, label_visibility="collapsed")
        if st.button("Open detail", use_container_width=True):
            st.session_state.selected_project = chosen
            st.rerun()

    with col_select:
        st.markdown("#### 🗑️ Bulk delete")
        with st.expander("Select projects"):
            selected = selection_checkboxes(
                "project_selection",
                [{'id': s.id, 'label': s.name} for s in view],
                'label',
            )
        if st.button(
            f"Delete selected ({len(selected)})",
            disabled=len(selected) == 0,
            use_container_width=True,
        ):
            request_confirmation("bulk_projects")
            st.rerun()

        if confirm_action(
            "bulk_projects",
            f"Delete {len(selected)} projects with all their transactions, "
            "milestones and action items? This cannot be undone.",
        ):
            try:
                deleted = get_service().bulk_delete(PROJECTS, selected.ids)
                selected.clear()
                flash(f"🗑️ Deleted {len(deleted)} projects")
                st.rerun()
            except Exception as e:
                show_error("delete the selected projects", e)


# ============================================================================
# DETAIL VIEW
# ============================================================================

def render_milestones(project: Project, milestones):
    st.subheader("🎯 Milestones")
    progress = agg.milestone_progress(milestones, project)

    if milestones:
        st.progress(
            min(progress.completion_percentage / 100, 1.0),
            text=f"{progress.paid}/{progress.total} paid · "
                 f"{format_currency(progress.amount_paid)} received · "
                 f"{format_currency(progress.amount_outstanding)} outstanding",
        )

    service = get_service()
    for m in milestones:
        col_name, col_amount, col_status = st.columns([3, 2, 2])
        with col_name:
            st.markdown(f"**{m.name}**")
            details = [format_percentage(m.percentage, 0) if m.percentage is not None else None,
                       f"due {format_date(m.due_date)}" if m.due_date else None]
            st.caption(" · ".join(d for d in details if d) or (m.notes or ""))
        with col_amount:
            st.markdown(format_currency(agg.milestone_amount(m, project)))
        with col_status:
            new_status = st.selectbox(
                "Status", MILESTONE_STATUSES,
                index=MILESTONE_STATUSES.index(m.status) if m.status in MILESTONE_STATUSES else 0,
                key=f"milestone_status_{m.id}",
                format_func=lambda s: f"{MILESTONE_STATUS_STYLES[s]['emoji']} {MILESTONE_STATUS_STYLES[s]['label']}",
                label_visibility="collapsed",
            )
            if new_status != m.status:
                try:
                    service.set_milestone_status(m.id, new_status)
                    flash(f"Milestone '{m.name}' marked {MILESTONE_STATUS_STYLES[new_status]['label']}")
                    st.rerun()
                except Exception as e:
                    show_error("update the milestone", e)

    with st.expander("➕ Add milestone"):
        with st.form(f"milestone_form_{project.id}", clear_on_submit=True):
            name = st.text_input("Name *")
            col1, col2, col3 = st.columns(3)
            with col1:
                percentage = st.number_input("Percentage", min_value=0.0, max_value=100.0, step=5.0)
            with col2:
                amount = st.number_input("Amount (₹, 0 = from percentage)", min_value=0.0, step=1000.0)
            with col3:
                due_date = st.date_input("Due date", value=None)
            notes = st.text_input("Notes")
            if st.form_submit_button("Add milestone", type="primary"):
                milestone = Milestone(
                    id=None,
                    project_id=project.id,
                    name=name,
                    percentage=percentage or None,
                    amount=amount or None,
                    due_date=due_date,
                    notes=notes,
                )
                try:
                    service.create_milestone(milestone)
                    flash(f"✅ Milestone '{name}' added")
                    st.rerun()
                except Exception as e:
                    show_error("add the milestone", e)


def render_action_items(project: Project, items, today: date):
    st.subheader("📌 Action Items")
    service = get_service()

    if not items:
        st.caption("No action items for this project")

    for item in items:
        done = item.status == "done"
        overdue = not done and item.due_date is not None and item.due_date < today
        label = f"~~{item.description}~~" if done else item.description
        due = f" · due {format_date(item.due_date)}" if item.due_date else ""
        checked = st.checkbox(
            f"{label}{' 🔴' if overdue else ''}{due}",
            value=done,
            key=f"action_{item.id}",
        )
        if checked != done:
            try:
                service.toggle_action_item(item)
                st.rerun()
            except Exception as e:
                show_error("update the action item", e)

    with st.form(f"action_form_{project.id}", clear_on_submit=True):
        col1, col2 = st.columns([3, 1])
        with col1:
            description = st.text_input("New action item")
        with col2:
            due_date = st.date_input("Due", value=None)
        if st.form_submit_button("➕ Add"):
            try:
                service.create_action_item(ActionItem(
                    id=None, description=description, project_id=project.id, due_date=due_date,
                ))
                st.rerun()
            except Exception as e:
                show_error("add the action item", e)


def render_ledger(project_txns):
    st.subheader("📒 Transactions")
    if not project_txns:
        st.caption("No transactions for this project")
        return

    rows = agg.running_totals(project_txns)
    table = pd.DataFrame([
        {
            'Date': format_date(r.transaction.date),
            'Type': type_label(r.transaction.type),
            'Amount': format_currency(r.transaction.amount),
            'Mode': type_label(r.transaction.mode) if r.transaction.mode else '',
            'Running Total': format_currency(r.running_total),
            'Notes': r.transaction.notes or '',
        }
        for r in rows
    ])
    st.dataframe(table, use_container_width=True, hide_index=True)


def render_project_detail(snapshot, project: Project):
    today = date.today()
    if st.button("◄ Back to projects"):
        st.session_state.selected_project = None
        st.rerun()

    project_txns = agg.transactions_for(project.id, snapshot.transactions)
    totals = agg.project_totals(project, project_txns)
    received_rate = agg.collection_rate(totals.total_received, project.total_value)

    st.markdown(
        f"## {project.name} {badge(get_status_info(PROJECT_STATUS_STYLES, project.status))}",
        unsafe_allow_html=True,
    )
    st.caption(" · ".join(x for x in (
        project.client_name,
        f"created {format_date(project.created_at)}" if project.created_at else None,
    ) if x))
    if project.notes:
        st.markdown(f"<div class='info-box'>{project.notes}</div>", unsafe_allow_html=True)
    if project.quotation_url:
        st.markdown(f"📎 [Quotation]({project.quotation_url})")

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        metric_card("Total Value", format_currency(project.total_value), color="#3b82f6")
    with col2:
        metric_card("Billed", format_currency(totals.total_billed), "value + bills", "#eab308")
    with col3:
        metric_card("Received", format_currency(totals.total_received),
                    format_percentage(received_rate), traffic_light_color(received_rate))
    with col4:
        metric_card("Pending", format_currency(totals.pending),
                    f"credits {format_currency(totals.total_credits)}", "#f59e0b")

    tab_ledger, tab_milestones, tab_actions, tab_edit = st.tabs(
        ["📒 Ledger", "🎯 Milestones", "📌 Action Items", "✏️ Edit"]
    )
    with tab_ledger:
        render_ledger(project_txns)
    with tab_milestones:
        render_milestones(project, [m for m in snapshot.milestones if m.project_id == project.id])
    with tab_actions:
        render_action_items(project, [i for i in snapshot.action_items if i.project_id == project.id], today)
    with tab_edit:
        render_project_form(project)

        st.divider()
        if st.button("🗑️ Delete project", type="secondary"):
            request_confirmation(f"project_{project.id}")
            st.rerun()
        if confirm_action(
            f"project_{project.id}",
            f"Delete '{project.name}' with its {len(project_txns)} transactions, "
            "milestones and action items?",
        ):
            try:
                get_service().delete_project(project.id)
                st.session_state.selected_project = None
                flash(f"🗑️ Project '{project.name}' deleted")
                st.rerun()
            except Exception as e:
                show_error("delete the project", e)
                completed = getattr(e, 'completed', None)
                if completed:
                    st.warning(f"Already deleted before the failure: {', '.join(completed)}")


# ============================================================================
# MAIN
# ============================================================================

def main():
    apply_styles()
    init_session_state()
    flash()

    snapshot = load_snapshot()

    if st.session_state.selected_project:
        project = snapshot.project(st.session_state.selected_project)
        if project is None:
            st.warning("The project no longer exists")
            st.session_state.selected_project = None
        else:
            render_project_detail(snapshot, project)
            return

    st.title("🗂️ Projects")

    with st.expander("➕ New project", expanded=snapshot.is_empty):
        render_project_form()

    if snapshot.is_empty:
        st.info("No projects yet")
        return

    render_project_list(snapshot)
