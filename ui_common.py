"""
HISAB - Shared Page Helpers
===========================

Pieces every page uses: the cached service handle, the CSS, metric cards,
session-state selection sets and the two-step delete confirmation.

Pages do NOT call st.set_page_config(); main.py already did.
"""

import logging
from typing import Dict, Iterable, List, Optional

import streamlit as st

from entities_core import Project
from filters_core import SelectionSet
from ledger_service import LedgerService, LedgerSnapshot
from record_store import HisabError
from settings import Settings, build_store, load_settings

logger = logging.getLogger(__name__)

# ============================================================================
# STYLES
# ============================================================================

CUSTOM_CSS = """
<style>
    .metric-card {
        background-color: #f8fafc;
        padding: 16px;
        border-radius: 10px;
        border-left: 5px solid #10b981;
        margin-bottom: 10px;
    }
    .metric-card h4 {
        margin: 0;
        color: #475569;
        font-size: 0.9rem;
    }
    .metric-card p.value {
        font-size: 1.7rem;
        font-weight: bold;
        margin: 6px 0 0 0;
    }
    .info-box {
        background-color: #ecfdf5;
        padding: 15px;
        border-radius: 5px;
        border-left: 5px solid #10b981;
        margin: 10px 0;
    }
    .badge {
        padding: 2px 8px;
        border-radius: 10px;
        color: white;
        font-size: 0.8rem;
    }
</style>
"""


def apply_styles():
    st.markdown(CUSTOM_CSS, unsafe_allow_html=True)


# ============================================================================
# SERVICE HANDLE
# ============================================================================

@st.cache_resource
def get_settings() -> Settings:
    return load_settings()


@st.cache_resource
def get_service() -> LedgerService:
    """One service (and store connection) per server process"""
    settings = get_settings()
    logger.info("Using %s record store", settings.backend)
    return LedgerService(build_store(settings), documents_bucket=settings.documents_bucket)


def load_snapshot() -> LedgerSnapshot:
    with st.spinner("Loading records..."):
        return get_service().load_snapshot()


# ============================================================================
# WIDGETS
# ============================================================================

def metric_card(title: str, value: str, subtitle: str = "", color: str = "#10b981"):
    st.markdown(f"""
    <div class="metric-card" style="border-left-color: {color};">
        <h4>{title}</h4>
        <p class="value" style="color: {color};">{value}</p>
        <p style="color: #6b7280; margin: 0; font-size: 0.8rem;">{subtitle}</p>
    </div>
    """, unsafe_allow_html=True)


def badge(style: dict) -> str:
    """Inline HTML badge for a status style from utils_format"""
    return (
        f"<span class='badge' style='background-color: {style['color']};'>"
        f"{style['emoji']} {style['label']}</span>"
    )


def project_options(projects: Iterable[Project], include_all: bool = False) -> Dict[str, str]:
    """id -> label mapping for selectboxes ('all' first when requested)"""
    options = {"all": "All projects"} if include_all else {}
    for p in sorted(projects, key=lambda p: p.name.casefold()):
        label = f"{p.name} ({p.client_name})" if p.client_name else p.name
        options[p.id] = label
    return options


def show_error(action: str, error: Exception):
    """Blocking alert for a failed write; the user can resubmit"""
    if isinstance(error, HisabError):
        st.error(f"❌ Could not {action}: {error}")
    else:
        logger.exception("Unexpected error while trying to %s", action)
        st.error(f"❌ Unexpected error while trying to {action}: {error}")


# ============================================================================
# SESSION STATE
# ============================================================================

def selection(key: str) -> SelectionSet:
    """Selection set stored under `key` in session_state"""
    if key not in st.session_state:
        st.session_state[key] = SelectionSet()
    return st.session_state[key]


def selection_checkboxes(key: str, rows: List[dict], label_field: str) -> SelectionSet:
    """
    Select-all checkbox plus one checkbox per visible row.

    Rows need an 'id' field. Ids hidden by the current filters are dropped
    from the selection, so a bulk action only touches what is on screen.
    """
    selected = selection(key)
    visible_ids = [row['id'] for row in rows]
    selected.retain(visible_ids)

    all_key = f"{key}_all"
    st.session_state[all_key] = selected.all_selected(visible_ids)
    st.checkbox(
        f"Select all ({len(visible_ids)})",
        key=all_key,
        on_change=selected.toggle_all,
        args=(visible_ids,),
    )

    for row in rows:
        row_key = f"{key}_{row['id']}"
        st.session_state[row_key] = row['id'] in selected
        st.checkbox(
            row[label_field],
            key=row_key,
            on_change=selected.toggle,
            args=(row['id'],),
        )

    return selected


def confirm_action(key: str, message: str) -> bool:
    """
    Two-step confirmation: the first click arms it, "Yes" confirms.

    Returns True exactly once, on the run where the user confirms.
    """
    flag = f"confirm_{key}"
    if not st.session_state.get(flag):
        return False

    st.warning(message)
    col_yes, col_no = st.columns(2)
    with col_yes:
        if st.button("✅ Yes, delete", key=f"{flag}_yes", type="primary", use_container_width=True):
            st.session_state[flag] = False
            return True
    with col_no:
        if st.button("Cancel", key=f"{flag}_no", use_container_width=True):
            st.session_state[flag] = False
            st.rerun()
    return False


def request_confirmation(key: str):
    st.session_state[f"confirm_{key}"] = True


def flash(message: Optional[str] = None):
    """Stores a success message to show after st.rerun(), or shows the stored one"""
    if message is not None:
        st.session_state["flash_message"] = message
        return
    stored = st.session_state.pop("flash_message", None)
    if stored:
        st.success(stored)
