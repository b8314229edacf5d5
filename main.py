"""
HISAB - Small Business Bookkeeping
Main entry point of the dashboard

    streamlit run main.py

Version: 1.0
"""

import importlib
import logging
import os

import streamlit as st

from settings import configure_logging, load_settings

logger = logging.getLogger(__name__)

# ============================================================================
# PAGE CONFIGURATION
# ============================================================================

st.set_page_config(
    page_title="Hisab - Bookkeeping",
    page_icon="📒",
    layout="wide",
    initial_sidebar_state="expanded"
)

st.markdown("""
<style>
    .main-header {
        background: linear-gradient(90deg, #065f46 0%, #10b981 100%);
        padding: 20px;
        border-radius: 10px;
        margin-bottom: 20px;
    }

    .module-card {
        background: white;
        padding: 20px;
        border-radius: 10px;
        border: 2px solid #e5e7eb;
        margin: 10px 0;
        transition: all 0.3s;
    }

    .module-card:hover {
        border-color: #10b981;
        box-shadow: 0 4px 6px rgba(0, 0, 0, 0.1);
    }
</style>
""", unsafe_allow_html=True)

# ============================================================================
# MODULES
# ============================================================================

MODULES = {
    'dashboard': {
        'name': 'Dashboard',
        'icon': '📊',
        'description': 'Totals, recent activity and open action items',
        'page': 'dashboard',
    },
    'projects': {
        'name': 'Projects',
        'icon': '🗂️',
        'description': 'Projects, balances, milestones and follow-ups',
        'page': 'projects',
    },
    'transactions': {
        'name': 'Transactions',
        'icon': '💸',
        'description': 'Record bills and payments, browse the ledger',
        'page': 'transactions',
    },
    'pending': {
        'name': 'Pending Payments',
        'icon': '⏳',
        'description': 'Who owes what and for how long',
        'page': 'pending_payments',
    },
    'quotations': {
        'name': 'Quotations',
        'icon': '📝',
        'description': 'Quotes sent to clients and their status',
        'page': 'quotations',
    },
    'reports': {
        'name': 'Reports',
        'icon': '📈',
        'description': 'Trends, aging and CSV / Excel / PDF exports',
        'page': 'reports',
    },
    'setup': {
        'name': 'Setup',
        'icon': '⚙️',
        'description': 'Load sample data into an empty store',
        'page': None,
    },
}


# ============================================================================
# INITIALIZATION
# ============================================================================

@st.cache_resource
def init_logging() -> str:
    """Configures logging once per server process; returns the backend name"""
    settings = load_settings()
    configure_logging(settings.log_level)
    logger.info("Hisab starting with the %s backend", settings.backend)
    return settings.backend


def init_session_state():
    if 'current_module' not in st.session_state:
        st.session_state.current_module = None


def go_home():
    st.session_state.current_module = None


# ============================================================================
# RENDERING
# ============================================================================

def render_sidebar(backend: str):
    with st.sidebar:
        if st.session_state.current_module is not None:
            st.button("◄ Back to Home", use_container_width=True, on_click=go_home)
            st.markdown("---")

        for key, module in MODULES.items():
            if st.button(
                f"{module['icon']} {module['name']}",
                key=f"nav_{key}",
                use_container_width=True,
                type="primary" if st.session_state.current_module == key else "secondary",
            ):
                st.session_state.current_module = key
                st.rerun()

        st.markdown("---")
        st.caption(f"Store: {backend}")


def render_home():
    st.markdown("""
    <div class="main-header">
        <h1 style="color: white; margin: 0;">📒 Hisab</h1>
        <p style="color: #d1fae5; margin: 5px 0 0 0;">
            Projects, invoices, payments and receivables in one place
        </p>
    </div>
    """, unsafe_allow_html=True)

    st.markdown("Select a module to start:")

    cols = st.columns(3)
    for idx, (key, module) in enumerate(MODULES.items()):
        with cols[idx % 3]:
            st.markdown(f"""
            <div class="module-card">
                <h2 style="margin: 0;">{module['icon']} {module['name']}</h2>
                <p style="color: #6b7280; margin: 10px 0;">
                    {module['description']}
                </p>
            </div>
            """, unsafe_allow_html=True)

            if st.button(
                f"{module['icon']} Open {module['name']}",
                key=f"btn_{key}",
                use_container_width=True,
                type="primary"
            ):
                st.session_state.current_module = key
                st.rerun()

    st.markdown("---")
    st.markdown("### 📊 At a glance")

    try:
        from ui_common import get_service
        from utils_format import format_currency_compact
        import aggregation_core as agg

        snapshot = get_service().load_snapshot()
        portfolio = agg.portfolio_totals(snapshot.projects, snapshot.transactions)
        active = len([p for p in snapshot.projects if p.status in ('active', 'in_process')])

        col1, col2, col3 = st.columns(3)
        with col1:
            st.metric("🗂️ Projects", portfolio.project_count, f"{active} active", delta_color="off")
        with col2:
            st.metric("💰 Received", format_currency_compact(portfolio.total_received))
        with col3:
            st.metric("⏳ Pending", format_currency_compact(portfolio.pending_receivable))

    except Exception as e:
        st.warning(f"Could not load the statistics: {e}")


def render_setup():
    st.title("⚙️ Setup")
    st.markdown(
        "Loads five sample projects (Linkist, Neuro, 4C, Headz, Various) with "
        "their transactions, the Neuro milestones and a few action items. "
        "Only runs when the store has no projects."
    )

    from ui_common import get_service

    if st.button("📥 Load sample data", type="primary"):
        try:
            with st.spinner("Loading sample data..."):
                loaded, message = get_service().seed()
            if loaded:
                st.success(f"✅ {message}")
            else:
                st.info(message)
        except Exception as e:
            st.error(f"❌ Could not load the sample data: {e}")
            st.exception(e)


def render_module(key: str):
    """Imports the page module and runs its main()"""
    module = MODULES[key]
    if module['page'] is None:
        render_setup()
        return

    try:
        page = importlib.import_module(module['page'])

        if 'STREAMLIT_ENV' in os.environ:
            importlib.reload(page)

        page.main()

    except ImportError as e:
        st.error(f"❌ Could not import the {module['name']} module: {e}")
        st.info(f"**Fix:** make sure `{module['page']}.py` is in the same directory as `main.py`")
    except AttributeError:
        st.error(f"❌ `{module['page']}.py` has no `main()` function")
    except Exception as e:
        st.error(f"❌ Unexpected error: {e}")
        st.exception(e)


# ============================================================================
# MAIN - ENTRY POINT
# ============================================================================

def main():
    try:
        backend = init_logging()
    except ValueError as e:
        st.error(f"❌ Invalid configuration: {e}")
        st.stop()

    init_session_state()
    render_sidebar(backend)

    current = st.session_state.current_module
    if current is None:
        render_home()
    elif current in MODULES:
        render_module(current)
    else:
        st.error(f"Module '{current}' not recognized")
        if st.button("Back to home"):
            go_home()
            st.rerun()


if __name__ == "__main__":
    main()
