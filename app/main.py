"""
Streamlit Frontend for Fincora

The screen a user sees after picking a bank statement: what the
classifier found, grouped by category, each row with a checkbox.

DESIGN PRINCIPLES:
1. Nothing is imported without an explicit "Import" press
2. Every row starts selected; the user only unticks what they don't want
3. Errors are one plain sentence, never a stack trace
4. The ledger view is read-only here

The UI never talks to the parser or ledger directly for the import:
it goes through StatementImportFlow, which audits every step.
"""

import asyncio
import html
import os
import tempfile
from pathlib import Path

import streamlit as st

from fincora.audit import create_correlation_id
from fincora.ledger import TransactionLedger
from fincora.orchestrator import StatementImportFlow, create_app_components
from fincora.review import ALL_CATEGORIES, ImportReviewSession, SessionState
from fincora.services.storage import StorageError


# Page configuration
st.set_page_config(
    page_title="Fincora",
    page_icon="💳",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .summary-box {
        padding: 20px;
        background-color: rgba(93, 92, 222, 0.08);
        border-radius: 10px;
        border-left: 5px solid #5D5CDE;
        margin: 10px 0;
    }
    .error-box {
        padding: 20px;
        background-color: #f8d7da;
        border-radius: 10px;
        border-left: 5px solid #dc3545;
        margin: 10px 0;
    }
    .chip {
        display: inline-block;
        padding: 2px 10px;
        border-radius: 12px;
        margin-right: 6px;
        font-size: 0.85em;
    }
    .big-number {
        font-size: 2.5em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    try:
        return create_app_components(use_storage=True)
    except Exception as e:
        st.error(f"Failed to open the ledger file: {e}")
        return create_app_components(use_storage=False)


def main():
    """Main application entry point."""
    import_flow, ledger = get_components()

    st.sidebar.title("💳 Fincora")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📥 Import Statement", "📊 Transactions", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **How to import:**
        1. Upload your bank statement PDF
        2. Untick anything you don't want
        3. Press Import
        """
    )

    if page == "📥 Import Statement":
        render_import_page(import_flow)
    elif page == "📊 Transactions":
        render_transactions_page(ledger)
    elif page == "⚙️ Settings":
        render_settings_page()


def _parse_upload(import_flow: StatementImportFlow, uploaded_file) -> tuple[bool, str]:
    """Write the upload to a temp file so the parser can read it by path."""
    suffix = Path(uploaded_file.name).suffix
    with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as handle:
        handle.write(uploaded_file.getvalue())
        temp_path = handle.name
    try:
        return run_async(
            import_flow.import_statement(
                temp_path,
                correlation_id=st.session_state.correlation_id,
            )
        )
    finally:
        os.unlink(temp_path)


def error_box(heading: str, message: str) -> str:
    """HTML for the red error card. Message text is escaped."""
    return f"""
    <div class="error-box">
        <h4>❌ {html.escape(heading)}</h4>
        <p>{html.escape(message)}</p>
    </div>
    """


def render_import_page(import_flow: StatementImportFlow):
    """Render the statement import page."""
    st.title("📥 Import Statement")
    st.markdown("Upload a bank statement PDF to review its transactions.")

    if "correlation_id" not in st.session_state:
        st.session_state.correlation_id = None
    if "import_message" not in st.session_state:
        st.session_state.import_message = None

    session = import_flow.session

    # Step 1: Upload
    uploaded_file = st.file_uploader(
        "Choose a statement",
        type=["pdf"],
        help="Statements exported from your bank app as PDF",
    )

    if uploaded_file and session.state != SessionState.LOADED:
        if st.button("🔍 Parse Statement", type="primary"):
            st.session_state.correlation_id = create_correlation_id()
            with st.spinner("Reading your statement... Please wait."):
                loaded, message = _parse_upload(import_flow, uploaded_file)
            if not loaded:
                st.markdown(error_box("Could not import", message), unsafe_allow_html=True)
                st.stop()
            st.rerun()

    if session.state == SessionState.COMMITTED:
        st.success(f"✅ Imported {session.committed_count} transactions")
        return

    if session.state != SessionState.LOADED:
        return

    # Step 2: Review
    render_summary(session)
    render_filter_chips(session)
    render_candidates(session)

    # Step 3: Import or discard
    st.markdown("---")
    col1, col2 = st.columns(2)
    selected = session.selected_count

    with col1:
        if st.button(f"✅ Import {selected}", type="primary", disabled=selected == 0):
            try:
                run_async(import_flow.commit_selected(correlation_id=st.session_state.correlation_id))
            except StorageError:
                st.markdown(
                    error_box("Could not save", "Your ledger could not be saved. Nothing was imported, please try again."),
                    unsafe_allow_html=True,
                )
                st.stop()
            st.rerun()

    with col2:
        if st.button("🗑️ Discard"):
            run_async(import_flow.reset(correlation_id=st.session_state.correlation_id))
            st.rerun()


def render_summary(session: ImportReviewSession):
    summary = session.get_summary()

    lines = "".join(
        f"<p>{html.escape(item.label)}: {item.count}</p>" for item in summary.top_categories()
    )
    hidden = summary.hidden_category_count()
    if hidden:
        lines += f"<p>+{hidden} more</p>"

    bank = f"<p>Detected: {html.escape(summary.detected_bank)}</p>" if summary.detected_bank else ""

    st.markdown(f"""
    <div class="summary-box">
        <div class="big-number">{summary.total_count}</div>
        <p>transactions found, {summary.selected_count} selected</p>
        {bank}
        {lines}
    </div>
    """, unsafe_allow_html=True)


def render_filter_chips(session: ImportReviewSession):
    """One button per category present, plus "All"."""
    labels = [ALL_CATEGORIES] + [item.label for item in session.category_summary()]
    columns = st.columns(len(labels))

    for column, label in zip(columns, labels):
        with column:
            active = session.category_filter == label
            if st.button(label, key=f"filter_{label}", type="primary" if active else "secondary"):
                session.set_filter(label)
                st.rerun()

    col1, col2 = st.columns(2)
    with col1:
        if st.button("Select all"):
            session.select_all()
            st.rerun()
    with col2:
        if st.button("Deselect all"):
            session.deselect_all()
            st.rerun()


def render_candidates(session: ImportReviewSession):
    for candidate in session.get_candidates():
        color = candidate.category.color
        col1, col2, col3 = st.columns([1, 6, 2])

        with col1:
            checked = st.checkbox(
                "Import",
                value=candidate.is_selected,
                key=f"candidate_{candidate.id}",
                label_visibility="collapsed",
            )
            if checked != candidate.is_selected:
                session.toggle_selection(candidate.id)
                st.rerun()

        with col2:
            st.markdown(
                f"**{candidate.category.icon} {html.escape(candidate.title)}**  \n"
                f"<span class='chip' style='background:{candidate.category.soft_color};"
                f"color:{color}'>{candidate.category.value}</span>"
                f"{candidate.formatted_date}",
                unsafe_allow_html=True,
            )

        with col3:
            st.markdown(f"**{candidate.formatted_amount}**")


def render_transactions_page(ledger: TransactionLedger):
    """Render the read-only ledger overview."""
    st.title("📊 Transactions")

    col1, col2, col3 = st.columns(3)
    col1.metric("Income", f"${ledger.total_income:,.2f}")
    col2.metric("Expenses", f"${ledger.total_expenses:,.2f}")
    col3.metric("Balance", f"${ledger.balance:,.2f}")

    if len(ledger) == 0:
        st.info(
            "📋 Your transactions will appear here once you import them. "
            "Use the 'Import Statement' page to add your first statement."
        )
        return

    st.markdown("### Spending by category")
    for item in ledger.category_spending():
        st.markdown(f"{item.category.icon} {item.category.value}: ${item.amount:,.2f}")
        st.progress(min(item.percentage, 1.0))

    st.markdown("### Recent")
    for transaction in ledger.recent(limit=20):
        st.markdown(
            f"{transaction.date:%d.%m.%Y} · {transaction.title} · "
            f"**{transaction.formatted_amount}**"
        )


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Configuration Status")

    from fincora.config import get_settings, validate_all_settings

    status = validate_all_settings()

    sections = [
        ("Statement parser", "parser"),
        ("Ledger storage", "ledger"),
        ("Application", "app"),
    ]

    for name, key in sections:
        if status.get(key, False):
            st.success(f"✅ {name} - OK")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    if status.get("parser"):
        st.markdown(f"Parser endpoint: `{get_settings().parser.classify_url}`")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file. "
        "See `.env.example` for the available variables."
    )


if __name__ == "__main__":
    main()
