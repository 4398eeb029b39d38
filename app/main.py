"""
Streamlit Frontend for Cashflow

DESIGN PRINCIPLES:
1. Every button maps to exactly one controller command
2. The page is redrawn from controller.state after every command
3. Clear error messages in simple language
4. AI features are optional; without an API key the ledger still works

The UI holds no ledger data of its own. The transaction being
edited is the only thing kept in session_state; search filters are
remembered per book by the controller.
"""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Optional

import streamlit as st
from babel.numbers import format_currency

from cashflow.agents import GenerationFailure
from cashflow.config import ConfigurationError, validate_all_settings
from cashflow.controller import LedgerController, create_app_components
from cashflow.ledger import ALL_BUSINESSES, LedgerError
from cashflow.models import (
    AppView,
    Dialog,
    Role,
    SearchFilters,
    Transaction,
    TransactionDraft,
    TransactionType,
)
from cashflow.services import CsvImportError, ExportError


st.set_page_config(
    page_title="Cashflow",
    page_icon="📒",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
    }
    .income {
        color: #16a34a;
        font-weight: bold;
    }
    .expense {
        color: #dc2626;
        font-weight: bold;
    }
</style>
""", unsafe_allow_html=True)


VIEW_LABELS = {
    AppView.DASHBOARD: "🏠 Dashboard",
    AppView.USERS: "👥 Team",
    AppView.REPORTS: "📈 Reports",
    AppView.SETTINGS: "⚙️ Settings",
}


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def get_controller() -> LedgerController:
    """One controller per browser session."""
    if "controller" not in st.session_state:
        try:
            st.session_state.controller = create_app_components(use_file_storage=True)
        except Exception as e:
            st.error(f"Failed to open saved data, starting a temporary session: {e}")
            st.session_state.controller = create_app_components(use_file_storage=False)
    return st.session_state.controller


def money(controller: LedgerController, amount: Decimal) -> str:
    return format_currency(amount, controller.currency, locale=controller.locale)


def run_command(action, *args, **kwargs):
    """Run a controller command, showing ledger rule violations to the user."""
    try:
        result = action(*args, **kwargs)
    except LedgerError as e:
        st.error(str(e))
        return None
    st.rerun()
    return result


def main():
    """Main application entry point."""
    controller = get_controller()
    state = controller.state

    if not state.is_authenticated:
        render_login_page(controller)
        return

    render_sidebar(controller)

    view = state.active_view
    if view == AppView.TRANSACTIONS and controller.active_book:
        render_transactions_page(controller)
    elif view == AppView.BOOK_SETTINGS and controller.active_book:
        render_book_settings_page(controller)
    elif view == AppView.USERS:
        render_team_page(controller)
    elif view == AppView.REPORTS:
        render_reports_page(controller)
    elif view == AppView.SETTINGS:
        render_settings_page(controller)
    else:
        render_dashboard_page(controller)


# =============================================================================
# LOGIN
# =============================================================================

def render_login_page(controller: LedgerController):
    st.title("📒 Cashflow")
    st.markdown("Simple bookkeeping for your business and your team.")

    login_tab, signup_tab = st.tabs(["Log in", "Sign up"])

    with login_tab:
        with st.form("login_form"):
            email = st.text_input("Email")
            if st.form_submit_button("Log in", type="primary"):
                if "@" not in email:
                    st.error("Please enter a valid email address")
                else:
                    controller.login(email)
                    st.rerun()

    with signup_tab:
        with st.form("signup_form"):
            full_name = st.text_input("Full name")
            email = st.text_input("Email", key="signup_email")
            if st.form_submit_button("Create account", type="primary"):
                if not full_name.strip() or "@" not in email:
                    st.error("Please enter your name and a valid email address")
                else:
                    controller.signup(full_name, email)
                    st.rerun()


# =============================================================================
# SIDEBAR
# =============================================================================

def render_sidebar(controller: LedgerController):
    state = controller.state

    st.sidebar.title("📒 Cashflow")
    st.sidebar.caption(f"Signed in as {state.current_user.name}")
    st.sidebar.markdown("---")

    if state.businesses:
        ids = [b.id for b in state.businesses]
        names = {b.id: b.name for b in state.businesses}
        current = ids.index(state.active_business_id) if state.active_business_id in ids else 0
        selected = st.sidebar.selectbox(
            "Business",
            options=ids,
            index=current,
            format_func=lambda business_id: names[business_id],
        )
        if selected != state.active_business_id:
            controller.select_business(selected)
            st.rerun()

    if st.sidebar.button("➕ New business"):
        controller.open_dialog(Dialog.CREATE_BUSINESS)
        st.rerun()

    if state.dialog == Dialog.CREATE_BUSINESS:
        with st.sidebar.form("create_business_form"):
            name = st.text_input("Business name")
            col1, col2 = st.columns(2)
            if col1.form_submit_button("Create", type="primary") and name.strip():
                run_command(controller.create_business, name)
            if col2.form_submit_button("Cancel"):
                controller.close_dialog()
                st.rerun()

    st.sidebar.markdown("---")
    for view, label in VIEW_LABELS.items():
        if st.sidebar.button(label, key=f"nav_{view.value}"):
            controller.select_view(view)
            st.rerun()

    st.sidebar.markdown("---")
    if st.sidebar.button("🚪 Log out"):
        controller.logout()
        st.rerun()


# =============================================================================
# DASHBOARD
# =============================================================================

def render_dashboard_page(controller: LedgerController):
    dashboard = controller.dashboard()
    if dashboard is None:
        st.title("🏠 Dashboard")
        st.info("Create a business from the sidebar to get started.")
        return

    st.title(f"🏠 {dashboard.name}")

    col1, col2, col3 = st.columns(3)
    col1.metric("Total In", money(controller, dashboard.totals.total_income))
    col2.metric("Total Out", money(controller, dashboard.totals.total_expense))
    col3.metric("Net Balance", money(controller, dashboard.totals.net_balance))

    st.markdown("---")
    st.subheader("📚 Books")

    if not dashboard.books:
        st.info("No books yet. Create one to start recording transactions.")

    for card in dashboard.books:
        with st.container(border=True):
            col1, col2, col3 = st.columns([3, 2, 1])
            col1.markdown(f"**{card.name}**")
            col1.caption(
                f"{card.transaction_count} transactions"
                + (f", last on {card.last_activity.isoformat()}" if card.last_activity else "")
            )
            col2.markdown(f"Balance: **{money(controller, card.summary.net_balance)}**")
            if col3.button("Open", key=f"open_{card.book_id}"):
                controller.open_book(card.book_id)
                st.rerun()

    if controller.state.dialog == Dialog.CREATE_BOOK:
        with st.form("create_book_form"):
            name = st.text_input("Book name")
            col1, col2 = st.columns(2)
            if col1.form_submit_button("Create", type="primary") and name.strip():
                run_command(controller.create_book, name)
            if col2.form_submit_button("Cancel"):
                controller.close_dialog()
                st.rerun()
    elif st.button("➕ New book"):
        controller.open_dialog(Dialog.CREATE_BOOK)
        st.rerun()

    events = controller.recent_activity(limit=10)
    if events:
        with st.expander("🕑 Recent activity"):
            for event in events:
                st.markdown(f"- {event.timestamp:%Y-%m-%d %H:%M} · {event.description}")


# =============================================================================
# TRANSACTIONS
# =============================================================================

def render_transaction_form(
    controller: LedgerController,
    book_id,
    existing: Optional[Transaction] = None,
):
    """Create or edit form. AI can expand the description first."""
    key = f"tx_form_{existing.id if existing else 'new'}"

    # A widget's value can only be replaced before the widget is drawn
    if f"{key}_expanded" in st.session_state:
        st.session_state[f"{key}_note"] = st.session_state.pop(f"{key}_expanded")
    elif f"{key}_note" not in st.session_state:
        st.session_state[f"{key}_note"] = existing.description if existing else ""

    note = st.text_input("Description", key=f"{key}_note")
    if st.button("✨ Expand with AI", key=f"{key}_expand") and note.strip():
        with st.spinner("Writing a clearer description..."):
            try:
                st.session_state[f"{key}_expanded"] = run_async(controller.expand_description(note))
                st.rerun()
            except (ConfigurationError, GenerationFailure) as e:
                st.error(str(e))

    with st.form(key):
        col1, col2, col3 = st.columns(3)
        tx_type = col1.selectbox(
            "Type",
            options=list(TransactionType),
            index=list(TransactionType).index(existing.type) if existing else 0,
            format_func=lambda t: "Cash In" if t == TransactionType.INCOME else "Cash Out",
        )
        amount = col2.number_input(
            "Amount",
            min_value=0.0,
            step=0.01,
            format="%.2f",
            value=float(existing.amount) if existing else 0.0,
        )
        tx_date = col3.date_input("Date", value=existing.date if existing else date.today())

        col1, col2 = st.columns(2)
        submitted = col1.form_submit_button("Save", type="primary")
        cancelled = col2.form_submit_button("Cancel")

    if cancelled:
        st.session_state.pop("editing_tx_id", None)
        controller.close_dialog()
        st.rerun()

    if submitted:
        draft = TransactionDraft(
            type=tx_type,
            amount=Decimal(str(amount)).quantize(Decimal("0.01")),
            description=note,
            date=tx_date,
        )
        if existing:
            st.session_state.pop("editing_tx_id", None)
            run_command(controller.update_transaction, book_id, existing.id, draft)
        else:
            run_command(controller.create_transaction, book_id, draft)


def render_search(controller: LedgerController) -> SearchFilters:
    filters = controller.search_filters

    with st.form("search_form"):
        col1, col2 = st.columns([4, 1])
        query = col1.text_input(
            "Search",
            placeholder='e.g. "coffee expenses last week" or "income over 500 in March"',
        )
        use_ai = col2.toggle("AI search", value=True)
        if st.form_submit_button("🔍 Search"):
            if not query.strip():
                filters = SearchFilters()
            elif use_ai:
                with st.spinner("Understanding your search..."):
                    try:
                        filters = run_async(controller.search(query))
                    except ConfigurationError as e:
                        st.warning(f"{e}. Searching descriptions instead.")
                        filters = SearchFilters(text=query)
            else:
                filters = SearchFilters(text=query)
            controller.set_search_filters(filters)

    if not filters.is_empty:
        col1, col2 = st.columns([4, 1])
        shown = filters.model_dump(by_alias=True, exclude_none=True, mode="json")
        col1.caption("Active filters: " + ", ".join(f"{k}={v}" for k, v in shown.items()))
        if col2.button("Clear filters"):
            controller.set_search_filters(None)
            st.rerun()

    return filters


def render_transactions_page(controller: LedgerController):
    book = controller.active_book

    col1, col2 = st.columns([4, 1])
    col1.title(f"📖 {book.name}")
    if col2.button("⚙️ Book settings"):
        controller.select_view(AppView.BOOK_SETTINGS)
        st.rerun()

    filters = render_search(controller)
    view = controller.ledger_view(filters)

    col1, col2, col3 = st.columns(3)
    col1.metric("Total In", money(controller, view.summary.total_income))
    col2.metric("Total Out", money(controller, view.summary.total_expense))
    col3.metric("Net Balance", money(controller, view.summary.net_balance))
    st.caption(f"Showing {view.filtered_count} of {view.total_count} transactions")

    col1, col2, col3 = st.columns(3)
    if col1.button("➕ Add transaction", type="primary"):
        controller.open_dialog(Dialog.CREATE_TRANSACTION)
        st.rerun()
    if col2.button("📤 Import CSV"):
        controller.open_dialog(Dialog.UPLOAD_TRANSACTIONS)
        st.rerun()
    if not view.is_empty:
        try:
            document = controller.export_pdf(filters)
            col3.download_button(
                "📄 Export PDF",
                data=document.content,
                file_name=document.filename,
                mime="application/pdf",
            )
        except ExportError as e:
            col3.error(str(e))

    dialog = controller.state.dialog
    if dialog == Dialog.CREATE_TRANSACTION:
        st.subheader("New transaction")
        render_transaction_form(controller, book.id)
    elif dialog == Dialog.UPLOAD_TRANSACTIONS:
        render_import(controller, book.id)

    st.markdown("---")

    if view.is_empty:
        st.info("No transactions match." if view.total_count else "No transactions yet.")
        return

    editing_id = st.session_state.get("editing_tx_id")
    for group in view.groups:
        st.markdown(f"#### {group.label}")
        for entry in group.entries:
            tx = entry.transaction
            if tx.id == editing_id:
                render_transaction_form(controller, book.id, existing=tx)
                continue

            col1, col2, col3, col4, col5 = st.columns([4, 2, 2, 1, 1])
            col1.markdown(tx.description or "_No description_")
            col1.caption(f"by {tx.creator_name or 'unknown'}")
            css = "income" if tx.is_income else "expense"
            sign = "+" if tx.is_income else "-"
            col2.markdown(
                f'<span class="{css}">{sign}{money(controller, tx.amount)}</span>',
                unsafe_allow_html=True,
            )
            col3.caption(f"Balance {money(controller, entry.balance)}")
            if col4.button("✏️", key=f"edit_{tx.id}"):
                st.session_state.editing_tx_id = tx.id
                st.rerun()
            if col5.button("🗑️", key=f"delete_{tx.id}"):
                run_command(controller.delete_transaction, book.id, tx.id)


def render_import(controller: LedgerController, book_id):
    st.subheader("Import transactions")
    st.markdown(
        "Upload a CSV with a header row: `date, description, type, amount` "
        "or `date, description, cash in, cash out`."
    )
    uploaded = st.file_uploader("CSV file", type=["csv"])

    col1, col2 = st.columns(2)
    if col1.button("Import", type="primary", disabled=uploaded is None):
        text = uploaded.getvalue().decode("utf-8", errors="replace")
        try:
            result = controller.import_csv(book_id, text)
        except CsvImportError as e:
            st.error(f"Could not import this file: {e}")
            return
        st.success(f"Imported {len(result.drafts)} transactions")
        for issue in result.issues:
            st.warning(f"Row {issue.row} skipped: {issue.message}")
    if col2.button("Close"):
        controller.close_dialog()
        st.rerun()


def render_book_settings_page(controller: LedgerController):
    book = controller.active_book
    st.title(f"⚙️ {book.name}")

    with st.form("rename_book_form"):
        name = st.text_input("Book name", value=book.name)
        if st.form_submit_button("Save") and name.strip():
            run_command(controller.update_book, book.id, name)

    if st.button("← Back to transactions"):
        controller.select_view(AppView.TRANSACTIONS)
        st.rerun()

    st.markdown("---")
    st.markdown("### Danger zone")
    if controller.state.dialog == Dialog.CONFIRM_DELETE:
        st.warning(f"Delete **{book.name}** and all {len(book.transactions)} transactions?")
        col1, col2 = st.columns(2)
        if col1.button("Yes, delete", type="primary"):
            run_command(controller.delete_book, book.id)
        if col2.button("Cancel"):
            controller.close_dialog()
            st.rerun()
    elif st.button("🗑️ Delete book"):
        controller.open_dialog(Dialog.CONFIRM_DELETE)
        st.rerun()


# =============================================================================
# TEAM
# =============================================================================

def render_team_page(controller: LedgerController):
    business = controller.active_business
    st.title("👥 Team")
    if business is None:
        st.info("Select a business first.")
        return

    st.subheader(business.name)
    for member in business.team:
        col1, col2, col3 = st.columns([4, 2, 1])
        col1.markdown(f"**{member.name}**  \n{member.email}")
        if member.role == Role.OWNER:
            col2.markdown("👑 Owner")
            continue
        roles = [Role.MANAGER, Role.MEMBER]
        role = col2.selectbox(
            "Role",
            options=roles,
            index=roles.index(member.role),
            format_func=lambda r: r.value,
            key=f"role_{member.id}",
            label_visibility="collapsed",
        )
        if role != member.role:
            run_command(controller.update_member_role, member.id, role)
        if col3.button("Remove", key=f"remove_{member.id}"):
            run_command(controller.remove_member, member.id)

    st.markdown("---")
    col1, col2 = st.columns(2)

    with col1:
        st.markdown("### Invite a member")
        with st.form("invite_form"):
            email = st.text_input("Email")
            role = st.selectbox("Role", options=[Role.MEMBER, Role.MANAGER], format_func=lambda r: r.value)
            everywhere = st.checkbox("Add to all my businesses")
            if st.form_submit_button("Invite", type="primary"):
                if "@" not in email:
                    st.error("Please enter a valid email address")
                else:
                    target = ALL_BUSINESSES if everywhere else business.id
                    run_command(controller.invite_member, target, email, role)

    with col2:
        st.markdown("### Transfer ownership")
        with st.form("transfer_form"):
            email = st.text_input("New owner's email")
            st.caption("The current owner becomes a Manager.")
            if st.form_submit_button("Transfer"):
                if "@" not in email:
                    st.error("Please enter a valid email address")
                else:
                    run_command(controller.transfer_ownership, business.id, email)


# =============================================================================
# REPORTS
# =============================================================================

def render_reports_page(controller: LedgerController):
    business = controller.active_business
    st.title("📈 Reports")
    if business is None:
        st.info("Select a business first.")
        return

    book_ids = [None] + [b.id for b in business.books]
    names = {b.id: b.name for b in business.books}

    col1, col2, col3 = st.columns(3)
    book_id = col1.selectbox(
        "Book",
        options=book_ids,
        format_func=lambda i: "All books" if i is None else names[i],
    )
    start_date = col2.date_input("From", value=date.today().replace(day=1))
    end_date = col3.date_input("To", value=date.today())

    if st.button("✨ Generate AI summary", type="primary"):
        with st.spinner("Analyzing your transactions..."):
            try:
                summary = run_async(
                    controller.summarize_period(book_id, start_date, end_date)
                )
                st.markdown(summary)
            except (ConfigurationError, GenerationFailure, LedgerError) as e:
                st.error(str(e))


# =============================================================================
# SETTINGS
# =============================================================================

def render_settings_page(controller: LedgerController):
    st.title("⚙️ Settings")

    business = controller.active_business
    if business is not None:
        st.markdown("### Business")
        with st.form("rename_business_form"):
            name = st.text_input("Business name", value=business.name)
            if st.form_submit_button("Save") and name.strip():
                run_command(controller.update_business, business.id, name)

        if controller.state.dialog == Dialog.CONFIRM_DELETE:
            st.warning(
                f"Delete **{business.name}** with {len(business.books)} books "
                f"and {business.transaction_count} transactions?"
            )
            col1, col2 = st.columns(2)
            if col1.button("Yes, delete", type="primary"):
                run_command(controller.delete_business, business.id)
            if col2.button("Cancel"):
                controller.close_dialog()
                st.rerun()
        elif st.button("🗑️ Delete business"):
            controller.open_dialog(Dialog.CONFIRM_DELETE)
            st.rerun()

    st.markdown("---")
    st.markdown("### Connection Status")

    status = validate_all_settings()
    services = [
        ("Gemini (AI assist)", "gemini"),
        ("Local storage", "storage"),
        ("Application", "app"),
    ]
    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown(
        "To configure the application, create a `.env` file with "
        "`GEMINI_API_KEY`, and optionally `CASHFLOW_LOCALE`, `CASHFLOW_CURRENCY` "
        "and `CASHFLOW_STORAGE_SNAPSHOT_PATH`."
    )


if __name__ == "__main__":
    main()
