"""
Streamlit Frontend for Bill Mate

The screen roommates open to see who owes the house manager what,
and the manager opens to log shared bills and repayments.

DESIGN PRINCIPLES:
1. Balances first: the dashboard is the landing page
2. Every entry is validated before it is written
3. Clear error messages in plain language
4. The spreadsheet stays the source of truth; this is a window onto it
"""

import asyncio
from datetime import date

import streamlit as st

from billmate.balances import BalanceTone, balance_tone, format_currency
from billmate.config import get_settings, validate_all_settings
from billmate.orchestrator import BalanceFlow, HomeFlow, LedgerFlow, create_app_components
from billmate.services.invites import InviteError
from billmate.services.storage import (
    HomeNotConfiguredError,
    ManagerNotSetError,
    StorageError,
)
from billmate.session import extract_spreadsheet_id, spreadsheet_url
from billmate.validation import EntryValidator


# Page configuration
st.set_page_config(
    page_title="Bill Mate",
    page_icon="🏠",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .balance-owes { color: #dc3545; font-weight: bold; }
    .balance-credit { color: #28a745; font-weight: bold; }
    .balance-settled { color: #6c757d; }
    .token-box {
        font-size: 2em;
        font-family: monospace;
        letter-spacing: 0.2em;
        padding: 10px 20px;
        background-color: #cce5ff;
        border-radius: 10px;
        text-align: center;
    }
</style>
""", unsafe_allow_html=True)


TONE_CLASSES = {
    BalanceTone.OWES: "balance-owes",
    BalanceTone.CREDIT: "balance-credit",
    BalanceTone.SETTLED: "balance-settled",
}


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
        st.error(f"Failed to initialize: {e}")
        return create_app_components(use_storage=False)


def main():
    """Main application entry point."""
    ledger_flow, balance_flow, home_flow, sheets_client = get_components()
    state = home_flow.state

    st.sidebar.title("🏠 Bill Mate")
    st.sidebar.markdown("---")

    if state.has_home:
        pages = ["📊 Dashboard", "🧾 Bills", "💸 Payments", "👥 Manage Home", "⚙️ Settings"]
    else:
        pages = ["🆕 Setup", "🔑 Join Home", "⚙️ Settings"]

    page = st.sidebar.radio("Navigate to:", pages, index=0)

    st.sidebar.markdown("---")
    if state.has_home:
        st.sidebar.markdown(f"[Open spreadsheet]({spreadsheet_url(state.spreadsheet_id)})")
        if state.manager_name:
            st.sidebar.caption(f"Manager: {state.manager_name}")
    if sheets_client:
        try:
            st.sidebar.caption(f"Signed in as {sheets_client.identity}")
        except StorageError as e:
            st.sidebar.error(f"Google Sheets unavailable: {e}")
    else:
        st.sidebar.caption("Offline mode: nothing is saved to Google Sheets")

    if page == "📊 Dashboard":
        render_dashboard_page(balance_flow, home_flow)
    elif page == "🧾 Bills":
        render_bills_page(ledger_flow, balance_flow, home_flow)
    elif page == "💸 Payments":
        render_payments_page(ledger_flow, balance_flow, home_flow)
    elif page == "👥 Manage Home":
        render_manage_home_page(home_flow)
    elif page == "🆕 Setup":
        render_setup_page(home_flow)
    elif page == "🔑 Join Home":
        render_join_page(home_flow)
    elif page == "⚙️ Settings":
        render_settings_page(home_flow)


def _manager_name(balance_flow: BalanceFlow, home_flow: HomeFlow):
    """Manager name or None, reporting the problem on screen."""
    try:
        return run_async(balance_flow.resolve_manager_name(home_flow.state))
    except ManagerNotSetError as e:
        st.warning(str(e))
    except StorageError as e:
        st.error(f"Couldn't read the home: {e}")
    return None


def render_dashboard_page(balance_flow: BalanceFlow, home_flow: HomeFlow):
    """Render the balances dashboard."""
    st.title("📊 Who owes what")
    currency = get_settings().app.currency_code

    if st.button("🔄 Refresh"):
        st.session_state.pop("balances", None)

    if "balances" not in st.session_state:
        with st.spinner("Reading the ledger..."):
            try:
                st.session_state.balances = run_async(balance_flow.refresh(home_flow.state))
            except (ManagerNotSetError, HomeNotConfiguredError) as e:
                st.warning(str(e))
                return
            except StorageError as e:
                st.error(f"Couldn't load balances: {e}")
                return

    balances = st.session_state.balances
    if not balances:
        st.info("No balances yet. Add a bill to get started.")
        return

    manager = home_flow.state.manager_name or "the manager"
    st.caption(f"Positive amounts are owed to {manager}; negative amounts are owed by {manager}.")

    for balance in balances:
        tone = balance_tone(balance.amount_owed)
        col1, col2 = st.columns([3, 1])
        with col1:
            st.markdown(f"**{balance.name}**")
        with col2:
            st.markdown(
                f'<span class="{TONE_CLASSES[tone]}">'
                f"{format_currency(balance.amount_owed, currency)}</span>",
                unsafe_allow_html=True,
            )


def render_bills_page(ledger_flow: LedgerFlow, balance_flow: BalanceFlow, home_flow: HomeFlow):
    """Render the bills page: add form and list."""
    st.title("🧾 Bills")
    currency = get_settings().app.currency_code
    manager_name = _manager_name(balance_flow, home_flow)

    try:
        roommates = [r.name for r in run_async(home_flow.load_roommates())]
    except StorageError:
        roommates = None

    with st.form("add_bill", clear_on_submit=True):
        entry_date = st.date_input("Date", value=date.today())
        paid_by = st.text_input("Paid by", value=manager_name or "")
        description = st.text_input("Description", placeholder="Electricity, March")
        amount = st.text_input("Amount", placeholder="120.00")
        split_with = st.text_input(
            "Split with",
            value=", ".join(roommates or []),
            help="Comma-separated names, including whoever paid if they share it",
        )
        submitted = st.form_submit_button("➕ Add bill")

    if submitted:
        try:
            bill, result = run_async(ledger_flow.add_bill(
                entry_date=entry_date,
                paid_by=paid_by,
                description=description,
                amount=amount,
                split_with=split_with,
                manager_name=manager_name,
                roommates=roommates,
            ))
        except StorageError as e:
            st.error(f"Couldn't save the bill: {e}")
        else:
            summary = EntryValidator().get_user_friendly_summary(result)
            if bill is None:
                st.error(summary)
            else:
                st.success(f"Bill saved: {bill.description or 'untitled'}")
                if result.issues:
                    st.info(summary)
                st.session_state.pop("balances", None)

    st.markdown("---")
    try:
        bills = run_async(ledger_flow.list_bills())
    except StorageError as e:
        st.error(f"Couldn't load bills: {e}")
        return

    if not bills:
        st.info("📋 No bills yet.")
        return

    st.dataframe(
        [
            {
                "Date": b.date,
                "Paid by": b.paid_by,
                "Description": b.description,
                "Amount": format_currency(b.amount, currency),
                "Split with": b.split_with,
            }
            for b in bills
        ],
        use_container_width=True,
        hide_index=True,
    )


def render_payments_page(ledger_flow: LedgerFlow, balance_flow: BalanceFlow, home_flow: HomeFlow):
    """Render the payments page: add form and list."""
    st.title("💸 Payments")
    st.markdown("Record a roommate paying the manager back.")
    currency = get_settings().app.currency_code
    manager_name = _manager_name(balance_flow, home_flow)

    with st.form("add_payment", clear_on_submit=True):
        entry_date = st.date_input("Date", value=date.today())
        paid_by = st.text_input("Paid by")
        amount = st.text_input("Amount", placeholder="40.00")
        note = st.text_input("Note", placeholder="Optional")
        submitted = st.form_submit_button("➕ Add payment")

    if submitted:
        try:
            payment, result = run_async(ledger_flow.add_payment(
                entry_date=entry_date,
                paid_by=paid_by,
                amount=amount,
                note=note,
                manager_name=manager_name,
            ))
        except StorageError as e:
            st.error(f"Couldn't save the payment: {e}")
        else:
            summary = EntryValidator().get_user_friendly_summary(result)
            if payment is None:
                st.error(summary)
            else:
                st.success(f"Payment saved from {payment.paid_by}")
                if result.issues:
                    st.info(summary)
                st.session_state.pop("balances", None)

    st.markdown("---")
    try:
        payments = run_async(ledger_flow.list_payments())
    except StorageError as e:
        st.error(f"Couldn't load payments: {e}")
        return

    if not payments:
        st.info("📋 No payments yet.")
        return

    st.dataframe(
        [
            {
                "Date": p.date,
                "Paid by": p.paid_by,
                "Amount": format_currency(p.amount, currency),
                "Note": p.note,
            }
            for p in payments
        ],
        use_container_width=True,
        hide_index=True,
    )


def render_manage_home_page(home_flow: HomeFlow):
    """Render roommates and invites."""
    st.title("👥 Manage Home")

    st.markdown("### Roommates")
    try:
        roommates = run_async(home_flow.load_roommates())
    except StorageError as e:
        st.error(f"Couldn't load roommates: {e}")
        roommates = []

    for roommate in roommates:
        badge = " 👑 manager" if roommate.is_manager else ""
        st.markdown(f"- {roommate.name}{badge}")

    with st.form("add_roommate", clear_on_submit=True):
        name = st.text_input("Name")
        if st.form_submit_button("➕ Add roommate"):
            try:
                added = run_async(home_flow.add_roommate(name))
            except StorageError as e:
                st.error(f"Couldn't add roommate: {e}")
            else:
                if added:
                    st.success(f"Added {name.strip()}")
                    st.rerun()
                else:
                    st.warning("That name is empty or already on the list.")

    st.markdown("---")
    st.markdown("### Invite a roommate")
    if st.button("🎟️ Create invite"):
        created_by = home_flow.state.manager_name or "unknown"
        try:
            invite = run_async(home_flow.create_invite(created_by))
        except StorageError as e:
            st.error(f"Couldn't create the invite: {e}")
        else:
            st.markdown(f'<div class="token-box">{invite.token}</div>', unsafe_allow_html=True)
            st.caption(
                f"Valid until {invite.expires_at:%Y-%m-%d %H:%M} UTC"
                + (f", up to {invite.max_uses} uses" if invite.max_uses else "")
            )

    st.markdown("---")
    if st.button("🚪 Leave this home"):
        run_async(home_flow.leave_home())
        st.session_state.clear()
        st.rerun()


def render_setup_page(home_flow: HomeFlow):
    """Create a home, or attach one that already exists."""
    st.title("🆕 Set up your home")

    st.markdown("### Create a new home")
    with st.form("create_home"):
        manager_name = st.text_input("Your name (you'll be the manager)")
        if st.form_submit_button("Create home"):
            try:
                state = run_async(home_flow.create_home(manager_name))
            except ManagerNotSetError as e:
                st.error(str(e))
            except StorageError as e:
                st.error(f"Couldn't create the home: {e}")
            else:
                st.success(f"Home created: {spreadsheet_url(state.spreadsheet_id)}")
                st.rerun()

    st.markdown("---")
    st.markdown("### Use an existing spreadsheet")
    with st.form("attach_home"):
        link = st.text_input("Spreadsheet link or ID")
        if st.form_submit_button("Use this spreadsheet"):
            spreadsheet_id = extract_spreadsheet_id(link)
            if not spreadsheet_id:
                st.error("Paste a Google Sheets link or ID.")
            else:
                run_async(home_flow.attach_home(spreadsheet_id))
                st.rerun()


def render_join_page(home_flow: HomeFlow):
    """Join a home with an invite token."""
    st.title("🔑 Join a home")
    st.markdown("Ask your house manager for an invite token.")

    with st.form("join_home"):
        token = st.text_input("Invite token", placeholder="ABCD-EFGH")
        if st.form_submit_button("Join"):
            try:
                run_async(home_flow.join_home(token))
            except InviteError as e:
                st.error(e.message)
            except StorageError as e:
                st.error(f"Couldn't reach the invite registry: {e}")
            else:
                st.success("Joined! Loading your home...")
                st.rerun()


def render_settings_page(home_flow: HomeFlow):
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")
    status = validate_all_settings()

    services = [
        ("Google Sheets (Storage)", "google_sheets"),
        ("Invite registry", "invites"),
        ("App settings", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### This device")
    state = home_flow.state
    st.markdown(f"- Home: `{state.spreadsheet_id or 'none'}`")
    st.markdown(f"- Manager: `{state.manager_name or 'unknown'}`")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your Google "
        "service account path and spreadsheet IDs. "
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
