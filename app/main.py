"""
Streamlit Frontend for FinVise

The user interface for day-to-day personal finance: income and expense
tracking with receipts, monthly budgets, debts with repayments, and a
gift-money ledger.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Every write goes through the controller
3. Clear error messages in simple language
4. Visual feedback for all operations

Each browser session gets its own FinanceController, kept in
st.session_state. The controller owns all application state.
"""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Optional

import streamlit as st

from finvise.config import get_settings, validate_all_settings
from finvise.controller import (
    FinanceController,
    ModalName,
    ViewType,
    create_app_components,
)
from finvise.models.finance import (
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    DebtDraft,
    DebtPaymentDraft,
    DebtType,
    GiftDirection,
    GiftDraft,
    GiftEventType,
    ReceiptUpload,
    TransactionDraft,
    TransactionType,
)


# Page configuration
st.set_page_config(
    page_title="FinVise",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
    }
    .local-badge {
        font-size: 0.8em;
        color: #856404;
        background-color: #fff3cd;
        border-radius: 6px;
        padding: 2px 6px;
    }
    .big-number {
        font-size: 2em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)

LEVEL_COLORS = {"ok": "🟢", "warning": "🟡", "danger": "🔴"}

VIEW_LABELS = {
    ViewType.DASHBOARD: "📊 Dashboard",
    ViewType.TRANSACTIONS: "💸 Transactions",
    ViewType.DEBTS: "🤝 Debts",
    ViewType.GIFTS: "🎁 Gift money",
}


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def get_controller() -> Optional[FinanceController]:
    """Get or create this browser session's controller."""
    if "controller" not in st.session_state:
        try:
            st.session_state.controller = create_app_components()
        except Exception as e:
            st.error(f"Failed to initialize: {e}")
            return None
    return st.session_state.controller


def money(amount: Decimal) -> str:
    currency = get_settings().app.currency
    return f"{amount:,.0f} {currency}"


def show_notices(controller: FinanceController):
    for notice in controller.pop_notices():
        st.warning(notice)


def main():
    """Main application entry point."""
    controller = get_controller()
    if controller is None:
        render_settings_page(None)
        return

    if not controller.state.is_authenticated:
        render_login_page(controller)
        return

    state = controller.state

    # Sidebar navigation
    st.sidebar.title("💰 FinVise")
    session = state.session
    st.sidebar.markdown(f"**{session.display_name or session.email}**")
    st.sidebar.markdown("---")

    pages = list(VIEW_LABELS.values()) + ["⚙️ Settings"]
    current = VIEW_LABELS[state.current_view]
    page = st.sidebar.radio("Navigate to:", pages, index=pages.index(current))

    for view, label in VIEW_LABELS.items():
        if page == label and view != state.current_view:
            controller.set_view(view)

    st.sidebar.markdown("---")
    if st.sidebar.button("🔄 Reload data"):
        run_async(controller.load_all())
        st.rerun()
    if st.sidebar.button("🚪 Sign out"):
        run_async(controller.sign_out())
        st.rerun()

    # Route to appropriate page
    if page == "⚙️ Settings":
        render_settings_page(controller)
    elif state.current_view == ViewType.DASHBOARD:
        render_dashboard_page(controller)
    elif state.current_view == ViewType.TRANSACTIONS:
        render_transactions_page(controller)
    elif state.current_view == ViewType.DEBTS:
        render_debts_page(controller)
    else:
        render_gifts_page(controller)

    show_notices(controller)


# =============================================================================
# LOGIN
# =============================================================================

def render_login_page(controller: FinanceController):
    """Render the sign-in / sign-up screen."""
    st.title("💰 FinVise")
    st.markdown("Smart personal finance management.")

    mode = st.radio(
        "Mode",
        ["Sign in", "Create account"],
        horizontal=True,
        label_visibility="collapsed",
    )

    with st.form("auth_form"):
        full_name = None
        if mode == "Create account":
            full_name = st.text_input("Full name")
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Continue", type="primary")

    if submitted:
        if not email or not password:
            st.error("Please enter your email and password.")
            return
        with st.spinner("Signing in..."):
            if mode == "Sign in":
                ok = run_async(controller.sign_in(email, password))
            else:
                ok = run_async(controller.sign_up(email, password, full_name or None))
        if ok:
            st.rerun()

    if controller.state.auth_error:
        st.error(f"❌ {controller.state.auth_error}")


# =============================================================================
# DASHBOARD
# =============================================================================

def render_dashboard_page(controller: FinanceController):
    """Render the monthly overview."""
    st.title("📊 Dashboard")
    view = controller.dashboard()
    state = controller.state

    col1, col2, col3 = st.columns(3)
    col1.metric("Income this month", money(view.overview.income))
    col2.metric("Expense this month", money(view.overview.expense))
    col3.metric("Saving rate", f"{view.overview.saving_rate:.1f}%")

    weekly = view.weekly
    st.metric(
        "Spent this week",
        money(weekly.this_week),
        delta=f"{weekly.change:+.1f}% vs last week",
        delta_color="inverse",
    )

    # Budgets
    st.markdown("---")
    header, action = st.columns([4, 1])
    header.subheader("🎯 Budgets")
    if action.button("Edit budgets"):
        controller.open_modal(ModalName.EDIT_BUDGET)

    if state.modals.edit_budget:
        render_budget_form(controller)

    if not view.budgets:
        st.info("No budgets yet. Set a monthly limit per category to track your spending.")
    for item in view.budgets:
        st.markdown(
            f"{LEVEL_COLORS[item.level]} **{item.category}**: "
            f"{money(item.spent)} / {money(item.limit)}"
        )
        st.progress(item.percentage / 100)
        if item.is_over_budget:
            st.caption(f"Over budget by {money(-item.remaining)}")
        else:
            st.caption(f"{money(item.remaining)} left")

    # Trend and categories
    st.markdown("---")
    col1, col2 = st.columns(2)
    with col1:
        st.subheader("📈 Last 6 months")
        if view.has_trend_data:
            st.area_chart(
                [
                    {"month": p.label, "income": float(p.income), "expense": float(p.expense)}
                    for p in view.trend
                ],
                x="month",
                y=["income", "expense"],
            )
        else:
            st.info("No data yet.")
    with col2:
        st.subheader("🏷️ Top categories this month")
        if view.top_categories:
            for c in view.top_categories:
                st.markdown(f"- **{c.name}**: {money(c.value)}")
        else:
            st.info("No expenses this month.")

    render_advice_section(controller)


def render_budget_form(controller: FinanceController):
    """Edit all expense budgets at once."""
    current = {b.category: b.limit for b in controller.state.budgets}
    with st.form("budget_form"):
        limits = {}
        for category in EXPENSE_CATEGORIES:
            limits[category] = st.number_input(
                category,
                min_value=0.0,
                value=float(current.get(category, 0)),
                step=100000.0,
            )
        col1, col2 = st.columns(2)
        save = col1.form_submit_button("Save", type="primary")
        cancel = col2.form_submit_button("Cancel")

    if save:
        run_async(controller.save_budgets({k: Decimal(str(v)) for k, v in limits.items()}))
        controller.close_modal(ModalName.EDIT_BUDGET)
        st.rerun()
    if cancel:
        controller.close_modal(ModalName.EDIT_BUDGET)
        st.rerun()


def render_advice_section(controller: FinanceController):
    st.markdown("---")
    st.subheader("🤖 AI advice")
    state = controller.state

    if st.button("Analyze my spending", disabled=not state.transactions):
        with st.spinner("Thinking..."):
            run_async(controller.request_advice())

    advice = state.ai_advice
    if advice:
        if advice.is_fallback:
            st.warning(advice.summary)
        else:
            st.info(advice.summary)
        for tip in advice.tips:
            st.markdown(f"- {tip}")


# =============================================================================
# TRANSACTIONS
# =============================================================================

def render_transactions_page(controller: FinanceController):
    """Render the transaction history."""
    st.title("💸 Transactions")
    view = controller.transactions_view()
    state = controller.state

    col1, col2, col3 = st.columns(3)
    col1.metric("Total income", money(view.summary.total_income))
    col2.metric("Total expense", money(view.summary.total_expense))
    col3.metric("Balance", money(view.summary.balance))

    if st.button("➕ Add transaction", type="primary"):
        controller.open_modal(ModalName.ADD_TRANSACTION)
    if state.modals.add_transaction:
        render_transaction_form(controller)

    col1, col2 = st.columns(2)
    with col1:
        st.subheader("Spending by category")
        if view.categories:
            st.bar_chart(
                [{"category": c.name, "amount": float(c.value)} for c in view.categories],
                x="category",
                y="amount",
            )
    with col2:
        st.subheader("Recent cash flow")
        if view.cash_flow:
            st.bar_chart(
                [
                    {"date": p.day.isoformat(), "income": float(p.income), "expense": float(p.expense)}
                    for p in view.cash_flow
                ],
                x="date",
                y=["income", "expense"],
            )

    st.markdown("---")
    if state.is_loading:
        st.info("Loading...")
    elif not view.transactions:
        st.info("No transactions yet.")

    for t in view.transactions:
        sign = "+" if t.type == TransactionType.INCOME else "-"
        badge = ' <span class="local-badge">not synced</span>' if t.is_local else ""
        cols = st.columns([2, 3, 2, 1])
        cols[0].markdown(f"{t.transaction_date.isoformat()}")
        cols[1].markdown(f"**{t.category}** {t.description}{badge}", unsafe_allow_html=True)
        cols[2].markdown(f"{sign}{money(t.amount)}")
        if cols[3].button("View", key=f"view_tx_{t.id}"):
            controller.select_transaction(t.id)

    selected = controller.selected_transaction()
    if selected:
        st.markdown("---")
        st.subheader("Transaction details")
        st.markdown(f"**{selected.category}**: {money(selected.amount)} ({selected.type.value})")
        st.markdown(f"Date: {selected.transaction_date.isoformat()}")
        if selected.description:
            st.markdown(selected.description)
        if selected.receipt_url:
            st.image(selected.receipt_url, caption="Receipt", width=320)
        col1, col2 = st.columns(2)
        if col1.button("🗑️ Delete", key="delete_tx"):
            if run_async(controller.delete_transaction(selected.id)):
                st.rerun()
        if col2.button("Close", key="close_tx"):
            controller.clear_selection()
            st.rerun()


def render_transaction_form(controller: FinanceController):
    tx_type = st.radio(
        "Type",
        list(TransactionType),
        format_func=lambda t: "Expense" if t == TransactionType.EXPENSE else "Income",
        horizontal=True,
    )
    categories = EXPENSE_CATEGORIES if tx_type == TransactionType.EXPENSE else INCOME_CATEGORIES

    with st.form("transaction_form", clear_on_submit=True):
        amount = st.number_input("Amount", min_value=0.0, step=1000.0)
        category = st.selectbox("Category", categories)
        description = st.text_input("Description")
        tx_date = st.date_input("Date", value=date.today())
        receipt_file = st.file_uploader(
            "Receipt (optional)",
            type=["jpg", "jpeg", "png", "webp", "heic"],
        )
        col1, col2 = st.columns(2)
        save = col1.form_submit_button("Save", type="primary")
        cancel = col2.form_submit_button("Cancel")

    if cancel:
        controller.close_modal(ModalName.ADD_TRANSACTION)
        st.rerun()
    if not save:
        return
    if amount <= 0:
        st.error("Amount must be greater than zero.")
        return

    receipt = None
    if receipt_file is not None:
        content = receipt_file.getvalue()
        receipt = ReceiptUpload(
            filename=receipt_file.name,
            mime_type=receipt_file.type or "",
            size_bytes=len(content),
            content=content,
        )

    draft = TransactionDraft(
        amount=Decimal(str(amount)).quantize(Decimal("0.01")),
        category=category,
        description=description,
        transaction_date=tx_date,
        type=tx_type,
    )
    with st.spinner("Saving..."):
        record = run_async(controller.add_transaction(draft, receipt))
    if record is not None:
        controller.close_modal(ModalName.ADD_TRANSACTION)
        st.rerun()


# =============================================================================
# DEBTS
# =============================================================================

def render_debts_page(controller: FinanceController):
    """Render the debt list."""
    st.title("🤝 Debts")
    state = controller.state

    tab = st.radio(
        "Show",
        [None, DebtType.RECEIVABLE, DebtType.PAYABLE],
        format_func=lambda t: {
            None: "All",
            DebtType.RECEIVABLE: "Owed to me",
            DebtType.PAYABLE: "I owe",
        }[t],
        horizontal=True,
    )
    view = controller.debts_view(tab)

    col1, col2, col3 = st.columns(3)
    col1.metric("Owed to me", money(view.stats.receivable))
    col2.metric("I owe", money(view.stats.payable))
    col3.metric("Net", money(view.stats.net))

    if st.button("➕ Add debt", type="primary"):
        controller.open_modal(ModalName.ADD_DEBT)
    if state.modals.add_debt:
        render_debt_form(controller)

    st.markdown("---")
    if not view.debts:
        st.info("No debts recorded.")

    today = date.today()
    for debt in view.debts:
        cols = st.columns([3, 2, 2, 1])
        due = ""
        if debt.is_overdue(today):
            due = " 🔴 overdue"
        elif debt.is_due_soon(today):
            due = f" 🟡 due in {debt.days_until_due(today)} days"
        cols[0].markdown(f"**{debt.person_name}** ({debt.status.value}){due}")
        cols[1].markdown(f"Remaining {money(debt.remaining_amount)}")
        cols[2].progress(min(debt.progress, 100.0) / 100)
        if cols[3].button("Open", key=f"open_debt_{debt.id}"):
            controller.select_debt(debt.id)
            run_async(controller.load_debt_payments(debt.id))

    if state.modals.selected_debt_id:
        render_debt_detail(controller, state.modals.selected_debt_id)


def render_debt_form(controller: FinanceController):
    with st.form("debt_form", clear_on_submit=True):
        debt_type = st.radio(
            "Type",
            list(DebtType),
            format_func=lambda t: "Someone owes me" if t == DebtType.RECEIVABLE else "I owe someone",
            horizontal=True,
        )
        person = st.text_input("Person")
        amount = st.number_input("Amount", min_value=0.0, step=100000.0)
        created = st.date_input("Date", value=date.today())
        has_due = st.checkbox("Has a due date")
        due = st.date_input("Due date", value=date.today())
        description = st.text_input("Description")
        col1, col2 = st.columns(2)
        save = col1.form_submit_button("Save", type="primary")
        cancel = col2.form_submit_button("Cancel")

    if cancel:
        controller.close_modal(ModalName.ADD_DEBT)
        st.rerun()
    if not save:
        return
    if not person or amount <= 0:
        st.error("Please enter a person and an amount greater than zero.")
        return

    try:
        draft = DebtDraft(
            type=debt_type,
            person_name=person,
            original_amount=Decimal(str(amount)).quantize(Decimal("0.01")),
            created_date=created,
            due_date=due if has_due else None,
            description=description or None,
        )
    except ValueError as e:
        st.error(str(e))
        return

    if run_async(controller.add_debt(draft)) is not None:
        controller.close_modal(ModalName.ADD_DEBT)
        st.rerun()


def render_debt_detail(controller: FinanceController, debt_id: str):
    detail = controller.debt_detail(debt_id)
    if detail is None:
        return
    debt = detail.debt

    st.markdown("---")
    st.subheader(f"{debt.person_name}")
    col1, col2, col3 = st.columns(3)
    col1.metric("Original", money(debt.original_amount))
    col2.metric("Paid", money(debt.paid_amount))
    col3.metric("Remaining", money(debt.remaining_amount))
    st.progress(min(debt.progress, 100.0) / 100)

    if debt.remaining_amount > 0:
        with st.form("payment_form", clear_on_submit=True):
            amount = st.number_input(
                "Payment amount",
                min_value=0.0,
                max_value=float(debt.remaining_amount),
                step=10000.0,
            )
            paid_on = st.date_input("Payment date", value=date.today())
            note = st.text_input("Note")
            pay = st.form_submit_button("Record payment", type="primary")
        if pay:
            if amount <= 0:
                st.error("Amount must be greater than zero.")
            else:
                draft = DebtPaymentDraft(
                    amount=Decimal(str(amount)).quantize(Decimal("0.01")),
                    payment_date=paid_on,
                    note=note or None,
                )
                if run_async(controller.add_debt_payment(debt_id, draft)) is not None:
                    st.rerun()
    else:
        st.success("✅ Fully repaid")

    st.markdown("**Payment history**")
    if not detail.payments:
        st.caption("No payments yet.")
    for p in detail.payments:
        st.markdown(f"- {p.payment_date.isoformat()}: {money(p.amount)} {p.note or ''}")

    col1, col2 = st.columns(2)
    if col1.button("🗑️ Delete debt", key="delete_debt"):
        if run_async(controller.delete_debt(debt_id)):
            st.rerun()
    if col2.button("Close", key="close_debt"):
        controller.clear_selection()
        st.rerun()


# =============================================================================
# GIFT MONEY
# =============================================================================

def render_gifts_page(controller: FinanceController):
    """Render the gift-money ledger."""
    st.title("🎁 Gift money")
    state = controller.state

    tab = st.radio(
        "Show",
        [None, GiftDirection.GIVEN, GiftDirection.RECEIVED],
        format_func=lambda d: {
            None: "All",
            GiftDirection.GIVEN: "Given",
            GiftDirection.RECEIVED: "Received",
        }[d],
        horizontal=True,
    )
    view = controller.gifts_view(tab)

    col1, col2, col3 = st.columns(3)
    col1.metric("Given", money(view.stats.given))
    col2.metric("Received", money(view.stats.received))
    col3.metric("Net", money(view.stats.net))

    if st.button("➕ Add gift record", type="primary"):
        controller.open_modal(ModalName.ADD_GIFT)
    if state.modals.add_gift:
        render_gift_form(controller)

    st.markdown("---")
    if not view.gifts:
        st.info("No gift records yet.")

    for gift in view.gifts:
        arrow = "➡️" if gift.direction == GiftDirection.GIVEN else "⬅️"
        cols = st.columns([3, 2, 2, 1])
        cols[0].markdown(f"{arrow} **{gift.person_name}** ({gift.event_type.value})")
        cols[1].markdown(gift.event_date.isoformat())
        cols[2].markdown(money(gift.amount))
        if cols[3].button("Open", key=f"open_gift_{gift.id}"):
            controller.select_gift(gift.id)

    if state.modals.selected_gift_id:
        render_gift_detail(controller, state.modals.selected_gift_id)


def render_gift_form(controller: FinanceController):
    with st.form("gift_form", clear_on_submit=True):
        direction = st.radio(
            "Direction",
            list(GiftDirection),
            format_func=lambda d: d.value.title(),
            horizontal=True,
        )
        person = st.text_input("Person")
        event_type = st.selectbox(
            "Occasion",
            list(GiftEventType),
            format_func=lambda e: e.value.title(),
        )
        amount = st.number_input("Amount", min_value=0.0, step=100000.0)
        event_date = st.date_input("Date", value=date.today())
        note = st.text_input("Note")
        col1, col2 = st.columns(2)
        save = col1.form_submit_button("Save", type="primary")
        cancel = col2.form_submit_button("Cancel")

    if cancel:
        controller.close_modal(ModalName.ADD_GIFT)
        st.rerun()
    if not save:
        return
    if not person or amount <= 0:
        st.error("Please enter a person and an amount greater than zero.")
        return

    draft = GiftDraft(
        direction=direction,
        person_name=person,
        event_type=event_type,
        amount=Decimal(str(amount)).quantize(Decimal("0.01")),
        event_date=event_date,
        note=note or None,
    )
    if run_async(controller.add_gift(draft)) is not None:
        controller.close_modal(ModalName.ADD_GIFT)
        st.rerun()


def render_gift_detail(controller: FinanceController, gift_id: str):
    detail = controller.gift_detail(gift_id)
    if detail is None:
        return

    st.markdown("---")
    st.subheader(f"{detail.gift.person_name}")
    balance = detail.balance
    col1, col2, col3 = st.columns(3)
    col1.metric("Given to them", money(balance.given))
    col2.metric("Received from them", money(balance.received))
    col3.metric("Net", money(balance.net))

    st.markdown("**Other records with this person**")
    if not detail.history:
        st.caption("None.")
    for g in detail.history:
        st.markdown(
            f"- {g.event_date.isoformat()}: {g.direction.value} {money(g.amount)} "
            f"({g.event_type.value})"
        )

    col1, col2 = st.columns(2)
    if col1.button("🗑️ Delete record", key="delete_gift"):
        if run_async(controller.delete_gift(gift_id)):
            st.rerun()
    if col2.button("Close", key="close_gift"):
        controller.clear_selection()
        st.rerun()


# =============================================================================
# SETTINGS
# =============================================================================

def render_settings_page(controller: Optional[FinanceController]):
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Google Sheets (Storage)", "google_sheets"),
        ("Cloudinary (Receipts)", "cloudinary"),
        ("Gemini (AI advice)", "gemini"),
        ("Firebase (Sign-in)", "firebase"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    if controller is not None:
        st.markdown("### Recent activity")
        events = controller.audit.recent_events[:20]
        if not events:
            st.caption("Nothing yet.")
        for event in events:
            st.markdown(
                f"- `{event.timestamp:%H:%M:%S}` {event.severity.value}: {event.description}"
            )

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your API keys. "
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
