"""
Streamlit Frontend for Budget Buddy

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Clear error messages in simple language
3. Visual feedback for all operations
4. Plans are previewed before they change any limit

The UI never touches the ledger directly. Every action goes through
the orchestrator flows, which validate, audit and save.
"""

import asyncio
from datetime import date
from decimal import Decimal

import streamlit as st

from budgetbuddy.audit import create_correlation_id
from budgetbuddy.ledger import budget_progress, expense_breakdown, summarize
from budgetbuddy.models import (
    EXPENSE_CATEGORIES,
    TransactionDraft,
    TransactionType,
    categories_for,
)
from budgetbuddy.orchestrator import (
    NO_PLAN_MESSAGE,
    AppComponents,
    create_app_components,
)
from budgetbuddy.reports import EXPORT_FILENAME, export_csv
from budgetbuddy.validation import TransactionValidationError


AUTO_CATEGORY = "✨ Auto (AI)"

# Page configuration
st.set_page_config(
    page_title="Budget Buddy",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .success-box {
        padding: 20px;
        background-color: #d4edda;
        border-radius: 10px;
        border-left: 5px solid #28a745;
        margin: 10px 0;
    }
    .info-box {
        padding: 20px;
        background-color: #cce5ff;
        border-radius: 10px;
        border-left: 5px solid #004085;
        margin: 10px 0;
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
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    return run_async(create_app_components())


def format_money(amount: Decimal) -> str:
    return f"${amount:,.2f}"


def main():
    """Main application entry point."""
    try:
        components = get_components()
    except Exception as e:
        st.error(f"Failed to open the ledger: {e}")
        st.stop()

    st.sidebar.title("💰 Budget Buddy")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Dashboard", "🧾 Transactions", "🎯 Budget Plan", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **How to use:**
        1. Add your income and expenses
        2. Paste or upload your budget plan
        3. Watch your spending against each limit
        """
    )

    if page == "📊 Dashboard":
        render_dashboard_page(components)
    elif page == "🧾 Transactions":
        render_transactions_page(components)
    elif page == "🎯 Budget Plan":
        render_budget_page(components)
    elif page == "⚙️ Settings":
        render_settings_page()


def render_dashboard_page(components: AppComponents):
    """Render totals, budget progress and insights."""
    st.title("📊 Dashboard")
    ledger = components.session.ledger

    summary = summarize(ledger.transactions)
    col1, col2, col3 = st.columns(3)
    col1.metric("Total Income", format_money(summary.total_income))
    col2.metric("Total Expenses", format_money(summary.total_expense))
    col3.metric("Balance", format_money(summary.balance))

    st.markdown("---")
    col1, col2 = st.columns(2)

    with col1:
        st.subheader("Spending by Category")
        breakdown = expense_breakdown(ledger.transactions)
        if breakdown:
            st.bar_chart({"Amount": {name: float(value) for name, value in breakdown.items()}})
        else:
            st.info("No expenses yet.")

    with col2:
        st.subheader("Budget Progress")
        progress = budget_progress(ledger.budgets)
        if not progress:
            st.info("No limits set. Import a plan on the Budget Plan page.")
        for item in progress:
            budget = ledger.budgets.get(item.category)
            label = (
                f"{item.category.value}: {format_money(item.spent)} "
                f"of {format_money(item.limit)}"
            )
            if budget.is_over_limit:
                label += " ⚠️ over budget"
            st.progress(min(budget.percent_used / 100, 1.0), text=label)

    st.markdown("---")
    st.subheader("✨ AI Insights")
    if st.button("Get Insights", type="primary"):
        with st.spinner("Looking at your recent activity..."):
            st.session_state.insights = run_async(components.insights.get_insights())
    if st.session_state.get("insights"):
        st.markdown(st.session_state.insights)


def render_transactions_page(components: AppComponents):
    """Render the add form, the transaction list and the CSV export."""
    st.title("🧾 Transactions")

    kind = st.radio(
        "Type",
        options=list(TransactionType),
        format_func=lambda k: k.value.title(),
        horizontal=True,
    )

    with st.form("add_transaction", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            amount = st.number_input("Amount *", min_value=0.0, step=0.01, format="%.2f")
            description = st.text_input("Description *", placeholder="e.g., Grocery run")
        with col2:
            category = st.selectbox(
                "Category",
                options=[AUTO_CATEGORY] + [c.value for c in categories_for(kind)],
                help="Leave on Auto to let the assistant pick one",
            )
            when = st.date_input("Date", value=date.today())
        submitted = st.form_submit_button("➕ Add Transaction", type="primary")

    if submitted:
        draft = TransactionDraft(
            amount=Decimal(str(amount)),
            kind=kind,
            category=None if category == AUTO_CATEGORY else category,
            description=description,
            date=when,
        )
        try:
            with st.spinner("Saving..."):
                transaction = components.session.run_exclusive(
                    components.transactions.add_transaction(
                        draft,
                        correlation_id=create_correlation_id(),
                    )
                )
            st.success(
                f"Added {transaction.description} "
                f"({transaction.category.value}, {format_money(transaction.amount)})"
            )
        except TransactionValidationError as e:
            st.error(str(e))

    st.markdown("---")
    transactions = components.session.ledger.transactions

    col1, col2 = st.columns([3, 1])
    col1.subheader(f"History ({len(transactions)})")
    col2.download_button(
        "⬇️ Export CSV",
        data=export_csv(transactions),
        file_name=EXPORT_FILENAME,
        mime="text/csv",
        disabled=not transactions,
    )

    if not transactions:
        st.info("No transactions yet. Add your first one above.")

    for transaction in transactions:
        col1, col2, col3, col4, col5 = st.columns([2, 4, 2, 2, 1])
        col1.write(transaction.date.isoformat())
        col2.write(transaction.description)
        col3.write(transaction.category.value)
        sign = "-" if transaction.is_expense else "+"
        col4.write(f"{sign}{format_money(transaction.amount)}")
        if col5.button("🗑️", key=f"delete_{transaction.id}"):
            components.session.run_exclusive(
                components.transactions.remove_transaction(transaction.id)
            )
            st.rerun()


def render_budget_page(components: AppComponents):
    """Render plan import and manual limit editing."""
    st.title("🎯 Budget Plan")
    st.markdown("Paste your plan in plain words, or upload a text file.")

    uploaded = st.file_uploader("Plan file", type=["txt", "md"])
    initial_text = uploaded.read().decode("utf-8", errors="replace") if uploaded else ""
    plan_text = st.text_area(
        "Your plan",
        value=initial_text,
        height=150,
        placeholder="e.g., This month I want to spend at most $1200 on housing and $300 on food.",
    )

    if st.button("🔍 Analyze Plan", type="primary"):
        with st.spinner("Reading your plan..."):
            st.session_state.parsed_plan = run_async(
                components.plans.parse_plan(plan_text)
            )
        if st.session_state.parsed_plan is None:
            st.error(NO_PLAN_MESSAGE)

    plan = st.session_state.get("parsed_plan")
    if plan is not None:
        st.markdown(f"""
        <div class="info-box">
            <h4>📋 Plan for {plan.month}</h4>
            <p>Found {len(plan.budgets)} budget limits.</p>
            <p>{plan.advice}</p>
        </div>
        """, unsafe_allow_html=True)
        for line in plan.budgets:
            st.write(f"• {line.category}: {format_money(line.limit)}")

        if st.button("✅ Apply Plan"):
            merge = components.session.run_exclusive(components.plans.apply_plan(plan))
            st.session_state.parsed_plan = None
            st.success(f"Updated {len(merge.applied)} limits.")
            if merge.dropped:
                skipped = ", ".join(line.category for line in merge.dropped)
                st.warning(f"Skipped lines with unknown categories: {skipped}")
            st.rerun()

    st.markdown("---")
    st.subheader("Limits")
    budgets = components.session.ledger.budgets
    for category in EXPENSE_CATEGORIES:
        budget = budgets.get(category)
        col1, col2 = st.columns([3, 2])
        col1.write(f"**{category.value}** (spent {format_money(budget.spent)})")
        value = col2.number_input(
            f"{category.value} limit",
            value=float(budget.limit),
            step=10.0,
            key=f"limit_{category.value}",
            label_visibility="collapsed",
        )
        if Decimal(str(value)) != budget.limit:
            components.session.run_exclusive(components.plans.set_limit(category, value))


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    from budgetbuddy.config import validate_all_settings

    status = validate_all_settings()

    services = [
        ("Gemini (AI)", "gemini"),
        ("Google Sheets (Storage)", "google_sheets"),
        ("Ledger", "ledger"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your settings. "
        "See `.env.example` for the available variables."
    )


if __name__ == "__main__":
    main()
