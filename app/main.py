"""
Streamlit Frontend for Family Budget

The screen a couple opens to record the month's income and expenses and to
see how much Ma'aser is still owed.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Every figure shown per currency, never converted into a total
3. Clear error messages in simple language
4. A scanned receipt only fills the form; nothing is saved without "Save"
5. No hidden actions

Every number on screen is recomputed from the stored transactions on each
rerun.
"""

import asyncio
from datetime import date
from decimal import Decimal

import streamlit as st

from family_budget.agents import ReceiptParsingError
from family_budget.audit import create_correlation_id
from family_budget.config import get_settings, validate_all_settings
from family_budget.models.constants import EXPENSE_CATEGORIES, INCOME_CATEGORIES
from family_budget.models.transaction import (
    Currency,
    ExpenseClass,
    Transaction,
    TransactionDraft,
    TransactionType,
)
from family_budget.orchestrator import AppComponents, create_app_components
from family_budget.reports import (
    available_years,
    balance_label,
    category_breakdown,
    filter_by_years,
    format_money,
    household_transactions,
    investment_overview,
    monthly_chart_grid,
    recurring_expenses,
    schedule_table_rows,
    summarize,
    yearly_totals,
)
from family_budget.services.rates import convert_currency
from family_budget.services.storage import NotFoundError, StorageError


# Page configuration
st.set_page_config(
    page_title="Family Budget",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown("""
<style>
    .owed-badge {
        padding: 16px;
        background-color: #f8d7da;
        border-radius: 10px;
        border-left: 5px solid #dc3545;
        margin: 10px 0;
    }
    .credit-badge {
        padding: 16px;
        background-color: #d4edda;
        border-radius: 10px;
        border-left: 5px solid #28a745;
        margin: 10px 0;
    }
    .big-number {
        font-size: 2em;
        font-weight: bold;
        color: #2c3e50;
    }
</style>
""", unsafe_allow_html=True)


CLASSIFICATION_LABELS = {
    ExpenseClass.HOUSEHOLD: "Household expense",
    ExpenseClass.MAASER_DEDUCTIBLE: "Business cost (reduces Ma'aser)",
    ExpenseClass.TAX_DEDUCTIBLE: "Tax-deductible business cost",
    ExpenseClass.INVESTMENT: "Investment deposit",
    ExpenseClass.MAASER_PAYMENT: "Ma'aser payment",
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
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    return create_app_components(use_storage=True)


def main():
    """Main application entry point."""
    components = get_components()

    st.sidebar.title("💰 Family Budget")
    if not components.is_persistent:
        st.sidebar.warning(
            "Google Sheets is not configured. Entries are kept only until "
            "the app restarts."
        )

    try:
        all_transactions = run_async(components.ledger_flow.load())
    except StorageError as e:
        st.error(f"Could not load transactions: {e}")
        st.stop()

    years = available_years(all_transactions) or [date.today().year]
    selected_years = st.sidebar.multiselect(
        "Years",
        options=years,
        default=years[:1],
    )
    transactions = filter_by_years(all_transactions, selected_years)

    render_exchange_rate(components)

    tabs = st.tabs([
        "📊 Dashboard",
        "🕯️ Ma'aser",
        "🔁 Recurring",
        "📈 Investments & Tax",
        "📅 Yearly",
        "➕ Add",
        "⚙️ Settings",
    ])
    with tabs[0]:
        render_dashboard(components, transactions, selected_years)
    with tabs[1]:
        render_maaser(components, selected_years)
    with tabs[2]:
        render_recurring(transactions)
    with tabs[3]:
        render_investments(transactions)
    with tabs[4]:
        render_yearly(transactions, selected_years)
    with tabs[5]:
        render_add_page(components)
    with tabs[6]:
        render_settings_page()


def render_exchange_rate(components: AppComponents):
    if components.exchange_rates is None:
        return
    rate = run_async(components.exchange_rates.get_exchange_rate())
    if rate is None:
        st.sidebar.caption("Exchange rate unavailable")
        return
    st.sidebar.caption(
        f"1 USD = {format_money(rate.usd_to_ils, Currency.ILS)} "
        f"(as of {rate.date.isoformat()})"
    )
    st.session_state.exchange_rate = rate


def render_dashboard(
    components: AppComponents,
    transactions: list[Transaction],
    selected_years: list[int],
):
    """Summary cards, charts and the transaction list."""
    st.title("📊 Dashboard")
    household = household_transactions(transactions)

    for currency in Currency:
        summary = summarize(household, currency)
        st.subheader(currency.value)
        col1, col2, col3 = st.columns(3)
        col1.metric("Income", format_money(summary.total_income, currency))
        col2.metric("Expenses", format_money(summary.total_expense, currency))
        col3.metric("Balance", format_money(summary.balance, currency, signed=True))

    rate = st.session_state.get("exchange_rate")
    if rate is not None:
        usd = summarize(household, Currency.USD)
        st.caption(
            "USD balance is about "
            f"{format_money(convert_currency(usd.balance, Currency.USD, Currency.ILS, rate), Currency.ILS, signed=True)}"
        )

    chart_currency = st.radio(
        "Chart currency",
        options=list(Currency),
        index=list(Currency).index(get_settings().app.default_currency),
        format_func=lambda c: c.value,
        horizontal=True,
    )

    grid = monthly_chart_grid(household, chart_currency, selected_years)
    if grid:
        st.bar_chart(
            {
                "Month": [point.label for point in grid],
                "Income": [float(point.income) for point in grid],
                "Expense": [float(point.expense) for point in grid],
            },
            x="Month",
            y=["Income", "Expense"],
        )

    breakdown = category_breakdown(household, chart_currency)
    if breakdown:
        st.markdown("### Expenses by category")
        st.bar_chart(
            {
                "Category": [c.name for c in breakdown],
                "Amount": [float(c.value) for c in breakdown],
            },
            x="Category",
            y="Amount",
        )

    render_advisor(components, selected_years)
    render_transaction_list(components, transactions)


def render_advisor(components: AppComponents, selected_years: list[int]):
    st.markdown("### 🤖 Ask about your spending")
    question = st.text_input(
        "Your question:",
        placeholder="e.g., Where did most of our money go this year?",
    )
    if st.button("Get Answer") and question:
        with st.spinner("Analyzing your transactions..."):
            answer = run_async(components.insight_flow.ask(question, selected_years))
        st.info(answer)


def render_transaction_list(components: AppComponents, transactions: list[Transaction]):
    st.markdown("### Transactions")
    if not transactions:
        st.info("No transactions for the selected years yet.")
        return

    for t in transactions:
        col1, col2, col3, col4 = st.columns([2, 4, 2, 1])
        col1.write(t.date.isoformat())
        col2.write(f"{t.description or '-'} · {t.category}")
        sign = "+" if t.is_income else "-"
        col3.write(f"{sign}{format_money(t.amount, t.currency)}")
        if col4.button("🗑️", key=f"delete-{t.id}"):
            try:
                run_async(components.transaction_flow.delete_transaction(t.id))
            except NotFoundError:
                st.warning("That transaction was already deleted.")
            st.rerun()


def render_maaser(components: AppComponents, selected_years: list[int]):
    """Badge, monthly table and deductible drill-down per currency."""
    st.title("🕯️ Ma'aser")
    st.caption(
        f"{components.ledger_flow.rate * 100:.0f}% of each month's income, "
        "less business costs marked as Ma'aser-deductible."
    )

    for currency in Currency:
        schedule = run_async(components.ledger_flow.maaser(selected_years, currency))
        st.subheader(currency.value)

        badge_class = "owed-badge" if schedule.is_owed else "credit-badge"
        st.markdown(f"""
        <div class="{badge_class}">
            <span class="big-number">{format_money(abs(schedule.current_balance), currency)}</span>
            <strong>{balance_label(schedule.current_balance)}</strong>
        </div>
        """, unsafe_allow_html=True)

        if not schedule.schedule:
            st.info(f"No {currency.value} transactions in the selected years.")
            continue

        st.table(schedule_table_rows(schedule))

        for stat in schedule.schedule:
            if not stat.deductible_transactions:
                continue
            with st.expander(f"{stat.month} deductions"):
                for t in stat.deductible_transactions:
                    st.write(
                        f"{t.date.isoformat()} · {t.description} · "
                        f"{format_money(t.amount, currency)}"
                    )


def render_recurring(transactions: list[Transaction]):
    st.title("🔁 Recurring")
    recurring = recurring_expenses(transactions)
    if not recurring:
        st.info("No recurring expenses. Tick 'Recurring' when adding a bill.")
        return
    st.table([
        {
            "Date": t.date.isoformat(),
            "Description": t.description,
            "Category": t.category,
            "Amount": format_money(t.amount, t.currency),
        }
        for t in recurring
    ])


def render_investments(transactions: list[Transaction]):
    st.title("📈 Investments & Tax")
    overview = investment_overview(transactions)

    for title, items, totals in (
        ("Investments", overview.investments, overview.investment_totals),
        ("Tax-deductible costs", overview.tax_deductibles, overview.tax_deductible_totals),
    ):
        st.subheader(title)
        cols = st.columns(len(Currency))
        for col, currency in zip(cols, Currency):
            col.metric(currency.value, format_money(totals.get(currency, Decimal("0")), currency))
        if items:
            st.table([
                {
                    "Date": t.date.isoformat(),
                    "Description": t.description,
                    "Amount": format_money(t.amount, t.currency),
                }
                for t in items
            ])


def render_yearly(transactions: list[Transaction], selected_years: list[int]):
    st.title("📅 Yearly")
    st.caption(f"Totals for {', '.join(str(y) for y in sorted(selected_years))}")

    cols = st.columns(len(Currency))
    for col, currency in zip(cols, Currency):
        totals = yearly_totals(transactions, currency)
        with col:
            st.subheader(f"{currency.value} Totals")
            st.metric("Income", format_money(totals.income, currency))
            st.metric("Household expenses", format_money(totals.household_expense, currency))
            st.metric("Business deductibles", format_money(totals.business_deductibles, currency))


def render_add_page(components: AppComponents):
    """Entry form, optionally prefilled from a receipt photo."""
    st.title("➕ Add Transaction")
    flow = components.transaction_flow

    if "draft" not in st.session_state:
        st.session_state.draft = TransactionDraft(date=date.today())

    with st.expander("📷 Scan a receipt"):
        uploaded_file = st.file_uploader(
            "Receipt photo",
            type=["jpg", "jpeg", "png", "webp"],
        )
        if uploaded_file and st.button("🔍 Read Receipt"):
            with st.spinner("Reading your receipt..."):
                try:
                    st.session_state.draft = run_async(flow.scan_receipt(
                        uploaded_file.read(),
                        uploaded_file.type or "image/jpeg",
                    ))
                    st.success("Receipt read. Please check the details below.")
                except ReceiptParsingError as e:
                    st.error(f"Couldn't read the receipt: {e}")

    draft = st.session_state.draft

    with st.form("transaction_form"):
        col1, col2 = st.columns(2)
        with col1:
            kind = st.radio(
                "Type",
                options=list(TransactionType),
                index=list(TransactionType).index(draft.type),
                format_func=lambda t: t.value.title(),
                horizontal=True,
            )
            amount = st.number_input(
                "Amount *",
                value=float(draft.amount) if draft.amount is not None else 0.0,
                min_value=0.0,
                step=0.01,
                format="%.2f",
            )
            currency = st.selectbox(
                "Currency",
                options=list(Currency),
                index=list(Currency).index(draft.currency or Currency.ILS),
                format_func=lambda c: f"{c.value} ({c.symbol})",
            )
            entry_date = st.date_input("Date *", value=draft.date or date.today())
        with col2:
            description = st.text_input("Description", value=draft.description)
            categories = INCOME_CATEGORIES if kind == TransactionType.INCOME else EXPENSE_CATEGORIES
            category = st.selectbox(
                "Category",
                options=categories,
                index=categories.index(draft.category) if draft.category in categories else len(categories) - 1,
            )
            classification = st.selectbox(
                "Treatment (expenses only)",
                options=list(ExpenseClass),
                index=list(ExpenseClass).index(draft.classification),
                format_func=CLASSIFICATION_LABELS.get,
            )
            is_recurring = st.checkbox("Recurring monthly", value=draft.is_recurring)

        submitted = st.form_submit_button("💾 Save", type="primary")

    if not submitted:
        return

    new_draft = TransactionDraft(
        date=entry_date,
        description=description,
        amount=Decimal(str(amount)),
        category=category,
        type=kind,
        currency=currency,
        classification=classification if kind == TransactionType.EXPENSE else ExpenseClass.HOUSEHOLD,
        is_recurring=is_recurring,
    )

    try:
        transaction, result = run_async(flow.add_transaction(
            new_draft,
            correlation_id=create_correlation_id(),
        ))
    except StorageError as e:
        st.error(f"Failed to save: {e}")
        return

    if transaction is None:
        st.error(flow.validation_summary(result))
        return

    if result.warnings:
        st.warning(flow.validation_summary(result))
    st.success(
        f"Saved {transaction.description or transaction.category}: "
        f"{format_money(transaction.amount, transaction.currency)}"
    )
    st.session_state.draft = TransactionDraft(date=date.today())


def render_settings_page():
    """Connection status of the external services."""
    st.title("⚙️ Settings")
    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Google Sheets (Storage)", "google_sheets"),
        ("Gemini (Receipts & Advisor)", "gemini"),
        ("Open Exchange Rates", "exchange_rates"),
        ("Application", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown(
        "To configure the application, create a `.env` file with your API keys. "
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
