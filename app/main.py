"""
Streamlit Frontend for Money Manager

A small ledger UI over the TransactionAPI handlers.

DESIGN PRINCIPLES:
1. Same handlers, same status codes as any other client
2. Edit/delete controls only appear while a transaction is editable
3. Clear error messages straight from the API body

There is no long-lived event loop under Streamlit, so the background lock
sweep is replaced by one scheduler tick per page render.
"""

import asyncio
from datetime import datetime, time

import streamlit as st

from money_manager.api import TransactionAPI, create_api
from money_manager.config import validate_all_settings
from money_manager.models.transaction import Division, Period, TransactionKind


# Page configuration
st.set_page_config(
    page_title="Money Manager",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_api() -> TransactionAPI:
    """Get or create the API (cached across reruns)."""
    api = create_api()
    run_async(api.startup(run_scheduler=False))
    return api


def show_error(response) -> None:
    st.error(f"{response.status_code}: {response.body.get('error', 'Request failed')}")


def main():
    """Main application entry point."""
    api = get_api()
    run_async(api.scheduler.tick())

    st.sidebar.title("💰 Money Manager")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["➕ Add Transaction", "📋 Transactions", "📊 Summary", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **Remember:**
        Transactions can be edited or deleted
        for 12 hours after you add them.
        """
    )

    if page == "➕ Add Transaction":
        render_add_page(api)
    elif page == "📋 Transactions":
        render_list_page(api)
    elif page == "📊 Summary":
        render_summary_page(api)
    elif page == "⚙️ Settings":
        render_settings_page()


def render_add_page(api: TransactionAPI):
    """Render the add-transaction form."""
    st.title("➕ Add Transaction")

    with st.form("add_transaction", clear_on_submit=True):
        kind = st.radio(
            "Type",
            [k.value for k in TransactionKind],
            horizontal=True,
        )
        amount = st.number_input("Amount", min_value=0.0, step=1.0, format="%.2f")
        description = st.text_input("Description")
        category = st.text_input("Category", placeholder="e.g. food, salary, fuel")
        division = st.selectbox(
            "Division",
            [d.value for d in Division],
            index=[d.value for d in Division].index(Division.PERSONAL.value),
        )
        submitted = st.form_submit_button("💾 Save", type="primary")

    if submitted:
        response = run_async(api.create_transaction({
            "type": kind,
            "amount": str(amount),
            "description": description,
            "category": category,
            "division": division,
        }))
        if response.status_code == 201:
            st.success(f"Saved {response.body['type']} of {response.body['amount']:,.2f}")
        else:
            show_error(response)


def _filter_params(prefix: str, with_dates: bool) -> dict:
    """Sidebar-free filter controls shared by the list and summary pages."""
    cols = st.columns(4 if with_dates else 2)
    params = {
        "division": cols[0].selectbox(
            "Division", ["all"] + [d.value for d in Division], key=f"{prefix}_division"
        ),
        "category": cols[1].text_input("Category", value="all", key=f"{prefix}_category"),
    }
    if with_dates:
        period = cols[2].selectbox(
            "Period", ["", *[p.value for p in Period]], key=f"{prefix}_period"
        )
        if period:
            params["period"] = period
        date_range = cols[3].date_input("Custom range", value=(), key=f"{prefix}_range")
        if isinstance(date_range, tuple) and len(date_range) == 2:
            start, end = date_range
            params["startDate"] = datetime.combine(start, time.min).isoformat()
            params["endDate"] = datetime.combine(end, time.max).isoformat()
    return params


def render_list_page(api: TransactionAPI):
    """Render the transaction list with edit/delete controls."""
    st.title("📋 Transactions")

    response = run_async(api.list_transactions(_filter_params("list", with_dates=True)))
    if response.status_code != 200:
        show_error(response)
        return

    if not response.body:
        st.info("No transactions match these filters.")
        return

    for item in response.body:
        icon = "🟢" if item["type"] == "income" else "🔴"
        header = (
            f"{icon} {item['amount']:,.2f} · {item['category']} · "
            f"{item['division']} · {item['timestamp'][:16].replace('T', ' ')}"
        )
        with st.expander(header):
            st.write(item["description"])
            if not item["canEdit"]:
                st.caption("🔒 Locked: older than 12 hours")
                continue

            new_amount = st.number_input(
                "Amount",
                min_value=0.0,
                value=float(item["amount"]),
                key=f"amount_{item['_id']}",
            )
            new_description = st.text_input(
                "Description",
                value=item["description"],
                key=f"description_{item['_id']}",
            )
            col1, col2 = st.columns(2)
            if col1.button("✏️ Update", key=f"update_{item['_id']}"):
                result = run_async(api.update_transaction(item["_id"], {
                    "amount": str(new_amount),
                    "description": new_description,
                }))
                if result.status_code == 200:
                    st.success("Updated")
                    st.rerun()
                else:
                    show_error(result)
            if col2.button("🗑️ Delete", key=f"delete_{item['_id']}"):
                result = run_async(api.delete_transaction(item["_id"]))
                if result.status_code == 200:
                    st.success(result.body["message"])
                    st.rerun()
                else:
                    show_error(result)


def render_summary_page(api: TransactionAPI):
    """Render totals and breakdowns."""
    st.title("📊 Summary")

    response = run_async(api.get_summary(_filter_params("summary", with_dates=False)))
    if response.status_code != 200:
        show_error(response)
        return

    summary = response.body
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Income", f"{summary['totalIncome']:,.2f}")
    col2.metric("Expense", f"{summary['totalExpense']:,.2f}")
    col3.metric("Net balance", f"{summary['netBalance']:,.2f}")
    col4.metric("Transactions", summary["transactionCount"])

    st.markdown("### By category")
    if summary["categoryBreakdown"]:
        st.table([
            {"type / category": key, "amount": entry["amount"], "count": entry["count"]}
            for key, entry in sorted(summary["categoryBreakdown"].items())
        ])
    else:
        st.info("Nothing recorded yet.")

    st.markdown("### Expenses by division")
    st.bar_chart(summary["divisionBreakdown"])


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Configuration Status")

    status = validate_all_settings()

    for name, key in [("Application", "app"), ("Google Sheets (Storage)", "google_sheets")]:
        if key not in status:
            continue
        if status[key]:
            st.success(f"✅ {name} - OK")
        else:
            st.error(f"❌ {name} - {status.get(f'{key}_error', 'Not configured')}")

    st.markdown("---")
    st.markdown(
        "Configure the app with `APP_*` and `GOOGLE_SHEETS_*` environment "
        "variables or a `.env` file. `APP_STORAGE_BACKEND=google_sheets` "
        "switches from the in-memory ledger to Google Sheets."
    )


if __name__ == "__main__":
    main()
