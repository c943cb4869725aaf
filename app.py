import streamlit as st
import pandas as pd
from pathlib import Path
import logging
import os
import sys
import time
from datetime import date

# Add current directory to path
sys.path.append(str(Path(__file__).parent))

import auth
from models import EXPENSE_CATEGORIES, INVESTMENT_TYPES, FinTrackError
from storage import get_store
from trackers import (
    add_expense,
    add_goal,
    add_investment,
    add_progress,
    delete_expense,
    delete_goal,
    delete_investment,
    expenses_total,
    filter_expenses,
    load_entities,
    update_expense,
    update_goal,
    update_investment,
)
from insights import (
    TIME_RANGES,
    DEFAULT_TIME_RANGE,
    dashboard_summary,
    entities_allocation,
    expense_category_data,
    financial_overview,
    format_currency,
    generate_tips,
    investment_data,
    monthly_expense_data,
    portfolio_summary,
    savings_data,
)
from dashboard import allocation_pie, category_spend, investment_performance, monthly_trend, savings_progress

# --- Configuration ---
st.set_page_config(page_title="FinTrack", layout="wide", page_icon="💰")
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())

TIME_RANGE_LABELS = {
    "last1Month": "Last month",
    "last3Months": "Last 3 months",
    "last6Months": "Last 6 months",
    "last12Months": "Last 12 months",
}

# --- Store & Session ---
if "store" not in st.session_state:
    st.session_state.store = get_store()
    # Login state is per browser session only.
    st.session_state.session = None


def get_session():
    return st.session_state.get("session")


def show_error(exc: Exception):
    st.error(f"❌ {exc}")


# --- Authentication ---
def check_login():
    """Login / sign-up page. Returns True once a session exists."""
    if "failed_attempts" not in st.session_state:
        st.session_state["failed_attempts"] = []
        st.session_state["lock_until"] = None

    if get_session() is not None:
        return True

    store = st.session_state.store
    st.title("💰 Welcome to FinTrack")
    st.caption("Your personal finance companion")

    login_tab, signup_tab = st.tabs(["Login", "Sign Up"])

    with login_tab:
        now = time.time()
        lock_until = st.session_state.get("lock_until")
        with st.form("login_form"):
            email = st.text_input("Email", placeholder="you@example.com")
            password = st.text_input("Password", type="password")
            submitted = st.form_submit_button("Sign In", use_container_width=True)

        if lock_until and now < lock_until:
            st.error(f"Too many failed attempts. Please wait {int(lock_until - now)} seconds before trying again.")
        elif submitted:
            # Prune stale attempts (keep last 5 minutes)
            st.session_state["failed_attempts"] = [t for t in st.session_state["failed_attempts"] if now - t < 300]
            try:
                st.session_state.session = auth.login(store, email, password)
            except FinTrackError as exc:
                st.session_state["failed_attempts"].append(now)
                show_error(exc)
                if len(st.session_state["failed_attempts"]) >= 5:
                    st.session_state["lock_until"] = now + 60
                    st.warning("Too many failed attempts. Login temporarily locked for 60 seconds.")
            else:
                st.session_state["failed_attempts"] = []
                st.session_state["lock_until"] = None
                st.success("✅ Login successful!")
                st.rerun()

    with signup_tab:
        with st.form("signup_form"):
            name = st.text_input("Name")
            new_email = st.text_input("Email", key="signup_email")
            new_password = st.text_input("Password", type="password", key="signup_password")
            confirm = st.text_input("Confirm Password", type="password")
            created = st.form_submit_button("Create Account", use_container_width=True)
        if created:
            try:
                st.session_state.session = auth.signup(store, name, new_email, new_password, confirm)
            except FinTrackError as exc:
                show_error(exc)
            else:
                st.success("Account created successfully!")
                st.rerun()

    # Demo credentials (hidden unless explicitly allowed)
    if os.getenv("SHOW_DEMO_CREDENTIALS", "false").lower() == "true":
        st.caption("Demo account: demo@fintrack.local / demo1234 (run `python seed_db.py` first)")

    return False


if not check_login():
    st.stop()

session = get_session()
entities = load_entities(session.store, session.user_id)

# Sidebar
with st.sidebar:
    st.header(f"👋 {session.user.name}")
    st.caption(session.user.email)
    time_range = st.selectbox(
        "Analysis window",
        list(TIME_RANGES),
        index=list(TIME_RANGES).index(DEFAULT_TIME_RANGE),
        format_func=TIME_RANGE_LABELS.get,
    )
    st.divider()
    if st.button("🚪 Logout", use_container_width=True):
        auth.logout(session)
        st.session_state.session = None
        st.rerun()

st.title("💰 FinTrack")

tab1, tab2, tab3, tab4, tab5, tab6 = st.tabs(
    ["📊 Dashboard", "💳 Expenses", "🎯 Savings", "📈 Investments", "🧠 Insights", "👤 Profile"]
)

with tab1:
    st.header("Financial Overview")
    summary = dashboard_summary(entities)
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total Balance", format_currency(summary["total_balance"]), help="Savings + investments - this month's expenses")
    col2.metric("Monthly Expenses", format_currency(summary["monthly_expenses"]), help="This month")
    col3.metric("Savings", format_currency(summary["total_savings"]), help="Total saved")
    col4.metric("Investments", format_currency(summary["total_investments"]), help="Current value")

    col1, col2 = st.columns(2)
    with col1:
        st.plotly_chart(category_spend(expense_category_data(entities.expenses, time_range)), use_container_width=True)
    with col2:
        st.plotly_chart(allocation_pie(entities_allocation(entities, time_range)), use_container_width=True)

with tab2:
    st.header("💳 Expense Tracker")

    with st.expander("➕ Add Expense"):
        with st.form("add_expense", clear_on_submit=True):
            col1, col2 = st.columns(2)
            description = col1.text_input("Description")
            amount = col2.number_input("Amount ($)", min_value=0.0, step=1.0)
            col3, col4 = st.columns(2)
            category = col3.selectbox("Category", EXPENSE_CATEGORIES)
            spent_on = col4.date_input("Date", value=date.today())
            if st.form_submit_button("Add Expense"):
                try:
                    add_expense(session, description, amount, category, spent_on)
                except FinTrackError as exc:
                    show_error(exc)
                else:
                    st.success("Expense added successfully!")
                    st.rerun()

    # Filters
    col1, col2, col3 = st.columns(3)
    with col1:
        sel_cat = st.selectbox("Category", ["All"] + EXPENSE_CATEGORIES, key="filter_category")
    with col2:
        start = st.date_input("From", value=None, key="filter_start")
    with col3:
        end = st.date_input("To", value=None, key="filter_end")

    shown = filter_expenses(entities.expenses, category=sel_cat, start=start, end=end)
    if not shown:
        st.info("No expenses match these filters.")
    else:
        st.metric("Total", format_currency(expenses_total(shown)))
        df_exp = pd.DataFrame(
            [
                {"Date": e.date.date(), "Description": e.description, "Category": e.category, "Amount": e.amount, "ID": e.id}
                for e in shown
            ]
        )
        st.dataframe(df_exp.drop(columns=["ID"]), use_container_width=True, hide_index=True)

        labels = {e.id: f"{e.date:%b %d, %Y} · {e.description} · {format_currency(e.amount)}" for e in shown}
        selected_id = st.selectbox("Select expense", list(labels), format_func=labels.get)
        selected = next(e for e in shown if e.id == selected_id)

        with st.form("edit_expense"):
            col1, col2 = st.columns(2)
            new_desc = col1.text_input("Description", value=selected.description, key=f"edit_desc_{selected.id}")
            new_amount = col2.number_input("Amount ($)", min_value=0.0, value=float(selected.amount), step=1.0, key=f"edit_amount_{selected.id}")
            col3, col4 = st.columns(2)
            new_cat = col3.selectbox(
                "Category",
                EXPENSE_CATEGORIES,
                index=EXPENSE_CATEGORIES.index(selected.category) if selected.category in EXPENSE_CATEGORIES else 0,
                key=f"edit_category_{selected.id}",
            )
            new_date = col4.date_input("Date", value=selected.date.date(), key=f"edit_date_{selected.id}")
            save_col, delete_col = st.columns(2)
            save = save_col.form_submit_button("Save Changes")
            remove = delete_col.form_submit_button("Delete")
        if save:
            try:
                update_expense(session, selected.id, new_desc, new_amount, new_cat, new_date)
            except FinTrackError as exc:
                show_error(exc)
            else:
                st.success("Expense updated successfully!")
                st.rerun()
        if remove:
            delete_expense(session, selected.id)
            st.success("Expense deleted successfully!")
            st.rerun()

with tab3:
    st.header("🎯 Savings Goals")

    with st.expander("➕ Add Goal"):
        with st.form("add_goal", clear_on_submit=True):
            goal_name = st.text_input("Goal Name (e.g., Emergency Fund)")
            col1, col2 = st.columns(2)
            target = col1.number_input("Target Amount ($)", min_value=0.0, step=100.0)
            initial = col2.number_input("Already Saved ($)", min_value=0.0, step=50.0)
            if st.form_submit_button("Add Goal"):
                try:
                    add_goal(session, goal_name, target, initial)
                except FinTrackError as exc:
                    show_error(exc)
                else:
                    st.success("Saving goal added successfully!")
                    st.rerun()

    if not entities.savings:
        st.info("Create your first savings goal to start tracking your progress!")
    else:
        st.metric("Total Saved", format_currency(sum(g.current_amount for g in entities.savings)))
        for goal in entities.savings:
            status = "Goal reached! 🎉" if goal.reached else "In progress..."
            st.markdown(
                f"**{goal.name}**: {format_currency(goal.current_amount)} / {format_currency(goal.target_amount)} ({status})"
            )
            st.progress(goal.display_progress / 100, text=f"{goal.display_progress:.0f}%")

        goal_labels = {g.id: g.name for g in entities.savings}
        goal_id = st.selectbox("Select goal", list(goal_labels), format_func=goal_labels.get)
        goal = next(g for g in entities.savings if g.id == goal_id)

        col1, col2 = st.columns(2)
        with col1:
            with st.form("update_progress", clear_on_submit=True):
                delta = st.number_input("Add to savings ($, negative to withdraw)", step=10.0)
                if st.form_submit_button("Update Progress"):
                    try:
                        updated = add_progress(session, goal.id, delta)
                    except FinTrackError as exc:
                        show_error(exc)
                    else:
                        if updated is not None and updated.reached:
                            st.balloons()
                            st.success("Congratulations! You've reached your saving goal! 🎉")
                        else:
                            st.success("Progress updated successfully!")
                        st.rerun()
        with col2:
            with st.form("edit_goal"):
                edit_name = st.text_input("Goal Name", value=goal.name, key=f"edit_goal_name_{goal.id}")
                edit_target = st.number_input("Target Amount ($)", min_value=0.0, value=float(goal.target_amount), key=f"edit_target_{goal.id}")
                edit_current = st.number_input("Saved Amount ($)", min_value=0.0, value=float(goal.current_amount), key=f"edit_current_{goal.id}")
                save_col, delete_col = st.columns(2)
                save_goal = save_col.form_submit_button("Save Changes")
                remove_goal = delete_col.form_submit_button("Delete")
            if save_goal:
                try:
                    update_goal(session, goal.id, edit_name, edit_target, edit_current)
                except FinTrackError as exc:
                    show_error(exc)
                else:
                    st.success("Saving goal updated successfully!")
                    st.rerun()
            if remove_goal:
                delete_goal(session, goal.id)
                st.success("Saving goal deleted successfully!")
                st.rerun()

with tab4:
    st.header("📈 Investment Tracker")

    with st.expander("➕ Add Investment"):
        with st.form("add_investment", clear_on_submit=True):
            col1, col2 = st.columns(2)
            inv_name = col1.text_input("Investment Name")
            inv_type = col2.selectbox("Investment Type", INVESTMENT_TYPES)
            col3, col4 = st.columns(2)
            inv_amount = col3.number_input("Amount Invested ($)", min_value=0.0, step=100.0)
            inv_roi = col4.number_input("ROI (%)", value=0.0, step=0.5)
            if st.form_submit_button("Add Investment"):
                try:
                    add_investment(session, inv_name, inv_amount, inv_roi, inv_type)
                except FinTrackError as exc:
                    show_error(exc)
                else:
                    st.success("Investment added successfully!")
                    st.rerun()

    portfolio = portfolio_summary(entities.investments)
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Total Invested", format_currency(portfolio["total_invested"]))
    c2.metric("Current Value", format_currency(portfolio["total_value"]))
    c3.metric("Total Gain", format_currency(portfolio["total_gain"]))
    c4.metric("Average ROI", f"{portfolio['average_roi']:.2f}%", help="Simple average across holdings, not weighted by amount")

    if not entities.investments:
        st.info("No investments added yet.")
    else:
        st.subheader("Breakdown by Type")
        st.dataframe(
            pd.DataFrame(
                [{"Type": t, "Invested": v} for t, v in portfolio["invested_by_type"].items()]
            ),
            use_container_width=True,
            hide_index=True,
        )

        rows = investment_data(entities.investments)
        df_inv = pd.DataFrame(
            [
                {
                    "Name": inv.name,
                    "Type": inv.type,
                    "Invested": row["invested"],
                    "ROI (%)": inv.roi,
                    "Current Value": row["current"],
                    "Gain": row["gain"],
                }
                for inv, row in zip(entities.investments, rows)
            ]
        )
        st.dataframe(df_inv, use_container_width=True, hide_index=True)

        inv_labels = {i.id: f"{i.name} ({i.type})" for i in entities.investments}
        inv_id = st.selectbox("Select investment", list(inv_labels), format_func=inv_labels.get)
        inv = next(i for i in entities.investments if i.id == inv_id)
        with st.form("edit_investment"):
            col1, col2 = st.columns(2)
            edit_inv_name = col1.text_input("Investment Name", value=inv.name, key=f"edit_inv_name_{inv.id}")
            edit_inv_type = col2.selectbox(
                "Investment Type",
                INVESTMENT_TYPES,
                index=INVESTMENT_TYPES.index(inv.type) if inv.type in INVESTMENT_TYPES else 0,
                key=f"edit_inv_type_{inv.id}",
            )
            col3, col4 = st.columns(2)
            edit_inv_amount = col3.number_input("Amount Invested ($)", min_value=0.0, value=float(inv.amount), key=f"edit_inv_amount_{inv.id}")
            edit_inv_roi = col4.number_input("ROI (%)", value=float(inv.roi), step=0.5, key=f"edit_inv_roi_{inv.id}")
            save_col, delete_col = st.columns(2)
            save_inv = save_col.form_submit_button("Save Changes")
            remove_inv = delete_col.form_submit_button("Delete")
        if save_inv:
            try:
                update_investment(session, inv.id, edit_inv_name, edit_inv_amount, edit_inv_roi, edit_inv_type)
            except FinTrackError as exc:
                show_error(exc)
            else:
                st.success("Investment updated successfully!")
                st.rerun()
        if remove_inv:
            delete_investment(session, inv.id)
            st.success("Investment deleted successfully!")
            st.rerun()

with tab5:
    st.header("🧠 Insights")
    st.caption(f"Analytics for: {TIME_RANGE_LABELS[time_range]}")

    overview = financial_overview(entities, time_range)
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total Expenses", format_currency(overview["total_expenses"]))
    col2.metric("Total Savings", format_currency(overview["total_savings"]))
    col3.metric("Total Investments", format_currency(overview["total_investments"]))
    col4.metric("Net Worth", format_currency(overview["net_worth"]))

    exp_tab, sav_tab, inv_tab, alloc_tab = st.tabs(["Expenses", "Savings", "Investments", "Allocation"])
    with exp_tab:
        col1, col2 = st.columns(2)
        with col1:
            st.plotly_chart(category_spend(expense_category_data(entities.expenses, time_range)), use_container_width=True)
        with col2:
            st.plotly_chart(monthly_trend(monthly_expense_data(entities.expenses, time_range)), use_container_width=True)
    with sav_tab:
        st.plotly_chart(savings_progress(savings_data(entities.savings)), use_container_width=True)
    with inv_tab:
        st.plotly_chart(investment_performance(investment_data(entities.investments)), use_container_width=True)
    with alloc_tab:
        st.plotly_chart(allocation_pie(entities_allocation(entities, time_range)), use_container_width=True)

    st.subheader("💡 Financial Tips")
    for tip in generate_tips(entities, time_range):
        st.markdown(tip)

with tab6:
    st.header("👤 Profile")
    st.markdown(f"**Name:** {session.user.name}  \n**Email:** {session.user.email}")

    languages = {"en": "English", "hi": "Hindi"}
    language = st.selectbox(
        "Language",
        list(languages),
        index=list(languages).index(session.user.language),
        format_func=languages.get,
    )
    if language != session.user.language:
        auth.update_language(session, language)
        st.success(f"Language changed to {languages[language]}")
        st.rerun()

    st.divider()
    st.subheader("⚠️ Danger Zone")
    st.caption("This will delete all your expenses, savings goals and investments. It cannot be undone.")
    confirm_reset = st.checkbox("I understand, reset all my data")
    if st.button("Reset App Data", disabled=not confirm_reset):
        auth.reset_user_data(session)
        st.success("All data has been reset successfully.")
        st.rerun()
