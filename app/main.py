import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import asyncio

import pandas as pd
import plotly.express as px
import streamlit as st

from core.backend import InMemoryBackend
from core.config import configure_logging, get_settings
from core.domain import EXPENSE, INCOME
from core.money import format_money, from_cents, to_cents
from core.services import BudgetSession
from core.transforms import tree_totals

settings = get_settings()
configure_logging(settings.log_level)

st.set_page_config(page_title="Budget", layout="wide")


def money(cents: int) -> str:
    return format_money(cents, settings.currency)


if "budget_session" not in st.session_state:
    backend = InMemoryBackend.from_seed(settings.seed_path)
    session = BudgetSession(backend, settings.user_id, pd.Timestamp.today().strftime("%Y-%m"))
    asyncio.run(session.mount())
    st.session_state.budget_session = session

session: BudgetSession = st.session_state.budget_session


async def _save_edit(parent_id: int, child_id: int, key: str) -> None:
    session.edit(parent_id, child_id, to_cents(st.session_state[key]))
    # asyncio.run cancels the debounce timer when this callback returns,
    # so the write has to go out before then
    await session.flush()


def on_budget_change(parent_id: int, child_id: int, key: str) -> None:
    asyncio.run(_save_edit(parent_id, child_id, key))


def on_month_change() -> None:
    asyncio.run(session.set_month(st.session_state.month_picker))


months = [p.strftime("%Y-%m") for p in pd.period_range(end=pd.Timestamp.today(), periods=12, freq="M")]
if session.month not in months:
    months.append(session.month)

st.sidebar.selectbox(
    "Month", months, index=months.index(session.month), key="month_picker", on_change=on_month_change
)

st.title(session.month_label)

if session.is_loading:
    st.info("Loading...")

col_groups, col_side = st.columns([3, 1])

with col_groups:
    if not session.budget:
        st.info("No categories yet")
    for parent in session.budget:
        badge = "🟢" if parent.type == INCOME else "🔴"
        with st.expander(f"{badge} {parent.name} · {money(parent.remaining)} remaining"):
            header = st.columns([3, 2, 2, 2])
            for col, label in zip(header, ["Category", "Budget", "Activity", "Remaining"]):
                col.markdown(f"**{label}**")
            for child in parent.children:
                row = st.columns([3, 2, 2, 2])
                row[0].write(child.name)
                key = f"budget_{session.month}_{child.id}"
                row[1].number_input(
                    "Budget",
                    min_value=0.0,
                    value=float(from_cents(child.budget)),
                    step=10.0,
                    format="%.2f",
                    key=key,
                    label_visibility="collapsed",
                    on_change=on_budget_change,
                    args=(parent.id, child.id, key),
                )
                row[2].write(money(child.activity))
                colour = "green" if child.status == "under" else "red"
                tip = "Under budget" if child.status == "under" else "Over budget"
                row[3].markdown(f":{colour}[{money(child.remaining)}]", help=tip)

    if session.budget:
        totals = tree_totals(session.budget)
        t1, t2, t3 = st.columns(3)
        t1.metric("Total budgeted", money(totals["budget"]))
        t2.metric("Total activity", money(totals["activity"]))
        t3.metric("Total remaining", money(totals["remaining"]))

        df = pd.DataFrame(
            [
                {"Group": p.name, "Budget": float(from_cents(p.budget)),
                 "Activity": float(from_cents(p.activity))}
                for p in session.budget
            ]
        ).melt(id_vars="Group", var_name="Figure", value_name="Amount")
        fig = px.bar(df, x="Group", y="Amount", color="Figure", barmode="group",
                     title="Budget vs activity", template="plotly_dark")
        st.plotly_chart(fig, use_container_width=True)

with col_side:
    st.metric("Ready to Assign", money(session.ready_to_assign))
    st.subheader("Summary")
    st.metric("Income", money(session.summary.income))
    st.metric("Expenses", money(session.summary.expenses))

    st.subheader("Add Category")
    with st.form("add_category", clear_on_submit=True):
        name = st.text_input("Name")
        parents = {p.name: p for p in session.budget}
        parent_name = st.selectbox("Group", ["(new group)"] + list(parents))
        type_ = st.selectbox("Type", [EXPENSE, INCOME])
        if st.form_submit_button("Add") and name.strip():
            parent = parents.get(parent_name)
            asyncio.run(session.add_category(
                name.strip(),
                parent.type if parent else type_,
                parent.id if parent else None,
            ))
            st.rerun()
