"""
Bitcoin Power Law Retirement Planner - Interactive Dashboard

Stress-tests a bitcoin + cash retirement plan against a power law fair
value model with forced four-year boom/bust cycles.

Run with: streamlit run app.py
"""

import logging
from datetime import datetime, timedelta, timezone

import streamlit as st
import plotly.graph_objects as go
import plotly.express as px
import pandas as pd

from btc_retirement.accumulation import AccumulationPlan, project_plan
from btc_retirement.allocation import SmartWithdrawalStrategy
from btc_retirement.config import SCENARIO_PRESETS, SimulationParams, year_labels
from btc_retirement.cycle import PHASE_DESCRIPTIONS, CyclePhase
from btc_retirement.engine import (
    LedgerStage,
    LifecycleSimulator,
    ledger_to_frame,
    projection_to_frame,
    resolve_retirement_start_year,
    summarize_ledger,
)
from btc_retirement.price_model import PowerLawModel
from btc_retirement.survival import bear_market_survival_test
from btc_retirement.validation import validate_retirement_inputs, validate_savings_plan

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)

# ── Page config ──────────────────────────────────────────────────────
st.set_page_config(
    page_title="Bitcoin Power Law Retirement Planner",
    layout="wide",
    initial_sidebar_state="expanded",
)

COLORS = px.colors.qualitative.Set2
STAGE_COLORS = {
    LedgerStage.ACCUMULATION.value: "#2ca02c",
    LedgerStage.RETIREMENT_START.value: "#9467bd",
    LedgerStage.WITHDRAWAL.value: "#ff7f0e",
    LedgerStage.DEPLETED.value: "#d62728",
}

# Common layout for all charts
CHART_THEME = dict(
    template="simple_white",
    paper_bgcolor="rgba(0,0,0,0)",
    plot_bgcolor="rgba(0,0,0,0)",
    font=dict(color="#262730"),
)


def fmt_usd(value):
    if value >= 1_000_000:
        return f"${value / 1_000_000:.2f}M"
    if value >= 1_000:
        return f"${value / 1_000:.0f}K"
    return f"${value:.2f}"


# ── Helper: power law band chart ─────────────────────────────────────
def power_law_chart(bands, current_price=None, today=None):
    fig = go.Figure()
    for col, name, color, dash in [
        ("upper_bound", "Upper Bound (2x)", "#d62728", "dot"),
        ("fair_value", "Fair Value", "#1f77b4", None),
        ("floor_value", "Floor (0.42x)", "#2ca02c", "dot"),
    ]:
        fig.add_trace(
            go.Scatter(
                x=bands["date"], y=bands[col], name=name, mode="lines",
                line=dict(color=color, width=2, dash=dash),
            )
        )
    if current_price and today is not None:
        fig.add_trace(
            go.Scatter(
                x=[today], y=[current_price], mode="markers", name="Current Price",
                marker=dict(size=10, color="orange", symbol="diamond",
                            line=dict(width=1, color="#333")),
            )
        )
    fig.update_layout(
        **CHART_THEME,
        title=dict(text="Power Law Bands", font=dict(size=14)),
        yaxis_title="USD (log)", yaxis_type="log", height=380,
        margin=dict(l=50, r=20, t=35, b=30),
        hovermode="x unified",
        legend=dict(orientation="h", yanchor="bottom", y=-0.3, font=dict(size=10)),
    )
    return fig


def ledger_chart(frame):
    fig = go.Figure()
    fig.add_trace(
        go.Bar(
            x=frame["year"], y=frame["total_value"], name="Total Value",
            marker_color=[STAGE_COLORS[s] for s in frame["stage"]],
            customdata=frame[["stage", "cycle_phase"]],
            hovertemplate="%{x}: $%{y:,.0f}<br>%{customdata[0]} / %{customdata[1]}<extra></extra>",
        )
    )
    fig.add_trace(
        go.Scatter(
            x=frame["year"], y=frame["cash"], name="Cash", mode="lines",
            line=dict(color="#17becf", width=2),
        )
    )
    fig.update_layout(
        **CHART_THEME,
        title=dict(text="Portfolio Value by Year", font=dict(size=14)),
        yaxis_title="USD", height=360,
        margin=dict(l=50, r=20, t=35, b=30),
        hovermode="x unified",
        legend=dict(orientation="h", yanchor="bottom", y=-0.3, font=dict(size=10)),
    )
    return fig


def holdings_chart(frame):
    fig = go.Figure()
    fig.add_trace(
        go.Scatter(
            x=frame["year"], y=frame["bitcoin"], mode="lines+markers", name="BTC",
            line=dict(color=COLORS[1], width=2.5),
        )
    )
    fig.update_layout(
        **CHART_THEME,
        title=dict(text="Bitcoin Holdings (BTC)", font=dict(size=14)),
        yaxis_title="BTC", height=320,
        margin=dict(l=50, r=20, t=35, b=30),
        hovermode="x unified",
    )
    return fig


# ── Sidebar ──────────────────────────────────────────────────────────
st.sidebar.title("Retirement Inputs")

preset_name = st.sidebar.selectbox(
    "Scenario Preset", ["Custom"] + list(SCENARIO_PRESETS.keys()), index=1,
)
if preset_name != "Custom":
    params = SCENARIO_PRESETS[preset_name]
else:
    params = SimulationParams()

today = datetime.now(timezone.utc)
price_model = PowerLawModel(params.power_law)
fair_today = price_model.fair_value(today)

with st.sidebar.expander("Holdings", expanded=True):
    bitcoin_amount = st.number_input("Bitcoin (BTC)", 0.0, value=1.0, step=0.1, format="%.4f")
    cash_amount = st.number_input("Cash ($)", 0.0, value=50_000.0, step=5_000.0)
    annual_withdrawal = st.number_input("Annual Withdrawal ($)", 0.0, value=60_000.0, step=5_000.0)
    current_price = st.number_input(
        "Current BTC Price ($)", 0.0, value=float(round(fair_today)), step=1_000.0,
        help="Defaults to today's power law fair value",
    )
    years_until_retirement = st.slider("Years Until Retirement", 0, 30, 0)

with st.sidebar.expander("Monthly Savings Plan", expanded=False):
    savings_enabled = st.checkbox("Enable monthly savings", value=False)
    monthly_savings = st.number_input("Monthly Savings ($)", 0.0, value=500.0, step=100.0)
    years_to_retirement = st.slider("Years of Saving", 0, 30, 10)
    double_down = st.checkbox(
        "Double down in bear markets", value=False,
        help="Double the contribution while the cycle is in a floor or recovery year",
    )

with st.sidebar.expander("Withdrawal Policy", expanded=False):
    emergency_mode = st.checkbox(
        "Emergency mode", value=False,
        help="Ignore valuation: spend cash first, then bitcoin",
    )

# ── Validation ───────────────────────────────────────────────────────
validation = validate_retirement_inputs(
    bitcoin_amount, cash_amount, annual_withdrawal, params.validation
)
plan = None
if savings_enabled:
    plan_check = validate_savings_plan(monthly_savings, years_to_retirement)
    validation.errors.extend(plan_check.errors)
    plan = AccumulationPlan(
        monthly_amount=monthly_savings,
        years=years_to_retirement,
        double_during_bear=double_down,
        start_date=today,
    )

st.title("Bitcoin Power Law Retirement Planner")
st.markdown(
    "Deterministic stress test of a bitcoin + cash retirement plan. Prices follow the "
    "power law with a forced two-year bear market at retirement and a repeating "
    "four-year cycle afterwards."
)

if not validation.is_valid:
    for message in validation.errors:
        st.error(message)
    logger.info("Inputs rejected: %s", "; ".join(validation.errors))
    st.stop()

# ── Run simulation ───────────────────────────────────────────────────
sim = LifecycleSimulator(params=params)
ledger = sim.simulate(
    bitcoin_amount, cash_amount, annual_withdrawal,
    accumulation_plan=plan,
    current_date=today,
    years_until_retirement=years_until_retirement,
)
frame = ledger_to_frame(ledger)
summary = summarize_ledger(ledger, params.withdrawal_years)

retirement_year = resolve_retirement_start_year(today.year, years_until_retirement, plan)
projected_bitcoin = 0.0
monthly_rows = []
if plan is not None and plan.years > 0:
    monthly_rows = project_plan(plan, sim.cycle_model)
    if monthly_rows:
        projected_bitcoin = monthly_rows[-1].total_bitcoin

survival = bear_market_survival_test(
    current_price, retirement_year, bitcoin_amount + projected_bitcoin,
    annual_withdrawal, cash_amount,
    params=params.survival, cycle_params=params.cycle, price_model=price_model,
)

strategy = SmartWithdrawalStrategy(params.allocation, price_model)
decision = strategy.decide(
    current_price, today, cash_amount, bitcoin_amount, annual_withdrawal,
    emergency_mode=emergency_mode,
)

# Key metrics row
ratio = price_model.price_to_fair_value_ratio(current_price, today) if current_price else 0.0
c1, c2, c3, c4, c5 = st.columns(5)
c1.metric("Fair Value Today", fmt_usd(fair_today))
c2.metric("Price / Fair Value", f"{ratio:.2f}x")
c3.metric("Bear Market Test", "PASS" if survival.passes else "FAIL")
c4.metric(
    "50-Year Simulation",
    "PASS" if summary.succeeded else "FAIL",
    f"{summary.withdrawal_years} retirement years",
    delta_color="normal" if summary.succeeded else "inverse",
)
c5.metric("Retirement Year", f"{retirement_year}")

if summary.depletion_year is not None:
    st.warning(f"Assets depleted in {summary.depletion_year}.")

# ── Tabs ─────────────────────────────────────────────────────────────
tab_overview, tab_ledger, tab_savings, tab_method = st.tabs(
    ["Overview", "Ledger", "Savings Plan", "Methodology"]
)

# ── TAB: Overview ────────────────────────────────────────────────────
with tab_overview:
    horizon_end = today + timedelta(days=365 * 10)
    bands = price_model.series(datetime(2012, 1, 1, tzinfo=timezone.utc), horizon_end, 30)
    st.plotly_chart(power_law_chart(bands, current_price, today), use_container_width=True)

    col1, col2 = st.columns(2)
    with col1:
        st.plotly_chart(ledger_chart(frame), use_container_width=True)
    with col2:
        st.plotly_chart(holdings_chart(frame), use_container_width=True)

    st.subheader("Withdrawal Recommendation (Today)")
    if decision.is_usable:
        st.markdown(
            f"**{decision.strategy}** ({decision.strategy_tag.value}): "
            f"use {fmt_usd(decision.use_cash_amount)} cash and "
            f"{decision.use_bitcoin_amount:.6f} BTC. {decision.reasoning}"
        )
        if not decision.is_sufficient:
            st.warning(f"Short by {fmt_usd(decision.shortfall)} this year.")
    else:
        st.info("No usable recommendation for the current inputs.")
    st.caption(strategy.rebalancing_advice(current_price, today, bitcoin_amount, cash_amount))

# ── TAB: Ledger ──────────────────────────────────────────────────────
with tab_ledger:
    st.subheader(
        "Full Life Plan: Accumulation + 50-Year Retirement" if plan
        else "50-Year Withdrawal Projection"
    )
    table = frame.copy()
    table["cycle_phase"] = [
        PHASE_DESCRIPTIONS[CyclePhase(v)] for v in table["cycle_phase"]
    ]
    for col in ["price", "cash_flow", "cash", "total_value"]:
        table[col] = table[col].map(lambda v: f"${v:,.0f}")
    table["price_to_fair_ratio"] = table["price_to_fair_ratio"].map(lambda v: f"{v:.2f}x")
    table["bitcoin_delta"] = table["bitcoin_delta"].map(lambda v: f"{v:+.4f}")
    table["bitcoin"] = table["bitcoin"].map(lambda v: f"{v:.4f}")
    st.dataframe(
        table[[
            "year", "stage", "cycle_phase", "price", "price_to_fair_ratio",
            "cash_flow", "bitcoin_delta", "strategy", "bitcoin", "cash", "total_value",
        ]],
        hide_index=True, use_container_width=True,
    )

# ── TAB: Savings Plan ────────────────────────────────────────────────
with tab_savings:
    if not monthly_rows:
        st.info("Enable the monthly savings plan in the sidebar to see a projection.")
    else:
        proj = projection_to_frame(monthly_rows)
        yearly = proj.groupby("year").agg(
            invested=("monthly_amount", "sum"),
            bought=("bitcoin_purchased", "sum"),
            price=("price", "first"),
            phase=("phase", "first"),
        )
        yearly.index = year_labels(today.year, len(yearly))
        st.metric("Projected BTC at Retirement", f"{projected_bitcoin:.4f}")
        st.dataframe(yearly, use_container_width=True)

# ── TAB: Methodology ─────────────────────────────────────────────────
with tab_method:
    st.header("Model Structure")
    st.markdown("""
1. **Power law**: fair value = 1.01e-17 × days since genesis ^ 5.82; floor 0.42×, upper bound 2×
2. **Cycle**: retirement starts with two floor years and a recovery year, then repeats floor → recovery → bull → peak
3. **Bear market test**: two withdrawals at the floor, one at recovery (cash first), then at least 20 years of runway at fair value
4. **Smart withdrawals**: below fair value spend cash and hold bitcoin; above it take profits in bitcoin
""")
    st.header("Allocation Bands")
    a = params.allocation
    st.dataframe(
        pd.DataFrame({
            "Price / Fair Value": [
                f"≤ {a.extreme_undervalued_max}", f"≤ {a.undervalued_max}",
                f"≤ {a.fair_value_max}", f"≤ {a.overvalued_max}",
                f"≤ {a.bubble_max}", f"> {a.bubble_max}",
            ],
            "Policy": [
                "All cash first", "At least 80% cash", "Balanced blend",
                "Mostly bitcoin", "Bitcoin only", "Bitcoin only",
            ],
        }),
        hide_index=True, use_container_width=True,
    )

# ── Footer ───────────────────────────────────────────────────────────
st.divider()
st.caption(
    "This is a deterministic planning model for educational exploration. "
    "The power law is a trend fit, not a forecast, and should not be used for "
    "actual financial decisions."
)
