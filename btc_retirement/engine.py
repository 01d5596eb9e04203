"""
Lifecycle simulation engine.

Composes the power law, the cycle model, the smart withdrawal strategy
and the savings projection into one year-by-year ledger:

1. Accumulation (optional)
   Monthly purchases from a savings plan, aggregated to one row per
   calendar year. No withdrawals.

2. Retirement start
   A single non-withdrawing row showing the balances carried into
   retirement, priced at cycle offset 0.

3. Withdrawals
   Up to 49 further years. Each year is priced by the cycle model
   anchored on the retirement year, the withdrawal is split between cash
   and bitcoin by the smart withdrawal strategy, and the portfolio is
   updated. A year that cannot be fully funded is tagged Depleted; the
   ledger stops once both bitcoin and cash are gone.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import List, Optional

import pandas as pd

from .accumulation import AccumulationPlan, MonthlyRow, project_plan
from .allocation import SmartWithdrawalStrategy, StrategyTag
from .config import SimulationParams
from .cycle import CyclePhase, CyclePhaseModel
from .price_model import DateLike, PowerLawModel, to_utc_datetime, year_start

logger = logging.getLogger(__name__)

# Balances within this distance of zero count as gone
DEPLETION_EPSILON = 1e-9


class LedgerStage(str, Enum):
    ACCUMULATION = "Accumulation"
    RETIREMENT_START = "RetirementStart"
    WITHDRAWAL = "Withdrawal"
    DEPLETED = "Depleted"


@dataclass(frozen=True)
class PortfolioState:
    """Holdings carried between simulated years. Never negative."""

    bitcoin: float = 0.0
    cash: float = 0.0

    def __post_init__(self):
        # frozen dataclass: clamp through object.__setattr__
        object.__setattr__(self, "bitcoin", max(0.0, self.bitcoin))
        object.__setattr__(self, "cash", max(0.0, self.cash))

    @property
    def is_depleted(self) -> bool:
        return self.bitcoin <= DEPLETION_EPSILON and self.cash <= DEPLETION_EPSILON

    def value(self, price: float) -> float:
        return self.bitcoin * price + self.cash

    def withdraw(self, cash_used: float, bitcoin_sold: float) -> "PortfolioState":
        return PortfolioState(self.bitcoin - bitcoin_sold, self.cash - cash_used)

    def buy(self, bitcoin_purchased: float) -> "PortfolioState":
        return replace(self, bitcoin=self.bitcoin + bitcoin_purchased)


@dataclass(frozen=True)
class LedgerRow:
    """One simulated year."""

    year: int
    year_number: int  # 1-based across accumulation and retirement
    stage: LedgerStage
    cycle_phase: CyclePhase
    price: float
    fair_value: float
    price_to_fair_ratio: float

    cash_flow: float  # + invested, - withdrawn
    bitcoin_delta: float  # + purchased, - sold
    cash_used: float
    bitcoin_sold: float
    bitcoin_purchased: float
    strategy_tag: Optional[StrategyTag]
    shortfall: float

    bitcoin: float
    cash: float
    total_cash_invested: float

    @property
    def bitcoin_value(self) -> float:
        return self.bitcoin * self.price

    @property
    def total_value(self) -> float:
        return self.bitcoin_value + self.cash


@dataclass(frozen=True)
class LedgerSummary:
    succeeded: bool
    withdrawal_years: int
    depletion_year: Optional[int]
    final_bitcoin: float
    final_cash: float
    final_value: float


def resolve_retirement_start_year(
    current_year: int,
    years_until_retirement: int = 0,
    plan: Optional[AccumulationPlan] = None,
) -> int:
    """Retirement begins after the longer of the waiting period and the savings plan."""
    if plan is not None and plan.years > 0:
        return current_year + max(years_until_retirement, plan.years)
    return current_year + years_until_retirement


class LifecycleSimulator:
    """Deterministic accumulation + 50-year withdrawal ledger."""

    def __init__(self, params: SimulationParams = None):
        self.params = params or SimulationParams()
        p = self.params
        self.price_model = PowerLawModel(p.power_law)
        self.cycle_model = CyclePhaseModel(p.cycle, self.price_model)
        self.strategy = SmartWithdrawalStrategy(p.allocation, self.price_model)

    def simulate(
        self,
        starting_bitcoin: float,
        starting_cash: float,
        annual_withdrawal: float,
        accumulation_plan: Optional[AccumulationPlan] = None,
        current_date: Optional[DateLike] = None,
        years_until_retirement: int = 0,
    ) -> List[LedgerRow]:
        today = to_utc_datetime(current_date or datetime.now())
        plan = accumulation_plan
        if plan is not None and plan.start_date is None:
            plan = replace(plan, start_date=today)

        ledger: List[LedgerRow] = []
        state = PortfolioState(starting_bitcoin, starting_cash)
        invested = 0.0

        # ============================================================
        # 1. ACCUMULATION
        # ============================================================
        if plan is not None and plan.years > 0:
            monthly = project_plan(plan, self.cycle_model)
            for row in self._aggregate_years(monthly, state):
                ledger.append(row)
            if monthly:
                invested = monthly[-1].total_cash_invested
                state = state.buy(monthly[-1].total_bitcoin)

        # Accumulation rows are dated from the plan start, so retirement is too
        start_year = to_utc_datetime(plan.start_date).year if plan is not None else today.year
        retirement_year = resolve_retirement_start_year(
            start_year, years_until_retirement, plan
        )
        year_number = retirement_year - start_year

        logger.debug(
            "Lifecycle: retirement %d with %.6f BTC and $%.0f cash, withdrawing $%.0f/yr",
            retirement_year, state.bitcoin, state.cash, annual_withdrawal,
        )

        # ============================================================
        # 2. RETIREMENT START + WITHDRAWALS
        # ============================================================
        for offset in range(self.params.withdrawal_years):
            calendar_year = retirement_year + offset
            cycle_price = self.cycle_model.price_for_offset(retirement_year, offset)
            price = cycle_price.price
            fair = self.price_model.fair_value(year_start(calendar_year))
            year_number += 1

            if offset == 0:
                ledger.append(
                    self._row(
                        calendar_year, year_number, LedgerStage.RETIREMENT_START,
                        cycle_price.phase, price, fair, state, invested,
                    )
                )
                if state.is_depleted:
                    break
                continue

            decision = self.strategy.decide(
                price, year_start(calendar_year), state.cash, state.bitcoin,
                annual_withdrawal,
            )
            if not decision.is_sufficient:
                # Band left one asset untouched; cover the gap with everything held
                decision = self.strategy.decide(
                    price, year_start(calendar_year), state.cash, state.bitcoin,
                    annual_withdrawal, emergency_mode=True,
                )

            cash_used = min(decision.use_cash_amount, state.cash)
            bitcoin_sold = min(decision.use_bitcoin_amount, state.bitcoin)
            state = state.withdraw(cash_used, bitcoin_sold)

            if decision.is_sufficient:
                stage = LedgerStage.WITHDRAWAL
            else:
                stage = LedgerStage.DEPLETED

            ledger.append(
                self._row(
                    calendar_year, year_number, stage, cycle_price.phase, price, fair,
                    state, invested,
                    cash_flow=-(cash_used + bitcoin_sold * price),
                    bitcoin_delta=-bitcoin_sold,
                    cash_used=cash_used,
                    bitcoin_sold=bitcoin_sold,
                    strategy_tag=decision.strategy_tag,
                    shortfall=decision.shortfall,
                )
            )

            if state.is_depleted:
                logger.warning(
                    "Portfolio depleted in %d (retirement year %d)", calendar_year, offset
                )
                break

        return ledger

    def _aggregate_years(
        self, monthly: List[MonthlyRow], start_state: PortfolioState
    ) -> List[LedgerRow]:
        """Collapse monthly purchases into one Accumulation row per plan year."""
        rows: List[LedgerRow] = []
        by_year = {}
        for m in monthly:
            by_year.setdefault(m.year, []).append(m)

        for plan_year in sorted(by_year):
            months = by_year[plan_year]
            first, last = months[0], months[-1]
            invested = sum(m.monthly_amount for m in months)
            purchased = sum(m.bitcoin_purchased for m in months)
            state = start_state.buy(last.total_bitcoin)
            fair = self.price_model.fair_value(year_start(first.calendar_year))

            rows.append(
                self._row(
                    first.calendar_year, plan_year, LedgerStage.ACCUMULATION,
                    first.phase, first.price, fair, state, last.total_cash_invested,
                    cash_flow=invested,
                    bitcoin_delta=purchased,
                    bitcoin_purchased=purchased,
                )
            )
        return rows

    @staticmethod
    def _row(
        year, year_number, stage, phase, price, fair, state, invested,
        cash_flow=0.0, bitcoin_delta=0.0, cash_used=0.0, bitcoin_sold=0.0,
        bitcoin_purchased=0.0, strategy_tag=None, shortfall=0.0,
    ) -> LedgerRow:
        return LedgerRow(
            year=year,
            year_number=year_number,
            stage=stage,
            cycle_phase=phase,
            price=price,
            fair_value=fair,
            price_to_fair_ratio=price / fair,
            cash_flow=cash_flow,
            bitcoin_delta=bitcoin_delta,
            cash_used=cash_used,
            bitcoin_sold=bitcoin_sold,
            bitcoin_purchased=bitcoin_purchased,
            strategy_tag=strategy_tag,
            shortfall=shortfall,
            bitcoin=state.bitcoin,
            cash=state.cash,
            total_cash_invested=invested,
        )


def summarize_ledger(ledger: List[LedgerRow], withdrawal_years: int = 50) -> LedgerSummary:
    """Did the plan last the full horizon, and if not, when did it run out?"""
    retirement = [r for r in ledger if r.stage is not LedgerStage.ACCUMULATION]
    if not retirement:
        return LedgerSummary(False, 0, None, 0.0, 0.0, 0.0)

    depleted = [r for r in retirement if r.stage is LedgerStage.DEPLETED]
    last = retirement[-1]
    succeeded = (
        len(retirement) >= withdrawal_years
        and not depleted
        and last.bitcoin > 0
        and last.total_value > 0
    )
    return LedgerSummary(
        succeeded=succeeded,
        withdrawal_years=len(retirement),
        depletion_year=depleted[0].year if depleted else None,
        final_bitcoin=last.bitcoin,
        final_cash=last.cash,
        final_value=last.total_value,
    )


def ledger_to_frame(ledger: List[LedgerRow]) -> pd.DataFrame:
    """Ledger as a DataFrame, one row per simulated year."""
    records = []
    for r in ledger:
        records.append(
            {
                "year": r.year,
                "year_number": r.year_number,
                "stage": r.stage.value,
                "cycle_phase": r.cycle_phase.value,
                "price": r.price,
                "fair_value": r.fair_value,
                "price_to_fair_ratio": r.price_to_fair_ratio,
                "cash_flow": r.cash_flow,
                "bitcoin_delta": r.bitcoin_delta,
                "strategy": r.strategy_tag.value if r.strategy_tag else None,
                "shortfall": r.shortfall,
                "bitcoin": r.bitcoin,
                "cash": r.cash,
                "bitcoin_value": r.bitcoin_value,
                "total_value": r.total_value,
                "total_cash_invested": r.total_cash_invested,
            }
        )
    return pd.DataFrame.from_records(records)


def projection_to_frame(rows: List[MonthlyRow]) -> pd.DataFrame:
    return pd.DataFrame.from_records(
        [
            {
                "year": m.year,
                "month": m.month,
                "date": m.date,
                "monthly_amount": m.monthly_amount,
                "fair_value": m.fair_value,
                "price": m.price,
                "phase": m.phase.value,
                "bitcoin_purchased": m.bitcoin_purchased,
                "total_bitcoin": m.total_bitcoin,
                "total_cash_invested": m.total_cash_invested,
            }
            for m in rows
        ]
    )


def simulate_lifecycle(
    starting_bitcoin: float,
    starting_cash: float,
    annual_withdrawal: float,
    accumulation_plan: Optional[AccumulationPlan] = None,
    current_date: Optional[DateLike] = None,
    years_until_retirement: int = 0,
    params: SimulationParams = None,
) -> List[LedgerRow]:
    return LifecycleSimulator(params).simulate(
        starting_bitcoin,
        starting_cash,
        annual_withdrawal,
        accumulation_plan,
        current_date,
        years_until_retirement,
    )
