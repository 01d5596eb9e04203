"""
Monthly savings projection (dollar-cost averaging into bitcoin).

Year 0 is "today" and buys at the month's plain fair value. Later years
buy at the cycle price for their offset from the start year, and can
double the contribution while the cycle is in a bear phase.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

import pandas as pd

from .cycle import CyclePhase, CyclePhaseModel
from .price_model import DateLike, to_utc_datetime

logger = logging.getLogger(__name__)

MONTHS_PER_YEAR = 12


@dataclass(frozen=True)
class AccumulationPlan:
    """Inputs for the accumulation phase of a lifecycle simulation."""

    monthly_amount: float
    years: int
    double_during_bear: bool = False
    start_date: Optional[DateLike] = None


@dataclass(frozen=True)
class MonthlyRow:
    year: int  # 1-based year of the plan
    month: int  # 1-based month within that year
    date: datetime
    monthly_amount: float
    fair_value: float
    price: float
    phase: CyclePhase
    bitcoin_purchased: float
    total_bitcoin: float
    total_cash_invested: float

    @property
    def calendar_year(self) -> int:
        return self.date.year


def project_monthly_savings(
    monthly_amount: float,
    years: int,
    double_during_bear: bool = False,
    start_date: Optional[DateLike] = None,
    cycle_model: CyclePhaseModel = None,
) -> List[MonthlyRow]:
    """Month-by-month purchases over ``years`` years from ``start_date``."""
    if years < 0:
        raise ValueError(f"years must be >= 0, got {years}")

    cycle_model = cycle_model or CyclePhaseModel()
    price_model = cycle_model.price_model
    start = pd.Timestamp(to_utc_datetime(start_date or datetime.now()))

    rows: List[MonthlyRow] = []
    total_bitcoin = 0.0
    total_invested = 0.0

    for year in range(int(years)):
        if year > 0:
            cycle_price = cycle_model.price_for_offset(start.year, year)
        else:
            cycle_price = cycle_model.current_year_price(start.year)

        phase = cycle_price.phase
        contribution = monthly_amount
        if double_during_bear and phase.is_bear:
            contribution = monthly_amount * 2

        for month in range(MONTHS_PER_YEAR):
            when = (start + pd.DateOffset(years=year, months=month)).to_pydatetime()
            fair = price_model.fair_value(when)
            # The current year tracks fair value month by month
            if phase is CyclePhase.CURRENT_YEAR:
                price = fair
            else:
                price = cycle_price.price

            purchased = contribution / price
            total_bitcoin += purchased
            total_invested += contribution

            rows.append(
                MonthlyRow(
                    year=year + 1,
                    month=month + 1,
                    date=when,
                    monthly_amount=contribution,
                    fair_value=fair,
                    price=price,
                    phase=phase,
                    bitcoin_purchased=purchased,
                    total_bitcoin=total_bitcoin,
                    total_cash_invested=total_invested,
                )
            )

    if rows:
        logger.debug(
            "Projected %d months: %.6f BTC for $%.0f invested",
            len(rows), total_bitcoin, total_invested,
        )
    return rows


def project_plan(plan: AccumulationPlan, cycle_model: CyclePhaseModel = None) -> List[MonthlyRow]:
    return project_monthly_savings(
        plan.monthly_amount,
        plan.years,
        plan.double_during_bear,
        plan.start_date,
        cycle_model=cycle_model,
    )
