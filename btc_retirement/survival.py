"""
Bear market survival test.

A single fixed adverse path, not a search: two years of withdrawals at
the power law floor, one at the recovery price, then a runway check at
fair value. Cash is spent first each year; only the shortfall is sold
as bitcoin at that year's stressed price.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import pandas as pd

from .config import CycleParams, SurvivalParams
from .price_model import PowerLawModel, year_start

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SurvivalResult:
    passes: bool
    remaining_bitcoin: float
    remaining_cash: float


FAILED = SurvivalResult(passes=False, remaining_bitcoin=0.0, remaining_cash=0.0)


def bear_market_survival_test(
    current_price: float,
    year: int,
    bitcoin_holdings: float,
    annual_withdrawal: float,
    cash_holdings: float = 0.0,
    params: SurvivalParams = None,
    cycle_params: CycleParams = None,
    price_model: PowerLawModel = None,
) -> SurvivalResult:
    """Run the stress path for a retirement starting in ``year``.

    ``current_price`` is accepted for callers that scan historical
    prices; the stressed path itself is anchored on the power law
    values for ``year``.
    """
    if bitcoin_holdings <= 0 or annual_withdrawal <= 0:
        return FAILED

    p = params or SurvivalParams()
    cp = cycle_params or CycleParams()
    model = price_model or PowerLawModel()

    point = model.price_point(year_start(year))
    fair, floor = point.fair_value, point.floor_value
    recovery = floor + (fair - floor) * cp.recovery_fraction

    bitcoin = bitcoin_holdings
    cash = max(0.0, cash_holdings)

    stressed_prices = [floor] * p.floor_years + [recovery] * p.recovery_years
    for step, price in enumerate(stressed_prices, start=1):
        if cash >= annual_withdrawal:
            cash -= annual_withdrawal
            continue

        shortfall = annual_withdrawal - cash
        cash = 0.0
        bitcoin -= shortfall / price
        if bitcoin < 0:
            logger.debug(
                "Survival test for %d: bitcoin exhausted in stress year %d", year, step
            )
            return FAILED

    runway_years = (bitcoin * fair + cash) / annual_withdrawal
    return SurvivalResult(
        passes=runway_years >= p.minimum_runway_years,
        remaining_bitcoin=bitcoin,
        remaining_cash=cash,
    )


def earliest_survivable_date(
    prices: pd.Series,
    bitcoin_holdings: float,
    annual_withdrawal: float,
    cash_holdings: float = 0.0,
    params: SurvivalParams = None,
    cycle_params: CycleParams = None,
    price_model: PowerLawModel = None,
) -> Optional[datetime]:
    """First date in a price history at which the survival test passes.

    ``prices`` is indexed by date; missing or non-positive prices are
    skipped. Returns None if no date passes.
    """
    history = prices.dropna()
    history = history[history > 0].sort_index()

    for when, price in history.items():
        result = bear_market_survival_test(
            float(price),
            pd.Timestamp(when).year,
            bitcoin_holdings,
            annual_withdrawal,
            cash_holdings,
            params=params,
            cycle_params=cycle_params,
            price_model=price_model,
        )
        if result.passes:
            return pd.Timestamp(when).to_pydatetime()

    logger.info("No historical date passes the bear market test")
    return None
