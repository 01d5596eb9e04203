"""
Bitcoin power law price model.

Fair value is a pure function of time since the genesis block:

    fair  = A x days_since_genesis ^ B
    floor = fair x 0.42
    upper = fair x 2.0

Days are clamped to a minimum of 1 so dates at or before genesis still
produce a small positive price instead of zero or a complex power.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Union

import numpy as np
import pandas as pd

from .config import PowerLawParams

SECONDS_PER_DAY = 86_400.0

DateLike = Union[date, datetime, pd.Timestamp, str]


def to_utc_datetime(value: DateLike) -> datetime:
    """Normalise a date-like value to an aware UTC datetime.

    Naive values are read as UTC; a plain ``date`` means midnight UTC.
    """
    ts = pd.Timestamp(value)
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    else:
        ts = ts.tz_convert("UTC")
    return ts.to_pydatetime()


def year_start(year: int) -> datetime:
    """1 January of ``year``, midnight UTC."""
    return datetime(year, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class PricePoint:
    """Power law bands for a single date."""

    date: datetime
    fair_value: float
    floor_value: float
    upper_bound: float


class PowerLawModel:
    """Time-driven fair value model with a fixed floor and upper band."""

    def __init__(self, params: PowerLawParams = None):
        self.params = params or PowerLawParams()

    def days_since_genesis(self, when: DateLike) -> float:
        elapsed = to_utc_datetime(when) - self.params.genesis
        return max(1.0, elapsed.total_seconds() / SECONDS_PER_DAY)

    def fair_value(self, when: DateLike) -> float:
        p = self.params
        return p.coefficient * self.days_since_genesis(when) ** p.exponent

    def floor_value(self, when: DateLike) -> float:
        return self.fair_value(when) * self.params.floor_multiple

    def upper_bound(self, when: DateLike) -> float:
        return self.fair_value(when) * self.params.upper_multiple

    def price_point(self, when: DateLike) -> PricePoint:
        fair = self.fair_value(when)
        return PricePoint(
            date=to_utc_datetime(when),
            fair_value=fair,
            floor_value=fair * self.params.floor_multiple,
            upper_bound=fair * self.params.upper_multiple,
        )

    def price_to_fair_value_ratio(self, price: float, when: DateLike) -> float:
        return price / self.fair_value(when)

    def is_price_above_fair_value(self, price: float, when: DateLike) -> bool:
        return price > self.fair_value(when)

    def series(
        self, start: DateLike, end: DateLike, interval_days: int = 1
    ) -> pd.DataFrame:
        """Power law bands from ``start`` to ``end`` (inclusive) every ``interval_days``."""
        if interval_days < 1:
            raise ValueError("interval_days must be at least 1")

        p = self.params
        dates = pd.date_range(
            to_utc_datetime(start), to_utc_datetime(end), freq=f"{interval_days}D"
        )
        elapsed = (dates - pd.Timestamp(p.genesis)).total_seconds().to_numpy()
        days = np.maximum(1.0, elapsed / SECONDS_PER_DAY)
        fair = p.coefficient * np.power(days, p.exponent)

        return pd.DataFrame(
            {
                "date": dates,
                "fair_value": fair,
                "floor_value": fair * p.floor_multiple,
                "upper_bound": fair * p.upper_multiple,
            }
        )


DEFAULT_MODEL = PowerLawModel()


def fair_value(when: DateLike) -> float:
    return DEFAULT_MODEL.fair_value(when)


def floor_value(when: DateLike) -> float:
    return DEFAULT_MODEL.floor_value(when)


def upper_bound(when: DateLike) -> float:
    return DEFAULT_MODEL.upper_bound(when)


def power_law_series(
    start: DateLike, end: DateLike, interval_days: int = 1
) -> pd.DataFrame:
    return DEFAULT_MODEL.series(start, end, interval_days)
