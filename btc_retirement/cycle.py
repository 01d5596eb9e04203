"""
Four-year price cycle layered on the power law.

The pattern is anchored on a start year (usually the retirement year)
and opens with a two-year "cold start" so every plan begins in a bear
market:

    offset 0, 1  -> floor                 (Deep Bear)
    offset 2     -> 75% floor -> fair     (Bear Recovery)
    offset 3+    -> repeating floor, recovery, bull (70% fair -> upper),
                    peak/correction (30% fair -> upper)

Bands are always evaluated at 1 January of the calendar year being
priced, so the cycle rides on the growing fair value trend instead of
resetting it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .config import CycleParams
from .price_model import PowerLawModel, year_start


class CyclePhase(str, Enum):
    DEEP_BEAR_FLOOR = "DeepBearFloor"
    BEAR_RECOVERY = "BearRecovery"
    BULL_MARKET = "BullMarket"
    BULL_PEAK_CORRECTION = "BullPeakCorrection"
    FAIR_VALUE = "FairValue"
    CURRENT_YEAR = "CurrentYear"

    @property
    def is_bear(self) -> bool:
        return self in (CyclePhase.DEEP_BEAR_FLOOR, CyclePhase.BEAR_RECOVERY)


PHASE_DESCRIPTIONS = {
    CyclePhase.DEEP_BEAR_FLOOR: "Deep Bear (Floor)",
    CyclePhase.BEAR_RECOVERY: "Bear Market Recovery",
    CyclePhase.BULL_MARKET: "Bull Market",
    CyclePhase.BULL_PEAK_CORRECTION: "Bull Peak & Correction",
    CyclePhase.FAIR_VALUE: "Fair Value",
    CyclePhase.CURRENT_YEAR: "Current Year (Fair Value)",
}


@dataclass(frozen=True)
class CyclePrice:
    price: float
    phase: CyclePhase
    offset_years: int

    @property
    def description(self) -> str:
        return PHASE_DESCRIPTIONS[self.phase]


class CyclePhaseModel:
    """Maps (anchor year, year offset) to a cycle price and phase."""

    def __init__(self, params: CycleParams = None, price_model: PowerLawModel = None):
        self.params = params or CycleParams()
        self.price_model = price_model or PowerLawModel()

    def _pattern_position(self, offset_years: int) -> CyclePhase:
        p = self.params
        if offset_years < p.cold_start_floor_years:
            return CyclePhase.DEEP_BEAR_FLOOR
        if offset_years == p.cold_start_floor_years:
            return CyclePhase.BEAR_RECOVERY

        k = (offset_years - p.cold_start_floor_years - 1) % p.cycle_length
        return (
            CyclePhase.DEEP_BEAR_FLOOR,
            CyclePhase.BEAR_RECOVERY,
            CyclePhase.BULL_MARKET,
            CyclePhase.BULL_PEAK_CORRECTION,
        )[k]

    def phase_price(self, phase: CyclePhase, calendar_year: int) -> float:
        """Price for ``phase`` using the bands of ``calendar_year``."""
        p = self.params
        point = self.price_model.price_point(year_start(calendar_year))
        fair, floor, upper = point.fair_value, point.floor_value, point.upper_bound

        if phase is CyclePhase.DEEP_BEAR_FLOOR:
            return floor
        if phase is CyclePhase.BEAR_RECOVERY:
            return floor + (fair - floor) * p.recovery_fraction
        if phase is CyclePhase.BULL_MARKET:
            return fair + (upper - fair) * p.bull_fraction
        if phase is CyclePhase.BULL_PEAK_CORRECTION:
            return fair + (upper - fair) * p.peak_fraction
        return fair

    def price_for_offset(self, anchor_year: int, offset_years: int) -> CyclePrice:
        if offset_years < 0:
            raise ValueError(
                f"offset_years must be >= 0, got {offset_years} (cycle undefined before anchor)"
            )
        phase = self._pattern_position(offset_years)
        return CyclePrice(
            price=self.phase_price(phase, anchor_year + offset_years),
            phase=phase,
            offset_years=offset_years,
        )

    def price_for_absolute_year(
        self, calendar_year: int, anchor_year: int
    ) -> Optional[float]:
        """Cycle price for a calendar year, or None before the anchor."""
        if calendar_year < anchor_year:
            return None
        return self.price_for_offset(anchor_year, calendar_year - anchor_year).price

    def current_year_price(self, calendar_year: int) -> CyclePrice:
        """The current year is priced at plain fair value, outside the cycle."""
        return CyclePrice(
            price=self.price_model.fair_value(year_start(calendar_year)),
            phase=CyclePhase.CURRENT_YEAR,
            offset_years=0,
        )
