"""
Configuration for the Bitcoin Power Law retirement simulator.

Defines the power law constants, the four-year cycle bands, the bear
market stress test, the smart withdrawal bands and the named scenario
presets used by the dashboard.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Tuple

# Genesis block: 3 January 2009, 18:15:05 UTC
BITCOIN_GENESIS = datetime(2009, 1, 3, 18, 15, 5, tzinfo=timezone.utc)


@dataclass
class PowerLawParams:
    """Price = coefficient x days_since_genesis ^ exponent, plus fixed bands."""

    coefficient: float = 1.01e-17
    exponent: float = 5.82
    genesis: datetime = BITCOIN_GENESIS

    # Historical low was ~0.42x fair value (2015 crash)
    floor_multiple: float = 0.42
    # Santostasi: cycle tops cluster around 2x fair value
    upper_multiple: float = 2.0

    @property
    def band_width(self) -> float:
        """Ratio of upper bound to floor (~4.76 with defaults)."""
        return self.upper_multiple / self.floor_multiple


@dataclass
class CycleParams:
    """Four-year boom/bust pattern riding on top of the power law."""

    # Fractions of the way between two bands
    recovery_fraction: float = 0.75  # floor -> fair
    bull_fraction: float = 0.7  # fair -> upper
    peak_fraction: float = 0.3  # fair -> upper

    # Offsets 0 and 1 are forced floor years, offset 2 is a recovery year
    cold_start_floor_years: int = 2
    cycle_length: int = 4


@dataclass
class SurvivalParams:
    """Bear market stress test: forced crash years followed by a runway check."""

    floor_years: int = 2
    recovery_years: int = 1
    minimum_runway_years: float = 20.0


@dataclass
class AllocationParams:
    """Valuation bands (price / fair value) for the smart withdrawal strategy."""

    # Upper edges of the bands, scanned ascending; anything above the last
    # edge is an extreme bubble.
    extreme_undervalued_max: float = 0.5
    undervalued_max: float = 0.8
    fair_value_max: float = 1.2
    overvalued_max: float = 2.5
    bubble_max: float = 5.0

    undervalued_min_cash_share: float = 0.8  # use at least 80% cash when cheap
    # Near fair value: cash usage capped at min(cap, bias x cash share of portfolio).
    # Ad hoc coefficients, kept tunable.
    balanced_cash_cap: float = 0.6
    balanced_cash_bias: float = 1.2
    overvalued_bitcoin_share: float = 0.8  # up to 80% from bitcoin when short

    # Rebalancing advice uses a slightly wider "extreme opportunity" band
    advice_extreme_opportunity_max: float = 0.6

    @property
    def thresholds(self) -> Tuple[float, ...]:
        return (
            self.extreme_undervalued_max,
            self.undervalued_max,
            self.fair_value_max,
            self.overvalued_max,
            self.bubble_max,
        )


@dataclass
class ValidationLimits:
    """Plausibility limits for user-entered retirement inputs."""

    max_bitcoin: float = 1000.0
    max_annual_withdrawal: float = 10_000_000.0


@dataclass
class SimulationParams:
    """All tunable parameters for a lifecycle simulation."""

    power_law: PowerLawParams = field(default_factory=PowerLawParams)
    cycle: CycleParams = field(default_factory=CycleParams)
    survival: SurvivalParams = field(default_factory=SurvivalParams)
    allocation: AllocationParams = field(default_factory=AllocationParams)
    validation: ValidationLimits = field(default_factory=ValidationLimits)

    # --- Horizon ---
    withdrawal_years: int = 50  # retirement start row + 49 withdrawal years


# Named scenario presets
SCENARIO_PRESETS: Dict[str, SimulationParams] = {
    "Power Law Baseline": SimulationParams(),
    "Cash-Heavy Balanced Band": SimulationParams(
        allocation=AllocationParams(balanced_cash_cap=0.8, balanced_cash_bias=1.5),
    ),
    "Stricter Runway (30y)": SimulationParams(
        survival=SurvivalParams(minimum_runway_years=30.0),
    ),
    "Deeper Floor": SimulationParams(
        power_law=PowerLawParams(floor_multiple=0.35),
        cycle=CycleParams(recovery_fraction=0.6),
    ),
    "Muted Bull Runs": SimulationParams(
        cycle=CycleParams(bull_fraction=0.4, peak_fraction=0.15),
    ),
}


def year_labels(start_year: int, count: int) -> List[str]:
    """Generate year labels like '2025', '2026', etc."""
    return [str(start_year + i) for i in range(count)]
