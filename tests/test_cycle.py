import pytest

from btc_retirement.cycle import CyclePhase, CyclePhaseModel
from btc_retirement.price_model import PowerLawModel, year_start


@pytest.fixture
def cycle():
    return CyclePhaseModel()


def bands(year):
    point = PowerLawModel().price_point(year_start(year))
    return point.fair_value, point.floor_value, point.upper_bound


def test_cold_start_floor_years(cycle):
    for offset in (0, 1):
        result = cycle.price_for_offset(2026, offset)
        _, floor, _ = bands(2026 + offset)
        assert result.phase is CyclePhase.DEEP_BEAR_FLOOR
        assert result.price == pytest.approx(floor)


def test_offset_two_is_recovery(cycle):
    result = cycle.price_for_offset(2026, 2)
    fair, floor, _ = bands(2028)
    assert result.phase is CyclePhase.BEAR_RECOVERY
    assert result.price == pytest.approx(floor + (fair - floor) * 0.75)


def test_four_year_pattern_after_cold_start(cycle):
    phases = [cycle.price_for_offset(2026, k).phase for k in range(3, 11)]
    assert phases == [
        CyclePhase.DEEP_BEAR_FLOOR,
        CyclePhase.BEAR_RECOVERY,
        CyclePhase.BULL_MARKET,
        CyclePhase.BULL_PEAK_CORRECTION,
    ] * 2


def test_bull_and_peak_prices(cycle):
    bull = cycle.price_for_offset(2026, 5)
    fair, _, upper = bands(2031)
    assert bull.price == pytest.approx(fair + (upper - fair) * 0.7)
    assert bull.price > fair

    peak = cycle.price_for_offset(2026, 6)
    fair, _, upper = bands(2032)
    assert peak.price == pytest.approx(fair + (upper - fair) * 0.3)
    assert fair < peak.price <= upper


@pytest.mark.parametrize("anchor", [2026, 2035, 2044])
def test_pattern_independent_of_anchor(cycle, anchor):
    assert cycle.price_for_offset(anchor, 3).phase is CyclePhase.DEEP_BEAR_FLOOR
    assert cycle.price_for_offset(anchor, 7).phase is CyclePhase.DEEP_BEAR_FLOOR


def test_prices_stay_within_bands(cycle):
    for offset in range(0, 60):
        result = cycle.price_for_offset(2026, offset)
        fair, floor, upper = bands(2026 + offset)
        assert floor <= result.price <= upper
        assert result.offset_years == offset


@pytest.mark.parametrize("anchor", [2025, 2027, 2040])
def test_absolute_year_matches_offset(cycle, anchor):
    for k in range(0, 50):
        assert cycle.price_for_absolute_year(anchor + k, anchor) == cycle.price_for_offset(anchor, k).price


def test_absolute_year_before_anchor_is_none(cycle):
    assert cycle.price_for_absolute_year(2026, 2027) is None
    assert cycle.price_for_absolute_year(2020, 2027) is None


def test_negative_offset_rejected(cycle):
    with pytest.raises(ValueError):
        cycle.price_for_offset(2026, -1)


def test_current_year_price_is_fair_value(cycle):
    result = cycle.current_year_price(2025)
    fair, _, _ = bands(2025)
    assert result.phase is CyclePhase.CURRENT_YEAR
    assert result.price == fair
    assert result.description == "Current Year (Fair Value)"


def test_bear_phases():
    assert CyclePhase.DEEP_BEAR_FLOOR.is_bear
    assert CyclePhase.BEAR_RECOVERY.is_bear
    assert not CyclePhase.BULL_MARKET.is_bear
    assert not CyclePhase.BULL_PEAK_CORRECTION.is_bear
    assert not CyclePhase.CURRENT_YEAR.is_bear


def test_far_future_price_positive(cycle):
    price = cycle.price_for_absolute_year(2076, 2026)
    fair, floor, upper = bands(2076)
    assert price is not None
    assert floor <= price <= upper


def test_fair_value_phase_price(cycle):
    fair, _, _ = bands(2030)
    assert cycle.phase_price(CyclePhase.FAIR_VALUE, 2030) == fair
    assert cycle.phase_price(CyclePhase.CURRENT_YEAR, 2030) == fair
