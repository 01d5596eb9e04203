from datetime import date, datetime, timedelta, timezone

import pytest

from btc_retirement.config import PowerLawParams
from btc_retirement.price_model import (
    PowerLawModel,
    fair_value,
    floor_value,
    power_law_series,
    upper_bound,
)

GENESIS = datetime(2009, 1, 3, 18, 15, 5, tzinfo=timezone.utc)


@pytest.fixture
def model():
    return PowerLawModel()


def test_days_since_genesis_clamped_to_one(model):
    assert model.days_since_genesis(GENESIS) == 1
    assert model.days_since_genesis(date(2008, 1, 1)) == 1


def test_days_since_genesis_after_genesis(model):
    assert model.days_since_genesis(date(2024, 1, 1)) > 5000


def test_fair_value_formula(model):
    days = model.days_since_genesis(date(2020, 1, 1))
    assert model.fair_value(date(2020, 1, 1)) == pytest.approx(1.01e-17 * days ** 5.82)


def test_fair_value_realistic_range():
    price = fair_value(date(2024, 1, 1))
    assert 30_000 < price < 500_000


def test_edge_dates_stay_positive():
    early = fair_value(date(2009, 1, 1))
    assert 0 < early < 1
    assert fair_value(date(2050, 1, 1)) > 1_000_000


@pytest.mark.parametrize(
    "when",
    [date(2009, 1, 1), date(2013, 6, 1), date(2024, 6, 1), date(2035, 1, 1), date(2075, 12, 31)],
)
def test_band_invariants(when):
    fair = fair_value(when)
    floor = floor_value(when)
    upper = upper_bound(when)
    assert 0 < floor < fair < upper
    assert floor == pytest.approx(fair * 0.42)
    assert upper == pytest.approx(fair * 2.0)
    assert upper / floor == pytest.approx(2.0 / 0.42)


def test_fair_value_monotonic(model):
    start = datetime(2010, 1, 1, tzinfo=timezone.utc)
    values = [model.fair_value(start + timedelta(days=90 * i)) for i in range(200)]
    assert all(b >= a for a, b in zip(values, values[1:]))


def test_naive_and_aware_dates_agree(model):
    naive = datetime(2025, 1, 1)
    aware = datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert model.fair_value(naive) == model.fair_value(aware)
    assert model.fair_value(date(2025, 1, 1)) == model.fair_value(aware)
    assert model.fair_value("2025-01-01") == model.fair_value(aware)


def test_price_point_matches_functions(model):
    point = model.price_point(date(2026, 1, 1))
    assert point.fair_value == model.fair_value(date(2026, 1, 1))
    assert point.floor_value == pytest.approx(model.floor_value(date(2026, 1, 1)))
    assert point.upper_bound == pytest.approx(model.upper_bound(date(2026, 1, 1)))


def test_ratio_helpers(model):
    when = date(2024, 1, 1)
    fair = model.fair_value(when)
    assert model.price_to_fair_value_ratio(fair, when) == pytest.approx(1.0)
    assert model.price_to_fair_value_ratio(fair * 2, when) == pytest.approx(2.0)
    assert model.is_price_above_fair_value(fair * 1.5, when)
    assert not model.is_price_above_fair_value(fair * 0.5, when)


def test_custom_params():
    model = PowerLawModel(PowerLawParams(floor_multiple=0.3, upper_multiple=3.0))
    when = date(2025, 1, 1)
    assert model.floor_value(when) == pytest.approx(model.fair_value(when) * 0.3)
    assert model.params.band_width == pytest.approx(10.0)


def test_series_inclusive_range():
    frame = power_law_series(date(2024, 1, 1), date(2024, 1, 3), 1)
    assert len(frame) == 3
    assert [d.strftime("%Y-%m-%d") for d in frame["date"]] == [
        "2024-01-01", "2024-01-02", "2024-01-03",
    ]
    assert frame["fair_value"].is_monotonic_increasing


def test_series_matches_scalar_model(model):
    frame = model.series(date(2024, 1, 1), date(2024, 3, 1), 30)
    for _, row in frame.iterrows():
        assert row["fair_value"] == pytest.approx(model.fair_value(row["date"]))
        assert row["floor_value"] == pytest.approx(row["fair_value"] * 0.42)


def test_series_rejects_bad_interval(model):
    with pytest.raises(ValueError):
        model.series(date(2024, 1, 1), date(2024, 2, 1), 0)


def test_repeated_calls_identical(model):
    when = datetime(2031, 7, 4, 12, 30, tzinfo=timezone.utc)
    assert model.fair_value(when) == model.fair_value(when)
    assert model.price_point(when) == model.price_point(when)
