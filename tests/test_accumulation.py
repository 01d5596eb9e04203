from datetime import datetime, timezone

import pytest

from btc_retirement.accumulation import AccumulationPlan, project_monthly_savings, project_plan
from btc_retirement.cycle import CyclePhase, CyclePhaseModel, CyclePrice
from btc_retirement.engine import projection_to_frame
from btc_retirement.price_model import fair_value

START = datetime(2025, 1, 1, tzinfo=timezone.utc)


def test_zero_years_is_empty():
    assert project_monthly_savings(1_000, 0, start_date=START) == []


def test_negative_years_rejected():
    with pytest.raises(ValueError):
        project_monthly_savings(1_000, -1, start_date=START)


def test_two_years_of_savings():
    rows = project_monthly_savings(1_000, 2, start_date=START)
    assert len(rows) == 24
    assert rows[-1].total_cash_invested == pytest.approx(24_000)
    assert rows[-1].total_bitcoin == pytest.approx(sum(r.bitcoin_purchased for r in rows))
    assert [(r.year, r.month) for r in rows[:2]] == [(1, 1), (1, 2)]
    assert (rows[-1].year, rows[-1].month) == (2, 12)


def test_first_year_buys_at_monthly_fair_value():
    rows = project_monthly_savings(1_000, 1, start_date=START)
    assert rows[0].phase is CyclePhase.CURRENT_YEAR
    assert rows[0].price == fair_value(START)
    assert rows[5].date == datetime(2025, 6, 1, tzinfo=timezone.utc)
    assert rows[5].price == rows[5].fair_value
    assert rows[5].bitcoin_purchased == pytest.approx(1_000 / rows[5].fair_value)


def test_later_years_buy_at_cycle_price():
    rows = project_monthly_savings(1_000, 3, start_date=START)
    cycle = CyclePhaseModel()
    second_year = rows[12:24]
    expected = cycle.price_for_offset(2025, 1)
    assert all(r.price == expected.price for r in second_year)
    assert all(r.phase is CyclePhase.DEEP_BEAR_FLOOR for r in second_year)
    assert rows[24].phase is CyclePhase.BEAR_RECOVERY


def test_zero_monthly_amount():
    rows = project_monthly_savings(0, 1, start_date=START)
    assert len(rows) == 12
    assert all(r.bitcoin_purchased == 0 for r in rows)
    assert rows[-1].total_bitcoin == 0
    assert rows[-1].total_cash_invested == 0


def test_doubling_during_bear_years():
    rows = project_monthly_savings(1_000, 6, double_during_bear=True, start_date=START)
    by_year = [rows[i * 12].monthly_amount for i in range(6)]
    # current, floor, recovery, floor, recovery, bull
    assert by_year == [1_000, 2_000, 2_000, 2_000, 2_000, 1_000]
    assert rows[-1].total_cash_invested == pytest.approx(120_000)


def test_no_doubling_by_default():
    rows = project_monthly_savings(1_000, 3, start_date=START)
    assert {r.monthly_amount for r in rows} == {1_000}


def test_totals_are_cumulative():
    rows = project_monthly_savings(250, 4, double_during_bear=True, start_date=START)
    invested = 0.0
    for r in rows:
        invested += r.monthly_amount
        assert r.total_cash_invested == pytest.approx(invested)
    assert all(b.total_bitcoin >= a.total_bitcoin for a, b in zip(rows, rows[1:]))


def test_project_plan_matches_function():
    plan = AccumulationPlan(monthly_amount=500, years=2, double_during_bear=True, start_date=START)
    assert project_plan(plan) == project_monthly_savings(500, 2, True, START)


def test_projection_frame():
    frame = projection_to_frame(project_monthly_savings(1_000, 2, start_date=START))
    assert len(frame) == 24
    assert frame["total_cash_invested"].iloc[-1] == pytest.approx(24_000)
    assert set(frame["phase"]) == {"CurrentYear", "DeepBearFloor"}


def test_first_year_phase_comes_from_cycle_model():
    class FlatCycle(CyclePhaseModel):
        def current_year_price(self, calendar_year):
            return CyclePrice(price=50_000.0, phase=CyclePhase.FAIR_VALUE, offset_years=0)

    rows = project_monthly_savings(1_000, 1, start_date=START, cycle_model=FlatCycle())
    assert {r.phase for r in rows} == {CyclePhase.FAIR_VALUE}
    assert {r.price for r in rows} == {50_000.0}
    assert rows[-1].total_bitcoin == pytest.approx(12 * 1_000 / 50_000)
