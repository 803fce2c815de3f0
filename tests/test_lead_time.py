import datetime as dt

from saddle_sim.network.core import Holiday
from saddle_sim.simulation.lead_time import LeadTimeCalculator


def test_back_calculation_on_plain_calendar(world):
    calc = LeadTimeCalculator(world.supplier, world.calendars)
    timing = calc.order_date_for(dt.date(2027, 6, 16))  # Wednesday

    assert timing.planned_sailing_date == dt.date(2027, 5, 12)
    assert timing.nominal_order_date == dt.date(2027, 5, 2)  # Sunday
    assert timing.order_date == dt.date(2027, 4, 30)
    assert not timing.pulled_forward


def test_forward_path_meets_need_date(world):
    calc = LeadTimeCalculator(world.supplier, world.calendars)

    assert calc.sailing_date_for(dt.date(2027, 4, 30)) == dt.date(2027, 5, 12)
    assert calc.arrival_date(dt.date(2027, 5, 12)) == dt.date(2027, 6, 15)
    assert calc.available_date(dt.date(2027, 5, 12)) == dt.date(2027, 6, 16)

    need = dt.date(2027, 3, 1)
    for offset in range(120):
        need_date = need + dt.timedelta(days=offset)
        timing = calc.order_date_for(need_date)
        assert calc.expected_available_date(timing.order_date) <= need_date


def test_sailing_weekday(world):
    calc = LeadTimeCalculator(world.supplier, world.calendars)
    monday = dt.date(2027, 5, 10)
    assert calc.next_sailing(monday) == dt.date(2027, 5, 12)
    assert calc.previous_sailing(monday) == dt.date(2027, 5, 5)
    assert calc.next_sailing(dt.date(2027, 5, 12)) == dt.date(2027, 5, 12)


def local_supplier_holiday():
    return Holiday(dt.date(2027, 2, 15), "Local holiday", "CN")


def test_back_calculation_skips_shutdown(make_world, spring_shutdown):
    world = make_world(shutdowns=(spring_shutdown,))
    calc = LeadTimeCalculator(world.supplier, world.calendars)
    timing = calc.order_date_for(dt.date(2027, 3, 10))

    # Production days counted before the shutdown, not across it
    assert timing.planned_sailing_date == dt.date(2027, 2, 3)
    assert timing.order_date == dt.date(2027, 1, 18)
    assert not timing.pulled_forward
    assert calc.expected_available_date(timing.order_date) <= dt.date(2027, 3, 10)


def test_orders_around_shutdown_meet_need_date(make_world, spring_shutdown):
    world = make_world(shutdowns=(spring_shutdown,), supplier_holidays=(local_supplier_holiday(),))
    calc = LeadTimeCalculator(world.supplier, world.calendars)

    for offset in range(90):
        need_date = dt.date(2027, 2, 15) + dt.timedelta(days=offset)
        timing = calc.order_date_for(need_date)
        assert calc.expected_available_date(timing.order_date) <= need_date


def test_order_pulled_ahead_of_shutdown(make_world, spring_shutdown):
    world = make_world(shutdowns=(spring_shutdown,), supplier_holidays=(local_supplier_holiday(),))
    calc = LeadTimeCalculator(world.supplier, world.calendars)

    # Production would start on the first day after the shutdown, so the
    # buffer day lands inside it
    timing = calc.order_date_for(dt.date(2027, 3, 24))
    assert timing.planned_sailing_date == dt.date(2027, 2, 17)
    assert timing.nominal_order_date == dt.date(2027, 2, 4)
    assert timing.pulled_forward
    assert timing.shutdown == spring_shutdown
    assert timing.order_date == dt.date(2027, 1, 27)

    for offset in range(90):
        timing = calc.order_date_for(dt.date(2027, 2, 15) + dt.timedelta(days=offset))
        if not timing.pulled_forward:
            assert not spring_shutdown.contains(timing.nominal_order_date)
            assert not spring_shutdown.contains(timing.order_date)


def test_at_risk_window(make_world, spring_shutdown):
    world = make_world(shutdowns=(spring_shutdown,))
    calc = LeadTimeCalculator(world.supplier, world.calendars)
    assert calc.risk_horizon_days == 40

    # Supplier-side window touching the shutdown
    assert calc.is_at_risk(dt.date(2027, 1, 20), dt.date(2027, 2, 10), dt.date(2027, 6, 1))
    # Need date shortly after the shutdown
    assert calc.is_at_risk(dt.date(2026, 12, 1), dt.date(2026, 12, 16), dt.date(2027, 3, 1))
    # Far from any shutdown
    assert not calc.is_at_risk(dt.date(2027, 5, 3), dt.date(2027, 5, 12), dt.date(2027, 6, 16))


def test_risk_horizon_from_config(world):
    config = {"simulation_parameters": {"ordering": {"shutdown_risk_horizon_days": 10}}}
    calc = LeadTimeCalculator(world.supplier, world.calendars, config)
    assert calc.risk_horizon_days == 10
