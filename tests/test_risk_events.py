import datetime as dt

import pytest

from saddle_sim.network.core import Lot
from saddle_sim.simulation.demand import ProductionPlanner
from saddle_sim.simulation.errors import ConfigurationError
from saddle_sim.simulation.lead_time import LeadTimeCalculator
from saddle_sim.simulation.risk_events import (
    CapacityLoss,
    DemandSurge,
    ScenarioContext,
    ShippingDelay,
    StockWriteOff,
    parse_scenarios,
    scenario_from_dict,
)


def make_lot(sailing, qty, allocations, component_id="C1"):
    return Lot(
        id=f"LOT-{component_id}-{sailing:%Y%m%d}",
        component_id=component_id,
        sailing_date=sailing,
        arrival_date=sailing + dt.timedelta(days=33),
        available_date=sailing + dt.timedelta(days=34),
        shipped_quantity=qty,
        allocations=dict(allocations),
    )


@pytest.fixture
def context(world):
    return ScenarioContext(world, LeadTimeCalculator(world.supplier, world.calendars))


def test_demand_surge_scales_window(world):
    plan = ProductionPlanner(world).build_plan()
    june = sum(e.planned for e in plan.entries["V1"] if e.date.month == 6)

    surged = DemandSurge(dt.date(2027, 6, 1), dt.date(2027, 6, 30), 100).apply_to_plan(plan)

    assert surged.total_planned("V1") == 1000 + june
    assert plan.total_planned("V1") == 1000
    july = [e for e in surged.entries["V1"] if e.date.month == 7]
    original_july = [e for e in plan.entries["V1"] if e.date.month == 7]
    assert [e.planned for e in july] == [e.planned for e in original_july]


def test_demand_surge_validation(world):
    plan = ProductionPlanner(world).build_plan()
    with pytest.raises(ConfigurationError):
        DemandSurge(dt.date(2027, 6, 30), dt.date(2027, 6, 1), 10)
    with pytest.raises(ConfigurationError):
        DemandSurge(dt.date(2027, 6, 1), dt.date(2027, 6, 30), 10, ("XX",)).apply_to_plan(plan)


def test_capacity_loss_defers_to_next_sailing(context):
    lots = [
        make_lot(dt.date(2027, 3, 3), 1500, {"O1": 1000, "O2": 500}),
        make_lot(dt.date(2027, 3, 31), 500, {"O3": 500}),
    ]
    loss = CapacityLoss(dt.date(2027, 3, 1), 14, 50)
    assert loss.end == dt.date(2027, 3, 14)

    result = loss.apply_to_lots(lots, context)

    assert [lot.shipped_quantity for lot in result] == [500, 1500]
    assert result[0].allocations == {"O1": 500}
    assert result[1].allocations == {"O1": 500, "O2": 500, "O3": 500}
    assert any("capacity loss" in w for w in result[1].warnings)
    assert lots[0].shipped_quantity == 1500
    assert sum(lot.shipped_quantity for lot in result) == 2000


def test_capacity_loss_catch_up_sailing(context):
    lots = [make_lot(dt.date(2027, 3, 3), 1500, {"O1": 1500})]
    result = CapacityLoss(dt.date(2027, 3, 1), 14, 50).apply_to_lots(lots, context)

    assert len(result) == 2
    catch_up = result[1]
    assert catch_up.id == "LOT-C1-20270317-CL"
    assert catch_up.shipped_quantity == 1000
    assert catch_up.allocations == {"O1": 1000}
    assert catch_up.earliest_order_date is None


def test_capacity_loss_validation():
    with pytest.raises(ConfigurationError):
        CapacityLoss(dt.date(2027, 3, 1), 0, 50)
    with pytest.raises(ConfigurationError):
        CapacityLoss(dt.date(2027, 3, 1), 10, 150)


def test_write_off_validation(world):
    day = dt.date(2027, 5, 1)
    with pytest.raises(ConfigurationError):
        StockWriteOff(day)
    with pytest.raises(ConfigurationError):
        StockWriteOff(day, quantity=10, fraction=0.5)
    with pytest.raises(ConfigurationError):
        StockWriteOff(day, fraction=1.5)
    with pytest.raises(ConfigurationError):
        StockWriteOff(day, quantity=10, recovery_days=0)
    with pytest.raises(ConfigurationError):
        StockWriteOff(day, quantity=10, component_ids=("XX",)).stock_adjustments(world)


def test_write_off_applies_per_component(make_world):
    world = make_world(variants=(("V1", 0.5), ("V2", 0.5)), components=("C1", "C2"))
    adjustments = StockWriteOff(dt.date(2027, 5, 1), quantity=100).stock_adjustments(world)

    assert [a.component_id for a in adjustments] == ["C1", "C2"]
    assert all(a.quantity == 100 for a in adjustments)


def test_shipping_delay_by_lot_id(context):
    lots = [
        make_lot(dt.date(2027, 3, 3), 500, {"O1": 500}),
        make_lot(dt.date(2027, 3, 10), 500, {"O2": 500}),
    ]
    delay = ShippingDelay(7, lot_ids=(lots[1].id,))
    result = delay.apply_to_lots(lots, context)

    assert result[0] is lots[0]
    assert result[1].available_date == lots[1].available_date + dt.timedelta(days=7)
    assert result[1].arrival_date == lots[1].arrival_date + dt.timedelta(days=7)
    assert "delayed by 7 days" in result[1].warnings
    assert lots[1].warnings == []


def test_shipping_delay_by_window():
    delay = ShippingDelay(3, start=dt.date(2027, 3, 5), component_ids=("C2",))
    assert not delay.affects(make_lot(dt.date(2027, 3, 10), 500, {}))
    assert delay.affects(make_lot(dt.date(2027, 3, 10), 500, {}, component_id="C2"))
    assert not delay.affects(make_lot(dt.date(2027, 3, 3), 500, {}, component_id="C2"))


def test_scenario_from_dict():
    modifier = scenario_from_dict(
        {
            "type": "shipping_delay",
            "name": "Suez",
            "delay_days": 7,
            "start": "2027-03-01",
            "component_ids": ["C1"],
        }
    )
    assert isinstance(modifier, ShippingDelay)
    assert modifier.start == dt.date(2027, 3, 1)
    assert modifier.component_ids == ("C1",)


@pytest.mark.parametrize(
    "data",
    [
        {"type": "meteor_strike"},
        {"type": "shipping_delay", "delay_days": 7, "colour": "red"},
        {"type": "demand_surge", "start": "2027-06-01"},
        {"type": "stock_write_off", "date": "not-a-date", "quantity": 10},
    ],
)
def test_malformed_scenarios(data):
    with pytest.raises(ConfigurationError):
        scenario_from_dict(data)


def test_parse_scenarios_mixed_input():
    scenarios = parse_scenarios(
        [
            ShippingDelay(7),
            {"type": "capacity_loss", "start": "2027-03-01", "duration_days": 14, "reduction_pct": 50},
        ]
    )
    assert len(scenarios) == 2
    descriptions = scenarios.describe()
    assert descriptions[0].startswith("shipping_delay(")
    assert descriptions[1].startswith("capacity_loss(")
