import datetime as dt

import pytest

from saddle_sim.network.core import (
    LeadTimeLegs,
    Order,
    OrderReason,
    OrderStatus,
    ShutdownWindow,
    Supplier,
)
from saddle_sim.product.core import Variant
from saddle_sim.simulation.errors import ConfigurationError, SimulationError


def make_legs(**overrides):
    legs = dict(
        production_days=5,
        origin_inland_days=2,
        ocean_transit_days=30,
        destination_inland_days=2,
    )
    legs.update(overrides)
    return LeadTimeLegs(**legs)


def test_lead_time_legs_total():
    legs = make_legs()
    assert legs.total_days == 40
    assert legs.availability_offset_days == 1


def test_negative_leg_rejected():
    with pytest.raises(ConfigurationError):
        make_legs(ocean_transit_days=-1)


def test_supplier_lead_time_must_match_legs():
    with pytest.raises(ConfigurationError) as exc:
        Supplier("SUP", "Test", "CN", make_legs(), 500, 2, lead_time_days=41)
    assert exc.value.context["legs_total"] == 40


def test_supplier_lot_size_positive():
    with pytest.raises(ConfigurationError):
        Supplier("SUP", "Test", "CN", make_legs(), 0, 2)


def test_supplier_sailing_weekday_range():
    with pytest.raises(ConfigurationError):
        Supplier("SUP", "Test", "CN", make_legs(), 500, 7)


def test_shutdown_window():
    window = ShutdownWindow(dt.date(2027, 1, 28), dt.date(2027, 2, 4), "Spring Festival")
    assert window.days == 8
    assert window.contains(dt.date(2027, 2, 1))
    assert not window.contains(dt.date(2027, 2, 5))
    assert window.overlaps(dt.date(2027, 2, 4), dt.date(2027, 3, 1))
    assert not window.overlaps(dt.date(2027, 2, 5), dt.date(2027, 3, 1))


def test_shutdown_window_end_before_start():
    with pytest.raises(ConfigurationError):
        ShutdownWindow(dt.date(2027, 2, 4), dt.date(2027, 1, 28))


def test_variant_share_range():
    with pytest.raises(ValueError):
        Variant("V1", "Bike", 1.5)


def test_order_total_quantity():
    order = Order(
        id="PO-MIX-20270104-0001",
        order_date=dt.date(2027, 1, 4),
        need_date=dt.date(2027, 2, 15),
        quantities={"C1": 500, "C2": 1000},
        reason=OrderReason.MANUAL,
    )
    assert order.total_quantity == 1500
    assert order.status == OrderStatus.CREATED


def test_error_context_in_message():
    err = ConfigurationError("Bad lot", lot_size=0, supplier="SUP")
    assert isinstance(err, SimulationError)
    assert isinstance(err, ValueError)
    assert "lot_size=0" in str(err)
    assert err.context == {"lot_size": 0, "supplier": "SUP"}


def test_world_lookups(make_world):
    world = make_world(
        variants=(("A", 0.5), ("B", 0.5)),
        components=("C1", "C2"),
        bom=[("A", "C1", 1), ("B", "C1", 1), ("B", "C2", 2)],
    )
    assert world.get_variant("A").share == 0.5
    assert world.get_component("C9") is None
    assert [p.variant_id for p in world.variants_using("C1")] == ["A", "B"]
    assert [p.quantity for p in world.components_of("B")] == [1, 2]

    with pytest.raises(ValueError):
        world.add_variant(Variant("A", "Again", 0.1))
    with pytest.raises(ValueError):
        world.set_supplier(world.supplier)
