"""Tests for WorldBuilder and config-driven world construction."""

import datetime as dt

import pytest

from saddle_sim.config.loader import load_scenarios
from saddle_sim.network.core import HolidayKind
from saddle_sim.product.core import ComponentCategory
from saddle_sim.simulation.builder import WorldBuilder
from saddle_sim.simulation.demand import ProductionPlanner
from saddle_sim.simulation.errors import ConfigurationError
from saddle_sim.simulation.orchestrator import Orchestrator


def test_world_builder_initialization(default_config):
    world = WorldBuilder(default_config).build()

    assert world.year == 2027
    assert len(world.variants) == 8
    assert world.component_ids == ["SAT_FT", "SAT_RL", "SAT_SL", "SAT_SP"]
    assert all(c.category == ComponentCategory.SADDLE for c in world.components.values())
    assert world.supplier.lot_size == 500
    assert world.supplier.legs.total_days == 40
    assert [p.component_id for p in world.components_of("ALLR")] == ["SAT_FT"]


def test_calendars_cover_both_sites(default_config):
    world = WorldBuilder(default_config).build()
    plant = world.calendars.plant
    supplier = world.calendars.supplier

    assert not plant.is_working_day(dt.date(2027, 3, 26))  # Good Friday
    assert not plant.is_working_day(dt.date(2026, 12, 25))  # generated year
    assert plant.is_working_day(dt.date(2027, 1, 29))

    assert not supplier.is_working_day(dt.date(2027, 1, 29))  # shutdown
    assert not supplier.is_working_day(dt.date(2027, 2, 8))
    assert supplier.is_working_day(dt.date(2027, 1, 27))
    assert world.calendars.calendar("CN") is supplier
    assert world.calendars.calendar("plant") is plant


def test_shutdown_days_marked(default_config):
    world = WorldBuilder(default_config).build()
    supplier = world.calendars.supplier
    assert supplier.holidays[dt.date(2027, 2, 1)].kind == HolidayKind.SHUTDOWN
    assert supplier.day(dt.date(2027, 2, 1)).holiday_name == "Spring Festival"
    assert world.supplier.shutdown_on(dt.date(2027, 2, 1)).name == "Spring Festival"


def test_default_variant_targets(default_config):
    world = WorldBuilder(default_config).build()
    targets = ProductionPlanner(world).variant_targets()

    assert sum(targets.values()) == 370000
    assert targets["ALLR"] == 111000
    assert targets["FREE"] == 18500


def _break_seasonality(config):
    config["planning"]["seasonality_pct"][0] = 5


def _break_lead_time(config):
    config["supplier"]["lead_time_days"] = 41


def _unmapped_variant(config):
    config["bom"] = [p for p in config["bom"] if p["variant_id"] != "TRAI"]


def _zero_lot_size(config):
    config["supplier"]["lot_size"] = 0


def _inverted_shutdown(config):
    config["supplier"]["shutdown_windows"][0]["end"] = "2027-01-01"


def _duplicate_variant(config):
    config["variants"].append(dict(config["variants"][0], share_pct=0))


def _missing_key(config):
    del config["supplier"]["country"]


def _shares_off(config):
    config["variants"][0]["share_pct"] = 31


def _foreign_supplier(config):
    config["components"][0]["supplier_id"] = "SUP-XX"


@pytest.mark.parametrize(
    "mutate",
    [
        _break_seasonality,
        _break_lead_time,
        _unmapped_variant,
        _zero_lot_size,
        _inverted_shutdown,
        _duplicate_variant,
        _missing_key,
        _shares_off,
        _foreign_supplier,
    ],
)
def test_invalid_configuration_rejected(default_config, mutate):
    mutate(default_config)
    with pytest.raises(ConfigurationError):
        Orchestrator(default_config)


def test_load_scenarios(tmp_path):
    path = tmp_path / "scenarios.json"
    path.write_text('{"scenarios": [{"type": "shipping_delay", "delay_days": 7}]}')
    assert load_scenarios(str(path)) == [{"type": "shipping_delay", "delay_days": 7}]

    path.write_text('"nothing"')
    with pytest.raises(TypeError):
        load_scenarios(str(path))


def test_builder_returns_fresh_worlds(default_config):
    builder = WorldBuilder(default_config)
    first = builder.build()
    second = builder.build()

    assert first is not second
    assert first.supplier is not second.supplier
    assert first.calendars.supplier.is_working_day(dt.date(2027, 1, 27))
    assert not hasattr(builder, "world")
