import copy
import datetime as dt

import pytest

from saddle_sim.config.loader import load_simulation_config
from saddle_sim.network.core import (
    Holiday,
    HolidayKind,
    LeadTimeLegs,
    ShutdownWindow,
    Supplier,
)
from saddle_sim.product.core import BOMPosition, Component, ComponentCategory, Variant
from saddle_sim.simulation.calendars import CalendarService, WorkingDayCalendar
from saddle_sim.simulation.world import World

YEARS = (2026, 2027, 2028)


def build_calendars(plant_holidays=(), supplier_holidays=(), shutdowns=()):
    """Weekend-only calendars unless holidays are given; shutdowns block the supplier."""
    supplier_days = list(supplier_holidays)
    for window in shutdowns:
        for i in range(window.days):
            supplier_days.append(
                Holiday(
                    window.start + dt.timedelta(days=i),
                    window.name,
                    "CN",
                    HolidayKind.SHUTDOWN,
                )
            )
    return CalendarService(
        plant=WorkingDayCalendar("DE", plant_holidays, YEARS),
        supplier=WorkingDayCalendar("CN", supplier_days, YEARS),
    )


def build_world(
    variants=(("V1", 1.0),),
    components=("C1",),
    bom=None,
    annual_volume=1000,
    seasonality=None,
    lot_size=500,
    shutdowns=(),
    plant_holidays=(),
    supplier_holidays=(),
):
    world = World(2027, annual_volume, seasonality or [1 / 12] * 12)
    for vid, share in variants:
        world.add_variant(Variant(vid, f"Bike {vid}", share))
    for cid in components:
        world.add_component(
            Component(cid, f"Saddle {cid}", ComponentCategory.SADDLE, "SUP")
        )
    if bom is None:
        bom = [
            (vid, components[i % len(components)], 1)
            for i, (vid, _) in enumerate(variants)
        ]
    for vid, cid, qty in bom:
        world.add_bom_position(BOMPosition(vid, cid, qty))
    world.set_supplier(
        Supplier(
            id="SUP",
            name="Test Supplier",
            country="CN",
            legs=LeadTimeLegs(
                production_days=5,
                origin_inland_days=2,
                ocean_transit_days=30,
                destination_inland_days=2,
            ),
            lot_size=lot_size,
            sailing_weekday=2,
            shutdown_windows=list(shutdowns),
            lead_time_days=40,
        )
    )
    world.calendars = build_calendars(plant_holidays, supplier_holidays, shutdowns)
    return world


@pytest.fixture
def make_world():
    return build_world


@pytest.fixture
def make_calendars():
    return build_calendars


@pytest.fixture
def world():
    return build_world()


@pytest.fixture
def spring_shutdown():
    return ShutdownWindow(dt.date(2027, 1, 28), dt.date(2027, 2, 4), "Spring Festival")


@pytest.fixture
def default_config():
    return copy.deepcopy(load_simulation_config())


@pytest.fixture
def small_config():
    """Two variants on two saddles, generated holidays, default legs."""
    return {
        "planning": {
            "year": 2027,
            "annual_volume": 12000,
            "seasonality_pct": [8, 8, 8, 8, 8, 8, 8, 8, 8, 8, 10, 10],
        },
        "plant": {"name": "Test Plant", "country": "DE"},
        "variants": [
            {"id": "A", "name": "Bike A", "share_pct": 60},
            {"id": "B", "name": "Bike B", "share_pct": 40},
        ],
        "components": [
            {"id": "C1", "name": "Saddle 1", "category": "saddle", "supplier_id": "SUP"},
            {"id": "C2", "name": "Saddle 2", "category": "saddle", "supplier_id": "SUP"},
        ],
        "bom": [
            {"variant_id": "A", "component_id": "C1", "quantity": 1},
            {"variant_id": "B", "component_id": "C2", "quantity": 1},
        ],
        "supplier": {
            "id": "SUP",
            "name": "Test Supplier",
            "country": "CN",
            "lot_size": 500,
            "sailing_weekday": 2,
            "lead_time_days": 40,
            "legs": {
                "production_days": 5,
                "origin_inland_days": 2,
                "ocean_transit_days": 30,
                "destination_inland_days": 2,
                "processing_buffer_days": 1,
                "availability_offset_days": 1,
            },
            "shutdown_windows": [
                {"name": "Spring Festival", "start": "2027-01-28", "end": "2027-02-04"}
            ],
        },
        "holidays": {"generate_adjacent_years": True},
        "simulation_parameters": {
            "inventory": {"max_extension_days": 60},
            "ordering": {"round_to_lot_size": True},
            "logistics": {"max_port_wait_days": 28},
            "validation": {"strict": True},
        },
    }
