import datetime as dt
import logging
from typing import Any

from saddle_sim.generators.holidays import generate_holidays
from saddle_sim.network.core import (
    Holiday,
    HolidayKind,
    LeadTimeLegs,
    ShutdownWindow,
    Supplier,
)
from saddle_sim.network.recipe_matrix import RecipeMatrixBuilder
from saddle_sim.product.core import BOMPosition, Component, ComponentCategory, Variant
from saddle_sim.simulation.calendars import CalendarService, WorkingDayCalendar
from saddle_sim.simulation.errors import ConfigurationError
from saddle_sim.simulation.world import World

logger = logging.getLogger(__name__)

SHARE_TOLERANCE = 1e-6


def _fractions(section: dict[str, Any], key: str) -> Any:
    """Reads `<key>_pct` (percent) or `<key>` (fraction) from a section."""
    if f"{key}_pct" in section:
        value = section[f"{key}_pct"]
        if isinstance(value, list):
            return [float(v) / 100.0 for v in value]
        return float(value) / 100.0
    return section[key]


def _date(value: str, field_name: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError("Invalid date", field=field_name, value=value) from e


class WorldBuilder:
    """Turns the configuration dict into a validated World."""

    def __init__(self, config: dict[str, Any]) -> None:
        self.config = config

    def build(self) -> World:
        try:
            planning = self.config["planning"]
            world = World(
                year=int(planning["year"]),
                annual_volume=int(planning["annual_volume"]),
                seasonality=_fractions(planning, "seasonality"),
            )
            self._build_variants(world)
            self._build_components(world)
            self._build_bom(world)
            supplier = self._build_supplier(world)
            self._build_calendars(world, supplier)
        except KeyError as e:
            raise ConfigurationError(f"Missing configuration key {e}") from e

        # Rejects variants without a component before any planning starts
        RecipeMatrixBuilder(
            [world.variants[v] for v in world.variant_ids],
            [world.components[c] for c in world.component_ids],
            world.bom,
        ).build_matrix()

        logger.info(
            f"World {world.year}: {len(world.variants)} variants, "
            f"{len(world.components)} components, {len(world.bom)} BOM positions, "
            f"{world.annual_volume} units"
        )
        return world

    def _build_variants(self, world: World) -> None:
        total = 0.0
        for v in self.config["variants"]:
            share = _fractions(v, "share")
            total += share
            try:
                world.add_variant(
                    Variant(
                        id=v["id"],
                        name=v.get("name", v["id"]),
                        share=share,
                        unit_cost=float(v.get("unit_cost", 0.0)),
                        price=float(v.get("price", 0.0)),
                    )
                )
            except ValueError as e:
                raise ConfigurationError(str(e), variant=v.get("id")) from e
        if abs(total - 1.0) > SHARE_TOLERANCE:
            raise ConfigurationError("Variant shares must sum to 100%", total=total)

    def _build_components(self, world: World) -> None:
        for c in self.config["components"]:
            try:
                category = ComponentCategory(c.get("category", "saddle"))
                world.add_component(
                    Component(
                        id=c["id"],
                        name=c.get("name", c["id"]),
                        category=category,
                        supplier_id=c["supplier_id"],
                    )
                )
            except ValueError as e:
                raise ConfigurationError(str(e), component=c.get("id")) from e

    def _build_bom(self, world: World) -> None:
        for pos in self.config["bom"]:
            try:
                world.add_bom_position(
                    BOMPosition(
                        variant_id=pos["variant_id"],
                        component_id=pos["component_id"],
                        quantity=pos.get("quantity", 1),
                    )
                )
            except ValueError as e:
                raise ConfigurationError(str(e)) from e

    def _build_supplier(self, world: World) -> Supplier:
        s = self.config["supplier"]
        try:
            legs = LeadTimeLegs(**s["legs"])
        except TypeError as e:
            raise ConfigurationError(f"Invalid lead-time legs: {e}") from e
        windows = [
            ShutdownWindow(
                start=_date(w["start"], "shutdown_windows.start"),
                end=_date(w["end"], "shutdown_windows.end"),
                name=w.get("name", "shutdown"),
            )
            for w in s.get("shutdown_windows", [])
        ]
        supplier = Supplier(
            id=s["id"],
            name=s.get("name", s["id"]),
            country=s["country"],
            legs=legs,
            lot_size=int(s["lot_size"]),
            sailing_weekday=int(s["sailing_weekday"]),
            shutdown_windows=windows,
            lead_time_days=s.get("lead_time_days"),
        )
        world.set_supplier(supplier)

        for component in world.components.values():
            if component.supplier_id != supplier.id:
                raise ConfigurationError(
                    "Component sourced from an unknown supplier",
                    component=component.id,
                    supplier=component.supplier_id,
                )
        return supplier

    def _load_holidays(
        self, year: int, role: str, country: str
    ) -> tuple[list[Holiday], set[int]]:
        holiday_config = self.config.get("holidays", {})
        holidays = [
            Holiday(
                date=_date(h["date"], f"holidays.{role}"),
                name=h.get("name", "holiday"),
                country=country,
                kind=HolidayKind(h.get("kind", "public")),
            )
            for h in holiday_config.get(role, [])
        ]
        covered = {h.date.year for h in holidays}

        if holiday_config.get("generate_adjacent_years", True):
            for y in (year - 1, year, year + 1):
                if y not in covered:
                    holidays.extend(generate_holidays(role, y, country))
                    covered.add(y)
        return holidays, covered

    def _build_calendars(self, world: World, supplier: Supplier) -> None:
        plant_country = self.config.get("plant", {}).get("country", "DE")
        plant_holidays, plant_years = self._load_holidays(
            world.year, "plant", plant_country
        )

        supplier_holidays, supplier_years = self._load_holidays(
            world.year, "supplier", supplier.country
        )
        for window in supplier.shutdown_windows:
            for offset in range(window.days):
                supplier_holidays.append(
                    Holiday(
                        date=window.start + dt.timedelta(days=offset),
                        name=window.name,
                        country=supplier.country,
                        kind=HolidayKind.SHUTDOWN,
                    )
                )

        world.calendars = CalendarService(
            plant=WorkingDayCalendar(plant_country, plant_holidays, plant_years),
            supplier=WorkingDayCalendar(
                supplier.country, supplier_holidays, supplier_years
            ),
        )
