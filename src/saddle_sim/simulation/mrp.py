"""
Replenishment Order Generator: turns component gross requirement into
lot-sized supplier orders.

Unordered requirement accumulates per component in need-date order. Once
it reaches the lot size an order is released for the largest whole lot
multiple, timed so the earliest still-unordered need date is covered.
Manual entries and the horizon residual go through the same sizing rule.
"""

import datetime as dt
import logging
import math
from collections.abc import Mapping
from typing import Any

from saddle_sim.network.core import Order, OrderReason
from saddle_sim.product.core import ComponentCategory
from saddle_sim.simulation.calendars import CalendarService
from saddle_sim.simulation.errors import ConfigurationError
from saddle_sim.simulation.lead_time import LeadTimeCalculator
from saddle_sim.simulation.world import World

logger = logging.getLogger(__name__)


class ReplenishmentOrderGenerator:
    """
    Generates supplier orders from component requirements.

    `round_to_lot_size` is the single switch for lot rounding: when true,
    threshold orders take the largest whole lot multiple and manual or
    residual orders round up to the next multiple; when false every order
    is placed for the exact quantity.
    """

    def __init__(
        self, world: World, calendars: CalendarService, config: dict[str, Any]
    ) -> None:
        if world.supplier is None:
            raise ConfigurationError("World has no supplier")
        self.world = world
        self.lead_time = LeadTimeCalculator(world.supplier, calendars, config)
        self.config = config
        self.lot_size = world.supplier.lot_size

        ordering = config.get("simulation_parameters", {}).get("ordering", {})
        self.round_to_lot_size = bool(ordering.get("round_to_lot_size", True))
        self.flush_residual = bool(ordering.get("flush_residual_at_horizon", True))

        self._sequence = 0

    def size_order(self, quantity: int, round_up: bool) -> int:
        """Applies the lot rule to a requested quantity."""
        if not self.round_to_lot_size or quantity <= 0:
            return quantity
        if round_up:
            return math.ceil(quantity / self.lot_size) * self.lot_size
        return (quantity // self.lot_size) * self.lot_size

    def _next_id(self, label: str, order_date: dt.date) -> str:
        self._sequence += 1
        return f"PO-{label}-{order_date:%Y%m%d}-{self._sequence:04d}"

    def _make_order(
        self,
        quantities: dict[str, int],
        need_date: dt.date,
        reason: OrderReason,
        order_date: dt.date | None = None,
    ) -> Order:
        timing = self.lead_time.order_date_for(need_date)
        warnings: list[str] = []

        if order_date is None:
            order_date = timing.order_date
            nominal = timing.nominal_order_date
            pulled = timing.pulled_forward
            if pulled and timing.shutdown is not None:
                warnings.append(
                    f"pulled forward from {nominal} ahead of {timing.shutdown.name}"
                )
        else:
            nominal = order_date
            pulled = False

        sailing = self.lead_time.sailing_date_for(order_date)
        expected = self.lead_time.available_date(sailing)
        at_risk = pulled or self.lead_time.is_at_risk(order_date, sailing, need_date)
        if at_risk:
            warnings.append("at risk: supplier shutdown near production window")
        if expected > need_date:
            warnings.append(f"expected availability {expected} after need date")

        label = next(iter(quantities)) if len(quantities) == 1 else "MIX"
        return Order(
            id=self._next_id(label, order_date),
            order_date=order_date,
            need_date=need_date,
            quantities=quantities,
            reason=reason,
            nominal_order_date=nominal,
            planned_sailing_date=sailing,
            expected_available_date=expected,
            pulled_forward=pulled,
            at_risk=at_risk,
            warnings=warnings,
        )

    def generate(self, requirements: Mapping[str, Mapping[dt.date, int]]) -> list[Order]:
        """
        Orders for all components plus the configured manual entries,
        sorted by order date.
        """
        self._sequence = 0
        orders: list[Order] = []
        for component_id in sorted(requirements):
            orders.extend(
                self._generate_component(component_id, requirements[component_id])
            )
        for entry in self.config.get("manual_orders", []):
            orders.append(self._manual_from_config(entry))

        orders.sort(key=lambda o: (o.order_date, o.id))
        logger.info(
            f"Generated {len(orders)} orders "
            f"({sum(o.total_quantity for o in orders)} units, "
            f"{sum(1 for o in orders if o.pulled_forward)} pulled forward, "
            f"{sum(1 for o in orders if o.at_risk)} at risk)"
        )
        return orders

    def _generate_component(
        self, component_id: str, requirement: Mapping[dt.date, int]
    ) -> list[Order]:
        orders: list[Order] = []
        unordered = 0
        batch_need: dt.date | None = None

        for need_date in sorted(d for d, q in requirement.items() if q > 0):
            if batch_need is None:
                batch_need = need_date
            unordered += requirement[need_date]

            if unordered >= self.lot_size:
                qty = self.size_order(unordered, round_up=False)
                orders.append(
                    self._make_order(
                        {component_id: qty}, batch_need, OrderReason.LOT_THRESHOLD
                    )
                )
                unordered -= qty
                # The remainder is always part of today's requirement
                batch_need = need_date if unordered > 0 else None

        if unordered > 0 and batch_need is not None:
            if self.flush_residual:
                qty = self.size_order(unordered, round_up=True)
                orders.append(
                    self._make_order(
                        {component_id: qty}, batch_need, OrderReason.RESIDUAL
                    )
                )
            else:
                logger.warning(
                    f"{component_id}: {unordered} units of requirement from "
                    f"{batch_need} onwards never reach the lot size"
                )

        return orders

    def family_components(
        self, category: ComponentCategory = ComponentCategory.SADDLE
    ) -> list[str]:
        return [
            cid
            for cid in self.world.component_ids
            if self.world.components[cid].category == category
        ]

    def manual_order(
        self,
        quantity: int,
        need_date: dt.date,
        order_date: dt.date | None = None,
        component_ids: list[str] | None = None,
    ) -> Order:
        """
        An aggregate manual order, split evenly across the family's
        component SKUs with the remainder going to the last one.
        """
        if quantity <= 0:
            raise ConfigurationError("Manual order quantity must be positive", quantity=quantity)
        targets = list(component_ids) if component_ids else self.family_components()
        if not targets:
            raise ConfigurationError("Manual order has no component to split across")
        for cid in targets:
            if cid not in self.world.components:
                raise ConfigurationError("Manual order for unknown component", component=cid)

        share, rest = divmod(quantity, len(targets))
        quantities: dict[str, int] = {}
        for i, cid in enumerate(targets):
            part = share + (rest if i == len(targets) - 1 else 0)
            sized = self.size_order(part, round_up=True)
            if sized > 0:
                quantities[cid] = sized

        return self._make_order(quantities, need_date, OrderReason.MANUAL, order_date)

    def _manual_from_config(self, entry: dict[str, Any]) -> Order:
        try:
            need_date = dt.date.fromisoformat(entry["need_date"])
            quantity = int(entry["quantity"])
            order_date = (
                dt.date.fromisoformat(entry["order_date"])
                if entry.get("order_date")
                else None
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError("Malformed manual order", entry=entry) from e
        return self.manual_order(
            quantity, need_date, order_date, entry.get("component_ids")
        )
