import datetime as dt
import logging
from collections import deque
from dataclasses import dataclass, field, replace
from typing import Any

from saddle_sim.network.core import Lot, Order, OrderStatus, ShipmentStatus
from saddle_sim.simulation.calendars import CalendarService
from saddle_sim.simulation.errors import ConfigurationError
from saddle_sim.simulation.lead_time import DAYS_PER_WEEK, LeadTimeCalculator
from saddle_sim.simulation.world import World

logger = logging.getLogger(__name__)


@dataclass
class PortResult:
    lots: list[Lot]
    stranded: dict[str, int] = field(default_factory=dict)  # component -> units
    warnings: list[str] = field(default_factory=list)


@dataclass
class _PortCargo:
    order: Order
    remaining: int
    first_sailing: dt.date
    flagged: bool = False


class PortConsolidator:
    """
    Handles the origin port (weekly sailings, full lots only).

    Finished goods wait at the port until the next sailing. Only whole lot
    multiples board; the remainder stays pooled for the following sailing.
    """

    def __init__(
        self, world: World, calendars: CalendarService, config: dict[str, Any]
    ) -> None:
        if world.supplier is None:
            raise ConfigurationError("World has no supplier")
        self.world = world
        self.lot_size = world.supplier.lot_size
        self.lead_time = LeadTimeCalculator(world.supplier, calendars, config)

        log_config = config.get("simulation_parameters", {}).get("logistics", {})
        self.max_port_wait_days = int(log_config.get("max_port_wait_days", 28))

    def consolidate(self, orders: list[Order], horizon_end: dt.date) -> PortResult:
        """
        Ships all orders through the weekly sailings up to `horizon_end`.
        Cargo still pooled after the last sailing is reported as stranded.
        """
        result = PortResult(lots=[])
        ordered = sorted(orders, key=lambda o: (o.order_date, o.id))

        for component_id in self.world.component_ids:
            self._consolidate_component(component_id, ordered, horizon_end, result)

        result.lots.sort(key=lambda lot: (lot.sailing_date, lot.component_id))
        logger.info(
            f"Shipped {len(result.lots)} lots "
            f"({sum(lot.shipped_quantity for lot in result.lots)} units), "
            f"{sum(result.stranded.values())} units stranded"
        )
        return result

    def _consolidate_component(
        self,
        component_id: str,
        orders: list[Order],
        horizon_end: dt.date,
        result: PortResult,
    ) -> None:
        arrivals: dict[dt.date, list[_PortCargo]] = {}
        for order in orders:
            qty = order.quantities.get(component_id, 0)
            if qty <= 0:
                continue
            sailing = self.lead_time.sailing_date_for(order.order_date)
            arrivals.setdefault(sailing, []).append(_PortCargo(order, qty, sailing))

        if not arrivals:
            return

        queue: deque[_PortCargo] = deque()
        sailing = min(arrivals)
        last_arrival = max(arrivals)

        while sailing <= horizon_end and (queue or sailing <= last_arrival):
            queue.extend(arrivals.pop(sailing, []))
            pool = sum(c.remaining for c in queue)
            shipped = (pool // self.lot_size) * self.lot_size

            if shipped > 0:
                result.lots.append(
                    self._load_lot(component_id, sailing, queue, shipped, pool - shipped)
                )

            for cargo in queue:
                waited = (sailing - cargo.first_sailing).days
                if not cargo.flagged and waited > self.max_port_wait_days:
                    cargo.flagged = True
                    msg = (
                        f"{component_id}: {cargo.remaining} units of {cargo.order.id} "
                        f"waiting at port for {waited} days"
                    )
                    logger.warning(msg)
                    result.warnings.append(msg)

            sailing += dt.timedelta(days=DAYS_PER_WEEK)

        stranded = sum(c.remaining for c in queue) + sum(
            c.remaining for pending in arrivals.values() for c in pending
        )
        if stranded > 0:
            result.stranded[component_id] = stranded
            msg = f"{component_id}: {stranded} units still at port after {horizon_end}"
            logger.warning(msg)
            result.warnings.append(msg)

    def _load_lot(
        self,
        component_id: str,
        sailing: dt.date,
        queue: deque[_PortCargo],
        shipped: int,
        carried: int,
    ) -> Lot:
        """Fills the lot from the oldest pooled orders first."""
        allocations: dict[str, int] = {}
        earliest: Order | None = None
        to_load = shipped
        while to_load > 0:
            cargo = queue[0]
            take = min(cargo.remaining, to_load)
            allocations[cargo.order.id] = allocations.get(cargo.order.id, 0) + take
            if earliest is None:
                earliest = cargo.order
            cargo.remaining -= take
            to_load -= take
            if cargo.remaining == 0:
                queue.popleft()

        nominal_lead = None
        if earliest is not None:
            expected = earliest.expected_available_date or (
                self.lead_time.expected_available_date(earliest.order_date)
            )
            nominal_lead = (expected - earliest.order_date).days

        lot = Lot(
            id=f"LOT-{component_id}-{sailing:%Y%m%d}",
            component_id=component_id,
            sailing_date=sailing,
            arrival_date=self.lead_time.arrival_date(sailing),
            available_date=self.lead_time.available_date(sailing),
            shipped_quantity=shipped,
            carried_remainder=carried,
            allocations=allocations,
            earliest_order_date=earliest.order_date if earliest else None,
            nominal_lead_days=nominal_lead,
        )
        logger.debug(
            f"Sailing {sailing}: {component_id} {shipped} units, {carried} carried"
        )
        return lot


def mark_delivered(lots: list[Lot], as_of: dt.date) -> list[Lot]:
    """Copies of the lots with their status as seen on `as_of`."""
    return [
        replace(
            lot,
            status=(
                ShipmentStatus.DELIVERED
                if lot.available_date <= as_of
                else ShipmentStatus.IN_TRANSIT
            ),
        )
        for lot in lots
    ]


def update_orders(
    orders: list[Order], lots: list[Lot], as_of: dt.date
) -> list[Order]:
    """
    Copies of the orders with shipped quantity, status as seen on `as_of`
    and the availability date of their last shipped unit. An order has
    arrived once all of it is shipped and its last lot is available.
    """
    shipped: dict[str, int] = {}
    last_available: dict[str, dt.date] = {}
    for lot in lots:
        for order_id, qty in lot.allocations.items():
            shipped[order_id] = shipped.get(order_id, 0) + qty
            current = last_available.get(order_id)
            if current is None or lot.available_date > current:
                last_available[order_id] = lot.available_date

    updated = []
    for order in orders:
        qty = shipped.get(order.id, 0)
        if qty == 0:
            status = OrderStatus.CREATED
        elif qty >= order.total_quantity and last_available[order.id] <= as_of:
            status = OrderStatus.ARRIVED
        else:
            status = OrderStatus.SHIPPED
        updated.append(
            replace(
                order,
                quantities=dict(order.quantities),
                warnings=list(order.warnings),
                shipped_quantity=qty,
                status=status,
                arrival_date=last_available.get(order.id) if qty else None,
            )
        )
    return updated
