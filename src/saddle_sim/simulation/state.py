"""
Backlog/Inventory Simulator.

Walks every calendar day per component: lots are posted on their
availability date, write-offs are applied, and on plant working days the
gross requirement plus open backlog is served from available-to-promise
stock. Unserved requirement stays in the backlog and is served by later
arrivals, past the year end if needed.
"""

import datetime as dt
import enum
import logging
import math
from collections import deque
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from saddle_sim.agents.allocation import FairShareAllocator
from saddle_sim.network.core import Lot
from saddle_sim.simulation.calendars import CalendarService
from saddle_sim.simulation.errors import InvariantViolation
from saddle_sim.simulation.world import World

logger = logging.getLogger(__name__)

NO_CONSUMPTION_DOS = 999.0
POST_YEAR_END = "post_year_end"


class InventoryStatus(enum.Enum):
    OK = "ok"
    LOW = "low"
    CRITICAL = "critical"
    NEGATIVE = "negative"


@dataclass
class InventoryDayEntry:
    component_id: str
    date: dt.date
    is_working_day: bool
    opening_balance: int = 0
    arrivals: int = 0
    write_off: int = 0
    gross_requirement: int = 0
    backlog_before: int = 0
    consumption: int = 0
    backlog_after: int = 0
    closing_balance: int = 0
    days_of_supply: float = 0.0
    status: InventoryStatus = InventoryStatus.OK
    atp_satisfied: bool = True
    events: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class StockAdjustment:
    """
    A write-off of physical stock on one day. Either an absolute quantity or
    a fraction of the balance at that moment; with `recovery_days` the
    amount is re-delivered that many days later.
    """

    component_id: str
    date: dt.date
    quantity: int | None = None
    fraction: float | None = None
    recovery_days: int | None = None
    label: str = "write_off"

    def amount(self, balance: int) -> int:
        if self.quantity is not None:
            wanted = self.quantity
        else:
            wanted = math.floor(balance * (self.fraction or 0.0))
        return min(max(wanted, 0), max(balance, 0))


@dataclass
class ComponentInventory:
    component_id: str
    days: list[InventoryDayEntry]
    # Consumed component units per variant and day (fair-share split)
    variant_consumption: dict[str, dict[dt.date, int]] = field(default_factory=dict)
    extension_days: int = 0

    @property
    def final_backlog(self) -> int:
        return self.days[-1].backlog_after if self.days else 0

    @property
    def final_balance(self) -> int:
        return self.days[-1].closing_balance if self.days else 0

    @property
    def max_backlog(self) -> int:
        return max((d.backlog_after for d in self.days), default=0)

    @property
    def total_consumption(self) -> int:
        return sum(d.consumption for d in self.days)

    @property
    def total_requirement(self) -> int:
        return sum(d.gross_requirement for d in self.days)


def _per_component(value: Any, component_id: str, default: int = 0) -> int:
    """Inventory tunables are either a scalar or a per-component mapping."""
    if isinstance(value, Mapping):
        return int(value.get(component_id, default))
    if value is None:
        return default
    return int(value)


class InventorySimulator:
    """
    Day-by-day stock and backlog per component with ATP gating.
    """

    def __init__(
        self, world: World, calendars: CalendarService, config: dict[str, Any]
    ) -> None:
        self.world = world
        self.plant = calendars.plant
        self.allocator = FairShareAllocator()

        inv_config = config.get("simulation_parameters", {}).get("inventory", {})
        self.initial_stock = inv_config.get("initial_stock", 0)
        self.safety_stock = inv_config.get("safety_stock", 0)
        self.low_days_of_supply = float(inv_config.get("low_days_of_supply", 14))
        self.dos_window = int(inv_config.get("days_of_supply_window", 20))
        self.max_extension_days = int(inv_config.get("max_extension_days", 120))

    def days_of_supply(self, balance: int, recent: Iterable[int]) -> float:
        recent = list(recent)
        avg = sum(recent) / len(recent) if recent else 0.0
        if avg <= 0:
            return NO_CONSUMPTION_DOS if balance > 0 else 0.0
        return balance / avg

    def classify(
        self, balance: int, backlog: int, dos: float, safety_stock: int
    ) -> InventoryStatus:
        if balance < 0:
            return InventoryStatus.NEGATIVE
        if balance < safety_stock or backlog > 0:
            return InventoryStatus.CRITICAL
        if dos < self.low_days_of_supply:
            return InventoryStatus.LOW
        return InventoryStatus.OK

    def simulate_component(
        self,
        component_id: str,
        requirement: Mapping[dt.date, int],
        lots: Iterable[Lot],
        start: dt.date,
        end: dt.date,
        variant_requirements: Mapping[str, Mapping[dt.date, int]] | None = None,
        adjustments: Iterable[StockAdjustment] = (),
    ) -> ComponentInventory:
        safety = _per_component(self.safety_stock, component_id)
        balance = _per_component(self.initial_stock, component_id)

        receipts: dict[dt.date, int] = {}
        receipt_ids: dict[dt.date, list[str]] = {}
        for lot in lots:
            if lot.component_id != component_id or lot.shipped_quantity <= 0:
                continue
            day = max(lot.available_date, start)
            receipts[day] = receipts.get(day, 0) + lot.shipped_quantity
            receipt_ids.setdefault(day, []).append(lot.id)

        write_offs: dict[dt.date, list[StockAdjustment]] = {}
        for adj in adjustments:
            if adj.component_id == component_id:
                write_offs.setdefault(adj.date, []).append(adj)
        recoveries: dict[dt.date, int] = {}

        outstanding = {v: 0 for v in sorted(variant_requirements or {})}
        variant_consumption: dict[str, dict[dt.date, int]] = {v: {} for v in outstanding}

        recent: deque[int] = deque(maxlen=self.dos_window)
        days: list[InventoryDayEntry] = []
        backlog = 0
        extension = 0
        day = start

        while True:
            if day > end:
                if backlog <= 0 or extension >= self.max_extension_days:
                    break
                if extension == 0:
                    logger.warning(
                        f"{component_id}: backlog of {backlog} at year end, "
                        "extending simulation"
                    )
                extension += 1

            entry = InventoryDayEntry(
                component_id=component_id,
                date=day,
                is_working_day=self.plant.is_working_day(day),
                opening_balance=balance,
            )
            if day > end:
                entry.events.append(POST_YEAR_END)

            # 1. Receipts
            entry.arrivals = receipts.pop(day, 0) + recoveries.pop(day, 0)
            balance += entry.arrivals
            if day in receipt_ids:
                entry.events.append("arrival:" + ",".join(receipt_ids[day]))

            # 2. Write-offs
            for adj in write_offs.get(day, []):
                amount = adj.amount(balance)
                balance -= amount
                entry.write_off += amount
                entry.events.append(f"{adj.label}:{amount}")
                if adj.recovery_days is not None and amount > 0:
                    back = day + dt.timedelta(days=adj.recovery_days)
                    recoveries[back] = recoveries.get(back, 0) + amount

            # 3. Requirement and ATP-gated consumption
            entry.gross_requirement = requirement.get(day, 0) if day <= end else 0
            entry.backlog_before = backlog
            open_requirement = entry.gross_requirement + backlog
            if entry.is_working_day:
                atp = max(balance - safety, 0)
                entry.consumption = min(open_requirement, atp)
            balance -= entry.consumption
            backlog = open_requirement - entry.consumption
            entry.backlog_after = backlog
            entry.closing_balance = balance
            entry.atp_satisfied = backlog == 0

            if balance < 0:
                logger.error(f"{component_id}: negative stock {balance} on {day}")
                raise InvariantViolation(
                    "Negative inventory",
                    component=component_id,
                    date=day.isoformat(),
                    balance=balance,
                )

            # 4. Fair-share split of what was consumed
            if outstanding:
                self._split_consumption(
                    day, end, entry.consumption, outstanding,
                    variant_requirements or {}, variant_consumption,
                )

            if entry.is_working_day:
                recent.append(entry.consumption)
                if backlog > 0:
                    entry.events.append("shortage")
            entry.days_of_supply = self.days_of_supply(balance, recent)
            entry.status = self.classify(balance, backlog, entry.days_of_supply, safety)

            logger.debug(
                f"{day} {component_id}: open={entry.opening_balance} "
                f"in={entry.arrivals} out={entry.consumption} backlog={backlog}"
            )
            days.append(entry)
            day += dt.timedelta(days=1)

        if backlog > 0:
            logger.warning(
                f"{component_id}: backlog of {backlog} left after "
                f"{extension} extension days"
            )

        return ComponentInventory(
            component_id=component_id,
            days=days,
            variant_consumption=variant_consumption,
            extension_days=extension,
        )

    def _split_consumption(
        self,
        day: dt.date,
        end: dt.date,
        consumption: int,
        outstanding: dict[str, int],
        variant_requirements: Mapping[str, Mapping[dt.date, int]],
        variant_consumption: dict[str, dict[dt.date, int]],
    ) -> None:
        if day <= end:
            for v in outstanding:
                outstanding[v] += variant_requirements[v].get(day, 0)
        if consumption <= 0:
            return
        allocation = self.allocator.allocate(consumption, outstanding)
        for v, qty in allocation.items():
            if qty > 0:
                outstanding[v] -= qty
                variant_consumption[v][day] = qty

    def simulate(
        self,
        requirements: Mapping[str, Mapping[dt.date, int]],
        lots: Iterable[Lot],
        start: dt.date,
        end: dt.date,
        variant_requirements: Mapping[str, Mapping[str, Mapping[dt.date, int]]]
        | None = None,
        adjustments: Iterable[StockAdjustment] = (),
    ) -> dict[str, ComponentInventory]:
        lots = list(lots)
        adjustments = list(adjustments)
        result = {}
        for component_id in self.world.component_ids:
            result[component_id] = self.simulate_component(
                component_id,
                requirements.get(component_id, {}),
                lots,
                start,
                end,
                (variant_requirements or {}).get(component_id),
                adjustments,
            )
        logger.info(
            f"Inventory simulated for {len(result)} components, final backlog "
            f"{sum(inv.final_backlog for inv in result.values())}"
        )
        return result

    def realised_production(
        self, inventories: Mapping[str, ComponentInventory]
    ) -> dict[str, dict[dt.date, int]]:
        """
        Units of each variant actually built per day: the minimum over the
        variant's components of cumulative allocated units / BOM quantity.
        """
        realised: dict[str, dict[dt.date, int]] = {}
        for variant_id in self.world.variant_ids:
            positions = self.world.components_of(variant_id)
            dates = sorted(
                {
                    d
                    for p in positions
                    for d in inventories[p.component_id]
                    .variant_consumption.get(variant_id, {})
                }
            )
            cumulative = {p.component_id: 0 for p in positions}
            built = 0
            daily: dict[dt.date, int] = {}
            for day in dates:
                for p in positions:
                    consumed = inventories[p.component_id].variant_consumption
                    cumulative[p.component_id] += consumed.get(variant_id, {}).get(day, 0)
                buildable = min(
                    cumulative[p.component_id] // p.quantity for p in positions
                )
                if buildable > built:
                    daily[day] = buildable - built
                    built = buildable
            realised[variant_id] = daily
        return realised
