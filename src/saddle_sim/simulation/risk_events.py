"""
Scenario Modifier Layer.

Each modifier kind is a tagged dataclass that overrides the one hook it
affects: the production plan (demand surge), the shipped lots (capacity
loss, shipping delay) or the stock on hand (write-off). Hooks return new
objects; baseline data is never mutated.
"""

import dataclasses
import datetime as dt
import logging
import math
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field, replace
from typing import Any, ClassVar

from saddle_sim.network.core import Lot
from saddle_sim.simulation.demand import ProductionPlan, round_half_up
from saddle_sim.simulation.errors import ConfigurationError
from saddle_sim.simulation.lead_time import LeadTimeCalculator
from saddle_sim.simulation.state import StockAdjustment
from saddle_sim.simulation.world import World

logger = logging.getLogger(__name__)


@dataclass
class ScenarioContext:
    world: World
    lead_time: LeadTimeCalculator


class ScenarioModifier:
    """Base of all modifier kinds. Every hook defaults to 'no effect'."""

    kind: ClassVar[str] = "generic"

    def apply_to_plan(self, plan: ProductionPlan) -> ProductionPlan:
        return plan

    def apply_to_lots(self, lots: list[Lot], context: ScenarioContext) -> list[Lot]:
        return lots

    def stock_adjustments(self, world: World) -> list[StockAdjustment]:
        return []

    def describe(self) -> str:
        params = ", ".join(
            f"{f.name}={getattr(self, f.name)}" for f in dataclasses.fields(self)  # type: ignore[arg-type]
        )
        return f"{self.kind}({params})"


def _in_window(day: dt.date, start: dt.date | None, end: dt.date | None) -> bool:
    return (start is None or day >= start) and (end is None or day <= end)


@dataclass
class DemandSurge(ScenarioModifier):
    """Raises planned daily production of the affected variants in a window."""

    kind: ClassVar[str] = "demand_surge"

    start: dt.date
    end: dt.date
    increase_pct: float
    variant_ids: tuple[str, ...] = ()  # Empty = all variants

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ConfigurationError(
                "Demand surge ends before it starts",
                start=self.start.isoformat(),
                end=self.end.isoformat(),
            )
        if self.increase_pct < -100:
            raise ConfigurationError(
                "Demand surge cannot reduce demand below zero",
                increase_pct=self.increase_pct,
            )

    def apply_to_plan(self, plan: ProductionPlan) -> ProductionPlan:
        factor = 1 + self.increase_pct / 100.0
        unknown = set(self.variant_ids) - set(plan.variant_ids)
        if unknown:
            raise ConfigurationError(
                "Demand surge for unknown variants", variants=sorted(unknown)
            )
        affected = self.variant_ids or tuple(plan.variant_ids)
        planned = {
            v: {
                e.date: round_half_up(e.planned * factor)
                for e in plan.entries[v]
                if e.is_working_day and self.start <= e.date <= self.end
            }
            for v in affected
        }
        return plan.with_planned(planned)


@dataclass
class CapacityLoss(ScenarioModifier):
    """
    Supplier capacity drop: lots sailing inside the window only carry the
    reduced share (whole lots); the cut is shipped with the first sailing
    after the window.
    """

    kind: ClassVar[str] = "capacity_loss"

    start: dt.date
    duration_days: int
    reduction_pct: float

    def __post_init__(self) -> None:
        if self.duration_days <= 0:
            raise ConfigurationError(
                "Capacity loss needs a positive duration",
                duration_days=self.duration_days,
            )
        if not 0 <= self.reduction_pct <= 100:
            raise ConfigurationError(
                "Capacity reduction must be within 0..100%",
                reduction_pct=self.reduction_pct,
            )

    @property
    def end(self) -> dt.date:
        return self.start + dt.timedelta(days=self.duration_days - 1)

    def apply_to_lots(self, lots: list[Lot], context: ScenarioContext) -> list[Lot]:
        lot_size = context.world.supplier.lot_size  # type: ignore[union-attr]
        keep_share = 1 - self.reduction_pct / 100.0

        result: list[Lot] = []
        by_component: dict[str, list[Lot]] = {}
        for lot in lots:
            by_component.setdefault(lot.component_id, []).append(lot)

        for component_id in sorted(by_component):
            deferred = 0
            deferred_alloc: dict[str, int] = {}
            placed = False
            for lot in sorted(by_component[component_id], key=lambda x: x.sailing_date):
                if _in_window(lot.sailing_date, self.start, self.end):
                    keep = math.floor(lot.shipped_quantity * keep_share / lot_size) * lot_size
                    cut = lot.shipped_quantity - keep
                    if cut == 0:
                        result.append(lot)
                        continue
                    kept_alloc, cut_alloc = _split_allocations(lot.allocations, keep)
                    deferred += cut
                    for order_id, qty in cut_alloc.items():
                        deferred_alloc[order_id] = deferred_alloc.get(order_id, 0) + qty
                    if keep > 0:
                        result.append(
                            replace(
                                lot,
                                shipped_quantity=keep,
                                allocations=kept_alloc,
                                warnings=[*lot.warnings, f"capacity loss: {cut} deferred"],
                            )
                        )
                elif deferred and not placed and lot.sailing_date > self.end:
                    allocations = dict(deferred_alloc)
                    for order_id, qty in lot.allocations.items():
                        allocations[order_id] = allocations.get(order_id, 0) + qty
                    result.append(
                        replace(
                            lot,
                            shipped_quantity=lot.shipped_quantity + deferred,
                            allocations=allocations,
                            warnings=[*lot.warnings, f"capacity loss: {deferred} added"],
                        )
                    )
                    placed = True
                else:
                    result.append(lot)

            if deferred and not placed:
                result.append(
                    self._catch_up_lot(component_id, deferred, deferred_alloc, context)
                )

        result.sort(key=lambda x: (x.sailing_date, x.component_id))
        return result

    def _catch_up_lot(
        self,
        component_id: str,
        quantity: int,
        allocations: dict[str, int],
        context: ScenarioContext,
    ) -> Lot:
        sailing = context.lead_time.next_sailing(self.end + dt.timedelta(days=1))
        return Lot(
            id=f"LOT-{component_id}-{sailing:%Y%m%d}-CL",
            component_id=component_id,
            sailing_date=sailing,
            arrival_date=context.lead_time.arrival_date(sailing),
            available_date=context.lead_time.available_date(sailing),
            shipped_quantity=quantity,
            allocations=dict(allocations),
            warnings=[f"capacity loss: {quantity} deferred from {self.start}"],
        )


def _split_allocations(
    allocations: dict[str, int], keep: int
) -> tuple[dict[str, int], dict[str, int]]:
    """The oldest allocations stay on board; the rest is cut."""
    kept: dict[str, int] = {}
    cut: dict[str, int] = {}
    room = keep
    for order_id, qty in allocations.items():
        take = min(qty, room)
        if take:
            kept[order_id] = take
        if qty - take:
            cut[order_id] = qty - take
        room -= take
    return kept, cut


@dataclass
class StockWriteOff(ScenarioModifier):
    """
    Removes stock on a date: an absolute quantity per affected component or
    a fraction of its balance. Written-off units come back after
    `recovery_days` when set.
    """

    kind: ClassVar[str] = "stock_write_off"

    date: dt.date
    quantity: int | None = None
    fraction: float | None = None
    component_ids: tuple[str, ...] = ()
    recovery_days: int | None = None

    def __post_init__(self) -> None:
        if (self.quantity is None) == (self.fraction is None):
            raise ConfigurationError("Write-off needs exactly one of quantity or fraction")
        if self.quantity is not None and self.quantity < 0:
            raise ConfigurationError("Write-off quantity cannot be negative", quantity=self.quantity)
        if self.fraction is not None and not 0 <= self.fraction <= 1:
            raise ConfigurationError("Write-off fraction must be within 0..1", fraction=self.fraction)
        if self.recovery_days is not None and self.recovery_days <= 0:
            raise ConfigurationError(
                "Recovery must happen after the write-off", recovery_days=self.recovery_days
            )

    def stock_adjustments(self, world: World) -> list[StockAdjustment]:
        targets = self.component_ids or tuple(world.component_ids)
        for cid in targets:
            if cid not in world.components:
                raise ConfigurationError("Write-off for unknown component", component=cid)
        return [
            StockAdjustment(
                component_id=cid,
                date=self.date,
                quantity=self.quantity,
                fraction=self.fraction,
                recovery_days=self.recovery_days,
            )
            for cid in targets
        ]


@dataclass
class ShippingDelay(ScenarioModifier):
    """
    Delays arrival and availability of the affected lots by `delay_days`.
    Lots are selected by id, or else by sailing date window and component.
    """

    kind: ClassVar[str] = "shipping_delay"

    delay_days: int
    start: dt.date | None = None
    end: dt.date | None = None
    component_ids: tuple[str, ...] = ()
    lot_ids: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.delay_days < 0:
            raise ConfigurationError("Shipping delay cannot be negative", delay_days=self.delay_days)
        if self.start and self.end and self.end < self.start:
            raise ConfigurationError("Shipping delay window ends before it starts")

    def affects(self, lot: Lot) -> bool:
        if self.lot_ids:
            return lot.id in self.lot_ids
        if self.component_ids and lot.component_id not in self.component_ids:
            return False
        return _in_window(lot.sailing_date, self.start, self.end)

    def apply_to_lots(self, lots: list[Lot], context: ScenarioContext) -> list[Lot]:
        delay = dt.timedelta(days=self.delay_days)
        result = []
        for lot in lots:
            if self.delay_days and self.affects(lot):
                lot = replace(
                    lot,
                    arrival_date=lot.arrival_date + delay,
                    available_date=lot.available_date + delay,
                    allocations=dict(lot.allocations),
                    warnings=[*lot.warnings, f"delayed by {self.delay_days} days"],
                )
            result.append(lot)
        return result


SCENARIO_TYPES: dict[str, type[ScenarioModifier]] = {
    cls.kind: cls for cls in (DemandSurge, CapacityLoss, StockWriteOff, ShippingDelay)
}


@dataclass
class ScenarioSet:
    """Applies a list of modifiers in order."""

    modifiers: list[ScenarioModifier] = field(default_factory=list)

    def __iter__(self) -> Iterator[ScenarioModifier]:
        return iter(self.modifiers)

    def __len__(self) -> int:
        return len(self.modifiers)

    def apply_to_plan(self, plan: ProductionPlan) -> ProductionPlan:
        for modifier in self.modifiers:
            plan = modifier.apply_to_plan(plan)
        return plan

    def apply_to_lots(self, lots: list[Lot], context: ScenarioContext) -> list[Lot]:
        for modifier in self.modifiers:
            lots = modifier.apply_to_lots(lots, context)
        return lots

    def stock_adjustments(self, world: World) -> list[StockAdjustment]:
        adjustments: list[StockAdjustment] = []
        for modifier in self.modifiers:
            adjustments.extend(modifier.stock_adjustments(world))
        return adjustments

    def describe(self) -> list[str]:
        return [m.describe() for m in self.modifiers]


def scenario_from_dict(data: dict[str, Any]) -> ScenarioModifier:
    """
    Builds a modifier from a `{"type": ..., **params}` dict. Dates are ISO
    strings, id lists become tuples.
    """
    params = dict(data)
    kind = params.pop("type", None)
    cls = SCENARIO_TYPES.get(kind)  # type: ignore[arg-type]
    if cls is None:
        raise ConfigurationError(
            "Unknown scenario type", type=kind, known=sorted(SCENARIO_TYPES)
        )
    params.pop("name", None)

    known = {f.name: f for f in dataclasses.fields(cls)}  # type: ignore[arg-type]
    unknown = set(params) - set(known)
    if unknown:
        raise ConfigurationError(
            "Unknown scenario parameters", type=kind, parameters=sorted(unknown)
        )

    try:
        for name, value in params.items():
            if value is None:
                continue
            if name in ("start", "end", "date"):
                params[name] = dt.date.fromisoformat(value)
            elif name.endswith("_ids"):
                params[name] = tuple(value)
        return cls(**params)
    except (TypeError, ValueError) as e:
        if isinstance(e, ConfigurationError):
            raise
        raise ConfigurationError(f"Malformed {kind} scenario: {e}", type=kind) from e


def parse_scenarios(items: Iterable[dict[str, Any] | ScenarioModifier]) -> ScenarioSet:
    modifiers = [
        item if isinstance(item, ScenarioModifier) else scenario_from_dict(item)
        for item in items
    ]
    for modifier in modifiers:
        logger.info(f"Scenario modifier: {modifier.describe()}")
    return ScenarioSet(modifiers)
