from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np
import pandas as pd

from saddle_sim.network.core import Lot, Order
from saddle_sim.simulation.errors import InvariantViolation
from saddle_sim.simulation.state import ComponentInventory, InventoryStatus

if TYPE_CHECKING:
    from saddle_sim.simulation.demand import ProductionPlan
    from saddle_sim.simulation.orchestrator import RunResult

logger = logging.getLogger(__name__)

MIN_SAMPLES_FOR_VARIANCE = 2

WEEK_KEYS = ["iso_year", "week"]
MONTH_KEYS = ["year", "month"]
CRITICAL_STATUSES = (InventoryStatus.CRITICAL, InventoryStatus.NEGATIVE)

# metric -> (time-series table, column the trend is read from)
TREND_SOURCES = {
    "plan_attainment": ("weekly_plan_attainment", "attainment"),
    "planning_accuracy": ("weekly_planning_accuracy", "accuracy"),
    "average_lead_time_days": ("weekly_lead_time", "mean_days"),
    "material_availability": ("monthly_material_availability", "availability"),
    "average_days_of_supply": ("monthly_days_of_supply", "days_of_supply"),
}


@dataclass
class WelfordAccumulator:
    """
    Implements Welford's online algorithm for calculating mean and variance
    in a single pass (O(1) update).
    """

    count: int = 0
    mean: float = 0.0
    m2: float = 0.0  # Sum of squares of differences from the current mean

    def update(self, new_value: float) -> None:
        self.count += 1
        delta = new_value - self.mean
        self.mean += delta / self.count
        delta2 = new_value - self.mean
        self.m2 += delta * delta2

    @property
    def variance(self) -> float:
        if self.count < MIN_SAMPLES_FOR_VARIANCE:
            return 0.0
        return self.m2 / (self.count - 1)

    @property
    def std_dev(self) -> float:
        return float(np.sqrt(self.variance))


def _ratio(numerator: float, denominator: float, empty: float = 1.0) -> float:
    return numerator / denominator if denominator else empty


def _accuracy(abs_deviation: pd.Series, planned: pd.Series) -> pd.Series:
    """1 - |deviation| / plan, floored at 0. Buckets without plan count as exact."""
    return (1.0 - abs_deviation / planned.where(planned > 0)).clip(lower=0.0).fillna(1.0)


def _with_week(frame: pd.DataFrame) -> pd.DataFrame:
    iso = pd.to_datetime(frame["date"]).dt.isocalendar()
    return frame.assign(
        iso_year=iso["year"].astype("int64"), week=iso["week"].astype("int64")
    )


def _with_month(frame: pd.DataFrame) -> pd.DataFrame:
    dates = pd.to_datetime(frame["date"])
    return frame.assign(year=dates.dt.year, month=dates.dt.month)


def _days_of_supply(frame: pd.DataFrame, keys: list[str]) -> pd.DataFrame:
    # Days without consumption do not dilute the average usage
    used = frame["consumption"].where(frame["consumption"] > 0)
    out = frame.assign(used=used).groupby(keys, as_index=False).agg(
        average_stock=("closing_balance", "mean"),
        average_consumption=("used", "mean"),
    )
    out["average_consumption"] = out["average_consumption"].fillna(0.0)
    usage = out["average_consumption"].where(out["average_consumption"] > 0)
    out["days_of_supply"] = (out["average_stock"] / usage).fillna(0.0)
    return out


def trend(values: list[float]) -> float:
    """Relative change of the last value against the one before it."""
    if len(values) < 2:
        return 0.0
    previous, last = values[-2], values[-1]
    return float((last - previous) / (previous or 1.0))


def is_on_time(lot: Lot) -> bool | None:
    """
    On time = available no later than the earliest allocated order's date
    plus its nominal lead time and one day of grace. None when the lot has
    no order reference (capacity-loss catch-up lots).
    """
    if lot.earliest_order_date is None or lot.nominal_lead_days is None:
        return None
    deadline = lot.earliest_order_date + dt.timedelta(days=lot.nominal_lead_days + 1)
    return lot.available_date <= deadline


class MetricsAggregator:
    """
    Derives SCOR-style metrics (reliability, responsiveness, agility,
    asset management) from a finished run.
    """

    def __init__(self, config: dict[str, Any]):
        self.config = config.get("simulation_parameters", {}).get("validation", {})

        self.plan_attainment_min = self.config.get("plan_attainment_min", 0.98)
        self.planning_accuracy_min = self.config.get("planning_accuracy_min", 0.98)
        self.on_time_min = self.config.get("on_time_delivery_min", 0.95)
        self.availability_min = self.config.get("material_availability_min", 0.95)
        self.dos_range = self.config.get("days_of_supply_range", [7.0, 90.0])

    def compute(self, run: RunResult) -> dict[str, Any]:
        year_end = dt.date(run.production.year, 12, 31)
        components = {
            cid: self.component_metrics(
                inv,
                [o for o in run.orders if cid in o.quantities],
                [lot for lot in run.lots if lot.component_id == cid],
                year_end,
            )
            for cid, inv in sorted(run.inventory.items())
        }
        total = self.total_metrics(
            run.production, run.realised, run.inventory, run.orders, run.lots, year_end
        )
        trends = self.trends(run.series) if run.series else {}
        return {"total": total, "components": components, "trends": trends}

    def _lead_times(self, orders: Iterable[Order]) -> WelfordAccumulator:
        acc = WelfordAccumulator()
        for order in orders:
            if order.arrival_date is not None:
                acc.update((order.arrival_date - order.order_date).days)
        return acc

    def _on_time(self, lots: Iterable[Lot]) -> float:
        checked = [flag for flag in (is_on_time(lot) for lot in lots) if flag is not None]
        return _ratio(sum(checked), len(checked))

    def component_metrics(
        self,
        inventory: ComponentInventory,
        orders: list[Order],
        lots: list[Lot],
        year_end: dt.date,
    ) -> dict[str, Any]:
        days = inventory.days
        in_year = [d for d in days if d.date <= year_end]
        working = [d for d in days if d.is_working_day]
        working_in_year = [d for d in in_year if d.is_working_day]

        requirement = sum(d.gross_requirement for d in days)
        consumption_in_year = sum(d.consumption for d in in_year)
        closing = np.array([d.closing_balance for d in days], dtype=float)
        avg_stock = float(closing.mean()) if len(closing) else 0.0
        lead_times = self._lead_times(orders)

        return {
            # Reliability
            "plan_attainment": _ratio(consumption_in_year, requirement),
            "plan_attainment_with_extension": _ratio(
                inventory.total_consumption, requirement
            ),
            "on_time_delivery": self._on_time(lots),
            # Responsiveness
            "average_lead_time_days": lead_times.mean,
            "lead_time_std_days": lead_times.std_dev,
            "average_requirement_delay_days": _ratio(
                sum(d.backlog_after for d in days), requirement, empty=0.0
            ),
            # Agility
            "material_availability": _ratio(
                sum(1 for d in working if d.atp_satisfied), len(working)
            ),
            # Asset management
            "average_days_of_supply": (
                float(np.mean([d.days_of_supply for d in working_in_year]))
                if working_in_year
                else 0.0
            ),
            "inventory_turnover": _ratio(
                inventory.total_consumption, avg_stock, empty=0.0
            ),
            # Counts
            "requirement": requirement,
            "consumption": inventory.total_consumption,
            "write_off": sum(d.write_off for d in days),
            "orders": len(orders),
            "lots": len(lots),
            "shortage_days": sum(1 for d in working if d.backlog_after > 0),
            "max_backlog": inventory.max_backlog,
            "final_backlog": inventory.final_backlog,
            "extension_days": inventory.extension_days,
            "at_risk_orders": sum(1 for o in orders if o.at_risk),
            "pulled_forward_orders": sum(1 for o in orders if o.pulled_forward),
        }

    def total_metrics(
        self,
        plan: ProductionPlan,
        realised: Mapping[str, Mapping[dt.date, int]],
        inventory: Mapping[str, ComponentInventory],
        orders: list[Order],
        lots: list[Lot],
        year_end: dt.date,
    ) -> dict[str, Any]:
        planned = sum(plan.total_planned(v) for v in plan.variant_ids)
        built_in_year = sum(
            q for by_date in realised.values() for d, q in by_date.items() if d <= year_end
        )
        built = sum(q for by_date in realised.values() for q in by_date.values())

        all_days = [d for inv in inventory.values() for d in inv.days]
        working = [d for d in all_days if d.is_working_day]
        requirement = sum(d.gross_requirement for d in all_days)
        consumption = sum(d.consumption for d in all_days)
        dos = [
            d.days_of_supply for d in working if d.date <= year_end
        ]
        stock_by_component = [
            float(np.mean([d.closing_balance for d in inv.days])) if inv.days else 0.0
            for inv in inventory.values()
        ]
        lead_times = self._lead_times(orders)

        return {
            "plan_attainment": _ratio(built_in_year, planned),
            "plan_attainment_with_extension": _ratio(built, planned),
            "planning_accuracy": max(
                0.0, 1.0 - _ratio(abs(planned - built_in_year), planned, empty=0.0)
            ),
            "on_time_delivery": self._on_time(lots),
            "average_lead_time_days": lead_times.mean,
            "lead_time_std_days": lead_times.std_dev,
            "average_requirement_delay_days": _ratio(
                sum(d.backlog_after for d in all_days), requirement, empty=0.0
            ),
            "material_availability": _ratio(
                sum(1 for d in working if d.atp_satisfied), len(working)
            ),
            "average_days_of_supply": float(np.mean(dos)) if dos else 0.0,
            "inventory_turnover": _ratio(consumption, sum(stock_by_component), empty=0.0),
            "planned_units": planned,
            "realised_units": built,
            "requirement": requirement,
            "consumption": consumption,
            "orders": len(orders),
            "lots": len(lots),
            "shortage_days": sum(1 for d in working if d.backlog_after > 0),
            "max_backlog": max((inv.max_backlog for inv in inventory.values()), default=0),
            "final_backlog": sum(inv.final_backlog for inv in inventory.values()),
            "extension_days": max(
                (inv.extension_days for inv in inventory.values()), default=0
            ),
            "at_risk_orders": sum(1 for o in orders if o.at_risk),
            "pulled_forward_orders": sum(1 for o in orders if o.pulled_forward),
        }

    # Time buckets

    def _production_days(self, plan: ProductionPlan) -> pd.DataFrame:
        """Planned and actual units per plan day, summed over variants."""
        entries = pd.DataFrame(
            [
                {
                    "date": e.date,
                    "is_working_day": e.is_working_day,
                    "planned": e.planned,
                    "actual": e.actual,
                    "abs_deviation": abs(e.actual - e.planned),
                }
                for v in plan.variant_ids
                for e in plan.entries[v]
            ],
            columns=["date", "is_working_day", "planned", "actual", "abs_deviation"],
        )
        return entries.groupby("date", as_index=False).agg(
            is_working_day=("is_working_day", "first"),
            planned=("planned", "sum"),
            actual=("actual", "sum"),
            abs_deviation=("abs_deviation", "sum"),
        )

    def _inventory_days(
        self, inventory: Mapping[str, ComponentInventory], year: int
    ) -> pd.DataFrame:
        rows = [
            {
                "component_id": cid,
                "date": d.date,
                "is_working_day": d.is_working_day,
                "closing_balance": d.closing_balance,
                "consumption": d.consumption,
                "atp_satisfied": d.atp_satisfied,
                "critical": d.status in CRITICAL_STATUSES,
            }
            for cid, inv in sorted(inventory.items())
            for d in inv.days
            if d.date.year == year
        ]
        frame = pd.DataFrame(
            rows,
            columns=[
                "component_id",
                "date",
                "is_working_day",
                "closing_balance",
                "consumption",
                "atp_satisfied",
                "critical",
            ],
        )
        return _with_month(frame)

    def weekly_plan_attainment(self, days: pd.DataFrame) -> pd.DataFrame:
        """Share of working days per ISO week that built exactly the plan."""
        working = days[days["is_working_day"]]
        working = _with_week(working.assign(met=working["actual"] == working["planned"]))
        weekly = working.groupby(WEEK_KEYS, as_index=False).agg(
            planned=("planned", "sum"),
            actual=("actual", "sum"),
            days_met=("met", "sum"),
            working_days=("met", "size"),
        )
        weekly["attainment"] = weekly["days_met"] / weekly["working_days"]
        return weekly

    def weekly_planning_accuracy(self, days: pd.DataFrame) -> pd.DataFrame:
        weekly = _with_week(days).groupby(WEEK_KEYS, as_index=False).agg(
            planned=("planned", "sum"),
            actual=("actual", "sum"),
            abs_deviation=("abs_deviation", "sum"),
        )
        weekly["deviation"] = weekly["planned"] - weekly["actual"]
        weekly["accuracy"] = _accuracy(weekly["abs_deviation"], weekly["planned"])
        return weekly

    def weekly_lead_time(self, orders: Iterable[Order]) -> pd.DataFrame:
        """Order-to-availability days, bucketed by the ISO week of availability."""
        delivered = pd.DataFrame(
            [
                {"date": o.arrival_date, "days": (o.arrival_date - o.order_date).days}
                for o in orders
                if o.arrival_date is not None
            ],
            columns=["date", "days"],
        )
        if delivered.empty:
            return pd.DataFrame(
                columns=WEEK_KEYS + ["min_days", "mean_days", "max_days", "deliveries"]
            )
        return _with_week(delivered).groupby(WEEK_KEYS, as_index=False).agg(
            min_days=("days", "min"),
            mean_days=("days", "mean"),
            max_days=("days", "max"),
            deliveries=("days", "size"),
        )

    def monthly_material_availability(self, inventory: pd.DataFrame) -> pd.DataFrame:
        """
        A working day counts as available when every component passed its
        ATP check, and as critical when any component ended it critical or
        negative.
        """
        working = inventory[inventory["is_working_day"]]
        daily = working.groupby(MONTH_KEYS + ["date"], as_index=False).agg(
            available=("atp_satisfied", "all"),
            critical=("critical", "any"),
        )
        monthly = daily.groupby(MONTH_KEYS, as_index=False).agg(
            days_met=("available", "sum"),
            working_days=("available", "size"),
            critical_days=("critical", "sum"),
        )
        monthly["availability"] = monthly["days_met"] / monthly["working_days"]
        return monthly

    def monthly_days_of_supply(self, inventory: pd.DataFrame) -> pd.DataFrame:
        """Average stock over average consumption, in total and per component."""
        totals = inventory.groupby(MONTH_KEYS + ["date"], as_index=False)[
            ["closing_balance", "consumption"]
        ].sum()
        total = _days_of_supply(totals, MONTH_KEYS).assign(scope="total")
        per_component = _days_of_supply(inventory, ["component_id"] + MONTH_KEYS).rename(
            columns={"component_id": "scope"}
        )
        columns = ["scope"] + MONTH_KEYS + [
            "average_stock",
            "average_consumption",
            "days_of_supply",
        ]
        return pd.concat([total[columns], per_component[columns]], ignore_index=True)

    def time_series(self, run: RunResult) -> dict[str, pd.DataFrame]:
        """Weekly and monthly buckets behind the scalar metrics of a run."""
        production = self._production_days(run.production)
        inventory = self._inventory_days(run.inventory, run.production.year)
        return {
            "weekly_plan_attainment": self.weekly_plan_attainment(production),
            "weekly_planning_accuracy": self.weekly_planning_accuracy(production),
            "weekly_lead_time": self.weekly_lead_time(run.orders),
            "monthly_material_availability": self.monthly_material_availability(
                inventory
            ),
            "monthly_days_of_supply": self.monthly_days_of_supply(inventory),
        }

    def trends(self, series: Mapping[str, pd.DataFrame]) -> dict[str, float]:
        """Relative change of each metric between its last two buckets."""
        result = {}
        for metric, (table, column) in TREND_SOURCES.items():
            frame = series[table]
            if "scope" in frame.columns:
                frame = frame[frame["scope"] == "total"]
            result[metric] = trend(frame[column].tolist())
        return result


    def get_report(self, metrics: dict[str, Any]) -> dict[str, Any]:
        total = metrics["total"]
        low, high = self.dos_range
        return {
            "plan_attainment": {
                "value": total["plan_attainment"],
                "target": self.plan_attainment_min,
                "status": (
                    "OK" if total["plan_attainment"] >= self.plan_attainment_min else "LOW"
                ),
            },
            "planning_accuracy": {
                "value": total["planning_accuracy"],
                "target": self.planning_accuracy_min,
                "status": (
                    "OK"
                    if total["planning_accuracy"] >= self.planning_accuracy_min
                    else "LOW"
                ),
            },
            "on_time_delivery": {
                "value": total["on_time_delivery"],
                "target": self.on_time_min,
                "status": "OK" if total["on_time_delivery"] >= self.on_time_min else "LOW",
            },
            "material_availability": {
                "value": total["material_availability"],
                "target": self.availability_min,
                "status": (
                    "OK"
                    if total["material_availability"] >= self.availability_min
                    else "LOW"
                ),
            },
            "average_days_of_supply": {
                "value": total["average_days_of_supply"],
                "target": self.dos_range,
                "status": (
                    "OK" if low <= total["average_days_of_supply"] <= high else "DRIFT"
                ),
            },
        }


class PhysicsAuditor:
    """Enforces conservation laws on plans, stock and shipments."""

    def __init__(self, config: dict[str, Any], lot_size: int):
        self.config = config.get("simulation_parameters", {}).get("validation", {})
        self.strict = bool(self.config.get("strict", True))
        self.lot_size = lot_size

    def check_plan_totals(self, plan: ProductionPlan) -> list[str]:
        violations: list[str] = []
        for variant_id in plan.variant_ids:
            total = plan.total_planned(variant_id)
            target = plan.targets[variant_id]
            if total != target:
                violations.append(
                    f"Plan total for {variant_id} is {total}, target {target}"
                )
            if any(e.planned < 0 for e in plan.entries[variant_id]):
                violations.append(f"Negative planned quantity for {variant_id}")
        return violations

    def check_inventory_balance(
        self, inventory: Mapping[str, ComponentInventory]
    ) -> list[str]:
        violations: list[str] = []
        for cid, inv in inventory.items():
            previous_closing = None
            for d in inv.days:
                expected = d.opening_balance + d.arrivals - d.write_off - d.consumption
                if d.closing_balance != expected:
                    violations.append(
                        f"Stock drift for {cid} on {d.date}: "
                        f"closing={d.closing_balance} expected={expected}"
                    )
                if d.closing_balance < 0:
                    violations.append(
                        f"Negative stock for {cid} on {d.date}: {d.closing_balance}"
                    )
                if previous_closing is not None and d.opening_balance != previous_closing:
                    violations.append(f"Opening balance break for {cid} on {d.date}")
                previous_closing = d.closing_balance
        return violations

    def check_backlog_conservation(
        self, inventory: Mapping[str, ComponentInventory]
    ) -> list[str]:
        violations: list[str] = []
        for cid, inv in inventory.items():
            previous_after = 0
            for d in inv.days:
                if d.backlog_before != previous_after:
                    violations.append(f"Backlog carry break for {cid} on {d.date}")
                if d.backlog_after != d.backlog_before + d.gross_requirement - d.consumption:
                    violations.append(f"Backlog not conserved for {cid} on {d.date}")
                if d.backlog_after < 0:
                    violations.append(f"Negative backlog for {cid} on {d.date}")
                previous_after = d.backlog_after
            if inv.total_requirement != inv.total_consumption + inv.final_backlog:
                violations.append(
                    f"Requirement of {cid} neither consumed nor in backlog: "
                    f"{inv.total_requirement} != {inv.total_consumption} + "
                    f"{inv.final_backlog}"
                )
        return violations

    def check_lot_multiples(self, lots: Iterable[Lot]) -> list[str]:
        violations: list[str] = []
        for lot in lots:
            if lot.shipped_quantity % self.lot_size != 0:
                violations.append(
                    f"Lot {lot.id} ships {lot.shipped_quantity}, "
                    f"not a multiple of {self.lot_size}"
                )
            if sum(lot.allocations.values()) != lot.shipped_quantity:
                violations.append(f"Allocations of {lot.id} do not add up")
            if lot.available_date < lot.sailing_date:
                violations.append(f"Lot {lot.id} available before it sails")
        return violations

    def enforce(self, violations: list[str]) -> None:
        if not violations:
            return
        for v in violations:
            logger.warning(f"Audit: {v}")
        if self.strict:
            raise InvariantViolation(violations[0], violations=len(violations))
