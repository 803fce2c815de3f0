"""
Pipeline driver: config -> world -> plan -> requirement -> orders -> lots
-> inventory -> metrics, once for the baseline and once per scenario set.
"""

import datetime as dt
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from saddle_sim.config.loader import load_simulation_config
from saddle_sim.network.core import Lot, Order
from saddle_sim.network.recipe_matrix import BOMResolver
from saddle_sim.simulation.builder import WorldBuilder
from saddle_sim.simulation.demand import ProductionPlan, ProductionPlanner
from saddle_sim.simulation.errors import ConfigurationError
from saddle_sim.simulation.logistics import (
    PortConsolidator,
    PortResult,
    mark_delivered,
    update_orders,
)
from saddle_sim.simulation.monitor import MetricsAggregator, PhysicsAuditor
from saddle_sim.simulation.mrp import ReplenishmentOrderGenerator
from saddle_sim.simulation.risk_events import (
    ScenarioContext,
    ScenarioModifier,
    parse_scenarios,
)
from saddle_sim.simulation.state import (
    ComponentInventory,
    InventorySimulator,
    StockAdjustment,
)

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    name: str
    production: ProductionPlan  # Planned quantities with realised actuals
    realised: dict[str, dict[dt.date, int]]  # Per variant, including extension days
    inventory: dict[str, ComponentInventory]
    orders: list[Order]
    lots: list[Lot]
    stranded: dict[str, int]
    metrics: dict[str, Any] = field(default_factory=dict)
    series: dict[str, pd.DataFrame] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)


@dataclass
class SimulationResult:
    baseline: RunResult
    scenario: RunResult | None = None
    scenarios: list[str] = field(default_factory=list)


@dataclass
class _Upstream:
    """Stages shared by the baseline and every scenario run."""

    plan: ProductionPlan
    orders: list[Order]
    port: PortResult


class Orchestrator:
    """Runs the planning pipeline for one year."""

    def __init__(self, config: dict[str, Any] | None = None) -> None:
        # 1. Initialize World
        self.config = config if config is not None else load_simulation_config()
        self.world = WorldBuilder(self.config).build()
        if self.world.calendars is None or self.world.supplier is None:
            raise ConfigurationError("World has no supplier or calendars")
        calendars = self.world.calendars

        year = self.world.year
        self.start = dt.date(year, 1, 1)
        self.end = dt.date(year, 12, 31)
        inv_config = self.config.get("simulation_parameters", {}).get("inventory", {})
        self.horizon_end = self.end + dt.timedelta(
            days=int(inv_config.get("max_extension_days", 120))
        )

        # 2. Initialize Engines
        self.planner = ProductionPlanner(self.world)
        self.bom = BOMResolver(self.world)
        self.order_generator = ReplenishmentOrderGenerator(
            self.world, calendars, self.config
        )
        self.port = PortConsolidator(self.world, calendars, self.config)
        self.inventory = InventorySimulator(self.world, calendars, self.config)

        # 3. Initialize Validation
        self.metrics = MetricsAggregator(self.config)
        self.auditor = PhysicsAuditor(self.config, self.world.supplier.lot_size)

        self._upstream: _Upstream | None = None

    def _prepare(self) -> _Upstream:
        if self._upstream is not None:
            return self._upstream

        plan = self.planner.build_plan()
        self.auditor.enforce(self.auditor.check_plan_totals(plan))

        requirements = self.bom.requirements_by_component(plan)
        orders = self.order_generator.generate(requirements)
        port = self.port.consolidate(orders, self.horizon_end)
        self.auditor.enforce(self.auditor.check_lot_multiples(port.lots))

        self._upstream = _Upstream(plan=plan, orders=orders, port=port)
        return self._upstream

    def _run(
        self,
        name: str,
        plan: ProductionPlan,
        lots: list[Lot],
        adjustments: list[StockAdjustment],
    ) -> RunResult:
        upstream = self._prepare()
        self.auditor.enforce(self.auditor.check_lot_multiples(lots))

        inventory = self.inventory.simulate(
            self.bom.requirements_by_component(plan),
            lots,
            self.start,
            self.end,
            self.bom.variant_requirements(plan),
            adjustments,
        )
        self.auditor.enforce(
            self.auditor.check_inventory_balance(inventory)
            + self.auditor.check_backlog_conservation(inventory)
        )

        realised = self.inventory.realised_production(inventory)
        production = plan.with_actuals(
            {
                v: {d: q for d, q in by_date.items() if d <= self.end}
                for v, by_date in realised.items()
            }
        )
        last_day = max(
            (inv.days[-1].date for inv in inventory.values() if inv.days),
            default=self.end,
        )
        run = RunResult(
            name=name,
            production=production,
            realised=realised,
            inventory=inventory,
            orders=update_orders(upstream.orders, lots, last_day),
            lots=mark_delivered(lots, last_day),
            stranded=dict(upstream.port.stranded),
            warnings=self._collect_warnings(upstream, lots, inventory),
        )
        run.series = self.metrics.time_series(run)
        run.metrics = self.metrics.compute(run)

        total = run.metrics["total"]
        logger.info(
            f"Run '{name}' finished: attainment={total['plan_attainment']:.3f}, "
            f"final backlog={total['final_backlog']}, "
            f"extension days={total['extension_days']}"
        )
        return run

    def _collect_warnings(
        self,
        upstream: _Upstream,
        lots: list[Lot],
        inventory: dict[str, ComponentInventory],
    ) -> list[str]:
        warnings = list(upstream.port.warnings)
        warnings.extend(f"{o.id}: {w}" for o in upstream.orders for w in o.warnings)
        warnings.extend(f"{lot.id}: {w}" for lot in lots for w in lot.warnings)
        for cid, inv in sorted(inventory.items()):
            if inv.extension_days:
                warnings.append(
                    f"{cid}: simulated {inv.extension_days} days past year end"
                )
            if inv.final_backlog:
                warnings.append(f"{cid}: {inv.final_backlog} units never served")
        return warnings

    def run_baseline(self) -> RunResult:
        upstream = self._prepare()
        return self._run("baseline", upstream.plan, list(upstream.port.lots), [])

    def run(
        self, scenarios: Iterable[dict[str, Any] | ScenarioModifier] | None = None
    ) -> SimulationResult:
        """
        Baseline plus, when modifiers are given, one scenario run with all of
        them applied in order. Without an argument the configured
        `scenarios` section is used.
        """
        if scenarios is None:
            scenarios = self.config.get("scenarios", [])
        scenario_set = parse_scenarios(scenarios)

        baseline = self.run_baseline()
        if not scenario_set:
            return SimulationResult(baseline=baseline)

        upstream = self._prepare()
        context = ScenarioContext(world=self.world, lead_time=self.port.lead_time)
        scenario = self._run(
            "scenario",
            scenario_set.apply_to_plan(upstream.plan),
            scenario_set.apply_to_lots(list(upstream.port.lots), context),
            scenario_set.stock_adjustments(self.world),
        )
        return SimulationResult(
            baseline=baseline, scenario=scenario, scenarios=scenario_set.describe()
        )


def simulate(
    config: dict[str, Any],
    scenarios: Iterable[dict[str, Any] | ScenarioModifier] | None = None,
) -> SimulationResult:
    """Runs the whole pipeline from scratch; a pure function of its inputs."""
    return Orchestrator(config).run(scenarios)
