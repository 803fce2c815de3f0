"""
Result export. Every run becomes a set of flat tables (production,
inventory, orders, lots, metrics and the weekly or monthly metric series)
written as CSV or Parquet.
"""

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from saddle_sim.simulation.orchestrator import RunResult, SimulationResult

logger = logging.getLogger(__name__)

FORMATS = ("csv", "parquet")


def production_frame(run: RunResult) -> pd.DataFrame:
    rows = [
        {
            "variant_id": e.variant_id,
            "date": e.date,
            "is_working_day": e.is_working_day,
            "target_decimal": e.target_decimal,
            "planned": e.planned,
            "running_error": e.running_error,
            "actual": e.actual,
        }
        for v in run.production.variant_ids
        for e in run.production.entries[v]
    ]
    return pd.DataFrame(rows)


def inventory_frame(run: RunResult) -> pd.DataFrame:
    rows = []
    for cid in sorted(run.inventory):
        for d in run.inventory[cid].days:
            row = asdict(d)
            row["status"] = d.status.value
            row["events"] = ";".join(d.events)
            rows.append(row)
    return pd.DataFrame(rows)


def orders_frame(run: RunResult) -> pd.DataFrame:
    rows = []
    for o in run.orders:
        for cid, qty in sorted(o.quantities.items()):
            rows.append(
                {
                    "order_id": o.id,
                    "component_id": cid,
                    "quantity": qty,
                    "order_date": o.order_date,
                    "need_date": o.need_date,
                    "reason": o.reason.value,
                    "status": o.status.value,
                    "nominal_order_date": o.nominal_order_date,
                    "planned_sailing_date": o.planned_sailing_date,
                    "expected_available_date": o.expected_available_date,
                    "arrival_date": o.arrival_date,
                    "shipped_quantity": o.shipped_quantity,
                    "pulled_forward": o.pulled_forward,
                    "at_risk": o.at_risk,
                    "warnings": ";".join(o.warnings),
                }
            )
    return pd.DataFrame(rows)


def lots_frame(run: RunResult) -> pd.DataFrame:
    rows = [
        {
            "lot_id": lot.id,
            "component_id": lot.component_id,
            "sailing_date": lot.sailing_date,
            "arrival_date": lot.arrival_date,
            "available_date": lot.available_date,
            "shipped_quantity": lot.shipped_quantity,
            "carried_remainder": lot.carried_remainder,
            "orders": json.dumps(lot.allocations, sort_keys=True),
            "earliest_order_date": lot.earliest_order_date,
            "nominal_lead_days": lot.nominal_lead_days,
            "status": lot.status.value,
            "warnings": ";".join(lot.warnings),
        }
        for lot in run.lots
    ]
    return pd.DataFrame(rows)


def metrics_frame(run: RunResult) -> pd.DataFrame:
    """Long format: one row per (scope, metric)."""
    rows: list[dict[str, Any]] = []
    scopes = {"total": run.metrics.get("total", {})}
    scopes.update(run.metrics.get("components", {}))
    scopes["trend"] = run.metrics.get("trends", {})
    for scope, values in scopes.items():
        for metric, value in values.items():
            rows.append({"scope": scope, "metric": metric, "value": float(value)})
    return pd.DataFrame(rows, columns=["scope", "metric", "value"])


class SimulationWriter:
    """Writes baseline and scenario runs below an output directory."""

    def __init__(self, output_dir: str | Path, output_format: str = "csv") -> None:
        if output_format not in FORMATS:
            raise ValueError(f"Unknown output format {output_format!r}")
        self.output_dir = Path(output_dir)
        self.output_format = output_format

    def tables(self, run: RunResult) -> dict[str, pd.DataFrame]:
        return {
            "production": production_frame(run),
            "inventory": inventory_frame(run),
            "orders": orders_frame(run),
            "lots": lots_frame(run),
            "metrics": metrics_frame(run),
            **run.series,
        }

    def _write_table(self, df: pd.DataFrame, path: Path) -> Path:
        if self.output_format == "parquet":
            target = path.with_suffix(".parquet")
            table = pa.Table.from_pandas(df, preserve_index=False)
            pq.write_table(table, target)
        else:
            target = path.with_suffix(".csv")
            df.to_csv(target, index=False)
        return target

    def write_run(self, run: RunResult) -> list[Path]:
        run_dir = self.output_dir / run.name
        run_dir.mkdir(parents=True, exist_ok=True)
        written = [
            self._write_table(df, run_dir / name)
            for name, df in self.tables(run).items()
        ]
        logger.info(f"Wrote {len(written)} tables to {run_dir}")
        return written

    def write(self, result: SimulationResult) -> list[Path]:
        written = self.write_run(result.baseline)
        if result.scenario is not None:
            written.extend(self.write_run(result.scenario))
            with open(self.output_dir / "scenarios.json", "w") as f:
                json.dump(result.scenarios, f, indent=2)
        return written
