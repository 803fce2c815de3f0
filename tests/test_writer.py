import json

import pandas as pd
import pytest

from saddle_sim.simulation.orchestrator import Orchestrator
from saddle_sim.simulation.risk_events import ShippingDelay
from saddle_sim.simulation.writer import SimulationWriter, metrics_frame

TABLES = (
    "production",
    "inventory",
    "orders",
    "lots",
    "metrics",
    "weekly_plan_attainment",
    "weekly_planning_accuracy",
    "weekly_lead_time",
    "monthly_material_availability",
    "monthly_days_of_supply",
)


@pytest.fixture
def result(small_config):
    return Orchestrator(small_config).run([ShippingDelay(3)])


def test_csv_export(tmp_path, result):
    written = SimulationWriter(tmp_path).write(result)

    assert len(written) == 2 * len(TABLES)
    for run in ("baseline", "scenario"):
        for table in TABLES:
            assert (tmp_path / run / f"{table}.csv").exists()

    production = pd.read_csv(tmp_path / "baseline" / "production.csv")
    assert production["planned"].sum() == 12000
    assert set(production["variant_id"]) == {"A", "B"}

    lots = pd.read_csv(tmp_path / "scenario" / "lots.csv")
    assert lots["warnings"].str.contains("delayed by 3 days").all()

    scenarios = json.loads((tmp_path / "scenarios.json").read_text())
    assert scenarios[0].startswith("shipping_delay(")


def test_parquet_export(tmp_path, result):
    SimulationWriter(tmp_path, output_format="parquet").write_run(result.baseline)

    inventory = pd.read_parquet(tmp_path / "baseline" / "inventory.parquet")
    assert set(inventory["component_id"]) == {"C1", "C2"}
    assert (inventory["closing_balance"] >= 0).all()
    assert not (tmp_path / "scenarios.json").exists()

    monthly = pd.read_parquet(tmp_path / "baseline" / "monthly_days_of_supply.parquet")
    assert set(monthly["scope"]) == {"total", "C1", "C2"}
    assert sorted(monthly["month"].unique()) == list(range(1, 13))


def test_metrics_frame_is_long(result):
    df = metrics_frame(result.baseline)
    assert list(df.columns) == ["scope", "metric", "value"]
    assert set(df["scope"]) == {"total", "C1", "C2", "trend"}
    trends = df[df["scope"] == "trend"]
    assert "planning_accuracy" in set(trends["metric"])


def test_unknown_format(tmp_path):
    with pytest.raises(ValueError):
        SimulationWriter(tmp_path, output_format="xlsx")
