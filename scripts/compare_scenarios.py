#!/usr/bin/env python3
"""Compare two exported simulation runs (e.g., baseline vs shipping delay)."""

import argparse
from pathlib import Path

import pandas as pd

# Column name reference for result CSVs:
# inventory.csv: component_id, date, is_working_day, opening_balance, arrivals,
#   write_off, gross_requirement, backlog_before, consumption, backlog_after,
#   closing_balance, days_of_supply, status, atp_satisfied, events
# lots.csv: lot_id, component_id, sailing_date, arrival_date, available_date,
#   shipped_quantity, ...
# metrics.csv: scope, metric, value


def load_run(results_dir: Path) -> dict:
    """Load the result CSVs of one run directory."""
    return {
        "inventory": pd.read_csv(results_dir / "inventory.csv", parse_dates=["date"]),
        "lots": pd.read_csv(
            results_dir / "lots.csv", parse_dates=["sailing_date", "available_date"]
        ),
        "metrics": pd.read_csv(results_dir / "metrics.csv"),
    }


def compare_components(run_a: dict, run_b: dict, label_a: str, label_b: str) -> None:
    """Backlog and consumption per component."""
    print("=" * 72)
    print("COMPONENT COMPARISON")
    print("=" * 72)

    def summary(run: dict) -> pd.DataFrame:
        inv = run["inventory"]
        return inv.groupby("component_id").agg(
            consumption=("consumption", "sum"),
            max_backlog=("backlog_after", "max"),
            backlog_days=("backlog_after", "sum"),
        )

    a = summary(run_a)
    b = summary(run_b)
    joined = a.join(b, lsuffix=f" ({label_a})", rsuffix=f" ({label_b})", how="outer")
    for col in ("consumption", "max_backlog", "backlog_days"):
        joined[f"{col} delta"] = joined[f"{col} ({label_b})"] - joined[f"{col} ({label_a})"]
    print(joined.fillna(0).to_string())


def compare_metrics(run_a: dict, run_b: dict, label_a: str, label_b: str) -> None:
    print("\n" + "=" * 72)
    print("TOTAL METRICS")
    print("=" * 72)
    a = run_a["metrics"].query("scope == 'total'").set_index("metric")["value"]
    b = run_b["metrics"].query("scope == 'total'").set_index("metric")["value"]
    print(f"{'Metric':<34} {label_a:>12} {label_b:>12} {'Diff':>12}")
    print("-" * 72)
    for metric in a.index:
        diff = b.get(metric, 0.0) - a[metric]
        print(f"{metric:<34} {a[metric]:>12,.3f} {b.get(metric, 0.0):>12,.3f} {diff:>+12,.3f}")


def compare_day_by_day(
    run_a: dict, run_b: dict, start: str, end: str, label_a: str, label_b: str
) -> None:
    """Show day-by-day total backlog."""
    print("\n" + "=" * 72)
    print(f"DAY-BY-DAY BACKLOG ({start} to {end})")
    print("=" * 72)

    a_daily = run_a["inventory"].groupby("date")["backlog_after"].sum()
    b_daily = run_b["inventory"].groupby("date")["backlog_after"].sum()

    print(f"{'Date':<12} {label_a:>15} {label_b:>15} {'Diff':>15}")
    print("-" * 60)
    for day in pd.date_range(start, end):
        a = a_daily.get(day, 0)
        b = b_daily.get(day, 0)
        print(f"{day.date()!s:<12} {a:>15,.0f} {b:>15,.0f} {b - a:>+15,.0f}")


def main():
    parser = argparse.ArgumentParser(description="Compare two simulation runs")
    parser.add_argument("run_a", type=Path, help="Path to first run directory")
    parser.add_argument("run_b", type=Path, help="Path to second run directory")
    parser.add_argument("--label-a", default="Baseline", help="Label for first run")
    parser.add_argument("--label-b", default="Scenario", help="Label for second run")
    parser.add_argument(
        "--date-range", type=str, help="Date range, e.g. '2027-03-01:2027-04-15'"
    )
    args = parser.parse_args()

    print(f"Loading {args.label_a} from {args.run_a}...")
    a = load_run(args.run_a)

    print(f"Loading {args.label_b} from {args.run_b}...")
    b = load_run(args.run_b)

    compare_components(a, b, args.label_a, args.label_b)
    compare_metrics(a, b, args.label_a, args.label_b)

    if args.date_range:
        start, end = args.date_range.split(":")
        compare_day_by_day(a, b, start, end, args.label_a, args.label_b)


if __name__ == "__main__":
    main()
