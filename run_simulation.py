"""
Saddle Supply Simulation Runner.

Usage:
    poetry run python run_simulation.py                            # Default 2027 plan
    poetry run python run_simulation.py --scenarios delay.json     # Baseline vs scenario
    poetry run python run_simulation.py --no-export                # Report only
"""

import argparse
import logging
import time

from saddle_sim.config.loader import load_scenarios, load_simulation_config
from saddle_sim.simulation.orchestrator import simulate
from saddle_sim.simulation.writer import SimulationWriter

REPORT_KEYS = (
    "plan_attainment",
    "plan_attainment_with_extension",
    "planning_accuracy",
    "on_time_delivery",
    "average_lead_time_days",
    "average_requirement_delay_days",
    "material_availability",
    "average_days_of_supply",
    "inventory_turnover",
    "orders",
    "lots",
    "shortage_days",
    "max_backlog",
    "final_backlog",
    "extension_days",
    "at_risk_orders",
    "pulled_forward_orders",
)


def format_report(baseline: dict, scenario: dict | None) -> str:
    header = f"{'Metric':<34} {'Baseline':>14}"
    if scenario is not None:
        header += f" {'Scenario':>14} {'Delta':>12}"
    lines = [header, "-" * len(header)]
    for key in REPORT_KEYS:
        a = baseline["total"][key]
        line = f"{key:<34} {a:>14,.3f}"
        if scenario is not None:
            b = scenario["total"][key]
            line += f" {b:>14,.3f} {b - a:>+12,.3f}"
        lines.append(line)
    return "\n".join(lines)


def main() -> None:
    """Run the saddle supply simulation."""
    parser = argparse.ArgumentParser(
        description="Saddle Supply Simulation Runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  poetry run python run_simulation.py --no-export               # Fast check
  poetry run python run_simulation.py --config my_plan.json
  poetry run python run_simulation.py --scenarios s.json --format parquet
        """,
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Planning configuration JSON (default: bundled 2027 plan)",
    )
    parser.add_argument(
        "--scenarios",
        type=str,
        default=None,
        help="Scenario modifiers JSON (default: 'scenarios' section of the config)",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default="data/output",
        help="Directory for output artifacts",
    )
    parser.add_argument(
        "--format",
        type=str,
        choices=["csv", "parquet"],
        default="csv",
        help="Output format: csv (default) or parquet",
    )
    parser.add_argument(
        "--no-export",
        action="store_true",
        help="Print the report without writing result tables",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )

    args = parser.parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )

    config = load_simulation_config(args.config)
    scenarios = load_scenarios(args.scenarios) if args.scenarios else None

    print("Starting Simulation Run...")
    start_time = time.time()
    result = simulate(config, scenarios)
    duration = time.time() - start_time
    print(f"\nSimulation completed in {duration:.2f} seconds.")

    if result.scenarios:
        print("\nScenario modifiers:")
        for description in result.scenarios:
            print(f"  - {description}")

    report = format_report(
        result.baseline.metrics,
        result.scenario.metrics if result.scenario else None,
    )
    print("\n" + report + "\n")

    warnings = result.baseline.warnings + (
        result.scenario.warnings if result.scenario else []
    )
    if warnings:
        print(f"{len(warnings)} operational warnings (see log for details)")

    if not args.no_export:
        writer = SimulationWriter(args.output_dir, args.format)
        written = writer.write(result)
        print(f"Wrote {len(written)} tables to {writer.output_dir}")


if __name__ == "__main__":
    main()
