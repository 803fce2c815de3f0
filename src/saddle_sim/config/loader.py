import json
from pathlib import Path
from typing import Any


def load_simulation_config(config_path: str | None = None) -> dict[str, Any]:
    """
    Loads the planning configuration (master data and tunables).
    If no path is provided, looks for simulation_config.json in the config directory.
    """
    if config_path is None:
        # Default to the file next to this script
        final_path = Path(__file__).parent / "simulation_config.json"
    else:
        final_path = Path(config_path)

    with open(final_path) as f:
        data = json.load(f)
        if not isinstance(data, dict):
            raise TypeError(f"Expected dict from {final_path}, got {type(data)}")
        return data


def load_scenarios(scenario_path: str) -> list[dict[str, Any]]:
    """
    Loads scenario modifier definitions, either a bare JSON list or an
    object with a "scenarios" list.
    """
    final_path = Path(scenario_path)
    with open(final_path) as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("scenarios", [])
    if not isinstance(data, list):
        raise TypeError(f"Expected list from {final_path}, got {type(data)}")
    return data
