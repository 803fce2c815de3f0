"""Exception taxonomy for the replenishment engine.

Configuration errors and invariant violations abort a run. Expected
operational events (shortages, late lots, shutdown pull-forwards) are
recorded on the affected records instead of being raised.
"""

from typing import Any


class SimulationError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str, **context: Any) -> None:
        self.context = context
        if context:
            details = ", ".join(f"{k}={v!r}" for k, v in sorted(context.items()))
            message = f"{message} ({details})"
        super().__init__(message)


class ConfigurationError(SimulationError, ValueError):
    """Invalid master data or parameters. Fatal, reported before simulating."""


class InvariantViolation(SimulationError, RuntimeError):
    """A conservation law or post-condition failed. Indicates a logic defect."""
