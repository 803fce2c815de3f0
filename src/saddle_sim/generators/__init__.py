"""Generators module for deriving master data not stated in the configuration."""

from saddle_sim.generators.holidays import (
    easter_sunday,
    generate_holidays,
    plant_public_holidays,
    supplier_public_holidays,
)

__all__ = [
    "easter_sunday",
    "generate_holidays",
    "plant_public_holidays",
    "supplier_public_holidays",
]
