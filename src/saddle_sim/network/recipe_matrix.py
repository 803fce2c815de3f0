"""Dense Matrix representation of the Bill of Materials (BOM)."""

from __future__ import annotations

import datetime as dt
from typing import TYPE_CHECKING

import numpy as np

from saddle_sim.simulation.errors import ConfigurationError

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from saddle_sim.product.core import BOMPosition, Component, Variant
    from saddle_sim.simulation.demand import ProductionPlan
    from saddle_sim.simulation.world import World


class RecipeMatrixBuilder:
    """Converts BOM positions into a dense variant x component matrix."""

    def __init__(
        self,
        variants: list[Variant],
        components: list[Component],
        bom: list[BOMPosition],
    ) -> None:
        self.variants = variants
        self.components = components
        self.bom = bom
        self.variant_id_to_idx: dict[str, int] = {
            v.id: i for i, v in enumerate(variants)
        }
        self.component_id_to_idx: dict[str, int] = {
            c.id: j for j, c in enumerate(components)
        }

    def build_matrix(self) -> NDArray[np.int64]:
        """Builds the Recipe Matrix R.

        Rows (i): Variant Index (the bike)
        Cols (j): Component Index (the purchased part)
        Value (R_ij): Units of j required to build 1 unit of i
        """
        matrix = np.zeros(
            (len(self.variants), len(self.components)), dtype=np.int64
        )

        for pos in self.bom:
            i = self.variant_id_to_idx.get(pos.variant_id)
            if i is None:
                raise ConfigurationError(
                    "BOM references unknown variant", variant=pos.variant_id
                )
            j = self.component_id_to_idx.get(pos.component_id)
            if j is None:
                raise ConfigurationError(
                    "BOM references unknown component",
                    variant=pos.variant_id,
                    component=pos.component_id,
                )
            if not isinstance(pos.quantity, int) or pos.quantity <= 0:
                raise ConfigurationError(
                    "BOM quantity must be a positive integer",
                    variant=pos.variant_id,
                    component=pos.component_id,
                    quantity=pos.quantity,
                )
            matrix[i, j] += pos.quantity

        for variant in self.variants:
            if not matrix[self.variant_id_to_idx[variant.id]].any():
                raise ConfigurationError(
                    "Variant has no BOM mapping to any component",
                    variant=variant.id,
                )

        return matrix

    def get_id_mapping(self) -> dict[str, int]:
        """Returns the mapping from Component ID to Matrix Column."""
        return self.component_id_to_idx


class BOMResolver:
    """
    Turns variant production quantities into component gross requirement.
    Stateless given a production plan.
    """

    def __init__(self, world: World) -> None:
        self.variant_ids = world.variant_ids
        self.component_ids = world.component_ids
        builder = RecipeMatrixBuilder(
            [world.variants[v] for v in self.variant_ids],
            [world.components[c] for c in self.component_ids],
            world.bom,
        )
        self.matrix = builder.build_matrix()
        self.component_id_to_idx = builder.get_id_mapping()

    def requirement_matrix(self, plan_matrix: NDArray[np.int64]) -> NDArray[np.int64]:
        """[days x variants] @ [variants x components] -> [days x components]."""
        return plan_matrix @ self.matrix

    def _check_alignment(self, plan: ProductionPlan) -> None:
        if list(plan.variant_ids) != self.variant_ids:
            raise ValueError(
                f"Plan variants {plan.variant_ids} do not match BOM rows "
                f"{self.variant_ids}"
            )

    def requirement(
        self, component_id: str, day: dt.date, plan: ProductionPlan
    ) -> int:
        j = self.component_id_to_idx.get(component_id)
        if j is None:
            raise KeyError(f"Unknown component {component_id}")
        self._check_alignment(plan)
        idx = plan.date_index(day)
        if idx is None:
            return 0
        actual = plan.actual_matrix()[idx]
        return int(actual @ self.matrix[:, j])

    def requirements_by_component(
        self, plan: ProductionPlan
    ) -> dict[str, dict[dt.date, int]]:
        """Per component, the positive daily gross requirement keyed by date."""
        self._check_alignment(plan)
        req = self.requirement_matrix(plan.actual_matrix())
        result: dict[str, dict[dt.date, int]] = {}
        for j, component_id in enumerate(self.component_ids):
            column = req[:, j]
            result[component_id] = {
                plan.dates[i]: int(column[i]) for i in np.flatnonzero(column)
            }
        return result

    def variant_requirements(
        self, plan: ProductionPlan
    ) -> dict[str, dict[str, dict[dt.date, int]]]:
        """
        Per component, per using variant, the daily requirement keyed by date.
        Feeds the fair-share split of scarce material.
        """
        self._check_alignment(plan)
        actual = plan.actual_matrix()
        result: dict[str, dict[str, dict[dt.date, int]]] = {}
        for j, component_id in enumerate(self.component_ids):
            by_variant: dict[str, dict[dt.date, int]] = {}
            for i, variant_id in enumerate(self.variant_ids):
                qty = int(self.matrix[i, j])
                if qty == 0:
                    continue
                column = actual[:, i] * qty
                by_variant[variant_id] = {
                    plan.dates[d]: int(column[d]) for d in np.flatnonzero(column)
                }
            result[component_id] = by_variant
        return result
