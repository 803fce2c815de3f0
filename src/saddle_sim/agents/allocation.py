from collections.abc import Mapping

import numpy as np


class FairShareAllocator:
    """
    Splits scarce component stock across the variants that need it.
    Implements 'Fair Share' logic when requirement > available material:
    every variant receives the same fill ratio, made integral with
    largest-remainder rounding (ties go to the lower variant id).
    """

    def fill_ratio(self, demand_total: int, available: int) -> float:
        if demand_total <= 0:
            return 1.0
        return min(available / demand_total, 1.0)

    def allocate(self, available: int, demand: Mapping[str, int]) -> dict[str, int]:
        """Integer allocation per variant; sums to min(available, total demand)."""
        ids = sorted(demand)
        demand_vector = np.array([max(demand[v], 0) for v in ids], dtype=np.int64)
        total = int(demand_vector.sum())

        if total <= available:
            return {v: int(q) for v, q in zip(ids, demand_vector, strict=True)}
        if available <= 0:
            return {v: 0 for v in ids}

        raw = demand_vector * self.fill_ratio(total, available)
        allocation = np.floor(raw).astype(np.int64)
        short = available - int(allocation.sum())
        remainders = raw - allocation
        by_remainder = sorted(range(len(ids)), key=lambda i: (-remainders[i], ids[i]))
        for i in by_remainder[:short]:
            allocation[i] += 1

        return {v: int(q) for v, q in zip(ids, allocation, strict=True)}
