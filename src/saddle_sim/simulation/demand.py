"""
Seasonal demand disaggregation and production planning.

Annual variant targets are split into monthly targets by seasonal share and
then into daily integers with error-diffusion rounding. A final
reconciliation pass removes the residual drift so that every variant's
yearly plan hits its target exactly.
"""

import calendar
import datetime as dt
import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field, replace

import numpy as np

from saddle_sim.simulation.calendars import WorkingDayCalendar
from saddle_sim.simulation.errors import ConfigurationError, InvariantViolation
from saddle_sim.simulation.world import World

logger = logging.getLogger(__name__)

MONTHS = 12
SHARE_TOLERANCE = 1e-6
ERROR_THRESHOLD = 0.5


def round_half_up(value: float) -> int:
    """Commercial rounding; Python's round() would round half to even."""
    return int(math.floor(value + 0.5))


@dataclass
class ProductionDayEntry:
    variant_id: str
    date: dt.date
    is_working_day: bool
    target_decimal: float = 0.0
    planned: int = 0
    running_error: float = 0.0  # Monthly error after this day's rounding
    actual: int = 0


class SeasonalDisaggregator:
    """Splits an annual unit target into daily integer targets."""

    def __init__(self, seasonality: list[float], work_calendar: WorkingDayCalendar):
        if len(seasonality) != MONTHS:
            raise ConfigurationError(
                "Seasonality needs one share per month", months=len(seasonality)
            )
        if any(s < 0 for s in seasonality):
            raise ConfigurationError("Seasonal shares cannot be negative")
        if abs(sum(seasonality) - 1.0) > SHARE_TOLERANCE:
            raise ConfigurationError(
                "Seasonal shares must sum to 100%", total=sum(seasonality)
            )
        self.seasonality = seasonality
        self.calendar = work_calendar

    def monthly_target(self, annual_target: int, month: int) -> float:
        return annual_target * self.seasonality[month - 1]

    def disaggregate(
        self, variant_id: str, annual_target: int, year: int
    ) -> list[ProductionDayEntry]:
        """
        Daily entries for every calendar day of the year.

        The running error is reset at each month start. On each working day
        the fractional rounding remainder is added to it; once it reaches
        +/-0.5 the day is rounded the other way and the error corrected by
        one unit, which keeps |error| <= 0.5.
        """
        entries: list[ProductionDayEntry] = []

        for month in range(1, MONTHS + 1):
            target = self.monthly_target(annual_target, month)
            working_days = self.calendar.working_days_in_month(year, month)
            if working_days == 0 and target > 0:
                raise ConfigurationError(
                    "Month has a production target but no working days",
                    variant=variant_id,
                    year=year,
                    month=month,
                )
            decimal = target / working_days if working_days else 0.0

            error = 0.0
            for day_no in range(1, calendar.monthrange(year, month)[1] + 1):
                day = dt.date(year, month, day_no)
                if not self.calendar.is_working_day(day):
                    entries.append(ProductionDayEntry(variant_id, day, False))
                    continue

                rounded = round_half_up(decimal)
                prospective = error + (decimal - rounded)
                if prospective >= ERROR_THRESHOLD:
                    planned = math.ceil(decimal)
                elif prospective <= -ERROR_THRESHOLD:
                    planned = math.floor(decimal)
                else:
                    planned = rounded
                error += decimal - planned

                entries.append(
                    ProductionDayEntry(
                        variant_id=variant_id,
                        date=day,
                        is_working_day=True,
                        target_decimal=decimal,
                        planned=planned,
                        running_error=error,
                        actual=planned,
                    )
                )

        return entries


@dataclass
class ProductionPlan:
    """Daily production per variant for one planning year."""

    year: int
    dates: list[dt.date]
    variant_ids: list[str]
    entries: dict[str, list[ProductionDayEntry]]
    targets: dict[str, int]
    _date_index: dict[dt.date, int] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._date_index = {d: i for i, d in enumerate(self.dates)}

    def date_index(self, day: dt.date) -> int | None:
        return self._date_index.get(day)

    def planned_matrix(self) -> np.ndarray:
        """Shape [days, variants]."""
        return np.array(
            [[e.planned for e in self.entries[v]] for v in self.variant_ids],
            dtype=np.int64,
        ).T.reshape(len(self.dates), len(self.variant_ids))

    def actual_matrix(self) -> np.ndarray:
        """Shape [days, variants]."""
        return np.array(
            [[e.actual for e in self.entries[v]] for v in self.variant_ids],
            dtype=np.int64,
        ).T.reshape(len(self.dates), len(self.variant_ids))

    def total_planned(self, variant_id: str) -> int:
        return sum(e.planned for e in self.entries[variant_id])

    def total_actual(self, variant_id: str) -> int:
        return sum(e.actual for e in self.entries[variant_id])

    def with_planned(
        self, planned: Mapping[str, Mapping[dt.date, int]]
    ) -> "ProductionPlan":
        """Copy with replaced planned (and actual) quantities for the given variants."""
        entries = {}
        for v in self.variant_ids:
            if v not in planned:
                entries[v] = list(self.entries[v])
                continue
            by_date = planned[v]
            entries[v] = [
                replace(
                    e,
                    planned=by_date.get(e.date, e.planned),
                    actual=by_date.get(e.date, e.planned),
                )
                for e in self.entries[v]
            ]
        return ProductionPlan(
            self.year, list(self.dates), list(self.variant_ids), entries, dict(self.targets)
        )

    def with_actuals(
        self, actuals: Mapping[str, Mapping[dt.date, int]]
    ) -> "ProductionPlan":
        """Copy with realised quantities; days without an entry realised nothing."""
        entries = {
            v: [
                replace(e, actual=actuals.get(v, {}).get(e.date, 0))
                for e in self.entries[v]
            ]
            for v in self.variant_ids
        }
        return ProductionPlan(
            self.year, list(self.dates), list(self.variant_ids), entries, dict(self.targets)
        )


class ProductionPlanner:
    """
    Builds the yearly production plan for all variants of the world.
    Variants are independent of each other.
    """

    def __init__(self, world: World) -> None:
        if world.calendars is None:
            raise ConfigurationError("World has no calendars")
        self.world = world
        self.calendar = world.calendars.plant
        self.disaggregator = SeasonalDisaggregator(world.seasonality, self.calendar)

    def variant_targets(self) -> dict[str, int]:
        """
        Annual unit target per variant (volume x share), made integral with
        largest-remainder rounding so the targets add up to the annual volume.
        """
        raw = {
            v.id: self.world.annual_volume * v.share
            for v in (self.world.variants[vid] for vid in self.world.variant_ids)
        }
        targets = {vid: math.floor(x) for vid, x in raw.items()}
        shortfall = self.world.annual_volume - sum(targets.values())
        by_fraction = sorted(raw, key=lambda vid: (-(raw[vid] - targets[vid]), vid))
        for vid in by_fraction[: max(shortfall, 0)]:
            targets[vid] += 1
        return targets

    def plan_variant(self, variant_id: str, target: int) -> list[ProductionDayEntry]:
        entries = self.disaggregator.disaggregate(variant_id, target, self.world.year)
        adjustments = self.reconcile(entries, target)
        logger.debug(
            f"Planned {variant_id}: target={target}, reconciliation steps={adjustments}"
        )
        return entries

    def reconcile(self, entries: list[ProductionDayEntry], target: int) -> int:
        """
        Removes the residual rounding drift one unit at a time, starting with
        the working days that carry the largest planned quantity (ties go to
        the earliest date). Returns the number of single-unit adjustments.
        """
        diff = sum(e.planned for e in entries) - target
        if diff == 0:
            return 0

        working = sorted(
            (e for e in entries if e.is_working_day),
            key=lambda e: (-e.planned, e.date),
        )
        step = -1 if diff > 0 else 1
        remaining = abs(diff)
        while remaining > 0:
            progressed = False
            for entry in working:
                if remaining == 0:
                    break
                if step < 0 and entry.planned == 0:
                    continue
                entry.planned += step
                entry.actual = entry.planned
                remaining -= 1
                progressed = True
            if not progressed:
                break

        total = sum(e.planned for e in entries)
        if total != target:
            variant_id = entries[0].variant_id if entries else None
            raise InvariantViolation(
                "Planned total differs from annual target after reconciliation",
                variant=variant_id,
                planned=total,
                target=target,
            )
        return abs(diff)

    def build_plan(self) -> ProductionPlan:
        targets = self.variant_targets()
        entries = {
            vid: self.plan_variant(vid, targets[vid]) for vid in self.world.variant_ids
        }
        first = next(iter(entries.values()), [])
        dates = [e.date for e in first]
        if not dates:
            start = dt.date(self.world.year, 1, 1)
            days = 366 if calendar.isleap(self.world.year) else 365
            dates = [start + dt.timedelta(days=i) for i in range(days)]

        logger.info(
            f"Production plan {self.world.year}: {len(entries)} variants, "
            f"{sum(targets.values())} units"
        )
        return ProductionPlan(
            year=self.world.year,
            dates=dates,
            variant_ids=list(self.world.variant_ids),
            entries=entries,
            targets=targets,
        )
