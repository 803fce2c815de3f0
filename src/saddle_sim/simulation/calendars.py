"""
Working-day calendars for the plant and the supplier.

The two calendars are independent: a date may be a working day at the plant
and a holiday at the supplier, or the other way round. Years without loaded
holidays fall back to weekend-only logic.
"""

import calendar
import datetime as dt
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from saddle_sim.network.core import Holiday
from saddle_sim.simulation.errors import ConfigurationError

logger = logging.getLogger(__name__)

SATURDAY = 5
ONE_DAY = dt.timedelta(days=1)


@dataclass(frozen=True)
class CalendarDay:
    date: dt.date
    is_weekend: bool
    holiday_name: str | None = None

    @property
    def is_holiday(self) -> bool:
        return self.holiday_name is not None

    @property
    def is_working_day(self) -> bool:
        return not (self.is_weekend or self.is_holiday)


class WorkingDayCalendar:
    """Holiday-aware working-day arithmetic for one country."""

    def __init__(
        self,
        country: str,
        holidays: Iterable[Holiday] = (),
        covered_years: Iterable[int] | None = None,
    ) -> None:
        self.country = country
        self.holidays: dict[dt.date, Holiday] = {}
        for h in holidays:
            # First entry wins; a shutdown day may also be a public holiday
            self.holidays.setdefault(h.date, h)

        if covered_years is None:
            covered_years = {d.year for d in self.holidays}
        self.covered_years = set(covered_years)
        self._warned_years: set[int] = set()

    def _check_coverage(self, day: dt.date) -> None:
        if day.year in self.covered_years or day.year in self._warned_years:
            return
        self._warned_years.add(day.year)
        logger.warning(
            f"No holidays loaded for {self.country} {day.year}; "
            "using weekends only"
        )

    def day(self, day: dt.date) -> CalendarDay:
        holiday = self.holidays.get(day)
        return CalendarDay(
            date=day,
            is_weekend=self.is_weekend(day),
            holiday_name=holiday.name if holiday else None,
        )

    def is_weekend(self, day: dt.date) -> bool:
        return day.weekday() >= SATURDAY

    def is_holiday(self, day: dt.date) -> bool:
        self._check_coverage(day)
        return day in self.holidays

    def holiday_name(self, day: dt.date) -> str | None:
        holiday = self.holidays.get(day)
        return holiday.name if holiday else None

    def is_working_day(self, day: dt.date) -> bool:
        return not self.is_weekend(day) and not self.is_holiday(day)

    def shift_by_working_days(self, day: dt.date, n: int) -> dt.date:
        """
        Move to the n-th working day strictly after (n > 0) or before (n < 0)
        the given date. n == 0 returns the date unchanged.
        """
        step = ONE_DAY if n > 0 else -ONE_DAY
        remaining = abs(n)
        current = day
        while remaining > 0:
            current += step
            if self.is_working_day(current):
                remaining -= 1
        return current

    def next_working_day(self, day: dt.date) -> dt.date:
        """First working day at or after the date."""
        current = day
        while not self.is_working_day(current):
            current += ONE_DAY
        return current

    def previous_working_day(self, day: dt.date) -> dt.date:
        """Last working day at or before the date."""
        current = day
        while not self.is_working_day(current):
            current -= ONE_DAY
        return current

    def working_days_between(self, start: dt.date, end: dt.date) -> list[dt.date]:
        """All working days in [start, end]."""
        days = []
        current = start
        while current <= end:
            if self.is_working_day(current):
                days.append(current)
            current += ONE_DAY
        return days

    def working_days_in_month(self, year: int, month: int) -> int:
        last = calendar.monthrange(year, month)[1]
        return len(
            self.working_days_between(
                dt.date(year, month, 1), dt.date(year, month, last)
            )
        )


class CalendarService:
    """
    Resolves calendars by country code or by role ("plant" / "supplier").
    """

    def __init__(self, plant: WorkingDayCalendar, supplier: WorkingDayCalendar):
        self.plant = plant
        self.supplier = supplier
        self._by_key: dict[str, WorkingDayCalendar] = {
            "plant": plant,
            "supplier": supplier,
        }
        # Role keys take precedence if both sides share a country code
        self._by_key.setdefault(plant.country, plant)
        self._by_key.setdefault(supplier.country, supplier)

    def calendar(self, country: str) -> WorkingDayCalendar:
        cal = self._by_key.get(country)
        if cal is None:
            raise ConfigurationError("Unknown calendar country", country=country)
        return cal

    def is_working_day(self, day: dt.date, country: str) -> bool:
        return self.calendar(country).is_working_day(day)

    def shift_by_working_days(self, day: dt.date, country: str, n: int) -> dt.date:
        return self.calendar(country).shift_by_working_days(day, n)
