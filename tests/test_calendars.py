import datetime as dt
import logging

import pytest

from saddle_sim.network.core import Holiday
from saddle_sim.simulation.calendars import CalendarService, WorkingDayCalendar
from saddle_sim.simulation.errors import ConfigurationError

NEW_YEAR = dt.date(2027, 1, 1)  # Friday


def test_weekend_only_calendar():
    cal = WorkingDayCalendar("DE", covered_years=[2027])
    assert cal.is_working_day(NEW_YEAR)
    assert cal.is_weekend(dt.date(2027, 1, 2))
    assert not cal.is_working_day(dt.date(2027, 1, 3))


def test_holiday_lookup():
    cal = WorkingDayCalendar("DE", [Holiday(NEW_YEAR, "New Year's Day", "DE")])
    day = cal.day(NEW_YEAR)
    assert day.is_holiday
    assert not day.is_working_day
    assert cal.holiday_name(NEW_YEAR) == "New Year's Day"
    assert cal.holiday_name(dt.date(2027, 1, 4)) is None


def test_shift_by_working_days():
    cal = WorkingDayCalendar("DE", covered_years=[2027])
    assert cal.shift_by_working_days(NEW_YEAR, 1) == dt.date(2027, 1, 4)
    assert cal.shift_by_working_days(dt.date(2027, 1, 4), -1) == NEW_YEAR
    assert cal.shift_by_working_days(dt.date(2027, 1, 4), 5) == dt.date(2027, 1, 11)
    # Zero keeps the date even on a weekend
    assert cal.shift_by_working_days(dt.date(2027, 1, 2), 0) == dt.date(2027, 1, 2)


def test_shift_skips_holidays():
    cal = WorkingDayCalendar("DE", [Holiday(dt.date(2027, 1, 4), "Closed", "DE")])
    assert cal.shift_by_working_days(NEW_YEAR, 1) == dt.date(2027, 1, 5)


def test_next_and_previous_working_day():
    cal = WorkingDayCalendar("DE", covered_years=[2027])
    saturday = dt.date(2027, 1, 2)
    assert cal.next_working_day(saturday) == dt.date(2027, 1, 4)
    assert cal.previous_working_day(saturday) == NEW_YEAR
    assert cal.next_working_day(NEW_YEAR) == NEW_YEAR


def test_working_days_in_month():
    cal = WorkingDayCalendar("DE", covered_years=[2027])
    assert cal.working_days_in_month(2027, 1) == 21
    assert cal.working_days_in_month(2027, 2) == 20
    assert len(cal.working_days_between(dt.date(2027, 1, 1), dt.date(2027, 12, 31))) == 261


def test_calendars_are_independent():
    plant = WorkingDayCalendar("DE", [Holiday(NEW_YEAR, "Neujahr", "DE")])
    supplier = WorkingDayCalendar("CN", [Holiday(dt.date(2027, 1, 4), "Closed", "CN")])
    service = CalendarService(plant, supplier)

    assert not service.is_working_day(NEW_YEAR, "plant")
    assert service.is_working_day(NEW_YEAR, "CN")
    assert service.is_working_day(dt.date(2027, 1, 4), "DE")
    assert not service.is_working_day(dt.date(2027, 1, 4), "supplier")
    assert service.shift_by_working_days(dt.date(2027, 1, 1), "CN", 1) == dt.date(2027, 1, 5)


def test_unknown_country():
    service = CalendarService(WorkingDayCalendar("DE"), WorkingDayCalendar("CN"))
    with pytest.raises(ConfigurationError):
        service.calendar("US")


def test_uncovered_year_warns_once(caplog):
    cal = WorkingDayCalendar("DE", [Holiday(NEW_YEAR, "Neujahr", "DE")])
    with caplog.at_level(logging.WARNING):
        assert cal.is_working_day(dt.date(2030, 1, 2))  # Wednesday
        assert cal.is_working_day(dt.date(2030, 1, 3))
    warnings = [r for r in caplog.records if "2030" in r.getMessage()]
    assert len(warnings) == 1
