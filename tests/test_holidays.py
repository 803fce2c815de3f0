import datetime as dt

import pytest

from saddle_sim.generators import (
    easter_sunday,
    generate_holidays,
    plant_public_holidays,
    supplier_public_holidays,
)
from saddle_sim.network.core import HolidayKind


@pytest.mark.parametrize(
    "year,expected",
    [
        (2024, dt.date(2024, 3, 31)),
        (2025, dt.date(2025, 4, 20)),
        (2027, dt.date(2027, 3, 28)),
    ],
)
def test_easter_sunday(year, expected):
    assert easter_sunday(year) == expected


def test_plant_holidays_2027():
    dates = {h.date for h in plant_public_holidays(2027)}
    assert len(dates) == 11
    assert dt.date(2027, 3, 26) in dates  # Good Friday
    assert dt.date(2027, 3, 29) in dates  # Easter Monday
    assert dt.date(2027, 5, 6) in dates  # Ascension
    assert dt.date(2027, 5, 17) in dates  # Whit Monday
    assert dt.date(2027, 5, 27) in dates  # Corpus Christi
    assert dt.date(2027, 10, 3) in dates


def test_supplier_holidays_2027():
    holidays = supplier_public_holidays(2027)
    dates = {h.date for h in holidays}
    assert len(holidays) == 24
    assert dt.date(2027, 2, 5) in dates  # Eve
    assert dt.date(2027, 2, 12) in dates
    assert dt.date(2027, 2, 13) not in dates
    festival = [h for h in holidays if h.kind == HolidayKind.FESTIVAL]
    assert len(festival) == 10


def test_generate_holidays_dispatch():
    assert generate_holidays("plant", 2026, "DE") == plant_public_holidays(2026, "DE")
    with pytest.raises(ValueError):
        generate_holidays("warehouse", 2026, "DE")
