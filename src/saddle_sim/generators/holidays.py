"""
Holiday table generation for years without explicitly configured holidays.

The plant calendar follows the statutory holidays of North Rhine-Westphalia
(Germany). The supplier calendar follows the Chinese public holiday pattern;
lunar-calendar festivals come from lookup tables and fall back to typical
dates for unknown years.
"""

import datetime as dt
import logging

from saddle_sim.network.core import Holiday, HolidayKind

logger = logging.getLogger(__name__)

# Chinese New Year's Day
SPRING_FESTIVAL: dict[int, dt.date] = {
    2024: dt.date(2024, 2, 10),
    2025: dt.date(2025, 1, 29),
    2026: dt.date(2026, 2, 17),
    2027: dt.date(2027, 2, 6),
    2028: dt.date(2028, 1, 26),
    2029: dt.date(2029, 2, 13),
    2030: dt.date(2030, 2, 3),
    2031: dt.date(2031, 1, 23),
    2032: dt.date(2032, 2, 11),
    2033: dt.date(2033, 1, 31),
}

DRAGON_BOAT: dict[int, dt.date] = {
    2025: dt.date(2025, 5, 31),
    2026: dt.date(2026, 6, 19),
    2027: dt.date(2027, 6, 9),
    2028: dt.date(2028, 5, 28),
}

MID_AUTUMN: dict[int, dt.date] = {
    2025: dt.date(2025, 10, 6),
    2026: dt.date(2026, 9, 25),
    2027: dt.date(2027, 9, 15),
    2028: dt.date(2028, 10, 3),
}

SPRING_FESTIVAL_DAYS = 7


def easter_sunday(year: int) -> dt.date:
    """
    Calculate Easter Sunday using the anonymous Gregorian algorithm
    (Meeus/Jones/Butcher).
    """
    a = year % 19
    b = year // 100
    c = year % 100
    d = b // 4
    e = b % 4
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i = c // 4
    k = c % 4
    l = (32 + 2 * e + 2 * i - h - k) % 7  # noqa: E741
    m = (a + 11 * h + 22 * l) // 451
    month = (h + l - 7 * m + 114) // 31
    day = ((h + l - 7 * m + 114) % 31) + 1

    return dt.date(year, month, day)


def plant_public_holidays(year: int, country: str = "DE") -> list[Holiday]:
    """
    Statutory holidays for the plant (Germany, NRW).

    Fixed: New Year, Labour Day, German Unity, All Saints, Christmas (2 days).
    Mobile (Easter based): Good Friday, Easter Monday, Ascension,
    Whit Monday, Corpus Christi.
    """
    fixed = [
        (dt.date(year, 1, 1), "New Year's Day"),
        (dt.date(year, 5, 1), "Labour Day"),
        (dt.date(year, 10, 3), "Day of German Unity"),
        (dt.date(year, 11, 1), "All Saints' Day"),
        (dt.date(year, 12, 25), "Christmas Day"),
        (dt.date(year, 12, 26), "Boxing Day"),
    ]

    easter = easter_sunday(year)
    mobile = [
        (easter - dt.timedelta(days=2), "Good Friday"),
        (easter + dt.timedelta(days=1), "Easter Monday"),
        (easter + dt.timedelta(days=39), "Ascension Day"),
        (easter + dt.timedelta(days=50), "Whit Monday"),
        (easter + dt.timedelta(days=60), "Corpus Christi"),
    ]

    holidays = [
        Holiday(date=d, name=name, country=country, kind=HolidayKind.PUBLIC)
        for d, name in fixed + mobile
    ]
    return sorted(holidays, key=lambda h: h.date)


def supplier_public_holidays(year: int, country: str = "CN") -> list[Holiday]:
    """
    Public holidays for the supplier (China).

    The Spring Festival covers the eve plus seven days. Dragon Boat and
    Mid-Autumn are taken from lookup tables; unknown years use 10 June and
    15 September.
    """
    holidays: list[Holiday] = [
        Holiday(dt.date(year, 1, 1), "New Year's Day", country),
    ]

    new_year = SPRING_FESTIVAL.get(year)
    if new_year is None:
        logger.warning(
            f"No Spring Festival date known for {year}; festival days omitted"
        )
    else:
        holidays.append(
            Holiday(
                new_year - dt.timedelta(days=1),
                "Spring Festival Eve",
                country,
                HolidayKind.FESTIVAL,
            )
        )
        for i in range(SPRING_FESTIVAL_DAYS):
            holidays.append(
                Holiday(
                    new_year + dt.timedelta(days=i),
                    f"Spring Festival (day {i + 1})",
                    country,
                    HolidayKind.FESTIVAL,
                )
            )

    holidays.append(Holiday(dt.date(year, 4, 5), "Qingming Festival", country))
    for day in range(1, 6):
        holidays.append(Holiday(dt.date(year, 5, day), "Labour Day", country))
    holidays.append(
        Holiday(
            DRAGON_BOAT.get(year, dt.date(year, 6, 10)),
            "Dragon Boat Festival",
            country,
            HolidayKind.FESTIVAL,
        )
    )
    holidays.append(
        Holiday(
            MID_AUTUMN.get(year, dt.date(year, 9, 15)),
            "Mid-Autumn Festival",
            country,
            HolidayKind.FESTIVAL,
        )
    )
    for day in range(1, 8):
        holidays.append(Holiday(dt.date(year, 10, day), "National Day", country))

    return sorted(holidays, key=lambda h: h.date)


def generate_holidays(role: str, year: int, country: str) -> list[Holiday]:
    """Dispatch to the generator for a calendar role ("plant" or "supplier")."""
    if role == "plant":
        return plant_public_holidays(year, country)
    if role == "supplier":
        return supplier_public_holidays(year, country)
    raise ValueError(f"Unknown calendar role: {role}")
