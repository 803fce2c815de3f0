"""
Lead-time leg arithmetic between the supplier and the plant calendars.

Backward: need date -> order date (for ordering).
Forward: order date -> sailing -> arrival -> availability (for shipping).
Supplier-side legs count supplier working days, the destination truck leg
counts plant working days, and the ocean leg counts calendar days.
"""

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any

from saddle_sim.network.core import ShutdownWindow, Supplier
from saddle_sim.simulation.calendars import CalendarService

logger = logging.getLogger(__name__)

DAYS_PER_WEEK = 7


@dataclass(frozen=True)
class OrderTiming:
    need_date: dt.date
    order_date: dt.date
    nominal_order_date: dt.date  # Before shutdown pull-forward and working-day roll
    planned_sailing_date: dt.date
    pulled_forward: bool = False
    shutdown: ShutdownWindow | None = None


class LeadTimeCalculator:
    """Back- and forward-calculates supplier lead times."""

    def __init__(
        self,
        supplier: Supplier,
        calendars: CalendarService,
        config: dict[str, Any] | None = None,
    ) -> None:
        self.supplier = supplier
        self.legs = supplier.legs
        self.plant = calendars.plant
        self.supplier_calendar = calendars.supplier

        params = (config or {}).get("simulation_parameters", {})
        ordering = params.get("ordering", {})
        self.risk_horizon_days = int(
            ordering.get("shutdown_risk_horizon_days", self.legs.total_days)
        )

    def previous_sailing(self, day: dt.date) -> dt.date:
        """Sailing weekday at or before the date."""
        back = (day.weekday() - self.supplier.sailing_weekday) % DAYS_PER_WEEK
        return day - dt.timedelta(days=back)

    def next_sailing(self, day: dt.date) -> dt.date:
        """Sailing weekday at or after the date."""
        ahead = (self.supplier.sailing_weekday - day.weekday()) % DAYS_PER_WEEK
        return day + dt.timedelta(days=ahead)

    def order_date_for(self, need_date: dt.date) -> OrderTiming:
        """
        Latest order date that makes material available on the need date.

        Legs are subtracted in reverse order of travel: availability offset
        (then back to a plant working day), destination truck (plant working
        days), ocean (calendar days, then back to the sailing weekday), origin
        truck and production (supplier working days, shutdown days excluded),
        processing buffer. A nominal date that still lands inside a shutdown
        window is pulled to the last working day before the shutdown begins.
        """
        latest_arrival = self.plant.previous_working_day(
            need_date - dt.timedelta(days=self.legs.availability_offset_days)
        )
        at_port = self.plant.shift_by_working_days(
            latest_arrival, -self.legs.destination_inland_days
        )
        sailing = self.previous_sailing(
            at_port - dt.timedelta(days=self.legs.ocean_transit_days)
        )
        at_origin_port = self.supplier_calendar.shift_by_working_days(
            sailing, -self.legs.origin_inland_days
        )
        production_start = self.supplier_calendar.shift_by_working_days(
            at_origin_port, -self.legs.production_days
        )
        nominal = production_start - dt.timedelta(days=self.legs.processing_buffer_days)
        rolled = self.supplier_calendar.previous_working_day(nominal)

        shutdown = self.supplier.shutdown_on(nominal)
        if shutdown is not None:
            order_date = self.supplier_calendar.previous_working_day(
                shutdown.start - dt.timedelta(days=1)
            )
            logger.warning(
                f"Order for need date {need_date} pulled from {nominal} to "
                f"{order_date} ahead of {shutdown.name}"
            )
            return OrderTiming(
                need_date=need_date,
                order_date=order_date,
                nominal_order_date=nominal,
                planned_sailing_date=sailing,
                pulled_forward=True,
                shutdown=shutdown,
            )

        return OrderTiming(
            need_date=need_date,
            order_date=rolled,
            nominal_order_date=nominal,
            planned_sailing_date=sailing,
        )

    def production_done(self, order_date: dt.date) -> dt.date:
        start = self.supplier_calendar.next_working_day(
            order_date + dt.timedelta(days=self.legs.processing_buffer_days)
        )
        return self.supplier_calendar.shift_by_working_days(
            start, self.legs.production_days
        )

    def sailing_date_for(self, order_date: dt.date) -> dt.date:
        """
        First sailing whose origin truck leg can start after production is
        done. Mirrors order_date_for, so an order placed on its computed date
        catches its planned sailing.
        """
        done = self.production_done(order_date)
        sailing = self.next_sailing(done)
        while (
            self.supplier_calendar.shift_by_working_days(
                sailing, -self.legs.origin_inland_days
            )
            < done
        ):
            sailing += dt.timedelta(days=DAYS_PER_WEEK)
        return sailing

    def arrival_date(self, sailing_date: dt.date) -> dt.date:
        """Physical arrival at the plant."""
        at_port = sailing_date + dt.timedelta(days=self.legs.ocean_transit_days)
        return self.plant.shift_by_working_days(
            at_port, self.legs.destination_inland_days
        )

    def available_date(self, sailing_date: dt.date) -> dt.date:
        """First day the material can be consumed by production."""
        return self.arrival_date(sailing_date) + dt.timedelta(
            days=self.legs.availability_offset_days
        )

    def expected_available_date(self, order_date: dt.date) -> dt.date:
        return self.available_date(self.sailing_date_for(order_date))

    def is_at_risk(
        self, order_date: dt.date, sailing_date: dt.date, need_date: dt.date
    ) -> bool:
        """
        An order is at risk when its supplier-side window (order to sailing)
        touches a shutdown, or its need date falls shortly after one ends.
        """
        for window in self.supplier.shutdown_windows:
            if window.overlaps(order_date, sailing_date):
                return True
            horizon_end = window.end + dt.timedelta(days=self.risk_horizon_days)
            if window.end < need_date <= horizon_end:
                return True
        return False
