import datetime as dt
import enum
from dataclasses import dataclass, field

from saddle_sim.simulation.errors import ConfigurationError


class HolidayKind(enum.Enum):
    PUBLIC = "public"
    FESTIVAL = "festival"
    COMPANY = "company"
    SHUTDOWN = "shutdown"  # Supplier factory closure


@dataclass(frozen=True)
class Holiday:
    date: dt.date
    name: str
    country: str
    kind: HolidayKind = HolidayKind.PUBLIC


@dataclass(frozen=True)
class ShutdownWindow:
    """
    Multi-day supplier closure (e.g. Spring Festival). Both ends inclusive.
    """

    start: dt.date
    end: dt.date
    name: str = "shutdown"

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ConfigurationError(
                "Shutdown window ends before it starts",
                name=self.name,
                start=self.start.isoformat(),
                end=self.end.isoformat(),
            )

    def contains(self, day: dt.date) -> bool:
        return self.start <= day <= self.end

    def overlaps(self, start: dt.date, end: dt.date) -> bool:
        return start <= self.end and self.start <= end

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


@dataclass(frozen=True)
class LeadTimeLegs:
    """
    Decomposed supplier lead time, in leg order from order to availability.
    """

    production_days: int  # Supplier working days
    origin_inland_days: int  # Supplier working days, factory -> port
    ocean_transit_days: int  # Calendar days, ships sail 24/7
    destination_inland_days: int  # Plant working days, port -> plant
    processing_buffer_days: int = 1  # Calendar days between order and production start
    availability_offset_days: int = 1  # Unloading/booking after physical arrival

    def __post_init__(self) -> None:
        for name in (
            "production_days",
            "origin_inland_days",
            "ocean_transit_days",
            "destination_inland_days",
            "processing_buffer_days",
            "availability_offset_days",
        ):
            if getattr(self, name) < 0:
                raise ConfigurationError(
                    "Lead-time leg cannot be negative",
                    leg=name,
                    value=getattr(self, name),
                )

    @property
    def total_days(self) -> int:
        return (
            self.production_days
            + self.origin_inland_days
            + self.ocean_transit_days
            + self.destination_inland_days
            + self.processing_buffer_days
        )


@dataclass
class Supplier:
    """
    The single overseas supplier with its shipping constraints.
    """

    id: str
    name: str
    country: str
    legs: LeadTimeLegs
    lot_size: int
    sailing_weekday: int  # 0=Monday .. 6=Sunday
    shutdown_windows: list[ShutdownWindow] = field(default_factory=list)
    lead_time_days: int | None = None  # Stated total, must match the legs

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Supplier ID cannot be empty")
        if self.lot_size <= 0:
            raise ConfigurationError(
                "Lot size must be positive", supplier=self.id, lot_size=self.lot_size
            )
        if not 0 <= self.sailing_weekday <= 6:
            raise ConfigurationError(
                "Sailing weekday must be 0..6",
                supplier=self.id,
                sailing_weekday=self.sailing_weekday,
            )
        if (
            self.lead_time_days is not None
            and self.lead_time_days != self.legs.total_days
        ):
            raise ConfigurationError(
                "Lead-time legs do not sum to the stated lead time",
                supplier=self.id,
                stated=self.lead_time_days,
                legs_total=self.legs.total_days,
            )

    def shutdown_on(self, day: dt.date) -> ShutdownWindow | None:
        for window in self.shutdown_windows:
            if window.contains(day):
                return window
        return None


class OrderReason(enum.Enum):
    LOT_THRESHOLD = "lot_threshold"
    MANUAL = "manual"
    RESIDUAL = "residual"  # Leftover accumulation flushed at the horizon


class OrderStatus(enum.Enum):
    CREATED = "created"
    SHIPPED = "shipped"
    ARRIVED = "arrived"


@dataclass
class Order:
    id: str
    order_date: dt.date
    need_date: dt.date
    quantities: dict[str, int]  # component_id -> units, frozen at creation
    reason: OrderReason
    status: OrderStatus = OrderStatus.CREATED

    # Timing as planned at creation
    nominal_order_date: dt.date | None = None  # Before shutdown pull-forward
    planned_sailing_date: dt.date | None = None
    expected_available_date: dt.date | None = None
    pulled_forward: bool = False
    at_risk: bool = False
    warnings: list[str] = field(default_factory=list)

    # Filled per run by the port simulator
    shipped_quantity: int = 0
    arrival_date: dt.date | None = None  # Availability of the last unit

    @property
    def total_quantity(self) -> int:
        return sum(self.quantities.values())


class ShipmentStatus(enum.Enum):
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"


@dataclass
class Lot:
    """
    One sailing's cargo for one component. Shipped quantity is a lot multiple.
    """

    id: str
    component_id: str
    sailing_date: dt.date
    arrival_date: dt.date
    available_date: dt.date
    shipped_quantity: int
    carried_remainder: int = 0  # Pooled units left at the port after this sailing
    allocations: dict[str, int] = field(default_factory=dict)  # order_id -> units
    earliest_order_date: dt.date | None = None
    nominal_lead_days: int | None = None
    status: ShipmentStatus = ShipmentStatus.IN_TRANSIT
    warnings: list[str] = field(default_factory=list)
