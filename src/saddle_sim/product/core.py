import enum
from dataclasses import dataclass


class ComponentCategory(enum.Enum):
    SADDLE = "saddle"  # The only family sourced overseas today
    FORK = "fork"
    FRAME = "frame"


@dataclass
class Variant:
    """
    A sellable end-product SKU (one bike model).
    """

    id: str
    name: str
    share: float  # Fraction of the annual volume, 0..1

    # Financials
    unit_cost: float = 0.0
    price: float = 0.0

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Variant ID cannot be empty")
        if not 0.0 <= self.share <= 1.0:
            raise ValueError(f"Variant {self.id} share {self.share} outside 0..1")


@dataclass
class Component:
    """
    A purchased part, sourced from exactly one supplier.
    """

    id: str
    name: str
    category: ComponentCategory
    supplier_id: str

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Component ID cannot be empty")


@dataclass(frozen=True)
class BOMPosition:
    """
    One line of the bill of materials: units of a component per unit of variant.
    """

    variant_id: str
    component_id: str
    quantity: int = 1
