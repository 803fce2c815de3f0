from saddle_sim.network.core import Supplier
from saddle_sim.product.core import BOMPosition, Component, Variant
from saddle_sim.simulation.calendars import CalendarService


class World:
    """
    The container for the static master data of one planning run.
    """

    def __init__(self, year: int, annual_volume: int, seasonality: list[float]):
        self.year = year
        self.annual_volume = annual_volume
        self.seasonality = seasonality  # 12 monthly fractions summing to 1

        self.variants: dict[str, Variant] = {}
        self.components: dict[str, Component] = {}
        self.bom: list[BOMPosition] = []
        self.supplier: Supplier | None = None
        self.calendars: CalendarService | None = None

    def add_variant(self, variant: Variant) -> None:
        if variant.id in self.variants:
            raise ValueError(f"Variant {variant.id} already exists")
        self.variants[variant.id] = variant

    def add_component(self, component: Component) -> None:
        if component.id in self.components:
            raise ValueError(f"Component {component.id} already exists")
        self.components[component.id] = component

    def add_bom_position(self, position: BOMPosition) -> None:
        for existing in self.bom:
            if (existing.variant_id, existing.component_id) == (
                position.variant_id,
                position.component_id,
            ):
                raise ValueError(
                    f"BOM position {position.variant_id}->{position.component_id} "
                    "already exists"
                )
        self.bom.append(position)

    def set_supplier(self, supplier: Supplier) -> None:
        if self.supplier is not None:
            raise ValueError(
                f"Supplier {self.supplier.id} already set; only one supplier is supported"
            )
        self.supplier = supplier

    def get_variant(self, variant_id: str) -> Variant | None:
        return self.variants.get(variant_id)

    def get_component(self, component_id: str) -> Component | None:
        return self.components.get(component_id)

    def components_of(self, variant_id: str) -> list[BOMPosition]:
        return [p for p in self.bom if p.variant_id == variant_id]

    def variants_using(self, component_id: str) -> list[BOMPosition]:
        return [p for p in self.bom if p.component_id == component_id]

    @property
    def variant_ids(self) -> list[str]:
        return sorted(self.variants)

    @property
    def component_ids(self) -> list[str]:
        return sorted(self.components)
