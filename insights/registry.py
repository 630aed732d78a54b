"""
insights/registry.py

Ordered detector registry consumed by the scan orchestrator.

Evaluation order is fixed and recorded in the scan summary. The sales-rhythm
slot holds one of two variants; ``"weekday"`` is the default.
"""

from __future__ import annotations

from insights.base import BaseDetector
from insights.dead_inventory import DeadInventoryDetector
from insights.inventory_pressure import InventoryPressureDetector
from insights.inventory_velocity import InventoryVelocityRiskDetector
from insights.price_volatility import PriceVolatilityRiskDetector
from insights.product_concentration import ProductConcentrationDetector
from insights.sales_rhythm import WeekdaySalesRhythmDetector, WindowSalesRhythmDetector

SALES_RHYTHM_VARIANTS: dict[str, type[BaseDetector]] = {
    "weekday": WeekdaySalesRhythmDetector,
    "window": WindowSalesRhythmDetector,
}
DEFAULT_SALES_RHYTHM_VARIANT = "weekday"


class UnknownDetectorVariantError(ValueError):
    """Raised when a sales-rhythm variant name is not registered."""


def build_detectors(
    sales_rhythm_variant: str = DEFAULT_SALES_RHYTHM_VARIANT,
) -> tuple[BaseDetector, ...]:
    """Return one instance of every active detector, in evaluation order."""
    variant = SALES_RHYTHM_VARIANTS.get(sales_rhythm_variant.strip().lower())
    if variant is None:
        raise UnknownDetectorVariantError(
            f"Unknown sales rhythm variant {sales_rhythm_variant!r}. "
            f"Valid values: {sorted(SALES_RHYTHM_VARIANTS)}"
        )
    return (
        variant(),
        InventoryPressureDetector(),
        DeadInventoryDetector(),
        InventoryVelocityRiskDetector(),
        PriceVolatilityRiskDetector(),
        ProductConcentrationDetector(),
    )
