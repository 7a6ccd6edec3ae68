"""Storefront bowl calculator: overflow allocation, pricing and selection state."""

from .allocation import Allocation, allocate, allocate_selection, extra_quantity
from .pricing import Totals, compute_totals
from .state import (
    BowlCalculator,
    CalculatorData,
    SelectionState,
    add_unit,
    load_calculator_data,
    remove_unit,
    select_template,
    totals_for,
)

__all__ = [
    "Allocation",
    "BowlCalculator",
    "CalculatorData",
    "SelectionState",
    "Totals",
    "add_unit",
    "allocate",
    "allocate_selection",
    "compute_totals",
    "extra_quantity",
    "load_calculator_data",
    "remove_unit",
    "select_template",
    "totals_for",
]
