"""Order totals: base price, billable extras and nutrition."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Mapping, Optional, Sequence

from ..catalog.models import BowlTemplate, Ingredient
from ..utils.logging import get_logger
from .allocation import Allocation, allocate_selection

logger = get_logger(__name__)

ZERO = Decimal("0")
WHOLE = Decimal("1")
TENTH = Decimal("0.1")


@dataclass(frozen=True)
class LineItem:
    ingredient: Ingredient
    quantity: int
    extra_quantity: int

    @property
    def extra_cost(self) -> Decimal:
        return self.ingredient.extra_price * self.extra_quantity


@dataclass(frozen=True)
class Totals:
    base_price: Decimal = ZERO
    extra_price: Decimal = ZERO
    total_price: Decimal = ZERO
    calories: Decimal = ZERO
    protein: Decimal = ZERO
    carbs: Decimal = ZERO
    fat: Decimal = ZERO
    lines: tuple = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, str]:
        return {
            "basePrice": str(self.base_price),
            "extraPrice": str(self.extra_price),
            "totalPrice": str(self.total_price),
            "calories": str(self.calories),
            "protein": str(self.protein),
            "carbs": str(self.carbs),
            "fat": str(self.fat),
        }


def compute_totals(
    template: Optional[BowlTemplate],
    ingredients: Sequence[Ingredient],
    selected_units: Mapping[str, int],
) -> Totals:
    """Price a selection.

    ``total_price = base_price + sum(extra_quantity * extra_price)``. Nutrition
    sums every selected unit, free or extra; calories are rounded to a whole
    number and grams to one decimal place.
    """
    allocations: Dict[str, Allocation] = allocate_selection(template, ingredients, selected_units)
    by_id = {ingredient.id: ingredient for ingredient in ingredients}

    calories = protein = carbs = fat = extra_price = ZERO
    lines = []
    for ingredient_id, quantity in selected_units.items():
        ingredient = by_id.get(ingredient_id)
        if ingredient is None or quantity <= 0:
            logger.debug(f"Ignoring selection of unknown ingredient {ingredient_id}")
            continue
        allocation = allocations.get(ingredient_id)
        extra = allocation.extra if allocation else 0

        nutrition = ingredient.nutrition
        calories += nutrition.calories * quantity
        protein += nutrition.protein * quantity
        carbs += nutrition.carbs * quantity
        fat += nutrition.fat * quantity
        extra_price += ingredient.extra_price * extra
        lines.append(LineItem(ingredient=ingredient, quantity=quantity, extra_quantity=extra))

    base_price = template.base_price if template else ZERO
    return Totals(
        base_price=base_price,
        extra_price=extra_price,
        total_price=base_price + extra_price,
        calories=calories.quantize(WHOLE, rounding=ROUND_HALF_UP),
        protein=protein.quantize(TENTH, rounding=ROUND_HALF_UP),
        carbs=carbs.quantize(TENTH, rounding=ROUND_HALF_UP),
        fat=fat.quantize(TENTH, rounding=ROUND_HALF_UP),
        lines=tuple(lines),
    )
