"""Split selected units into free (within quota) and extra (billable) units."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..catalog.models import BowlTemplate, Ingredient


@dataclass(frozen=True)
class Allocation:
    ingredient_id: str
    quantity: int
    free: int
    extra: int


def allocate(limit: int, units: Iterable[Tuple[str, int]]) -> Dict[str, Allocation]:
    """Allocate a category's quota over its selected units.

    ``units`` lists ``(ingredient_id, quantity)`` in canonical order, i.e. the
    category's ingredient list order, not the order the customer clicked.
    Each ingredient contributes a run of ``quantity`` consecutive units; the
    unit at 1-indexed position ``p`` is free when ``p <= limit``.

    >>> result = allocate(2, [("X", 3), ("Y", 1)])
    >>> result["X"].extra, result["Y"].extra
    (1, 1)
    """
    limit = max(int(limit), 0)
    position = 0
    quantities: Dict[str, int] = {}
    free_units: Dict[str, int] = {}
    for ingredient_id, quantity in units:
        if quantity <= 0:
            continue
        free = max(0, min(quantity, limit - position))
        position += quantity
        quantities[ingredient_id] = quantities.get(ingredient_id, 0) + quantity
        free_units[ingredient_id] = free_units.get(ingredient_id, 0) + free
    return {
        ingredient_id: Allocation(
            ingredient_id=ingredient_id,
            quantity=quantity,
            free=free_units[ingredient_id],
            extra=quantity - free_units[ingredient_id],
        )
        for ingredient_id, quantity in quantities.items()
    }


def extra_quantity(limit: int, units: Sequence[Tuple[str, int]], ingredient_id: str) -> int:
    """Number of ``ingredient_id`` units falling outside the free quota."""
    allocation = allocate(limit, units).get(ingredient_id)
    return allocation.extra if allocation else 0


def canonical_units(
    ingredients: Iterable[Ingredient], selected_units: Mapping[str, int], category: str
) -> List[Tuple[str, int]]:
    """Selected units of one category, in catalog enumeration order."""
    return [
        (ingredient.id, selected_units.get(ingredient.id, 0))
        for ingredient in ingredients
        if ingredient.category == category and selected_units.get(ingredient.id, 0) > 0
    ]


def allocate_selection(
    template: Optional[BowlTemplate],
    ingredients: Sequence[Ingredient],
    selected_units: Mapping[str, int],
) -> Dict[str, Allocation]:
    """Allocate every selected category against the template's limits.

    Categories without a limit on the template (empty or removed categories)
    have a quota of zero, so all of their units are extra.
    """
    allocations: Dict[str, Allocation] = {}
    categories = list(dict.fromkeys(i.category for i in ingredients if selected_units.get(i.id, 0) > 0))
    for category in categories:
        limit = template.limit_for(category) if template else 0
        allocations.update(allocate(limit, canonical_units(ingredients, selected_units, category)))
    return allocations
