"""Admin display ordering and bowl template limit editing helpers."""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

from ..taxonomy.reconcile import Partition, partition, reconcile
from ..utils.logging import get_logger
from .codec import decode_ordering_state, encode_category_order, encode_ingredient_order, ingredient_from_record
from .models import BowlTemplate, FieldError, Ingredient, OrderRecord
from .repository import CatalogStore

logger = get_logger(__name__)

UNCATEGORIZED = "Uncategorized"


def group_by_category(ingredients: Iterable[Ingredient]) -> Dict[str, List[str]]:
    """Ingredient ids per category, in first-appearance order.

    Ingredients without a category are grouped under ``UNCATEGORIZED``.
    """
    grouped: Dict[str, List[str]] = {}
    for ingredient in ingredients:
        grouped.setdefault(ingredient.category or UNCATEGORIZED, []).append(ingredient.id)
    return grouped


def build_ordering_view(ingredients: Sequence[Ingredient], stored: OrderRecord) -> OrderRecord:
    """Reconcile the stored orderings against the categories and ingredients that exist now."""
    grouped = group_by_category(ingredients)
    return OrderRecord(
        category_order=reconcile(stored.category_order, grouped.keys()),
        ingredient_order={
            category: reconcile(stored.ingredient_order.get(category, []), ids)
            for category, ids in grouped.items()
        },
    )


def ordered_ingredients(ingredients: Sequence[Ingredient], view: OrderRecord) -> List[Ingredient]:
    """Ingredients enumerated category by category in display order."""
    by_id = {ingredient.id: ingredient for ingredient in ingredients}
    ordered = []
    for category in view.category_order:
        for ingredient_id in view.ingredient_order.get(category, []):
            if ingredient_id in by_id:
                ordered.append(by_id[ingredient_id])
    return ordered


def move_item(order: Sequence[str], item: str, target: str) -> List[str]:
    """Move ``item`` to the position currently held by ``target``."""
    order = list(order)
    if item not in order or target not in order or item == target:
        return order
    old_index = order.index(item)
    new_index = order.index(target)
    order.insert(new_index, order.pop(old_index))
    return order


async def load_ordering_view(
    store: CatalogStore, ingredient_type: str, category_field: str
) -> Tuple[OrderRecord, List[Ingredient]]:
    records = await store.read_collection(ingredient_type)
    ingredients = [ingredient_from_record(record, category_field=category_field) for record in records]
    stored = decode_ordering_state(await store.read_shop_ordering_state())
    return build_ordering_view(ingredients, stored), ingredients


async def save_ordering(store: CatalogStore, record: OrderRecord) -> List[FieldError]:
    """Persist both orderings; returns the store's field errors, if any."""
    mutation = await store.write_shop_ordering_state(
        [encode_category_order(record.category_order), encode_ingredient_order(record.ingredient_order)]
    )
    if mutation.user_errors:
        logger.warning(f"Ordering save rejected: {[e.message for e in mutation.user_errors]}")
    return list(mutation.user_errors)


def template_limits_view(template: BowlTemplate, categories: Sequence[str]) -> Partition:
    """Active and orphaned limits for editing a template against the live categories."""
    return partition(template.limits, categories, default=0)


def active_limits_only(limits: Mapping[str, int], active_categories: Iterable[str]) -> Dict[str, int]:
    """Limits to save: active categories only, zero where unset."""
    return {category: limits.get(category, 0) for category in active_categories}
