"""Build the JSON payload the storefront calculator ingests at page load."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from ..utils.config import Config
from ..utils.logging import get_logger
from .codec import decode_ordering_state, ingredient_from_record, template_from_record
from .models import BowlTemplate, Ingredient
from .ordering import UNCATEGORIZED, build_ordering_view, ordered_ingredients
from .repository import CatalogStore

logger = get_logger(__name__)


def template_payload(template: BowlTemplate) -> Dict[str, Any]:
    return {
        "id": template.id,
        "name": template.name,
        "description": template.description,
        "basePrice": float(template.base_price),
        "limits": dict(template.limits),
    }


def ingredient_payload(ingredient: Ingredient) -> Dict[str, Any]:
    nutrition = ingredient.nutrition
    return {
        "id": ingredient.id,
        "name": ingredient.name,
        "category": ingredient.category,
        "allergens": sorted(ingredient.allergens),
        "calories": float(nutrition.calories),
        "protein": float(nutrition.protein),
        "carbs": float(nutrition.carbs),
        "fat": float(nutrition.fat),
        "extraPrice": float(ingredient.extra_price),
    }


async def build_storefront_payload(
    store: CatalogStore,
    config: Optional[Config] = None,
    settings: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """Assemble ``{bowlTemplates, ingredients, categoryOrder, settings}``.

    Ingredients are listed in the admin display order. That enumeration is
    the canonical order the calculator uses to decide which units are extras.
    Ingredients without a category are left out since no section shows them.
    """
    config = config or Config()
    category_field = config.get("category_field")

    ingredient_records = await store.read_collection(config.get("ingredient_type"))
    template_records = await store.read_collection(config.get("bowl_template_type"))
    ingredients = [ingredient_from_record(r, category_field=category_field) for r in ingredient_records]
    templates = [template_from_record(r) for r in template_records]

    view = build_ordering_view(ingredients, decode_ordering_state(await store.read_shop_ordering_state()))
    category_order: List[str] = [c for c in view.category_order if c != UNCATEGORIZED]
    listed = [i for i in ordered_ingredients(ingredients, view) if i.category]

    logger.info(f"Storefront payload: {len(templates)} templates, {len(listed)} ingredients")
    return {
        "bowlTemplates": [template_payload(t) for t in templates],
        "ingredients": [ingredient_payload(i) for i in listed],
        "categoryOrder": category_order,
        "settings": dict(settings or {}),
    }
