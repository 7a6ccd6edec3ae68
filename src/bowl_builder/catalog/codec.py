"""Serialization adapter between raw collaborator records and catalog models.

Field values coming back from the store are always strings. Composite values
(allergen lists, prices, limit maps, stored orderings) are JSON inside those
strings. Decoding never raises: malformed or missing JSON turns into an empty
structure and the failure is logged.
"""

from __future__ import annotations

import json
import re
import time
from decimal import Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_UP
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..utils.logging import get_logger
from .models import BowlTemplate, Ingredient, Nutrition, OrderRecord, RawRecord

logger = get_logger(__name__)

# Ingredient record field keys
INGREDIENT_NAME = "nombre"
INGREDIENT_CATEGORY = "categoria"
INGREDIENT_ALLERGENS = "alergenos"
INGREDIENT_CALORIES = "calorias"
INGREDIENT_PROTEIN = "proteinas"
INGREDIENT_CARBS = "carbohidratos"
INGREDIENT_FAT = "grasas"
INGREDIENT_EXTRA_PRICE = "extra_precio"

# Bowl template record field keys
TEMPLATE_NAME = "name"
TEMPLATE_DESCRIPTION = "description"
TEMPLATE_BASE_PRICE = "base_price"
TEMPLATE_LIMITS = "category_limits"

# Shop ordering state keys
CATEGORY_ORDER_KEY = "category_order"
INGREDIENT_ORDER_KEY = "ingredient_order"

ZERO = Decimal("0")
CENTS = Decimal("0.01")


def decode_json(raw: Optional[str], default_factory: Callable[[], Any], context: str = "value") -> Any:
    """Decode a JSON string, falling back to ``default_factory()``.

    The decoded value must have the same type as the default, otherwise it is
    treated as malformed as well.
    """
    default = default_factory()
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return default
    try:
        value = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.warning(f"Malformed JSON in {context}, using empty default: {e}")
        return default
    if not isinstance(value, type(default)):
        logger.warning(
            f"Unexpected JSON type in {context}: expected {type(default).__name__}, "
            f"got {type(value).__name__}"
        )
        return default
    return value


def parse_decimal(value: Any, context: str = "number") -> Decimal:
    """Parse a numeric field value; anything unparseable is zero."""
    if value is None or value == "":
        return ZERO
    if isinstance(value, bool):
        return ZERO
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        logger.warning(f"Invalid number in {context}: {value!r}")
        return ZERO
    if not number.is_finite():
        logger.warning(f"Non-finite number in {context}: {value!r}")
        return ZERO
    return number


def parse_limit(value: Any) -> int:
    """Parse a category limit; negative or malformed limits count as zero."""
    number = parse_decimal(value, context="category limit")
    limit = int(number.to_integral_value(rounding=ROUND_DOWN))
    return max(limit, 0)


def decode_price(raw: Optional[str], context: str = "price") -> Decimal:
    """Decode a ``{"amount": ..., "currency_code": ...}`` money value."""
    money = decode_json(raw, dict, context=context)
    return parse_decimal(money.get("amount"), context=context)


def encode_price(amount: Decimal, currency_code: str) -> str:
    amount = parse_decimal(amount).quantize(CENTS, rounding=ROUND_HALF_UP)
    return json.dumps({"amount": float(amount), "currency_code": currency_code})


def decode_limits(raw: Optional[str], context: str = "category limits") -> Dict[str, int]:
    limits = decode_json(raw, dict, context=context)
    return {str(category): parse_limit(value) for category, value in limits.items()}


def encode_limits(limits: Mapping[str, int]) -> str:
    # Limits are stored as strings, the way the admin form submits them
    return json.dumps({category: str(int(value)) for category, value in limits.items()})


def decode_string_list(raw: Optional[str], context: str = "list") -> List[str]:
    values = decode_json(raw, list, context=context)
    return [str(value) for value in values if value is not None]


def ingredient_from_record(record: RawRecord, category_field: str = INGREDIENT_CATEGORY) -> Ingredient:
    """Build an :class:`Ingredient` from a raw store record."""
    fields = record.fields
    context = f"ingredient {record.id}"
    return Ingredient(
        id=record.id,
        name=fields.get(INGREDIENT_NAME) or "",
        category=(fields.get(category_field) or "").strip(),
        allergens=frozenset(decode_string_list(fields.get(INGREDIENT_ALLERGENS), context=f"{context} allergens")),
        nutrition=Nutrition(
            calories=parse_decimal(fields.get(INGREDIENT_CALORIES), context=f"{context} calories"),
            protein=parse_decimal(fields.get(INGREDIENT_PROTEIN), context=f"{context} protein"),
            carbs=parse_decimal(fields.get(INGREDIENT_CARBS), context=f"{context} carbs"),
            fat=parse_decimal(fields.get(INGREDIENT_FAT), context=f"{context} fat"),
        ),
        extra_price=decode_price(fields.get(INGREDIENT_EXTRA_PRICE), context=f"{context} extra price"),
    )


def ingredient_to_fields(
    ingredient: Ingredient, currency_code: str, category_field: str = INGREDIENT_CATEGORY
) -> Dict[str, str]:
    """Encode an ingredient into collaborator string fields."""
    nutrition = ingredient.nutrition
    return {
        INGREDIENT_NAME: ingredient.name,
        category_field: ingredient.category,
        INGREDIENT_ALLERGENS: json.dumps(sorted(ingredient.allergens)),
        INGREDIENT_CALORIES: str(nutrition.calories),
        INGREDIENT_CARBS: str(nutrition.carbs),
        INGREDIENT_FAT: str(nutrition.fat),
        INGREDIENT_PROTEIN: str(nutrition.protein),
        INGREDIENT_EXTRA_PRICE: encode_price(ingredient.extra_price, currency_code),
    }


def template_from_record(record: RawRecord) -> BowlTemplate:
    """Build a :class:`BowlTemplate` from a raw store record."""
    fields = record.fields
    context = f"bowl template {record.id}"
    return BowlTemplate(
        id=record.id,
        name=fields.get(TEMPLATE_NAME) or "",
        description=fields.get(TEMPLATE_DESCRIPTION) or "",
        base_price=decode_price(fields.get(TEMPLATE_BASE_PRICE), context=f"{context} base price"),
        limits=decode_limits(fields.get(TEMPLATE_LIMITS), context=f"{context} limits"),
    )


def template_to_fields(template: BowlTemplate, currency_code: str) -> Dict[str, str]:
    return {
        TEMPLATE_NAME: template.name,
        TEMPLATE_DESCRIPTION: template.description,
        TEMPLATE_BASE_PRICE: encode_price(template.base_price, currency_code),
        TEMPLATE_LIMITS: encode_limits(template.limits),
    }


def make_handle(name: str, now_ms: Optional[int] = None) -> str:
    """Build a unique record handle, e.g. ``"Poke Bowl"`` -> ``"poke-bowl-1700000000000"``."""
    slug = re.sub(r"\s+", "-", name.strip().lower())
    slug = re.sub(r"[^\w-]+", "", slug)
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{slug}-{now_ms}"


def decode_ordering_state(raw: Mapping[str, Optional[str]]) -> OrderRecord:
    """Decode the shop ordering state; malformed entries become empty orderings."""
    category_order = decode_string_list(raw.get(CATEGORY_ORDER_KEY), context="category order")
    stored = decode_json(raw.get(INGREDIENT_ORDER_KEY), dict, context="ingredient order")
    ingredient_order: Dict[str, List[str]] = {}
    for category, ids in stored.items():
        if not isinstance(ids, list):
            logger.warning(f"Ignoring malformed ingredient order for category {category!r}")
            continue
        ingredient_order[str(category)] = [str(i) for i in ids if i is not None]
    return OrderRecord(category_order=category_order, ingredient_order=ingredient_order)


def encode_category_order(category_order: List[str]) -> Dict[str, str]:
    return {"key": CATEGORY_ORDER_KEY, "valueJson": json.dumps(list(category_order))}


def encode_ingredient_order(ingredient_order: Mapping[str, List[str]]) -> Dict[str, str]:
    return {
        "key": INGREDIENT_ORDER_KEY,
        "valueJson": json.dumps({category: list(ids) for category, ids in ingredient_order.items()}),
    }
