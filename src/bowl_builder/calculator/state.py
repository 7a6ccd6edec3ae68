"""Storefront calculator data and selection state transitions.

The host page injects one JSON payload ``{bowlTemplates, ingredients,
categoryOrder, settings}``. Customer events are pure transitions on an
immutable :class:`SelectionState`; every transition is followed by a full
recomputation of the totals.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Union

from ..catalog.codec import parse_decimal, parse_limit
from ..catalog.models import BowlTemplate, Ingredient, Nutrition
from ..utils.logging import get_logger
from .pricing import Totals, compute_totals

logger = get_logger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class CalculatorData:
    templates: List[BowlTemplate] = field(default_factory=list)
    ingredients: List[Ingredient] = field(default_factory=list)
    category_order: List[str] = field(default_factory=list)
    settings: Dict[str, str] = field(default_factory=dict)

    @property
    def inert(self) -> bool:
        """No templates means nothing can be selected or priced."""
        return not self.templates

    def template(self, template_id: str) -> Optional[BowlTemplate]:
        return next((t for t in self.templates if t.id == str(template_id)), None)

    def ingredient(self, ingredient_id: str) -> Optional[Ingredient]:
        return next((i for i in self.ingredients if i.id == str(ingredient_id)), None)

    def ingredients_in(self, category: str) -> List[Ingredient]:
        return [i for i in self.ingredients if i.category == category]


@dataclass(frozen=True)
class SelectionState:
    selected_template: Optional[BowlTemplate] = None
    selected_units: Mapping[str, int] = field(default_factory=dict)

    def quantity(self, ingredient_id: str) -> int:
        return self.selected_units.get(str(ingredient_id), 0)


def _non_negative(value: Any, context: str) -> Decimal:
    number = parse_decimal(value, context=context)
    if number < 0:
        logger.warning(f"Negative value in {context} treated as zero")
        return ZERO
    return number


def _template_from_payload(item: Mapping[str, Any]) -> BowlTemplate:
    context = f"bowl template {item['id']}"
    limits = item.get("limits") or {}
    if not isinstance(limits, dict):
        logger.warning(f"Ignoring malformed limits for {context}")
        limits = {}
    return BowlTemplate(
        id=str(item["id"]),
        name=str(item.get("name") or ""),
        description=str(item.get("description") or ""),
        base_price=_non_negative(item.get("basePrice"), f"{context} base price"),
        limits={str(category): parse_limit(value) for category, value in limits.items()},
    )


def _ingredient_from_payload(item: Mapping[str, Any]) -> Ingredient:
    context = f"ingredient {item['id']}"
    allergens = item.get("allergens") or []
    return Ingredient(
        id=str(item["id"]),
        name=str(item.get("name") or ""),
        category=str(item.get("category") or ""),
        allergens=frozenset(str(a) for a in allergens) if isinstance(allergens, list) else frozenset(),
        nutrition=Nutrition(
            calories=_non_negative(item.get("calories"), f"{context} calories"),
            protein=_non_negative(item.get("protein"), f"{context} protein"),
            carbs=_non_negative(item.get("carbs"), f"{context} carbs"),
            fat=_non_negative(item.get("fat"), f"{context} fat"),
        ),
        extra_price=_non_negative(item.get("extraPrice"), f"{context} extra price"),
    )


def load_calculator_data(payload: Union[str, bytes, Mapping[str, Any], None]) -> CalculatorData:
    """Ingest the injected storefront payload.

    A missing or malformed payload leaves the calculator inert: the error is
    logged and an empty :class:`CalculatorData` is returned.
    """
    try:
        if payload is None:
            raise ValueError("calculator payload is missing")
        data = json.loads(payload) if isinstance(payload, (str, bytes)) else payload
        if not isinstance(data, Mapping):
            raise ValueError("calculator payload must be a JSON object")

        templates = [_template_from_payload(item) for item in data.get("bowlTemplates") or []]
        ingredients = [_ingredient_from_payload(item) for item in data.get("ingredients") or []]
        category_order = [str(c) for c in data.get("categoryOrder") or []]
        settings = data.get("settings") or {}
        if not isinstance(settings, Mapping):
            settings = {}
    except (TypeError, ValueError, KeyError, AttributeError) as e:
        logger.error(f"Error loading calculator data: {e}")
        return CalculatorData()

    return CalculatorData(
        templates=templates,
        ingredients=ingredients,
        category_order=category_order,
        settings={str(k): str(v) for k, v in settings.items() if v is not None},
    )


def select_template(state: SelectionState, data: CalculatorData, template_id: str) -> SelectionState:
    """Choose a bowl template; any previous selection is discarded."""
    template = data.template(template_id)
    if template is None:
        logger.warning(f"Unknown bowl template {template_id}; selection unchanged")
        return state
    return SelectionState(selected_template=template, selected_units={})


def add_unit(state: SelectionState, data: CalculatorData, ingredient_id: str) -> SelectionState:
    """Add one unit of an ingredient to the current bowl."""
    ingredient_id = str(ingredient_id)
    if state.selected_template is None:
        logger.debug(f"Ignoring add of {ingredient_id}: no bowl template selected")
        return state
    if data.ingredient(ingredient_id) is None:
        logger.warning(f"Ignoring add of unknown ingredient {ingredient_id}")
        return state
    units = dict(state.selected_units)
    units[ingredient_id] = units.get(ingredient_id, 0) + 1
    return replace(state, selected_units=units)


def remove_unit(state: SelectionState, data: CalculatorData, ingredient_id: str) -> SelectionState:
    """Remove one unit; entries that reach zero are pruned."""
    ingredient_id = str(ingredient_id)
    current = state.selected_units.get(ingredient_id, 0)
    if current <= 0:
        return state
    units = dict(state.selected_units)
    if current == 1:
        del units[ingredient_id]
    else:
        units[ingredient_id] = current - 1
    return replace(state, selected_units=units)


def totals_for(state: SelectionState, data: CalculatorData) -> Optional[Totals]:
    """Recompute totals for the current state; ``None`` before a template is chosen."""
    if state.selected_template is None:
        return None
    return compute_totals(state.selected_template, data.ingredients, state.selected_units)


class BowlCalculator:
    """One customer session: the latest state plus the ingested data.

    Each event swaps in the state returned by the matching transition and
    returns freshly computed totals.
    """

    def __init__(self, payload: Union[str, bytes, Mapping[str, Any], None]) -> None:
        self.data = load_calculator_data(payload)
        self.state = SelectionState()

    def select_template(self, template_id: str) -> Optional[Totals]:
        self.state = select_template(self.state, self.data, template_id)
        return totals_for(self.state, self.data)

    def add_unit(self, ingredient_id: str) -> Optional[Totals]:
        self.state = add_unit(self.state, self.data, ingredient_id)
        return totals_for(self.state, self.data)

    def remove_unit(self, ingredient_id: str) -> Optional[Totals]:
        self.state = remove_unit(self.state, self.data, ingredient_id)
        return totals_for(self.state, self.data)
