"""Stateless rendering of the calculator state for the CLI and host pages."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from .allocation import allocate_selection
from .pricing import Totals
from .state import CalculatorData, SelectionState

DEFAULT_LABELS = {
    "orderSummaryText": "Order Summary",
    "ingredientsText": "Ingredients",
    "nutritionText": "Nutrition",
    "baseText": "Bowl base",
    "extrasText": "Extras",
    "totalText": "Total",
    "limitWarningText": "Limit reached for this category. Additional ingredients are charged as extras.",
    "currencySymbol": "€",
}


def label(settings: Dict[str, str], key: str) -> str:
    return settings.get(key) or DEFAULT_LABELS[key]


def money(amount: Decimal, settings: Dict[str, str]) -> str:
    return f"{label(settings, 'currencySymbol')}{amount:.2f}"


@dataclass(frozen=True)
class IngredientRow:
    ingredient_id: str
    name: str
    quantity: int
    extra_quantity: int
    extra_price: Decimal


@dataclass(frozen=True)
class CategorySection:
    category: str
    limit: int
    count: int
    rows: List[IngredientRow]

    @property
    def limit_reached(self) -> bool:
        return self.count >= self.limit


def category_sections(data: CalculatorData, state: SelectionState) -> List[CategorySection]:
    """Sections in stored category order; categories with no ingredients are skipped."""
    template = state.selected_template
    if template is None:
        return []
    allocations = allocate_selection(template, data.ingredients, state.selected_units)
    sections = []
    for category in data.category_order:
        ingredients = data.ingredients_in(category)
        if not ingredients:
            continue
        rows = [
            IngredientRow(
                ingredient_id=ingredient.id,
                name=ingredient.name,
                quantity=state.quantity(ingredient.id),
                extra_quantity=allocations[ingredient.id].extra if ingredient.id in allocations else 0,
                extra_price=ingredient.extra_price,
            )
            for ingredient in ingredients
        ]
        sections.append(
            CategorySection(
                category=category,
                limit=template.limit_for(category),
                count=sum(row.quantity for row in rows),
                rows=rows,
            )
        )
    return sections


def boxed(lines: List[Tuple[str, str]]) -> str:
    """Render ``(label, value)`` pairs in a box."""
    label_width = max(len(lbl) for lbl, _ in lines)
    inner_width = max(len(f" {lbl.ljust(label_width)} : {val} ") for lbl, val in lines)
    out = ["┌" + "─" * inner_width + "┐"]
    for lbl, val in lines:
        line = f" {lbl.ljust(label_width)} : {val}"
        out.append(f"│{line.ljust(inner_width)}│")
    out.append("└" + "─" * inner_width + "┘")
    return "\n".join(out)


def render_categories(data: CalculatorData, state: SelectionState) -> str:
    settings = data.settings
    out = []
    for section in category_sections(data, state):
        out.append(f"{section.category} ({section.count}/{section.limit})")
        if section.limit_reached:
            out.append(f"  {label(settings, 'limitWarningText')}")
        for row in section.rows:
            extra = f"  +{money(row.extra_price, settings)}" if section.limit_reached else ""
            out.append(f"  [{row.quantity}] {row.name}{extra}")
    return "\n".join(out)


def render_summary(data: CalculatorData, state: SelectionState, totals: Optional[Totals]) -> str:
    """Text summary of the selected bowl, or an empty string before selection."""
    template = state.selected_template
    if template is None or totals is None:
        return ""
    settings = data.settings

    out = [label(settings, "orderSummaryText"), "=" * 60, f"{template.name}  {money(template.base_price, settings)}"]

    if totals.lines:
        out.append("")
        out.append(f"{label(settings, 'ingredientsText')}:")
        for line in totals.lines:
            extra = f"  +{money(line.extra_cost, settings)}" if line.extra_quantity > 0 else ""
            out.append(f"  {line.ingredient.name} x{line.quantity}{extra}")

    out.append("")
    out.append(f"{label(settings, 'nutritionText')}:")
    out.append(
        f"  Calories {totals.calories}  Protein {totals.protein}g  "
        f"Carbs {totals.carbs}g  Fat {totals.fat}g"
    )

    price_lines = [(label(settings, "baseText"), money(totals.base_price, settings))]
    if totals.extra_price > 0:
        price_lines.append((label(settings, "extrasText"), money(totals.extra_price, settings)))
    price_lines.append((label(settings, "totalText"), money(totals.total_price, settings)))
    out.append("")
    out.append(boxed(price_lines))
    return "\n".join(out)
