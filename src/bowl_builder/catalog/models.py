"""Typed catalog records used by the cascade and the calculator."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, FrozenSet, List, Optional


@dataclass(frozen=True)
class Nutrition:
    """Macros for a single unit of an ingredient."""

    calories: Decimal = Decimal("0")
    protein: Decimal = Decimal("0")
    carbs: Decimal = Decimal("0")
    fat: Decimal = Decimal("0")


@dataclass(frozen=True)
class Ingredient:
    id: str
    name: str = ""
    category: str = ""
    allergens: FrozenSet[str] = frozenset()
    nutrition: Nutrition = field(default_factory=Nutrition)
    extra_price: Decimal = Decimal("0")


@dataclass(frozen=True)
class BowlTemplate:
    id: str
    name: str = ""
    description: str = ""
    base_price: Decimal = Decimal("0")
    limits: Dict[str, int] = field(default_factory=dict)

    def limit_for(self, category: str) -> int:
        """Free quota for a category; unknown or empty categories have none."""
        return self.limits.get(category, 0)


@dataclass
class OrderRecord:
    """Shop-level display ordering for categories and their ingredients."""

    category_order: List[str] = field(default_factory=list)
    ingredient_order: Dict[str, List[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class RawRecord:
    """A record as the persistence collaborator returns it: string fields only."""

    id: str
    fields: Dict[str, str] = field(default_factory=dict)
    handle: Optional[str] = None


@dataclass(frozen=True)
class FieldDefinition:
    id: str
    key: str
    validation_choices: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class FieldError:
    field: Optional[str]
    message: str

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"field": self.field, "message": self.message}


@dataclass(frozen=True)
class MutationResult:
    id: Optional[str] = None
    user_errors: List[FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.user_errors
