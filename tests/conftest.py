"""
Pytest configuration and fixtures for Bowl Builder tests.
"""

import json
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pytest

# Add src to Python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from bowl_builder.catalog.models import FieldDefinition, FieldError, MutationResult, RawRecord  # noqa: E402
from bowl_builder.catalog.repository import validate_choices  # noqa: E402

INGREDIENT_TYPE = "metaingredientes"
TEMPLATE_TYPE = "bowl_model"


class FakeCatalogStore:
    """In-memory catalog store with injectable failures."""

    def __init__(self, categories: Optional[List[str]] = None, allergens: Optional[List[str]] = None) -> None:
        self.definition_id = "definition-1"
        self.choices: Dict[str, List[str]] = {
            "categoria": list(categories or []),
            "alergenos": list(allergens or []),
        }
        self.records: Dict[str, Dict[str, RawRecord]] = {INGREDIENT_TYPE: {}, TEMPLATE_TYPE: {}}
        self.shop_state: Dict[str, Optional[str]] = {"category_order": None, "ingredient_order": None}
        self.calls: List[str] = []

        self.definition_errors: List[FieldError] = []
        self.raise_on_definition_update = False
        self.raise_on_shop_write = False
        self.shop_write_errors: List[FieldError] = []
        self.unreadable_types = set()
        self.failing_updates = set()
        self.rejected_updates = set()

    # fixture helpers

    def add_ingredient(self, record_id: str, category: str = "", extra_price: str = "0", **fields) -> None:
        values = {
            "nombre": fields.pop("name", record_id.title()),
            "categoria": category,
            "alergenos": json.dumps(fields.pop("allergens", [])),
            "calorias": str(fields.pop("calories", "0")),
            "proteinas": str(fields.pop("protein", "0")),
            "carbohidratos": str(fields.pop("carbs", "0")),
            "grasas": str(fields.pop("fat", "0")),
            "extra_precio": json.dumps({"amount": float(extra_price), "currency_code": "EUR"}),
        }
        values.update(fields)
        self.records[INGREDIENT_TYPE][record_id] = RawRecord(id=record_id, fields=values)

    def add_template(self, record_id: str, limits, base_price: str = "0", name: str = "") -> None:
        limits_value = limits if isinstance(limits, str) else json.dumps(limits)
        self.records[TEMPLATE_TYPE][record_id] = RawRecord(
            id=record_id,
            fields={
                "name": name or record_id,
                "description": "",
                "base_price": json.dumps({"amount": float(base_price), "currency_code": "EUR"}),
                "category_limits": limits_value,
            },
        )

    def fields_of(self, record_type: str, record_id: str) -> Dict[str, str]:
        return self.records[record_type][record_id].fields

    async def __aenter__(self) -> "FakeCatalogStore":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        return None

    # CatalogStore protocol

    async def read_collection(self, record_type: str) -> List[RawRecord]:
        self.calls.append(f"read_collection:{record_type}")
        if record_type in self.unreadable_types:
            raise ConnectionError(f"cannot read {record_type}")
        return list(self.records.get(record_type, {}).values())

    async def read_field_definition(self, record_type: str, field_key: str) -> FieldDefinition:
        self.calls.append("read_field_definition")
        return FieldDefinition(id=self.definition_id, key=field_key, validation_choices=list(self.choices[field_key]))

    async def update_field_definition(self, definition_id: str, field_key: str, choices: List[str]) -> MutationResult:
        self.calls.append("update_field_definition")
        if self.raise_on_definition_update:
            raise ConnectionError("platform unavailable")
        errors = list(self.definition_errors) or validate_choices(field_key, choices)
        if errors:
            return MutationResult(id=definition_id, user_errors=errors)
        self.choices[field_key] = list(choices)
        return MutationResult(id=definition_id)

    async def create_record(self, record_type, fields, handle=None) -> MutationResult:
        record_id = f"{record_type}-{len(self.records[record_type]) + 1}"
        self.records[record_type][record_id] = RawRecord(id=record_id, fields=dict(fields), handle=handle)
        return MutationResult(id=record_id)

    async def update_record(self, record_type: str, record_id: str, fields) -> MutationResult:
        self.calls.append(f"update_record:{record_id}")
        if record_id in self.failing_updates:
            raise ConnectionError(f"update of {record_id} timed out")
        if record_id in self.rejected_updates:
            return MutationResult(id=record_id, user_errors=[FieldError(field="fields", message="rejected")])
        current = self.records[record_type][record_id]
        merged = dict(current.fields)
        merged.update(fields)
        self.records[record_type][record_id] = RawRecord(id=record_id, fields=merged, handle=current.handle)
        return MutationResult(id=record_id)

    async def delete_record(self, record_type: str, record_id: str) -> MutationResult:
        self.records[record_type].pop(record_id, None)
        return MutationResult(id=record_id)

    async def read_shop_ordering_state(self) -> Dict[str, Optional[str]]:
        self.calls.append("read_shop_ordering_state")
        return dict(self.shop_state)

    async def write_shop_ordering_state(self, entries) -> MutationResult:
        self.calls.append("write_shop_ordering_state")
        if self.raise_on_shop_write:
            raise ConnectionError("platform unavailable")
        if self.shop_write_errors:
            return MutationResult(user_errors=list(self.shop_write_errors))
        for entry in entries:
            self.shop_state[entry["key"]] = entry["valueJson"]
        return MutationResult()


@pytest.fixture
def store():
    """Catalog with two live categories, a legacy ingredient and two templates."""
    catalog = FakeCatalogStore(categories=["Base", "Protein", "Legacy"], allergens=["Gluten"])
    catalog.add_ingredient("rice", category="Base", extra_price="1.00", calories="200", protein="4", carbs="45", fat="0.5")
    catalog.add_ingredient("quinoa", category="Base", extra_price="1.50", calories="180", protein="6", carbs="32", fat="3")
    catalog.add_ingredient("chicken", category="Protein", extra_price="2.50", calories="165", protein="31", fat="3.6")
    catalog.add_ingredient("croutons", category="Legacy", extra_price="0.50")
    catalog.add_ingredient("water", category="")
    catalog.add_template("classic", {"Base": "2", "Protein": "1", "Legacy": "5"}, base_price="5.00", name="Classic")
    catalog.add_template("mini", {"Base": "1"}, base_price="3.50", name="Mini")
    catalog.shop_state["category_order"] = json.dumps(["Legacy", "Protein", "Base"])
    return catalog


@pytest.fixture
def payload():
    """Storefront payload with one template and a few ingredients."""
    return {
        "bowlTemplates": [
            {"id": "t1", "name": "Classic", "description": "House bowl", "basePrice": 5.0,
             "limits": {"Base": "2", "Protein": 1, "Topping": 0}},
            {"id": "t2", "name": "Big", "description": "", "basePrice": 8.0,
             "limits": {"Base": 3, "Protein": 2, "Topping": 3}},
        ],
        "ingredients": [
            {"id": "x", "name": "Rice", "category": "Base", "calories": 200, "protein": 4.25,
             "carbs": 45, "fat": 0.5, "extraPrice": 1.0},
            {"id": "y", "name": "Quinoa", "category": "Base", "calories": 180.4, "protein": 6,
             "carbs": 32, "fat": 3, "extraPrice": 2.0},
            {"id": "chicken", "name": "Chicken", "category": "Protein", "calories": 165,
             "protein": 31, "carbs": 0, "fat": 3.6, "extraPrice": 2.5},
            {"id": "sesame", "name": "Sesame", "category": "Topping", "calories": 50,
             "protein": 1.5, "carbs": 2, "fat": 4.5, "extraPrice": 0.75},
        ],
        "categoryOrder": ["Base", "Protein", "Topping"],
        "settings": {"totalText": "Total"},
    }
