"""Catalog records, their serialization and the persistence collaborator."""

from .models import (
    BowlTemplate,
    FieldDefinition,
    FieldError,
    Ingredient,
    MutationResult,
    Nutrition,
    OrderRecord,
    RawRecord,
)
from .repository import CatalogStore, MongoCatalogStore

__all__ = [
    "BowlTemplate",
    "CatalogStore",
    "FieldDefinition",
    "FieldError",
    "Ingredient",
    "MongoCatalogStore",
    "MutationResult",
    "Nutrition",
    "OrderRecord",
    "RawRecord",
]
