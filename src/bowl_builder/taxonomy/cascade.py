"""Propagate a category vocabulary change across dependent collections.

The store offers no cross-record transaction, so the change runs as a fixed
sequence of steps, each recorded in the result ledger:

1. persist the new vocabulary (failure aborts everything),
2. resync the stored category display order (failure stops the cascade),
3. clear the category of ingredients that point at a removed category,
4. resync every bowl template's limits to exactly the new categories.

Steps 3 and 4 fan out one update per record. Individual failures there are
logged and counted but never fail the run: the next successful cascade heals
whatever was left behind.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..catalog.codec import (
    TEMPLATE_LIMITS,
    decode_ordering_state,
    encode_category_order,
    encode_limits,
    template_from_record,
)
from ..catalog.models import FieldError
from ..catalog.repository import CatalogStore, validate_choices
from ..utils.config import Config
from ..utils.logging import get_logger
from .diff import TaxonomyDiff, diff_taxonomy
from .reconcile import reconcile, resync_limits

logger = get_logger(__name__)

STEP_PERSIST = "persist_vocabulary"
STEP_CATEGORY_ORDER = "resync_category_order"
STEP_INGREDIENTS = "clear_removed_ingredient_categories"
STEP_TEMPLATE_LIMITS = "resync_template_limits"

OK = "ok"
PARTIAL = "partial"
FAILED = "failed"
SKIPPED = "skipped"

UNEXPECTED_ERROR = "An unexpected server error occurred."


@dataclass
class StepOutcome:
    name: str
    status: str
    attempted: int = 0
    failed: int = 0
    detail: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "attempted": self.attempted,
            "failed": self.failed,
            "detail": self.detail,
        }


@dataclass
class CascadeResult:
    success: bool
    field_key: str
    errors: List[FieldError] = field(default_factory=list)
    diff: Optional[TaxonomyDiff] = None
    steps: List[StepOutcome] = field(default_factory=list)

    def step(self, name: str) -> Optional[StepOutcome]:
        return next((s for s in self.steps if s.name == name), None)

    @property
    def fully_synced(self) -> bool:
        """True when every dependent collection was synced without failures."""
        return self.success and all(s.status in (OK, SKIPPED) for s in self.steps)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "fieldKey": self.field_key,
            "errors": [e.to_dict() for e in self.errors],
            "added": list(self.diff.added) if self.diff else [],
            "removed": list(self.diff.removed) if self.diff else [],
            "steps": [s.to_dict() for s in self.steps],
        }


class CascadePropagator:
    """Runs taxonomy changes against a :class:`CatalogStore`."""

    def __init__(self, store: CatalogStore, config: Optional[Config] = None) -> None:
        config = config or Config()
        self.store = store
        self.ingredient_type = config.get("ingredient_type")
        self.bowl_template_type = config.get("bowl_template_type")
        self.category_field = config.get("category_field")
        self.fanout_limit = config.get("fanout_limit", 0)

    async def apply(
        self,
        definition_id: str,
        field_key: str,
        new_categories: Sequence[str],
        previous_categories: Optional[Sequence[str]] = None,
    ) -> CascadeResult:
        new_categories = list(new_categories)
        result = CascadeResult(success=False, field_key=field_key)

        if previous_categories is None:
            previous_categories = await self._read_current_choices(field_key)
        result.diff = diff_taxonomy(previous_categories, new_categories)
        logger.info(
            f"Applying {field_key} change: added={result.diff.added} removed={result.diff.removed}"
        )

        # Step 1: the vocabulary itself. Nothing else runs unless this commits.
        outcome, errors = await self._persist_vocabulary(definition_id, field_key, new_categories)
        result.steps.append(outcome)
        if errors:
            result.errors = errors
            return result

        if field_key != self.category_field:
            for name in (STEP_CATEGORY_ORDER, STEP_INGREDIENTS, STEP_TEMPLATE_LIMITS):
                result.steps.append(StepOutcome(name=name, status=SKIPPED, detail=f"{field_key} is not the category field"))
            result.success = True
            return result

        # Step 2: stored display order.
        outcome, errors = await self._resync_category_order(new_categories)
        result.steps.append(outcome)
        if errors:
            result.errors = errors
            result.steps.append(StepOutcome(name=STEP_INGREDIENTS, status=SKIPPED, detail="category order resync failed"))
            result.steps.append(StepOutcome(name=STEP_TEMPLATE_LIMITS, status=SKIPPED, detail="category order resync failed"))
            return result
        result.success = True

        # Steps 3 and 4: best effort, never fail the run.
        result.steps.append(await self._clear_removed_categories(new_categories))
        result.steps.append(await self._resync_template_limits(new_categories))

        if not result.fully_synced:
            logger.warning(
                f"Taxonomy change for {field_key} committed with unsynced records; "
                "they will be fixed by the next successful run"
            )
        return result

    async def _read_current_choices(self, field_key: str) -> List[str]:
        try:
            definition = await self.store.read_field_definition(self.ingredient_type, field_key)
        except Exception as e:
            logger.warning(f"Could not read current {field_key} choices for diffing: {e}")
            return []
        return list(definition.validation_choices)

    async def _persist_vocabulary(
        self, definition_id: str, field_key: str, new_categories: List[str]
    ) -> Tuple[StepOutcome, List[FieldError]]:
        errors = validate_choices(field_key, new_categories)
        if not errors:
            try:
                mutation = await self.store.update_field_definition(definition_id, field_key, new_categories)
                errors = list(mutation.user_errors)
            except Exception as e:
                logger.error(f"Error persisting {field_key} choices: {e}", exc_info=True)
                errors = [FieldError(field=None, message=UNEXPECTED_ERROR)]

        if errors:
            logger.error(f"Rejected {field_key} change: {[e.message for e in errors]}")
            return StepOutcome(name=STEP_PERSIST, status=FAILED, attempted=1, failed=1, detail=errors[0].message), errors
        return StepOutcome(name=STEP_PERSIST, status=OK, attempted=1), []

    async def _resync_category_order(self, new_categories: List[str]) -> Tuple[StepOutcome, List[FieldError]]:
        try:
            state = decode_ordering_state(await self.store.read_shop_ordering_state())
            synced = reconcile(state.category_order, new_categories)
            mutation = await self.store.write_shop_ordering_state([encode_category_order(synced)])
            errors = list(mutation.user_errors)
        except Exception as e:
            logger.error(f"Error resyncing category order: {e}", exc_info=True)
            errors = [FieldError(field=None, message=UNEXPECTED_ERROR)]

        if errors:
            return StepOutcome(name=STEP_CATEGORY_ORDER, status=FAILED, attempted=1, failed=1, detail=errors[0].message), errors
        logger.debug(f"Category order resynced to {synced}")
        return StepOutcome(name=STEP_CATEGORY_ORDER, status=OK, attempted=1), []

    async def _clear_removed_categories(self, new_categories: List[str]) -> StepOutcome:
        live = set(new_categories)
        try:
            records = await self.store.read_collection(self.ingredient_type)
        except Exception as e:
            logger.warning(f"Could not read ingredients for cleanup: {e}")
            return StepOutcome(name=STEP_INGREDIENTS, status=FAILED, detail=str(e))

        updates = []
        for record in records:
            # Raw value: a padded category is not a live one
            category = record.fields.get(self.category_field) or ""
            if category and category not in live:
                updates.append((record.id, {self.category_field: ""}))
        return await self._fan_out(STEP_INGREDIENTS, self.ingredient_type, updates)

    async def _resync_template_limits(self, new_categories: List[str]) -> StepOutcome:
        try:
            records = await self.store.read_collection(self.bowl_template_type)
        except Exception as e:
            logger.warning(f"Could not read bowl templates for limit resync: {e}")
            return StepOutcome(name=STEP_TEMPLATE_LIMITS, status=FAILED, detail=str(e))

        updates = []
        for record in records:
            template = template_from_record(record)
            limits = resync_limits(template.limits, new_categories)
            updates.append((record.id, {TEMPLATE_LIMITS: encode_limits(limits)}))
        return await self._fan_out(STEP_TEMPLATE_LIMITS, self.bowl_template_type, updates)

    async def _fan_out(self, step: str, record_type: str, updates: List[Tuple[str, Dict[str, str]]]) -> StepOutcome:
        """Dispatch all updates concurrently and wait until every one has settled."""
        semaphore = asyncio.Semaphore(self.fanout_limit) if self.fanout_limit and self.fanout_limit > 0 else None

        async def _update(record_id: str, fields: Dict[str, str]):
            if semaphore is None:
                return await self.store.update_record(record_type, record_id, fields)
            async with semaphore:
                return await self.store.update_record(record_type, record_id, fields)

        results = await asyncio.gather(
            *(_update(record_id, fields) for record_id, fields in updates),
            return_exceptions=True,
        )

        failed = 0
        for (record_id, _), outcome in zip(updates, results):
            if isinstance(outcome, BaseException):
                failed += 1
                logger.warning(f"{step}: update of {record_id} failed: {outcome}")
            elif outcome.user_errors:
                failed += 1
                logger.warning(f"{step}: update of {record_id} rejected: {[e.message for e in outcome.user_errors]}")

        if failed == 0:
            status = OK
        elif failed == len(updates):
            status = FAILED
        else:
            status = PARTIAL
        logger.info(f"{step}: {len(updates) - failed}/{len(updates)} records updated")
        return StepOutcome(name=step, status=status, attempted=len(updates), failed=failed)


async def apply_taxonomy_change(
    store: CatalogStore,
    definition_id: str,
    field_key: str,
    new_categories: Sequence[str],
    config: Optional[Config] = None,
) -> CascadeResult:
    """Persist a new vocabulary for ``field_key`` and cascade it."""
    return await CascadePropagator(store, config=config).apply(definition_id, field_key, new_categories)
