"""Tests for the taxonomy change cascade."""

import asyncio
import json
from unittest.mock import patch

from bowl_builder.catalog.models import FieldError
from bowl_builder.taxonomy.cascade import (
    FAILED,
    OK,
    PARTIAL,
    SKIPPED,
    STEP_CATEGORY_ORDER,
    STEP_INGREDIENTS,
    STEP_PERSIST,
    STEP_TEMPLATE_LIMITS,
    CascadePropagator,
    apply_taxonomy_change,
)
from bowl_builder.utils.config import Config

from conftest import INGREDIENT_TYPE, TEMPLATE_TYPE

NEW_CATEGORIES = ["Base", "Protein", "Topping"]


def run(coro):
    return asyncio.run(coro)


def limits_of(store, template_id):
    return json.loads(store.fields_of(TEMPLATE_TYPE, template_id)["category_limits"])


class TestCascade:
    """Test cases for a full category change."""

    def test_full_cascade(self, store):
        result = run(apply_taxonomy_change(store, store.definition_id, "categoria", NEW_CATEGORIES))

        assert result.success
        assert result.fully_synced
        assert result.diff.added == ["Topping"]
        assert result.diff.removed == ["Legacy"]
        assert store.choices["categoria"] == NEW_CATEGORIES

        # Stored order keeps surviving members and appends the new one
        assert json.loads(store.shop_state["category_order"]) == ["Protein", "Base", "Topping"]

        # Only the ingredient in the removed category is cleared
        assert store.fields_of(INGREDIENT_TYPE, "croutons")["categoria"] == ""
        assert store.fields_of(INGREDIENT_TYPE, "rice")["categoria"] == "Base"
        assert "update_record:water" not in store.calls

        assert limits_of(store, "classic") == {"Base": "2", "Protein": "1", "Topping": "0"}
        assert limits_of(store, "mini") == {"Base": "1", "Protein": "0", "Topping": "0"}

    def test_steps_run_in_order(self, store):
        run(apply_taxonomy_change(store, store.definition_id, "categoria", NEW_CATEGORIES))

        persist = store.calls.index("update_field_definition")
        order_write = store.calls.index("write_shop_ordering_state")
        ingredient_update = store.calls.index("update_record:croutons")
        template_update = store.calls.index("update_record:classic")
        assert persist < order_write < ingredient_update < template_update

    def test_rerun_is_stable(self, store):
        run(apply_taxonomy_change(store, store.definition_id, "categoria", NEW_CATEGORIES))
        first_order = store.shop_state["category_order"]
        first_limits = limits_of(store, "classic")

        result = run(apply_taxonomy_change(store, store.definition_id, "categoria", NEW_CATEGORIES))

        assert result.success
        assert not result.diff.changed
        assert store.shop_state["category_order"] == first_order
        assert limits_of(store, "classic") == first_limits
        assert result.step(STEP_INGREDIENTS).attempted == 0

    def test_padded_category_is_cleared(self, store):
        store.add_ingredient("spinach", category=" Base")

        result = run(apply_taxonomy_change(store, store.definition_id, "categoria", NEW_CATEGORIES))

        assert result.fully_synced
        assert store.fields_of(INGREDIENT_TYPE, "spinach")["categoria"] == ""
        assert store.fields_of(INGREDIENT_TYPE, "rice")["categoria"] == "Base"
        assert result.step(STEP_INGREDIENTS).attempted == 2

    def test_malformed_stored_data_is_treated_as_empty(self, store):
        store.shop_state["category_order"] = "{not json"
        store.add_template("broken", "[[[")

        result = run(apply_taxonomy_change(store, store.definition_id, "categoria", NEW_CATEGORIES))

        assert result.success
        assert json.loads(store.shop_state["category_order"]) == NEW_CATEGORIES
        assert limits_of(store, "broken") == {"Base": "0", "Protein": "0", "Topping": "0"}


class TestVocabularyFailure:
    """Step 1 failures abort without side effects."""

    def test_collaborator_rejection(self, store):
        store.definition_errors = [FieldError(field="validations", message="Too many choices")]
        before_order = store.shop_state["category_order"]

        result = run(apply_taxonomy_change(store, store.definition_id, "categoria", NEW_CATEGORIES))

        assert not result.success
        assert result.errors[0].message == "Too many choices"
        assert result.step(STEP_PERSIST).status == FAILED
        assert len(result.steps) == 1
        assert store.shop_state["category_order"] == before_order
        assert "write_shop_ordering_state" not in store.calls
        assert not any(call.startswith("update_record") for call in store.calls)

    def test_duplicate_choices_rejected_before_store(self, store):
        result = run(apply_taxonomy_change(store, store.definition_id, "categoria", ["Base", "Base"]))

        assert not result.success
        assert result.errors[0].field == "categoria.1"
        assert "update_field_definition" not in store.calls

    def test_blank_choice_rejected(self, store):
        result = run(apply_taxonomy_change(store, store.definition_id, "categoria", ["Base", "  "]))

        assert not result.success
        assert "blank" in result.errors[0].message

    def test_unexpected_store_error(self, store):
        store.raise_on_definition_update = True

        result = run(apply_taxonomy_change(store, store.definition_id, "categoria", NEW_CATEGORIES))

        assert not result.success
        assert result.errors[0].field is None
        assert store.choices["categoria"] == ["Base", "Protein", "Legacy"]


class TestOrderResyncFailure:
    """Step 2 failures stop the cascade but step 1 stays committed."""

    def test_order_write_rejected(self, store):
        store.shop_write_errors = [FieldError(field="value", message="Invalid JSON")]

        result = run(apply_taxonomy_change(store, store.definition_id, "categoria", NEW_CATEGORIES))

        assert not result.success
        assert result.errors[0].message == "Invalid JSON"
        assert store.choices["categoria"] == NEW_CATEGORIES
        assert result.step(STEP_INGREDIENTS).status == SKIPPED
        assert result.step(STEP_TEMPLATE_LIMITS).status == SKIPPED
        assert not any(call.startswith("update_record") for call in store.calls)

    def test_order_write_raises(self, store):
        store.raise_on_shop_write = True

        result = run(apply_taxonomy_change(store, store.definition_id, "categoria", NEW_CATEGORIES))

        assert not result.success
        assert result.step(STEP_CATEGORY_ORDER).status == FAILED


class TestCleanupFailures:
    """Steps 3 and 4 failures are logged, never surfaced."""

    def test_single_ingredient_failure_does_not_block_siblings(self, store):
        store.add_ingredient("bacon", category="Legacy")
        store.failing_updates.add("croutons")

        result = run(apply_taxonomy_change(store, store.definition_id, "categoria", NEW_CATEGORIES))

        assert result.success
        assert not result.errors
        assert not result.fully_synced
        step = result.step(STEP_INGREDIENTS)
        assert step.status == PARTIAL
        assert (step.attempted, step.failed) == (2, 1)
        assert store.fields_of(INGREDIENT_TYPE, "bacon")["categoria"] == ""
        assert store.fields_of(INGREDIENT_TYPE, "croutons")["categoria"] == "Legacy"
        # Template step still ran
        assert result.step(STEP_TEMPLATE_LIMITS).status == OK

    def test_rejected_template_update_is_counted(self, store):
        store.rejected_updates.add("mini")

        result = run(apply_taxonomy_change(store, store.definition_id, "categoria", NEW_CATEGORIES))

        assert result.success
        step = result.step(STEP_TEMPLATE_LIMITS)
        assert step.status == PARTIAL
        assert limits_of(store, "mini") == {"Base": "1"}

    def test_unreadable_collection(self, store):
        store.unreadable_types.add(INGREDIENT_TYPE)

        result = run(apply_taxonomy_change(store, store.definition_id, "categoria", NEW_CATEGORIES))

        assert result.success
        assert result.step(STEP_INGREDIENTS).status == FAILED
        assert result.step(STEP_TEMPLATE_LIMITS).status == OK

    def test_next_run_heals(self, store):
        store.failing_updates.add("croutons")
        run(apply_taxonomy_change(store, store.definition_id, "categoria", NEW_CATEGORIES))
        store.failing_updates.clear()

        result = run(apply_taxonomy_change(store, store.definition_id, "categoria", NEW_CATEGORIES))

        assert result.fully_synced
        assert store.fields_of(INGREDIENT_TYPE, "croutons")["categoria"] == ""


class TestOtherFields:
    """Non-category vocabularies only persist the choices."""

    def test_allergen_change_skips_dependent_steps(self, store):
        result = run(apply_taxonomy_change(store, store.definition_id, "alergenos", ["Gluten", "Nuts"]))

        assert result.success
        assert store.choices["alergenos"] == ["Gluten", "Nuts"]
        assert [s.status for s in result.steps] == [OK, SKIPPED, SKIPPED, SKIPPED]
        assert "write_shop_ordering_state" not in store.calls


class TestFanOutLimit:
    """Fan-out can be bounded through configuration."""

    def test_bounded_fan_out_updates_everything(self, store, monkeypatch, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("CASCADE_FANOUT_LIMIT=1\n")
        monkeypatch.setenv("CASCADE_FANOUT_LIMIT", "1")
        config = Config(str(env_file))
        for index in range(5):
            store.add_ingredient(f"old-{index}", category="Legacy")

        propagator = CascadePropagator(store, config=config)
        assert propagator.fanout_limit == 1
        result = run(propagator.apply(store.definition_id, "categoria", NEW_CATEGORIES))

        assert result.step(STEP_INGREDIENTS).attempted == 6
        assert result.step(STEP_INGREDIENTS).status == OK

    def test_to_dict(self, store):
        result = run(apply_taxonomy_change(store, store.definition_id, "categoria", NEW_CATEGORIES))
        data = result.to_dict()
        assert data["success"] is True
        assert data["removed"] == ["Legacy"]
        assert [s["name"] for s in data["steps"]] == [
            STEP_PERSIST, STEP_CATEGORY_ORDER, STEP_INGREDIENTS, STEP_TEMPLATE_LIMITS,
        ]

    @patch("bowl_builder.taxonomy.cascade.logger")
    def test_cleanup_failure_is_logged(self, mock_logger, store):
        store.failing_updates.add("croutons")
        run(apply_taxonomy_change(store, store.definition_id, "categoria", NEW_CATEGORIES))
        messages = [call.args[0] for call in mock_logger.warning.call_args_list]
        assert any("croutons" in message for message in messages)
