"""MongoDB-backed catalog store used by the cascade and the admin tooling."""

from __future__ import annotations

import json
import os
from typing import Any, Dict, List, Mapping, Optional, Protocol

from bson import ObjectId
from pymongo import AsyncMongoClient

from ..utils.config import Config
from ..utils.logging import get_logger
from .codec import CATEGORY_ORDER_KEY, INGREDIENT_ORDER_KEY, decode_string_list
from .models import FieldDefinition, FieldError, MutationResult, RawRecord

logger = get_logger(__name__)

METAOBJECTS = "metaobjects"
DEFINITIONS = "metaobject_definitions"
SHOP_METAFIELDS = "shop_metafields"
METAFIELD_NAMESPACE = "custom"
CHOICES_VALIDATION = "choices"


class CatalogStore(Protocol):
    """Operations the core consumes from the persistence collaborator."""

    async def read_collection(self, record_type: str) -> List[RawRecord]: ...

    async def read_field_definition(self, record_type: str, field_key: str) -> FieldDefinition: ...

    async def update_field_definition(
        self, definition_id: str, field_key: str, choices: List[str]
    ) -> MutationResult: ...

    async def create_record(
        self, record_type: str, fields: Mapping[str, str], handle: Optional[str] = None
    ) -> MutationResult: ...

    async def update_record(self, record_type: str, record_id: str, fields: Mapping[str, str]) -> MutationResult: ...

    async def delete_record(self, record_type: str, record_id: str) -> MutationResult: ...

    async def read_shop_ordering_state(self) -> Dict[str, Optional[str]]: ...

    async def write_shop_ordering_state(self, entries: List[Dict[str, str]]) -> MutationResult: ...


def validate_choices(field_key: str, choices: List[str]) -> List[FieldError]:
    """Reject blank and duplicated vocabulary entries."""
    errors: List[FieldError] = []
    seen = set()
    for index, choice in enumerate(choices):
        if not isinstance(choice, str) or not choice.strip():
            errors.append(FieldError(field=f"{field_key}.{index}", message="Choice can't be blank"))
            continue
        if choice in seen:
            errors.append(FieldError(field=f"{field_key}.{index}", message=f"Duplicate choice: {choice}"))
        seen.add(choice)
    return errors


def to_raw_record(document: Mapping[str, Any]) -> RawRecord:
    """Convert a metaobject document into a string-only :class:`RawRecord`."""
    fields = {
        str(key): "" if value is None else str(value)
        for key, value in (document.get("fields") or {}).items()
    }
    return RawRecord(id=str(document["_id"]), fields=fields, handle=document.get("handle"))


def id_filter(record_id: str) -> Any:
    """Match a stringified id against both its ObjectId and plain string form."""
    if ObjectId.is_valid(record_id):
        return {"$in": [ObjectId(record_id), record_id]}
    return record_id


def choices_from_definition(document: Mapping[str, Any], field_key: str) -> List[str]:
    for field_def in document.get("fieldDefinitions", []):
        if field_def.get("key") != field_key:
            continue
        for validation in field_def.get("validations", []):
            if validation.get("name") == CHOICES_VALIDATION:
                return decode_string_list(validation.get("value"), context=f"{field_key} choices")
    return []


class MongoCatalogStore:
    def __init__(
        self,
        url: Optional[str] = None,
        db_name: Optional[str] = None,
        connection_url_env_key: Optional[str] = None,
        config: Optional[Config] = None,
    ) -> None:
        config = config or Config(".env")

        if connection_url_env_key:
            self._url = os.getenv(connection_url_env_key) or config.get("mongo_url")
        else:
            self._url = url or config.get("mongo_url")

        self._db_name = db_name or config.get("mongo_db")
        if not self._url:
            raise ValueError("DB_CONNECTION_URL is required")
        self._client: Optional[AsyncMongoClient] = None

    async def __aenter__(self) -> "MongoCatalogStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    async def connect(self) -> None:
        if self._client is None:
            self._client = AsyncMongoClient(self._url, serverSelectionTimeoutMS=5000)

    async def disconnect(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def _collection(self, name: str):
        if self._client is None:
            await self.connect()
        return self._client[self._db_name][name]

    async def read_collection(self, record_type: str) -> List[RawRecord]:
        coll = await self._collection(METAOBJECTS)
        documents = await coll.find({"type": record_type}).sort("_id", 1).to_list(length=None)
        return [to_raw_record(doc) for doc in documents]

    async def read_field_definition(self, record_type: str, field_key: str) -> FieldDefinition:
        coll = await self._collection(DEFINITIONS)
        document = await coll.find_one({"type": record_type})
        if not document:
            raise ValueError(f"Definition for record type {record_type} not found")
        return FieldDefinition(
            id=str(document["_id"]),
            key=field_key,
            validation_choices=choices_from_definition(document, field_key),
        )

    async def update_field_definition(
        self, definition_id: str, field_key: str, choices: List[str]
    ) -> MutationResult:
        errors = validate_choices(field_key, choices)
        if errors:
            return MutationResult(id=definition_id, user_errors=errors)

        coll = await self._collection(DEFINITIONS)
        document = await coll.find_one({"_id": id_filter(definition_id)})
        if not document:
            return MutationResult(
                id=definition_id,
                user_errors=[FieldError(field="id", message=f"Definition {definition_id} does not exist")],
            )

        field_definitions = document.get("fieldDefinitions", [])
        target = next((f for f in field_definitions if f.get("key") == field_key), None)
        if target is None:
            return MutationResult(
                id=definition_id,
                user_errors=[FieldError(field=field_key, message=f"Unknown field {field_key}")],
            )
        validations = [v for v in target.get("validations", []) if v.get("name") != CHOICES_VALIDATION]
        validations.append({"name": CHOICES_VALIDATION, "value": json.dumps(list(choices))})
        target["validations"] = validations

        await coll.update_one({"_id": id_filter(definition_id)}, {"$set": {"fieldDefinitions": field_definitions}})
        logger.debug(f"Definition {definition_id} field {field_key} now has {len(choices)} choices")
        return MutationResult(id=definition_id)

    async def create_record(
        self, record_type: str, fields: Mapping[str, str], handle: Optional[str] = None
    ) -> MutationResult:
        coll = await self._collection(METAOBJECTS)
        if handle and await coll.find_one({"type": record_type, "handle": handle}):
            return MutationResult(user_errors=[FieldError(field="handle", message="Handle is already taken")])
        record_id = ObjectId()
        await coll.insert_one({"_id": record_id, "type": record_type, "handle": handle, "fields": dict(fields)})
        return MutationResult(id=str(record_id))

    async def update_record(self, record_type: str, record_id: str, fields: Mapping[str, str]) -> MutationResult:
        coll = await self._collection(METAOBJECTS)
        update = {f"fields.{key}": value for key, value in fields.items()}
        result = await coll.update_one({"_id": id_filter(record_id), "type": record_type}, {"$set": update})
        if result.matched_count == 0:
            return MutationResult(
                id=record_id, user_errors=[FieldError(field="id", message=f"Record {record_id} does not exist")]
            )
        return MutationResult(id=record_id)

    async def delete_record(self, record_type: str, record_id: str) -> MutationResult:
        coll = await self._collection(METAOBJECTS)
        result = await coll.delete_one({"_id": id_filter(record_id), "type": record_type})
        if result.deleted_count == 0:
            return MutationResult(
                id=record_id, user_errors=[FieldError(field="id", message=f"Record {record_id} does not exist")]
            )
        return MutationResult(id=record_id)

    async def read_shop_ordering_state(self) -> Dict[str, Optional[str]]:
        coll = await self._collection(SHOP_METAFIELDS)
        state: Dict[str, Optional[str]] = {CATEGORY_ORDER_KEY: None, INGREDIENT_ORDER_KEY: None}
        for key in state:
            document = await coll.find_one({"_id": f"{METAFIELD_NAMESPACE}.{key}"})
            if document:
                state[key] = document.get("value")
        return state

    async def write_shop_ordering_state(self, entries: List[Dict[str, str]]) -> MutationResult:
        coll = await self._collection(SHOP_METAFIELDS)
        errors = [
            FieldError(field="key", message="Metafield key can't be blank")
            for entry in entries
            if not entry.get("key")
        ]
        if errors:
            return MutationResult(user_errors=errors)
        for entry in entries:
            await coll.update_one(
                {"_id": f"{METAFIELD_NAMESPACE}.{entry['key']}"},
                {"$set": {"value": entry["valueJson"], "type": "json"}},
                upsert=True,
            )
        return MutationResult()
