# File: restgen/validation.py
"""
RestGen - Payload Validation
=============================
Builds Pydantic request and response models from ``ModelSchema``
declarations at runtime.

For a schema ``User`` the validator produces four models:

- ``UserCreate``   required fields enforced, unknown keys rejected;
- ``UserUpdate``   every field optional (partial updates);
- ``UserRead``     the stored document including ``id``;
- ``UserList``     ``{docs, total, limit, skip}`` page of ``UserRead``.

A host application may install its own validator on ``app.state.validator``
before registration; any object implementing ``PayloadValidator`` is adopted
as-is.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import (
    Annotated,
    Any,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Tuple,
    Type,
    runtime_checkable,
)
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, create_model

from restgen.models import ID_FIELD, FieldDefinition, FieldType, ModelSchema

logger: logging.Logger = logging.getLogger("restgen.validation")

_PYTHON_TYPES: Dict[str, Any] = {
    FieldType.STRING.value: str,
    FieldType.TEXT.value: str,
    FieldType.INTEGER.value: int,
    FieldType.FLOAT.value: float,
    FieldType.BOOLEAN.value: bool,
    FieldType.DATE.value: date,
    FieldType.DATETIME.value: datetime,
    FieldType.UUID.value: UUID,
    FieldType.JSON.value: Any,
}

_STRICT: ConfigDict = ConfigDict(extra="forbid")


@dataclass(frozen=True)
class PayloadModels:
    create: Type[BaseModel]
    update: Type[BaseModel]
    read: Type[BaseModel]
    list: Type[BaseModel]


@runtime_checkable
class PayloadValidator(Protocol):
    """What the route generator needs from a validator."""

    def models_for(self, schema: ModelSchema) -> PayloadModels:
        """Return the payload models of ``schema``."""


# ---------------------------------------------------------------------------
# Field translation
# ---------------------------------------------------------------------------


def python_type(field_def: FieldDefinition) -> Any:
    kind: str = FieldType(field_def.type).value
    base: Any = _PYTHON_TYPES.get(kind, str)
    if base is str and field_def.max_length:
        return Annotated[str, Field(max_length=field_def.max_length)]
    return base


def _create_field(field_def: FieldDefinition) -> Tuple[Any, Any]:
    annotation: Any = python_type(field_def)
    if field_def.default is not None:
        return (annotation, Field(default=field_def.default, description=field_def.description))
    if field_def.required:
        return (annotation, Field(..., description=field_def.description))
    return (Optional[annotation], Field(default=None, description=field_def.description))


def _optional_field(field_def: FieldDefinition) -> Tuple[Any, Any]:
    return (Optional[python_type(field_def)], Field(default=None, description=field_def.description))


# ---------------------------------------------------------------------------
# Model builders
# ---------------------------------------------------------------------------


def build_create_model(schema: ModelSchema) -> Type[BaseModel]:
    fields: Dict[str, Any] = {f.name: _create_field(f) for f in schema.fields}
    return create_model(
        f"{schema.name}Create",
        __config__=_STRICT,
        __doc__=f"Create payload for {schema.name}",
        **fields,
    )


def build_update_model(schema: ModelSchema) -> Type[BaseModel]:
    """All fields optional; dump with ``exclude_unset`` for partial updates."""
    fields: Dict[str, Any] = {f.name: _optional_field(f) for f in schema.fields}
    return create_model(
        f"{schema.name}Update",
        __config__=_STRICT,
        __doc__=f"Update payload for {schema.name}",
        **fields,
    )


def build_read_model(schema: ModelSchema) -> Type[BaseModel]:
    fields: Dict[str, Any] = {ID_FIELD: (str, Field(..., description="Document id"))}
    fields.update({f.name: _optional_field(f) for f in schema.fields})
    return create_model(
        f"{schema.name}Read",
        __doc__=schema.description or f"Stored {schema.name} document",
        **fields,
    )


def build_list_model(schema: ModelSchema, read_model: Type[BaseModel]) -> Type[BaseModel]:
    return create_model(
        f"{schema.name}List",
        __doc__=f"Page of {schema.name} documents",
        docs=(List[read_model], Field(default_factory=list)),  # type: ignore[valid-type]
        total=(int, Field(..., description="Number of matching documents")),
        limit=(int, ...),
        skip=(int, 0),
    )


# ---------------------------------------------------------------------------
# Default validator
# ---------------------------------------------------------------------------


class SchemaValidator:
    """Default ``PayloadValidator``; models are built once per schema name."""

    name: str = "pydantic"

    def __init__(self) -> None:
        self._cache: Dict[str, PayloadModels] = {}

    def models_for(self, schema: ModelSchema) -> PayloadModels:
        models: Optional[PayloadModels] = self._cache.get(schema.name)
        if models is None:
            read: Type[BaseModel] = build_read_model(schema)
            models = PayloadModels(
                create=build_create_model(schema),
                update=build_update_model(schema),
                read=read,
                list=build_list_model(schema, read),
            )
            self._cache[schema.name] = models
            logger.debug("Built payload models for %s", schema.name)
        return models

    def validate(
        self,
        schema: ModelSchema,
        payload: Mapping[str, Any],
        *,
        partial: bool = False,
    ) -> Dict[str, Any]:
        """
        Validate a raw payload and return the values to store.

        Raises:
            pydantic.ValidationError: If the payload is invalid.
        """
        models: PayloadModels = self.models_for(schema)
        if partial:
            return models.update.model_validate(payload).model_dump(exclude_unset=True)
        return models.create.model_validate(payload).model_dump()

    def invalidate(self, name: Optional[str] = None) -> None:
        if name is None:
            self._cache.clear()
        else:
            self._cache.pop(name, None)

    def __repr__(self) -> str:
        return f"<SchemaValidator {self.name}: {len(self._cache)} schema(s)>"


__all__ = [
    "PayloadModels",
    "PayloadValidator",
    "SchemaValidator",
    "build_create_model",
    "build_list_model",
    "build_read_model",
    "build_update_model",
    "python_type",
]
