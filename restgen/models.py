# File: restgen/models.py
"""
RestGen - Schema Declaration Models
====================================
Pydantic V2 models representing the data schemas from which bound models
and REST routes are derived.  They are the single source of truth for the
whole pipeline: Schema Loading → Validation → Registry → Routes.

A schema file (JSON or YAML) maps one-to-one onto ``ModelSchema``::

    name: User
    collection_name: users
    fields:
      - {name: email, type: string, required: true, unique: true}
      - {name: age, type: integer}
    associations:
      - {name: posts, type: one_many, model: Post, foreign_field: author}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from restgen.utils import to_kebab_case, to_snake_case

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("restgen.models")

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class FieldType(str, Enum):
    """Supported field types for schema declarations."""

    STRING = "string"
    TEXT = "text"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    UUID = "uuid"
    JSON = "json"


class AssociationType(str, Enum):
    """Relationship cardinalities exposed as association endpoints."""

    ONE_MANY = "one_many"
    MANY_ONE = "many_one"


# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

_SHARED_CONFIG: ConfigDict = ConfigDict(
    populate_by_name=True,
    validate_assignment=True,
    use_enum_values=True,
    extra="forbid",
)

ID_FIELD: str = "id"


# ---------------------------------------------------------------------------
# Schema primitives
# ---------------------------------------------------------------------------


class FieldDefinition(BaseModel):
    """A single field of a schema."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1, description="Field name.")
    type: FieldType = Field(default=FieldType.STRING, description="Abstract field type.")
    required: bool = Field(default=False, description="Must be present on create.")
    default: Any = Field(default=None, description="Default value on create.")
    max_length: Optional[int] = Field(
        default=None, ge=1, alias="maxLength", description="Max length for strings."
    )
    unique: bool = Field(default=False)
    description: Optional[str] = Field(default=None)
    reference: Optional[str] = Field(
        default=None,
        description="Name of the schema whose id this field stores.",
    )

    def __repr__(self) -> str:
        return f"<FieldDefinition {self.name}: {self.type}>"


class AssociationDefinition(BaseModel):
    """
    A relationship exposed as ``GET /<collection>/{id}/<name>``.

    ``one_many``: documents of ``model`` whose ``foreign_field`` equals the
    owner id.  ``many_one``: the ``model`` document whose id is stored in the
    owner's ``foreign_field``.
    """

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1)
    type: AssociationType = Field(default=AssociationType.ONE_MANY)
    model: str = Field(..., min_length=1, description="Target schema name.")
    foreign_field: str = Field(..., min_length=1, alias="foreignField")


class RouteOptions(BaseModel):
    """Per-schema switches for the generated endpoints."""

    model_config = _SHARED_CONFIG

    path: Optional[str] = Field(
        default=None, description="Route prefix; defaults to the collection name."
    )
    allow_read: bool = Field(default=True, alias="allowRead")
    allow_create: bool = Field(default=True, alias="allowCreate")
    allow_update: bool = Field(default=True, alias="allowUpdate")
    allow_delete: bool = Field(default=True, alias="allowDelete")
    policies: List[str] = Field(
        default_factory=list, description="Policy names applied to every route."
    )


class ModelSchema(BaseModel):
    """
    Complete declaration of one data model.

    Every schema file (or inline definition) becomes exactly one
    ``ModelSchema`` instance.
    """

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1, description="Unique model name.")
    collection_name: Optional[str] = Field(default=None, alias="collectionName")
    description: Optional[str] = Field(default=None)
    fields: List[FieldDefinition] = Field(default_factory=list)
    associations: List[AssociationDefinition] = Field(default_factory=list)
    routes: RouteOptions = Field(default_factory=RouteOptions)

    @field_validator("fields")
    @classmethod
    def _unique_field_names(cls, v: List[FieldDefinition]) -> List[FieldDefinition]:
        names: List[str] = [f.name for f in v]
        dupes: List[str] = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"Duplicate field names detected: {dupes}")
        return v

    @model_validator(mode="after")
    def _default_collection_name(self) -> "ModelSchema":
        if not self.collection_name:
            # validate_assignment would re-enter this validator; bypass it.
            object.__setattr__(self, "collection_name", to_snake_case(self.name))
        return self

    @computed_field  # type: ignore[misc]
    @property
    def route_path(self) -> str:
        """URL prefix for the generated router, always with a leading slash."""
        path: str = self.routes.path or to_kebab_case(self.collection_name or self.name)
        return "/" + path.strip("/")

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    def get_field(self, name: str) -> Optional[FieldDefinition]:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def __repr__(self) -> str:
        return (
            f"<ModelSchema {self.name} ({len(self.fields)} fields, "
            f"{len(self.associations)} associations)>"
        )


# ---------------------------------------------------------------------------
# Registry entry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SchemaDefinition:
    """
    A registry entry: the declaration plus the driver's construction data.

    ``schema`` is whatever ``Driver.build_schema`` returned (a SQLAlchemy
    ``Table`` for the default driver) and is later handed back to
    ``handle.model(name, schema, collection_name)``.
    """

    definition: ModelSchema
    schema: Any

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def collection_name(self) -> str:
        return self.definition.collection_name or to_snake_case(self.definition.name)


SchemaMap = Dict[str, SchemaDefinition]


__all__ = [
    "AssociationDefinition",
    "AssociationType",
    "FieldDefinition",
    "FieldType",
    "ID_FIELD",
    "ModelSchema",
    "RouteOptions",
    "SchemaDefinition",
    "SchemaMap",
]
