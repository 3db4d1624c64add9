# File: restgen/validators.py
"""
RestGen - Cross-Schema Validators
==================================
A **pure-function validation pipeline** operating on ``ModelSchema``
declarations.

Pydantic handles per-field and per-model structural correctness.  This
module adds the checks that need the *whole set* of schemas: unique model
names, association targets, foreign fields, field references and reserved
names.

Usage by downstream modules::

    from restgen.validators import validate_schemas
    result = validate_schemas(schemas)
    if result.has_errors:
        raise SchemaValidationError(result)
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Sequence

from restgen.models import ID_FIELD, AssociationType, ModelSchema
from restgen.utils import is_identifier

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("restgen.validators")

# ---------------------------------------------------------------------------
# Validation result container
# ---------------------------------------------------------------------------


class ValidationIssue:
    """Lightweight issue descriptor (no Pydantic overhead)."""

    __slots__ = ("level", "code", "message", "context")

    def __init__(
        self,
        level: str,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.level: str = level  # "error" | "warning"
        self.code: str = code
        self.message: str = message
        self.context: Dict[str, Any] = context or {}

    @property
    def is_error(self) -> bool:
        return self.level == "error"

    @property
    def is_warning(self) -> bool:
        return self.level == "warning"

    def __repr__(self) -> str:
        return f"[{self.level.upper()}] {self.code}: {self.message}"

    def __str__(self) -> str:
        return self.__repr__()


class ValidationResult:
    """Accumulates ``ValidationIssue`` instances produced by the pipeline."""

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: List[ValidationIssue] = []

    # -- Mutation -----------------------------------------------------------

    def add_error(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationIssue("error", code, message, context))

    def add_warning(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationIssue("warning", code, message, context))

    def merge(self, other: "ValidationResult") -> None:
        self._items.extend(other._items)

    # -- Query --------------------------------------------------------------

    @property
    def errors(self) -> List[ValidationIssue]:
        return [e for e in self._items if e.is_error]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [e for e in self._items if e.is_warning]

    @property
    def has_errors(self) -> bool:
        return any(e.is_error for e in self._items)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    def codes(self) -> List[str]:
        return [e.code for e in self._items]

    def summary(self) -> str:
        return (
            f"Validation: {len(self.errors)} error(s), "
            f"{len(self.warnings)} warning(s)."
        )

    def __repr__(self) -> str:
        return f"<ValidationResult {self.summary()}>"

    def __bool__(self) -> bool:
        """Truthy when there are NO errors (i.e. valid)."""
        return self.is_valid

    def __len__(self) -> int:
        return len(self._items)

    def format_report(self) -> str:
        """Human-readable multi-line report."""
        lines: List[str] = [self.summary()]
        for item in self._items:
            prefix: str = "✗" if item.is_error else "⚠"
            lines.append(f"  {prefix} [{item.code}] {item.message}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Patterns & reserved names
# ---------------------------------------------------------------------------

_PASCAL_CASE_RE: re.Pattern[str] = re.compile(r"^[A-Z][a-zA-Z0-9]*$")

# Names taken by the generated routes or the storage layer
_RESERVED_FIELD_NAMES: FrozenSet[str] = frozenset({ID_FIELD, "limit", "skip", "sort"})


# ---------------------------------------------------------------------------
# Individual validation functions
# ---------------------------------------------------------------------------


def validate_model_names(schemas: Sequence[ModelSchema]) -> ValidationResult:
    """Model names must be unique; non-PascalCase names only warn."""
    result: ValidationResult = ValidationResult()
    seen: Dict[str, int] = {}
    collections: Dict[str, str] = {}

    for schema in schemas:
        seen[schema.name] = seen.get(schema.name, 0) + 1
        if not _PASCAL_CASE_RE.match(schema.name):
            result.add_warning(
                "MODEL_NAME_NOT_PASCAL",
                f"Model name '{schema.name}' is not PascalCase.",
                {"model": schema.name},
            )
        collection: str = schema.collection_name or ""
        owner: Optional[str] = collections.get(collection)
        if owner is not None and owner != schema.name:
            result.add_error(
                "DUPLICATE_COLLECTION",
                f"Models '{owner}' and '{schema.name}' share collection '{collection}'.",
                {"collection": collection},
            )
        collections[collection] = schema.name

    for name, count in seen.items():
        if count > 1:
            result.add_error(
                "DUPLICATE_MODEL",
                f"Model '{name}' is declared {count} times.",
                {"model": name},
            )
    return result


def validate_field_names(schemas: Sequence[ModelSchema]) -> ValidationResult:
    """Field names must be identifiers and must not shadow reserved names."""
    result: ValidationResult = ValidationResult()
    for schema in schemas:
        for f in schema.fields:
            if not is_identifier(f.name):
                result.add_error(
                    "INVALID_FIELD_NAME",
                    f"Field '{schema.name}.{f.name}' is not a valid identifier.",
                    {"model": schema.name, "field": f.name},
                )
            elif f.name in _RESERVED_FIELD_NAMES:
                result.add_error(
                    "RESERVED_FIELD_NAME",
                    f"Field '{schema.name}.{f.name}' uses a reserved name.",
                    {"model": schema.name, "field": f.name},
                )
    return result


def validate_references(schemas: Sequence[ModelSchema]) -> ValidationResult:
    """``reference`` must point at a declared model."""
    result: ValidationResult = ValidationResult()
    names: FrozenSet[str] = frozenset(s.name for s in schemas)
    for schema in schemas:
        for f in schema.fields:
            if f.reference and f.reference not in names:
                result.add_error(
                    "UNKNOWN_REFERENCE",
                    f"Field '{schema.name}.{f.name}' references unknown model "
                    f"'{f.reference}'.",
                    {"model": schema.name, "field": f.name},
                )
    return result


def validate_associations(schemas: Sequence[ModelSchema]) -> ValidationResult:
    """Association targets and foreign fields must exist."""
    result: ValidationResult = ValidationResult()
    by_name: Dict[str, ModelSchema] = {s.name: s for s in schemas}

    for schema in schemas:
        assoc_names: List[str] = []
        for assoc in schema.associations:
            if assoc.name in assoc_names:
                result.add_error(
                    "DUPLICATE_ASSOCIATION",
                    f"Association '{schema.name}.{assoc.name}' is declared twice.",
                )
            assoc_names.append(assoc.name)

            target: Optional[ModelSchema] = by_name.get(assoc.model)
            if target is None:
                result.add_error(
                    "UNKNOWN_ASSOCIATION_MODEL",
                    f"Association '{schema.name}.{assoc.name}' targets unknown "
                    f"model '{assoc.model}'.",
                    {"model": schema.name, "association": assoc.name},
                )
                continue

            # one_many: the foreign field lives on the target
            holder: ModelSchema = target if assoc.type == AssociationType.ONE_MANY else schema
            if holder.get_field(assoc.foreign_field) is None:
                result.add_error(
                    "UNKNOWN_FOREIGN_FIELD",
                    f"Association '{schema.name}.{assoc.name}' uses foreign field "
                    f"'{assoc.foreign_field}' missing on '{holder.name}'.",
                    {"model": schema.name, "association": assoc.name},
                )
            if assoc.name in schema.field_names:
                result.add_warning(
                    "ASSOCIATION_SHADOWS_FIELD",
                    f"Association '{schema.name}.{assoc.name}' has the same name as a field.",
                )
    return result


def validate_schemas(schemas: Sequence[ModelSchema]) -> ValidationResult:
    """
    **Master validation entry point.** Runs every validator and merges the
    results.
    """
    result: ValidationResult = ValidationResult()

    validators: List[Callable[[Sequence[ModelSchema]], ValidationResult]] = [
        validate_model_names,
        validate_field_names,
        validate_references,
        validate_associations,
    ]

    for validator_fn in validators:
        logger.debug("Running validator: %s", validator_fn.__name__)
        result.merge(validator_fn(schemas))

    if result.has_errors:
        logger.error("Schema validation FAILED. %s", result.summary())
    else:
        logger.debug("Schema validation passed. %s", result.summary())
    return result


__all__: List[str] = [
    "ValidationIssue",
    "ValidationResult",
    "validate_associations",
    "validate_field_names",
    "validate_model_names",
    "validate_references",
    "validate_schemas",
]
