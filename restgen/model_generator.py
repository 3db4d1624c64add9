# File: restgen/model_generator.py
"""
RestGen - Schema Build Collaborator
====================================
Turns schema declarations into registry entries::

    schema files / inline definitions → ModelSchema → validate_schemas
        → driver.build_schema → {name: SchemaDefinition}

Error handling strategy:
    - A missing model directory, or a missing policy directory while
      policies are enabled, raises ``PathNotFoundError`` naming the setting
      to fix.  The orchestrator treats exactly this type as recoverable.
    - Unparseable files raise ``ValueError`` with the file path.
    - Semantic errors across schemas raise ``SchemaValidationError``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import yaml
from pydantic import ValidationError

from restgen.config import Config
from restgen.drivers import Driver
from restgen.exceptions import PathNotFoundError, SchemaValidationError
from restgen.models import ModelSchema, SchemaDefinition, SchemaMap
from restgen.policies import resolve_policy_directory
from restgen.utils import resolve_directory
from restgen.validators import ValidationResult, validate_schemas

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("restgen.model_generator")

SCHEMA_SUFFIXES = (".json", ".yaml", ".yml")

SchemaInput = Union[ModelSchema, Mapping[str, Any]]


# ---------------------------------------------------------------------------
# Schema file loaders
# ---------------------------------------------------------------------------


def _load_json_file(path: Path) -> Any:
    """Load and parse a JSON file. Raises ValueError on parse errors."""
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc


def _load_yaml_file(path: Path) -> Any:
    """Load and parse a YAML file. Raises ValueError on parse errors."""
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc


def load_schema_file(path: Path) -> List[ModelSchema]:
    """
    Load one schema file (JSON or YAML).

    A file holds either a single schema mapping or a mapping with a
    ``schemas:`` list.

    Raises:
        ValueError: If the file can't be parsed or doesn't validate.
    """
    data: Any = _load_yaml_file(path) if path.suffix.lower() in (".yaml", ".yml") else _load_json_file(path)

    if isinstance(data, Mapping) and "schemas" in data:
        items: Any = data["schemas"]
    else:
        items = [data]
    if not isinstance(items, list) or not all(isinstance(i, Mapping) for i in items):
        raise ValueError(f"Expected a schema mapping or a 'schemas' list in {path}.")

    try:
        return [ModelSchema.model_validate(item) for item in items]
    except ValidationError as exc:
        raise ValueError(f"Schema validation failed for {path}: {exc}") from exc


def load_schema_directory(directory: Path) -> List[ModelSchema]:
    """
    Load every schema file of ``directory`` in name order.

    Raises:
        PathNotFoundError: If the directory does not exist.
    """
    if not directory.is_dir():
        raise PathNotFoundError(str(directory), setting="model_path")

    schemas: List[ModelSchema] = []
    for path in sorted(directory.iterdir()):
        if path.is_file() and path.suffix.lower() in SCHEMA_SUFFIXES:
            loaded = load_schema_file(path)
            logger.debug("Loaded %d schema(s) from %s", len(loaded), path.name)
            schemas.extend(loaded)
    return schemas


def coerce_definitions(definitions: Iterable[SchemaInput]) -> List[ModelSchema]:
    """Accept ``ModelSchema`` objects or plain mappings."""
    return [
        d if isinstance(d, ModelSchema) else ModelSchema.model_validate(d)
        for d in definitions
    ]


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def generate_models(
    driver: Driver,
    log: Any,
    config: Config,
    definitions: Optional[Sequence[SchemaInput]] = None,
) -> SchemaMap:
    """
    Build the name → ``SchemaDefinition`` mapping.

    Args:
        driver: Produces construction data via ``build_schema``.
        log: Logger (usually a ``LabeledLogger``) for progress messages.
        config: Active configuration (model and policy locations).
        definitions: Inline declarations; when given, the model directory
            is not read.
    """
    if config.enable_policies:
        policy_dir: Path = resolve_policy_directory(config)
        if not policy_dir.is_dir():
            raise PathNotFoundError(str(policy_dir), setting="policy_path")

    if definitions is not None:
        schemas: List[ModelSchema] = coerce_definitions(definitions)
    else:
        model_dir: Path = resolve_directory(config.model_path, config.absolute_model_path)
        log.debug("Loading schemas from %s", model_dir)
        schemas = load_schema_directory(model_dir)

    result: ValidationResult = validate_schemas(schemas)
    for warning in result.warnings:
        log.warning("%s", warning)
    if result.has_errors:
        raise SchemaValidationError(result)

    registry: Dict[str, SchemaDefinition] = {}
    for schema in schemas:
        registry[schema.name] = SchemaDefinition(
            definition=schema,
            schema=driver.build_schema(schema),
        )
        log.debug("Generated model %s", schema.name)

    log.info("%d model(s) generated.", len(registry))
    return registry


__all__ = [
    "SchemaInput",
    "coerce_definitions",
    "generate_models",
    "load_schema_directory",
    "load_schema_file",
]
