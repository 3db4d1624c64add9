# File: restgen/__init__.py
"""
RestGen - REST APIs from Declared Data Schemas
===============================================

Registers a full REST surface (CRUD routes, payload validation, association
endpoints, live documentation and policies) on a FastAPI application from
a set of JSON/YAML schema declarations.

Architecture overview::

    ┌──────────────┐     ┌────────────────┐     ┌──────────────────┐
    │  CLI / Entry │────▶│    RestGen     │────▶│  RouteGenerator  │
    │   (cli.py)   │     │   (core.py)    │     │   (routes.py)    │
    └──────────────┘     └───────┬────────┘     └──────────────────┘
                                 │
              ┌──────────────────┼──────────────────┐
              ▼                  ▼                  ▼
       ┌────────────┐     ┌────────────┐     ┌────────────┐
       │  registry  │     │  context   │     │  policies  │
       │ + models   │     │ + conns    │     │  + docs    │
       └────────────┘     └────────────┘     └────────────┘

Usage::

    from fastapi import FastAPI
    from restgen import RestGen

    app = FastAPI()
    api = RestGen()
    await api.register(app, {"config": {"modelPath": "models"}})

Public API:
    - RestGen            - Registration orchestrator
    - Config             - Configuration model
    - ModelSchema        - Schema declaration model
    - SQLAlchemyDriver   - Default database driver
    - validate_schemas   - Cross-schema validation entry point
"""

from __future__ import annotations

__version__: str = "1.0.0"
__license__: str = "MIT"

from restgen.config import Config, DatabaseConfig, deep_merge, merge_config
from restgen.connections import Connection, ConnectionManager
from restgen.context import BoundModel, ModelResolver, RequestContext, RequestContextMiddleware
from restgen.core import PluginOptions, RestGen
from restgen.drivers import DocumentModel, Driver, SQLAlchemyDriver
from restgen.exceptions import (
    ConfigError,
    ConnectionNotFoundError,
    DocumentNotFoundError,
    NoConnectionsError,
    PathNotFoundError,
    PolicyError,
    PluginError,
    RegistrationError,
    RestGenError,
    SchemaNotFoundError,
    SchemaValidationError,
)
from restgen.log_util import LabeledLogger, get_logger
from restgen.models import (
    AssociationDefinition,
    AssociationType,
    FieldDefinition,
    FieldType,
    ModelSchema,
    RouteOptions,
    SchemaDefinition,
)
from restgen.registry import SchemaRegistry
from restgen.validation import SchemaValidator
from restgen.validators import ValidationResult, validate_schemas

__all__: list[str] = [
    # Version info
    "__version__",
    "__license__",
    # Orchestrator
    "PluginOptions",
    "RestGen",
    # Configuration
    "Config",
    "DatabaseConfig",
    "deep_merge",
    "merge_config",
    # Logging
    "LabeledLogger",
    "get_logger",
    # Schemas
    "AssociationDefinition",
    "AssociationType",
    "FieldDefinition",
    "FieldType",
    "ModelSchema",
    "RouteOptions",
    "SchemaDefinition",
    "SchemaRegistry",
    # Connections & models
    "BoundModel",
    "Connection",
    "ConnectionManager",
    "DocumentModel",
    "Driver",
    "ModelResolver",
    "RequestContext",
    "RequestContextMiddleware",
    "SQLAlchemyDriver",
    # Validation
    "SchemaValidator",
    "ValidationResult",
    "validate_schemas",
    # Errors
    "ConfigError",
    "ConnectionNotFoundError",
    "DocumentNotFoundError",
    "NoConnectionsError",
    "PathNotFoundError",
    "PluginError",
    "PolicyError",
    "RegistrationError",
    "RestGenError",
    "SchemaNotFoundError",
    "SchemaValidationError",
]
