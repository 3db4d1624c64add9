# File: restgen/exceptions.py
"""
RestGen - Exception Hierarchy
==============================
Every error raised by the package derives from ``RestGenError`` so that
callers can catch the whole family at once.  The orchestrator inspects the
*type* of a failure (never its message text) to decide whether registration
may continue in a degraded mode.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from restgen.validators import ValidationResult


class RestGenError(Exception):
    """Base class for all RestGen errors."""


class ConfigError(RestGenError):
    """Raised when a configuration override is unknown or invalid."""


class PathNotFoundError(RestGenError):
    """
    A configured directory does not exist.

    ``setting`` names the configuration option the user should fix
    (e.g. ``policy_path`` or ``model_path``).
    """

    def __init__(self, path: str, setting: str) -> None:
        self.path: str = path
        self.setting: str = setting
        super().__init__(f"No such file or directory: '{path}' (setting '{setting}').")


class SchemaValidationError(RestGenError):
    """Raised when the cross-schema validation pipeline reports errors."""

    def __init__(self, result: "ValidationResult") -> None:
        self.result = result
        super().__init__(result.format_report())


class SchemaNotFoundError(RestGenError, KeyError):
    """Raised when a schema name is absent from the registry."""

    def __init__(self, name: str) -> None:
        self.name: str = name
        super().__init__(f"Schema '{name}' not found.")

    def __str__(self) -> str:
        return self.args[0]


class DatabaseConnectionError(RestGenError):
    """Base class for request-scoped connection lookup failures."""


class NoConnectionsError(DatabaseConnectionError):
    """No default connection exists on the request context."""

    def __init__(self) -> None:
        super().__init__("No database connections found.")


class ConnectionNotFoundError(DatabaseConnectionError):
    """A named, non-default connection is absent from the request context."""

    def __init__(self, name: str) -> None:
        self.name: str = name
        super().__init__(f"Connection '{name}' does not exist.")


class DocumentNotFoundError(RestGenError):
    """Raised by handler helpers when a document id does not resolve."""

    def __init__(self, model_name: str, document_id: Optional[str]) -> None:
        self.model_name: str = model_name
        self.document_id: Optional[str] = document_id
        super().__init__(f"{model_name} '{document_id}' not found.")


class PolicyError(RestGenError):
    """Raised for duplicate or unknown policies."""


class PluginError(RestGenError):
    """Raised when a plugin cannot be registered on the application."""


class RegistrationError(RestGenError):
    """Raised when a registration stage aborts without an underlying exception."""


__all__ = [
    "ConfigError",
    "ConnectionNotFoundError",
    "DatabaseConnectionError",
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
