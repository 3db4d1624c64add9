# File: restgen/config.py
"""
RestGen - Configuration Models & Structural Merge
==================================================
Pydantic V2 models describing every option the registration pipeline
understands, plus ``merge_config`` which deep-merges user overrides into
a *shared* configuration object in place.

Every option may be given by its snake_case field name or by the camelCase
alias of the public option surface (``disableSwagger``, ``mongo.URI``...).
Unknown keys are rejected so that typos surface at startup.

Usage::

    from restgen.config import Config, merge_config
    config = Config()
    merge_config(config, {"mongo": {"URI": "sqlite+aiosqlite:///app.db"}})
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Literal, Mapping, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
)

from restgen.exceptions import ConfigError

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("restgen.config")

# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

_SHARED_CONFIG: ConfigDict = ConfigDict(
    populate_by_name=True,
    validate_assignment=True,
    extra="forbid",
)

LOG_LEVELS: Dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
    "NONE": logging.CRITICAL + 10,
}


# ---------------------------------------------------------------------------
# Configuration models
# ---------------------------------------------------------------------------


class DatabaseConfig(BaseModel):
    """Default connection parameters used by ``RequestContext.connect``."""

    model_config = _SHARED_CONFIG

    default_connection: str = Field(
        default="default",
        alias="defaultConnection",
        min_length=1,
        description="Name of the connection used when none is given.",
    )
    uri: str = Field(
        default="sqlite+aiosqlite:///:memory:",
        alias="URI",
        description="Database URL handed to the driver.",
    )
    options: Dict[str, Any] = Field(
        default_factory=dict,
        description="Driver options merged over the safe defaults.",
    )
    username: Optional[str] = Field(default=None, alias="user")
    password: Optional[SecretStr] = Field(default=None, alias="pass")
    create_tables: bool = Field(
        default=True,
        alias="createTables",
        description="Create missing collections when a connection opens.",
    )


class ConnectionParams(BaseModel):
    """Fully resolved parameters for a single named connection."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1)
    uri: str = Field(..., alias="URI")
    options: Dict[str, Any] = Field(default_factory=dict)
    username: Optional[str] = Field(default=None, alias="user")
    password: Optional[SecretStr] = Field(default=None, alias="pass")
    create_tables: bool = Field(default=True, alias="createTables")

    def loggable(self) -> Dict[str, Any]:
        """Parameters safe to write to a log (credentials removed)."""
        return self.model_dump(exclude={"password"})


class Config(BaseModel):
    """
    Root configuration for a ``RestGen`` instance.

    One instance is shared by reference between the orchestrator, the
    connection manager and the loggers; mutate it with ``merge_config``.
    """

    model_config = _SHARED_CONFIG

    # -- Documentation metadata ---------------------------------------------
    app_title: str = Field(default="RestGen API", alias="appTitle")
    version: str = Field(default="1.0.0")

    # -- Logging ----------------------------------------------------------
    loglevel: str = Field(default="INFO", alias="logLevel")

    # -- Documentation ----------------------------------------------------
    disable_swagger: bool = Field(default=False, alias="disableSwagger")
    swagger_host: Optional[str] = Field(default=None, alias="swaggerHost")
    doc_expansion: Literal["none", "list", "full"] = Field(
        default="none", alias="docExpansion"
    )
    enable_swagger_ui: bool = Field(default=True, alias="enableSwaggerUI")
    enable_swagger_https: bool = Field(default=False, alias="enableSwaggerHttps")
    swagger_options: Dict[str, Any] = Field(
        default_factory=dict, alias="swaggerOptions"
    )

    # -- Policies ---------------------------------------------------------
    enable_policies: bool = Field(default=False, alias="enablePolicies")
    policy_path: str = Field(default="policies", alias="policyPath")
    absolute_policy_path: bool = Field(default=False, alias="absolutePolicyPath")

    # -- Schema & custom route locations ------------------------------------
    model_path: str = Field(default="models", alias="modelPath")
    absolute_model_path: bool = Field(default=False, alias="absoluteModelPath")
    api_path: str = Field(default="api", alias="apiPath")
    absolute_api_path: bool = Field(default=False, alias="absoluteApiPath")

    # -- List endpoints ---------------------------------------------------
    page_size: int = Field(default=20, ge=1, alias="pageSize")
    max_page_size: int = Field(default=100, ge=1, alias="maxPageSize")

    # -- Database ---------------------------------------------------------
    database: DatabaseConfig = Field(default_factory=DatabaseConfig, alias="mongo")

    @field_validator("loglevel")
    @classmethod
    def _known_level(cls, v: str) -> str:
        level: str = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(
                f"Unknown log level '{v}'. Expected one of: {', '.join(LOG_LEVELS)}."
            )
        return level

    @property
    def log_level_value(self) -> int:
        return LOG_LEVELS[self.loglevel]


# ---------------------------------------------------------------------------
# Merge helpers
# ---------------------------------------------------------------------------


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge two mappings into a new dict; ``override`` wins.

    Nested mappings are merged key by key, every other value is replaced.
    """
    merged: Dict[str, Any] = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _field_lookup(model_cls: type[BaseModel]) -> Dict[str, str]:
    """Map both field names and aliases to the canonical field name."""
    lookup: Dict[str, str] = {}
    for name, info in model_cls.model_fields.items():
        lookup[name] = name
        if info.alias:
            lookup[info.alias] = name
    return lookup


def merge_config(
    target: BaseModel,
    overrides: Optional[Mapping[str, Any] | BaseModel] = None,
) -> BaseModel:
    """
    Deep-merge ``overrides`` into ``target`` **in place** and return it.

    - Nested models merge recursively; they are never replaced wholesale
      by a partial mapping.
    - Dict-valued options (driver ``options``, ``swagger_options``) merge
      recursively via ``deep_merge``.
    - Every other leaf is assigned and validated.

    Raises:
        ConfigError: On unknown keys or values failing validation.
    """
    if not overrides:
        return target
    if isinstance(overrides, BaseModel):
        overrides = overrides.model_dump(exclude_unset=True)

    fields: Dict[str, str] = _field_lookup(type(target))
    for key, value in overrides.items():
        name: Optional[str] = fields.get(key)
        if name is None:
            raise ConfigError(
                f"Unknown configuration option '{key}' for {type(target).__name__}."
            )
        current: Any = getattr(target, name)
        try:
            if isinstance(current, BaseModel) and isinstance(value, Mapping):
                merge_config(current, value)
            elif isinstance(current, dict) and isinstance(value, Mapping):
                setattr(target, name, deep_merge(current, value))
            else:
                setattr(target, name, value)
        except ValidationError as exc:
            raise ConfigError(f"Invalid value for '{key}': {exc}") from exc
    return target


def resolve_connection_params(
    database: DatabaseConfig,
    overrides: Optional[Mapping[str, Any]] = None,
) -> ConnectionParams:
    """
    Build the parameters of one connection.

    Layers, lowest first: the configured database defaults, the default
    connection name, then the caller's override.
    """
    base: Dict[str, Any] = database.model_dump(exclude={"default_connection"})
    params: ConnectionParams = ConnectionParams(name=database.default_connection, **base)
    merge_config(params, overrides)
    return params


__all__ = [
    "Config",
    "ConnectionParams",
    "DatabaseConfig",
    "LOG_LEVELS",
    "deep_merge",
    "merge_config",
    "resolve_connection_params",
]
