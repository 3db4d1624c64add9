# File: restgen/connections.py
"""
RestGen - Connection Manager
=============================
Named database connections living on a request context.

Connections are opened lazily, at most once per name and request context.
Pooling and reconnection belong to the driver; this layer only resolves
parameters, caches the live handle by name and reports lookups that fail.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional

from restgen.config import Config, ConnectionParams, resolve_connection_params
from restgen.drivers import Driver
from restgen.exceptions import ConnectionNotFoundError, NoConnectionsError

if TYPE_CHECKING:
    from restgen.context import BoundModel, RequestContext

logger: logging.Logger = logging.getLogger("restgen.connections")

# Merged underneath every caller-supplied driver option
SAFE_DRIVER_OPTIONS: Dict[str, Any] = {"pool_pre_ping": True}


@dataclass(eq=False)
class Connection:
    """A live, named connection plus the models bound to it."""

    name: str
    handle: Any
    models: Dict[str, "BoundModel"] = field(default_factory=dict)

    @property
    def is_live(self) -> bool:
        return self.handle is not None

    def __repr__(self) -> str:
        return f"<Connection {self.name}: {len(self.models)} model(s)>"


class ConnectionManager:
    """
    Opens and looks up connections for request contexts.

    Args:
        config: The shared configuration (read at call time).
        get_driver: Returns the driver to open connections with.
        on_driver: Called with the driver after each successful open so the
            owner can expose it to other subsystems.
    """

    def __init__(
        self,
        config: Config,
        get_driver: Callable[[], Driver],
        on_driver: Optional[Callable[[Driver], None]] = None,
    ) -> None:
        self.config: Config = config
        self._get_driver: Callable[[], Driver] = get_driver
        self._on_driver: Optional[Callable[[Driver], None]] = on_driver

    async def connect(
        self,
        overrides: Optional[Mapping[str, Any]],
        context: "RequestContext",
    ) -> Connection:
        """
        Open (or reuse) the connection described by ``overrides``.

        Raises:
            ConfigError: If ``overrides`` holds unknown or invalid options.
            Exception: Whatever the driver raises when opening fails.
        """
        params: ConnectionParams = resolve_connection_params(self.config.database, overrides)
        log = context.logger

        existing: Optional[Connection] = context.connections.get(params.name)
        if existing is not None and existing.is_live:
            log.warning("Connection '%s' already exists; reusing it.", params.name)
            return existing

        options: Dict[str, Any] = {**SAFE_DRIVER_OPTIONS, **params.options}
        if params.username is not None:
            options["username"] = params.username
        if params.password is not None:
            options["password"] = params.password.get_secret_value()
        options["create_tables"] = params.create_tables

        driver: Driver = self._get_driver()
        log.debug("Opening connection %s", params.loggable())
        handle: Any = await driver.create_connection(params.uri, options)

        connection: Connection = Connection(name=params.name, handle=handle)
        context.connections[params.name] = connection
        if self._on_driver is not None:
            self._on_driver(driver)
        log.info("Connection '%s' opened.", params.name)
        return connection

    def get_connection(
        self,
        name: Optional[str],
        context: "RequestContext",
    ) -> Connection:
        """
        Look up a connection on ``context``.

        Raises:
            NoConnectionsError: The default connection is absent.
            ConnectionNotFoundError: A named connection is absent.
        """
        default: str = self.config.database.default_connection
        if not name or name == default:
            connection: Optional[Connection] = context.connections.get(default)
            if connection is None:
                raise NoConnectionsError()
            return connection

        connection = context.connections.get(name)
        if connection is None:
            raise ConnectionNotFoundError(name)
        return connection


__all__ = ["Connection", "ConnectionManager", "SAFE_DRIVER_OPTIONS"]
