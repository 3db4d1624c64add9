# File: restgen/context.py
"""
RestGen - Request Context & Model Resolution
=============================================
Every inbound HTTP request gets its own ``RequestContext`` holding:

- ``logger``       a labeled logger for the request;
- ``connections``  connection name → ``Connection`` (empty at first);
- ``models``       schema name → ``BoundModel`` on the default connection;
- ``connect()`` / ``model()`` accessors scoped to the request.

``RequestContextMiddleware`` attaches the context (and its members) to
``request.state`` before any route handler runs.

Usage inside a handler::

    await request.state.connect()
    users = request.state.model("User")
    replica = users.with_connection("replica")
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional

from starlette.types import ASGIApp, Receive, Scope, Send

from restgen.connections import Connection, ConnectionManager
from restgen.drivers import DocumentModel
from restgen.models import SchemaDefinition
from restgen.registry import SchemaRegistry

logger: logging.Logger = logging.getLogger("restgen.context")


# ---------------------------------------------------------------------------
# Bound model
# ---------------------------------------------------------------------------


class BoundModel:
    """
    A schema bound to one live connection.

    Data operations are delegated to the driver model; ``with_connection``
    re-resolves the same schema against another connection of the same
    request context.
    """

    __slots__ = ("name", "connection_name", "model", "_rebind")

    def __init__(
        self,
        name: str,
        connection_name: str,
        model: DocumentModel,
        rebind: Callable[[str, str], "BoundModel"],
    ) -> None:
        self.name: str = name
        self.connection_name: str = connection_name
        self.model: DocumentModel = model
        self._rebind: Callable[[str, str], BoundModel] = rebind

    def with_connection(self, connection_name: str) -> "BoundModel":
        return self._rebind(self.name, connection_name)

    def __getattr__(self, item: str) -> Any:
        # only reached for names missing on the wrapper itself
        if item.startswith("_") or item == "model":
            raise AttributeError(item)
        return getattr(self.model, item)

    def __repr__(self) -> str:
        return f"<BoundModel {self.name}@{self.connection_name}>"


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class ModelResolver:
    """Creates bound models once per (schema, connection) and reuses them."""

    def __init__(self, registry: SchemaRegistry, connections: ConnectionManager) -> None:
        self.registry: SchemaRegistry = registry
        self.connections: ConnectionManager = connections

    def get_model(
        self,
        name: str,
        connection_name: Optional[str],
        context: "RequestContext",
    ) -> BoundModel:
        """
        Raises:
            NoConnectionsError / ConnectionNotFoundError: From the lookup.
            SchemaNotFoundError: If ``name`` is not registered.
        """
        connection: Connection = self.connections.get_connection(connection_name, context)

        bound: Optional[BoundModel] = connection.models.get(name)
        if bound is None:
            entry: SchemaDefinition = self.registry.get(name)
            model: DocumentModel = connection.handle.model(
                name, entry.schema, entry.collection_name
            )
            bound = BoundModel(
                name,
                connection.name,
                model,
                lambda schema_name, other: self.get_model(schema_name, other, context),
            )
            connection.models[name] = bound
            logger.debug("Bound model %s to connection '%s'.", name, connection.name)

        if connection.name == self.connections.config.database.default_connection:
            context.models[name] = bound
        return bound


# ---------------------------------------------------------------------------
# Request context
# ---------------------------------------------------------------------------


class RequestContext:
    """Per-request state; never shared between requests."""

    def __init__(
        self,
        connections: ConnectionManager,
        resolver: ModelResolver,
        log: Any,
    ) -> None:
        self._manager: ConnectionManager = connections
        self._resolver: ModelResolver = resolver
        self.logger: Any = log
        self.connections: Dict[str, Connection] = {}
        self.models: Dict[str, BoundModel] = {}

    async def connect(self, overrides: Optional[Mapping[str, Any]] = None) -> Connection:
        return await self._manager.connect(overrides, self)

    def connection(self, name: Optional[str] = None) -> Connection:
        return self._manager.get_connection(name, self)

    def has_connection(self, name: Optional[str] = None) -> bool:
        key: str = name or self._manager.config.database.default_connection
        return key in self.connections

    def model(self, name: str, connection_name: Optional[str] = None) -> BoundModel:
        return self._resolver.get_model(name, connection_name, self)

    def as_state(self) -> Dict[str, Any]:
        return {
            "context": self,
            "logger": self.logger,
            "connections": self.connections,
            "models": self.models,
            "connect": self.connect,
            "model": self.model,
        }

    def __repr__(self) -> str:
        return f"<RequestContext connections={sorted(self.connections)}>"


ContextFactory = Callable[[Scope], RequestContext]


class RequestContextMiddleware:
    """Pure ASGI middleware attaching a fresh ``RequestContext`` per request."""

    def __init__(self, app: ASGIApp, factory: ContextFactory) -> None:
        self.app: ASGIApp = app
        self.factory: ContextFactory = factory

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        context: RequestContext = self.factory(scope)
        scope.setdefault("state", {}).update(context.as_state())
        await self.app(scope, receive, send)


__all__ = [
    "BoundModel",
    "ContextFactory",
    "ModelResolver",
    "RequestContext",
    "RequestContextMiddleware",
]
