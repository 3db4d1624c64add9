"""
tests/test_context.py
Unit tests for restgen.context (model resolution and request context).
"""

from __future__ import annotations

from typing import Any, Dict, List

import pytest
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient

from restgen.config import Config
from restgen.connections import ConnectionManager
from restgen.context import BoundModel, ModelResolver, RequestContext, RequestContextMiddleware
from restgen.exceptions import NoConnectionsError, SchemaNotFoundError
from restgen.log_util import get_logger
from restgen.registry import SchemaRegistry

pytestmark = pytest.mark.anyio


@pytest.fixture
async def resolver(
    anyio_backend: str, memory_driver: Any, schema_dicts: List[Dict[str, Any]]
) -> ModelResolver:
    config = Config(mongo={"URI": "mem://ctx"})
    registry = SchemaRegistry()
    await registry.resolve(memory_driver, get_logger("ctx", config), config, schema_dicts)
    manager = ConnectionManager(config, lambda: memory_driver)
    return ModelResolver(registry, manager)


def _context(resolver: ModelResolver) -> RequestContext:
    return RequestContext(resolver.connections, resolver, get_logger("ctx", resolver.connections.config))


async def test_get_model_is_cached(resolver: ModelResolver) -> None:
    context = _context(resolver)
    await context.connect()
    first = resolver.get_model("Author", None, context)
    second = resolver.get_model("Author", "default", context)
    assert isinstance(first, BoundModel)
    assert first is second
    assert context.connections["default"].models["Author"] is first
    assert context.models["Author"] is first


async def test_unknown_schema(resolver: ModelResolver) -> None:
    context = _context(resolver)
    await context.connect()
    with pytest.raises(SchemaNotFoundError):
        resolver.get_model("Publisher", None, context)
    assert "Publisher" not in context.connections["default"].models


async def test_connection_errors_propagate(resolver: ModelResolver) -> None:
    with pytest.raises(NoConnectionsError):
        resolver.get_model("Author", None, _context(resolver))


async def test_with_connection_rebinds(resolver: ModelResolver) -> None:
    context = _context(resolver)
    await context.connect()
    await context.connect({"name": "secondary", "URI": "mem://other"})

    authors = context.model("Author")
    other = authors.with_connection("secondary")

    assert other is not authors
    assert other.name == "Author"
    assert other.connection_name == "secondary"
    assert context.connections["secondary"].models["Author"] is other
    assert context.models["Author"] is authors
    assert other.with_connection("default") is authors


async def test_bound_model_delegates(resolver: ModelResolver) -> None:
    context = _context(resolver)
    await context.connect()
    authors = context.model("Author")
    created = await authors.insert_one({"name": "Ursula"})
    assert await authors.find_one(created["id"]) == created
    assert await authors.count() == 1


async def test_contexts_are_isolated(resolver: ModelResolver) -> None:
    first = _context(resolver)
    second = _context(resolver)
    await first.connect()
    assert first.has_connection()
    assert not second.has_connection()


async def test_middleware_attaches_state(resolver: ModelResolver) -> None:
    app = FastAPI()
    seen: List[RequestContext] = []
    app.add_middleware(RequestContextMiddleware, factory=lambda scope: _context(resolver))

    @app.get("/inspect")
    async def inspect_state(request: Request) -> Dict[str, Any]:
        seen.append(request.state.context)
        await request.state.connect()
        model = request.state.model("Book")
        return {
            "connections": sorted(request.state.connections),
            "models": sorted(request.state.models),
            "model": model.name,
            "same_logger": request.state.logger is request.state.context.logger,
        }

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        first = (await client.get("/inspect")).json()
        await client.get("/inspect")

    assert first == {
        "connections": ["default"],
        "models": ["Book"],
        "model": "Book",
        "same_logger": True,
    }
    assert seen[0] is not seen[1]
