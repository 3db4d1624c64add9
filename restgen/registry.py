# File: restgen/registry.py
"""
RestGen - Schema Registry
==========================
Owns the name → ``SchemaDefinition`` mapping with an *init-once /
read-many* lifecycle.

- ``resolve`` builds the registry on first use and returns the cached
  mapping afterwards.
- ``pregenerate`` marks the registry as generated up front and builds it,
  for callers that need model definitions before registration.
- Concurrent callers share one in-flight build (a cached future), so two
  overlapping initialisations never invoke the builder twice.
- A failed build is not cached; ``invalidate`` forces a rebuild.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Iterator, Optional, Sequence

from restgen.config import Config
from restgen.exceptions import SchemaNotFoundError
from restgen.model_generator import SchemaInput, generate_models
from restgen.models import SchemaDefinition, SchemaMap

logger: logging.Logger = logging.getLogger("restgen.registry")

SchemaBuilder = Callable[
    [Any, Any, Config, Optional[Sequence[SchemaInput]]], Awaitable[SchemaMap]
]


class SchemaRegistry:
    """Single-instance registry shared by every request."""

    def __init__(self, builder: SchemaBuilder = generate_models) -> None:
        self._builder: SchemaBuilder = builder
        self._schemas: Optional[SchemaMap] = None
        self._pending: Optional[asyncio.Future] = None
        self.generated: bool = False

    # -- Lifecycle ------------------------------------------------------------

    @property
    def is_built(self) -> bool:
        return self._schemas is not None

    async def resolve(
        self,
        driver: Any,
        log: Any,
        config: Config,
        definitions: Optional[Sequence[SchemaInput]] = None,
    ) -> SchemaMap:
        """Return the registry, building it once if needed."""
        if self._schemas is not None:
            return self._schemas
        return await self._build(driver, log, config, definitions)

    async def pregenerate(
        self,
        driver: Any,
        log: Any,
        config: Config,
        definitions: Optional[Sequence[SchemaInput]] = None,
    ) -> SchemaMap:
        """Force generation ahead of registration."""
        self.generated = True
        if self._schemas is not None:
            return self._schemas
        return await self._build(driver, log, config, definitions)

    def invalidate(self) -> None:
        """Drop the cached registry; the next ``resolve`` rebuilds it."""
        self._schemas = None
        self._pending = None
        self.generated = False

    async def _build(
        self,
        driver: Any,
        log: Any,
        config: Config,
        definitions: Optional[Sequence[SchemaInput]],
    ) -> SchemaMap:
        if self._pending is None:
            logger.debug("Building schema registry.")
            self._pending = asyncio.ensure_future(
                self._builder(driver, log, config, definitions)
            )
        pending: asyncio.Future = self._pending
        try:
            schemas: SchemaMap = await asyncio.shield(pending)
        except Exception:
            if self._pending is pending:
                self._pending = None
            raise
        self._schemas = schemas
        return schemas

    # -- Read access ------------------------------------------------------

    @property
    def schemas(self) -> SchemaMap:
        return self._schemas if self._schemas is not None else {}

    def get(self, name: str) -> SchemaDefinition:
        """
        Raises:
            SchemaNotFoundError: If ``name`` is not registered.
        """
        entry: Optional[SchemaDefinition] = self.schemas.get(name)
        if entry is None:
            raise SchemaNotFoundError(name)
        return entry

    def __contains__(self, name: object) -> bool:
        return name in self.schemas

    def __iter__(self) -> Iterator[str]:
        return iter(self.schemas)

    def __len__(self) -> int:
        return len(self.schemas)

    def as_dict(self) -> Dict[str, SchemaDefinition]:
        return dict(self.schemas)

    def __repr__(self) -> str:
        state: str = "built" if self.is_built else "empty"
        return f"<SchemaRegistry {state}: {len(self)} schema(s)>"


__all__ = ["SchemaBuilder", "SchemaRegistry"]
