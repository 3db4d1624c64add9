"""
tests/conftest.py
Shared fixtures for the restgen test suite.

Async tests run through the anyio pytest plugin on asyncio.  Storage is an
in-memory driver implementing the ``Driver`` protocol, so registration and
request handling can be exercised without a database.
"""

from __future__ import annotations

import copy
import pathlib
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Sequence, Tuple

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from restgen import RestGen
from restgen.drivers import new_document_id
from restgen.models import ID_FIELD, ModelSchema


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

ROOT_DIR: pathlib.Path = pathlib.Path(__file__).resolve().parent.parent
EXAMPLE_MODELS_DIR: pathlib.Path = ROOT_DIR / "models_example"


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


# ---------------------------------------------------------------------------
# In-memory driver
# ---------------------------------------------------------------------------


class MemoryModel:
    """``DocumentModel`` over a plain dict of documents."""

    def __init__(self, name: str, documents: Dict[str, Dict[str, Any]]) -> None:
        self.name = name
        self.documents = documents

    def _matching(self, filters: Optional[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        return [
            dict(doc)
            for doc in self.documents.values()
            if all(doc.get(k) == v for k, v in (filters or {}).items())
        ]

    async def find_many(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        limit: Optional[int] = None,
        skip: int = 0,
        sort: Optional[Sequence[Tuple[str, bool]]] = None,
    ) -> List[Dict[str, Any]]:
        docs = self._matching(filters)
        for field_name, descending in reversed(list(sort or ())):
            docs.sort(key=lambda d: (d.get(field_name) is None, d.get(field_name)), reverse=descending)
        docs = docs[skip:]
        return docs if limit is None else docs[:limit]

    async def count(self, filters: Optional[Mapping[str, Any]] = None) -> int:
        return len(self._matching(filters))

    async def find_one(self, document_id: str) -> Optional[Dict[str, Any]]:
        doc = self.documents.get(document_id)
        return dict(doc) if doc is not None else None

    async def insert_one(self, document: Mapping[str, Any]) -> Dict[str, Any]:
        doc = dict(document)
        doc.setdefault(ID_FIELD, new_document_id())
        self.documents[doc[ID_FIELD]] = doc
        return dict(doc)

    async def update_one(self, document_id: str, changes: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        doc = self.documents.get(document_id)
        if doc is None:
            return None
        doc.update({k: v for k, v in changes.items() if k != ID_FIELD})
        return dict(doc)

    async def delete_one(self, document_id: str) -> bool:
        return self.documents.pop(document_id, None) is not None

    async def delete_many(self, document_ids: Sequence[str]) -> int:
        return sum(1 for i in document_ids if self.documents.pop(i, None) is not None)


class MemoryConnection:
    def __init__(self, uri: str, options: Mapping[str, Any], store: Dict[str, Dict[str, Any]]) -> None:
        self.uri = uri
        self.options = dict(options)
        self.store = store

    def model(self, name: str, schema: ModelSchema, collection_name: str) -> MemoryModel:
        return MemoryModel(name, self.store.setdefault(collection_name, {}))


class MemoryDriver:
    """Records every call so tests can assert on them."""

    def __init__(self) -> None:
        self.databases: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.built: List[str] = []
        self.opened: List[Tuple[str, Dict[str, Any]]] = []

    def build_schema(self, definition: ModelSchema) -> ModelSchema:
        self.built.append(definition.name)
        return definition

    async def create_connection(self, uri: str, options: Mapping[str, Any]) -> MemoryConnection:
        self.opened.append((uri, dict(options)))
        return MemoryConnection(uri, options, self.databases.setdefault(uri, {}))


class FailingDriver(MemoryDriver):
    async def create_connection(self, uri: str, options: Mapping[str, Any]) -> MemoryConnection:
        raise OSError(f"cannot reach {uri}")


# ---------------------------------------------------------------------------
# Schema fixtures
# ---------------------------------------------------------------------------

_AUTHOR_BOOK: List[Dict[str, Any]] = [
    {
        "name": "Author",
        "fields": [
            {"name": "name", "type": "string", "required": True, "maxLength": 50},
            {"name": "born", "type": "integer"},
        ],
        "associations": [
            {"name": "books", "type": "one_many", "model": "Book", "foreignField": "author_id"}
        ],
    },
    {
        "name": "Book",
        "fields": [
            {"name": "title", "type": "string", "required": True},
            {"name": "pages", "type": "integer", "default": 100},
            {"name": "author_id", "type": "string", "reference": "Author"},
        ],
        "associations": [
            {"name": "author", "type": "many_one", "model": "Author", "foreignField": "author_id"}
        ],
    },
]


@pytest.fixture
def schema_dicts() -> List[Dict[str, Any]]:
    """Two related schemas, deep-copied so tests can mutate them."""
    return copy.deepcopy(_AUTHOR_BOOK)


@pytest.fixture
def model_schemas(schema_dicts: List[Dict[str, Any]]) -> List[ModelSchema]:
    return [ModelSchema.model_validate(d) for d in schema_dicts]


@pytest.fixture
def memory_driver() -> MemoryDriver:
    return MemoryDriver()


@pytest.fixture
def failing_driver() -> FailingDriver:
    return FailingDriver()


@pytest.fixture
def work_dir(tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch) -> pathlib.Path:
    """Run the test from an empty project directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Registered application
# ---------------------------------------------------------------------------


@pytest.fixture
async def registered(
    anyio_backend: str,
    work_dir: pathlib.Path,
    memory_driver: MemoryDriver,
    schema_dicts: List[Dict[str, Any]],
) -> Tuple[FastAPI, RestGen]:
    app = FastAPI()
    api = RestGen()
    await api.register(
        app,
        {
            "config": {"mongo": {"URI": "mem://test"}, "logLevel": "DEBUG"},
            "driver": memory_driver,
            "schemas": schema_dicts,
        },
    )
    return app, api


@pytest.fixture
async def client(anyio_backend: str, registered: Tuple[FastAPI, RestGen]) -> AsyncIterator[AsyncClient]:
    app, _ = registered
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http
