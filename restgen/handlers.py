# File: restgen/handlers.py
"""
RestGen - Handler Helpers
==========================
Storage-level operations shared by the generated routes and by custom route
modules.  Each helper takes a bound model (anything implementing
``DocumentModel``) plus a logger and raises ``DocumentNotFoundError`` when a
document id does not resolve.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from restgen.drivers import DocumentModel
from restgen.exceptions import DocumentNotFoundError
from restgen.models import ID_FIELD, AssociationDefinition, AssociationType, ModelSchema

logger: logging.Logger = logging.getLogger("restgen.handlers")


@dataclass
class ListQuery:
    limit: int
    skip: int = 0
    sort: List[Tuple[str, bool]] = field(default_factory=list)
    filters: Dict[str, Any] = field(default_factory=dict)


def parse_sort(value: Optional[str], schema: ModelSchema) -> List[Tuple[str, bool]]:
    """
    Parse ``"name,-age"`` into ``[("name", False), ("age", True)]``.

    Raises:
        ValueError: On a field the schema does not declare.
    """
    if not value:
        return []
    allowed = set(schema.field_names) | {ID_FIELD}
    spec: List[Tuple[str, bool]] = []
    for token in value.split(","):
        token = token.strip()
        if not token:
            continue
        descending: bool = token.startswith("-")
        name: str = token.lstrip("+-")
        if name not in allowed:
            raise ValueError(f"Cannot sort {schema.name} by unknown field '{name}'.")
        spec.append((name, descending))
    return spec


async def list_documents(
    model: DocumentModel, query: ListQuery, log: Any = logger
) -> Dict[str, Any]:
    docs: List[Dict[str, Any]] = await model.find_many(
        query.filters, limit=query.limit, skip=query.skip, sort=query.sort
    )
    total: int = await model.count(query.filters)
    log.debug("List %s: %d of %d", model.name, len(docs), total)
    return {"docs": docs, "total": total, "limit": query.limit, "skip": query.skip}


async def find(model: DocumentModel, document_id: str, log: Any = logger) -> Dict[str, Any]:
    document: Optional[Dict[str, Any]] = await model.find_one(document_id)
    if document is None:
        raise DocumentNotFoundError(model.name, document_id)
    return document


async def create(
    model: DocumentModel, payload: Mapping[str, Any], log: Any = logger
) -> Dict[str, Any]:
    document: Dict[str, Any] = await model.insert_one(payload)
    log.info("Created %s '%s'.", model.name, document.get(ID_FIELD))
    return document


async def update(
    model: DocumentModel,
    document_id: str,
    payload: Mapping[str, Any],
    log: Any = logger,
) -> Dict[str, Any]:
    document: Optional[Dict[str, Any]] = await model.update_one(document_id, payload)
    if document is None:
        raise DocumentNotFoundError(model.name, document_id)
    log.info("Updated %s '%s'.", model.name, document_id)
    return document


async def delete_one(model: DocumentModel, document_id: str, log: Any = logger) -> None:
    if not await model.delete_one(document_id):
        raise DocumentNotFoundError(model.name, document_id)
    log.info("Deleted %s '%s'.", model.name, document_id)


async def delete_many(
    model: DocumentModel, document_ids: Sequence[str], log: Any = logger
) -> int:
    deleted: int = await model.delete_many(list(document_ids))
    log.info("Deleted %d %s document(s).", deleted, model.name)
    return deleted


async def get_all(
    owner: DocumentModel,
    owner_id: str,
    association: AssociationDefinition,
    target: DocumentModel,
    log: Any = logger,
) -> List[Dict[str, Any]]:
    """
    Resolve an association of one owner document.

    ``one_many`` returns the target documents pointing at the owner;
    ``many_one`` returns the single target the owner points at (or nothing).
    """
    document: Dict[str, Any] = await find(owner, owner_id, log)
    if association.type == AssociationType.ONE_MANY:
        return await target.find_many({association.foreign_field: owner_id})

    target_id: Any = document.get(association.foreign_field)
    if target_id is None:
        return []
    related: Optional[Dict[str, Any]] = await target.find_one(str(target_id))
    return [related] if related is not None else []


# ---------------------------------------------------------------------------
# Association mutations
# ---------------------------------------------------------------------------
#
# ``one_many`` links live on the target documents (their foreign field holds
# the owner id); ``many_one`` links live on the owner itself.


async def add_one(
    owner: DocumentModel,
    owner_id: str,
    association: AssociationDefinition,
    target: DocumentModel,
    child_id: str,
    log: Any = logger,
) -> None:
    """Link ``child_id`` to the owner, replacing any previous link."""
    await find(owner, owner_id, log)
    await find(target, child_id, log)
    if association.type == AssociationType.ONE_MANY:
        await target.update_one(child_id, {association.foreign_field: owner_id})
    else:
        await owner.update_one(owner_id, {association.foreign_field: child_id})
    log.info("Linked %s '%s' to %s '%s' (%s).", target.name, child_id, owner.name, owner_id, association.name)


async def remove_one(
    owner: DocumentModel,
    owner_id: str,
    association: AssociationDefinition,
    target: DocumentModel,
    child_id: str,
    log: Any = logger,
) -> None:
    """
    Clear the link between the owner and ``child_id``.

    Raises:
        DocumentNotFoundError: If either document is missing or the two are
            not linked through ``association``.
    """
    document: Dict[str, Any] = await find(owner, owner_id, log)
    child: Dict[str, Any] = await find(target, child_id, log)
    if association.type == AssociationType.ONE_MANY:
        if child.get(association.foreign_field) != owner_id:
            raise DocumentNotFoundError(f"{owner.name}.{association.name}", child_id)
        await target.update_one(child_id, {association.foreign_field: None})
    else:
        if document.get(association.foreign_field) != child_id:
            raise DocumentNotFoundError(f"{owner.name}.{association.name}", child_id)
        await owner.update_one(owner_id, {association.foreign_field: None})
    log.info("Unlinked %s '%s' from %s '%s' (%s).", target.name, child_id, owner.name, owner_id, association.name)


def _require_one_many(association: AssociationDefinition) -> None:
    if association.type != AssociationType.ONE_MANY:
        raise ValueError(f"Association '{association.name}' links a single document.")


async def add_many(
    owner: DocumentModel,
    owner_id: str,
    association: AssociationDefinition,
    target: DocumentModel,
    child_ids: Sequence[str],
    log: Any = logger,
) -> int:
    """
    Link every id of ``child_ids`` to the owner (``one_many`` only).

    All ids are resolved before anything is written, so an unknown id leaves
    the association unchanged.

    Raises:
        ValueError: For a ``many_one`` association.
        DocumentNotFoundError: If the owner or any child is missing.
    """
    _require_one_many(association)
    await find(owner, owner_id, log)
    ids: List[str] = list(dict.fromkeys(child_ids))
    for child_id in ids:
        await find(target, child_id, log)
    for child_id in ids:
        await target.update_one(child_id, {association.foreign_field: owner_id})
    log.info("Linked %d %s document(s) to %s '%s'.", len(ids), target.name, owner.name, owner_id)
    return len(ids)


async def remove_many(
    owner: DocumentModel,
    owner_id: str,
    association: AssociationDefinition,
    target: DocumentModel,
    child_ids: Sequence[str],
    log: Any = logger,
) -> int:
    """Unlink the given children; ids not linked to the owner are skipped."""
    _require_one_many(association)
    await find(owner, owner_id, log)
    removed: int = 0
    for child_id in dict.fromkeys(child_ids):
        child: Optional[Dict[str, Any]] = await target.find_one(child_id)
        if child is None or child.get(association.foreign_field) != owner_id:
            continue
        await target.update_one(child_id, {association.foreign_field: None})
        removed += 1
    log.info("Unlinked %d %s document(s) from %s '%s'.", removed, target.name, owner.name, owner_id)
    return removed


__all__ = [
    "ListQuery",
    "add_many",
    "add_one",
    "create",
    "delete_many",
    "delete_one",
    "find",
    "get_all",
    "list_documents",
    "parse_sort",
    "remove_many",
    "remove_one",
    "update",
]
