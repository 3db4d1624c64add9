# File: restgen/routes.py
"""
RestGen - Route Generator
==========================
Turns each registered schema into an ``APIRouter``::

    GET    /<path>                       list (limit, skip, sort, filters)
    GET    /<path>/{document_id}         read one
    POST   /<path>                       create          (201)
    PUT    /<path>/{document_id}         partial update
    DELETE /<path>/{document_id}         delete one      (204)
    DELETE /<path>                       delete many     (body: [ids])
    GET    /<path>/{document_id}/<assoc> association
    PUT    /<path>/{document_id}/<assoc>/{child_id}   link one      (204)
    DELETE /<path>/{document_id}/<assoc>/{child_id}   unlink one    (204)
    PUT    /<path>/{document_id}/<assoc>  link many   (one_many, body: [ids])
    DELETE /<path>/{document_id}/<assoc>  unlink many (one_many, body: [ids])

Link routes follow ``allow_update``; unlink routes exist only when the
foreign field is optional.  Every route depends on the policy runner (captured ``pre`` steps, then the
schema's named policies).  Custom routes are loaded from the api directory.
"""

# No postponed annotations here: endpoint signatures reference payload
# models built at runtime, which FastAPI must see as real classes.

import inspect
import logging
from pathlib import Path
from types import ModuleType
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import TypeAdapter, ValidationError

from restgen import handlers
from restgen.config import Config
from restgen.context import BoundModel
from restgen.exceptions import DocumentNotFoundError, PolicyError
from restgen.handlers import ListQuery
from restgen.models import (
    ID_FIELD,
    AssociationDefinition,
    AssociationType,
    FieldDefinition,
    FieldType,
    ModelSchema,
    SchemaDefinition,
    SchemaMap,
)
from restgen.policies import PolicyEngine
from restgen.utils import iter_module_files, load_module_from_path, resolve_directory, to_snake_case
from restgen.validation import PayloadModels, PayloadValidator, python_type

logger: logging.Logger = logging.getLogger("restgen.routes")

PreStep = Callable[[Request], Any]

_API_NAMESPACE: str = "restgen_api"


async def _document_not_found(request: Request, exc: DocumentNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


def install_error_handlers(app: FastAPI) -> None:
    if DocumentNotFoundError not in app.exception_handlers:
        app.add_exception_handler(DocumentNotFoundError, _document_not_found)


class RouteGenerator:
    """
    Builds and mounts the routers of registered schemas.

    Args:
        app: Application receiving the routers.
        validator: Source of the payload models.
        policy_engine: Engine enforcing named policies (may be None when no
            schema names a policy).
        pre: Steps run before the policies of every generated route.
        config: Active configuration (page sizes).
        log: Logger for generation messages.
    """

    def __init__(
        self,
        app: FastAPI,
        validator: PayloadValidator,
        policy_engine: Optional[PolicyEngine],
        pre: Sequence[PreStep],
        config: Config,
        log: Any = logger,
    ) -> None:
        self.app = app
        self.validator = validator
        self.policy_engine = policy_engine
        self.pre: List[PreStep] = list(pre)
        self.config = config
        self.log = log
        install_error_handlers(app)

    # -- Dependencies ---------------------------------------------------------

    def _policy_runner(self, schema: ModelSchema) -> Callable[..., Any]:
        names: List[str] = list(schema.routes.policies)
        if names:
            if self.policy_engine is None:
                raise PolicyError(f"Schema '{schema.name}' names policies but no policy engine is registered.")
            self.policy_engine.check(names)
        engine = self.policy_engine
        pre = self.pre

        async def run_policies(request: Request) -> None:
            for step in pre:
                outcome = step(request)
                if inspect.isawaitable(outcome):
                    await outcome
            if names and engine is not None:
                await engine.apply(request, names, schema)

        return run_policies

    @staticmethod
    def _model_dependency(name: str) -> Callable[..., Any]:
        async def bound_model(request: Request) -> BoundModel:
            context = request.state.context
            if not context.has_connection():
                await context.connect()
            return context.model(name)

        return bound_model

    def _filters(self, schema: ModelSchema, request: Request) -> Dict[str, Any]:
        """Equality filters from query parameters named after fields."""
        filters: Dict[str, Any] = {}
        for field_def in schema.fields:
            raw: Optional[str] = request.query_params.get(field_def.name)
            if raw is None or FieldType(field_def.type) == FieldType.JSON:
                continue
            try:
                filters[field_def.name] = TypeAdapter(python_type(field_def)).validate_python(raw)
            except ValidationError as exc:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Invalid filter '{field_def.name}': {exc.errors()[0]['msg']}",
                ) from exc
        raw_id: Optional[str] = request.query_params.get(ID_FIELD)
        if raw_id is not None:
            filters[ID_FIELD] = raw_id
        return filters

    # -- Per-schema generation --------------------------------------------------

    def generate_routes(self, entry: SchemaDefinition, schemas: SchemaMap) -> APIRouter:
        """Build the router of one schema and include it in the app."""
        schema: ModelSchema = entry.definition
        models: PayloadModels = self.validator.models_for(schema)
        model_dep = self._model_dependency(schema.name)
        snake: str = to_snake_case(schema.name)
        options = schema.routes

        router = APIRouter(
            prefix=schema.route_path,
            tags=[schema.name],
            dependencies=[Depends(self._policy_runner(schema))],
        )

        if options.allow_read:
            router.add_api_route(
                "",
                self._list_endpoint(schema),
                methods=["GET"],
                response_model=models.list,
                name=f"list_{snake}",
                summary=f"List {schema.name} documents",
            )
            router.add_api_route(
                "/{document_id}",
                self._find_endpoint(model_dep),
                methods=["GET"],
                response_model=models.read,
                name=f"find_{snake}",
                summary=f"Get one {schema.name}",
            )
            for association in schema.associations:
                target: SchemaDefinition = schemas[association.model]
                target_models: PayloadModels = self.validator.models_for(target.definition)
                router.add_api_route(
                    f"/{{document_id}}/{association.name}",
                    self._association_endpoint(association, model_dep),
                    methods=["GET"],
                    response_model=List[target_models.read],  # type: ignore[valid-type]
                    name=f"get_{snake}_{association.name}",
                    summary=f"Get {association.name} of one {schema.name}",
                )

        if options.allow_create:
            router.add_api_route(
                "",
                self._create_endpoint(models, model_dep),
                methods=["POST"],
                response_model=models.read,
                status_code=status.HTTP_201_CREATED,
                name=f"create_{snake}",
                summary=f"Create a {schema.name}",
            )

        if options.allow_update:
            router.add_api_route(
                "/{document_id}",
                self._update_endpoint(models, model_dep),
                methods=["PUT"],
                response_model=models.read,
                name=f"update_{snake}",
                summary=f"Update a {schema.name}",
            )
            for association in schema.associations:
                self._add_association_mutations(
                    router, schema, association, schemas[association.model].definition, model_dep
                )

        if options.allow_delete:
            router.add_api_route(
                "/{document_id}",
                self._delete_one_endpoint(model_dep),
                methods=["DELETE"],
                status_code=status.HTTP_204_NO_CONTENT,
                response_class=Response,
                name=f"delete_{snake}",
                summary=f"Delete a {schema.name}",
            )
            router.add_api_route(
                "",
                self._delete_many_endpoint(model_dep),
                methods=["DELETE"],
                name=f"delete_many_{snake}",
                summary=f"Delete several {schema.name} documents",
            )

        self.app.include_router(router)
        self.log.debug("Routes generated for %s at %s", schema.name, schema.route_path)
        return router

    def _add_association_mutations(
        self,
        router: APIRouter,
        schema: ModelSchema,
        association: AssociationDefinition,
        target: ModelSchema,
        model_dep: Callable[..., Any],
    ) -> None:
        """
        Link and unlink endpoints of one association.  Unlinking is only
        offered when the foreign field is optional; the bulk variants only
        for ``one_many``.
        """
        one_many: bool = association.type == AssociationType.ONE_MANY
        holder: ModelSchema = target if one_many else schema
        foreign: Optional[FieldDefinition] = holder.get_field(association.foreign_field)
        clearable: bool = foreign is not None and not foreign.required
        base: str = f"/{{document_id}}/{association.name}"
        label: str = f"{to_snake_case(schema.name)}_{association.name}"

        router.add_api_route(
            base + "/{child_id}",
            self._link_one_endpoint(association, model_dep, handlers.add_one),
            methods=["PUT"],
            status_code=status.HTTP_204_NO_CONTENT,
            response_class=Response,
            name=f"add_{label}",
            summary=f"Add one {association.model} to {association.name} of a {schema.name}",
        )
        if clearable:
            router.add_api_route(
                base + "/{child_id}",
                self._link_one_endpoint(association, model_dep, handlers.remove_one),
                methods=["DELETE"],
                status_code=status.HTTP_204_NO_CONTENT,
                response_class=Response,
                name=f"remove_{label}",
                summary=f"Remove one {association.model} from {association.name} of a {schema.name}",
            )
        if not one_many:
            return

        router.add_api_route(
            base,
            self._link_many_endpoint(association, model_dep, handlers.add_many, "added"),
            methods=["PUT"],
            name=f"add_many_{label}",
            summary=f"Add several {association.model} documents to {association.name} of a {schema.name}",
        )
        if clearable:
            router.add_api_route(
                base,
                self._link_many_endpoint(association, model_dep, handlers.remove_many, "removed"),
                methods=["DELETE"],
                name=f"remove_many_{label}",
                summary=f"Remove several {association.model} documents from {association.name} of a {schema.name}",
            )

    # -- Endpoint factories -----------------------------------------------------

    def _list_endpoint(self, schema: ModelSchema) -> Callable[..., Any]:
        model_dep = self._model_dependency(schema.name)
        filters = self._filters

        async def list_documents(
            request: Request,
            model: BoundModel = Depends(model_dep),
            limit: int = Query(self.config.page_size, ge=1, le=self.config.max_page_size),
            skip: int = Query(0, ge=0),
            sort: Optional[str] = Query(None, description="Comma separated fields, '-' for descending"),
        ) -> Any:
            try:
                order = handlers.parse_sort(sort, schema)
            except ValueError as exc:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
            query = ListQuery(limit=limit, skip=skip, sort=order, filters=filters(schema, request))
            return await handlers.list_documents(model, query, request.state.logger)

        return list_documents

    @staticmethod
    def _find_endpoint(model_dep: Callable[..., Any]) -> Callable[..., Any]:
        async def find_document(
            document_id: str,
            request: Request,
            model: BoundModel = Depends(model_dep),
        ) -> Any:
            return await handlers.find(model, document_id, request.state.logger)

        return find_document

    @staticmethod
    def _create_endpoint(models: PayloadModels, model_dep: Callable[..., Any]) -> Callable[..., Any]:
        create_model = models.create

        async def create_document(
            payload: create_model,  # type: ignore[valid-type]
            request: Request,
            model: BoundModel = Depends(model_dep),
        ) -> Any:
            return await handlers.create(model, payload.model_dump(), request.state.logger)

        return create_document

    @staticmethod
    def _update_endpoint(models: PayloadModels, model_dep: Callable[..., Any]) -> Callable[..., Any]:
        update_model = models.update

        async def update_document(
            document_id: str,
            payload: update_model,  # type: ignore[valid-type]
            request: Request,
            model: BoundModel = Depends(model_dep),
        ) -> Any:
            changes = payload.model_dump(exclude_unset=True)
            return await handlers.update(model, document_id, changes, request.state.logger)

        return update_document

    @staticmethod
    def _delete_one_endpoint(model_dep: Callable[..., Any]) -> Callable[..., Any]:
        async def delete_document(
            document_id: str,
            request: Request,
            model: BoundModel = Depends(model_dep),
        ) -> Response:
            await handlers.delete_one(model, document_id, request.state.logger)
            return Response(status_code=status.HTTP_204_NO_CONTENT)

        return delete_document

    @staticmethod
    def _delete_many_endpoint(model_dep: Callable[..., Any]) -> Callable[..., Any]:
        async def delete_documents(
            request: Request,
            ids: List[str] = Body(..., description="Ids of the documents to delete"),
            model: BoundModel = Depends(model_dep),
        ) -> Dict[str, int]:
            deleted = await handlers.delete_many(model, ids, request.state.logger)
            return {"deleted": deleted}

        return delete_documents

    @staticmethod
    def _association_endpoint(
        association: AssociationDefinition, model_dep: Callable[..., Any]
    ) -> Callable[..., Any]:
        async def get_association(
            document_id: str,
            request: Request,
            model: BoundModel = Depends(model_dep),
        ) -> Any:
            target = request.state.context.model(association.model, model.connection_name)
            return await handlers.get_all(model, document_id, association, target, request.state.logger)

        return get_association

    @staticmethod
    def _link_one_endpoint(
        association: AssociationDefinition,
        model_dep: Callable[..., Any],
        action: Callable[..., Awaitable[None]],
    ) -> Callable[..., Any]:
        async def link_one(
            document_id: str,
            child_id: str,
            request: Request,
            model: BoundModel = Depends(model_dep),
        ) -> Response:
            target = request.state.context.model(association.model, model.connection_name)
            await action(model, document_id, association, target, child_id, request.state.logger)
            return Response(status_code=status.HTTP_204_NO_CONTENT)

        return link_one

    @staticmethod
    def _link_many_endpoint(
        association: AssociationDefinition,
        model_dep: Callable[..., Any],
        action: Callable[..., Awaitable[int]],
        key: str,
    ) -> Callable[..., Any]:
        async def link_many(
            document_id: str,
            request: Request,
            ids: List[str] = Body(..., description=f"Ids of {association.model} documents"),
            model: BoundModel = Depends(model_dep),
        ) -> Dict[str, int]:
            target = request.state.context.model(association.model, model.connection_name)
            count = await action(model, document_id, association, target, ids, request.state.logger)
            return {key: count}

        return link_many


# ---------------------------------------------------------------------------
# Custom routes
# ---------------------------------------------------------------------------


async def generate_custom_routes(app: FastAPI, driver: Any, log: Any, config: Config) -> List[str]:
    """
    Invoke ``register(app, driver, logger, config)`` of every public module
    in the api directory.  Returns the names of the modules invoked.
    """
    api_dir: Path = resolve_directory(config.api_path, config.absolute_api_path)
    if not api_dir.is_dir():
        log.debug("No custom api directory at %s", api_dir)
        return []

    invoked: List[str] = []
    for path in iter_module_files(api_dir):
        module: ModuleType = load_module_from_path(path, _API_NAMESPACE)
        register = getattr(module, "register", None)
        if not callable(register):
            log.debug("Module %s has no register(); skipped.", path.name)
            continue
        outcome = register(app, driver, log, config)
        if inspect.isawaitable(outcome):
            await outcome
        invoked.append(path.stem)

    log.info("%d custom route module(s) registered.", len(invoked))
    return invoked


__all__ = ["PreStep", "RouteGenerator", "generate_custom_routes", "install_error_handlers"]
