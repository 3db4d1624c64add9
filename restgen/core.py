# File: restgen/core.py
"""
RestGen - Registration Orchestrator
====================================
``RestGen`` wires every component onto a FastAPI application::

    app = FastAPI()
    api = RestGen()
    await api.register(app, {"config": {"mongo": {"URI": "sqlite+aiosqlite:///app.db"}}})

Registration runs eight stages in order (see ``RestGen.register``).  A
missing model or policy directory is logged with the setting to fix and
registration continues without schemas; the policy engine then carries the
built-in policies only.  Every other failure propagates to the caller.

Registration must complete before the application starts serving, since
middleware cannot be added to a running application.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from fastapi import FastAPI
from starlette.types import Scope

from restgen.config import Config, merge_config
from restgen.connections import ConnectionManager
from restgen.context import BoundModel, ModelResolver, RequestContext, RequestContextMiddleware
from restgen.docs import build_docs_options, register_docs
from restgen.drivers import Driver, SQLAlchemyDriver
from restgen.exceptions import ConfigError, PathNotFoundError, RegistrationError
from restgen.log_util import LabeledLogger, get_logger, log_action_complete, log_action_start
from restgen.model_generator import SchemaInput
from restgen.models import SchemaMap
from restgen.pipeline import RegistrationPipeline, RegistrationReport, Stage, StageResult
from restgen.plugins import Plugin, register_plugin
from restgen.policies import PolicyEngine, get_policy_engine, register_policies, resolve_policy_directory
from restgen.registry import SchemaRegistry
from restgen.routes import PreStep, RouteGenerator, generate_custom_routes
from restgen.validation import PayloadValidator, SchemaValidator

logger: logging.Logger = logging.getLogger("restgen.core")


@dataclass
class PluginOptions:
    """Options accepted by ``RestGen.register``."""

    config: Dict[str, Any] = field(default_factory=dict)
    driver: Optional[Driver] = None
    pre: List[PreStep] = field(default_factory=list)
    schemas: Optional[List[SchemaInput]] = None

    @classmethod
    def coerce(cls, options: Union["PluginOptions", Mapping[str, Any], None]) -> "PluginOptions":
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        known = {f.name for f in fields(cls)}
        unknown: List[str] = sorted(set(options) - known)
        if unknown:
            raise ConfigError(f"Unknown registration options: {', '.join(unknown)}.")
        return cls(**dict(options))


class RestGen:
    """
    The registration orchestrator.

    Attributes:
        config: The single active configuration, mutated by merges.
        registry: Schema registry (built at most once).
        validator: Payload validator resolved during registration.
        driver: The database driver last used to build schemas or connect.
        pre: Steps run before route policies.
        plugin: The plugin descriptor recorded on the application.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        registry: Optional[SchemaRegistry] = None,
    ) -> None:
        from restgen import __version__

        self.config: Config = config if config is not None else Config()
        self.registry: SchemaRegistry = registry if registry is not None else SchemaRegistry()
        self.logger: LabeledLogger = self.get_logger("api")
        self.validator: Optional[PayloadValidator] = None
        self.app: Optional[FastAPI] = None
        self.driver: Optional[Driver] = None
        self.pre: List[PreStep] = []
        self.policy_engine: Optional[PolicyEngine] = None
        self.report: Optional[RegistrationReport] = None

        self.connections: ConnectionManager = ConnectionManager(
            self.config, self._require_driver, self._record_driver
        )
        self.resolver: ModelResolver = ModelResolver(self.registry, self.connections)

        self.plugin: Plugin = Plugin(name="restgen", version=__version__, register=self._register)
        self._docs_plugin: Plugin = Plugin(name="restgen-docs", version=__version__, register=register_docs)
        self._policy_plugin: Plugin = Plugin(
            name="restgen-policies", version=__version__, register=register_policies
        )

    # -- Shared surface -------------------------------------------------------

    @property
    def schemas(self) -> SchemaMap:
        return self.registry.schemas

    def get_logger(self, label: str) -> LabeledLogger:
        """Logger whose threshold reflects the *current* configuration."""
        return get_logger(label, self.config)

    def model(
        self, name: str, connection_name: Optional[str], context: RequestContext
    ) -> BoundModel:
        return self.resolver.get_model(name, connection_name, context)

    def create_context(self, scope: Optional[Scope] = None) -> RequestContext:
        """A fresh request context; ``scope`` is the ASGI scope when serving."""
        log: LabeledLogger = self.logger.bind("request")
        if scope is not None:
            log.debug("%s %s", scope.get("method", "-"), scope.get("path", "-"))
        return RequestContext(self.connections, self.resolver, log)

    def _require_driver(self) -> Driver:
        if self.driver is None:
            self.driver = SQLAlchemyDriver()
        return self.driver

    def _record_driver(self, driver: Driver) -> None:
        self.driver = driver

    async def close(self) -> None:
        """Release the driver's pooled resources."""
        dispose = getattr(self.driver, "dispose", None)
        if dispose is not None:
            await dispose()

    # -- Model pre-generation --------------------------------------------------

    async def generate_models(
        self,
        driver: Optional[Driver] = None,
        *,
        config: Optional[Mapping[str, Any]] = None,
        schemas: Optional[Sequence[SchemaInput]] = None,
    ) -> SchemaMap:
        """
        Build the schema registry ahead of ``register``.

        A later ``register`` reuses the result instead of building again.
        """
        merge_config(self.config, config)
        if driver is not None:
            self.driver = driver
        return await self.registry.pregenerate(
            self._require_driver(), self.get_logger("models"), self.config, schemas
        )

    # -- Registration ---------------------------------------------------------

    async def register(
        self,
        app: FastAPI,
        options: Union[PluginOptions, Mapping[str, Any], None] = None,
    ) -> RegistrationReport:
        """
        Register on ``app``:

        1. validator setup
        2. configuration merge
        3. request augmentation
        4. pre-step capture
        5. schema resolution
        6. documentation plugin
        7. policy plugin
        8. route generation

        Raises:
            PluginError: If this plugin is already registered on ``app``.
            ConfigError: On unknown or invalid options.
            RegistrationError: If a stage aborts.
        """
        self.report = None
        await register_plugin(app, self.plugin, {"options": PluginOptions.coerce(options)})
        if self.report is None:
            raise RegistrationError("Registration finished without a report.")
        return self.report

    async def _register(self, app: FastAPI, plugin_options: Mapping[str, Any]) -> None:
        options: PluginOptions = plugin_options["options"]
        self.app = app
        state: Dict[str, Any] = {"schemas": {}}

        async def setup_validator() -> StageResult:
            existing: Any = getattr(app.state, "validator", None)
            if existing is None:
                app.state.validator = SchemaValidator()
                detail = "installed default validator"
            elif not isinstance(existing, PayloadValidator):
                return StageResult.abort(
                    f"Installed validator {existing!r} does not implement models_for()."
                )
            else:
                detail = f"adopted {type(existing).__name__}"
            self.validator = app.state.validator
            return StageResult.ok(detail)

        async def merge_configuration() -> StageResult:
            merge_config(self.config, options.config)
            self.logger = self.get_logger("api")
            return StageResult.ok(f"log level {self.config.loglevel}")

        async def augment_requests() -> StageResult:
            app.add_middleware(RequestContextMiddleware, factory=self.create_context)
            return StageResult.ok()

        async def capture_pre() -> StageResult:
            self.pre = list(options.pre)
            return StageResult.ok(f"{len(self.pre)} step(s)")

        async def resolve_schemas() -> StageResult:
            if options.driver is not None:
                self.driver = options.driver
            driver: Driver = self._require_driver()
            if self.registry.generated and self.registry.is_built:
                state["schemas"] = self.registry.schemas
                return StageResult.ok("reused pre-generated models")
            try:
                state["schemas"] = await self.registry.resolve(
                    driver, self.logger.bind("models"), self.config, options.schemas
                )
            except PathNotFoundError as exc:
                self.logger.error(
                    "%s Check the '%s' setting; continuing without models.", exc, exc.setting
                )
                return StageResult.degraded(f"{exc.setting} missing")
            return StageResult.ok(f"{len(state['schemas'])} model(s)")

        async def register_documentation() -> StageResult:
            if self.config.disable_swagger:
                return StageResult.ok("disabled")
            await register_plugin(app, self._docs_plugin, {"docs": build_docs_options(self.config)})
            return StageResult.ok()

        async def register_policy_engine() -> StageResult:
            directory = resolve_policy_directory(self.config)
            if not directory.is_dir():
                self.logger.error(
                    "No such policy directory: '%s'. Check the 'policy_path' setting; "
                    "only built-in policies are loaded.",
                    directory,
                )
                await register_plugin(app, self._policy_plugin, {"directory": None})
                self.policy_engine = get_policy_engine(app)
                return StageResult.degraded("policy_path missing")
            await register_plugin(app, self._policy_plugin, {"directory": directory})
            self.policy_engine = get_policy_engine(app)
            return StageResult.ok(str(directory))

        async def generate_routes() -> StageResult:
            schemas: SchemaMap = state["schemas"]
            validator: PayloadValidator = app.state.validator
            generator = RouteGenerator(
                app, validator, self.policy_engine, self.pre, self.config, self.logger.bind("routes")
            )
            for entry in schemas.values():
                generator.generate_routes(entry, schemas)
            custom: List[str] = await generate_custom_routes(
                app, self.driver, self.logger, self.config
            )
            return StageResult.ok(f"{len(schemas)} model(s), {len(custom)} custom module(s)")

        pipeline = RegistrationPipeline(
            [
                Stage("validator setup", setup_validator),
                Stage("configuration merge", merge_configuration),
                Stage("request augmentation", augment_requests),
                Stage("pre-step capture", capture_pre),
                Stage("schema resolution", resolve_schemas),
                Stage("documentation", register_documentation),
                Stage("policy engine", register_policy_engine),
                Stage("route generation", generate_routes),
            ],
            self.logger,
        )
        log_action_start(self.logger, "Registering restgen")
        self.report = await pipeline.run()
        log_action_complete(
            self.logger,
            "Registering restgen",
            {"models": len(state["schemas"]), "degraded": self.report.degraded},
        )


__all__ = ["PluginOptions", "RestGen"]
