# File: restgen/docs.py
"""
RestGen - Documentation Plugin
===============================
Serves the OpenAPI document of the application and a Swagger UI page.

Options are computed from the configuration, then ``swagger_options``
overrides them, except the document title and version which always come
from ``app_title`` / ``version``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Literal, Mapping, Optional

from fastapi import FastAPI, Request
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.openapi.utils import get_openapi
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from restgen.config import Config, deep_merge
from restgen.exceptions import ConfigError

logger: logging.Logger = logging.getLogger("restgen.docs")


class DocsInfo(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: str
    version: str
    description: Optional[str] = None


class DocsOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    documentation_path: str = Field(default="/", alias="documentationPath")
    json_path: str = Field(default="/swagger.json", alias="jsonPath")
    host: Optional[str] = None
    expanded: Literal["none", "list", "full"] = "none"
    swagger_ui: bool = Field(default=True, alias="swaggerUI")
    documentation_page: bool = Field(default=True, alias="documentationPage")
    schemes: List[str] = Field(default_factory=lambda: ["http"])
    info: DocsInfo

    def servers(self) -> List[Dict[str, str]]:
        if not self.host:
            return []
        return [{"url": f"{scheme}://{self.host}"} for scheme in self.schemes]


def build_docs_options(config: Config) -> DocsOptions:
    """
    Raises:
        ConfigError: If ``swagger_options`` holds unknown or invalid keys.
    """
    computed: Dict[str, Any] = {
        "host": config.swagger_host,
        "expanded": config.doc_expansion,
        "swagger_ui": config.enable_swagger_ui,
        "documentation_page": config.enable_swagger_ui,
        "schemes": ["https"] if config.enable_swagger_https else ["http"],
    }
    merged: Dict[str, Any] = deep_merge(computed, config.swagger_options)
    info: Mapping[str, Any] = merged.get("info") or {}
    merged["info"] = {**info, "title": config.app_title, "version": config.version}
    try:
        return DocsOptions.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid swagger options: {exc}") from exc


def register_docs(app: FastAPI, options: Mapping[str, Any]) -> None:
    """Plugin entry point; ``options["docs"]`` is a ``DocsOptions``."""
    docs: DocsOptions = options["docs"]
    cache: Dict[str, Any] = {}

    def openapi_document() -> Dict[str, Any]:
        # routes generated after this plugin must be part of the document
        if "schema" not in cache:
            cache["schema"] = get_openapi(
                title=docs.info.title,
                version=docs.info.version,
                description=docs.info.description,
                routes=app.routes,
                servers=docs.servers() or None,
            )
        return cache["schema"]

    async def swagger_json(request: Request) -> JSONResponse:
        return JSONResponse(openapi_document())

    app.add_api_route(docs.json_path, swagger_json, methods=["GET"], include_in_schema=False)

    if docs.swagger_ui and docs.documentation_page:

        async def swagger_page(request: Request) -> HTMLResponse:
            return get_swagger_ui_html(
                openapi_url=docs.json_path,
                title=f"{docs.info.title} - Documentation",
                swagger_ui_parameters={"docExpansion": docs.expanded},
            )

        app.add_api_route(
            docs.documentation_path, swagger_page, methods=["GET"], include_in_schema=False
        )

    logger.debug("Documentation served at %s", docs.json_path)


__all__ = ["DocsInfo", "DocsOptions", "build_docs_options", "register_docs"]
