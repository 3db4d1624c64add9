# File: restgen/plugins.py
"""
RestGen - Plugin Registration
==============================
A minimal named/versioned plugin mechanism on top of a FastAPI application.

Registered plugins are recorded in ``app.state.plugins`` (name → version) so
that other components can discover what is already installed, and so that a
plugin registered twice is detected.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from fastapi import FastAPI

from restgen.exceptions import PluginError

logger: logging.Logger = logging.getLogger("restgen.plugins")

PluginRegister = Callable[[FastAPI, Mapping[str, Any]], Any]


@dataclass(frozen=True)
class Plugin:
    """``register(app, options)`` may be a plain function or a coroutine."""

    name: str
    version: str
    register: PluginRegister
    once: bool = False


def registered_plugins(app: FastAPI) -> Dict[str, str]:
    plugins: Optional[Dict[str, str]] = getattr(app.state, "plugins", None)
    if plugins is None:
        plugins = {}
        app.state.plugins = plugins
    return plugins


async def register_plugin(
    app: FastAPI,
    plugin: Plugin,
    options: Optional[Mapping[str, Any]] = None,
) -> bool:
    """
    Register ``plugin`` on ``app``.

    Returns:
        True when the plugin ran, False when it was skipped because a
        ``once`` plugin was already present.

    Raises:
        PluginError: If a plugin of the same name is already registered and
            ``once`` is not set.
    """
    plugins: Dict[str, str] = registered_plugins(app)
    if plugin.name in plugins:
        if plugin.once:
            logger.debug("Plugin '%s' already registered; skipping.", plugin.name)
            return False
        raise PluginError(
            f"Plugin '{plugin.name}' already registered "
            f"(version {plugins[plugin.name]})."
        )

    outcome: Any = plugin.register(app, dict(options or {}))
    if inspect.isawaitable(outcome):
        await outcome
    plugins[plugin.name] = plugin.version
    logger.debug("Registered plugin %s@%s", plugin.name, plugin.version)
    return True


__all__ = ["Plugin", "PluginRegister", "register_plugin", "registered_plugins"]
