# File: restgen/policies.py
"""
RestGen - Policy Engine
========================
Policies are request guards attached to generated routes.

A policy is a Python module inside a policy directory that exposes::

    def policy(request, schema):        # or ``async def``
        ...                             # raise HTTPException to deny

The module stem is the policy name.  Schemas opt in through
``routes.policies: [name, ...]``.

Directory rules:

- policies enabled, ``absolute_policy_path`` set → ``policy_path`` verbatim;
- policies enabled, relative path → ``<cwd>/<policy_path>``;
- policies disabled → the built-in ``restgen/builtin_policies`` directory.
"""

from __future__ import annotations

import inspect
import logging
from pathlib import Path
from types import ModuleType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from fastapi import FastAPI, Request

from restgen.config import Config
from restgen.exceptions import PathNotFoundError, PolicyError
from restgen.models import ModelSchema
from restgen.utils import iter_module_files, load_module_from_path, resolve_directory

logger: logging.Logger = logging.getLogger("restgen.policies")

BUILTIN_POLICY_DIR: Path = Path(__file__).resolve().parent / "builtin_policies"

PolicyCallable = Callable[[Request, ModelSchema], Any]

_MODULE_NAMESPACE: str = "restgen_policies"


def resolve_policy_directory(config: Config) -> Path:
    if not config.enable_policies:
        return BUILTIN_POLICY_DIR
    return resolve_directory(config.policy_path, config.absolute_policy_path)


class PolicyEngine:
    """Name → policy callable table with per-request enforcement."""

    def __init__(self) -> None:
        self.policies: Dict[str, PolicyCallable] = {}
        self.directories: List[Path] = []

    def add(self, name: str, policy: PolicyCallable) -> None:
        if name in self.policies:
            raise PolicyError(f"Policy '{name}' is already registered.")
        self.policies[name] = policy

    def load_policies(self, directory: Path) -> List[str]:
        """
        Load every public module of ``directory``.

        Raises:
            PathNotFoundError: If the directory does not exist.
            PolicyError: On duplicates or modules without a ``policy``.
        """
        if not directory.is_dir():
            raise PathNotFoundError(str(directory), setting="policy_path")

        loaded: List[str] = []
        for path in iter_module_files(directory):
            module: ModuleType = load_module_from_path(path, _MODULE_NAMESPACE)
            policy: Optional[PolicyCallable] = getattr(module, "policy", None)
            if not callable(policy):
                raise PolicyError(f"Policy module {path} does not define 'policy'.")
            self.add(path.stem, policy)
            loaded.append(path.stem)

        self.directories.append(directory)
        logger.debug("Loaded %d policies from %s", len(loaded), directory)
        return loaded

    def check(self, names: Iterable[str]) -> None:
        """Raises ``PolicyError`` when any of ``names`` is unknown."""
        missing: List[str] = [n for n in names if n not in self.policies]
        if missing:
            raise PolicyError(f"Unknown policies: {', '.join(missing)}.")

    async def apply(
        self, request: Request, names: Iterable[str], schema: ModelSchema
    ) -> None:
        for name in names:
            outcome: Any = self.policies[name](request, schema)
            if inspect.isawaitable(outcome):
                await outcome

    def __contains__(self, name: object) -> bool:
        return name in self.policies

    def __len__(self) -> int:
        return len(self.policies)


def get_policy_engine(app: FastAPI) -> Optional[PolicyEngine]:
    return getattr(app.state, "policy_engine", None)


def register_policies(app: FastAPI, options: Mapping[str, Any]) -> None:
    """
    Plugin entry point.  The built-in policies are always loaded.

    Options:
        directory: Policy directory resolved with ``resolve_policy_directory``
            and loaded in addition to the built-ins.  ``None`` loads the
            built-ins only.
    """
    engine: PolicyEngine = PolicyEngine()
    engine.load_policies(BUILTIN_POLICY_DIR)
    directory: Optional[Path] = options.get("directory")
    if directory is not None and Path(directory).resolve() != BUILTIN_POLICY_DIR:
        engine.load_policies(Path(directory))
    app.state.policy_engine = engine
    logger.info("Policy engine ready (%d policies).", len(engine))


__all__ = [
    "BUILTIN_POLICY_DIR",
    "PolicyCallable",
    "PolicyEngine",
    "get_policy_engine",
    "register_policies",
    "resolve_policy_directory",
]
