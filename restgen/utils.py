# File: restgen/utils.py
"""
RestGen - Utility Functions & Helpers
======================================
String transformation, directory resolution, module loading and timing
helpers shared by the registration pipeline.

- String-conversion functions are decorated with ``@lru_cache(maxsize=None)``
  because route paths and model names are derived repeatedly per schema.
- Module loading goes through ``importlib`` so that policy and custom-route
  directories can live anywhere on disk.
"""

from __future__ import annotations

import functools
import importlib.util
import logging
import re
import sys
import time
from pathlib import Path
from types import ModuleType
from typing import List, Optional

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("restgen.utils")

# ---------------------------------------------------------------------------
# Pre-compiled regex patterns (compiled once at module load)
# ---------------------------------------------------------------------------

_CAMEL_TO_SNAKE_RE1: re.Pattern[str] = re.compile(r"([A-Z]+)([A-Z][a-z])")
_CAMEL_TO_SNAKE_RE2: re.Pattern[str] = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALPHANUM_RE: re.Pattern[str] = re.compile(r"[^a-zA-Z0-9]")
_MULTI_UNDERSCORE_RE: re.Pattern[str] = re.compile(r"_{2,}")
_LEADING_TRAILING_UNDERSCORE_RE: re.Pattern[str] = re.compile(r"^_+|_+$")


# ---------------------------------------------------------------------------
# Cached string transformation functions
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def to_snake_case(name: str) -> str:
    """
    Convert any string to snake_case.

    Examples:
        >>> to_snake_case("UserProfile")
        'user_profile'
        >>> to_snake_case("getHTTPResponse")
        'get_http_response'
        >>> to_snake_case("already_snake")
        'already_snake'
    """
    if not name:
        return ""
    s: str = _CAMEL_TO_SNAKE_RE1.sub(r"\1_\2", name)
    s = _CAMEL_TO_SNAKE_RE2.sub(r"\1_\2", s)
    s = _NON_ALPHANUM_RE.sub("_", s)
    s = _MULTI_UNDERSCORE_RE.sub("_", s)
    s = _LEADING_TRAILING_UNDERSCORE_RE.sub("", s)
    return s.lower()


@functools.lru_cache(maxsize=None)
def to_kebab_case(name: str) -> str:
    """Convert any string to kebab-case (used for URL path segments)."""
    return to_snake_case(name).replace("_", "-")


@functools.lru_cache(maxsize=None)
def is_identifier(name: str) -> bool:
    """True when ``name`` is usable as a Python identifier / column name."""
    return bool(name) and name.isidentifier()


# ---------------------------------------------------------------------------
# Directory resolution
# ---------------------------------------------------------------------------


def resolve_directory(path: str, absolute: bool = False) -> Path:
    """
    Resolve a configured directory.

    Absolute settings are used verbatim; relative ones are anchored at the
    current working directory (the project root of the running service).
    """
    if absolute:
        return Path(path)
    return Path.cwd() / path


# ---------------------------------------------------------------------------
# Module loading
# ---------------------------------------------------------------------------


def iter_module_files(directory: Path) -> List[Path]:
    """Return the public ``*.py`` files of a directory in a stable order."""
    return sorted(
        p for p in directory.glob("*.py") if p.is_file() and not p.name.startswith("_")
    )


def load_module_from_path(path: Path, namespace: str) -> ModuleType:
    """
    Import a Python source file as ``<namespace>.<stem>``.

    Raises:
        ImportError: If the file cannot be loaded.
    """
    module_name: str = f"{namespace}.{path.stem}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load module from {path}")
    module: ModuleType = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        sys.modules.pop(module_name, None)
        raise
    logger.debug("Loaded module %s from %s", module_name, path)
    return module


# ---------------------------------------------------------------------------
# Timing
# ---------------------------------------------------------------------------


class Timer:
    """
    Simple context-manager timer for profiling pipeline stages.

    Usage:
        with Timer("resolve schemas") as t:
            ...
        print(t.elapsed)
    """

    __slots__ = ("label", "start_time", "end_time", "elapsed")

    def __init__(self, label: str = "operation") -> None:
        self.label: str = label
        self.start_time: float = 0.0
        self.end_time: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[object],
    ) -> None:
        self.end_time = time.perf_counter()
        self.elapsed = self.end_time - self.start_time
        logger.debug(
            "Timer [%s]: %.4f seconds",
            self.label,
            self.elapsed,
        )

    def __repr__(self) -> str:
        return f"<Timer {self.label}: {self.elapsed:.4f}s>"


__all__: List[str] = [
    "Timer",
    "is_identifier",
    "iter_module_files",
    "load_module_from_path",
    "resolve_directory",
    "to_kebab_case",
    "to_snake_case",
]

