# File: restgen/cli.py
"""
RestGen - Command-Line Interface
=================================
Usage examples::

    # Validate every schema file of a directory
    restgen check --models ./models

    # Serve the generated API
    restgen serve --models ./models --uri sqlite+aiosqlite:///app.db --port 8000

    # Options from a JSON/YAML file, flags win
    restgen serve -c restgen.yaml --port 9000 -v

Exit codes:
    0 - success
    1 - validation error
    2 - registration error
    4 - input/argument error
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import uvicorn
import yaml
from fastapi import FastAPI

from restgen.config import Config, deep_merge, merge_config
from restgen.core import RestGen
from restgen.exceptions import ConfigError, PathNotFoundError, RestGenError
from restgen.log_util import configure_logging
from restgen.model_generator import load_schema_directory
from restgen.utils import Timer, resolve_directory
from restgen.validators import ValidationResult, validate_schemas

logger: logging.Logger = logging.getLogger("restgen.cli")


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_VALIDATION_ERROR: int = 1
EXIT_REGISTRATION_ERROR: int = 2
EXIT_INPUT_ERROR: int = 4


def _setup_logging(verbosity: int, quiet: bool = False) -> None:
    """0 = WARNING, 1 = INFO, 2+ = DEBUG; ``quiet`` keeps errors only."""
    if quiet:
        level = logging.ERROR
    elif verbosity >= 2:
        level = logging.DEBUG
    elif verbosity >= 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    configure_logging(level)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    from restgen import __version__

    parser = argparse.ArgumentParser(
        prog="restgen",
        description="RestGen - REST APIs generated from declared data schemas.",
    )
    parser.add_argument("--version", action="version", version=f"RestGen v{__version__}")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-c", "--config",
        type=str,
        default=None,
        metavar="FILE",
        help="JSON or YAML file with configuration options.",
    )
    common.add_argument(
        "-m", "--models",
        type=str,
        default=None,
        metavar="DIR",
        help="Directory holding the schema files.",
    )
    common.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for INFO, -vv for DEBUG).",
    )
    common.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Suppress all output except errors.",
    )

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("check", parents=[common], help="Validate schema files.")

    serve = commands.add_parser("serve", parents=[common], help="Serve the generated API.")
    serve.add_argument("--uri", type=str, default=None, metavar="URL", help="Database URL.")
    serve.add_argument("--host", type=str, default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument(
        "--no-docs",
        action="store_true",
        default=False,
        help="Do not serve the documentation endpoints.",
    )
    return parser


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def load_config_file(path: Path) -> Dict[str, Any]:
    """
    Raises:
        ConfigError: If the file is missing or not a mapping.
    """
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")
    try:
        data: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid config file {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must hold a mapping.")
    return data


def build_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """File options first, then command-line flags."""
    overrides: Dict[str, Any] = {}
    if args.config:
        overrides = load_config_file(Path(args.config))

    flags: Dict[str, Any] = {}
    if args.models:
        flags["model_path"] = str(Path(args.models).resolve())
        flags["absolute_model_path"] = True
    if getattr(args, "uri", None):
        flags["database"] = {"uri": args.uri}
    if getattr(args, "no_docs", False):
        flags["disable_swagger"] = True
    return deep_merge(overrides, flags)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _run_check(args: argparse.Namespace) -> int:
    try:
        config: Config = Config()
        merge_config(config, build_overrides(args))
    except ConfigError as exc:
        logger.error("%s", exc)
        return EXIT_INPUT_ERROR

    model_dir: Path = resolve_directory(config.model_path, config.absolute_model_path)
    try:
        with Timer("load_schemas") as t:
            schemas = load_schema_directory(model_dir)
    except (PathNotFoundError, ValueError) as exc:
        logger.error("Failed to load schemas: %s", exc)
        return EXIT_INPUT_ERROR

    result: ValidationResult = validate_schemas(schemas)

    print(f"\n{'=' * 50}")
    print("  Schema Validation Report")
    print(f"{'=' * 50}")
    print(f"  Directory: {model_dir}")
    print(f"  Models:    {len(schemas)}")
    print(f"  Time:      {t.elapsed:.3f}s")
    print(f"  Valid:     {'Yes' if result.is_valid else 'No'}")
    if len(result):
        print()
        print(result.format_report())
    elif result.is_valid:
        print("\n  ✅ All validations passed!")
    print(f"{'=' * 50}\n")

    return EXIT_SUCCESS if result.is_valid else EXIT_VALIDATION_ERROR


async def create_app(overrides: Dict[str, Any]) -> FastAPI:
    """Build a FastAPI application with RestGen registered on it."""
    api = RestGen()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await api.close()

    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None, lifespan=lifespan)
    await api.register(app, {"config": overrides})
    app.title = api.config.app_title
    app.version = api.config.version
    return app


def _run_serve(args: argparse.Namespace) -> int:
    try:
        app: FastAPI = asyncio.run(create_app(build_overrides(args)))
    except (ConfigError, ValueError) as exc:
        logger.error("%s", exc)
        return EXIT_INPUT_ERROR
    except RestGenError as exc:
        logger.error("Registration failed: %s", exc)
        return EXIT_REGISTRATION_ERROR

    log_level: str = "debug" if args.verbose >= 2 else "info" if args.verbose else "warning"
    uvicorn.run(app, host=args.host, port=args.port, log_level=log_level)
    return EXIT_SUCCESS


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    _setup_logging(args.verbose, args.quiet)

    if args.command == "check":
        return _run_check(args)
    return _run_serve(args)


def cli_main() -> None:
    """Console-script entry point."""
    sys.exit(main())


__all__: List[str] = ["build_overrides", "cli_main", "create_app", "load_config_file", "main"]
