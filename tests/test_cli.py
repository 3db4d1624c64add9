"""
tests/test_cli.py
Tests for the restgen command-line interface.
"""

from __future__ import annotations

import argparse
import logging
import pathlib
from typing import Any, Dict, Iterator, List

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from restgen import cli
from restgen.exceptions import ConfigError

EXAMPLE_MODELS_DIR: pathlib.Path = pathlib.Path(__file__).resolve().parent.parent / "models_example"

MEMORY_URI = "sqlite+aiosqlite://"


@pytest.fixture(autouse=True)
def restore_restgen_logger() -> Iterator[None]:
    """``main`` installs its own handler; give later tests the original logger back."""
    root = logging.getLogger("restgen")
    saved = (root.level, list(root.handlers), root.propagate)
    yield
    root.setLevel(saved[0])
    root.handlers[:] = saved[1]
    root.propagate = saved[2]


@pytest.fixture
def served(monkeypatch: pytest.MonkeyPatch) -> List[Dict[str, Any]]:
    calls: List[Dict[str, Any]] = []

    def fake_run(app: FastAPI, **kwargs: Any) -> None:
        calls.append({"app": app, **kwargs})

    monkeypatch.setattr(cli.uvicorn, "run", fake_run)
    return calls


def _args(**values: Any) -> argparse.Namespace:
    defaults: Dict[str, Any] = {"config": None, "models": None, "uri": None, "no_docs": False}
    defaults.update(values)
    return argparse.Namespace(**defaults)


# ===========================================================================
# Parser
# ===========================================================================


class TestParser:
    def test_check_command(self) -> None:
        args = cli._build_parser().parse_args(["check", "-m", "schemas", "-vv"])
        assert args.command == "check"
        assert args.models == "schemas"
        assert args.verbose == 2

    def test_serve_defaults(self) -> None:
        args = cli._build_parser().parse_args(["serve"])
        assert (args.host, args.port, args.no_docs, args.uri) == ("127.0.0.1", 8000, False, None)

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            cli._build_parser().parse_args([])

    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        from restgen import __version__

        with pytest.raises(SystemExit):
            cli.main(["--version"])
        assert __version__ in capsys.readouterr().out


# ===========================================================================
# Configuration
# ===========================================================================


class TestConfiguration:
    def test_load_yaml_file(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "restgen.yaml"
        path.write_text("appTitle: Library\nmongo:\n  URI: sqlite+aiosqlite:///lib.db\n")
        assert cli.load_config_file(path) == {
            "appTitle": "Library",
            "mongo": {"URI": "sqlite+aiosqlite:///lib.db"},
        }

    def test_load_json_file(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "restgen.json"
        path.write_text('{"logLevel": "DEBUG"}')
        assert cli.load_config_file(path) == {"logLevel": "DEBUG"}

    def test_empty_file(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert cli.load_config_file(path) == {}

    @pytest.mark.parametrize(
        "content, message",
        [("- a\n- b\n", "must hold a mapping"), ("key: [unclosed\n", "Invalid config file")],
    )
    def test_invalid_file(self, tmp_path: pathlib.Path, content: str, message: str) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text(content)
        with pytest.raises(ConfigError, match=message):
            cli.load_config_file(path)

    def test_missing_file(self, tmp_path: pathlib.Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            cli.load_config_file(tmp_path / "absent.yaml")

    def test_flags_override_file(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "restgen.yaml"
        path.write_text("database:\n  uri: sqlite+aiosqlite:///file.db\n  createTables: false\n")
        overrides = cli.build_overrides(
            _args(config=str(path), uri="sqlite+aiosqlite:///flag.db", models="schemas", no_docs=True)
        )
        assert overrides["database"] == {"uri": "sqlite+aiosqlite:///flag.db", "createTables": False}
        assert overrides["model_path"] == str(pathlib.Path("schemas").resolve())
        assert overrides["absolute_model_path"] is True
        assert overrides["disable_swagger"] is True

    def test_no_flags(self) -> None:
        assert cli.build_overrides(_args()) == {}


# ===========================================================================
# check
# ===========================================================================


class TestCheckCommand:
    def test_example_models_valid(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert cli.main(["check", "--models", str(EXAMPLE_MODELS_DIR), "-q"]) == cli.EXIT_SUCCESS
        out = capsys.readouterr().out
        assert "Models:    2" in out
        assert "Valid:     Yes" in out

    def test_missing_directory(self, tmp_path: pathlib.Path) -> None:
        assert cli.main(["check", "--models", str(tmp_path / "absent"), "-q"]) == cli.EXIT_INPUT_ERROR

    def test_unreadable_schema(self, tmp_path: pathlib.Path) -> None:
        (tmp_path / "broken.json").write_text("{not json")
        assert cli.main(["check", "--models", str(tmp_path), "-q"]) == cli.EXIT_INPUT_ERROR

    def test_invalid_schemas(self, tmp_path: pathlib.Path, capsys: pytest.CaptureFixture[str]) -> None:
        (tmp_path / "thing.yaml").write_text("name: Thing\nfields:\n  - {name: id}\n")
        assert cli.main(["check", "--models", str(tmp_path), "-q"]) == cli.EXIT_VALIDATION_ERROR
        assert "RESERVED_FIELD_NAME" in capsys.readouterr().out

    def test_bad_config_file(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "restgen.yaml"
        path.write_text("unknownOption: 1\n")
        assert cli.main(["check", "-c", str(path), "-q"]) == cli.EXIT_INPUT_ERROR


# ===========================================================================
# serve
# ===========================================================================


class TestServeCommand:
    def test_serves_registered_app(self, work_dir: pathlib.Path, served: List[Dict[str, Any]]) -> None:
        code = cli.main(
            ["serve", "-m", str(EXAMPLE_MODELS_DIR), "--uri", MEMORY_URI, "--port", "9001", "-q"]
        )
        assert code == cli.EXIT_SUCCESS
        (call,) = served
        assert call["port"] == 9001
        assert call["host"] == "127.0.0.1"
        paths = {getattr(route, "path", None) for route in call["app"].routes}
        assert {"/users", "/posts", "/users/{document_id}/posts", "/swagger.json"} <= paths

    def test_no_docs(self, work_dir: pathlib.Path, served: List[Dict[str, Any]]) -> None:
        assert cli.main(["serve", "-m", str(EXAMPLE_MODELS_DIR), "--no-docs", "-q"]) == cli.EXIT_SUCCESS
        paths = {getattr(route, "path", None) for route in served[0]["app"].routes}
        assert "/swagger.json" not in paths

    def test_invalid_schemas_fail_registration(
        self, work_dir: pathlib.Path, served: List[Dict[str, Any]]
    ) -> None:
        (work_dir / "models").mkdir()
        (work_dir / "models" / "thing.yaml").write_text("name: Thing\nfields:\n  - {name: id}\n")
        assert cli.main(["serve", "-q"]) == cli.EXIT_REGISTRATION_ERROR
        assert served == []

    def test_bad_config_file(self, work_dir: pathlib.Path, served: List[Dict[str, Any]]) -> None:
        assert cli.main(["serve", "-c", "missing.yaml", "-q"]) == cli.EXIT_INPUT_ERROR
        assert served == []


@pytest.mark.anyio
async def test_create_app_serves_requests(anyio_backend: str, work_dir: pathlib.Path) -> None:
    app = await cli.create_app(
        {
            "appTitle": "Blog",
            "modelPath": str(EXAMPLE_MODELS_DIR),
            "absoluteModelPath": True,
            "mongo": {"URI": MEMORY_URI},
        }
    )
    assert app.title == "Blog"
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        user = (await client.post("/users", json={"email": "ada@example.com"})).json()
        assert user["active"] is True
        await client.post("/posts", json={"title": "Hello", "author_id": user["id"]})
        posts = (await client.get(f"/users/{user['id']}/posts")).json()
        document = (await client.get("/swagger.json")).json()
    assert [p["title"] for p in posts] == ["Hello"]
    assert document["info"]["title"] == "Blog"
