"""
tests/test_policies.py
Unit tests for restgen.policies.
"""

from __future__ import annotations

import pathlib
import textwrap
from typing import List

import pytest
from fastapi import FastAPI

from restgen.config import Config
from restgen.exceptions import PathNotFoundError, PolicyError
from restgen.models import ModelSchema
from restgen.policies import (
    BUILTIN_POLICY_DIR,
    PolicyEngine,
    get_policy_engine,
    register_policies,
    resolve_policy_directory,
)

pytestmark = pytest.mark.anyio


def _write_policy(directory: pathlib.Path, name: str, body: str) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    (directory / f"{name}.py").write_text(textwrap.dedent(body))


class TestPolicyDirectory:
    def test_disabled_uses_builtin(self) -> None:
        config = Config(enablePolicies=False, policyPath="/somewhere/else", absolutePolicyPath=True)
        assert resolve_policy_directory(config) == BUILTIN_POLICY_DIR

    def test_enabled_absolute_used_exactly(self) -> None:
        config = Config(enablePolicies=True, absolutePolicyPath=True, policyPath="/x/y")
        assert resolve_policy_directory(config) == pathlib.Path("/x/y")

    def test_enabled_relative_anchored_at_cwd(self, work_dir: pathlib.Path) -> None:
        config = Config(enablePolicies=True, policyPath="my_policies")
        assert resolve_policy_directory(config) == work_dir / "my_policies"

    def test_builtin_directory_ships_log_request(self) -> None:
        assert (BUILTIN_POLICY_DIR / "log_request.py").is_file()


class TestPolicyEngine:
    def test_load_and_check(self, tmp_path: pathlib.Path) -> None:
        _write_policy(tmp_path, "always", "def policy(request, schema):\n    return None\n")
        _write_policy(tmp_path, "_private", "x = 1\n")
        engine = PolicyEngine()
        assert engine.load_policies(tmp_path) == ["always"]
        engine.check(["always"])
        with pytest.raises(PolicyError, match="missing"):
            engine.check(["always", "missing"])

    def test_missing_directory(self, tmp_path: pathlib.Path) -> None:
        with pytest.raises(PathNotFoundError):
            PolicyEngine().load_policies(tmp_path / "absent")

    def test_duplicate_policy(self, tmp_path: pathlib.Path) -> None:
        _write_policy(tmp_path / "a", "guard", "def policy(request, schema):\n    pass\n")
        _write_policy(tmp_path / "b", "guard", "def policy(request, schema):\n    pass\n")
        engine = PolicyEngine()
        engine.load_policies(tmp_path / "a")
        with pytest.raises(PolicyError, match="guard"):
            engine.load_policies(tmp_path / "b")

    def test_module_without_policy(self, tmp_path: pathlib.Path) -> None:
        _write_policy(tmp_path, "empty", "VALUE = 1\n")
        with pytest.raises(PolicyError, match="does not define"):
            PolicyEngine().load_policies(tmp_path)

    async def test_apply_runs_sync_and_async_in_order(self) -> None:
        calls: List[str] = []
        engine = PolicyEngine()

        def first(request: object, schema: ModelSchema) -> None:
            calls.append(f"first:{schema.name}")

        async def second(request: object, schema: ModelSchema) -> None:
            calls.append(f"second:{schema.name}")

        engine.add("first", first)
        engine.add("second", second)
        await engine.apply(object(), ["second", "first"], ModelSchema(name="Thing"))  # type: ignore[arg-type]
        assert calls == ["second:Thing", "first:Thing"]


class TestRegisterPolicies:
    def test_disabled_loads_builtin_only(self) -> None:
        app = FastAPI()
        register_policies(app, {"directory": BUILTIN_POLICY_DIR})
        engine = get_policy_engine(app)
        assert engine is not None
        assert "log_request" in engine
        assert engine.directories == [BUILTIN_POLICY_DIR]

    def test_loads_builtin_and_user(self, tmp_path: pathlib.Path) -> None:
        _write_policy(tmp_path, "owner_only", "def policy(request, schema):\n    pass\n")
        app = FastAPI()
        register_policies(app, {"directory": tmp_path})
        engine = get_policy_engine(app)
        assert engine is not None
        assert {"log_request", "owner_only"} <= set(engine.policies)
        assert engine.directories == [BUILTIN_POLICY_DIR, tmp_path]

    def test_without_directory_loads_builtin_only(self) -> None:
        app = FastAPI()
        register_policies(app, {"directory": None})
        engine = get_policy_engine(app)
        assert engine is not None
        assert list(engine.policies) == ["log_request"]
        assert engine.directories == [BUILTIN_POLICY_DIR]
