"""
tests/test_utils.py
Unit tests for restgen.utils.
"""

from __future__ import annotations

import pathlib
import sys

import pytest

from restgen.utils import (
    Timer,
    is_identifier,
    iter_module_files,
    load_module_from_path,
    resolve_directory,
    to_kebab_case,
    to_snake_case,
)


class TestCaseConversion:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("UserProfile", "user_profile"),
            ("getHTTPResponse", "get_http_response"),
            ("already_snake", "already_snake"),
            ("Blog Post", "blog_post"),
            ("", ""),
        ],
    )
    def test_to_snake_case(self, value: str, expected: str) -> None:
        assert to_snake_case(value) == expected

    def test_to_kebab_case(self) -> None:
        assert to_kebab_case("OrderLine") == "order-line"
        assert to_kebab_case("order_line") == "order-line"

    def test_is_identifier(self) -> None:
        assert is_identifier("first_name")
        assert not is_identifier("first-name")
        assert not is_identifier("1st")
        assert not is_identifier("")


class TestDirectories:
    def test_absolute_used_verbatim(self) -> None:
        assert resolve_directory("/srv/models", absolute=True) == pathlib.Path("/srv/models")

    def test_relative_anchored_at_cwd(self, work_dir: pathlib.Path) -> None:
        assert resolve_directory("models") == work_dir / "models"


class TestModuleLoading:
    def test_public_modules_in_order(self, tmp_path: pathlib.Path) -> None:
        for name in ("b.py", "a.py", "_hidden.py", "notes.txt"):
            (tmp_path / name).write_text("")
        assert [p.name for p in iter_module_files(tmp_path)] == ["a.py", "b.py"]

    def test_load_module(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "greeting.py"
        path.write_text("MESSAGE = 'hello'\n")
        module = load_module_from_path(path, "restgen_test_modules")
        assert module.MESSAGE == "hello"
        assert sys.modules["restgen_test_modules.greeting"] is module

    def test_failed_module_not_registered(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "broken.py"
        path.write_text("raise RuntimeError('boom')\n")
        with pytest.raises(RuntimeError):
            load_module_from_path(path, "restgen_test_modules")
        assert "restgen_test_modules.broken" not in sys.modules


def test_timer_measures_elapsed() -> None:
    with Timer("noop") as t:
        pass
    assert t.elapsed >= 0.0
    assert "noop" in repr(t)
