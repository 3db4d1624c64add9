"""
tests/test_model_generator.py
Unit tests for restgen.model_generator (schema loading and registry build).
"""

from __future__ import annotations

import json
import pathlib
from typing import Any, Dict, List

import pytest
import yaml

from restgen.config import Config
from restgen.exceptions import PathNotFoundError, SchemaValidationError
from restgen.log_util import get_logger
from restgen.model_generator import (
    generate_models,
    load_schema_directory,
    load_schema_file,
)


EXAMPLE_MODELS_DIR: pathlib.Path = pathlib.Path(__file__).resolve().parent.parent / "models_example"

pytestmark = pytest.mark.anyio


# ===========================================================================
# File loading
# ===========================================================================


class TestLoadSchemaFile:
    def test_yaml_single_schema(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "thing.yaml"
        path.write_text(yaml.dump({"name": "Thing", "fields": [{"name": "label"}]}))
        schemas = load_schema_file(path)
        assert [s.name for s in schemas] == ["Thing"]
        assert schemas[0].collection_name == "thing"

    def test_json_schema_list(self, tmp_path: pathlib.Path, schema_dicts: List[Dict[str, Any]]) -> None:
        path = tmp_path / "all.json"
        path.write_text(json.dumps({"schemas": schema_dicts}))
        assert [s.name for s in load_schema_file(path)] == ["Author", "Book"]

    def test_invalid_json(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(ValueError, match="Invalid JSON"):
            load_schema_file(path)

    def test_invalid_yaml(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("name: [unclosed")
        with pytest.raises(ValueError, match="Invalid YAML"):
            load_schema_file(path)

    def test_not_a_mapping(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ValueError, match="Expected a schema mapping"):
            load_schema_file(path)

    def test_structural_error_names_file(self, tmp_path: pathlib.Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.dump({"name": "Bad", "fields": [{"name": "x", "type": "blob"}]}))
        with pytest.raises(ValueError, match="bad.yaml"):
            load_schema_file(path)


class TestLoadSchemaDirectory:
    def test_example_models(self) -> None:
        schemas = load_schema_directory(EXAMPLE_MODELS_DIR)
        assert sorted(s.name for s in schemas) == ["Post", "User"]

    def test_ignores_other_files(self, tmp_path: pathlib.Path) -> None:
        (tmp_path / "notes.txt").write_text("ignored")
        (tmp_path / "a.yml").write_text(yaml.dump({"name": "A"}))
        assert [s.name for s in load_schema_directory(tmp_path)] == ["A"]

    def test_missing_directory(self, tmp_path: pathlib.Path) -> None:
        with pytest.raises(PathNotFoundError) as exc_info:
            load_schema_directory(tmp_path / "nope")
        assert exc_info.value.setting == "model_path"


# ===========================================================================
# generate_models
# ===========================================================================


class TestGenerateModels:
    async def test_inline_definitions(self, memory_driver: Any, schema_dicts: List[Dict[str, Any]]) -> None:
        config = Config()
        schemas = await generate_models(memory_driver, get_logger("models", config), config, schema_dicts)
        assert set(schemas) == {"Author", "Book"}
        assert memory_driver.built == ["Author", "Book"]
        assert schemas["Book"].collection_name == "book"
        assert schemas["Book"].schema is schemas["Book"].definition

    async def test_model_directory(self, memory_driver: Any) -> None:
        config = Config(modelPath=str(EXAMPLE_MODELS_DIR), absoluteModelPath=True)
        schemas = await generate_models(memory_driver, get_logger("models", config), config)
        assert set(schemas) == {"User", "Post"}

    async def test_relative_model_directory(self, memory_driver: Any, work_dir: pathlib.Path) -> None:
        (work_dir / "models").mkdir()
        (work_dir / "models" / "a.yaml").write_text(yaml.dump({"name": "A"}))
        config = Config()
        schemas = await generate_models(memory_driver, get_logger("models", config), config)
        assert list(schemas) == ["A"]

    async def test_missing_model_directory(self, memory_driver: Any, work_dir: pathlib.Path) -> None:
        config = Config()
        with pytest.raises(PathNotFoundError) as exc_info:
            await generate_models(memory_driver, get_logger("models", config), config)
        assert exc_info.value.setting == "model_path"

    async def test_missing_policy_directory(
        self, memory_driver: Any, work_dir: pathlib.Path, schema_dicts: List[Dict[str, Any]]
    ) -> None:
        config = Config(enablePolicies=True, policyPath="no_policies")
        with pytest.raises(PathNotFoundError) as exc_info:
            await generate_models(memory_driver, get_logger("models", config), config, schema_dicts)
        assert exc_info.value.setting == "policy_path"
        assert memory_driver.built == []

    async def test_validation_errors_raise(self, memory_driver: Any, schema_dicts: List[Dict[str, Any]]) -> None:
        schema_dicts[1]["associations"][0]["model"] = "Publisher"
        config = Config()
        with pytest.raises(SchemaValidationError) as exc_info:
            await generate_models(memory_driver, get_logger("models", config), config, schema_dicts)
        assert "UNKNOWN_ASSOCIATION_MODEL" in exc_info.value.result.codes()
        assert memory_driver.built == []
