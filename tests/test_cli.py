"""
Handlers and CLI Test Suite

Tests for core/handlers, io.py and cli.py:
- validate_data / check_schema / init_project / get_project_config handlers
- load_document() for JSON and YAML
- schemapipe validate / check / config commands and exit codes
"""

import asyncio
import json
import urllib.error
import urllib.request

import pytest

from schemapipe.cli import EXIT_ERROR, EXIT_INVALID, EXIT_VALID, main, parse_refs
from schemapipe.core.handlers import get_handler, list_handlers
from schemapipe.core.handlers.validation import check_schema, validate_data
from schemapipe.io import load_document

SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "port": {"type": "integer", "default": 8080},
    },
    "required": ["name"],
}


def write_json(path, document):
    path.write_text(json.dumps(document))
    return str(path)


class TestHandlers:

    def test_registry_lists_all(self):
        assert set(list_handlers()) == {
            "validate_data", "check_schema", "init_project", "get_project_config",
        }
        assert get_handler("validate_data") is validate_data
        assert get_handler("nope") is None

    def test_validate_data_inline(self, make_registry):
        registry, _ = make_registry()
        result = asyncio.run(validate_data(registry, {"schema": SCHEMA, "data": {"name": "api"}}))
        assert result == {
            "success": True,
            "data": {"name": "api", "port": 8080},
            "errors": [],
            "error_count": 0,
        }

    def test_validate_data_invalid(self, make_registry):
        registry, _ = make_registry()
        result = asyncio.run(validate_data(registry, {"schema": SCHEMA, "data": {"name": 1}}))
        assert result["success"] is False
        assert result["error_count"] == 1
        assert result["errors"][0].startswith("/name ")

    def test_validate_data_requires_input(self, make_registry):
        registry, _ = make_registry()
        with pytest.raises(ValueError):
            asyncio.run(validate_data(registry, {"schema": SCHEMA}))

    def test_refs_preloaded(self, make_registry, tmp_path):
        registry, http = make_registry()
        uri = "http://schemas.example.com/port.json"
        ref_path = write_json(tmp_path / "port.json", {"type": "integer"})
        schema = {"properties": {"port": {"$ref": uri}}}
        result = asyncio.run(validate_data(registry, {
            "schema": schema, "data": {"port": "x"}, "refs": {uri: ref_path},
        }))
        assert result["success"] is False
        assert http.calls == []

    def test_check_schema(self, make_registry):
        registry, _ = make_registry()
        assert asyncio.run(check_schema(registry, {"schema": SCHEMA})) == {"valid": True, "error": None}
        result = asyncio.run(check_schema(registry, {"schema": {"type": 3}}))
        assert result["valid"] is False
        assert result["error"]

    def test_check_schema_fetch_failure(self, make_registry):
        registry, _ = make_registry()
        result = asyncio.run(check_schema(registry, {"schema": {"$ref": "http://example.com/x.json"}}))
        assert result["valid"] is False
        assert "404" in result["error"]

    def test_check_schema_malformed_yaml(self, make_registry, tmp_path):
        registry, _ = make_registry()
        path = tmp_path / "schema.yaml"
        path.write_text("type: {object\n")
        result = asyncio.run(check_schema(registry, {"schema_path": str(path)}))
        assert result["valid"] is False
        assert result["error"]

    def test_project_handlers(self, tmp_path):
        init = get_handler("init_project")
        show = get_handler("get_project_config")
        before = asyncio.run(show(None, {"output_dir": str(tmp_path)}))
        assert before["initialized"] is False
        created = asyncio.run(init(None, {"output_dir": str(tmp_path), "fetch_timeout": 3}))
        assert created["success"] is True
        assert created["config"]["fetch"]["timeout"] == 3.0
        again = asyncio.run(init(None, {"output_dir": str(tmp_path)}))
        assert again["success"] is False
        after = asyncio.run(show(None, {"output_dir": str(tmp_path)}))
        assert after["initialized"] is True


class TestLoadDocument:

    def test_json(self, tmp_path):
        assert load_document(write_json(tmp_path / "a.json", {"a": 1})) == {"a": 1}

    def test_yaml(self, tmp_path):
        path = tmp_path / "a.yaml"
        path.write_text("type: object\nrequired:\n  - name\n")
        assert load_document(path) == {"type": "object", "required": ["name"]}

    def test_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_document(tmp_path / "nope.json")

    def test_invalid_json_names_file(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{oops")
        with pytest.raises(json.JSONDecodeError, match="bad.json"):
            load_document(path)


class TestCli:

    def test_parse_refs(self):
        assert parse_refs(["http://x/a.json=local/a.json"]) == {"http://x/a.json": "local/a.json"}
        assert parse_refs(None) == {}

    def test_validate_valid(self, tmp_path, capsys):
        schema = write_json(tmp_path / "schema.json", SCHEMA)
        data = write_json(tmp_path / "data.json", {"name": "api"})
        code = main(["--config-dir", str(tmp_path), "validate", schema, data])
        output = json.loads(capsys.readouterr().out)
        assert code == EXIT_VALID
        assert output["data"] == {"name": "api", "port": 8080}

    def test_validate_no_defaults(self, tmp_path, capsys):
        schema = write_json(tmp_path / "schema.json", SCHEMA)
        data = write_json(tmp_path / "data.json", {"name": "api"})
        code = main(["--config-dir", str(tmp_path), "validate", schema, data, "--no-defaults"])
        output = json.loads(capsys.readouterr().out)
        assert code == EXIT_VALID
        assert output["data"] == {"name": "api", "port": None}

    def test_validate_invalid(self, tmp_path, capsys):
        schema = write_json(tmp_path / "schema.json", SCHEMA)
        data = write_json(tmp_path / "data.json", {"port": 1})
        code = main(["--config-dir", str(tmp_path), "validate", schema, data])
        output = json.loads(capsys.readouterr().out)
        assert code == EXIT_INVALID
        assert output["error_count"] == 1

    def test_validate_with_ref(self, tmp_path, capsys):
        uri = "http://schemas.example.com/name.json"
        write_json(tmp_path / "name.json", {"type": "string", "minLength": 3})
        schema = write_json(tmp_path / "schema.json", {"properties": {"name": {"$ref": uri}}})
        data = write_json(tmp_path / "data.json", {"name": "ab"})
        code = main([
            "--config-dir", str(tmp_path), "validate", schema, data,
            "--ref", f"{uri}={tmp_path / 'name.json'}",
        ])
        capsys.readouterr()
        assert code == EXIT_INVALID

    def test_validate_broken_schema(self, tmp_path, capsys):
        schema = write_json(tmp_path / "schema.json", {"type": "nonsense"})
        data = write_json(tmp_path / "data.json", {})
        code = main(["--config-dir", str(tmp_path), "validate", schema, data])
        output = json.loads(capsys.readouterr().out)
        assert code == EXIT_ERROR
        assert output["success"] is False

    def test_validate_malformed_yaml(self, tmp_path, capsys):
        """An unparsable YAML document is reported as an error, not a crash"""
        schema = write_json(tmp_path / "schema.json", SCHEMA)
        data = tmp_path / "data.yaml"
        data.write_text("name: [unclosed\n")
        code = main(["--config-dir", str(tmp_path), "validate", schema, str(data)])
        output = json.loads(capsys.readouterr().out)
        assert code == EXIT_ERROR
        assert output["success"] is False

    def test_validate_unreachable_reference(self, tmp_path, capsys, monkeypatch):
        """A host that cannot be reached is reported as an error"""
        def urlopen(request, timeout=None):
            raise urllib.error.URLError("Name or service not known")

        monkeypatch.setattr(urllib.request, "urlopen", urlopen)
        schema = write_json(tmp_path / "schema.json", {"$ref": "http://unreachable.invalid/s.json"})
        data = write_json(tmp_path / "data.json", {})
        code = main(["--config-dir", str(tmp_path), "validate", schema, data])
        output = json.loads(capsys.readouterr().out)
        assert code == EXIT_ERROR
        assert "unreachable.invalid" in output["error"]

    def test_check(self, tmp_path, capsys):
        good = write_json(tmp_path / "good.json", SCHEMA)
        bad = write_json(tmp_path / "bad.json", {"type": 1})
        assert main(["--config-dir", str(tmp_path), "check", good]) == EXIT_VALID
        assert main(["--config-dir", str(tmp_path), "check", bad]) == EXIT_ERROR
        capsys.readouterr()

    def test_config_init_and_show(self, tmp_path, capsys):
        assert main(["--config-dir", str(tmp_path), "config", "init", "--draft", "7"]) == EXIT_VALID
        created = json.loads(capsys.readouterr().out)
        assert created["config"]["default_draft"] == "7"
        assert main(["--config-dir", str(tmp_path), "config", "show"]) == EXIT_VALID
        shown = json.loads(capsys.readouterr().out)
        assert shown["initialized"] is True
        assert main(["--config-dir", str(tmp_path), "config", "init"]) == EXIT_ERROR
        capsys.readouterr()
