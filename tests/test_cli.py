"""Tests for the command-line driver."""

import json
import tempfile
from pathlib import Path

from click.testing import CliRunner

from transmute import __version__
from transmute.cli import main

LEGACY = "f = open('log.txt')\nf.write('x')\nf.close()\n"


def _write(tmpdir, name, text):
    path = Path(tmpdir) / name
    path.write_text(text)
    return str(path)


# --- Translate Tests ---


def test_translate_json_output():
    runner = CliRunner()
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write(tmpdir, "legacy.py", LEGACY)
        result = runner.invoke(main, ["translate", path, "--target", "python", "--json"])
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data[path]["code"] == "with open('log.txt') as f:\n    f.write('x')\n"
    assert data[path]["confidence"] == 1.0
    assert data[path]["warnings"] == []


def test_translate_writes_output_dir():
    runner = CliRunner()
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write(tmpdir, "legacy.py", LEGACY)
        out_dir = Path(tmpdir) / "out"
        result = runner.invoke(main, ["translate", path, "-t", "python", "-o", str(out_dir)])
        assert result.exit_code == 0, result.output
        assert (out_dir / "legacy.py").read_text() == "with open('log.txt') as f:\n    f.write('x')\n"
    assert "Translation Results" in result.output


def test_translate_unmapped_target_still_succeeds():
    runner = CliRunner()
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write(tmpdir, "fetch.py", "import requests\nr = requests.get('u')\n")
        result = runner.invoke(main, ["translate", path, "-t", "kotlin", "--json"])
    assert result.exit_code == 0, result.output
    unit = json.loads(result.output)[path]
    assert unit["confidence"] < 1.0
    assert len(unit["warnings"]) == 1
    assert "no mapping for target 'kotlin'" in unit["warnings"][0]["reason"]


def test_translate_bad_catalog_fails():
    runner = CliRunner()
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write(tmpdir, "legacy.py", LEGACY)
        bad = _write(tmpdir, "bad.yaml", "- source_category: x\n")
        result = runner.invoke(main, ["translate", path, "-t", "python", "-c", bad])
    assert result.exit_code == 1
    assert "Error:" in result.output


def test_bad_config_file_fails():
    runner = CliRunner()
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write(tmpdir, "legacy.py", LEGACY)
        config = _write(tmpdir, "transmute.yaml", "workers: 0\n")
        result = runner.invoke(main, ["--config", config, "translate", path, "-t", "python"])
    assert result.exit_code == 1
    assert "at least 1" in result.output


# --- Inspect Tests ---


def test_ir_command_prints_tree():
    runner = CliRunner()
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write(tmpdir, "small.py", "x = 1\n")
        result = runner.invoke(main, ["ir", path])
    assert result.exit_code == 0, result.output
    tree = json.loads(result.output)
    assert tree["kind"] == "module"
    assert tree["children"][0]["kind"] == "variable"


def test_matches_command_lists_patterns():
    runner = CliRunner()
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write(tmpdir, "legacy.py", LEGACY)
        result = runner.invoke(main, ["matches", path])
    assert result.exit_code == 0, result.output
    assert "file-lifecycle" in result.output


def test_matches_command_without_matches():
    runner = CliRunner()
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write(tmpdir, "plain.py", "x = 1\n")
        result = runner.invoke(main, ["matches", path])
    assert result.exit_code == 0
    assert "No pattern matches found." in result.output


# --- Catalog Tests ---


def test_catalog_check_passes():
    runner = CliRunner()
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write(
            tmpdir,
            "extra.yaml",
            "- source_category: reactive-state\n"
            "  target_ecosystem: solid\n"
            "  template: 'createSignal({{initial}})'\n"
            "  priority: 1\n"
            "  behavior_preserving: true\n",
        )
        result = runner.invoke(main, ["catalog", "check", path])
    assert result.exit_code == 0, result.output
    assert "Schema validation passed" in result.output
    assert "[PASS]" in result.output


def test_catalog_check_schema_failure():
    runner = CliRunner()
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write(tmpdir, "bad.yaml", "- source_category: reactive-state\n  priority: high\n")
        result = runner.invoke(main, ["catalog", "check", path])
    assert result.exit_code == 1
    assert "Schema validation FAILED" in result.output


def test_catalog_check_unknown_pattern_fails():
    runner = CliRunner()
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write(
            tmpdir,
            "extra.yaml",
            "- source_category: reactive-state\n"
            "  target_ecosystem: solid\n"
            "  template: 'createSignal()'\n"
            "  priority: 1\n"
            "  behavior_preserving: true\n"
            "  pattern: no-such-pattern\n",
        )
        result = runner.invoke(main, ["catalog", "check", path])
    assert result.exit_code == 1
    assert "UNKNOWN_PATTERN" in result.output


def test_catalog_show_filters_by_target():
    runner = CliRunner()
    result = runner.invoke(main, ["catalog", "show", "--target", "vue"])
    assert result.exit_code == 0, result.output
    assert "reactive-state-vue" in result.output
    assert "requests-get-httpx" not in result.output
    assert "memory-lifecycle" in result.output


def test_catalog_show_library_ecosystems():
    runner = CliRunner()
    result = runner.invoke(main, ["catalog", "show", "--library", "django"])
    assert result.exit_code == 0, result.output
    assert "sqlalchemy, fastapi, flask" in result.output
    result = runner.invoke(main, ["catalog", "show", "--library", "cobol"])
    assert "No target ecosystems declared for cobol" in result.output


def test_catalog_suggest_json():
    runner = CliRunner()
    result = runner.invoke(
        main, ["catalog", "suggest", "manual-resource-lifecycle", "-t", "rust", "-p", "memory-lifecycle", "--json"]
    )
    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == [
        {
            "kind": "semantic-equivalent",
            "confidence": 0.8,
            "mapping": "socket-lifecycle-rust",
            "description": "Semantic equivalent written for 'socket-lifecycle'",
        }
    ]


def test_catalog_suggest_table():
    runner = CliRunner()
    result = runner.invoke(main, ["catalog", "suggest", "reactive-effect", "--target", "vue"])
    assert result.exit_code == 0, result.output
    assert "reactive-effect-vue" in result.output
    assert "direct" in result.output


# --- Misc Tests ---


def test_schema_command():
    runner = CliRunner()
    result = runner.invoke(main, ["schema"])
    assert result.exit_code == 0
    assert json.loads(result.output)["title"] == "Pattern and mapping catalog"


def test_version():
    runner = CliRunner()
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output
