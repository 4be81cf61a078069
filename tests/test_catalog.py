"""Tests for the pattern/mapping catalog: schema gate, loader, semantic checks."""

import tempfile
from pathlib import Path

import pytest
import yaml

from transmute.catalog import DEFAULT_CATALOG_PATH, catalog_from_data, load_catalog
from transmute.catalog.loader import read_document
from transmute.catalog.models import Mapping, SuggestionKind, template_placeholders
from transmute.catalog.schema import get_schema
from transmute.catalog.schema_validator import validate_schema
from transmute.catalog.semantic_validator import Severity, validate_catalog
from transmute.errors import CatalogLoadError
from transmute.patterns.models import Stability


def _mapping(**overrides) -> dict:
    data = {
        "source_category": "reactive-state",
        "target_ecosystem": "vue",
        "template": "ref({{initial}})",
        "priority": 0,
        "behavior_preserving": True,
    }
    data.update(overrides)
    return data


def _write(tmpdir: str, name: str, data) -> Path:
    path = Path(tmpdir) / name
    path.write_text(yaml.safe_dump(data, sort_keys=False))
    return path


# --- Schema Tests ---


def test_schema_exists():
    schema = get_schema()
    assert schema["title"] == "Pattern and mapping catalog"
    assert len(schema["oneOf"]) == 2


def test_schema_bare_mapping_list():
    assert validate_schema([_mapping()]) == []


def test_schema_patterns_and_mappings():
    data = {
        "patterns": [{"id": "state", "category": "reactive-state", "match": {"type": "library-call"}}],
        "mappings": [_mapping()],
    }
    assert validate_schema(data) == []


def test_schema_missing_required_field():
    data = _mapping()
    del data["behavior_preserving"]
    issues = validate_schema([data])
    assert issues
    assert any("behavior_preserving" in i for i in issues)


def test_schema_wrong_priority_type():
    assert validate_schema([_mapping(priority="high")])


def test_schema_unknown_matcher_type():
    data = {"patterns": [{"id": "x", "match": {"type": "regex"}}], "mappings": []}
    assert validate_schema(data)


def test_schema_rejects_unknown_mapping_field():
    assert validate_schema([_mapping(weight=3)])


def test_schema_fragment_template_needs_kind():
    assert validate_schema([_mapping(template={"name": "x"})])
    assert validate_schema([_mapping(template={"kind": "call", "name": "ref"})]) == []


# --- Model Tests ---


def test_template_placeholders_first_seen_order():
    assert template_placeholders("{{b}} {{a}} {{ b }}") == ["b", "a"]
    tree = {"kind": "call", "name": "{{fn}}", "children": [{"kind": "literal", "metadata": {"value": "{{v}}"}}]}
    assert template_placeholders(tree) == ["fn", "v"]


def test_mapping_default_id_and_order():
    mapping = Mapping.from_dict(_mapping(), order=4)
    assert mapping.id == "reactive-state->vue#4"
    assert mapping.order == 4
    assert not mapping.is_fragment


# --- Loader Tests ---


def test_default_catalog_loads():
    catalog = load_catalog()
    ids = [p.id for p in catalog.patterns]
    assert ids[0] == "memory-lifecycle"
    assert "library-call" in ids
    assert catalog.patterns.get("memory-lifecycle").stability == Stability.PRESERVE
    assert "python" in catalog.target_ecosystems
    assert catalog.sources == (str(DEFAULT_CATALOG_PATH),)


def test_catalog_without_defaults_is_empty():
    catalog = load_catalog(include_defaults=False)
    assert len(catalog.patterns) == 0
    assert catalog.mappings == ()


def test_user_catalog_appends_after_defaults():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write(tmpdir, "extra.yaml", [_mapping(id="state-to-b", target_ecosystem="B")])
        catalog = load_catalog([path])
    last = catalog.mappings[-1]
    assert last.id == "state-to-b"
    assert last.order == len(catalog.mappings) - 1


def test_user_catalog_replaces_mapping_in_place():
    base = load_catalog()
    position = [m.id for m in base.mappings].index("reactive-state-vue")
    replaced = catalog_from_data(
        [_mapping(id="reactive-state-vue", template="shallowRef({{initial}})", priority=10)],
        "override.yaml",
        base=base,
    )
    assert len(replaced.mappings) == len(base.mappings)
    assert replaced.mappings[position].template == "shallowRef({{initial}})"
    assert replaced.mappings[position].order == position


def test_user_catalog_replaces_pattern_in_place():
    base = load_catalog()
    override = {
        "patterns": [
            {
                "id": "file-lifecycle",
                "category": "manual-resource-lifecycle",
                "stability": "preserve",
                "match": {"type": "lifecycle-pair", "acquire": ["open"], "release": ["close"]},
            }
        ]
    }
    catalog = catalog_from_data(override, "override.yaml", base=base)
    assert [p.id for p in catalog.patterns] == [p.id for p in base.patterns]
    assert catalog.patterns.get("file-lifecycle").safety_critical


def test_duplicate_mapping_ids_rejected():
    with pytest.raises(CatalogLoadError, match="duplicate mapping id"):
        catalog_from_data([_mapping(id="m"), _mapping(id="m")], "dup.yaml")


def test_duplicate_pattern_ids_rejected():
    pattern = {"id": "p", "match": {"type": "library-call"}}
    with pytest.raises(CatalogLoadError, match="duplicate pattern id"):
        catalog_from_data({"patterns": [pattern, pattern]}, "dup.yaml")


def test_bad_matcher_arguments_rejected():
    data = {"patterns": [{"id": "p", "match": {"type": "lifecycle-pair", "acquire": ["open"]}}]}
    with pytest.raises(CatalogLoadError, match="acquire"):
        catalog_from_data(data, "bad.yaml")


def test_bad_fragment_template_rejected():
    with pytest.raises(CatalogLoadError, match="unknown node kind"):
        catalog_from_data([_mapping(template={"kind": "lambda"})], "bad.yaml")


def test_schema_failure_is_catalog_load_error():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write(tmpdir, "bad.yaml", [{"source_category": "x"}])
        with pytest.raises(CatalogLoadError) as exc:
            load_catalog([path])
    assert exc.value.source == str(path)
    assert exc.value.issues


def test_missing_catalog_file():
    with pytest.raises(CatalogLoadError, match="file not found"):
        read_document("/nonexistent/catalog.yaml")


def test_unparseable_catalog_file():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "broken.yaml"
        path.write_text("mappings: [unclosed\n")
        with pytest.raises(CatalogLoadError, match="parse error"):
            read_document(path)


def test_json_catalog_accepted():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "extra.json"
        path.write_text('[{"source_category": "http-get", "target_ecosystem": "aiohttp", '
                        '"template": "session.get({{args}})", "priority": 1, "behavior_preserving": true}]')
        catalog = load_catalog([path])
    assert catalog.mappings_for("http-get", "aiohttp")


def test_default_catalog_declares_ecosystems():
    catalog = load_catalog()
    assert catalog.target_ecosystems_for("react") == ["vue", "svelte", "angular", "vanilla"]
    assert catalog.target_ecosystems_for("django") == ["sqlalchemy", "fastapi", "flask"]
    assert catalog.target_ecosystems_for("cobol") == []


def test_user_catalog_extends_ecosystems():
    extended = catalog_from_data(
        {"ecosystems": {"react": ["solid", "vue"], "flask": ["fastapi"]}}, "extra.yaml", base=load_catalog()
    )
    assert extended.target_ecosystems_for("react") == ["vue", "svelte", "angular", "vanilla", "solid"]
    assert extended.target_ecosystems_for("flask") == ["fastapi"]


def test_bad_ecosystem_list_rejected():
    with pytest.raises(CatalogLoadError, match="ecosystems.react"):
        catalog_from_data({"ecosystems": {"react": "vue"}}, "bad.yaml")


def test_semantic_error_blocks_loading():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = _write(tmpdir, "extra.yaml", [_mapping(pattern="no-such-pattern")])
        with pytest.raises(CatalogLoadError, match="UNKNOWN_PATTERN"):
            load_catalog([path])


# --- Semantic Validator Tests ---


def test_default_catalog_passes_semantics():
    result = validate_catalog(load_catalog())
    assert result.passed
    assert result.summary().startswith("[PASS]")


def test_semantic_no_mappings_is_info():
    result = validate_catalog(catalog_from_data([], "empty.yaml"))
    assert result.passed
    assert [i.code for i in result.issues] == ["NO_MAPPINGS"]
    assert result.issues[0].severity == Severity.INFO


def test_semantic_category_unproduced_warning():
    data = {
        "patterns": [{"id": "guard", "category": "platform-branch", "match": {"type": "platform-branch"}}],
        "mappings": [_mapping(source_category="never-produced")],
    }
    result = validate_catalog(catalog_from_data(data, "x.yaml"))
    codes = {i.code: i.severity for i in result.issues}
    assert codes["CATEGORY_UNPRODUCED"] == Severity.WARNING


def test_semantic_category_from_library_call_is_info():
    data = {
        "patterns": [{"id": "calls", "match": {"type": "library-call"}}],
        "mappings": [_mapping(source_category="reactive-state")],
    }
    result = validate_catalog(catalog_from_data(data, "x.yaml"))
    issue = next(i for i in result.issues if i.code == "CATEGORY_UNPRODUCED")
    assert issue.severity == Severity.INFO


def test_semantic_unbindable_placeholder():
    data = {
        "patterns": [{"id": "guard", "category": "platform-branch", "match": {"type": "platform-branch"}}],
        "mappings": [_mapping(source_category="platform-branch", template="if {{predicate}}: pass")],
    }
    result = validate_catalog(catalog_from_data(data, "x.yaml"))
    assert any(i.code == "UNBINDABLE_PLACEHOLDER" for i in result.warnings)


def test_semantic_introduced_name_unused():
    result = validate_catalog(catalog_from_data([_mapping(introduces=["cell"])], "x.yaml"))
    assert any(i.code == "INTRODUCED_NAME_UNUSED" for i in result.warnings)


def test_semantic_refused_for_safety():
    data = {
        "patterns": [
            {
                "id": "mem",
                "category": "manual-resource-lifecycle",
                "stability": "preserve",
                "match": {"type": "lifecycle-pair", "acquire": "malloc", "release": "free"},
            }
        ],
        "mappings": [
            _mapping(
                source_category="manual-resource-lifecycle",
                target_ecosystem="python",
                template="{{resource}} = bytearray({{acquire_args}})",
                behavior_preserving=False,
            )
        ],
    }
    result = validate_catalog(catalog_from_data(data, "x.yaml"))
    assert any(i.code == "REFUSED_FOR_SAFETY" for i in result.warnings)


def test_semantic_priority_collision_info():
    result = validate_catalog(catalog_from_data([_mapping(id="a"), _mapping(id="b")], "x.yaml"))
    issue = next(i for i in result.issues if i.code == "PRIORITY_COLLISION")
    assert issue.severity == Severity.INFO
    assert "'a' wins" in issue.message


# --- Suggestion Tests ---


def test_direct_suggestion():
    suggestions = load_catalog().suggestions("reactive-state", "vue")
    assert [(s.kind, s.mapping.id, s.confidence) for s in suggestions] == [
        (SuggestionKind.DIRECT, "reactive-state-vue", 1.0)
    ]


def test_direct_suggestions_follow_resolver_order():
    catalog = catalog_from_data(
        [_mapping(id="low", priority=1), _mapping(id="high", priority=20, behavior_preserving=False)],
        "extra.yaml",
        base=load_catalog(),
    )
    suggestions = catalog.suggestions("reactive-state", "vue")
    assert [s.mapping.id for s in suggestions] == ["high", "reactive-state-vue", "low"]
    assert "not behavior-preserving" in suggestions[0].description


def test_sibling_pattern_mapping_is_semantic_equivalent():
    catalog = load_catalog()
    suggestions = catalog.suggestions("manual-resource-lifecycle", "rust", pattern_id="memory-lifecycle")
    assert [(s.kind, s.mapping.id, s.confidence) for s in suggestions] == [
        (SuggestionKind.SEMANTIC_EQUIVALENT, "socket-lifecycle-rust", 0.8)
    ]
    direct = catalog.suggestions("manual-resource-lifecycle", "rust", pattern_id="socket-lifecycle")
    assert [s.kind for s in direct] == [SuggestionKind.DIRECT]


def test_manual_suggestion_carries_hint():
    suggestions = load_catalog().suggestions("manual-resource-lifecycle", "kotlin", pattern_id="socket-lifecycle")
    assert len(suggestions) == 1
    assert suggestions[0].kind == SuggestionKind.MANUAL
    assert suggestions[0].mapping is None
    assert suggestions[0].to_dict()["confidence"] == 0.0
    assert "teardown order matters" in suggestions[0].description


def test_manual_suggestion_without_pattern():
    [suggestion] = load_catalog().suggestions("char-field", "kotlin")
    assert suggestion.kind == SuggestionKind.MANUAL
    assert suggestion.description.endswith("port by hand")


# --- Default Library Mapping Tests ---


def test_default_library_mappings_present():
    catalog = load_catalog()
    assert [m.id for m in catalog.mappings_for("reactive-effect", "vue")] == ["reactive-effect-vue"]
    assert [m.id for m in catalog.mappings_for("orm-model", "sqlalchemy")] == ["django-model-sqlalchemy"]
    assert [m.id for m in catalog.mappings_for("char-field", "sqlalchemy")] == ["django-char-field-sqlalchemy"]
    for target in ("rust", "go"):
        [socket] = catalog.mappings_for("manual-resource-lifecycle", target)
        assert socket.pattern == "socket-lifecycle"
        assert socket.behavior_preserving


def test_default_catalog_has_no_semantic_warnings():
    assert validate_catalog(load_catalog()).warnings == []
