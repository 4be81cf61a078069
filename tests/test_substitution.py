"""Tests for hygienic template substitution."""

import pytest

from transmute.catalog.models import Mapping
from transmute.engine.substitution import TemplateEngine, fresh_name
from transmute.errors import TemplateBindingError
from transmute.ir.models import IdGenerator, NodeKind


def _mapping(template, introduces=(), imports=()):
    return Mapping(
        source_category="cat",
        target_ecosystem="B",
        template=template,
        behavior_preserving=True,
        id="test-mapping",
        introduces=tuple(introduces),
        imports=tuple(imports),
    )


engine = TemplateEngine()


# --- Binding Tests ---


def test_simple_substitution():
    fragment = engine.instantiate(_mapping("observable({{initial}})"), {"initial": "0"})
    assert fragment.text == "observable(0)"
    assert fragment.tree is None
    assert fragment.mapping_id == "test-mapping"


def test_placeholder_whitespace_tolerated():
    fragment = engine.instantiate(_mapping("f({{ a }}, {{b}})"), {"a": "1", "b": "2"})
    assert fragment.text == "f(1, 2)"


def test_repeated_placeholder():
    fragment = engine.instantiate(_mapping("{{x}} + {{x}}"), {"x": "y"})
    assert fragment.text == "y + y"


def test_missing_binding_raises():
    with pytest.raises(TemplateBindingError) as exc:
        engine.instantiate(_mapping("f({{b}}, {{a}}, {{c}})"), {"c": "1"})
    assert exc.value.mapping_id == "test-mapping"
    assert exc.value.placeholders == ["a", "b"]


def test_unused_bindings_are_fine():
    fragment = engine.instantiate(_mapping("g()"), {"extra": "1"})
    assert fragment.text == "g()"


def test_imports_carried():
    fragment = engine.instantiate(_mapping("httpx.get({{args}})", imports=["import httpx"]), {"args": "url"})
    assert fragment.imports == ("import httpx",)


# --- Hygiene Tests ---


def test_fresh_name():
    assert fresh_name("tmp", []) == "tmp"
    assert fresh_name("tmp", ["tmp"]) == "tmp_1"
    assert fresh_name("tmp", ["tmp", "tmp_1"]) == "tmp_2"


def test_introduced_name_collides_with_binding():
    mapping = _mapping("tmp = {{value}}\nuse(tmp)", introduces=["tmp"])
    fragment = engine.instantiate(mapping, {"value": "tmp"})
    assert fragment.text == "tmp_1 = tmp\nuse(tmp_1)"
    assert fragment.renames == {"tmp": "tmp_1"}
    assert fragment.introduced == ("tmp_1",)


def test_introduced_name_collides_with_scope():
    mapping = _mapping("cell = {{value}}\nreturn cell", introduces=["cell"])
    fragment = engine.instantiate(mapping, {"value": "1"}, scope_names={"cell", "cell_1"})
    assert fragment.text == "cell_2 = 1\nreturn cell_2"


def test_free_introduced_name_kept():
    mapping = _mapping("cell = {{value}}", introduces=["cell"])
    fragment = engine.instantiate(mapping, {"value": "1"}, scope_names={"other"})
    assert fragment.text == "cell = 1"
    assert fragment.renames == {}


def test_rename_leaves_attributes_and_longer_names():
    mapping = _mapping("tmp = {{value}}\nobj.tmp = tmp\ntmp_total = 0", introduces=["tmp"])
    fragment = engine.instantiate(mapping, {"value": "x"}, scope_names={"tmp"})
    assert fragment.text == "tmp_1 = x\nobj.tmp = tmp_1\ntmp_total = 0"


def test_bound_text_never_renamed():
    mapping = _mapping("tmp = {{value}}", introduces=["tmp"])
    fragment = engine.instantiate(mapping, {"value": "tmp + 1"})
    assert fragment.text == "tmp_1 = tmp + 1"


def test_two_introduced_names_get_distinct_suffixes():
    mapping = _mapping("a = {{v}}\nb = a", introduces=["a", "b"])
    fragment = engine.instantiate(mapping, {"v": "0"}, scope_names={"a", "b"})
    assert fragment.text == "a_1 = 0\nb_1 = a_1"


# --- Indentation Tests ---


def test_multiline_binding_reindented():
    mapping = _mapping("with {{acquire}} as f:\n    {{body}}")
    fragment = engine.instantiate(mapping, {"acquire": "open(p)", "body": "read(f)\nlog(f)"})
    assert fragment.text == "with open(p) as f:\n    read(f)\n    log(f)"


def test_multiline_binding_at_column_zero_unchanged():
    fragment = engine.instantiate(_mapping("{{body}}"), {"body": "a()\n    b()"})
    assert fragment.text == "a()\n    b()"


def test_blank_lines_not_indented():
    mapping = _mapping("if ok:\n    {{body}}")
    fragment = engine.instantiate(mapping, {"body": "a()\n\nb()"})
    assert fragment.text == "if ok:\n    a()\n\n    b()"


# --- Fragment Tree Tests ---


def test_fragment_tree_instantiation():
    template = {
        "kind": "call",
        "name": "{{fn}}",
        "children": [{"kind": "literal", "metadata": {"value": "{{v}}"}}],
    }
    fragment = engine.instantiate(_mapping(template), {"fn": "print", "v": "hi"}, ids=IdGenerator("frag"))
    tree = fragment.tree
    assert fragment.text is None
    assert tree.kind == NodeKind.CALL
    assert tree.name == "print"
    assert tree.children[0].metadata == {"value": "hi"}
    assert [n.id for n in tree.walk()] == ["frag-1", "frag-2"]


def test_fragment_tree_renames_introduced_names():
    template = {"kind": "variable", "name": "tmp", "children": [{"kind": "expression", "name": "{{value}}"}]}
    fragment = engine.instantiate(_mapping(template, introduces=["tmp"]), {"value": "tmp"})
    assert fragment.tree.name == "tmp_1"
    assert fragment.tree.children[0].name == "tmp"


def test_fragment_instantiations_never_share_ids():
    template = {"kind": "call", "name": "f"}
    ids = IdGenerator("frag")
    first = engine.instantiate(_mapping(template), {}, ids=ids).tree
    second = engine.instantiate(_mapping(template), {}, ids=ids).tree
    assert first.id != second.id
