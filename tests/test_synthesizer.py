"""Tests for the synthesizer and the Python/JavaScript renderers."""

import ast

import pytest

from transmute.engine.cancellation import CancellationToken
from transmute.engine.substitution import Fragment
from transmute.errors import ConfigError, TranslationCancelled, WarningKind
from transmute.ir.builder import IRBuilder
from transmute.ir.models import NodeKind
from transmute.ir.symbols import SymbolTable
from transmute.patterns.models import Match, NodeRef
from transmute.synth import Outcome, Synthesizer, get_renderer


def _synth(tree, notation="python", token=None):
    return Synthesizer(get_renderer(notation), SymbolTable.build(tree), token=token, unit_name="m")


def _render(tree, notation="python"):
    synth = _synth(tree, notation)
    return synth.render_unit(tree), synth


def _match(node_ids, bindings=None, pattern_id="library-call", category="reactive-state"):
    return Match(pattern_id, category, tuple(node_ids), bindings or {}, False, 0)


def _everything():
    """A module touching every node kind, including the awkward positions."""
    b = IRBuilder()
    default_param = b.node(NodeKind.PARAMETER, "limit", [b.literal(10)])
    return b.module(
        "everything",
        b.import_("os"),
        b.import_("os.path", names=["join"], alias="j"),
        b.import_("collections", names=["OrderedDict", "deque"]),
        b.import_("numpy", alias="np"),
        b.variable("count", b.literal(0)),
        b.assign("count", b.literal(1), operator="+"),
        b.assign("count", b.literal(2), operator="<=>"),
        b.class_(
            "Thing",
            b.variable("size", b.literal(3)),
            b.function(
                "run",
                ["self", default_param, "extra", b.parameter("rest", variadic="*")],
                b.return_(b.name("self.size")),
            ),
            bases=["base.Base"],
        ),
        b.function("empty", []),
        b.function(
            "spread",
            [
                b.parameter("options", variadic="**"),
                b.node(NodeKind.PARAMETER, "head", [b.literal(1)]),
                "tail",
                b.parameter("rest", variadic="*"),
                b.parameter("more", variadic="*"),
                b.parameter("extra", variadic="**"),
                b.node(NodeKind.PARAMETER, "args", [b.literal(0)], {"variadic": "*"}),
            ],
        ),
        b.while_(b.literal(True), [b.break_()]),
        b.for_each(
            "item",
            b.name("items"),
            [b.if_(b.name("item"), [b.continue_()], [b.call("print", b.name("item"))])],
        ),
        b.return_(b.literal(1)),
        b.break_(),
        b.continue_(),
        b.export("Thing"),
        b.error("unsupported construct"),
        b.error("kept", source="print('legacy')", language="python"),
        b.variable("js", b.node(NodeKind.EXPRESSION, None, (), {"verbatim": "a ?? b", "language": "javascript"})),
        b.variable("py", b.node(NodeKind.EXPRESSION, None, (), {"verbatim": "x if y else z", "language": "python"})),
        b.variable("inf", b.literal(float("inf"))),
        b.variable("flag", b.unary("!", b.binary("&&", b.name("a"), b.name("b")))),
        b.variable("first", b.binary("[]", b.name("items"), b.literal(0))),
        b.variable("odd", b.binary("<=>", b.name("a"), b.name("b"))),
        b.variable("nothing", b.node(NodeKind.CALL)),
        b.variable("fn", b.function("inner", [])),
        b.library_call("requests.get", "requests", "http-get", None, b.literal("u"), keywords={"timeout": b.literal(5)}),
        b.block(b.call("nested")),
        b.variable("bare"),
        b.node(NodeKind.VARIABLE, None, [b.call("side_effect")]),
        b.node(NodeKind.LOOP),
    )


# --- Python Renderer Tests ---


def test_simple_function():
    b = IRBuilder()
    tree = b.module("m", b.function("add", ["a", "b"], b.return_(b.binary("+", b.name("a"), b.name("b")))))
    code, _ = _render(tree)
    assert code == "def add(a, b):\n    return a + b\n"


def test_every_kind_renders_valid_python():
    code, _ = _render(_everything())
    ast.parse(code)


def test_fallback_constructs_in_python():
    code, synth = _render(_everything())
    lines = code.splitlines()
    assert "from os.path import join as j" in lines
    assert "from collections import OrderedDict, deque" in lines
    assert "import numpy as np" in lines
    assert "count += 1" in lines
    assert "count = 2" in lines
    assert "class Thing(base.Base):" in lines
    assert "    def run(self, limit=10, extra=None, *rest):" in lines
    assert "def empty():" in lines
    assert "def spread(head=1, tail=None, *rest, **options):" in lines
    assert "while True:" in lines
    assert "for item in items:" in lines
    assert "js = None" in lines
    assert "py = (x if y else z)" in lines
    assert "inf = float('inf')" in lines
    assert "flag = not (a and b)" in lines
    assert "first = items[0]" in lines
    assert "print('legacy')" in lines
    assert "requests.get('u', timeout=5)" in lines
    assert "bare = None" in lines
    assert "side_effect()" in lines
    assert "while False:" in lines
    kinds = {w.kind for w in synth.warnings}
    assert WarningKind.UNRENDERABLE in kinds
    assert WarningKind.UNMAPPED_PATTERN in kinds
    assert WarningKind.PARSE_DIAGNOSTIC in kinds


def test_variadic_parameters_reordered_and_extras_dropped():
    b = IRBuilder()
    kwargs = b.parameter("kw", variadic="**")
    second = b.parameter("more", variadic="*")
    fn = b.function("f", [kwargs, "x", b.parameter("args", variadic="*"), second, "key"])
    code, synth = _render(b.module("m", fn))
    ast.parse(code)
    assert "def f(x, *args, key, **kw):" in code.splitlines()
    assert [(w.node_id, w.kind) for w in synth.warnings] == [(second.id, WarningKind.UNRENDERABLE)]
    assert synth.outcomes[second.id] == Outcome.FALLBACK
    assert synth.outcomes[kwargs.id] == Outcome.STRUCTURAL


def test_return_and_break_outside_scope_degrade():
    b = IRBuilder()
    ret = b.return_(b.literal(1))
    brk = b.break_()
    tree = b.module("m", ret, b.function("f", [], brk))
    code, synth = _render(tree)
    assert code == (
        "# transmute: return outside a function\n"
        "1\n"
        "def f():\n"
        "    # transmute: break outside a loop\n"
        "    pass\n"
    )
    assert synth.outcomes[ret.id] == Outcome.FALLBACK
    assert synth.outcomes[brk.id] == Outcome.FALLBACK


def test_notes_attach_above_enclosing_statement():
    b = IRBuilder()
    fetch = b.library_call("requests.get", "requests", "http-get", None, b.name("url"))
    tree = b.module("m", b.function("load", ["url"], b.return_(b.call("parse", fetch))))
    code, synth = _render(tree)
    assert code == (
        "def load(url):\n"
        "    # transmute: unmapped requests/http-get; no catalog pattern recognised this call\n"
        "    return parse(requests.get(url))\n"
    )
    assert synth.outcomes[fetch.id] == Outcome.FALLBACK


def test_error_node_from_other_language():
    b = IRBuilder()
    tree = b.module("m", b.error("goto is not supported", source="goto end;", language="c"))
    code, synth = _render(tree)
    assert code == "# transmute: untranslatable source: goto is not supported\npass\n"
    assert [w.kind for w in synth.warnings] == [WarningKind.PARSE_DIAGNOSTIC]


def test_identifiers_sanitized():
    renderer = get_renderer("python")
    assert renderer.identifier("class") == "class_"
    assert renderer.identifier("9lives") == "_9lives"
    assert renderer.identifier("a-b") == "a_b"
    assert renderer.dotted("self.lambda") == "self.lambda_"


def test_module_names():
    renderer = get_renderer("python")
    assert renderer.module_name("pkg/util.py") == "pkg.util"
    assert renderer.module_name("./store.js") == "store"
    assert renderer.cross_unit_import("helpers.py", "helper") == "from helpers import helper"


def test_relative_imports_keep_their_level():
    renderer = get_renderer("python")
    assert renderer.import_line(".", ["utils"]) == "from . import utils"
    assert renderer.import_line("..core", ["thing"]) == "from ..core import thing"
    assert renderer.import_line("./store", alias="s") == "from . import store as s"
    assert renderer.import_line("../lib/util.js", ["f"]) == "from ..lib.util import f"


def test_unknown_notation():
    with pytest.raises(ConfigError, match="Unknown target notation 'cobol'"):
        get_renderer("cobol")


def test_empty_module_renders_empty():
    b = IRBuilder()
    code, _ = _render(b.module("m"))
    assert code == ""


# --- JavaScript Renderer Tests ---


def test_javascript_module():
    b = IRBuilder()
    tree = b.module(
        "m",
        b.import_("./store", names=["ref"]),
        b.variable("count", b.literal(0)),
        b.function("add", ["a", "b"], b.return_(b.binary("+", b.name("a"), b.name("b")))),
        b.export("add"),
    )
    code, _ = _render(tree, "javascript")
    assert code == (
        'import { ref } from "./store";\n'
        "let count = 0;\n"
        "function add(a, b) {\n"
        "    return a + b;\n"
        "}\n"
        "export { add };\n"
    )


def test_javascript_operators_and_keywords():
    b = IRBuilder()
    tree = b.module(
        "m",
        b.variable("same", b.binary("==", b.name("a"), b.name("b"))),
        b.variable("neither", b.unary("not", b.binary("or", b.name("a"), b.name("b")))),
        b.call("connect", b.literal("db"), keywords={"timeout": b.literal(3)}),
    )
    code, _ = _render(tree, "javascript")
    assert code == (
        "let same = a === b;\n"
        "let neither = !(a || b);\n"
        'connect("db", { timeout: 3 });\n'
    )


def test_javascript_object_literal_statement_wrapped():
    b = IRBuilder()
    tree = b.module("m", b.literal({"a": 1}), b.node(NodeKind.VARIABLE, None, [b.literal({})]))
    code, _ = _render(tree, "javascript")
    assert code == '({"a": 1});\n({});\n'


def test_javascript_import_inside_function_degrades():
    b = IRBuilder()
    imp = b.import_("fs")
    tree = b.module("m", b.function("f", [], imp))
    code, synth = _render(tree, "javascript")
    assert "import" not in code.replace("// transmute: import", "")
    assert synth.outcomes[imp.id] == Outcome.FALLBACK


def test_javascript_dotted_relative_import():
    renderer = get_renderer("javascript")
    assert renderer.import_line("..core", ["thing"]) == 'import { thing } from "../core.js";'
    assert renderer.import_line(".", ["utils"]) == 'import { utils } from "./index.js";'
    assert renderer.import_line("./store", ["ref"]) == 'import { ref } from "./store";'


def test_javascript_cross_unit_import():
    renderer = get_renderer("javascript")
    assert renderer.cross_unit_import("lib/helpers.py", "helper") == 'import { helper } from "./lib/helpers.js";'


# --- Fragment Tests ---


def test_expression_fragment_replaces_call():
    b = IRBuilder()
    call = b.library_call("useState", "stateA", "reactive-state", {"initial": "0"})
    tree = b.module("m", b.variable("count", call))
    synth = _synth(tree)
    synth.add_fragment(
        _match([call.id]),
        Fragment("state-to-b", text="observable(0)", imports=("from obs import observable",)),
    )
    assert synth.render_unit(tree) == "from obs import observable\n\ncount = observable(0)\n"
    assert synth.outcomes[call.id] == Outcome.FRAGMENT
    assert synth.warnings == []


def test_statement_span_fragment_skips_consumed_statements():
    b = IRBuilder()
    alloc = b.variable("f", b.call("open", b.literal("a")))
    close = b.call("f.close")
    tree = b.module("m", alloc, close, b.call("done"))
    synth = _synth(tree)
    synth.add_fragment(
        _match([alloc.id, close.id], pattern_id="file-lifecycle", category="manual-resource-lifecycle"),
        Fragment("with-block", text="with open('a') as f:\n    pass"),
    )
    assert synth.render_unit(tree) == "with open('a') as f:\n    pass\ndone()\n"
    assert synth.outcomes[alloc.id] == Outcome.FRAGMENT
    assert synth.outcomes[close.id] == Outcome.FRAGMENT


def test_fragment_tree_rendered_through_renderer():
    b = IRBuilder()
    call = b.library_call("useState", "stateA", "reactive-state")
    tree = b.module("m", b.variable("count", call))
    fragment_tree = IRBuilder("frag").call("signal", IRBuilder("lit").literal(0))
    synth = _synth(tree)
    synth.add_fragment(_match([call.id]), Fragment("tree", tree=fragment_tree))
    assert synth.render_unit(tree) == "count = signal(0)\n"


def test_fallback_note_and_outcome():
    b = IRBuilder()
    call = b.library_call("useState", "stateA", "reactive-state")
    tree = b.module("m", b.variable("count", call))
    synth = _synth(tree)
    synth.add_fallback(_match([call.id]), "transmute: unmapped stateA/reactive-state for 'A'")
    assert synth.render_unit(tree) == "# transmute: unmapped stateA/reactive-state for 'A'\ncount = useState()\n"
    assert synth.outcomes[call.id] == Outcome.FALLBACK
    # The fallback note replaces the generic unmapped-call note.
    assert synth.warnings == []


def test_render_bindings():
    b = IRBuilder()
    value = b.literal(0)
    call = b.library_call("useState", "stateA", "reactive-state", None, value)
    tree = b.module("m", b.variable("count", call))
    synth = _synth(tree)
    match = _match([call.id], {"initial": NodeRef((value.id,)), "library": "stateA"})
    assert synth.render_bindings(match, ["initial", "library", "missing"]) == {"initial": "0", "library": "stateA"}


def test_cancelled_token_stops_rendering():
    b = IRBuilder()
    tree = b.module("m", b.call("work"))
    token = CancellationToken()
    token.cancel()
    with pytest.raises(TranslationCancelled):
        _synth(tree, token=token).render_unit(tree)
