"""Python front-end adapter — builds canonical IR from Python source using AST.

Uses Python's built-in ast module (no tree-sitter needed for Python). Beyond
the plain structure it recognizes:
- Library calls from a known-library table, through import aliases
  (``import requests as r; r.get(...)`` is still ``requests/http-get``)
- Generic annotations (``list[int]``, ``Dict[str, int]``) as type metadata
- Source lines on every statement

Statements the IR has no kind for (try, with, raise, ...) become ``error``
leaves carrying the original text, with a diagnostic. A syntax error yields
a module holding one ``error`` leaf.
"""

from __future__ import annotations

import ast
import json
from dataclasses import replace
from typing import Any

from transmute.adapters.base import AdapterResult, FrontEndAdapter, register_adapter
from transmute.errors import ParseDiagnostic
from transmute.ir.builder import IRBuilder
from transmute.ir.models import IRNode, NodeKind

# Fully qualified callee -> (library, pattern)
KNOWN_LIBRARY_CALLS = {
    "requests.get": ("requests", "http-get"),
    "requests.post": ("requests", "http-post"),
    "requests.put": ("requests", "http-put"),
    "requests.delete": ("requests", "http-delete"),
    "urllib.request.urlopen": ("urllib", "http-get"),
    "json.loads": ("json", "json-decode"),
    "json.load": ("json", "json-decode"),
    "django.db.models.CharField": ("django", "char-field"),
    "json.dumps": ("json", "json-encode"),
    "json.dump": ("json", "json-encode"),
    "subprocess.run": ("subprocess", "process-run"),
    "subprocess.check_output": ("subprocess", "process-run"),
    "os.getenv": ("os", "env-read"),
    "os.environ.get": ("os", "env-read"),
    "time.sleep": ("time", "sleep"),
    "threading.Thread": ("threading", "thread-spawn"),
    "logging.getLogger": ("logging", "logger"),
}

BINARY_OPERATORS = {
    ast.Add: "+", ast.Sub: "-", ast.Mult: "*", ast.Div: "/", ast.FloorDiv: "//",
    ast.Mod: "%", ast.Pow: "**", ast.LShift: "<<", ast.RShift: ">>",
    ast.BitOr: "|", ast.BitXor: "^", ast.BitAnd: "&", ast.MatMult: "@",
}
COMPARE_OPERATORS = {
    ast.Eq: "==", ast.NotEq: "!=", ast.Lt: "<", ast.LtE: "<=", ast.Gt: ">",
    ast.GtE: ">=", ast.Is: "is", ast.IsNot: "is not", ast.In: "in", ast.NotIn: "not in",
}
UNARY_OPERATORS = {ast.Not: "not", ast.USub: "-", ast.UAdd: "+", ast.Invert: "~"}


def _get_call_name(node: ast.Call) -> str:
    """Extract the dotted name of a function call, or "" for computed callees."""
    return _dotted_name(node.func)


def _dotted_name(node: ast.AST) -> str:
    parts = []
    current = node
    while isinstance(current, ast.Attribute):
        parts.append(current.attr)
        current = current.value
    if not isinstance(current, ast.Name):
        return ""
    parts.append(current.id)
    return ".".join(reversed(parts))


def _type_metadata(annotation: ast.expr | None) -> dict[str, Any]:
    """``type_name`` / ``type_arguments`` for an annotation, when it has that shape."""
    if annotation is None:
        return {}
    if isinstance(annotation, ast.Subscript):
        container = _dotted_name(annotation.value)
        if not container:
            return {"type_name": ast.unparse(annotation)}
        inner = annotation.slice
        elements = inner.elts if isinstance(inner, ast.Tuple) else [inner]
        return {
            "type_name": container.rsplit(".", 1)[-1],
            "type_arguments": [ast.unparse(e) for e in elements],
        }
    return {"type_name": ast.unparse(annotation)}


def _json_literal(node: ast.expr) -> tuple[bool, Any]:
    """(True, value) when ``node`` is a constant list/dict expressible as JSON."""
    try:
        value = ast.literal_eval(node)
        json.dumps(value, allow_nan=True)
    except (ValueError, TypeError, SyntaxError, RecursionError):
        return False, None
    if isinstance(value, dict) and not all(isinstance(k, str) for k in value):
        return False, None
    return True, value


class _Converter:
    """Per-unit conversion state: id generator, scopes, and import aliases."""

    def __init__(self, unit_name: str):
        self.unit_name = unit_name
        self.b = IRBuilder()
        self.diagnostics: list[ParseDiagnostic] = []
        self.aliases: dict[str, str] = {}  # local name -> qualified module or object
        self.scopes: list[set[str]] = [set()]

    # -- statements ----------------------------------------------------------------

    def module(self, tree: ast.Module) -> IRNode:
        return self.b.module(self.unit_name, *self.statements(tree.body))

    def statements(self, body: list[ast.stmt]) -> list[IRNode]:
        nodes = []
        for stmt in body:
            if isinstance(stmt, ast.Pass):
                continue
            nodes.extend(self.statement(stmt))
        return nodes

    def statement(self, stmt: ast.stmt) -> list[IRNode]:
        if isinstance(stmt, ast.Import):
            return [self._at(self._import(alias), stmt) for alias in stmt.names]
        if isinstance(stmt, ast.ImportFrom):
            return self._import_from(stmt)

        if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
            node = self._function(stmt)
        elif isinstance(stmt, ast.ClassDef):
            node = self._class(stmt)
        elif isinstance(stmt, ast.Assign):
            node = self._assign(stmt)
        elif isinstance(stmt, ast.AnnAssign):
            node = self._ann_assign(stmt)
        elif isinstance(stmt, ast.AugAssign):
            node = self._aug_assign(stmt)
        elif isinstance(stmt, ast.If):
            else_ = self.statements(stmt.orelse) if stmt.orelse else None
            node = self.b.if_(self.expression(stmt.test), self.statements(stmt.body), else_)
        elif isinstance(stmt, ast.While) and not stmt.orelse:
            node = self.b.while_(self.expression(stmt.test), self.statements(stmt.body))
        elif isinstance(stmt, ast.For) and isinstance(stmt.target, ast.Name) and not stmt.orelse:
            self.scopes[-1].add(stmt.target.id)
            node = self.b.for_each(stmt.target.id, self.expression(stmt.iter), self.statements(stmt.body))
        elif isinstance(stmt, ast.Return):
            node = self.b.return_(self.expression(stmt.value) if stmt.value is not None else None)
        elif isinstance(stmt, ast.Break):
            node = self.b.break_()
        elif isinstance(stmt, ast.Continue):
            node = self.b.continue_()
        elif isinstance(stmt, ast.Expr):
            node = self.expression(stmt.value)
        else:
            node = self._unsupported(stmt)
        return [self._at(node, stmt)]

    def _at(self, node: IRNode, stmt: ast.stmt) -> IRNode:
        return replace(node, metadata={**node.metadata, "line": stmt.lineno})

    def _unsupported(self, stmt: ast.stmt) -> IRNode:
        source = ast.unparse(stmt)
        message = f"unsupported {type(stmt).__name__} statement: {source.splitlines()[0]}"
        leaf = self.b.error(message, source=source, language="python")
        self.diagnostics.append(
            ParseDiagnostic(message, line=stmt.lineno, column=stmt.col_offset, node_id=leaf.id)
        )
        return leaf

    def _import(self, alias: ast.alias) -> IRNode:
        local = alias.asname or alias.name.split(".")[0]
        self.aliases[local] = alias.name if alias.asname else local
        return self.b.import_(alias.name, alias=alias.asname)

    def _import_from(self, stmt: ast.ImportFrom) -> list[IRNode]:
        module = "." * (stmt.level or 0) + (stmt.module or "")
        for alias in stmt.names:
            if alias.name != "*":
                self.aliases[alias.asname or alias.name] = f"{module}.{alias.name}"
        plain = [a.name for a in stmt.names if not a.asname]
        nodes = [self._at(self.b.import_(module, plain), stmt)] if plain else []
        for alias in stmt.names:
            if alias.asname:
                nodes.append(self._at(self.b.import_(module, [alias.name], alias=alias.asname), stmt))
        return nodes

    def _function(self, stmt: ast.FunctionDef | ast.AsyncFunctionDef) -> IRNode:
        self.scopes[-1].add(stmt.name)
        self.scopes.append(set())
        try:
            params = self._parameters(stmt.args)
            body = self.statements(stmt.body)
        finally:
            self.scopes.pop()
        metadata = _type_metadata(stmt.returns)
        if isinstance(stmt, ast.AsyncFunctionDef):
            metadata["async"] = True
        if stmt.decorator_list:
            metadata["decorators"] = [ast.unparse(d) for d in stmt.decorator_list]
        return self.b.function(stmt.name, params, *body, **metadata)

    def _parameters(self, args: ast.arguments) -> list[IRNode]:
        positional = args.posonlyargs + args.args
        defaults: list[ast.expr | None] = [None] * (len(positional) - len(args.defaults)) + list(args.defaults)
        params = []
        for arg, default in zip(positional, defaults):
            params.append(self._parameter(arg, default))
        if args.vararg:
            params.append(self._parameter(args.vararg, None, variadic="*"))
        for arg, default in zip(args.kwonlyargs, args.kw_defaults):
            params.append(self._parameter(arg, default))
        if args.kwarg:
            params.append(self._parameter(args.kwarg, None, variadic="**"))
        return params

    def _parameter(self, arg: ast.arg, default: ast.expr | None, variadic: str = "") -> IRNode:
        self.scopes[-1].add(arg.arg)
        metadata = _type_metadata(arg.annotation)
        if variadic:
            metadata["variadic"] = variadic
        children = [self.expression(default)] if default is not None else []
        return self.b.node(NodeKind.PARAMETER, arg.arg, children, metadata)

    def _class(self, stmt: ast.ClassDef) -> IRNode:
        self.scopes[-1].add(stmt.name)
        self.scopes.append(set())
        try:
            members = self.statements(stmt.body)
        finally:
            self.scopes.pop()
        bases = [ast.unparse(base) for base in stmt.bases]
        return self.b.class_(stmt.name, *members, bases=bases)

    def _target_name(self, target: ast.expr) -> str:
        return target.id if isinstance(target, ast.Name) else _dotted_name(target)

    def _bind(self, name: str, value: IRNode | None, **metadata) -> IRNode:
        """A first binding of a plain name in this scope declares it; the rest assign."""
        if "." not in name and name not in self.scopes[-1]:
            self.scopes[-1].add(name)
            return self.b.variable(name, value, **metadata)
        return self.b.node(NodeKind.ASSIGNMENT, name, [value] if value is not None else [], metadata)

    def _assign(self, stmt: ast.Assign) -> IRNode:
        name = self._target_name(stmt.targets[0]) if len(stmt.targets) == 1 else ""
        if not name:
            return self._unsupported(stmt)
        return self._bind(name, self.expression(stmt.value))

    def _ann_assign(self, stmt: ast.AnnAssign) -> IRNode:
        name = self._target_name(stmt.target)
        if not name:
            return self._unsupported(stmt)
        value = self.expression(stmt.value) if stmt.value is not None else None
        return self._bind(name, value, **_type_metadata(stmt.annotation))

    def _aug_assign(self, stmt: ast.AugAssign) -> IRNode:
        name = self._target_name(stmt.target)
        if not name:
            return self._unsupported(stmt)
        return self.b.assign(name, self.expression(stmt.value), operator=BINARY_OPERATORS[type(stmt.op)])

    # -- expressions ---------------------------------------------------------------

    def expression(self, node: ast.expr) -> IRNode:
        if isinstance(node, ast.Constant) and isinstance(node.value, (str, int, float, bool, type(None))):
            return self.b.literal(node.value)
        if isinstance(node, (ast.List, ast.Dict)):
            ok, value = _json_literal(node)
            if ok:
                return self.b.literal(value)
        if isinstance(node, (ast.Name, ast.Attribute)) and _dotted_name(node):
            return self.b.name(_dotted_name(node))
        if isinstance(node, ast.BinOp):
            return self.b.binary(BINARY_OPERATORS[type(node.op)], self.expression(node.left), self.expression(node.right))
        if isinstance(node, ast.BoolOp):
            operator = "and" if isinstance(node.op, ast.And) else "or"
            result = self.expression(node.values[0])
            for value in node.values[1:]:
                result = self.b.binary(operator, result, self.expression(value))
            return result
        if isinstance(node, ast.Compare):
            return self._compare(node)
        if isinstance(node, ast.UnaryOp):
            return self.b.unary(UNARY_OPERATORS[type(node.op)], self.expression(node.operand))
        if isinstance(node, ast.Subscript) and not isinstance(node.slice, ast.Slice):
            return self.b.binary("[]", self.expression(node.value), self.expression(node.slice))
        if isinstance(node, ast.Call) and _get_call_name(node) and not self._has_unpacking(node):
            return self._call(node)
        return self._verbatim(node)

    def _verbatim(self, node: ast.expr) -> IRNode:
        return self.b.node(
            NodeKind.EXPRESSION, None, (), {"verbatim": ast.unparse(node), "language": "python"}
        )

    def _compare(self, node: ast.Compare) -> IRNode:
        # a < b < c  ->  (a < b) and (b < c)
        left = node.left
        result: IRNode | None = None
        for op, right in zip(node.ops, node.comparators):
            pair = self.b.binary(COMPARE_OPERATORS[type(op)], self.expression(left), self.expression(right))
            result = pair if result is None else self.b.binary("and", result, pair)
            left = right
        return result

    @staticmethod
    def _has_unpacking(node: ast.Call) -> bool:
        return any(isinstance(a, ast.Starred) for a in node.args) or any(k.arg is None for k in node.keywords)

    def _qualified(self, callee: str) -> str:
        head, _, rest = callee.partition(".")
        if head in self.aliases:
            head = self.aliases[head]
        return f"{head}.{rest}" if rest else head

    def _call(self, node: ast.Call) -> IRNode:
        callee = _get_call_name(node)
        args = [self.expression(a) for a in node.args]
        keywords = {k.arg: self.expression(k.value) for k in node.keywords}
        known = KNOWN_LIBRARY_CALLS.get(self._qualified(callee))
        if known is None:
            return self.b.call(callee, *args, keywords=keywords)
        library, pattern = known
        parameters = {
            k.arg: k.value.value
            for k in node.keywords
            if isinstance(k.value, ast.Constant) and isinstance(k.value.value, (str, int, float, bool))
        }
        return self.b.library_call(callee, library, pattern, parameters, *args, keywords=keywords)


@register_adapter
class PythonAdapter(FrontEndAdapter):
    language = "python"
    suffixes = (".py", ".pyi")

    def parse(self, source: str, unit_name: str) -> AdapterResult:
        converter = _Converter(unit_name)
        try:
            tree = ast.parse(source, filename=unit_name)
        except SyntaxError as e:
            message = f"syntax error: {e.msg}"
            leaf = converter.b.error(message, line=e.lineno or 0)
            root = converter.b.module(unit_name, leaf)
            diagnostic = ParseDiagnostic(message, line=e.lineno or 0, column=e.offset or 0, node_id=leaf.id)
            return AdapterResult(root=root, diagnostics=[diagnostic])
        return AdapterResult(root=converter.module(tree), diagnostics=converter.diagnostics)

    def looks_like(self, source: str) -> bool:
        head = source.lstrip()[:200]
        return head.startswith(("import ", "from ", "def ", "class ", "#!/usr/bin/env python"))
