"""JavaScript (ES2022 module) renderer."""

from __future__ import annotations

import json
import math
from typing import TYPE_CHECKING, Any, Iterable

from transmute.engine.substitution import fresh_name
from transmute.ir.models import IRNode, NodeKind
from transmute.synth.base import SOURCE_SUFFIX, Renderer, register_renderer, split_import

if TYPE_CHECKING:
    from transmute.synth.synthesizer import Synthesizer

RESERVED_WORDS = frozenset(
    """
    await break case catch class const continue debugger default delete do else
    enum export extends false finally for function if implements import in
    instanceof interface let new null package private protected public return
    static super switch this throw true try typeof var void while with yield
    undefined NaN Infinity arguments eval
    """.split()
)

BINARY_OPERATORS = {
    "+", "-", "*", "/", "%", "**", "<<", ">>", ">>>", "&", "|", "^",
    "&&", "||", "??", "===", "!==", "<", ">", "<=", ">=", "in", "instanceof",
}
UNARY_OPERATORS = {"-", "+", "~", "!", "typeof", "void"}

OPERATOR_ALIASES = {
    "and": "&&",
    "or": "||",
    "not": "!",
    "==": "===",
    "!=": "!==",
    "is": "===",
    "is not": "!==",
}

_CLASS_MEMBER_KINDS = (NodeKind.FUNCTION, NodeKind.VARIABLE, NodeKind.ASSIGNMENT)


@register_renderer
class JavaScriptRenderer(Renderer):
    name = "javascript"
    placeholder = "undefined"
    empty_body = ""
    reserved = RESERVED_WORDS
    extra_identifier_chars = "$"

    # -- primitives ----------------------------------------------------------------

    def comment(self, text: str) -> str:
        return "// " + " ".join(text.split())

    def literal(self, value: Any) -> str:
        if isinstance(value, float) and not math.isfinite(value):
            return "NaN" if math.isnan(value) else ("Infinity" if value > 0 else "-Infinity")
        return json.dumps(value)

    def import_line(self, module: str, names: Iterable[str] = (), alias: str | None = None) -> str:
        names = [n for n in names if n != "*"]
        source = json.dumps(self._specifier(module))
        if len(names) == 1 and alias:
            return f"import {{ {self.identifier(names[0])} as {self.identifier(alias)} }} from {source};"
        if names:
            return "import { " + ", ".join(self.identifier(n) for n in names) + f" }} from {source};"
        local = alias or (split_import(module)[1] or ["module"])[-1]
        return f"import * as {self.identifier(local)} from {source};"

    def cross_unit_import(self, provider: str, name: str) -> str:
        stem = SOURCE_SUFFIX.sub("", provider.replace("\\", "/"))
        return f"import {{ {self.identifier(name)} }} from {json.dumps('./' + stem.lstrip('./') + '.js')};"

    def _specifier(self, module: str) -> str:
        """Dotted relative modules ("..core") become relative paths ("../core.js")."""
        if not module.startswith(".") or "/" in module:
            return module
        level, segments = split_import(module)
        prefix = "./" if level == 1 else "../" * (level - 1)
        return prefix + ("/".join(segments) or "index") + ".js"

    def expression_statement(self, text: str) -> str:
        # A leading brace would open a block.
        if text.startswith("{"):
            text = f"({text})"
        return text + ";"

    def join_arguments(self, positional: list[str], keywords: list[tuple[str, str]]) -> str:
        if keywords:
            options = "{ " + ", ".join(f"{self.identifier(k)}: {v}" for k, v in keywords) + " }"
            positional = positional + [options]
        return ", ".join(positional)

    # -- declarations ----------------------------------------------------------------

    def stmt_module(self, node: IRNode, synth: Synthesizer) -> list[str]:
        with synth.scope(NodeKind.BLOCK):
            body = synth.block(node.body)
        return [self.comment(f"module {node.name or node.id}"), "{"] + self.indent(body) + ["}"]

    def stmt_function(self, node: IRNode, synth: Synthesizer) -> list[str]:
        name = self.identifier(node.name or "_anonymous")
        params = self._parameters(node, synth)
        is_method = synth.innermost(NodeKind.CLASS, NodeKind.FUNCTION, NodeKind.BLOCK) == NodeKind.CLASS
        prefix = "async " if node.metadata.get("async") else ""
        header = f"{prefix}{name}({params}) {{" if is_method else f"{prefix}function {name}({params}) {{"
        with synth.scope(NodeKind.FUNCTION):
            body = synth.block(node.body)
        return [header] + self.indent(body) + ["}"]

    def _parameters(self, node: IRNode, synth: Synthesizer) -> str:
        rendered: list[str] = []
        used: set[str] = set()
        for param in node.parameters:
            synth.record(param)
            name = fresh_name(self.identifier(param.name or "_"), used)
            used.add(name)
            if param.metadata.get("variadic") in ("*", "**"):
                rendered.append(f"...{name}")
            elif param.children:
                rendered.append(f"{name} = {synth.expression(param.children[0])}")
            else:
                rendered.append(name)
        # A rest parameter must come last.
        rest = [p for p in rendered if p.startswith("...")]
        if len(rest) > 1:
            synth.note("more than one rest parameter; extra ones dropped")
        return ", ".join([p for p in rendered if not p.startswith("...")] + rest[:1])

    def stmt_class(self, node: IRNode, synth: Synthesizer) -> list[str]:
        name = self.identifier(node.name or "_Anonymous")
        bases = node.metadata.get("bases") or []
        header = f"class {name} extends {self.dotted(bases[0])} {{" if bases else f"class {name} {{"
        if len(bases) > 1:
            synth.note(f"class {name} had several bases; only {bases[0]} kept")
        body: list[str] = []
        loose: list[IRNode] = []
        with synth.scope(NodeKind.CLASS):
            for member in node.body:
                if member.kind in _CLASS_MEMBER_KINDS and member.name:
                    body += synth.block([member])
                else:
                    loose.append(member)
        if loose:
            # Statements that are not members run in a static initialization block.
            with synth.scope(NodeKind.BLOCK):
                body += ["static {"] + self.indent(synth.block(loose)) + ["}"]
        return [header] + self.indent(body) + ["}"]

    def stmt_variable(self, node: IRNode, synth: Synthesizer) -> list[str]:
        if not node.name:
            return [self.expression_statement(self.value_of(node, synth))]
        if synth.innermost(NodeKind.CLASS, NodeKind.FUNCTION, NodeKind.BLOCK) == NodeKind.CLASS:
            return [f"{self.identifier(node.name.split('.')[-1])} = {self.value_of(node, synth)};"]
        if "." in node.name:
            return [f"{self.dotted(node.name)} = {self.value_of(node, synth)};"]
        keyword = "const" if node.metadata.get("const") and node.children else "let"
        if not node.children:
            return [f"let {self.identifier(node.name)};"]
        return [f"{keyword} {self.identifier(node.name)} = {self.value_of(node, synth)};"]

    def stmt_assignment(self, node: IRNode, synth: Synthesizer) -> list[str]:
        if synth.innermost(NodeKind.CLASS, NodeKind.FUNCTION, NodeKind.BLOCK) == NodeKind.CLASS:
            return self.stmt_variable(node, synth)
        if not node.name:
            return [self.expression_statement(self.value_of(node, synth))]
        operator = node.metadata.get("operator", "")
        if operator == "//":
            synth.note("floor-division assignment rendered as plain division")
            operator = "/"
        if operator and operator not in BINARY_OPERATORS - {"===", "!==", "<", ">", "<=", ">=", "in", "instanceof"}:
            synth.note(f"augmented operator '{operator}' has no JavaScript form; assigned directly")
            operator = ""
        return [f"{self.dotted(node.name)} {operator}= {self.value_of(node, synth)};"]

    # -- statements ------------------------------------------------------------------

    def stmt_block(self, node: IRNode, synth: Synthesizer) -> list[str]:
        with synth.scope(NodeKind.BLOCK):
            body = synth.block(node.children)
        return ["{"] + self.indent(body) + ["}"]

    def stmt_conditional(self, node: IRNode, synth: Synthesizer) -> list[str]:
        condition = synth.expression(node.children[0]) if node.children else "false"
        with synth.scope(NodeKind.CONDITIONAL):
            lines = [f"if ({condition}) {{"] + self.indent(
                synth.branch(node.children[1] if len(node.children) > 1 else None)
            )
            if len(node.children) > 2:
                lines += ["} else {"] + self.indent(synth.branch(node.children[2]))
        return lines + ["}"]

    def stmt_loop(self, node: IRNode, synth: Synthesizer) -> list[str]:
        head = synth.expression(node.children[0]) if node.children else "false"
        if node.metadata.get("loop_form") == "for_each":
            header = f"for (const {self.identifier(node.name or '_')} of {head if node.children else '[]'}) {{"
        else:
            header = f"while ({head}) {{"
        with synth.scope(NodeKind.LOOP):
            body = synth.branch(node.children[1] if len(node.children) > 1 else None)
        return [header] + self.indent(body) + ["}"]

    def stmt_return(self, node: IRNode, synth: Synthesizer) -> list[str]:
        if synth.innermost(NodeKind.FUNCTION, NodeKind.CLASS) != NodeKind.FUNCTION:
            synth.degrade(node, "return outside a function")
            return [self.expression_statement(self.value_of(node, synth))] if node.children else []
        return [f"return {self.value_of(node, synth)};" if node.children else "return;"]

    def stmt_break(self, node: IRNode, synth: Synthesizer) -> list[str]:
        return self._loop_jump(node, synth, "break")

    def stmt_continue(self, node: IRNode, synth: Synthesizer) -> list[str]:
        return self._loop_jump(node, synth, "continue")

    def _loop_jump(self, node: IRNode, synth: Synthesizer, keyword_: str) -> list[str]:
        if synth.innermost(NodeKind.LOOP, NodeKind.FUNCTION, NodeKind.CLASS) != NodeKind.LOOP:
            synth.degrade(node, f"{keyword_} outside a loop")
            return []
        return [f"{keyword_};"]

    def stmt_import(self, node: IRNode, synth: Synthesizer) -> list[str]:
        if not synth.at_top_level:
            synth.degrade(node, f"import of '{node.name}' is only valid at module level")
            return []
        return [self.import_line(node.name or "_", node.metadata.get("names") or (), node.metadata.get("alias"))]

    def stmt_export(self, node: IRNode, synth: Synthesizer) -> list[str]:
        if not synth.at_top_level:
            synth.degrade(node, f"export of '{node.name}' is only valid at module level")
            return []
        return [f"export {{ {self.identifier(node.name or '_')} }};"]

    def stmt_error(self, node: IRNode, synth: Synthesizer) -> list[str]:
        message = node.metadata.get("message", "unparsed source")
        return [self.comment(f"transmute: untranslatable source: {message}")]

    # -- expressions -----------------------------------------------------------------

    def expr_literal(self, node: IRNode, synth: Synthesizer) -> str:
        return self.literal(node.metadata.get("value"))

    def expr_expression(self, node: IRNode, synth: Synthesizer) -> str:
        if "verbatim" in node.metadata:
            if node.metadata.get("language") == self.name:
                return f"({node.metadata['verbatim']})"
            synth.degrade(node, f"untranslated {node.metadata.get('language', 'source')} expression: {node.metadata['verbatim']}")
            return self.placeholder

        operator = node.metadata.get("operator")
        if operator is None:
            if node.name:
                return self.dotted(node.name)
            if len(node.children) == 1:
                return f"({synth.expression(node.children[0])})"
            synth.degrade(node, "expression with neither name nor operator")
            return self.placeholder

        operator = OPERATOR_ALIASES.get(operator, operator)
        if operator == "[]" and len(node.children) == 2:
            return f"{self._operand(node.children[0], synth)}[{synth.expression(node.children[1])}]"
        if operator == "not in" and len(node.children) == 2:
            left, right = (self._operand(c, synth) for c in node.children)
            return f"!({left} in {right})"
        operands = [self._operand(c, synth) for c in node.children]
        if len(operands) == 2 and operator in BINARY_OPERATORS:
            return f"{operands[0]} {operator} {operands[1]}"
        if len(operands) == 1 and operator in UNARY_OPERATORS:
            spacer = " " if operator.isalpha() else ""
            return f"{operator}{spacer}{operands[0]}"
        synth.degrade(node, f"operator '{operator}' with {len(operands)} operand(s) has no JavaScript form")
        return self.placeholder

    def _operand(self, child: IRNode, synth: Synthesizer) -> str:
        text = synth.expression(child)
        if child.kind == NodeKind.EXPRESSION and "operator" in child.metadata:
            return f"({text})"
        return text

    def expr_call(self, node: IRNode, synth: Synthesizer) -> str:
        if not node.name:
            synth.degrade(node, "call without a callee")
            return self.placeholder
        return f"{self.dotted(node.name)}({self.arguments(node, synth)})"

    def expr_library_call(self, node: IRNode, synth: Synthesizer) -> str:
        return self.expr_call(node, synth)
