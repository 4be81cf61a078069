"""Python renderer — the reference target notation.

Everything emitted here must parse with the standard ``ast`` module,
including the fallback for every node kind.
"""

from __future__ import annotations

import keyword
import math
from typing import TYPE_CHECKING, Any, Iterable

from transmute.engine.substitution import fresh_name
from transmute.ir.models import IRNode, NodeKind
from transmute.synth.base import Renderer, register_renderer, split_import

if TYPE_CHECKING:
    from transmute.synth.synthesizer import Synthesizer

BINARY_OPERATORS = {
    "+", "-", "*", "/", "//", "%", "**", "<<", ">>", "&", "|", "^", "@",
    "and", "or", "==", "!=", "<", ">", "<=", ">=", "is", "is not", "in", "not in",
}
UNARY_OPERATORS = {"-", "+", "~", "not"}
AUGMENTED_OPERATORS = {"+", "-", "*", "/", "//", "%", "**", "<<", ">>", "&", "|", "^", "@"}

# Operators from other notations with a direct Python spelling.
OPERATOR_ALIASES = {
    "&&": "and",
    "||": "or",
    "!": "not",
    "===": "==",
    "!==": "!=",
}


@register_renderer
class PythonRenderer(Renderer):
    name = "python"
    placeholder = "None"
    empty_body = "pass"
    reserved = frozenset(keyword.kwlist)

    # -- primitives ----------------------------------------------------------------

    def comment(self, text: str) -> str:
        return "# " + " ".join(text.split())

    def literal(self, value: Any) -> str:
        if isinstance(value, float) and not math.isfinite(value):
            return f"float({str(value)!r})"
        return repr(value)

    def import_line(self, module: str, names: Iterable[str] = (), alias: str | None = None) -> str:
        level, segments = split_import(module)
        names = list(names)
        if level and not names:
            # `import .x` is not Python: import the last segment from its package.
            *package, last = segments or ["_"]
            line = f"from {self._module_path(level, package)} import {self.identifier(last)}"
            return f"{line} as {self.identifier(alias)}" if alias else line
        path = self._module_path(level, segments)
        if len(names) == 1 and names[0] != "*" and alias:
            return f"from {path} import {self.identifier(names[0])} as {self.identifier(alias)}"
        if names:
            return f"from {path} import " + ", ".join("*" if n == "*" else self.identifier(n) for n in names)
        if alias:
            return f"import {path} as {self.identifier(alias)}"
        return f"import {path}"

    def cross_unit_import(self, provider: str, name: str) -> str:
        return f"from {self.module_name(provider)} import {self.identifier(name)}"

    def _module_path(self, level: int, segments: list[str]) -> str:
        return ("." * level + ".".join(self.identifier(s) for s in segments)) or "_"

    # -- declarations ----------------------------------------------------------------

    def stmt_module(self, node: IRNode, synth: Synthesizer) -> list[str]:
        return [self.comment(f"module {node.name or node.id}")] + synth.block(node.body)

    def stmt_function(self, node: IRNode, synth: Synthesizer) -> list[str]:
        name = self.identifier(node.name or "_anonymous")
        prefix = "async def" if node.metadata.get("async") else "def"
        params = self._parameters(node, synth)
        with synth.scope(NodeKind.FUNCTION):
            body = synth.block(node.body)
        return [f"{prefix} {name}({params}):"] + self.indent(body)

    def _parameters(self, node: IRNode, synth: Synthesizer) -> str:
        rendered: list[str] = []
        used: set[str] = set()
        seen_default = seen_star = False
        keywords: str | None = None  # the **kwargs parameter always goes last
        for param in node.parameters:
            name = fresh_name(self.identifier(param.name or "_"), used)
            used.add(name)
            star = param.metadata.get("variadic", "")
            if star in ("*", "**"):
                repeated = seen_star if star == "*" else keywords is not None
                if repeated:
                    synth.degrade(param, f"second '{star}' parameter '{name}' dropped")
                elif star == "*":
                    seen_star = True
                    rendered.append(f"*{name}")
                else:
                    keywords = f"**{name}"
                if param.children:
                    synth.degrade(param, f"default of '{star}{name}' dropped")
            elif param.children:
                seen_default = True
                rendered.append(f"{name}={synth.expression(param.children[0])}")
            elif seen_default and not seen_star:
                synth.note(f"parameter '{name}' follows a defaulted parameter; defaulted to None")
                rendered.append(f"{name}=None")
            else:
                rendered.append(name)
            synth.record(param)
        if keywords is not None:
            rendered.append(keywords)
        return ", ".join(rendered)

    def stmt_class(self, node: IRNode, synth: Synthesizer) -> list[str]:
        name = self.identifier(node.name or "_Anonymous")
        bases = [self.dotted(b) for b in node.metadata.get("bases") or []]
        header = f"class {name}({', '.join(bases)}):" if bases else f"class {name}:"
        with synth.scope(NodeKind.CLASS):
            body = synth.block(node.body)
        return [header] + self.indent(body)

    def stmt_variable(self, node: IRNode, synth: Synthesizer) -> list[str]:
        if not node.name:
            return [self.value_of(node, synth)]
        return [f"{self.dotted(node.name)} = {self.value_of(node, synth)}"]

    def stmt_assignment(self, node: IRNode, synth: Synthesizer) -> list[str]:
        if not node.name:
            return [self.value_of(node, synth)]
        operator = OPERATOR_ALIASES.get(node.metadata.get("operator", ""), node.metadata.get("operator", ""))
        if operator and operator not in AUGMENTED_OPERATORS:
            synth.note(f"augmented operator '{operator}' has no Python form; assigned directly")
            operator = ""
        return [f"{self.dotted(node.name)} {operator}= {self.value_of(node, synth)}"]

    # -- statements ------------------------------------------------------------------

    def stmt_block(self, node: IRNode, synth: Synthesizer) -> list[str]:
        with synth.scope(NodeKind.BLOCK):
            return synth.block(node.children)

    def stmt_conditional(self, node: IRNode, synth: Synthesizer) -> list[str]:
        condition = synth.expression(node.children[0]) if node.children else "False"
        with synth.scope(NodeKind.CONDITIONAL):
            then_body = synth.branch(node.children[1] if len(node.children) > 1 else None)
            lines = [f"if {condition}:"] + self.indent(then_body)
            if len(node.children) > 2:
                lines += ["else:"] + self.indent(synth.branch(node.children[2]))
        return lines

    def stmt_loop(self, node: IRNode, synth: Synthesizer) -> list[str]:
        iterable = synth.expression(node.children[0]) if node.children else "()"
        if node.metadata.get("loop_form") == "for_each":
            header = f"for {self.identifier(node.name or '_')} in {iterable}:"
        else:
            header = f"while {iterable if node.children else 'False'}:"
        with synth.scope(NodeKind.LOOP):
            body = synth.branch(node.children[1] if len(node.children) > 1 else None)
        return [header] + self.indent(body)

    def stmt_return(self, node: IRNode, synth: Synthesizer) -> list[str]:
        if synth.innermost(NodeKind.FUNCTION, NodeKind.CLASS) != NodeKind.FUNCTION:
            synth.degrade(node, "return outside a function")
            return [self.value_of(node, synth) if node.children else "pass"]
        return [f"return {self.value_of(node, synth)}" if node.children else "return"]

    def stmt_break(self, node: IRNode, synth: Synthesizer) -> list[str]:
        return [self._loop_jump(node, synth, "break")]

    def stmt_continue(self, node: IRNode, synth: Synthesizer) -> list[str]:
        return [self._loop_jump(node, synth, "continue")]

    def _loop_jump(self, node: IRNode, synth: Synthesizer, keyword_: str) -> str:
        if synth.innermost(NodeKind.LOOP, NodeKind.FUNCTION, NodeKind.CLASS) != NodeKind.LOOP:
            synth.degrade(node, f"{keyword_} outside a loop")
            return "pass"
        return keyword_

    def stmt_import(self, node: IRNode, synth: Synthesizer) -> list[str]:
        return [self.import_line(node.name or "_", node.metadata.get("names") or (), node.metadata.get("alias"))]

    def stmt_export(self, node: IRNode, synth: Synthesizer) -> list[str]:
        name = self.identifier(node.name or "_")
        return [f'__all__ = [*globals().get("__all__", ()), {name!r}]']

    def stmt_error(self, node: IRNode, synth: Synthesizer) -> list[str]:
        message = node.metadata.get("message", "unparsed source")
        source = node.metadata.get("source")
        if source and node.metadata.get("language") == self.name:
            return [self.comment(f"transmute: kept as written: {message}")] + source.split("\n")
        return [self.comment(f"transmute: untranslatable source: {message}"), "pass"]

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
        operands = [self._operand(c, synth) for c in node.children]
        if len(operands) == 2 and operator in BINARY_OPERATORS:
            return f"{operands[0]} {operator} {operands[1]}"
        if len(operands) == 1 and operator in UNARY_OPERATORS:
            return f"not {operands[0]}" if operator == "not" else f"{operator}{operands[0]}"
        synth.degrade(node, f"operator '{operator}' with {len(operands)} operand(s) has no Python form")
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
