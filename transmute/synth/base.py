"""Renderer base — what a target notation must provide.

A renderer turns one IR node into target text and asks the synthesizer
for its children, so fragment substitution and outcome tracking stay in
one place. Every kind has a statement rendering and an expression
rendering; a kind with no natural form in a position degrades to the
notation's placeholder value and leaves a comment on the enclosing
statement.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Iterable

from transmute.errors import ConfigError
from transmute.ir.models import IRNode

if TYPE_CHECKING:
    from transmute.synth.synthesizer import Synthesizer

SOURCE_SUFFIX = re.compile(r"\.(py|pyi|js|mjs|cjs|ts|tsx|jsx|json|ya?ml)$")


def split_import(module: str) -> tuple[int, list[str]]:
    """An imported module as (relative level, name segments).

    Level 0 is absolute and level 1 is the importing module's own package.
    Both the dotted spelling ("..core") and the path spelling
    ("../core.js") are understood.
    """
    if "/" in module or "\\" in module:
        parts = SOURCE_SUFFIX.sub("", module.replace("\\", "/")).split("/")
        level = 0
        while parts and parts[0] in (".", ".."):
            level = max(level, 1) if parts.pop(0) == "." else (level or 1) + 1
        return level, [p for p in parts if p]
    stripped = module.lstrip(".")
    return len(module) - len(stripped), [p for p in stripped.split(".") if p]


class Renderer(ABC):
    name: ClassVar[str]
    indent_unit: ClassVar[str] = "    "
    placeholder: ClassVar[str]  # value used where nothing valid can be emitted
    empty_body: ClassVar[str]  # statement standing in for an empty block
    reserved: ClassVar[frozenset[str]] = frozenset()
    extra_identifier_chars: ClassVar[str] = ""

    # -- notation primitives -----------------------------------------------------

    @abstractmethod
    def comment(self, text: str) -> str: ...

    @abstractmethod
    def literal(self, value: Any) -> str: ...

    @abstractmethod
    def import_line(self, module: str, names: Iterable[str] = (), alias: str | None = None) -> str: ...

    @abstractmethod
    def cross_unit_import(self, provider: str, name: str) -> str: ...

    def identifier(self, name: str) -> str:
        """Make one name segment valid in the notation."""
        invalid = rf"[^A-Za-z0-9_{re.escape(self.extra_identifier_chars)}]"
        cleaned = re.sub(invalid, "_", name)
        if not cleaned:
            cleaned = "_"
        if cleaned[0].isdigit():
            cleaned = "_" + cleaned
        if cleaned in self.reserved:
            cleaned += "_"
        return cleaned

    def dotted(self, name: str) -> str:
        return ".".join(self.identifier(part) for part in name.split("."))

    def module_name(self, unit_name: str) -> str:
        """A unit name ("pkg/util.py", "./store.js") as a dotted module path."""
        stem = SOURCE_SUFFIX.sub("", unit_name.lstrip("./\\"))
        return ".".join(self.identifier(p) for p in re.split(r"[/\\.]", stem) if p) or "_"

    # -- dispatch ----------------------------------------------------------------

    def statement(self, node: IRNode, synth: Synthesizer) -> list[str]:
        method: Callable | None = getattr(self, f"stmt_{node.kind.value}", None)
        if method is not None:
            return method(node, synth)
        return [self.expression_statement(synth.expression(node))]

    def expression(self, node: IRNode, synth: Synthesizer) -> str:
        method: Callable | None = getattr(self, f"expr_{node.kind.value}", None)
        if method is not None:
            return method(node, synth)
        synth.degrade(node, f"{node.kind.value} '{node.name or node.id}' cannot appear in an expression")
        return self.placeholder

    def expression_statement(self, text: str) -> str:
        return text

    # -- shared helpers ----------------------------------------------------------

    def indent(self, lines: list[str]) -> list[str]:
        return [self.indent_unit + line if line else line for line in lines]

    def arguments(self, node: IRNode, synth: Synthesizer) -> str:
        positional = [synth.expression(c) for c in node.children if "keyword" not in c.metadata]
        keywords = [(c.metadata["keyword"], synth.expression(c)) for c in node.children if "keyword" in c.metadata]
        return self.join_arguments(positional, keywords)

    def join_arguments(self, positional: list[str], keywords: list[tuple[str, str]]) -> str:
        return ", ".join(positional + [f"{self.identifier(k)}={v}" for k, v in keywords])

    def value_of(self, node: IRNode, synth: Synthesizer) -> str:
        """The single value child of a variable/assignment/return, or the placeholder."""
        return synth.expression(node.children[0]) if node.children else self.placeholder


RENDERERS: dict[str, type[Renderer]] = {}


def register_renderer(cls: type[Renderer]) -> type[Renderer]:
    RENDERERS[cls.name] = cls
    return cls


def get_renderer(notation: str) -> Renderer:
    try:
        return RENDERERS[notation]()
    except KeyError:
        raise ConfigError(
            f"Unknown target notation '{notation}' (known: {', '.join(sorted(RENDERERS))})"
        ) from None

