"""Template Substitution Engine — hygienic instantiation of mapping templates.

A template is either text with ``{{placeholder}}`` markers or a fragment
tree in the IR serialization shape. Instantiation:

1. Every placeholder must have a binding, otherwise TemplateBindingError.
2. Every name the mapping declares in ``introduces`` that collides with a
   name already in scope (or used by a binding) is renamed with a numeric
   suffix (``tmp`` -> ``tmp_1`` -> ``tmp_2`` ...) until free.
3. Placeholders are replaced. A multi-line binding is re-indented to the
   column its placeholder sits at, so statement bodies nest correctly.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping as MappingType

from transmute.catalog.models import PLACEHOLDER_RE, Mapping
from transmute.errors import TemplateBindingError
from transmute.ir.models import IdGenerator, IRNode
from transmute.ir.serialization import fragment_from_dict

_IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


@dataclass
class Fragment:
    """The result of instantiating one mapping."""

    mapping_id: str
    text: str | None = None
    tree: IRNode | None = None
    imports: tuple[str, ...] = ()
    renames: dict[str, str] = field(default_factory=dict)
    introduced: tuple[str, ...] = ()  # Final names, after renaming


def fresh_name(name: str, taken: Iterable[str]) -> str:
    """``name`` if free, else the first ``name_N`` (N = 1, 2, ...) that is."""
    taken = set(taken)
    if name not in taken:
        return name
    n = 1
    while f"{name}_{n}" in taken:
        n += 1
    return f"{name}_{n}"


def _rename_words(text: str, renames: MappingType[str, str]) -> str:
    if not renames:
        return text
    pattern = re.compile(r"(?<![A-Za-z0-9_.])(" + "|".join(map(re.escape, renames)) + r")(?![A-Za-z0-9_])")
    return pattern.sub(lambda m: renames[m.group(1)], text)


class TemplateEngine:
    """Stateless; one instance can serve every worker."""

    def plan_renames(
        self,
        mapping: Mapping,
        bindings: MappingType[str, str],
        scope_names: Iterable[str],
    ) -> dict[str, str]:
        """Deterministic renames for the names a template introduces."""
        taken = set(scope_names)
        for value in bindings.values():
            taken.update(_IDENTIFIER_RE.findall(value))
        renames: dict[str, str] = {}
        for name in mapping.introduces:
            chosen = fresh_name(name, taken)
            taken.add(chosen)
            if chosen != name:
                renames[name] = chosen
        return renames

    def instantiate(
        self,
        mapping: Mapping,
        bindings: MappingType[str, str],
        scope_names: Iterable[str] = (),
        ids: IdGenerator | None = None,
    ) -> Fragment:
        missing = [p for p in mapping.placeholders if p not in bindings]
        if missing:
            raise TemplateBindingError(mapping.id, missing)

        renames = self.plan_renames(mapping, bindings, scope_names)
        introduced = tuple(renames.get(n, n) for n in mapping.introduces)

        if mapping.is_fragment:
            data = self._substitute_tree(mapping.template, bindings, renames)
            tree = fragment_from_dict(data, ids or IdGenerator(mapping.id))
            return Fragment(mapping.id, tree=tree, imports=mapping.imports, renames=renames, introduced=introduced)

        text = self._substitute_text(mapping.template, bindings, renames)
        return Fragment(mapping.id, text=text, imports=mapping.imports, renames=renames, introduced=introduced)

    # -- text templates ----------------------------------------------------------

    def _substitute_text(self, template: str, bindings: MappingType[str, str], renames: dict[str, str]) -> str:
        out: list[str] = []
        last = 0
        for m in PLACEHOLDER_RE.finditer(template):
            out.append(_rename_words(template[last : m.start()], renames))
            indent = _line_indent("".join(out))
            out.append(_reindent(bindings[m.group(1)], indent))
            last = m.end()
        out.append(_rename_words(template[last:], renames))
        return "".join(out)

    # -- fragment trees ----------------------------------------------------------

    def _substitute_tree(self, value: Any, bindings: MappingType[str, str], renames: dict[str, str]) -> Any:
        if isinstance(value, str):
            return self._substitute_text(value, bindings, renames)
        if isinstance(value, dict):
            return {k: self._substitute_tree(v, bindings, renames) for k, v in value.items()}
        if isinstance(value, list):
            return [self._substitute_tree(v, bindings, renames) for v in value]
        return value


def _line_indent(text_so_far: str) -> str:
    """Leading whitespace of the line the next character lands on."""
    line = text_so_far.rsplit("\n", 1)[-1]
    return line[: len(line) - len(line.lstrip(" \t"))]


def _reindent(value: str, indent: str) -> str:
    if "\n" not in value or not indent:
        return value
    first, *rest = value.split("\n")
    return "\n".join([first] + [indent + line if line else line for line in rest])
