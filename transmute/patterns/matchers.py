"""Matcher variants — the predicate half of a pattern.

Each variant is registered under the ``type`` name catalog entries use in
their ``match`` block, so new idioms are new catalog data, not new code.
A matcher sees one node plus a bounded neighborhood (ancestors up to the
configured depth, and sibling statements in the same block) through the
unit's symbol table.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Any, Callable, ClassVar, Protocol

from transmute.ir.models import IRNode, NodeKind
from transmute.ir.symbols import SymbolTable
from transmute.patterns.models import MatchSite, NodeRef, RefMode

_CALL_KINDS = (NodeKind.CALL, NodeKind.LIBRARY_CALL)
_BINDING_KINDS = (NodeKind.VARIABLE, NodeKind.ASSIGNMENT)


@dataclass(frozen=True)
class MatchContext:
    table: SymbolTable
    ancestor_depth: int = 3

    def ancestors(self, node: IRNode) -> list[IRNode]:
        return self.table.ancestors(node.id, self.ancestor_depth)


class Matcher(Protocol):
    def match(self, node: IRNode, ctx: MatchContext) -> list[MatchSite]: ...


MATCHER_TYPES: dict[str, Callable[[dict[str, Any]], Matcher]] = {}


def register_matcher(type_name: str):
    def decorator(cls):
        MATCHER_TYPES[type_name] = cls.from_definition
        cls.type_name = type_name
        return cls

    return decorator


def build_matcher(definition: dict[str, Any]) -> Matcher:
    """Instantiate the matcher variant named by ``definition['type']``.

    Raises KeyError for an unknown type and ValueError for bad arguments.
    """
    factory = MATCHER_TYPES[definition["type"]]
    return factory(definition)


# -- helpers ------------------------------------------------------------------


def expression_text(node: IRNode) -> str:
    """A notation-neutral flattening of an expression, used for predicates."""
    if node.kind == NodeKind.LITERAL:
        return json.dumps(node.metadata.get("value"))
    if node.kind in _CALL_KINDS:
        args = ", ".join(expression_text(c) for c in node.children)
        return f"{node.name or ''}({args})"
    operator = node.metadata.get("operator")
    if operator and len(node.children) == 2:
        left, right = node.children
        return f"{expression_text(left)} {operator} {expression_text(right)}"
    if operator and len(node.children) == 1:
        return f"{operator}{expression_text(node.children[0])}"
    return node.name or ""


def _value_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


def _positional(node: IRNode) -> list[IRNode]:
    return [c for c in node.children if "keyword" not in c.metadata]


def _names_match(name: str | None, candidates: tuple[str, ...]) -> bool:
    return bool(name) and any(fnmatchcase(name, c) for c in candidates)


def _as_tuple(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


# -- variants -----------------------------------------------------------------


@register_matcher("library-call")
@dataclass(frozen=True)
class LibraryCallMatcher:
    """A node that carries a library-dependency annotation."""

    binding_names: ClassVar[frozenset[str] | None] = None

    library: str = "*"
    pattern: str = "*"

    @classmethod
    def from_definition(cls, definition: dict[str, Any]) -> LibraryCallMatcher:
        return cls(library=definition.get("library", "*"), pattern=definition.get("pattern", "*"))

    def match(self, node: IRNode, ctx: MatchContext) -> list[MatchSite]:
        for dep in node.library_dependencies:
            if not (fnmatchcase(dep.library, self.library) and fnmatchcase(dep.pattern, self.pattern)):
                continue
            bindings: dict[str, Any] = {
                "library": dep.library,
                "pattern": dep.pattern,
                "callee": node.name or "",
            }
            for i, arg in enumerate(_positional(node)):
                bindings[f"arg{i}"] = NodeRef((arg.id,))
            positional = _positional(node)
            if positional:
                bindings["args"] = NodeRef(tuple(a.id for a in positional), RefMode.ARGUMENTS)
            for child in node.children:
                if "keyword" in child.metadata:
                    bindings[child.metadata["keyword"]] = NodeRef((child.id,))
            for key, value in dep.parameters.items():
                bindings[key] = _value_text(value)
            parents = ctx.ancestors(node)
            if parents and parents[0].kind in _BINDING_KINDS and parents[0].name:
                bindings["target"] = parents[0].name
            return [MatchSite(node_ids=(node.id,), bindings=bindings, category=dep.pattern)]
        return []


@register_matcher("lifecycle-pair")
@dataclass(frozen=True)
class LifecyclePairMatcher:
    """An acquire statement paired with a later release of the same name."""

    binding_names: ClassVar[frozenset[str] | None] = frozenset(
        {"resource", "acquire", "acquire_call", "acquire_args", "release_call", "body"}
    )

    acquire: tuple[str, ...]
    release: tuple[str, ...]

    @classmethod
    def from_definition(cls, definition: dict[str, Any]) -> LifecyclePairMatcher:
        acquire, release = _as_tuple(definition.get("acquire")), _as_tuple(definition.get("release"))
        if not acquire or not release:
            raise ValueError("lifecycle-pair needs non-empty 'acquire' and 'release'")
        return cls(acquire=acquire, release=release)

    def _acquired(self, node: IRNode) -> tuple[str, IRNode] | None:
        if node.kind not in _BINDING_KINDS or not node.name or len(node.children) != 1:
            return None
        value = node.children[0]
        if value.kind in _CALL_KINDS and _names_match(value.name, self.acquire):
            return node.name, value
        return None

    def _releases(self, node: IRNode, resource: str) -> bool:
        if node.kind not in _CALL_KINDS or not node.name:
            return False
        if any(node.name == f"{resource}.{r}" for r in self.release):
            return True
        args = _positional(node)
        return (
            _names_match(node.name, self.release)
            and bool(args)
            and args[0].kind == NodeKind.EXPRESSION
            and args[0].name == resource
        )

    def match(self, node: IRNode, ctx: MatchContext) -> list[MatchSite]:
        acquired = self._acquired(node)
        if acquired is None:
            return []
        resource, call = acquired
        siblings = ctx.table.siblings(node.id)
        start = next(i for i, s in enumerate(siblings) if s.id == node.id)
        for end in range(start + 1, len(siblings)):
            release = siblings[end]
            if not self._releases(release, resource):
                continue
            between = siblings[start + 1 : end]
            args = _positional(call)
            return [
                MatchSite(
                    node_ids=tuple(s.id for s in siblings[start : end + 1]),
                    bindings={
                        "resource": resource,
                        "acquire": NodeRef((call.id,)),
                        "acquire_call": call.name or "",
                        "acquire_args": NodeRef(tuple(a.id for a in args), RefMode.ARGUMENTS),
                        "release_call": release.name or "",
                        "body": NodeRef(tuple(s.id for s in between), RefMode.STATEMENTS),
                    },
                )
            ]
        return []


DEFAULT_PLATFORM_MARKERS = (
    "sys.platform",
    "os.name",
    "platform.system",
    "_WIN32",
    "__APPLE__",
    "__linux__",
)


@register_matcher("platform-branch")
@dataclass(frozen=True)
class PlatformBranchMatcher:
    """A conditional whose condition tests the host platform."""

    binding_names: ClassVar[frozenset[str] | None] = frozenset(
        {"condition", "platform", "then_body", "else_body"}
    )

    markers: tuple[str, ...] = DEFAULT_PLATFORM_MARKERS

    @classmethod
    def from_definition(cls, definition: dict[str, Any]) -> PlatformBranchMatcher:
        markers = _as_tuple(definition.get("markers")) or DEFAULT_PLATFORM_MARKERS
        return cls(markers=markers)

    def match(self, node: IRNode, ctx: MatchContext) -> list[MatchSite]:
        if node.kind != NodeKind.CONDITIONAL or len(node.children) < 2:
            return []
        condition = node.children[0]
        text = expression_text(condition)
        if not any(m in text for m in self.markers):
            return []
        platform = next(
            (
                str(n.metadata.get("value"))
                for n in condition.walk()
                if n.kind == NodeKind.LITERAL and isinstance(n.metadata.get("value"), str)
            ),
            "",
        )
        then_block = node.children[1]
        else_ids: tuple[str, ...] = ()
        if len(node.children) > 2:
            else_ids = tuple(c.id for c in node.children[2].children)
        return [
            MatchSite(
                node_ids=(node.id,),
                bindings={
                    "condition": NodeRef((condition.id,)),
                    "platform": platform,
                    "then_body": NodeRef(tuple(c.id for c in then_block.children), RefMode.STATEMENTS),
                    "else_body": NodeRef(else_ids, RefMode.STATEMENTS),
                },
            )
        ]


DEFAULT_CONTAINERS = (
    "List",
    "list",
    "Dict",
    "dict",
    "Set",
    "set",
    "Optional",
    "vector",
    "std::vector",
    "map",
    "std::map",
    "Array",
    "Map",
)


@register_matcher("templated-generic")
@dataclass(frozen=True)
class TemplatedGenericMatcher:
    """A declaration whose type is a generic container instantiation."""

    binding_names: ClassVar[frozenset[str] | None] = frozenset(
        {"name", "container", "type_arguments", "element_type", "key_type", "value_type", "value"}
    )

    containers: tuple[str, ...] = DEFAULT_CONTAINERS
    kinds: tuple[str, ...] = ("variable", "parameter", "function", "class")

    @classmethod
    def from_definition(cls, definition: dict[str, Any]) -> TemplatedGenericMatcher:
        containers = _as_tuple(definition.get("containers")) or DEFAULT_CONTAINERS
        kinds = _as_tuple(definition.get("kinds")) or cls.kinds
        for kind in kinds:
            NodeKind(kind)
        return cls(containers=containers, kinds=kinds)

    def match(self, node: IRNode, ctx: MatchContext) -> list[MatchSite]:
        if node.kind.value not in self.kinds:
            return []
        container = node.metadata.get("type_name")
        arguments = node.metadata.get("type_arguments") or []
        if not isinstance(container, str) or container not in self.containers or not arguments:
            return []
        arguments = [str(a) for a in arguments]
        bindings: dict[str, Any] = {
            "name": node.name or "",
            "container": container,
            "type_arguments": ", ".join(arguments),
            "element_type": arguments[-1],
        }
        if len(arguments) == 2:
            bindings["key_type"] = arguments[0]
            bindings["value_type"] = arguments[1]
        if node.children and node.kind == NodeKind.VARIABLE:
            bindings["value"] = NodeRef((node.children[0].id,))
        return [MatchSite(node_ids=(node.id,), bindings=bindings)]


def _snake_case(name: str) -> str:
    return re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", name).lower()


@register_matcher("class-base")
@dataclass(frozen=True)
class ClassBaseMatcher:
    """A class declaration deriving from one of the listed bases (e.g. an ORM model)."""

    binding_names: ClassVar[frozenset[str] | None] = frozenset(
        {"name", "base", "other_bases", "table_name", "body"}
    )

    bases: tuple[str, ...]

    @classmethod
    def from_definition(cls, definition: dict[str, Any]) -> ClassBaseMatcher:
        bases = _as_tuple(definition.get("bases"))
        if not bases:
            raise ValueError("class-base needs non-empty 'bases'")
        return cls(bases=bases)

    def match(self, node: IRNode, ctx: MatchContext) -> list[MatchSite]:
        if node.kind != NodeKind.CLASS:
            return []
        declared = [str(b) for b in node.metadata.get("bases") or []]
        base = next((b for b in declared if _names_match(b, self.bases)), None)
        if base is None:
            return []
        return [
            MatchSite(
                node_ids=(node.id,),
                bindings={
                    "name": node.name or "",
                    "base": base,
                    "other_bases": ", ".join(b for b in declared if b != base),
                    "table_name": _snake_case(node.name or ""),
                    "body": NodeRef(tuple(c.id for c in node.children), RefMode.STATEMENTS),
                },
            )
        ]


@register_matcher("node-shape")
@dataclass(frozen=True)
class NodeShapeMatcher:
    """A node of a given kind, optionally constrained by name, metadata and context."""

    binding_names: ClassVar[frozenset[str] | None] = None

    kind: str
    name: str | None = None
    metadata: tuple[tuple[str, Any], ...] = ()
    inside: str | None = None

    @classmethod
    def from_definition(cls, definition: dict[str, Any]) -> NodeShapeMatcher:
        kind = definition.get("kind")
        if not kind:
            raise ValueError("node-shape needs a 'kind'")
        NodeKind(kind)
        if definition.get("inside"):
            NodeKind(definition["inside"])
        if definition.get("name"):
            re.compile(definition["name"])
        return cls(
            kind=kind,
            name=definition.get("name"),
            metadata=tuple(sorted((definition.get("metadata") or {}).items())),
            inside=definition.get("inside"),
        )

    def match(self, node: IRNode, ctx: MatchContext) -> list[MatchSite]:
        if node.kind.value != self.kind:
            return []
        if self.name is not None and not re.fullmatch(self.name, node.name or ""):
            return []
        if any(node.metadata.get(k) != v for k, v in self.metadata):
            return []
        if self.inside and not any(a.kind.value == self.inside for a in ctx.ancestors(node)):
            return []
        bindings: dict[str, Any] = {"name": node.name or ""}
        for key, value in node.metadata.items():
            if isinstance(value, (str, int, float, bool)):
                bindings[key] = _value_text(value)
        positional = _positional(node)
        for i, child in enumerate(positional):
            bindings[f"arg{i}"] = NodeRef((child.id,))
        if positional:
            bindings["args"] = NodeRef(tuple(c.id for c in positional), RefMode.ARGUMENTS)
        return [MatchSite(node_ids=(node.id,), bindings=bindings)]
