"""Symbol tables — id/name lookups over an owned tree.

Nodes never point at each other outside the parent/child relation. Anything
that needs to follow a reference (parent, enclosing scope, a function
defined in a sibling module) goes through these tables, which are built
once and read-only afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Sequence

from transmute.ir.models import IRNode, NodeKind, SCOPE_KINDS, TranslationUnit

# Kinds whose ``name`` declares something in the enclosing scope.
DECLARING_KINDS = frozenset(
    {
        NodeKind.FUNCTION,
        NodeKind.CLASS,
        NodeKind.VARIABLE,
        NodeKind.ASSIGNMENT,
        NodeKind.PARAMETER,
    }
)

_TOP_LEVEL_KINDS = frozenset(
    {NodeKind.FUNCTION, NodeKind.CLASS, NodeKind.VARIABLE, NodeKind.ASSIGNMENT}
)


def _declared_names(node: IRNode) -> list[str]:
    if node.kind in DECLARING_KINDS and node.name:
        return [node.name]
    if node.kind == NodeKind.LOOP and node.metadata.get("loop_form") == "for_each" and node.name:
        return [node.name]
    if node.kind == NodeKind.IMPORT:
        if node.metadata.get("alias"):
            return [node.metadata["alias"]]
        names = node.metadata.get("names") or []
        if names:
            return [str(n) for n in names]
        if node.name:
            return [node.name.split(".")[0]]
    return []


class SymbolTable:
    """Read-only index over one unit's tree."""

    def __init__(self, root: IRNode):
        self.root = root
        nodes: dict[str, IRNode] = {}
        parents: dict[str, str] = {}
        order: dict[str, int] = {}
        by_name: dict[str, list[str]] = {}
        scope_names: dict[str, set[str]] = {}

        def visit(node: IRNode, parent: IRNode | None, scope_id: str) -> None:
            nodes[node.id] = node
            order[node.id] = len(order)
            if parent is not None:
                parents[node.id] = parent.id
            for declared in _declared_names(node):
                scope_names.setdefault(scope_id, set()).add(declared)
                by_name.setdefault(declared, []).append(node.id)
            inner_scope = node.id if node.kind in SCOPE_KINDS else scope_id
            if node.kind in SCOPE_KINDS:
                scope_names.setdefault(node.id, set())
            for child in node.children:
                visit(child, node, inner_scope)

        visit(root, None, root.id)

        self._nodes = MappingProxyType(nodes)
        self._parents = MappingProxyType(parents)
        self._order = MappingProxyType(order)
        self._by_name = MappingProxyType({k: tuple(v) for k, v in by_name.items()})
        self._scope_names = MappingProxyType(
            {k: frozenset(v) for k, v in scope_names.items()}
        )

    @classmethod
    def build(cls, root: IRNode) -> SymbolTable:
        return cls(root)

    @property
    def nodes(self) -> Mapping[str, IRNode]:
        return self._nodes

    def node(self, node_id: str) -> IRNode:
        return self._nodes[node_id]

    def parent(self, node_id: str) -> IRNode | None:
        parent_id = self._parents.get(node_id)
        return self._nodes[parent_id] if parent_id is not None else None

    def ancestors(self, node_id: str, depth: int | None = None) -> list[IRNode]:
        """Ancestors nearest first, optionally limited to ``depth`` levels."""
        result = []
        current = self._parents.get(node_id)
        while current is not None and (depth is None or len(result) < depth):
            result.append(self._nodes[current])
            current = self._parents.get(current)
        return result

    def siblings(self, node_id: str) -> tuple[IRNode, ...]:
        parent = self.parent(node_id)
        return parent.children if parent is not None else (self._nodes[node_id],)

    def position(self, node_id: str) -> int:
        """Pre-order index of a node; the canonical ordering key."""
        return self._order[node_id]

    def lookup(self, name: str) -> tuple[IRNode, ...]:
        return tuple(self._nodes[i] for i in self._by_name.get(name, ()))

    def enclosing_scope(self, node_id: str) -> IRNode:
        for ancestor in self.ancestors(node_id):
            if ancestor.kind in SCOPE_KINDS:
                return ancestor
        return self.root

    def names_in_scope(self, node_id: str) -> frozenset[str]:
        """Every name declared in the scopes enclosing ``node_id``."""
        names: set[str] = set()
        node = self._nodes[node_id]
        chain = [node] + self.ancestors(node_id)
        for candidate in chain:
            names |= self._scope_names.get(candidate.id, frozenset())
        return frozenset(names)

    def all_names(self) -> frozenset[str]:
        return frozenset(self._by_name)

    def top_level_declarations(self) -> list[str]:
        return [
            c.name
            for c in self.root.children
            if c.kind in _TOP_LEVEL_KINDS and c.name
        ]

    def called_names(self) -> list[str]:
        """Root names of every call in the unit, first occurrence order."""
        seen: dict[str, None] = {}
        for node in self.root.walk():
            if node.kind in (NodeKind.CALL, NodeKind.LIBRARY_CALL) and node.name:
                seen.setdefault(node.name.split(".")[0], None)
        return list(seen)


@dataclass(frozen=True)
class ExternalReference:
    name: str
    provider: str  # unit name
    candidates: tuple[str, ...]  # every unit that declares the name

    @property
    def is_ambiguous(self) -> bool:
        return len(self.candidates) > 1


class CrossUnitIndex:
    """Which unit declares which top-level name.

    Built once after every unit has been parsed; workers only read it.
    """

    def __init__(self, providers: dict[str, tuple[str, ...]]):
        self._providers = MappingProxyType(dict(providers))

    @classmethod
    def build(cls, units: Sequence[TranslationUnit]) -> CrossUnitIndex:
        providers: dict[str, list[str]] = {}
        for unit in units:
            table = SymbolTable.build(unit.root)
            for name in table.top_level_declarations():
                owners = providers.setdefault(name, [])
                if unit.name not in owners:
                    owners.append(unit.name)
        return cls({k: tuple(v) for k, v in providers.items()})

    @classmethod
    def empty(cls) -> CrossUnitIndex:
        return cls({})

    def providers(self, name: str) -> tuple[str, ...]:
        return self._providers.get(name, ())

    def external_references(self, unit_name: str, table: SymbolTable) -> list[ExternalReference]:
        """Called names the unit does not declare but a sibling unit does."""
        local = table.all_names()
        refs = []
        for name in table.called_names():
            if name in local:
                continue
            candidates = tuple(u for u in self.providers(name) if u != unit_name)
            if candidates:
                refs.append(ExternalReference(name=name, provider=candidates[0], candidates=candidates))
        return refs
