"""IR data models — the canonical, notation-agnostic program tree.

These models are what front-end adapters build from language-specific parse
trees and what the matcher, resolver and synthesizer read. A node owns its
children exclusively; nothing in a tree is shared.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator

from transmute.errors import IRValidationError, ParseDiagnostic


class NodeKind(Enum):
    MODULE = "module"
    FUNCTION = "function"
    CLASS = "class"
    VARIABLE = "variable"
    PARAMETER = "parameter"
    BLOCK = "block"
    EXPRESSION = "expression"
    ASSIGNMENT = "assignment"
    CONDITIONAL = "conditional"
    LOOP = "loop"
    RETURN = "return"
    BREAK = "break"
    CONTINUE = "continue"
    IMPORT = "import"
    EXPORT = "export"
    LITERAL = "literal"
    CALL = "call"
    LIBRARY_CALL = "library_call"
    ERROR = "error"


# Kinds that never require a rendering decision of their own.
UNSCORED_KINDS = frozenset({NodeKind.LITERAL, NodeKind.IMPORT, NodeKind.EXPORT})

# Kinds that introduce a naming scope.
SCOPE_KINDS = frozenset({NodeKind.MODULE, NodeKind.CLASS, NodeKind.FUNCTION})

# Kinds that live in statement position inside a block.
STATEMENT_KINDS = frozenset(
    {
        NodeKind.FUNCTION,
        NodeKind.CLASS,
        NodeKind.VARIABLE,
        NodeKind.ASSIGNMENT,
        NodeKind.CONDITIONAL,
        NodeKind.LOOP,
        NodeKind.RETURN,
        NodeKind.BREAK,
        NodeKind.CONTINUE,
        NodeKind.IMPORT,
        NodeKind.EXPORT,
        NodeKind.BLOCK,
    }
)


def _json_native(value: Any, path: str = "metadata") -> Any:
    """Normalize a metadata value to JSON-native scalars, lists and maps."""
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, (list, tuple)):
        return [_json_native(v, f"{path}[{i}]") for i, v in enumerate(value)]
    if isinstance(value, dict):
        return {str(k): _json_native(v, f"{path}.{k}") for k, v in value.items()}
    raise IRValidationError(
        f"{path}: metadata values must be scalars, lists or maps, got {type(value).__name__}"
    )


@dataclass(frozen=True)
class LibraryDependency:
    """Marks a node as originating from a recognizable library call."""

    library: str
    pattern: str
    parameters: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(
            self, "parameters", _json_native(dict(self.parameters), "parameters")
        )

    @property
    def qualified_pattern(self) -> str:
        return f"{self.library}/{self.pattern}"


@dataclass(frozen=True)
class IRNode:
    """A single node of the canonical IR tree."""

    id: str
    kind: NodeKind
    name: str | None = None
    children: tuple[IRNode, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)
    library_dependencies: tuple[LibraryDependency, ...] = ()

    def __post_init__(self):
        if not isinstance(self.kind, NodeKind):
            try:
                object.__setattr__(self, "kind", NodeKind(self.kind))
            except ValueError:
                raise IRValidationError(f"{self.id}: unknown node kind '{self.kind}'") from None
        object.__setattr__(self, "children", tuple(self.children))
        object.__setattr__(self, "metadata", _json_native(dict(self.metadata)))
        object.__setattr__(self, "library_dependencies", tuple(self.library_dependencies))

    # -- structure helpers ---------------------------------------------------

    @property
    def parameters(self) -> tuple[IRNode, ...]:
        return tuple(c for c in self.children if c.kind == NodeKind.PARAMETER)

    @property
    def body(self) -> tuple[IRNode, ...]:
        """Statements of a function/class/module/block, parameters excluded."""
        return tuple(c for c in self.children if c.kind != NodeKind.PARAMETER)

    @property
    def is_statement(self) -> bool:
        return self.kind in STATEMENT_KINDS

    def walk(self) -> Iterator[IRNode]:
        """Pre-order traversal, children in stored order."""
        yield self
        for child in self.children:
            yield from child.walk()

    def walk_post_order(self) -> Iterator[IRNode]:
        for child in self.children:
            yield from child.walk_post_order()
        yield self

    def find(self, node_id: str) -> IRNode | None:
        for node in self.walk():
            if node.id == node_id:
                return node
        return None

    @property
    def size(self) -> int:
        return sum(1 for _ in self.walk())


class IdGenerator:
    """Hands out node ids for one unit. Ids are never reused."""

    def __init__(self, prefix: str = "n"):
        self.prefix = prefix
        self._counter = itertools.count(1)

    def new_id(self) -> str:
        return f"{self.prefix}-{next(self._counter)}"


@dataclass
class TranslationUnit:
    """One independent top-level module and its adapter diagnostics."""

    name: str
    root: IRNode
    language: str = "ir"
    diagnostics: list[ParseDiagnostic] = field(default_factory=list)


def validate_tree(root: IRNode) -> None:
    """Check the ownership invariants of a tree.

    Raises IRValidationError when an id appears twice or when one node
    object is owned by more than one parent.
    """
    seen_ids: dict[str, int] = {}
    seen_objects: set[int] = set()
    stack = [root]
    while stack:
        node = stack.pop()
        if id(node) in seen_objects:
            raise IRValidationError(f"Node '{node.id}' has more than one owner")
        seen_objects.add(id(node))
        if node.id in seen_ids:
            raise IRValidationError(f"Duplicate node id '{node.id}'")
        seen_ids[node.id] = 1
        stack.extend(reversed(node.children))
