"""Pattern and match models.

A pattern is catalog data: a matcher variant (selected by its ``type``), a
semantic category, and a stability flag. A match is the concrete firing of
a pattern on one or more nodes, with the bindings it extracted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping

if TYPE_CHECKING:
    from transmute.patterns.matchers import Matcher


class Stability(Enum):
    PRESERVE = "preserve"  # Safety-critical: must render faithfully
    MODERNIZABLE = "modernizable"  # Free to rewrite into target idiom


class RefMode(Enum):
    EXPRESSION = "expression"
    ARGUMENTS = "arguments"
    STATEMENTS = "statements"


@dataclass(frozen=True)
class NodeRef:
    """A binding whose value is IR, rendered to target text on demand."""

    node_ids: tuple[str, ...]
    mode: RefMode = RefMode.EXPRESSION


BindingValue = str | NodeRef


@dataclass(frozen=True)
class MatchSite:
    """What a matcher reports for one firing, before it becomes a Match."""

    node_ids: tuple[str, ...]
    bindings: dict[str, BindingValue] = field(default_factory=dict)
    category: str | None = None  # Overrides the pattern's category when set


@dataclass(frozen=True)
class Pattern:
    """A recognizable structural shape with a semantic category."""

    id: str
    matcher: Matcher
    category: str | None = None
    stability: Stability = Stability.MODERNIZABLE
    hint: str = ""
    description: str = ""

    @property
    def safety_critical(self) -> bool:
        return self.stability == Stability.PRESERVE

    def category_for(self, site: MatchSite) -> str:
        return self.category or site.category or self.id


@dataclass(frozen=True)
class Match:
    """One pattern firing, bound to the ids of every participating node."""

    pattern_id: str
    category: str
    node_ids: tuple[str, ...]
    bindings: Mapping[str, BindingValue]
    safety_critical: bool
    pattern_order: int  # Catalog position, the tie-break of last resort
    hint: str = ""

    @property
    def anchor_id(self) -> str:
        return self.node_ids[0]

    @property
    def span(self) -> int:
        return len(self.node_ids)

    @property
    def referenced_ids(self) -> frozenset[str]:
        """Node ids the match hands to its template as IR bindings."""
        return frozenset(
            node_id
            for value in self.bindings.values()
            if isinstance(value, NodeRef)
            for node_id in value.node_ids
        )

    @property
    def owned_ids(self) -> tuple[str, ...]:
        """Bound nodes the match consumes itself; other matches may not claim them."""
        referenced = self.referenced_ids
        return tuple(i for i in self.node_ids if i not in referenced)

    def text_bindings(self) -> dict[str, str]:
        return {k: v for k, v in self.bindings.items() if isinstance(v, str)}

    def describe(self) -> dict[str, Any]:
        return {
            "pattern": self.pattern_id,
            "category": self.category,
            "nodes": list(self.node_ids),
            "safety_critical": self.safety_critical,
            "bindings": sorted(self.bindings),
        }
