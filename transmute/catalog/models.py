"""Catalog data models — mappings, the immutable catalog snapshot, and transformation suggestions."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from transmute.patterns.registry import PatternRegistry

PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


def template_placeholders(template: str | dict[str, Any]) -> list[str]:
    """Placeholder names in a text template or a fragment-tree template, first-seen order."""
    found: dict[str, None] = {}

    def scan(value: Any) -> None:
        if isinstance(value, str):
            for m in PLACEHOLDER_RE.finditer(value):
                found.setdefault(m.group(1), None)
        elif isinstance(value, dict):
            for v in value.values():
                scan(v)
        elif isinstance(value, list):
            for v in value:
                scan(v)

    scan(template)
    return list(found)


@dataclass(frozen=True)
class Mapping:
    """A rule rewriting one semantic category into a target-ecosystem template."""

    source_category: str
    target_ecosystem: str
    template: str | dict[str, Any]
    priority: int = 0
    behavior_preserving: bool = False
    id: str = ""
    pattern: str | None = None  # Restrict to a single pattern id
    imports: tuple[str, ...] = ()
    introduces: tuple[str, ...] = ()
    description: str = ""
    order: int = 0  # Position in the loaded catalog

    @property
    def is_fragment(self) -> bool:
        return isinstance(self.template, dict)

    @property
    def placeholders(self) -> list[str]:
        return template_placeholders(self.template)

    @classmethod
    def from_dict(cls, data: dict[str, Any], order: int) -> Mapping:
        return cls(
            source_category=data["source_category"],
            target_ecosystem=data["target_ecosystem"],
            template=data["template"],
            priority=int(data.get("priority", 0)),
            behavior_preserving=bool(data.get("behavior_preserving", False)),
            id=data.get("id") or f"{data['source_category']}->{data['target_ecosystem']}#{order}",
            pattern=data.get("pattern"),
            imports=tuple(data.get("imports") or ()),
            introduces=tuple(data.get("introduces") or ()),
            description=data.get("description", ""),
            order=order,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "source_category": self.source_category,
            "target_ecosystem": self.target_ecosystem,
            "template": self.template,
            "priority": self.priority,
            "behavior_preserving": self.behavior_preserving,
        }
        if self.pattern:
            data["pattern"] = self.pattern
        if self.imports:
            data["imports"] = list(self.imports)
        if self.introduces:
            data["introduces"] = list(self.introduces)
        if self.description:
            data["description"] = self.description
        return data


@dataclass(frozen=True)
class Catalog:
    """Read-only snapshot of patterns and mappings for one run.

    Loaded once before any translation starts and shared by reference with
    every worker; nothing mutates it afterwards.
    """

    patterns: PatternRegistry
    mappings: tuple[Mapping, ...] = ()
    sources: tuple[str, ...] = field(default_factory=tuple)
    ecosystems: dict[str, tuple[str, ...]] = field(default_factory=dict)  # source library -> targets

    def mappings_for(self, category: str, target_ecosystem: str) -> list[Mapping]:
        """Candidates for a category/target, in catalog order."""
        return [
            m
            for m in self.mappings
            if m.source_category == category and m.target_ecosystem == target_ecosystem
        ]

    @property
    def target_ecosystems(self) -> list[str]:
        seen: dict[str, None] = {}
        for m in self.mappings:
            seen.setdefault(m.target_ecosystem, None)
        return list(seen)

    def target_ecosystems_for(self, source_library: str) -> list[str]:
        """Targets the catalog declares for a source library's idioms."""
        return list(self.ecosystems.get(source_library, ()))

    def suggestions(
        self, category: str, target_ecosystem: str, pattern_id: str | None = None
    ) -> list[Suggestion]:
        """Ways to carry ``category`` to ``target_ecosystem``, best first.

        Direct suggestions are the mappings the resolver would consider for
        ``pattern_id`` (every mapping of the category when it is None), in
        the resolver's order. Mappings written for a sibling pattern of the
        same category are semantic equivalents. With neither, a single
        manual suggestion carries the pattern's hint.
        """
        candidates = sorted(self.mappings_for(category, target_ecosystem), key=lambda m: (-m.priority, m.order))
        pattern = self.patterns.get(pattern_id) if pattern_id else None
        found: list[Suggestion] = []
        for m in candidates:
            if pattern_id is None or m.pattern in (None, pattern_id):
                note = "" if m.behavior_preserving else " (not behavior-preserving)"
                found.append(Suggestion(SuggestionKind.DIRECT, f"Direct transformation to {target_ecosystem}{note}", m))
        for m in candidates:
            if pattern_id is not None and m.pattern not in (None, pattern_id):
                found.append(
                    Suggestion(SuggestionKind.SEMANTIC_EQUIVALENT, f"Semantic equivalent written for '{m.pattern}'", m)
                )
        if not found:
            hint = pattern.hint if pattern and pattern.hint else "port by hand"
            found.append(
                Suggestion(SuggestionKind.MANUAL, f"No mapping for '{category}' -> '{target_ecosystem}'; {hint}")
            )
        return found


class SuggestionKind(Enum):
    DIRECT = "direct"
    SEMANTIC_EQUIVALENT = "semantic-equivalent"
    MANUAL = "manual"


SUGGESTION_CONFIDENCE = {
    SuggestionKind.DIRECT: 1.0,
    SuggestionKind.SEMANTIC_EQUIVALENT: 0.8,
    SuggestionKind.MANUAL: 0.0,
}


@dataclass(frozen=True)
class Suggestion:
    """One way a category could be carried to a target ecosystem."""

    kind: SuggestionKind
    description: str
    mapping: Mapping | None = None

    @property
    def confidence(self) -> float:
        return SUGGESTION_CONFIDENCE[self.kind]

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "confidence": self.confidence,
            "mapping": self.mapping.id if self.mapping else None,
            "description": self.description,
        }
