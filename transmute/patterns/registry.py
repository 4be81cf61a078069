"""Pattern Registry — the ordered, read-only catalog of recognizable shapes.

Registration order is meaningful: it is the final tie-break when two
patterns fire on the same span, so the registry keeps patterns in a tuple
in the order their catalog documents listed them.
"""

from __future__ import annotations

from typing import Any, Iterator, Sequence

from transmute.errors import CatalogLoadError
from transmute.patterns.matchers import MATCHER_TYPES, build_matcher
from transmute.patterns.models import Pattern, Stability


class PatternRegistry:
    """Immutable, ordered collection of patterns."""

    def __init__(self, patterns: Sequence[Pattern] = ()):
        self._patterns = tuple(patterns)
        self._by_id = {p.id: p for p in self._patterns}
        self._order = {p.id: i for i, p in enumerate(self._patterns)}

    @classmethod
    def from_definitions(cls, definitions: Sequence[dict[str, Any]], source: str = "<catalog>") -> PatternRegistry:
        """Build a registry from catalog ``patterns`` entries.

        Raises CatalogLoadError listing every malformed definition.
        """
        patterns: list[Pattern] = []
        issues: list[str] = []
        seen: set[str] = set()

        for i, definition in enumerate(definitions):
            path = f"patterns[{i}]"
            pattern_id = definition.get("id", "")
            if pattern_id in seen:
                issues.append(f"{path}: duplicate pattern id '{pattern_id}'")
                continue
            match_spec = definition.get("match") or {}
            match_type = match_spec.get("type", "")
            if match_type not in MATCHER_TYPES:
                issues.append(
                    f"{path}: unknown matcher type '{match_type}' "
                    f"(known: {', '.join(sorted(MATCHER_TYPES))})"
                )
                continue
            try:
                matcher = build_matcher(match_spec)
                stability = Stability(definition.get("stability", Stability.MODERNIZABLE.value))
            except ValueError as e:
                issues.append(f"{path}: {e}")
                continue
            seen.add(pattern_id)
            patterns.append(
                Pattern(
                    id=pattern_id,
                    matcher=matcher,
                    category=definition.get("category"),
                    stability=stability,
                    hint=definition.get("hint", ""),
                    description=definition.get("description", ""),
                )
            )

        if issues:
            raise CatalogLoadError(source, issues)
        return cls(patterns)

    def merged(self, other: PatternRegistry) -> PatternRegistry:
        """Patterns of ``other`` appended after ours; later ids replace earlier ones in place."""
        combined = list(self._patterns)
        index = {p.id: i for i, p in enumerate(combined)}
        for pattern in other:
            if pattern.id in index:
                combined[index[pattern.id]] = pattern
            else:
                index[pattern.id] = len(combined)
                combined.append(pattern)
        return PatternRegistry(combined)

    def get(self, pattern_id: str) -> Pattern | None:
        return self._by_id.get(pattern_id)

    def order_of(self, pattern_id: str) -> int:
        return self._order[pattern_id]

    @property
    def categories(self) -> frozenset[str]:
        return frozenset(p.category for p in self._patterns if p.category)

    def __iter__(self) -> Iterator[Pattern]:
        return iter(self._patterns)

    def __len__(self) -> int:
        return len(self._patterns)
