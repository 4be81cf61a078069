"""Structural Matcher — finds pattern matches in one unit's IR tree.

Every pattern runs against every node in post-order, so nested shapes are
seen before the shapes that enclose them. The raw candidates are then
reduced to a conflict-free set:

- Two matches conflict when they claim the same node (nodes a match only
  passes on to its template as IR bindings are not claimed).
- Safety-critical matches win every conflict, and stylistic matches on
  nodes inside a safety-critical span are suppressed.
- Otherwise the larger span wins, then the pattern registered earlier,
  then the earlier position in the tree.

When the loser of a conflict would have assigned a different category,
an ambiguous-match warning records the decision.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from transmute.engine.cancellation import CancellationToken
from transmute.errors import TranslationWarning, WarningKind
from transmute.ir.annotations import AnnotationLedger
from transmute.ir.symbols import SymbolTable
from transmute.patterns.matchers import MatchContext
from transmute.patterns.models import Match
from transmute.patterns.registry import PatternRegistry

logger = logging.getLogger(__name__)

DEFAULT_ANCESTOR_DEPTH = 3


@dataclass
class MatchReport:
    matches: list[Match] = field(default_factory=list)  # accepted, tree order
    suppressed: list[Match] = field(default_factory=list)
    warnings: list[TranslationWarning] = field(default_factory=list)


class StructuralMatcher:
    """Applies a registry's patterns to a unit. Holds no per-unit state."""

    def __init__(self, registry: PatternRegistry, ancestor_depth: int = DEFAULT_ANCESTOR_DEPTH):
        self.registry = registry
        self.ancestor_depth = ancestor_depth

    def candidates(
        self,
        table: SymbolTable,
        token: CancellationToken | None = None,
        unit_name: str = "",
    ) -> list[Match]:
        """Every firing of every pattern, in post-order then catalog order."""
        ctx = MatchContext(table, self.ancestor_depth)
        found: list[Match] = []
        for node in table.root.walk_post_order():
            if token is not None:
                token.raise_if_cancelled(unit_name)
            for pattern in self.registry:
                for site in pattern.matcher.match(node, ctx):
                    found.append(
                        Match(
                            pattern_id=pattern.id,
                            category=pattern.category_for(site),
                            node_ids=site.node_ids,
                            bindings=dict(site.bindings),
                            safety_critical=pattern.safety_critical,
                            pattern_order=self.registry.order_of(pattern.id),
                            hint=pattern.hint,
                        )
                    )
        return found

    def match(
        self,
        table: SymbolTable,
        ledger: AnnotationLedger | None = None,
        token: CancellationToken | None = None,
        unit_name: str = "",
    ) -> MatchReport:
        found = self.candidates(table, token, unit_name)
        report = self.select(found, table)
        if ledger is not None:
            for m in report.matches:
                for node_id in m.node_ids:
                    ledger.append(node_id, "matcher", "match", m.pattern_id)
            for m in report.suppressed:
                ledger.append(m.anchor_id, "matcher", "suppressed", m.pattern_id)
        logger.debug(
            "Unit %s: %d candidate(s), %d accepted, %d suppressed",
            unit_name or table.root.name,
            len(found),
            len(report.matches),
            len(report.suppressed),
        )
        return report

    def select(self, found: list[Match], table: SymbolTable) -> MatchReport:
        """Reduce raw candidates to the conflict-free set."""
        report = MatchReport()

        def rank(m: Match):
            return (not m.safety_critical, -m.span, m.pattern_order, table.position(m.anchor_id))

        claimed: dict[str, Match] = {}
        safety_spans: list[tuple[Match, frozenset[str]]] = []
        accepted: list[Match] = []
        warned: set[tuple[str, str]] = set()

        for m in sorted(found, key=rank):
            covering = next(
                (s for s, covered in safety_spans if not m.safety_critical and m.anchor_id in covered),
                None,
            )
            if covering is not None:
                logger.debug(
                    "Suppressed %s at %s inside safety-critical %s",
                    m.pattern_id,
                    m.anchor_id,
                    covering.pattern_id,
                )
                report.suppressed.append(m)
                continue

            winner = next((claimed[i] for i in m.owned_ids if i in claimed), None)
            if winner is not None:
                report.suppressed.append(m)
                tied = rank(winner)[:2] == rank(m)[:2]
                if (tied or winner.category != m.category) and (winner.anchor_id, m.pattern_id) not in warned:
                    warned.add((winner.anchor_id, m.pattern_id))
                    report.warnings.append(
                        TranslationWarning(
                            winner.anchor_id,
                            WarningKind.AMBIGUOUS_MATCH,
                            f"'{winner.pattern_id}' ({winner.category}) chosen over "
                            f"'{m.pattern_id}' ({m.category})" + (" by pattern order" if tied else ""),
                        )
                    )
                continue

            accepted.append(m)
            for node_id in m.owned_ids:
                claimed[node_id] = m
            if m.safety_critical:
                safety_spans.append((m, _covered(m, table)))

        report.matches = sorted(accepted, key=lambda m: table.position(m.anchor_id))
        return report


def _covered(match: Match, table: SymbolTable) -> frozenset[str]:
    """Every node inside a match's span, descendants included."""
    ids: set[str] = set()
    for node_id in match.node_ids:
        ids.update(n.id for n in table.node(node_id).walk())
    return frozenset(ids)
