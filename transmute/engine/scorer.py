"""Scorer -- computes a unit's translation confidence from per-node outcomes.

confidence = resolved nodes / nodes that required a rendering decision.
Literal, import and export nodes are excluded from the denominator. A node
is resolved when it was rendered structurally or rewritten through a
mapping; it is a fallback when it was rendered faithfully without a
translation (unmapped or refused match, binding error, unmapped library
call, parse error, degraded construct).
"""

from __future__ import annotations

from dataclasses import dataclass, field

from transmute.errors import TranslationWarning
from transmute.ir.models import UNSCORED_KINDS
from transmute.ir.symbols import SymbolTable
from transmute.synth.synthesizer import Outcome


@dataclass
class ScoreBreakdown:
    resolved: int = 0
    fallback: int = 0
    fallback_ids: list[str] = field(default_factory=list)

    @property
    def considered(self) -> int:
        return self.resolved + self.fallback

    @property
    def confidence(self) -> float:
        # Nothing needed a decision, so nothing was lost.
        if self.considered == 0:
            return 1.0
        return self.resolved / self.considered


def score_unit(table: SymbolTable, outcomes: dict[str, Outcome]) -> ScoreBreakdown:
    """Aggregate outcomes over every scored node of the unit's tree.

    A node with no recorded outcome was consumed by an enclosing rendering
    and inherits the outcome of its nearest recorded ancestor.
    """
    breakdown = ScoreBreakdown()
    for node in table.root.walk():
        if node.kind in UNSCORED_KINDS:
            continue
        if _outcome_of(node.id, table, outcomes) == Outcome.FALLBACK:
            breakdown.fallback += 1
            breakdown.fallback_ids.append(node.id)
        else:
            breakdown.resolved += 1
    return breakdown


def _outcome_of(node_id: str, table: SymbolTable, outcomes: dict[str, Outcome]) -> Outcome:
    if node_id in outcomes:
        return outcomes[node_id]
    for ancestor in table.ancestors(node_id):
        if ancestor.id in outcomes:
            return outcomes[ancestor.id]
    return Outcome.STRUCTURAL


def order_warnings(warnings: list[TranslationWarning], table: SymbolTable) -> list[TranslationWarning]:
    """Tree order, then reason; warnings on nodes outside the tree go last."""
    end = len(table.nodes)

    def key(w: TranslationWarning):
        position = table.position(w.node_id) if w.node_id in table.nodes else end
        return (position, w.reason)

    return sorted(warnings, key=key)
