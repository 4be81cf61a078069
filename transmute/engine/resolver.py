"""Mapping Resolver — picks a mapping for a match, or says explicitly that none applies.

Resolution never returns an empty result: it is either ``Resolved`` with
the chosen mapping or ``Unmapped`` with a reason. Candidates are filtered
by category and target, ranked by priority and then catalog order. For
safety-critical matches a mapping that is not behavior-preserving is
refused and the match falls back to faithful structural rendering.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from transmute.catalog.models import Catalog, Mapping
from transmute.engine.cancellation import CancellationToken
from transmute.engine.ranking import RankingClient, RankingUnavailable
from transmute.errors import TranslationWarning, WarningKind
from transmute.patterns.models import Match

logger = logging.getLogger(__name__)


class UnmappedReason(Enum):
    NO_CANDIDATE = "no-candidate"
    REFUSED_FOR_SAFETY = "refused-for-safety"
    RANKING_UNAVAILABLE = "ranking-unavailable"


@dataclass(frozen=True)
class Resolved:
    mapping: Mapping
    suggested: bool = False  # Came from the ranking service, not the catalog


@dataclass(frozen=True)
class Unmapped:
    reason: UnmappedReason
    refused: Mapping | None = None


Resolution = Resolved | Unmapped


@dataclass
class ResolutionResult:
    resolution: Resolution
    warnings: list[TranslationWarning] = field(default_factory=list)


class MappingResolver:
    """Resolves matches against one catalog snapshot for one target."""

    def __init__(self, catalog: Catalog, ranking: RankingClient | None = None):
        self.catalog = catalog
        self.ranking = ranking or RankingClient()

    def candidates(self, match: Match, target_ecosystem: str) -> list[Mapping]:
        """Applicable mappings, best first: priority descending, then catalog order."""
        found = [
            m
            for m in self.catalog.mappings_for(match.category, target_ecosystem)
            if m.pattern is None or m.pattern == match.pattern_id
        ]
        return sorted(found, key=lambda m: (-m.priority, m.order))

    def resolve(
        self,
        match: Match,
        target_ecosystem: str,
        token: CancellationToken | None = None,
    ) -> ResolutionResult:
        token = token or CancellationToken()
        candidates = self.candidates(match, target_ecosystem)

        if not candidates:
            return self._ask_ranking(match, target_ecosystem, token)

        best = candidates[0]
        tie = []
        if len(candidates) > 1 and candidates[1].priority == best.priority:
            tie.append(_tie_warning(match, best, candidates[1]))
        if match.safety_critical and not best.behavior_preserving:
            refused = self._refuse(match, best)
            refused.warnings[:0] = tie
            return refused

        logger.debug("Resolved %s at %s to %s", match.pattern_id, match.anchor_id, best.id)
        return ResolutionResult(Resolved(best), tie)

    def _refuse(self, match: Match, mapping: Mapping) -> ResolutionResult:
        logger.debug(
            "Refusing mapping %s for safety-critical match %s at %s",
            mapping.id,
            match.pattern_id,
            match.anchor_id,
        )
        return ResolutionResult(
            Unmapped(UnmappedReason.REFUSED_FOR_SAFETY, refused=mapping),
            [
                TranslationWarning(
                    match.anchor_id,
                    WarningKind.SAFETY_PRESERVED,
                    f"mapping '{mapping.id}' for '{match.category}' is not behavior-preserving; "
                    f"rendered '{match.pattern_id}' faithfully",
                )
            ],
        )

    def _ask_ranking(self, match: Match, target_ecosystem: str, token: CancellationToken) -> ResolutionResult:
        try:
            suggested = self.ranking.suggest(match, target_ecosystem, token)
        except RankingUnavailable as e:
            logger.warning("Ranking service unavailable for %s: %s", match.category, e)
            return ResolutionResult(
                Unmapped(UnmappedReason.RANKING_UNAVAILABLE),
                [TranslationWarning(match.anchor_id, WarningKind.RANKING_UNAVAILABLE, str(e))],
            )

        if suggested is None:
            return ResolutionResult(Unmapped(UnmappedReason.NO_CANDIDATE))
        if match.safety_critical and not suggested.behavior_preserving:
            return self._refuse(match, suggested)
        return ResolutionResult(Resolved(suggested, suggested=True))


def _tie_warning(match: Match, chosen: Mapping, other: Mapping) -> TranslationWarning:
    return TranslationWarning(
        match.anchor_id,
        WarningKind.AMBIGUOUS_MATCH,
        f"mapping '{chosen.id}' chosen over '{other.id}' by catalog order (both priority {chosen.priority})",
    )
