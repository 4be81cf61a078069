"""Translation pipeline — one unit end to end, and batches of units in parallel.

Per unit (private to one worker):
    IR -> symbol table -> matches -> resolutions -> fragments -> text -> score

Batch:
    parse every unit in parallel
    ---- barrier: build the read-only cross-unit index ----
    translate every unit in parallel, each with its own cancellation token

Results come back in input order whatever the worker count or scheduling,
and a failure in one unit never aborts its siblings.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Mapping as MappingType, Sequence

from transmute.adapters import parse_unit
from transmute.catalog.models import Catalog
from transmute.engine.cancellation import CancellationToken
from transmute.engine.matcher import DEFAULT_ANCESTOR_DEPTH, StructuralMatcher
from transmute.engine.ranking import RankingClient
from transmute.engine.resolver import MappingResolver, Unmapped, UnmappedReason
from transmute.engine.scorer import order_warnings, score_unit
from transmute.engine.substitution import TemplateEngine
from transmute.errors import (
    IRValidationError,
    TemplateBindingError,
    TranslationCancelled,
    TranslationWarning,
    WarningKind,
)
from transmute.ir.annotations import AnnotationLedger
from transmute.ir.models import IdGenerator, NodeKind, TranslationUnit, validate_tree
from transmute.ir.symbols import CrossUnitIndex, SymbolTable
from transmute.patterns.models import Match
from transmute.synth import Synthesizer, get_renderer

logger = logging.getLogger(__name__)


@dataclass
class TranslationResult:
    """Generated text, confidence in [0, 1], and the ordered warning list."""

    unit_name: str
    code: str
    confidence: float
    warnings: list[TranslationWarning] = field(default_factory=list)
    error: str | None = None  # set when the unit produced no translation at all

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "code": self.code,
            "confidence": self.confidence,
            "warnings": [w.to_dict() for w in self.warnings],
        }
        if self.error is not None:
            data["error"] = self.error
        return data


def _origin(match: Match) -> str:
    """Library/pattern for library-call matches, the pattern id otherwise."""
    text = match.text_bindings()
    if text.get("library"):
        return f"{text['library']}/{text.get('pattern') or match.category}"
    return match.pattern_id


class Translator:
    """Translates single units against one catalog snapshot and one target notation.

    Holds only read-only collaborators, so one instance serves every worker.
    """

    def __init__(
        self,
        catalog: Catalog,
        notation: str = "python",
        ranking: RankingClient | None = None,
        ancestor_depth: int = DEFAULT_ANCESTOR_DEPTH,
    ):
        self.catalog = catalog
        self.renderer = get_renderer(notation)
        self.matcher = StructuralMatcher(catalog.patterns, ancestor_depth)
        self.resolver = MappingResolver(catalog, ranking)
        self.templates = TemplateEngine()

    @property
    def notation(self) -> str:
        return self.renderer.name

    def translate_unit(
        self,
        unit: TranslationUnit,
        target_ecosystem: str,
        cross_index: CrossUnitIndex | None = None,
        token: CancellationToken | None = None,
        ledger: AnnotationLedger | None = None,
    ) -> TranslationResult:
        """Translate one unit.

        Raises TranslationCancelled when ``token`` fires and IRValidationError
        when the unit's tree breaks the ownership invariants. Everything else
        degrades to fallback rendering plus warnings.
        """
        token = token or CancellationToken()
        ledger = ledger if ledger is not None else AnnotationLedger()
        validate_tree(unit.root)
        table = SymbolTable.build(unit.root)

        report = self.matcher.match(table, ledger, token, unit.name)
        synth = Synthesizer(self.renderer, table, token, unit.name)
        warnings: list[TranslationWarning] = list(report.warnings)

        # Fragment-tree ids must not collide with the unit's own ids.
        ids = IdGenerator(f"{unit.name}#fragment")
        introduced: set[str] = set()

        # Reverse tree order: a match nested in another's body is substituted
        # first, so the enclosing template receives its rendered fragment.
        for match in reversed(report.matches):
            token.raise_if_cancelled(unit.name)
            warnings += self._apply(match, target_ecosystem, table, synth, ledger, token, ids, introduced)

        extra_imports, cross_warnings = self._cross_unit_imports(unit.name, table, cross_index)
        warnings += cross_warnings
        warnings += self._diagnostics(unit, table)

        code = synth.render_unit(unit.root, extra_imports)
        warnings += synth.warnings
        breakdown = score_unit(table, synth.outcomes)
        for node_id, outcome in synth.outcomes.items():
            if node_id in table.nodes:
                ledger.append(node_id, "synthesizer", "outcome", outcome.value)

        logger.info(
            "Translated unit %s to %s/%s: confidence %.2f, %d warning(s)",
            unit.name,
            self.notation,
            target_ecosystem,
            breakdown.confidence,
            len(warnings),
        )
        return TranslationResult(
            unit_name=unit.name,
            code=code,
            confidence=breakdown.confidence,
            warnings=order_warnings(warnings, table),
        )

    # -- per-match -----------------------------------------------------------------

    def _apply(
        self,
        match: Match,
        target_ecosystem: str,
        table: SymbolTable,
        synth: Synthesizer,
        ledger: AnnotationLedger,
        token: CancellationToken,
        ids: IdGenerator,
        introduced: set[str],
    ) -> list[TranslationWarning]:
        result = self.resolver.resolve(match, target_ecosystem, token)
        warnings = list(result.warnings)
        resolution = result.resolution

        if isinstance(resolution, Unmapped):
            ledger.append(match.anchor_id, "resolver", "unmapped", resolution.reason.value)
            if resolution.reason == UnmappedReason.NO_CANDIDATE:
                warnings.append(
                    TranslationWarning(
                        match.anchor_id,
                        WarningKind.UNMAPPED_PATTERN,
                        f"{_origin(match)} ({match.category}) has no mapping for target '{target_ecosystem}'",
                    )
                )
            synth.add_fallback(match, self._fallback_note(match, target_ecosystem, resolution))
            return warnings

        mapping = resolution.mapping
        ledger.append(match.anchor_id, "resolver", "mapping", mapping.id)
        bindings = synth.render_bindings(match, mapping.placeholders)
        scope_names = table.names_in_scope(match.anchor_id) | introduced
        try:
            fragment = self.templates.instantiate(mapping, bindings, scope_names, ids)
        except (TemplateBindingError, IRValidationError) as e:
            logger.debug("Binding error at %s: %s", match.anchor_id, e)
            warnings.append(TranslationWarning(match.anchor_id, WarningKind.TEMPLATE_BINDING_ERROR, str(e)))
            synth.add_fallback(
                match,
                f"transmute: mapping '{mapping.id}' could not be applied to {_origin(match)}; kept as written",
            )
            return warnings

        introduced.update(fragment.introduced)
        synth.add_fragment(match, fragment)
        return warnings

    def _fallback_note(self, match: Match, target_ecosystem: str, resolution: Unmapped) -> str:
        origin = _origin(match)
        if resolution.reason == UnmappedReason.REFUSED_FOR_SAFETY:
            note = f"transmute: {origin} kept as written; safety-critical {match.category}"
        elif resolution.reason == UnmappedReason.RANKING_UNAVAILABLE:
            note = f"transmute: unmapped {origin} for '{target_ecosystem}'; ranking service unavailable"
        else:
            note = f"transmute: unmapped {origin} for '{target_ecosystem}'"
        return f"{note}. {match.hint}" if match.hint else note

    # -- unit-level ----------------------------------------------------------------

    def _cross_unit_imports(
        self,
        unit_name: str,
        table: SymbolTable,
        cross_index: CrossUnitIndex | None,
    ) -> tuple[list[str], list[TranslationWarning]]:
        if cross_index is None:
            return [], []
        lines: list[str] = []
        warnings: list[TranslationWarning] = []
        for ref in cross_index.external_references(unit_name, table):
            lines.append(self.renderer.cross_unit_import(ref.provider, ref.name))
            if ref.is_ambiguous:
                caller = next(
                    n
                    for n in table.root.walk()
                    if n.kind in (NodeKind.CALL, NodeKind.LIBRARY_CALL)
                    and n.name
                    and n.name.split(".")[0] == ref.name
                )
                warnings.append(
                    TranslationWarning(
                        caller.id,
                        WarningKind.CROSS_UNIT_REFERENCE,
                        f"'{ref.name}' is declared in {', '.join(ref.candidates)}; imported from '{ref.provider}'",
                    )
                )
        return lines, warnings

    def _diagnostics(self, unit: TranslationUnit, table: SymbolTable) -> list[TranslationWarning]:
        """Adapter diagnostics not already attached to an error leaf."""
        warnings = []
        for diagnostic in unit.diagnostics:
            node_id = diagnostic.node_id if diagnostic.node_id in table.nodes else table.root.id
            if table.node(node_id).kind == NodeKind.ERROR:
                continue
            warnings.append(TranslationWarning(node_id, WarningKind.PARSE_DIAGNOSTIC, str(diagnostic)))
        return warnings


@dataclass(frozen=True)
class SourceFile:
    """Input to a batch: unit name, source text and an optional language tag."""

    name: str
    text: str
    language: str | None = None


class BatchTranslator:
    """Runs many units through a :class:`Translator` on a thread pool."""

    def __init__(self, translator: Translator, workers: int = 4, unit_timeout: float | None = None):
        self.translator = translator
        self.workers = max(1, workers)
        self.unit_timeout = unit_timeout

    def parse_all(self, sources: Sequence[SourceFile]) -> list[TranslationUnit]:
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            return list(pool.map(lambda s: parse_unit(s.name, s.text, s.language), sources))

    def translate_sources(
        self,
        sources: Sequence[SourceFile],
        target_ecosystem: str,
        tokens: MappingType[str, CancellationToken] | None = None,
    ) -> list[TranslationResult]:
        units = self.parse_all(sources)
        return self.translate_units(units, target_ecosystem, tokens)

    def translate_units(
        self,
        units: Sequence[TranslationUnit],
        target_ecosystem: str,
        tokens: MappingType[str, CancellationToken] | None = None,
    ) -> list[TranslationResult]:
        """Translate already-parsed units; results are in input order.

        ``tokens`` maps unit names to their cancellation tokens; a unit
        without one gets a fresh token bounded by ``unit_timeout``, started
        when a worker picks the unit up.
        """
        tokens = dict(tokens or {})

        # Barrier: every unit is parsed before anything reads across units.
        cross_index = CrossUnitIndex.build(units)
        logger.info(
            "Translating %d unit(s) to %s/%s with %d worker(s)",
            len(units),
            self.translator.notation,
            target_ecosystem,
            self.workers,
        )

        def run(unit: TranslationUnit) -> TranslationResult:
            token = tokens.get(unit.name) or CancellationToken(self.unit_timeout)
            return self._translate_one(unit, target_ecosystem, cross_index, token)

        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            results = list(pool.map(run, units))

        failed = sum(1 for r in results if not r.ok)
        logger.info("Batch finished: %d translated, %d failed", len(results) - failed, failed)
        return results

    def _translate_one(
        self,
        unit: TranslationUnit,
        target_ecosystem: str,
        cross_index: CrossUnitIndex,
        token: CancellationToken,
    ) -> TranslationResult:
        try:
            return self.translator.translate_unit(unit, target_ecosystem, cross_index, token)
        except TranslationCancelled as e:
            logger.warning("%s", e)
            return TranslationResult(unit.name, code="", confidence=0.0, error=str(e))
        except IRValidationError as e:
            logger.error("Unit %s has an invalid IR tree: %s", unit.name, e)
            return TranslationResult(unit.name, code="", confidence=0.0, error=str(e))
