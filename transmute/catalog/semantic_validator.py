"""Semantic validator for pattern/mapping catalogs.

Goes beyond schema validation to check the catalog makes sense as a whole:
- Mappings target categories some pattern can actually produce
- Mappings restricted to a pattern id name an existing pattern
- Template placeholders can be bound by the patterns feeding them
- Names a template introduces actually appear in it
- Mappings for safety-critical categories can ever be applied
- Equal-priority collisions are surfaced (earlier catalog entry wins)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from transmute.catalog.models import Catalog, Mapping
from transmute.patterns.models import Pattern


class Severity(Enum):
    ERROR = "error"  # The mapping can never work as written
    WARNING = "warning"  # Probably a catalog authoring mistake
    INFO = "info"  # Worth knowing, not wrong


@dataclass
class ValidationIssue:
    """A single issue found during semantic validation."""

    severity: Severity
    code: str  # Machine-readable issue code
    message: str
    path: str = ""  # e.g. "mappings[3].template"


@dataclass
class SemanticValidationResult:
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not any(i.severity == Severity.ERROR for i in self.issues)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.WARNING]

    def summary(self) -> str:
        status = "PASS" if self.passed else "FAIL"
        return f"[{status}] {len(self.errors)} error(s), {len(self.warnings)} warning(s)"


def validate_catalog(catalog: Catalog) -> SemanticValidationResult:
    """Run every semantic check over a loaded catalog."""
    result = SemanticValidationResult()

    if not catalog.mappings:
        result.issues.append(
            ValidationIssue(
                severity=Severity.INFO,
                code="NO_MAPPINGS",
                message="Catalog defines no mappings; every match will render as fallback.",
                path="mappings",
            )
        )

    for i, mapping in enumerate(catalog.mappings):
        producers = _producers(catalog, mapping)
        _check_pattern_reference(catalog, mapping, i, result)
        _check_category_reachable(catalog, mapping, producers, i, result)
        _check_placeholders(mapping, producers, i, result)
        _check_introduced_names(mapping, i, result)
        _check_safety_reachable(mapping, producers, i, result)

    _check_priority_collisions(catalog, result)
    return result


def _producers(catalog: Catalog, mapping: Mapping) -> list[Pattern]:
    """Patterns whose matches could be resolved by this mapping."""
    if mapping.pattern:
        pattern = catalog.patterns.get(mapping.pattern)
        return [pattern] if pattern else []
    return [
        p
        for p in catalog.patterns
        if p.category == mapping.source_category or p.category is None
    ]


def _check_pattern_reference(catalog: Catalog, mapping: Mapping, i: int, result):
    if mapping.pattern and catalog.patterns.get(mapping.pattern) is None:
        result.issues.append(
            ValidationIssue(
                severity=Severity.ERROR,
                code="UNKNOWN_PATTERN",
                message=f"Mapping '{mapping.id}' is restricted to unknown pattern '{mapping.pattern}'.",
                path=f"mappings[{i}].pattern",
            )
        )


def _check_category_reachable(catalog: Catalog, mapping: Mapping, producers, i: int, result):
    if any(p.category == mapping.source_category for p in producers):
        return
    # Library-call patterns without a category take it from the call's
    # dependency annotation, so reachability is only knowable at run time.
    dynamic = any(p.category is None for p in producers)
    result.issues.append(
        ValidationIssue(
            severity=Severity.INFO if dynamic else Severity.WARNING,
            code="CATEGORY_UNPRODUCED",
            message=(
                f"No pattern declares category '{mapping.source_category}'"
                + (
                    "; it can still arrive through a library dependency's pattern name."
                    if dynamic
                    else "; mapping '" + mapping.id + "' can never apply."
                )
            ),
            path=f"mappings[{i}].source_category",
        )
    )


def _check_placeholders(mapping: Mapping, producers, i: int, result):
    known: set[str] = set()
    for pattern in producers:
        names = getattr(pattern.matcher, "binding_names", None)
        if names is None:
            return  # open-ended bindings; nothing to check statically
        known |= names
    if not producers:
        return
    unknown = [p for p in mapping.placeholders if p not in known]
    if unknown:
        result.issues.append(
            ValidationIssue(
                severity=Severity.WARNING,
                code="UNBINDABLE_PLACEHOLDER",
                message=(
                    f"Mapping '{mapping.id}' uses placeholder(s) {', '.join(unknown)} "
                    f"that its patterns never bind; it will fail with a template-binding-error."
                ),
                path=f"mappings[{i}].template",
            )
        )


def _check_introduced_names(mapping: Mapping, i: int, result):
    text = str(mapping.template)
    for name in mapping.introduces:
        if name not in text:
            result.issues.append(
                ValidationIssue(
                    severity=Severity.WARNING,
                    code="INTRODUCED_NAME_UNUSED",
                    message=f"Mapping '{mapping.id}' introduces '{name}' but its template never uses it.",
                    path=f"mappings[{i}].introduces",
                )
            )


def _check_safety_reachable(mapping: Mapping, producers, i: int, result):
    if mapping.behavior_preserving or not producers:
        return
    if all(p.safety_critical for p in producers):
        result.issues.append(
            ValidationIssue(
                severity=Severity.WARNING,
                code="REFUSED_FOR_SAFETY",
                message=(
                    f"Mapping '{mapping.id}' is not behavior-preserving and only safety-critical "
                    f"patterns produce '{mapping.source_category}'; it will always be refused."
                ),
                path=f"mappings[{i}].behavior_preserving",
            )
        )


def _check_priority_collisions(catalog: Catalog, result):
    groups: dict[tuple[str, str, str, int], list[Mapping]] = {}
    for m in catalog.mappings:
        groups.setdefault((m.source_category, m.target_ecosystem, m.pattern or "", m.priority), []).append(m)
    for (category, target, _, priority), members in groups.items():
        if len(members) > 1:
            result.issues.append(
                ValidationIssue(
                    severity=Severity.INFO,
                    code="PRIORITY_COLLISION",
                    message=(
                        f"{len(members)} mappings for '{category}' -> '{target}' share priority "
                        f"{priority}; '{members[0].id}' wins by catalog order."
                    ),
                    path="mappings",
                )
            )
