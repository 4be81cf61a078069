"""Error taxonomy, adapter diagnostics, and translation warnings.

Only catalog and configuration problems are fatal. Everything else that can
go wrong while translating a unit degrades to a valid, lower-confidence
rendering plus a :class:`TranslationWarning`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TransmuteError(Exception):
    """Base class for all transmute errors."""


class CatalogLoadError(TransmuteError):
    """The pattern/mapping catalog could not be loaded. Fatal for the run."""

    def __init__(self, source: str, issues: list[str]):
        self.source = source
        self.issues = list(issues)
        detail = "; ".join(self.issues[:5])
        if len(self.issues) > 5:
            detail += f" (+{len(self.issues) - 5} more)"
        super().__init__(f"Failed to load catalog {source}: {detail}")


class ConfigError(TransmuteError):
    """Invalid configuration value."""


class IRValidationError(TransmuteError):
    """An IR tree violates the ownership or id invariants."""


class UnsupportedLanguageError(TransmuteError):
    """No front-end adapter is registered for a language tag."""

    def __init__(self, language: str):
        self.language = language
        super().__init__(f"No front-end adapter for language '{language}'")


class TemplateBindingError(TransmuteError):
    """A template placeholder has no binding (a catalog authoring defect)."""

    def __init__(self, mapping_id: str, placeholders: list[str]):
        self.mapping_id = mapping_id
        self.placeholders = sorted(placeholders)
        super().__init__(
            f"Mapping '{mapping_id}' has unbound placeholder(s): "
            + ", ".join(self.placeholders)
        )


class TranslationCancelled(TransmuteError):
    """Raised inside a unit's worker when its cancellation token fires."""

    def __init__(self, unit_name: str):
        self.unit_name = unit_name
        super().__init__(f"Translation of unit '{unit_name}' was cancelled")


@dataclass(frozen=True)
class ParseDiagnostic:
    """A non-fatal problem reported by a front-end adapter."""

    message: str
    line: int = 0
    column: int = 0
    node_id: str = ""

    def __str__(self) -> str:
        return f"{self.line}:{self.column}: {self.message}"


class WarningKind(Enum):
    UNMAPPED_PATTERN = "unmapped-pattern"
    TEMPLATE_BINDING_ERROR = "template-binding-error"
    AMBIGUOUS_MATCH = "ambiguous-match"
    SAFETY_PRESERVED = "safety-preserved"
    RANKING_UNAVAILABLE = "ranking-unavailable"
    PARSE_DIAGNOSTIC = "parse-diagnostic"
    CROSS_UNIT_REFERENCE = "cross-unit-reference"
    UNRENDERABLE = "unrenderable"


@dataclass(frozen=True)
class TranslationWarning:
    """One itemized entry in a translation result's warning list."""

    node_id: str
    kind: WarningKind
    detail: str

    @property
    def reason(self) -> str:
        return f"{self.kind.value}: {self.detail}"

    def to_dict(self) -> dict[str, str]:
        return {"node_id": self.node_id, "reason": self.reason}
