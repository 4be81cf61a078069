"""Front-end adapter protocol and registry.

An adapter turns source text in one notation into a canonical IR root plus
non-fatal parse diagnostics. A partial tree with explicit ``error`` leaves
is an acceptable result; adapters raise only for input they cannot read at
all.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import ClassVar

from transmute.errors import ParseDiagnostic, UnsupportedLanguageError
from transmute.ir.models import IRNode, TranslationUnit


@dataclass
class AdapterResult:
    root: IRNode
    diagnostics: list[ParseDiagnostic] = field(default_factory=list)


class FrontEndAdapter(ABC):
    language: ClassVar[str]
    suffixes: ClassVar[tuple[str, ...]] = ()

    @abstractmethod
    def parse(self, source: str, unit_name: str) -> AdapterResult: ...

    def looks_like(self, source: str) -> bool:
        """Content hint used when the file suffix is not conclusive."""
        return False


ADAPTERS: dict[str, type[FrontEndAdapter]] = {}


def register_adapter(cls: type[FrontEndAdapter]) -> type[FrontEndAdapter]:
    ADAPTERS[cls.language] = cls
    return cls


def get_adapter(language: str) -> FrontEndAdapter:
    try:
        return ADAPTERS[language]()
    except KeyError:
        raise UnsupportedLanguageError(language) from None


def detect_language(filename: str, source: str = "") -> str:
    """Pick a language tag from the file suffix, then from content hints.

    Raises UnsupportedLanguageError when nothing claims the file.
    """
    suffix = PurePath(filename).suffix.lower()
    for language, cls in ADAPTERS.items():
        if suffix in cls.suffixes:
            return language
    for language, cls in ADAPTERS.items():
        if source and cls().looks_like(source):
            return language
    raise UnsupportedLanguageError(suffix or filename)


def parse_unit(name: str, source: str, language: str | None = None) -> TranslationUnit:
    """Run the right adapter over one unit's source."""
    language = language or detect_language(name, source)
    result = get_adapter(language).parse(source, name)
    return TranslationUnit(name=name, root=result.root, language=language, diagnostics=result.diagnostics)
