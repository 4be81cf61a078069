"""Catalog loader — reads catalog documents into one immutable snapshot.

Loading runs every gate before any translation starts: YAML/JSON parsing,
the schema gate, pattern construction, fragment-template checks, and the
semantic pass. Any failure raises CatalogLoadError; a run never starts
with a partially loaded catalog.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Sequence

import yaml

from transmute.catalog.models import Catalog, Mapping
from transmute.catalog.schema_validator import validate_schema
from transmute.catalog.semantic_validator import validate_catalog
from transmute.errors import CatalogLoadError, IRValidationError
from transmute.ir.models import IdGenerator
from transmute.ir.serialization import fragment_from_dict
from transmute.patterns.registry import PatternRegistry

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).parent / "data" / "default.yaml"


def read_document(path: str | Path) -> Any:
    """Parse one catalog file. JSON is read through the YAML parser."""
    path = Path(path)
    try:
        with open(path) as f:
            return yaml.safe_load(f)
    except FileNotFoundError:
        raise CatalogLoadError(str(path), ["file not found"]) from None
    except yaml.YAMLError as e:
        raise CatalogLoadError(str(path), [f"parse error: {e}"]) from e


def catalog_from_data(data: Any, source: str = "<catalog>", base: Catalog | None = None) -> Catalog:
    """Layer one parsed catalog document on top of ``base``.

    Patterns with an id already in ``base`` replace it in place; new ones
    append. Mappings with an explicit id already in ``base`` replace it in
    place; the rest append after the existing mappings. Ecosystem lists
    extend the base list for the same library.
    """
    if data is None:
        data = []
    issues = validate_schema(data)
    if issues:
        raise CatalogLoadError(source, issues)

    if isinstance(data, list):
        pattern_defs: list[dict] = []
        mapping_defs: list[dict] = data
        ecosystem_defs: dict = {}
    else:
        pattern_defs = data.get("patterns") or []
        mapping_defs = data.get("mappings") or []
        ecosystem_defs = data.get("ecosystems") or {}

    registry = PatternRegistry.from_definitions(pattern_defs, source)
    if base is not None:
        registry = base.patterns.merged(registry)

    existing = list(base.mappings) if base is not None else []
    positions = {m.id: i for i, m in enumerate(existing)}
    seen: set[str] = set()
    for i, definition in enumerate(mapping_defs):
        slot = positions.get(definition.get("id", ""), len(existing))
        mapping = Mapping.from_dict(definition, order=slot)
        if "id" in definition:
            if mapping.id in seen:
                issues.append(f"mappings[{i}]: duplicate mapping id '{mapping.id}'")
                continue
            seen.add(mapping.id)
        if mapping.is_fragment:
            try:
                fragment_from_dict(mapping.template, IdGenerator("check"), f"mappings[{i}].template")
            except IRValidationError as e:
                issues.append(str(e))
                continue
        if slot < len(existing):
            existing[slot] = mapping
        else:
            positions[mapping.id] = slot
            existing.append(mapping)

    ecosystems = dict(base.ecosystems) if base is not None else {}
    for library, targets in ecosystem_defs.items():
        if not isinstance(targets, list) or not all(isinstance(t, str) and t for t in targets):
            issues.append(f"ecosystems.{library}: expected a list of target ecosystem ids")
            continue
        merged = dict.fromkeys(ecosystems.get(library, ()))
        merged.update(dict.fromkeys(targets))
        ecosystems[library] = tuple(merged)

    if issues:
        raise CatalogLoadError(source, issues)

    sources = (base.sources if base is not None else ()) + (source,)
    return Catalog(patterns=registry, mappings=tuple(existing), sources=sources, ecosystems=ecosystems)


def load_catalog(paths: Sequence[str | Path] = (), include_defaults: bool = True) -> Catalog:
    """Load the run's catalog snapshot.

    The built-in catalog comes first (when included), then each path in
    order. Raises CatalogLoadError on the first document that fails a
    gate, and on semantic errors in the combined result.
    """
    catalog = Catalog(patterns=PatternRegistry())
    documents = ([DEFAULT_CATALOG_PATH] if include_defaults else []) + [Path(p) for p in paths]

    for path in documents:
        catalog = catalog_from_data(read_document(path), str(path), base=catalog)

    result = validate_catalog(catalog)
    if not result.passed:
        raise CatalogLoadError(
            ", ".join(catalog.sources) or "<empty>",
            [f"[{i.code}] {i.message}" for i in result.errors],
        )
    for issue in result.warnings:
        logger.warning("Catalog %s: %s", issue.code, issue.message)

    logger.info(
        "Loaded catalog: %d pattern(s), %d mapping(s) from %d document(s)",
        len(catalog.patterns),
        len(catalog.mappings),
        len(catalog.sources),
    )
    return catalog
