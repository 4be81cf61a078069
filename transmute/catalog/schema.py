"""JSON Schema for pattern/mapping catalog documents.

This is the structural gate a catalog passes before it is loaded: if a
document fails here, the run stops with a CatalogLoadError before any
translation starts. Semantic checks (reachability of categories,
bindable placeholders) live in ``semantic_validator``.
"""

from transmute import __version__
from transmute.patterns.matchers import MATCHER_TYPES

IDENTIFIER_PATTERN = r"^[A-Za-z_][A-Za-z0-9_]*$"

MAPPING_SCHEMA: dict = {
    "type": "object",
    "required": [
        "source_category",
        "target_ecosystem",
        "template",
        "priority",
        "behavior_preserving",
    ],
    "additionalProperties": False,
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "source_category": {"type": "string", "minLength": 1},
        "target_ecosystem": {"type": "string", "minLength": 1},
        "template": {
            "oneOf": [
                {"type": "string", "minLength": 1},
                {
                    "type": "object",
                    "required": ["kind"],
                    "description": "Fragment tree in the IR serialization shape.",
                },
            ],
        },
        "priority": {"type": "integer"},
        "behavior_preserving": {"type": "boolean"},
        "pattern": {
            "type": "string",
            "description": "Only apply to matches of this pattern id.",
        },
        "imports": {"type": "array", "items": {"type": "string", "minLength": 1}},
        "introduces": {
            "type": "array",
            "items": {"type": "string", "pattern": IDENTIFIER_PATTERN},
            "description": "Names the template creates; renamed on collision.",
        },
        "description": {"type": "string"},
    },
}


def _pattern_schema() -> dict:
    return {
        "type": "object",
        "required": ["id", "match"],
        "additionalProperties": False,
        "properties": {
            "id": {"type": "string", "pattern": r"^[a-z][a-z0-9-]*$"},
            "category": {"type": "string", "minLength": 1},
            "stability": {"type": "string", "enum": ["preserve", "modernizable"]},
            "hint": {"type": "string"},
            "description": {"type": "string"},
            "match": {
                "type": "object",
                "required": ["type"],
                "properties": {
                    "type": {"type": "string", "enum": sorted(MATCHER_TYPES)},
                },
            },
        },
    }


def get_schema() -> dict:
    """Return the full catalog JSON Schema."""
    return {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "$id": f"https://transmute.dev/schema/catalog/v{__version__}",
        "title": "Pattern and mapping catalog",
        "description": (
            "Either a bare list of mappings, or an object with 'patterns' "
            "and 'mappings' lists and an 'ecosystems' table."
        ),
        "oneOf": [
            {"type": "array", "items": MAPPING_SCHEMA},
            {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "version": {"type": "string"},
                    "patterns": {"type": "array", "items": _pattern_schema()},
                    "mappings": {"type": "array", "items": MAPPING_SCHEMA},
                    "ecosystems": {
                        "type": "object",
                        "description": "Source library -> target ecosystem ids its idioms can be carried to.",
                    },
                },
            },
        ],
    }
