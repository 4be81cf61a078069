"""Pattern/mapping catalogs: models, schema gate, semantic checks, loader."""

from transmute.catalog.loader import DEFAULT_CATALOG_PATH, catalog_from_data, load_catalog
from transmute.catalog.models import Catalog, Mapping, Suggestion, SuggestionKind

__all__ = [
    "Catalog",
    "DEFAULT_CATALOG_PATH",
    "Mapping",
    "Suggestion",
    "SuggestionKind",
    "catalog_from_data",
    "load_catalog",
]
