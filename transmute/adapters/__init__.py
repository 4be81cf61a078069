"""Front-end adapters — source text in, canonical IR plus diagnostics out.

Importing the package registers the shipped adapters (``python``, ``ir``).
"""

from transmute.adapters import ir_adapter, python_adapter  # noqa: F401  (registration)
from transmute.adapters.base import (
    ADAPTERS,
    AdapterResult,
    FrontEndAdapter,
    detect_language,
    get_adapter,
    parse_unit,
    register_adapter,
)

__all__ = [
    "ADAPTERS",
    "AdapterResult",
    "FrontEndAdapter",
    "detect_language",
    "get_adapter",
    "parse_unit",
    "register_adapter",
]
