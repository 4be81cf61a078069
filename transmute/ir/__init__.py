"""Canonical Intermediate Representation (IR) for cross-notation translation.

The IR is the substrate every other layer reads: front-end adapters produce
it, the matcher annotates it, the synthesizer renders it. It normalizes:
- Declarations (modules, functions, classes, variables, parameters)
- Statements (conditionals, loops, returns, assignments, imports/exports)
- Expressions (identifiers, operators, literals, calls, library calls)
- Library provenance (which library idiom a call originates from)

Trees are owned, acyclic, and immutable once built. Cross references are
resolved by name through a symbol table built once per unit.
"""

from transmute.ir.models import (
    IdGenerator,
    IRNode,
    LibraryDependency,
    NodeKind,
    TranslationUnit,
    validate_tree,
)

__all__ = [
    "IdGenerator",
    "IRNode",
    "LibraryDependency",
    "NodeKind",
    "TranslationUnit",
    "validate_tree",
]
