"""Pattern Registry — catalog of recognizable structural shapes.

Patterns are data loaded from a catalog: a matcher variant plus a semantic
category and a stability flag. The registry provides:
- Matcher variants: library calls, lifecycle pairs, platform branches,
  templated generics, class bases, and generic node shapes
- Deterministic ordering: catalog position breaks ties between patterns
- Safety marking: "preserve" patterns are recorded but never rewritten by
  a mapping that is not behavior-preserving
"""
