"""transmute — structural, idiom-aware translation between program notations.

Takes the canonical IR produced by a front-end adapter, recognizes library
idioms and legacy constructs in it, rewrites them through a mapping catalog
for a chosen target ecosystem, and renders target text together with a
confidence score and an itemized warning list.
"""

__version__ = "0.1.0"
