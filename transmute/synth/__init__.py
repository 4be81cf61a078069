"""Synthesizer and target-notation renderers.

Importing the package registers the shipped renderers (``python``,
``javascript``) so :func:`get_renderer` can find them by name.
"""

from transmute.synth import javascript, python  # noqa: F401  (registration)
from transmute.synth.base import RENDERERS, Renderer, get_renderer, register_renderer
from transmute.synth.synthesizer import Outcome, Synthesizer

__all__ = [
    "Outcome",
    "RENDERERS",
    "Renderer",
    "Synthesizer",
    "get_renderer",
    "register_renderer",
]
