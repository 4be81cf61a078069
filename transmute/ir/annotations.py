"""Append-only annotations attached to IR nodes by later passes.

IR nodes are immutable once built. Matches, resolutions and render outcomes
are recorded here instead, keyed by node id, so the original tree stays
inspectable and a run never overwrites what an earlier pass recorded.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Annotation:
    pass_name: str  # "matcher", "resolver", "synthesizer"
    key: str
    value: Any

    def to_dict(self) -> dict[str, Any]:
        return {"pass": self.pass_name, "key": self.key, "value": self.value}


class AnnotationLedger:
    """Per-run, per-unit side table of node annotations."""

    def __init__(self):
        self._entries: dict[str, list[Annotation]] = {}

    def append(self, node_id: str, pass_name: str, key: str, value: Any) -> None:
        self._entries.setdefault(node_id, []).append(Annotation(pass_name, key, value))

    def for_node(self, node_id: str) -> tuple[Annotation, ...]:
        return tuple(self._entries.get(node_id, ()))

    def values(self, node_id: str, key: str) -> list[Any]:
        return [a.value for a in self._entries.get(node_id, ()) if a.key == key]

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._entries

    def __len__(self) -> int:
        return sum(len(v) for v in self._entries.values())

    def to_dict(self) -> dict[str, list[dict[str, Any]]]:
        return {
            node_id: [a.to_dict() for a in entries]
            for node_id, entries in self._entries.items()
        }
