"""Synthesizer — renders one unit's IR to target text.

Depth-first, children in stored order. A node anchoring a substituted
fragment emits the fragment verbatim (statement spans skip the rest of
their nodes); every other node gets the renderer's structural rendering.
Each rendered node's outcome is recorded for the confidence scorer.

Comments that explain a fallback (an unmapped library call, a construct
with no form in the target position) are attached above the statement
that contains the node, so the output stays valid whatever the position.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from enum import Enum
from typing import Iterator, Sequence

from transmute.engine.cancellation import CancellationToken
from transmute.engine.substitution import Fragment
from transmute.errors import TranslationWarning, WarningKind
from transmute.ir.models import IRNode, NodeKind
from transmute.ir.symbols import SymbolTable
from transmute.patterns.models import Match, NodeRef, RefMode
from transmute.synth.base import Renderer

logger = logging.getLogger(__name__)

_SCOPED_KINDS = frozenset(
    {NodeKind.FUNCTION, NodeKind.CLASS, NodeKind.LOOP, NodeKind.CONDITIONAL, NodeKind.BLOCK}
)


class Outcome(Enum):
    STRUCTURAL = "structural"  # direct rendering, nothing to translate
    FRAGMENT = "fragment"  # rewritten through a mapping
    FALLBACK = "fallback"  # rendered faithfully but not translated


class Synthesizer:
    """Per-unit renderer state. Not shared between workers."""

    def __init__(
        self,
        renderer: Renderer,
        table: SymbolTable,
        token: CancellationToken | None = None,
        unit_name: str = "",
    ):
        self.renderer = renderer
        self.table = table
        self.token = token or CancellationToken()
        self.unit_name = unit_name

        self.outcomes: dict[str, Outcome] = {}
        self.imports: list[str] = []
        self._fragments: dict[str, tuple[Match, Fragment]] = {}
        self._fragment_notes: dict[str, list[str]] = {}
        self._fallback_ids: set[str] = set()
        self._fallback_notes: dict[str, str] = {}
        self._degraded: set[str] = set()
        self._notes: list[str] = []
        self._scopes: list[NodeKind] = []
        self._warnings: dict[tuple[str, str], TranslationWarning] = {}

    # -- set-up by the pipeline --------------------------------------------------

    def add_fragment(self, match: Match, fragment: Fragment) -> None:
        self._fragments[match.anchor_id] = (match, fragment)

    def add_fallback(self, match: Match, note: str) -> None:
        """Mark a match's nodes as rendered faithfully without translation."""
        self._fallback_ids.update(match.owned_ids)
        self._fallback_notes[match.anchor_id] = note

    def render_bindings(self, match: Match, names: Sequence[str]) -> dict[str, str]:
        """Text values for the named bindings; IR-valued ones are rendered now."""
        values: dict[str, str] = {}
        mark = len(self._notes)
        for name in names:
            value = match.bindings.get(name)
            if value is None:
                continue
            values[name] = value if isinstance(value, str) else self.render_ref(value)
        self._fragment_notes[match.anchor_id] = self._notes[mark:]
        del self._notes[mark:]
        return values

    def render_ref(self, ref: NodeRef) -> str:
        nodes = [self.table.node(i) for i in ref.node_ids]
        if ref.mode == RefMode.STATEMENTS:
            if not nodes:
                return self.renderer.empty_body
            with self._scopes_at(nodes[0]):
                return "\n".join(self.block(nodes))
        if ref.mode == RefMode.ARGUMENTS:
            positional = [self.expression(n) for n in nodes if "keyword" not in n.metadata]
            keywords = [(n.metadata["keyword"], self.expression(n)) for n in nodes if "keyword" in n.metadata]
            return self.renderer.join_arguments(positional, keywords)
        return ", ".join(self.expression(n) for n in nodes)

    # -- callbacks used by renderers ---------------------------------------------

    @contextmanager
    def scope(self, kind: NodeKind) -> Iterator[None]:
        self._scopes.append(kind)
        try:
            yield
        finally:
            self._scopes.pop()

    @contextmanager
    def _scopes_at(self, node: IRNode) -> Iterator[None]:
        saved = self._scopes
        self._scopes = [
            a.kind for a in reversed(self.table.ancestors(node.id)) if a.kind in _SCOPED_KINDS
        ]
        try:
            yield
        finally:
            self._scopes = saved

    def innermost(self, *kinds: NodeKind) -> NodeKind | None:
        for kind in reversed(self._scopes):
            if kind in kinds:
                return kind
        return None

    @property
    def at_top_level(self) -> bool:
        return not self._scopes

    def note(self, text: str) -> None:
        self._notes.append(text)

    def degrade(self, node: IRNode, message: str) -> None:
        """The node has no valid form here; the renderer emits a placeholder."""
        self._degraded.add(node.id)
        self.note(f"transmute: {message}")
        self.warn(node.id, WarningKind.UNRENDERABLE, message)

    def warn(self, node_id: str, kind: WarningKind, detail: str) -> None:
        warning = TranslationWarning(node_id, kind, detail)
        self._warnings.setdefault((node_id, warning.reason), warning)

    def record(self, node: IRNode) -> None:
        if self.outcomes.get(node.id) == Outcome.FRAGMENT:
            return
        fallback = (
            node.id in self._fallback_ids
            or node.id in self._degraded
            or node.kind == NodeKind.ERROR
            or node.kind == NodeKind.LIBRARY_CALL
        )
        self.outcomes[node.id] = Outcome.FALLBACK if fallback else Outcome.STRUCTURAL

    # -- traversal ---------------------------------------------------------------

    def block(self, nodes: Sequence[IRNode], allow_empty: bool = False) -> list[str]:
        """Render a statement sequence, applying statement-span fragments."""
        lines: list[str] = []
        skip: set[str] = set()
        for node in nodes:
            if node.id in skip:
                continue
            if node.id in self._fragments:
                match, _ = self._fragments[node.id]
                skip.update(match.node_ids)
                lines += self._fragment_statement(node)
                continue
            lines += self.statement(node)
        if not allow_empty and self.renderer.empty_body and not self._has_code(lines):
            lines.append(self.renderer.empty_body)
        return lines

    def branch(self, node: IRNode | None) -> list[str]:
        """Body of a conditional or loop: a block node, a single statement, or nothing."""
        if node is None:
            return self.block([])
        if node.kind == NodeKind.BLOCK:
            self.record(node)
            return self.block(node.children)
        return self.block([node])

    def statement(self, node: IRNode) -> list[str]:
        self.token.raise_if_cancelled(self.unit_name)
        mark = len(self._notes)
        if node.id in self._fallback_notes:
            self.note(self._fallback_notes[node.id])
        if node.kind == NodeKind.ERROR:
            self.warn(node.id, WarningKind.PARSE_DIAGNOSTIC, node.metadata.get("message", "unparsed source"))
        lines = self.renderer.statement(node, self)
        self.record(node)
        notes = self._notes[mark:]
        del self._notes[mark:]
        return [self.renderer.comment(n) for n in notes] + lines

    def expression(self, node: IRNode) -> str:
        if node.id in self._fragments:
            return self._fragment_expression(node)
        if node.id in self._fallback_notes:
            self.note(self._fallback_notes[node.id])
        elif node.kind == NodeKind.LIBRARY_CALL and node.id not in self._fallback_ids:
            self._unmatched_library_call(node)
        text = self.renderer.expression(node, self)
        self.record(node)
        return text

    def _unmatched_library_call(self, node: IRNode) -> None:
        origin = ", ".join(d.qualified_pattern for d in node.library_dependencies) or "unknown library"
        self.note(f"transmute: unmapped {origin}; no catalog pattern recognised this call")
        self.warn(node.id, WarningKind.UNMAPPED_PATTERN, f"{origin}: no catalog pattern recognised this call")

    # -- fragments ---------------------------------------------------------------

    def _apply_fragment(self, node: IRNode) -> Fragment:
        match, fragment = self._fragments[node.id]
        for node_id in match.owned_ids:
            self.outcomes[node_id] = Outcome.FRAGMENT
        for line in fragment.imports:
            if line not in self.imports:
                self.imports.append(line)
        logger.debug("Emitting %s at %s", fragment.mapping_id, node.id)
        return fragment

    def _fragment_statement(self, node: IRNode) -> list[str]:
        fragment = self._apply_fragment(node)
        notes = [self.renderer.comment(n) for n in self._fragment_notes.get(node.id, [])]
        if fragment.tree is not None:
            return notes + self.statement(fragment.tree)
        return notes + fragment.text.split("\n")

    def _fragment_expression(self, node: IRNode) -> str:
        fragment = self._apply_fragment(node)
        self._notes.extend(self._fragment_notes.get(node.id, []))
        if fragment.tree is not None:
            return self.expression(fragment.tree)
        return fragment.text

    # -- output ------------------------------------------------------------------

    def render_unit(self, root: IRNode, extra_imports: Sequence[str] = ()) -> str:
        if root.kind == NodeKind.MODULE:
            body = self.block(root.body, allow_empty=True)
            self.record(root)
        else:
            body = self.block([root], allow_empty=True)
        imports = list(self.imports)
        imports += [line for line in extra_imports if line not in imports]
        lines = imports + ([""] if imports and body else []) + body
        return "\n".join(lines) + "\n" if lines else ""

    @property
    def warnings(self) -> list[TranslationWarning]:
        return list(self._warnings.values())

    def _has_code(self, lines: list[str]) -> bool:
        marker = self.renderer.comment("").strip()
        return any(line.strip() and not line.lstrip().startswith(marker) for line in lines)
