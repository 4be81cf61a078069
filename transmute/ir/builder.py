"""Convenience constructors for IR trees.

Adapters and tests build trees bottom-up: children first, then the parent
that owns them. Every node gets a fresh id from the builder's generator.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Sequence

from transmute.ir.models import IdGenerator, IRNode, LibraryDependency, NodeKind


class IRBuilder:
    def __init__(self, prefix: str = "n"):
        self.ids = IdGenerator(prefix)

    def node(
        self,
        kind: NodeKind,
        name: str | None = None,
        children: Sequence[IRNode] = (),
        metadata: dict[str, Any] | None = None,
        library_dependencies: Sequence[LibraryDependency] = (),
    ) -> IRNode:
        return IRNode(
            id=self.ids.new_id(),
            kind=kind,
            name=name,
            children=tuple(children),
            metadata=metadata or {},
            library_dependencies=tuple(library_dependencies),
        )

    # -- declarations ----------------------------------------------------------

    def module(self, name: str, *statements: IRNode, **metadata) -> IRNode:
        return self.node(NodeKind.MODULE, name, statements, metadata)

    def function(
        self, name: str, params: Sequence[IRNode | str], *body: IRNode, **metadata
    ) -> IRNode:
        parameters = [p if isinstance(p, IRNode) else self.parameter(p) for p in params]
        return self.node(NodeKind.FUNCTION, name, [*parameters, *body], metadata)

    def parameter(self, name: str, **metadata) -> IRNode:
        return self.node(NodeKind.PARAMETER, name, (), metadata)

    def class_(self, name: str, *members: IRNode, bases: Sequence[str] = (), **metadata) -> IRNode:
        if bases:
            metadata["bases"] = list(bases)
        return self.node(NodeKind.CLASS, name, members, metadata)

    def variable(self, name: str, value: IRNode | None = None, **metadata) -> IRNode:
        return self.node(NodeKind.VARIABLE, name, [value] if value is not None else [], metadata)

    # -- statements ------------------------------------------------------------

    def block(self, *statements: IRNode) -> IRNode:
        return self.node(NodeKind.BLOCK, None, statements)

    def assign(self, name: str, value: IRNode, **metadata) -> IRNode:
        return self.node(NodeKind.ASSIGNMENT, name, [value], metadata)

    def if_(
        self,
        condition: IRNode,
        then: Sequence[IRNode],
        else_: Sequence[IRNode] | None = None,
        **metadata,
    ) -> IRNode:
        children = [condition, self.block(*then)]
        if else_ is not None:
            children.append(self.block(*else_))
        return self.node(NodeKind.CONDITIONAL, None, children, metadata)

    def while_(self, condition: IRNode, body: Sequence[IRNode]) -> IRNode:
        return self.node(
            NodeKind.LOOP, None, [condition, self.block(*body)], {"loop_form": "while"}
        )

    def for_each(self, var: str, iterable: IRNode, body: Sequence[IRNode]) -> IRNode:
        return self.node(
            NodeKind.LOOP, var, [iterable, self.block(*body)], {"loop_form": "for_each"}
        )

    def return_(self, value: IRNode | None = None) -> IRNode:
        return self.node(NodeKind.RETURN, None, [value] if value is not None else [])

    def break_(self) -> IRNode:
        return self.node(NodeKind.BREAK)

    def continue_(self) -> IRNode:
        return self.node(NodeKind.CONTINUE)

    def import_(
        self, module: str, names: Sequence[str] = (), alias: str | None = None
    ) -> IRNode:
        metadata: dict[str, Any] = {}
        if names:
            metadata["names"] = list(names)
        if alias:
            metadata["alias"] = alias
        return self.node(NodeKind.IMPORT, module, (), metadata)

    def export(self, name: str) -> IRNode:
        return self.node(NodeKind.EXPORT, name)

    def error(self, message: str, **metadata) -> IRNode:
        metadata["message"] = message
        return self.node(NodeKind.ERROR, None, (), metadata)

    # -- expressions -----------------------------------------------------------

    def name(self, identifier: str) -> IRNode:
        return self.node(NodeKind.EXPRESSION, identifier)

    def binary(self, operator: str, left: IRNode, right: IRNode) -> IRNode:
        return self.node(NodeKind.EXPRESSION, None, [left, right], {"operator": operator})

    def unary(self, operator: str, operand: IRNode) -> IRNode:
        return self.node(NodeKind.EXPRESSION, None, [operand], {"operator": operator})

    def literal(self, value: Any) -> IRNode:
        return self.node(NodeKind.LITERAL, None, (), {"value": value})

    def call(
        self,
        callee: str,
        *args: IRNode,
        keywords: dict[str, IRNode] | None = None,
        **metadata,
    ) -> IRNode:
        return self.node(NodeKind.CALL, callee, [*args, *self._keywords(keywords)], metadata)

    def library_call(
        self,
        callee: str | None,
        library: str,
        pattern: str,
        parameters: dict[str, Any] | None = None,
        *args: IRNode,
        keywords: dict[str, IRNode] | None = None,
    ) -> IRNode:
        dep = LibraryDependency(library=library, pattern=pattern, parameters=parameters or {})
        return self.node(
            NodeKind.LIBRARY_CALL,
            callee,
            [*args, *self._keywords(keywords)],
            library_dependencies=[dep],
        )

    @staticmethod
    def _keywords(keywords: dict[str, IRNode] | None) -> list[IRNode]:
        if not keywords:
            return []
        return [
            replace(value, metadata={**value.metadata, "keyword": key})
            for key, value in keywords.items()
        ]
