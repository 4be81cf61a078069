"""IR serialization — the JSON interchange shape shared with adapters and tools.

Shape of one node::

    {"id": str, "kind": str, "name"?: str, "children": [...],
     "metadata": {...}, "library_dependencies": [{library, pattern, parameters}]}

``deserialize(serialize(tree)) == tree`` holds for every tree. Annotations
from a run can be emitted under a separate ``annotations`` key for
inspection; they are ignored when reading.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from transmute.errors import IRValidationError
from transmute.ir.annotations import AnnotationLedger
from transmute.ir.models import IdGenerator, IRNode, LibraryDependency, NodeKind, validate_tree


def serialize(node: IRNode, ledger: AnnotationLedger | None = None) -> dict[str, Any]:
    """Convert a tree to plain dicts/lists."""
    data: dict[str, Any] = {"id": node.id, "kind": node.kind.value}
    if node.name is not None:
        data["name"] = node.name
    data["children"] = [serialize(c, ledger) for c in node.children]
    data["metadata"] = node.metadata
    data["library_dependencies"] = [
        {"library": d.library, "pattern": d.pattern, "parameters": d.parameters}
        for d in node.library_dependencies
    ]
    if ledger is not None and node.id in ledger:
        data["annotations"] = [a.to_dict() for a in ledger.for_node(node.id)]
    return data


def deserialize(data: dict[str, Any]) -> IRNode:
    """Rebuild a tree from its serialized form and validate ownership."""
    root = _node_from_dict(data, "$")
    validate_tree(root)
    return root


def _node_from_dict(data: Any, path: str, ids: IdGenerator | None = None) -> IRNode:
    if not isinstance(data, dict):
        raise IRValidationError(f"{path}: expected an object, got {type(data).__name__}")
    if ids is not None:
        data = {**data, "id": ids.new_id()}
    for key in ("id", "kind"):
        if key not in data:
            raise IRValidationError(f"{path}: missing required property '{key}'")

    kind_value = data["kind"]
    try:
        kind = NodeKind(kind_value)
    except ValueError:
        raise IRValidationError(f"{path}.kind: unknown node kind '{kind_value}'") from None

    name = data.get("name")
    if name is not None and not isinstance(name, str):
        raise IRValidationError(f"{path}.name: expected a string")

    children_data = data.get("children", [])
    if not isinstance(children_data, list):
        raise IRValidationError(f"{path}.children: expected an array")

    metadata = data.get("metadata", {})
    if not isinstance(metadata, dict):
        raise IRValidationError(f"{path}.metadata: expected an object")

    deps = []
    for i, dep in enumerate(data.get("library_dependencies") or []):
        if not isinstance(dep, dict) or "library" not in dep or "pattern" not in dep:
            raise IRValidationError(
                f"{path}.library_dependencies[{i}]: expected {{library, pattern, parameters}}"
            )
        deps.append(
            LibraryDependency(
                library=dep["library"],
                pattern=dep["pattern"],
                parameters=dep.get("parameters") or {},
            )
        )

    return IRNode(
        id=str(data["id"]),
        kind=kind,
        name=name,
        children=tuple(
            _node_from_dict(c, f"{path}.children[{i}]", ids) for i, c in enumerate(children_data)
        ),
        metadata=metadata,
        library_dependencies=tuple(deps),
    )


def dumps(node: IRNode, indent: int | None = 2, ledger: AnnotationLedger | None = None) -> str:
    return json.dumps(serialize(node, ledger), indent=indent)


def loads(text: str) -> IRNode:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise IRValidationError(f"Invalid IR JSON: {e}") from e
    return deserialize(data)


def load_ir(path: str | Path) -> IRNode:
    """Read a serialized IR tree from a .json or .yaml file."""
    path = Path(path)
    text = path.read_text()
    if path.suffix in (".yaml", ".yml"):
        try:
            return deserialize(yaml.safe_load(text))
        except yaml.YAMLError as e:
            raise IRValidationError(f"Invalid IR YAML in {path}: {e}") from e
    return loads(text)


def dump_ir(node: IRNode, path: str | Path) -> None:
    path = Path(path)
    if path.suffix in (".yaml", ".yml"):
        with open(path, "w") as f:
            yaml.safe_dump(serialize(node), f, sort_keys=False)
    else:
        path.write_text(dumps(node))


def fragment_from_dict(data: Any, ids: IdGenerator, path: str = "$") -> IRNode:
    """Build a tree from a fragment-tree template.

    Fragments use the serialization shape without ids. Every node gets a
    fresh id from ``ids``, so two instantiations of one template never share
    ids.
    """
    return _node_from_dict(data, path, ids)
