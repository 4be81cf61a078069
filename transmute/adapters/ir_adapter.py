"""Serialized-IR adapter — reads trees another front end already produced.

A document that is not a valid tree becomes a module holding a single
``error`` leaf, so one bad file degrades instead of stopping a batch.
"""

from __future__ import annotations

import json

import yaml

from transmute.adapters.base import AdapterResult, FrontEndAdapter, register_adapter
from transmute.errors import IRValidationError, ParseDiagnostic
from transmute.ir.builder import IRBuilder
from transmute.ir.serialization import deserialize


@register_adapter
class IRAdapter(FrontEndAdapter):
    language = "ir"
    suffixes = (".ir", ".json", ".yaml", ".yml")

    def parse(self, source: str, unit_name: str) -> AdapterResult:
        try:
            return AdapterResult(root=deserialize(yaml.safe_load(source)))
        except yaml.YAMLError as e:
            message = f"not a serialized IR document: {e}"
        except IRValidationError as e:
            message = str(e)
        b = IRBuilder(prefix=f"{unit_name}#error")
        leaf = b.error(message)
        root = b.module(unit_name, leaf)
        return AdapterResult(root=root, diagnostics=[ParseDiagnostic(message, node_id=leaf.id)])

    def looks_like(self, source: str) -> bool:
        try:
            data = json.loads(source)
        except ValueError:
            return False
        return isinstance(data, dict) and "kind" in data and "id" in data
