"""Translator configuration.

Sources, lowest precedence first: built-in defaults, a YAML file, the
``TRANSMUTE_*`` environment variables, then explicit overrides (CLI flags).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from transmute.engine.matcher import DEFAULT_ANCESTOR_DEPTH
from transmute.engine.ranking import DEFAULT_TIMEOUT
from transmute.errors import ConfigError

ENV_VARS = {
    "TRANSMUTE_NOTATION": "notation",
    "TRANSMUTE_WORKERS": "workers",
    "TRANSMUTE_RANKING_URL": "ranking_url",
    "TRANSMUTE_RANKING_TIMEOUT": "ranking_timeout",
}


@dataclass(frozen=True)
class TranslatorConfig:
    notation: str = "python"
    workers: int = 4
    ancestor_depth: int = DEFAULT_ANCESTOR_DEPTH
    ranking_url: str | None = None
    ranking_timeout: float = DEFAULT_TIMEOUT
    unit_timeout: float | None = None
    catalog_paths: tuple[str, ...] = field(default_factory=tuple)
    include_default_catalog: bool = True

    def with_overrides(self, **overrides: Any) -> TranslatorConfig:
        """A copy with every non-None override applied and validated."""
        values = {k: v for k, v in overrides.items() if v is not None}
        unknown = sorted(set(values) - {f.name for f in fields(self)})
        if unknown:
            raise ConfigError(f"Unknown configuration key(s): {', '.join(unknown)}")
        return _validated(replace(self, **{k: _coerce(k, v) for k, v in values.items()}))


def _coerce(key: str, value: Any) -> Any:
    try:
        if key in ("workers", "ancestor_depth"):
            if isinstance(value, bool):
                raise ValueError(value)
            return int(value)
        if key in ("ranking_timeout", "unit_timeout"):
            return float(value)
        if key == "catalog_paths":
            if isinstance(value, (str, Path)):
                return (str(value),)
            return tuple(str(p) for p in value)
        if key == "include_default_catalog":
            if isinstance(value, str):
                return value.strip().lower() in ("1", "true", "yes", "on")
            return bool(value)
        if key in ("notation", "ranking_url"):
            return str(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid value for '{key}': {value!r}") from None
    return value


def _validated(config: TranslatorConfig) -> TranslatorConfig:
    if config.workers < 1:
        raise ConfigError(f"'workers' must be at least 1, got {config.workers}")
    if config.ancestor_depth < 0:
        raise ConfigError(f"'ancestor_depth' must not be negative, got {config.ancestor_depth}")
    if config.ranking_timeout <= 0:
        raise ConfigError(f"'ranking_timeout' must be positive, got {config.ranking_timeout}")
    if config.unit_timeout is not None and config.unit_timeout <= 0:
        raise ConfigError(f"'unit_timeout' must be positive, got {config.unit_timeout}")
    return config


def load_config(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
    **overrides: Any,
) -> TranslatorConfig:
    """Resolve the effective configuration.

    Raises ConfigError for a missing or malformed file and for invalid values.
    """
    config = TranslatorConfig()

    if path is not None:
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise ConfigError(f"Config file not found: {path}") from None
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{path}: expected a mapping at the top level")
        config = config.with_overrides(**data)

    environ = os.environ if environ is None else environ
    from_env = {key: environ[var] for var, key in ENV_VARS.items() if environ.get(var)}
    config = config.with_overrides(**from_env)

    return config.with_overrides(**overrides)
