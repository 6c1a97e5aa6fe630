"""Configuration resolution helpers."""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Dict, Mapping, TypeVar

import yaml
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ConfigError
from .models import DeParaConfig

ENV_PREFIX = "DEPARA__"

ModelT = TypeVar("ModelT", bound=BaseModel)


def resolve_with_precedence(
    *,
    defaults: DeParaConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> DeParaConfig:
    """Layer override sources over the defaults and validate the result.

    Sources are applied in order file < environment < CLI; later sources win on
    conflicting leaves while sibling keys are preserved.

    Raises:
        ConfigError: If a source is malformed or the merged values are invalid.
    """
    merged = defaults.model_dump(mode="python")
    layers = (("file", file_overrides), ("environment", env_overrides), ("cli", cli_overrides))
    for label, layer in layers:
        if layer is None:
            continue
        merged = _deep_merge(merged, expand_dotted(layer, source_name=label))

    try:
        return DeParaConfig.model_validate(merged)
    except PydanticValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def apply_partial(model: ModelT, partial: Mapping[str, Any]) -> ModelT:
    """Return a copy of ``model`` with ``partial`` merged in and re-validated.

    Raises:
        ConfigError: If the merged values fail validation.
    """
    overrides = expand_dotted(partial, source_name="update")
    merged = _deep_merge(model.model_dump(mode="python"), overrides)
    try:
        return type(model).model_validate(merged)
    except PydanticValidationError as exc:
        raise ConfigError(f"Invalid {type(model).__name__} values: {exc}") from exc


def flatten_for_env(config: DeParaConfig) -> Dict[str, str]:
    """Render the config as ``DEPARA__SECTION__KEY`` environment assignments."""
    flat: Dict[str, str] = {}

    def _walk(path: list[str], value: Any) -> None:
        if isinstance(value, dict):
            for key, child in value.items():
                _walk([*path, str(key)], child)
            return
        key = ENV_PREFIX + "__".join(part.upper() for part in path)
        if isinstance(value, list):
            flat[key] = yaml.safe_dump(value, default_flow_style=True).strip()
        elif value is None:
            flat[key] = "null"
        else:
            flat[key] = str(value)

    for section, value in config.model_dump(mode="python").items():
        _walk([section], value)
    return flat


def parse_env(env: Mapping[str, str]) -> dict[str, Any]:
    """Collect ``DEPARA__`` variables into a nested override mapping."""
    overrides: dict[str, Any] = {}
    for key, raw in env.items():
        if not key.startswith(ENV_PREFIX):
            continue
        segments = [segment.lower() for segment in key[len(ENV_PREFIX) :].split("__") if segment]
        if not segments:
            continue
        try:
            value = yaml.safe_load(raw)
        except yaml.YAMLError:
            value = raw
        node = overrides
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                child = {}
                node[segment] = child
            node = child
        node[segments[-1]] = value
    return overrides


def expand_dotted(source: Mapping[str, Any], *, source_name: str) -> dict[str, Any]:
    """Expand ``a.b`` style keys into nested dictionaries."""
    if not isinstance(source, MappingABC):
        raise ConfigError(f"{source_name.capitalize()} overrides must be a mapping.")

    expanded: dict[str, Any] = {}
    for key, value in source.items():
        if not isinstance(key, str):
            raise ConfigError(f"{source_name.capitalize()} override keys must be strings.")
        *parents, leaf = key.split(".")
        node = expanded
        for segment in parents:
            child = node.setdefault(segment, {})
            if not isinstance(child, dict):
                raise ConfigError(
                    f"{source_name.capitalize()} override for {key} conflicts "
                    "with an existing value."
                )
            node = child
        if isinstance(value, MappingABC):
            value = expand_dotted(value, source_name=source_name)
            existing = node.get(leaf)
            if isinstance(existing, dict):
                value = _deep_merge(existing, value)
        node[leaf] = value
    return expanded


def merge_dotted(base: Mapping[str, Any], key: str, value: Any) -> dict[str, Any]:
    """Return a copy of ``base`` with ``value`` stored at the dotted ``key``.

    Raises:
        ConfigError: If a segment of ``key`` is empty or names a non-mapping value.
    """
    segments = key.split(".")
    if not all(segment.strip() for segment in segments):
        raise ConfigError(f"Invalid configuration key: {key!r}")
    node: Any = base
    for segment in segments[:-1]:
        node = node.get(segment) if isinstance(node, MappingABC) else None
        if node is not None and not isinstance(node, MappingABC):
            raise ConfigError(f"Cannot assign into '{segment}' because it is not a mapping.")
    return _deep_merge(base, expand_dotted({key: value}, source_name="cli"))


def _deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    merged = {key: deepcopy(value) for key, value in base.items()}
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(value, MappingABC) and isinstance(current, MappingABC):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = deepcopy(value)
    return merged


__all__ = [
    "ENV_PREFIX",
    "resolve_with_precedence",
    "apply_partial",
    "flatten_for_env",
    "parse_env",
    "expand_dotted",
    "merge_dotted",
]
