"""
Destination helpers for configuration parsing and name resolution.
"""

from __future__ import annotations

from typing import Any, Mapping, TypeVar

from pydantic import BaseModel, ValidationError

from ..core.errors import ConfigurationError

M = TypeVar("M", bound=BaseModel)


def parse_destination_config(
    model: type[M],
    config: M | Mapping[str, Any] | None = None,
    **overrides: Any,
) -> M:
    """Coerce a model instance, a mapping or keyword args into ``model``.

    Keyword overrides win over values from ``config``. Validation failures
    are raised as ``ConfigurationError`` listing the offending fields; input
    values are never echoed since they may hold credentials.
    """
    if isinstance(config, model) and not overrides:
        return config
    data: dict[str, Any] = {}
    if isinstance(config, model):
        data.update(config.model_dump())
    elif isinstance(config, Mapping):
        data.update(config)
    elif config is not None:
        raise ConfigurationError(
            f"Unsupported configuration type for {model.__name__}: "
            f"{type(config).__name__}"
        )
    data.update(overrides)
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        problems = [
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in exc.errors()
        ]
        raise ConfigurationError(
            f"Invalid {model.__name__}: " + "; ".join(problems),
            errors=problems,
        ) from exc


def get_destination_name(destination: Any) -> str:
    """Canonical name: ``name`` attribute, then ``PLUGIN_METADATA``, then class."""
    name = getattr(destination, "name", None)
    if isinstance(name, str) and name.strip():
        return name.strip()
    cls = destination if isinstance(destination, type) else type(destination)
    import sys

    module = sys.modules.get(cls.__module__)
    metadata = getattr(module, "PLUGIN_METADATA", None)
    if isinstance(metadata, dict) and isinstance(metadata.get("name"), str):
        return str(metadata["name"])
    return cls.__name__


__all__ = ["get_destination_name", "parse_destination_config"]
