from __future__ import annotations

from typing import Any, Callable, Protocol, TypeVar, runtime_checkable

from ..core.errors import ConfigurationError


@runtime_checkable
class Destination(Protocol):
    """Host-facing log destination interface.

    A destination receives one fully rendered log line per ``send`` call and
    forwards it to an external system. The host owns category filtering and
    must honour ``max_batch_size()``. Lifecycle: ``initialise`` once, then
    ``send`` any number of times, then ``dispose``.
    """

    def destination_type(self) -> str: ...

    def supported_categories(self) -> list[str]: ...

    def max_batch_size(self) -> int: ...

    def initialise(self) -> None: ...

    def send(self, log_line: str) -> None:  # noqa: D401
        """Forward one log line; must not raise on delivery failure."""
        ...

    def dispose(self) -> None: ...


@runtime_checkable
class BaseSink(Protocol):
    """Async sink interface for hosts that run an event loop.

    Errors must be contained: ``write`` never raises on delivery failure.
    """

    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def write(self, _entry: dict) -> None:  # noqa: ARG002
        ...


D = TypeVar("D")

_REGISTRY: dict[str, Callable[..., Any]] = {}


def normalize_destination_type(name: str) -> str:
    return name.strip().replace("-", "_").lower()


def register_destination(name: str) -> Callable[[type[D]], type[D]]:
    """Class decorator registering a destination under ``name``."""

    def _register(cls: type[D]) -> type[D]:
        _REGISTRY[normalize_destination_type(name)] = cls
        return cls

    return _register


def available_destinations() -> list[str]:
    return sorted(_REGISTRY)


def create_destination(name: str, config: Any = None, **kwargs: Any) -> Any:
    """Instantiate a registered destination by type name (case-insensitive)."""
    # Built-in destinations register on import
    from . import kinesis  # noqa: F401

    factory = _REGISTRY.get(normalize_destination_type(name))
    if factory is None:
        raise ConfigurationError(
            f"Unknown destination type: {name}",
            available=available_destinations(),
        )
    return factory(config, **kwargs)


def accepts_category(destination: Destination, category: str) -> bool:
    """True when ``destination`` should receive logs of ``category``.

    An empty category list means every category is accepted.
    """
    categories = destination.supported_categories()
    return not categories or category in categories


__all__ = [
    "BaseSink",
    "Destination",
    "accepts_category",
    "available_destinations",
    "create_destination",
    "normalize_destination_type",
    "register_destination",
]
