from __future__ import annotations

from typing import Any

import pytest

from streamsink.core.errors import ConfigurationError
from streamsink.destinations import (
    accepts_category,
    available_destinations,
    create_destination,
    register_destination,
)
from streamsink.destinations.kinesis import KinesisDestination
from streamsink.destinations.utils import get_destination_name
from streamsink.testing import (
    FakeKinesisClient,
    ProtocolViolationError,
    validate_destination,
)

CONFIG: dict[str, Any] = {
    "access_key": "AKIAEXAMPLE",
    "secret_key": "secret",
    "stream_name": "orders",
}


def test_kinesis_is_registered_case_insensitively() -> None:
    destination = create_destination("kinesis", CONFIG)
    assert isinstance(destination, KinesisDestination)
    assert isinstance(create_destination("Kinesis", CONFIG), KinesisDestination)
    assert "kinesis" in available_destinations()


def test_create_destination_passes_keyword_overrides() -> None:
    fake = FakeKinesisClient()
    destination = create_destination(
        "KINESIS", CONFIG, client_factory=fake.factory, region="us-west-2"
    )
    assert destination.config.region == "us-west-2"


def test_unknown_destination_type() -> None:
    with pytest.raises(ConfigurationError) as exc_info:
        create_destination("carrier-pigeon", {})
    assert "kinesis" in exc_info.value.context.fields["available"]


class _ListDestination:
    """Minimal in-memory destination used to exercise the registry."""

    name = "memory"

    def __init__(self, config: Any = None, **_kwargs: Any) -> None:
        self.lines: list[str] = []
        self._categories = list((config or {}).get("categories", []))

    def destination_type(self) -> str:
        return "Memory"

    def supported_categories(self) -> list[str]:
        return list(self._categories)

    def max_batch_size(self) -> int:
        return 1

    def initialise(self) -> None:
        return None

    def send(self, log_line: str) -> None:
        self.lines.append(log_line)

    def dispose(self) -> None:
        return None


def test_register_custom_destination() -> None:
    register_destination("memory-test")(_ListDestination)
    destination = create_destination("Memory-Test", {"categories": ["app"]})
    assert isinstance(destination, _ListDestination)
    assert validate_destination(destination).valid
    assert get_destination_name(destination) == "memory"


def test_accepts_category() -> None:
    everything = _ListDestination()
    assert accepts_category(everything, "any.category")

    filtered = _ListDestination({"categories": ["my.category", "another.category"]})
    assert accepts_category(filtered, "my.category")
    assert not accepts_category(filtered, "other")


def test_validate_destination_reports_violations() -> None:
    class _Broken:
        async def send(self, log_line: str) -> None:
            return None

    result = validate_destination(_Broken())
    assert not result.valid
    assert "send must be synchronous" in result.errors
    with pytest.raises(ProtocolViolationError):
        result.raise_if_invalid()


def test_get_destination_name_falls_back_to_metadata() -> None:
    class _Anonymous:
        pass

    assert get_destination_name(KinesisDestination) == "kinesis"
    assert get_destination_name(_Anonymous()) == "_Anonymous"
