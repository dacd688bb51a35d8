"""
Testing utilities for streamsink destinations.

Example:
    from streamsink.testing import FakeKinesisClient, validate_destination

    def test_my_destination():
        fake = FakeKinesisClient()
        destination = KinesisDestination(config, client_factory=fake.factory)
        assert validate_destination(destination).valid
"""

from .fakes import FakeKinesisClient, client_error
from .validators import (
    ProtocolViolationError,
    ValidationResult,
    validate_destination,
    validate_sink,
)

__all__ = [
    "FakeKinesisClient",
    "ProtocolViolationError",
    "ValidationResult",
    "client_error",
    "validate_destination",
    "validate_sink",
]
