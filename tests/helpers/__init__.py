"""Test helpers for carrier client testing."""

from tests.helpers.fake_carrier import (
    BASE_URL,
    LOGIN_OK,
    FakeCarrier,
    FrozenClock,
    make_transport,
)

__all__ = [
    "BASE_URL",
    "LOGIN_OK",
    "FakeCarrier",
    "FrozenClock",
    "make_transport",
]
