"""Tests for external order id generation."""

from shipcarrier.services.idempotency import generate_external_order_id, internal_order_id


def test_suffix_is_random_per_attempt():
    first = generate_external_order_id("order_01")
    second = generate_external_order_id("order_01")

    assert first != second
    assert first.startswith("order_01-")
    assert len(first) == len("order_01-") + 10


def test_explicit_suffix():
    assert generate_external_order_id("order_01", suffix="abc") == "order_01-abc"


def test_internal_order_id_round_trip():
    external = generate_external_order_id("order-with-dashes")
    assert internal_order_id(external) == "order-with-dashes"
    assert internal_order_id("plain") == "plain"
