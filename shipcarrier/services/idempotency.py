"""External order identifiers for carrier submissions."""

import uuid

from shipcarrier.services.carrier_constants import EXTERNAL_ID_SUFFIX_LEN


def generate_external_order_id(order_id: str, suffix: str | None = None) -> str:
    """Generate the carrier-facing order id for one submission attempt.

    The carrier rejects duplicate order ids, and a single internal order may
    be submitted more than once (e.g. after a rolled-back attempt). Each
    attempt therefore gets a random suffix.

    Args:
        order_id: Internal order id.
        suffix: Explicit suffix (tests); random hex when omitted.

    Returns:
        External order id string: '{order_id}-{suffix}'.
    """
    if suffix is None:
        suffix = uuid.uuid4().hex[:EXTERNAL_ID_SUFFIX_LEN]
    return f"{order_id}-{suffix}"


def internal_order_id(external_order_id: str) -> str:
    """Recover the internal order id from an external one."""
    base, sep, _suffix = external_order_id.rpartition("-")
    return base if sep else external_order_id
