"""External identifiers.

Rows are keyed by a dense sequential integer that never leaves the server.
Everything exposed to clients (API payloads, the ``sub`` claim of access
tokens) uses an opaque identifier of the form ``{prefix}_{16 chars}`` drawn
from an alphabet without look-alike characters.

Example: ``usr_V3StGXR8Z5jdHh6B``
"""

import secrets

# No 0/O, 1/l/I (and no i/o either)
ALPHABET = "23456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghjkmnpqrstuvwxyz"
ID_LENGTH = 16

_ALPHABET_SET = frozenset(ALPHABET)


class EntityPrefix:
    """External ID prefixes per entity type."""

    ACCOUNT = "usr"
    PRODUCT = "prod"
    PRODUCT_VARIANT = "var"
    PRODUCT_IMAGE = "img"
    CATEGORY = "cat"
    BRAND = "brd"
    ADDRESS = "adr"
    CART_ITEM = "cit"
    ORDER = "ord"
    REVIEW = "rev"
    COUPON = "cpn"
    PROMOTION = "prm"
    WISHLIST_ITEM = "wit"


def generate_external_id(prefix: str) -> str:
    """Generate a new external ID.

    Args:
        prefix: Entity prefix, e.g. ``EntityPrefix.ACCOUNT``

    Returns:
        ``{prefix}_{16 random alphabet characters}``

    Raises:
        ValueError: If prefix is empty or blank

    """
    if not prefix or not prefix.strip():
        raise ValueError("External ID prefix must not be empty")
    value = "".join(secrets.choice(ALPHABET) for _ in range(ID_LENGTH))
    return f"{prefix}_{value}"


def is_valid_external_id(external_id: str | None, expected_prefix: str) -> bool:
    """Check that an external ID has the expected prefix and a well-formed body."""
    if not external_id or not external_id.strip():
        return False

    head = f"{expected_prefix}_"
    if not external_id.startswith(head):
        return False

    body = external_id[len(head) :]
    return len(body) == ID_LENGTH and all(c in _ALPHABET_SET for c in body)


def get_external_id_prefix(external_id: str | None) -> str | None:
    """Return the segment before the first underscore, or None."""
    if not external_id or not external_id.strip():
        return None

    prefix, sep, _ = external_id.partition("_")
    if not sep or not prefix.strip():
        return None
    return prefix
