"""Wallet address helpers.

Addresses are compared and stored in normalized form: surrounding
whitespace stripped, lower-cased.
"""

import re

from ecertify.errors import ValidationError

WALLET_ADDRESS_PATTERN = re.compile(r"^0x[0-9a-f]{40}$")


def normalize_address(address: str, strict: bool = False) -> str:
    """Normalize a wallet address for storage and lookup.

    Args:
        address: Raw address as supplied by the wallet provider or a caller
        strict: Require the 0x-prefixed 40 hex character form

    Returns:
        Stripped, lower-cased address

    Raises:
        ValidationError: If the address is empty, or malformed in strict mode
    """
    normalized = (address or "").strip().lower()
    if not normalized:
        raise ValidationError("Wallet address must not be empty")
    if strict and not WALLET_ADDRESS_PATTERN.match(normalized):
        raise ValidationError(f"Invalid wallet address format: {address}")
    return normalized


def short_address(address: str) -> str:
    """First six characters of an address, used in placeholder records."""
    return address[:6]
