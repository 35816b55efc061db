"""Tests for wallet address normalization (F1)."""

import pytest

from ecertify.core.addresses import normalize_address, short_address
from ecertify.errors import ValidationError


class TestNormalizeAddress:
    """Tests for normalize_address."""

    def test_lowercases_and_strips(self):
        assert normalize_address("  0xABCdef  ") == "0xabcdef"

    def test_empty_rejected(self):
        with pytest.raises(ValidationError):
            normalize_address("   ")

    def test_lenient_accepts_short_forms(self):
        """Non-strict mode accepts any non-empty address."""
        assert normalize_address("0xAAA") == "0xaaa"

    def test_strict_accepts_full_address(self):
        address = "0x" + "AB" * 20
        assert normalize_address(address, strict=True) == "0x" + "ab" * 20

    def test_strict_rejects_malformed(self):
        with pytest.raises(ValidationError) as exc_info:
            normalize_address("0xAAA", strict=True)
        assert exc_info.value.code == "VALIDATION_ERROR"


class TestShortAddress:
    def test_first_six_characters(self):
        assert short_address("0xabcdef1234") == "0xabcd"
