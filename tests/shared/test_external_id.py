"""Tests for external identifier generation and parsing."""

import pytest

from src.shared.external_id import (
    ALPHABET,
    ID_LENGTH,
    EntityPrefix,
    generate_external_id,
    get_external_id_prefix,
    is_valid_external_id,
)


class TestGenerateExternalId:
    @pytest.mark.parametrize("prefix", [EntityPrefix.ACCOUNT, EntityPrefix.PRODUCT, "x"])
    def test_shape(self, prefix):
        external_id = generate_external_id(prefix)
        assert external_id.startswith(f"{prefix}_")
        assert len(external_id) == len(prefix) + 1 + ID_LENGTH
        assert is_valid_external_id(external_id, prefix)

    def test_uses_only_alphabet_characters(self):
        body = generate_external_id("usr").removeprefix("usr_")
        assert set(body) <= set(ALPHABET)

    def test_thousand_values_are_distinct(self):
        values = {generate_external_id("usr") for _ in range(1000)}
        assert len(values) == 1000

    @pytest.mark.parametrize("prefix", ["", "   "])
    def test_blank_prefix_rejected(self, prefix):
        with pytest.raises(ValueError):
            generate_external_id(prefix)

    def test_alphabet_has_no_ambiguous_characters(self):
        assert not set("0O1lI") & set(ALPHABET)


class TestIsValidExternalId:
    @pytest.mark.parametrize("ambiguous", ["0", "O", "1", "l", "I"])
    def test_ambiguous_character_rejected(self, ambiguous):
        body = "A" * (ID_LENGTH - 1) + ambiguous
        assert not is_valid_external_id(f"usr_{body}", "usr")

    def test_wrong_prefix(self):
        assert not is_valid_external_id(generate_external_id("prod"), "usr")

    @pytest.mark.parametrize("length", [ID_LENGTH - 1, ID_LENGTH + 1])
    def test_wrong_length(self, length):
        assert not is_valid_external_id("usr_" + "A" * length, "usr")

    @pytest.mark.parametrize("value", [None, "", "  ", "usr", "usrAAAAAAAAAAAAAAAA"])
    def test_malformed(self, value):
        assert not is_valid_external_id(value, "usr")


class TestGetExternalIdPrefix:
    def test_returns_prefix(self):
        assert get_external_id_prefix("usr_V3StGXR8Z5jdHh6B") == "usr"

    def test_only_first_segment(self):
        assert get_external_id_prefix("a_b_c") == "a"

    @pytest.mark.parametrize("value", [None, "", "nounderscore", "_leading"])
    def test_missing_prefix(self, value):
        assert get_external_id_prefix(value) is None
