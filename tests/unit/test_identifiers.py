"""Tests for PUML identifier derivation."""

import pytest

from topicflow.identifiers import FALLBACK_IDENTIFIER, is_valid_identifier, label_to_identifier


class TestLabelToIdentifier:
    """Test label_to_identifier."""

    @pytest.mark.parametrize("label,expected", [
        ("Ready", "READY"),
        ("Awaiting approval", "AWAITING_APPROVAL"),
        ("  padded   label ", "PADDED_LABEL"),
        ("Pending (manual)", "PENDING_MANUAL"),
        ("2nd try", "_2ND_TRY"),
        ("already_snake", "ALREADY_SNAKE"),
    ])
    def test_derivation(self, label, expected):
        assert label_to_identifier(label) == expected

    @pytest.mark.parametrize("label", ["", "   ", None, "!!!", "@#$%"])
    def test_fallback_never_empty(self, label):
        assert label_to_identifier(label) == FALLBACK_IDENTIFIER

    def test_not_injective(self):
        """Different labels may collide; collisions are reported by validation."""
        assert label_to_identifier("Ready!") == label_to_identifier("Ready")


class TestIsValidIdentifier:
    """Test enum naming check."""

    @pytest.mark.parametrize("value", ["I", "pacs_008", "R1", "MSG_TYPE"])
    def test_valid(self, value):
        assert is_valid_identifier(value)

    @pytest.mark.parametrize("value", ["", None, "1abc", "_leading", "with space", "pacs.008", "a-b"])
    def test_invalid(self, value):
        assert not is_valid_identifier(value)

    def test_derived_leading_digit_is_malformed(self):
        assert not is_valid_identifier(label_to_identifier("2nd try"))
