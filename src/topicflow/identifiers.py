"""Identifier derivation for PlantUML state aliases."""

import re

FALLBACK_IDENTIFIER = "STATE"

# Java enum naming: starts with a letter, then letters, digits or underscores
IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")

_DISALLOWED_CHARS = re.compile(r"[^a-zA-Z0-9_\s]")
_WHITESPACE_RUN = re.compile(r"\s+")
_LEADING_DIGIT = re.compile(r"^(\d)")


def label_to_identifier(label: str | None) -> str:
    """Convert a free-text state label into an upper-case PUML identifier.

    Special characters are dropped, whitespace runs become single
    underscores and a leading digit is prefixed with an underscore.

    Examples:
        >>> label_to_identifier("Awaiting approval")
        'AWAITING_APPROVAL'
        >>> label_to_identifier("2nd try!")
        '_2ND_TRY'
        >>> label_to_identifier("!!!")
        'STATE'

    The mapping is not injective; colliding labels are reported by
    validation, not here.
    """
    if not label or not label.strip():
        return FALLBACK_IDENTIFIER

    identifier = _DISALLOWED_CHARS.sub("", label.strip())
    identifier = _WHITESPACE_RUN.sub("_", identifier)
    identifier = _LEADING_DIGIT.sub(r"_\1", identifier)
    return identifier.upper() or FALLBACK_IDENTIFIER


def is_valid_identifier(value: str | None) -> bool:
    """Check a value against the enum naming convention."""
    if not value:
        return False
    return IDENTIFIER_PATTERN.match(value) is not None
