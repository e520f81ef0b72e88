"""
Reusable field validators for Pydantic models and the formula encoder.

Every validator returns its input unchanged when valid and raises
InvalidSpecError (a ValueError, so Pydantic reports it as a
ValidationError) when not.
"""

import re
from typing import List

from tally_xml_client.exceptions import InvalidSpecError


# TDL method reference: $Name, $Parent, $LedgerEntries.Amount
_FIELD_PATH_RE = re.compile(r'^\$[A-Za-z_][A-Za-z0-9_.]*$')

# Formula names are referenced verbatim from <FILTER>; keep them identifier-like
_FORMULA_NAME_RE = re.compile(r'^[A-Za-z][A-Za-z0-9_]*$')

_TAG_NAME_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_.\-]*$')

# Characters outside the XML 1.0 Char production cannot be serialized at all
_XML_INVALID_CHARS_RE = re.compile(
    '[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]'
)


def validate_non_empty(value: str) -> str:
    """
    Validate that a string has visible content.

    Example:
        >>> validate_non_empty('Collection')
        'Collection'
        >>> validate_non_empty('   ')  # Raises InvalidSpecError
    """
    if value is None or not str(value).strip():
        raise InvalidSpecError("Value must be a non-empty string")
    return value


def validate_field_path(field_path: str) -> str:
    """
    Validate a TDL method reference used on the left side of a formula.

    Args:
        field_path: Method reference such as '$Name' or '$Parent'

    Returns:
        The validated field path (unchanged if valid)

    Raises:
        InvalidSpecError: If the path does not start with '$' or contains
            characters that would change the meaning of the formula

    Example:
        >>> validate_field_path('$Name')
        '$Name'
        >>> validate_field_path('Name')  # Raises InvalidSpecError
    """
    if not field_path or not _FIELD_PATH_RE.match(field_path):
        raise InvalidSpecError(
            f"Field path must be a TDL method reference, got: '{field_path}'\n"
            f"Example: '$Name'"
        )
    return field_path


def validate_formula_name(name: str) -> str:
    """
    Validate a formula name referenced by <FILTER>.

    Example:
        >>> validate_formula_name('SearchFilter')
        'SearchFilter'
        >>> validate_formula_name('Search Filter')  # Raises InvalidSpecError
    """
    if not name or not _FORMULA_NAME_RE.match(name):
        raise InvalidSpecError(
            f"Formula name must start with a letter and contain only letters, "
            f"digits or underscores, got: '{name}'"
        )
    return name


def validate_tag_name(name: str) -> str:
    """
    Validate a name that becomes an XML element name (static variables).

    Example:
        >>> validate_tag_name('SVFROMDATE')
        'SVFROMDATE'
    """
    if not name or not _TAG_NAME_RE.match(name):
        raise InvalidSpecError(f"Not a valid element name: '{name}'")
    return name


def validate_xml_text(value: str) -> str:
    """
    Validate that a string can be embedded as XML text.

    Raises:
        InvalidSpecError: If the string contains control characters that
            XML 1.0 cannot represent
    """
    match = _XML_INVALID_CHARS_RE.search(value)
    if match:
        raise InvalidSpecError(
            f"Value contains a character that cannot appear in XML: "
            f"{match.group()!r} at position {match.start()}"
        )
    return value


def validate_single_line(value: str) -> str:
    """Validate XML-safe text without line breaks (formula literals)."""
    if '\n' in value or '\r' in value:
        raise InvalidSpecError("Filter literal must be a single line")
    return validate_xml_text(value)


def validate_unique_names(names: List[str]) -> List[str]:
    """
    Validate that names in an ordered list are unique.

    Raises:
        InvalidSpecError: Listing every duplicated name
    """
    seen = set()
    duplicates = []
    for name in names:
        if name in seen and name not in duplicates:
            duplicates.append(name)
        seen.add(name)

    if duplicates:
        raise InvalidSpecError(f"Duplicate names: {duplicates}")

    return names


def validate_dialect_name(name: str) -> str:
    """
    Validate a formula dialect name against the registered strategies.

    Example:
        >>> validate_dialect_name('instr')
        'instr'
        >>> validate_dialect_name('regex')  # Raises InvalidSpecError
    """
    from tally_xml_client.formulas.dialects import DIALECTS

    if name not in DIALECTS:
        raise InvalidSpecError(
            f"Unknown filter dialect: '{name}'\n"
            f"Valid dialects: {sorted(DIALECTS)}"
        )
    return name
