"""
Protocol enumerations and discovery helpers.

Enumerations mirror the literal values Tally expects in the envelope
(TALLYREQUEST, TYPE) so they can be serialized with `.value` directly.
"""

from enum import Enum
from typing import Dict


class RequestKind(str, Enum):
    """TALLYREQUEST values accepted by the Tally HTTP server."""
    EXPORT = "Export"
    IMPORT = "Import"
    EXECUTE = "Execute"


class TargetType(str, Enum):
    """HEADER/TYPE values observed against Tally."""
    COLLECTION = "Collection"
    DATA = "Data"
    OBJECT = "Object"


class FilterOperator(str, Enum):
    """
    Logical predicates a FilterClause can express.

    CONTAINS is rendered through the configured formula dialect, since the
    accepted "contains" syntax differs between Tally releases.
    INSTR_GREATER_ZERO always uses the index-of builtin.
    EQUALS is a plain equality comparison.
    """
    CONTAINS = "Contains"
    INSTR_GREATER_ZERO = "InStrGreaterZero"
    EQUALS = "Equals"


class FilterDialects:
    """
    Helper class for discovering the registered formula dialects.

    Example:
        >>> FilterDialects.list_available()
        {'string_contains': '$$StringContains:<field>:<literal>', ...}

        >>> FilterDialects.is_valid('infix_contains')
        True
    """

    @staticmethod
    def list_available() -> Dict[str, str]:
        """
        List registered dialect names with a short syntax description.

        Returns:
            Dictionary mapping dialect name to its formula template
        """
        from tally_xml_client.formulas.dialects import DIALECTS
        return {name: dialect.description for name, dialect in DIALECTS.items()}

    @staticmethod
    def get_description(name: str) -> str:
        """
        Get the syntax description for a dialect.

        Raises:
            ValueError: If name is not a registered dialect
        """
        available = FilterDialects.list_available()
        if name not in available:
            raise ValueError(f"Unknown filter dialect: {name}")
        return available[name]

    @staticmethod
    def is_valid(name: str) -> bool:
        """Check if a dialect name is registered."""
        return name in FilterDialects.list_available()
