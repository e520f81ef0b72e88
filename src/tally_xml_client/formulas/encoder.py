"""
Filter formula encoding.

Turns logical predicates into TDL formula text. Validation is eager: a bad
field path or literal raises InvalidSpecError here, before an envelope is
built or a request is sent.
"""

from typing import TYPE_CHECKING, Optional, Union
import logging

from tally_xml_client.exceptions import InvalidSpecError
from tally_xml_client.formulas.dialects import (
    DEFAULT_DIALECT,
    FormulaDialect,
    InStrDialect,
    get_dialect,
)
from tally_xml_client.types import FilterOperator
from tally_xml_client.validators import validate_field_path, validate_single_line

if TYPE_CHECKING:
    from tally_xml_client.models.requests import FilterClause


logger = logging.getLogger(__name__)

DialectLike = Union[FormulaDialect, str, None]

_INSTR = InStrDialect()


def resolve_dialect(dialect: DialectLike = None) -> FormulaDialect:
    """
    Resolve a dialect argument to a strategy instance.

    Args:
        dialect: A FormulaDialect, a registered dialect name, or None for
            the default dialect

    Returns:
        FormulaDialect instance
    """
    if dialect is None:
        return get_dialect(DEFAULT_DIALECT)
    if isinstance(dialect, FormulaDialect):
        return dialect
    return get_dialect(dialect)


def _check_literal(literal: str) -> str:
    if not isinstance(literal, str):
        raise InvalidSpecError(
            f"Filter literal must be a string, got {type(literal).__name__}"
        )
    return validate_single_line(literal)


def encode_contains(field_path: str, literal: str, dialect: DialectLike = None) -> str:
    """
    Encode "field contains literal" in the given dialect.

    Args:
        field_path: TDL method reference, e.g. '$Name'
        literal: Text to search for; quotes are handled by the dialect
        dialect: Dialect instance or name; None selects the default

    Returns:
        Formula expression text

    Raises:
        InvalidSpecError: Invalid field path, multi-line literal, or
            unknown dialect

    Example:
        >>> encode_contains('$Name', 'Meril')
        '$Name Contains "Meril"'
        >>> encode_contains('$Name', 'Meril', 'string_contains')
        '$$StringContains:$Name:"Meril"'
        >>> encode_contains('$Name', 'Meril', 'instr')
        '$$InStr:$Name:"Meril" > 0'
    """
    validate_field_path(field_path)
    _check_literal(literal)
    strategy = resolve_dialect(dialect)

    formula = strategy.contains(field_path, literal)
    logger.debug(f"Encoded contains filter with {strategy.name}: {formula}")
    return formula


def encode_instr(field_path: str, literal: str) -> str:
    """Encode "index of literal in field > 0" independent of the selected dialect."""
    validate_field_path(field_path)
    _check_literal(literal)
    return _INSTR.contains(field_path, literal)


def encode_equals(field_path: str, literal: str) -> str:
    """
    Encode "field equals literal".

    Example:
        >>> encode_equals('$Parent', 'Sundry Debtors')
        '$Parent = "Sundry Debtors"'
    """
    validate_field_path(field_path)
    _check_literal(literal)
    return f"{field_path} = {_INSTR.quote_literal(literal)}"


def encode_clause(clause: "FilterClause", dialect: DialectLike = None) -> str:
    """
    Encode a FilterClause according to its operator.

    CONTAINS goes through the selected dialect; the other operators have a
    single accepted form.

    Raises:
        InvalidSpecError: If the operator is not supported
    """
    operator = FilterOperator(clause.operator)

    if operator is FilterOperator.CONTAINS:
        return encode_contains(clause.field_path, clause.literal, dialect)
    if operator is FilterOperator.INSTR_GREATER_ZERO:
        return encode_instr(clause.field_path, clause.literal)
    if operator is FilterOperator.EQUALS:
        return encode_equals(clause.field_path, clause.literal)

    raise InvalidSpecError(f"Unsupported filter operator: {operator}")
