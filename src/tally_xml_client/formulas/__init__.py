"""
TDL filter formula encoding.

- Pluggable "contains" dialects (string builtin, infix keyword, index-of)
- One literal quoting rule shared by every dialect
- Eager validation of field paths and literals
"""

from .dialects import (
    FormulaDialect,
    StringContainsDialect,
    InfixContainsDialect,
    InStrDialect,
    DIALECTS,
    DEFAULT_DIALECT,
    DEFAULT_CANDIDATES,
    get_dialect,
    register_dialect,
)
from .encoder import (
    encode_contains,
    encode_instr,
    encode_equals,
    encode_clause,
    resolve_dialect,
)

__all__ = [
    # Dialect strategies
    'FormulaDialect',
    'StringContainsDialect',
    'InfixContainsDialect',
    'InStrDialect',
    'DIALECTS',
    'DEFAULT_DIALECT',
    'DEFAULT_CANDIDATES',
    'get_dialect',
    'register_dialect',
    # Encoding
    'encode_contains',
    'encode_instr',
    'encode_equals',
    'encode_clause',
    'resolve_dialect',
]
