"""
Formula Dialect Strategies

Tally releases disagree on how a "field contains text" predicate must be
written inside a TDL formula. Three forms have been observed:
- $$StringContains:<field>:<literal>
- <field> Contains <literal>
- $$InStr:<field>:<literal> > 0

Which one a deployment accepts is found out empirically, so the dialect is a
strategy chosen per request rather than a constant.

Design:
- Strategy Pattern: dialects are interchangeable
- All dialects share one literal quoting rule (see FormulaDialect.quote_literal)
- register_dialect adds new dialects without touching the encoder
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Type


# TDL has no escape sequence for '"' inside a string literal. A literal quote
# is spliced in by concatenating this builtin between quoted segments.
QUOTE_CHAR_EXPRESSION = '$$StrByCharCode:34'


class FormulaDialect(ABC):
    """
    Abstract base class for "contains" formula dialects.

    Subclasses set `name` and `description` and implement `contains`.
    """

    name: str = ""
    description: str = ""

    def quote_literal(self, literal: str) -> str:
        """
        Render a literal as a TDL string expression.

        Double quotes delimit TDL strings and cannot be escaped inside them,
        so a literal containing '"' is split on the quote and rebuilt as a
        concatenation with $$StrByCharCode:34. No quoted segment ever
        contains a raw '"'. Apostrophes, ampersands and angle brackets need
        no formula-level escaping; XML escaping is the envelope builder's job.

        Example:
            >>> InfixContainsDialect().quote_literal("O'Brien")
            '"O\\'Brien"'
            >>> InfixContainsDialect().quote_literal('5" Pipe')
            '("5" + $$StrByCharCode:34 + " Pipe")'
        """
        if '"' not in literal:
            return f'"{literal}"'

        segments = [f'"{segment}"' for segment in literal.split('"')]
        return '(' + f' + {QUOTE_CHAR_EXPRESSION} + '.join(segments) + ')'

    @abstractmethod
    def contains(self, field_path: str, literal: str) -> str:
        """
        Build a formula equivalent to "field contains literal".

        Args:
            field_path: Validated TDL method reference (e.g. '$Name')
            literal: Raw search text, not yet quoted

        Returns:
            Formula expression text
        """
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


DIALECTS: Dict[str, FormulaDialect] = {}


def register_dialect(name: str) -> Callable[[Type[FormulaDialect]], Type[FormulaDialect]]:
    """
    Class decorator that registers a dialect under a configuration name.

    Example:
        >>> @register_dialect("starts_with")
        ... class StartsWithDialect(FormulaDialect):
        ...     def contains(self, field_path, literal): ...
    """
    def decorator(cls: Type[FormulaDialect]) -> Type[FormulaDialect]:
        cls.name = name
        DIALECTS[name] = cls()
        return cls
    return decorator


@register_dialect("string_contains")
class StringContainsDialect(FormulaDialect):
    """String-containment builtin taking field and literal."""

    description = "$$StringContains:<field>:<literal>"

    def contains(self, field_path: str, literal: str) -> str:
        return f"$$StringContains:{field_path}:{self.quote_literal(literal)}"


@register_dialect("infix_contains")
class InfixContainsDialect(FormulaDialect):
    """Infix CONTAINS keyword. Used by the ledger search in production."""

    description = "<field> Contains <literal>"

    def contains(self, field_path: str, literal: str) -> str:
        return f"{field_path} Contains {self.quote_literal(literal)}"


@register_dialect("instr")
class InStrDialect(FormulaDialect):
    """Index-of-substring builtin compared against zero."""

    description = "$$InStr:<field>:<literal> > 0"

    def contains(self, field_path: str, literal: str) -> str:
        return f"$$InStr:{field_path}:{self.quote_literal(literal)} > 0"


DEFAULT_DIALECT = "infix_contains"

# Order used by TallyClient.probe_filter_dialects when no candidates are given
DEFAULT_CANDIDATES: List[str] = ["infix_contains", "string_contains", "instr"]


def get_dialect(name: str) -> FormulaDialect:
    """
    Look up a registered dialect by name.

    Raises:
        InvalidSpecError: If no dialect is registered under name
    """
    from tally_xml_client.validators import validate_dialect_name

    return DIALECTS[validate_dialect_name(name)]
