"""
Pydantic models and result types.

Request models validate eagerly so a malformed request never reaches the
network; record types carry extracted response data back to callers.
"""

from tally_xml_client.models.requests import (
    FilterClause,
    RequestSpec,
    HeaderSpec,
    BodySpec,
    CollectionSpec,
    DataSpec,
)
from tally_xml_client.models.records import (
    RecordPattern,
    ResponseRecord,
    LedgerMatch,
    DialectAttempt,
)

__all__ = [
    'FilterClause',
    'RequestSpec',
    'HeaderSpec',
    'BodySpec',
    'CollectionSpec',
    'DataSpec',
    'RecordPattern',
    'ResponseRecord',
    'LedgerMatch',
    'DialectAttempt',
]
