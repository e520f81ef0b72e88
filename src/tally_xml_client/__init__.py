"""
tally-xml-client: Tally ERP XML export protocol client.

Main package exports for user-facing API.
"""

from typing import Optional

from tally_xml_client.config import TallyConfig, get_config, load_config
from tally_xml_client.envelope import build_envelope, build_request_envelope
from tally_xml_client.exceptions import (
    TallyError,
    InvalidSpecError,
    TransportError,
    TransportTimeout,
    ConnectionFailed,
    RemoteRejectedError,
    OrphanFormulaWarning,
)
from tally_xml_client.formulas import encode_contains, get_dialect
from tally_xml_client.models import (
    FilterClause,
    RequestSpec,
    HeaderSpec,
    BodySpec,
    CollectionSpec,
    DataSpec,
    RecordPattern,
    ResponseRecord,
    LedgerMatch,
    DialectAttempt,
)
from tally_xml_client.parsers import extract_records, check_response
from tally_xml_client.services import TallyClient
from tally_xml_client.transport import TallyTransport, send
from tally_xml_client.types import RequestKind, TargetType, FilterOperator, FilterDialects

__all__ = [
    # Client
    'TallyClient',
    'TallyConfig',
    'get_config',
    'load_config',
    # Protocol
    'build_envelope',
    'build_request_envelope',
    'encode_contains',
    'get_dialect',
    'send',
    'TallyTransport',
    'extract_records',
    'check_response',
    # Models
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
    'RequestKind',
    'TargetType',
    'FilterOperator',
    'FilterDialects',
    # Errors
    'TallyError',
    'InvalidSpecError',
    'TransportError',
    'TransportTimeout',
    'ConnectionFailed',
    'RemoteRejectedError',
    'OrphanFormulaWarning',
    'create_client',
]


def create_client(config_path: Optional[str] = None) -> TallyClient:
    """
    Create a TallyClient from environment settings or a YAML file.

    Args:
        config_path: Optional YAML config file; environment/.env otherwise

    Returns:
        TallyClient instance

    Example:
        >>> from tally_xml_client import create_client
        >>> with create_client() as client:
        ...     print(client.list_companies())
        ['Acme Pvt Ltd', 'Beta LLP']
    """
    config = load_config(config_path) if config_path else get_config()
    return TallyClient(config)
