"""
Tally Client Service

High-level queries against a running Tally instance, composed from the
protocol pieces:

    RequestSpec -> build_request_envelope -> TallyTransport.send
               -> check_response -> extract_records

Configuration is read once at construction (TallyConfig) and passed down as
plain values; none of the protocol functions read settings themselves.
"""

from typing import Any, Iterable, List, Optional
import logging

from pydantic import ValidationError

from tally_xml_client.config import TallyConfig, get_config
from tally_xml_client.envelope.builder import build_request_envelope
from tally_xml_client.exceptions import (
    InvalidSpecError,
    RemoteRejectedError,
    TransportError,
)
from tally_xml_client.formulas.dialects import DEFAULT_CANDIDATES, get_dialect
from tally_xml_client.formulas.encoder import DialectLike
from tally_xml_client.models.records import (
    DialectAttempt,
    LedgerMatch,
    RecordPattern,
    ResponseRecord,
)
from tally_xml_client.models.requests import RequestSpec
from tally_xml_client.parsers.extractor import extract_records
from tally_xml_client.parsers.status import check_response
from tally_xml_client.transport.http import TallyTransport
from tally_xml_client.types import FilterOperator, TargetType
from tally_xml_client.validators import validate_non_empty


logger = logging.getLogger(__name__)

COMPANY_COLLECTION = "CompanyList"
LEDGER_SEARCH_COLLECTION = "LedgerSearch"
LEDGER_LIST_COLLECTION = "LedgerList"
LEDGER_SEARCH_FILTER = "LedgerSearchFilter"

# Tally emits the name either as a sub-element or as an attribute on the
# entity tag depending on release, so both are read
COMPANY_PATTERN = RecordPattern(
    entity_tag='COMPANY',
    field_tags=('NAME',),
    attribute_fields=('NAME',),
)
LEDGER_PATTERN = RecordPattern(
    entity_tag='LEDGER',
    field_tags=('NAME', 'PARENT'),
    attribute_fields=('NAME',),
)


def _build_spec(**fields: Any) -> RequestSpec:
    """Construct a RequestSpec, reporting validation failures as InvalidSpecError."""
    try:
        return RequestSpec(**fields)
    except ValidationError as e:
        raise InvalidSpecError(f"Invalid request: {e}") from e


def _to_ledger(record: ResponseRecord) -> LedgerMatch:
    return LedgerMatch(name=record['NAME'], parent=record.get('PARENT') or None)


class TallyClient:
    """
    Query facade for a Tally instance with its HTTP server enabled.

    Usage:
        # Settings from TALLY_* environment variables / .env
        with TallyClient() as client:
            companies = client.list_companies()
            matches = client.search_ledgers("Meril")

        # Explicit settings
        config = TallyConfig(host="192.168.1.20", filter_dialect="instr")
        client = TallyClient(config)

    Errors:
        InvalidSpecError: Malformed query, raised before any network call
        TransportTimeout / ConnectionFailed: Tally unreachable or too slow
        RemoteRejectedError: Tally answered with LINEERROR or STATUS != 1
    """

    def __init__(
        self,
        config: Optional[TallyConfig] = None,
        transport: Optional[TallyTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            config: Settings; defaults to the global get_config() instance
            transport: Transport to send envelopes with; defaults to a new
                TallyTransport using config.timeout_seconds
        """
        self.config = config or get_config()
        self.transport = transport or TallyTransport(timeout_seconds=self.config.timeout_seconds)

    def __enter__(self) -> "TallyClient":
        self.transport.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """Release pooled connections."""
        self.transport.close()

    @property
    def endpoint(self) -> str:
        return self.config.endpoint

    def _resolve_limit(self, limit: Optional[int]) -> int:
        return self.config.preview_limit if limit is None else limit

    def _ledger_search_spec(self, term: str) -> RequestSpec:
        """Ledger collection with one Contains filter on $Name."""
        try:
            validate_non_empty(term)
        except InvalidSpecError as e:
            raise InvalidSpecError("Search term must be a non-empty string") from e

        return _build_spec(
            target_id=LEDGER_SEARCH_COLLECTION,
            company_context=self.config.company_name,
            entity_type='Ledger',
            native_methods=['Name', 'Parent'],
            filters=[{
                'name': LEDGER_SEARCH_FILTER,
                'field_path': '$Name',
                'operator': FilterOperator.CONTAINS,
                'literal': term,
            }],
        )

    def _export(
        self,
        spec: RequestSpec,
        pattern: RecordPattern,
        limit: Optional[int],
        dialect: DialectLike = None,
    ) -> List[ResponseRecord]:
        """Build, send, check and extract one request."""
        envelope = build_request_envelope(spec, dialect or self.config.filter_dialect)
        response_text = self.transport.send(
            envelope,
            self.endpoint,
            timeout=self.config.timeout_seconds,
            request_kind=spec.request_kind.value,
        )
        check_response(response_text, endpoint=self.endpoint)
        records = extract_records(response_text, pattern, limit=limit)

        logger.info(f"{spec.target_id}: {len(records)} record(s) from {self.endpoint}")
        return records

    def list_companies(self, limit: Optional[int] = None) -> List[str]:
        """
        List companies loaded in Tally.

        Args:
            limit: Maximum number of names; None uses config.preview_limit

        Returns:
            Company names in Tally's order

        Example:
            >>> client.list_companies(limit=3)
            ['Acme Pvt Ltd', 'Beta LLP']
        """
        spec = _build_spec(
            target_id=COMPANY_COLLECTION,
            entity_type='Company',
            native_methods=['Name'],
        )
        records = self._export(spec, COMPANY_PATTERN, self._resolve_limit(limit))
        return [record['NAME'] for record in records]

    def search_ledgers(
        self,
        term: str,
        limit: Optional[int] = None,
        dialect: DialectLike = None,
    ) -> List[LedgerMatch]:
        """
        Find ledgers whose name contains `term`.

        Args:
            term: Search text; quotes and apostrophes are allowed
            limit: Maximum number of matches; None uses config.preview_limit
            dialect: Formula dialect override; None uses config.filter_dialect

        Returns:
            List of LedgerMatch (empty when nothing matches)

        Raises:
            InvalidSpecError: If term is empty or multi-line

        Example:
            >>> client.search_ledgers("Meril")
            [LedgerMatch(name='Meril Life Sciences', parent='Sundry Debtors')]
        """
        spec = self._ledger_search_spec(term)
        records = self._export(spec, LEDGER_PATTERN, self._resolve_limit(limit), dialect)
        return [_to_ledger(record) for record in records if "NAME" in record]

    def list_ledgers(self, group: Optional[str] = None, limit: Optional[int] = None) -> List[LedgerMatch]:
        """
        List ledgers, optionally only those directly under a group.

        Args:
            group: Ledger group name (e.g. 'Sundry Debtors'), sent as CHILDOF
            limit: Maximum number of ledgers; None uses config.preview_limit
        """
        spec = _build_spec(
            target_id=LEDGER_LIST_COLLECTION,
            company_context=self.config.company_name,
            entity_type='Ledger',
            native_methods=['Name', 'Parent'],
            child_of=group,
        )
        records = self._export(spec, LEDGER_PATTERN, self._resolve_limit(limit))
        return [_to_ledger(record) for record in records if "NAME" in record]

    def get_ledger(self, name: str) -> Optional[LedgerMatch]:
        """
        Export one ledger master by exact name.

        Sends an Object request (HEADER/TYPE 'Object', ID 'Ledger') with the
        ledger named in a DATA directive instead of defining a collection.

        Args:
            name: Exact ledger name

        Returns:
            LedgerMatch, or None when Tally returns no LEDGER element

        Example:
            >>> client.get_ledger("Meril Life Sciences")
            LedgerMatch(name='Meril Life Sciences', parent='Sundry Debtors')
        """
        try:
            validate_non_empty(name)
        except InvalidSpecError as e:
            raise InvalidSpecError("Ledger name must be a non-empty string") from e

        spec = _build_spec(
            target_type=TargetType.OBJECT.value,
            target_id='Ledger',
            company_context=self.config.company_name,
            data={'object_tag': 'LEDGER', 'object_name': name},
        )
        records = self._export(spec, LEDGER_PATTERN, limit=1)
        return _to_ledger(records[0]) if records and "NAME" in records[0] else None

    def probe_filter_dialects(
        self,
        term: str,
        candidates: Optional[Iterable[str]] = None,
        limit: Optional[int] = None,
    ) -> List[DialectAttempt]:
        """
        Find a formula dialect this Tally instance evaluates.

        Runs the same ledger search with each candidate dialect in order and
        stops at the first one that returns at least one record. A candidate
        Tally rejects (LINEERROR / STATUS) is recorded as failed and the
        next one is tried.

        Args:
            term: A search term known to match at least one ledger
            candidates: Dialect names in trial order; defaults to
                DEFAULT_CANDIDATES
            limit: Records kept per attempt; None uses config.preview_limit

        Returns:
            One DialectAttempt per candidate tried; the last one has
            succeeded=True if any dialect worked

        Raises:
            InvalidSpecError: Unknown candidate name (checked before sending)
            TransportError: Tally unreachable; the probe is aborted

        Example:
            >>> attempts = client.probe_filter_dialects("Meril")
            >>> [(a.dialect, a.succeeded) for a in attempts]
            [('infix_contains', False), ('string_contains', True)]
        """
        names = list(candidates) if candidates is not None else list(DEFAULT_CANDIDATES)
        if not names:
            raise InvalidSpecError("At least one candidate dialect is required")
        for name in names:
            get_dialect(name)
        spec = self._ledger_search_spec(term)

        attempts: List[DialectAttempt] = []
        for name in names:
            try:
                records = self._export(spec, LEDGER_PATTERN, self._resolve_limit(limit), name)
            except RemoteRejectedError as e:
                logger.warning(f"Dialect '{name}' rejected by Tally: {e}")
                attempts.append(DialectAttempt(dialect=name, succeeded=False, error=str(e)))
                continue

            attempt = DialectAttempt(
                dialect=name,
                succeeded=bool(records),
                record_count=len(records),
                records=records,
            )
            attempts.append(attempt)

            if attempt.succeeded:
                logger.info(f"Dialect '{name}' matched {len(records)} ledger(s) for '{term}'")
                break
            logger.warning(f"Dialect '{name}' returned no ledgers for '{term}'")

        return attempts

    def is_reachable(self) -> bool:
        """
        Check whether Tally answers on the configured endpoint.

        Returns:
            True if Tally responded (even with a rejection), False on
            TransportError
        """
        try:
            self.list_companies(limit=1)
        except TransportError as e:
            logger.info(f"Tally not reachable: {e}")
            return False
        except RemoteRejectedError:
            return True
        return True
