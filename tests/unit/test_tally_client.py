"""
Unit tests for TallyClient.

Every request goes through a real TallyTransport backed by
httpx.MockTransport, so envelopes are built, posted and parsed exactly as
they would be against Tally.
"""

import httpx
import pytest
from lxml import etree


COMPANY_RESPONSE = """<ENVELOPE>
 <HEADER><VERSION>1</VERSION><STATUS>1</STATUS></HEADER>
 <BODY><DATA><COLLECTION>
  <COMPANY NAME="Acme Pvt Ltd"><NAME>Acme Pvt Ltd</NAME></COMPANY>
  <COMPANY NAME="Beta LLP"><NAME>Beta LLP</NAME></COMPANY>
 </COLLECTION></DATA></BODY>
</ENVELOPE>"""

LEDGER_RESPONSE = """<ENVELOPE>
 <HEADER><VERSION>1</VERSION><STATUS>1</STATUS></HEADER>
 <BODY><DATA><COLLECTION>
  <LEDGER NAME="Meril Life Sciences" RESERVEDNAME="">
   <NAME.LIST TYPE="String"><NAME>Meril Life Sciences</NAME></NAME.LIST>
   <PARENT TYPE="String">Sundry Debtors</PARENT>
  </LEDGER>
  <LEDGER NAME="Meril Diagnostics" RESERVEDNAME="">
   <NAME.LIST TYPE="String"><NAME>Meril Diagnostics</NAME></NAME.LIST>
   <PARENT TYPE="String">Sundry Debtors</PARENT>
  </LEDGER>
 </COLLECTION></DATA></BODY>
</ENVELOPE>"""

EMPTY_COLLECTION_RESPONSE = """<ENVELOPE>
 <HEADER><VERSION>1</VERSION><STATUS>1</STATUS></HEADER>
 <BODY><DATA><COLLECTION></COLLECTION></DATA></BODY>
</ENVELOPE>"""

LINE_ERROR_RESPONSE = """<RESPONSE>
 <LINEERROR>Could not evaluate formula: LedgerSearchFilter</LINEERROR>
</RESPONSE>"""


def request_xml(request: httpx.Request) -> etree._Element:
    return etree.fromstring(request.content)


@pytest.fixture
def make_client(make_http_client):
    """Build a TallyClient answering every request with `handler`."""
    from tally_xml_client import TallyClient, TallyConfig, TallyTransport

    def factory(handler, **config_values):
        config = TallyConfig(host='tally.test', **config_values)
        transport = TallyTransport(client=make_http_client(handler))
        return TallyClient(config=config, transport=transport)

    return factory


class TestListCompanies:
    """Test suite for TallyClient.list_companies()."""

    def test_returns_names(self, make_client, recorded_requests):
        client = make_client(lambda request: httpx.Response(200, text=COMPANY_RESPONSE))

        assert client.list_companies() == ['Acme Pvt Ltd', 'Beta LLP']

        root = request_xml(recorded_requests[0])
        assert root.findtext('HEADER/ID') == 'CompanyList'
        assert root.findtext('.//COLLECTION/TYPE') == 'Company'

    def test_default_limit_from_config(self, make_client):
        client = make_client(
            lambda request: httpx.Response(200, text=COMPANY_RESPONSE), preview_limit=1
        )

        assert client.list_companies() == ['Acme Pvt Ltd']
        assert client.list_companies(limit=5) == ['Acme Pvt Ltd', 'Beta LLP']

    def test_name_attribute_fallback(self, make_client):
        body = '<ENVELOPE><COMPANY NAME="Gamma &amp; Co"></COMPANY></ENVELOPE>'
        client = make_client(lambda request: httpx.Response(200, text=body))

        assert client.list_companies() == ['Gamma & Co']

    def test_empty_response(self, make_client):
        client = make_client(lambda request: httpx.Response(200, text=EMPTY_COLLECTION_RESPONSE))

        assert client.list_companies() == []


class TestSearchLedgers:
    """Test suite for TallyClient.search_ledgers()."""

    def test_returns_matches_with_parent(self, make_client):
        from tally_xml_client import LedgerMatch

        client = make_client(lambda request: httpx.Response(200, text=LEDGER_RESPONSE))

        assert client.search_ledgers('Meril') == [
            LedgerMatch(name='Meril Life Sciences', parent='Sundry Debtors'),
            LedgerMatch(name='Meril Diagnostics', parent='Sundry Debtors'),
        ]

    def test_envelope_uses_configured_dialect_and_company(self, make_client, recorded_requests):
        client = make_client(
            lambda request: httpx.Response(200, text=LEDGER_RESPONSE),
            filter_dialect='string_contains',
            company_name="O'Brien & Sons",
        )

        client.search_ledgers('Meril')

        root = request_xml(recorded_requests[0])
        assert root.findtext('.//SVCURRENTCOMPANY') == "O'Brien & Sons"
        assert root.findtext('.//COLLECTION/FILTER') == 'LedgerSearchFilter'
        assert root.findtext('.//SYSTEM') == '$$StringContains:$Name:"Meril"'

    def test_dialect_override(self, make_client, recorded_requests):
        client = make_client(lambda request: httpx.Response(200, text=LEDGER_RESPONSE))

        client.search_ledgers('Meril', dialect='instr')

        assert request_xml(recorded_requests[0]).findtext('.//SYSTEM') == '$$InStr:$Name:"Meril" > 0'

    def test_quote_in_term(self, make_client, recorded_requests):
        client = make_client(lambda request: httpx.Response(200, text=EMPTY_COLLECTION_RESPONSE))

        assert client.search_ledgers('5" Pipe') == []

        formula = request_xml(recorded_requests[0]).findtext('.//SYSTEM')
        assert formula == '$Name Contains ("5" + $$StrByCharCode:34 + " Pipe")'

    @pytest.mark.parametrize("term", ['', '   ', 'two\nlines'])
    def test_invalid_term_raises_before_sending(self, make_client, recorded_requests, term):
        from tally_xml_client import InvalidSpecError

        client = make_client(lambda request: httpx.Response(200, text=LEDGER_RESPONSE))

        with pytest.raises(InvalidSpecError):
            client.search_ledgers(term)

        assert recorded_requests == []

    def test_line_error_raises_remote_rejected(self, make_client):
        from tally_xml_client import RemoteRejectedError

        client = make_client(lambda request: httpx.Response(200, text=LINE_ERROR_RESPONSE))

        with pytest.raises(RemoteRejectedError, match="LedgerSearchFilter"):
            client.search_ledgers('Meril')


class TestListLedgers:
    """Test suite for TallyClient.list_ledgers()."""

    def test_group_becomes_child_of(self, make_client, recorded_requests):
        client = make_client(lambda request: httpx.Response(200, text=LEDGER_RESPONSE))

        ledgers = client.list_ledgers(group='Sundry Debtors', limit=10)

        assert len(ledgers) == 2
        root = request_xml(recorded_requests[0])
        assert root.findtext('.//COLLECTION/CHILDOF') == 'Sundry Debtors'
        assert root.find('.//COLLECTION/FILTER') is None
        assert root.find('.//SYSTEM') is None

    def test_without_group(self, make_client, recorded_requests):
        client = make_client(lambda request: httpx.Response(200, text=LEDGER_RESPONSE))

        client.list_ledgers()

        assert request_xml(recorded_requests[0]).find('.//CHILDOF') is None


class TestGetLedger:
    """Test suite for TallyClient.get_ledger()."""

    OBJECT_RESPONSE = """<ENVELOPE>
 <HEADER><VERSION>1</VERSION><STATUS>1</STATUS></HEADER>
 <BODY><DESC></DESC><DATA><TALLYMESSAGE>
  <LEDGER NAME="Meril Life Sciences" RESERVEDNAME="">
   <PARENT TYPE="String">Sundry Debtors</PARENT>
   <OPENINGBALANCE>-1500.00</OPENINGBALANCE>
  </LEDGER>
 </TALLYMESSAGE></DATA></BODY>
</ENVELOPE>"""

    def test_sends_object_request(self, make_client, recorded_requests):
        from tally_xml_client import LedgerMatch

        client = make_client(
            lambda request: httpx.Response(200, text=self.OBJECT_RESPONSE),
            company_name='Acme Pvt Ltd',
        )

        assert client.get_ledger('Meril Life Sciences') == LedgerMatch(
            name='Meril Life Sciences', parent='Sundry Debtors'
        )

        root = request_xml(recorded_requests[0])
        assert root.findtext('HEADER/TYPE') == 'Object'
        assert root.findtext('HEADER/ID') == 'Ledger'
        assert root.find('BODY/DATA/TALLYMESSAGE/LEDGER').get('NAME') == 'Meril Life Sciences'
        assert root.findtext('.//SVCURRENTCOMPANY') == 'Acme Pvt Ltd'
        assert root.find('.//TDL') is None

    def test_missing_ledger_returns_none(self, make_client):
        client = make_client(lambda request: httpx.Response(200, text=EMPTY_COLLECTION_RESPONSE))

        assert client.get_ledger('Nobody') is None

    @pytest.mark.parametrize("name", ['', '   ', 'bad\x01name'])
    def test_invalid_name_raises_before_sending(self, make_client, recorded_requests, name):
        from tally_xml_client.exceptions import InvalidSpecError

        client = make_client(lambda request: httpx.Response(200, text=self.OBJECT_RESPONSE))

        with pytest.raises(InvalidSpecError):
            client.get_ledger(name)
        assert recorded_requests == []


class TestProbeFilterDialects:
    """Test suite for TallyClient.probe_filter_dialects()."""

    @staticmethod
    def dialect_sensitive_handler(request):
        formula = request_xml(request).findtext('.//SYSTEM')
        if formula.startswith('$$InStr'):
            return httpx.Response(200, text=LEDGER_RESPONSE)
        if formula.startswith('$$StringContains'):
            return httpx.Response(200, text=EMPTY_COLLECTION_RESPONSE)
        return httpx.Response(200, text=LINE_ERROR_RESPONSE)

    def test_tries_candidates_until_one_returns_records(self, make_client, recorded_requests):
        client = make_client(self.dialect_sensitive_handler)

        attempts = client.probe_filter_dialects('Meril')

        assert [(a.dialect, a.succeeded) for a in attempts] == [
            ('infix_contains', False),
            ('string_contains', False),
            ('instr', True),
        ]
        assert attempts[0].error is not None
        assert attempts[1].error is None
        assert attempts[1].record_count == 0
        assert attempts[2].record_count == 2
        assert attempts[2].records[0]['NAME'] == 'Meril Life Sciences'
        assert len(recorded_requests) == 3

    def test_stops_at_first_success(self, make_client, recorded_requests):
        client = make_client(self.dialect_sensitive_handler)

        attempts = client.probe_filter_dialects('Meril', candidates=['instr', 'string_contains'])

        assert [a.dialect for a in attempts] == ['instr']
        assert len(recorded_requests) == 1

    def test_unknown_candidate_fails_before_sending(self, make_client, recorded_requests):
        from tally_xml_client import InvalidSpecError

        client = make_client(self.dialect_sensitive_handler)

        with pytest.raises(InvalidSpecError, match="Unknown filter dialect"):
            client.probe_filter_dialects('Meril', candidates=['instr', 'regex'])

        assert recorded_requests == []

    def test_transport_error_aborts_probe(self, make_client):
        from tally_xml_client import ConnectionFailed

        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        client = make_client(handler)

        with pytest.raises(ConnectionFailed):
            client.probe_filter_dialects('Meril')


class TestReachability:
    """Test suite for TallyClient.is_reachable() and lifecycle."""

    def test_reachable(self, make_client):
        client = make_client(lambda request: httpx.Response(200, text=COMPANY_RESPONSE))

        assert client.is_reachable() is True

    def test_rejection_still_counts_as_reachable(self, make_client):
        client = make_client(lambda request: httpx.Response(200, text=LINE_ERROR_RESPONSE))

        assert client.is_reachable() is True

    def test_unreachable(self, make_client):
        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        client = make_client(handler)

        assert client.is_reachable() is False

    def test_default_config_from_environment(self, monkeypatch):
        from tally_xml_client import TallyClient

        monkeypatch.setenv('TALLY_HOST', 'tally.office')
        monkeypatch.setenv('TALLY_TIMEOUT_SECONDS', '5')

        with TallyClient() as client:
            assert client.endpoint == 'http://tally.office:9000'
            assert client.transport.timeout_seconds == 5.0
