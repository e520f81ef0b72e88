"""
Unit tests for protocol-level error detection.
"""

import pytest


class TestFindLineError:
    """Test suite for find_line_error()."""

    def test_returns_line_error_text(self):
        from tally_xml_client.parsers import find_line_error

        text = '<RESPONSE><LINEERROR> Could not find Report &apos;X&apos; </LINEERROR></RESPONSE>'

        assert find_line_error(text) == "Could not find Report 'X'"

    def test_status_other_than_one(self):
        from tally_xml_client.parsers import find_line_error

        text = '<ENVELOPE><HEADER><VERSION>1</VERSION><STATUS>0</STATUS></HEADER></ENVELOPE>'

        assert find_line_error(text) == 'Tally returned STATUS 0'

    def test_success_status(self):
        from tally_xml_client.parsers import find_line_error

        text = '<ENVELOPE><HEADER><STATUS>1</STATUS></HEADER><BODY/></ENVELOPE>'

        assert find_line_error(text) is None

    def test_missing_status_is_success(self):
        from tally_xml_client.parsers import find_line_error

        assert find_line_error('<ENVELOPE><BODY><DATA/></BODY></ENVELOPE>') is None
        assert find_line_error('') is None

    def test_status_outside_header_is_ignored(self):
        from tally_xml_client.parsers import find_status

        text = '<ENVELOPE><HEADER/><BODY><STATUS>Active</STATUS></BODY></ENVELOPE>'

        assert find_status(text) is None


class TestCheckResponse:
    """Test suite for check_response()."""

    def test_passes_through_success(self):
        from tally_xml_client.parsers import check_response

        text = '<ENVELOPE><HEADER><STATUS>1</STATUS></HEADER></ENVELOPE>'

        assert check_response(text) == text

    def test_raises_with_context(self):
        from tally_xml_client.parsers import check_response
        from tally_xml_client.exceptions import RemoteRejectedError

        text = '<RESPONSE><LINEERROR>Unknown formula</LINEERROR></RESPONSE>'

        with pytest.raises(RemoteRejectedError, match="Unknown formula") as exc_info:
            check_response(text, endpoint='http://localhost:9000')

        assert exc_info.value.endpoint == 'http://localhost:9000'
        assert exc_info.value.response_body == text
