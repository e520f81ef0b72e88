"""
Protocol-level error detection in Tally responses.

Tally answers rejected requests with HTTP 200 and reports the problem in
the body instead: a <LINEERROR> element, or <STATUS> other than 1 in the
response HEADER. A response without STATUS is treated as success.
"""

from typing import Optional
import logging

from tally_xml_client.exceptions import RemoteRejectedError
from tally_xml_client.parsers.extractor import locate_region, scan_fields


logger = logging.getLogger(__name__)

SUCCESS_STATUS = '1'


def find_status(response_text: str) -> Optional[str]:
    """Return the <STATUS> value from the response HEADER, or None."""
    region = locate_region(response_text, 'HEADER')
    if region is None:
        return None
    start, end = region
    return scan_fields(response_text, start, end, ('STATUS',)).get('STATUS')


def find_line_error(response_text: str) -> Optional[str]:
    """
    Find the error Tally reported in a response, if any.

    Returns:
        The first <LINEERROR> text; otherwise a generic message when HEADER
        carries a STATUS other than 1; otherwise None

    Example:
        >>> find_line_error('<RESPONSE><LINEERROR>Could not find Report</LINEERROR></RESPONSE>')
        'Could not find Report'
    """
    line_error = scan_fields(response_text, 0, len(response_text), ('LINEERROR',)).get('LINEERROR')
    if line_error is not None:
        return line_error or 'Tally reported an empty LINEERROR'

    status = find_status(response_text)
    if status is not None and status != SUCCESS_STATUS:
        return f"Tally returned STATUS {status or '(empty)'}"

    return None


def check_response(response_text: str, endpoint: str = "") -> str:
    """
    Raise if the response reports a protocol-level rejection.

    Args:
        response_text: Raw response body
        endpoint: Included in error context only

    Returns:
        The response text unchanged

    Raises:
        RemoteRejectedError: LINEERROR present, or STATUS is not 1
    """
    error = find_line_error(response_text)
    if error is not None:
        logger.warning(f"Tally rejected request at {endpoint or 'endpoint'}: {error}")
        raise RemoteRejectedError(
            error,
            endpoint=endpoint,
            response_body=response_text,
        )
    return response_text
