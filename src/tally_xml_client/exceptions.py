"""
Error taxonomy for the Tally XML client.

Three failure families, kept distinct so callers can pick a retry policy:
- InvalidSpecError: the request itself is malformed (caller bug, never retried)
- TransportError: the remote system could not be reached in time
  (TransportTimeout may be retried with backoff, ConnectionFailed usually
  needs an operator to start Tally or enable its HTTP server)
- RemoteRejectedError: Tally answered but refused the query shape

An empty result is not an error: extraction returns an empty list.
"""

from typing import Optional


class TallyError(Exception):
    """Base exception for all Tally client errors."""
    pass


class InvalidSpecError(TallyError, ValueError):
    """Request is malformed. Raised before any network call."""
    pass


class TransportError(TallyError):
    """
    The envelope could not be delivered or no response arrived.

    Attributes:
        endpoint: URL the envelope was posted to
        request_kind: TALLYREQUEST value of the envelope (e.g. 'Export')
        cause: Underlying exception from the HTTP layer, if any
    """

    def __init__(
        self,
        message: str,
        endpoint: str = "",
        request_kind: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.endpoint = endpoint
        self.request_kind = request_kind
        self.cause = cause

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.endpoint:
            parts.append(f"endpoint={self.endpoint}")
        if self.request_kind:
            parts.append(f"request={self.request_kind}")
        if self.cause is not None:
            parts.append(f"cause={type(self.cause).__name__}: {self.cause}")
        return " | ".join(parts)


class TransportTimeout(TransportError):
    """No complete response within the configured timeout."""
    pass


class ConnectionFailed(TransportError):
    """Connection refused, reset, or host name could not be resolved."""
    pass


class RemoteRejectedError(TallyError):
    """
    Tally responded but rejected the request.

    Raised for a LINEERROR element, a STATUS other than 1, or an HTTP
    error status.
    """

    def __init__(
        self,
        message: str,
        endpoint: str = "",
        status_code: int = 0,
        response_body: str = "",
    ):
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code
        self.response_body = response_body


class OrphanFormulaWarning(UserWarning):
    """A formula is defined in the envelope but no FILTER references it."""
    pass
