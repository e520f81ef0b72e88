"""
Protocol Transport

Posts an envelope to the Tally HTTP server and returns the response body as
text. One POST per call, no automatic retries: retrying is the caller's
policy and depends on which TransportError subclass was raised.

Timeout handling:
- The timeout is one deadline for the whole call: connect, send, response
  headers and body together
- The exchange runs on a worker thread and the caller waits on it only until
  the deadline; an exchange still running then is abandoned
- Each httpx phase is also bounded by the time left, and the body is
  streamed with the deadline re-checked per chunk, so abandoned exchanges
  end on their own
"""

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import List, Optional, Tuple
import logging
import time

import httpx

from tally_xml_client.exceptions import (
    ConnectionFailed,
    InvalidSpecError,
    RemoteRejectedError,
    TransportTimeout,
)


logger = logging.getLogger(__name__)

XML_CONTENT_TYPE = 'text/xml'

_UTF16_BOMS = (b'\xff\xfe', b'\xfe\xff')


def _decode_body(body: bytes, charset: Optional[str]) -> str:
    """Decode a response body; Tally sometimes answers in UTF-16 with a BOM."""
    if body.startswith(_UTF16_BOMS):
        return body.decode('utf-16', errors='replace')
    return body.decode(charset or 'utf-8', errors='replace')


class TallyTransport:
    """
    Blocking HTTP transport for Tally envelopes.

    The transport is stateless across calls. Passing an httpx.Client (or
    using the transport as a context manager) reuses pooled connections;
    otherwise each send() opens and closes its own client.

    Usage:
        with TallyTransport() as transport:
            xml = transport.send(envelope, "http://localhost:9000", timeout=10)

        # One-off request
        xml = TallyTransport().send(envelope, "http://localhost:9000")
    """

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        timeout_seconds: float = 30.0,
    ):
        """
        Initialize transport.

        Args:
            client: Optional shared httpx.Client for connection pooling.
                The caller keeps ownership of a client passed in here.
            timeout_seconds: Default timeout when send() is given none
        """
        if timeout_seconds <= 0:
            raise ValueError(f"Timeout must be positive, got {timeout_seconds}")

        self.timeout_seconds = timeout_seconds
        self._client = client
        self._owns_client = False

    def __enter__(self) -> "TallyTransport":
        if self._client is None:
            self._client = httpx.Client()
            self._owns_client = True
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """Close the pooled client if this transport created it."""
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None
            self._owns_client = False

    def send(
        self,
        envelope: str,
        endpoint: str,
        timeout: Optional[float] = None,
        request_kind: Optional[str] = None,
    ) -> str:
        """
        POST an envelope and return the response text.

        Args:
            envelope: Serialized envelope (sent as UTF-8)
            endpoint: Tally URL, e.g. 'http://localhost:9000'
            timeout: Seconds for the whole request/response cycle;
                defaults to the transport's timeout_seconds
            request_kind: Included in error context only

        Returns:
            Response body decoded to text (may be empty)

        Raises:
            TransportTimeout: No complete response before the deadline
            ConnectionFailed: Connection refused, reset, or DNS failure
            RemoteRejectedError: HTTP status >= 400
            InvalidSpecError: Endpoint is not a usable http(s) URL
        """
        timeout = self.timeout_seconds if timeout is None else timeout
        if timeout <= 0:
            raise ValueError(f"Timeout must be positive, got {timeout}")

        deadline = time.monotonic() + timeout
        logger.debug(f"POST {endpoint} ({len(envelope)} chars, timeout={timeout}s)")

        # The exchange runs on a worker so the caller's wait is one deadline
        # regardless of which httpx phase stalls
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='tally-send')
        try:
            future = executor.submit(self._post, envelope, endpoint, deadline, request_kind)
            try:
                status_code, text = future.result(timeout=max(deadline - time.monotonic(), 0))
            except FutureTimeoutError as e:
                logger.warning(f"Abandoning request to {endpoint} after {timeout}s")
                raise TransportTimeout(
                    f"No complete response within {timeout}s",
                    endpoint=endpoint,
                    request_kind=request_kind,
                    cause=e,
                ) from e
        finally:
            executor.shutdown(wait=False)

        if status_code >= 400:
            raise RemoteRejectedError(
                f"Tally returned HTTP {status_code} for {request_kind or 'request'} at {endpoint}",
                endpoint=endpoint,
                status_code=status_code,
                response_body=text,
            )

        logger.debug(f"Received {len(text)} chars from {endpoint} (HTTP {status_code})")
        return text

    def _post(
        self,
        envelope: str,
        endpoint: str,
        deadline: float,
        request_kind: Optional[str],
    ) -> Tuple[int, str]:
        """
        Run one POST to completion or until the deadline passes.

        Each httpx phase gets the time left at the start of the call, so an
        abandoned exchange also winds down on its own shortly after the
        deadline.
        """
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise TransportTimeout(
                "Deadline passed before the request was sent",
                endpoint=endpoint,
                request_kind=request_kind,
            )

        content = envelope.encode('utf-8')
        headers = {'Content-Type': XML_CONTENT_TYPE}

        client = self._client
        owns_client = client is None
        if owns_client:
            client = httpx.Client()

        try:
            with client.stream(
                'POST',
                endpoint,
                content=content,
                headers=headers,
                timeout=httpx.Timeout(remaining),
            ) as response:
                chunks: List[bytes] = []
                for chunk in response.iter_bytes():
                    chunks.append(chunk)
                    if time.monotonic() > deadline:
                        raise TransportTimeout(
                            "Response still streaming at the deadline",
                            endpoint=endpoint,
                            request_kind=request_kind,
                        )
                status_code = response.status_code
                charset = response.charset_encoding

        except httpx.TimeoutException as e:
            raise TransportTimeout(
                "No response before the deadline",
                endpoint=endpoint,
                request_kind=request_kind,
                cause=e,
            ) from e
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            raise InvalidSpecError(f"Invalid Tally endpoint '{endpoint}': {e}") from e
        except httpx.TransportError as e:
            raise ConnectionFailed(
                "Tally is not reachable. Check that Tally is running with its HTTP server enabled",
                endpoint=endpoint,
                request_kind=request_kind,
                cause=e,
            ) from e
        finally:
            if owns_client:
                client.close()

        return status_code, _decode_body(b''.join(chunks), charset)


def send(envelope: str, endpoint: str, timeout: float = 30.0, request_kind: Optional[str] = None) -> str:
    """
    Send one envelope with a short-lived client.

    See TallyTransport.send for arguments and errors.

    Example:
        >>> xml = send(envelope, 'http://localhost:9000', timeout=10)
    """
    return TallyTransport(timeout_seconds=timeout).send(
        envelope, endpoint, timeout=timeout, request_kind=request_kind
    )
