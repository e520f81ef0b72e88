"""
Fixtures for integration tests: a fake Tally HTTP server on 127.0.0.1.
"""

import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Callable, List, Tuple

import pytest


class FakeTallyServer:
    """
    Threaded HTTP server answering POSTs with `responder(body) -> (status, text)`.

    Posted bodies are kept in `received` for assertions.
    """

    def __init__(self, responder: Callable[[str], Tuple[int, str]]):
        self.responder = responder
        self.received: List[str] = []
        server = self

        class Handler(BaseHTTPRequestHandler):
            def do_POST(self):
                length = int(self.headers.get('Content-Length', 0))
                body = self.rfile.read(length).decode('utf-8')
                server.received.append(body)
                status, text = server.responder(body)
                payload = text.encode('utf-8')
                self.send_response(status)
                self.send_header('Content-Type', 'text/xml; charset=utf-8')
                self.send_header('Content-Length', str(len(payload)))
                self.end_headers()
                self.wfile.write(payload)

            def log_message(self, format, *args):
                pass

        self.httpd = ThreadingHTTPServer(('127.0.0.1', 0), Handler)
        self.thread = threading.Thread(target=self.httpd.serve_forever, daemon=True)

    @property
    def port(self) -> int:
        return self.httpd.server_address[1]

    @property
    def endpoint(self) -> str:
        return f"http://127.0.0.1:{self.port}"

    def start(self) -> "FakeTallyServer":
        self.thread.start()
        return self

    def stop(self) -> None:
        self.httpd.shutdown()
        self.httpd.server_close()
        self.thread.join(timeout=5)


@pytest.fixture
def fake_tally():
    """Start a FakeTallyServer; call the fixture with a responder."""
    servers = []

    def start(responder: Callable[[str], Tuple[int, str]]) -> FakeTallyServer:
        server = FakeTallyServer(responder).start()
        servers.append(server)
        return server

    yield start

    for server in servers:
        server.stop()


@pytest.fixture
def silent_endpoint():
    """
    Endpoint of a socket that completes the TCP handshake but never replies.

    The kernel accepts connections into the listen backlog, so the client
    connects successfully and then waits for a response that never comes.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(('127.0.0.1', 0))
    sock.listen(8)
    try:
        yield f"http://127.0.0.1:{sock.getsockname()[1]}"
    finally:
        sock.close()


@pytest.fixture
def closed_endpoint():
    """Endpoint of a port with nothing listening."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(('127.0.0.1', 0))
    port = sock.getsockname()[1]
    sock.close()
    return f"http://127.0.0.1:{port}"
