"""Integration tests for tally-xml-client.

Integration tests exercise the client over real sockets on 127.0.0.1:
- A local HTTP server thread standing in for Tally
- Listening sockets that never answer, for timeout behaviour
- Closed ports, for connection failures

Run with: poetry run pytest tests/integration/ -v -s
Skip in CI: pytest -m "not integration"
"""
