"""
Pytest configuration for unit tests.

Provides fixtures that apply to all unit tests: a clean settings
environment and an httpx.Client factory backed by httpx.MockTransport.
"""

from typing import Callable, List

import httpx
import pytest


@pytest.fixture(autouse=True, scope="function")
def clean_tally_environment(monkeypatch):
    """
    Isolate unit tests from the developer's TALLY_* settings.

    Removes TALLY_* environment variables, stops pydantic-settings from
    reading a local .env file, and drops the cached config singleton.
    """
    import os
    from tally_xml_client import config as config_module
    from tally_xml_client.config import TallyConfig

    for key in list(os.environ):
        if key.upper().startswith('TALLY_'):
            monkeypatch.delenv(key, raising=False)

    monkeypatch.setitem(TallyConfig.model_config, 'env_file', None)
    config_module.reset_config()
    yield
    config_module.reset_config()


@pytest.fixture
def recorded_requests() -> List[httpx.Request]:
    """Requests seen by the mock transport, in order."""
    return []


@pytest.fixture
def make_http_client(recorded_requests) -> Callable[..., httpx.Client]:
    """
    Build an httpx.Client whose requests are answered by a handler.

    Usage:
        client = make_http_client(lambda request: httpx.Response(200, text=XML))
    """
    created = []

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
        def recording_handler(request: httpx.Request) -> httpx.Response:
            request.read()
            recorded_requests.append(request)
            return handler(request)

        client = httpx.Client(transport=httpx.MockTransport(recording_handler))
        created.append(client)
        return client

    yield factory

    for client in created:
        client.close()
