"""Root conftest: shared test configuration.

Invariants:
    - No test sees the caller's PORT/DOMAIN/... environment or a stray .env file
"""

import pytest
from httpx import ASGITransport, AsyncClient

from apiserver.api.routing import build_app
from apiserver.config import Config

CONFIG_ENV_VARS = (
    "PORT", "DOMAIN", "SUBDOMAIN", "SCHEME", "APIPREFIX", "HEALTHROUTE",
    "WRITETIMEOUT", "READTIMEOUT", "EXITTIMEOUT", "LOG_LEVEL", "LOG_FORMAT",
    "API_PREFIX", "HEALTH_PATH", "READ_TIMEOUT", "WRITE_TIMEOUT", "EXIT_TIMEOUT",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def config():
    return Config()


@pytest.fixture
async def make_client():
    """Build an in-process client for the app composed from a Config."""
    clients: list[AsyncClient] = []

    def _make(cfg: Config, base_url: str = "http://localhost", **transport_kwargs):
        client = AsyncClient(
            transport=ASGITransport(app=build_app(cfg), **transport_kwargs),
            base_url=base_url,
        )
        clients.append(client)
        return client

    yield _make
    for client in clients:
        await client.aclose()
