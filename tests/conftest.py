import httpx
import pytest

from projectwise_mcp.client import WsgClient
from projectwise_mcp.config import Config


@pytest.fixture
def config():
    return Config(
        base_url="https://h/ws/v2.8",
        repository_id="R1",
        token="secret-token",
        app_guid="test-app",
        session_uuid="session-1",
    )


@pytest.fixture
def make_client(config):
    """Build a WsgClient whose requests go to ``handler`` and are recorded."""

    def factory(handler):
        requests = []

        def recording(request):
            requests.append(request)
            return handler(request)

        http = httpx.AsyncClient(transport=httpx.MockTransport(recording))
        return WsgClient(config, http), requests

    return factory


