"""
Pytest configuration and fixtures.
"""
import socket

import pytest

from ami_server import FakeAMIServer
from click_to_call.config import Settings


@pytest.fixture
def ami_server():
    """Factory for scripted AMI servers; all of them are stopped after the test."""
    servers = []

    def start(**kwargs) -> FakeAMIServer:
        server = FakeAMIServer(**kwargs).start()
        servers.append(server)
        return server

    yield start

    for server in servers:
        server.stop()


@pytest.fixture
def unused_port():
    """A local port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def make_settings():
    """Build Settings pointing at a test server, ignoring any local .env file."""
    def build(port: int, **overrides) -> Settings:
        values = {
            "manager_host": "127.0.0.1",
            "manager_port": port,
            "manager_user": "admin",
            "manager_secret": "secret",
            "response_timeout": 1.0,
            "connect_timeout": 1.0,
            "max_retry": 0,
            "allowed_ips": ["127.0.0.1", "172.31.*", "2001:db8::/32"],
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return build
