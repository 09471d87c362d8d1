"""
Pytest fixtures for integration tests.
"""
import os
import socket
import sys
import time

import pytest

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from mock_exchange_server import MockExchangeServer, generate_packets


def find_free_port():
    """Find a free port to use for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('', 0))
        return s.getsockname()[1]


@pytest.fixture
def start_exchange():
    """Start mock exchanges on free ports; all are stopped after the test."""
    servers = []

    def _start(count: int = 14, **kwargs) -> MockExchangeServer:
        server = MockExchangeServer(find_free_port(), generate_packets(count), **kwargs)
        assert server.start()
        time.sleep(0.05)
        servers.append(server)
        return server

    yield _start

    for server in servers:
        server.stop()
