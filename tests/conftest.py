"""Pytest configuration and shared fixtures.

This module provides:
- Common test fixtures for data directories and stub collaborators
- Pytest markers for test categorization (unit, integration, slow)
"""
import socket
import subprocess
import tempfile
from pathlib import Path
from typing import Generator
from unittest.mock import MagicMock, patch

import pytest

from app.events import EventBroadcaster
from discovery.hostname import HostnameResolver, NamingMethod
from mocks import RecordingBroadcaster, StubProbe

# =============================================================================
# Pytest Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: mark test as a unit test (fast, isolated)")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


# =============================================================================
# Directory and Path Fixtures
# =============================================================================


@pytest.fixture
def temp_data_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test data."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# =============================================================================
# Collaborator Fixtures
# =============================================================================


@pytest.fixture
def stub_probe() -> StubProbe:
    """Probe where 10.0.0.1 and 10.0.0.3 answer, with MACs for both."""
    return StubProbe(
        alive={"10.0.0.1", "10.0.0.3"},
        macs={"10.0.0.1": "AA:BB:CC:00:00:01", "10.0.0.3": "AA:BB:CC:00:00:03"},
    )


@pytest.fixture
def static_resolver() -> HostnameResolver:
    """Resolver that knows a single name."""
    names = {"10.0.0.1": "router"}
    return HostnameResolver([NamingMethod("static", lambda ip: names.get(ip, ""))])


@pytest.fixture
def recording_broadcaster() -> RecordingBroadcaster:
    """Broadcaster that keeps every published event."""
    return RecordingBroadcaster()


@pytest.fixture
def broadcaster() -> EventBroadcaster:
    """A private event broadcaster."""
    return EventBroadcaster(queue_size=16)


# =============================================================================
# Mock Fixtures
# =============================================================================


@pytest.fixture
def mock_subprocess() -> Generator[MagicMock, None, None]:
    """Replace subprocess.run; every command exits 0 with no output."""
    with patch("subprocess.run") as mock_run:
        mock_run.side_effect = lambda cmd, **kwargs: subprocess.CompletedProcess(
            cmd, 0, stdout="", stderr="")
        yield mock_run


@pytest.fixture
def mock_network_interface() -> Generator[MagicMock, None, None]:
    """Mock network interface detection."""
    import psutil

    with patch("psutil.net_if_addrs") as mock_addrs, \
            patch("psutil.net_if_stats") as mock_stats:
        mock_addrs.return_value = {
            "lo": [
                MagicMock(family=socket.AF_INET, address="127.0.0.1", netmask="255.0.0.0"),
            ],
            "eth0": [
                MagicMock(family=psutil.AF_LINK, address="aa-bb-cc-dd-ee-ff", netmask=None),
                MagicMock(family=socket.AF_INET, address="192.168.50.7", netmask="255.255.254.0"),
            ],
            "wlan0": [
                MagicMock(family=socket.AF_INET, address="10.1.2.3", netmask="255.255.255.0"),
            ],
        }
        mock_stats.return_value = {
            "lo": MagicMock(isup=True),
            "eth0": MagicMock(isup=True),
            "wlan0": MagicMock(isup=False),
        }
        yield mock_addrs
