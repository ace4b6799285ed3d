"""Integration tests for LAN Sweep.

These tests run the real probe, subprocess layer, engine, controller and
web application together. Only subprocess.run is replaced, by a fake
that answers like the Linux tools would.

Run with: pytest -m integration
"""

import json
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from app.dependencies import create_dependencies
from app.events import EventBroadcaster
from config import get_subprocess_cache
from discovery.hostname import HostnameResolver, NamingMethod
from discovery.models import LinkSource, ScanRequest
from discovery.naming import hosts_file_lookup
from web.server import create_app

UP = {"10.0.0.1", "10.0.0.2"}

ARP_BY_ADDRESS = {
    "10.0.0.1": "00:11:22:33:44:55",
    "10.0.0.2": "00:11:22:33:44:66",
}

NEIGHBOR_TABLE = """? (10.0.0.2) at 00:11:22:33:44:66 [ether] on eth0
? (10.9.9.9) at 00:11:22:33:44:99 [ether] on eth0
"""


def fake_run(cmd, **kwargs):
    """Answer ping and arp the way a small Linux network would."""
    if cmd[0] == "ping":
        address = cmd[-1]
        if address in UP:
            out = (f"64 bytes from {address}: icmp_seq=1 ttl=64 time=1.25 ms\n"
                   "1 packets transmitted, 1 received, 0% packet loss\n")
            return subprocess.CompletedProcess(cmd, 0, stdout=out, stderr="")
        out = "1 packets transmitted, 0 received, 100% packet loss\n"
        return subprocess.CompletedProcess(cmd, 1, stdout=out, stderr="")

    if cmd[:2] == ["arp", "-an"]:
        return subprocess.CompletedProcess(cmd, 0, stdout=NEIGHBOR_TABLE, stderr="")

    if cmd[:2] == ["arp", "-n"] and cmd[2] in ARP_BY_ADDRESS:
        out = (
            "Address                  HWtype  HWaddress           Flags Mask            Iface\n"
            f"{cmd[2]:<25}ether   {ARP_BY_ADDRESS[cmd[2]]}   C                     eth0\n"
        )
        return subprocess.CompletedProcess(cmd, 0, stdout=out, stderr="")

    return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="no entry")


@pytest.fixture
def integration_deps(tmp_path: Path):
    hosts = tmp_path / "hosts"
    hosts.write_text("127.0.0.1 localhost\n10.0.0.1 gateway.lan gateway\n", encoding="utf-8")
    resolver = HostnameResolver([
        NamingMethod("hosts_file", lambda ip: hosts_file_lookup(ip, [str(hosts)])),
    ])

    get_subprocess_cache().invalidate()
    with patch("subprocess.run", side_effect=fake_run) as mock_run:
        deps = create_dependencies(platform_name="linux", resolver=resolver,
                                   broadcaster=EventBroadcaster(queue_size=512))
        deps.mock_run = mock_run
        yield deps
        deps.controller.stop_scan()
        deps.controller.wait(timeout=10)
    get_subprocess_cache().invalidate()


@pytest.mark.integration
class TestFullScan:
    """A complete scan through the controller."""

    def test_both_sweeps(self, integration_deps):
        deps = integration_deps
        sub = deps.broadcaster.subscribe()

        deps.controller.start_scan(ScanRequest(network="10.0.0.0/29", concurrency=4,
                                               timeout=1.0))
        events = [e for e in sub.events(timeout=10) if e is not None]
        assert deps.controller.wait(timeout=10)

        pings = [e.result for e in events if e.result is not None and e.result.to_dict()["kind"] == "ping"]
        links = [e.result for e in events if e.result is not None and e.result.to_dict()["kind"] == "arp"]

        assert sorted(r.address for r in pings) == ["10.0.0.1", "10.0.0.2"]
        assert {r.address: r.hostname for r in pings}["10.0.0.1"] == "gateway.lan"
        assert all(abs(r.rtt - 0.00125) < 1e-9 for r in pings)

        cached = [e for e in links if e.source is LinkSource.CACHED_TABLE]
        active = [e for e in links if e.source is LinkSource.ACTIVE_SCAN]
        assert [e.address for e in cached] == ["10.0.0.2"]
        assert sorted((e.address, e.link_address) for e in active) == sorted(ARP_BY_ADDRESS.items())
        # Cached entries come before any active result
        assert links.index(cached[0]) < links.index(active[0])

        progress = [e.progress for e in events if e.progress is not None]
        assert progress == sorted(progress)
        assert progress[-1] == 100
        assert events[-1].message == "Scan completed: 2 hosts found"

    def test_commands_are_allow_listed_argv(self, integration_deps):
        deps = integration_deps
        deps.controller.start_scan(ScanRequest(network="10.0.0.0/30", scan_type="arp"))
        assert deps.controller.wait(timeout=10)

        for call in deps.mock_run.call_args_list:
            cmd = call.args[0]
            assert isinstance(cmd, list)
            assert cmd[0] in ("ping", "arp", "ip")
            assert call.kwargs.get("shell", False) is False

    def test_invalid_range_reports_error(self, integration_deps):
        deps = integration_deps
        sub = deps.broadcaster.subscribe()
        deps.controller.start_scan(ScanRequest(network="10.0.0.0/33"))
        events = [e for e in sub.events(timeout=5) if e is not None]

        assert len(events) == 1
        assert events[0].message.startswith("Invalid network range")
        assert deps.mock_run.call_count == 0


@pytest.mark.integration
class TestWebIntegration:
    """The HTTP surface over the full stack."""

    def test_scan_over_http(self, integration_deps):
        deps = integration_deps
        client = create_app(deps, keepalive=0.05).test_client()

        stream = client.get("/api/scan-progress")
        started = client.post("/api/scan", json={"network": "10.0.0.0/29", "scan_type": "ping"})
        assert started.status_code == 200
        assert deps.controller.wait(timeout=10)

        frames = [
            json.loads(chunk[len("data: "):])
            for chunk in stream.get_data(as_text=True).split("\n\n")
            if chunk.startswith("data: ")
        ]
        assert frames[-1]["type"] == "complete"
        results = {f["result"]["ip"]: f["result"] for f in frames if f["type"] == "result"}
        assert set(results) == UP
        assert results["10.0.0.1"]["hostname"] == "gateway.lan"

        cache = client.get("/api/hostname-cache").get_json()
        assert "10.0.0.1 -> gateway.lan" in cache["resolved"]
