"""Tests for discovery/naming.py - hostname strategies and output parsers."""
import socket
from unittest.mock import MagicMock, patch

from discovery.naming import (
    default_naming_methods,
    hosts_file_lookup,
    mdns_lookup_darwin,
    netbios_lookup_linux,
    parse_avahi_output,
    parse_dig_output,
    parse_hosts_file,
    parse_nbtstat_output,
    parse_nmblookup_output,
    reverse_dns,
)

NMBLOOKUP_OUTPUT = """Looking up status of 192.168.1.20
\tOFFICE-PC       <00> -         B <ACTIVE>
\tWORKGROUP       <00> - <GROUP> B <ACTIVE>
\tOFFICE-PC       <20> -         B <ACTIVE>

\tMAC Address = 00-11-22-33-44-55
"""

NBTSTAT_OUTPUT = """
Ethernet:
Node IpAddress: [192.168.1.10] Scope Id: []

           NetBIOS Remote Machine Name Table

       Name               Type         Status
    ---------------------------------------------
    DESKTOP-42     <00>  UNIQUE      Registered
    WORKGROUP      <00>  GROUP       Registered
"""


class TestParsers:
    """Tests for command output parsing."""

    def test_hosts_file(self):
        text = "# comment\n127.0.0.1 localhost\n192.168.1.5  nas nas.lan  # storage\n"
        assert parse_hosts_file(text, "192.168.1.5") == "nas"
        assert parse_hosts_file(text, "192.168.1.6") == ""

    def test_hosts_file_ignores_commented_entries(self):
        assert parse_hosts_file("# 192.168.1.5 hidden\n", "192.168.1.5") == ""

    def test_nmblookup_skips_group_names(self):
        assert parse_nmblookup_output(NMBLOOKUP_OUTPUT) == "OFFICE-PC"

    def test_nmblookup_skips_special_names(self):
        text = "\t__MSBROWSE__    <00> -         B <ACTIVE>\n"
        assert parse_nmblookup_output(text) == ""

    def test_nmblookup_no_match(self):
        assert parse_nmblookup_output("No reply from 192.168.1.20") == ""

    def test_nbtstat_unique_name(self):
        assert parse_nbtstat_output(NBTSTAT_OUTPUT) == "DESKTOP-42"

    def test_avahi_strips_local_suffix(self):
        assert parse_avahi_output("192.168.1.30\tliving-room.local\n") == "living-room"

    def test_avahi_failure_output(self):
        assert parse_avahi_output("Failed to resolve address") == ""

    def test_dig_strips_trailing_dot_and_local(self):
        assert parse_dig_output("macbook.local.\n") == "macbook"

    def test_dig_ignores_comments(self):
        assert parse_dig_output(";; connection timed out; no servers could be reached\n") == ""


class TestStrategies:
    """Tests for the lookup strategies."""

    @patch("discovery.naming.socket.gethostbyaddr")
    def test_reverse_dns(self, mock_lookup):
        mock_lookup.return_value = ("router.lan.", [], ["192.168.1.1"])
        assert reverse_dns("192.168.1.1") == "router.lan"

    @patch("discovery.naming.socket.gethostbyaddr")
    def test_reverse_dns_echoing_address_is_empty(self, mock_lookup):
        mock_lookup.return_value = ("192.168.1.1", [], ["192.168.1.1"])
        assert reverse_dns("192.168.1.1") == ""

    @patch("discovery.naming.socket.gethostbyaddr")
    def test_reverse_dns_failure(self, mock_lookup):
        mock_lookup.side_effect = socket.herror("unknown host")
        assert reverse_dns("192.168.1.1") == ""

    def test_hosts_file_lookup_uses_first_readable_file(self, temp_data_dir):
        hosts = temp_data_dir / "hosts"
        hosts.write_text("10.0.0.7 build-box\n")
        missing = temp_data_dir / "missing"

        assert hosts_file_lookup("10.0.0.7", paths=[str(missing), str(hosts)]) == "build-box"

    @patch("discovery.naming.safe_run")
    def test_netbios_linux(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout=NMBLOOKUP_OUTPUT)
        assert netbios_lookup_linux("192.168.1.20") == "OFFICE-PC"
        assert mock_run.call_args[0][0] == ["nmblookup", "-A", "192.168.1.20"]

    @patch("discovery.naming.safe_run")
    def test_netbios_nonzero_exit(self, mock_run):
        mock_run.return_value = MagicMock(returncode=1, stdout=NMBLOOKUP_OUTPUT)
        assert netbios_lookup_linux("192.168.1.20") == ""

    @patch("discovery.naming.safe_run")
    def test_mdns_darwin_queries_multicast_group(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout="iphone.local.\n")
        assert mdns_lookup_darwin("192.168.1.40") == "iphone"
        cmd = mock_run.call_args[0][0]
        assert cmd[:3] == ["dig", "-x", "192.168.1.40"]
        assert "@224.0.0.251" in cmd


class TestDefaultNamingMethods:
    """Tests for per-platform strategy selection."""

    def _names(self, platform_name):
        return [m.name for m in default_naming_methods(platform_name)]

    def test_linux(self):
        assert self._names("linux") == ["reverse_dns", "hosts_file", "netbios", "mdns"]

    def test_windows(self):
        assert self._names("windows") == ["reverse_dns", "hosts_file", "netbios"]

    def test_darwin(self):
        assert self._names("darwin") == ["reverse_dns", "hosts_file", "mdns"]

    def test_unknown_platform(self):
        assert self._names("unknown") == ["reverse_dns", "hosts_file"]
