"""Host probes: liveness checks and link-layer address lookups.

The scan engine talks to the operating system only through the Probe
interface. SystemProbe implements it with the standard system utilities
(ping, arp, ip neigh); the command lines are fixed when the probe is built
for a platform, so nothing branches on the platform per call.

Supported neighbor table formats:
1. BSD / macOS / Linux `arp -an`:  ? (192.168.1.1) at 0:11:22:33:44:55 on en0
2. Linux net-tools `arp -n`:       192.168.1.1  ether  00:11:22:33:44:55  C  eth0
3. Windows `arp -a`:               192.168.1.1    00-11-22-33-44-55   dynamic
4. iproute2 `ip neigh show`:       192.168.1.1 dev eth0 lladdr 00:11:22:33:44:55 REACHABLE
"""
import ipaddress
import re
import time
from typing import List, Optional, Protocol, Tuple

from config import NETWORK, SubprocessError, get_logger, run_with_fallback, safe_run
from discovery.models import LinkEntry, LinkSource, LivenessResult
from discovery.utils import DARWIN, LINUX, WINDOWS, detect_platform, is_usable_mac, normalize_mac

logger = get_logger(__name__)

_IPV4_RE = re.compile(r"(?<![\d.])(\d{1,3}(?:\.\d{1,3}){3})(?![\d.])")
_MAC_RE = re.compile(r"(?<![0-9A-Fa-f:-])([0-9A-Fa-f]{1,2}(?:[:-][0-9A-Fa-f]{1,2}){5})(?![0-9A-Fa-f:-])")
_RTT_RE = re.compile(r"time[=<]\s*([\d.]+)\s*ms", re.IGNORECASE)


class Probe(Protocol):
    """Operations the scan engine needs from the host operating system.

    Implementations must be safe to call from many threads at once.
    """

    def probe_liveness(self, address: str, timeout: float) -> LivenessResult:
        ...

    def lookup_link_address(self, address: str) -> str:
        ...

    def list_neighbor_table(self) -> List[LinkEntry]:
        ...


# ============================================================================
# Output parsers
# ============================================================================

def parse_ping_output(output: str) -> Tuple[bool, Optional[float]]:
    """Decide whether ping output shows a reply.

    Returns:
        (alive, rtt_seconds); rtt is None when the output carries no time.
    """
    lowered = output.lower()
    alive = "ttl=" in lowered or "time=" in lowered or "time<" in lowered
    if not alive:
        return False, None
    match = _RTT_RE.search(output)
    if match:
        return True, float(match.group(1)) / 1000.0
    return True, None


def parse_neighbor_output(output: str) -> List[Tuple[str, str]]:
    """Parse neighbor table output into (ip, mac) pairs.

    Incomplete, broadcast and multicast entries are skipped and
    MAC addresses are normalized.
    """
    entries: List[Tuple[str, str]] = []
    seen = set()

    for line in output.splitlines():
        ip_match = _IPV4_RE.search(line)
        if not ip_match:
            continue
        mac_match = _MAC_RE.search(line, ip_match.end())
        if not mac_match:
            continue

        ip = ip_match.group(1)
        mac = normalize_mac(mac_match.group(1))
        try:
            parsed = ipaddress.IPv4Address(ip)
        except ValueError:
            continue
        if parsed.is_multicast or parsed == ipaddress.IPv4Address("255.255.255.255"):
            continue
        if not is_usable_mac(mac) or ip in seen:
            continue

        seen.add(ip)
        entries.append((ip, mac))

    return entries


# ============================================================================
# System probe
# ============================================================================

class SystemProbe:
    """Probe backed by the system ping and neighbor table utilities.

    Example:
        >>> probe = SystemProbe("linux")
        >>> result = probe.probe_liveness("192.168.1.1", timeout=1.0)
        >>> result.alive
        True
    """

    def __init__(self, platform_name: Optional[str] = None):
        self.platform = platform_name or detect_platform()
        if self.platform not in (LINUX, DARWIN, WINDOWS):
            logger.warning(f"Unsupported platform '{self.platform}', using POSIX commands")

        if self.platform == WINDOWS:
            self._table_commands = [["arp", "-a"]]
        elif self.platform == LINUX:
            self._table_commands = [["arp", "-an"], ["ip", "neigh", "show"]]
        else:
            self._table_commands = [["arp", "-an"]]

        logger.info(f"SystemProbe initialized for {self.platform}")

    def _ping_command(self, address: str, timeout: float) -> List[str]:
        if self.platform == WINDOWS:
            return ["ping", "-n", "1", "-w", str(max(1, int(timeout * 1000))), address]
        seconds = str(max(NETWORK.PING_TIMEOUT_FLOOR_SECONDS, int(timeout)))
        if self.platform == DARWIN:
            # -W is milliseconds on macOS; -t bounds the whole run in seconds
            return ["ping", "-c", "1", "-t", seconds, address]
        return ["ping", "-c", "1", "-W", seconds, address]

    def _lookup_commands(self, address: str) -> List[List[str]]:
        if self.platform == WINDOWS:
            return [["arp", "-a", address]]
        if self.platform == LINUX:
            return [["arp", "-n", address], ["ip", "neigh", "show", address]]
        return [["arp", "-n", address]]

    def probe_liveness(self, address: str, timeout: float) -> LivenessResult:
        """Send a single echo request and wait for the reply."""
        cmd = self._ping_command(address, timeout)
        start = time.monotonic()
        try:
            result = safe_run(cmd, timeout=timeout + NETWORK.PING_PROCESS_GRACE_SECONDS)
        except SubprocessError as e:
            return LivenessResult(alive=False, rtt=time.monotonic() - start, error=e.message)

        elapsed = time.monotonic() - start
        alive, rtt = parse_ping_output(result.stdout or "")
        if not alive:
            return LivenessResult(
                alive=False, rtt=elapsed, error=f"no reply (exit status {result.returncode})"
            )
        return LivenessResult(alive=True, rtt=rtt if rtt is not None else elapsed)

    def lookup_link_address(self, address: str) -> str:
        """Find the MAC address the neighbor table holds for an address."""
        result = run_with_fallback(self._lookup_commands(address),
                                   timeout=NETWORK.ARP_LOOKUP_TIMEOUT)
        if result is None:
            return ""
        for ip, mac in parse_neighbor_output(result.stdout):
            if ip == address:
                return mac
        return ""

    def list_neighbor_table(self) -> List[LinkEntry]:
        """Read the entries already present in the neighbor table."""
        result = run_with_fallback(self._table_commands,
                                   timeout=NETWORK.NEIGHBOR_TABLE_TIMEOUT,
                                   ttl=NETWORK.NEIGHBOR_TABLE_TTL)
        if result is None:
            logger.warning("Could not read the neighbor table")
            return []
        entries = [
            LinkEntry(address=ip, link_address=mac, source=LinkSource.CACHED_TABLE)
            for ip, mac in parse_neighbor_output(result.stdout)
        ]
        logger.debug(f"Neighbor table holds {len(entries)} entries")
        return entries


def select_probe(platform_name: Optional[str] = None) -> SystemProbe:
    """Pick the probe implementation for this machine."""
    return SystemProbe(platform_name)
