"""Hostname resolution strategies.

Each strategy maps an IPv4 address to a name, returning "" when it has no
answer. Failures (timeouts, missing tools) may raise; the resolver treats
them as an empty answer. The set of strategies is chosen once per platform
by default_naming_methods().

Strategies, in the order they are tried:
1. reverse_dns - PTR lookup through the system resolver
2. hosts_file  - static entries from the local hosts file
3. netbios     - nmblookup (Linux) / nbtstat (Windows)
4. mdns        - avahi-resolve (Linux) / dig against the mDNS group (macOS)
"""
import socket
from pathlib import Path
from typing import Iterable, List, Optional

from config import NETWORK, get_logger, safe_run
from discovery.hostname import NamingMethod
from discovery.utils import DARWIN, LINUX, WINDOWS, detect_platform

logger = get_logger(__name__)


def _strip_local(hostname: str) -> str:
    hostname = hostname.strip().rstrip(".")
    if hostname.lower().endswith(".local"):
        hostname = hostname[:-len(".local")]
    return hostname


# ============================================================================
# Output parsers
# ============================================================================

def parse_hosts_file(text: str, address: str) -> str:
    """Find the first name mapped to an address in hosts-file text."""
    for line in text.splitlines():
        line = line.split("#", 1)[0].strip()
        if not line:
            continue
        fields = line.split()
        if len(fields) >= 2 and fields[0] == address:
            return fields[1]
    return ""


def parse_nmblookup_output(text: str) -> str:
    """Extract the workstation name from `nmblookup -A` output.

    Example line: "\\tOFFICE-PC       <00> -         B <ACTIVE>"
    """
    for line in text.splitlines():
        if "<00>" not in line or "<GROUP>" in line:
            continue
        fields = line.split()
        if fields and not fields[0].startswith("__"):
            return fields[0]
    return ""


def parse_nbtstat_output(text: str) -> str:
    """Extract the workstation name from `nbtstat -A` output.

    Example line: "    OFFICE-PC      <00>  UNIQUE      Registered"
    """
    for line in text.splitlines():
        if "<00>" in line and "UNIQUE" in line:
            fields = line.split()
            if fields and not fields[0].startswith("__"):
                return fields[0]
    return ""


def parse_avahi_output(text: str) -> str:
    """Extract the host name from `avahi-resolve -a` output.

    Example: "192.168.1.30\\tliving-room.local"
    """
    fields = text.strip().split()
    if len(fields) >= 2:
        return _strip_local(fields[1])
    return ""


def parse_dig_output(text: str) -> str:
    """Extract the host name from `dig -x ... +short` output."""
    for line in text.splitlines():
        line = line.strip()
        if line and not line.startswith(";"):
            return _strip_local(line)
    return ""


# ============================================================================
# Strategies
# ============================================================================

def reverse_dns(address: str) -> str:
    """PTR lookup through the system resolver."""
    try:
        hostname, _, _ = socket.gethostbyaddr(address)
    except (socket.herror, socket.gaierror, OSError):
        return ""
    hostname = hostname.rstrip(".")
    # Some resolvers echo the address back instead of failing
    return "" if hostname == address else hostname


def hosts_file_lookup(address: str, paths: Optional[Iterable[str]] = None) -> str:
    """Look an address up in the first readable hosts file."""
    for path in paths if paths is not None else NETWORK.HOSTS_FILES:
        try:
            text = Path(path).read_text(encoding="utf-8", errors="ignore")
        except OSError:
            continue
        return parse_hosts_file(text, address)
    return ""


def netbios_lookup_linux(address: str) -> str:
    result = safe_run(["nmblookup", "-A", address], timeout=NETWORK.NETBIOS_TIMEOUT)
    if result.returncode != 0:
        return ""
    return parse_nmblookup_output(result.stdout)


def netbios_lookup_windows(address: str) -> str:
    result = safe_run(["nbtstat", "-A", address], timeout=NETWORK.NETBIOS_TIMEOUT)
    if result.returncode != 0:
        return ""
    return parse_nbtstat_output(result.stdout)


def mdns_lookup_linux(address: str) -> str:
    result = safe_run(["avahi-resolve", "-a", address], timeout=NETWORK.MDNS_TIMEOUT)
    if result.returncode != 0:
        return ""
    return parse_avahi_output(result.stdout)


def mdns_lookup_darwin(address: str) -> str:
    wait = max(1, int(NETWORK.MDNS_TIMEOUT))
    result = safe_run(
        ["dig", "-x", address, f"@{NETWORK.MDNS_GROUP}", "-p", str(NETWORK.MDNS_PORT),
         "+short", f"+time={wait}", "+tries=1"],
        timeout=NETWORK.MDNS_TIMEOUT + 1,
    )
    if result.returncode != 0:
        return ""
    return parse_dig_output(result.stdout)


def default_naming_methods(platform_name: Optional[str] = None) -> List[NamingMethod]:
    """Build the naming chain for a platform.

    Args:
        platform_name: "linux", "darwin" or "windows"; detected when omitted.

    Returns:
        Naming methods in the order they should be tried.
    """
    platform_name = platform_name or detect_platform()

    methods = [
        NamingMethod("reverse_dns", reverse_dns),
        NamingMethod("hosts_file", hosts_file_lookup),
    ]
    if platform_name == LINUX:
        methods.append(NamingMethod("netbios", netbios_lookup_linux))
        methods.append(NamingMethod("mdns", mdns_lookup_linux))
    elif platform_name == WINDOWS:
        methods.append(NamingMethod("netbios", netbios_lookup_windows))
    elif platform_name == DARWIN:
        methods.append(NamingMethod("mdns", mdns_lookup_darwin))

    logger.debug(f"Naming methods for {platform_name}: {[m.name for m in methods]}")
    return methods
