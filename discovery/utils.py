"""Shared helpers for the discovery package."""
import platform
import re
from typing import Optional

LINUX = "linux"
DARWIN = "darwin"
WINDOWS = "windows"
UNKNOWN = "unknown"

_MAC_PATTERN = re.compile(r"^([0-9A-F]{2}:){5}[0-9A-F]{2}$")


def detect_platform(system: Optional[str] = None) -> str:
    """Map the host operating system to one of the supported platforms.

    Args:
        system: Value of platform.system(); detected when omitted.

    Returns:
        "linux", "darwin", "windows" or "unknown".
    """
    name = (system if system is not None else platform.system()).strip().lower()
    if name in (LINUX, DARWIN, WINDOWS):
        return name
    return UNKNOWN


def normalize_mac(mac_address: str) -> str:
    """Normalize MAC address to XX:XX:XX:XX:XX:XX format."""
    mac_clean = mac_address.strip().upper().replace("-", ":").replace(".", ":")
    parts = mac_clean.split(":")
    if len(parts) == 6:
        return ":".join(p.zfill(2) for p in parts)
    return mac_address.strip().upper()


def is_usable_mac(mac_address: str) -> bool:
    """Check that a normalized MAC names a single real interface.

    Rejects malformed, all-zero, broadcast and multicast addresses.
    """
    if not _MAC_PATTERN.match(mac_address):
        return False
    if mac_address in ("00:00:00:00:00:00", "FF:FF:FF:FF:FF:FF"):
        return False
    # Least significant bit of the first octet marks group addresses
    return not int(mac_address[:2], 16) & 0x01
