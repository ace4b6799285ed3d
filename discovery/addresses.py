"""Expansion of IPv4 CIDR blocks into scannable host addresses."""
import ipaddress
from typing import List

from config import InvalidRangeError


def parse_network(cidr: str) -> ipaddress.IPv4Network:
    """Parse an IPv4 CIDR block.

    Host bits in the base address are masked off, so `192.168.1.7/30`
    is the block `192.168.1.4/30`.

    Raises:
        InvalidRangeError: If the string is not an IPv4 CIDR block.
    """
    if not isinstance(cidr, str) or "/" not in cidr:
        raise InvalidRangeError(f"Invalid CIDR: {cidr!r}", network=cidr)
    try:
        network = ipaddress.ip_network(cidr.strip(), strict=False)
    except ValueError as e:
        raise InvalidRangeError(f"Invalid CIDR: {e}", network=cidr) from e
    if network.version != 4:
        raise InvalidRangeError("Only IPv4 networks can be scanned", network=cidr)
    return network


def expand(cidr: str) -> List[str]:
    """Expand a CIDR block into its usable host addresses.

    Blocks of /30 and larger lose their network and broadcast address;
    /31 and /32 blocks are returned whole. Addresses are in ascending order.

    Example:
        >>> expand("192.168.1.0/30")
        ['192.168.1.1', '192.168.1.2']
    """
    network = parse_network(cidr)
    if network.prefixlen >= 31:
        return [str(address) for address in network]
    return [str(address) for address in network.hosts()]


def contains(cidr: str, address: str) -> bool:
    """Check whether an address falls inside a CIDR block."""
    try:
        return ipaddress.IPv4Address(address) in parse_network(cidr)
    except (ValueError, InvalidRangeError):
        return False
