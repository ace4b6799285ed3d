"""Local network interface information using psutil.

Used to suggest a default block to scan: the first interface that is up,
not loopback and has an IPv4 address.
"""
import ipaddress
import socket
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import psutil

from config import NETWORK, get_logger
from config.subprocess_cache import run_with_fallback
from discovery.utils import DARWIN, WINDOWS, detect_platform, normalize_mac

logger = get_logger(__name__)


@dataclass
class InterfaceInfo:
    """An IPv4 interface of this machine."""

    name: str
    address: str
    netmask: Optional[str]
    mac: str = ""
    is_up: bool = True

    @property
    def network(self) -> str:
        """The interface's block in CIDR notation."""
        return _network_for(self.address, self.netmask)

    @property
    def is_loopback(self) -> bool:
        return ipaddress.IPv4Address(self.address).is_loopback

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "ip": self.address,
            "netmask": self.netmask or "",
            "network": self.network,
            "mac": self.mac,
            "up": self.is_up,
        }


@dataclass
class CurrentAddress:
    """Result of looking up this machine's address."""

    success: bool
    ip: str = ""
    network: str = ""
    interface: str = ""
    error: str = ""
    gateway: str = ""

    def to_dict(self) -> Dict[str, Any]:
        if not self.success:
            return {"success": False, "error": self.error}
        data = {"success": True, "ip": self.ip, "network": self.network}
        if self.gateway:
            data["gateway"] = self.gateway
        return data


def _network_for(address: str, netmask: Optional[str]) -> str:
    try:
        network = ipaddress.IPv4Network(f"{address}/{netmask}", strict=False)
    except (ValueError, TypeError):
        network = ipaddress.IPv4Network(
            f"{address}/{NETWORK.FALLBACK_PREFIX_LENGTH}", strict=False)
    return str(network)


def is_private_ip(address: str) -> bool:
    """Check whether an address is in one of the RFC 1918 ranges."""
    try:
        ip = ipaddress.IPv4Address(address)
    except ValueError:
        return False
    return any(ip in ipaddress.IPv4Network(block) for block in NETWORK.PRIVATE_RANGES)


def list_interfaces() -> List[InterfaceInfo]:
    """List every interface that is up and has an IPv4 address."""
    try:
        addresses = psutil.net_if_addrs()
        stats = psutil.net_if_stats()
    except (OSError, RuntimeError) as e:
        logger.warning(f"Could not read network interfaces: {e}")
        return []

    interfaces = []
    for name, entries in addresses.items():
        stat = stats.get(name)
        if stat is not None and not stat.isup:
            continue

        mac = ""
        for entry in entries:
            if entry.family == psutil.AF_LINK and entry.address:
                mac = normalize_mac(entry.address)

        for entry in entries:
            if entry.family == socket.AF_INET and entry.address:
                interfaces.append(InterfaceInfo(
                    name=name,
                    address=entry.address,
                    netmask=entry.netmask,
                    mac=mac,
                ))

    logger.debug(f"Found {len(interfaces)} IPv4 interfaces")
    return interfaces



def parse_gateway_output(output: str) -> str:
    """Pull the default gateway out of a routing table listing.

    Understands `ip route show default` ("default via 192.168.1.1 dev
    eth0"), `route -n get default` ("gateway: 192.168.1.1") and
    `route print -4 0.0.0.0` ("0.0.0.0  0.0.0.0  192.168.1.1  ...").
    """
    for line in output.splitlines():
        tokens = line.split()
        candidate = ""
        if "via" in tokens and tokens.index("via") + 1 < len(tokens):
            candidate = tokens[tokens.index("via") + 1]
        elif tokens and tokens[0] == "gateway:" and len(tokens) > 1:
            candidate = tokens[1]
        elif len(tokens) >= 3 and tokens[0] == "0.0.0.0" and tokens[1] == "0.0.0.0":
            candidate = tokens[2]

        try:
            return str(ipaddress.IPv4Address(candidate))
        except ValueError:
            continue
    return ""


def _gateway_commands(platform_name: str) -> List[List[str]]:
    if platform_name == WINDOWS:
        return [["route", "print", "-4", "0.0.0.0"]]
    if platform_name == DARWIN:
        return [["route", "-n", "get", "default"]]
    return [["ip", "route", "show", "default"]]


def get_default_gateway(platform_name: Optional[str] = None,
                        network: Optional[str] = None) -> str:
    """Find the default gateway from the routing table.

    When the routing table cannot be read, the first host address of
    `network` is assumed, which is where most home routers sit.

    Returns:
        The gateway address, or "" if it could not be determined.
    """
    result = run_with_fallback(_gateway_commands(platform_name or detect_platform()),
                               timeout=NETWORK.GATEWAY_TIMEOUT)
    gateway = parse_gateway_output(result.stdout or "") if result is not None else ""
    if gateway:
        return gateway

    if network:
        block = ipaddress.IPv4Network(network, strict=False)
        if block.num_addresses > 2:
            gateway = str(block.network_address + 1)
            logger.debug(f"No default route found, assuming gateway {gateway}")
            return gateway

    logger.debug("Could not determine the default gateway")
    return ""


def get_current_address(with_gateway: bool = False) -> CurrentAddress:
    """Find this machine's LAN address and the block it sits in.

    Private addresses are preferred; otherwise the first non-loopback
    interface is used. With `with_gateway` the default gateway is looked
    up as well, which runs a system command.
    """
    candidates = [iface for iface in list_interfaces() if not iface.is_loopback]
    if not candidates:
        logger.warning("No non-loopback IPv4 interface found")
        return CurrentAddress(success=False, error="No active IPv4 network interface found")

    chosen = next((iface for iface in candidates if is_private_ip(iface.address)), candidates[0])
    logger.debug(f"Current address {chosen.address} on {chosen.name} ({chosen.network})")
    return CurrentAddress(
        success=True,
        ip=chosen.address,
        network=chosen.network,
        interface=chosen.name,
        gateway=get_default_gateway(network=chosen.network) if with_gateway else "",
    )
