"""Centralized constants and configuration for LAN Sweep.

This module contains the defaults, timeouts and limits used throughout the
scanner. Centralizing them makes the code easier to maintain and configure.

Usage:
    from config.constants import SCAN, NETWORK, EVENTS

    # Access values
    concurrency = SCAN.DEFAULT_CONCURRENCY
    queue_size = EVENTS.OBSERVER_QUEUE_SIZE
"""
from dataclasses import dataclass
from typing import Tuple

APP_NAME = "lansweep"
APP_VERSION = "1.0.0"


@dataclass(frozen=True)
class ScanDefaults:
    """Defaults and limits for a single scan.

    Timeout values are in seconds.
    """
    DEFAULT_NETWORK: str = "192.168.1.0/24"
    DEFAULT_SCAN_TYPE: str = "both"
    DEFAULT_CONCURRENCY: int = 50
    DEFAULT_TIMEOUT_SECONDS: float = 2.0

    # Upper bound on worker threads for one sweep
    MAX_CONCURRENCY: int = 1024


@dataclass(frozen=True)
class NetworkConfig:
    """Network-related configuration for probes and naming methods."""
    # Liveness probing
    PING_TIMEOUT_FLOOR_SECONDS: int = 1    # ping -W takes whole seconds
    PING_PROCESS_GRACE_SECONDS: float = 2.0

    # Link-layer lookups
    ARP_LOOKUP_TIMEOUT: float = 2.0
    NEIGHBOR_TABLE_TIMEOUT: float = 5.0
    NEIGHBOR_TABLE_TTL: float = 10.0

    # Default route lookup
    GATEWAY_TIMEOUT: float = 3.0

    # Hostname resolution
    NETBIOS_TIMEOUT: float = 3.0
    MDNS_TIMEOUT: float = 2.0
    MDNS_GROUP: str = "224.0.0.251"
    MDNS_PORT: int = 5353

    # Hosts files, tried in order
    HOSTS_FILES: Tuple[str, ...] = (
        "/etc/hosts",
        r"C:\Windows\System32\drivers\etc\hosts",
    )

    # RFC 1918 private ranges
    PRIVATE_RANGES: Tuple[str, ...] = (
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
    )

    # Used when an interface reports no netmask
    FALLBACK_PREFIX_LENGTH: int = 24


@dataclass(frozen=True)
class EventConfig:
    """Event stream configuration."""
    # Per-observer queue size (one slot is held back for the terminal event)
    OBSERVER_QUEUE_SIZE: int = 100

    # Seconds between keep-alive comments on an idle event stream
    KEEPALIVE_SECONDS: float = 15.0

    # The command line reads its own stream and should never miss a result
    CLI_QUEUE_SIZE: int = 8192

    # Seconds the command line waits for an event before checking for Ctrl-C
    CLI_POLL_SECONDS: float = 0.25

    # Seconds the command line waits for a stopped scan to wind down
    CLI_STOP_WAIT_SECONDS: float = 10.0


@dataclass(frozen=True)
class StorageConfig:
    """Storage and file-related configuration."""
    DATA_DIR_NAME: str = ".lan-sweep"
    LOG_FILE: str = "lan_sweep.log"

    # Log rotation
    LOG_MAX_BYTES: int = 5_000_000  # 5MB
    LOG_BACKUP_COUNT: int = 3


@dataclass(frozen=True)
class WebConfig:
    """Web control surface configuration."""
    HOST: str = "127.0.0.1"
    PORT: int = 8080


@dataclass(frozen=True)
class Intervals:
    """Time intervals for subprocess handling (in seconds)."""
    SUBPROCESS_TIMEOUT_SECONDS: float = 5.0


# Global instances - import these
SCAN = ScanDefaults()
NETWORK = NetworkConfig()
EVENTS = EventConfig()
STORAGE = StorageConfig()
WEB = WebConfig()
INTERVALS = Intervals()


# Allowed commands for subprocess safety
ALLOWED_SUBPROCESS_COMMANDS = frozenset({
    'arp',
    'ping',
    'ip',
    'nmblookup',
    'nbtstat',
    'avahi-resolve',
    'dig',
    'route',
})
