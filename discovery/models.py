"""Data model for network discovery scans.

Defines the scan request and the per-host results produced by the
ping and ARP sweeps.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from config import SCAN, ConfigurationError


class ScanType(Enum):
    """Which sweeps a scan runs."""

    PING = "ping"
    ARP = "arp"
    BOTH = "both"

    @classmethod
    def parse(cls, value: Any) -> "ScanType":
        """Parse a scan type name (case-insensitive)."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ConfigurationError(
                f"Invalid scan type '{value}'. Use 'ping', 'arp', or 'both'",
                {"value": value},
            ) from None

    @property
    def runs_ping(self) -> bool:
        return self in (ScanType.PING, ScanType.BOTH)

    @property
    def runs_arp(self) -> bool:
        return self in (ScanType.ARP, ScanType.BOTH)


class LinkSource(Enum):
    """Where a link-layer entry came from."""

    CACHED_TABLE = "cached"
    ACTIVE_SCAN = "active"


@dataclass(frozen=True)
class ScanRequest:
    """Parameters for a single scan.

    The network string is only checked for type here; whether it parses as
    a CIDR block is decided when the scan runs, so a malformed block ends
    the scan with an error event.

    Attributes:
        network: IPv4 block in CIDR notation.
        scan_type: Ping sweep, ARP sweep or both.
        concurrency: Maximum number of probes in flight.
        timeout: Per-probe timeout in seconds.
        verbose: Also report hosts that did not answer.
    """

    network: str = SCAN.DEFAULT_NETWORK
    scan_type: ScanType = ScanType.BOTH
    concurrency: int = SCAN.DEFAULT_CONCURRENCY
    timeout: float = SCAN.DEFAULT_TIMEOUT_SECONDS
    verbose: bool = False

    def __post_init__(self):
        object.__setattr__(self, "scan_type", ScanType.parse(self.scan_type))

        if not isinstance(self.network, str) or not self.network.strip():
            raise ConfigurationError("Network must be a CIDR string", {"network": self.network})
        if isinstance(self.concurrency, bool) or not isinstance(self.concurrency, int):
            raise ConfigurationError("Concurrency must be an integer", {"value": self.concurrency})
        if not 1 <= self.concurrency <= SCAN.MAX_CONCURRENCY:
            raise ConfigurationError(
                f"Concurrency must be between 1 and {SCAN.MAX_CONCURRENCY}",
                {"value": self.concurrency},
            )
        if isinstance(self.timeout, bool) or not isinstance(self.timeout, (int, float)) \
                or self.timeout <= 0:
            raise ConfigurationError("Timeout must be a positive number of seconds",
                                     {"value": self.timeout})

    @classmethod
    def from_dict(cls, data: Any) -> "ScanRequest":
        """Build a request from a decoded JSON body.

        Accepts the keys `network`, `scan_type`, `threads` (or
        `concurrency`), `timeout` and `verbose`; missing keys use defaults.
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Request body must be a JSON object")

        concurrency = data.get("threads", data.get("concurrency", SCAN.DEFAULT_CONCURRENCY))
        return cls(
            network=data.get("network", SCAN.DEFAULT_NETWORK),
            scan_type=data.get("scan_type", SCAN.DEFAULT_SCAN_TYPE),
            concurrency=concurrency,
            timeout=data.get("timeout", SCAN.DEFAULT_TIMEOUT_SECONDS),
            verbose=bool(data.get("verbose", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "network": self.network,
            "scan_type": self.scan_type.value,
            "threads": self.concurrency,
            "timeout": self.timeout,
            "verbose": self.verbose,
        }


@dataclass(frozen=True)
class LivenessResult:
    """Outcome of one liveness probe, as reported by a Probe."""

    alive: bool
    rtt: float = 0.0  # seconds
    error: Optional[str] = None


@dataclass(frozen=True)
class PingResult:
    """A host seen by the ping sweep."""

    address: str
    alive: bool
    rtt: float = 0.0  # seconds
    hostname: Optional[str] = None
    error: Optional[str] = None

    @property
    def rtt_ms(self) -> float:
        return round(self.rtt * 1000, 3)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": "ping",
            "ip": self.address,
            "alive": self.alive,
            "rtt_ms": self.rtt_ms,
            "hostname": self.hostname or "",
            "error": self.error or "",
        }


@dataclass(frozen=True)
class LinkEntry:
    """An IP to link-layer address mapping seen by the ARP sweep."""

    address: str
    link_address: str = ""
    hostname: Optional[str] = None
    source: LinkSource = LinkSource.ACTIVE_SCAN

    @property
    def is_resolved(self) -> bool:
        return bool(self.link_address)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": "arp",
            "ip": self.address,
            "mac": self.link_address,
            "hostname": self.hostname or "",
            "source": self.source.value,
        }
