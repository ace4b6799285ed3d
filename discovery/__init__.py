"""Network discovery components.

This package provides everything needed to sweep an IPv4 block for
live hosts and their link-layer addresses.

Modules:
    addresses: CIDR parsing and host address expansion
    hostname: Cached hostname resolution
    naming: Platform hostname lookup strategies
    runner: Fixed-concurrency task runner
    probe: Ping and neighbor table probes
    engine: Scan orchestration and event publishing
    interfaces: Local interface information
    models: Scan request and result types

Example:
    >>> from discovery import ScanEngine, ScanRequest, SystemProbe, HostnameResolver
    >>> engine = ScanEngine(SystemProbe(), HostnameResolver(), broadcaster)
    >>> engine.run(ScanRequest(network="192.168.1.0/24", scan_type="ping"))
"""
from .addresses import contains, expand, parse_network
from .engine import EngineState, ScanEngine, ScanOutcome
from .events import ScanEvent, ScanEventType
from .hostname import HostnameResolver, NamingMethod, get_hostname_resolver
from .interfaces import CurrentAddress, InterfaceInfo, get_current_address, list_interfaces
from .models import LinkEntry, LinkSource, LivenessResult, PingResult, ScanRequest, ScanType
from .probe import Probe, SystemProbe, select_probe
from .runner import BoundedTaskRunner

__all__ = [
    # Addresses
    "expand",
    "parse_network",
    "contains",
    # Scanning
    "ScanEngine",
    "EngineState",
    "ScanOutcome",
    "BoundedTaskRunner",
    "Probe",
    "SystemProbe",
    "select_probe",
    # Hostnames
    "HostnameResolver",
    "NamingMethod",
    "get_hostname_resolver",
    # Interfaces
    "CurrentAddress",
    "InterfaceInfo",
    "get_current_address",
    "list_interfaces",
    # Models
    "ScanRequest",
    "ScanType",
    "PingResult",
    "LinkEntry",
    "LinkSource",
    "LivenessResult",
    "ScanEvent",
    "ScanEventType",
]
