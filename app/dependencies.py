"""Dependency injection container for LAN Sweep.

Provides a centralized way to create and wire the scanning components,
making them easy to replace in tests.

Usage:
    from app.dependencies import create_dependencies

    deps = create_dependencies()
    deps.controller.start_scan(request)
    deps.resolver.stats()
"""
from dataclasses import dataclass
from typing import Optional

from config import get_logger

logger = get_logger(__name__)


@dataclass
class AppDependencies:
    """Container for all application dependencies.

    Each field is a component that can be swapped for a stub in tests.
    """

    probe: "Probe"
    resolver: "HostnameResolver"
    broadcaster: "EventBroadcaster"
    engine: "ScanEngine"
    controller: "ScanController"

    def __post_init__(self):
        logger.debug("AppDependencies container created")


def create_dependencies(
    platform_name: Optional[str] = None,
    probe: Optional["Probe"] = None,
    resolver: Optional["HostnameResolver"] = None,
    broadcaster: Optional["EventBroadcaster"] = None,
    skip_pending_on_stop: bool = True,
) -> AppDependencies:
    """Create and wire all application dependencies.

    Args:
        platform_name: Platform to build the probe for; detected when omitted.
        probe: Provide a probe instead of the system one.
        resolver: Provide a resolver, or the process-wide one is used.
        broadcaster: Provide a broadcaster, or the process-wide one is used.
        skip_pending_on_stop: Cancel queued probes when a scan is stopped;
            False lets them run to completion.

    Returns:
        AppDependencies container with all components.

    Example:
        >>> deps = create_dependencies()
        >>> deps.controller.is_running()
        False
    """
    # Import here to avoid circular imports
    from app.controller import ScanController
    from app.events import get_event_broadcaster
    from discovery.engine import ScanEngine
    from discovery.hostname import get_hostname_resolver
    from discovery.probe import select_probe

    logger.info("Creating application dependencies...")

    if probe is None:
        probe = select_probe(platform_name)
    if resolver is None:
        resolver = get_hostname_resolver()
    if broadcaster is None:
        broadcaster = get_event_broadcaster()

    engine = ScanEngine(probe, resolver, broadcaster, skip_pending_on_stop=skip_pending_on_stop)
    controller = ScanController(engine, broadcaster)

    deps = AppDependencies(
        probe=probe,
        resolver=resolver,
        broadcaster=broadcaster,
        engine=engine,
        controller=controller,
    )

    logger.info("Application dependencies created")
    return deps


def create_mock_dependencies(probe: Optional["Probe"] = None) -> AppDependencies:
    """Create dependencies that don't touch the system, for testing.

    The probe reports every host down unless one is provided, the resolver
    has no naming methods, and the broadcaster is private to the container.
    """
    from unittest.mock import MagicMock

    from app.events import EventBroadcaster
    from discovery.hostname import HostnameResolver
    from discovery.models import LivenessResult

    logger.debug("Creating mock dependencies for testing")

    if probe is None:
        probe = MagicMock()
        probe.probe_liveness.return_value = LivenessResult(alive=False, error="no reply")
        probe.lookup_link_address.return_value = ""
        probe.list_neighbor_table.return_value = []

    return create_dependencies(
        probe=probe,
        resolver=HostnameResolver(methods=[]),
        broadcaster=EventBroadcaster(),
    )
