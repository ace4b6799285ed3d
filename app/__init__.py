"""Application module for LAN Sweep.

Contains the components that run scans for the outer surfaces:
- EventBroadcaster: Fan-out of scan events to observers
- ScanController: Single-slot scan start/stop
- AppDependencies: Wiring of probe, resolver, engine and controller
"""

from app.controller import ScanController, ScanState
from app.dependencies import AppDependencies, create_dependencies
from app.events import EventBroadcaster, ScanEvent, ScanEventType, Subscription

__all__ = [
    "AppDependencies",
    "EventBroadcaster",
    "ScanController",
    "ScanEvent",
    "ScanEventType",
    "ScanState",
    "Subscription",
    "create_dependencies",
]
