"""Scan controller for LAN Sweep.

Owns the single scan slot: at most one scan runs at a time, started on a
background thread and stopped on request. Both the web surface and the
command line drive scans through this class.

Usage:
    from app.dependencies import create_dependencies

    deps = create_dependencies()
    deps.controller.start_scan(ScanRequest(network="192.168.1.0/24"))
    ...
    deps.controller.stop_scan()
"""
import threading
from enum import Enum
from typing import Optional

from app.events import EventBroadcaster, ScanEvent
from config import ScanConflictError, get_logger, log_exception
from discovery.engine import EngineState, ScanEngine
from discovery.models import ScanRequest

logger = get_logger(__name__)

STOPPED_BY_USER = "Scan stopped by user"


class ScanState(Enum):
    """State of the scan slot."""

    IDLE = "idle"
    RUNNING = "running"
    STOP_REQUESTED = "stop_requested"


class ScanController:
    """Starts and stops scans, one at a time.

    State changes happen under a single lock, so two concurrent
    start_scan calls can never both succeed.

    Attributes:
        engine: Runs the scan itself.
        broadcaster: Receives the stop notification.
    """

    def __init__(self, engine: ScanEngine, broadcaster: EventBroadcaster):
        self.engine = engine
        self.broadcaster = broadcaster
        self._state = ScanState.IDLE
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._done.set()
        self._thread: Optional[threading.Thread] = None
        self.current_request: Optional[ScanRequest] = None

        logger.info("ScanController initialized")

    @property
    def state(self) -> ScanState:
        with self._lock:
            return self._state

    def is_running(self) -> bool:
        """Whether a scan holds the slot (including one being stopped)."""
        return self.state is not ScanState.IDLE

    def _stop_requested(self) -> bool:
        with self._lock:
            return self._state is ScanState.STOP_REQUESTED

    def start_scan(self, request: ScanRequest) -> None:
        """Start a scan in the background.

        Raises:
            ScanConflictError: If a scan is already running.
        """
        with self._lock:
            if self._state is not ScanState.IDLE:
                raise ScanConflictError(self._state.value)
            self._state = ScanState.RUNNING
            self._done.clear()
            self.current_request = request
            self._thread = threading.Thread(
                target=self._run, args=(request,), name="lansweep-scan", daemon=True
            )
            self._thread.start()

        logger.info(f"Scan started: {request.scan_type.value} on {request.network}")

    def _run(self, request: ScanRequest) -> None:
        try:
            outcome = self.engine.run(request, should_stop=self._stop_requested)
            logger.info(f"Scan finished: {outcome.value}")
        except Exception as e:
            log_exception(logger, "Scan thread failed", e)
            with self._lock:
                stopping = self._state is ScanState.STOP_REQUESTED
            if not stopping:
                self.broadcaster.publish(ScanEvent.error_event(f"Scan failed: {e}"))
        finally:
            with self._lock:
                self._state = ScanState.IDLE
                self._thread = None
                self.current_request = None
            self._done.set()

    def stop_scan(self) -> bool:
        """Ask the running scan to stop.

        Observers are told the scan was stopped before this returns; the
        scan itself winds down in the background, waiting only for probes
        already running. A scan that is already completing is left alone.

        Returns:
            True if a running scan was asked to stop, False if there was
            nothing to stop.
        """
        with self._lock:
            if self._state is not ScanState.RUNNING:
                logger.debug(f"Stop ignored in state {self._state.value}")
                return False
            if self.engine.state is EngineState.COMPLETING:
                # Complete is already on its way to observers
                logger.debug("Stop ignored, scan is completing")
                return False
            self._state = ScanState.STOP_REQUESTED
            # Published under the lock so no new scan can start before it
            self.broadcaster.publish(ScanEvent.error_event(STOPPED_BY_USER))

        logger.info("Scan stop requested")
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until no scan is running.

        Returns:
            True if the slot is idle, False if the timeout expired first.
        """
        return self._done.wait(timeout)

    def status(self) -> dict:
        with self._lock:
            request = self.current_request
            return {
                "state": self._state.value,
                "scanning": self._state is not ScanState.IDLE,
                "request": request.to_dict() if request else None,
            }
