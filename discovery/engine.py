"""Scan engine: drives one scan from address expansion to the terminal event.

A scan runs one or two sweeps over the requested block:
1. Ping sweep - liveness probe per address; live hosts get a hostname
2. ARP sweep  - neighbor table entries first (source=cached), then a probe
                and link-layer lookup per address (source=active)

Probes run on a BoundedTaskRunner. Results are handled one at a time as they
complete: the engine checks for a stop request, publishes the result, then
publishes the new progress percentage. Progress is counted over every
address of every sweep, so it never goes backwards and ends at 100.

Cancellation is cooperative. A stop request is noticed before the next
result is handled or the next sweep starts; probes already running are
waited for and their results discarded. A stopped scan publishes no
terminal event of its own (the controller announces the stop).
"""
import threading
from contextlib import closing
from dataclasses import replace
from enum import Enum
from typing import Callable, List, Optional, Set

from config import InvalidRangeError, ScanConflictError, get_logger, log_exception
from config.logging_config import LogContext
from discovery.addresses import expand
from discovery.events import ProbeResult, ScanEvent
from discovery.hostname import HostnameResolver
from discovery.models import LinkEntry, LinkSource, PingResult, ScanRequest
from discovery.probe import Probe
from discovery.runner import BoundedTaskRunner

logger = get_logger(__name__)

StopCheck = Callable[[], bool]


class EngineState(Enum):
    """Lifecycle of the engine."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETING = "completing"
    ABORTING = "aborting"


class ScanOutcome(Enum):
    """How a scan ended."""

    COMPLETED = "completed"
    STOPPED = "stopped"
    FAILED = "failed"


class _ProgressTracker:
    """Counts processed addresses across all sweeps of a scan."""

    def __init__(self, total: int):
        self.total = max(total, 1)
        self.processed = 0

    @property
    def percent(self) -> int:
        return min(100, self.processed * 100 // self.total)

    def advance(self) -> int:
        self.processed += 1
        return self.percent


class ScanEngine:
    """Runs scans and publishes their events.

    The engine runs one scan at a time; `run` is synchronous and is
    normally called on a worker thread by the ScanController.

    Attributes:
        probe: Liveness and link-layer lookups.
        resolver: Hostname cache shared by every scan.
        broadcaster: Anything with a publish(ScanEvent) method.
        skip_pending_on_stop: Cancel not-yet-started probes on stop, so a
            stopped scan only waits for probes already running. False lets
            every queued probe run, discarding the results.

    Example:
        >>> engine = ScanEngine(probe, resolver, broadcaster)
        >>> engine.run(ScanRequest(network="10.0.0.0/29", scan_type="ping"))
        <ScanOutcome.COMPLETED: 'completed'>
    """

    def __init__(self, probe: Probe, resolver: HostnameResolver, broadcaster,
                 skip_pending_on_stop: bool = True):
        self.probe = probe
        self.resolver = resolver
        self.broadcaster = broadcaster
        self.skip_pending_on_stop = skip_pending_on_stop
        self._state = EngineState.IDLE
        self._state_lock = threading.Lock()
        self._found: Set[str] = set()

    @property
    def hosts_found(self) -> int:
        """Distinct addresses reported live or resolved in the current scan."""
        return len(self._found)

    @property
    def state(self) -> EngineState:
        with self._state_lock:
            return self._state

    def _set_state(self, state: EngineState) -> None:
        with self._state_lock:
            self._state = state

    def _publish(self, event: ScanEvent) -> None:
        self.broadcaster.publish(event)

    def _publish_result(self, result: ProbeResult) -> None:
        self._publish(ScanEvent.result_event(result))

    def _runner(self, request: ScanRequest) -> BoundedTaskRunner:
        return BoundedTaskRunner(request.concurrency, skip_pending_on_stop=self.skip_pending_on_stop)

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def run(self, request: ScanRequest, should_stop: Optional[StopCheck] = None) -> ScanOutcome:
        """Run a scan to its end.

        Progress events start with the first probed address; no 0% event
        is published when the scan begins. A stopped scan publishes no
        terminal event of its own; the caller that stopped it announces that.

        Args:
            request: What to scan.
            should_stop: Polled at each checkpoint; True stops the scan.

        Returns:
            How the scan ended.

        Raises:
            ScanConflictError: If the engine is already running a scan.
        """
        with self._state_lock:
            if self._state is not EngineState.IDLE:
                raise ScanConflictError(self._state.value)
            self._state = EngineState.RUNNING

        try:
            return self._run(request, should_stop or (lambda: False))
        finally:
            self._set_state(EngineState.IDLE)

    def _run(self, request: ScanRequest, should_stop: StopCheck) -> ScanOutcome:
        self._found = set()
        logger.info(f"Starting {request.scan_type.value} scan on {request.network} "
                    f"(threads={request.concurrency}, timeout={request.timeout}s)")

        try:
            addresses = expand(request.network)
        except InvalidRangeError as e:
            logger.warning(f"Rejected scan: {e}")
            return self._fail(f"Invalid network range: {e.message}")
        except Exception as e:
            log_exception(logger, "Could not prepare scan", e)
            return self._fail(f"Scan failed: {e}")

        sweeps: List[Callable[..., bool]] = []
        if request.scan_type.runs_ping:
            sweeps.append(self._ping_sweep)
        if request.scan_type.runs_arp:
            sweeps.append(self._arp_sweep)
        progress = _ProgressTracker(len(addresses) * len(sweeps))

        try:
            for sweep in sweeps:
                if should_stop() or not sweep(request, addresses, progress, should_stop):
                    return self._stopped()
        except Exception as e:
            log_exception(logger, "Scan failed", e)
            return self._fail(f"Scan failed: {e}")

        self._set_state(EngineState.COMPLETING)
        # A stop that saw RUNNING is visible here; one that sees COMPLETING is refused
        if should_stop():
            return self._stopped()

        logger.info(f"Scan of {request.network} completed: {self.hosts_found} hosts found")
        self._publish(ScanEvent.complete_event(
            f"Scan completed: {self.hosts_found} hosts found"))
        return ScanOutcome.COMPLETED

    def _stopped(self) -> ScanOutcome:
        self._set_state(EngineState.ABORTING)
        logger.info("Scan stopped on request")
        return ScanOutcome.STOPPED

    def _fail(self, message: str) -> ScanOutcome:
        self._set_state(EngineState.ABORTING)
        self._publish(ScanEvent.error_event(message))
        return ScanOutcome.FAILED

    # ========================================================================
    # Ping sweep
    # ========================================================================

    def _ping_host(self, address: str, timeout: float) -> PingResult:
        try:
            liveness = self.probe.probe_liveness(address, timeout)
        except Exception as e:
            logger.debug(f"Ping probe raised for {address}: {e}")
            return PingResult(address=address, alive=False, error=str(e))

        hostname = self.resolver.resolve(address) if liveness.alive else ""
        return PingResult(
            address=address,
            alive=liveness.alive,
            rtt=liveness.rtt,
            hostname=hostname or None,
            error=liveness.error,
        )

    def _ping_sweep(self, request: ScanRequest, addresses: List[str],
                    progress: _ProgressTracker, should_stop: StopCheck) -> bool:
        """Returns False if the sweep was cut short by a stop request."""
        total = len(addresses)
        processed = alive = 0

        with LogContext(logger, f"Ping sweep of {total} addresses"):
            results = self._runner(request).iter_results(
                addresses, lambda address: self._ping_host(address, request.timeout))
            with closing(results):
                for result in results:
                    if should_stop():
                        return False
                    if result.alive:
                        alive += 1
                        self._found.add(result.address)
                        logger.debug(f"Host up: {result.address} "
                                     f"(hostname: {result.hostname}, rtt: {result.rtt_ms}ms)")
                    if result.alive or request.verbose:
                        self._publish_result(result)
                    processed += 1
                    self._publish(ScanEvent.progress_event(
                        progress.advance(), f"Ping scan progress: {processed}/{total}"))

        logger.info(f"Ping scan finished: {alive}/{total} hosts alive")
        return True

    # ========================================================================
    # ARP sweep
    # ========================================================================

    def _read_neighbor_table(self, addresses: List[str]) -> List[LinkEntry]:
        try:
            entries = self.probe.list_neighbor_table()
        except Exception as e:
            logger.warning(f"Neighbor table unavailable: {e}")
            return []
        in_range = set(addresses)
        return [entry for entry in entries if entry.address in in_range]

    def _name_entry(self, entry: LinkEntry) -> LinkEntry:
        return replace(entry, hostname=self.resolver.resolve(entry.address) or None)

    def _link_host(self, address: str, timeout: float) -> LinkEntry:
        try:
            # The probe fills the neighbor table for hosts that answer ARP
            self.probe.probe_liveness(address, timeout)
            link_address = self.probe.lookup_link_address(address)
        except Exception as e:
            logger.debug(f"Link probe raised for {address}: {e}")
            return LinkEntry(address=address, source=LinkSource.ACTIVE_SCAN)

        hostname = self.resolver.resolve(address) if link_address else ""
        return LinkEntry(
            address=address,
            link_address=link_address or "",
            hostname=hostname or None,
            source=LinkSource.ACTIVE_SCAN,
        )

    def _arp_sweep(self, request: ScanRequest, addresses: List[str],
                   progress: _ProgressTracker, should_stop: StopCheck) -> bool:
        """Returns False if the sweep was cut short by a stop request."""
        total = len(addresses)
        cached = self._read_neighbor_table(addresses)
        logger.info(f"Found {len(cached)} in-range entries in the neighbor table")
        if cached:
            named = self._runner(request).iter_results(cached, self._name_entry)
            with closing(named):
                for entry in named:
                    if should_stop():
                        return False
                    self._found.add(entry.address)
                    self._publish_result(entry)

        logger.info("Scanning network for active devices...")

        processed = found = 0
        with LogContext(logger, f"ARP sweep of {total} addresses"):
            entries = self._runner(request).iter_results(
                addresses, lambda address: self._link_host(address, request.timeout))
            with closing(entries):
                for entry in entries:
                    if should_stop():
                        return False
                    if entry.is_resolved:
                        found += 1
                        self._found.add(entry.address)
                    if entry.is_resolved or request.verbose:
                        self._publish_result(entry)
                    processed += 1
                    self._publish(ScanEvent.progress_event(
                        progress.advance(), f"ARP scan progress: {processed}/{total}"))

        logger.info(f"ARP scan finished: {found}/{total} link addresses found")
        return True
