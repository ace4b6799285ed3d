#!/usr/bin/env python3
"""
LAN Sweep - Ping and ARP discovery for local IPv4 networks.

This module provides the command line:
- scan: sweep a block and render live progress and result tables
- serve: run the HTTP control surface
- interfaces: list local IPv4 interfaces
"""
import ipaddress
import json
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from app.controller import STOPPED_BY_USER
from app.dependencies import AppDependencies, create_dependencies
from app.events import ScanEvent, ScanEventType, Subscription
from config import (
    APP_NAME,
    APP_VERSION,
    EVENTS,
    SCAN,
    WEB,
    ConfigurationError,
    get_logger,
    setup_logging,
)
from discovery.interfaces import get_current_address, list_interfaces
from discovery.models import LinkEntry, PingResult, ScanRequest
from discovery.utils import detect_platform

console = Console()
logger = get_logger(__name__)

EXIT_FAILED = 1
EXIT_STOPPED = 130


class DurationType(click.ParamType):
    """Seconds given as "2", "2s", "1.5s" or "500ms"."""

    name = "duration"
    _pattern = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s)?\s*$", re.IGNORECASE)

    def convert(self, value, param, ctx):
        if isinstance(value, (int, float)):
            seconds = float(value)
        else:
            match = self._pattern.match(str(value))
            if not match:
                self.fail(f"'{value}' is not a duration (e.g. 2s, 500ms)", param, ctx)
            seconds = float(match.group(1))
            if (match.group(2) or "s").lower() == "ms":
                seconds /= 1000.0
        if seconds <= 0:
            self.fail("duration must be positive", param, ctx)
        return seconds


DURATION = DurationType()


@dataclass
class ScanReport:
    """Everything the command line saw on a scan's event stream."""

    ping_results: List[PingResult] = field(default_factory=list)
    link_entries: List[LinkEntry] = field(default_factory=list)
    outcome: Optional[ScanEvent] = None

    def add(self, event: ScanEvent) -> None:
        if event.event_type is ScanEventType.RESULT:
            if isinstance(event.result, PingResult):
                self.ping_results.append(event.result)
            elif isinstance(event.result, LinkEntry):
                self.link_entries.append(event.result)
        elif event.is_terminal and self.outcome is None:
            self.outcome = event

    @property
    def found(self) -> int:
        alive = {r.address for r in self.ping_results if r.alive}
        linked = {e.address for e in self.link_entries if e.is_resolved}
        return len(alive | linked)

    @property
    def completed(self) -> bool:
        return self.outcome is not None and self.outcome.event_type is ScanEventType.COMPLETE

    @property
    def stopped(self) -> bool:
        return self.outcome is not None and self.outcome.message == STOPPED_BY_USER

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome.to_dict() if self.outcome else None,
            "ping": [r.to_dict() for r in self.ping_results],
            "arp": [e.to_dict() for e in self.link_entries],
        }


def _ip_key(address: str):
    return ipaddress.IPv4Address(address)


def follow_scan(deps: AppDependencies, subscription: Subscription, report: ScanReport) -> bool:
    """Render a running scan until its stream ends.

    The first Ctrl-C requests a stop; a second one stops waiting.

    Returns:
        False if the user forced an exit before the scan wound down.
    """
    interrupted = False
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[cyan]{task.description}[/cyan]"),
            BarColumn(),
            TaskProgressColumn(),
            TextColumn("[dim]{task.fields[found]} found[/dim]"),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Starting...", total=100, found=0)

            while report.outcome is None:
                try:
                    event = subscription.get(timeout=EVENTS.CLI_POLL_SECONDS)
                except KeyboardInterrupt:
                    if interrupted:
                        raise
                    interrupted = True
                    console.print("[yellow]Stopping scan... (Ctrl-C again to quit)[/yellow]")
                    deps.controller.stop_scan()
                    continue

                if event is None:
                    if not deps.controller.is_running() and subscription.pending() == 0:
                        break
                    continue

                report.add(event)
                if event.event_type is ScanEventType.PROGRESS:
                    progress.update(task, completed=event.progress, description=event.message)
                elif event.event_type is ScanEventType.RESULT:
                    progress.update(task, found=report.found)

        if not deps.controller.wait(timeout=EVENTS.CLI_STOP_WAIT_SECONDS):
            logger.warning("Scan still winding down, not waiting any longer")
    except KeyboardInterrupt:
        deps.controller.stop_scan()
        console.print("[red]Interrupted[/red]")
        return False
    return True


def render_report(report: ScanReport, verbose: bool = False) -> None:
    """Print result tables for a finished scan."""
    if report.ping_results:
        table = Table(title="Ping Scan Results", show_header=True, header_style="bold cyan")
        table.add_column("IP Address", style="cyan")
        table.add_column("Status")
        table.add_column("RTT", justify="right")
        table.add_column("Hostname")

        for result in sorted(report.ping_results, key=lambda r: _ip_key(r.address)):
            if result.alive:
                table.add_row(result.address, "[green]UP[/green]",
                              f"{result.rtt_ms:.1f} ms", result.hostname or "N/A")
            elif verbose:
                table.add_row(result.address, "[red]DOWN[/red]", "N/A", "N/A")
        console.print(table)

    if report.link_entries:
        table = Table(title="ARP Scan Results", show_header=True, header_style="bold cyan")
        table.add_column("IP Address", style="cyan")
        table.add_column("MAC Address")
        table.add_column("Hostname")
        table.add_column("Source", style="dim")

        for entry in sorted(report.link_entries,
                            key=lambda e: (_ip_key(e.address), e.source.value)):
            table.add_row(entry.address, entry.link_address or "N/A",
                          entry.hostname or "N/A", entry.source.value)
        console.print(table)

    if report.completed:
        console.print(f"\n[green]{report.outcome.message}[/green]")
    elif report.outcome is not None:
        console.print(f"\n[red]{report.outcome.message}[/red]")


@click.group()
@click.version_option(version=APP_VERSION, prog_name=APP_NAME)
def cli():
    """
    LAN Sweep - Ping and ARP discovery for local IPv4 networks.

    Example: lansweep scan -n 192.168.0.0/24 -s ping
    """


@cli.command()
@click.option('--network', '-n', default=SCAN.DEFAULT_NETWORK, show_default=True,
              help='Network to scan (CIDR notation)')
@click.option('--scan', '-s', 'scan_type', default=SCAN.DEFAULT_SCAN_TYPE, show_default=True,
              type=click.Choice(['ping', 'arp', 'both'], case_sensitive=False),
              help='Scan type')
@click.option('--threads', '-T', default=SCAN.DEFAULT_CONCURRENCY, show_default=True,
              type=int, help='Number of concurrent probes')
@click.option('--timeout', '-t', default=SCAN.DEFAULT_TIMEOUT_SECONDS, show_default=True,
              type=DURATION, help='Timeout per probe (e.g. 2s, 500ms)')
@click.option('--output', '-o', type=click.Path(dir_okay=False, path_type=Path),
              help='Also write results as JSON to this file')
@click.option('--verbose', is_flag=True, help='Also show hosts that did not answer')
@click.option('--debug', is_flag=True, help='Enable debug logging')
def scan(network, scan_type, threads, timeout, output, verbose, debug):
    """Sweep a network for live hosts and their MAC addresses."""
    setup_logging(debug=debug)

    try:
        request = ScanRequest(network=network, scan_type=scan_type, concurrency=threads,
                              timeout=timeout, verbose=verbose)
    except ConfigurationError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        sys.exit(EXIT_FAILED)

    console.print(Panel.fit(
        f"Operating System: {detect_platform()}\n"
        f"Scan Type: {request.scan_type.value}\n"
        f"Network: {request.network}\n"
        f"Threads: {request.concurrency}\n"
        f"Timeout: {request.timeout:g}s",
        title=f"[bold cyan]LAN Sweep[/bold cyan] [dim]v{APP_VERSION}[/dim]",
    ))

    logger.info(f"Command line scan requested: {request.to_dict()}")
    deps = create_dependencies()
    subscription = deps.broadcaster.subscribe(capacity=EVENTS.CLI_QUEUE_SIZE)
    report = ScanReport()
    try:
        deps.controller.start_scan(request)
        finished = follow_scan(deps, subscription, report)
    finally:
        deps.broadcaster.unsubscribe(subscription)

    if not finished:
        sys.exit(EXIT_STOPPED)

    render_report(report, verbose=verbose)

    if output is not None:
        output.write_text(json.dumps(
            {"request": request.to_dict(), **report.to_dict()}, indent=2), encoding="utf-8")
        console.print(f"[dim]Results written to {output}[/dim]")

    if report.stopped:
        sys.exit(EXIT_STOPPED)
    if not report.completed:
        sys.exit(EXIT_FAILED)


@cli.command()
@click.option('--host', default=WEB.HOST, show_default=True, help='Address to listen on')
@click.option('--port', '-p', default=WEB.PORT, show_default=True, type=int,
              help='Port to listen on')
@click.option('--debug', is_flag=True, help='Enable debug logging')
def serve(host, port, debug):
    """Run the HTTP control surface."""
    from web.server import serve as run_server

    setup_logging(debug=debug)
    console.print(f"[bold cyan]LAN Sweep[/bold cyan] listening on http://{host}:{port}")
    run_server(create_dependencies(), host, port)


@cli.command()
def interfaces():
    """List local IPv4 interfaces."""
    current = get_current_address(with_gateway=True)

    table = Table(title="Network Interfaces", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="cyan")
    table.add_column("IP Address")
    table.add_column("Network")
    table.add_column("MAC Address", style="dim")

    for iface in list_interfaces():
        marker = " [green]*[/green]" if current.success and iface.name == current.interface else ""
        table.add_row(f"{iface.name}{marker}", iface.address, iface.network, iface.mac or "N/A")
    console.print(table)

    if current.success:
        console.print(f"Suggested network: [green]{current.network}[/green]")
        if current.gateway:
            console.print(f"Default gateway: [green]{current.gateway}[/green]")
    else:
        console.print(f"[yellow]{current.error}[/yellow]")


def main():
    """Entry point for the application."""
    cli()


if __name__ == "__main__":
    main()
