#!/usr/bin/env python3
"""
Judas CLI - Command Line Interface
Host discovery and port scanning from the terminal
"""

import asyncio
import ipaddress
import logging
import signal
import sys
import time
from datetime import datetime
from typing import List

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from judas.core.discovery import HostScanCoordinator
from judas.core.errors import ValidationError
from judas.core.models import Device, ScanState
from judas.core.options import WATCHDOG_DEFAULT, ScanOptions
from judas.core.portscan import PortScanCoordinator
from judas.core.targets import parse_target_spec
from judas.utils.services import service_name

console = Console()
logger = logging.getLogger(__name__)

STATE_STYLES = {
    ScanState.COMPLETED: "green",
    ScanState.CANCELLED: "yellow",
    ScanState.TIMED_OUT: "yellow",
}


def setup_logging(verbose: int):
    """Setup logging based on verbosity level"""
    if verbose == 0:
        level = logging.WARNING
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def create_scan_options(params: dict) -> ScanOptions:
    """Create ScanOptions from click parameters"""
    return ScanOptions(
        watchdog_enabled=params.get('watchdog', True),
        watchdog_timeout=params.get('timeout') or WATCHDOG_DEFAULT,
    )


def install_stop_handler(stop):
    """Route Ctrl-C to a coordinator's stop() instead of killing the loop"""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, stop)
    except (NotImplementedError, RuntimeError):
        # Windows event loops: fall back to KeyboardInterrupt
        return False
    return True


def display_banner():
    """Display Judas banner"""
    console.print(Panel("Judas - LAN Host & Port Scanner", style="bold blue"))


def display_state(state: ScanState, elapsed: float):
    style = STATE_STYLES.get(state, "white")
    console.print(f"Scan [{style}]{state.value}[/{style}] in {elapsed:.2f}s")


def display_ports(host: str, open_ports: List[int]):
    """Display open ports in a table"""
    if not open_ports:
        console.print(f"[yellow]No open ports found on {host}[/yellow]")
        return

    table = Table(title=f"[bold]{host}[/bold]")
    table.add_column("Port", style="cyan", no_wrap=True)
    table.add_column("State", style="green")
    table.add_column("Service", style="yellow")

    for port in open_ports:
        table.add_row(f"{port}/tcp", "open", service_name(port))

    console.print(table)


def display_devices(devices: List[Device], targets: int, elapsed: float):
    """Display discovered hosts"""
    summary = f"""
Discovery Summary:
├─ Hosts: {len(devices)}/{targets} up
└─ Time: {elapsed:.2f}s
    """
    console.print(Panel(summary, title="[bold]Scan Complete[/bold]", style="green"))

    if not devices:
        return

    table = Table(title="Devices")
    table.add_column("IP Address", style="cyan", no_wrap=True)
    table.add_column("Open Ports", style="magenta")

    for device in devices:
        ports = ", ".join(f"{p} ({service_name(p)})" for p in device.open_ports)
        table.add_row(device.ip_address, ports or "-")

    console.print(table)


async def run_port_scan(host: str, options: ScanOptions) -> PortScanCoordinator:
    """Port-scan one host with a progress bar"""
    scanner = PortScanCoordinator(options)
    install_stop_handler(scanner.stop)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        console=console
    ) as progress:
        task = progress.add_task(f"Scanning {host}...", total=len(scanner.ports))
        scanner.on_progress = lambda p: progress.update(task, completed=p.scanned)
        scanner.on_open_port = lambda port: progress.console.print(
            f"  [green]open[/green] {port}/tcp {service_name(port)}"
        )
        await scanner.scan(host)

    return scanner


async def run_discovery(spec, options: ScanOptions, scan_ports: bool):
    """Run host discovery, printing hosts as they come in"""
    coordinator = HostScanCoordinator(options)
    install_stop_handler(coordinator.stop)

    coordinator.on_host = lambda device: console.print(f"[green]Host up:[/green] {device.ip_address}")

    session = await coordinator.start(spec)
    if session is None:
        return coordinator, None

    console.print(f"Probing [cyan]{len(session.targets)}[/cyan] addresses in [cyan]{session.spec}[/cyan]")
    await coordinator.wait()
    if coordinator.status:
        console.print(f"[yellow]{coordinator.status}[/yellow]")

    if scan_ports and session.devices:
        for device in session.devices:
            scanner = await run_port_scan(device.ip_address, options)
            device.open_ports = list(scanner.open_ports)
            if scanner.state is ScanState.CANCELLED:
                break

    return coordinator, session


@click.group()
@click.option('-v', '--verbose', count=True, help='Increase verbosity level')
@click.version_option(package_name="judas")
def main(verbose):
    """
    Judas - LAN Host & Port Scanner

    Examples:
      judas discover
      judas discover --subnet 192.168.1. --timeout 120
      judas ports 192.168.1.20
    """
    setup_logging(verbose)


@main.command()
@click.option('-s', '--subnet', help='Address (a.b.c.d) or subnet prefix (a.b.c.) to scan; default: local subnet')
@click.option('-t', '--timeout', type=float, default=WATCHDOG_DEFAULT, show_default=True,
              help='Give up on discovery after this many seconds (10-300)')
@click.option('--watchdog/--no-watchdog', default=True, help='Enable the discovery timeout')
@click.option('-p', '--ports', 'scan_ports', is_flag=True, help='Port-scan every host found')
@click.pass_context
def discover(ctx, **params):
    """Find live hosts on a subnet"""
    display_banner()

    spec = None
    if params.get('subnet') is not None:
        try:
            spec = parse_target_spec(params['subnet'])
        except ValidationError as e:
            console.print(f"[bold red]Error:[/bold red] {e}")
            ctx.exit(2)

    options = create_scan_options(params)
    console.print(f"[bold]Starting Judas[/bold] at {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

    start_time = time.time()
    try:
        coordinator, session = asyncio.run(run_discovery(spec, options, params.get('scan_ports', False)))
    except KeyboardInterrupt:
        console.print("\n[bold red]Scan interrupted by user[/bold red]")
        sys.exit(1)

    if session is None:
        console.print(f"[bold red]Error:[/bold red] {coordinator.status}")
        ctx.exit(1)

    elapsed = time.time() - start_time
    display_state(coordinator.state, elapsed)
    display_devices(session.devices, len(session.targets), elapsed)


@main.command()
@click.argument('host')
@click.pass_context
def ports(ctx, host):
    """Scan the well-known TCP ports of HOST"""
    display_banner()

    try:
        ipaddress.IPv4Address(host)
    except ValueError:
        console.print(f"[bold red]Error:[/bold red] '{host}' is not a valid IPv4 address")
        ctx.exit(2)

    options = create_scan_options({})
    start_time = time.time()
    try:
        scanner = asyncio.run(run_port_scan(host, options))
    except KeyboardInterrupt:
        console.print("\n[bold red]Scan interrupted by user[/bold red]")
        sys.exit(1)

    if scanner.status:
        console.print(f"[bold red]Error:[/bold red] {scanner.status}")
        ctx.exit(2)

    display_state(scanner.state, time.time() - start_time)
    display_ports(host, scanner.open_ports)


if __name__ == '__main__':
    main()
