"""Command-line interface for Radar."""

import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from radar import __version__
from radar.config import load_settings
from radar.events import SERVICE_DISCOVERED, EventBus
from radar.exceptions import PublicIPNotFoundError, ScanInProgressError
from radar.log import configure_logging
from radar.models import ConsolidatedService, NetworkService
from radar.orchestrator import DiscoveryOrchestrator


console = Console()


def _build_orchestrator(settings_path: Optional[str], verbose: bool, live: bool = False) -> DiscoveryOrchestrator:
    configure_logging(verbose)
    settings = load_settings(Path(settings_path) if settings_path else None)
    events = EventBus()

    if live:
        def show(event: str, payload: dict) -> None:
            if event == SERVICE_DISCOVERED:
                port = f":{payload['port']}" if payload.get("port") is not None else ""
                console.print(
                    f"  [green]+[/green] [cyan]{payload['address']}{port}[/cyan] "
                    f"{payload['name']} [dim]({payload['discovery_method']})[/dim]"
                )
        events.subscribe(show)

    return DiscoveryOrchestrator(events=events, settings=settings)


def print_consolidated(records: list[ConsolidatedService]) -> None:
    table = Table(title=f"Discovered Devices ({len(records)} total)")
    table.add_column("Address", style="cyan")
    table.add_column("Name")
    table.add_column("Hostname")
    table.add_column("Type", style="bold")
    table.add_column("Methods")
    table.add_column("Ports")

    for record in records:
        ports = ", ".join(f"{label}:{port}" for port, label in sorted(record.open_ports.items()))
        table.add_row(
            record.address,
            record.name,
            record.hostname or "-",
            record.device_type or "-",
            ", ".join(record.discovery_methods),
            ports or "-",
        )
    console.print(table)


def print_services(services: list[NetworkService], title: str) -> None:
    table = Table(title=f"{title} ({len(services)} total)")
    table.add_column("Address", style="cyan")
    table.add_column("Port", justify="right")
    table.add_column("Name")
    table.add_column("Type")

    for service in sorted(services, key=lambda s: (s.address, s.port or 0)):
        table.add_row(
            service.address,
            str(service.port) if service.port is not None else "-",
            service.name,
            service.service_type,
        )
    console.print(table)


def common_options(func):
    func = click.option("--settings", "settings_path", type=click.Path(dir_okay=False), default=None,
                        help="Settings JSON file")(func)
    func = click.option("-v", "--verbose", is_flag=True, help="Verbose output")(func)
    return func


@click.group()
@click.version_option(version=__version__, prog_name="radar")
def main():
    """Radar - local network and public edge discovery.

    Finds devices with mDNS, SSDP/UPnP, ARP and port probing and merges
    every sighting into one record per address.
    """
    pass


@main.command()
@common_options
@click.option("--json", "as_json", is_flag=True, help="Print consolidated records as JSON")
def scan(settings_path: Optional[str], verbose: bool, as_json: bool):
    """Run every discovery stage and show one row per device.

    Examples:

        radar scan

        radar scan --json > devices.json
    """
    orchestrator = _build_orchestrator(settings_path, verbose, live=not as_json)

    async def run():
        if not as_json:
            console.print(Panel.fit(
                "[bold cyan]NETWORK SCAN[/bold cyan]\n"
                f"[dim]mDNS types: {len(orchestrator.settings.mdns_service_types)} | "
                f"SSDP targets: {len(orchestrator.settings.ssdp_search_targets)} | "
                f"TCP/UDP ports: {len(orchestrator.settings.tcp_ports)}/{len(orchestrator.settings.udp_ports)}[/dim]",
                border_style="cyan",
            ))
        return await orchestrator.run_full_scan()

    try:
        records = asyncio.run(run())
    except ScanInProgressError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps([r.to_dict() for r in records], indent=2))
        return

    if not records:
        console.print("[yellow]No devices found[/yellow]")
        return
    console.print()
    print_consolidated(records)


@main.command()
@common_options
def mdns(settings_path: Optional[str], verbose: bool):
    """Browse mDNS / DNS-SD services only."""
    orchestrator = _build_orchestrator(settings_path, verbose)
    with console.status("[bold blue]Browsing mDNS services..."):
        services = asyncio.run(orchestrator.run_mdns_only())
    print_services(services, "mDNS Services")


@main.command()
@common_options
def ssdp(settings_path: Optional[str], verbose: bool):
    """Search for SSDP / UPnP devices only."""
    orchestrator = _build_orchestrator(settings_path, verbose)
    with console.status("[bold blue]Searching for UPnP devices..."):
        services = asyncio.run(orchestrator.run_ssdp_only())
    print_services(services, "UPnP Devices")


@main.command()
@common_options
def hosts(settings_path: Optional[str], verbose: bool):
    """ARP enumeration and port probing only."""
    orchestrator = _build_orchestrator(settings_path, verbose)
    with console.status("[bold blue]Probing local hosts..."):
        services = asyncio.run(orchestrator.run_local_scan_only())
    print_services(services, "Local Hosts and Services")


@main.command("public-ip")
@common_options
def public_ip(settings_path: Optional[str], verbose: bool):
    """Print this network's public IPv4 address (via STUN)."""
    orchestrator = _build_orchestrator(settings_path, verbose)
    try:
        ip = asyncio.run(orchestrator.get_public_ip())
    except PublicIPNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    click.echo(ip)


@main.command()
@common_options
def router(settings_path: Optional[str], verbose: bool):
    """Show gateway, interfaces and DNS configuration."""
    orchestrator = _build_orchestrator(settings_path, verbose)
    info = asyncio.run(orchestrator.get_router_info())

    console.print(Panel.fit(
        f"[bold cyan]GATEWAY[/bold cyan]\n"
        f"Address: {info.gateway_ip or '-'}\n"
        f"MAC: {info.gateway_mac or '-'}\n"
        f"DNS: {', '.join(info.dns_servers) or '-'}\n"
        f"Connection: {info.isp_config.connection_type or '-'}\n"
        f"Hostname: {info.isp_config.hostname or '-'}",
        border_style="cyan",
    ))

    table = Table(title="Interfaces")
    table.add_column("Name", style="cyan")
    table.add_column("Address")
    table.add_column("Type")
    table.add_column("Default")
    for iface in info.interfaces:
        table.add_row(iface.name, iface.ip, iface.type, "[green]yes[/green]" if iface.is_default else "-")
    console.print(table)


@main.command()
@common_options
@click.option("--json", "as_json", is_flag=True, help="Print the snapshot as JSON")
def public(settings_path: Optional[str], verbose: bool, as_json: bool):
    """Show public IP, ISP, ASN and VPN/hosting indicators."""
    orchestrator = _build_orchestrator(settings_path, verbose)
    with console.status("[bold blue]Collecting public network info..."):
        info = asyncio.run(orchestrator.get_public_network_info())

    if as_json:
        click.echo(json.dumps(info.to_dict(), indent=2))
        return

    flags = [name for name, value in (("VPN", info.is_vpn), ("proxy", info.is_proxy), ("hosting", info.is_hosting)) if value]
    console.print(Panel.fit(
        f"[bold cyan]PUBLIC NETWORK[/bold cyan]\n"
        f"IP: {info.ip or '[yellow]unknown[/yellow]'}\n"
        f"Hostname: {info.hostname or '-'}\n"
        f"ISP: {info.isp or '-'}\n"
        f"Org: {info.org or '-'}\n"
        f"ASN: {info.asn or '-'}\n"
        f"Country: {info.location.country or '-'}\n"
        f"DNS: {', '.join(info.dns_servers) or '-'}\n"
        f"Flags: {', '.join(flags) or 'none'}",
        border_style="cyan",
    ))


if __name__ == "__main__":
    main()
