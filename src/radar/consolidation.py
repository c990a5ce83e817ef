# Radar - Consolidation Engine
"""
Merges raw NetworkService observations into one ConsolidatedService per
address.

Merging only ever adds: discovery methods and service types are appended if
new, a port keeps the first label it was given, and hostname, UUID, location
and server are filled only while unset. Re-merging the same observation is a
no-op.
"""

import logging
from ipaddress import ip_address
from typing import Iterable

from radar.details import parse_detail_lines
from radar.models import ConsolidatedService, NetworkService

logger = logging.getLogger("radar.consolidation")

HIDDEN_DEVICE_TYPES = {"host", "unknown"}


def address_sort_key(address: str) -> tuple:
    """Numeric order for IP addresses, lexical order for everything else."""
    try:
        ip = ip_address(address)
        return (0, ip.version, int(ip), address)
    except ValueError:
        return (1, 0, 0, address)


def guess_device_type(service_type: str) -> str:
    """``_airplay._tcp.local.`` -> ``airplay``; anything else is used as-is."""
    if "_" in service_type and "." in service_type:
        return service_type.split("_")[1].rstrip(".")
    return service_type


def _append_unique(items: list[str], value: str) -> None:
    if value not in items:
        items.append(value)


def build_friendly_description(
    consolidated: ConsolidatedService,
    extra: list[str] | None = None,
) -> str:
    """Compose ``name (hostname) [type] - address:port - Services: ...``."""
    parts = []
    name = consolidated.name
    show_name = bool(name) and len(name) < 30 and "." not in name
    if show_name:
        parts.append(name)
    if consolidated.hostname:
        parts.append(f"({consolidated.hostname})" if show_name else consolidated.hostname)
    if consolidated.device_type and consolidated.device_type not in HIDDEN_DEVICE_TYPES:
        parts.append(f"[{consolidated.device_type}]")

    description = " ".join(parts) if parts else f"Device at {consolidated.address}"

    description += f" - {consolidated.address}"
    if consolidated.port is not None:
        description += f":{consolidated.port}"

    if consolidated.open_ports:
        services = ", ".join(
            f"{label}:{port}" for port, label in sorted(consolidated.open_ports.items())
        )
        description += f" - Services: {services}"

    if extra:
        description += f"\nDetails: {', '.join(extra)}"

    return description


def merge_service(consolidated: ConsolidatedService, service: NetworkService) -> None:
    """Fold one observation into an existing record for the same address."""
    _append_unique(consolidated.discovery_methods, service.discovery_method.value)
    _append_unique(consolidated.service_types, service.service_type)

    if service.port is not None and service.port not in consolidated.open_ports:
        consolidated.open_ports[service.port] = service.service_type

    facts = parse_detail_lines(service.details)
    if facts.hostname and not consolidated.hostname:
        consolidated.hostname = facts.hostname
    if facts.uuid and not consolidated.uuid:
        consolidated.uuid = facts.uuid
    if facts.location and not consolidated.location:
        consolidated.location = facts.location
    if facts.server and not consolidated.server:
        consolidated.server = facts.server
    for port, label in facts.ports:
        consolidated.open_ports.setdefault(port, label)

    consolidated.friendly_description = build_friendly_description(consolidated, facts.extra)


def merge_consolidated(existing: ConsolidatedService, other: ConsolidatedService) -> None:
    """Fold a record from a later scan into the stored one."""
    for method in other.discovery_methods:
        _append_unique(existing.discovery_methods, method)
    for service_type in other.service_types:
        _append_unique(existing.service_types, service_type)
    for port, label in other.open_ports.items():
        existing.open_ports.setdefault(port, label)

    for attr in ("port", "hostname", "device_type", "uuid", "location", "server"):
        if getattr(existing, attr) is None and getattr(other, attr) is not None:
            setattr(existing, attr, getattr(other, attr))

    extra: list[str] = []
    for description in (existing.friendly_description, other.friendly_description):
        _, found, tail = description.partition("\nDetails: ")
        if found:
            for item in tail.split(", "):
                _append_unique(extra, item)

    existing.friendly_description = build_friendly_description(existing, extra)


def consolidate_services(services: Iterable[NetworkService]) -> list[ConsolidatedService]:
    """Group observations by address and merge each group."""
    by_address: dict[str, ConsolidatedService] = {}

    for service in services:
        consolidated = by_address.get(service.address)
        if consolidated is None:
            consolidated = ConsolidatedService(
                name=service.name,
                address=service.address,
                port=service.port,
                device_type=guess_device_type(service.service_type),
            )
            by_address[service.address] = consolidated
        merge_service(consolidated, service)

    logger.debug(f"Consolidated {len(by_address)} addresses")
    return sorted(by_address.values(), key=lambda c: address_sort_key(c.address))
