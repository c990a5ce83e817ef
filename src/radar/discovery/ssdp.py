# Radar Discovery - SSDP / UPnP
"""
SSDP M-SEARCH discovery followed by a fetch of each responder's UPnP device
description.

A responder whose description cannot be fetched or parsed is still reported
from its announcement alone.
"""

import asyncio
import logging
import socket
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from urllib.parse import urlsplit

import httpx

from radar.config import Settings
from radar.events import SERVICE_DISCOVERED, EventBus
from radar.exceptions import DescriptionParseError
from radar.models import DiscoveryMethod, NetworkService
from radar.store import DiscoveryStore

logger = logging.getLogger("radar.discovery.ssdp")

SSDP_ADDR = "239.255.255.250"
SSDP_PORT = 1900
SSDP_MX = 1


@dataclass
class SsdpResponse:
    """Headers of one M-SEARCH response."""
    location: str
    server: str | None = None
    search_target: str | None = None
    usn: str | None = None


@dataclass
class UpnpService:
    service_type: str | None = None
    service_id: str | None = None
    control_url: str | None = None
    event_sub_url: str | None = None
    scpd_url: str | None = None


@dataclass
class DeviceDescription:
    """The ``<device>`` element of a UPnP description document."""
    device_type: str | None = None
    friendly_name: str | None = None
    manufacturer: str | None = None
    manufacturer_url: str | None = None
    model_description: str | None = None
    model_name: str | None = None
    model_number: str | None = None
    model_url: str | None = None
    serial_number: str | None = None
    udn: str | None = None
    presentation_url: str | None = None
    services: list[UpnpService] = field(default_factory=list)
    devices: list["DeviceDescription"] = field(default_factory=list)


def build_search_request(search_target: str, mx: int = SSDP_MX) -> bytes:
    return (
        "M-SEARCH * HTTP/1.1\r\n"
        f"HOST: {SSDP_ADDR}:{SSDP_PORT}\r\n"
        'MAN: "ssdp:discover"\r\n'
        f"MX: {mx}\r\n"
        f"ST: {search_target}\r\n"
        "\r\n"
    ).encode()


def parse_search_response(response: str) -> SsdpResponse | None:
    """Parse an M-SEARCH response. Returns None without a LOCATION header."""
    headers: dict[str, str] = {}
    for line in response.splitlines()[1:]:
        if ":" in line:
            key, _, value = line.partition(":")
            headers.setdefault(key.strip().upper(), value.strip())

    location = headers.get("LOCATION")
    if not location:
        return None
    return SsdpResponse(
        location=location,
        server=headers.get("SERVER"),
        search_target=headers.get("ST"),
        usn=headers.get("USN"),
    )


def parse_location(location: str) -> tuple[str, int | None]:
    """``http://192.168.1.1:5000/desc.xml`` -> (``192.168.1.1``, 5000)."""
    try:
        parts = urlsplit(location)
        host = parts.hostname
        port = parts.port
    except ValueError:
        return "Unknown", None
    if not host or parts.scheme not in ("http", "https"):
        return "Unknown", None
    return host, port if port is not None else 80


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child(element: ET.Element, name: str) -> ET.Element | None:
    for child in element:
        if _local_name(child.tag) == name:
            return child
    return None


def _text(element: ET.Element, name: str) -> str | None:
    child = _child(element, name)
    if child is None or child.text is None:
        return None
    return child.text.strip() or None


def _parse_device(element: ET.Element) -> DeviceDescription:
    device = DeviceDescription(
        device_type=_text(element, "deviceType"),
        friendly_name=_text(element, "friendlyName"),
        manufacturer=_text(element, "manufacturer"),
        manufacturer_url=_text(element, "manufacturerURL"),
        model_description=_text(element, "modelDescription"),
        model_name=_text(element, "modelName"),
        model_number=_text(element, "modelNumber"),
        model_url=_text(element, "modelURL"),
        serial_number=_text(element, "serialNumber"),
        udn=_text(element, "UDN"),
        presentation_url=_text(element, "presentationURL"),
    )

    service_list = _child(element, "serviceList")
    if service_list is not None:
        for svc in service_list:
            if _local_name(svc.tag) == "service":
                device.services.append(UpnpService(
                    service_type=_text(svc, "serviceType"),
                    service_id=_text(svc, "serviceId"),
                    control_url=_text(svc, "controlURL"),
                    event_sub_url=_text(svc, "eventSubURL"),
                    scpd_url=_text(svc, "SCPDURL"),
                ))

    device_list = _child(element, "deviceList")
    if device_list is not None:
        for sub in device_list:
            if _local_name(sub.tag) == "device":
                device.devices.append(_parse_device(sub))

    return device


def parse_device_description(xml_text: str) -> DeviceDescription:
    """
    Parse a UPnP description document (namespace-agnostic).

    Raises:
        DescriptionParseError: invalid XML or no ``<device>`` element
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise DescriptionParseError(f"Invalid device description: {e}") from e

    device = root if _local_name(root.tag) == "device" else _child(root, "device")
    if device is None:
        raise DescriptionParseError("Device description has no <device> element")
    return _parse_device(device)


def _description_lines(desc: DeviceDescription) -> list[str]:
    lines = []
    if desc.device_type:
        lines.append(f"Device Type: {desc.device_type}")
        segments = desc.device_type.split(":")
        if len(segments) > 3:
            lines.append(f"Protocol: {segments[3]}")
    if desc.friendly_name:
        lines.append(f"Name: {desc.friendly_name}")
    if desc.manufacturer:
        lines.append(f"Manufacturer: {desc.manufacturer}")
    if desc.manufacturer_url:
        lines.append(f"Manufacturer URL: {desc.manufacturer_url}")
    if desc.model_name:
        lines.append(f"Model: {desc.model_name}")
    if desc.model_description:
        lines.append(f"Model Description: {desc.model_description}")
    if desc.model_number:
        lines.append(f"Model Number: {desc.model_number}")
    if desc.model_url:
        lines.append(f"Model URL: {desc.model_url}")
    if desc.serial_number:
        lines.append(f"Serial Number: {desc.serial_number}")
    if desc.udn:
        lines.append(f"UDN: {desc.udn}")
        lines.append(f"UUID: {desc.udn.removeprefix('uuid:')}")
    if desc.presentation_url:
        lines.append(f"Web Interface: {desc.presentation_url}")

    if desc.services:
        lines.append("\nServices:")
        for svc in desc.services:
            lines.append(f"  - Type: {svc.service_type or 'Unknown'}")
            if svc.service_id:
                lines.append(f"    ID: {svc.service_id}")
            if svc.control_url:
                lines.append(f"    Control URL: {svc.control_url}")
            if svc.event_sub_url:
                lines.append(f"    Event URL: {svc.event_sub_url}")
            if svc.scpd_url:
                lines.append(f"    SCPD URL: {svc.scpd_url}")

    if desc.devices:
        lines.append("\nEmbedded Devices:")
        for sub in desc.devices:
            lines.append(f"  - {sub.friendly_name or 'Unnamed device'}")
            if sub.device_type:
                lines.append(f"    Type: {sub.device_type}")
            if sub.model_name:
                lines.append(f"    Model: {sub.model_name}")
            if sub.manufacturer:
                lines.append(f"    Manufacturer: {sub.manufacturer}")

    return lines


def _announcement_lines(response: SsdpResponse) -> list[str]:
    lines = ["\nSSDP Information:", f"Location: {response.location}"]

    if response.server:
        lines.append(f"Server: {response.server}")
        # e.g. "Linux/3.14 UPnP/1.0 MiniUPnPd/2.1"
        tokens = response.server.split()
        if tokens:
            lines.append(f"  OS: {tokens[0]}")
        upnp = next((t for t in tokens if t.upper().startswith("UPNP/")), None)
        if upnp:
            lines.append(f"  UPnP Version: {upnp}")

    if response.search_target:
        lines.append(f"Search Target: {response.search_target}")
        if response.search_target.startswith("urn:"):
            parts = response.search_target.split(":")
            labels = ("Domain", "Type", "Name", "Version")
            for label, value in zip(labels, parts[1:]):
                lines.append(f"  {label}: {value}")

    if response.usn:
        lines.append(f"USN: {response.usn}")
        uuid_part = response.usn.split("::")[0]
        if uuid_part.startswith("uuid:"):
            lines.append(f"  UUID: {uuid_part.removeprefix('uuid:')}")

    return lines


def build_ssdp_service(response: SsdpResponse, description: DeviceDescription | None) -> NetworkService:
    """Build the record for one responder, enriched when a description is available."""
    address, port = parse_location(response.location)

    name = None
    service_type = None
    lines: list[str] = []
    if description is not None:
        name = description.friendly_name or description.model_name
        service_type = description.device_type
        lines.extend(_description_lines(description))
    lines.extend(_announcement_lines(response))

    return NetworkService(
        name=name or f"UPnP Device at {address}",
        service_type=service_type or "UPnP Device",
        address=address,
        port=port,
        discovery_method=DiscoveryMethod.UPNP,
        details="\n".join(lines),
    )


def dedupe_services(services: list[NetworkService]) -> list[NetworkService]:
    """Keep the first record per (address, port)."""
    seen = set()
    unique = []
    for service in services:
        if service.key not in seen:
            seen.add(service.key)
            unique.append(service)
    return unique


class _SearchProtocol(asyncio.DatagramProtocol):
    def __init__(self):
        self.responses: list[tuple[str, str]] = []

    def datagram_received(self, data, addr):
        self.responses.append((data.decode("utf-8", errors="ignore"), addr[0]))

    def error_received(self, exc):
        logger.debug(f"SSDP receive error: {exc}")


class DeviceDescriptionFetcher:
    """
    Finds UPnP devices with SSDP and reads their device descriptions.
    """

    def __init__(
        self,
        store: DiscoveryStore,
        events: EventBus,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.store = store
        self.events = events
        self.settings = settings
        self.transport = transport

    async def search(self, search_target: str) -> list[SsdpResponse]:
        """One M-SEARCH round. Transport errors yield an empty list."""
        loop = asyncio.get_running_loop()
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, 2)
            sock.bind(("", 0))
            transport, protocol = await loop.create_datagram_endpoint(_SearchProtocol, sock=sock)
        except OSError as e:
            logger.warning(f"SSDP socket error: {e}")
            return []

        try:
            request = build_search_request(search_target)
            for _ in range(1 + self.settings.ssdp_retries):
                transport.sendto(request, (SSDP_ADDR, SSDP_PORT))
            await asyncio.sleep(self.settings.ssdp_timeout)
        except OSError as e:
            logger.warning(f"SSDP search for {search_target} failed: {e}")
        finally:
            transport.close()

        responses = []
        for text, addr in protocol.responses:
            parsed = parse_search_response(text)
            if parsed is None:
                logger.debug(f"Ignoring SSDP response from {addr} without LOCATION")
                continue
            responses.append(parsed)
        logger.debug(f"SSDP {search_target}: {len(responses)} responses")
        return responses

    async def fetch_description(self, client: httpx.AsyncClient, location: str) -> DeviceDescription | None:
        try:
            response = await client.get(location)
            response.raise_for_status()
            return parse_device_description(response.text)
        except (httpx.HTTPError, DescriptionParseError) as e:
            logger.debug(f"Failed to fetch description from {location}: {e}")
            return None

    async def discover(self) -> list[NetworkService]:
        logger.info("Running SSDP/UPnP discovery")
        services: list[NetworkService] = []
        descriptions: dict[str, DeviceDescription | None] = {}
        seen: set[tuple[str, int | None]] = set()

        async with httpx.AsyncClient(timeout=self.settings.http_timeout, transport=self.transport) as client:
            for search_target in self.settings.ssdp_search_targets:
                for response in await self.search(search_target):
                    if response.location not in descriptions:
                        descriptions[response.location] = await self.fetch_description(client, response.location)
                    description = descriptions[response.location]

                    service = build_ssdp_service(response, description)
                    if service.address != "Unknown":
                        self.store.network_map.add(service.address, tcp_ports=[service.port or 80])
                    services.append(service)

                    if service.key not in seen:
                        seen.add(service.key)
                        await self.events.publish(SERVICE_DISCOVERED, service.to_dict())

        unique = dedupe_services(services)
        logger.info(f"SSDP discovery complete: {len(unique)} devices")
        return unique
