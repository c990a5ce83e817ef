# Radar Discovery - Multicast DNS
"""
mDNS / DNS-SD browsing for AirPlay, Chromecast, printers, HomeKit and
similar devices.

Each service type gets its own zeroconf ServiceBrowser. Resolved records are
handed from the zeroconf threads to the event loop through a per-type queue,
and every type is polled concurrently for the same window.
"""

import asyncio
import logging
import queue
from dataclasses import dataclass, field

from zeroconf import ServiceBrowser, ServiceInfo, ServiceListener, Zeroconf

from radar.config import Settings
from radar.events import SERVICE_DISCOVERED, EventBus
from radar.exceptions import DiscoverySessionError
from radar.models import DiscoveryMethod, NetworkService
from radar.store import DiscoveryStore

logger = logging.getLogger("radar.discovery.mdns")


@dataclass
class MdnsRecord:
    """A resolved DNS-SD service instance."""
    fullname: str
    service_type: str
    hostname: str
    port: int
    addresses: list[str] = field(default_factory=list)
    properties: dict[str, str] = field(default_factory=dict)

    @property
    def protocol(self) -> str:
        return "UDP" if "_udp" in self.service_type else "TCP"


def clean_service_type(service_type: str) -> str:
    """``_googlecast._tcp.local.`` -> ``googlecast``"""
    return service_type.replace("._tcp.local.", "").replace("._udp.local.", "").replace("_", "")


def record_from_info(info: ServiceInfo, service_type: str) -> MdnsRecord:
    properties = {}
    for key, value in (info.properties or {}).items():
        k = key.decode("utf-8", errors="replace") if isinstance(key, bytes) else str(key)
        if value is None:
            v = ""
        elif isinstance(value, bytes):
            v = value.decode("utf-8", errors="replace")
        else:
            v = str(value)
        properties[k] = v

    return MdnsRecord(
        fullname=info.name,
        service_type=service_type,
        hostname=info.server or "",
        port=info.port or 0,
        addresses=info.parsed_addresses(),
        properties=properties,
    )


def build_mdns_service(record: MdnsRecord) -> NetworkService | None:
    """Turn a resolved record into a NetworkService. None if it has no address."""
    if not record.addresses:
        return None

    address = record.addresses[0]
    clean_type = clean_service_type(record.service_type)

    name = record.fullname.split(".")[0] if record.fullname else ""
    if not name:
        name = record.hostname.split(".")[0] if record.hostname else ""
    if not name:
        name = f"{clean_type.upper()} Device"

    lines = [
        f"Host: {record.hostname}",
        f"Full Name: {record.fullname}",
        f"Service Type: {clean_type}",
        f"Protocol: {record.protocol}",
        f"Port: {record.port}",
    ]
    if record.properties:
        lines.append("\nTXT Records:")
        lines.extend(f"  {k}: {v}" for k, v in record.properties.items())
    if len(record.addresses) > 1:
        lines.append("\nAll Addresses:")
        lines.extend(f"  - {a}" for a in record.addresses)

    return NetworkService(
        name=name,
        service_type=record.service_type,
        address=address,
        port=record.port,
        discovery_method=DiscoveryMethod.MDNS,
        details="\n".join(lines),
    )


class _ResolvingListener(ServiceListener):
    """Resolves announced instances on the browser thread and queues them."""

    def __init__(self, records: queue.Queue, timeout_ms: int):
        self.records = records
        self.timeout_ms = timeout_ms

    def add_service(self, zc: Zeroconf, type_: str, name: str) -> None:
        self._resolve(zc, type_, name)

    def update_service(self, zc: Zeroconf, type_: str, name: str) -> None:
        self._resolve(zc, type_, name)

    def remove_service(self, zc: Zeroconf, type_: str, name: str) -> None:
        pass

    def _resolve(self, zc: Zeroconf, type_: str, name: str) -> None:
        try:
            info = zc.get_service_info(type_, name, timeout=self.timeout_ms)
        except Exception as e:
            logger.debug(f"Failed to resolve {name}: {e}")
            return
        if info is not None:
            self.records.put(record_from_info(info, type_))


class MulticastBrowser:
    """
    Browses a fixed catalog of DNS-SD service types.
    """

    def __init__(self, store: DiscoveryStore, events: EventBus, settings: Settings):
        self.store = store
        self.events = events
        self.settings = settings

    async def discover(self) -> list[NetworkService]:
        """
        Run one browse pass over every configured service type.

        Raises:
            DiscoverySessionError: the multicast session could not be opened
        """
        loop = asyncio.get_running_loop()
        logger.info(f"Running mDNS discovery for {len(self.settings.mdns_service_types)} service types")

        try:
            zc = await loop.run_in_executor(None, Zeroconf)
        except Exception as e:
            raise DiscoverySessionError(f"Failed to create mDNS session: {e}") from e

        browsers: list[ServiceBrowser] = []
        pollers = []
        seen: set[tuple[str, str, int | None]] = set()
        try:
            for service_type in self.settings.mdns_service_types:
                records: queue.Queue = queue.Queue()
                listener = _ResolvingListener(records, self.settings.mdns_resolve_timeout_ms)
                try:
                    browsers.append(ServiceBrowser(zc, service_type, listener))
                except Exception as e:
                    logger.warning(f"Failed to browse {service_type}: {e}")
                    continue
                pollers.append(self._poll(service_type, records, seen))

            results = await asyncio.gather(*pollers)
        finally:
            await loop.run_in_executor(None, _shutdown, zc, browsers)

        services = [s for batch in results for s in batch]
        logger.info(f"mDNS discovery complete: {len(services)} services")
        return services

    async def _poll(
        self,
        service_type: str,
        records: queue.Queue,
        seen: set[tuple[str, str, int | None]],
    ) -> list[NetworkService]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.settings.mdns_window
        services: list[NetworkService] = []

        while loop.time() < deadline:
            try:
                record = records.get_nowait()
            except queue.Empty:
                await asyncio.sleep(self.settings.mdns_poll_interval)
                continue
            except Exception as e:
                logger.warning(f"mDNS receive error for {service_type}: {e}")
                break

            service = build_mdns_service(record)
            if service is None:
                logger.debug(f"Skipping {record.fullname}: no addresses")
                continue

            key = (record.fullname, service.address, service.port)
            if key in seen:
                continue
            seen.add(key)

            if record.protocol == "UDP":
                self.store.network_map.add(service.address, record.hostname or None, udp_ports=[record.port])
            else:
                self.store.network_map.add(service.address, record.hostname or None, tcp_ports=[record.port])

            logger.debug(f"mDNS: {service.name} at {service.address}:{service.port}")
            services.append(service)
            await self.events.publish(SERVICE_DISCOVERED, service.to_dict())

        return services


def _shutdown(zc: Zeroconf, browsers: list[ServiceBrowser]) -> None:
    for browser in browsers:
        browser.cancel()
    zc.close()
