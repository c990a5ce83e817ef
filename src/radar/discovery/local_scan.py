# Radar Discovery - Local Host Scan
"""
Local network host enumeration and port probing.

Hosts come from the ARP cache, or from the local /24 when the cache is empty.
Every host is probed against a small TCP and UDP port catalog with at most
``max_concurrent_hosts`` hosts in flight.
"""

import asyncio
import logging
import re
import socket
from ipaddress import IPv4Address, IPv4Network

from radar.config import Settings
from radar.discovery.system import get_local_ip, run_command
from radar.events import SERVICE_DISCOVERED, EventBus
from radar.models import DiscoveryMethod, NetworkService
from radar.store import DiscoveryStore

logger = logging.getLogger("radar.discovery.local_scan")

PORT_LABELS = {
    20: "ftp",
    21: "ftp",
    22: "ssh",
    23: "telnet",
    25: "smtp",
    53: "dns",
    67: "dhcp",
    68: "dhcp",
    69: "tftp",
    80: "http",
    110: "pop3",
    123: "ntp",
    161: "snmp",
    162: "snmp",
    443: "https",
    587: "smtp",
    993: "imaps",
    995: "pop3s",
    1900: "upnp",
    3306: "mysql",
    3389: "rdp",
    5353: "mdns",
    5432: "postgresql",
    8080: "http",
    8443: "https",
}

UDP_PROBE = bytes([0, 1, 2, 3])

# "router.local (192.168.1.1) at aa:bb:cc:dd:ee:ff on en0"
BSD_ARP_RE = re.compile(r"^\s*(\S*)\s*\((\d+\.\d+\.\d+\.\d+)\)")
# "  192.168.1.1           aa-bb-cc-dd-ee-ff     dynamic"
WINDOWS_ARP_RE = re.compile(r"^\s*(\d+\.\d+\.\d+\.\d+)\s+([0-9A-Fa-f]{2}[:-]){5}[0-9A-Fa-f]{2}")


def port_label(port: int) -> str:
    return PORT_LABELS.get(port, "unknown")


def _is_ipv4(text: str) -> bool:
    try:
        IPv4Address(text)
        return True
    except ValueError:
        return False


def parse_arp_table(text: str) -> list[tuple[str, str | None]]:
    """
    Extract (ip, hostname) pairs from ``arp -a`` output.

    Unresolved hostnames (``?``) become None. Lines without a valid IPv4
    address are skipped.
    """
    hosts: list[tuple[str, str | None]] = []
    seen: set[str] = set()

    for line in text.splitlines():
        match = BSD_ARP_RE.match(line)
        if match:
            hostname, ip = match.group(1), match.group(2)
            if not hostname or hostname == "?":
                hostname = None
        else:
            match = WINDOWS_ARP_RE.match(line)
            if not match:
                continue
            hostname, ip = None, match.group(1)

        if not _is_ipv4(ip) or ip in seen:
            continue
        seen.add(ip)
        hosts.append((ip, hostname))

    return hosts


def subnet_hosts(local_ip: str) -> list[str]:
    """Every host address of the /24 containing ``local_ip``."""
    network = IPv4Network(f"{local_ip}/24", strict=False)
    return [str(ip) for ip in network.hosts()]


async def read_arp_table(timeout: float = 10.0) -> str:
    return await run_command("arp", "-a", timeout=timeout)


async def probe_tcp(ip: str, port: int, timeout: float = 0.5) -> bool:
    try:
        _, writer = await asyncio.wait_for(asyncio.open_connection(ip, port), timeout=timeout)
    except (OSError, asyncio.TimeoutError):
        return False
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return True


class _UdpProbeProtocol(asyncio.DatagramProtocol):
    def __init__(self):
        self.result: asyncio.Future[bool] = asyncio.get_running_loop().create_future()

    def datagram_received(self, data, addr):
        if not self.result.done():
            self.result.set_result(True)

    def error_received(self, exc):
        # ICMP port unreachable surfaces here as ConnectionRefusedError
        if not self.result.done():
            self.result.set_result(False)


async def probe_udp(ip: str, port: int, timeout: float = 0.5) -> bool:
    """
    Send a 4-byte probe. A reply or silence counts as open. An ICMP
    port-unreachable counts as closed, although a receive that merely
    returns (as the refusal does on a connected socket) would otherwise look
    like an answer. A send or bind error also counts as closed.
    """
    loop = asyncio.get_running_loop()
    try:
        transport, protocol = await loop.create_datagram_endpoint(
            _UdpProbeProtocol, remote_addr=(ip, port)
        )
    except OSError:
        return False

    try:
        transport.sendto(UDP_PROBE)
        return await asyncio.wait_for(protocol.result, timeout=timeout)
    except asyncio.TimeoutError:
        return True
    except OSError:
        return False
    finally:
        transport.close()


def port_service(ip: str, port: int, protocol: str) -> NetworkService:
    label = port_label(port)
    suffix = "/udp" if protocol == "UDP" else ""
    return NetworkService(
        name=f"{label.upper()} ({ip}) on port {port}{suffix}",
        service_type=label,
        address=ip,
        port=port,
        discovery_method=DiscoveryMethod.NETWORK_SCAN,
        details=f"{protocol} service discovered on {ip}:{port}\nType: {label}",
    )


def host_service(ip: str, hostname: str | None) -> NetworkService:
    details = f"Address: {ip}"
    if hostname:
        details += f"\nHostname: {hostname}"
    return NetworkService(
        name=hostname or f"Device at {ip}",
        service_type="host",
        address=ip,
        port=None,
        discovery_method=DiscoveryMethod.NETWORK_SCAN,
        details=details,
    )


def network_device_service(ip: str, hostname: str | None, tcp: set[int], udp: set[int]) -> NetworkService:
    lines = [f"Address: {ip}"]
    if hostname:
        lines.append(f"Hostname: {hostname}")
    if tcp:
        lines.append("\nOpen TCP ports:")
        lines.extend(f"  {p}: {port_label(p)}" for p in sorted(tcp))
    if udp:
        lines.append("\nOpen UDP ports:")
        lines.extend(f"  {p}: {port_label(p)}" for p in sorted(udp))

    return NetworkService(
        name=hostname or f"Network Device at {ip}",
        service_type="network_device",
        address=ip,
        port=min(tcp) if tcp else None,
        discovery_method=DiscoveryMethod.NETWORK_SCAN,
        details="\n".join(lines),
    )


class LocalHostScanner:
    """
    ARP enumeration plus TCP/UDP port probing of every candidate host.
    """

    def __init__(self, store: DiscoveryStore, events: EventBus, settings: Settings):
        self.store = store
        self.events = events
        self.settings = settings

    async def candidate_hosts(self) -> list[tuple[str, str | None]]:
        hosts = parse_arp_table(await read_arp_table(self.settings.arp_timeout))
        if hosts:
            logger.info(f"ARP table lists {len(hosts)} hosts")
            return hosts

        local_ip = get_local_ip()
        if not local_ip:
            logger.warning("ARP table empty and local IP unknown; nothing to scan")
            return []
        logger.info(f"ARP table empty, sweeping {local_ip}/24")
        return [(ip, None) for ip in subnet_hosts(local_ip)]

    async def _resolve_hostname(self, ip: str) -> str | None:
        loop = asyncio.get_running_loop()
        try:
            hostname, _, _ = await loop.run_in_executor(None, socket.gethostbyaddr, ip)
            return hostname
        except (socket.herror, socket.gaierror, OSError):
            return None

    async def _seed(self, ip: str, hostname: str | None, limit: asyncio.Semaphore) -> None:
        if not hostname:
            async with limit:
                hostname = await self._resolve_hostname(ip)
        self.store.network_map.add(ip, hostname)

    async def scan_host(self, ip: str, limit: asyncio.Semaphore) -> list[NetworkService]:
        """Probe one host's port catalog and publish each open port."""
        timeout = self.settings.probe_timeout
        async with limit:
            tcp_results, udp_results = await asyncio.gather(
                asyncio.gather(*[probe_tcp(ip, p, timeout) for p in self.settings.tcp_ports]),
                asyncio.gather(*[probe_udp(ip, p, timeout) for p in self.settings.udp_ports]),
            )

        open_tcp = [p for p, is_open in zip(self.settings.tcp_ports, tcp_results) if is_open]
        open_udp = [p for p, is_open in zip(self.settings.udp_ports, udp_results) if is_open]

        services = [port_service(ip, p, "TCP") for p in open_tcp]
        services += [port_service(ip, p, "UDP") for p in open_udp]
        for service in services:
            await self.events.publish(SERVICE_DISCOVERED, service.to_dict())

        if open_tcp or open_udp:
            self.store.network_map.add(ip, tcp_ports=open_tcp, udp_ports=open_udp)
            logger.debug(f"{ip}: tcp={open_tcp} udp={open_udp}")
        return services

    async def discover(self) -> list[NetworkService]:
        logger.info("Running local network scan")
        hosts = await self.candidate_hosts()
        limit = asyncio.Semaphore(self.settings.max_concurrent_hosts)

        await asyncio.gather(*[self._seed(ip, hostname, limit) for ip, hostname in hosts])

        results = await asyncio.gather(
            *[self.scan_host(ip, limit) for ip, _ in hosts],
            return_exceptions=True,
        )

        services: list[NetworkService] = []
        represented: set[str] = set()
        for (ip, _), result in zip(hosts, results):
            if isinstance(result, BaseException):
                logger.warning(f"Scan of {ip} failed: {result}")
                continue
            services.extend(result)
            if result:
                represented.add(ip)

        for ip, arp_hostname in hosts:
            if ip in represented:
                continue
            entry = self.store.network_map.get(ip)
            hostname = (entry.hostname if entry else None) or arp_hostname
            services.append(host_service(ip, hostname))
            represented.add(ip)

        for ip, host in self.store.network_map.snapshot().items():
            if ip in represented or not (host.tcp_ports or host.udp_ports):
                continue
            services.append(network_device_service(ip, host.hostname, host.tcp_ports, host.udp_ports))
            represented.add(ip)

        logger.info(f"Local scan complete: {len(hosts)} hosts, {len(services)} records")
        return services
