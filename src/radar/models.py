# Radar - Data Models
"""
Records produced by the discovery components and the merged per-address view.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable


class DiscoveryMethod(str, Enum):
    """How a service was found."""
    MDNS = "mDNS"
    UPNP = "UPnP"
    NETWORK_SCAN = "Network Scan"


@dataclass(frozen=True)
class NetworkService:
    """One raw discovery observation."""
    name: str
    service_type: str
    address: str
    port: int | None
    discovery_method: DiscoveryMethod
    details: str | None = None

    @property
    def key(self) -> tuple[str, int | None]:
        """Deduplication identity."""
        return (self.address, self.port)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "service_type": self.service_type,
            "address": self.address,
            "port": self.port,
            "discovery_method": self.discovery_method.value,
            "details": self.details,
        }


@dataclass
class ConsolidatedService:
    """All observations sharing one network address, merged."""
    name: str
    address: str
    port: int | None = None
    hostname: str | None = None
    device_type: str | None = None
    discovery_methods: list[str] = field(default_factory=list)
    service_types: list[str] = field(default_factory=list)
    open_ports: dict[int, str] = field(default_factory=dict)
    uuid: str | None = None
    location: str | None = None
    server: str | None = None
    friendly_description: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "address": self.address,
            "port": self.port,
            "hostname": self.hostname,
            "device_type": self.device_type,
            "discovery_methods": list(self.discovery_methods),
            "service_types": list(self.service_types),
            "open_ports": {str(p): label for p, label in sorted(self.open_ports.items())},
            "uuid": self.uuid,
            "location": self.location,
            "server": self.server,
            "friendly_description": self.friendly_description,
        }


@dataclass
class NetworkHost:
    """Accumulated port findings for one address."""
    hostname: str | None = None
    tcp_ports: set[int] = field(default_factory=set)
    udp_ports: set[int] = field(default_factory=set)

    def merge(
        self,
        hostname: str | None = None,
        tcp_ports: Iterable[int] = (),
        udp_ports: Iterable[int] = (),
    ) -> None:
        # hostname is write-once
        if hostname and not self.hostname:
            self.hostname = hostname
        self.tcp_ports.update(tcp_ports)
        self.udp_ports.update(udp_ports)

    def copy(self) -> "NetworkHost":
        return NetworkHost(self.hostname, set(self.tcp_ports), set(self.udp_ports))

    def to_dict(self) -> dict[str, Any]:
        return {
            "hostname": self.hostname,
            "tcp_ports": sorted(self.tcp_ports),
            "udp_ports": sorted(self.udp_ports),
        }


@dataclass
class NetworkInterface:
    """A local, non-loopback interface."""
    name: str
    ip: str
    is_default: bool = False
    type: str = "Unknown"

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "ip": self.ip, "is_default": self.is_default, "type": self.type}


@dataclass
class IspConfig:
    """Best-effort ISP metadata gathered locally."""
    isp_name: str | None = None
    connection_type: str | None = None
    hostname: str | None = None
    uptime: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "isp_name": self.isp_name,
            "connection_type": self.connection_type,
            "hostname": self.hostname,
            "uptime": self.uptime,
        }


@dataclass
class RouterInfo:
    """Gateway and local network configuration."""
    gateway_ip: str | None = None
    gateway_mac: str | None = None
    manufacturer: str | None = None
    model: str | None = None
    dns_servers: list[str] = field(default_factory=list)
    public_ip: str | None = None
    upnp_enabled: bool = False
    isp_config: IspConfig = field(default_factory=IspConfig)
    interfaces: list[NetworkInterface] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "gateway_ip": self.gateway_ip,
            "gateway_mac": self.gateway_mac,
            "manufacturer": self.manufacturer,
            "model": self.model,
            "dns_servers": list(self.dns_servers),
            "public_ip": self.public_ip,
            "upnp_enabled": self.upnp_enabled,
            "isp_config": self.isp_config.to_dict(),
            "interfaces": [i.to_dict() for i in self.interfaces],
        }


@dataclass
class GeoLocation:
    country: str | None = None
    country_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "country": self.country,
            "country_code": self.country_code,
        }


@dataclass
class PublicNetworkInfo:
    """Aggregate snapshot of the public edge of this network."""
    ip: str | None = None
    isp: str | None = None
    asn: str = ""
    org: str | None = None
    hostname: str | None = None
    local_hostname: str | None = None
    dns_servers: list[str] = field(default_factory=list)
    location: GeoLocation = field(default_factory=GeoLocation)
    router_info: RouterInfo | None = None
    is_vpn: bool = False
    is_proxy: bool = False
    is_hosting: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "ip": self.ip,
            "isp": self.isp,
            "asn": self.asn,
            "org": self.org,
            "hostname": self.hostname,
            "local_hostname": self.local_hostname,
            "dns_servers": list(self.dns_servers),
            "location": self.location.to_dict(),
            "router_info": self.router_info.to_dict() if self.router_info else None,
            "is_vpn": self.is_vpn,
            "is_proxy": self.is_proxy,
            "is_hosting": self.is_hosting,
        }
