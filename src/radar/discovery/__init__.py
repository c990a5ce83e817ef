# Radar Discovery
"""
Discovery protocols: mDNS, SSDP/UPnP, ARP + port scan, STUN, and local
gateway probing.
"""

from .mdns import MulticastBrowser, MdnsRecord, build_mdns_service
from .ssdp import (
    DeviceDescriptionFetcher,
    DeviceDescription,
    SsdpResponse,
    build_ssdp_service,
    parse_device_description,
)
from .local_scan import LocalHostScanner, parse_arp_table
from .router import RouterProber
from .stun import (
    build_binding_request,
    parse_binding_response,
    query_binding_server,
    resolve_public_ip,
)
from .public_network import (
    get_isp_info_from_ip,
    get_public_network_info,
    lookup_asn,
)

__all__ = [
    # mDNS
    "MulticastBrowser",
    "MdnsRecord",
    "build_mdns_service",
    # SSDP / UPnP
    "DeviceDescriptionFetcher",
    "DeviceDescription",
    "SsdpResponse",
    "build_ssdp_service",
    "parse_device_description",
    # Local scan
    "LocalHostScanner",
    "parse_arp_table",
    # Router
    "RouterProber",
    # STUN
    "build_binding_request",
    "parse_binding_response",
    "query_binding_server",
    "resolve_public_ip",
    # Public network
    "get_isp_info_from_ip",
    "get_public_network_info",
    "lookup_asn",
]
