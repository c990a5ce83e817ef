# Radar Discovery - Public Network Info
"""
Public-edge snapshot: public IP, ISP and ASN, country, DNS servers, router
details and a rough VPN / proxy / hosting guess.

ASN data comes from Team Cymru's DNS interface
(``<reversed ip>.origin.asn.cymru.com`` TXT records), whose answers look like
``"7922 | 73.0.0.0/12 | US | arin | 2008-02-12"``.
"""

import asyncio
import logging
import socket
from dataclasses import dataclass

import dns.exception
import dns.resolver
import dns.reversename

from radar.config import Settings
from radar.discovery.router import RouterProber
from radar.discovery.stun import resolve_public_ip
from radar.models import GeoLocation, PublicNetworkInfo

logger = logging.getLogger("radar.discovery.public_network")

ASN_ZONE = "origin.asn.cymru.com"

ISP_PATTERNS = [
    ("comcast", "Comcast"),
    ("xfinity", "Comcast Xfinity"),
    ("verizon", "Verizon"),
    ("fios", "Verizon FiOS"),
    ("att", "AT&T"),
    ("spectrum", "Spectrum"),
    ("charter", "Charter Communications"),
    ("cox", "Cox Communications"),
    ("centurylink", "CenturyLink"),
    ("frontier", "Frontier Communications"),
    ("windstream", "Windstream"),
    ("suddenlink", "Suddenlink"),
    ("optimum", "Optimum"),
    ("mediacom", "Mediacom"),
    ("wow", "WOW! Internet"),
    ("rcn", "RCN"),
    ("hughesnet", "HughesNet"),
    ("starlink", "Starlink"),
    ("viasat", "Viasat"),
    ("tmobile", "T-Mobile"),
    ("sprint", "Sprint"),
    ("boost", "Boost Mobile"),
    ("cricket", "Cricket Wireless"),
    ("metropcs", "Metro by T-Mobile"),
]

ORG_DOMAINS = {
    "comcast.net": "Comcast",
    "rr.com": "Spectrum",
    "amazonaws.com": "Amazon Web Services",
    "googlefiber.net": "Google Fiber",
    "verizon.net": "Verizon",
    "att.net": "AT&T",
    "cox.net": "Cox Communications",
    "charter.com": "Charter Communications",
    "centurylink.net": "CenturyLink",
    "frontiernet.net": "Frontier Communications",
}

VPN_PATTERNS = ["vpn", "proxy", "tor", "exit", "node", "relay", "tunnel"]
HOSTING_PATTERNS = ["aws", "amazon", "azure", "google", "cloud", "host", "server", "cdn", "vps"]
VPN_ASNS = ["as60068", "as16276", "as51852", "as14618"]


@dataclass
class AsnRecord:
    asn: str
    prefix: str | None = None
    country: str | None = None
    org: str | None = None
    date: str | None = None


def parse_asn_record(txt: str) -> AsnRecord | None:
    """Parse ``ASN | prefix | country | org | date``."""
    parts = [p.strip() for p in txt.strip().strip('"').split("|")]
    if len(parts) < 4 or not parts[0]:
        return None
    return AsnRecord(
        asn=parts[0],
        prefix=parts[1] or None,
        country=parts[2] or None,
        org=parts[3] or None,
        date=parts[4] if len(parts) > 4 and parts[4] else None,
    )


def asn_query_name(ip: str) -> str:
    return ".".join(reversed(ip.split("."))) + f".{ASN_ZONE}"


def extract_isp_from_hostname(hostname: str) -> str | None:
    lowered = hostname.lower()
    for pattern, isp in ISP_PATTERNS:
        if pattern in lowered:
            return isp
    return None


def extract_org_from_hostname(hostname: str) -> str | None:
    parts = hostname.rstrip(".").split(".")
    if len(parts) < 2:
        return None

    domain = ".".join(parts[-2:])
    if domain in ORG_DOMAINS:
        if domain == "amazonaws.com" and len(parts) >= 3 and ("compute" in parts[-3] or "ec2" in parts[-3]):
            return "Amazon AWS EC2"
        return ORG_DOMAINS[domain]
    if domain == "googleusercontent.com":
        return "Google Cloud"
    if domain == "azure.com":
        return "Microsoft Azure"
    return domain


def infer_privacy_flags(hostname: str | None, asn: str | None) -> tuple[bool, bool, bool]:
    """
    Guess (is_vpn, is_proxy, is_hosting) from the reverse hostname and ASN.
    A VPN match also marks the address as a proxy.
    """
    is_vpn = is_proxy = is_hosting = False

    if hostname:
        lowered = hostname.lower()
        if any(p in lowered for p in VPN_PATTERNS):
            is_vpn = is_proxy = True
        if any(p in lowered for p in HOSTING_PATTERNS):
            is_hosting = True

    if asn:
        lowered = asn.lower()
        if not lowered.startswith("as"):
            lowered = f"as{lowered}"
        if any(lowered == p or lowered.startswith(p + " ") for p in VPN_ASNS):
            is_vpn = is_proxy = True

    return is_vpn, is_proxy, is_hosting


def _resolve_txt(name: str, lifetime: float) -> list[str]:
    answers = dns.resolver.resolve(name, "TXT", lifetime=lifetime)
    return [b"".join(rdata.strings).decode(errors="replace") for rdata in answers]


def _resolve_ptr(ip: str, lifetime: float) -> str:
    answers = dns.resolver.resolve(dns.reversename.from_address(ip), "PTR", lifetime=lifetime)
    return str(answers[0]).rstrip(".")


async def lookup_asn(ip: str, lifetime: float = 2.0) -> AsnRecord | None:
    """ASN record for an IPv4 address, or None."""
    loop = asyncio.get_running_loop()
    try:
        records = await loop.run_in_executor(None, _resolve_txt, asn_query_name(ip), lifetime)
    except dns.exception.DNSException as e:
        logger.debug(f"ASN lookup for {ip} failed: {e}")
        return None

    for txt in records:
        record = parse_asn_record(txt)
        if record:
            return record
    return None


async def get_isp_info_from_ip(ip: str, lifetime: float = 2.0) -> tuple[str | None, str | None]:
    """(organization, country) for an IP, each None when unknown."""
    record = await lookup_asn(ip, lifetime)
    if record is None:
        return None, None
    return record.org, record.country


async def reverse_dns(ip: str, lifetime: float = 2.0) -> str | None:
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(None, _resolve_ptr, ip, lifetime)
    except (dns.exception.DNSException, ValueError) as e:
        logger.debug(f"Reverse DNS for {ip} failed: {e}")
        return None


async def get_public_network_info(settings: Settings, prober: RouterProber) -> PublicNetworkInfo:
    """
    Build the public network snapshot. Every step is best-effort; an unknown
    public IP leaves ``ip`` empty rather than failing.
    """
    lifetime = settings.dns_lookup_lifetime
    info = PublicNetworkInfo(location=GeoLocation())

    ip, router_info = await asyncio.gather(
        resolve_public_ip(settings.stun_servers, settings.stun_timeout, prober),
        prober.probe(),
    )
    info.router_info = router_info
    info.dns_servers = list(router_info.dns_servers)
    info.local_hostname = router_info.isp_config.hostname or socket.gethostname()

    if router_info.gateway_ip:
        _, country = await get_isp_info_from_ip(router_info.gateway_ip, lifetime)
        if country:
            info.location.country = country
            info.location.country_code = country

    if ip:
        info.ip = ip
        info.hostname = await reverse_dns(ip, lifetime)
        if info.hostname:
            info.isp = extract_isp_from_hostname(info.hostname)
            info.org = extract_org_from_hostname(info.hostname)

        record = await lookup_asn(ip, lifetime)
        if record:
            info.asn = record.asn
            info.org = info.org or record.org
            info.isp = info.isp or record.org
            if not info.location.country and record.country:
                info.location.country = record.country
                info.location.country_code = record.country
    else:
        logger.warning("Public IP unknown; snapshot limited to local information")

    if not info.isp and router_info.isp_config.isp_name:
        info.isp = router_info.isp_config.isp_name

    info.is_vpn, info.is_proxy, info.is_hosting = infer_privacy_flags(info.hostname, info.asn)
    logger.info(f"Public network: ip={info.ip} isp={info.isp} asn={info.asn or '-'}")
    return info
