# Radar Discovery - Gateway / Router
"""
Local view of the router: default gateway, interfaces, DNS resolvers and
rough ISP metadata.

Nothing here talks to the router over the network.
"""

import asyncio
import logging
import re
import socket
import sys
import time
from ipaddress import IPv4Address, IPv4Network
from pathlib import Path

import psutil

from radar.discovery.system import get_local_ip, run_command
from radar.exceptions import GatewayNotFoundError
from radar.models import IspConfig, NetworkInterface, RouterInfo

logger = logging.getLogger("radar.discovery.router")

FALLBACK_DNS_SERVERS = ["8.8.8.8", "1.1.1.1"]
RESOLV_CONF = Path("/etc/resolv.conf")

IPV4_RE = re.compile(r"\b(\d{1,3}(?:\.\d{1,3}){3})\b")
MAC_RE = re.compile(r"([0-9A-Fa-f]{1,2}[:-]){5}[0-9A-Fa-f]{1,2}")


def _valid_ipv4(text: str) -> bool:
    try:
        IPv4Address(text)
        return True
    except ValueError:
        return False


def parse_default_gateway(output: str) -> str | None:
    """
    Find the default gateway in ``ip route``, ``route -n``,
    ``route -n get default`` or ``route print`` output.
    """
    for line in output.splitlines():
        stripped = line.strip()

        match = re.match(r"default\s+via\s+(\S+)", stripped)
        if match and _valid_ipv4(match.group(1)):
            return match.group(1)

        match = re.match(r"gateway:\s*(\S+)", stripped)
        if match and _valid_ipv4(match.group(1)):
            return match.group(1)

        if stripped.startswith("0.0.0.0") and "On-link" not in stripped:
            for candidate in IPV4_RE.findall(stripped):
                if candidate != "0.0.0.0" and _valid_ipv4(candidate):
                    return candidate
    return None


def parse_mac_for_ip(output: str, ip: str) -> str | None:
    for line in output.splitlines():
        if re.search(rf"(?<![\d.]){re.escape(ip)}(?![\d.])", line):
            match = MAC_RE.search(line)
            if match:
                return match.group().upper().replace("-", ":")
    return None


def parse_resolv_conf(text: str) -> list[str]:
    servers = []
    for line in text.splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[0] == "nameserver" and parts[1] not in servers:
            servers.append(parts[1])
    return servers


def parse_scutil_dns(text: str) -> list[str]:
    """``nameserver[0] : 192.168.1.1`` lines from ``scutil --dns``."""
    servers = []
    for match in re.finditer(r"nameserver\[\d+\]\s*:\s*(\S+)", text):
        if match.group(1) not in servers:
            servers.append(match.group(1))
    return servers


def parse_ipconfig_dns(text: str) -> list[str]:
    """DNS server entries from ``ipconfig /all``, including continuation lines."""
    servers = []
    in_block = False
    for line in text.splitlines():
        if "DNS Servers" in line:
            in_block = True
            value = line.split(":", 1)[-1].strip()
        elif in_block and line.startswith(" ") and ":" not in line.replace("::", ""):
            value = line.strip()
        else:
            in_block = False
            continue
        if value and value not in servers:
            servers.append(value)
    return servers


def parse_uptime_seconds(text: str) -> int | None:
    """
    Rough uptime from ``uptime`` output, e.g.
    ``10:01  up 3 days,  4:05, 2 users`` -> 3 days 4 hours 5 minutes.
    """
    match = re.search(r"up\s+(.*?)(?:,\s*\d+\s+users?|,\s*load average|$)", text)
    if not match:
        return None
    span = match.group(1)

    seconds = 0
    found = False
    days = re.search(r"(\d+)\s+days?", span)
    if days:
        seconds += int(days.group(1)) * 86400
        found = True
    clock = re.search(r"(\d+):(\d{2})", span)
    if clock:
        seconds += int(clock.group(1)) * 3600 + int(clock.group(2)) * 60
        found = True
    minutes = re.search(r"(\d+)\s+mins?", span)
    if minutes:
        seconds += int(minutes.group(1)) * 60
        found = True
    return seconds if found else None


def interface_type(name: str) -> str:
    lowered = name.lower()
    if lowered.startswith(("en", "eth")):
        return "Ethernet"
    if lowered.startswith("wl"):
        return "WiFi"
    return "Unknown"


class RouterProber:
    """
    Collects gateway and local network configuration.
    """

    def __init__(self, command_timeout: float = 10.0):
        self.command_timeout = command_timeout

    async def _run(self, *args: str) -> str:
        return await run_command(*args, timeout=self.command_timeout)

    async def get_default_gateway(self) -> tuple[str, str | None]:
        """
        Returns:
            (gateway ip, gateway MAC or None)

        Raises:
            GatewayNotFoundError: no platform tool reported a default route
        """
        if sys.platform == "win32":
            commands = [("route", "print", "0.0.0.0")]
        elif sys.platform == "darwin":
            commands = [("route", "-n", "get", "default")]
        else:
            commands = [("ip", "route", "show", "default"), ("route", "-n")]

        gateway = None
        for command in commands:
            gateway = parse_default_gateway(await self._run(*command))
            if gateway:
                break
        if not gateway:
            raise GatewayNotFoundError("No default route found")

        mac = parse_mac_for_ip(await self._run("arp", "-a", gateway), gateway)
        logger.debug(f"Default gateway {gateway} ({mac or 'unknown MAC'})")
        return gateway, mac

    def get_interfaces(self, gateway_ip: str | None = None) -> list[NetworkInterface]:
        """Non-loopback IPv4 interfaces; the outbound one is flagged default."""
        local_ip = get_local_ip()
        gateway_net = IPv4Network(f"{gateway_ip}/24", strict=False) if gateway_ip else None

        try:
            addrs = psutil.net_if_addrs()
            stats = psutil.net_if_stats()
        except (OSError, RuntimeError) as e:
            logger.warning(f"Could not list interfaces: {e}")
            return []

        interfaces = []
        for name, entries in addrs.items():
            if name in stats and not stats[name].isup:
                continue
            for entry in entries:
                if entry.family != socket.AF_INET or entry.address.startswith("127."):
                    continue
                if local_ip:
                    is_default = entry.address == local_ip
                else:
                    is_default = gateway_net is not None and IPv4Address(entry.address) in gateway_net
                interfaces.append(NetworkInterface(
                    name=name,
                    ip=entry.address,
                    is_default=is_default,
                    type=interface_type(name),
                ))
        return interfaces

    async def get_dns_servers(self) -> list[str]:
        """Configured resolvers, or well-known public ones if none are found."""
        servers: list[str] = []
        if sys.platform == "win32":
            servers = parse_ipconfig_dns(await self._run("ipconfig", "/all"))
        else:
            if RESOLV_CONF.exists():
                try:
                    servers = parse_resolv_conf(RESOLV_CONF.read_text())
                except OSError as e:
                    logger.debug(f"Could not read {RESOLV_CONF}: {e}")
            if not servers and sys.platform == "darwin":
                servers = parse_scutil_dns(await self._run("scutil", "--dns"))

        if not servers:
            logger.info("No DNS servers configured, using public resolvers")
            return list(FALLBACK_DNS_SERVERS)
        return servers

    async def get_uptime(self) -> int | None:
        if sys.platform != "win32":
            uptime = parse_uptime_seconds(await self._run("uptime"))
            if uptime is not None:
                return uptime
        try:
            return int(time.time() - psutil.boot_time())
        except (OSError, RuntimeError):
            return None

    async def get_isp_config(self, interfaces: list[NetworkInterface]) -> IspConfig:
        default = next((i for i in interfaces if i.is_default), None)
        return IspConfig(
            isp_name=None,
            connection_type=default.type if default else None,
            hostname=socket.gethostname(),
            uptime=await self.get_uptime(),
        )

    async def get_router_public_ip(self) -> str | None:
        """Routers are not queried; there is never an answer from this source."""
        return None

    async def probe(self) -> RouterInfo:
        """Gather everything into one RouterInfo. Missing pieces stay empty."""
        info = RouterInfo()
        try:
            info.gateway_ip, info.gateway_mac = await self.get_default_gateway()
        except GatewayNotFoundError as e:
            logger.warning(f"Gateway discovery failed: {e}")

        info.interfaces = self.get_interfaces(info.gateway_ip)
        info.dns_servers, info.isp_config, info.public_ip = await asyncio.gather(
            self.get_dns_servers(),
            self.get_isp_config(info.interfaces),
            self.get_router_public_ip(),
        )
        return info
