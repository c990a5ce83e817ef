# Radar - Settings
"""
Scan settings: timeouts, catalogs and concurrency limits.

Settings are read from a JSON file (``RADAR_SETTINGS`` or
``~/.radar/settings.json``). Anything missing falls back to the defaults below.
"""

import json
import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger("radar.config")

SETTINGS_FILE = Path.home() / ".radar" / "settings.json"

DEFAULT_STUN_SERVERS = [
    "stun.l.google.com:19302",
    "stun1.l.google.com:19302",
    "stun2.l.google.com:19302",
    "stun.stunprotocol.org:3478",
    "stun.voip.blackberry.com:3478",
    "stun.sipgate.net:10000",
]

DEFAULT_MDNS_SERVICE_TYPES = [
    "_http._tcp.local.",
    "_https._tcp.local.",
    "_ssh._tcp.local.",
    "_device-info._tcp.local.",
    "_spotify-connect._tcp.local.",
    "_airplay._tcp.local.",
    "_googlecast._tcp.local.",
    "_printer._tcp.local.",
    "_ipp._tcp.local.",
    "_homekit._tcp.local.",
    "_companion-link._tcp.local.",
]

DEFAULT_SSDP_SEARCH_TARGETS = [
    "upnp:rootdevice",
    "ssdp:all",
    "uuid:upnp:rootdevice",
]

DEFAULT_TCP_PORTS = [21, 22, 23, 25, 53, 80, 110, 443, 993, 995, 3306, 3389, 5432, 8080, 8443]

DEFAULT_UDP_PORTS = [53, 67, 68, 69, 123, 161, 162, 1900, 5353]


class Settings(BaseModel):
    """Discovery settings."""
    stun_servers: list[str] = Field(default_factory=lambda: list(DEFAULT_STUN_SERVERS), description="host:port binding servers, tried in order")
    stun_timeout: float = Field(default=3.0, gt=0, description="Seconds per binding server")

    mdns_service_types: list[str] = Field(default_factory=lambda: list(DEFAULT_MDNS_SERVICE_TYPES))
    mdns_window: float = Field(default=2.0, gt=0, description="Seconds to collect records per service type")
    mdns_poll_interval: float = Field(default=0.05, gt=0)
    mdns_resolve_timeout_ms: int = Field(default=1500, gt=0)

    ssdp_search_targets: list[str] = Field(default_factory=lambda: list(DEFAULT_SSDP_SEARCH_TARGETS))
    ssdp_timeout: float = Field(default=2.0, gt=0, description="Seconds to collect responses per search round")
    ssdp_retries: int = Field(default=1, ge=0, description="Extra M-SEARCH transmissions per round")
    http_timeout: float = Field(default=2.0, gt=0, description="Device description fetch timeout")

    tcp_ports: list[int] = Field(default_factory=lambda: list(DEFAULT_TCP_PORTS))
    udp_ports: list[int] = Field(default_factory=lambda: list(DEFAULT_UDP_PORTS))
    probe_timeout: float = Field(default=0.5, gt=0, description="Seconds per TCP connect or UDP reply wait")
    max_concurrent_hosts: int = Field(default=32, ge=1, description="Upper bound on hosts probed at once")
    arp_timeout: float = Field(default=10.0, gt=0)

    dns_lookup_lifetime: float = Field(default=2.0, gt=0)


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from file or return defaults."""
    if path is None:
        env_path = os.environ.get("RADAR_SETTINGS")
        path = Path(env_path) if env_path else SETTINGS_FILE

    try:
        if path.exists():
            return Settings.model_validate(json.loads(path.read_text()))
    except (OSError, ValueError, ValidationError) as e:
        logger.warning(f"Failed to load settings from {path}: {e}")
    return Settings()


def save_settings(settings: Settings, path: Path | None = None) -> bool:
    """Save settings to file."""
    path = path or SETTINGS_FILE
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(settings.model_dump_json(indent=2))
        return True
    except OSError as e:
        logger.error(f"Failed to save settings to {path}: {e}")
        return False
