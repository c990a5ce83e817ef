"""
Radar - local network and public edge discovery.

Finds devices with mDNS, SSDP/UPnP, ARP and port probing, learns the public
IP over STUN, and merges every sighting into one record per address.
"""

__version__ = "0.1.0"

from radar.config import Settings, load_settings
from radar.events import EventBus
from radar.models import (
    ConsolidatedService,
    DiscoveryMethod,
    NetworkService,
    PublicNetworkInfo,
    RouterInfo,
)
from radar.orchestrator import DiscoveryOrchestrator
from radar.store import DiscoveryStore

__all__ = [
    "ConsolidatedService",
    "DiscoveryMethod",
    "DiscoveryOrchestrator",
    "DiscoveryStore",
    "EventBus",
    "NetworkService",
    "PublicNetworkInfo",
    "RouterInfo",
    "Settings",
    "load_settings",
]
