# Radar - Discovery Store
"""
In-memory state shared by all discovery components.

One DiscoveryStore is created at startup and passed to every component. The
locks are plain ``threading.Lock`` objects because zeroconf callbacks run on
their own threads while the scanners run on the event loop.

Entries are never evicted; state lives as long as the process.
"""

import copy
import logging
import threading
from typing import Iterable

from radar.consolidation import address_sort_key, merge_consolidated
from radar.models import ConsolidatedService, NetworkHost, NetworkService

logger = logging.getLogger("radar.store")


class NetworkMap:
    """Per-address accumulator of hostnames and open ports."""

    def __init__(self):
        self._hosts: dict[str, NetworkHost] = {}
        self._lock = threading.Lock()

    def add(
        self,
        address: str,
        hostname: str | None = None,
        tcp_ports: Iterable[int] = (),
        udp_ports: Iterable[int] = (),
    ) -> None:
        """Merge an observation into the entry for ``address``."""
        with self._lock:
            host = self._hosts.get(address)
            if host is None:
                host = self._hosts[address] = NetworkHost()
            host.merge(hostname, tcp_ports, udp_ports)

    def get(self, address: str) -> NetworkHost | None:
        with self._lock:
            host = self._hosts.get(address)
            return host.copy() if host else None

    def snapshot(self) -> dict[str, NetworkHost]:
        with self._lock:
            return {address: host.copy() for address, host in self._hosts.items()}

    def addresses(self) -> list[str]:
        with self._lock:
            return list(self._hosts)

    def clear(self) -> None:
        with self._lock:
            self._hosts.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._hosts)


class DiscoveryStore:
    """Discovered services, consolidated services and the network map."""

    def __init__(self):
        self.network_map = NetworkMap()
        self._discovered: set[NetworkService] = set()
        self._discovered_lock = threading.Lock()
        self._consolidated: dict[str, ConsolidatedService] = {}
        self._consolidated_lock = threading.Lock()

    def add_discovered(self, services: Iterable[NetworkService]) -> int:
        """Add services to the discovered set. Returns how many were new."""
        with self._discovered_lock:
            before = len(self._discovered)
            self._discovered.update(services)
            return len(self._discovered) - before

    def get_discovered(self) -> list[NetworkService]:
        with self._discovered_lock:
            services = list(self._discovered)
        return sorted(services, key=lambda s: (address_sort_key(s.address), s.port or 0, s.name))

    def merge_consolidated(self, records: Iterable[ConsolidatedService]) -> None:
        """Insert new addresses and merge into existing ones."""
        with self._consolidated_lock:
            for record in records:
                existing = self._consolidated.get(record.address)
                if existing is None:
                    self._consolidated[record.address] = copy.deepcopy(record)
                else:
                    merge_consolidated(existing, record)

    def get_consolidated(self) -> list[ConsolidatedService]:
        with self._consolidated_lock:
            records = list(self._consolidated.values())
        return sorted(records, key=lambda c: address_sort_key(c.address))

    def clear(self) -> None:
        with self._discovered_lock:
            self._discovered.clear()
        with self._consolidated_lock:
            self._consolidated.clear()
        self.network_map.clear()
        logger.info("Discovery store cleared")
