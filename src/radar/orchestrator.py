# Radar - Discovery Orchestrator
"""
Runs the discovery stages, streams each finding to subscribers and stores the
consolidated per-address view.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable

from radar.config import Settings
from radar.consolidation import consolidate_services
from radar.discovery.local_scan import LocalHostScanner
from radar.discovery.mdns import MulticastBrowser
from radar.discovery.public_network import get_public_network_info
from radar.discovery.router import RouterProber
from radar.discovery.ssdp import DeviceDescriptionFetcher
from radar.discovery.stun import resolve_public_ip
from radar.events import SCAN_COMPLETE, SCAN_STARTED, EventBus
from radar.exceptions import PublicIPNotFoundError, RadarError, ScanInProgressError
from radar.models import ConsolidatedService, NetworkService, PublicNetworkInfo, RouterInfo
from radar.store import DiscoveryStore

logger = logging.getLogger("radar.orchestrator")


class DiscoveryOrchestrator:
    """
    Coordinates the mDNS, SSDP and local-scan stages.

    Stages run one after another; a failing stage is logged and contributes
    nothing, the others still run.
    """

    def __init__(
        self,
        store: DiscoveryStore | None = None,
        events: EventBus | None = None,
        settings: Settings | None = None,
        # Stage overrides
        mdns: MulticastBrowser | None = None,
        ssdp: DeviceDescriptionFetcher | None = None,
        local_scan: LocalHostScanner | None = None,
        router: RouterProber | None = None,
    ):
        """
        Args:
            store: Shared discovery state (a fresh one if None)
            events: Event bus for live notifications
            settings: Scan settings (defaults if None)
            mdns: mDNS stage
            ssdp: SSDP/UPnP stage
            local_scan: ARP + port scan stage
            router: Gateway prober
        """
        self.store = store or DiscoveryStore()
        self.events = events or EventBus()
        self.settings = settings or Settings()

        self.mdns = mdns or MulticastBrowser(self.store, self.events, self.settings)
        self.ssdp = ssdp or DeviceDescriptionFetcher(self.store, self.events, self.settings)
        self.local_scan = local_scan or LocalHostScanner(self.store, self.events, self.settings)
        self.router = router or RouterProber()

        self._scan_lock = asyncio.Lock()
        self.stop_requested = False

    @property
    def is_scanning(self) -> bool:
        return self._scan_lock.locked()

    async def _run_stage(self, name: str, stage: Callable[[], Awaitable[list[NetworkService]]]) -> list[NetworkService]:
        started = time.monotonic()
        try:
            services = await stage()
        except RadarError as e:
            logger.error(f"{name} stage failed: {e}")
            return []
        except Exception as e:
            logger.exception(f"{name} stage crashed: {e}")
            return []
        logger.info(f"{name}: {len(services)} services in {time.monotonic() - started:.1f}s")
        return services

    async def run_full_scan(self) -> list[ConsolidatedService]:
        """
        Run every stage, then consolidate.

        Returns:
            Consolidated records for this pass, sorted by address

        Raises:
            ScanInProgressError: another full scan is running
        """
        if self._scan_lock.locked():
            raise ScanInProgressError("A scan is already running")

        async with self._scan_lock:
            self.stop_requested = False
            started = time.monotonic()

            logger.info("=" * 60)
            logger.info("NETWORK SCAN STARTING")
            logger.info(f"mDNS types: {len(self.settings.mdns_service_types)}, "
                        f"SSDP targets: {len(self.settings.ssdp_search_targets)}, "
                        f"max hosts in flight: {self.settings.max_concurrent_hosts}")
            logger.info("=" * 60)
            await self.events.publish(SCAN_STARTED, {})

            services: list[NetworkService] = []
            services += await self._run_stage("mDNS", self.mdns.discover)
            services += await self._run_stage("SSDP", self.ssdp.discover)
            services += await self._run_stage("Local scan", self.local_scan.discover)

            new = self.store.add_discovered(services)
            consolidated = consolidate_services(services)
            self.store.merge_consolidated(consolidated)

            elapsed = time.monotonic() - started
            logger.info(f"Scan complete: {len(services)} services ({new} new), "
                        f"{len(consolidated)} devices in {elapsed:.1f}s")
            await self.events.publish(SCAN_COMPLETE, {
                "services": len(services),
                "devices": len(consolidated),
                "elapsed": round(elapsed, 2),
            })
            return consolidated

    async def request_stop(self) -> None:
        """Tell listeners the scan is over. In-flight probes are not cancelled."""
        self.stop_requested = True
        logger.info("Stop requested")
        await self.events.publish(SCAN_COMPLETE, {"stopped": True})

    def get_discovered_services(self) -> list[NetworkService]:
        return self.store.get_discovered()

    def get_consolidated_services(self) -> list[ConsolidatedService]:
        return self.store.get_consolidated()

    async def run_mdns_only(self) -> list[NetworkService]:
        services = await self._run_stage("mDNS", self.mdns.discover)
        self.store.add_discovered(services)
        return services

    async def run_ssdp_only(self) -> list[NetworkService]:
        services = await self._run_stage("SSDP", self.ssdp.discover)
        self.store.add_discovered(services)
        return services

    async def run_local_scan_only(self) -> list[NetworkService]:
        services = await self._run_stage("Local scan", self.local_scan.discover)
        self.store.add_discovered(services)
        return services

    async def get_public_ip(self) -> str:
        """
        Raises:
            PublicIPNotFoundError: no STUN server or fallback produced an address
        """
        ip = await resolve_public_ip(self.settings.stun_servers, self.settings.stun_timeout, self.router)
        if ip is None:
            raise PublicIPNotFoundError("Could not determine public IP from any source")
        return ip

    async def get_router_info(self) -> RouterInfo:
        return await self.router.probe()

    async def get_public_network_info(self) -> PublicNetworkInfo:
        return await get_public_network_info(self.settings, self.router)
