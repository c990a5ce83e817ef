"""Tests for the mDNS browser."""

import queue
from unittest.mock import MagicMock, patch

import pytest

from radar.config import Settings
from radar.discovery.mdns import (
    MdnsRecord,
    MulticastBrowser,
    build_mdns_service,
    clean_service_type,
    record_from_info,
)
from radar.events import SERVICE_DISCOVERED
from radar.exceptions import DiscoverySessionError
from radar.models import DiscoveryMethod


def chromecast(address: str = "192.168.1.20", **kwargs) -> MdnsRecord:
    values = dict(
        fullname="Living Room._googlecast._tcp.local.",
        service_type="_googlecast._tcp.local.",
        hostname="livingroom.local.",
        port=8009,
        addresses=[address],
        properties={"md": "Chromecast", "fn": "Living Room"},
    )
    values.update(kwargs)
    return MdnsRecord(**values)


class TestBuildMdnsService:
    """Record to NetworkService conversion."""

    def test_clean_service_type(self):
        assert clean_service_type("_googlecast._tcp.local.") == "googlecast"
        assert clean_service_type("_spotify-connect._tcp.local.") == "spotify-connect"
        assert clean_service_type("_sleep-proxy._udp.local.") == "sleep-proxy"

    def test_full_record(self):
        service = build_mdns_service(chromecast())

        assert service.name == "Living Room"
        assert service.address == "192.168.1.20"
        assert service.port == 8009
        assert service.discovery_method is DiscoveryMethod.MDNS
        assert service.details.splitlines()[:5] == [
            "Host: livingroom.local.",
            "Full Name: Living Room._googlecast._tcp.local.",
            "Service Type: googlecast",
            "Protocol: TCP",
            "Port: 8009",
        ]
        assert "  md: Chromecast" in service.details
        assert "All Addresses" not in service.details

    def test_no_addresses(self):
        assert build_mdns_service(chromecast(addresses=[])) is None

    def test_name_falls_back_to_hostname_then_type(self):
        assert build_mdns_service(chromecast(fullname="")).name == "livingroom"
        assert build_mdns_service(chromecast(fullname="", hostname="")).name == "GOOGLECAST Device"

    def test_multiple_addresses_listed(self):
        service = build_mdns_service(chromecast(addresses=["192.168.1.20", "192.168.1.21"]))

        assert service.address == "192.168.1.20"
        assert "\nAll Addresses:\n  - 192.168.1.20\n  - 192.168.1.21" in service.details

    def test_udp_protocol(self):
        record = chromecast(service_type="_sleep-proxy._udp.local.")

        assert record.protocol == "UDP"
        assert "Protocol: UDP" in build_mdns_service(record).details

    def test_record_from_info(self):
        info = MagicMock()
        info.name = "Printer._ipp._tcp.local."
        info.server = "printer.local."
        info.port = 631
        info.properties = {b"ty": b"LaserJet", b"note": None}
        info.parsed_addresses.return_value = ["192.168.1.30"]

        record = record_from_info(info, "_ipp._tcp.local.")

        assert record.hostname == "printer.local."
        assert record.addresses == ["192.168.1.30"]
        assert record.properties == {"ty": "LaserJet", "note": ""}


class TestPoll:
    """Draining a per-type queue for one window."""

    @pytest.mark.asyncio
    async def test_dedupes_and_updates_map(self, store, events, recorder, fast_settings):
        records = queue.Queue()
        records.put(chromecast())
        records.put(chromecast())
        records.put(chromecast(addresses=[]))
        records.put(chromecast(address="192.168.1.21"))

        browser = MulticastBrowser(store, events, fast_settings)
        services = await browser._poll("_googlecast._tcp.local.", records, set())

        assert [s.address for s in services] == ["192.168.1.20", "192.168.1.21"]
        assert len(recorder.payloads(SERVICE_DISCOVERED)) == 2
        host = store.network_map.get("192.168.1.20")
        assert host.hostname == "livingroom.local."
        assert host.tcp_ports == {8009}

    @pytest.mark.asyncio
    async def test_udp_ports_recorded(self, store, events, fast_settings):
        records = queue.Queue()
        records.put(chromecast(service_type="_sleep-proxy._udp.local.", port=5353))

        await MulticastBrowser(store, events, fast_settings)._poll("_sleep-proxy._udp.local.", records, set())

        host = store.network_map.get("192.168.1.20")
        assert host.udp_ports == {5353}
        assert host.tcp_ports == set()


class _FakeBrowser:
    """Stands in for zeroconf's ServiceBrowser and answers immediately."""

    def __init__(self, zc, service_type, listener):
        if service_type == "_broken._tcp.local.":
            raise RuntimeError("browse failed")
        listener.records.put(chromecast(
            fullname=f"Device.{service_type}",
            service_type=service_type,
            address=f"192.168.1.{len(service_type)}",
        ))
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class TestMulticastBrowser:
    """Full browse passes with zeroconf mocked out."""

    @pytest.mark.asyncio
    async def test_session_failure(self, store, events, fast_settings):
        with patch("radar.discovery.mdns.Zeroconf", side_effect=OSError("no multicast")):
            with pytest.raises(DiscoverySessionError):
                await MulticastBrowser(store, events, fast_settings).discover()

    @pytest.mark.asyncio
    async def test_failed_type_does_not_stop_others(self, store, events, recorder):
        settings = Settings(
            mdns_service_types=["_googlecast._tcp.local.", "_broken._tcp.local.", "_ipp._tcp.local."],
            mdns_window=0.2,
            mdns_poll_interval=0.01,
        )
        zc = MagicMock()

        with patch("radar.discovery.mdns.Zeroconf", return_value=zc), \
                patch("radar.discovery.mdns.ServiceBrowser", _FakeBrowser):
            services = await MulticastBrowser(store, events, settings).discover()

        assert sorted(s.service_type for s in services) == ["_googlecast._tcp.local.", "_ipp._tcp.local."]
        assert len(recorder.payloads(SERVICE_DISCOVERED)) == 2
        zc.close.assert_called_once()
