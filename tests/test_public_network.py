"""Tests for public network lookups."""

from unittest.mock import AsyncMock, MagicMock, patch

import dns.resolver
import pytest

from radar.config import Settings
from radar.discovery.public_network import (
    AsnRecord,
    asn_query_name,
    extract_isp_from_hostname,
    extract_org_from_hostname,
    get_public_network_info,
    infer_privacy_flags,
    lookup_asn,
    parse_asn_record,
)
from radar.models import IspConfig, RouterInfo


COMCAST_PTR = "c-73-1-2-3.hsd1.ca.comcast.net"


class TestAsnParsing:
    def test_parse_record(self):
        record = parse_asn_record('"7922 | 73.0.0.0/12 | US | arin | 2008-02-12"')

        assert record == AsnRecord(asn="7922", prefix="73.0.0.0/12", country="US", org="arin", date="2008-02-12")

    def test_parse_short_record(self):
        assert parse_asn_record("7922 | 73.0.0.0/12") is None
        assert parse_asn_record(" | | | ") is None

    def test_query_name(self):
        assert asn_query_name("73.1.2.3") == "3.2.1.73.origin.asn.cymru.com"


class TestHostnameHeuristics:
    """ISP, organization and privacy guesses from reverse DNS."""

    def test_isp(self):
        assert extract_isp_from_hostname(COMCAST_PTR) == "Comcast"
        assert extract_isp_from_hostname("pool-1-2-3-4.nycmny.fios.verizon.net") == "Verizon"
        assert extract_isp_from_hostname("static.example.org") is None

    def test_org(self):
        assert extract_org_from_hostname(COMCAST_PTR) == "Comcast"
        assert extract_org_from_hostname("ec2-3-1-2-3.compute-1.amazonaws.com") == "Amazon AWS EC2"
        assert extract_org_from_hostname("s3.amazonaws.com") == "Amazon Web Services"
        assert extract_org_from_hostname("4.3.2.1.bc.googleusercontent.com") == "Google Cloud"
        assert extract_org_from_hostname("cpe-1-2-3-4.socal.res.rr.com.") == "Spectrum"
        assert extract_org_from_hostname("mail.example.org") == "example.org"
        assert extract_org_from_hostname("localhost") is None

    def test_vpn_hostname_is_also_proxy(self):
        assert infer_privacy_flags("vpn-exit-12.example.net", None) == (True, True, False)

    def test_hosting_hostname(self):
        assert infer_privacy_flags("ec2-3-1-2-3.compute-1.amazonaws.com", "16509") == (False, False, True)

    def test_vpn_asn_normalized(self):
        assert infer_privacy_flags(None, "60068") == (True, True, False)
        assert infer_privacy_flags(None, "AS16276") == (True, True, False)
        assert infer_privacy_flags(COMCAST_PTR, "7922") == (False, False, False)


class TestLookupAsn:
    @pytest.mark.asyncio
    async def test_first_parsable_record(self):
        txt = ["garbage", "7922 | 73.0.0.0/12 | US | arin | 2008-02-12"]

        with patch("radar.discovery.public_network._resolve_txt", return_value=txt) as resolve:
            record = await lookup_asn("73.1.2.3")

        assert record.asn == "7922"
        assert resolve.call_args.args[0] == "3.2.1.73.origin.asn.cymru.com"

    @pytest.mark.asyncio
    async def test_dns_failure(self):
        with patch("radar.discovery.public_network._resolve_txt", side_effect=dns.resolver.NXDOMAIN()):
            assert await lookup_asn("10.0.0.1") is None


class TestGetPublicNetworkInfo:
    """Snapshot assembly with every lookup mocked."""

    def _prober(self) -> MagicMock:
        prober = MagicMock()
        prober.probe = AsyncMock(return_value=RouterInfo(
            gateway_ip="192.168.1.1",
            dns_servers=["192.168.1.1"],
            isp_config=IspConfig(hostname="laptop", connection_type="WiFi"),
        ))
        return prober

    @pytest.mark.asyncio
    async def test_full_snapshot(self):
        async def fake_lookup(ip, lifetime=2.0):
            if ip == "73.1.2.3":
                return AsnRecord(asn="7922", country="US", org="COMCAST-7922")
            return None

        with patch("radar.discovery.public_network.resolve_public_ip", AsyncMock(return_value="73.1.2.3")), \
                patch("radar.discovery.public_network.reverse_dns", AsyncMock(return_value=COMCAST_PTR)), \
                patch("radar.discovery.public_network.lookup_asn", fake_lookup):
            info = await get_public_network_info(Settings(), self._prober())

        assert info.ip == "73.1.2.3"
        assert info.hostname == COMCAST_PTR
        assert info.isp == "Comcast"
        assert info.org == "Comcast"
        assert info.asn == "7922"
        assert info.location.country == "US"
        assert info.location.country_code == "US"
        assert info.dns_servers == ["192.168.1.1"]
        assert info.local_hostname == "laptop"
        assert info.router_info.gateway_ip == "192.168.1.1"
        assert (info.is_vpn, info.is_proxy, info.is_hosting) == (False, False, False)

    @pytest.mark.asyncio
    async def test_org_from_asn_without_reverse_dns(self):
        record = AsnRecord(asn="16276", country="FR", org="OVH")

        with patch("radar.discovery.public_network.resolve_public_ip", AsyncMock(return_value="51.1.2.3")), \
                patch("radar.discovery.public_network.reverse_dns", AsyncMock(return_value=None)), \
                patch("radar.discovery.public_network.lookup_asn", AsyncMock(return_value=record)):
            info = await get_public_network_info(Settings(), self._prober())

        assert info.isp == "OVH"
        assert info.org == "OVH"
        assert info.location.country == "FR"
        assert info.location.country_code == "FR"
        assert info.is_vpn and info.is_proxy

    @pytest.mark.asyncio
    async def test_unknown_public_ip_is_not_fatal(self):
        lookup = AsyncMock(return_value=None)

        with patch("radar.discovery.public_network.resolve_public_ip", AsyncMock(return_value=None)), \
                patch("radar.discovery.public_network.lookup_asn", lookup):
            info = await get_public_network_info(Settings(), self._prober())

        assert info.ip is None
        assert info.asn == ""
        assert info.dns_servers == ["192.168.1.1"]
        lookup.assert_awaited_once()
