"""Tests for the STUN binding client."""

import asyncio
import struct
from ipaddress import IPv4Address
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from radar.discovery.stun import (
    MAGIC_COOKIE,
    MAGIC_COOKIE_BYTES,
    build_binding_request,
    parse_binding_response,
    query_binding_server,
    resolve_public_ip,
)
from radar.exceptions import BindingError, BindingResponseError


TRANSACTION_ID = bytes(range(12))


def xor_mapped_address(ip: str, port: int = 54321, family: int = 0x01) -> bytes:
    xport = port ^ (MAGIC_COOKIE >> 16)
    xaddr = bytes(b ^ m for b, m in zip(IPv4Address(ip).packed, MAGIC_COOKIE_BYTES))
    value = bytes([0, family]) + struct.pack("!H", xport) + xaddr
    return struct.pack("!HH", 0x0020, len(value)) + value


def binding_response(attributes: bytes, transaction_id: bytes = TRANSACTION_ID, msg_type: int = 0x0101) -> bytes:
    return struct.pack("!HHI", msg_type, len(attributes), MAGIC_COOKIE) + transaction_id + attributes


class TestBuildBindingRequest:
    def test_header_layout(self):
        request = build_binding_request(TRANSACTION_ID)

        assert len(request) == 20
        assert request[:2] == b"\x00\x01"
        assert request[2:4] == b"\x00\x00"
        assert request[4:8] == bytes.fromhex("2112a442")
        assert request[8:] == TRANSACTION_ID

    def test_random_transaction_ids(self):
        assert build_binding_request()[8:] != build_binding_request()[8:]

    def test_rejects_bad_transaction_id(self):
        with pytest.raises(ValueError):
            build_binding_request(b"short")


class TestParseBindingResponse:
    """Decoding XOR-MAPPED-ADDRESS from binding responses."""

    def test_recovers_ipv4_address(self):
        data = binding_response(xor_mapped_address("93.184.216.34"))

        assert parse_binding_response(data, TRANSACTION_ID) == "93.184.216.34"

    def test_skips_unknown_padded_attributes(self):
        # SOFTWARE attribute with a 5-byte value, padded to 8
        software = struct.pack("!HH", 0x8022, 5) + b"radar" + b"\x00" * 3
        data = binding_response(software + xor_mapped_address("203.0.113.7"))

        assert parse_binding_response(data) == "203.0.113.7"

    def test_too_short(self):
        with pytest.raises(BindingResponseError):
            parse_binding_response(b"\x01\x01\x00\x00")

    def test_wrong_message_type(self):
        data = binding_response(xor_mapped_address("93.184.216.34"), msg_type=0x0111)

        with pytest.raises(BindingResponseError):
            parse_binding_response(data)

    def test_transaction_mismatch(self):
        data = binding_response(xor_mapped_address("93.184.216.34"))

        with pytest.raises(BindingResponseError):
            parse_binding_response(data, bytes(12))

    def test_ipv6_mapping_rejected(self):
        data = binding_response(xor_mapped_address("93.184.216.34", family=0x02))

        with pytest.raises(BindingResponseError):
            parse_binding_response(data)

    def test_missing_attribute(self):
        with pytest.raises(BindingResponseError):
            parse_binding_response(binding_response(b""))

    def test_truncated_attribute(self):
        data = binding_response(xor_mapped_address("93.184.216.34"))[:-2]

        with pytest.raises(BindingResponseError):
            parse_binding_response(data)


class _FakeStunServer(asyncio.DatagramProtocol):
    def __init__(self, ip: str):
        self.ip = ip
        self.transport = None

    def connection_made(self, transport):
        self.transport = transport

    def datagram_received(self, data, addr):
        self.transport.sendto(binding_response(xor_mapped_address(self.ip), data[8:20]), addr)


class TestQueryBindingServer:
    """Round trips against a loopback server."""

    @pytest.mark.asyncio
    async def test_round_trip(self):
        loop = asyncio.get_running_loop()
        transport, _ = await loop.create_datagram_endpoint(
            lambda: _FakeStunServer("198.51.100.23"), local_addr=("127.0.0.1", 0)
        )
        try:
            port = transport.get_extra_info("sockname")[1]
            ip = await query_binding_server("127.0.0.1", port, timeout=2.0)
        finally:
            transport.close()

        assert ip == "198.51.100.23"

    @pytest.mark.asyncio
    async def test_timeout_raises_binding_error(self):
        loop = asyncio.get_running_loop()
        # a server that never answers
        transport, _ = await loop.create_datagram_endpoint(
            asyncio.DatagramProtocol, local_addr=("127.0.0.1", 0)
        )
        try:
            port = transport.get_extra_info("sockname")[1]
            with pytest.raises(BindingError):
                await query_binding_server("127.0.0.1", port, timeout=0.2)
        finally:
            transport.close()


class TestResolvePublicIp:
    """Server fallback order."""

    @pytest.mark.asyncio
    async def test_falls_through_to_next_server(self):
        query = AsyncMock(side_effect=[BindingError("timeout"), "93.184.216.34"])

        with patch("radar.discovery.stun.query_binding_server", query):
            ip = await resolve_public_ip(["a.example:3478", "b.example:3478", "c.example:3478"])

        assert ip == "93.184.216.34"
        assert query.await_count == 2
        assert query.await_args_list[1].args[:2] == ("b.example", 3478)

    @pytest.mark.asyncio
    async def test_router_fallback_and_absent_result(self):
        query = AsyncMock(side_effect=BindingResponseError("garbage"))
        prober = MagicMock()
        prober.get_router_public_ip = AsyncMock(return_value=None)

        with patch("radar.discovery.stun.query_binding_server", query):
            ip = await resolve_public_ip(["a.example:3478"], router_prober=prober)

        assert ip is None
        prober.get_router_public_ip.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_malformed_server_entry_is_skipped(self):
        query = AsyncMock(return_value="192.0.2.1")

        with patch("radar.discovery.stun.query_binding_server", query):
            ip = await resolve_public_ip(["no-port", "ok.example:19302"])

        assert ip == "192.0.2.1"
        query.assert_awaited_once()
