# Radar Discovery - Public IP via STUN
"""
Minimal STUN binding client (RFC 5389 subset).

Only the Binding Request / Binding Response exchange and the IPv4
XOR-MAPPED-ADDRESS attribute are implemented; that is enough to learn the
address our packets leave the NAT with.
"""

import asyncio
import logging
import os
import struct
from typing import TYPE_CHECKING

from radar.exceptions import BindingError, BindingResponseError

if TYPE_CHECKING:
    from radar.discovery.router import RouterProber

logger = logging.getLogger("radar.discovery.stun")

BINDING_REQUEST = 0x0001
BINDING_RESPONSE = 0x0101
MAGIC_COOKIE = 0x2112A442
MAGIC_COOKIE_BYTES = struct.pack("!I", MAGIC_COOKIE)
HEADER_SIZE = 20
ATTR_XOR_MAPPED_ADDRESS = 0x0020
FAMILY_IPV4 = 0x01
FAMILY_IPV6 = 0x02


def build_binding_request(transaction_id: bytes | None = None) -> bytes:
    """Build a 20-byte Binding Request with an empty body."""
    if transaction_id is None:
        transaction_id = os.urandom(12)
    if len(transaction_id) != 12:
        raise ValueError("transaction id must be 12 bytes")
    return struct.pack("!HHI", BINDING_REQUEST, 0, MAGIC_COOKIE) + transaction_id


def parse_binding_response(data: bytes, transaction_id: bytes | None = None) -> str:
    """
    Extract the IPv4 mapped address from a Binding Response.

    Args:
        data: Raw datagram
        transaction_id: If given, the response must echo it

    Raises:
        BindingResponseError: malformed response, IPv6 mapping, or no
            XOR-MAPPED-ADDRESS attribute
    """
    if len(data) < HEADER_SIZE:
        raise BindingResponseError(f"Response too short ({len(data)} bytes)")

    msg_type, _msg_len = struct.unpack_from("!HH", data, 0)
    if msg_type != BINDING_RESPONSE:
        raise BindingResponseError(f"Not a binding response (type 0x{msg_type:04x})")

    if transaction_id is not None and data[8:20] != transaction_id:
        raise BindingResponseError("Transaction id mismatch")

    pos = HEADER_SIZE
    while pos + 4 <= len(data):
        attr_type, attr_len = struct.unpack_from("!HH", data, pos)
        value = data[pos + 4:pos + 4 + attr_len]
        if len(value) < attr_len:
            break

        if attr_type == ATTR_XOR_MAPPED_ADDRESS and attr_len >= 8:
            family = value[1]
            if family == FAMILY_IPV4:
                octets = bytes(b ^ m for b, m in zip(value[4:8], MAGIC_COOKIE_BYTES))
                return ".".join(str(o) for o in octets)
            if family == FAMILY_IPV6:
                raise BindingResponseError("IPv6 mapped addresses are not supported")

        # attributes are padded to a 4-byte boundary
        pos += 4 + attr_len + (-attr_len % 4)

    raise BindingResponseError("No XOR-MAPPED-ADDRESS attribute in response")


class _BindingProtocol(asyncio.DatagramProtocol):
    def __init__(self, request: bytes):
        self.request = request
        self.response: asyncio.Future[bytes] = asyncio.get_running_loop().create_future()

    def connection_made(self, transport):
        transport.sendto(self.request)

    def datagram_received(self, data, addr):
        if not self.response.done():
            self.response.set_result(data)

    def error_received(self, exc):
        if not self.response.done():
            self.response.set_exception(exc)


async def query_binding_server(host: str, port: int, timeout: float = 3.0) -> str:
    """Send one Binding Request to ``host:port`` and return our public IPv4."""
    transaction_id = os.urandom(12)
    loop = asyncio.get_running_loop()
    transport = None
    try:
        transport, protocol = await asyncio.wait_for(
            loop.create_datagram_endpoint(
                lambda: _BindingProtocol(build_binding_request(transaction_id)),
                remote_addr=(host, port),
            ),
            timeout=timeout,
        )
        data = await asyncio.wait_for(protocol.response, timeout=timeout)
    except asyncio.TimeoutError as e:
        raise BindingError(f"Timed out waiting for {host}:{port}") from e
    except OSError as e:
        raise BindingError(f"Socket error talking to {host}:{port}: {e}") from e
    finally:
        if transport is not None:
            transport.close()

    return parse_binding_response(data, transaction_id)


def _split_server(server: str) -> tuple[str, int]:
    host, _, port = server.rpartition(":")
    return host, int(port)


async def resolve_public_ip(
    servers: list[str],
    timeout: float = 3.0,
    router_prober: "RouterProber | None" = None,
) -> str | None:
    """
    Try each STUN server in order, then the router. Returns None if nothing
    produced an address.
    """
    for server in servers:
        try:
            host, port = _split_server(server)
            ip = await query_binding_server(host, port, timeout)
            logger.info(f"Public IP {ip} via {server}")
            return ip
        except (BindingError, ValueError) as e:
            logger.debug(f"STUN server {server} failed: {e}")

    if router_prober is not None:
        ip = await router_prober.get_router_public_ip()
        if ip:
            logger.info(f"Public IP {ip} via router")
            return ip

    logger.warning("Could not determine public IP from any source")
    return None
