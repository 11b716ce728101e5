"""ICMP echo transport.

One socket is shared by the whole engine: echo requests to every target are
written to it, and a single receive loop reads every reply that comes back.

Two socket flavours are supported:

- Unprivileged (default): ``SOCK_DGRAM`` with ``IPPROTO_ICMP``. Needs
  ``net.ipv4.ping_group_range`` to include the process group on Linux. The
  kernel owns the echo identifier and rewrites it to the socket's local port,
  so that port becomes the engine identifier.
- Privileged: ``SOCK_RAW``. Needs root or ``CAP_NET_RAW``. Received packets
  carry the IPv4 header, and the socket sees every ICMP packet on the host, so
  replies for other pingers are filtered out by identifier.
"""

import asyncio
import logging
import os
import socket
import struct
import sys
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Protocol, Tuple

from netpinger.metrics import datagrams_dropped_total

logger = logging.getLogger(__name__)

# ICMPv4 message types
ICMP_ECHO_REPLY = 0
ICMP_ECHO_REQUEST = 8

# Echo header: type (u8), code (u8), checksum (u16), identifier (u16), sequence (u16)
ECHO_HEADER = struct.Struct("!BBHHH")

# Identifier and sequence are 16-bit fields
SEQUENCE_MODULUS = 1 << 16

RECV_BUFFER_SIZE = 1500


class TransportError(Exception):
    """Raised when the probe channel cannot be opened or written to."""


class TransportClosedError(TransportError):
    """Raised when the receive side of the probe channel is gone."""


@dataclass(frozen=True)
class ReplyEvent:
    """An echo reply as seen by the round loop."""

    address: str
    identifier: int
    sequence: int


class Transport(Protocol):
    """What the round scheduler needs from a probe channel."""

    identifier: int

    def send(self, address: str, identifier: int, sequence: int) -> None:
        ...

    def replies(self) -> AsyncIterator[ReplyEvent]:
        ...

    def close(self) -> None:
        ...


def checksum(data: bytes) -> int:
    """Compute the RFC 1071 Internet checksum."""
    if len(data) % 2:
        data += b"\x00"
    total = sum(struct.unpack(f"!{len(data) // 2}H", data))
    total = (total >> 16) + (total & 0xFFFF)
    total += total >> 16
    return ~total & 0xFFFF


def build_echo_request(identifier: int, sequence: int, payload: bytes = b"") -> bytes:
    """Build an ICMPv4 echo request packet.

    Args:
        identifier: Echo identifier (16 bits).
        sequence: Echo sequence number (16 bits).
        payload: Optional echo data.

    Returns:
        Packet bytes with the checksum filled in.
    """
    header = ECHO_HEADER.pack(ICMP_ECHO_REQUEST, 0, 0, identifier & 0xFFFF, sequence & 0xFFFF)
    csum = checksum(header + payload)
    header = ECHO_HEADER.pack(ICMP_ECHO_REQUEST, 0, csum, identifier & 0xFFFF, sequence & 0xFFFF)
    return header + payload


def parse_echo_reply(packet: bytes, has_ip_header: bool) -> Optional[Tuple[int, int]]:
    """Extract identifier and sequence from an echo reply.

    Args:
        packet: Datagram as read from the socket.
        has_ip_header: True for raw sockets, where the IPv4 header precedes
            the ICMP message.

    Returns:
        ``(identifier, sequence)`` for an echo reply, None for any other ICMP
        message type.

    Raises:
        ValueError: If the datagram is too short to hold an echo header.
    """
    if has_ip_header:
        if not packet:
            raise ValueError("empty datagram")
        header_length = (packet[0] & 0x0F) * 4
        packet = packet[header_length:]

    if len(packet) < ECHO_HEADER.size:
        raise ValueError(f"truncated ICMP message ({len(packet)} bytes)")

    msg_type, code, _, identifier, sequence = ECHO_HEADER.unpack_from(packet)
    if msg_type != ICMP_ECHO_REPLY or code != 0:
        return None
    return identifier, sequence


class IcmpTransport:
    """Probe channel backed by a single non-blocking ICMP socket."""

    def __init__(self, sock: socket.socket, privileged: bool):
        self._sock: Optional[socket.socket] = sock
        self.privileged = privileged
        # macOS datagram ICMP sockets also deliver the IPv4 header
        self._has_ip_header = privileged or sys.platform == "darwin"
        self.identifier = self._resolve_identifier()

    @classmethod
    def open(cls, privileged: bool = False) -> "IcmpTransport":
        """Open the ICMP socket.

        Raises:
            TransportError: If the socket cannot be created.
        """
        sock_type = socket.SOCK_RAW if privileged else socket.SOCK_DGRAM
        sock = None
        try:
            sock = socket.socket(socket.AF_INET, sock_type, socket.IPPROTO_ICMP)
            sock.setblocking(False)
            transport = cls(sock, privileged)
        except OSError as e:
            if sock is not None:
                sock.close()
            mode = "raw" if privileged else "unprivileged datagram"
            raise TransportError(f"cannot open {mode} ICMP socket: {e}") from e

        logger.info(
            "Opened %s ICMP socket (identifier %d)",
            "raw" if privileged else "datagram",
            transport.identifier,
        )
        return transport

    def _resolve_identifier(self) -> int:
        # Linux assigns the local "port" of a datagram ICMP socket as the echo id
        if not self.privileged and sys.platform.startswith("linux"):
            self._sock.bind(("0.0.0.0", 0))
            return self._sock.getsockname()[1] & 0xFFFF
        return os.getpid() & 0xFFFF

    def send(self, address: str, identifier: int, sequence: int) -> None:
        """Write one echo request.

        Raises:
            TransportError: If the socket is closed or the write fails.
        """
        if self._sock is None:
            raise TransportError("transport is closed")

        packet = build_echo_request(identifier, sequence)
        try:
            self._sock.sendto(packet, (address, 0))
        except OSError as e:
            raise TransportError(f"send to {address} failed: {e}") from e

    async def replies(self) -> AsyncIterator[ReplyEvent]:
        """Yield echo replies addressed to this engine, forever.

        Raises:
            TransportClosedError: On a zero-length read or a closed socket.
        """
        loop = asyncio.get_running_loop()

        while True:
            if self._sock is None:
                raise TransportClosedError("transport is closed")

            try:
                data, peer = await loop.sock_recvfrom(self._sock, RECV_BUFFER_SIZE)
            except OSError as e:
                if self._sock is None:
                    raise TransportClosedError("transport is closed") from e
                logger.error("Failed to receive ICMP message: %s", e)
                continue

            if not data:
                raise TransportClosedError("zero-length read on ICMP socket")

            event = self._decode(data, peer[0])
            if event is not None:
                yield event

    def _decode(self, data: bytes, source: str) -> Optional[ReplyEvent]:
        try:
            parsed = parse_echo_reply(data, has_ip_header=self._has_ip_header)
        except ValueError as e:
            logger.debug("Dropping malformed datagram from %s: %s", source, e)
            datagrams_dropped_total.labels(reason="malformed").inc()
            return None

        if parsed is None:
            datagrams_dropped_total.labels(reason="not_echo_reply").inc()
            return None

        identifier, sequence = parsed
        if identifier != self.identifier:
            datagrams_dropped_total.labels(reason="foreign_identifier").inc()
            return None

        return ReplyEvent(address=source, identifier=identifier, sequence=sequence)

    def close(self) -> None:
        """Close the socket. Safe to call more than once."""
        if self._sock is not None:
            sock, self._sock = self._sock, None
            sock.close()
            logger.debug("ICMP socket closed")
