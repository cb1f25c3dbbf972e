"""ICMPv4 wire format: Echo Request encoding and message parsing."""

from __future__ import annotations

import socket
import struct
from dataclasses import dataclass
from typing import Optional, Union

from ._exceptions import MarshalError, ParseError

ICMP_ECHO_REPLY = 0
ICMP_DEST_UNREACHABLE = 3
ICMP_ECHO_REQUEST = 8
ICMP_TIME_EXCEEDED = 11
ICMP_PARAMETER_PROBLEM = 12

IPPROTO_ICMP = 1
IP_HEADER_MIN = 20
ICMP_HEADER_LEN = 4

DEFAULT_PAYLOAD = b"R-U-OK?"


@dataclass(frozen=True)
class Echo:
    identifier: int
    sequence: int
    data: bytes = b""

    def marshal(self) -> bytes:
        for name, value in (("identifier", self.identifier), ("sequence", self.sequence)):
            if not 0 <= value <= 0xFFFF:
                raise MarshalError(f"echo {name} out of range: {value}")
        return struct.pack("!HH", self.identifier, self.sequence) + bytes(self.data)


@dataclass(frozen=True)
class TimeExceeded:
    """Body of a Time Exceeded message; ``data`` quotes the expired datagram."""

    data: bytes = b""

    def marshal(self) -> bytes:
        return b"\x00" * 4 + bytes(self.data)


@dataclass(frozen=True)
class DestinationUnreachable:
    data: bytes = b""
    next_hop_mtu: int = 0

    def marshal(self) -> bytes:
        if not 0 <= self.next_hop_mtu <= 0xFFFF:
            raise MarshalError(f"next hop MTU out of range: {self.next_hop_mtu}")
        return struct.pack("!HH", 0, self.next_hop_mtu) + bytes(self.data)


@dataclass(frozen=True)
class RawBody:
    """Body of any message type this module does not decode further."""

    data: bytes = b""

    def marshal(self) -> bytes:
        return bytes(self.data)


Body = Union[Echo, TimeExceeded, DestinationUnreachable, RawBody]


def icmp_checksum(data: bytes) -> int:
    """RFC 1071 internet checksum."""
    if len(data) % 2:
        data += b"\x00"
    total = sum(struct.unpack("!%dH" % (len(data) // 2), data))
    total = (total >> 16) + (total & 0xFFFF)
    total += total >> 16
    return (~total) & 0xFFFF


@dataclass(frozen=True)
class IcmpMessage:
    type: int
    code: int
    body: Body
    checksum: int = 0

    def marshal(self) -> bytes:
        """Encode the message, filling in the checksum."""
        if not 0 <= self.type <= 0xFF or not 0 <= self.code <= 0xFF:
            raise MarshalError(f"invalid ICMP type/code: {self.type}/{self.code}")
        body = self.body.marshal()
        header = struct.pack("!BBH", self.type, self.code, 0)
        checksum = icmp_checksum(header + body)
        return struct.pack("!BBH", self.type, self.code, checksum) + body


@dataclass(frozen=True)
class IpHeader:
    version: int
    ihl: int
    tos: int
    total_length: int
    id: int
    flags: int
    fragment_offset: int
    ttl: int
    protocol: int
    checksum: int
    src_addr: str
    dest_addr: str


@dataclass(frozen=True)
class IpPacket:
    header: IpHeader
    message: IcmpMessage


def echo_request(identifier: int, sequence: int, data: bytes = DEFAULT_PAYLOAD) -> IcmpMessage:
    return IcmpMessage(
        type=ICMP_ECHO_REQUEST,
        code=0,
        body=Echo(identifier=identifier, sequence=sequence, data=data),
    )


def _parse_body(icmp_type: int, body: bytes) -> Body:
    if icmp_type in (ICMP_ECHO_REQUEST, ICMP_ECHO_REPLY):
        if len(body) < 4:
            raise ParseError("echo body shorter than 4 bytes")
        identifier, sequence = struct.unpack("!HH", body[:4])
        return Echo(identifier=identifier, sequence=sequence, data=body[4:])
    if icmp_type == ICMP_TIME_EXCEEDED:
        if len(body) < 4:
            raise ParseError("time exceeded body shorter than 4 bytes")
        return TimeExceeded(data=body[4:])
    if icmp_type == ICMP_DEST_UNREACHABLE:
        if len(body) < 4:
            raise ParseError("destination unreachable body shorter than 4 bytes")
        (mtu,) = struct.unpack("!H", body[2:4])
        return DestinationUnreachable(data=body[4:], next_hop_mtu=mtu)
    return RawBody(data=body)


def parse_message(data: bytes) -> IcmpMessage:
    """Decode an ICMP message that starts at the first byte of ``data``."""
    if len(data) < ICMP_HEADER_LEN:
        raise ParseError(
            f"ICMP message shorter than {ICMP_HEADER_LEN} bytes ({len(data)})"
        )
    icmp_type, code, checksum = struct.unpack("!BBH", data[:ICMP_HEADER_LEN])
    body = _parse_body(icmp_type, data[ICMP_HEADER_LEN:])
    return IcmpMessage(type=icmp_type, code=code, body=body, checksum=checksum)


def parse_ip_header(pkt: bytes) -> IpHeader:
    if len(pkt) < IP_HEADER_MIN:
        raise ParseError("Packet shorter than minimum IP header length (20 bytes).")

    iph = struct.unpack("!BBHHHBBH4s4s", pkt[:IP_HEADER_MIN])
    version = iph[0] >> 4
    ihl = iph[0] & 0xF
    if version != 4:
        raise ParseError(f"not an IPv4 packet (version {version})")
    if ihl < 5 or len(pkt) < ihl * 4:
        raise ParseError(f"invalid IP header length (IHL {ihl}, {len(pkt)} bytes)")

    return IpHeader(
        version=version,
        ihl=ihl,
        tos=iph[1],
        total_length=iph[2],
        id=iph[3],
        flags=iph[4] >> 13,
        fragment_offset=iph[4] & 0x1FFF,
        ttl=iph[5],
        protocol=iph[6],
        checksum=iph[7],
        src_addr=socket.inet_ntoa(iph[8]),
        dest_addr=socket.inet_ntoa(iph[9]),
    )


def parse_ip_packet(pkt: bytes) -> IpPacket:
    """Decode an IPv4 datagram carrying ICMP, as read from a raw socket."""
    header = parse_ip_header(pkt)
    message = parse_message(pkt[header.ihl * 4 :])
    return IpPacket(header=header, message=message)


def quoted_echo(body: Body) -> Optional[tuple[int, int]]:
    """Identifier and sequence of the Echo Request quoted in an ICMP error.

    A ``RawBody`` is read as an error body of another type (Parameter
    Problem, Redirect, Source Quench): a 4-byte field followed by the quote.
    Returns ``None`` when the quote is truncated or is not an Echo Request.
    """
    if isinstance(body, (TimeExceeded, DestinationUnreachable)):
        quote = body.data
    elif isinstance(body, RawBody):
        quote = body.data[4:]
    else:
        return None
    if len(quote) < IP_HEADER_MIN:
        return None
    inner_len = (quote[0] & 0x0F) * 4
    if inner_len < IP_HEADER_MIN or len(quote) < inner_len + 8:
        return None
    if quote[9] != IPPROTO_ICMP:
        return None
    inner_type, _, _, identifier, sequence = struct.unpack(
        "!BBHHH", quote[inner_len : inner_len + 8]
    )
    if inner_type != ICMP_ECHO_REQUEST:
        return None
    return identifier, sequence
