import socket
import struct
from collections import deque

import pytest

from hoptrace import Datagram
from hoptrace._icmp import (
    ICMP_DEST_UNREACHABLE,
    ICMP_ECHO_REPLY,
    ICMP_PARAMETER_PROBLEM,
    ICMP_TIME_EXCEEDED,
    DestinationUnreachable,
    Echo,
    IcmpMessage,
    RawBody,
    TimeExceeded,
    echo_request,
)

LOCAL = "192.168.1.10"


def ip_packet(src: str, dst: str, payload: bytes, ttl: int = 64, protocol: int = 1) -> bytes:
    header = struct.pack(
        "!BBHHHBBH4s4s",
        0x45,
        0,
        20 + len(payload),
        0,
        0,
        ttl,
        protocol,
        0,
        socket.inet_aton(src),
        socket.inet_aton(dst),
    )
    return header + payload


def echo_reply_from(peer: str, identifier: int, sequence: int) -> Datagram:
    message = IcmpMessage(
        type=ICMP_ECHO_REPLY,
        code=0,
        body=Echo(identifier=identifier, sequence=sequence, data=b"R-U-OK?"),
    )
    return Datagram(data=ip_packet(peer, LOCAL, message.marshal()), peer=peer)


def _quote(destination: str, identifier: int, sequence: int) -> bytes:
    probe = echo_request(identifier, sequence).marshal()
    return ip_packet(LOCAL, destination, probe[:8], ttl=1)


def time_exceeded_from(peer: str, destination: str, identifier: int, sequence: int) -> Datagram:
    message = IcmpMessage(
        type=ICMP_TIME_EXCEEDED,
        code=0,
        body=TimeExceeded(data=_quote(destination, identifier, sequence)),
    )
    return Datagram(data=ip_packet(peer, LOCAL, message.marshal()), peer=peer)


def unreachable_from(peer: str, destination: str, identifier: int, sequence: int) -> Datagram:
    message = IcmpMessage(
        type=ICMP_DEST_UNREACHABLE,
        code=3,
        body=DestinationUnreachable(data=_quote(destination, identifier, sequence)),
    )
    return Datagram(data=ip_packet(peer, LOCAL, message.marshal()), peer=peer)


class FakeClock:
    """Monotonic clock advancing by ``step`` seconds on every read."""

    def __init__(self, step: float = 0.001):
        self.now = 100.0
        self.step = step

    def __call__(self) -> float:
        self.now += self.step
        return self.now


class FakeTransport:
    """
    script: dict[ttl] -> list of Datagram / None (timeout) / Exception to raise.
    Once a TTL's script is exhausted every receive times out.
    """

    def __init__(self, script=None, send_error=None):
        self.script = {ttl: deque(events) for ttl, events in (script or {}).items()}
        self.send_error = send_error or {}
        self.sent = []
        self.local_address = None
        self.opened = False
        self.closed = False
        self._ttl = None

    def __call__(self, local_address):
        self.local_address = local_address
        return self

    def __enter__(self):
        self.opened = True
        return self

    def __exit__(self, exc_type, exc, tb):
        self.closed = True

    def send(self, payload, destination, ttl):
        if ttl in self.send_error:
            raise self.send_error[ttl]
        self.sent.append((payload, destination, ttl))
        self._ttl = ttl

    def receive(self, timeout):
        events = self.script.get(self._ttl)
        if timeout <= 0 or not events:
            return None
        event = events.popleft()
        if isinstance(event, Exception):
            raise event
        return event


@pytest.fixture
def clock():
    return FakeClock()


def static_resolver(*addresses):
    def resolve(host):
        return list(addresses)

    return resolve


def parameter_problem_from(peer: str, destination: str, identifier: int, sequence: int) -> Datagram:
    # pointer byte, 3 unused bytes, then the quoted datagram
    body = RawBody(data=b"\x14\x00\x00\x00" + _quote(destination, identifier, sequence))
    message = IcmpMessage(type=ICMP_PARAMETER_PROBLEM, code=0, body=body)
    return Datagram(data=ip_packet(peer, LOCAL, message.marshal()), peer=peer)
