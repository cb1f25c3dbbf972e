"""Traceroute probe engine."""

from __future__ import annotations

import ipaddress
import secrets
import socket
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from ._exceptions import NoRemoteAddressError, ResolveError, TraceError
from ._icmp import (
    DEFAULT_PAYLOAD,
    ICMP_ECHO_REPLY,
    ICMP_TIME_EXCEEDED,
    Echo,
    IcmpMessage,
    echo_request,
    parse_ip_packet,
    quoted_echo,
)
from ._logging import logger
from ._models import Hop
from ._transport import Transport

Resolver = Callable[[str], Iterable[str]]
TransportFactory = Callable[[str], Transport]


def new_identifier() -> int:
    return secrets.randbelow(0x10000)


def resolve_host(host: str) -> list[str]:
    """Candidate addresses for ``host`` in resolver order, without duplicates."""
    try:
        infos = socket.getaddrinfo(host, None)
    except (OSError, UnicodeError) as exc:
        message = f"Resolve error {host}: {exc}"
        raise ResolveError(message) from exc
    addresses: list[str] = []
    for *_, sockaddr in infos:
        address = sockaddr[0]
        if address not in addresses:
            addresses.append(address)
    return addresses


def first_ipv4(candidates: Iterable[str]) -> Optional[str]:
    """First candidate usable as an IPv4 destination.

    IPv4-mapped IPv6 addresses count as IPv4. Unparseable entries are skipped.
    """
    for candidate in candidates:
        try:
            address = ipaddress.ip_address(candidate)
        except ValueError:
            continue
        if isinstance(address, ipaddress.IPv6Address):
            if address.ipv4_mapped is None:
                continue
            address = address.ipv4_mapped
        return str(address)
    return None


@dataclass
class TraceRoute:
    """A traceroute session towards ``remote_host``.

    Probes TTL 1 up to ``max_ttl - 1`` once each, waiting at most ``timeout``
    seconds for every answer. ``identifier`` tags this run's Echo Requests;
    with ``match_probes`` set, replies that do not carry it (or the current
    sequence) are ignored.
    """

    remote_host: str
    local_address: str = "0.0.0.0"
    max_ttl: int = 30
    timeout: float = 3.0
    identifier: int = field(default_factory=new_identifier)
    payload: bytes = DEFAULT_PAYLOAD
    match_probes: bool = True
    resolver: Resolver = field(default=resolve_host, repr=False)
    transport_factory: TransportFactory = field(default=Transport, repr=False)
    clock: Callable[[], float] = field(default=time.perf_counter, repr=False)

    def resolve(self) -> str:
        try:
            candidates = list(self.resolver(self.remote_host))
        except (OSError, ValueError) as exc:
            raise ResolveError(f"Resolve error {self.remote_host}: {exc}") from exc

        destination = first_ipv4(candidates)
        if destination is None:
            raise NoRemoteAddressError(
                f"no usable remote address for {self.remote_host}"
            )
        return destination

    def do(self) -> list[Hop]:
        """Run the trace once.

        Returns the hops in TTL order. A fatal error is raised as a
        :class:`TraceError` whose ``hops`` holds the hops gathered so far.
        """
        try:
            destination = self.resolve()
        except TraceError as exc:
            logger.error(str(exc))
            raise

        hops: list[Hop] = []
        logger.info(
            "Starting traceroute to %s (%s) max_ttl=%d timeout=%.2fs id=%#06x",
            self.remote_host,
            destination,
            self.max_ttl,
            self.timeout,
            self.identifier,
        )
        try:
            with self.transport_factory(self.local_address) as transport:
                for ttl in range(1, self.max_ttl):
                    hop = self._probe(transport, destination, ttl)
                    hops.append(hop)
                    if hop.responded:
                        logger.info("TTL %d: %s rtt=%.2f ms", ttl, hop.address, hop.rtt)
                    else:
                        logger.warning("TTL %d: no answer", ttl)
                    if hop.reached_destination:
                        logger.info("Destination reached at TTL %d", ttl)
                        return hops
        except TraceError as exc:
            exc.hops = list(hops)
            logger.error("Traceroute aborted after %d hops: %s", len(hops), exc)
            raise

        logger.warning("Traceroute finished without reaching %s", destination)
        return hops

    def _probe(self, transport: Transport, destination: str, ttl: int) -> Hop:
        wire = echo_request(self.identifier, ttl, self.payload).marshal()
        sent_at = self.clock()
        transport.send(wire, destination, ttl)

        deadline = self.clock() + self.timeout
        while True:
            datagram = transport.receive(deadline - self.clock())
            if datagram is None:
                return Hop(ttl=ttl)
            message = parse_ip_packet(datagram.data).message
            rtt = (self.clock() - sent_at) * 1000
            if self.match_probes and not self._answers(message, ttl):
                logger.debug(
                    "Discarding ICMP type %d code %d from %s",
                    message.type,
                    message.code,
                    datagram.peer,
                )
                continue
            return self._classify(message, datagram.peer, ttl, rtt)

    def _answers(self, message: IcmpMessage, sequence: int) -> bool:
        """Whether ``message`` responds to this run's probe ``sequence``."""
        if message.type == ICMP_ECHO_REPLY:
            body = message.body
            return (
                isinstance(body, Echo)
                and body.identifier == self.identifier
                and body.sequence == sequence
            )
        return quoted_echo(message.body) == (self.identifier, sequence)

    @staticmethod
    def _classify(message: IcmpMessage, peer: str, ttl: int, rtt: float) -> Hop:
        if message.type == ICMP_TIME_EXCEEDED:
            return Hop(ttl=ttl, address=peer, rtt=rtt)
        if message.type == ICMP_ECHO_REPLY:
            return Hop(ttl=ttl, address=peer, rtt=rtt, reached_destination=True)
        return Hop(ttl=ttl)


def traceroute(remote_host: str, **overrides) -> list[Hop]:
    """Build a :class:`TraceRoute` for ``remote_host`` and run it."""
    return TraceRoute(remote_host, **overrides).do()
