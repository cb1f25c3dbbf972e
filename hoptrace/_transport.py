"""Raw ICMP socket used by a traceroute run."""

from __future__ import annotations

import socket
import struct
from typing import Optional

from ._exceptions import (
    RawSocketPermissionError,
    ReceiveError,
    SendError,
    SocketSetupError,
)
from ._logging import logger
from ._models import Datagram

# Linux values; older interpreters do not export them.
IP_PKTINFO = getattr(socket, "IP_PKTINFO", 8)
IP_RECVTTL = getattr(socket, "IP_RECVTTL", 12)


class Transport:
    """One raw ICMP socket bound to ``local_address``.

    Use as a context manager: the socket is opened on enter and closed on
    exit, whatever happens in between.
    """

    RECV_BUFFER = 1500
    ANCILLARY_BUFFER = socket.CMSG_SPACE(4) + socket.CMSG_SPACE(12)

    def __init__(self, local_address: str = "0.0.0.0"):
        self.local_address = local_address
        self._sock: Optional[socket.socket] = None

    @property
    def sock(self) -> socket.socket:
        if self._sock is None:
            raise SocketSetupError("transport is not open")
        return self._sock

    def open(self) -> "Transport":
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_RAW, socket.IPPROTO_ICMP)
        except PermissionError as exc:
            message = (
                "Raw socket requires elevated privileges. Use sudo or grant "
                "CAP_NET_RAW to the Python interpreter."
            )
            raise RawSocketPermissionError(message) from exc
        except OSError as exc:
            raise SocketSetupError(f"cannot create raw ICMP socket: {exc}") from exc

        try:
            sock.bind((self.local_address, 0))
            sock.setsockopt(socket.IPPROTO_IP, IP_RECVTTL, 1)
            sock.setsockopt(socket.IPPROTO_IP, IP_PKTINFO, 1)
        except OSError as exc:
            sock.close()
            raise SocketSetupError(
                f"cannot set up socket on {self.local_address}: {exc}"
            ) from exc

        logger.debug("Raw ICMP socket bound to %s", self.local_address)
        self._sock = sock
        return self

    def close(self) -> None:
        if self._sock is not None:
            try:
                self._sock.close()
            finally:
                self._sock = None

    def __enter__(self) -> "Transport":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def send(self, payload: bytes, destination: str, ttl: int) -> None:
        """Send ``payload`` to ``destination`` with the IP TTL set to ``ttl``."""
        try:
            self.sock.setsockopt(socket.IPPROTO_IP, socket.IP_TTL, ttl)
        except OSError as exc:
            raise SendError(f"cannot set TTL {ttl}: {exc}") from exc
        try:
            self.sock.sendto(payload, (destination, 0))
        except OSError as exc:
            raise SendError(f"send to {destination} failed: {exc}") from exc

    def receive(self, timeout: float) -> Optional[Datagram]:
        """Next inbound datagram, or ``None`` if ``timeout`` seconds pass first."""
        if timeout <= 0:
            return None
        self.sock.settimeout(timeout)
        try:
            data, ancdata, _flags, addr = self.sock.recvmsg(
                self.RECV_BUFFER, self.ANCILLARY_BUFFER
            )
        except socket.timeout:
            return None
        except OSError as exc:
            raise ReceiveError(f"receive failed: {exc}") from exc

        ttl, local_address, interface = self._parse_ancillary(ancdata)
        return Datagram(
            data=data,
            peer=addr[0],
            ttl=ttl,
            local_address=local_address,
            interface=interface,
        )

    @staticmethod
    def _parse_ancillary(
        ancdata: list[tuple[int, int, bytes]],
    ) -> tuple[Optional[int], Optional[str], Optional[int]]:
        ttl: Optional[int] = None
        local_address: Optional[str] = None
        interface: Optional[int] = None
        for level, kind, value in ancdata:
            if level != socket.IPPROTO_IP:
                continue
            if kind == socket.IP_TTL and len(value) >= 4:
                (ttl,) = struct.unpack("=i", value[:4])
            elif kind == IP_PKTINFO and len(value) >= 12:
                interface, _, addr = struct.unpack("=i4s4s", value[:12])
                local_address = socket.inet_ntoa(addr)
        return ttl, local_address, interface
