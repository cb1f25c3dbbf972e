"""Hop results and received datagrams."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

NO_REPLY = "*"


@dataclass(frozen=True)
class Hop:
    """One probed TTL and whoever answered it.

    ``address`` is ``"*"`` when nothing useful came back, in which case
    ``rtt`` is ``None``. ``rtt`` is in milliseconds.
    """

    ttl: int
    address: str = NO_REPLY
    rtt: Optional[float] = None
    reached_destination: bool = False

    @property
    def responded(self) -> bool:
        return self.address != NO_REPLY

    def __str__(self) -> str:
        if not self.responded:
            return f"{self.ttl}\t{self.address}"
        return f"{self.ttl}\t{self.address}\t{self.rtt or 0.0:.2f}ms"

    def __rich__(self) -> str:  # pragma: no cover - rich display helper
        return self.__str__()


@dataclass(frozen=True)
class Datagram:
    """Bytes read from the transport plus any ancillary data that came with them."""

    data: bytes
    peer: str
    ttl: Optional[int] = None
    local_address: Optional[str] = None
    interface: Optional[int] = None
