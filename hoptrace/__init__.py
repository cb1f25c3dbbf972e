from ._exceptions import (
    MarshalError,
    NoRemoteAddressError,
    ParseError,
    RawSocketPermissionError,
    ReceiveError,
    ResolveError,
    SendError,
    SocketSetupError,
    TraceError,
)
from ._icmp import (
    DestinationUnreachable,
    Echo,
    IcmpMessage,
    IpHeader,
    IpPacket,
    RawBody,
    TimeExceeded,
    echo_request,
    parse_ip_packet,
    parse_message,
)
from ._logging import configure_logging, console
from ._models import Datagram, Hop
from ._traceroute import TraceRoute, resolve_host, traceroute
from ._transport import Transport

__version__ = "0.1.0"

__all__ = [
    "TraceRoute",
    "traceroute",
    "resolve_host",
    "Hop",
    "Datagram",
    "Transport",
    "Echo",
    "TimeExceeded",
    "DestinationUnreachable",
    "RawBody",
    "IcmpMessage",
    "IpHeader",
    "IpPacket",
    "echo_request",
    "parse_message",
    "parse_ip_packet",
    "configure_logging",
    "console",
    "TraceError",
    "ResolveError",
    "NoRemoteAddressError",
    "SocketSetupError",
    "RawSocketPermissionError",
    "MarshalError",
    "SendError",
    "ReceiveError",
    "ParseError",
]
