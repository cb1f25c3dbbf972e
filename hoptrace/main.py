"""Command line entry point for hoptrace."""

from __future__ import annotations

import argparse
from typing import Optional, Sequence

from ._exceptions import TraceError
from ._logging import configure_logging, console
from ._traceroute import TraceRoute, new_identifier


def _identifier(value: str) -> int:
    identifier = int(value, 0)
    if not 0 <= identifier <= 0xFFFF:
        raise argparse.ArgumentTypeError("identifier must fit in 16 bits")
    return identifier


def _timeout(value: str) -> float:
    timeout = float(value)
    if not timeout > 0:
        raise argparse.ArgumentTypeError("timeout must be a positive number of seconds")
    return timeout


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hoptrace", description="Trace the route to a host with ICMP Echo"
    )
    parser.add_argument("host", help="target host name or IPv4 address")
    parser.add_argument("-m", "--max-ttl", type=int, default=30, help="max hop TTL")
    parser.add_argument(
        "-t", "--timeout", type=_timeout, default=3.0, help="per probe timeout in seconds"
    )
    parser.add_argument(
        "-s", "--source", default="0.0.0.0", help="local address to bind to"
    )
    parser.add_argument(
        "--identifier",
        type=_identifier,
        default=None,
        help="16-bit ICMP identifier (random by default)",
    )
    parser.add_argument(
        "--no-match",
        action="store_true",
        help="accept replies that do not quote this run's probes",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="log every probe"
    )
    return parser


def run(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging("DEBUG" if args.verbose else "CRITICAL")

    session = TraceRoute(
        args.host,
        local_address=args.source,
        max_ttl=args.max_ttl,
        timeout=args.timeout,
        identifier=args.identifier if args.identifier is not None else new_identifier(),
        match_probes=not args.no_match,
    )
    try:
        hops = session.do()
    except TraceError as exc:
        for hop in exc.hops:
            console.print(hop, markup=False, highlight=False)
        console.print(str(exc), style="red", markup=False, highlight=False)
        return 1

    for hop in hops:
        console.print(hop, markup=False, highlight=False)
    return 0


if __name__ == "__main__":
    raise SystemExit(run())
