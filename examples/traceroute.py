from hoptrace import TraceError, TraceRoute, configure_logging
from rich import print


def main():
    configure_logging("INFO")
    try:
        hops = TraceRoute("8.8.8.8", max_ttl=20, timeout=1.0).do()
    except TraceError as exc:
        hops = exc.hops
        print(f"[red]{exc}[/red]")
    for hop in hops:
        print(str(hop))


if __name__ == "__main__":
    main()
