"""
Main entrypoint for the studio geocoding service.

Usage:
    python main.py scan                  Queue every studio lacking coordinates and wait for the drain
    python main.py resolve "<address>"   Resolve a single address
    python main.py status                Show coordinate coverage for active studios
    python main.py purge-cache [--days]  Delete stale persistent cache entries
    python main.py reset-placeholders    Clear the historical fallback coordinates

The HTTP API is served with `uvicorn studio_geocoding.api.app:app`.
"""
import argparse
from datetime import timedelta

from studio_geocoding.config import CACHE_MAX_AGE_DAYS
from studio_geocoding.logs import setup_logging
from studio_geocoding.models.geocoding import Failure
from studio_geocoding.services import build_services


def cmd_scan(services, args):
    queued = services.scanner.scan_and_enqueue(services.queue)
    if not queued:
        print("All studios already have coordinates!")
        return 0

    print(f"Queued {queued} studios for geocoding. Waiting for the queue to drain...")
    services.queue.wait_idle()
    summary = services.queue.status().summary

    print(f"\nGeocoding completed")
    print(f"  Studios processed: {summary.processed}")
    print(f"  Coordinates written: {summary.succeeded}")
    print(f"  Skipped: {summary.skipped}")
    print(f"  Failed: {summary.failed}")
    print(f"  Rate limit hits: {summary.rate_limited}")
    if summary.last_error:
        print(f"  Last error: {summary.last_error}")
    return 0 if summary.failed == 0 else 1


def cmd_resolve(services, args):
    result = services.resolver.resolve_address(args.address)
    if isinstance(result, Failure):
        print(f"Geocoding failed: {result.reason}")
        return 1
    print(f"{args.address} -> {result.lat}, {result.lng} ({result.formatted_address}, source: {result.source})")
    return 0


def cmd_status(services, args):
    status = services.scanner.geocoding_status()
    print("Current Geocoding Status:")
    print(f"  Total studios: {status.total}")
    print(f"  Geocoded: {status.with_coordinates}")
    print(f"  Missing coordinates: {status.without_coordinates}")
    print(f"  Placeholder coordinates: {status.placeholder}")
    print(f"  Completion: {status.percentage}%")
    return 0


def cmd_purge_cache(services, args):
    removed = services.cache.purge_stale(timedelta(days=args.days))
    print(f"Removed {removed} cache entries older than {args.days} days")
    return 0


def cmd_reset_placeholders(services, args):
    cleared = services.scanner.reset_placeholder_coordinates()
    print(f"Cleared {cleared} placeholder coordinates")
    return 0


def build_parser():
    parser = argparse.ArgumentParser(description="Studio geocoding tools")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("scan").set_defaults(func=cmd_scan)

    resolve = sub.add_parser("resolve")
    resolve.add_argument("address")
    resolve.set_defaults(func=cmd_resolve)

    sub.add_parser("status").set_defaults(func=cmd_status)

    purge = sub.add_parser("purge-cache")
    purge.add_argument("--days", type=int, default=CACHE_MAX_AGE_DAYS)
    purge.set_defaults(func=cmd_purge_cache)

    sub.add_parser("reset-placeholders").set_defaults(func=cmd_reset_placeholders)
    return parser


def main(argv=None, services=None):
    """
    Main function to run a geocoding command.
    """
    args = build_parser().parse_args(argv)
    try:
        setup_logging()
        services = services or build_services()
        return args.func(services, args)
    except Exception as e:
        print(f"An error occurred in the main function: {str(e)}")
        return 1


if __name__ == "__main__":
    exit_code = main()
    print(f"Exiting with code {exit_code}")
    raise SystemExit(exit_code)
