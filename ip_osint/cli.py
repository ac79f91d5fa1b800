"""
cli.py - Command line entry point

Usage:
    python -m ip_osint collect 8.8.8.8       # scrape all sources, print the report
    python -m ip_osint stored 8.8.8.8        # print the last stored report
    python -m ip_osint serve [--port 8000]   # run the HTTP API

Chrome must already be running with --remote-debugging-port (CDP_PORT).
"""

import argparse
import asyncio
import json
import sys

from .config import Settings, configure_logging
from .connection import BrowserConnection
from .errors import CDPError, InvalidRequestError
from .orchestrator import Orchestrator
from .service import ACTION_COLLECT, ACTION_GET_STORED, handle_request, parse_request
from .storage import ReportStore


async def _collect(settings: Settings, ip: str, store_report: bool) -> dict:
    request = {"action": ACTION_COLLECT, "subjectIdentifier": ip}
    try:
        parse_request(request)
    except InvalidRequestError as e:
        return {"success": False, "error": str(e)}

    store = ReportStore(settings.redis_url, settings.key_prefix) if store_report else None
    try:
        async with BrowserConnection(settings) as browser:
            orchestrator = Orchestrator(browser, settings, store=store)
            return await handle_request(request, orchestrator, store)
    finally:
        if store:
            await store.close()


async def _stored(settings: Settings, ip: str) -> dict:
    store = ReportStore(settings.redis_url, settings.key_prefix)
    try:
        return await handle_request({"action": ACTION_GET_STORED, "subjectIdentifier": ip}, store=store)
    finally:
        await store.close()


def _serve(settings: Settings, host: str, port: int) -> int:
    import uvicorn
    uvicorn.run("ip_osint.server:app", host=host, port=port, log_level=settings.log_level.lower())
    return 0


def main(argv=None) -> int:
    settings = Settings.from_env()

    parser = argparse.ArgumentParser(prog='ip_osint', description='IP address OSINT collector (Chrome CDP)')
    parser.add_argument('--log-level', default=settings.log_level, help='Logging level (default: LOG_LEVEL or INFO)')
    sub = parser.add_subparsers(dest='command', required=True)

    p_collect = sub.add_parser('collect', help='Collect OSINT for an IP from every source')
    p_collect.add_argument('ip', help='IPv4 address (e.g., 8.8.8.8)')
    p_collect.add_argument('--no-store', action='store_true', help='Do not persist the report to Redis')

    p_stored = sub.add_parser('stored', help='Show the stored report for an IP')
    p_stored.add_argument('ip', help='IPv4 address')

    p_serve = sub.add_parser('serve', help='Run the HTTP API')
    p_serve.add_argument('--host', default=settings.api_host)
    p_serve.add_argument('--port', type=int, default=settings.api_port)

    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    if args.command == 'serve':
        return _serve(settings, args.host, args.port)

    try:
        if args.command == 'collect':
            response = asyncio.run(_collect(settings, args.ip, not args.no_store))
        else:
            response = asyncio.run(_stored(settings, args.ip))
    except CDPError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(json.dumps(response, indent=2, ensure_ascii=False))
    if not response["success"]:
        return 1
    if args.command == 'stored' and response["data"] is None:
        print(f"No stored report for {args.ip}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
