#!/usr/bin/env python3
"""livelog: follow a service's live log stream with filtering."""

import argparse
import asyncio
import dataclasses
import functools
import logging
import os
import signal
import sys

from livelog.auth import (
    CredentialResolver,
    HttpTokenProvider,
    session_token_from_cookie_file,
    session_token_from_cookie_header,
)
from livelog.config import Config, load_config, load_yaml_config
from livelog.filters import matches_level, matches_service, matches_text
from livelog.formatter import format_detail, get_formatter
from livelog.models import LogLevel, LogRecord
from livelog.services import ServiceDirectory
from livelog.session import LogViewSession

logger = logging.getLogger(__name__)


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="livelog",
        description="Stream, filter and search a service's live logs.",
    )
    parser.add_argument(
        "--config", default=None,
        help="Path to YAML config file",
    )
    parser.add_argument(
        "--service", default=None,
        help="Service id to stream (overrides ILOG_SERVICE)",
    )
    parser.add_argument(
        "--list-services", action="store_true",
        help="Print the selectable services and exit",
    )
    parser.add_argument(
        "--level", action="append", choices=[level.value for level in LogLevel],
        help="Only show this level (repeatable; default: all)",
    )
    parser.add_argument(
        "--search", default="",
        help="Case-insensitive text filter over message, source and client IP",
    )
    parser.add_argument(
        "--source", action="append", default=[],
        help="Only show records from this source name (repeatable)",
    )
    parser.add_argument(
        "--output", choices=["text", "json"], default="text",
        help="Output format (default: text)",
    )
    parser.add_argument(
        "--color", action="store_true",
        help="Colorize output by log level (ANSI)",
    )
    parser.add_argument(
        "--detail", action="store_true",
        help="Print each record expanded, with attributes and a curl command",
    )
    parser.add_argument(
        "--log-level", default=os.environ.get("LOG_LEVEL", "INFO"),
        help="Diagnostic log level on stderr (default: INFO)",
    )
    return parser


def resolve_session_token(config: Config) -> str | None:
    return (
        session_token_from_cookie_header(config.session_cookie, config.session_cookie_name)
        or session_token_from_cookie_file(config.cookie_file, config.session_cookie_name)
    )


def build_session(config: Config) -> LogViewSession:
    session_token = resolve_session_token(config)
    token_provider = HttpTokenProvider(
        config.auth_base_url, session_token, config.session_cookie_name, timeout=config.request_timeout,
    )
    directory = ServiceDirectory(
        config.api_base_url, session_token, config.session_cookie_name, timeout=config.request_timeout,
    )
    return LogViewSession(config, CredentialResolver(token_provider, session_token), directory)


async def run(args) -> int:
    yaml_data = load_yaml_config(args.config)
    config = load_config(yaml_data)
    if args.service:
        config = dataclasses.replace(config, service_id=args.service)

    session = build_session(config)
    try:
        return await _follow(session, config, args)
    finally:
        await session.close()


async def _follow(session: LogViewSession, config: Config, args) -> int:
    services = await session.load_services()

    if args.list_services:
        for service in services:
            print(f"{service.id}\t{service.name}\t{service.description or ''}")
        return 0

    if session.needs_service_selection:
        print("A service must be selected with --service. Available services:", file=sys.stderr)
        for service in services:
            print(f"  {service.id}  {service.name}", file=sys.stderr)
        return 1

    if args.level:
        session.set_level_filter(LogLevel(level) for level in args.level)
    if args.source:
        session.set_service_filter(args.source)
    session.set_query(args.search)

    if args.detail:
        formatter = functools.partial(format_detail, default_host=config.default_request_host)
    else:
        formatter = get_formatter(output_format=args.output, color=args.color)

    def on_record(record: LogRecord):
        query = session.state.query
        if (matches_text(record, query.text)
                and matches_level(record, query.levels)
                and matches_service(record, query.services)):
            print(formatter(record), flush=True)

    session.add_listener(on_record)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    stream_done = asyncio.create_task(session.connector.wait_idle())
    stop_requested = asyncio.create_task(stop.wait())
    await asyncio.wait({stream_done, stop_requested}, return_when=asyncio.FIRST_COMPLETED)
    for task in (stream_done, stop_requested):
        task.cancel()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.remove_signal_handler(sig)

    connector = session.connector
    logger.info("Stats: %d frames received, %d dropped, %d records buffered (%d evicted)",
                connector.messages_received, connector.frames_dropped,
                len(session.buffer), session.buffer.evicted_count)
    return 0 if stop.is_set() else 1


def main():
    parser = build_cli_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [LIVELOG] %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        sys.exit(0)
    except BrokenPipeError:
        sys.exit(0)
