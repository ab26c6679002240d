#!/usr/bin/env python3
"""
Derivatives Aggregator - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
Serves aggregated funding, open interest and tickers from every
configured exchange over HTTP.

- Wires config, fetch client, orchestrator, caches and API
- Compatible with PM2 process management
- Shuts down cleanly on SIGINT / SIGTERM

============================================================
USAGE
============================================================
Direct execution:
    python app.py --port 8080

With a YAML config:
    python app.py --config config.yaml --log-level DEBUG

Environment-based configuration (.env supported):
    SERVER_PORT=8080 COINGECKO_API_KEY=... python app.py

============================================================
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from aiohttp import web

from api.server import create_app, should_cache
from caching.allowlist import AllowlistCache
from caching.response_cache import ResponseCache
from core.clock import ClockProtocol, get_clock
from core.config import AggregatorConfig, set_config
from core.constants import SYSTEM_NAME, SYSTEM_VERSION
from data_sources.exceptions import ConfigurationError
from data_sources.http_client import ResilientFetchClient
from data_sources.orchestrator import AggregationOrchestrator
from data_sources.providers import register_default_adapters


logger = logging.getLogger("app")


# ============================================================
# LOGGING
# ============================================================

def setup_logging(level: str = "INFO", log_format: str = "text") -> None:
    """
    Set up process-wide logging.

    Args:
        level: Log level
        log_format: Output format (json or text)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
            })
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    # aiohttp access logs are noisy at INFO
    logging.getLogger("aiohttp.access").setLevel(max(log_level, logging.WARNING))


# ============================================================
# CLI
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="derivatives-aggregator",
        description="Multi-exchange derivatives data aggregator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Endpoints:
  /api/funding        - Funding rates
  /api/openinterest   - Open interest
  /api/tickers        - 24h tickers
  /api/health         - Per-endpoint source health

Examples:
  %(prog)s --port 8080
  %(prog)s --config config.yaml --log-level DEBUG
        """
    )

    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=None,
        help="YAML config file (overrides environment)",
    )

    server_group = parser.add_argument_group("Server Options")

    server_group.add_argument(
        "--host",
        type=str,
        default=None,
        help="Bind address (default: from config)",
    )

    server_group.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Bind port (default: from config)",
    )

    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Logging level (default: from config)",
    )

    logging_group.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        default=None,
        help="Logging format (default: from config)",
    )

    return parser


def build_config(args: argparse.Namespace) -> AggregatorConfig:
    """Build configuration from environment, YAML and CLI flags, in that order."""
    if args.config:
        config = AggregatorConfig.from_yaml(args.config)
    else:
        config = AggregatorConfig.from_env()

    if args.host:
        config.server.host = args.host
    if args.port:
        config.server.port = args.port
    if args.log_level:
        config.log_level = args.log_level
    if args.log_format:
        config.log_format = args.log_format

    config.validate()
    return config


# ============================================================
# WIRING
# ============================================================

def build_application(
    config: AggregatorConfig,
    clock: Optional[ClockProtocol] = None,
) -> web.Application:
    """Wire every component into one aiohttp application."""
    clock = clock or get_clock()

    client = ResilientFetchClient(
        timeout=config.http.timeout_seconds,
        alternate_domains=config.http.alternate_domains,
    )
    orchestrator = AggregationOrchestrator(
        client,
        adapter_timeout=config.http.adapter_timeout_seconds,
    )
    register_default_adapters(orchestrator, config, clock)

    response_cache = ResponseCache(
        max_entries=config.cache.max_entries,
        clock=clock,
        should_store=should_cache,
    )
    allowlist = AllowlistCache(config.allowlist, client, clock)

    return create_app(orchestrator, response_cache, allowlist, config, clock)


# ============================================================
# ENTRY POINT
# ============================================================

def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        config = build_config(args)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging(config.log_level, config.log_format)
    set_config(config)

    logger.info(f"{SYSTEM_NAME} v{SYSTEM_VERSION} starting on {config.server.host}:{config.server.port}")
    logger.debug(f"Configuration: {config.to_dict()}")

    web.run_app(
        build_application(config),
        host=config.server.host,
        port=config.server.port,
        print=None,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
