"""
Command-line interface for the Azure metrics exporter.

This module provides the main CLI entry point, handling command-line
arguments, configuration loading, the initial authentication, the
metric-definitions listing mode and the HTTP server lifecycle including
configuration reload on SIGHUP.
"""

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from ..azure.client import AzureClient
from ..azure.errors import AzureApiError, AuthError
from ..collectors.resolver import ResourceResolver, leaf_name, resolve_explicit
from ..config import get_config, reload_config, set_config_path
from ..models.config import AppConfig
from ..server import DEFAULT_LISTEN_ADDRESS, Exporter, create_server
from ..validation import ErrorSeverity, ValidationError, handle_api_error, handle_cli_error, handle_config_error

LOG_FORMAT = "%(asctime)s [%(levelname)-5.5s] %(name)s:%(filename)s:%(lineno)d\t %(message)s"

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Export Azure Monitor metrics in the Prometheus exposition format."
    )
    parser.add_argument(
        "--config.file",
        dest="config_file",
        type=Path,
        default=Path("azure.toml"),
        help="Azure exporter configuration file.",
    )
    parser.add_argument(
        "--web.listen-address",
        dest="listen_address",
        default=DEFAULT_LISTEN_ADDRESS,
        help="The address to listen on for HTTP requests.",
    )
    parser.add_argument(
        "--list.definitions",
        dest="list_definitions",
        action="store_true",
        help="List available metric definitions for the given resources and exit.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )
    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


def list_metric_definitions(config: AppConfig, client: AzureClient) -> int:
    """
    Print the metric names available for every configured resource.

    Resource groups are expanded the same way a scrape expands them.

    Returns:
        Number of resources whose definitions could not be fetched
    """
    targets = [resolve_explicit(resource) for resource in config.resources]
    resolver = ResourceResolver(client)
    failures = 0
    for group in config.resource_groups:
        try:
            targets.extend(resolver.resolve_group(group))
        except AzureApiError as e:
            failures += 1
            handle_api_error(e, f"listing resource group {group.name}", logger=logger)

    for target in targets:
        try:
            definitions = client.get_metric_definitions(target.path)
        except AzureApiError as e:
            failures += 1
            handle_api_error(e, f"fetching metric definitions for {target.path}", logger=logger)
            continue

        print(f"Resource: {leaf_name(target.path)}\n\nAvailable Metrics:")
        for definition in definitions:
            print(f"- {definition.name.value}")
        print()

    return failures


def install_reload_handler(exporter: Exporter) -> None:
    """Reload the configuration file on SIGHUP, keeping the old one on failure."""
    if not hasattr(signal, "SIGHUP"):
        return

    def reload_handler(signum, frame):
        logger.info("SIGHUP received, reloading configuration")
        try:
            exporter.update_config(reload_config())
        except (OSError, ValidationError, ValueError) as e:
            handle_config_error(e, "reload, keeping the previous configuration", reraise=False, logger=logger)

    signal.signal(signal.SIGHUP, reload_handler)


def main_cli(argv: Optional[List[str]] = None) -> None:
    """
    Main command-line interface for the exporter.

    Raises:
        SystemExit: On configuration errors, authentication failure, or when
            the listening socket cannot be opened.
    """
    args = parse_args(argv)
    setup_logging(args.log_level)

    set_config_path(args.config_file)
    try:
        config = get_config()
    except (FileNotFoundError, ValidationError, ValueError) as e:
        handle_cli_error(
            error=e,
            context="configuration loading",
            exit_code=1,
            logger=logger,
        )

    exporter = Exporter(config)

    try:
        exporter.client.authenticate()
    except AuthError as e:
        handle_cli_error(
            error=e,
            context="initial authentication",
            severity=ErrorSeverity.CRITICAL,
            exit_code=1,
            logger=logger,
        )

    if args.list_definitions:
        failures = list_metric_definitions(config, exporter.client)
        exporter.shutdown()
        sys.exit(1 if failures else 0)

    try:
        server = create_server(exporter, args.listen_address)
    except (ValueError, OSError) as e:
        exporter.shutdown()
        handle_cli_error(
            error=e,
            context="starting HTTP server",
            exit_code=1,
            logger=logger,
        )

    install_reload_handler(exporter)

    logger.info(f"azure_metrics_exporter listening on {args.listen_address}")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    finally:
        server.server_close()
        exporter.shutdown()


if __name__ == "__main__":
    main_cli()
