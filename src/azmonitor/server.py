"""
HTTP exposition of the collected metrics.

The Exporter owns the current (configuration, Azure client) pair. The pair
is swapped as a whole under a lock on reload, and every scrape works on the
pair it read when it started. The exporter registry holds a single collector
that builds a fresh AzureMetricsCollector per scrape, so no samples survive
between scrapes.
"""

import logging
import socket
import threading
from typing import Optional, Tuple
from wsgiref.simple_server import WSGIRequestHandler, make_server

from prometheus_client import CollectorRegistry, generate_latest, make_wsgi_app
from prometheus_client.exposition import ThreadingWSGIServer
from prometheus_client.registry import Collector

from .azure.client import AzureClient
from .collectors import AzureMetricsCollector
from .executor import ManagedThreadPoolExecutor, ThreadPoolConfig
from .models.config import AppConfig

logger = logging.getLogger(__name__)

DEFAULT_LISTEN_ADDRESS = ":9276"
METRICS_PATH = "/metrics"

LANDING_PAGE = b"""<html>
<head><title>Azure Exporter</title></head>
<body>
<h1>Azure Exporter</h1>
<p><a href="/metrics">Metrics</a></p>
</body>
</html>
"""


def parse_listen_address(address: str) -> Tuple[str, int]:
    """
    Split a "host:port" listen address. An empty host listens on all interfaces.

    Raises:
        ValueError: If the port is missing or not a number
    """
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"Invalid listen address {address!r}, expected [host]:port")
    return host.strip("[]"), int(port)


def build_client(config: AppConfig) -> AzureClient:
    return AzureClient(config.credentials, request_timeout=config.exporter.request_timeout)


class SnapshotCollector(Collector):
    """Scrapes Azure with whatever configuration the exporter holds right now."""

    def __init__(self, exporter: "Exporter"):
        self.exporter = exporter

    def collect(self):
        config, client = self.exporter.snapshot()
        yield from AzureMetricsCollector(config, client, executor=self.exporter.executor).collect()

    def describe(self):
        return []


class Exporter:
    """
    Holds the configuration snapshot, its Azure client and the worker pool.
    """

    def __init__(self, config: AppConfig, client: Optional[AzureClient] = None):
        self._state: Tuple[AppConfig, AzureClient] = (config, client or build_client(config))
        self._lock = threading.Lock()
        self.executor: Optional[ManagedThreadPoolExecutor] = None
        if config.exporter.max_workers > 1:
            # Sized once at startup, a reload does not resize the pool.
            self.executor = ManagedThreadPoolExecutor(
                ThreadPoolConfig(max_workers=config.exporter.max_workers)
            )
            self.executor.start()
        self.registry = CollectorRegistry(auto_describe=False)
        self.registry.register(SnapshotCollector(self))

    def snapshot(self) -> Tuple[AppConfig, AzureClient]:
        with self._lock:
            return self._state

    @property
    def config(self) -> AppConfig:
        return self.snapshot()[0]

    @property
    def client(self) -> AzureClient:
        return self.snapshot()[1]

    def update_config(self, config: AppConfig) -> None:
        """
        Swap in a new configuration.

        The Azure client (and with it the cached token) is kept unless the
        credentials or the request timeout changed. A replaced client is
        closed once the new pair is in place.
        """
        with self._lock:
            _, old_client = self._state
            rebuilt = (
                old_client.credentials != config.credentials
                or old_client.request_timeout != config.exporter.request_timeout
            )
            client = build_client(config) if rebuilt else old_client
            self._state = (config, client)
        if rebuilt:
            logger.info("Credentials or request timeout changed, created a new Azure client")
            old_client.close()

    def render_metrics(self) -> bytes:
        """Run one scrape and return the text exposition."""
        return generate_latest(self.registry)

    def shutdown(self) -> None:
        if self.executor is not None:
            self.executor.shutdown(wait=True)
        self.client.close()


class QuietRequestHandler(WSGIRequestHandler):
    """Sends access log lines to the module logger at debug level."""

    def log_message(self, format, *args) -> None:
        logger.debug(f"{self.address_string()} - {format % args}")


class IPv6WSGIServer(ThreadingWSGIServer):
    address_family = socket.AF_INET6


def create_app(exporter: Exporter):
    """
    WSGI application serving the landing page and the metrics endpoint.
    """
    metrics_app = make_wsgi_app(exporter.registry)

    def app(environ, start_response):
        path = environ.get("PATH_INFO", "")
        if path == METRICS_PATH:
            try:
                return metrics_app(environ, start_response)
            except Exception:
                logger.exception("Scrape failed")
                start_response("500 Internal Server Error", [("Content-Type", "text/plain; charset=utf-8")])
                return [b"Scrape failed\n"]
        if path == "/":
            start_response("200 OK", [("Content-Type", "text/html; charset=utf-8")])
            return [LANDING_PAGE]
        start_response("404 Not Found", [("Content-Type", "text/plain; charset=utf-8")])
        return [b"Not Found\n"]

    return app


def create_server(exporter: Exporter, listen_address: str = DEFAULT_LISTEN_ADDRESS) -> ThreadingWSGIServer:
    """
    Create the threaded WSGI server bound to ``listen_address``.

    Raises:
        ValueError: If the listen address is malformed
        OSError: If the address cannot be bound
    """
    host, port = parse_listen_address(listen_address)
    server_class = IPv6WSGIServer if ":" in host else ThreadingWSGIServer
    return make_server(
        host, port, create_app(exporter), server_class=server_class, handler_class=QuietRequestHandler
    )
