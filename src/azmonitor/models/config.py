"""
Configuration data models.

This module contains the configuration structures for credentials, explicit
resources, resource-group selectors and exporter tuning. All of them are
frozen: a loaded configuration is a snapshot that is replaced as a whole on
reload, never mutated in place.
"""

from dataclasses import dataclass, field
from typing import Tuple

# Window of the metric-values query, ending at "now".
DEFAULT_TIMESPAN_SECONDS = 60
# Timeout applied to every outbound Azure HTTP call.
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_MAX_WORKERS = 4


@dataclass(frozen=True)
class Credentials:
    """
    Service principal credentials, loaded from the `[credentials]` table.
    """

    subscription_id: str
    client_id: str
    client_secret: str = field(repr=False)
    tenant_id: str


@dataclass(frozen=True)
class ResourceConfig:
    """
    An explicit resource to monitor, loaded from a `[[resources]]` entry.
    """

    # Path relative to the subscription, e.g. "/resourceGroups/rg/providers/Microsoft.Web/sites/app".
    name: str
    # Azure metric names to query, e.g. ("CpuTime", "Requests").
    metrics: Tuple[str, ...]
    # Subset of Total/Average/Minimum/Maximum. Empty means all four.
    aggregations: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ResourceGroupConfig:
    """
    A resource-group selector, loaded from a `[[resource_groups]]` entry.

    The group is expanded into concrete resources on every scrape.
    """

    name: str
    # Resource types joined with "or" in the listing filter, e.g. ("Microsoft.Web/sites",).
    resource_types: Tuple[str, ...]
    metrics: Tuple[str, ...]
    # Regexes matched against the resource leaf name.
    resource_include: Tuple[str, ...] = ()
    resource_exclude: Tuple[str, ...] = ()
    aggregations: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ExporterSettings:
    """
    Scrape tuning, loaded from the optional `[exporter]` table.
    """

    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    timespan_seconds: int = DEFAULT_TIMESPAN_SECONDS
    # 1 collects resources sequentially in the scrape thread.
    max_workers: int = DEFAULT_MAX_WORKERS


@dataclass(frozen=True)
class AppConfig:
    """
    The root configuration object that aggregates all loaded settings.
    """

    credentials: Credentials
    resources: Tuple[ResourceConfig, ...] = ()
    resource_groups: Tuple[ResourceGroupConfig, ...] = ()
    exporter: ExporterSettings = field(default_factory=ExporterSettings)
