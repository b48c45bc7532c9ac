"""
azmonitor: Azure Monitor metrics exporter for Prometheus.

This package polls the Azure Monitor REST API on every scrape and republishes
the latest aggregated values as Prometheus gauges.

The package is organized into specialized modules:
- config: Configuration loading, validation and live reload
- models: Configuration snapshot and typed Azure responses
- validation: Input validation and error handling
- azure: Access token lifecycle and REST client
- collectors: Resource resolution, metric naming and the Prometheus collector
- executor: Worker pool for fanning out per-resource collection
- server: HTTP exposition
- cli: Command-line interface

Usage:
    From command line:
        azure-metrics-exporter --config.file azure.toml

    Programmatically:
        from azmonitor import AzureClient, AzureMetricsCollector, load_config
        config = load_config(Path("azure.toml"))
        collector = AzureMetricsCollector(config, AzureClient(config.credentials))
"""

# Read by the build_info metric, defined before the submodule imports.
__version__ = "1.0.0"

# Main interfaces
from .config import get_config, load_config, reload_config, set_config_path
from .azure import AuthError, AzureClient, FetchError, ListError, TokenManager
from .collectors import AzureMetricsCollector, ResourceResolver, map_metric_name, map_resource_labels
from .server import Exporter
from .cli import main_cli

# Model classes for external use
from .models import (
    AccessToken,
    Aggregation,
    AppConfig,
    Credentials,
    ExporterSettings,
    MetricSample,
    ResolvedResource,
    ResourceConfig,
    ResourceGroupConfig,
)

# Validation utilities
from .validation import ValidationError

__all__ = [
    # Main interfaces
    "get_config",
    "load_config",
    "reload_config",
    "set_config_path",
    "AzureClient",
    "TokenManager",
    "AzureMetricsCollector",
    "ResourceResolver",
    "Exporter",
    "main_cli",
    "map_metric_name",
    "map_resource_labels",
    # Errors
    "AuthError",
    "FetchError",
    "ListError",
    "ValidationError",
    # Models
    "AccessToken",
    "Aggregation",
    "AppConfig",
    "Credentials",
    "ExporterSettings",
    "MetricSample",
    "ResolvedResource",
    "ResourceConfig",
    "ResourceGroupConfig",
]
