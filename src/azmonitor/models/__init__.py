"""
Data models for the exporter.

Configuration Models:
- Credentials, explicit resources, resource-group selectors and exporter
  tuning, aggregated into the AppConfig snapshot

Azure Models:
- Typed views of the metric-values, resource-list and metric-definition
  responses
- Access tokens, resolved resources and metric samples produced per scrape
"""

# Configuration models
from .config import (
    DEFAULT_MAX_WORKERS,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_TIMESPAN_SECONDS,
    AppConfig,
    Credentials,
    ExporterSettings,
    ResourceConfig,
    ResourceGroupConfig,
)

# Azure models
from .azure import (
    AccessToken,
    Aggregation,
    MetricDataPoint,
    MetricDefinition,
    MetricSample,
    MetricValue,
    MetricValuesResponse,
    ResolvedResource,
    ResourceListResponse,
)

__all__ = [
    # Configuration
    "DEFAULT_MAX_WORKERS",
    "DEFAULT_REQUEST_TIMEOUT",
    "DEFAULT_TIMESPAN_SECONDS",
    "AppConfig",
    "Credentials",
    "ExporterSettings",
    "ResourceConfig",
    "ResourceGroupConfig",
    # Azure
    "AccessToken",
    "Aggregation",
    "MetricDataPoint",
    "MetricDefinition",
    "MetricSample",
    "MetricValue",
    "MetricValuesResponse",
    "ResolvedResource",
    "ResourceListResponse",
]
