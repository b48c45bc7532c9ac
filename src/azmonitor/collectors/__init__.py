"""
Metric collection: resource resolution, naming and the Prometheus collector.
"""

from .azure_collector import AzureMetricsCollector
from .naming import RESOURCE_LABEL_NAMES, map_metric_name, map_resource_labels, sample_name
from .resolver import ResourceResolver, filter_resources, matches_any, resolve_explicit

__all__ = [
    "AzureMetricsCollector",
    "ResourceResolver",
    "RESOURCE_LABEL_NAMES",
    "filter_resources",
    "map_metric_name",
    "map_resource_labels",
    "matches_any",
    "resolve_explicit",
    "sample_name",
]
