"""
Prometheus collector backed by the Azure Monitor metrics API.

One AzureMetricsCollector is built per scrape from a single configuration
snapshot. Its collect() expands the configured targets, fetches the latest
aggregated values of every target and yields them as gauge families,
followed by the exporter's own scrape metrics.

Failures are isolated per target: a resource whose token refresh or metric
fetch fails, or a group whose listing fails, is logged, counted in
azure_exporter_scrape_errors and left out of this scrape only.
"""

import logging
import threading
import time
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from prometheus_client.core import GaugeMetricFamily
from prometheus_client.metrics_core import Metric
from prometheus_client.registry import Collector

from .. import __version__
from ..azure.client import AzureClient
from ..azure.errors import AzureApiError, ListError
from ..executor import ManagedThreadPoolExecutor
from ..models.azure import Aggregation, MetricSample, ResolvedResource
from ..models.config import AppConfig
from ..validation import handle_api_error
from .naming import RESOURCE_LABEL_NAMES, map_metric_name, map_resource_labels, sample_name
from .resolver import ResourceResolver, resolve_explicit

logger = logging.getLogger(__name__)


class AzureMetricsCollector(Collector):
    """
    Collects Azure Monitor metrics for one configuration snapshot.
    """

    def __init__(
        self,
        config: AppConfig,
        client: AzureClient,
        executor: Optional[ManagedThreadPoolExecutor] = None,
    ):
        """
        Initialize the collector.

        Args:
            config: Configuration snapshot used for the whole scrape
            client: Azure client for the snapshot's credentials
            executor: Optional worker pool, targets are collected
                sequentially when omitted
        """
        self.config = config
        self.client = client
        self.executor = executor
        self.resolver = ResourceResolver(client)
        self._error_count = 0
        self._error_lock = threading.Lock()

    def describe(self) -> Iterable[Metric]:
        # Metric names are only known after querying Azure.
        return []

    def collect(self) -> Iterator[Metric]:
        """
        Collect metrics for one Prometheus scrape.

        Yields:
            One gauge family per metric name, then the scrape metadata
        """
        started = time.perf_counter()
        self._error_count = 0

        targets = self.resolve_targets()
        samples = self.collect_targets(targets)
        yield from self.build_families(samples)

        duration = GaugeMetricFamily(
            "azure_exporter_scrape_duration_seconds",
            "Time spent querying the Azure API during this scrape",
        )
        duration.add_metric([], time.perf_counter() - started)
        yield duration

        errors = GaugeMetricFamily(
            "azure_exporter_scrape_errors",
            "Number of resources and resource groups that failed during this scrape",
        )
        errors.add_metric([], self._error_count)
        yield errors

        build_info = GaugeMetricFamily(
            "azure_exporter_build_info",
            "Exporter build information",
            labels=["version"],
        )
        build_info.add_metric([__version__], 1)
        yield build_info

    def resolve_targets(self) -> List[ResolvedResource]:
        """
        Build the list of resources to query: explicit resources first, then
        the members of every resource group that could be listed.
        """
        targets = [resolve_explicit(resource) for resource in self.config.resources]

        for group in self.config.resource_groups:
            try:
                targets.extend(self.resolver.resolve_group(group))
            except ListError as e:
                self._record_error()
                handle_api_error(e, f"listing resource group {group.name}", logger=logger)

        return targets

    def collect_targets(self, targets: Sequence[ResolvedResource]) -> List[MetricSample]:
        """
        Collect every target, through the worker pool when one is available.

        Samples are returned in target order regardless of completion order.
        """
        if self.executor is None or len(targets) < 2:
            samples = []
            for target in targets:
                samples.extend(self.collect_resource(target.path, target.metrics, target.aggregations))
            return samples

        futures = [
            self.executor.submit(self.collect_resource, target.path, target.metrics, target.aggregations)
            for target in targets
        ]
        samples = []
        for target, future in zip(targets, futures):
            try:
                samples.extend(future.result())
            except Exception as e:
                self._record_error()
                logger.error(f"Collection task for target {target.path} failed: {e}")
        return samples

    def collect_resource(
        self,
        resource: str,
        metric_names: Sequence[str],
        aggregations: Sequence[str] = (),
    ) -> List[MetricSample]:
        """
        Fetch and convert the metrics of one resource.

        Never raises: failures are logged and produce no samples.

        Args:
            resource: Resource path relative to the subscription
            metric_names: Azure metric names to query
            aggregations: Configured aggregations, all four when empty

        Returns:
            One sample per metric value and per aggregation that was both
            requested and present in the latest data point
        """
        metrics_str = ",".join(metric_names)
        try:
            response = self.client.get_metric_values(
                resource,
                metric_names,
                aggregations,
                timespan_seconds=self.config.exporter.timespan_seconds,
            )
        except AzureApiError as e:
            self._record_error()
            handle_api_error(e, f"fetching metrics for target {resource}", logger=logger)
            return []
        except Exception:
            self._record_error()
            logger.exception(f"Unexpected error fetching metrics for target {resource}")
            return []

        if not response.value:
            logger.info(f"Metric {metrics_str} not found at target {resource}")
            return []
        if response.value[0].latest_data_point() is None:
            logger.info(f"No metric data returned for metric {metrics_str} at target {resource}")
            return []

        requested = Aggregation.resolve(aggregations)
        fallback_id = f"{self.client.subscription_path}{resource}"
        samples = []

        for value in response.value:
            point = value.latest_data_point()
            if point is None or not value.name.value:
                logger.debug(f"Skipping metric {value.name.value!r} at target {resource}: no data")
                continue

            base_name = map_metric_name(value.name.value, value.unit)
            labels = self._resource_labels(value.id or fallback_id)

            for aggregation in requested:
                sample_value = point.get(aggregation)
                if sample_value is None:
                    continue
                samples.append(
                    MetricSample(
                        name=sample_name(base_name, aggregation),
                        labels=labels,
                        aggregation=aggregation,
                        value=sample_value,
                    )
                )

        return samples

    def build_families(self, samples: Iterable[MetricSample]) -> List[GaugeMetricFamily]:
        """
        Group samples into gauge families by metric name.

        When two samples share a name and label values, the first one wins.
        """
        families: Dict[str, GaugeMetricFamily] = {}
        seen = set()

        for sample in samples:
            label_values = [sample.labels.get(name, "") for name in RESOURCE_LABEL_NAMES]
            key: Tuple[str, ...] = (sample.name, *label_values)
            if key in seen:
                logger.debug(f"Dropping duplicate series {sample.name}{sample.labels}")
                continue
            seen.add(key)

            family = families.get(sample.name)
            if family is None:
                family = GaugeMetricFamily(sample.name, sample.name, labels=RESOURCE_LABEL_NAMES)
                families[sample.name] = family
            family.add_metric(label_values, sample.value)

        return list(families.values())

    def _resource_labels(self, resource_id: str) -> Dict[str, str]:
        labels = map_resource_labels(resource_id)
        return {name: labels.get(name, "") for name in RESOURCE_LABEL_NAMES}

    def _record_error(self) -> None:
        with self._error_lock:
            self._error_count += 1

    @property
    def error_count(self) -> int:
        return self._error_count
