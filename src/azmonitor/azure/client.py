"""
Client for the Azure Resource Manager and Azure Monitor REST APIs.

Every call ensures a usable access token first, applies the configured
request timeout and maps transport failures, non-200 answers and
undecodable bodies to the AzureApiError subclass of the calling operation.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence, Type

import requests

from ..models.azure import (
    Aggregation,
    MetricDefinition,
    MetricValuesResponse,
    ResourceListResponse,
)
from ..models.config import DEFAULT_REQUEST_TIMEOUT, DEFAULT_TIMESPAN_SECONDS, Credentials
from .errors import AzureApiError, FetchError, ListError, error_code_from_response
from .token import TokenManager, utcnow

logger = logging.getLogger(__name__)

MANAGEMENT_URL = "https://management.azure.com"
METRICS_API_VERSION = "2018-01-01"
RESOURCES_API_VERSION = "2018-02-01"

_TIMESPAN_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def build_resource_type_filter(resource_types: Sequence[str]) -> str:
    """
    Build the OData filter selecting any of ``resource_types``.

    >>> build_resource_type_filter(["Microsoft.Web/sites", "Microsoft.Sql/servers"])
    "resourcetype eq 'Microsoft.Web/sites' or resourcetype eq 'Microsoft.Sql/servers'"
    """
    return " or ".join(f"resourcetype eq '{resource_type}'" for resource_type in resource_types)


def build_timespan(end: datetime, span_seconds: int) -> str:
    """ISO8601 interval covering ``span_seconds`` up to ``end``."""
    start = end - timedelta(seconds=span_seconds)
    return f"{start.strftime(_TIMESPAN_FORMAT)}/{end.strftime(_TIMESPAN_FORMAT)}"


class AzureClient:
    """
    Talks to the Azure API on behalf of one subscription.
    """

    def __init__(
        self,
        credentials: Credentials,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
        token_manager: Optional[TokenManager] = None,
        management_url: str = MANAGEMENT_URL,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the Azure client.

        Args:
            credentials: Service principal and subscription to query
            request_timeout: Timeout in seconds applied to every HTTP call
            session: Shared HTTP session, a new one is created when omitted
            token_manager: Token manager, built from ``credentials`` when omitted
            management_url: Resource Manager base URL
            clock: Returns the current UTC time, replaceable in tests
        """
        self.credentials = credentials
        self.request_timeout = request_timeout
        self.session = session or requests.Session()
        self.tokens = token_manager or TokenManager(
            credentials, session=self.session, timeout=request_timeout, clock=clock
        )
        self.management_url = management_url.rstrip("/")
        self._clock = clock

    @property
    def subscription_path(self) -> str:
        return f"/subscriptions/{self.credentials.subscription_id}"

    def authenticate(self) -> None:
        """
        Obtain the initial access token.

        Raises:
            AuthError: If no token could be obtained
        """
        self.tokens.ensure_token()

    def close(self) -> None:
        self.session.close()

    def strip_subscription_prefix(self, resource_id: str) -> str:
        """
        Turn a fully qualified resource id into a path relative to the subscription.

        Ids belonging to another subscription are returned unchanged.
        """
        prefix = self.subscription_path
        if resource_id.lower().startswith(prefix.lower() + "/"):
            return resource_id[len(prefix):]
        return resource_id

    def get_metric_values(
        self,
        resource: str,
        metric_names: Sequence[str],
        aggregations: Sequence[str] = (),
        timespan_seconds: int = DEFAULT_TIMESPAN_SECONDS,
    ) -> MetricValuesResponse:
        """
        Fetch aggregated metric values for one resource over the recent window.

        Args:
            resource: Resource path relative to the subscription
            metric_names: Metric names to query
            aggregations: Aggregations to request, all four when empty
            timespan_seconds: Length of the window ending now

        Returns:
            The decoded metric values

        Raises:
            AuthError: If no usable token could be obtained
            FetchError: If the call failed or the body carries an error
        """
        url = f"{self.management_url}{self.subscription_path}{resource}/providers/microsoft.insights/metrics"
        params = {}
        if metric_names:
            params["metricnames"] = ",".join(metric_names)
        params["aggregation"] = ",".join(aggregations or Aggregation.names())
        params["timespan"] = build_timespan(self._clock(), timespan_seconds)
        params["api-version"] = METRICS_API_VERSION

        data = self._get_json(url, params, FetchError, "metrics API")
        response = MetricValuesResponse.from_dict(data)
        if response.error is not None and (response.error.code or response.error.message):
            raise FetchError(
                f"Metrics API returned an error: {response.error.message or response.error.code}",
                status_code=200,
                code=response.error.code or None,
            )
        return response

    def list_resource_group(self, resource_group: str, resource_types: Sequence[str]) -> List[str]:
        """
        List the resources of a group, restricted to ``resource_types``.

        All result pages are followed.

        Returns:
            Resource paths relative to the subscription

        Raises:
            AuthError: If no usable token could be obtained
            ListError: If any page could not be fetched
        """
        url = f"{self.management_url}{self.subscription_path}/resourceGroups/{resource_group}/resources"
        params: Optional[Dict[str, str]] = {"api-version": RESOURCES_API_VERSION}
        if resource_types:
            params["$filter"] = build_resource_type_filter(resource_types)

        resources = []
        next_url: Optional[str] = url
        while next_url:
            page = ResourceListResponse.from_dict(
                self._get_json(next_url, params, ListError, "resource group API")
            )
            resources.extend(self.strip_subscription_prefix(entry.id) for entry in page.value if entry.id)
            # nextLink already carries the query string.
            next_url, params = page.next_link, None

        return resources

    def get_metric_definitions(self, resource: str) -> List[MetricDefinition]:
        """
        List the metric definitions available for one resource.

        Raises:
            AuthError: If no usable token could be obtained
            FetchError: If the call failed
        """
        url = f"{self.management_url}{self.subscription_path}{resource}/providers/microsoft.insights/metricDefinitions"
        data = self._get_json(url, {"api-version": METRICS_API_VERSION}, FetchError, "metric definitions API")
        values = data.get("value") if isinstance(data, dict) else None
        if not isinstance(values, list):
            return []
        return [MetricDefinition.from_dict(value) for value in values]

    def _get_json(
        self,
        url: str,
        params: Optional[Dict[str, str]],
        error_cls: Type[AzureApiError],
        context: str,
    ) -> Any:
        token = self.tokens.ensure_token()
        headers = {"Authorization": f"Bearer {token.token}"}

        logger.debug(f"GET {url} params={params}")
        try:
            response = self.session.get(url, params=params, headers=headers, timeout=self.request_timeout)
        except requests.RequestException as e:
            raise error_cls(f"Error querying {context}: {e}") from e

        if response.status_code != 200:
            raise error_cls(
                f"Unable to query {context} with status code: {response.status_code}",
                status_code=response.status_code,
                code=error_code_from_response(response),
            )

        try:
            return response.json()
        except ValueError as e:
            raise error_cls(
                f"Error decoding {context} response body: {e}", status_code=response.status_code
            ) from e
