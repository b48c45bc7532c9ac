"""
Azure data models.

Typed views over the JSON documents returned by the Azure Monitor and
Resource Manager APIs, plus the runtime structures that flow through a
scrape (tokens, resolved resources and metric samples).

The API omits or nulls nested fields freely, so every parser here accepts
missing keys and wrong types and maps them to empty values rather than
raising.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Aggregation(Enum):
    """Aggregation kinds supported by the metric-values endpoint."""

    TOTAL = "Total"
    AVERAGE = "Average"
    MINIMUM = "Minimum"
    MAXIMUM = "Maximum"

    @property
    def suffix(self) -> str:
        """Metric name suffix emitted for this aggregation."""
        return _AGGREGATION_SUFFIXES[self]

    @property
    def field_name(self) -> str:
        """Key of this aggregation in a metric data point."""
        return self.value.lower()

    @classmethod
    def names(cls) -> List[str]:
        return [member.value for member in cls]

    @classmethod
    def resolve(cls, names) -> Tuple["Aggregation", ...]:
        """Map configured names to members; no names means every aggregation."""
        if not names:
            return tuple(cls)
        return tuple(cls(name) for name in names)


_AGGREGATION_SUFFIXES = {
    Aggregation.TOTAL: "_total",
    Aggregation.AVERAGE: "_average",
    Aggregation.MINIMUM: "_min",
    Aggregation.MAXIMUM: "_max",
}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _optional_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class AccessToken:
    """
    A bearer token and its expiry instant (UTC).

    Instances are never modified: a refresh produces a new token.
    """

    token: str = field(repr=False)
    expires_on: datetime

    def is_usable(self, now: datetime, skew) -> bool:
        """True while ``now`` is earlier than the expiry minus ``skew``."""
        return now < self.expires_on - skew


@dataclass(frozen=True)
class LocalizableString:
    value: str = ""
    localized_value: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "LocalizableString":
        data = _as_dict(data)
        return cls(
            value=_as_str(data.get("value")),
            localized_value=_as_str(data.get("localizedValue")),
        )


@dataclass(frozen=True)
class MetricDataPoint:
    """One aggregated data point. Aggregations that were not returned are None."""

    time_stamp: str = ""
    total: Optional[float] = None
    average: Optional[float] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Any) -> "MetricDataPoint":
        data = _as_dict(data)
        return cls(
            time_stamp=_as_str(data.get("timeStamp")),
            total=_optional_float(data.get("total")),
            average=_optional_float(data.get("average")),
            minimum=_optional_float(data.get("minimum")),
            maximum=_optional_float(data.get("maximum")),
        )

    def get(self, aggregation: Aggregation) -> Optional[float]:
        return getattr(self, aggregation.field_name)


@dataclass(frozen=True)
class MetricTimeSeries:
    data: Tuple[MetricDataPoint, ...] = ()

    @classmethod
    def from_dict(cls, data: Any) -> "MetricTimeSeries":
        points = _as_list(_as_dict(data).get("data"))
        return cls(data=tuple(MetricDataPoint.from_dict(p) for p in points))


@dataclass(frozen=True)
class MetricValue:
    """A named metric with its time series, as returned by the metrics endpoint."""

    id: str = ""
    name: LocalizableString = field(default_factory=LocalizableString)
    unit: str = ""
    type: str = ""
    timeseries: Tuple[MetricTimeSeries, ...] = ()

    @classmethod
    def from_dict(cls, data: Any) -> "MetricValue":
        data = _as_dict(data)
        return cls(
            id=_as_str(data.get("id")),
            name=LocalizableString.from_dict(data.get("name")),
            unit=_as_str(data.get("unit")),
            type=_as_str(data.get("type")),
            timeseries=tuple(
                MetricTimeSeries.from_dict(ts) for ts in _as_list(data.get("timeseries"))
            ),
        )

    def latest_data_point(self) -> Optional[MetricDataPoint]:
        """Last data point of the first time series, or None when there is no data."""
        if not self.timeseries or not self.timeseries[0].data:
            return None
        return self.timeseries[0].data[-1]


@dataclass(frozen=True)
class ApiErrorDetail:
    code: str = ""
    message: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> Optional["ApiErrorDetail"]:
        if not isinstance(data, dict):
            return None
        return cls(code=_as_str(data.get("code")), message=_as_str(data.get("message")))


@dataclass(frozen=True)
class MetricValuesResponse:
    value: Tuple[MetricValue, ...] = ()
    error: Optional[ApiErrorDetail] = None

    @classmethod
    def from_dict(cls, data: Any) -> "MetricValuesResponse":
        data = _as_dict(data)
        return cls(
            value=tuple(MetricValue.from_dict(v) for v in _as_list(data.get("value"))),
            error=ApiErrorDetail.from_dict(data.get("error")),
        )


@dataclass(frozen=True)
class ResourceListEntry:
    id: str = ""
    name: str = ""
    type: str = ""
    location: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "ResourceListEntry":
        data = _as_dict(data)
        return cls(
            id=_as_str(data.get("id")),
            name=_as_str(data.get("name")),
            type=_as_str(data.get("type")),
            location=_as_str(data.get("location")),
        )


@dataclass(frozen=True)
class ResourceListResponse:
    value: Tuple[ResourceListEntry, ...] = ()
    next_link: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "ResourceListResponse":
        data = _as_dict(data)
        return cls(
            value=tuple(ResourceListEntry.from_dict(v) for v in _as_list(data.get("value"))),
            next_link=_as_str(data.get("nextLink")) or None,
        )


@dataclass(frozen=True)
class MetricDefinition:
    name: LocalizableString = field(default_factory=LocalizableString)
    unit: str = ""
    primary_aggregation_type: str = ""
    supported_aggregation_types: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Any) -> "MetricDefinition":
        data = _as_dict(data)
        return cls(
            name=LocalizableString.from_dict(data.get("name")),
            unit=_as_str(data.get("unit")),
            primary_aggregation_type=_as_str(data.get("primaryAggregationType")),
            supported_aggregation_types=tuple(
                _as_str(a) for a in _as_list(data.get("supportedAggregationTypes"))
            ),
        )


@dataclass(frozen=True)
class ResolvedResource:
    """
    A concrete resource to query during one scrape.

    Built from an explicit resource entry or from a resource-group member.
    """

    # Path relative to the subscription, starting with "/".
    path: str
    metrics: Tuple[str, ...]
    aggregations: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MetricSample:
    """A single gauge value ready to be exposed."""

    name: str
    labels: Dict[str, str]
    aggregation: Aggregation
    value: float
