"""
Mapping from Azure metric identities to Prometheus names and labels.

Both functions are pure: they never raise on odd input and always return the
same output for the same arguments.
"""

import re
from typing import Dict, List, Tuple

from ..models.azure import Aggregation

INVALID_METRIC_CHARS = re.compile(r"[^a-zA-Z0-9_:]")

# Label names attached to every sample, in exposition order.
RESOURCE_LABEL_NAMES = ("subscription_id", "resource_group", "resource_type", "resource_name")


def map_metric_name(raw_name: str, unit: str) -> str:
    """
    Derive a Prometheus-safe base name from an Azure metric name and unit.

    Spaces become underscores, the unit is appended, "/" becomes "_per_" and
    any other character outside [a-zA-Z0-9_:] becomes "_".

    >>> map_metric_name("CPU Percentage", "Percent")
    'cpu_percentage_percent'
    >>> map_metric_name("Data In", "Bytes/Second")
    'data_in_bytes_per_second'
    """
    name = raw_name.replace(" ", "_")
    name = f"{name}_{unit}".lower()
    name = name.replace("/", "_per_")
    name = INVALID_METRIC_CHARS.sub("_", name)
    # Prometheus names may not start with a digit.
    if name[:1].isdigit():
        name = f"_{name}"
    return name


def sample_name(base_name: str, aggregation: Aggregation) -> str:
    """Full metric name for one aggregation of ``base_name``."""
    return f"{base_name}{aggregation.suffix}"


def map_resource_labels(resource_id: str) -> Dict[str, str]:
    """
    Decompose an Azure resource id into provenance labels.

    The id is walked segment by segment, so ids with extra trailing segments
    (metric ids such as ".../providers/Microsoft.Insights/metrics/CpuTime")
    and truncated ids both work. Only labels that could be found are
    returned; an unparsable id yields an empty dict.

    >>> map_resource_labels("/subscriptions/s/resourceGroups/rg/providers/Microsoft.Web/sites/app")
    {'subscription_id': 's', 'resource_group': 'rg', 'resource_type': 'Microsoft.Web/sites', 'resource_name': 'app'}
    """
    if not isinstance(resource_id, str):
        return {}

    segments = [segment for segment in resource_id.split("/") if segment]
    labels: Dict[str, str] = {}

    i = 0
    while i < len(segments):
        key = segments[i].lower()
        if key == "subscriptions" and i + 1 < len(segments) and "subscription_id" not in labels:
            labels["subscription_id"] = segments[i + 1]
            i += 2
        elif key == "resourcegroups" and i + 1 < len(segments) and "resource_group" not in labels:
            labels["resource_group"] = segments[i + 1]
            i += 2
        elif key == "providers" and i + 2 < len(segments) and "resource_type" not in labels:
            resource_type, resource_name, i = _walk_provider(segments, i + 1)
            labels["resource_type"] = resource_type
            if resource_name:
                labels["resource_name"] = resource_name
        else:
            i += 1

    return labels


def _walk_provider(segments: List[str], start: int) -> Tuple[str, str, int]:
    """
    Read <namespace>/<type>/<name>[/<child type>/<child name>...] from ``start``.

    Child resources extend both chains, so ".../Microsoft.Sql/servers/srv/databases/db1"
    becomes ("Microsoft.Sql/servers/databases", "srv/db1"). The walk stops at
    the next "providers" segment. A trailing child type without a name is
    left out so that the type chain always matches the name chain.

    Returns:
        Type chain, name chain and the index of the first unread segment
    """
    types = [segments[start], segments[start + 1]]
    names: List[str] = []
    i = start + 2

    if i < len(segments) and segments[i].lower() != "providers":
        names.append(segments[i])
        i += 1
        while i + 1 < len(segments) and "providers" not in (segments[i].lower(), segments[i + 1].lower()):
            types.append(segments[i])
            names.append(segments[i + 1])
            i += 2

    return "/".join(types), "/".join(names), i
