"""
Resource-group resolution.

Expands a resource-group selector into the concrete resources it currently
contains, then narrows the list with the group's include and exclude
patterns. Patterns are matched with ``re.search`` against the resource leaf
name (the last path segment).
"""

import logging
import re
from typing import List, Sequence

from ..azure.client import AzureClient
from ..azure.errors import AuthError, ListError
from ..models.azure import ResolvedResource
from ..models.config import ResourceConfig, ResourceGroupConfig

logger = logging.getLogger(__name__)


def leaf_name(resource_path: str) -> str:
    return resource_path.rstrip("/").split("/")[-1]


def matches_any(patterns: Sequence[str], name: str) -> bool:
    """
    True when ``name`` matches at least one pattern.

    A pattern that fails to compile counts as a non-match.
    """
    for pattern in patterns:
        try:
            if re.search(pattern, name):
                return True
        except re.error as e:
            logger.debug(f"Ignoring pattern {pattern!r} that failed to evaluate: {e}")
    return False


def filter_resources(
    resource_paths: Sequence[str],
    include: Sequence[str],
    exclude: Sequence[str],
) -> List[str]:
    """
    Apply include and exclude patterns to resource paths.

    With a non-empty include list a resource must match one of its patterns.
    A resource matching any exclude pattern is dropped even when included.

    Args:
        resource_paths: Resource paths in listing order
        include: Include patterns, empty to accept everything
        exclude: Exclude patterns

    Returns:
        The retained paths, in their original order
    """
    retained = []
    for path in resource_paths:
        name = leaf_name(path)
        if include and not matches_any(include, name):
            logger.debug(f"Resource {name} does not match any include pattern")
            continue
        if matches_any(exclude, name):
            logger.debug(f"Resource {name} matches an exclude pattern")
            continue
        retained.append(path)
    return retained


def resolve_explicit(resource: ResourceConfig) -> ResolvedResource:
    return ResolvedResource(
        path=resource.name,
        metrics=resource.metrics,
        aggregations=resource.aggregations,
    )


class ResourceResolver:
    """
    Resolves resource-group selectors through the Azure listing API.
    """

    def __init__(self, client: AzureClient):
        self.client = client

    def resolve_group(self, group: ResourceGroupConfig) -> List[ResolvedResource]:
        """
        Expand a resource group into the resources to query this scrape.

        Args:
            group: The resource-group selector

        Returns:
            Resolved resources carrying the group's metrics and aggregations

        Raises:
            ListError: If the group could not be listed, including when no
                access token could be obtained for the call
        """
        try:
            paths = self.client.list_resource_group(group.name, group.resource_types)
        except AuthError as e:
            raise ListError(
                f"Error refreshing access token: {e}", status_code=e.status_code, code=e.code
            ) from e

        retained = filter_resources(paths, group.resource_include, group.resource_exclude)
        logger.debug(
            f"Resource group {group.name}: {len(paths)} listed, {len(retained)} after filtering"
        )
        return [
            ResolvedResource(path=path, metrics=group.metrics, aggregations=group.aggregations)
            for path in retained
        ]
