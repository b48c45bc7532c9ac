"""
Configuration validation utilities.

This module turns the raw TOML tables into the frozen configuration models,
enforcing the invariants the collection pipeline relies on: rooted resource
paths, known aggregation names and compilable include/exclude patterns.
"""

import logging
from typing import Any, Dict, List, Tuple

from ..models.azure import Aggregation
from ..models.config import (
    DEFAULT_MAX_WORKERS,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_TIMESPAN_SECONDS,
    AppConfig,
    Credentials,
    ExporterSettings,
    ResourceConfig,
    ResourceGroupConfig,
)
from ..validation import (
    ValidationError,
    reject_unknown_keys,
    validate_enum_choice,
    validate_non_empty_string,
    validate_positive_float,
    validate_positive_integer,
    validate_regex_pattern,
    validate_resource_path,
    validate_string_list,
)

logger = logging.getLogger(__name__)

_TOP_LEVEL_KEYS = ["credentials", "exporter", "resources", "resource_groups"]
_CREDENTIAL_KEYS = ["subscription_id", "client_id", "client_secret", "tenant_id"]
_EXPORTER_KEYS = ["request_timeout", "timespan_seconds", "max_workers"]
_RESOURCE_KEYS = ["name", "metrics", "aggregations"]
_RESOURCE_GROUP_KEYS = [
    "name",
    "resource_types",
    "resource_include",
    "resource_exclude",
    "metrics",
    "aggregations",
]


def _require_table(data: Any, field_name: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ValidationError(f"{field_name} must be a table", field_name=field_name, value=data)
    return data


def _require_array_of_tables(data: Any, field_name: str) -> List[Dict[str, Any]]:
    if data is None:
        return []
    if not isinstance(data, list):
        raise ValidationError(
            f"{field_name} must be an array of tables", field_name=field_name, value=data
        )
    return [_require_table(item, f"{field_name}[{i}]") for i, item in enumerate(data)]


def validate_aggregations(aggregations: Any, field_name: str) -> Tuple[str, ...]:
    """
    Validate a list of aggregation names.

    Raises:
        ValidationError: If an entry is not Total, Average, Minimum or Maximum
    """
    names = validate_string_list(aggregations, field_name=field_name)
    return tuple(
        validate_enum_choice(name, choices=Aggregation.names(), field_name=f"{field_name}[{i}]")
        for i, name in enumerate(names)
    )


def validate_credentials(credentials_data: Any) -> Credentials:
    """
    Validate and create Credentials from the `[credentials]` table.

    Raises:
        ValidationError: If a field is missing, empty or unknown
    """
    credentials_data = _require_table(credentials_data, "credentials")
    reject_unknown_keys(credentials_data, _CREDENTIAL_KEYS, "credentials")

    values = {
        key: validate_non_empty_string(credentials_data.get(key), field_name=f"credentials.{key}")
        for key in _CREDENTIAL_KEYS
    }
    return Credentials(**values)


def validate_exporter_settings(exporter_data: Any) -> ExporterSettings:
    """
    Validate and create ExporterSettings from the optional `[exporter]` table.

    Raises:
        ValidationError: If a value is out of range or a key is unknown
    """
    if exporter_data is None:
        return ExporterSettings()
    exporter_data = _require_table(exporter_data, "exporter")
    reject_unknown_keys(exporter_data, _EXPORTER_KEYS, "exporter")

    request_timeout = validate_positive_float(
        exporter_data.get("request_timeout", DEFAULT_REQUEST_TIMEOUT),
        min_value=0.1,
        max_value=600.0,
        field_name="exporter.request_timeout",
    )
    # The metrics API works on minute grains, shorter windows return no data.
    timespan_seconds = validate_positive_integer(
        exporter_data.get("timespan_seconds", DEFAULT_TIMESPAN_SECONDS),
        min_value=60,
        max_value=86400,
        field_name="exporter.timespan_seconds",
    )
    max_workers = validate_positive_integer(
        exporter_data.get("max_workers", DEFAULT_MAX_WORKERS),
        min_value=1,
        max_value=64,
        field_name="exporter.max_workers",
    )
    return ExporterSettings(
        request_timeout=request_timeout,
        timespan_seconds=timespan_seconds,
        max_workers=max_workers,
    )


def validate_resources_config(resources_data: Any) -> Tuple[ResourceConfig, ...]:
    """
    Validate and create ResourceConfig instances from `[[resources]]` entries.

    Returns:
        Validated resources, in configuration order

    Raises:
        ValidationError: If validation fails
    """
    resources = []

    for i, resource_data in enumerate(_require_array_of_tables(resources_data, "resources")):
        try:
            reject_unknown_keys(resource_data, _RESOURCE_KEYS, f"resources[{i}]")

            name = validate_resource_path(
                resource_data.get("name"), field_name=f"resources[{i}].name"
            )
            metrics = validate_string_list(
                resource_data.get("metrics"),
                field_name=f"resources[{i}].metrics",
                allow_empty=False,
            )
            aggregations = validate_aggregations(
                resource_data.get("aggregations"), field_name=f"resources[{i}].aggregations"
            )

            resources.append(
                ResourceConfig(name=name, metrics=tuple(metrics), aggregations=aggregations)
            )

        except ValidationError as e:
            logger.error(f"Resource configuration validation failed: {e}")
            raise

    return tuple(resources)


def validate_resource_groups_config(groups_data: Any) -> Tuple[ResourceGroupConfig, ...]:
    """
    Validate and create ResourceGroupConfig instances from `[[resource_groups]]` entries.

    Every include and exclude pattern is compiled here so that a malformed
    expression is reported at load time instead of during a scrape.

    Raises:
        ValidationError: If validation fails
    """
    groups = []

    for i, group_data in enumerate(_require_array_of_tables(groups_data, "resource_groups")):
        prefix = f"resource_groups[{i}]"
        try:
            reject_unknown_keys(group_data, _RESOURCE_GROUP_KEYS, prefix)

            name = validate_non_empty_string(group_data.get("name"), field_name=f"{prefix}.name")
            resource_types = validate_string_list(
                group_data.get("resource_types"),
                field_name=f"{prefix}.resource_types",
                allow_empty=False,
            )
            metrics = validate_string_list(
                group_data.get("metrics"), field_name=f"{prefix}.metrics", allow_empty=False
            )
            aggregations = validate_aggregations(
                group_data.get("aggregations"), field_name=f"{prefix}.aggregations"
            )

            patterns = {}
            for key in ("resource_include", "resource_exclude"):
                entries = validate_string_list(group_data.get(key), field_name=f"{prefix}.{key}")
                patterns[key] = tuple(
                    validate_regex_pattern(pattern, field_name=f"{prefix}.{key}[{j}]")
                    for j, pattern in enumerate(entries)
                )

            groups.append(
                ResourceGroupConfig(
                    name=name,
                    resource_types=tuple(resource_types),
                    metrics=tuple(metrics),
                    resource_include=patterns["resource_include"],
                    resource_exclude=patterns["resource_exclude"],
                    aggregations=aggregations,
                )
            )

        except ValidationError as e:
            logger.error(f"Resource group configuration validation failed: {e}")
            raise

    return tuple(groups)


def validate_app_config(config_data: Dict[str, Any]) -> AppConfig:
    """
    Validate a whole parsed configuration file.

    Args:
        config_data: Parsed TOML document

    Returns:
        Fully validated AppConfig snapshot

    Raises:
        ValidationError: If any section is invalid
    """
    config_data = _require_table(config_data, "configuration")
    reject_unknown_keys(config_data, _TOP_LEVEL_KEYS, "config")

    if "credentials" not in config_data:
        raise ValidationError("Missing [credentials] section", field_name="credentials")

    app_config = AppConfig(
        credentials=validate_credentials(config_data["credentials"]),
        resources=validate_resources_config(config_data.get("resources")),
        resource_groups=validate_resource_groups_config(config_data.get("resource_groups")),
        exporter=validate_exporter_settings(config_data.get("exporter")),
    )

    if not app_config.resources and not app_config.resource_groups:
        logger.warning("Configuration defines no resources or resource groups, scrapes will be empty")

    return app_config
