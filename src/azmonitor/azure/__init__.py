"""
Azure API access: token lifecycle, REST client and error types.
"""

from .client import (
    MANAGEMENT_URL,
    METRICS_API_VERSION,
    RESOURCES_API_VERSION,
    AzureClient,
    build_resource_type_filter,
    build_timespan,
)
from .errors import AuthError, AzureApiError, FetchError, ListError
from .token import REFRESH_SKEW, TokenManager

__all__ = [
    "MANAGEMENT_URL",
    "METRICS_API_VERSION",
    "RESOURCES_API_VERSION",
    "REFRESH_SKEW",
    "AzureClient",
    "TokenManager",
    "build_resource_type_filter",
    "build_timespan",
    "AuthError",
    "AzureApiError",
    "FetchError",
    "ListError",
]
