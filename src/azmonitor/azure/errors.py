"""
Exceptions raised by the Azure API layer.

AuthError: identity endpoint failure or malformed token response.
ListError: resource-group listing failure.
FetchError: metric-values or metric-definitions call failure.
"""

from typing import Any, Optional


class AzureApiError(Exception):
    """
    Base class for Azure API failures.

    Carries the HTTP status code (None for transport errors) and the Azure
    error code when the response body provided one.
    """

    def __init__(self, message: str, status_code: Optional[int] = None,
                 code: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class AuthError(AzureApiError):
    """The access token could not be obtained or refreshed."""


class ListError(AzureApiError):
    """A resource group could not be listed."""


class FetchError(AzureApiError):
    """Metric values or definitions could not be fetched for a resource."""


def error_code_from_body(body: Any) -> Optional[str]:
    """
    Extract the Azure error code from a decoded error body.

    ARM answers with {"error": {"code": ..., "message": ...}} while the
    identity endpoint answers with {"error": "invalid_client", ...}.
    """
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if isinstance(error, dict):
        code = error.get("code")
        return code if isinstance(code, str) else None
    if isinstance(error, str):
        return error
    return None


def error_code_from_response(response) -> Optional[str]:
    """Azure error code of a failed HTTP response, None when the body is not JSON."""
    try:
        return error_code_from_body(response.json())
    except ValueError:
        return None
