"""
Pytest configuration and shared fixtures for the exporter test suite.

This module provides common fixtures, fake HTTP responses and configuration
samples for all test modules.
"""

import shutil
import sys
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, List, Tuple
from unittest.mock import Mock

import pytest

# Add src to Python path for testing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from azmonitor.models.config import AppConfig, Credentials, ExporterSettings  # noqa: E402

SUBSCRIPTION_ID = "sub-1234"


# ============================================================================
# Test Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")


# ============================================================================
# HTTP helpers
# ============================================================================


def make_response(status_code: int = 200, body: Any = None) -> Mock:
    """Build a fake requests.Response. An exception as body makes json() raise it."""
    response = Mock()
    response.status_code = status_code
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body
    return response


def token_body(expires_on: datetime, token: str = "token-abc") -> dict:
    return {
        "token_type": "Bearer",
        "access_token": token,
        "expires_on": str(int(expires_on.timestamp())),
    }


def metric_value(name: str, unit: str, points: List[dict], resource: str = None) -> dict:
    """One entry of a metric-values response with a single time series."""
    resource = resource or f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/rg/providers/Microsoft.Web/sites/app"
    return {
        "id": f"{resource}/providers/Microsoft.Insights/metrics/{name}",
        "type": "Microsoft.Insights/metrics",
        "name": {"value": name, "localizedValue": name},
        "unit": unit,
        "timeseries": [{"metadatavalues": [], "data": points}],
    }


class FakeSession:
    """
    Minimal stand-in for requests.Session routing requests by URL fragment.

    Routes are checked in order; the first fragment contained in the URL
    answers. Every call is recorded in ``calls``.
    """

    def __init__(self):
        self.routes: List[Tuple[str, str, Callable[..., Mock]]] = []
        self.calls: List[Tuple[str, str, dict]] = []
        self.closed = False

    def route(self, method: str, fragment: str, response) -> None:
        handler = response if callable(response) and not isinstance(response, Mock) else (lambda **_: response)
        self.routes.append((method, fragment, handler))

    def _dispatch(self, method: str, url: str, **kwargs) -> Mock:
        self.calls.append((method, url, kwargs))
        for route_method, fragment, handler in self.routes:
            if route_method == method and fragment in url:
                return handler(url=url, **kwargs)
        return make_response(404, {"error": {"code": "NotFound", "message": url}})

    def get(self, url, **kwargs):
        return self._dispatch("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._dispatch("POST", url, **kwargs)

    def close(self):
        self.closed = True

    def calls_to(self, fragment: str) -> List[Tuple[str, str, dict]]:
        return [call for call in self.calls if fragment in call[1]]


# ============================================================================
# Core Fixtures
# ============================================================================


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def now():
    """Fixed current time used by clocks in tests."""
    return datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(now):
    return lambda: now


@pytest.fixture
def credentials():
    return Credentials(
        subscription_id=SUBSCRIPTION_ID,
        client_id="client-id",
        client_secret="client-secret",
        tenant_id="tenant-id",
    )


@pytest.fixture
def fake_session(now):
    """A FakeSession that already grants tokens valid for one hour."""
    session = FakeSession()
    session.route("POST", "/oauth2/token", make_response(200, token_body(now + timedelta(hours=1))))
    return session


@pytest.fixture
def app_config(credentials):
    return AppConfig(
        credentials=credentials,
        exporter=ExporterSettings(request_timeout=5.0, timespan_seconds=60, max_workers=1),
    )


@pytest.fixture
def sample_config_data():
    """Raw configuration data as parsed from TOML."""
    return {
        "credentials": {
            "subscription_id": SUBSCRIPTION_ID,
            "client_id": "client-id",
            "client_secret": "client-secret",
            "tenant_id": "tenant-id",
        },
        "exporter": {
            "request_timeout": 10,
            "timespan_seconds": 120,
            "max_workers": 2,
        },
        "resources": [
            {
                "name": "/resourceGroups/rg/providers/Microsoft.Web/sites/app",
                "metrics": ["CpuTime", "Requests"],
                "aggregations": ["Total", "Average"],
            }
        ],
        "resource_groups": [
            {
                "name": "webapps",
                "resource_types": ["Microsoft.Web/sites"],
                "resource_include": ["^web-"],
                "resource_exclude": ["-staging$"],
                "metrics": ["CpuTime"],
                "aggregations": ["Maximum"],
            }
        ],
    }


SAMPLE_CONFIG_TOML = f"""
[credentials]
subscription_id = "{SUBSCRIPTION_ID}"
client_id = "client-id"
client_secret = "client-secret"
tenant_id = "tenant-id"

[exporter]
max_workers = 1

[[resources]]
name = "/resourceGroups/rg/providers/Microsoft.Web/sites/app"
metrics = ["CpuTime"]
aggregations = ["Total"]

[[resource_groups]]
name = "webapps"
resource_types = ["Microsoft.Web/sites"]
resource_include = ["^web-"]
metrics = ["Requests"]
"""


@pytest.fixture
def config_file(temp_dir):
    """A valid configuration file on disk."""
    path = temp_dir / "azure.toml"
    path.write_text(SAMPLE_CONFIG_TOML)
    return path
