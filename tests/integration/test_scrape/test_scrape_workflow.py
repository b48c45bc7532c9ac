"""
Integration tests for complete scrapes.

These tests wire the real configuration loader, Azure client, collector and
HTTP server together, replacing only the network with a fake session.
"""

import threading
from datetime import timedelta

import pytest
import requests
from unittest.mock import patch

from azmonitor.azure.client import AzureClient
from azmonitor.cli.main import main_cli
from azmonitor.config import manager, load_config
from azmonitor.models.config import ExporterSettings
from azmonitor.server import Exporter, create_server

from conftest import SUBSCRIPTION_ID, FakeSession, make_response, metric_value, token_body

APP = "/resourceGroups/rg/providers/Microsoft.Web/sites/app"
GROUP = "/resourceGroups/webapps/providers/Microsoft.Web/sites"


def listing(*names):
    return {
        "value": [
            {"id": f"/subscriptions/{SUBSCRIPTION_ID}{GROUP}/{name}", "name": name, "type": "Microsoft.Web/sites"}
            for name in names
        ]
    }


def metrics_route(**kwargs):
    """Answer metric-values calls based on the resource in the URL."""
    url = kwargs["url"]
    resource = url.split(f"/subscriptions/{SUBSCRIPTION_ID}", 1)[1].split("/providers/microsoft.insights", 1)[0]
    name = kwargs["params"]["metricnames"]
    value = 30.0 if resource.endswith("/app") else 10.0
    point = {"timeStamp": "2024-05-01T11:59:00Z", "total": value, "average": value / 2}
    return make_response(200, {"value": [metric_value(name, "Count", [point], f"/subscriptions/{SUBSCRIPTION_ID}{resource}")]})


@pytest.fixture
def azure_session(now):
    session = FakeSession()
    session.route("POST", "/oauth2/token", make_response(200, token_body(now + timedelta(hours=1))))
    session.route("GET", "/resourceGroups/webapps/resources", make_response(200, listing("web-1", "db-1")))
    session.route("GET", "/metricDefinitions", make_response(200, {"value": [{"name": {"value": "CpuTime"}}]}))
    session.route("GET", "/providers/microsoft.insights/metrics", metrics_route)
    return session


@pytest.fixture
def config(config_file):
    return load_config(config_file)


@pytest.fixture
def exporter(config, azure_session, clock):
    client = AzureClient(config.credentials, session=azure_session, clock=clock)
    exporter = Exporter(config, client)
    yield exporter
    exporter.shutdown()


@pytest.fixture(autouse=True)
def reset_config_state():
    original_path = manager._CONFIG_FILE_PATH
    yield
    manager.clear_config_cache()
    manager._CONFIG_FILE_PATH = original_path


@pytest.mark.integration
class TestScrapeWorkflow:
    """Test complete scrapes from configuration to exposition."""

    def test_render_metrics(self, exporter):
        body = exporter.render_metrics().decode()

        assert "# TYPE cputime_count_total gauge" in body
        assert (
            'cputime_count_total{resource_group="rg",resource_name="app",'
            f'resource_type="Microsoft.Web/sites",subscription_id="{SUBSCRIPTION_ID}"}} 30.0'
        ) in body
        # The group member matching ^web- is scraped with all aggregations, db-1 is filtered out.
        assert 'requests_count_average{resource_group="webapps",resource_name="web-1"' in body
        assert 'resource_name="db-1"' not in body
        assert "azure_exporter_scrape_errors 0.0" in body
        assert "azure_exporter_build_info" in body

    def test_token_requested_once_across_scrapes(self, exporter, azure_session):
        exporter.render_metrics()
        exporter.render_metrics()

        assert len(azure_session.calls_to("/oauth2/token")) == 1

    def test_group_listing_failure_keeps_other_targets(self, exporter, azure_session):
        azure_session.routes.insert(0, ("GET", "/resourceGroups/webapps/resources", lambda **_: make_response(500, {})))

        body = exporter.render_metrics().decode()

        assert 'resource_name="app"' in body
        assert 'resource_name="web-1"' not in body
        assert "azure_exporter_scrape_errors 1.0" in body

    def test_worker_pool_scrape(self, config, azure_session, clock):
        config = type(config)(
            credentials=config.credentials,
            resources=config.resources,
            resource_groups=config.resource_groups,
            exporter=ExporterSettings(max_workers=3),
        )
        exporter = Exporter(config, AzureClient(config.credentials, session=azure_session, clock=clock))
        try:
            assert exporter.executor is not None
            body = exporter.render_metrics().decode()
        finally:
            exporter.shutdown()

        assert 'resource_name="app"' in body
        assert 'resource_name="web-1"' in body
        assert azure_session.closed is True


@pytest.mark.integration
class TestConfigUpdate:
    """Test swapping the configuration of a running exporter."""

    def test_update_keeps_client_when_credentials_unchanged(self, exporter, config):
        client = exporter.client
        new_config = type(config)(credentials=config.credentials, exporter=config.exporter)

        exporter.update_config(new_config)

        assert exporter.config is new_config
        assert exporter.client is client
        body = exporter.render_metrics().decode()
        assert "cputime_count_total{" not in body

    def test_update_rebuilds_client_on_timeout_change(self, exporter, config, azure_session):
        client = exporter.client
        new_config = type(config)(
            credentials=config.credentials,
            exporter=ExporterSettings(request_timeout=12.0, max_workers=1),
        )

        exporter.update_config(new_config)

        assert exporter.client is not client
        assert exporter.client.request_timeout == 12.0
        # The replaced client's session is released.
        assert azure_session.closed is True

    def test_update_keeps_session_open_when_client_kept(self, exporter, config, azure_session):
        exporter.update_config(type(config)(credentials=config.credentials, exporter=config.exporter))

        assert azure_session.closed is False

    def test_scrape_reads_current_snapshot(self, exporter, config):
        exporter.render_metrics()
        exporter.update_config(type(config)(credentials=config.credentials, exporter=config.exporter))

        body = exporter.render_metrics().decode()

        assert 'resource_name="app"' not in body
        assert "azure_exporter_scrape_errors 0.0" in body


@pytest.mark.integration
class TestHttpServer:
    """Test the HTTP endpoints served by the exporter."""

    @pytest.fixture
    def http(self):
        session = requests.Session()
        # Talk to the local server directly, ignoring proxy settings.
        session.trust_env = False
        yield session
        session.close()

    @pytest.fixture
    def base_url(self, exporter):
        server = create_server(exporter, "127.0.0.1:0")
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        yield f"http://127.0.0.1:{server.server_address[1]}"
        server.shutdown()
        server.server_close()

    def test_metrics_endpoint(self, http, base_url):
        response = http.get(f"{base_url}/metrics", timeout=5)

        assert response.status_code == 200
        assert response.headers["Content-Type"].startswith("text/plain")
        assert "cputime_count_total" in response.text

    def test_landing_page(self, http, base_url):
        response = http.get(f"{base_url}/", timeout=5)

        assert response.status_code == 200
        assert '<a href="/metrics">' in response.text

    def test_unknown_path(self, http, base_url):
        assert http.get(f"{base_url}/nope", timeout=5).status_code == 404

    def test_scrape_failure_returns_500(self, http, base_url, exporter):
        with patch.object(exporter, "snapshot", side_effect=RuntimeError("broken")):
            response = http.get(f"{base_url}/metrics", timeout=5)

        assert response.status_code == 500


@pytest.mark.integration
class TestCli:
    """Test the command-line entry point."""

    def test_list_definitions(self, config_file, azure_session, clock, capsys):
        def build(config):
            return AzureClient(config.credentials, session=azure_session, clock=clock)

        with patch("azmonitor.server.build_client", side_effect=build):
            with pytest.raises(SystemExit) as exc_info:
                main_cli(["--config.file", str(config_file), "--list.definitions"])

        assert exc_info.value.code == 0
        out = capsys.readouterr().out
        assert "Resource: app\n\nAvailable Metrics:\n- CpuTime" in out
        assert "Resource: web-1" in out
        assert "Resource: db-1" not in out

    def test_list_definitions_reports_failures(self, config_file, azure_session, clock):
        azure_session.routes.insert(0, ("GET", "/metricDefinitions", lambda **_: make_response(404, {})))

        def build(config):
            return AzureClient(config.credentials, session=azure_session, clock=clock)

        with patch("azmonitor.server.build_client", side_effect=build):
            with pytest.raises(SystemExit) as exc_info:
                main_cli(["--config.file", str(config_file), "--list.definitions"])

        assert exc_info.value.code == 1

    def test_authentication_failure_exits(self, config_file, clock):
        session = FakeSession()
        session.route("POST", "/oauth2/token", make_response(401, {"error": "invalid_client"}))

        def build(config):
            return AzureClient(config.credentials, session=session, clock=clock)

        with patch("azmonitor.server.build_client", side_effect=build):
            with pytest.raises(SystemExit) as exc_info:
                main_cli(["--config.file", str(config_file)])

        assert exc_info.value.code == 1

    def test_missing_config_exits(self, temp_dir):
        with pytest.raises(SystemExit) as exc_info:
            main_cli(["--config.file", str(temp_dir / "missing.toml")])

        assert exc_info.value.code == 1
