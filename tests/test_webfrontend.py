# =============================================================================
# tests/test_webfrontend.py - Web Frontend Tests
# =============================================================================
# Page rendering tests. The weather client is swapped for one backed by
# httpx.MockTransport so no API service is needed.
# =============================================================================

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from webfrontend.config import WebSettings
from webfrontend.main import create_app
from webfrontend.weather_client import WeatherApiClient


def mock_weather_client(payload) -> WeatherApiClient:
    body = json.dumps(payload).encode()
    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=body))
    return WeatherApiClient(httpx.AsyncClient(transport=transport, base_url="http://apiservice.test"))


class FailingWeatherClient:
    async def get_forecasts(self, max_items: int = 10):
        raise httpx.ConnectError("apiservice unreachable")


@pytest.fixture
def web_app(web_dev_settings):
    return create_app(web_dev_settings)


@pytest.fixture
def client(web_app):
    return TestClient(web_app, raise_server_exceptions=False)


class TestHomePage:
    def test_renders_greeting(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert "Hello, world!" in response.text


class TestWeatherPage:
    """Tests for GET /weather."""

    def test_renders_forecast_rows(self, web_app, client, sample_forecasts_json):
        web_app.state.weather_client = mock_weather_client(sample_forecasts_json)

        response = client.get("/weather")

        assert response.status_code == 200
        assert response.text.count("<tr>") == 6
        assert "2024-01-16" in response.text
        assert "Sweltering" in response.text
        assert "<td>105</td>" in response.text

    def test_renders_empty_state(self, web_app, client):
        web_app.state.weather_client = mock_weather_client([])

        response = client.get("/weather")

        assert response.status_code == 200
        assert "No forecasts available." in response.text

    def test_respects_max_forecasts(self, sample_forecasts_json):
        app = create_app(WebSettings(ENVIRONMENT="development", OTEL_EXPORTER_OTLP_ENDPOINT=None, MAX_FORECASTS=2))
        app.state.weather_client = mock_weather_client(sample_forecasts_json)

        response = TestClient(app).get("/weather")

        assert response.text.count("<tr>") == 3
        assert "2024-01-18" not in response.text


class TestProbes:
    def test_probes_mapped_in_development(self, client):
        assert client.get("/alive").status_code == 200
        assert client.get("/health").status_code == 200

    def test_probes_absent_in_production(self, web_production_settings):
        client = TestClient(create_app(web_production_settings))

        assert client.get("/alive").status_code == 404
        assert client.get("/health").status_code == 404


class TestErrorPage:
    def test_production_renders_error_page(self, web_production_settings):
        """Test failures render the generic error page outside development."""
        app = create_app(web_production_settings)
        app.state.weather_client = FailingWeatherClient()

        response = TestClient(app, raise_server_exceptions=False).get("/weather")

        assert response.status_code == 500
        assert "An error occurred while processing your request." in response.text
        assert "apiservice unreachable" not in response.text

    def test_development_propagates_error(self, web_app):
        web_app.state.weather_client = FailingWeatherClient()

        with pytest.raises(httpx.ConnectError):
            TestClient(web_app).get("/weather")
