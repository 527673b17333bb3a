# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up environment variables before any imports
# - Provides settings for development and production classifications
# - Provides deterministic random sources and sample forecast payloads
# =============================================================================

import os

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# apiservice.main and webfrontend.main build their app at import time

os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "false")
# Tests never export telemetry
os.environ.pop("OTEL_EXPORTER_OTLP_ENDPOINT", None)

import pytest

from servicedefaults.config import ServiceSettings
from webfrontend.config import WebSettings


class SequenceRandom:
    """Random source returning a fixed sequence and recording the ranges asked for."""

    def __init__(self, values):
        self._values = list(values)
        self.calls: list[tuple[int, int]] = []

    def randrange(self, start: int, stop: int) -> int:
        self.calls.append((start, stop))
        return self._values[(len(self.calls) - 1) % len(self._values)]


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def dev_settings():
    """Settings for a development environment without telemetry export."""
    return ServiceSettings(ENVIRONMENT="development", OTEL_EXPORTER_OTLP_ENDPOINT=None)


@pytest.fixture
def production_settings():
    """Settings for a production environment without telemetry export."""
    return ServiceSettings(ENVIRONMENT="production", OTEL_EXPORTER_OTLP_ENDPOINT=None)


@pytest.fixture
def web_dev_settings():
    """Frontend settings for development."""
    return WebSettings(ENVIRONMENT="development", OTEL_EXPORTER_OTLP_ENDPOINT=None)


@pytest.fixture
def web_production_settings():
    """Frontend settings for production."""
    return WebSettings(ENVIRONMENT="production", OTEL_EXPORTER_OTLP_ENDPOINT=None)


@pytest.fixture
def sequence_random():
    """Factory for deterministic random sources."""
    return SequenceRandom


@pytest.fixture
def sample_forecasts_json():
    """Five forecasts as the API service returns them."""
    return [
        {"date": "2024-01-16", "temperatureC": 12, "temperatureF": 53, "summary": "Cool"},
        {"date": "2024-01-17", "temperatureC": -5, "temperatureF": 24, "summary": "Bracing"},
        {"date": "2024-01-18", "temperatureC": 30, "temperatureF": 85, "summary": "Hot"},
        {"date": "2024-01-19", "temperatureC": 0, "temperatureF": 32, "summary": None},
        {"date": "2024-01-20", "temperatureC": 41, "temperatureF": 105, "summary": "Sweltering"},
    ]
