# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for Family Copilot:
# - test_models.py, test_forecast_service.py: forecast model and generation
# - test_apiservice.py, test_webfrontend.py: the two services
# - test_service_defaults.py, test_health.py, test_discovery.py,
#   test_resilience.py: shared service defaults
# - test_weather_client.py: frontend client for the weather API
# - test_apphost.py: topology and process lifecycle
#
# Run tests with: pytest
# =============================================================================
