# =============================================================================
# core/ - Domain Package
# =============================================================================
# Framework-agnostic code shared by the API service and the web frontend:
# - models/: Pydantic schemas (WeatherForecast)
# - services/: Forecast generation
#
# Code in this package should NOT import from FastAPI or httpx.
# =============================================================================
