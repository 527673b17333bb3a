# =============================================================================
# webfrontend/ - Server-Rendered Web Frontend
# =============================================================================
# - main.py: App factory, service defaults, error page
# - config.py: WebSettings (API location)
# - weather_client.py: Streaming client for the weather API
# - routers/: Page routes rendered with Jinja2 templates
# =============================================================================
