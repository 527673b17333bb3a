# =============================================================================
# apiservice/ - Weather API Service
# =============================================================================
# - main.py: App factory, service defaults, error handling
# - dependencies.py: Injected resources (random source)
# - routers/: API endpoint definitions
# =============================================================================
